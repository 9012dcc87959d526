"""
Normalizzazione dei payload JSON.

Backend e UI ricevono dati con nomi campo diversi (``DoctorId``,
``doctorId``, ``doctor_id``, sinonimi come ``Name``/``Title``). Per ogni
entità esiste una tabella di alias ordinata: il primo alias presente e non
nullo vince, altrimenti si usa il default del tipo di campo.

Tutte le funzioni sono totali: qualunque input (anche non dict) produce un
record valido, al limite con tutti i default.
"""
from __future__ import annotations

import enum
import math
import re
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any


class FieldKind(enum.Enum):
    ID = "id"                            # numero, default 0
    TEXT = "text"                        # testo, default ""
    OPTIONAL_TEXT = "optional_text"      # testo, vuoto -> None
    OPTIONAL_NUMBER = "optional_number"  # numero finito o None
    FLAG = "flag"                        # bool o None
    RAW = "raw"                          # valore così com'è (o None)


@dataclass(frozen=True)
class FieldSpec:
    name: str
    aliases: tuple[str, ...]
    kind: FieldKind
    default: Any = None


# =========================
# Tabelle alias
# =========================
DOCTOR_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("doctor_id", ("DoctorId", "doctorId", "doctor_id", "id"), FieldKind.ID),
    FieldSpec("full_name", ("FullName", "fullName", "full_name", "Name", "name"), FieldKind.TEXT),
    FieldSpec("specialty", ("Specialty", "specialty"), FieldKind.OPTIONAL_TEXT),
    FieldSpec("is_active", ("IsActive", "isActive", "is_active"), FieldKind.FLAG),
)

SERVICE_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("service_id", ("ServiceId", "serviceId", "service_id", "id"), FieldKind.ID),
    FieldSpec(
        "service_name",
        ("ServiceName", "serviceName", "service_name", "Name", "name", "Title", "title"),
        FieldKind.TEXT,
    ),
    FieldSpec("modality", ("Modality", "modality"), FieldKind.OPTIONAL_TEXT),
    FieldSpec(
        "base_price_uah",
        (
            "BasePriceUAH", "basePriceUAH", "base_price_uah",
            "BasePrice", "basePrice", "PriceUAH", "priceUAH", "Price", "price",
        ),
        FieldKind.OPTIONAL_NUMBER,
    ),
    FieldSpec("is_active", ("IsActive", "isActive", "is_active"), FieldKind.FLAG),
)

CABINET_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("cabinet_id", ("CabinetId", "cabinetId", "cabinet_id", "id"), FieldKind.ID),
    FieldSpec("cabinet_code", ("CabinetCode", "cabinetCode", "cabinet_code"), FieldKind.OPTIONAL_TEXT),
    FieldSpec("cabinet_name", ("CabinetName", "cabinetName", "cabinet_name", "Name", "name"), FieldKind.TEXT),
    FieldSpec("modality", ("Modality", "modality"), FieldKind.OPTIONAL_TEXT),
    FieldSpec("is_active", ("IsActive", "isActive", "is_active"), FieldKind.FLAG),
)

PATIENT_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("patient_id", ("PatientId", "patientId", "patient_id", "id"), FieldKind.ID),
    FieldSpec("patient_code", ("PatientCode", "patientCode", "patient_code"), FieldKind.OPTIONAL_TEXT),
    FieldSpec(
        "display_name",
        ("DisplayName", "displayName", "display_name", "FullName", "fullName", "Name", "name"),
        FieldKind.TEXT,
    ),
    FieldSpec(
        "phone_last4",
        ("PhoneLast4", "phoneLast4", "phone_last4", "Phone", "phone", "PhoneNumber", "phoneNumber"),
        FieldKind.OPTIONAL_TEXT,
    ),
)

DURATION_ALIASES = (
    "DurationMinutes", "durationMinutes", "duration_minutes",
    "Duration", "duration",
    "DurationMin", "durationMin", "duration_min",
    "DurationMins", "durationMins",
    "DurationInMinutes", "durationInMinutes",
)

APPOINTMENT_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("appointment_id", ("AppointmentId", "appointmentId", "appointment_id", "id"), FieldKind.ID),
    FieldSpec("patient_id", ("PatientId", "patientId", "patient_id"), FieldKind.ID),
    FieldSpec("doctor_id", ("DoctorId", "doctorId", "doctor_id"), FieldKind.ID),
    FieldSpec("service_id", ("ServiceId", "serviceId", "service_id"), FieldKind.ID),
    FieldSpec("cabinet_id", ("CabinetId", "cabinetId", "cabinet_id"), FieldKind.ID),
    FieldSpec("start_at", ("StartAt", "startAt", "start_at", "Start", "start"), FieldKind.TEXT),
    FieldSpec("end_at", ("EndAt", "endAt", "end_at", "End", "end"), FieldKind.OPTIONAL_TEXT),
    FieldSpec("price_uah", ("PriceUAH", "priceUAH", "price_uah", "Price", "price"), FieldKind.OPTIONAL_NUMBER),
    FieldSpec("status", ("Status", "status"), FieldKind.TEXT, default="NEW"),
    FieldSpec("created_at", ("CreatedAt", "createdAt", "created_at"), FieldKind.OPTIONAL_TEXT),
    # arricchimento dalla lista (join)
    FieldSpec("patient_display_name", ("PatientDisplayName", "patientDisplayName"), FieldKind.OPTIONAL_TEXT),
    FieldSpec("doctor_full_name", ("DoctorFullName", "doctorFullName"), FieldKind.OPTIONAL_TEXT),
    FieldSpec("service_name", ("ServiceName", "serviceName"), FieldKind.OPTIONAL_TEXT),
    FieldSpec("cabinet_name", ("CabinetName", "cabinetName"), FieldKind.OPTIONAL_TEXT),
)

# Payload di creazione: valori grezzi, la validazione è in services.py
CREATE_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("PatientId", ("PatientId", "patientId", "patient_id"), FieldKind.RAW),
    FieldSpec("DoctorId", ("DoctorId", "doctorId", "doctor_id"), FieldKind.RAW),
    FieldSpec("ServiceId", ("ServiceId", "serviceId", "service_id"), FieldKind.RAW),
    FieldSpec("CabinetId", ("CabinetId", "cabinetId", "cabinet_id"), FieldKind.RAW),
    FieldSpec("StartAt", ("StartAt", "startAt", "start_at"), FieldKind.RAW),
    FieldSpec("DurationMinutes", ("DurationMinutes", "durationMinutes", "duration_minutes"), FieldKind.RAW),
    FieldSpec("Status", ("Status", "status"), FieldKind.RAW),
)

STATUS_FIELD = FieldSpec("Status", ("Status", "status", "status_code"), FieldKind.RAW)


# =========================
# Record canonici
# =========================
@dataclass(frozen=True)
class DoctorRecord:
    doctor_id: int = 0
    full_name: str = ""
    specialty: str | None = None
    is_active: bool | None = None


@dataclass(frozen=True)
class ServiceRecord:
    service_id: int = 0
    service_name: str = ""
    modality: str | None = None
    base_price_uah: float | None = None
    is_active: bool | None = None


@dataclass(frozen=True)
class CabinetRecord:
    cabinet_id: int = 0
    cabinet_code: str | None = None
    cabinet_name: str = ""
    modality: str | None = None
    is_active: bool | None = None


@dataclass(frozen=True)
class PatientRecord:
    patient_id: int = 0
    patient_code: str | None = None
    display_name: str = ""
    phone_last4: str | None = None


@dataclass(frozen=True)
class AppointmentRecord:
    appointment_id: int = 0
    patient_id: int = 0
    doctor_id: int = 0
    service_id: int = 0
    cabinet_id: int = 0
    start_at: str = ""
    end_at: str | None = None
    duration_minutes: int = 0
    price_uah: float | None = None
    status: str = "NEW"
    created_at: str | None = None
    patient_display_name: str | None = None
    doctor_full_name: str | None = None
    service_name: str | None = None
    cabinet_name: str | None = None


# =========================
# Conversioni
# =========================
def pick(raw: Any, aliases: tuple[str, ...], fallback: Any = None) -> Any:
    """Primo alias presente e non nullo, altrimenti fallback."""
    if not isinstance(raw, Mapping):
        return fallback
    for key in aliases:
        value = raw.get(key)
        if value is not None:
            return value
    return fallback


def to_number(value: Any) -> float | None:
    """Numero finito oppure None (stringhe con spazi accettate)."""
    if value is None:
        return None
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float, Decimal)):
        try:
            n = float(value)
        except (OverflowError, ValueError, InvalidOperation):
            return None
        return n if math.isfinite(n) else None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            n = float(text)
        except ValueError:
            return None
        return n if math.isfinite(n) else None
    return None


def to_int(value: Any) -> int | None:
    """Intero (troncato) se il valore è un numero finito."""
    n = to_number(value)
    if n is None:
        return None
    return math.trunc(n)


def _to_flag(value: Any) -> bool | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        text = value.strip().lower()
        if text in ("1", "true", "yes", "y"):
            return True
        if text in ("0", "false", "no", "n", ""):
            return False
    return None


_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def parse_int_from_string(value: Any) -> int:
    """Come parseInt: "45 min" -> 45, valori non numerici -> 0."""
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, (int, float, Decimal)):
        n = to_number(value)
        return math.trunc(n) if n is not None else 0
    if isinstance(value, str):
        m = _LEADING_INT.match(value)
        return int(m.group(1)) if m else 0
    return 0


def parse_timestamp(value: Any) -> datetime | None:
    """ISO-8601 -> datetime UTC aware; i valori senza offset sono UTC."""
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value.strip():
        try:
            dt = datetime.fromisoformat(value.strip())
        except ValueError:
            return None
    else:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    try:
        return dt.astimezone(timezone.utc)
    except OverflowError:
        return None


def minutes_half_up(seconds: float) -> int:
    """Secondi -> minuti interi, arrotondati half-up."""
    return int(math.floor(seconds / 60 + 0.5))


def duration_from_end_start(start: Any, end: Any) -> int:
    s = parse_timestamp(start)
    e = parse_timestamp(end)
    if s is None or e is None:
        return 0
    seconds = (e - s).total_seconds()
    if not math.isfinite(seconds) or seconds <= 0:
        return 0
    return minutes_half_up(seconds)


def _convert(spec: FieldSpec, value: Any) -> Any:
    if spec.kind is FieldKind.ID:
        n = to_int(value)
        return n if n is not None else (spec.default or 0)
    if spec.kind is FieldKind.TEXT:
        if value is None:
            return spec.default if spec.default is not None else ""
        return str(value)
    if spec.kind is FieldKind.OPTIONAL_TEXT:
        if value is None:
            return None
        return str(value) or None
    if spec.kind is FieldKind.OPTIONAL_NUMBER:
        return to_number(value) if value is not None else None
    if spec.kind is FieldKind.FLAG:
        return _to_flag(value)
    return value


def extract(raw: Any, fields: tuple[FieldSpec, ...]) -> dict[str, Any]:
    """Applica una tabella alias: ritorna {nome_canonico: valore convertito}."""
    return {spec.name: _convert(spec, pick(raw, spec.aliases)) for spec in fields}


# =========================
# Normalizzatori per entità
# =========================
def normalize_doctor(raw: Any) -> DoctorRecord:
    return DoctorRecord(**extract(raw, DOCTOR_FIELDS))


def normalize_service(raw: Any) -> ServiceRecord:
    return ServiceRecord(**extract(raw, SERVICE_FIELDS))


def normalize_cabinet(raw: Any) -> CabinetRecord:
    return CabinetRecord(**extract(raw, CABINET_FIELDS))


def normalize_patient(raw: Any) -> PatientRecord:
    return PatientRecord(**extract(raw, PATIENT_FIELDS))


def normalize_appointment(raw: Any) -> AppointmentRecord:
    """
    Durata: prima un campo durata esplicito (> 0), poi EndAt - StartAt in minuti.
    Se nessuno dei due è utilizzabile la durata è 0 (sconosciuta).
    """
    values = extract(raw, APPOINTMENT_FIELDS)

    duration = parse_int_from_string(pick(raw, DURATION_ALIASES, 0))
    if duration <= 0:
        duration = 0
        if values["start_at"] and values["end_at"]:
            duration = duration_from_end_start(values["start_at"], values["end_at"])

    return AppointmentRecord(duration_minutes=duration, **values)


def normalize_create_input(raw: Any) -> dict[str, Any]:
    """Payload di creazione con chiavi canoniche PascalCase (valori grezzi)."""
    return extract(raw, CREATE_FIELDS)


def pick_status(raw: Any) -> Any:
    return pick(raw, STATUS_FIELD.aliases)
