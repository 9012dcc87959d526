from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import select, text

from . import config
from .db import Base, db_session, get_engine
from .logging_setup import setup_logger
from .models import Appointment, Cabinet, Doctor, Patient, Service, STATUS_VALUES, is_known_status
from .normalize import minutes_half_up, normalize_create_input, parse_timestamp, pick_status, to_int
from .procedures import appointment_create, appointment_set_status, to_utc_naive

logger = setup_logger(__name__)


# =========================
# Bootstrap DB
# =========================
def init_db() -> None:
    """Crea le tabelle se non esistono."""
    Base.metadata.create_all(bind=get_engine())


def ping() -> None:
    """Apre una connessione e fa una query banale (health check)."""
    with get_engine().connect() as conn:
        conn.execute(text("SELECT 1"))


# =========================
# Errori
# =========================
class InvalidInputError(ValueError):
    """Input non valido: rifiutato prima di toccare il DB."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field


# =========================
# Helper serializzazione
# =========================
def _iso(dt: datetime | None) -> str | None:
    if dt is None:
        return None
    return dt.replace(tzinfo=timezone.utc).isoformat()


def _money(v: Decimal | None) -> float | None:
    return float(v) if v is not None else None


def _minutes_between(start: datetime | None, end: datetime | None) -> int | None:
    if start is None or end is None:
        return None
    return minutes_half_up((end - start).total_seconds())


# =========================
# Read API
# =========================
def list_doctors() -> list[dict]:
    with db_session() as s:
        rows = s.execute(
            select(Doctor.id, Doctor.full_name, Doctor.specialty)
            .where(Doctor.is_active.is_(True))
            .order_by(Doctor.full_name)
        ).all()
        return [{"DoctorId": r.id, "FullName": r.full_name, "Specialty": r.specialty} for r in rows]


def list_services() -> list[dict]:
    with db_session() as s:
        rows = s.execute(
            select(Service.id, Service.service_name, Service.modality, Service.base_price_uah)
            .where(Service.is_active.is_(True))
            .order_by(Service.modality, Service.service_name)
        ).all()
        return [
            {
                "ServiceId": r.id,
                "ServiceName": r.service_name,
                "Modality": r.modality,
                "BasePriceUAH": _money(r.base_price_uah),
            }
            for r in rows
        ]


def list_cabinets() -> list[dict]:
    with db_session() as s:
        rows = s.execute(
            select(Cabinet.id, Cabinet.cabinet_code, Cabinet.cabinet_name, Cabinet.modality)
            .where(Cabinet.is_active.is_(True))
            .order_by(Cabinet.modality, Cabinet.cabinet_code)
        ).all()
        return [
            {"CabinetId": r.id, "CabinetCode": r.cabinet_code, "CabinetName": r.cabinet_name, "Modality": r.modality}
            for r in rows
        ]


def list_patients() -> list[dict]:
    with db_session() as s:
        rows = s.execute(
            select(Patient.id, Patient.patient_code, Patient.display_name, Patient.phone_last4)
            .order_by(Patient.patient_code)
        ).all()
        return [
            {
                "PatientId": r.id,
                "PatientCode": r.patient_code,
                "DisplayName": r.display_name,
                "PhoneLast4": r.phone_last4,
            }
            for r in rows
        ]


def list_appointments(limit: int | None = None) -> list[dict]:
    """
    Ultimi appuntamenti (inizio più recente prima) con i dati di paziente,
    medico, servizio e cabinet. Outer join: un riferimento non risolto non
    esclude la riga, i campi collegati restano None.
    """
    limit = config.APPOINTMENTS_LIMIT if limit is None else limit

    with db_session() as s:
        q = (
            select(
                Appointment.id,
                Appointment.start_at,
                Appointment.end_at,
                Appointment.status,
                Appointment.price_uah,
                Appointment.created_at,
                Appointment.patient_id,
                Patient.patient_code,
                Patient.display_name.label("patient_display_name"),
                Appointment.doctor_id,
                Doctor.full_name.label("doctor_full_name"),
                Appointment.service_id,
                Service.service_name,
                Service.modality.label("service_modality"),
                Appointment.cabinet_id,
                Cabinet.cabinet_code,
                Cabinet.cabinet_name,
            )
            .outerjoin(Patient, Patient.id == Appointment.patient_id)
            .outerjoin(Doctor, Doctor.id == Appointment.doctor_id)
            .outerjoin(Service, Service.id == Appointment.service_id)
            .outerjoin(Cabinet, Cabinet.id == Appointment.cabinet_id)
            .order_by(Appointment.start_at.desc(), Appointment.id.desc())
            .limit(limit)
        )

        rows = s.execute(q).all()
        return [
            {
                "AppointmentId": r.id,
                "StartAt": _iso(r.start_at),
                "EndAt": _iso(r.end_at),
                "DurationMinutes": _minutes_between(r.start_at, r.end_at),
                "Status": r.status,
                "PriceUAH": _money(r.price_uah),
                "CreatedAt": _iso(r.created_at),
                "PatientId": r.patient_id,
                "PatientCode": r.patient_code,
                "PatientDisplayName": r.patient_display_name,
                "DoctorId": r.doctor_id,
                "DoctorFullName": r.doctor_full_name,
                "ServiceId": r.service_id,
                "ServiceName": r.service_name,
                "ServiceModality": r.service_modality,
                "CabinetId": r.cabinet_id,
                "CabinetCode": r.cabinet_code,
                "CabinetName": r.cabinet_name,
            }
            for r in rows
        ]


# =========================
# Write API
# =========================
def _positive_id(field: str, value: Any) -> int:
    n = to_int(value)
    if n is None or n <= 0:
        raise InvalidInputError(field, f"Invalid {field}: must be > 0")
    return n


def _valid_status(value: Any) -> str:
    if value is None or str(value).strip() == "":
        raise InvalidInputError("Status", "Status is required")
    status = str(value)
    if not is_known_status(status):
        raise InvalidInputError("Status", f"Invalid Status: {status} (allowed: {', '.join(STATUS_VALUES)})")
    return status


def create_appointment(payload: Any) -> int:
    """
    Use case: creare un appuntamento.
    - accetta chiavi PascalCase, camelCase o snake_case
    - valida gli id (> 0), StartAt, durata (default 30) e stato (default NEW)
    - delega l'inserimento ad appointment_create
    """
    raw = normalize_create_input(payload)
    logger.debug("CREATE raw: %s", raw)

    ids = {field: _positive_id(field, raw[field]) for field in ("PatientId", "DoctorId", "ServiceId", "CabinetId")}

    start_raw = raw["StartAt"]
    if start_raw is None or str(start_raw).strip() == "":
        raise InvalidInputError("StartAt", "Invalid StartAt: required")
    start_at = parse_timestamp(str(start_raw))
    if start_at is None:
        raise InvalidInputError("StartAt", "Invalid StartAt: not an ISO-8601 timestamp")

    if raw["DurationMinutes"] is None:
        duration = config.DEFAULT_DURATION_MINUTES
    else:
        duration = to_int(raw["DurationMinutes"])
        if duration is None or duration <= 0:
            raise InvalidInputError("DurationMinutes", "Invalid DurationMinutes: must be > 0")

    # la fine deve essere una data rappresentabile
    try:
        to_utc_naive(start_at) + timedelta(minutes=duration)
    except OverflowError:
        raise InvalidInputError("DurationMinutes", "Invalid DurationMinutes: out of range") from None

    status = _valid_status(raw["Status"] if raw["Status"] is not None else "NEW")

    logger.info(
        "CREATE parsed: patient=%s doctor=%s service=%s cabinet=%s start=%s duration=%s status=%s",
        ids["PatientId"], ids["DoctorId"], ids["ServiceId"], ids["CabinetId"],
        start_at.isoformat(), duration, status,
    )

    new_id = appointment_create(
        patient_id=ids["PatientId"],
        doctor_id=ids["DoctorId"],
        service_id=ids["ServiceId"],
        cabinet_id=ids["CabinetId"],
        start_at=start_at,
        duration_minutes=duration,
        status=status,
    )
    logger.info("CREATE result: NewAppointmentId=%s", new_id)
    return new_id


def set_appointment_status(appointment_id: Any, payload: Any) -> dict[str, Any]:
    """
    Use case: cambiare stato. Nessuna tabella di transizioni: qualunque stato
    noto può passare a qualunque altro; ultima scrittura vince.
    """
    n = to_int(appointment_id)
    if n is None or n <= 0:
        raise InvalidInputError("AppointmentId", "Invalid appointment id")
    status = _valid_status(pick_status(payload))

    result = appointment_set_status(n, status)
    logger.info("STATUS appointment=%s -> %s", n, status)
    return result or {"ok": True}
