"""
Stato delle pagine Streamlit, separato dal rendering.

- AppointmentsView : lista appuntamenti, cambio stato, export CSV
- funzioni create  : dizionari in parallelo, opzioni select, payload
- filter_records   : ricerca nella pagina dizionari
"""
from __future__ import annotations

import threading
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Any

from clinic_backend.csv_export import build_appointments_csv
from clinic_backend.models import STATUS_VALUES
from clinic_backend.normalize import (
    AppointmentRecord,
    CabinetRecord,
    DoctorRecord,
    PatientRecord,
    ServiceRecord,
    normalize_appointment,
    normalize_cabinet,
    normalize_doctor,
    normalize_patient,
    normalize_service,
)

from .client import ClinicApi


def _message(e: Exception, fallback: str) -> str:
    return str(e) or fallback


# =========================
# Stati
# =========================
def is_editable(status: str) -> bool:
    return status in STATUS_VALUES


def status_options(current: str) -> list[str]:
    """I nove stati noti; uno stato sconosciuto viene aggiunto per non perderlo."""
    options = list(STATUS_VALUES)
    if current and current not in STATUS_VALUES:
        options.append(current)
    return options


# =========================
# Lista appuntamenti
# =========================
@dataclass(frozen=True)
class StatusChange:
    appointment_id: int
    status: str


@dataclass(frozen=True)
class StatusChangeResult:
    command: StatusChange
    ok: bool
    error: str = ""


class AppointmentsView:
    """
    Stato della pagina appuntamenti.

    Il cambio stato è una coppia comando/risultato: begin() segna la riga
    come "in aggiornamento", finish() applica il risultato. La riga locale
    cambia solo con esito positivo; un errore lascia le righe intatte.
    Righe diverse si aggiornano in parallelo, la stessa riga una volta sola.
    Dopo close() (pagina chiusa) le risposte in arrivo vengono ignorate.
    """

    def __init__(self) -> None:
        self.rows: list[AppointmentRecord] = []
        self.error = ""
        self.update_error = ""
        self.loading = False
        self.loaded = False
        self._in_flight: set[int] = set()
        self._closed = False
        self._lock = threading.Lock()

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        with self._lock:
            self._closed = True

    def load(self, fetch: Callable[[], Sequence[Any] | None]) -> bool:
        """Carica e normalizza le righe. Ritorna True se lo stato è stato aggiornato."""
        with self._lock:
            if self._closed:
                return False
            self.loading = True
            self.error = ""

        try:
            raw = fetch()
        except Exception as e:
            with self._lock:
                if not self._closed:
                    self.error = _message(e, "Failed to load data")
                    self.loading = False
            return False

        rows = [normalize_appointment(r) for r in (raw or [])]
        with self._lock:
            if self._closed:
                return False
            self.rows = rows
            self.loading = False
            self.loaded = True
        return True

    def is_updating(self, appointment_id: int) -> bool:
        with self._lock:
            return appointment_id in self._in_flight

    def begin(self, command: StatusChange) -> bool:
        with self._lock:
            if command.appointment_id in self._in_flight:
                return False
            self._in_flight.add(command.appointment_id)
            self.update_error = ""
            return True

    def finish(self, result: StatusChangeResult) -> None:
        cmd = result.command
        with self._lock:
            self._in_flight.discard(cmd.appointment_id)
            if self._closed:
                return
            if not result.ok:
                self.update_error = result.error
                return
            self.rows = [
                replace(a, status=cmd.status) if a.appointment_id == cmd.appointment_id else a
                for a in self.rows
            ]

    def change_status(
        self, command: StatusChange, send: Callable[[int, str], Any]
    ) -> StatusChangeResult | None:
        """Invia il cambio stato; None se la stessa riga è già in aggiornamento."""
        if not self.begin(command):
            return None
        try:
            send(command.appointment_id, command.status)
        except Exception as e:
            result = StatusChangeResult(command, ok=False, error=_message(e, "Failed to update status"))
        else:
            result = StatusChangeResult(command, ok=True)
        self.finish(result)
        return result

    def export_csv(self) -> str:
        """CSV delle righe già caricate (nessuna nuova richiesta)."""
        with self._lock:
            rows = list(self.rows)
        return build_appointments_csv(rows)


# =========================
# Creazione appuntamento
# =========================
@dataclass
class Dictionaries:
    doctors: list[DoctorRecord] = field(default_factory=list)
    services: list[ServiceRecord] = field(default_factory=list)
    cabinets: list[CabinetRecord] = field(default_factory=list)
    patients: list[PatientRecord] = field(default_factory=list)


def load_dictionaries(api: ClinicApi) -> Dictionaries:
    """Le quattro liste in parallelo; il primo errore viene propagato."""
    with ThreadPoolExecutor(max_workers=4) as pool:
        doctors = pool.submit(api.doctors)
        services = pool.submit(api.services)
        cabinets = pool.submit(api.cabinets)
        patients = pool.submit(api.patients)

        return Dictionaries(
            doctors=[normalize_doctor(r) for r in doctors.result() or []],
            services=[normalize_service(r) for r in services.result() or []],
            cabinets=[normalize_cabinet(r) for r in cabinets.result() or []],
            patients=[normalize_patient(r) for r in patients.result() or []],
        )


@dataclass(frozen=True)
class Option:
    value: int
    label: str


def to_options(rows: Iterable[Any], id_attr: str, label_attr: str, suffix_attr: str | None = None) -> list[Option]:
    options = []
    for r in rows:
        base = str(getattr(r, label_attr, "") or "")
        suffix = getattr(r, suffix_attr, None) if suffix_attr else None
        label = f"{base} — {suffix}" if suffix not in (None, "") else base
        options.append(Option(value=int(getattr(r, id_attr, 0) or 0), label=label))
    return options


def default_selection(d: Dictionaries) -> dict[str, int]:
    """Preseleziona il primo elemento di ogni dizionario (0 se vuoto)."""
    return {
        "patient_id": d.patients[0].patient_id if d.patients else 0,
        "service_id": d.services[0].service_id if d.services else 0,
        "doctor_id": d.doctors[0].doctor_id if d.doctors else 0,
        "cabinet_id": d.cabinets[0].cabinet_id if d.cabinets else 0,
    }


def now_plus_minutes(minutes: int, now: datetime | None = None) -> datetime:
    base = now or datetime.now()
    return (base + timedelta(minutes=minutes)).replace(second=0, microsecond=0)


def local_to_utc_iso(local: datetime, tz: tzinfo | None = None) -> str:
    """
    Data/ora "locale" senza fuso -> timestamp assoluto UTC (…Z).
    Senza tz si usa il fuso del sistema.
    """
    if local.tzinfo is None:
        aware = local.replace(tzinfo=tz) if tz is not None else local.astimezone()
    else:
        aware = local
    return aware.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class CreateForm:
    patient_id: int
    service_id: int
    doctor_id: int
    cabinet_id: int
    start_local: datetime
    duration_minutes: int = 30
    status: str = "NEW"

    def to_payload(self, tz: tzinfo | None = None) -> dict[str, Any]:
        return {
            "patientId": self.patient_id,
            "serviceId": self.service_id,
            "doctorId": self.doctor_id,
            "cabinetId": self.cabinet_id,
            "startAt": local_to_utc_iso(self.start_local, tz),
            "durationMinutes": int(self.duration_minutes or 0) or 30,
            "status": self.status,
        }


@dataclass(frozen=True)
class CreateOutcome:
    new_id: int | None = None
    error: str = ""


def submit_create(api: ClinicApi, form: CreateForm, tz: tzinfo | None = None) -> CreateOutcome:
    try:
        res = api.create_appointment(form.to_payload(tz))
    except Exception as e:
        return CreateOutcome(error=_message(e, "Failed to create appointment"))
    new_id = res.get("NewAppointmentId") if isinstance(res, dict) else None
    return CreateOutcome(new_id=new_id)


# =========================
# Dizionari
# =========================
def filter_records(rows: Iterable[Any], query: str, fields: Sequence[str]) -> list[Any]:
    """Ricerca case-insensitive sui campi indicati; query vuota = tutto."""
    rows = list(rows)
    q = query.strip().lower()
    if not q:
        return rows
    return [
        r for r in rows
        if q in " ".join(str(getattr(r, f, "") or "") for f in fields).lower()
    ]
