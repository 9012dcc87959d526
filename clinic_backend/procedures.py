"""
Procedure di scrittura sul DB.

Ogni procedura lavora dentro una sola sessione (una transazione): o va tutto
a buon fine o non resta nulla di scritto. Sono l'unica unità di atomicità
del sistema; il livello services non aggiunge lock.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import and_, select

from .db import db_session
from .models import Appointment, AppointmentStatus, Cabinet, Doctor, Patient, Service


class ProcedureError(Exception):
    """Rifiuto della procedura (riferimento mancante, slot occupato, ...)."""


def to_utc_naive(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def _cabinet_free(s, cabinet_id: int, start: datetime, end: datetime) -> bool:
    """Nessuna sovrapposizione [start, end) con appuntamenti non annullati nel cabinet."""
    overlap = (
        select(Appointment.id)
        .where(
            and_(
                Appointment.cabinet_id == cabinet_id,
                Appointment.status != AppointmentStatus.CANCELED.value,
                Appointment.start_at < end,
                Appointment.end_at > start,
            )
        )
        .limit(1)
    )
    return s.execute(overlap).first() is None


def appointment_create(
    patient_id: int,
    doctor_id: int,
    service_id: int,
    cabinet_id: int,
    start_at: datetime,
    duration_minutes: int,
    status: str,
) -> int:
    """
    Inserisce un appuntamento e ritorna il nuovo id.
    - paziente esistente; medico, servizio e cabinet esistenti e attivi
    - fine = inizio + durata, prezzo dal prezzo base del servizio
    - rifiuta sovrapposizioni nello stesso cabinet
    """
    start = to_utc_naive(start_at)
    end = start + timedelta(minutes=duration_minutes)

    with db_session() as s:
        if s.get(Patient, patient_id) is None:
            raise ProcedureError(f"Patient {patient_id} not found")

        doctor = s.get(Doctor, doctor_id)
        if doctor is None or not doctor.is_active:
            raise ProcedureError(f"Doctor {doctor_id} not found or inactive")

        service = s.get(Service, service_id)
        if service is None or not service.is_active:
            raise ProcedureError(f"Service {service_id} not found or inactive")

        cabinet = s.get(Cabinet, cabinet_id)
        if cabinet is None or not cabinet.is_active:
            raise ProcedureError(f"Cabinet {cabinet_id} not found or inactive")

        if not _cabinet_free(s, cabinet_id=cabinet_id, start=start, end=end):
            raise ProcedureError(f"Cabinet {cabinet.cabinet_code} is already booked for {start.isoformat()}")

        app = Appointment(
            patient_id=patient_id,
            doctor_id=doctor_id,
            service_id=service_id,
            cabinet_id=cabinet_id,
            start_at=start,
            end_at=end,
            price_uah=service.base_price_uah,
            status=status,
        )
        s.add(app)
        s.flush()
        return app.id


def appointment_set_status(appointment_id: int, status: str) -> dict[str, Any]:
    """Aggiorna lo stato (nessuna tabella di transizioni) e ritorna la riga aggiornata."""
    with db_session() as s:
        app = s.get(Appointment, appointment_id)
        if app is None:
            raise ProcedureError(f"Appointment {appointment_id} not found")

        app.status = status
        s.flush()
        return {"AppointmentId": app.id, "Status": app.status}
