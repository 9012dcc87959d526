"""
Export CSV degli appuntamenti, pensato per Excel con locale europeo:
- BOM UTF-8 all'inizio (accenti/cirillico leggibili)
- prima riga ``sep=;`` (Excel usa il separatore indicato)
- separatore ``;``, righe CRLF, virgolette solo dove servono
"""
from __future__ import annotations

import csv
import io
from collections.abc import Iterable
from datetime import datetime

from .normalize import AppointmentRecord

SEPARATOR = ";"
BOM = "\ufeff"

HEADER = (
    "appointmentId",
    "startAt",
    "endAt",
    "durationMinutes",
    "status",
    "patientId",
    "doctorId",
    "serviceId",
    "cabinetId",
    "patientName",
    "doctorName",
    "serviceName",
    "cabinetName",
)


def _row(a: AppointmentRecord) -> list[object]:
    return [
        a.appointment_id,
        a.start_at,
        a.end_at or "",
        a.duration_minutes,
        a.status,
        a.patient_id,
        a.doctor_id,
        a.service_id,
        a.cabinet_id,
        a.patient_display_name or "",
        a.doctor_full_name or "",
        a.service_name or "",
        a.cabinet_name or "",
    ]


def build_appointments_csv(rows: Iterable[AppointmentRecord]) -> str:
    buf = io.StringIO()
    buf.write(BOM)
    buf.write(f"sep={SEPARATOR}\r\n")

    writer = csv.writer(buf, delimiter=SEPARATOR, quotechar='"', quoting=csv.QUOTE_MINIMAL, lineterminator="\r\n")
    writer.writerow(HEADER)
    for a in rows:
        writer.writerow(_row(a))
    return buf.getvalue()


def export_filename(now: datetime) -> str:
    return f"appointments_{now.strftime('%Y-%m-%d_%H-%M')}.csv"
