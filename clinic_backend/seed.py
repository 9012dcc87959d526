from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import func, select

from .db import db_session
from .models import Appointment, AppointmentStatus, Cabinet, Doctor, Patient, Service


def seed_base(with_demo_appointments: bool = True) -> None:
    """
    Popola dati minimi (idempotente):
    - medici
    - servizi
    - cabinet
    - pazienti
    - qualche appuntamento dimostrativo (solo se la tabella è vuota)
    """
    with db_session() as s:
        # Medici
        medici = [
            ("Olena Kovalenko", "Radiology"),
            ("Andrii Shevchenko", "Cardiology"),
            ("Iryna Bondarenko", "Ultrasound diagnostics"),
        ]
        for full_name, specialty in medici:
            if s.execute(select(Doctor).where(Doctor.full_name == full_name)).scalar_one_or_none() is None:
                s.add(Doctor(full_name=full_name, specialty=specialty, is_active=True))

        # Servizi
        servizi = [
            ("MRI brain", "MRI", Decimal("3200.00")),
            ("MRI knee", "MRI", Decimal("2800.00")),
            ("CT chest", "CT", Decimal("2100.00")),
            ("Abdominal ultrasound", "US", Decimal("750.00")),
        ]
        for name, modality, price in servizi:
            exists = s.execute(
                select(Service).where(Service.service_name == name, Service.modality == modality)
            ).scalar_one_or_none()
            if exists is None:
                s.add(Service(service_name=name, modality=modality, base_price_uah=price, is_active=True))

        # Cabinet
        cabinet = [
            ("MRI-1", "MRI room 1", "MRI"),
            ("CT-1", "CT room 1", "CT"),
            ("US-1", "Ultrasound room 1", "US"),
        ]
        for code, name, modality in cabinet:
            if s.execute(select(Cabinet).where(Cabinet.cabinet_code == code)).scalar_one_or_none() is None:
                s.add(Cabinet(cabinet_code=code, cabinet_name=name, modality=modality, is_active=True))

        # Pazienti
        pazienti = [
            ("P-0001", "Petrenko M.", "1234"),
            ("P-0002", "Tkachenko O.", "5678"),
            ("P-0003", "Melnyk S.", None),
        ]
        for code, name, phone in pazienti:
            if s.execute(select(Patient).where(Patient.patient_code == code)).scalar_one_or_none() is None:
                s.add(Patient(patient_code=code, display_name=name, phone_last4=phone))

        s.flush()

        if not with_demo_appointments or s.scalar(select(func.count(Appointment.id))):
            return

        doctor = s.execute(select(Doctor).order_by(Doctor.id)).scalars().first()
        patient_ids = list(s.scalars(select(Patient.id).order_by(Patient.patient_code)))
        service = s.execute(select(Service).where(Service.modality == "MRI")).scalars().first()
        room = s.execute(select(Cabinet).where(Cabinet.cabinet_code == "MRI-1")).scalar_one()

        now = datetime.now(timezone.utc).replace(tzinfo=None)
        base = now.replace(hour=9, minute=0, second=0, microsecond=0) + timedelta(days=1)
        stati = [AppointmentStatus.NEW, AppointmentStatus.CONFIRMED, AppointmentStatus.PRICE_SENT]

        for i, (patient_id, stato) in enumerate(zip(patient_ids, stati)):
            start = base + timedelta(minutes=45 * i)
            s.add(
                Appointment(
                    patient_id=patient_id,
                    doctor_id=doctor.id,
                    service_id=service.id,
                    cabinet_id=room.id,
                    start_at=start,
                    end_at=start + timedelta(minutes=45),
                    price_uah=service.base_price_uah,
                    status=stato.value,
                )
            )
