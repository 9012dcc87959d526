from __future__ import annotations

import enum
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base


class AppointmentStatus(enum.Enum):
    NEW = "NEW"
    NEED_INFO = "NEED_INFO"
    PRICE_SENT = "PRICE_SENT"
    CONFIRMED = "CONFIRMED"
    PAYMENT_REPORTED = "PAYMENT_REPORTED"
    IN_PROGRESS = "IN_PROGRESS"
    READY = "READY"
    DONE = "DONE"
    CANCELED = "CANCELED"


# Ordine usato anche dai menu a tendina della UI
STATUS_VALUES: tuple[str, ...] = tuple(s.value for s in AppointmentStatus)


def is_known_status(value: object) -> bool:
    return isinstance(value, str) and value in STATUS_VALUES


def _utc_now() -> datetime:
    # colonne DateTime senza fuso: UTC naive
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Doctor(Base):
    __tablename__ = "doctors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    full_name: Mapped[str] = mapped_column(String(160), nullable=False)
    specialty: Mapped[str | None] = mapped_column(String(120), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    appointments: Mapped[list["Appointment"]] = relationship(back_populates="doctor")

    def __repr__(self) -> str:
        return f"Doctor({self.full_name}, {self.specialty})"


class Service(Base):
    __tablename__ = "services"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    service_name: Mapped[str] = mapped_column(String(160), nullable=False)
    modality: Mapped[str | None] = mapped_column(String(40), nullable=True)
    base_price_uah: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    appointments: Mapped[list["Appointment"]] = relationship(back_populates="service")


class Cabinet(Base):
    __tablename__ = "cabinets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    cabinet_code: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    cabinet_name: Mapped[str] = mapped_column(String(120), nullable=False)
    modality: Mapped[str | None] = mapped_column(String(40), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    appointments: Mapped[list["Appointment"]] = relationship(back_populates="cabinet")


class Patient(Base):
    __tablename__ = "patients"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    patient_code: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    display_name: Mapped[str] = mapped_column(String(160), nullable=False)
    phone_last4: Mapped[str | None] = mapped_column(String(4), nullable=True)

    appointments: Mapped[list["Appointment"]] = relationship(back_populates="patient")

    def __repr__(self) -> str:
        return f"Patient({self.patient_code} {self.display_name})"


class Appointment(Base):
    __tablename__ = "appointments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    patient_id: Mapped[int] = mapped_column(ForeignKey("patients.id"), nullable=False)
    doctor_id: Mapped[int] = mapped_column(ForeignKey("doctors.id"), nullable=False)
    service_id: Mapped[int] = mapped_column(ForeignKey("services.id"), nullable=False)
    cabinet_id: Mapped[int] = mapped_column(ForeignKey("cabinets.id"), nullable=False)

    # UTC naive
    start_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    end_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    price_uah: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)

    # testo libero: valori sconosciuti già salvati restano leggibili
    status: Mapped[str] = mapped_column(String(30), default=AppointmentStatus.NEW.value, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now, nullable=False)

    patient: Mapped["Patient"] = relationship(back_populates="appointments")
    doctor: Mapped["Doctor"] = relationship(back_populates="appointments")
    service: Mapped["Service"] = relationship(back_populates="appointments")
    cabinet: Mapped["Cabinet"] = relationship(back_populates="appointments")
