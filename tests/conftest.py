"""Fixture comuni: DB SQLite temporaneo per test, dati di riferimento, client API."""
from __future__ import annotations

import sys
from datetime import datetime, timedelta
from decimal import Decimal
from pathlib import Path

import pytest

# Root del progetto nel PYTHONPATH (anche senza pip install -e)
sys.path.insert(0, str(Path(__file__).parent.parent))

from clinic_backend import config, db  # noqa: E402
from clinic_backend.db import db_session  # noqa: E402
from clinic_backend.models import Appointment, Cabinet, Doctor, Patient, Service  # noqa: E402
from clinic_backend.services import init_db  # noqa: E402


@pytest.fixture
def database(tmp_path):
    """DB nuovo per ogni test."""
    db.configure_database(f"sqlite:///{tmp_path / 'test_clinic.sqlite'}")
    init_db()
    yield
    db.configure_database(None)


@pytest.fixture
def reference_data(database) -> dict[str, int]:
    """Medici/servizi/cabinet (attivi e non) e pazienti; ritorna gli id per nome."""
    with db_session() as s:
        rows = {
            "doc_zeta": Doctor(full_name="Zeta Zorro", specialty="MRI", is_active=True),
            "doc_alfa": Doctor(full_name="Alfa Adams", specialty=None, is_active=True),
            "doc_off": Doctor(full_name="Beta Retired", specialty="CT", is_active=False),
            "srv_mri_knee": Service(service_name="MRI knee", modality="MRI", base_price_uah=Decimal("2800"), is_active=True),
            "srv_ct_chest": Service(service_name="CT chest", modality="CT", base_price_uah=Decimal("2100"), is_active=True),
            "srv_mri_brain": Service(service_name="MRI brain", modality="MRI", base_price_uah=None, is_active=True),
            "srv_off": Service(service_name="Old X-ray", modality="XR", is_active=False),
            "cab_mri2": Cabinet(cabinet_code="MRI-2", cabinet_name="MRI room 2", modality="MRI", is_active=True),
            "cab_ct1": Cabinet(cabinet_code="CT-1", cabinet_name="CT room", modality="CT", is_active=True),
            "cab_mri1": Cabinet(cabinet_code="MRI-1", cabinet_name="MRI room 1", modality="MRI", is_active=True),
            "cab_off": Cabinet(cabinet_code="OLD-1", cabinet_name="Closed room", modality="CT", is_active=False),
            "pat_b": Patient(patient_code="P-0002", display_name="Tkachenko O.", phone_last4="5678"),
            "pat_a": Patient(patient_code="P-0001", display_name="Petrenko M.", phone_last4=None),
        }
        s.add_all(rows.values())
        s.flush()
        return {name: obj.id for name, obj in rows.items()}


@pytest.fixture
def add_appointment(database):
    """Inserisce direttamente una riga appointments (senza passare dalle procedure)."""

    def _add(
        patient_id: int,
        doctor_id: int,
        service_id: int,
        cabinet_id: int,
        start: datetime,
        minutes: int | None = 30,
        status: str = "NEW",
    ) -> int:
        with db_session() as s:
            a = Appointment(
                patient_id=patient_id,
                doctor_id=doctor_id,
                service_id=service_id,
                cabinet_id=cabinet_id,
                start_at=start,
                end_at=start + timedelta(minutes=minutes) if minutes is not None else None,
                status=status,
            )
            s.add(a)
            s.flush()
            return a.id

    return _add


@pytest.fixture
def client(database, monkeypatch):
    """TestClient FastAPI su DB temporaneo, senza seed."""
    from fastapi.testclient import TestClient

    from clinic_backend.api_main import app

    monkeypatch.setattr(config, "SEED_ON_STARTUP", False)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def valid_payload(reference_data) -> dict:
    return {
        "PatientId": reference_data["pat_a"],
        "DoctorId": reference_data["doc_alfa"],
        "ServiceId": reference_data["srv_mri_knee"],
        "CabinetId": reference_data["cab_mri1"],
        "StartAt": "2030-03-01T10:00:00Z",
    }
