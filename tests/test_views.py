"""Test stato pagine UI (senza Streamlit)."""
from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

import pytest

from clinic_backend.models import STATUS_VALUES
from clinic_backend.normalize import DoctorRecord, PatientRecord
from clinic_ui.client import ApiError
from clinic_ui.views import (
    AppointmentsView,
    CreateForm,
    Dictionaries,
    StatusChange,
    default_selection,
    filter_records,
    is_editable,
    load_dictionaries,
    local_to_utc_iso,
    now_plus_minutes,
    status_options,
    submit_create,
    to_options,
)

ROWS = [
    {"AppointmentId": 1, "Status": "NEW", "StartAt": "2030-01-01T10:00:00+00:00", "EndAt": "2030-01-01T10:30:00+00:00"},
    {"appointmentId": 2, "status": "CONFIRMED", "durationMinutes": 15},
]


def _loaded_view() -> AppointmentsView:
    view = AppointmentsView()
    assert view.load(lambda: ROWS)
    return view


class FakeApi:
    def __init__(self, barrier: threading.Barrier | None = None, fail: str | None = None) -> None:
        self.barrier = barrier
        self.fail = fail
        self.payloads: list[dict] = []

    def _list(self, name, rows):
        if self.barrier is not None:
            # tutte e quattro le richieste devono essere in volo insieme
            self.barrier.wait(timeout=5)
        if self.fail == name:
            raise ApiError(f"{name} down", status_code=500)
        return rows

    def doctors(self):
        return self._list("doctors", [{"DoctorId": 2, "FullName": "Alfa Adams", "Specialty": "MRI"}])

    def services(self):
        return self._list("services", [{"ServiceId": 5, "ServiceName": "MRI knee", "Modality": "MRI"}])

    def cabinets(self):
        return self._list("cabinets", [{"CabinetId": 7, "CabinetCode": "MRI-1", "CabinetName": "Room 1"}])

    def patients(self):
        return self._list("patients", [{"PatientId": 9, "PatientCode": "P-0001", "DisplayName": "Petrenko M."}])

    def create_appointment(self, payload):
        self.payloads.append(payload)
        if self.fail == "create":
            raise ApiError("Invalid PatientId: must be > 0", status_code=400)
        return {"NewAppointmentId": 41}


class TestLoad:
    def test_rows_normalized(self):
        view = _loaded_view()
        assert view.loaded and not view.loading
        assert [a.appointment_id for a in view.rows] == [1, 2]
        assert view.rows[0].duration_minutes == 30
        assert view.rows[1].duration_minutes == 15

    def test_error_keeps_previous_rows(self):
        view = _loaded_view()

        def fail():
            raise ApiError("HTTP 500", status_code=500)

        assert view.load(fail) is False
        assert view.error == "HTTP 500"
        assert len(view.rows) == 2

    def test_error_without_message_uses_fallback(self):
        view = AppointmentsView()

        def fail():
            raise RuntimeError()

        view.load(fail)
        assert view.error == "Failed to load data"

    def test_response_after_close_is_ignored(self):
        view = AppointmentsView()

        def fetch():
            view.close()
            return ROWS

        assert view.load(fetch) is False
        assert view.rows == []
        assert view.closed


class TestStatusChange:
    def test_success_patches_only_that_row(self):
        view = _loaded_view()
        sent = []
        result = view.change_status(StatusChange(1, "DONE"), lambda i, s: sent.append((i, s)))

        assert result.ok
        assert sent == [(1, "DONE")]
        assert [a.status for a in view.rows] == ["DONE", "CONFIRMED"]
        assert not view.is_updating(1)

    def test_failure_leaves_rows_unchanged(self):
        view = _loaded_view()

        def send(i, s):
            raise ApiError("Appointment 1 not found", status_code=500)

        result = view.change_status(StatusChange(1, "DONE"), send)
        assert not result.ok
        assert view.update_error == "Appointment 1 not found"
        assert [a.status for a in view.rows] == ["NEW", "CONFIRMED"]
        assert not view.is_updating(1)

    def test_same_row_refused_while_in_flight(self):
        view = _loaded_view()
        started, release = threading.Event(), threading.Event()

        def slow_send(i, s):
            started.set()
            release.wait(timeout=5)

        with ThreadPoolExecutor(max_workers=1) as pool:
            first = pool.submit(view.change_status, StatusChange(1, "DONE"), slow_send)
            assert started.wait(timeout=5)
            assert view.is_updating(1)
            assert view.change_status(StatusChange(1, "CANCELED"), lambda i, s: None) is None
            release.set()
            assert first.result(timeout=5).ok

        assert view.rows[0].status == "DONE"

    def test_other_row_not_blocked(self):
        view = _loaded_view()
        started, release = threading.Event(), threading.Event()

        def slow_send(i, s):
            started.set()
            release.wait(timeout=5)

        with ThreadPoolExecutor(max_workers=1) as pool:
            first = pool.submit(view.change_status, StatusChange(1, "DONE"), slow_send)
            assert started.wait(timeout=5)
            other = view.change_status(StatusChange(2, "READY"), lambda i, s: None)
            assert other is not None and other.ok
            release.set()
            first.result(timeout=5)

        assert [a.status for a in view.rows] == ["DONE", "READY"]

    def test_result_after_close_is_ignored(self):
        view = _loaded_view()

        def send(i, s):
            view.close()

        view.change_status(StatusChange(1, "DONE"), send)
        assert view.rows[0].status == "NEW"


class TestStatuses:
    def test_known_statuses_are_editable(self):
        assert all(is_editable(s) for s in STATUS_VALUES)
        assert not is_editable("ARCHIVED")

    def test_unknown_current_status_kept_as_option(self):
        assert status_options("NEW") == list(STATUS_VALUES)
        assert status_options("ARCHIVED")[-1] == "ARCHIVED"
        assert len(status_options("ARCHIVED")) == len(STATUS_VALUES) + 1


class TestExport:
    def test_uses_loaded_rows(self):
        view = _loaded_view()
        text = view.export_csv()
        lines = text.split("\r\n")
        assert lines[0] == "\ufeffsep=;"
        assert lines[2].startswith("1;2030-01-01T10:00:00+00:00;")
        assert lines[3].startswith("2;;;15;CONFIRMED;")


class TestDictionaries:
    def test_four_lists_fetched_concurrently(self):
        api = FakeApi(barrier=threading.Barrier(4))
        d = load_dictionaries(api)
        assert d.doctors[0].full_name == "Alfa Adams"
        assert d.services[0].service_id == 5
        assert d.cabinets[0].cabinet_code == "MRI-1"
        assert d.patients[0].display_name == "Petrenko M."

    def test_failure_propagates(self):
        with pytest.raises(ApiError, match="cabinets down"):
            load_dictionaries(FakeApi(fail="cabinets"))

    def test_default_selection(self):
        d = load_dictionaries(FakeApi())
        assert default_selection(d) == {"patient_id": 9, "service_id": 5, "doctor_id": 2, "cabinet_id": 7}
        assert default_selection(Dictionaries()) == {"patient_id": 0, "service_id": 0, "doctor_id": 0, "cabinet_id": 0}

    def test_options_labels(self):
        doctors = [DoctorRecord(doctor_id=2, full_name="Alfa Adams", specialty="MRI"), DoctorRecord(doctor_id=3, full_name="Zeta")]
        options = to_options(doctors, "doctor_id", "full_name", "specialty")
        assert [o.label for o in options] == ["Alfa Adams — MRI", "Zeta"]
        assert [o.value for o in options] == [2, 3]

    def test_filter_records(self):
        patients = [
            PatientRecord(patient_id=1, patient_code="P-0001", display_name="Petrenko M."),
            PatientRecord(patient_id=2, patient_code="P-0002", display_name="Tkachenko O."),
        ]
        assert filter_records(patients, "  tkach ", ["patient_code", "display_name"]) == [patients[1]]
        assert filter_records(patients, "", ["display_name"]) == patients


class TestCreate:
    KYIV_WINTER = timezone(timedelta(hours=2))

    def test_local_time_converted_to_utc(self):
        assert local_to_utc_iso(datetime(2030, 1, 15, 10, 30), self.KYIV_WINTER) == "2030-01-15T08:30:00.000Z"

    def test_aware_value_kept(self):
        aware = datetime(2030, 1, 15, 10, 30, tzinfo=timezone.utc)
        assert local_to_utc_iso(aware) == "2030-01-15T10:30:00.000Z"

    def test_now_plus_minutes_truncates_seconds(self):
        now = datetime(2030, 1, 1, 9, 59, 42, 123)
        assert now_plus_minutes(60, now) == datetime(2030, 1, 1, 10, 59)

    def test_payload_camel_case_with_duration_fallback(self):
        form = CreateForm(9, 5, 2, 7, datetime(2030, 1, 15, 10, 0), duration_minutes=0)
        assert form.to_payload(timezone.utc) == {
            "patientId": 9,
            "serviceId": 5,
            "doctorId": 2,
            "cabinetId": 7,
            "startAt": "2030-01-15T10:00:00.000Z",
            "durationMinutes": 30,
            "status": "NEW",
        }

    def test_submit_returns_new_id(self):
        api = FakeApi()
        outcome = submit_create(api, CreateForm(9, 5, 2, 7, datetime(2030, 1, 15, 10, 0)), timezone.utc)
        assert outcome.new_id == 41
        assert outcome.error == ""
        assert api.payloads[0]["startAt"] == "2030-01-15T10:00:00.000Z"

    def test_submit_error_message_shown(self):
        outcome = submit_create(FakeApi(fail="create"), CreateForm(0, 5, 2, 7, datetime(2030, 1, 15)), timezone.utc)
        assert outcome.new_id is None
        assert outcome.error == "Invalid PatientId: must be > 0"
