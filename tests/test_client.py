"""Test client HTTP della UI (requests simulato)."""
from __future__ import annotations

import pytest
import requests

from clinic_ui import client
from clinic_ui.client import ApiError, ClinicApi


class FakeResponse:
    def __init__(self, status_code=200, json_body=None, text="", content_type="application/json"):
        self.status_code = status_code
        self._json = json_body
        self.text = text
        self.headers = {"content-type": content_type} if content_type else {}

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if self._json is None:
            raise ValueError("no json")
        return self._json


@pytest.fixture
def calls(monkeypatch):
    recorded: list[dict] = []
    responses: list[FakeResponse] = []

    def fake_request(method, url, **kwargs):
        recorded.append({"method": method, "url": url, **kwargs})
        return responses.pop(0)

    monkeypatch.setattr(client.requests, "request", fake_request)
    return recorded, responses


class TestApiRequest:
    def test_json_body_returned(self, calls):
        recorded, responses = calls
        responses.append(FakeResponse(json_body=[{"DoctorId": 1}]))

        assert ClinicApi("http://api.test/").doctors() == [{"DoctorId": 1}]
        assert recorded[0]["method"] == "GET"
        assert recorded[0]["url"] == "http://api.test/api/doctors"
        assert recorded[0]["timeout"] == client.API_TIMEOUT_SECONDS

    def test_status_patch_url_and_body(self, calls):
        recorded, responses = calls
        responses.append(FakeResponse(json_body={"AppointmentId": 5, "Status": "DONE"}))

        ClinicApi("http://api.test").update_appointment_status(5, "DONE")
        assert recorded[0]["method"] == "PATCH"
        assert recorded[0]["url"] == "http://api.test/api/appointments/5/status"
        assert recorded[0]["json"] == {"status": "DONE"}

    def test_no_content(self, calls):
        _, responses = calls
        responses.append(FakeResponse(status_code=204, content_type=None))
        assert client.api_get("/api/x", base="http://api.test") is None

    @pytest.mark.parametrize(
        "response,message",
        [
            (FakeResponse(400, {"error": "Invalid PatientId: must be > 0"}), "Invalid PatientId: must be > 0"),
            (FakeResponse(500, {"message": "boom", "error": "ignored"}), "boom"),
            (FakeResponse(502, {"detail": "x"}), "HTTP 502"),
            (FakeResponse(500, None, text="Internal Server Error", content_type="text/plain"), "Internal Server Error"),
            (FakeResponse(503, None, text="", content_type="text/plain"), "HTTP 503"),
        ],
    )
    def test_error_message(self, calls, response, message):
        _, responses = calls
        responses.append(response)
        with pytest.raises(ApiError) as exc:
            client.api_post("/api/appointments", {}, base="http://api.test")
        assert str(exc.value) == message
        assert exc.value.status_code == response.status_code

    def test_network_error(self, monkeypatch):
        def refuse(*args, **kwargs):
            raise requests.ConnectionError("connection refused")

        monkeypatch.setattr(client.requests, "request", refuse)
        with pytest.raises(ApiError, match="API non raggiungibile"):
            ClinicApi("http://api.test").appointments()
