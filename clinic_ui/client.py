from __future__ import annotations

import os
from typing import Any

import requests

API_BASE = os.getenv("API_BASE", "http://127.0.0.1:8000")
API_TIMEOUT_SECONDS = float(os.getenv("API_TIMEOUT_SECONDS", "15"))


class ApiError(RuntimeError):
    """Errore HTTP o di rete, con il messaggio restituito dal backend."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def _error_message(r: requests.Response) -> str:
    if "application/json" in r.headers.get("content-type", ""):
        try:
            payload = r.json()
        except ValueError:
            payload = None
        if isinstance(payload, dict):
            return str(payload.get("message") or payload.get("error") or f"HTTP {r.status_code}")
        return f"HTTP {r.status_code}"
    return r.text or f"HTTP {r.status_code}"


def api_request(method: str, path: str, payload: Any = None, base: str | None = None) -> Any:
    url = f"{(base or API_BASE).rstrip('/')}{path}"
    try:
        r = requests.request(
            method,
            url,
            json=payload,
            headers={"Content-Type": "application/json"},
            timeout=API_TIMEOUT_SECONDS,
        )
    except requests.RequestException as e:
        raise ApiError(f"API non raggiungibile: {e}") from e

    if not r.ok:
        raise ApiError(_error_message(r), status_code=r.status_code)

    if r.status_code == 204:
        return None
    if "application/json" in r.headers.get("content-type", ""):
        return r.json()
    return r.text


def api_get(path: str, base: str | None = None) -> Any:
    return api_request("GET", path, base=base)


def api_post(path: str, payload: dict, base: str | None = None) -> Any:
    return api_request("POST", path, payload=payload, base=base)


def api_patch(path: str, payload: dict, base: str | None = None) -> Any:
    return api_request("PATCH", path, payload=payload, base=base)


class ClinicApi:
    """Endpoint del backend; ritorna JSON grezzo (la normalizzazione è in views.py)."""

    def __init__(self, base: str | None = None) -> None:
        self.base = base or API_BASE

    def doctors(self) -> list[dict]:
        return api_get("/api/doctors", base=self.base)

    def services(self) -> list[dict]:
        return api_get("/api/services", base=self.base)

    def cabinets(self) -> list[dict]:
        return api_get("/api/cabinets", base=self.base)

    def patients(self) -> list[dict]:
        return api_get("/api/patients", base=self.base)

    def appointments(self) -> list[dict]:
        return api_get("/api/appointments", base=self.base)

    def create_appointment(self, payload: dict) -> dict:
        return api_post("/api/appointments", payload, base=self.base)

    def update_appointment_status(self, appointment_id: int, status: str) -> dict:
        return api_patch(f"/api/appointments/{appointment_id}/status", {"status": status}, base=self.base)
