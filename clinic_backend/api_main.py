from __future__ import annotations

from typing import Any

from fastapi import Body, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError

from clinic_backend import config
from clinic_backend.db import dispose_engine
from clinic_backend.logging_setup import setup_logger
from clinic_backend.procedures import ProcedureError
from clinic_backend.seed import seed_base
from clinic_backend.services import (
    InvalidInputError,
    create_appointment,
    init_db,
    list_appointments,
    list_cabinets,
    list_doctors,
    list_patients,
    list_services,
    ping,
    set_appointment_status,
)

logger = setup_logger(__name__)

app = FastAPI(title="Clinic Scheduling API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


# Startup / shutdown

@app.on_event("startup")
def startup() -> None:
    # Crea tabelle e seed base (idempotente)
    init_db()
    if config.SEED_ON_STARTUP:
        seed_base()


@app.on_event("shutdown")
def shutdown() -> None:
    dispose_engine()


# Errori -> {"error": ...}

@app.exception_handler(InvalidInputError)
def invalid_input_handler(request: Request, exc: InvalidInputError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": str(exc)})


@app.exception_handler(ProcedureError)
def procedure_error_handler(request: Request, exc: ProcedureError) -> JSONResponse:
    logger.warning("%s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"error": str(exc)})


@app.exception_handler(RequestValidationError)
def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.warning("%s %s: body non valido: %s", request.method, request.url.path, exc.errors())
    return JSONResponse(status_code=400, content={"error": "Invalid JSON body"})


@app.exception_handler(SQLAlchemyError)
def store_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("%s %s: errore DB: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"error": str(exc)})


# Schemi risposta

class NewAppointmentOut(BaseModel):
    NewAppointmentId: int


class StatusOut(BaseModel):
    AppointmentId: int
    Status: str


# Endpoints

@app.get("/api/health")
def api_health() -> JSONResponse:
    try:
        ping()
    except SQLAlchemyError as e:
        return JSONResponse(status_code=500, content={"ok": False, "error": str(e)})
    return JSONResponse(content={"ok": True})


@app.get("/api/doctors")
def api_doctors() -> list[dict]:
    return list_doctors()


@app.get("/api/services")
def api_services() -> list[dict]:
    return list_services()


@app.get("/api/cabinets")
def api_cabinets() -> list[dict]:
    return list_cabinets()


@app.get("/api/patients")
def api_patients() -> list[dict]:
    return list_patients()


@app.get("/api/appointments")
def api_appointments() -> list[dict]:
    return list_appointments()


@app.post("/api/appointments", response_model=NewAppointmentOut)
def api_create_appointment(payload: Any = Body(default=None)) -> NewAppointmentOut:
    """
    Crea un appuntamento. Il body accetta sia PascalCase che camelCase
    (PatientId/patientId, StartAt/startAt, ...).
    """
    logger.info("CREATE /api/appointments body: %s", payload)
    return NewAppointmentOut(NewAppointmentId=create_appointment(payload))


@app.patch("/api/appointments/{appointment_id}/status")
def api_set_status(appointment_id: str, payload: Any = Body(default=None)) -> dict[str, Any]:
    result = set_appointment_status(appointment_id, payload)
    if "AppointmentId" in result:
        return StatusOut(**result).model_dump()
    return result
