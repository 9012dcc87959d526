from __future__ import annotations

import argparse
import sys
from datetime import datetime
from pathlib import Path

from sqlalchemy.exc import SQLAlchemyError

from clinic_backend import config
from clinic_backend.csv_export import build_appointments_csv, export_filename
from clinic_backend.normalize import normalize_appointment
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
    set_appointment_status,
)


def cmd_init(args: argparse.Namespace) -> None:
    init_db()
    seed_base(with_demo_appointments=not args.no_demo)
    print("DB inizializzato e seed completato.")


def cmd_list(args: argparse.Namespace) -> None:
    if args.entity == "doctors":
        for d in list_doctors():
            print(f"{d['DoctorId']} | {d['FullName']} | {d['Specialty'] or '-'}")
    elif args.entity == "services":
        for sv in list_services():
            print(f"{sv['ServiceId']} | {sv['Modality'] or '-'} | {sv['ServiceName']} | {sv['BasePriceUAH'] or '-'}")
    elif args.entity == "cabinets":
        for c in list_cabinets():
            print(f"{c['CabinetId']} | {c['CabinetCode']} | {c['CabinetName']} | {c['Modality'] or '-'}")
    elif args.entity == "patients":
        for p in list_patients():
            print(f"{p['PatientId']} | {p['PatientCode']} | {p['DisplayName']} | {p['PhoneLast4'] or '-'}")
    elif args.entity == "appointments":
        for a in list_appointments(limit=args.limit):
            print(
                f"{a['AppointmentId']} | {a['StartAt']} | {a['DurationMinutes'] or '-'} min | {a['Status']} | "
                f"{a['PatientDisplayName'] or '-'} | {a['DoctorFullName'] or '-'} | {a['CabinetCode'] or '-'}"
            )


def cmd_book(args: argparse.Namespace) -> None:
    payload = {
        "PatientId": args.patient_id,
        "DoctorId": args.doctor_id,
        "ServiceId": args.service_id,
        "CabinetId": args.cabinet_id,
        "StartAt": args.start,  # formato: 2026-01-14T10:30:00Z
        "DurationMinutes": args.duration,
        "Status": args.status,
    }
    new_id = create_appointment(payload)
    print(f"Appuntamento creato. ID: {new_id}")


def cmd_set_status(args: argparse.Namespace) -> None:
    res = set_appointment_status(args.appointment_id, {"Status": args.status})
    print(f"Appuntamento {res.get('AppointmentId', args.appointment_id)}: {res.get('Status', args.status)}")


def cmd_export_csv(args: argparse.Namespace) -> None:
    rows = [normalize_appointment(a) for a in list_appointments()]
    out = Path(args.output or export_filename(datetime.now()))
    # BOM già presente nel testo: niente utf-8-sig
    out.write_text(build_appointments_csv(rows), encoding="utf-8", newline="")
    print(f"Esportati {len(rows)} appuntamenti in {out}")


def cmd_serve(args: argparse.Namespace) -> None:
    import uvicorn

    uvicorn.run("clinic_backend.api_main:app", host=args.host, port=args.port, reload=args.reload)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="clinic-cli", description="CLI Clinic Scheduling")
    sub = p.add_subparsers(required=True)

    p_init = sub.add_parser("init", help="Crea DB e carica seed")
    p_init.add_argument("--no-demo", action="store_true", help="Non creare appuntamenti dimostrativi")
    p_init.set_defaults(func=cmd_init)

    p_list = sub.add_parser("list", help="Lista entità")
    p_list.add_argument("entity", choices=["doctors", "services", "cabinets", "patients", "appointments"])
    p_list.add_argument("--limit", type=int, default=config.APPOINTMENTS_LIMIT)
    p_list.set_defaults(func=cmd_list)

    p_book = sub.add_parser("book", help="Crea appuntamento")
    p_book.add_argument("--patient-id", type=int, required=True)
    p_book.add_argument("--doctor-id", type=int, required=True)
    p_book.add_argument("--service-id", type=int, required=True)
    p_book.add_argument("--cabinet-id", type=int, required=True)
    p_book.add_argument("--start", required=True, help="ISO datetime es: 2026-01-14T10:30:00Z")
    p_book.add_argument("--duration", type=int, default=None)
    p_book.add_argument("--status", default=None)
    p_book.set_defaults(func=cmd_book)

    p_status = sub.add_parser("set-status", help="Cambia stato appuntamento")
    p_status.add_argument("--appointment-id", required=True)
    p_status.add_argument("--status", required=True)
    p_status.set_defaults(func=cmd_set_status)

    p_csv = sub.add_parser("export-csv", help="Esporta appuntamenti in CSV (Excel)")
    p_csv.add_argument("--output", default=None)
    p_csv.set_defaults(func=cmd_export_csv)

    p_serve = sub.add_parser("serve", help="Avvia l'API REST (uvicorn)")
    p_serve.add_argument("--host", default=config.API_HOST)
    p_serve.add_argument("--port", type=int, default=config.API_PORT)
    p_serve.add_argument("--reload", action="store_true")
    p_serve.set_defaults(func=cmd_serve)

    return p


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    init_db()  # garantisce tabelle
    try:
        args.func(args)
    except (InvalidInputError, ProcedureError, SQLAlchemyError) as e:
        print(f"Errore: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
