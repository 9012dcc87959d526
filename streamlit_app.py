from __future__ import annotations

from datetime import datetime

import streamlit as st

from clinic_backend.csv_export import export_filename
from clinic_backend.models import STATUS_VALUES
from clinic_ui.client import API_BASE, ClinicApi
from clinic_ui.views import (
    AppointmentsView,
    CreateForm,
    StatusChange,
    default_selection,
    filter_records,
    is_editable,
    load_dictionaries,
    now_plus_minutes,
    status_options,
    submit_create,
    to_options,
)

st.set_page_config(page_title="Clinic Scheduling", layout="wide")

api = ClinicApi(API_BASE)


def _format_start(iso: str) -> str:
    try:
        return datetime.fromisoformat(iso).astimezone().strftime("%d/%m/%Y %H:%M")
    except ValueError:
        return iso


@st.cache_data(ttl=10)
def cached_dictionaries():
    return load_dictionaries(api)


def get_appointments_view(reload: bool = False) -> AppointmentsView:
    """Vista in session_state; reload chiude la vecchia (risposte ignorate) e ne crea una nuova."""
    view: AppointmentsView | None = st.session_state.get("appointments_view")
    if view is not None and not reload:
        return view

    if view is not None:
        view.close()
        for key in [k for k in st.session_state if str(k).startswith("status_")]:
            del st.session_state[key]
    view = AppointmentsView()
    st.session_state["appointments_view"] = view
    view.load(api.appointments)
    return view


def on_status_change(view: AppointmentsView, appointment_id: int) -> None:
    new_status = st.session_state.get(f"status_{appointment_id}")
    if not new_status:
        return
    view.change_status(StatusChange(appointment_id, new_status), api.update_appointment_status)
    # select riallineata alla riga locale (su errore torna allo stato precedente)
    for a in view.rows:
        if a.appointment_id == appointment_id:
            st.session_state[f"status_{appointment_id}"] = a.status



# Sidebar

with st.sidebar:
    st.header("Clinic Scheduling")
    st.caption(f"API: {API_BASE}")



# UI

st.title("Appuntamenti clinica (API REST + Streamlit)")

tab1, tab2, tab3 = st.tabs(["Appuntamenti", "Nuovo appuntamento", "Dizionari"])



# TAB 1 - Appuntamenti

with tab1:
    head_l, head_r, head_rr = st.columns([6, 1, 1])
    head_l.subheader("Appuntamenti")

    reload = head_r.button("Ricarica", key="app_reload")
    view = get_appointments_view(reload=reload)

    head_rr.download_button(
        "Export CSV",
        data=view.export_csv().encode("utf-8"),
        file_name=export_filename(datetime.now()),
        mime="text/csv;charset=utf-8",
        disabled=view.loading or not view.rows,
        key="app_export",
    )

    if view.error:
        st.error(view.error)
    if view.update_error:
        st.error(view.update_error)

    if view.loaded and not view.rows:
        st.info("Nessun appuntamento.")

    for a in view.rows:
        c_id, c_start, c_dur, c_who, c_status = st.columns([1, 2, 1, 4, 2])
        c_id.write(f"**{a.appointment_id}**")
        c_start.write(_format_start(a.start_at))
        c_dur.write(f"{a.duration_minutes} min")
        c_who.write(
            f"{a.patient_display_name or '-'} | {a.doctor_full_name or '-'} | "
            f"{a.service_name or '-'} | {a.cabinet_name or '-'}"
        )

        key = f"status_{a.appointment_id}"
        if key not in st.session_state:
            st.session_state[key] = a.status
        c_status.selectbox(
            "Stato",
            options=status_options(a.status),
            key=key,
            label_visibility="collapsed",
            disabled=not is_editable(a.status) or view.is_updating(a.appointment_id),
            on_change=on_status_change,
            args=(view, a.appointment_id),
        )



# TAB 2 - Nuovo appuntamento

with tab2:
    st.subheader("Nuovo appuntamento")
    st.caption("Dizionari caricati dal backend; la creazione invia una POST a /api/appointments.")

    try:
        dicts = cached_dictionaries()
    except Exception as e:
        st.error(f"API non raggiungibile o errore: {e}")
        dicts = None

    if dicts is not None:
        defaults = default_selection(dicts)

        patient_opts = to_options(dicts.patients, "patient_id", "display_name", "phone_last4")
        service_opts = to_options(dicts.services, "service_id", "service_name", "modality")
        doctor_opts = to_options(dicts.doctors, "doctor_id", "full_name", "specialty")
        cabinet_opts = to_options(dicts.cabinets, "cabinet_id", "cabinet_name", "modality")

        def _index(opts, value: int) -> int:
            return next((i for i, o in enumerate(opts) if o.value == value), 0)

        patient = st.selectbox(
            "Paziente", options=patient_opts, index=_index(patient_opts, defaults["patient_id"]),
            format_func=lambda o: o.label, key="new_patient",
        )

        colA, colB = st.columns(2)
        with colA:
            service = st.selectbox(
                "Servizio", options=service_opts, index=_index(service_opts, defaults["service_id"]),
                format_func=lambda o: o.label, key="new_service",
            )
            cabinet = st.selectbox(
                "Cabinet", options=cabinet_opts, index=_index(cabinet_opts, defaults["cabinet_id"]),
                format_func=lambda o: o.label, key="new_cabinet",
            )
            default_start = now_plus_minutes(60)
            start_date = st.date_input("Data", value=default_start.date(), key="new_date")
        with colB:
            doctor = st.selectbox(
                "Medico", options=doctor_opts, index=_index(doctor_opts, defaults["doctor_id"]),
                format_func=lambda o: o.label, key="new_doctor",
            )
            status = st.selectbox("Stato", options=list(STATUS_VALUES), index=0, key="new_status")
            start_time = st.time_input("Ora", value=default_start.time(), key="new_time")

        duration = st.number_input("Durata (minuti)", min_value=1, value=30, step=5, key="new_duration")

        ready = all(o is not None for o in (patient, service, doctor, cabinet))
        if st.button("Crea appuntamento", key="new_submit", disabled=not ready):
            form = CreateForm(
                patient_id=patient.value,
                service_id=service.value,
                doctor_id=doctor.value,
                cabinet_id=cabinet.value,
                start_local=datetime.combine(start_date, start_time),
                duration_minutes=int(duration),
                status=status,
            )
            outcome = submit_create(api, form)
            if outcome.error:
                st.error(outcome.error)
            else:
                st.success(f"Creato. NewAppointmentId: {outcome.new_id}")
                st.info("Premi Ricarica nella scheda Appuntamenti per vederlo in lista.")



# TAB 3 - Dizionari

with tab3:
    st.subheader("Dizionari")
    q = st.text_input("Cerca", key="dict_query")

    try:
        dicts = cached_dictionaries()
    except Exception as e:
        st.error(f"Errore caricamento dizionari: {e}")
        dicts = None

    if dicts is not None:
        t_doc, t_srv, t_cab, t_pat = st.tabs(["Medici", "Servizi", "Cabinet", "Pazienti"])

        with t_doc:
            rows = filter_records(dicts.doctors, q, ["full_name", "specialty"])
            st.dataframe(
                [{"ID": d.doctor_id, "Nome": d.full_name, "Specialità": d.specialty or "-"} for d in rows],
                use_container_width=True,
            )
        with t_srv:
            rows = filter_records(dicts.services, q, ["service_name", "modality"])
            st.dataframe(
                [
                    {"ID": s.service_id, "Servizio": s.service_name, "Modalità": s.modality or "-",
                     "Prezzo base (UAH)": s.base_price_uah}
                    for s in rows
                ],
                use_container_width=True,
            )
        with t_cab:
            rows = filter_records(dicts.cabinets, q, ["cabinet_code", "cabinet_name", "modality"])
            st.dataframe(
                [
                    {"ID": c.cabinet_id, "Codice": c.cabinet_code or "-", "Nome": c.cabinet_name,
                     "Modalità": c.modality or "-"}
                    for c in rows
                ],
                use_container_width=True,
            )
        with t_pat:
            rows = filter_records(dicts.patients, q, ["patient_code", "display_name", "phone_last4"])
            st.dataframe(
                [
                    {"ID": p.patient_id, "Codice": p.patient_code or "-", "Nome": p.display_name,
                     "Telefono (ultime 4)": p.phone_last4 or "-"}
                    for p in rows
                ],
                use_container_width=True,
            )
