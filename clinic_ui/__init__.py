"""
UI Streamlit Clinic Scheduling.

- client.py : chiamate HTTP al backend (requests)
- views.py  : stato pagine (lista appuntamenti, creazione, dizionari)
"""
