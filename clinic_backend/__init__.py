"""
Backend applicativo Clinic Scheduling.

Struttura:
- config.py        : configurazione da ambiente (.env)
- logging_setup.py : logger console/file
- db.py            : engine (lazy) e sessioni SQLAlchemy
- models.py        : modelli ORM e stati appuntamento
- procedures.py    : procedure atomiche di scrittura (crea, cambia stato)
- normalize.py     : normalizzazione payload (PascalCase / camelCase)
- services.py      : API di lettura e scrittura (validazione + delega)
- seed.py          : dati iniziali (medici, servizi, cabinet, pazienti)
- api_main.py      : superficie HTTP FastAPI
- cli.py           : comandi da terminale
"""
