from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from . import config

# Engine condiviso di processo: creato al primo uso, chiuso da dispose_engine()
_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None
_database_url: str | None = None
_lock = threading.Lock()


class Base(DeclarativeBase):
    """Base ORM per tutti i modelli."""
    pass


def _engine_kwargs(url: str) -> dict[str, Any]:
    kwargs: dict[str, Any] = {"echo": config.DB_ECHO, "future": True}

    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False, "timeout": config.DB_TIMEOUT_SECONDS}
        # SQLite in memoria usa un pool per-thread senza coda
        if url in ("sqlite://", "sqlite:///:memory:"):
            return kwargs

    kwargs["pool_size"] = config.DB_POOL_SIZE
    kwargs["max_overflow"] = 0
    kwargs["pool_timeout"] = config.DB_TIMEOUT_SECONDS
    kwargs["pool_pre_ping"] = True
    return kwargs


def get_engine() -> Engine:
    """
    Ritorna l'engine di processo, creandolo al primo uso.
    Il lock garantisce una sola creazione anche con primi accessi concorrenti.
    """
    global _engine, _session_factory

    if _engine is not None:
        return _engine

    with _lock:
        if _engine is None:
            url = _database_url or config.DATABASE_URL
            engine = create_engine(url, **_engine_kwargs(url))
            _session_factory = sessionmaker(
                bind=engine,
                autoflush=False,
                autocommit=False,
                future=True,
                expire_on_commit=False,
            )
            _engine = engine
    return _engine


def dispose_engine() -> None:
    """Chiude il pool; il prossimo get_engine() ne crea uno nuovo."""
    global _engine, _session_factory

    with _lock:
        if _engine is not None:
            _engine.dispose()
        _engine = None
        _session_factory = None


def configure_database(url: str | None) -> None:
    """Cambia URL del DB (es. test); None torna a DATABASE_URL."""
    global _database_url

    dispose_engine()
    with _lock:
        _database_url = url


@contextmanager
def db_session() -> Iterator[Session]:
    """
    Context manager per gestire correttamente la sessione:
    - commit se tutto ok
    - rollback su eccezioni
    - close sempre
    """
    get_engine()
    factory = _session_factory
    if factory is None:
        raise RuntimeError("Engine chiuso durante l'apertura della sessione.")
    session: Session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
