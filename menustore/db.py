"""Database engine + session management.

One process-wide engine; MenuStore receives ``get_new_session`` so every
operation runs on its own Session regardless of which worker thread executes it.
"""

from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .models import Base

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


def _normalize_url(url: str) -> str:
    # Normalize postgres schemes to ensure SQLAlchemy uses psycopg v3
    if url.startswith("postgres://"):
        return "postgresql+psycopg://" + url[len("postgres://") :]
    if url.startswith("postgresql://") and "+" not in url.split("://", 1)[1].split("@", 1)[0]:
        # no explicit driver specified (defaults may try psycopg2), force psycopg
        return "postgresql+psycopg://" + url[len("postgresql://") :]
    return url


def make_engine(database_url: str) -> Engine:
    database_url = _normalize_url(database_url)
    connect_args = {}
    if database_url.startswith("sqlite"):
        # store operations execute on worker threads
        connect_args["check_same_thread"] = False
    return create_engine(database_url, future=True, echo=False, connect_args=connect_args)


def init_engine(database_url: str, force: bool = False) -> Engine:
    """Initialize global engine (idempotent) or reinitialize when force=True."""
    global _engine, _SessionFactory
    if _engine is not None and not force:
        return _engine
    if _engine is not None:
        _engine.dispose()
    _engine = make_engine(database_url)
    _SessionFactory = sessionmaker(bind=_engine, autoflush=False, autocommit=False)
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError("DB not initialized; call init_engine first")
    return _engine


def get_new_session() -> Session:
    """Return a brand-new Session on the global engine.

    Used by MenuStore: each operation owns its session for the duration of a
    single round trip and closes it afterwards.
    """
    if _SessionFactory is None:
        raise RuntimeError("DB not initialized; call init_engine first")
    return _SessionFactory()


def create_all(engine: Engine | None = None) -> None:
    # dev/test helper ONLY for fresh ephemeral DBs; real deployments own their schema
    engine = engine or _engine
    if engine is None:
        raise RuntimeError("Engine not initialized")
    Base.metadata.create_all(engine)
