import logging
import os
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlmodel import SQLModel, Session, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from .config import get_database_url


logger = logging.getLogger(__name__)

_engine: Optional[Engine] = None
_engine_url: Optional[str] = None


def get_engine() -> Engine:
    """Return a SQLModel engine, creating it if needed."""
    global _engine, _engine_url
    database_url = get_database_url()
    if _engine is None or database_url != _engine_url:
        if _engine is not None:
            _engine.dispose()
        connect_args = {}
        engine_kwargs = {"echo": False}
        if database_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
            if database_url == "sqlite://":
                engine_kwargs["poolclass"] = StaticPool
        _engine = create_engine(database_url, connect_args=connect_args, **engine_kwargs)
        _engine_url = database_url
        logger.debug("Created database engine for backend %s", _engine.url.get_backend_name())
    return _engine


def dispose_engine() -> None:
    """Close pooled connections and forget the engine (process shutdown)."""
    global _engine, _engine_url
    if _engine is not None:
        _engine.dispose()
        logger.info("Database connections closed")
    _engine = None
    _engine_url = None


def init_db() -> None:
    """Optionally create all tables in dev environments.

    In production, rely on Alembic migrations. Enable this dev helper by setting
    SQLMODEL_CREATE_ALL=1 (or 'true').
    """
    # Table classes must be registered on the metadata before create_all.
    from . import models  # noqa: F401

    database_url = get_database_url()
    engine = get_engine()
    if database_url == "sqlite://":
        # In-memory sqlite for tests/dev: reset schema each init for isolation
        SQLModel.metadata.drop_all(engine)
        SQLModel.metadata.create_all(engine)
        return
    if os.getenv("SQLMODEL_CREATE_ALL", "0") in ("1", "true", "TRUE"):
        SQLModel.metadata.create_all(engine)


def _session_scope() -> Iterator[Session]:
    with Session(get_engine()) as session:
        yield session


@contextmanager
def get_session_ctx() -> Iterator[Session]:
    yield from _session_scope()


def get_session() -> Iterator[Session]:
    yield from _session_scope()


def is_postgres() -> bool:
    try:
        name = get_engine().url.get_backend_name()
    except Exception:  # noqa: BLE001
        database_url = get_database_url()
        name = (database_url.split(":", 1)[0] if ":" in database_url else "")
    return name.startswith("postgres")
