from __future__ import annotations

from contextlib import contextmanager
from functools import lru_cache
import logging
import os
from typing import Iterator

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import NullPool
from sqlmodel import SQLModel, Session, create_engine

from bilgeverse.core.config import get_settings
from bilgeverse.db_migrations import apply_sqlite_migrations

logger = logging.getLogger(__name__)


def _is_sqlite(database_url: str) -> bool:
    return database_url.startswith("sqlite")


def _on_serverless() -> bool:
    return bool(os.environ.get("VERCEL") or os.environ.get("VERCEL_ENV"))


def _enable_sqlite_foreign_keys(engine: Engine) -> None:
    # Off by default in SQLite; period/user links rely on it.
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, _connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


@lru_cache
def _engine_for_url(database_url: str) -> Engine:
    kwargs: dict = {"echo": False, "pool_pre_ping": True}
    if _is_sqlite(database_url):
        # Request threads differ from the creating thread; NullPool avoids
        # QueuePool exhaustion (TimeoutError) under bursts.
        kwargs["connect_args"] = {"check_same_thread": False}
        kwargs["poolclass"] = NullPool
    elif _on_serverless():
        kwargs["poolclass"] = NullPool

    engine = create_engine(database_url, **kwargs)
    if _is_sqlite(database_url):
        _enable_sqlite_foreign_keys(engine)
    logger.info("Database engine ready (%s)", engine.url.get_backend_name())
    return engine


def get_engine() -> Engine:
    return _engine_for_url(get_settings().database_url)


def init_db() -> None:
    # Registers every table on SQLModel.metadata
    import bilgeverse.models  # noqa: F401

    engine = get_engine()
    SQLModel.metadata.create_all(engine)

    # create_all never alters existing tables; patch older SQLite files in place
    if _is_sqlite(get_settings().database_url):
        apply_sqlite_migrations(engine)


@contextmanager
def session_scope() -> Iterator[Session]:
    """Session for work outside a request (startup, scripts); commits on success."""

    with Session(get_engine()) as session:
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise


def get_session() -> Iterator[Session]:
    # Routers commit explicitly; anything left uncommitted on error is discarded.
    with Session(get_engine()) as session:
        try:
            yield session
        except Exception:
            session.rollback()
            raise
