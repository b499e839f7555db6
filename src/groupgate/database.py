"""
Database configuration and session management.

This module is intentionally small and test-friendly:
- Defaults to SQLite for local dev
- Supports Postgres via GROUPGATE_DATABASE_URL
"""

from __future__ import annotations

import os
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from groupgate.config import get_settings
from groupgate.models.base import Base


def get_database_url() -> str:
    settings = get_settings()
    return settings.DATABASE_URL


def create_db_engine(database_url: Optional[str] = None, *, echo: bool = False) -> Engine:
    url = database_url or get_database_url()

    connect_args: dict = {}
    if "sqlite" in url:
        connect_args["check_same_thread"] = False

    if url.startswith("sqlite:///:memory:") or url == "sqlite://":
        from sqlalchemy.pool import StaticPool

        engine = create_engine(
            url,
            echo=echo,
            connect_args=connect_args,
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(
            url,
            echo=echo,
            pool_pre_ping=True,
            pool_recycle=3600,
            connect_args=connect_args,
        )

    if "sqlite" in url:

        @event.listens_for(engine, "connect")
        def _set_sqlite_pragma(dbapi_connection, _connection_record):  # pragma: no cover
            # Let SQLAlchemy own BEGIN so SAVEPOINTs nest inside a real transaction.
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        @event.listens_for(engine, "begin")
        def _do_begin(conn):  # pragma: no cover
            conn.exec_driver_sql("BEGIN")

    return engine


if os.getenv("ALEMBIC_RUNNING") != "true":
    engine = create_db_engine(echo=get_settings().SQL_ECHO)
    SessionLocal = sessionmaker(
        autocommit=False, autoflush=False, expire_on_commit=False, bind=engine
    )
else:  # pragma: no cover
    engine = None
    SessionLocal = None


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def get_db_session() -> Generator[Session, None, None]:
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def import_all_models() -> None:
    """Register every mapped table on Base.metadata."""
    from groupgate.models import group as _group  # noqa: F401
    from groupgate.models import user as _user  # noqa: F401
    from groupgate.security.groups import models as _group_models  # noqa: F401
    from groupgate.security.rbac import models as _rbac_models  # noqa: F401


def init_db(*, create_tables: bool = False, bind_engine: Optional[Engine] = None) -> None:
    """
    Initialize database schema.

    When SCHEMA_MODE=migrations, this will NOT auto-create tables.
    Use `groupgate db upgrade` for production deployments.
    """
    settings = get_settings()
    target_engine = bind_engine or engine
    if not target_engine:
        raise RuntimeError("Database engine is not initialized")

    if not create_tables:
        return

    if settings.SCHEMA_MODE == "migrations":
        from sqlalchemy import inspect

        existing_tables = inspect(target_engine).get_table_names()
        if not existing_tables:
            raise RuntimeError(
                "SCHEMA_MODE=migrations: Database is empty. "
                "Run `groupgate db upgrade` first to create tables via Alembic."
            )
        return

    import_all_models()
    Base.metadata.create_all(bind=target_engine, checkfirst=True)
