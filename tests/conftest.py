"""
tests/conftest.py

Shared fixtures: callers, an in-memory SQLite database carrying the lote
schema, and an in-memory object store.
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import db.models  # noqa: F401  registers tables on Base.metadata
from app.domain.furips import CallerIdentity, CallerRole
from db.base import Base

from tests.builders import PROVIDER_CODE, InMemoryObjectStorage


# ---------------------------------------------------------------------------
# Callers
# ---------------------------------------------------------------------------


@pytest.fixture()
def admin() -> CallerIdentity:
    return CallerIdentity(
        role=CallerRole.ADMIN,
        habilitacion_code=None,
        display_name="Auditor Central",
        email="auditor@example.com",
    )


@pytest.fixture()
def provider() -> CallerIdentity:
    return CallerIdentity(
        role=CallerRole.USER,
        habilitacion_code=PROVIDER_CODE,
        display_name="Clinica Prueba",
        email="ips@example.com",
    )


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest.fixture()
def engine() -> Iterator[Engine]:
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite needs explicit BEGIN for SAVEPOINT support.
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, class_=Session, autoflush=False, expire_on_commit=False)


@pytest.fixture()
def storage() -> InMemoryObjectStorage:
    return InMemoryObjectStorage()
