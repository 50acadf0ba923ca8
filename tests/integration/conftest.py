"""Integration test fixtures.

Applies src/gym_sync/migrations/0001_gym_schema.sql against an ephemeral PostgreSQL
database provided by pytest-postgresql before any integration test runs.
"""

from __future__ import annotations

import psycopg
import pytest
from pytest_postgresql import factories

from gym_sync.store import SCHEMA_PATH, Store, StoreSettings

# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------

MIGRATIONS = [
    SCHEMA_PATH,
]

# ---------------------------------------------------------------------------
# pytest-postgresql process fixture
# ---------------------------------------------------------------------------

postgresql_proc = factories.postgresql_proc()
postgresql = factories.postgresql("postgresql_proc")


# ---------------------------------------------------------------------------
# Schema fixture: applies the migration once per test
# ---------------------------------------------------------------------------

@pytest.fixture(scope="function")
def db_conn(postgresql):
    """Return an autocommit psycopg connection with schema applied, plus its DSN."""
    dsn = (
        f"host={postgresql.info.host} "
        f"port={postgresql.info.port} "
        f"dbname={postgresql.info.dbname} "
        f"user={postgresql.info.user} "
        f"password={postgresql.info.password or ''}"
    )
    conn = psycopg.connect(dsn, autocommit=True)
    try:
        for migration in MIGRATIONS:
            conn.execute(migration.read_text(encoding="utf-8"))
        yield conn, dsn
    finally:
        conn.close()


@pytest.fixture()
def conn(db_conn):
    connection, _ = db_conn
    yield connection


@pytest.fixture()
def dsn(db_conn):
    _, dsn = db_conn
    yield dsn


@pytest.fixture()
def store(dsn):
    s = Store(StoreSettings(dsn=dsn, min_size=1, max_size=2, checkout_timeout=10.0))
    s.open()
    try:
        yield s
    finally:
        s.close()


