"""gym_sync.store

Relational store access with an explicit lifecycle.

A Store owns one psycopg connection pool.  It is opened once at process start
and closed at shutdown; each sync call checks out exactly one connection via
Store.connection() and holds it for the call's duration.  Pool connections run
in autocommit mode, so `with conn.transaction():` blocks are the only
transaction boundaries.
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import psycopg
from psycopg_pool import ConnectionPool

# package data, see [tool.setuptools.package-data]
SCHEMA_PATH = Path(__file__).parent / "migrations" / "0001_gym_schema.sql"


@dataclass
class StoreSettings:
    dsn: str
    min_size: int = 1
    max_size: int = 4
    checkout_timeout: float = 30.0

    @classmethod
    def from_env(cls) -> StoreSettings:
        dsn = os.environ.get("DB_DSN", "").strip()
        if not dsn:
            raise RuntimeError("DB_DSN is not set.")
        return cls(dsn=dsn)


class Store:
    def __init__(self, settings: StoreSettings) -> None:
        self.settings = settings
        self._pool: ConnectionPool | None = None

    def open(self) -> None:
        if self._pool is not None:
            return
        self._pool = ConnectionPool(
            self.settings.dsn,
            min_size=self.settings.min_size,
            max_size=self.settings.max_size,
            timeout=self.settings.checkout_timeout,
            kwargs={"autocommit": True},
            open=False,
        )
        self._pool.open(wait=True)

    def close(self) -> None:
        if self._pool is None:
            return
        self._pool.close()
        self._pool = None

    def __enter__(self) -> Store:
        self.open()
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    @contextmanager
    def connection(self) -> Iterator[psycopg.Connection]:
        """Check out one connection; it goes back to the pool on every exit path."""
        if self._pool is None:
            raise RuntimeError("Store is not open. Call Store.open() at startup.")
        with self._pool.connection() as conn:
            yield conn


def apply_schema(conn: psycopg.Connection, path: Path = SCHEMA_PATH) -> None:
    """Run the bundled migration (idempotent: every statement is IF NOT EXISTS)."""
    with conn.transaction():
        conn.execute(path.read_text(encoding="utf-8"))
