"""
Pytest configuration for rowbinder.

Provides fixtures for:
- Settings and DSN for integration tests against PostgreSQL
- An in-memory SQLite store implementing the Store protocol
- Record contexts wired around that store
"""

from __future__ import annotations

import os
import re
import sqlite3
from typing import Any, Dict, Generator, List

import psycopg
import pytest

from rowbinder.config import Settings
from rowbinder.infrastructure.cache_backend import MemoryCacheBackend
from rowbinder.records.context import MemoryHistory, RecordContext

ITEMS_DDL = """
CREATE TABLE items (
    id INTEGER PRIMARY KEY,
    title VARCHAR(64) NOT NULL DEFAULT '',
    body TEXT,
    price DECIMAL(10,2),
    qty INT,
    published DATETIME,
    created DATETIME,
    updated DATETIME,
    editor INT,
    i18n TEXT,
    cnt_viewed INT DEFAULT 0,
    last_viewed DATETIME
)
"""

NOTES_DDL = """
CREATE TABLE notes (
    id INTEGER PRIMARY KEY,
    text VARCHAR(255)
)
"""

_TYPE_RE = re.compile(r"^\s*([A-Za-z]+)")


class SqliteStore:
    """
    Store protocol over an in-memory SQLite database.

    Records every statement it receives so tests can assert what was (or was
    not) sent to the store.
    """

    def __init__(self, *ddl: str) -> None:
        self.conn = sqlite3.connect(":memory:")
        self.conn.row_factory = sqlite3.Row
        for statement in ddl:
            self.conn.execute(statement)
        self.statements: List[str] = []
        self.describe_calls = 0
        self._last_error = ""
        self._last_insert_id: Any = -1

    def describe_table(self, name: str) -> List[Dict[str, Any]]:
        self.describe_calls += 1
        rows = []
        for column in self.conn.execute(f"PRAGMA table_info({name})").fetchall():
            type_name = column["type"].lower()
            match = _TYPE_RE.match(type_name)
            primary = bool(column["pk"])
            rows.append(
                {
                    "Field": column["name"],
                    "Type": type_name,
                    "Null": "NO" if column["notnull"] or primary else "YES",
                    "Key": "PRI" if primary else "",
                    "Default": column["dflt_value"],
                    "Extra": "auto_increment" if primary and match and match.group(1) == "integer" else "",
                }
            )
        return rows

    def query(self, text: str) -> List[Dict[str, Any]]:
        self.statements.append(text)
        self._last_error = ""
        try:
            return [dict(row) for row in self.conn.execute(text).fetchall()]
        except sqlite3.Error as exc:
            self._last_error = str(exc)
            return []

    def execute(self, text: str) -> int:
        self.statements.append(text)
        self._last_error = ""
        try:
            cursor = self.conn.execute(text)
            if cursor.description:
                returned = cursor.fetchall()
                if returned:
                    self._last_insert_id = returned[0][0]
                return len(returned)
            return cursor.rowcount
        except sqlite3.Error as exc:
            self._last_error = str(exc)
            return -1

    def last_insert_id(self) -> Any:
        return self._last_insert_id

    def last_error(self) -> str:
        return self._last_error

    def modifying_statements(self) -> List[str]:
        return [s for s in self.statements if s.split(None, 1)[0].upper() in ("INSERT", "UPDATE", "DELETE")]


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.getenv("DB_PASSWORD", "postgres"),
        db_name=os.getenv("DB_NAME", "rowbinder"),
        log_level="DEBUG",
    )


@pytest.fixture(scope="session")
def test_dsn(test_settings: Settings) -> str:
    """
    Database connection string for tests.
    """
    return (
        f"postgresql://{test_settings.db_user}:{test_settings.db_password}"
        f"@{test_settings.db_host}:{test_settings.db_port}/{test_settings.db_name}"
    )


@pytest.fixture(scope="session")
def db_connection_available(test_dsn: str) -> bool:
    """
    Check if database is reachable.

    Used to conditionally skip integration tests when DB is not available.
    """
    try:
        with psycopg.connect(test_dsn, connect_timeout=5) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
                cur.fetchone()
        return True
    except psycopg.Error:
        return False


@pytest.fixture(scope="session")
def db_connection(test_dsn: str, db_connection_available: bool) -> Generator[psycopg.Connection, None, None]:
    """
    Provide a session-scoped autocommit connection for integration tests.

    Skips tests if database is not available.
    """
    if not db_connection_available:
        pytest.skip("Database not available for integration tests")

    conn = psycopg.connect(test_dsn, autocommit=True)
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture()
def store() -> SqliteStore:
    return SqliteStore(ITEMS_DDL, NOTES_DDL)


@pytest.fixture()
def backend() -> MemoryCacheBackend:
    return MemoryCacheBackend()


@pytest.fixture()
def history() -> MemoryHistory:
    return MemoryHistory()


@pytest.fixture()
def context(store: SqliteStore, backend: MemoryCacheBackend, history: MemoryHistory) -> RecordContext:
    """Context around the SQLite store with an editor id of 42 and German sessions."""
    return RecordContext.create(
        store,
        backend=backend,
        history=history,
        editor_provider=lambda: 42,
        language_provider=lambda: "de",
    )


@pytest.fixture()
def seeded_store(store: SqliteStore) -> SqliteStore:
    """Store with five items (ids 1..5) and no statements recorded."""
    rows = [
        (1, "alpha", "first", 10.0, 1, None, '{"de": {"title": "Alpha DE"}, "fr": {"title": ""}}'),
        (2, "beta", "second", 20.0, 2, None, None),
        (3, "gamma", None, 30.0, 3, None, None),
        (4, "delta", "fourth", 40.0, 4, "2024-01-01 00:00:00", None),
        (5, "epsilon", "fifth", 50.0, 5, None, None),
    ]
    store.conn.executemany(
        "INSERT INTO items (id, title, body, price, qty, published, i18n) VALUES (?, ?, ?, ?, ?, ?, ?)",
        rows,
    )
    store.statements.clear()
    return store
