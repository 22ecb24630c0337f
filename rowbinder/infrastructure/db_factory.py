"""
PostgreSQL connection factory for rowbinder.

Owns the process-wide sync connection pool used by PostgresStore. The
PoolManager singleton closes the pool on interpreter exit.

Includes retry logic for transient connection failures using tenacity.
"""

from __future__ import annotations

import atexit
import threading
from typing import Optional

import psycopg
from psycopg import Connection
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from rowbinder.config import Settings, get_settings
from rowbinder.utils.logging import get_logger

log = get_logger(__name__)


def build_dsn(settings: Optional[Settings] = None) -> str:
    """Compose a DSN string from settings."""
    settings = settings or get_settings()
    return (
        f"postgresql://{settings.db_user}:{settings.db_password}"
        f"@{settings.db_host}:{settings.db_port}/{settings.db_name}"
    )


def _configure_connection(conn: Connection) -> None:
    """Pool `configure` hook: autocommit plus the configured statement timeout."""
    conn.autocommit = True
    timeout_ms = get_settings().db_statement_timeout_ms
    if timeout_ms > 0:
        with conn.cursor() as cur:
            apply_statement_timeout(cur, timeout_ms)


class PoolManager:
    """
    Thread-safe singleton holding the shared connection pool.

    Handles lifecycle management with automatic cleanup via atexit hook.
    """

    _instance: Optional["PoolManager"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "PoolManager":
        """Create or return the singleton instance."""
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._pool = None
                atexit.register(cls._instance.close_all)
            return cls._instance

    def get_pool(self, dsn: Optional[str] = None, min_size: int = 1, max_size: int = 10) -> ConnectionPool:
        """
        Get or create the connection pool.

        Parameters
        ----------
        dsn : str | None
            Connection string; composed from settings when omitted.
        min_size : int
            Minimum number of idle connections to keep.
        max_size : int
            Maximum total connections in the pool.

        Returns
        -------
        ConnectionPool
            The managed pool. Connections are in autocommit mode and return
            rows as dicts.
        """
        with self._lock:
            if self._pool is None:
                self._pool = ConnectionPool(
                    conninfo=dsn or build_dsn(),
                    min_size=min_size,
                    max_size=max_size,
                    kwargs={"row_factory": dict_row},
                    configure=_configure_connection,
                    open=True,
                )
                log.info("Connection pool opened", extra={"min_size": min_size, "max_size": max_size})
            return self._pool

    def close_all(self) -> None:
        """
        Close the managed pool and release its connections.

        This is called automatically on exit via atexit hook.
        """
        with self._lock:
            if self._pool is not None:
                try:
                    self._pool.close()
                except psycopg.Error as exc:
                    log.warning("Pool close failed", extra={"error": str(exc)})
                finally:
                    self._pool = None


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((psycopg.OperationalError, psycopg.InterfaceError)),
    reraise=True,
)
def get_sync_connection(dsn: Optional[str] = None) -> Connection:
    """
    Acquire a dedicated autocommit connection with automatic retry.

    Retries up to 3 times with exponential backoff for transient connection errors.
    Use this for one-off operations such as health checks.

    Raises
    ------
    psycopg.OperationalError
        If connection fails after all retry attempts.
    """
    return psycopg.connect(dsn or build_dsn(), autocommit=True, row_factory=dict_row)


def server_version(dsn: Optional[str] = None) -> str:
    """
    Report the server version over a dedicated connection.

    Serves as the connectivity check behind `rowbinder info --check`.

    Raises
    ------
    psycopg.Error
        If the server stays unreachable after the connection retries.
    """
    with get_sync_connection(dsn) as conn:
        row = conn.execute("SELECT version() AS version").fetchone()
    return str(row["version"]) if row else ""


def get_sync_pool(settings: Optional[Settings] = None) -> ConnectionPool:
    """Get or create the shared pool sized from settings."""
    settings = settings or get_settings()
    return PoolManager().get_pool(
        dsn=build_dsn(settings),
        min_size=settings.db_pool_min_size,
        max_size=settings.db_pool_max_size,
    )


def apply_statement_timeout(cur: psycopg.Cursor, timeout_ms: int) -> None:
    """Set `statement_timeout` for the cursor's session; 0 leaves it unlimited."""
    if timeout_ms > 0:
        cur.execute(f"SET statement_timeout = {int(timeout_ms)}")


__all__ = [
    "PoolManager",
    "apply_statement_timeout",
    "build_dsn",
    "get_sync_connection",
    "get_sync_pool",
    "server_version",
]
