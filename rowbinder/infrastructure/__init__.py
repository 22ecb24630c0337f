"""
Infrastructure package for rowbinder.

Centralizes I/O concerns: the PostgreSQL store and its connection pool, and
the cache backends beneath the record cache. Keep this layer free of record
semantics.
"""

from rowbinder.infrastructure.cache_backend import MemoryCacheBackend
from rowbinder.infrastructure.db_factory import build_dsn, get_sync_connection, get_sync_pool, server_version
from rowbinder.infrastructure.postgres_store import PostgresStore

__all__ = [
    "MemoryCacheBackend",
    "PostgresStore",
    "build_dsn",
    "get_sync_connection",
    "get_sync_pool",
    "server_version",
]
