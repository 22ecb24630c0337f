"""
PostgreSQL implementation of the Store protocol.

Statements arrive as literal text rendered from templates and run on pooled
autocommit connections. Driver errors are logged and recorded in
`last_error()` instead of being raised, so the record layer can report them
with its -1 / empty-result sentinels.

Column metadata is read from information_schema and the pg catalogs and
reshaped into DESCRIBE-style rows (`Field`, `Type`, `Null`, `Key`, `Default`,
`Extra`) so it parses the same way as MySQL output.
"""

from __future__ import annotations

from collections import Counter
from typing import Any, Dict, List, Optional

import psycopg
from psycopg_pool import ConnectionPool

from rowbinder.config import Settings, get_settings
from rowbinder.infrastructure.db_factory import get_sync_pool
from rowbinder.utils.logging import get_logger

log = get_logger(__name__)

COLUMNS_SQL = """
SELECT column_name, udt_name, data_type, character_maximum_length,
       numeric_precision, numeric_scale, is_nullable, column_default, is_identity
FROM information_schema.columns
WHERE table_schema = %s AND table_name = %s
ORDER BY ordinal_position
"""

INDEXES_SQL = """
SELECT a.attname AS column_name, i.indisprimary AS is_primary, i.indisunique AS is_unique
FROM pg_index i
JOIN pg_attribute a ON a.attrelid = i.indrelid AND a.attnum = ANY(i.indkey)
WHERE i.indrelid = to_regclass(%s)
"""

ENUM_LABELS_SQL = """
SELECT e.enumlabel
FROM pg_type t
JOIN pg_enum e ON e.enumtypid = t.oid
WHERE t.typname = %s
ORDER BY e.enumsortorder
"""


def _column_type(column: Dict[str, Any], enum_labels: List[str]) -> str:
    """Render a MySQL-style type string such as `varchar(64)` or `numeric(10,2)`."""
    if enum_labels:
        labels = ",".join("'" + label.replace("'", "''") + "'" for label in enum_labels)
        return f"enum({labels})"
    udt_name = column["udt_name"]
    if column["character_maximum_length"]:
        return f"{udt_name}({column['character_maximum_length']})"
    if udt_name == "numeric" and column["numeric_precision"]:
        return f"{udt_name}({column['numeric_precision']},{column['numeric_scale'] or 0})"
    return udt_name


def _key_flag(name: str, indexes: List[Dict[str, Any]]) -> str:
    matches = [index for index in indexes if index["column_name"] == name]
    if any(index["is_primary"] for index in matches):
        return "PRI"
    if any(index["is_unique"] for index in matches):
        return "UNI"
    return "MUL" if matches else ""


class PostgresStore:
    """
    Store backed by a psycopg connection pool.

    Parameters
    ----------
    pool : ConnectionPool
        Pool handing out autocommit connections with dict rows.
    schema : str
        Schema searched by `describe_table`.
    """

    def __init__(self, pool: ConnectionPool, schema: str = "public") -> None:
        self.pool = pool
        self.schema = schema
        self._last_error = ""
        self._last_insert_id: Any = -1
        self._stats: Counter = Counter()

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "PostgresStore":
        settings = settings or get_settings()
        return cls(get_sync_pool(settings), schema=settings.db_schema)

    def _fail(self, operation: str, exc: psycopg.Error, text: str) -> None:
        self._last_error = str(exc)
        log.warning(
            f"Store {operation} failed: {exc}",
            extra={"operation": operation, "statement": text[:500]},
        )

    def describe_table(self, name: str) -> List[Dict[str, Any]]:
        """DESCRIBE-style rows for table `name`; empty when it does not exist."""
        self._last_error = ""
        self._stats["describe"] += 1
        try:
            with self.pool.connection() as conn, conn.cursor() as cur:
                cur.execute(COLUMNS_SQL, (self.schema, name))
                columns = cur.fetchall()
                cur.execute(INDEXES_SQL, (f"{self.schema}.{name}",))
                indexes = cur.fetchall()
                rows = []
                for column in columns:
                    labels: List[str] = []
                    if column["data_type"] == "USER-DEFINED":
                        cur.execute(ENUM_LABELS_SQL, (column["udt_name"],))
                        labels = [row["enumlabel"] for row in cur.fetchall()]
                    default = column["column_default"]
                    serial = bool(default and str(default).startswith("nextval("))
                    rows.append(
                        {
                            "Field": column["column_name"],
                            "Type": _column_type(column, labels),
                            "Null": column["is_nullable"],
                            "Key": _key_flag(column["column_name"], indexes),
                            "Default": None if serial else default,
                            "Extra": "auto_increment" if serial or column["is_identity"] == "YES" else "",
                        }
                    )
                return rows
        except psycopg.Error as exc:
            self._fail("describe", exc, name)
            return []

    def query(self, text: str) -> List[Dict[str, Any]]:
        self._last_error = ""
        self._stats["query"] += 1
        try:
            with self.pool.connection() as conn, conn.cursor() as cur:
                cur.execute(text)
                return list(cur.fetchall()) if cur.description else []
        except psycopg.Error as exc:
            self._fail("query", exc, text)
            return []

    def execute(self, text: str) -> int:
        """
        Run a modifying statement.

        A `RETURNING id` clause is read back and remembered as the last
        insert id; statements without one reset it to -1.
        """
        self._last_error = ""
        self._last_insert_id = -1
        self._stats["execute"] += 1
        try:
            with self.pool.connection() as conn, conn.cursor() as cur:
                cur.execute(text)
                affected = cur.rowcount
                if cur.description:
                    row = cur.fetchone()
                    if row and "id" in row:
                        self._last_insert_id = row["id"]
                return affected
        except psycopg.Error as exc:
            self._fail("execute", exc, text)
            return -1

    def last_insert_id(self) -> Any:
        return self._last_insert_id

    def last_error(self) -> str:
        return self._last_error

    def get_row(self, text: str) -> Dict[str, Any]:
        rows = self.query(text)
        return rows[0] if rows else {}

    def get_column(self, text: str, column: str) -> List[Any]:
        return [row[column] for row in self.query(text) if column in row]

    def get_stats(self) -> Dict[str, int]:
        """Number of calls per operation since the store was created."""
        return dict(self._stats)


__all__ = ["PostgresStore"]
