"""
Schema catalog.

Resolves the column metadata of a table, consulting the record cache before
introspecting the store. Descriptors are built once per table and are
immutable afterwards; invalidation drops whole tables, never single columns.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Mapping, Optional, TypedDict

from pydantic import ValidationError

from rowbinder.domain.models import ColumnDescriptor, TableSchema
from rowbinder.domain.types import classify
from rowbinder.records.abstract import Store
from rowbinder.records.cache import RecordCache, metadata_key
from rowbinder.utils.logging import get_logger

log = get_logger(__name__)

_ENUM_LABEL_RE = re.compile(r"'((?:[^']|'')*)'")
_LEADING_INT_RE = re.compile(r"^\s*(\d+)")


class TypeInfo(TypedDict, total=False):
    """Parsed form of a raw type string such as "int(10) unsigned"."""

    base_type: str
    length: Optional[int]
    enum_values: Optional[List[str]]
    unsigned: bool


def parse_type_info(raw_type: str) -> TypeInfo:
    """
    Parse a raw column type string.

    The string has the form `basetype(length or enum-list) [unsigned]`. The
    text inside the parentheses is an enum label list when the base type is
    `enum`, a numeric length otherwise. An `unsigned` token anywhere after the
    base type sets the unsigned flag.

    Parameters
    ----------
    raw_type : str
        e.g. "varchar(255)", "decimal(10,2) unsigned", "enum('a','b')".

    Returns
    -------
    TypeInfo
    """
    text = (raw_type or "").strip()
    head, paren, rest = text.partition("(")
    inner, tail = "", ""
    if paren:
        inner, closing, tail = rest.rpartition(")")
        if not closing:
            inner, tail = rest, ""
    head_tokens = head.split()
    base_type = head_tokens[0].lower() if head_tokens else ""
    tail_tokens = [token.lower() for token in head_tokens[1:] + tail.split()]

    info = TypeInfo(base_type=base_type, length=None, enum_values=None, unsigned="unsigned" in tail_tokens)
    if paren:
        if base_type == "enum":
            labels = _ENUM_LABEL_RE.findall(inner)
            if labels:
                info["enum_values"] = [label.replace("''", "'") for label in labels]
            else:
                info["enum_values"] = [part.strip() for part in inner.split(",") if part.strip()]
        else:
            match = _LEADING_INT_RE.match(inner)
            info["length"] = int(match.group(1)) if match else None
    return info


def _column_value(row: Mapping[str, Any], key: str) -> Any:
    if key in row:
        return row[key]
    return row.get(key.lower())


def build_column(table_name: str, row: Mapping[str, Any]) -> ColumnDescriptor:
    """Build a ColumnDescriptor from one describe-style row."""
    info = parse_type_info(str(_column_value(row, "Type") or ""))
    null_flag = str(_column_value(row, "Null") or "").upper()
    key_flag = str(_column_value(row, "Key") or "").upper()
    extra = str(_column_value(row, "Extra") or "").lower()
    default = _column_value(row, "Default")
    return ColumnDescriptor(
        name=str(_column_value(row, "Field")),
        table_name=table_name,
        type=classify(info["base_type"]),
        base_type=info["base_type"],
        length=info.get("length"),
        not_null=null_flag == "NO",
        primary_key=key_flag == "PRI",
        unique_key=key_flag == "UNI",
        multiple_key=key_flag == "MUL",
        auto_increment="auto_increment" in extra,
        unsigned=info["unsigned"],
        nullable=null_flag == "YES",
        enum_values=info.get("enum_values"),
        default_value=None if default is None else str(default),
    )


class SchemaCatalog:
    """
    Resolves and memoizes TableSchema objects.

    Parameters
    ----------
    store : Store
        Store used for schema introspection on cache misses.
    cache : RecordCache
        Cache holding serialized schemas under `metadata/<table>`.
    """

    def __init__(self, store: Store, cache: RecordCache) -> None:
        self.store = store
        self.cache = cache
        self._schemas: Dict[str, TableSchema] = {}

    def get_schema(self, table_name: str) -> TableSchema:
        """
        Return the schema of `table_name`.

        An empty schema is returned (and not cached) when the store knows no
        columns for the table or introspection failed.
        """
        memoized = self._schemas.get(table_name)
        if memoized is not None and self.cache.has(metadata_key(table_name)):
            return memoized

        cached = self.cache.get_metadata(table_name)
        if cached is not None:
            try:
                schema = TableSchema.model_validate(cached)
            except ValidationError as exc:
                log.warning(
                    f"Cached schema for {table_name} is malformed; re-introspecting",
                    extra={"table": table_name, "error": str(exc)},
                )
                self.cache.delete_metadata(table_name)
            else:
                self._schemas[table_name] = schema
                return schema

        schema = self.introspect(table_name)
        if len(schema) > 0:
            self.cache.set_metadata(table_name, schema)
            self._schemas[table_name] = schema
        else:
            log.warning(
                f"No columns found for table {table_name}",
                extra={"table": table_name, "store_error": self.store.last_error()},
            )
        return schema

    def introspect(self, table_name: str) -> TableSchema:
        """
        Describe `table_name` in the store, bypassing every cache.

        A store that fails while describing the table yields an empty schema.
        """
        try:
            rows = self.store.describe_table(table_name)
            columns = [build_column(table_name, row) for row in rows]
        except Exception as exc:
            log.warning(
                f"Introspection of {table_name} failed",
                extra={"table": table_name, "error": str(exc)},
            )
            return TableSchema()
        return TableSchema.from_columns(columns)

    def invalidate(self, table_name: str) -> None:
        self._schemas.pop(table_name, None)
        self.cache.delete_metadata(table_name)

    def clear(self) -> int:
        """Drop every cached schema; returns the number of persisted entries removed."""
        self._schemas.clear()
        return self.cache.invalidate_all_metadata()


__all__ = ["SchemaCatalog", "TypeInfo", "build_column", "parse_type_info"]
