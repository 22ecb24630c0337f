"""
Column type categories.

Store type names (MySQL names as returned by DESCRIBE, PostgreSQL udt names as
found in information_schema) are folded into a small fixed set of categories.
Encoding, quoting and localisation decisions are made per category, never per
raw type name.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Union


class TypeCategory(str, Enum):
    """Normalized category of a column type."""

    INTEGER = "integer"
    FLOAT = "float"
    STRING = "string"
    TEXT = "text"
    BLOB = "blob"
    DATE = "date"
    ENUM = "enum"
    OTHER = "other"


# A field value as carried by record data maps and change buffers.
FieldValue = Union[int, float, Decimal, str, bytes, bool, date, datetime, None]

_CATEGORIES = {
    TypeCategory.INTEGER: frozenset(
        {
            "tinyint", "smallint", "mediumint", "int", "integer", "bigint",
            "int2", "int4", "int8", "serial", "smallserial", "bigserial",
            "serial2", "serial4", "serial8",
        }
    ),
    TypeCategory.FLOAT: frozenset(
        {"float", "double", "decimal", "numeric", "real", "float4", "float8", "money"}
    ),
    TypeCategory.STRING: frozenset({"char", "varchar", "bpchar", "character", "nchar", "nvarchar"}),
    TypeCategory.TEXT: frozenset(
        {"tinytext", "mediumtext", "text", "longtext", "json", "jsonb", "xml", "citext"}
    ),
    TypeCategory.BLOB: frozenset({"tinyblob", "mediumblob", "blob", "longblob", "bytea", "binary", "varbinary"}),
    TypeCategory.DATE: frozenset(
        {"date", "datetime", "time", "timestamp", "timestamptz", "timetz", "year", "interval"}
    ),
    TypeCategory.ENUM: frozenset({"enum"}),
}


def classify(base_type: str) -> TypeCategory:
    """
    Map a raw store type name to its category.

    Parameters
    ----------
    base_type : str
        Type name without length or modifiers, e.g. "varchar" or "int4".

    Returns
    -------
    TypeCategory
        The category, or OTHER for unknown names.
    """
    name = (base_type or "").strip().lower()
    for category, names in _CATEGORIES.items():
        if name in names:
            return category
    return TypeCategory.OTHER


def is_numeric(category: TypeCategory) -> bool:
    return category in (TypeCategory.INTEGER, TypeCategory.FLOAT)


def is_blob(category: TypeCategory) -> bool:
    return category in (TypeCategory.TEXT, TypeCategory.BLOB)


def needs_quotes(category: TypeCategory) -> bool:
    """Every category except the numeric ones is rendered as a quoted literal."""
    return not is_numeric(category)


def field_alignment(category: TypeCategory) -> str:
    """Alignment used when rendering values of this category in tables."""
    return "right" if is_numeric(category) else "left"


def is_localisable(category: TypeCategory) -> bool:
    return category in (TypeCategory.STRING, TypeCategory.TEXT)


__all__ = [
    "TypeCategory",
    "FieldValue",
    "classify",
    "is_numeric",
    "is_blob",
    "needs_quotes",
    "field_alignment",
    "is_localisable",
]
