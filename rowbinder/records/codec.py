"""
Type-aware value coding.

Turns application values into store-safe literals according to the column
they are written to. Every function here is total: malformed numbers coerce to
0 / 0.0, empty dates become NULL, and nothing raises. Validation belongs to the
application, which relies on this coercion-to-default behavior.

The work is split in two steps so the record layer can keep the coerced value
(what actually lands in the row) apart from its literal text:

    coerce(value, column)  -> FieldValue   (None, str, float or int)
    render(coerced)        -> str          (NULL, 'quoted', 1.5, 42)
    encode(value, column)  == render(coerce(value, column))
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from rowbinder.domain.models import ColumnDescriptor
from rowbinder.domain.types import FieldValue, TypeCategory

NULL = "NULL"

_MARKUP_RE = re.compile(r"<!--.*?-->|<[^>]*>", re.DOTALL)
_FLOAT_PREFIX_RE = re.compile(r"^\s*[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")
_INT_PREFIX_RE = re.compile(r"^\s*[+-]?\d+")


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "1" if value else ""
    if isinstance(value, datetime):
        return value.isoformat(sep=" ")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    return str(value)


def strip_markup(text: str) -> str:
    """Remove HTML/XML tags and comments, keeping the text between them."""
    return _MARKUP_RE.sub("", text)


def quote(text: str) -> str:
    """Wrap text in single quotes, doubling embedded quotes."""
    return "'" + text.replace("'", "''") + "'"


def to_float(value: Any) -> float:
    """
    Parse a float leniently.

    `,` is read as a decimal separator; the longest numeric prefix is used and
    anything unparseable or non-finite becomes 0.0.
    """
    if isinstance(value, Decimal):
        result = float(value) if value.is_finite() else 0.0
    elif isinstance(value, (bool, int, float)):
        try:
            result = float(value)
        except OverflowError:
            result = 0.0
    else:
        match = _FLOAT_PREFIX_RE.match(_as_text(value).replace(",", "."))
        result = float(match.group(0)) if match else 0.0
    return result if math.isfinite(result) else 0.0


def to_int(value: Any) -> int:
    """
    Parse an integer leniently.

    `,` is read as a grouping separator and dropped; the leading integer part
    is used and anything unparseable becomes 0.
    """
    if isinstance(value, (bool, int)):
        return int(value)
    if isinstance(value, Decimal):
        return int(value) if value.is_finite() else 0
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else 0
    match = _INT_PREFIX_RE.match(_as_text(value).replace(",", ""))
    return int(match.group(0)) if match else 0


def coerce(value: Any, column: ColumnDescriptor, allow_html: bool = False) -> FieldValue:
    """
    Coerce `value` to what the column will store.

    Parameters
    ----------
    value : Any
        Application value.
    column : ColumnDescriptor
        Target column metadata.
    allow_html : bool
        Keep markup in quoted values instead of stripping it.

    Returns
    -------
    FieldValue
        None for NULL, str for quoted columns, float for float columns,
        int otherwise.
    """
    if column.nullable and value is None:
        return None
    if column.type is TypeCategory.DATE and (value is None or value == ""):
        return None
    if column.quotes_required:
        text = _as_text(value)
        return text if allow_html else strip_markup(text)
    if column.type is TypeCategory.FLOAT:
        return to_float(value)
    return to_int(value)


def render(value: FieldValue) -> str:
    """Render a coerced value as a literal."""
    if value is None:
        return NULL
    if isinstance(value, str):
        return quote(value)
    if isinstance(value, float):
        return repr(value)
    return str(value)


def encode(value: Any, column: ColumnDescriptor, allow_html: bool = False) -> str:
    """
    Convert an application value into a literal for `column`. Never raises.

    Examples
    --------
    >>> encode("O'Brien", varchar_column)
    "'O''Brien'"
    >>> encode("12,50", decimal_column)
    '12.5'
    """
    return render(coerce(value, column, allow_html=allow_html))


__all__ = [
    "NULL",
    "coerce",
    "encode",
    "quote",
    "render",
    "strip_markup",
    "to_float",
    "to_int",
]
