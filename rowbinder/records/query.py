"""
Filter and result helpers for record queries.

Builds where-clause fragments from field -> value maps and applies client-side
paging and field blacklists to fetched rows. Filtering is tolerant: values for
fields the schema does not know are dropped, not reported as errors.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from rowbinder.domain.models import TableSchema
from rowbinder.records.codec import encode, quote, to_int
from rowbinder.utils.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class Paging:
    """
    Client-side window over a result.

    Attributes
    ----------
    offset : int
        Number of leading rows to skip.
    limit : int | None
        Maximum number of rows to keep; None keeps the rest.
    """

    offset: int = 0
    limit: Optional[int] = None


def build_conditions(
    search_params: Mapping[str, Any], schema: TableSchema, allow_html: bool = False
) -> List[str]:
    """
    Render `field = literal` / `field IS NULL` conditions.

    Parameters
    ----------
    search_params : Mapping[str, Any]
        Field -> value filter.
    schema : TableSchema
        Metadata used to encode values.
    allow_html : bool
        Passed to the codec for quoted values.
    """
    conditions = []
    for name, value in search_params.items():
        if value is None:
            conditions.append(f"{name} IS NULL")
        elif name in schema:
            conditions.append(f"{name} = {encode(value, schema[name], allow_html=allow_html)}")
        else:
            log.debug(f"Dropping filter on unknown field {name}", extra={"field": name})
    return conditions


def where_clause(conditions: Sequence[str]) -> str:
    return ("WHERE " + " AND ".join(conditions)) if conditions else ""


def id_list(ids: Iterable[Any]) -> str:
    """Comma-separated id literals; integers stay bare, anything else is quoted."""
    literals = []
    for id in ids:
        if isinstance(id, int) and not isinstance(id, bool):
            literals.append(str(id))
        elif isinstance(id, str) and id.strip().lstrip("-").isdigit():
            literals.append(str(to_int(id)))
        else:
            literals.append(quote(str(id)))
    return ", ".join(literals)


def paginate(
    rows: Iterable[Dict[str, Any]],
    paging: Optional[Paging] = None,
    blacklist: Optional[Iterable[str]] = None,
) -> List[Dict[str, Any]]:
    """
    Keep the rows whose position falls inside the paging window.

    Positions count every fetched row, starting at 0; a row is kept when
    `offset <= position < offset + limit`. Iteration stops at the end of the
    window. Blacklisted fields are removed from each kept row.
    """
    offset = max(paging.offset, 0) if paging else 0
    stop = offset + paging.limit if paging and paging.limit is not None else None
    hidden = list(blacklist or [])
    output = []
    for position, row in enumerate(rows):
        if stop is not None and position >= stop:
            break
        if position < offset:
            continue
        if hidden:
            row = {name: value for name, value in row.items() if name not in hidden}
        output.append(row)
    return output


__all__ = ["Paging", "build_conditions", "id_list", "paginate", "where_clause"]
