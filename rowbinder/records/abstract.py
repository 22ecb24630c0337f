"""
Collaborator interfaces for the record layer.

The record layer talks to four collaborators it does not implement itself:
the relational store, the persistent key/value backend beneath the record
cache, the query template resolver, and (for temporal tables) the history
recorder. Each is a structural Protocol so that production adapters and test
fakes can be passed interchangeably.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Protocol, runtime_checkable


@runtime_checkable
class Store(Protocol):
    """
    Relational store executing literal statements.

    Store failures are never raised to the caller: they are recorded in
    `last_error()` and reported as -1 affected rows or an empty rowset.
    """

    def describe_table(self, name: str) -> List[Dict[str, Any]]:
        """
        Return one row per column with the keys `Field`, `Type`, `Null`,
        `Key`, `Default` and `Extra`, in column order.
        """
        ...

    def query(self, text: str) -> List[Dict[str, Any]]:
        """Run a row-returning statement. Empty list on failure."""
        ...

    def execute(self, text: str) -> int:
        """Run a modifying statement and return affected rows, -1 on failure."""
        ...

    def last_insert_id(self) -> int:
        """Id generated by the most recent successful insert, -1 if none."""
        ...

    def last_error(self) -> str:
        """Error message of the most recent failed call, empty on success."""
        ...


@runtime_checkable
class CacheBackend(Protocol):
    """
    Persistent key/value tier beneath the record cache.

    Values are opaque bytes; keys are namespaced strings such as
    `metadata/orders` or `models/orders/5`.
    """

    def has(self, key: str) -> bool: ...

    def get(self, key: str) -> Optional[bytes]: ...

    def set(self, key: str, value: bytes) -> None: ...

    def delete(self, key: str) -> None: ...

    def list_keys_by_prefix(self, prefix: str) -> List[str]: ...


@runtime_checkable
class TemplateResolver(Protocol):
    """
    Turns a named query template plus parameters into a literal statement.
    """

    def render(self, module_name: str, template_name: str, params: Mapping[str, Any]) -> str:
        """Render a template found by name, module templates first."""
        ...

    def has_template(self, module_name: str, template_name: str) -> bool:
        """True when the module provides its own template with that name."""
        ...

    def render_text(self, text: str, params: Mapping[str, Any]) -> str:
        """Substitute parameters into raw template text."""
        ...


@runtime_checkable
class HistoryStore(Protocol):
    """
    Records historical snapshots of temporal tables.
    """

    def save(
        self,
        table_name: str,
        id: Any,
        operation: str,
        delta: Mapping[str, Any],
        snapshot: Mapping[str, Any],
    ) -> None: ...

    def get_revision(self, table_name: str, id: Any, revision_date: datetime) -> Optional[Dict[str, Any]]:
        """Snapshot of the row as it was at `revision_date`, None if unknown."""
        ...


__all__ = ["Store", "CacheBackend", "TemplateResolver", "HistoryStore"]
