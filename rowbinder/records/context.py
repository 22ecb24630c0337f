"""
Collaborator bundle passed to every record.

Records never reach for process-wide singletons: the store, cache, schema
catalog, templates, registry and optional history recorder all arrive through
a RecordContext. Records built from the same context share its schema catalog
and cache memo.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Mapping, Optional

from rowbinder.records.abstract import CacheBackend, HistoryStore, Store, TemplateResolver
from rowbinder.records.cache import RecordCache
from rowbinder.records.catalog import SchemaCatalog
from rowbinder.records.registry import ModelRegistry
from rowbinder.records.templates import TextTemplates

if TYPE_CHECKING:
    from rowbinder.config import Settings


def _no_editor() -> Any:
    return 0


def _no_language() -> str:
    return ""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass
class RecordContext:
    """
    Explicit dependencies of the record layer.

    Attributes
    ----------
    store : Store
        Relational store receiving every statement.
    cache : RecordCache
        Metadata and snapshot cache.
    catalog : SchemaCatalog
        Column metadata resolver, normally backed by `cache`.
    templates : TemplateResolver
        Source of query templates.
    registry : ModelRegistry
        Model registrations and their custom templates.
    history : HistoryStore | None
        Snapshot recorder for temporal records.
    editor_provider : Callable[[], Any]
        Returns the id written to `editor` columns.
    language_provider : Callable[[], str]
        Returns the language of the current session.
    """

    store: Store
    cache: RecordCache
    catalog: SchemaCatalog
    templates: TemplateResolver
    registry: ModelRegistry
    history: Optional[HistoryStore] = None
    editor_provider: Callable[[], Any] = _no_editor
    language_provider: Callable[[], str] = _no_language
    cache_on_load: Optional[bool] = None

    @classmethod
    def create(
        cls,
        store: Store,
        backend: Optional[CacheBackend] = None,
        templates: Optional[TemplateResolver] = None,
        history: Optional[HistoryStore] = None,
        editor_provider: Optional[Callable[[], Any]] = None,
        language_provider: Optional[Callable[[], str]] = None,
        cache_on_load: Optional[bool] = None,
    ) -> "RecordContext":
        """
        Wire a context around `store`, creating the cache, catalog and registry.

        Without a backend, an in-memory one is used.
        """
        if backend is None:
            from rowbinder.infrastructure.cache_backend import MemoryCacheBackend

            backend = MemoryCacheBackend()
        cache = RecordCache(backend)
        return cls(
            store=store,
            cache=cache,
            catalog=SchemaCatalog(store, cache),
            templates=templates or TextTemplates(),
            registry=ModelRegistry(cache),
            history=history,
            editor_provider=editor_provider or _no_editor,
            language_provider=language_provider or _no_language,
            cache_on_load=cache_on_load,
        )

    @classmethod
    def from_settings(cls, settings: Optional["Settings"] = None, **kwargs: Any) -> "RecordContext":
        """Build a PostgreSQL-backed context from settings."""
        from rowbinder.config import get_settings
        from rowbinder.infrastructure.postgres_store import PostgresStore

        settings = settings or get_settings()
        store = PostgresStore.from_settings(settings)
        kwargs.setdefault("cache_on_load", settings.cache_on_load)
        if settings.default_language and "language_provider" not in kwargs:
            language = settings.default_language
            kwargs["language_provider"] = lambda: language
        return cls.create(store, **kwargs)


@dataclass
class MemoryHistory:
    """
    History recorder keeping snapshots in a list.

    Revisions are answered from the newest entry saved at or before the
    requested time.
    """

    entries: List[Dict[str, Any]] = field(default_factory=list)
    clock: Callable[[], datetime] = _utcnow

    def save(
        self,
        table_name: str,
        id: Any,
        operation: str,
        delta: Mapping[str, Any],
        snapshot: Mapping[str, Any],
    ) -> None:
        self.entries.append(
            {
                "table_name": table_name,
                "id": id,
                "operation": operation,
                "delta": dict(delta),
                "snapshot": dict(snapshot),
                "saved_at": self.clock(),
            }
        )

    def get_revision(self, table_name: str, id: Any, revision_date: datetime) -> Optional[Dict[str, Any]]:
        matches = [
            entry
            for entry in self.entries
            if entry["table_name"] == table_name and str(entry["id"]) == str(id) and entry["saved_at"] <= revision_date
        ]
        if not matches:
            return None
        latest = matches[-1]
        return None if latest["operation"] == "delete" else dict(latest["snapshot"])


__all__ = ["RecordContext", "MemoryHistory"]
