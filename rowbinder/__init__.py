"""
rowbinder - metadata-driven record mapping for relational stores.

Binds table rows to Python objects without hand-written mapping code. Column
metadata is introspected from the store and cached; reads and writes go
through named SQL templates filled with values encoded against that metadata.

- Type-aware value encoding and markup stripping
- Cached schema introspection
- Two-tier record cache (process memo over a persistent byte backend)
- Buffered updates, inserts and deletes with lifecycle hooks and history
- Filtered, paged and random selection with per-model template overrides
- JSON-embedded per-language overlays
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

from rowbinder.config import Settings, get_settings
from rowbinder.errors import (
    ChangeSetError,
    IdentityConflictError,
    RevisionUnavailableError,
    RowBinderError,
    TemplateNotFoundError,
)
from rowbinder.records import MemoryHistory, ModelRegistry, Paging, Record, RecordContext, TextTemplates
from rowbinder.utils.logging import configure_logging, get_logger

__all__ = [
    "__version__",
    "__license__",
    "Settings",
    "get_settings",
    "ChangeSetError",
    "IdentityConflictError",
    "RevisionUnavailableError",
    "RowBinderError",
    "TemplateNotFoundError",
    "MemoryHistory",
    "ModelRegistry",
    "Paging",
    "Record",
    "RecordContext",
    "TextTemplates",
    "configure_logging",
    "get_logger",
]
