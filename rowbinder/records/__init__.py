"""
Record layer for rowbinder.

Exports the active record, its collaborator bundle and the metadata-driven
helpers it is built from (codec, schema catalog, record cache, templates,
model registry, localisation overlay).
"""

from rowbinder.records.abstract import CacheBackend, HistoryStore, Store, TemplateResolver
from rowbinder.records.cache import RecordCache
from rowbinder.records.catalog import SchemaCatalog, parse_type_info
from rowbinder.records.codec import coerce, encode, render
from rowbinder.records.context import MemoryHistory, RecordContext
from rowbinder.records.query import Paging
from rowbinder.records.record import Record
from rowbinder.records.registry import ModelRegistry
from rowbinder.records.templates import TemplateQueries, TextTemplates

__all__ = [
    "CacheBackend",
    "HistoryStore",
    "Store",
    "TemplateResolver",
    "RecordCache",
    "SchemaCatalog",
    "parse_type_info",
    "coerce",
    "encode",
    "render",
    "MemoryHistory",
    "RecordContext",
    "Paging",
    "Record",
    "ModelRegistry",
    "TemplateQueries",
    "TextTemplates",
]
