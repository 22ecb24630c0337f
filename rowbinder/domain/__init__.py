"""
Domain package for rowbinder.

Exports the column metadata models and type categories used by the codec,
the schema catalog and the record layer. Keep this package focused on data
definitions; it performs no I/O.
"""

from rowbinder.domain.models import ColumnDescriptor, ModelInfo, TableSchema
from rowbinder.domain.types import FieldValue, TypeCategory, classify

__all__ = [
    "ColumnDescriptor",
    "ModelInfo",
    "TableSchema",
    "FieldValue",
    "TypeCategory",
    "classify",
]
