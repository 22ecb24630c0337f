"""
Domain models for rowbinder.

Defines the column metadata built from store introspection, the per-table
schema that groups it, and the registration entry describing a mapped model.
All three are serialized to JSON for the cache and must round-trip through
`model_dump(mode="json")` / `model_validate`.
"""
from __future__ import annotations

from typing import Any, Dict, Iterator, List, Optional

from pydantic import BaseModel, ConfigDict, Field, RootModel, computed_field

from rowbinder.domain.types import (
    TypeCategory,
    field_alignment,
    is_blob,
    is_numeric,
    needs_quotes,
)


class ColumnDescriptor(BaseModel):
    """
    Metadata for a single column of a table.

    `numeric`, `blob`, `quotes_required` and `align` are derived from `type`
    and cannot drift from it.
    """

    name: str = Field(..., description="Column name.")
    table_name: str = Field("", description="Owning table.")
    type: TypeCategory = Field(TypeCategory.OTHER, description="Normalized type category.")
    base_type: str = Field("", description="Raw store type name, e.g. 'varchar'.")
    length: Optional[int] = Field(None, description="Declared length or precision.")
    not_null: bool = False
    primary_key: bool = False
    unique_key: bool = False
    multiple_key: bool = False
    auto_increment: bool = False
    unsigned: bool = False
    nullable: bool = True
    enum_values: Optional[List[str]] = None
    default_value: Optional[str] = None

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def numeric(self) -> bool:
        return is_numeric(self.type)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def blob(self) -> bool:
        return is_blob(self.type)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def quotes_required(self) -> bool:
        return needs_quotes(self.type)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def align(self) -> str:
        return field_alignment(self.type)


class TableSchema(RootModel[Dict[str, ColumnDescriptor]]):
    """
    Ordered mapping of column name to ColumnDescriptor for one table.

    An empty schema means "no known columns", never an error.
    """

    root: Dict[str, ColumnDescriptor] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    def __iter__(self) -> Iterator[str]:  # type: ignore[override]
        return iter(self.root)

    def __getitem__(self, name: str) -> ColumnDescriptor:
        return self.root[name]

    def __contains__(self, name: object) -> bool:
        return name in self.root

    def __len__(self) -> int:
        return len(self.root)

    def get(self, name: str, default: Optional[ColumnDescriptor] = None) -> Optional[ColumnDescriptor]:
        return self.root.get(name, default)

    def columns(self) -> List[ColumnDescriptor]:
        return list(self.root.values())

    def names(self) -> List[str]:
        return list(self.root)

    @classmethod
    def from_columns(cls, columns: List[ColumnDescriptor]) -> "TableSchema":
        return cls({column.name: column for column in columns})


class ModelInfo(BaseModel):
    """
    Registration entry binding a table to a model class.
    """

    table_name: str = Field(..., description="Mapped table.")
    class_name: str = Field("", description="Model class name used for override lookups.")
    module: str = Field("", description="Module scope for module templates.")
    i18n: List[str] = Field(default_factory=list, description="Localisable field names.")
    params: Dict[str, Any] = Field(default_factory=dict, description="Free-form model options.")
    overrides: Dict[str, str] = Field(
        default_factory=dict,
        description="Operation name to module template name, e.g. {'Search': 'Order_Search'}.",
    )

    model_config = ConfigDict(frozen=True, populate_by_name=True)


__all__ = ["ColumnDescriptor", "TableSchema", "ModelInfo"]
