"""Core types for Tablewright schemas.

All types are JSON-serializable so table definitions can round-trip through
the designer UI, schema files and the metadata tables.
"""

from __future__ import annotations

import hashlib
import json
from datetime import datetime
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

AUTO_TIMESTAMP_FIELDS = frozenset({"created_at", "updated_at"})


class DataType(StrEnum):
    """Field data types supported by the designer."""

    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    BOOLEAN = "boolean"

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid data type values."""
        return [t.value for t in cls]


class TableStatus(StrEnum):
    """Lifecycle of a designed table."""

    DRAFT = "draft"
    ACTIVE = "active"
    DEPRECATED = "deprecated"
    DELETED = "deleted"

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid status values."""
        return [s.value for s in cls]


class RelationshipType(StrEnum):
    """Relationship cardinalities between tables."""

    ONE_TO_MANY = "one_to_many"  # e.g., users -> orders

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid relationship type values."""
        return [t.value for t in cls]


class OnDeleteAction(StrEnum):
    """Referential actions when a referenced row is deleted."""

    CASCADE = "cascade"
    RESTRICT = "restrict"
    SET_NULL = "set_null"

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid on_delete values."""
        return [a.value for a in cls]


class OnUpdateAction(StrEnum):
    """Referential actions when a referenced key changes."""

    CASCADE = "cascade"
    RESTRICT = "restrict"

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid on_update values."""
        return [a.value for a in cls]


class FieldConfig(BaseModel):
    """Per-field constraints. Unknown keys are kept for forward compatibility."""

    max_length: int | None = None
    min_length: int | None = None
    pattern: str | None = None
    precision: int | None = None
    scale: int | None = None
    min_value: float | None = None
    max_value: float | None = None
    format: str | None = None

    model_config = ConfigDict(extra="allow")


class FieldSchema(BaseModel):
    """A column of a designed table.

    Primary keys and ``created_at`` are always immutable, whatever the
    caller passes for ``immutable``.
    """

    id: str | None = None
    name: str = Field(default="", description="Display name; defaults to field_name")
    field_name: str = Field(..., description="Column identifier (snake_case)")
    data_type: DataType = Field(..., description="Field data type")
    is_required: bool = False
    is_primary_key: bool = False
    immutable: bool = False
    default_value: str | None = Field(
        default=None, description="Default as entered in the designer, e.g. 'now' or '0'"
    )
    field_config: FieldConfig = Field(default_factory=FieldConfig)
    order: int = 0

    model_config = ConfigDict(use_enum_values=True)

    @field_validator("default_value", mode="before")
    @classmethod
    def _stringify_default(cls, value: Any) -> Any:
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, int | float):
            return str(value)
        return value

    @model_validator(mode="after")
    def _enforce_immutability(self) -> FieldSchema:
        if not self.name:
            self.name = self.field_name
        if self.is_primary_key or self.field_name == "created_at":
            self.immutable = True
        return self

    @property
    def has_default(self) -> bool:
        return self.default_value is not None and self.default_value != ""


class CascadeConfig(BaseModel):
    """Referential actions for a foreign key."""

    on_delete: OnDeleteAction = OnDeleteAction.RESTRICT
    on_update: OnUpdateAction = OnUpdateAction.CASCADE

    model_config = ConfigDict(use_enum_values=True)


class RelationshipSchema(BaseModel):
    """A one-to-many link; the foreign key lives on the target table."""

    id: str | None = None
    name: str | None = None
    source_table: str = Field(..., description="Referenced ('one' side) table")
    source_field: str = Field(..., description="Referenced column, usually the primary key")
    target_table: str = Field(..., description="Referencing ('many' side) table")
    target_field: str = Field(..., description="Foreign key column")
    relationship_type: RelationshipType = RelationshipType.ONE_TO_MANY
    cascade_config: CascadeConfig = Field(default_factory=CascadeConfig)

    model_config = ConfigDict(use_enum_values=True)

    @model_validator(mode="after")
    def _reject_self_reference(self) -> RelationshipSchema:
        if self.source_table == self.target_table:
            raise ValueError(
                f"Self-referencing relationship on '{self.source_table}' is not supported. "
                "Link two different tables."
            )
        return self

    @property
    def key(self) -> tuple[str, str, str, str]:
        """Structural identity used when diffing relationship sets."""
        return (self.source_table, self.source_field, self.target_table, self.target_field)


class TableSchema(BaseModel):
    """A designed table with its ordered fields and relationships."""

    id: str | None = None
    table_name: str = Field(..., description="SQL table identifier")
    project_id: str = Field(default="default")
    name: str = Field(default="", description="Display name; defaults to table_name")
    status: TableStatus = TableStatus.DRAFT
    fields: list[FieldSchema] = Field(default_factory=list)
    relationships: list[RelationshipSchema] = Field(default_factory=list)
    searchable_fields: list[str] | None = None
    default_sort: str = "created_at"
    default_order: Literal["asc", "desc"] = "desc"
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = ConfigDict(use_enum_values=True)

    @model_validator(mode="after")
    def _check_fields(self) -> TableSchema:
        if not self.name:
            self.name = self.table_name
        self.fields = sorted(self.fields, key=lambda f: f.order)

        seen: set[str] = set()
        duplicates: list[str] = []
        for field in self.fields:
            if field.field_name in seen:
                duplicates.append(field.field_name)
            seen.add(field.field_name)
        if duplicates:
            raise ValueError(
                f"Duplicate field names in '{self.table_name}': {', '.join(duplicates)}"
            )

        primary_keys = [f.field_name for f in self.fields if f.is_primary_key]
        if len(primary_keys) > 1:
            raise ValueError(
                f"Table '{self.table_name}' has {len(primary_keys)} primary keys "
                f"({', '.join(primary_keys)}); at most one is allowed."
            )

        if self.searchable_fields is None:
            self.searchable_fields = [
                f.field_name
                for f in self.fields
                if f.data_type == DataType.TEXT and "id" not in f.field_name
            ]
        return self

    @property
    def is_active(self) -> bool:
        return self.status == TableStatus.ACTIVE

    @property
    def field_names(self) -> list[str]:
        return [f.field_name for f in self.fields]

    def get_field(self, field_name: str) -> FieldSchema | None:
        """Return the field with the given column name, if any."""
        for field in self.fields:
            if field.field_name == field_name:
                return field
        return None

    @property
    def primary_key(self) -> FieldSchema | None:
        """The primary key field: the one flagged, else a field named ``id``."""
        for field in self.fields:
            if field.is_primary_key:
                return field
        return self.get_field("id")

    def required_fields(self) -> list[FieldSchema]:
        return [f for f in self.fields if f.is_required]

    def fields_by_type(self, data_type: DataType | str) -> list[FieldSchema]:
        return [f for f in self.fields if f.data_type == data_type]

    def schema_hash(self) -> str:
        """Stable SHA-256 over the structural definition.

        Ids, timestamps and display names are excluded, so only changes that
        affect generated SQL or endpoints alter the hash.
        """
        payload = {
            "table_name": self.table_name,
            "status": self.status,
            "fields": [
                f.model_dump(mode="json", exclude={"id", "name"}) for f in self.fields
            ],
            "relationships": sorted(
                (r.model_dump(mode="json", exclude={"id", "name"}) for r in self.relationships),
                key=lambda r: json.dumps(r, sort_keys=True),
            ),
        }
        encoded = json.dumps(payload, sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


class SchemaDocument(BaseModel):
    """A project snapshot: tables plus the relationships between them."""

    tables: list[TableSchema] = Field(default_factory=list)
    relationships: list[RelationshipSchema] = Field(default_factory=list)

    def get_table(self, table_name: str) -> TableSchema | None:
        for table in self.tables:
            if table.table_name == table_name:
                return table
        return None

    @property
    def table_names(self) -> list[str]:
        return [t.table_name for t in self.tables]
