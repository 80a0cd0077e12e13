"""Schema sources, metadata tables and the schema registry."""

from tablewright.schema.models import DataField, DataTable, TableRelationship
from tablewright.schema.registry import (
    CacheStats,
    PaginationDefaults,
    SchemaRegistry,
    TableExistence,
)
from tablewright.schema.source import InMemorySchemaSource, SchemaSource, SQLSchemaSource

__all__ = [
    "SchemaRegistry",
    "TableExistence",
    "CacheStats",
    "PaginationDefaults",
    "SchemaSource",
    "InMemorySchemaSource",
    "SQLSchemaSource",
    "DataTable",
    "DataField",
    "TableRelationship",
]
