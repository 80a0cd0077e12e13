"""Core components for Tablewright."""

from tablewright.core.config import EndpointRegistryConfig, RateLimit, RegistrySettings
from tablewright.core.connection import DatabaseConnection
from tablewright.core.types import (
    CascadeConfig,
    DataType,
    FieldConfig,
    FieldSchema,
    OnDeleteAction,
    OnUpdateAction,
    RelationshipSchema,
    RelationshipType,
    SchemaDocument,
    TableSchema,
    TableStatus,
)

__all__ = [
    "DatabaseConnection",
    "RegistrySettings",
    "EndpointRegistryConfig",
    "RateLimit",
    "DataType",
    "TableStatus",
    "RelationshipType",
    "OnDeleteAction",
    "OnUpdateAction",
    "FieldConfig",
    "FieldSchema",
    "CascadeConfig",
    "RelationshipSchema",
    "TableSchema",
    "SchemaDocument",
]
