"""Tablewright - runtime schema registry and API toolkit for designed tables.

Tables are designed as data (fields, types, constraints, relationships).
Tablewright caches those definitions, validates API requests against them,
plans PostgreSQL migrations between two versions of a design and generates
CRUD endpoint descriptors with OpenAPI documentation.

Example:
    from tablewright import InMemorySchemaSource, SchemaDocument, Tablewright, TableSchema

    users = TableSchema.model_validate({
        "table_name": "users",
        "status": "active",
        "fields": [
            {"field_name": "id", "data_type": "text", "is_primary_key": True},
            {"field_name": "email", "data_type": "text", "is_required": True},
        ],
    })

    with Tablewright(source=InMemorySchemaSource([users])) as tw:
        result = tw.validate_request("users", "create", body={"email": "a@b.co"})
        plan = tw.plan_migration(SchemaDocument(), SchemaDocument(tables=[users]))
"""

from tablewright.api import (
    APIGenerator,
    EndpointRegistration,
    EndpointRegistry,
    GeneratedAPI,
    GeneratedEndpoint,
    RegisteredEndpoint,
    SyncResult,
)
from tablewright.core.config import EndpointRegistryConfig, RateLimit, RegistrySettings
from tablewright.core.engine import Tablewright
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
from tablewright.exceptions import (
    ConstraintViolationError,
    DatabaseConnectionError,
    EndpointNotFoundError,
    InvalidRelationshipError,
    MalformedIdentifierError,
    MigrationExecutionError,
    RequestValidationError,
    SchemaFetchError,
    SchemaFetchTimeoutError,
    SchemaNotFoundError,
    TablewrightError,
    UnsupportedOperationError,
    UnsupportedTypeError,
)
from tablewright.migrations import MigrationPlan, MigrationPlanner, generate_migration_plan
from tablewright.schema import InMemorySchemaSource, SchemaRegistry, SchemaSource, SQLSchemaSource
from tablewright.validation import (
    FieldIssue,
    Operation,
    RequestValidator,
    ValidationContext,
    ValidationResult,
)

__version__ = "0.1.0"

__all__ = [
    # Main classes
    "Tablewright",
    "SchemaRegistry",
    "RequestValidator",
    "MigrationPlanner",
    "APIGenerator",
    "EndpointRegistry",
    # Sources
    "SchemaSource",
    "InMemorySchemaSource",
    "SQLSchemaSource",
    # Types
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
    # Config
    "RegistrySettings",
    "EndpointRegistryConfig",
    "RateLimit",
    # Results
    "ValidationContext",
    "ValidationResult",
    "FieldIssue",
    "Operation",
    "MigrationPlan",
    "generate_migration_plan",
    "GeneratedAPI",
    "GeneratedEndpoint",
    "RegisteredEndpoint",
    "EndpointRegistration",
    "SyncResult",
    # Exceptions
    "TablewrightError",
    "DatabaseConnectionError",
    "SchemaNotFoundError",
    "SchemaFetchError",
    "SchemaFetchTimeoutError",
    "RequestValidationError",
    "UnsupportedOperationError",
    "UnsupportedTypeError",
    "MalformedIdentifierError",
    "InvalidRelationshipError",
    "EndpointNotFoundError",
    "MigrationExecutionError",
    "ConstraintViolationError",
]
