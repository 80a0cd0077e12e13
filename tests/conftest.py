"""Shared test fixtures for Tablewright."""

import os
from collections.abc import Generator
from pathlib import Path

import pytest

from tablewright import (
    FieldSchema,
    InMemorySchemaSource,
    RelationshipSchema,
    SchemaDocument,
    SchemaRegistry,
    SQLSchemaSource,
    TableSchema,
)
from tablewright.core.connection import DatabaseConnection


def _psycopg_available() -> bool:
    """Check if psycopg is installed."""
    try:
        import psycopg  # noqa: F401

        return True
    except ImportError:
        return False


# Skip marker for tests requiring PostgreSQL
requires_postgresql = pytest.mark.skipif(
    not _psycopg_available() or not os.environ.get("TEST_DATABASE_URL"),
    reason="set TEST_DATABASE_URL and install tablewright[postgresql]",
)


def make_users_table(**overrides: object) -> TableSchema:
    """Active ``users`` table exercising every data type and constraint kind."""
    data: dict[str, object] = {
        "id": "tbl-users",
        "table_name": "users",
        "name": "Users",
        "status": "active",
        "fields": [
            {"field_name": "id", "data_type": "text", "is_primary_key": True, "order": 0},
            {
                "field_name": "email",
                "name": "Email",
                "data_type": "text",
                "is_required": True,
                "field_config": {"max_length": 255, "pattern": r"^[^@\s]+@[^@\s]+\.[a-z]+$"},
                "order": 1,
            },
            {
                "field_name": "full_name",
                "name": "Full name",
                "data_type": "text",
                "is_required": True,
                "field_config": {"min_length": 2, "max_length": 100},
                "order": 2,
            },
            {
                "field_name": "age",
                "name": "Age",
                "data_type": "number",
                "field_config": {"min_value": 0, "max_value": 150, "precision": 3, "scale": 0},
                "order": 3,
            },
            {
                "field_name": "balance",
                "name": "Balance",
                "data_type": "number",
                "default_value": "0",
                "field_config": {"precision": 12, "scale": 2},
                "order": 4,
            },
            {
                "field_name": "is_active",
                "name": "Active",
                "data_type": "boolean",
                "is_required": True,
                "default_value": "true",
                "order": 5,
            },
            {
                "field_name": "created_at",
                "data_type": "date",
                "is_required": True,
                "default_value": "now",
                "order": 6,
            },
            {"field_name": "updated_at", "data_type": "date", "order": 7},
        ],
    }
    data.update(overrides)
    return TableSchema.model_validate(data)


def make_orders_table(**overrides: object) -> TableSchema:
    data: dict[str, object] = {
        "id": "tbl-orders",
        "table_name": "orders",
        "name": "Orders",
        "status": "active",
        "fields": [
            {"field_name": "id", "data_type": "text", "is_primary_key": True, "order": 0},
            {"field_name": "user_id", "data_type": "text", "is_required": True, "order": 1},
            {
                "field_name": "total",
                "data_type": "number",
                "is_required": True,
                "field_config": {"min_value": 0},
                "order": 2,
            },
            {
                "field_name": "status",
                "data_type": "text",
                "default_value": "pending",
                "field_config": {"max_length": 20},
                "order": 3,
            },
            {"field_name": "created_at", "data_type": "date", "order": 4},
        ],
    }
    data.update(overrides)
    return TableSchema.model_validate(data)


def make_user_orders_relationship(**cascade: str) -> RelationshipSchema:
    return RelationshipSchema(
        name="user_orders",
        source_table="users",
        source_field="id",
        target_table="orders",
        target_field="user_id",
        cascade_config=cascade or {},
    )


def text_field(name: str, **kwargs: object) -> FieldSchema:
    return FieldSchema.model_validate({"field_name": name, "data_type": "text", **kwargs})


@pytest.fixture
def users_table() -> TableSchema:
    return make_users_table()


@pytest.fixture
def orders_table() -> TableSchema:
    return make_orders_table()


@pytest.fixture
def user_orders() -> RelationshipSchema:
    return make_user_orders_relationship()


@pytest.fixture
def document(
    users_table: TableSchema, orders_table: TableSchema, user_orders: RelationshipSchema
) -> SchemaDocument:
    return SchemaDocument(tables=[users_table, orders_table], relationships=[user_orders])


@pytest.fixture
def memory_source(document: SchemaDocument) -> InMemorySchemaSource:
    return InMemorySchemaSource.from_document(document)


@pytest.fixture
def registry(memory_source: InMemorySchemaSource) -> Generator[SchemaRegistry, None, None]:
    reg = SchemaRegistry(memory_source)
    yield reg
    reg.close()


@pytest.fixture
def sqlite_url(tmp_path: Path) -> str:
    """SQLite file URL in a per-test directory."""
    return f"sqlite:///{tmp_path / 'tablewright.db'}"


@pytest.fixture
def sqlite_connection(sqlite_url: str) -> Generator[DatabaseConnection, None, None]:
    conn = DatabaseConnection(sqlite_url)
    yield conn
    conn.close()


@pytest.fixture
def sql_source(sqlite_connection: DatabaseConnection) -> SQLSchemaSource:
    source = SQLSchemaSource(sqlite_connection)
    source.initialize()
    return source
