"""Schema sources: where the registry loads table definitions from.

``SchemaSource`` is the read contract the registry depends on. Two
implementations ship with the package: an in-memory source for tests and
embedding, and a SQL source backed by the ``tw_*`` metadata tables.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from sqlalchemy import or_
from sqlalchemy.orm import Session

from tablewright.core.types import (
    CascadeConfig,
    FieldConfig,
    FieldSchema,
    RelationshipSchema,
    SchemaDocument,
    TableSchema,
    TableStatus,
)
from tablewright.exceptions import SchemaNotFoundError
from tablewright.schema.models import Base, DataField, DataTable, TableRelationship

if TYPE_CHECKING:
    from collections.abc import Iterable

    from tablewright.core.connection import DatabaseConnection

logger = logging.getLogger(__name__)


@runtime_checkable
class SchemaSource(Protocol):
    """Read access to persisted table definitions."""

    def fetch_table(self, table_name: str) -> TableSchema | None:
        """Return the table with this name in any status, or None."""
        ...

    def fetch_project_tables(self, project_id: str) -> list[TableSchema]:
        """Return the project's active tables, newest first."""
        ...

    def fetch_relationships(self, table_key: str) -> list[RelationshipSchema]:
        """Return active relationships touching a table, by id or table name."""
        ...


def _newest_first(tables: Iterable[TableSchema]) -> list[TableSchema]:
    return sorted(
        tables,
        key=lambda t: t.created_at.timestamp() if t.created_at else float("-inf"),
        reverse=True,
    )


class InMemorySchemaSource:
    """Thread-safe, dict-backed schema source."""

    def __init__(
        self,
        tables: Iterable[TableSchema] = (),
        relationships: Iterable[RelationshipSchema] = (),
    ) -> None:
        self._lock = threading.Lock()
        self._tables: dict[str, TableSchema] = {}
        self._relationships: list[RelationshipSchema] = []
        for table in tables:
            self.add_table(table)
        for rel in relationships:
            self.add_relationship(rel)

    @classmethod
    def from_document(cls, document: SchemaDocument) -> InMemorySchemaSource:
        return cls(document.tables, document.relationships)

    def add_table(self, table: TableSchema) -> None:
        with self._lock:
            self._tables[table.table_name] = table.model_copy(deep=True)

    def remove_table(self, table_name: str) -> None:
        with self._lock:
            self._tables.pop(table_name, None)
            self._relationships = [
                r
                for r in self._relationships
                if table_name not in (r.source_table, r.target_table)
            ]

    def add_relationship(self, relationship: RelationshipSchema) -> None:
        with self._lock:
            self._relationships.append(relationship.model_copy(deep=True))

    def fetch_table(self, table_name: str) -> TableSchema | None:
        with self._lock:
            table = self._tables.get(table_name)
            return table.model_copy(deep=True) if table is not None else None

    def fetch_project_tables(self, project_id: str) -> list[TableSchema]:
        with self._lock:
            tables = [
                t.model_copy(deep=True)
                for t in self._tables.values()
                if t.project_id == project_id and t.status == TableStatus.ACTIVE
            ]
        return _newest_first(tables)

    def fetch_relationships(self, table_key: str) -> list[RelationshipSchema]:
        with self._lock:
            name = table_key
            for table in self._tables.values():
                if table.id is not None and table.id == table_key:
                    name = table.table_name
                    break
            return [
                r.model_copy(deep=True)
                for r in self._relationships
                if name in (r.source_table, r.target_table)
            ]


class SQLSchemaSource:
    """Schema source reading the ``tw_*`` metadata tables through SQLAlchemy."""

    def __init__(self, connection: DatabaseConnection) -> None:
        """Initialize the SQL schema source.

        Args:
            connection: Database connection holding the metadata tables
        """
        self._connection = connection
        self._initialized = False

    def initialize(self) -> None:
        """Create metadata tables if they don't exist."""
        if not self._initialized:
            Base.metadata.create_all(self._connection.engine)
            self._initialized = True

    def _get_session(self) -> Session:
        return self._connection.get_session()

    # === Reads ===

    def fetch_table(self, table_name: str) -> TableSchema | None:
        self.initialize()
        with self._get_session() as session:
            row = session.query(DataTable).filter_by(table_name=table_name).first()
            return self._to_schema(row) if row is not None else None

    def fetch_project_tables(self, project_id: str) -> list[TableSchema]:
        self.initialize()
        with self._get_session() as session:
            rows = (
                session.query(DataTable)
                .filter_by(project_id=project_id, status=TableStatus.ACTIVE.value)
                .order_by(DataTable.created_at.desc())
                .all()
            )
            return [self._to_schema(row) for row in rows]

    def fetch_relationships(self, table_key: str) -> list[RelationshipSchema]:
        self.initialize()
        with self._get_session() as session:
            table = (
                session.query(DataTable)
                .filter(or_(DataTable.id == table_key, DataTable.table_name == table_key))
                .first()
            )
            if table is None:
                return []
            rows = (
                session.query(TableRelationship)
                .filter(
                    TableRelationship.status == "active",
                    or_(
                        TableRelationship.source_table_id == table.id,
                        TableRelationship.target_table_id == table.id,
                    ),
                )
                .order_by(TableRelationship.created_at)
                .all()
            )
            return [self._to_relationship(row) for row in rows]

    # === Writes (designer persistence) ===

    def save_table(self, table: TableSchema) -> TableSchema:
        """Insert or replace a table definition and its fields.

        Returns:
            The stored table, with generated ids
        """
        self.initialize()
        with self._get_session() as session:
            row = session.query(DataTable).filter_by(table_name=table.table_name).first()
            if row is None:
                row = DataTable(table_name=table.table_name)
                if table.id:
                    row.id = table.id
                session.add(row)
            row.project_id = table.project_id
            row.name = table.name
            row.status = str(table.status)
            row.searchable_fields = list(table.searchable_fields or [])
            row.default_sort = table.default_sort
            row.default_order = table.default_order
            if table.created_at is not None:
                row.created_at = table.created_at

            existing = {f.field_name: f for f in row.fields}
            fields: list[DataField] = []
            for field in table.fields:
                field_row = existing.get(field.field_name) or DataField(field_name=field.field_name)
                field_row.name = field.name
                field_row.data_type = str(field.data_type)
                field_row.is_required = field.is_required
                field_row.is_primary_key = field.is_primary_key
                field_row.immutable = field.immutable
                field_row.default_value = field.default_value
                field_row.field_config = field.field_config.model_dump(exclude_none=True)
                field_row.field_order = field.order
                fields.append(field_row)
            row.fields = fields
            session.commit()
            logger.info(f"Saved table definition '{table.table_name}' ({len(fields)} fields)")
            return self._to_schema(row)

    def save_relationship(self, relationship: RelationshipSchema) -> RelationshipSchema:
        """Store a relationship between two saved tables.

        Raises:
            SchemaNotFoundError: If either table or field has not been saved
        """
        self.initialize()
        with self._get_session() as session:
            source_table, source_field = self._resolve(
                session, relationship.source_table, relationship.source_field
            )
            target_table, target_field = self._resolve(
                session, relationship.target_table, relationship.target_field
            )
            row = TableRelationship(
                name=relationship.name,
                source_table_id=source_table.id,
                source_field_id=source_field.id,
                target_table_id=target_table.id,
                target_field_id=target_field.id,
                relationship_type=str(relationship.relationship_type),
                cascade_config=relationship.cascade_config.model_dump(mode="json"),
            )
            if relationship.id:
                row.id = relationship.id
            session.add(row)
            session.commit()
            return self._to_relationship(row)

    def set_table_status(self, table_name: str, status: TableStatus | str) -> None:
        self.initialize()
        with self._get_session() as session:
            row = session.query(DataTable).filter_by(table_name=table_name).first()
            if row is None:
                raise SchemaNotFoundError(table_name, available_tables=self._names(session))
            row.status = str(TableStatus(status))
            session.commit()

    def delete_table(self, table_name: str) -> bool:
        """Remove a table definition with its fields and relationships."""
        self.initialize()
        with self._get_session() as session:
            row = session.query(DataTable).filter_by(table_name=table_name).first()
            if row is None:
                return False
            session.query(TableRelationship).filter(
                or_(
                    TableRelationship.source_table_id == row.id,
                    TableRelationship.target_table_id == row.id,
                )
            ).delete(synchronize_session=False)
            session.delete(row)
            session.commit()
            return True

    # === Conversion ===

    def _resolve(
        self, session: Session, table_name: str, field_name: str
    ) -> tuple[DataTable, DataField]:
        table = session.query(DataTable).filter_by(table_name=table_name).first()
        if table is None:
            raise SchemaNotFoundError(table_name, available_tables=self._names(session))
        for field in table.fields:
            if field.field_name == field_name:
                return table, field
        raise SchemaNotFoundError(
            table_name,
            reason=(
                f"Field '{field_name}' not found on '{table_name}'. "
                f"Available fields: {', '.join(f.field_name for f in table.fields)}"
            ),
        )

    @staticmethod
    def _names(session: Session) -> list[str]:
        return [name for (name,) in session.query(DataTable.table_name).all()]

    @staticmethod
    def _to_schema(row: DataTable) -> TableSchema:
        # a column named id is the key unless another field is flagged
        infer_id = not any(f.is_primary_key for f in row.fields)
        fields = [
            FieldSchema(
                id=f.id,
                name=f.name,
                field_name=f.field_name,
                data_type=f.data_type,
                is_required=f.is_required,
                is_primary_key=f.is_primary_key or (infer_id and f.field_name == "id"),
                immutable=f.immutable,
                default_value=f.default_value,
                field_config=FieldConfig.model_validate(f.field_config or {}),
                order=f.field_order,
            )
            for f in row.fields
        ]
        return TableSchema(
            id=row.id,
            table_name=row.table_name,
            project_id=row.project_id,
            name=row.name,
            status=row.status,
            fields=fields,
            searchable_fields=row.searchable_fields,
            default_sort=row.default_sort,
            default_order=row.default_order,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    @staticmethod
    def _to_relationship(row: TableRelationship) -> RelationshipSchema:
        return RelationshipSchema(
            id=row.id,
            name=row.name,
            source_table=row.source_table.table_name,
            source_field=row.source_field.field_name,
            target_table=row.target_table.table_name,
            target_field=row.target_field.field_name,
            relationship_type=row.relationship_type,
            cascade_config=CascadeConfig.model_validate(row.cascade_config or {}),
        )
