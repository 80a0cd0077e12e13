"""Migration planning: schema diffs to ordered, reversible DDL plans."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from tablewright.core.types import (
    FieldSchema,
    OnDeleteAction,
    OnUpdateAction,
    RelationshipSchema,
    SchemaDocument,
    TableSchema,
)
from tablewright.exceptions import InvalidRelationshipError
from tablewright.migrations.constraints import column_definition
from tablewright.migrations.operations import (
    AddColumn,
    AddForeignKey,
    AlterColumn,
    CreateIndex,
    CreateTable,
    DropColumn,
    DropForeignKey,
    DropIndex,
    DropTable,
    ImpactLevel,
    MigrationOperation,
    MigrationPlan,
    TableConstraint,
)
from tablewright.migrations.sql import IDENTIFIER_PATTERN, rollback_operation

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

logger = logging.getLogger(__name__)

IMPACT_WEIGHTS: dict[type, float] = {
    CreateTable: 1.0,
    AddColumn: 0.5,
    DropColumn: 2.0,
    AlterColumn: 2.0,
    AddForeignKey: 1.5,
    DropForeignKey: 1.5,
    CreateIndex: 0.5,
    DropIndex: 0.5,
    DropTable: 3.0,
}


# === Operation builders ===


def _primary_key_column(fields: Sequence[FieldSchema]) -> str | None:
    for f in fields:
        if f.is_primary_key:
            return f.field_name
    for f in fields:
        if f.field_name == "id":
            return f.field_name
    return None


def generate_create_table_migration(table_name: str, fields: Sequence[FieldSchema]) -> CreateTable:
    """CREATE TABLE with columns in field order and a primary key when one exists."""
    ordered = sorted(fields, key=lambda f: f.order)
    constraints = []
    if pk := _primary_key_column(ordered):
        constraints.append(TableConstraint(f"{table_name}_pkey", "primary_key", (pk,)))
    return CreateTable(
        table_name=table_name,
        columns=tuple(column_definition(f) for f in ordered),
        constraints=tuple(constraints),
    )


def generate_add_column_migration(table_name: str, field_schema: FieldSchema) -> AddColumn:
    return AddColumn(table_name, column_definition(field_schema))


def generate_drop_column_migration(table_name: str, column_name: str) -> DropColumn:
    return DropColumn(table_name, column_name)


def generate_alter_column_migration(
    table_name: str, column_name: str, new_field: FieldSchema
) -> AlterColumn:
    return AlterColumn(table_name, column_name, column_definition(new_field))


def generate_add_foreign_key_migration(
    table_name: str,
    column_name: str,
    references_table: str,
    references_column: str,
    on_delete: OnDeleteAction | str = OnDeleteAction.RESTRICT,
    on_update: OnUpdateAction | str = OnUpdateAction.CASCADE,
    constraint_name: str | None = None,
) -> AddForeignKey:
    """Foreign key from ``table_name.column_name`` to ``references_table``.

    The constraint is named ``fk_<table>_<column>_<refTable>`` unless a name
    is supplied.
    """
    return AddForeignKey(
        table_name=table_name,
        column_name=column_name,
        references_table=references_table,
        references_column=references_column,
        constraint_name=constraint_name or f"fk_{table_name}_{column_name}_{references_table}",
        on_delete=str(on_delete),
        on_update=str(on_update),
    )


def generate_drop_table_migration(table_name: str) -> DropTable:
    return DropTable(table_name)


# === Plan metadata ===


def estimate_impact(operations: Iterable[MigrationOperation]) -> ImpactLevel:
    """Bucket the summed operation weights: <=2 low, <=5 medium, else high."""
    total = sum(IMPACT_WEIGHTS.get(type(op), 0.0) for op in operations)
    if total <= 2:
        return "low"
    if total <= 5:
        return "medium"
    return "high"


def describe_operations(operations: Sequence[MigrationOperation]) -> str:
    """Summarise operations, e.g. ``Apply 1 create table, 2 add columns``."""
    if not operations:
        return "No changes"
    counts = Counter(op.kind for op in operations)
    parts = [
        f"{count} {kind.replace('_', ' ')}{'s' if count > 1 else ''}"
        for kind, count in counts.items()
    ]
    return f"Apply {', '.join(parts)}"


def _field_changed(current: FieldSchema, target: FieldSchema) -> bool:
    return (
        current.name != target.name
        or current.data_type != target.data_type
        or current.is_required != target.is_required
        or current.default_value != target.default_value
        or current.field_config.model_dump() != target.field_config.model_dump()
    )


# === Relationships ===


@dataclass
class RelationshipReport:
    """Outcome of checking a relationship against its two tables."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def validate_relationship(
    relationship: RelationshipSchema,
    source: TableSchema | None,
    target: TableSchema | None,
) -> RelationshipReport:
    """Check that a relationship can be materialised as a foreign key.

    Both tables and fields must exist, identifiers must be SQL-safe and the
    two fields must share a data type.
    """
    report = RelationshipReport()
    rel = relationship

    for label, value in (
        ("source table", rel.source_table),
        ("target table", rel.target_table),
        ("source field", rel.source_field),
        ("target field", rel.target_field),
    ):
        if not IDENTIFIER_PATTERN.match(value):
            report.errors.append(f"Invalid {label} name '{value}'")

    if source is None:
        report.errors.append(f"Source table '{rel.source_table}' does not exist")
    if target is None:
        report.errors.append(f"Target table '{rel.target_table}' does not exist")
    if source is None or target is None:
        return report

    source_field = source.get_field(rel.source_field)
    target_field = target.get_field(rel.target_field)
    if source_field is None:
        report.errors.append(
            f"Field '{rel.source_field}' not found on '{rel.source_table}'. "
            f"Available fields: {', '.join(source.field_names)}"
        )
    if target_field is None:
        report.errors.append(
            f"Field '{rel.target_field}' not found on '{rel.target_table}'. "
            f"Available fields: {', '.join(target.field_names)}"
        )
    if source_field is None or target_field is None:
        return report

    if source_field.data_type != target_field.data_type:
        report.errors.append(
            f"Incompatible types: {rel.source_table}.{rel.source_field} is "
            f"{source_field.data_type} but {rel.target_table}.{rel.target_field} is "
            f"{target_field.data_type}"
        )
    if not source_field.is_primary_key:
        report.warnings.append(
            f"{rel.source_table}.{rel.source_field} is not a primary key; "
            "the database needs a unique constraint on it"
        )

    on_delete = rel.cascade_config.on_delete
    if on_delete == OnDeleteAction.SET_NULL and target_field.is_required:
        report.errors.append(
            f"ON DELETE SET NULL needs {rel.target_table}.{rel.target_field} to be nullable"
        )
    if on_delete == OnDeleteAction.CASCADE:
        report.warnings.append(
            "CASCADE DELETE will automatically delete related records. Ensure this is intended."
        )
    return report


def generate_relationship_migration(relationship: RelationshipSchema) -> AddForeignKey:
    """Foreign key for a one-to-many link; it lives on the target ("many") table."""
    return generate_add_foreign_key_migration(
        table_name=relationship.target_table,
        column_name=relationship.target_field,
        references_table=relationship.source_table,
        references_column=relationship.source_field,
        on_delete=relationship.cascade_config.on_delete,
        on_update=relationship.cascade_config.on_update,
    )


def _fk_constraint_name(relationship: RelationshipSchema) -> str:
    return generate_relationship_migration(relationship).constraint_name


def generate_relationship_plan(
    relationships: Sequence[RelationshipSchema], tables: Sequence[TableSchema]
) -> MigrationPlan:
    """Foreign keys plus supporting indexes for existing tables.

    Raises:
        InvalidRelationshipError: If any relationship fails validation
    """
    by_name = {t.table_name: t for t in tables}
    builder = _PlanBuilder()
    for rel in relationships:
        report = validate_relationship(
            rel, by_name.get(rel.source_table), by_name.get(rel.target_table)
        )
        if not report.is_valid:
            raise InvalidRelationshipError(
                f"Invalid relationship {rel.source_table}.{rel.source_field} -> "
                f"{rel.target_table}.{rel.target_field}",
                report.errors,
            )
        builder.warnings.extend(report.warnings)
        builder.add(generate_relationship_migration(rel))
        builder.add(
            CreateIndex(
                f"idx_{rel.target_table}_{rel.target_field}",
                rel.target_table,
                (rel.target_field,),
            )
        )
    return builder.build()


# === Diff ===


class _PlanBuilder:
    def __init__(self) -> None:
        self.operations: list[MigrationOperation] = []
        self.rollbacks: list[MigrationOperation] = []
        self.warnings: list[str] = []

    def add(self, operation: MigrationOperation) -> None:
        self.operations.append(operation)
        inverse = rollback_operation(operation)
        if inverse is not None:
            self.rollbacks.append(inverse)

    def build(self) -> MigrationPlan:
        return MigrationPlan(
            operations=tuple(self.operations),
            rollback_operations=tuple(reversed(self.rollbacks)),
            description=describe_operations(self.operations),
            estimated_impact=estimate_impact(self.operations),
            warnings=tuple(self.warnings),
        )


class MigrationPlanner:
    """Diffs two schema snapshots into a MigrationPlan.

    Plans are ordered so each step only depends on earlier ones. Foreign
    keys of removed relationships go first, so dropped tables are never
    still referenced. New tables and per-table column changes follow, then
    new foreign keys. Removed tables are dropped last. A relationship whose
    cascade actions changed is dropped and re-added.
    """

    def diff(self, current: SchemaDocument, target: SchemaDocument) -> MigrationPlan:
        """Compute the operations that turn ``current`` into ``target``.

        Raises:
            InvalidRelationshipError: If a new relationship cannot become a foreign key
        """
        builder = _PlanBuilder()
        current_tables = {t.table_name: t for t in current.tables}
        target_tables = {t.table_name: t for t in target.tables}
        current_rels = {r.key: r for r in current.relationships}
        target_rels = {r.key: r for r in target.relationships}
        recascaded = {
            key
            for key in current_rels.keys() & target_rels.keys()
            if current_rels[key].cascade_config != target_rels[key].cascade_config
        }

        for key, rel in current_rels.items():
            if key not in target_rels or key in recascaded:
                builder.add(DropForeignKey(rel.target_table, _fk_constraint_name(rel)))

        for name, table in target_tables.items():
            if name not in current_tables:
                builder.add(generate_create_table_migration(name, table.fields))

        for name, current_table in current_tables.items():
            target_table = target_tables.get(name)
            if target_table is not None:
                self._diff_fields(builder, current_table, target_table)

        for key, rel in target_rels.items():
            if key in current_rels and key not in recascaded:
                continue
            report = validate_relationship(
                rel, target_tables.get(rel.source_table), target_tables.get(rel.target_table)
            )
            if not report.is_valid:
                raise InvalidRelationshipError(
                    f"Cannot add foreign key {rel.target_table}.{rel.target_field} -> "
                    f"{rel.source_table}.{rel.source_field}",
                    report.errors,
                )
            builder.warnings.extend(report.warnings)
            builder.add(generate_relationship_migration(rel))

        for name in current_tables:
            if name not in target_tables:
                builder.add(generate_drop_table_migration(name))

        plan = builder.build()
        if plan.operations:
            logger.info(f"Planned migration: {plan.description} ({plan.estimated_impact} impact)")
        return plan

    @staticmethod
    def _diff_fields(builder: _PlanBuilder, current: TableSchema, target: TableSchema) -> None:
        name = current.table_name
        current_fields = {f.field_name: f for f in current.fields}
        target_fields = {f.field_name: f for f in target.fields}

        for field_name, target_field in target_fields.items():
            if field_name not in current_fields:
                builder.add(generate_add_column_migration(name, target_field))

        for field_name in current_fields:
            if field_name not in target_fields:
                builder.add(generate_drop_column_migration(name, field_name))

        for field_name, current_field in current_fields.items():
            target_field = target_fields.get(field_name)
            if target_field is not None and _field_changed(current_field, target_field):
                builder.add(generate_alter_column_migration(name, field_name, target_field))


def generate_migration_plan(current: SchemaDocument, target: SchemaDocument) -> MigrationPlan:
    """Module-level shortcut for ``MigrationPlanner().diff``."""
    return MigrationPlanner().diff(current, target)
