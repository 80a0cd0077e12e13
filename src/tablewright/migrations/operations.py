"""Migration operations: a closed set of immutable DDL steps.

Each operation is a frozen dataclass; SQL rendering lives in
``tablewright.migrations.sql`` and dispatches on the operation class.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, ClassVar, Literal

ImpactLevel = Literal["low", "medium", "high"]


@dataclass(frozen=True)
class ColumnDefinition:
    """A rendered column: SQL type plus its inline constraints."""

    name: str
    type: str
    nullable: bool = True
    default: str | None = None
    """Default as a ready SQL literal, e.g. ``'guest'`` or ``NOW()``."""
    is_primary_key: bool = False
    checks: tuple[str, ...] = ()
    """Inline ``CHECK (...)`` clauses."""

    @property
    def constraints(self) -> list[str]:
        clauses = []
        if not self.nullable:
            clauses.append("NOT NULL")
        if self.default is not None:
            clauses.append(f"DEFAULT {self.default}")
        clauses.extend(self.checks)
        return clauses

    def sql(self) -> str:
        return " ".join([self.name, self.type, *self.constraints])


@dataclass(frozen=True)
class TableConstraint:
    """A named table-level constraint inside CREATE TABLE."""

    name: str
    kind: Literal["primary_key", "unique", "check"]
    columns: tuple[str, ...] = ()
    expression: str | None = None

    def sql(self) -> str:
        if self.kind == "check":
            return f"CONSTRAINT {self.name} CHECK ({self.expression})"
        keyword = "PRIMARY KEY" if self.kind == "primary_key" else "UNIQUE"
        return f"CONSTRAINT {self.name} {keyword} ({', '.join(self.columns)})"


@dataclass(frozen=True)
class _Operation:
    kind: ClassVar[str] = ""

    def to_dict(self) -> dict[str, Any]:
        """Return the operation as a JSON-serializable dict."""
        return {"type": self.kind, **asdict(self)}


@dataclass(frozen=True)
class CreateTable(_Operation):
    kind: ClassVar[str] = "create_table"

    table_name: str
    columns: tuple[ColumnDefinition, ...]
    constraints: tuple[TableConstraint, ...] = ()


@dataclass(frozen=True)
class AddColumn(_Operation):
    kind: ClassVar[str] = "add_column"

    table_name: str
    column: ColumnDefinition


@dataclass(frozen=True)
class DropColumn(_Operation):
    kind: ClassVar[str] = "drop_column"

    table_name: str
    column_name: str


@dataclass(frozen=True)
class AlterColumn(_Operation):
    kind: ClassVar[str] = "alter_column"

    table_name: str
    column_name: str
    new_definition: ColumnDefinition


@dataclass(frozen=True)
class AddForeignKey(_Operation):
    kind: ClassVar[str] = "add_foreign_key"

    table_name: str
    column_name: str
    references_table: str
    references_column: str
    constraint_name: str
    on_delete: str = "restrict"
    on_update: str = "cascade"


@dataclass(frozen=True)
class CreateIndex(_Operation):
    kind: ClassVar[str] = "create_index"

    index_name: str
    table_name: str
    columns: tuple[str, ...]
    unique: bool = False


@dataclass(frozen=True)
class DropIndex(_Operation):
    kind: ClassVar[str] = "drop_index"

    index_name: str


@dataclass(frozen=True)
class DropTable(_Operation):
    kind: ClassVar[str] = "drop_table"

    table_name: str


@dataclass(frozen=True)
class DropForeignKey(_Operation):
    kind: ClassVar[str] = "drop_foreign_key"

    table_name: str
    constraint_name: str


MigrationOperation = (
    CreateTable
    | AddColumn
    | DropColumn
    | AlterColumn
    | AddForeignKey
    | CreateIndex
    | DropIndex
    | DropTable
    | DropForeignKey
)


@dataclass(frozen=True)
class MigrationPlan:
    """Ordered forward operations with their structured rollback.

    ``rollback_operations`` is in execution order: undoing the last forward
    step comes first.
    """

    operations: tuple[MigrationOperation, ...] = ()
    rollback_operations: tuple[MigrationOperation, ...] = ()
    description: str = "No changes"
    estimated_impact: ImpactLevel = "low"
    warnings: tuple[str, ...] = field(default=())

    @property
    def is_empty(self) -> bool:
        return not self.operations

    def to_dict(self) -> dict[str, Any]:
        return {
            "description": self.description,
            "estimated_impact": self.estimated_impact,
            "operations": [op.to_dict() for op in self.operations],
            "rollback_operations": [op.to_dict() for op in self.rollback_operations],
            "warnings": list(self.warnings),
        }
