"""SQL rendering for migration operations.

Forward and rollback rendering are dispatch tables keyed by operation
class. Every forward render validates identifiers first.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from tablewright.exceptions import MalformedIdentifierError, UnsupportedOperationError
from tablewright.migrations.operations import (
    AddColumn,
    AddForeignKey,
    AlterColumn,
    ColumnDefinition,
    CreateIndex,
    CreateTable,
    DropColumn,
    DropForeignKey,
    DropIndex,
    DropTable,
    MigrationOperation,
)

if TYPE_CHECKING:
    from tablewright.migrations.operations import MigrationPlan

logger = logging.getLogger(__name__)

IDENTIFIER_PATTERN = re.compile(r"^[a-z][a-z0-9_]*$")
MAX_IDENTIFIER_LENGTH = 63

# Defaults reach SQL already rendered; anything outside these shapes is refused.
_DEFAULT_LITERAL = re.compile(
    r"^('(?:[^']|'')*'|-?\d+(\.\d+)?([eE][-+]?\d+)?|TRUE|FALSE|NULL"
    r"|NOW\(\)|CURRENT_TIMESTAMP|CURRENT_DATE|CURRENT_TIME)$",
    re.IGNORECASE,
)
_REFERENTIAL_ACTIONS = {
    "cascade": "CASCADE",
    "restrict": "RESTRICT",
    "set_null": "SET NULL",
    "no_action": "NO ACTION",
}


def _action_sql(action: str) -> str:
    return _REFERENTIAL_ACTIONS.get(action.lower(), action.upper().replace("_", " "))


# === Validation ===


def _check_identifier(problems: list[str], label: str, value: str) -> None:
    if not IDENTIFIER_PATTERN.match(value or ""):
        problems.append(f"invalid {label} '{value}'")
    elif len(value) > MAX_IDENTIFIER_LENGTH:
        problems.append(f"{label} '{value}' exceeds {MAX_IDENTIFIER_LENGTH} characters")


def _check_column(problems: list[str], column: ColumnDefinition) -> None:
    _check_identifier(problems, "column name", column.name)
    if column.default is not None and not _DEFAULT_LITERAL.match(column.default):
        problems.append(f"unsafe default for column '{column.name}': {column.default}")


def validate_migration_operation(operation: MigrationOperation) -> list[str]:
    """Return identifier and shape problems; empty when the operation is safe."""
    problems: list[str] = []
    match operation:
        case CreateTable():
            _check_identifier(problems, "table name", operation.table_name)
            if not operation.columns:
                problems.append("create table requires at least one field")
            for column in operation.columns:
                _check_column(problems, column)
            for constraint in operation.constraints:
                _check_identifier(problems, "constraint name", constraint.name)
                for name in constraint.columns:
                    _check_identifier(problems, "column name", name)
        case AddColumn():
            _check_identifier(problems, "table name", operation.table_name)
            _check_column(problems, operation.column)
        case DropColumn():
            _check_identifier(problems, "table name", operation.table_name)
            _check_identifier(problems, "column name", operation.column_name)
        case AlterColumn():
            _check_identifier(problems, "table name", operation.table_name)
            _check_identifier(problems, "column name", operation.column_name)
            _check_column(problems, operation.new_definition)
        case AddForeignKey():
            _check_identifier(problems, "table name", operation.table_name)
            _check_identifier(problems, "column name", operation.column_name)
            _check_identifier(problems, "referenced table", operation.references_table)
            _check_identifier(problems, "referenced column", operation.references_column)
            _check_identifier(problems, "constraint name", operation.constraint_name)
            for action in (operation.on_delete, operation.on_update):
                if action.lower() not in _REFERENTIAL_ACTIONS:
                    problems.append(f"unknown referential action '{action}'")
        case CreateIndex():
            _check_identifier(problems, "index name", operation.index_name)
            _check_identifier(problems, "table name", operation.table_name)
            if not operation.columns:
                problems.append("index requires at least one column")
            for name in operation.columns:
                _check_identifier(problems, "column name", name)
        case DropIndex():
            _check_identifier(problems, "index name", operation.index_name)
        case DropTable():
            _check_identifier(problems, "table name", operation.table_name)
        case DropForeignKey():
            _check_identifier(problems, "table name", operation.table_name)
            _check_identifier(problems, "constraint name", operation.constraint_name)
        case _:
            problems.append(f"unknown operation {type(operation).__name__}")
    return problems


def validate_migration_plan(plan: MigrationPlan) -> list[str]:
    """Validate every forward operation; messages are prefixed ``Operation N:``."""
    errors: list[str] = []
    for index, operation in enumerate(plan.operations, start=1):
        errors.extend(f"Operation {index}: {p}" for p in validate_migration_operation(operation))
    return errors


def ensure_valid(operation: MigrationOperation) -> None:
    """Raise if the operation would render unsafe SQL.

    Raises:
        MalformedIdentifierError: With every problem found
    """
    problems = validate_migration_operation(operation)
    if problems:
        raise MalformedIdentifierError(operation.kind, problems)


# === Forward SQL ===


def _create_table(op: CreateTable) -> list[str]:
    lines = [f"    {column.sql()}" for column in op.columns]
    lines.extend(f"    {constraint.sql()}" for constraint in op.constraints)
    body = ",\n".join(lines)
    return [f"CREATE TABLE {op.table_name} (\n{body}\n);"]


def _add_column(op: AddColumn) -> list[str]:
    return [f"ALTER TABLE {op.table_name} ADD COLUMN {op.column.sql()};"]


def _drop_column(op: DropColumn) -> list[str]:
    return [f"ALTER TABLE {op.table_name} DROP COLUMN {op.column_name};"]


def _alter_column(op: AlterColumn) -> list[str]:
    prefix = f"ALTER TABLE {op.table_name} ALTER COLUMN {op.column_name}"
    definition = op.new_definition
    statements = [f"{prefix} {'DROP' if definition.nullable else 'SET'} NOT NULL;"]
    if definition.default is not None:
        statements.append(f"{prefix} SET DEFAULT {definition.default};")
    statements.append(f"{prefix} TYPE {definition.type};")
    return statements


def _add_foreign_key(op: AddForeignKey) -> list[str]:
    return [
        f"ALTER TABLE {op.table_name} ADD CONSTRAINT {op.constraint_name} "
        f"FOREIGN KEY ({op.column_name}) REFERENCES {op.references_table}({op.references_column}) "
        f"ON DELETE {_action_sql(op.on_delete)} ON UPDATE {_action_sql(op.on_update)};"
    ]


def _create_index(op: CreateIndex) -> list[str]:
    unique = "UNIQUE " if op.unique else ""
    return [f"CREATE {unique}INDEX {op.index_name} ON {op.table_name}({', '.join(op.columns)});"]


def _drop_index(op: DropIndex) -> list[str]:
    return [f"DROP INDEX {op.index_name};"]


def _drop_table(op: DropTable) -> list[str]:
    return [f"DROP TABLE {op.table_name};"]


def _drop_foreign_key(op: DropForeignKey) -> list[str]:
    return [f"ALTER TABLE {op.table_name} DROP CONSTRAINT {op.constraint_name};"]


SQL_RENDERERS: dict[type, Callable[[Any], list[str]]] = {
    CreateTable: _create_table,
    AddColumn: _add_column,
    DropColumn: _drop_column,
    AlterColumn: _alter_column,
    AddForeignKey: _add_foreign_key,
    CreateIndex: _create_index,
    DropIndex: _drop_index,
    DropTable: _drop_table,
    DropForeignKey: _drop_foreign_key,
}


def generate_sql(operation: MigrationOperation) -> list[str]:
    """Render an operation as an ordered list of SQL statements.

    Raises:
        MalformedIdentifierError: If an identifier is unsafe
        UnsupportedOperationError: If the operation type is unknown
    """
    renderer = SQL_RENDERERS.get(type(operation))
    if renderer is None:
        raise UnsupportedOperationError(type(operation).__name__, "no SQL renderer registered")
    ensure_valid(operation)
    return renderer(operation)


# === Rollback ===


def rollback_operation(operation: MigrationOperation) -> MigrationOperation | None:
    """The structured inverse of an operation, when one can be derived."""
    match operation:
        case CreateTable():
            return DropTable(operation.table_name)
        case AddColumn():
            return DropColumn(operation.table_name, operation.column.name)
        case AddForeignKey():
            return DropForeignKey(operation.table_name, operation.constraint_name)
        case CreateIndex():
            return DropIndex(operation.index_name)
    return None


_NO_ROLLBACK_REASON = {
    DropColumn: "dropped column data and definition cannot be restored",
    AlterColumn: "the previous column definition is not known",
    DropIndex: "the dropped index definition is not known",
    DropTable: "the dropped table definition is not known",
    DropForeignKey: "the dropped constraint definition is not known",
}


def generate_rollback_sql(operation: MigrationOperation) -> list[str]:
    """Render the SQL that undoes an operation.

    Raises:
        UnsupportedOperationError: For operations whose original state is unknown
    """
    inverse = rollback_operation(operation)
    if inverse is None:
        reason = _NO_ROLLBACK_REASON.get(type(operation), "no rollback defined")
        raise UnsupportedOperationError(f"rollback of {operation.kind}", reason)
    return generate_sql(inverse)


def plan_sql(plan: MigrationPlan) -> list[str]:
    """All forward statements of a plan, in execution order."""
    statements: list[str] = []
    for operation in plan.operations:
        statements.extend(generate_sql(operation))
    return statements


def _operation_target(operation: MigrationOperation) -> str:
    match operation:
        case DropColumn() | AlterColumn():
            return f"{operation.table_name}.{operation.column_name}"
        case DropForeignKey():
            return f"{operation.table_name}.{operation.constraint_name}"
        case DropIndex():
            return operation.index_name
    return getattr(operation, "table_name", "")


def plan_rollback_sql(plan: MigrationPlan) -> list[str]:
    """Rollback statements of a plan, last forward step undone first.

    Raises:
        UnsupportedOperationError: If any forward operation has no inverse.
            Nothing is rendered in that case.
    """
    irreversible = [op for op in plan.operations if rollback_operation(op) is None]
    if irreversible:
        reasons = sorted(
            {_NO_ROLLBACK_REASON.get(type(op), "no rollback defined") for op in irreversible}
        )
        raise UnsupportedOperationError(
            "rollback of " + ", ".join(f"{op.kind} {_operation_target(op)}" for op in irreversible),
            "; ".join(reasons),
        )
    statements: list[str] = []
    for operation in plan.rollback_operations:
        statements.extend(generate_sql(operation))
    return statements
