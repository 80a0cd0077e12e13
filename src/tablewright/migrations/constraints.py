"""Field constraint generation: designer fields to PostgreSQL column DDL.

Everything here is pure; the same field always yields the same column.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING

from tablewright.core.types import DataType, FieldConfig, FieldSchema
from tablewright.exceptions import UnsupportedTypeError
from tablewright.migrations.operations import ColumnDefinition, CreateIndex

if TYPE_CHECKING:
    from collections.abc import Sequence

DEFAULT_TEXT_LENGTH = 255
MAX_TEXT_LENGTH = 65535
DEFAULT_PRECISION = 10
DEFAULT_SCALE = 2
MAX_PRECISION = 65
MAX_SCALE = 30

DATE_FUNCTIONS = ("NOW()", "CURRENT_TIMESTAMP", "CURRENT_DATE", "CURRENT_TIME")
DATE_FORMATS = ("YYYY-MM-DD", "YYYY-MM-DD HH:mm:ss", "HH:mm:ss")
BOOLEAN_TRUE = frozenset({"true", "1", "t", "yes"})
BOOLEAN_LITERALS = frozenset({"true", "false", "1", "0", "TRUE", "FALSE"})

_DATE_LITERAL = re.compile(r"^\d{4}-\d{2}-\d{2}([ T]\d{2}:\d{2}:\d{2}(\.\d+)?Z?)?$")


@dataclass(frozen=True)
class ColumnSpec:
    """SQL type of a column with its inline constraint clauses."""

    type: str
    constraints: tuple[str, ...] = ()


@dataclass
class ConstraintReport:
    """Problems found in a set of field definitions."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def _number(value: float | int) -> str:
    """Render a bound without a trailing ``.0`` for whole numbers."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _quote(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def postgres_type(data_type: DataType | str, config: FieldConfig | None = None) -> str:
    """Map a designer data type to its PostgreSQL column type.

    Raises:
        UnsupportedTypeError: If the type has no mapping
    """
    config = config or FieldConfig()
    if data_type == DataType.TEXT:
        length = min(config.max_length or DEFAULT_TEXT_LENGTH, MAX_TEXT_LENGTH)
        return f"VARCHAR({length})"
    if data_type == DataType.NUMBER:
        precision = config.precision or DEFAULT_PRECISION
        scale = config.scale if config.scale is not None else DEFAULT_SCALE
        return f"DECIMAL({precision},{scale})"
    if data_type == DataType.DATE:
        return "TIMESTAMP"
    if data_type == DataType.BOOLEAN:
        return "BOOLEAN"
    raise UnsupportedTypeError(str(data_type), DataType.values())


def default_sql_literal(data_type: DataType | str, value: str) -> str:
    """Render a designer default value as a SQL literal.

    Text is single-quoted with embedded quotes doubled, numbers pass through,
    dates accept ``now`` and the SQL date functions, booleans become
    ``TRUE``/``FALSE``.
    """
    if data_type == DataType.TEXT:
        return _quote(value)
    if data_type == DataType.NUMBER:
        return value.strip()
    if data_type == DataType.DATE:
        stripped = value.strip()
        if stripped.lower() == "now":
            return "NOW()"
        if stripped.upper() in DATE_FUNCTIONS:
            return stripped
        return _quote(stripped)
    if data_type == DataType.BOOLEAN:
        return "TRUE" if value.strip().lower() in BOOLEAN_TRUE else "FALSE"
    raise UnsupportedTypeError(str(data_type), DataType.values())


def check_constraints(field_schema: FieldSchema) -> list[str]:
    """Inline CHECK clauses implied by a field's configuration."""
    name = field_schema.field_name
    config = field_schema.field_config
    checks: list[str] = []

    if field_schema.data_type == DataType.TEXT:
        if config.min_length is not None and config.max_length is not None:
            checks.append(
                f"CHECK (length({name}) BETWEEN {config.min_length} AND {config.max_length})"
            )
        elif config.min_length is not None:
            checks.append(f"CHECK (length({name}) >= {config.min_length})")
        elif config.max_length is not None:
            checks.append(f"CHECK (length({name}) <= {config.max_length})")
        if config.pattern:
            checks.append(f"CHECK ({name} ~ {_quote(config.pattern)})")

    elif field_schema.data_type == DataType.NUMBER:
        low, high = config.min_value, config.max_value
        if low is not None and high is not None:
            checks.append(f"CHECK ({name} BETWEEN {_number(low)} AND {_number(high)})")
        elif low is not None:
            checks.append(f"CHECK ({name} >= {_number(low)})")
        elif high is not None:
            checks.append(f"CHECK ({name} <= {_number(high)})")

    return checks


def field_to_column(field_schema: FieldSchema) -> ColumnSpec:
    """Derive the column type and inline constraints for a field."""
    constraints: list[str] = []
    if field_schema.is_required:
        constraints.append("NOT NULL")
    if field_schema.has_default:
        literal = default_sql_literal(field_schema.data_type, field_schema.default_value or "")
        constraints.append(f"DEFAULT {literal}")
    constraints.extend(check_constraints(field_schema))
    return ColumnSpec(
        type=postgres_type(field_schema.data_type, field_schema.field_config),
        constraints=tuple(constraints),
    )


def column_definition(field_schema: FieldSchema) -> ColumnDefinition:
    """Build the structured column used by migration operations."""
    default = None
    if field_schema.has_default:
        default = default_sql_literal(field_schema.data_type, field_schema.default_value or "")
    return ColumnDefinition(
        name=field_schema.field_name,
        type=postgres_type(field_schema.data_type, field_schema.field_config),
        nullable=not field_schema.is_required,
        default=default,
        is_primary_key=field_schema.is_primary_key,
        checks=tuple(check_constraints(field_schema)),
    )


def column_definition_sql(field_schema: FieldSchema) -> str:
    """Full column DDL fragment, e.g. ``email VARCHAR(255) NOT NULL``."""
    spec = field_to_column(field_schema)
    return " ".join([field_schema.field_name, spec.type, *spec.constraints])


def _default_error(field_schema: FieldSchema) -> str | None:
    value = (field_schema.default_value or "").strip()
    if field_schema.data_type == DataType.NUMBER:
        try:
            Decimal(value)
        except InvalidOperation:
            return "default must be numeric"
        if not Decimal(value).is_finite():
            return "default must be numeric"
    elif field_schema.data_type == DataType.DATE:
        if not (
            value.lower() == "now" or value.upper() in DATE_FUNCTIONS or _DATE_LITERAL.match(value)
        ):
            return "default must be 'now', a date function or a date literal (YYYY-MM-DD)"
    elif field_schema.data_type == DataType.BOOLEAN:
        if value not in BOOLEAN_LITERALS:
            return f"default must be one of {', '.join(sorted(BOOLEAN_LITERALS))}"
    return None


def validate_field_constraints(fields: Sequence[FieldSchema]) -> ConstraintReport:
    """Check field configurations before they are turned into DDL."""
    report = ConstraintReport()

    for f in fields:
        config = f.field_config
        label = f'Field "{f.field_name}"'

        if f.data_type == DataType.TEXT:
            if config.max_length is not None and not 1 <= config.max_length <= MAX_TEXT_LENGTH:
                report.errors.append(f"{label}: max_length must be between 1 and {MAX_TEXT_LENGTH}")
            if config.min_length is not None and config.min_length < 0:
                report.errors.append(f"{label}: min_length must be a non-negative number")
            if (
                config.min_length is not None
                and config.max_length is not None
                and config.min_length > config.max_length
            ):
                report.errors.append(f"{label}: min_length cannot be greater than max_length")
            if config.pattern:
                try:
                    re.compile(config.pattern)
                except re.error:
                    report.errors.append(f"{label}: pattern must be a valid regular expression")

        elif f.data_type == DataType.NUMBER:
            if config.precision is not None and not 1 <= config.precision <= MAX_PRECISION:
                report.errors.append(f"{label}: precision must be between 1 and {MAX_PRECISION}")
            if config.scale is not None and not 0 <= config.scale <= MAX_SCALE:
                report.errors.append(f"{label}: scale must be between 0 and {MAX_SCALE}")
            if (
                config.precision is not None
                and config.scale is not None
                and config.scale > config.precision
            ):
                report.errors.append(f"{label}: scale cannot be greater than precision")
            if (
                config.min_value is not None
                and config.max_value is not None
                and config.min_value > config.max_value
            ):
                report.errors.append(f"{label}: min_value cannot be greater than max_value")

        elif f.data_type == DataType.DATE:
            if config.format and config.format not in DATE_FORMATS:
                report.errors.append(f"{label}: format must be one of {', '.join(DATE_FORMATS)}")

        if f.has_default and (problem := _default_error(f)):
            report.errors.append(f"{label}: {problem}")

        if f.is_required and not f.has_default and f.field_name != "id":
            report.warnings.append(f"{label} is required but has no default value")
        if f.data_type == DataType.TEXT and "password" in f.field_name.lower():
            report.warnings.append(
                f"{label} appears to store password data; store a hash instead"
            )

    names = [f.field_name for f in fields]
    if len(names) != len(set(names)):
        report.errors.append("Field names must be unique within a table")

    return report


def generate_field_indexes(table_name: str, fields: Sequence[FieldSchema]) -> list[CreateIndex]:
    """Suggest indexes for common access patterns.

    Foreign-key-like ``*_id`` columns, emails (unique), names, statuses and
    the created/updated timestamps each get a single-column index; a
    ``user_id`` column next to ``created_at`` also gets a composite one.
    """
    indexes: list[CreateIndex] = []
    has_created_at = any(f.field_name == "created_at" for f in fields)

    for f in fields:
        name = f.field_name
        index_name = f"idx_{table_name}_{name}"
        is_text = f.data_type == DataType.TEXT

        if name.endswith("_id"):
            indexes.append(CreateIndex(index_name, table_name, (name,)))
        elif is_text and "email" in name:
            indexes.append(CreateIndex(index_name, table_name, (name,), unique=True))
        elif is_text and ("name" in name or "status" in name):
            indexes.append(CreateIndex(index_name, table_name, (name,)))
        elif f.data_type == DataType.DATE and name in ("created_at", "updated_at"):
            indexes.append(CreateIndex(index_name, table_name, (name,)))

        if name == "user_id" and has_created_at:
            indexes.append(
                CreateIndex(f"idx_{table_name}_user_created", table_name, (name, "created_at"))
            )

    return indexes
