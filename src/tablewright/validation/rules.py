"""Per-type field rules shared by request validation and generated models.

A ``FieldRule`` is the declarative form of a field's constraints. The
request validator runs it through ``FIELD_CHECKS`` (one check per data
type); the API generator turns the same rule into a pydantic field.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from typing import Annotated, Any

from pydantic import Field, ValidatorFunctionWrapHandler, WrapValidator

from tablewright.core.types import DataType, FieldSchema
from tablewright.migrations.constraints import DATE_FUNCTIONS

logger = logging.getLogger(__name__)

LARGE_TEXT_THRESHOLD = 10_000
DATE_RANGE = timedelta(days=100 * 365)
ISO_DATETIME = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(\.\d{3})?Z$")
BOOLEAN_STRINGS = {"true": True, "TRUE": True, "1": True, "false": False, "FALSE": False, "0": False}
_INTEGER = re.compile(r"^[-+]?\d+$")


@dataclass
class FieldIssue:
    """A field-level validation error or warning."""

    field: str
    code: str
    message: str
    value: Any = None

    def to_dict(self) -> dict[str, Any]:
        return {"field": self.field, "code": self.code, "message": self.message, "value": self.value}


class FieldRuleError(ValueError):
    """Raised inside generated models when a value fails its field rule."""

    def __init__(self, issue: FieldIssue) -> None:
        super().__init__(f"{issue.code}: {issue.message}")
        self.issue = issue


@dataclass
class FieldCheck:
    """Outcome of checking one value against one rule."""

    value: Any = None
    """The value normalized for storage (numbers and booleans coerced)."""

    errors: list[FieldIssue] = field(default_factory=list)
    warnings: list[FieldIssue] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


@lru_cache(maxsize=256)
def _compile(pattern: str) -> re.Pattern[str] | None:
    try:
        return re.compile(pattern)
    except re.error as e:
        logger.warning(f"Ignoring invalid field pattern {pattern!r}: {e}")
        return None


@dataclass(frozen=True)
class FieldRule:
    """Constraints of one field, independent of where they are enforced."""

    field_name: str
    label: str
    data_type: DataType
    required: bool = False
    min_length: int | None = None
    max_length: int | None = None
    pattern: str | None = None
    min_value: float | None = None
    max_value: float | None = None
    scale: int | None = None

    @classmethod
    def from_field(cls, field_schema: FieldSchema) -> FieldRule:
        config = field_schema.field_config
        pattern = config.pattern if config.pattern and _compile(config.pattern) else None
        return cls(
            field_name=field_schema.field_name,
            label=field_schema.name or field_schema.field_name,
            data_type=DataType(field_schema.data_type),
            required=field_schema.is_required,
            min_length=config.min_length,
            max_length=config.max_length,
            pattern=pattern,
            min_value=config.min_value,
            max_value=config.max_value,
            scale=config.scale,
        )

    @property
    def compiled_pattern(self) -> re.Pattern[str] | None:
        return _compile(self.pattern) if self.pattern else None

    def check(self, value: Any) -> FieldCheck:
        """Run the type-specific check for this rule."""
        return FIELD_CHECKS[self.data_type](value, self)

    # === Declarative form ===

    def python_type(self) -> type:
        return _PYTHON_TYPES[self.data_type]

    def field_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for ``pydantic.Field`` expressing this rule."""
        kwargs: dict[str, Any] = {"description": self.label}
        if self.data_type == DataType.TEXT:
            if self.min_length is not None:
                kwargs["min_length"] = self.min_length
            if self.max_length is not None:
                kwargs["max_length"] = self.max_length
            if self.pattern:
                kwargs["pattern"] = self.pattern
        elif self.data_type == DataType.NUMBER:
            if self.min_value is not None:
                kwargs["ge"] = self.min_value
            if self.max_value is not None:
                kwargs["le"] = self.max_value
        return kwargs

    def json_schema_constraints(self) -> dict[str, Any]:
        """JSON Schema keywords documenting this rule."""
        keywords: dict[str, Any] = {}
        if self.data_type == DataType.TEXT:
            if self.min_length is not None:
                keywords["minLength"] = self.min_length
            if self.max_length is not None:
                keywords["maxLength"] = self.max_length
            if self.pattern:
                keywords["pattern"] = self.pattern
        elif self.data_type == DataType.NUMBER:
            if self.min_value is not None:
                keywords["minimum"] = self.min_value
            if self.max_value is not None:
                keywords["maximum"] = self.max_value
        return keywords

    def _validate(self, value: Any, handler: ValidatorFunctionWrapHandler) -> Any:
        result = self.check(value)
        if result.errors:
            raise FieldRuleError(result.errors[0])
        return handler(result.value)

    def annotated_type(self) -> Any:
        """The field's model type, validated by :meth:`check` before pydantic coercion."""
        return Annotated[_MODEL_TYPES[self.data_type], WrapValidator(self._validate)]

    def pydantic_field(self, *, optional: bool) -> tuple[Any, Any]:
        """``(annotation, FieldInfo)`` for ``pydantic.create_model``.

        Values are enforced by the same per-type check the request validator
        runs; the constraints only appear as JSON Schema keywords.

        Args:
            optional: Make the field nullable with a ``None`` default
        """
        annotation = self.annotated_type()
        info = Field(
            default=None if optional else ...,
            description=self.label,
            json_schema_extra=self.json_schema_constraints() or None,
        )
        return (annotation | None if optional else annotation), info


_PYTHON_TYPES: dict[DataType, type] = {
    DataType.TEXT: str,
    DataType.NUMBER: float,
    DataType.DATE: datetime,
    DataType.BOOLEAN: bool,
}

# Date values may also be SQL function names such as NOW()
_MODEL_TYPES: dict[DataType, Any] = {
    DataType.TEXT: str,
    DataType.NUMBER: float,
    DataType.DATE: datetime | str,
    DataType.BOOLEAN: bool,
}


def _issue(rule: FieldRule, code: str, message: str, value: Any) -> FieldIssue:
    return FieldIssue(field=rule.field_name, code=code, message=message, value=value)


# === Per-type checks ===


def check_text(value: Any, rule: FieldRule) -> FieldCheck:
    result = FieldCheck(value=value)
    if not isinstance(value, str):
        result.errors.append(_issue(rule, "TYPE_MISMATCH", f"{rule.label} must be text", value))
        return result

    length = len(value)
    if rule.max_length is not None and length > rule.max_length:
        result.errors.append(
            _issue(
                rule,
                "MAX_LENGTH",
                f"{rule.label} must be at most {rule.max_length} characters",
                value,
            )
        )
    if rule.min_length is not None and length < rule.min_length:
        result.errors.append(
            _issue(
                rule,
                "MIN_LENGTH",
                f"{rule.label} must be at least {rule.min_length} characters",
                value,
            )
        )
    compiled = rule.compiled_pattern
    if compiled is not None and not compiled.search(value):
        result.errors.append(
            _issue(rule, "PATTERN_MISMATCH", f"{rule.label} format is invalid", value)
        )
    if length > LARGE_TEXT_THRESHOLD:
        result.warnings.append(
            _issue(rule, "LARGE_TEXT", "Large text content may impact performance", length)
        )
    return result


def check_number(value: Any, rule: FieldRule) -> FieldCheck:
    result = FieldCheck(value=value)
    if isinstance(value, bool) or not isinstance(value, int | float | str | Decimal):
        result.errors.append(
            _issue(rule, "TYPE_MISMATCH", f"{rule.label} must be a number", value)
        )
        return result

    if isinstance(value, str):
        text = value.strip()
        if not text:
            result.errors.append(
                _issue(rule, "EMPTY_NUMBER", f"{rule.label} cannot be empty", value)
            )
            return result
        try:
            number = Decimal(text)
        except InvalidOperation:
            number = Decimal("NaN")
        if number.is_finite():
            result.value = int(text) if _INTEGER.match(text) else float(number)
    else:
        number = Decimal(str(value))

    if not number.is_finite():
        result.errors.append(
            _issue(rule, "INVALID_NUMBER", f"{rule.label} must be a valid number", value)
        )
        return result

    if rule.max_value is not None and number > Decimal(str(rule.max_value)):
        result.errors.append(
            _issue(rule, "MAX_VALUE", f"{rule.label} cannot exceed {rule.max_value:g}", value)
        )
    if rule.min_value is not None and number < Decimal(str(rule.min_value)):
        result.errors.append(
            _issue(rule, "MIN_VALUE", f"{rule.label} must be at least {rule.min_value:g}", value)
        )

    if rule.scale is not None:
        exponent = number.normalize().as_tuple().exponent
        places = -exponent if isinstance(exponent, int) and exponent < 0 else 0
        if places > rule.scale:
            result.warnings.append(
                _issue(
                    rule,
                    "PRECISION_WARNING",
                    f"{rule.label} has {places} decimal places, "
                    f"will be rounded to {rule.scale}",
                    value,
                )
            )
    return result


def check_date(value: Any, rule: FieldRule) -> FieldCheck:
    result = FieldCheck(value=value)
    if isinstance(value, datetime):
        return result
    if not isinstance(value, str):
        result.errors.append(
            _issue(rule, "TYPE_MISMATCH", f"{rule.label} must be a string", value)
        )
        return result

    if value.upper() in DATE_FUNCTIONS:
        return result

    if not ISO_DATETIME.match(value):
        result.errors.append(
            _issue(
                rule,
                "INVALID_DATE_FORMAT",
                f"{rule.label} must be a valid ISO date string (YYYY-MM-DDTHH:mm:ss.sssZ)",
                value,
            )
        )
        return result

    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        result.errors.append(_issue(rule, "INVALID_DATE", f"{rule.label} is not a valid date", value))
        return result

    now = datetime.now(UTC)
    if parsed - now > DATE_RANGE:
        result.warnings.append(_issue(rule, "FUTURE_DATE", "Date is far in the future", value))
    elif now - parsed > DATE_RANGE:
        result.warnings.append(_issue(rule, "PAST_DATE", "Date is far in the past", value))
    return result


def check_boolean(value: Any, rule: FieldRule) -> FieldCheck:
    result = FieldCheck(value=value)
    if isinstance(value, bool):
        return result
    if isinstance(value, str) and value in BOOLEAN_STRINGS:
        result.value = BOOLEAN_STRINGS[value]
        return result
    if isinstance(value, int) and value in (0, 1):
        result.value = bool(value)
        return result
    result.errors.append(
        _issue(
            rule,
            "INVALID_BOOLEAN",
            f'{rule.label} must be a boolean (true/false, 1/0, "true"/"false")',
            value,
        )
    )
    return result


FIELD_CHECKS: dict[DataType, Callable[[Any, FieldRule], FieldCheck]] = {
    DataType.TEXT: check_text,
    DataType.NUMBER: check_number,
    DataType.DATE: check_date,
    DataType.BOOLEAN: check_boolean,
}
