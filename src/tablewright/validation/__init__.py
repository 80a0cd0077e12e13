"""Request validation against table schemas."""

from tablewright.validation.request import (
    Operation,
    RequestValidator,
    ValidationContext,
    ValidationResult,
)
from tablewright.validation.rules import (
    FIELD_CHECKS,
    FieldCheck,
    FieldIssue,
    FieldRule,
    FieldRuleError,
)

__all__ = [
    "RequestValidator",
    "ValidationContext",
    "ValidationResult",
    "Operation",
    "FieldIssue",
    "FieldRule",
    "FieldRuleError",
    "FieldCheck",
    "FIELD_CHECKS",
]
