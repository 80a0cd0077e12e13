"""Custom exceptions for Tablewright.

Every error carries an HTTP status code so API layers can translate it
without a lookup table of their own:
- Actionable error messages that tell what went wrong AND how to fix it
- Include context about available options when relevant
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Sequence

    from tablewright.validation.rules import FieldIssue


class TablewrightError(Exception):
    """Base exception for all Tablewright errors."""

    status_code: int = 500

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        """Return error as JSON-serializable dict for API responses."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "status_code": self.status_code,
            "context": self.context,
        }


class DatabaseConnectionError(TablewrightError):
    """Failed to connect to the metadata database."""

    status_code = 503


class SchemaNotFoundError(TablewrightError):
    """Table does not exist or is not active."""

    status_code = 404

    def __init__(
        self,
        table_name: str,
        reason: str | None = None,
        available_tables: list[str] | None = None,
    ) -> None:
        available = available_tables or []
        message = reason or f"Table '{table_name}' not found."
        if available:
            message = f"{message} Available tables: {', '.join(available)}"
        super().__init__(message, {"table_name": table_name, "available_tables": available})
        self.table_name = table_name
        self.available_tables = available


class SchemaFetchError(TablewrightError):
    """The schema source failed while loading table definitions."""

    status_code = 503
    recoverable = False


class SchemaFetchTimeoutError(SchemaFetchError):
    """The schema source did not answer within the fetch timeout."""

    status_code = 504
    recoverable = True

    def __init__(self, target: str, timeout: float) -> None:
        message = (
            f"Timed out after {timeout:g}s fetching schema for '{target}'. "
            "Retry the request or raise fetch_timeout_seconds."
        )
        super().__init__(message, {"target": target, "timeout": timeout})
        self.target = target
        self.timeout = timeout


class RequestValidationError(TablewrightError):
    """An API request failed validation against its table schema."""

    status_code = 422

    def __init__(self, table_name: str, issues: Sequence[FieldIssue]) -> None:
        issues = list(issues)
        fields = sorted({issue.field for issue in issues})
        message = f"Request for '{table_name}' failed validation on: {', '.join(fields)}"
        super().__init__(
            message,
            {"table_name": table_name, "errors": [issue.to_dict() for issue in issues]},
        )
        self.table_name = table_name
        self.issues = issues


class UnsupportedOperationError(TablewrightError):
    """A migration operation cannot be rendered in the requested direction."""

    status_code = 400

    def __init__(self, operation: str, reason: str) -> None:
        super().__init__(
            f"Cannot handle '{operation}': {reason}",
            {"operation": operation, "reason": reason},
        )
        self.operation = operation


class UnsupportedTypeError(TablewrightError):
    """Field data type has no column mapping."""

    status_code = 400

    def __init__(self, data_type: str, valid_types: list[str]) -> None:
        message = f"Unsupported data type '{data_type}'. Valid types: {', '.join(valid_types)}"
        super().__init__(message, {"data_type": data_type, "valid_types": valid_types})
        self.data_type = data_type


class MalformedIdentifierError(TablewrightError):
    """An identifier would produce unsafe or invalid SQL."""

    status_code = 400

    def __init__(self, operation: str, problems: list[str]) -> None:
        message = (
            f"Invalid {operation} operation: {'; '.join(problems)}. "
            "Identifiers must start with a lowercase letter and contain only "
            "lowercase letters, digits and underscores."
        )
        super().__init__(message, {"operation": operation, "problems": problems})
        self.problems = problems


class InvalidRelationshipError(TablewrightError):
    """Relationship between two tables is not valid."""

    status_code = 400

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        super().__init__(message, {"errors": errors or []})
        self.errors = errors or []


class EndpointNotFoundError(TablewrightError):
    """Endpoint id is not registered."""

    status_code = 404

    def __init__(self, endpoint_id: str) -> None:
        message = (
            f"Endpoint '{endpoint_id}' not registered. "
            "Register the table endpoints first with register_table_endpoints()."
        )
        super().__init__(message, {"endpoint_id": endpoint_id})
        self.endpoint_id = endpoint_id


class MigrationExecutionError(TablewrightError):
    """A DDL statement failed while applying a migration plan."""

    def __init__(self, statement: str, index: int, reason: str) -> None:
        message = f"Statement {index + 1} failed: {reason}"
        super().__init__(message, {"statement": statement, "index": index, "reason": reason})
        self.statement = statement
        self.index = index


# === Database constraint errors ===

# PostgreSQL SQLSTATE -> (HTTP status, kind)
_DATABASE_CODES: dict[str, tuple[int, str]] = {
    "23503": (409, "foreign_key_violation"),
    "23505": (409, "unique_violation"),
    "23514": (409, "check_violation"),
    "23513": (409, "exclusion_violation"),
    "40001": (409, "serialization_failure"),
    "40P01": (409, "deadlock_detected"),
    "23502": (422, "not_null_violation"),
    "42P01": (404, "undefined_table"),
    "42703": (400, "undefined_column"),
    "42501": (403, "insufficient_privilege"),
    "28P01": (401, "invalid_password"),
    "54000": (503, "program_limit_exceeded"),
}


def status_for_database_code(code: str | None) -> int:
    """Map a PostgreSQL SQLSTATE to the HTTP status it should surface as."""
    if not code:
        return 500
    if code in _DATABASE_CODES:
        return _DATABASE_CODES[code][0]
    if code.startswith(("08", "53")):
        return 503
    return 500


class ConstraintViolationError(TablewrightError):
    """The database rejected a statement with a known SQLSTATE."""

    def __init__(
        self, code: str | None, message: str | None = None, constraint: str | None = None
    ) -> None:
        kind = _DATABASE_CODES.get(code or "", (0, "database_error"))[1]
        super().__init__(
            message or f"Database error ({code or 'unknown'}): {kind}",
            {"code": code, "kind": kind, "constraint": constraint},
        )
        self.code = code
        self.kind = kind
        self.constraint = constraint
        self.status_code = status_for_database_code(code)

    @classmethod
    def from_dbapi_error(cls, error: BaseException) -> ConstraintViolationError:
        """Build from a driver exception exposing ``pgcode`` or ``sqlstate``."""
        orig = getattr(error, "orig", error)
        code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
        diag = getattr(orig, "diag", None)
        constraint = getattr(diag, "constraint_name", None) if diag is not None else None
        return cls(code, str(orig).strip() or None, constraint)
