"""Request validation for generated table endpoints.

Validation runs params, then query, then body, collecting every problem
instead of stopping at the first one.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from tablewright.core.types import AUTO_TIMESTAMP_FIELDS, TableSchema
from tablewright.exceptions import RequestValidationError
from tablewright.schema.registry import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT
from tablewright.validation.rules import FieldIssue, FieldRule

if TYPE_CHECKING:
    from tablewright.schema.registry import SchemaRegistry

logger = logging.getLogger(__name__)

UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)
TABLE_NAME_PATTERN = re.compile(r"^[a-zA-Z][a-zA-Z0-9_-]*$")
MAX_TABLE_NAME_LENGTH = 63
FILTER_OPERATORS = ("eq", "ne", "gt", "gte", "lt", "lte", "like", "ilike", "in", "not_in")
FILTER_PATTERN = re.compile(r"^(\w+)__(" + "|".join(FILTER_OPERATORS) + r")$")
LIST_OPERATORS = frozenset({"in", "not_in"})
LONG_SEARCH_THRESHOLD = 1000
_INTEGER = re.compile(r"^[-+]?\d+$")


class Operation(StrEnum):
    """Kinds of request a generated endpoint can receive."""

    CREATE = "create"
    UPDATE = "update"
    LIST = "list"
    GET = "get"
    DELETE = "delete"

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid operation values."""
        return [o.value for o in cls]


@dataclass
class ValidationContext:
    """Everything needed to validate one request."""

    table_name: str
    operation: Operation | str
    params: Mapping[str, Any] | None = None
    query: Mapping[str, Any] | None = None
    body: Any = None


@dataclass
class ValidationResult:
    """Aggregated outcome of a request validation."""

    table_name: str
    errors: list[FieldIssue] = field(default_factory=list)
    """Every problem found, in params, query, body order."""

    warnings: list[FieldIssue] = field(default_factory=list)
    """Informational findings; they never fail the request."""

    data: dict[str, Any] = field(default_factory=dict)
    """Normalized values: id, pagination, sort, filters and coerced body fields."""

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def raise_for_errors(self) -> None:
        """Raise RequestValidationError (422) if any error was found."""
        if self.errors:
            raise RequestValidationError(self.table_name, self.errors)

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
            "data": self.data,
        }


def _parse_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and _INTEGER.match(value.strip()):
        return int(value.strip())
    return None


class RequestValidator:
    """Validates requests against table schemas from a SchemaRegistry."""

    def __init__(self, registry: SchemaRegistry) -> None:
        self._registry = registry

    def validate_request(self, context: ValidationContext) -> ValidationResult:
        """Validate a request.

        Raises:
            SchemaNotFoundError: If the table is missing or not active
            SchemaFetchError: If the schema cannot be loaded
        """
        schema = self._registry.get_table_schema(context.table_name)
        operation = Operation(context.operation)
        result = ValidationResult(table_name=context.table_name)

        self._validate_params(context, operation, result)
        self._validate_query(context.query or {}, operation, schema, result)
        if operation in (Operation.CREATE, Operation.UPDATE):
            self._validate_body(context.body, operation, schema, result)

        if result.errors:
            logger.debug(
                f"Request to '{context.table_name}' ({operation}) failed with "
                f"{len(result.errors)} error(s)"
            )
        return result

    # === Params ===

    def _validate_params(
        self, context: ValidationContext, operation: Operation, result: ValidationResult
    ) -> None:
        params = context.params or {}

        if operation in (Operation.GET, Operation.UPDATE, Operation.DELETE):
            raw_id = params.get("id")
            record_id = "" if raw_id is None else str(raw_id)
            if not record_id:
                result.errors.append(FieldIssue("id", "REQUIRED", "ID parameter is required"))
            elif not UUID_PATTERN.match(record_id):
                result.errors.append(
                    FieldIssue("id", "INVALID_UUID", "ID must be a valid UUID", record_id)
                )
            else:
                result.data["id"] = record_id

        table_name = str(params.get("table_name") or context.table_name)
        if len(table_name) > MAX_TABLE_NAME_LENGTH or not TABLE_NAME_PATTERN.match(table_name):
            result.errors.append(
                FieldIssue(
                    "table_name",
                    "INVALID_TABLE_NAME",
                    "Table name must start with a letter, contain only letters, digits, "
                    f"'_' or '-', and be at most {MAX_TABLE_NAME_LENGTH} characters",
                    table_name,
                )
            )
        else:
            result.data["table_name"] = table_name

    # === Query ===

    def _validate_query(
        self,
        query: Mapping[str, Any],
        operation: Operation,
        schema: TableSchema,
        result: ValidationResult,
    ) -> None:
        if operation == Operation.LIST:
            self._validate_pagination(query, result)

        sort = query.get("sort")
        if sort is not None:
            if schema.get_field(str(sort)) is None:
                result.errors.append(
                    FieldIssue(
                        "sort",
                        "INVALID_SORT_FIELD",
                        f"Cannot sort by '{sort}'. Available fields: {', '.join(schema.field_names)}",
                        sort,
                    )
                )
            else:
                result.data["sort"] = str(sort)
        elif operation == Operation.LIST:
            result.data["sort"] = schema.default_sort

        order = query.get("order")
        if order is not None:
            if str(order).lower() not in ("asc", "desc"):
                result.errors.append(
                    FieldIssue("order", "INVALID_ORDER", "Order must be 'asc' or 'desc'", order)
                )
            else:
                result.data["order"] = str(order).lower()
        elif operation == Operation.LIST:
            result.data["order"] = schema.default_order

        search = query.get("search")
        if search is not None:
            if not isinstance(search, str):
                result.errors.append(
                    FieldIssue("search", "INVALID_SEARCH_TYPE", "Search must be a string", search)
                )
            else:
                if len(search) > LONG_SEARCH_THRESHOLD:
                    result.warnings.append(
                        FieldIssue(
                            "search",
                            "LONG_SEARCH_TERM",
                            "Long search terms may impact performance",
                            len(search),
                        )
                    )
                result.data["search"] = search

        filters = self._validate_filters(query, schema, result)
        if filters:
            result.data["filters"] = filters

    def _validate_pagination(self, query: Mapping[str, Any], result: ValidationResult) -> None:
        raw_page = query.get("page")
        page = 1 if raw_page is None else _parse_int(raw_page)
        if page is None or page < 1:
            result.errors.append(
                FieldIssue("page", "INVALID_PAGE", "Page must be a positive integer", raw_page)
            )
        else:
            result.data["page"] = page

        raw_limit = query.get("limit")
        limit = DEFAULT_PAGE_LIMIT if raw_limit is None else _parse_int(raw_limit)
        if limit is None or not 1 <= limit <= MAX_PAGE_LIMIT:
            result.errors.append(
                FieldIssue(
                    "limit",
                    "INVALID_LIMIT",
                    f"Limit must be between 1 and {MAX_PAGE_LIMIT}",
                    raw_limit,
                )
            )
        else:
            result.data["limit"] = limit

    def _validate_filters(
        self, query: Mapping[str, Any], schema: TableSchema, result: ValidationResult
    ) -> dict[str, dict[str, Any]]:
        filters: dict[str, dict[str, Any]] = {}
        for key, value in query.items():
            match = FILTER_PATTERN.match(key)
            if match is None:
                continue
            field_name, operator = match.groups()
            if schema.get_field(field_name) is None:
                result.errors.append(
                    FieldIssue(
                        key,
                        "INVALID_FILTER_FIELD",
                        f"Cannot filter by '{field_name}'. "
                        f"Available fields: {', '.join(schema.field_names)}",
                        value,
                    )
                )
                continue
            if operator in LIST_OPERATORS:
                if isinstance(value, str):
                    value = [part.strip() for part in value.split(",") if part.strip()]
                elif isinstance(value, list | tuple):
                    value = list(value)
                else:
                    result.errors.append(
                        FieldIssue(
                            key,
                            "INVALID_FILTER_VALUE",
                            f"'{operator}' filter needs a list or comma-separated values",
                            value,
                        )
                    )
                    continue
            filters.setdefault(field_name, {})[operator] = value
        return filters

    # === Body ===

    def _validate_body(
        self, body: Any, operation: Operation, schema: TableSchema, result: ValidationResult
    ) -> None:
        if body is None:
            if operation == Operation.UPDATE:
                result.errors.append(
                    FieldIssue("body", "INVALID_BODY", "Request body is required")
                )
                return
            body = {}
        if not isinstance(body, Mapping):
            result.errors.append(
                FieldIssue("body", "INVALID_BODY", "Request body must be a JSON object", body)
            )
            return

        unknown = [key for key in body if schema.get_field(str(key)) is None]
        if unknown:
            logger.warning(
                f"Ignoring unknown fields for '{schema.table_name}': {', '.join(map(str, unknown))}"
            )

        cleaned: dict[str, Any] = {}
        for field_schema in schema.fields:
            if operation == Operation.CREATE and field_schema.is_primary_key:
                continue
            if operation == Operation.UPDATE and field_schema.immutable:
                continue

            name = field_schema.field_name
            value = body.get(name)
            if value is None or value == "":
                if (
                    operation == Operation.CREATE
                    and field_schema.is_required
                    and not field_schema.has_default
                    and name not in AUTO_TIMESTAMP_FIELDS
                ):
                    result.errors.append(
                        FieldIssue(name, "REQUIRED", f"{field_schema.name} is required", value)
                    )
                    continue
                if value is None:
                    continue

            check = FieldRule.from_field(field_schema).check(value)
            result.errors.extend(check.errors)
            result.warnings.extend(check.warnings)
            if check.is_valid:
                cleaned[name] = check.value

        result.data["body"] = cleaned
