"""Tests for request validation against table schemas."""

import pytest
from conftest import text_field

from tablewright import DataType, InMemorySchemaSource, SchemaRegistry, TableSchema
from tablewright.exceptions import RequestValidationError, SchemaNotFoundError
from tablewright.validation import FieldRule, Operation, RequestValidator, ValidationContext

RECORD_ID = "3f2b8c1e-9a4d-4c7b-8e2f-1a2b3c4d5e6f"


@pytest.fixture
def validator(registry):
    return RequestValidator(registry)


def validate(validator, operation, body=None, query=None, params=None, table="users"):
    return validator.validate_request(
        ValidationContext(
            table_name=table, operation=operation, params=params, query=query, body=body
        )
    )


def codes(issues):
    return [(issue.field, issue.code) for issue in issues]


def valid_user(**overrides):
    body = {"email": "ann@example.io", "full_name": "Ann Lee", "age": 42, "is_active": True}
    body.update(overrides)
    return body


class TestCreate:
    """Tests for create requests."""

    def test_valid_body(self, validator):
        result = validate(validator, "create", valid_user(age="42", is_active="true"))
        assert result.is_valid
        assert result.data["body"] == {
            "email": "ann@example.io",
            "full_name": "Ann Lee",
            "age": 42,
            "is_active": True,
        }

    def test_missing_required_fields(self, validator):
        result = validate(validator, Operation.CREATE, {})
        assert codes(result.errors) == [("email", "REQUIRED"), ("full_name", "REQUIRED")]
        assert result.errors[0].message == "Email is required"

    def test_none_body_is_empty(self, validator):
        result = validate(validator, "create", None)
        assert [field for field, _ in codes(result.errors)] == ["email", "full_name"]

    def test_empty_string_counts_as_missing(self, validator):
        result = validate(validator, "create", valid_user(email=""))
        assert codes(result.errors) == [("email", "REQUIRED")]

    def test_primary_key_and_unknown_fields_dropped(self, validator):
        result = validate(validator, "create", valid_user(id="client-id", nickname="annie"))
        assert result.is_valid
        assert "id" not in result.data["body"]
        assert "nickname" not in result.data["body"]

    def test_body_must_be_object(self, validator):
        result = validate(validator, "create", ["not", "an", "object"])
        assert codes(result.errors) == [("body", "INVALID_BODY")]

    def test_collects_every_error(self, validator):
        result = validate(
            validator, "create", valid_user(email="nope", full_name="A", age=200, is_active="yes")
        )
        assert codes(result.errors) == [
            ("email", "PATTERN_MISMATCH"),
            ("full_name", "MIN_LENGTH"),
            ("age", "MAX_VALUE"),
            ("is_active", "INVALID_BOOLEAN"),
        ]


class TestFieldTypes:
    """Tests for the per-type field checks."""

    @pytest.mark.parametrize(
        ("value", "code"),
        [
            (42, "TYPE_MISMATCH"),
            ("a" * 250 + "@example.io", "MAX_LENGTH"),
        ],
    )
    def test_text(self, validator, value, code):
        result = validate(validator, "create", valid_user(email=value))
        assert code in [c for _, c in codes(result.errors)]

    @pytest.mark.parametrize(
        ("value", "code"),
        [
            (True, "TYPE_MISMATCH"),
            ("abc", "INVALID_NUMBER"),
            ("   ", "EMPTY_NUMBER"),
            (-1, "MIN_VALUE"),
            (150.5, "MAX_VALUE"),
            ([1], "TYPE_MISMATCH"),
        ],
    )
    def test_number(self, validator, value, code):
        result = validate(validator, "create", valid_user(age=value))
        assert codes(result.errors) == [("age", code)]

    def test_number_precision_warning(self, validator):
        result = validate(validator, "create", valid_user(balance="10.125"))
        assert result.is_valid
        assert codes(result.warnings) == [("balance", "PRECISION_WARNING")]
        assert result.data["body"]["balance"] == 10.125

    def test_number_within_scale(self, validator):
        result = validate(validator, "create", valid_user(balance=10.5))
        assert result.warnings == []

    @pytest.mark.parametrize(
        ("value", "code"),
        [
            ("2024-01-15", "INVALID_DATE_FORMAT"),
            ("2024-02-30T10:00:00Z", "INVALID_DATE"),
            (1705312200, "TYPE_MISMATCH"),
        ],
    )
    def test_date_errors(self, validator, value, code):
        result = validate(validator, "create", valid_user(updated_at=value))
        assert codes(result.errors) == [("updated_at", code)]

    def test_date_functions_and_iso(self, validator):
        result = validate(
            validator,
            "create",
            valid_user(created_at="2024-01-15T10:30:00.000Z", updated_at="now()"),
        )
        assert result.is_valid

    @pytest.mark.parametrize(
        ("value", "code"),
        [("2250-01-01T00:00:00Z", "FUTURE_DATE"), ("1850-01-01T00:00:00Z", "PAST_DATE")],
    )
    def test_date_range_warnings(self, validator, value, code):
        result = validate(validator, "create", valid_user(updated_at=value))
        assert result.is_valid
        assert codes(result.warnings) == [("updated_at", code)]

    @pytest.mark.parametrize(("value", "expected"), [("FALSE", False), (1, True), (0, False)])
    def test_boolean_coercion(self, validator, value, expected):
        result = validate(validator, "create", valid_user(is_active=value))
        assert result.data["body"]["is_active"] is expected

    def test_large_text_warning(self):
        notes = TableSchema(
            table_name="notes", status="active", fields=[text_field("body", order=1)]
        )
        with SchemaRegistry(InMemorySchemaSource([notes])) as registry:
            result = validate(
                RequestValidator(registry), "create", {"body": "x" * 10_001}, table="notes"
            )
        assert result.is_valid
        assert codes(result.warnings) == [("body", "LARGE_TEXT")]

    def test_invalid_pattern_is_ignored(self):
        codes_table = TableSchema(
            table_name="codes",
            status="active",
            fields=[text_field("code", field_config={"pattern": "[unclosed"})],
        )
        with SchemaRegistry(InMemorySchemaSource([codes_table])) as registry:
            result = validate(RequestValidator(registry), "create", {"code": "abc"}, table="codes")
        assert result.is_valid


class TestBoundaries:
    """Tests for values at and just past the configured limits."""

    @pytest.mark.parametrize(
        ("length", "expected"),
        [
            (1, [("full_name", "MIN_LENGTH")]),
            (2, []),
            (100, []),
            (101, [("full_name", "MAX_LENGTH")]),
        ],
    )
    def test_text_length(self, validator, length, expected):
        result = validate(validator, "create", valid_user(full_name="x" * length))
        assert codes(result.errors) == expected

    @pytest.mark.parametrize(
        ("value", "expected"),
        [(-1, [("age", "MIN_VALUE")]), (0, []), (150, []), (151, [("age", "MAX_VALUE")])],
    )
    def test_number_range(self, validator, value, expected):
        result = validate(validator, "create", valid_user(age=value))
        assert codes(result.errors) == expected

    @pytest.mark.parametrize(
        ("value", "code"),
        [
            (-1, "MIN_VALUE"),
            (0, None),
            (100, None),
            (101, "MAX_VALUE"),
            ("100", None),
            ("-1", "MIN_VALUE"),
        ],
    )
    def test_rule_range(self, value, code):
        rule = FieldRule("score", "Score", DataType.NUMBER, min_value=0, max_value=100)
        assert [issue.code for issue in rule.check(value).errors] == ([code] if code else [])

    @pytest.mark.parametrize(("length", "valid"), [(0, True), (10, True), (11, False)])
    def test_rule_max_length(self, length, valid):
        rule = FieldRule("code", "Code", DataType.TEXT, max_length=10)
        assert rule.check("c" * length).is_valid is valid


class TestUpdate:
    """Tests for update requests."""

    def test_partial_body(self, validator):
        result = validate(validator, "update", {"age": 30}, params={"id": RECORD_ID})
        assert result.is_valid
        assert result.data == {"id": RECORD_ID, "table_name": "users", "body": {"age": 30}}

    def test_immutable_fields_skipped(self, validator):
        result = validate(
            validator,
            "update",
            {"id": "other", "created_at": "garbage", "full_name": "Ann B"},
            params={"id": RECORD_ID},
        )
        assert result.is_valid
        assert result.data["body"] == {"full_name": "Ann B"}

    def test_body_required(self, validator):
        result = validate(validator, "update", None, params={"id": RECORD_ID})
        assert codes(result.errors) == [("body", "INVALID_BODY")]

    @pytest.mark.parametrize(
        ("params", "code"),
        [({}, "REQUIRED"), ({"id": ""}, "REQUIRED"), ({"id": "42"}, "INVALID_UUID")],
    )
    def test_id_param(self, validator, params, code):
        result = validate(validator, "update", {"age": 1}, params=params)
        assert codes(result.errors) == [("id", code)]


class TestParams:
    """Tests for path parameters on read and delete."""

    def test_get_and_delete_need_uuid(self, validator):
        for operation in ("get", "delete"):
            assert validate(validator, operation, params={"id": RECORD_ID}).is_valid
            result = validate(validator, operation, params={"id": "not-a-uuid"})
            assert codes(result.errors) == [("id", "INVALID_UUID")]

    def test_invalid_table_name_param(self, validator):
        result = validate(validator, "list", params={"table_name": "1users"})
        assert codes(result.errors) == [("table_name", "INVALID_TABLE_NAME")]

    def test_body_ignored_for_reads(self, validator):
        result = validate(validator, "get", body={"email": 5}, params={"id": RECORD_ID})
        assert result.is_valid
        assert "body" not in result.data

    def test_unknown_table(self, validator):
        with pytest.raises(SchemaNotFoundError):
            validate(validator, "list", table="invoices")

    def test_unknown_operation(self, validator):
        with pytest.raises(ValueError):
            validate(validator, "patch")


class TestListQuery:
    """Tests for list query parameters."""

    def test_defaults(self, validator):
        result = validate(validator, "list")
        assert result.data == {
            "table_name": "users",
            "page": 1,
            "limit": 20,
            "sort": "created_at",
            "order": "desc",
        }

    def test_string_values(self, validator):
        result = validate(
            validator, "list", query={"page": "3", "limit": "50", "sort": "age", "order": "ASC"}
        )
        assert result.is_valid
        assert (result.data["page"], result.data["limit"]) == (3, 50)
        assert (result.data["sort"], result.data["order"]) == ("age", "asc")

    @pytest.mark.parametrize(
        ("query", "expected"),
        [
            ({"page": "0"}, ("page", "INVALID_PAGE")),
            ({"page": "two"}, ("page", "INVALID_PAGE")),
            ({"page": 1.5}, ("page", "INVALID_PAGE")),
            ({"limit": 101}, ("limit", "INVALID_LIMIT")),
            ({"limit": "0"}, ("limit", "INVALID_LIMIT")),
            ({"sort": "salary"}, ("sort", "INVALID_SORT_FIELD")),
            ({"order": "up"}, ("order", "INVALID_ORDER")),
            ({"search": 7}, ("search", "INVALID_SEARCH_TYPE")),
        ],
    )
    def test_invalid(self, validator, query, expected):
        result = validate(validator, "list", query=query)
        assert codes(result.errors) == [expected]

    def test_pagination_only_checked_for_list(self, validator):
        result = validate(validator, "get", query={"page": "0"}, params={"id": RECORD_ID})
        assert result.is_valid
        assert "page" not in result.data

    def test_sort_checked_for_every_operation(self, validator):
        result = validate(validator, "get", query={"sort": "salary"}, params={"id": RECORD_ID})
        assert codes(result.errors) == [("sort", "INVALID_SORT_FIELD")]

    def test_long_search_warning(self, validator):
        result = validate(validator, "list", query={"search": "x" * 1001})
        assert result.is_valid
        assert codes(result.warnings) == [("search", "LONG_SEARCH_TERM")]
        assert result.warnings[0].value == 1001

    def test_filters(self, validator):
        result = validate(
            validator,
            "list",
            query={"age__gte": "18", "email__in": "a@b.io, c@d.io", "age__lt": 65, "foo": "bar"},
        )
        assert result.is_valid
        assert result.data["filters"] == {
            "age": {"gte": "18", "lt": 65},
            "email": {"in": ["a@b.io", "c@d.io"]},
        }

    def test_filter_errors(self, validator):
        result = validate(validator, "list", query={"salary__gt": 1, "email__not_in": 5})
        assert codes(result.errors) == [
            ("salary__gt", "INVALID_FILTER_FIELD"),
            ("email__not_in", "INVALID_FILTER_VALUE"),
        ]


class TestValidationResult:
    """Tests for result helpers."""

    def test_raise_for_errors(self, validator):
        result = validate(validator, "create", {})
        with pytest.raises(RequestValidationError) as exc_info:
            result.raise_for_errors()
        assert exc_info.value.status_code == 422
        assert len(exc_info.value.issues) == 2
        assert "email, full_name" in exc_info.value.message

    def test_no_raise_when_valid(self, validator):
        validate(validator, "create", valid_user()).raise_for_errors()

    def test_to_dict(self, validator):
        data = validate(validator, "create", {}).to_dict()
        assert data["is_valid"] is False
        assert data["errors"][0] == {
            "field": "email",
            "code": "REQUIRED",
            "message": "Email is required",
            "value": None,
        }
