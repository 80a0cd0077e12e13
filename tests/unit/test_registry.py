"""Tests for the schema registry."""

import threading

import pytest
from conftest import make_users_table

from tablewright import InMemorySchemaSource, RegistrySettings, SchemaRegistry
from tablewright.core.types import DataType
from tablewright.exceptions import SchemaFetchError, SchemaFetchTimeoutError, SchemaNotFoundError


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class CountingSource(InMemorySchemaSource):
    """In-memory source that counts table fetches."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fetches = 0

    def fetch_table(self, table_name):
        self.fetches += 1
        return super().fetch_table(table_name)


class BlockingSource(InMemorySchemaSource):
    """Source whose table fetches wait until released."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.release = threading.Event()

    def fetch_table(self, table_name):
        self.release.wait(5)
        return super().fetch_table(table_name)


class FailingSource(InMemorySchemaSource):
    def fetch_table(self, table_name):
        raise RuntimeError("connection reset")


class TestGetTableSchema:
    """Tests for schema lookups."""

    def test_includes_relationships(self, registry):
        schema = registry.get_table_schema("orders")
        assert schema.table_name == "orders"
        assert [r.name for r in schema.relationships] == ["user_orders"]

    def test_missing_table(self, registry):
        with pytest.raises(SchemaNotFoundError) as exc_info:
            registry.get_table_schema("invoices")
        assert exc_info.value.status_code == 404
        assert exc_info.value.table_name == "invoices"

    def test_inactive_table(self):
        source = InMemorySchemaSource([make_users_table(status="draft")])
        with SchemaRegistry(source) as registry:
            with pytest.raises(SchemaNotFoundError) as exc_info:
                registry.get_table_schema("users")
        assert "not active" in exc_info.value.message

    def test_cached_within_ttl(self, document):
        clock = FakeClock()
        source = CountingSource(document.tables, document.relationships)
        with SchemaRegistry(source, RegistrySettings(cache_ttl_seconds=60), clock) as registry:
            registry.get_table_schema("users")
            clock.now += 59
            registry.get_table_schema("users")
            assert source.fetches == 1

            clock.now += 1
            registry.get_table_schema("users")
            assert source.fetches == 2

    def test_expired_entry_reflects_source(self, document):
        clock = FakeClock()
        source = InMemorySchemaSource(document.tables, document.relationships)
        with SchemaRegistry(source, RegistrySettings(cache_ttl_seconds=10), clock) as registry:
            assert registry.get_table_schema("users").name == "Users"
            source.add_table(make_users_table(name="Members"))
            assert registry.get_table_schema("users").name == "Users"
            clock.now += 10
            assert registry.get_table_schema("users").name == "Members"

    def test_fetch_timeout(self, document):
        source = BlockingSource(document.tables)
        registry = SchemaRegistry(source, RegistrySettings(fetch_timeout_seconds=0.05))
        try:
            with pytest.raises(SchemaFetchTimeoutError) as exc_info:
                registry.get_table_schema("users")
            assert exc_info.value.status_code == 504
            assert exc_info.value.recoverable
        finally:
            source.release.set()
            registry.close()

    def test_source_failure_is_wrapped(self, document):
        with SchemaRegistry(FailingSource(document.tables)) as registry:
            with pytest.raises(SchemaFetchError) as exc_info:
                registry.get_table_schema("users")
        assert "connection reset" in exc_info.value.message
        assert not isinstance(exc_info.value, SchemaFetchTimeoutError)


class TestValidateTableExists:
    """Tests for existence checks."""

    def test_active(self, registry):
        result = registry.validate_table_exists("users")
        assert result.is_valid
        assert result.table.table_name == "users"
        assert result.error is None

    def test_missing(self, registry):
        result = registry.validate_table_exists("nope")
        assert not result.is_valid
        assert result.error == "Table 'nope' not found"

    def test_inactive(self):
        source = InMemorySchemaSource([make_users_table(status="deprecated")])
        with SchemaRegistry(source) as registry:
            result = registry.validate_table_exists("users")
        assert not result.is_valid
        assert result.table is not None
        assert "status: deprecated" in result.error

    def test_source_failure_is_reported(self, document):
        with SchemaRegistry(FailingSource(document.tables)) as registry:
            result = registry.validate_table_exists("users")
        assert not result.is_valid
        assert result.error.startswith("Failed to validate table")


class TestMutation:
    """Tests for registering and updating cached tables."""

    def test_register_table(self):
        with SchemaRegistry(InMemorySchemaSource()) as registry:
            registry.register_table(make_users_table())
            assert registry.get_table_schema("users").table_name == "users"
            assert registry.get_cache_stats().tables_count == 1

    def test_update_table(self, registry):
        registry.get_table_schema("users")
        updated = registry.update_table("users", name="People", default_order="asc")
        assert updated.name == "People"
        assert registry.get_table_schema("users").default_order == "asc"

    def test_update_unknown_table(self, registry):
        with pytest.raises(SchemaNotFoundError) as exc_info:
            registry.update_table("ghosts", name="Ghosts")
        assert "not registered" in exc_info.value.message

    def test_clear_cache(self, registry):
        registry.get_table_schema("users")
        registry.get_table_schema("orders")
        stats = registry.get_cache_stats()
        assert (stats.tables_count, stats.schemas_count) == (2, 2)

        registry.clear_table_cache("users")
        assert registry.get_cache_stats().schemas_count == 1
        registry.clear_cache()
        assert registry.get_cache_stats().tables_count == 0

    def test_unregister_table(self, registry):
        registry.get_table_schema("users")
        registry.unregister_table("users")
        assert registry.get_cache_stats().tables_count == 0


class TestSchemaHelpers:
    """Tests for the convenience lookups used by request validation."""

    def test_pagination_defaults(self, registry):
        defaults = registry.get_default_pagination()
        assert (defaults.default_limit, defaults.max_limit) == (20, 100)
        assert (defaults.default_sort, defaults.default_order) == ("created_at", "desc")

    def test_searchable_fields(self, registry):
        assert registry.is_field_searchable("users", "email")
        assert registry.is_field_searchable("users", "full_name")
        assert not registry.is_field_searchable("users", "id")
        assert not registry.is_field_searchable("missing", "email")

    def test_sort_field(self, registry):
        assert registry.validate_sort_field("users", "age")
        assert not registry.validate_sort_field("users", "salary")

    def test_fields_by_type(self, registry):
        names = [f.field_name for f in registry.get_fields_by_type("users", DataType.DATE)]
        assert names == ["created_at", "updated_at"]
        assert registry.get_fields_by_type("missing", "date") == []

    def test_primary_key_and_required(self, registry):
        assert registry.get_primary_key_field("users").field_name == "id"
        required = [f.field_name for f in registry.get_required_fields("users")]
        assert required == ["email", "full_name", "is_active", "created_at"]
        assert registry.get_primary_key_field("missing") is None

    def test_relationship_helpers(self, registry):
        assert registry.has_foreign_key_constraints("orders")
        assert len(registry.get_table_relationships("users")) == 1
        assert registry.get_table_relationships("missing") == []


class TestSnapshot:
    """Tests for project snapshots."""

    def test_snapshot_dedupes_relationships(self, registry):
        doc = registry.snapshot("default")
        assert sorted(doc.table_names) == ["orders", "users"]
        assert len(doc.relationships) == 1

    def test_snapshot_skips_inactive_tables(self, users_table, orders_table, user_orders):
        source = InMemorySchemaSource(
            [users_table, orders_table.model_copy(update={"status": "draft"})], [user_orders]
        )
        with SchemaRegistry(source) as registry:
            doc = registry.snapshot("default")
        assert doc.table_names == ["users"]
        assert doc.relationships == []

    def test_other_project_is_empty(self, registry):
        assert registry.snapshot("elsewhere").tables == []
