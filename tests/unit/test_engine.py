"""Tests for the Tablewright facade."""

import pytest
from sqlalchemy import inspect

from tablewright import (
    EndpointRegistryConfig,
    InMemorySchemaSource,
    RegistrySettings,
    SchemaDocument,
    SchemaSource,
    SQLSchemaSource,
    Tablewright,
)
from tablewright.exceptions import (
    MalformedIdentifierError,
    TablewrightError,
    UnsupportedOperationError,
)
from tablewright.migrations import DropColumn, DropTable, MigrationPlan


class RecordingExecutor:
    def __init__(self):
        self.calls = []

    def execute(self, statements):
        self.calls.append(list(statements))


@pytest.fixture
def tw(memory_source):
    with Tablewright(source=memory_source) as instance:
        yield instance


class TestInMemory:
    """Tests with an in-memory schema source."""

    def test_validate_request(self, tw):
        result = tw.validate_request("users", "create", body={"email": "bad"})
        assert not result.is_valid
        assert ("email", "PATTERN_MISMATCH") in [(e.field, e.code) for e in result.errors]

    def test_snapshot(self, tw):
        doc = tw.snapshot()
        assert sorted(doc.table_names) == ["orders", "users"]

    def test_api_generator_uses_base_path(self, memory_source):
        config = EndpointRegistryConfig(base_path="/data")
        with Tablewright(source=memory_source, endpoint_config=config) as tw:
            apis = tw.api_generator().generate_all_apis()
        assert apis["users"].endpoints[0].path == "/data/users"

    def test_sync_endpoints(self, tw):
        result = tw.sync_endpoints()
        assert sorted(result.added) == ["orders", "users"]
        assert tw.endpoints.find_endpoint("/api/designer/tables/orders", "POST") is not None

    def test_settings_are_passed(self, memory_source):
        settings = RegistrySettings(cache_ttl_seconds=5)
        with Tablewright(source=memory_source, settings=settings) as tw:
            assert tw.registry.settings.cache_ttl_seconds == 5
            assert tw.connection is None

    def test_plan_migration(self, tw, document):
        plan = tw.plan_migration(SchemaDocument(), document)
        assert plan.description == "Apply 2 create tables, 1 add foreign key"

    def test_apply_without_executor(self, tw):
        with pytest.raises(TablewrightError) as exc_info:
            tw.apply_plan(MigrationPlan())
        assert "No DDL executor" in exc_info.value.message

    def test_apply_with_executor(self, memory_source, document):
        executor = RecordingExecutor()
        with Tablewright(source=memory_source, executor=executor) as tw:
            tw.registry.get_table_schema("users")
            plan = tw.plan_migration(SchemaDocument(), document)
            statements = tw.apply_plan(plan)
            assert executor.calls == [statements]
            assert tw.registry.get_cache_stats().tables_count == 0

            rollback = tw.rollback_plan(plan)
        assert rollback[0] == "ALTER TABLE orders DROP CONSTRAINT fk_orders_user_id_users;"

    def test_rollback_of_irreversible_plan_executes_nothing(self, memory_source):
        executor = RecordingExecutor()
        with Tablewright(source=memory_source, executor=executor) as tw:
            plan = MigrationPlan(operations=(DropColumn("users", "full_name"),))
            with pytest.raises(UnsupportedOperationError):
                tw.rollback_plan(plan)
        assert executor.calls == []

    def test_apply_rejects_invalid_plan(self, memory_source):
        executor = RecordingExecutor()
        with Tablewright(source=memory_source, executor=executor) as tw:
            with pytest.raises(MalformedIdentifierError):
                tw.apply_plan(MigrationPlan(operations=(DropTable("Users"),)))
        assert executor.calls == []


class TestDatabaseBacked:
    """Tests with the SQL schema source on SQLite."""

    def test_opens_sql_source(self, sqlite_url, users_table):
        with Tablewright(url=sqlite_url) as tw:
            assert isinstance(tw.source, SQLSchemaSource)
            assert tw.connection.dialect == "sqlite"
            tw.source.save_table(users_table)
            assert tw.registry.get_table_schema("users").table_name == "users"

    def test_url_from_environment(self, sqlite_url, monkeypatch):
        monkeypatch.setenv("TABLEWRIGHT_URL", sqlite_url)
        with Tablewright() as tw:
            assert tw.connection.url == sqlite_url

    def test_apply_plan_creates_table(self, sqlite_url):
        target = SchemaDocument.model_validate(
            {
                "tables": [
                    {
                        "table_name": "notes",
                        "status": "active",
                        "fields": [
                            {"field_name": "id", "data_type": "text", "is_primary_key": True},
                            {"field_name": "body", "data_type": "text", "order": 1},
                        ],
                    }
                ]
            }
        )
        with Tablewright(url=sqlite_url) as tw:
            plan = tw.plan_migration(SchemaDocument(), target)
            tw.apply_plan(plan)
            assert "notes" in inspect(tw.connection.engine).get_table_names()
            tw.rollback_plan(plan)
            assert "notes" not in inspect(tw.connection.engine).get_table_names()


def test_in_memory_source_is_a_schema_source():
    assert isinstance(InMemorySchemaSource(), SchemaSource)
