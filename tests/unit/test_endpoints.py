"""Tests for the endpoint registry."""

import pytest
from conftest import make_users_table
from pydantic import ValidationError

from tablewright import EndpointRegistryConfig, InMemorySchemaSource, SchemaRegistry
from tablewright.api import (
    APIGenerator,
    EndpointRegistration,
    EndpointRegistry,
    GeneratedEndpoint,
    endpoint_id,
)
from tablewright.exceptions import EndpointNotFoundError

BASE = "/api/designer/tables"
RECORD_ID = "3f2b8c1e-9a4d-4c7b-8e2f-1a2b3c4d5e6f"


@pytest.fixture
def endpoints(registry):
    return EndpointRegistry(registry)


@pytest.fixture
def users_endpoints(endpoints, users_table):
    endpoints.register_table_endpoints(users_table)
    return endpoints


class TestEndpointId:
    def test_format(self):
        assert endpoint_id("users", "GET", f"{BASE}/users/{{id}}") == (
            "users_get_api_designer_tables_users_id"
        )
        assert endpoint_id("users", "post", f"{BASE}/users") == "users_post_api_designer_tables_users"


class TestRegistration:
    """Tests for registering and removing endpoints."""

    def test_register_table(self, users_endpoints):
        registered = users_endpoints.get_table_endpoints("users")
        assert len(registered) == 5
        assert all(e.schema_hash for e in registered)
        assert users_endpoints.endpoint_exists("users_delete_api_designer_tables_users_id")

    def test_default_registration(self, users_endpoints):
        get = users_endpoints.get_endpoint_registration("users_get_api_designer_tables_users")
        post = users_endpoints.get_endpoint_registration("users_post_api_designer_tables_users")
        assert get.caching == 300
        assert post.caching is None
        assert get.authentication
        assert get.rate_limiting is None

    def test_rate_limiting_config(self, registry, users_table):
        config = EndpointRegistryConfig(enable_rate_limiting=True, enable_caching=False)
        endpoints = EndpointRegistry(registry, config)
        (entry, *_) = endpoints.register_table_endpoints(users_table)
        assert entry.registration.rate_limiting.requests == 100
        assert entry.registration.caching is None

    def test_reregister_replaces(self, users_endpoints, users_table):
        users_endpoints.register_table_endpoints(users_table)
        assert users_endpoints.get_endpoint_stats().total_endpoints == 5

    def test_register_single_endpoint(self, endpoints, users_table):
        api = APIGenerator([users_table]).generate_table_api(users_table)
        entry = endpoints.register_endpoint(
            "users", api.endpoints[0], EndpointRegistration(authentication=False)
        )
        assert entry.id == "users_get_api_designer_tables_users"
        assert not endpoints.get_endpoint(entry.id).registration.authentication

    def test_unregister(self, users_endpoints):
        assert users_endpoints.unregister_table_endpoints("users") == 5
        assert users_endpoints.unregister_table_endpoints("users") == 0
        assert users_endpoints.find_endpoint(f"{BASE}/users", "GET") is None

    def test_clear(self, users_endpoints):
        users_endpoints.clear()
        assert users_endpoints.get_all_endpoints() == []

    def test_custom_base_path(self, registry, users_table):
        endpoints = EndpointRegistry(registry, EndpointRegistryConfig(base_path="/v1/data"))
        endpoints.register_table_endpoints(users_table)
        assert endpoints.find_endpoint("/v1/data/users", "GET") is not None


class TestFindEndpoint:
    """Tests for resolving concrete request paths."""

    def test_collection(self, users_endpoints):
        match = users_endpoints.find_endpoint(f"{BASE}/users", "get")
        assert match.endpoint.endpoint.handler == "listUsers"
        assert match.path_params == {}

    def test_item(self, users_endpoints):
        match = users_endpoints.find_endpoint(f"{BASE}/users/{RECORD_ID}", "PUT")
        assert match.endpoint.endpoint.handler == "updateUsers"
        assert match.path_params == {"id": RECORD_ID}

    def test_query_string_and_trailing_slash(self, users_endpoints):
        match = users_endpoints.find_endpoint(f"{BASE}/users/?page=2", "GET")
        assert match.endpoint.endpoint.handler == "listUsers"

    def test_no_match(self, users_endpoints):
        assert users_endpoints.find_endpoint(f"{BASE}/users", "PATCH") is None
        assert users_endpoints.find_endpoint(f"{BASE}/users/a/b", "GET") is None
        assert users_endpoints.find_endpoint(f"{BASE}/orders", "GET") is None

    def test_literal_segment_wins(self, users_endpoints):
        search = GeneratedEndpoint(
            method="GET",
            path=f"{BASE}/users/search",
            handler="searchUsers",
            description="Search users",
            table_name="users",
        )
        users_endpoints.register_endpoint("users", search)
        match = users_endpoints.find_endpoint(f"{BASE}/users/search", "GET")
        assert match.endpoint.endpoint.handler == "searchUsers"

    def test_inactive_endpoints_are_skipped(self, users_endpoints):
        list_id = "users_get_api_designer_tables_users"
        users_endpoints.set_endpoint_active(list_id, False)
        assert users_endpoints.find_endpoint(f"{BASE}/users", "GET") is None
        stats = users_endpoints.get_endpoint_stats()
        assert (stats.active_endpoints, stats.inactive_endpoints) == (4, 1)


class TestUpdateRegistration:
    """Tests for changing endpoint policy."""

    def test_merge_updates(self, users_endpoints):
        list_id = "users_get_api_designer_tables_users"
        registration = users_endpoints.update_endpoint_registration(
            list_id, caching=60, middlewares=["audit"]
        )
        assert registration.caching == 60
        assert registration.authentication
        assert users_endpoints.get_endpoint_registration(list_id).middlewares == ["audit"]

    def test_unknown_endpoint(self, users_endpoints):
        with pytest.raises(EndpointNotFoundError):
            users_endpoints.update_endpoint_registration("nope", caching=1)
        with pytest.raises(EndpointNotFoundError):
            users_endpoints.set_endpoint_active("nope", True)

    def test_unknown_key(self, users_endpoints):
        with pytest.raises(ValidationError):
            users_endpoints.update_endpoint_registration(
                "users_get_api_designer_tables_users", retries=3
            )


class TestStats:
    def test_stats(self, users_endpoints, orders_table):
        users_endpoints.register_table_endpoints(orders_table)
        stats = users_endpoints.get_endpoint_stats()
        assert stats.total_endpoints == 10
        assert stats.tables == 2
        assert stats.by_method == {"GET": 4, "POST": 2, "PUT": 2, "DELETE": 2}
        assert stats.by_table == {"users": 5, "orders": 5}
        assert len(users_endpoints.get_project_endpoints("default")) == 10


class TestSchemaRegistryLink:
    """Tests for keeping endpoints and the schema registry in step."""

    def test_unregistered_table_loses_endpoints(self, users_endpoints, registry):
        registry.unregister_table("users")
        assert users_endpoints.find_endpoint(f"{BASE}/users/{RECORD_ID}", "GET") is None
        assert users_endpoints.get_table_endpoints("users") == []

    def test_registered_table_gains_endpoints(self, endpoints, registry, users_table):
        registry.register_table(users_table)
        match = endpoints.find_endpoint(f"{BASE}/users/{RECORD_ID}", "GET")
        assert match.endpoint.id == "users_get_api_designer_tables_users_id"

    def test_updated_table_is_regenerated(self, users_endpoints, registry):
        before = users_endpoints.get_table_endpoints("users")[0].schema_hash
        fields = [f.model_dump() for f in make_users_table().fields]
        fields.append({"field_name": "nickname", "data_type": "text", "order": 8})
        registry.update_table("users", fields=fields)
        after = users_endpoints.get_table_endpoints("users")
        assert len(after) == 5
        assert after[0].schema_hash != before

    def test_deactivated_table_loses_endpoints(self, users_endpoints, registry):
        registry.update_table("users", status="deprecated")
        assert users_endpoints.get_table_endpoints("users") == []

    def test_endpoint_registration_reaches_schema_registry(self, endpoints, registry):
        members = make_users_table(id="tbl-members", table_name="members")
        endpoints.register_table_endpoints(members)
        assert registry.validate_table_exists("members").is_valid

        endpoints.unregister_table_endpoints("members")
        assert not registry.validate_table_exists("members").is_valid

    def test_explicit_registration_is_kept_for_drafts(self, endpoints, users_table):
        draft = users_table.model_copy(update={"status": "draft"})
        endpoints.register_table_endpoints(draft)
        assert len(endpoints.get_table_endpoints("users")) == 5

    def test_auto_register_disabled(self, registry, users_table):
        endpoints = EndpointRegistry(registry, EndpointRegistryConfig(auto_register=False))
        registry.register_table(users_table)
        assert endpoints.get_all_endpoints() == []


class TestSync:
    """Tests for syncing endpoints with the schema source."""

    def test_initial_sync(self, endpoints):
        result = endpoints.sync_with_database("default")
        assert sorted(result.added) == ["orders", "users"]
        assert result.total_changes == 2
        assert endpoints.get_endpoint_stats().total_endpoints == 10

    def test_repeat_sync_is_noop(self, endpoints):
        endpoints.sync_with_database("default")
        result = endpoints.sync_with_database("default")
        assert result.to_dict() == {"added": [], "updated": [], "removed": []}

    def test_updated_and_removed(self, document):
        source = InMemorySchemaSource.from_document(document)
        with SchemaRegistry(source) as registry:
            endpoints = EndpointRegistry(registry)
            endpoints.sync_with_database("default")

            fields = [f.model_dump() for f in make_users_table().fields]
            fields.append({"field_name": "nickname", "data_type": "text", "order": 8})
            source.add_table(make_users_table(fields=fields))
            source.remove_table("orders")

            result = endpoints.sync_with_database("default")
        assert result.updated == ["users"]
        assert result.removed == ["orders"]
        assert endpoints.get_table_endpoints("orders") == []

    def test_other_project_untouched(self, endpoints):
        endpoints.sync_with_database("default")
        result = endpoints.sync_with_database("elsewhere")
        assert result.total_changes == 0
        assert endpoints.get_endpoint_stats().total_endpoints == 10


class TestExportOpenAPI:
    """Tests for the registry's OpenAPI export."""

    def test_export(self, users_endpoints):
        spec = users_endpoints.export_openapi()
        assert spec["info"] == {"title": "Tablewright API", "version": "v1"}
        list_op = spec["paths"][f"{BASE}/users"]["get"]
        assert list_op["x-cache"] == {"ttl": 300}
        assert list_op["security"] == [{"bearerAuth": []}]
        assert "x-cache" not in spec["paths"][f"{BASE}/users"]["post"]
        assert spec["components"]["securitySchemes"]["bearerAuth"]["scheme"] == "bearer"
        assert "UsersEntity" in spec["components"]["schemas"]
        assert "servers" not in spec

    def test_inactive_endpoints_are_left_out(self, users_endpoints):
        users_endpoints.set_endpoint_active("users_delete_api_designer_tables_users_id", False)
        spec = users_endpoints.export_openapi()
        assert set(spec["paths"][f"{BASE}/users/{{id}}"]) == {"get", "put"}
        assert "deprecated" not in spec["paths"][f"{BASE}/users"]["get"]

    def test_rate_limit_extension(self, users_endpoints):
        list_id = "users_get_api_designer_tables_users"
        users_endpoints.update_endpoint_registration(
            list_id, rate_limiting={"requests": 10, "window": 1}, authentication=False
        )
        operation = users_endpoints.export_openapi()["paths"][f"{BASE}/users"]["get"]
        assert operation["x-rateLimit"] == {"requests": 10, "window": 1}
        assert "security" not in operation
