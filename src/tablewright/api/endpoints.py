"""Endpoint registry: the routing table of generated CRUD endpoints.

Endpoints are registered per table, looked up by method and concrete path
and kept in step with the schema source through ``sync_with_database``
and with the schema registry through its change notifications.
All state sits behind one read/write lock; syncs of the same project are
serialized by a per-project lock.
"""

from __future__ import annotations

import logging
import re
import threading
from collections import Counter
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field

from tablewright.api.generator import (
    ERROR_SCHEMA,
    VALIDATION_ERROR_SCHEMA,
    APIGenerator,
    GeneratedAPI,
    GeneratedEndpoint,
    pascal_case,
)
from tablewright.core.config import EndpointRegistryConfig, RateLimit
from tablewright.core.locks import KeyedLock, ReadWriteLock
from tablewright.core.types import RelationshipSchema, TableSchema
from tablewright.exceptions import EndpointNotFoundError

if TYPE_CHECKING:
    from tablewright.schema.registry import SchemaRegistry

logger = logging.getLogger(__name__)

_PARAM_SEGMENT = re.compile(r"^\{[^/{}]+\}$")


def endpoint_id(table_name: str, method: str, path: str) -> str:
    """Stable id, e.g. ``users_get_api_designer_tables_users_id``."""
    normalized = re.sub(r"[^a-zA-Z0-9]+", "_", path).strip("_")
    return f"{table_name}_{method.lower()}_{normalized}"


def _segments(path: str) -> list[str]:
    path = path.split("?", 1)[0].split("#", 1)[0]
    return [s for s in path.strip("/").split("/") if s]


def _match_template(template: list[str], concrete: list[str]) -> dict[str, str] | None:
    if len(template) != len(concrete):
        return None
    params: dict[str, str] = {}
    for expected, actual in zip(template, concrete, strict=True):
        if _PARAM_SEGMENT.match(expected):
            params[expected[1:-1]] = actual
        elif expected != actual:
            return None
    return params


class EndpointRegistration(BaseModel):
    """Per-endpoint runtime policy."""

    rate_limiting: RateLimit | None = None
    authentication: bool = True
    caching: int | None = Field(default=None, ge=0, description="Cache TTL in seconds")
    middlewares: list[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")


class RegisteredEndpoint(BaseModel):
    """A generated endpoint plus its registration metadata."""

    id: str
    table_name: str
    project_id: str = "default"
    endpoint: GeneratedEndpoint
    registration: EndpointRegistration = Field(default_factory=EndpointRegistration)
    schema_hash: str = ""
    is_active: bool = True
    registered_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def method(self) -> str:
        return self.endpoint.method

    @property
    def path(self) -> str:
        return self.endpoint.path


class EndpointMatch(BaseModel):
    """Result of resolving a concrete request path."""

    endpoint: RegisteredEndpoint
    path_params: dict[str, str] = Field(default_factory=dict)


class EndpointStats(BaseModel):
    total_endpoints: int
    active_endpoints: int
    inactive_endpoints: int
    tables: int
    by_method: dict[str, int]
    by_table: dict[str, int]


@dataclass
class SyncResult:
    """Tables whose endpoints changed during a sync."""

    added: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)

    @property
    def total_changes(self) -> int:
        return len(self.added) + len(self.updated) + len(self.removed)

    def to_dict(self) -> dict[str, Any]:
        return {"added": self.added, "updated": self.updated, "removed": self.removed}


class EndpointRegistry:
    """Registry of generated endpoints.

    Example:
        endpoints = EndpointRegistry(schema_registry)
        endpoints.register_table_endpoints(users)
        match = endpoints.find_endpoint("/api/designer/tables/users", "GET")
    """

    def __init__(
        self,
        schema_registry: SchemaRegistry,
        config: EndpointRegistryConfig | None = None,
    ) -> None:
        """Initialize the registry.

        Args:
            schema_registry: Source of table schemas for syncs
            config: Registration defaults; see EndpointRegistryConfig
        """
        self._schema_registry = schema_registry
        self._config = config or EndpointRegistryConfig()
        self._lock = ReadWriteLock()
        self._sync_locks = KeyedLock()
        self._endpoints: dict[str, RegisteredEndpoint] = {}
        self._apis: dict[str, GeneratedAPI] = {}
        self._local = threading.local()
        if self._config.auto_register:
            schema_registry.subscribe(self._on_schema_change)

    @property
    def config(self) -> EndpointRegistryConfig:
        return self._config

    def _default_registration(self, endpoint: GeneratedEndpoint) -> EndpointRegistration:
        config = self._config
        return EndpointRegistration(
            rate_limiting=config.default_rate_limit if config.enable_rate_limiting else None,
            authentication=config.enable_authentication,
            caching=(
                config.default_cache_ttl
                if config.enable_caching and endpoint.method == "GET"
                else None
            ),
        )

    # === Registration ===

    def register_table_endpoints(
        self,
        table: TableSchema,
        relationships: Iterable[RelationshipSchema] = (),
    ) -> list[RegisteredEndpoint]:
        """Generate and register the five CRUD endpoints of a table.

        Endpoints previously registered for the table are replaced and the
        table is registered with the schema registry.
        """
        registered = self._register(table, relationships)
        with self._mirroring():
            self._schema_registry.register_table(table)
        return registered

    def _register(
        self, table: TableSchema, relationships: Iterable[RelationshipSchema]
    ) -> list[RegisteredEndpoint]:
        generator = APIGenerator([table], relationships, base_path=self._config.base_path)
        api = generator.generate_table_api(table)
        registered = [
            RegisteredEndpoint(
                id=endpoint_id(table.table_name, e.method, e.path),
                table_name=table.table_name,
                project_id=table.project_id,
                endpoint=e,
                registration=self._default_registration(e),
                schema_hash=api.schema_hash,
            )
            for e in api.endpoints
        ]
        with self._lock.write():
            self._drop_table(table.table_name)
            for entry in registered:
                self._endpoints[entry.id] = entry
            self._apis[table.table_name] = api
        logger.info(f"Registered {len(registered)} endpoints for '{table.table_name}'")
        return registered

    def register_endpoint(
        self,
        table_name: str,
        endpoint: GeneratedEndpoint,
        registration: EndpointRegistration | None = None,
        project_id: str = "default",
    ) -> RegisteredEndpoint:
        """Register a single endpoint, replacing one with the same id."""
        entry = RegisteredEndpoint(
            id=endpoint_id(table_name, endpoint.method, endpoint.path),
            table_name=table_name,
            project_id=project_id,
            endpoint=endpoint,
            registration=registration or self._default_registration(endpoint),
        )
        with self._lock.write():
            self._endpoints[entry.id] = entry
        logger.info(f"Registered endpoint {entry.method} {entry.path}")
        return entry

    def _drop_table(self, table_name: str) -> int:
        # Caller holds the write lock
        ids = [i for i, e in self._endpoints.items() if e.table_name == table_name]
        for i in ids:
            del self._endpoints[i]
        self._apis.pop(table_name, None)
        return len(ids)

    def unregister_table_endpoints(self, table_name: str) -> int:
        """Remove every endpoint of a table and the table from the schema registry.

        Returns how many endpoints were removed.
        """
        removed = self._unregister(table_name)
        with self._mirroring():
            self._schema_registry.unregister_table(table_name)
        return removed

    def _unregister(self, table_name: str) -> int:
        with self._lock.write():
            removed = self._drop_table(table_name)
        if removed:
            logger.info(f"Unregistered {removed} endpoints for '{table_name}'")
        return removed

    @contextmanager
    def _mirroring(self) -> Iterator[None]:
        # Schema registry changes made from here are not echoed back
        self._local.mirroring = True
        try:
            yield
        finally:
            self._local.mirroring = False

    def _on_schema_change(self, table_name: str, table: TableSchema | None) -> None:
        """Rebuild a table's endpoints after the schema registry changed it."""
        if getattr(self._local, "mirroring", False):
            return
        if table is None or not table.is_active:
            self._unregister(table_name)
            return
        with self._lock.read():
            api = self._apis.get(table_name)
        if api is None or api.schema_hash != table.schema_hash():
            self._register(table, table.relationships)

    def update_endpoint_registration(
        self, endpoint_id: str, **updates: Any
    ) -> EndpointRegistration:
        """Merge ``updates`` into an endpoint's registration.

        Raises:
            EndpointNotFoundError: If the endpoint id is not registered
            pydantic.ValidationError: If an update key or value is invalid
        """
        with self._lock.write():
            entry = self._endpoints.get(endpoint_id)
            if entry is None:
                raise EndpointNotFoundError(endpoint_id)
            registration = EndpointRegistration.model_validate(
                {**entry.registration.model_dump(), **updates}
            )
            self._endpoints[endpoint_id] = entry.model_copy(
                update={"registration": registration, "updated_at": datetime.now(UTC)}
            )
        logger.debug(f"Updated registration of '{endpoint_id}': {', '.join(sorted(updates))}")
        return registration

    def set_endpoint_active(self, endpoint_id: str, active: bool) -> RegisteredEndpoint:
        """Enable or disable routing to an endpoint.

        Raises:
            EndpointNotFoundError: If the endpoint id is not registered
        """
        with self._lock.write():
            entry = self._endpoints.get(endpoint_id)
            if entry is None:
                raise EndpointNotFoundError(endpoint_id)
            entry = entry.model_copy(update={"is_active": active, "updated_at": datetime.now(UTC)})
            self._endpoints[endpoint_id] = entry
        logger.info(f"Endpoint '{endpoint_id}' {'activated' if active else 'deactivated'}")
        return entry

    def clear(self) -> None:
        with self._lock.write():
            self._endpoints.clear()
            self._apis.clear()
        logger.debug("Cleared endpoint registry")

    # === Lookups ===

    def get_all_endpoints(self) -> list[RegisteredEndpoint]:
        with self._lock.read():
            return list(self._endpoints.values())

    def get_table_endpoints(self, table_name: str) -> list[RegisteredEndpoint]:
        with self._lock.read():
            return [e for e in self._endpoints.values() if e.table_name == table_name]

    def get_project_endpoints(self, project_id: str) -> list[RegisteredEndpoint]:
        with self._lock.read():
            return [e for e in self._endpoints.values() if e.project_id == project_id]

    def get_endpoint(self, endpoint_id: str) -> RegisteredEndpoint | None:
        with self._lock.read():
            return self._endpoints.get(endpoint_id)

    def get_endpoint_registration(self, endpoint_id: str) -> EndpointRegistration | None:
        entry = self.get_endpoint(endpoint_id)
        return entry.registration if entry else None

    def endpoint_exists(self, endpoint_id: str) -> bool:
        with self._lock.read():
            return endpoint_id in self._endpoints

    def find_endpoint(self, path: str, method: str) -> EndpointMatch | None:
        """Resolve a concrete request path to an active endpoint.

        ``{param}`` segments of registered paths match any single segment;
        query strings and trailing slashes are ignored. Literal segments win
        over parameters when several templates match.
        """
        concrete = _segments(path)
        method = method.upper()
        best: tuple[int, EndpointMatch] | None = None
        with self._lock.read():
            for entry in self._endpoints.values():
                if not entry.is_active or entry.method != method:
                    continue
                params = _match_template(_segments(entry.path), concrete)
                if params is None:
                    continue
                if best is None or len(params) < best[0]:
                    best = (len(params), EndpointMatch(endpoint=entry, path_params=params))
        return best[1] if best else None

    def get_endpoint_stats(self) -> EndpointStats:
        with self._lock.read():
            entries = list(self._endpoints.values())
        active = sum(1 for e in entries if e.is_active)
        by_table = Counter(e.table_name for e in entries)
        return EndpointStats(
            total_endpoints=len(entries),
            active_endpoints=active,
            inactive_endpoints=len(entries) - active,
            tables=len(by_table),
            by_method=dict(Counter(e.method for e in entries)),
            by_table=dict(by_table),
        )

    # === Sync ===

    def sync_with_database(self, project_id: str) -> SyncResult:
        """Bring a project's endpoints in line with its active tables.

        Tables without endpoints are registered, tables whose schema hash
        changed are re-registered and endpoints of tables that are gone or
        no longer active are removed.
        """
        with self._sync_locks.hold(project_id):
            document = self._schema_registry.snapshot(project_id)
            current: dict[str, str] = {
                e.table_name: e.schema_hash for e in self.get_project_endpoints(project_id)
            }
            result = SyncResult()

            for table in document.tables:
                relationships = [
                    r
                    for r in document.relationships
                    if table.table_name in (r.source_table, r.target_table)
                ]
                schema = table.model_copy(update={"relationships": relationships})
                previous = current.pop(table.table_name, None)
                if previous is None:
                    self.register_table_endpoints(schema, relationships)
                    result.added.append(table.table_name)
                elif previous != schema.schema_hash():
                    self.register_table_endpoints(schema, relationships)
                    result.updated.append(table.table_name)

            for table_name in sorted(current):
                self.unregister_table_endpoints(table_name)
                result.removed.append(table_name)

        logger.info(
            f"Synced project '{project_id}': {len(result.added)} added, "
            f"{len(result.updated)} updated, {len(result.removed)} removed"
        )
        return result

    # === Export ===

    def export_openapi(self, title: str = "Tablewright API") -> dict[str, Any]:
        """OpenAPI 3.0.3 document of the active registered endpoints."""
        with self._lock.read():
            entries = sorted(self._endpoints.values(), key=lambda e: (e.path, e.method))
            apis = list(self._apis.values())

        paths: dict[str, dict[str, Any]] = {}
        uses_auth = False
        for entry in entries:
            if not entry.is_active:
                continue
            operation = entry.endpoint.to_openapi([pascal_case(entry.table_name)])
            registration = entry.registration
            if registration.rate_limiting is not None:
                operation["x-rateLimit"] = registration.rate_limiting.model_dump()
            if registration.caching is not None:
                operation["x-cache"] = {"ttl": registration.caching}
            if registration.authentication:
                operation["security"] = [{"bearerAuth": []}]
                uses_auth = True
            paths.setdefault(entry.path, {})[entry.method.lower()] = operation

        components: dict[str, Any] = {
            "schemas": {"Error": ERROR_SCHEMA, "ValidationError": VALIDATION_ERROR_SCHEMA}
        }
        for api in apis:
            for generated in api.types:
                components["schemas"][generated.name] = generated.json_schema
        if uses_auth:
            components["securitySchemes"] = {
                "bearerAuth": {"type": "http", "scheme": "bearer", "bearerFormat": "JWT"}
            }
        return {
            "openapi": "3.0.3",
            "info": {"title": title, "version": self._config.api_version},
            "paths": paths,
            "components": components,
        }
