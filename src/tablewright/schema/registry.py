"""Schema registry: a TTL cache of table definitions in front of a SchemaSource.

Two maps are kept per table name: the raw table as the source returned it
and the derived schema (the table plus its relationships). Entries expire
after ``cache_ttl_seconds``; an expired entry is refetched and a failed
refetch propagates instead of serving the stale copy.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, TypeVar

from pydantic import BaseModel

from tablewright.core.config import RegistrySettings
from tablewright.core.locks import ReadWriteLock
from tablewright.core.types import (
    DataType,
    FieldSchema,
    RelationshipSchema,
    SchemaDocument,
    TableSchema,
    TableStatus,
)
from tablewright.exceptions import (
    SchemaFetchError,
    SchemaFetchTimeoutError,
    SchemaNotFoundError,
    TablewrightError,
)
from tablewright.schema.source import SchemaSource

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_PAGE_LIMIT = 20
MAX_PAGE_LIMIT = 100

# Receives the table name and its new definition, or None once removed
SchemaListener = Callable[[str, TableSchema | None], None]


@dataclass
class _CacheEntry:
    value: TableSchema
    stored_at: float


@dataclass
class TableExistence:
    """Outcome of a table existence check."""

    is_valid: bool
    """True when the table exists and is active."""

    table: TableSchema | None = None
    """The table definition when found."""

    error: str | None = None
    """Human-readable reason when not valid."""


class CacheStats(BaseModel):
    """Registry cache counters."""

    tables_count: int
    schemas_count: int
    ttl_seconds: float
    fetch_timeout_seconds: float


class PaginationDefaults(BaseModel):
    """Default list parameters for generated endpoints."""

    default_limit: int = DEFAULT_PAGE_LIMIT
    max_limit: int = MAX_PAGE_LIMIT
    default_sort: str = "created_at"
    default_order: str = "desc"


class SchemaRegistry:
    """Cached, thread-safe access to table schemas.

    Example:
        registry = SchemaRegistry(InMemorySchemaSource([users]))
        schema = registry.get_table_schema("users")
    """

    def __init__(
        self,
        source: SchemaSource,
        settings: RegistrySettings | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the registry.

        Args:
            source: Where table definitions are loaded from
            settings: TTL and fetch timeout; defaults to 300s / 10s
            clock: Monotonic time source, replaceable in tests
        """
        self._source = source
        self._settings = settings or RegistrySettings()
        self._clock = clock
        self._lock = ReadWriteLock()
        self._tables: dict[str, _CacheEntry] = {}
        self._schemas: dict[str, _CacheEntry] = {}
        self._executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="tablewright-fetch")
        self._listeners: list[SchemaListener] = []

    @property
    def source(self) -> SchemaSource:
        return self._source

    @property
    def settings(self) -> RegistrySettings:
        return self._settings

    # === Cache plumbing ===

    def _fresh(self, cache: dict[str, _CacheEntry], name: str) -> TableSchema | None:
        with self._lock.read():
            entry = cache.get(name)
            if entry is None:
                return None
            if self._clock() - entry.stored_at >= self._settings.cache_ttl_seconds:
                return None
            return entry.value

    def _store(self, cache: dict[str, _CacheEntry], name: str, value: TableSchema) -> None:
        with self._lock.write():
            cache[name] = _CacheEntry(value, self._clock())

    def _fetch(self, target: str, fn: Callable[..., T], *args: Any) -> T:
        """Run a source call on the fetch pool, bounded by the fetch timeout.

        Raises:
            SchemaFetchTimeoutError: If the source does not answer in time
            SchemaFetchError: If the source raises
        """
        timeout = self._settings.fetch_timeout_seconds
        future = self._executor.submit(fn, *args)
        try:
            return future.result(timeout=timeout)
        except TimeoutError as e:
            future.cancel()
            logger.warning(f"Schema fetch for '{target}' timed out after {timeout:g}s")
            raise SchemaFetchTimeoutError(target, timeout) from e
        except TablewrightError:
            raise
        except Exception as e:
            raise SchemaFetchError(
                f"Failed to fetch schema for '{target}': {e}", {"target": target}
            ) from e

    def _load_table(self, table_name: str) -> TableSchema | None:
        cached = self._fresh(self._tables, table_name)
        if cached is not None:
            logger.debug(f"Table cache hit for '{table_name}'")
            return cached
        logger.debug(f"Table cache miss for '{table_name}'")
        table = self._fetch(table_name, self._source.fetch_table, table_name)
        if table is not None:
            self._store(self._tables, table_name, table)
        return table

    # === Lookups ===

    def validate_table_exists(self, table_name: str) -> TableExistence:
        """Check that a table exists and is active.

        Source failures are reported as an invalid result rather than raised.
        """
        try:
            table = self._load_table(table_name)
        except SchemaFetchError as e:
            logger.warning(f"Could not validate table '{table_name}': {e.message}")
            return TableExistence(is_valid=False, error=f"Failed to validate table: {e.message}")

        if table is None:
            return TableExistence(is_valid=False, error=f"Table '{table_name}' not found")
        if table.status != TableStatus.ACTIVE:
            return TableExistence(
                is_valid=False,
                table=table,
                error=f"Table '{table_name}' is not active (status: {table.status})",
            )
        return TableExistence(is_valid=True, table=table)

    def get_table_schema(self, table_name: str) -> TableSchema:
        """Return the active table with its relationships.

        Raises:
            SchemaNotFoundError: If the table is missing or not active
            SchemaFetchError: If the source fails (SchemaFetchTimeoutError on timeout)
        """
        cached = self._fresh(self._schemas, table_name)
        if cached is not None:
            logger.debug(f"Schema cache hit for '{table_name}'")
            return cached

        table = self._load_table(table_name)
        if table is None:
            raise SchemaNotFoundError(table_name)
        if table.status != TableStatus.ACTIVE:
            raise SchemaNotFoundError(
                table_name,
                reason=f"Table '{table_name}' is not active (status: {table.status}).",
            )

        relationships = self._fetch(
            table_name, self._source.fetch_relationships, table.id or table_name
        )
        schema = table.model_copy(update={"relationships": list(relationships)})
        self._store(self._schemas, table_name, schema)
        return schema

    def get_project_tables(self, project_id: str) -> list[TableSchema]:
        """Return a project's active tables, newest first, straight from the source."""
        tables = self._fetch(project_id, self._source.fetch_project_tables, project_id)
        return [t for t in tables if t.status == TableStatus.ACTIVE]

    def snapshot(self, project_id: str) -> SchemaDocument:
        """Build a SchemaDocument of a project's active tables and their links."""
        tables = self.get_project_tables(project_id)
        names = {t.table_name for t in tables}
        seen: set[tuple[str, str, str, str]] = set()
        relationships: list[RelationshipSchema] = []
        for table in tables:
            for rel in self._fetch(
                table.table_name, self._source.fetch_relationships, table.id or table.table_name
            ):
                if rel.key in seen or not {rel.source_table, rel.target_table} <= names:
                    continue
                seen.add(rel.key)
                relationships.append(rel)
        return SchemaDocument(tables=tables, relationships=relationships)

    # === Mutation ===

    def subscribe(self, listener: SchemaListener) -> None:
        """Call ``listener`` after every register, update and unregister."""
        with self._lock.write():
            self._listeners.append(listener)

    def unsubscribe(self, listener: SchemaListener) -> None:
        with self._lock.write():
            if listener in self._listeners:
                self._listeners.remove(listener)

    def _notify(self, table_name: str, table: TableSchema | None) -> None:
        # Listeners run outside the lock
        with self._lock.read():
            listeners = list(self._listeners)
        for listener in listeners:
            listener(table_name, table)

    def register_table(self, table: TableSchema) -> None:
        """Cache a table definition and drop its derived schema."""
        with self._lock.write():
            self._tables[table.table_name] = _CacheEntry(table, self._clock())
            self._schemas.pop(table.table_name, None)
        logger.info(f"Registered table '{table.table_name}'")
        self._notify(table.table_name, table)

    def update_table(self, table_name: str, **updates: Any) -> TableSchema:
        """Apply a partial update to a cached table.

        Raises:
            SchemaNotFoundError: If the table is not cached
        """
        with self._lock.write():
            entry = self._tables.get(table_name)
            if entry is None:
                raise SchemaNotFoundError(
                    table_name,
                    reason=f"Table '{table_name}' is not registered.",
                    available_tables=sorted(self._tables),
                )
            updated = TableSchema.model_validate({**entry.value.model_dump(), **updates})
            self._tables[table_name] = _CacheEntry(updated, self._clock())
            self._schemas.pop(table_name, None)
        logger.info(f"Updated table '{table_name}': {', '.join(sorted(updates))}")
        self._notify(table_name, updated)
        return updated

    def unregister_table(self, table_name: str) -> None:
        with self._lock.write():
            self._tables.pop(table_name, None)
            self._schemas.pop(table_name, None)
        logger.info(f"Unregistered table '{table_name}'")
        self._notify(table_name, None)

    def clear_table_cache(self, table_name: str) -> None:
        with self._lock.write():
            self._tables.pop(table_name, None)
            self._schemas.pop(table_name, None)
        logger.debug(f"Cleared cache for '{table_name}'")

    def clear_cache(self) -> None:
        with self._lock.write():
            self._tables.clear()
            self._schemas.clear()
        logger.debug("Cleared schema cache")

    def get_cache_stats(self) -> CacheStats:
        with self._lock.read():
            return CacheStats(
                tables_count=len(self._tables),
                schemas_count=len(self._schemas),
                ttl_seconds=self._settings.cache_ttl_seconds,
                fetch_timeout_seconds=self._settings.fetch_timeout_seconds,
            )

    # === Schema helpers ===

    def _schema_or_none(self, table_name: str) -> TableSchema | None:
        try:
            return self.get_table_schema(table_name)
        except SchemaNotFoundError:
            return None

    def get_default_pagination(self) -> PaginationDefaults:
        return PaginationDefaults()

    def is_field_searchable(self, table_name: str, field_name: str) -> bool:
        schema = self._schema_or_none(table_name)
        return schema is not None and field_name in (schema.searchable_fields or [])

    def validate_sort_field(self, table_name: str, sort_field: str) -> bool:
        schema = self._schema_or_none(table_name)
        return schema is not None and schema.get_field(sort_field) is not None

    def get_fields_by_type(self, table_name: str, data_type: DataType | str) -> list[FieldSchema]:
        schema = self._schema_or_none(table_name)
        return schema.fields_by_type(data_type) if schema else []

    def get_primary_key_field(self, table_name: str) -> FieldSchema | None:
        schema = self._schema_or_none(table_name)
        return schema.primary_key if schema else None

    def get_required_fields(self, table_name: str) -> list[FieldSchema]:
        """Required fields a client must send (the primary key excluded)."""
        schema = self._schema_or_none(table_name)
        if schema is None:
            return []
        return [f for f in schema.required_fields() if not f.is_primary_key]

    def get_table_relationships(self, table_name: str) -> list[RelationshipSchema]:
        schema = self._schema_or_none(table_name)
        return list(schema.relationships) if schema else []

    def has_foreign_key_constraints(self, table_name: str) -> bool:
        return bool(self.get_table_relationships(table_name))

    # === Lifecycle ===

    def close(self) -> None:
        """Stop the fetch pool; in-flight fetches are abandoned."""
        self._executor.shutdown(wait=False, cancel_futures=True)

    def __enter__(self) -> SchemaRegistry:
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.close()
