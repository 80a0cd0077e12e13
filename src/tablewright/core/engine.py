"""Main Tablewright engine: one object wiring the registries together."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from tablewright.api.endpoints import EndpointRegistry, SyncResult
from tablewright.api.generator import APIGenerator
from tablewright.core.config import EndpointRegistryConfig, RegistrySettings, get_database_url
from tablewright.core.connection import DatabaseConnection
from tablewright.core.types import SchemaDocument
from tablewright.exceptions import MalformedIdentifierError, TablewrightError
from tablewright.migrations.executor import DDLExecutor, SQLAlchemyDDLExecutor
from tablewright.migrations.operations import MigrationPlan
from tablewright.migrations.planner import MigrationPlanner
from tablewright.migrations.sql import plan_rollback_sql, plan_sql, validate_migration_plan
from tablewright.schema.registry import SchemaRegistry
from tablewright.schema.source import SchemaSource, SQLSchemaSource
from tablewright.validation.request import (
    Operation,
    RequestValidator,
    ValidationContext,
    ValidationResult,
)

logger = logging.getLogger(__name__)


class Tablewright:
    """Schema registry, request validation, migrations and endpoints in one place.

    Build it once at startup and close it on shutdown.

    Example:
        with Tablewright(url="postgresql://localhost/designer") as tw:
            result = tw.validate_request("users", "create", body={"email": "a@b.co"})
            result.raise_for_errors()
    """

    def __init__(
        self,
        source: SchemaSource | None = None,
        url: str | None = None,
        settings: RegistrySettings | None = None,
        endpoint_config: EndpointRegistryConfig | None = None,
        executor: DDLExecutor | None = None,
        echo: bool = False,
    ) -> None:
        """Initialize Tablewright.

        Args:
            source: Schema source; when omitted a SQLSchemaSource is opened
                on ``url`` (or TABLEWRIGHT_URL)
            url: Database URL for the metadata tables and DDL execution
            settings: Registry cache settings; read from the environment if omitted
            endpoint_config: Endpoint defaults; read from the environment if omitted
            executor: DDL executor; defaults to one on the database connection
            echo: Echo SQL statements (debugging)
        """
        self._connection: DatabaseConnection | None = None
        if source is None:
            self._connection = DatabaseConnection(get_database_url(url), echo=echo)
            sql_source = SQLSchemaSource(self._connection)
            sql_source.initialize()
            source = sql_source
            if executor is None:
                executor = SQLAlchemyDDLExecutor(self._connection.engine)

        self._source = source
        self._executor = executor
        self._registry = SchemaRegistry(source, settings or RegistrySettings.from_env())
        self._validator = RequestValidator(self._registry)
        self._planner = MigrationPlanner()
        self._endpoints = EndpointRegistry(
            self._registry, endpoint_config or EndpointRegistryConfig.from_env()
        )

    @property
    def source(self) -> SchemaSource:
        return self._source

    @property
    def connection(self) -> DatabaseConnection | None:
        return self._connection

    @property
    def registry(self) -> SchemaRegistry:
        return self._registry

    @property
    def validator(self) -> RequestValidator:
        return self._validator

    @property
    def planner(self) -> MigrationPlanner:
        return self._planner

    @property
    def endpoints(self) -> EndpointRegistry:
        return self._endpoints

    # === Requests ===

    def validate_request(
        self,
        table_name: str,
        operation: Operation | str,
        params: Mapping[str, Any] | None = None,
        query: Mapping[str, Any] | None = None,
        body: Any = None,
    ) -> ValidationResult:
        """Validate one request against the table's current schema."""
        return self._validator.validate_request(
            ValidationContext(
                table_name=table_name,
                operation=operation,
                params=params,
                query=query,
                body=body,
            )
        )

    # === Schema snapshots and APIs ===

    def snapshot(self, project_id: str = "default") -> SchemaDocument:
        return self._registry.snapshot(project_id)

    def api_generator(self, project_id: str = "default") -> APIGenerator:
        """APIGenerator over the project's active tables."""
        document = self.snapshot(project_id)
        return APIGenerator(
            document.tables, document.relationships, base_path=self._endpoints.config.base_path
        )

    def sync_endpoints(self, project_id: str = "default") -> SyncResult:
        return self._endpoints.sync_with_database(project_id)

    # === Migrations ===

    def plan_migration(self, current: SchemaDocument, target: SchemaDocument) -> MigrationPlan:
        return self._planner.diff(current, target)

    def _require_executor(self) -> DDLExecutor:
        if self._executor is None:
            raise TablewrightError(
                "No DDL executor configured. Pass url= or executor= to Tablewright "
                "to apply migrations."
            )
        return self._executor

    def apply_plan(self, plan: MigrationPlan) -> list[str]:
        """Validate a plan and execute its forward SQL.

        Returns:
            The executed statements

        Raises:
            MalformedIdentifierError: If the plan fails validation
            TablewrightError: If no executor is configured
        """
        executor = self._require_executor()
        errors = validate_migration_plan(plan)
        if errors:
            raise MalformedIdentifierError("migration plan", errors)
        statements = plan_sql(plan)
        executor.execute(statements)
        self._registry.clear_cache()
        logger.info(f"Applied migration: {plan.description}")
        return statements

    def rollback_plan(self, plan: MigrationPlan) -> list[str]:
        """Execute a plan's rollback operations, last forward step first.

        Raises:
            UnsupportedOperationError: If the plan holds an operation that
                cannot be undone; nothing is executed
            TablewrightError: If no executor is configured
        """
        executor = self._require_executor()
        statements = plan_rollback_sql(plan)
        executor.execute(statements)
        self._registry.clear_cache()
        logger.info(f"Rolled back migration: {plan.description}")
        return statements

    # === Lifecycle ===

    def close(self) -> None:
        """Stop the registry fetch pool and dispose of the database engine."""
        self._registry.close()
        if self._connection is not None:
            self._connection.close()

    def __enter__(self) -> Tablewright:
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.close()
