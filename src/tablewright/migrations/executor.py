"""DDL execution: the collaborator that applies generated SQL."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, SQLAlchemyError

from tablewright.exceptions import (
    ConstraintViolationError,
    MalformedIdentifierError,
    MigrationExecutionError,
)
from tablewright.migrations.sql import plan_rollback_sql, plan_sql, validate_migration_plan

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy import Engine

    from tablewright.migrations.operations import MigrationPlan

logger = logging.getLogger(__name__)


class DDLExecutor(Protocol):
    """Runs SQL statements in order, all or nothing."""

    def execute(self, statements: Sequence[str]) -> None: ...


class SQLAlchemyDDLExecutor:
    """Executes statements inside a single ``engine.begin()`` transaction.

    On PostgreSQL DDL is transactional, so a failing statement rolls back
    every earlier statement of the same call.
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def execute(self, statements: Sequence[str]) -> None:
        """Run statements in list order.

        Raises:
            ConstraintViolationError: If the database reports a known SQLSTATE
            MigrationExecutionError: For any other failure
        """
        if not statements:
            return
        with self._engine.begin() as conn:
            for index, statement in enumerate(statements):
                try:
                    conn.execute(text(statement))
                except DBAPIError as e:
                    violation = ConstraintViolationError.from_dbapi_error(e)
                    if violation.code:
                        raise violation from e
                    raise MigrationExecutionError(statement, index, str(e.orig)) from e
                except SQLAlchemyError as e:
                    raise MigrationExecutionError(statement, index, str(e)) from e
        logger.info(f"Executed {len(statements)} DDL statement(s)")

    def apply(self, plan: MigrationPlan) -> list[str]:
        """Validate and apply a plan's forward operations.

        Returns:
            The statements that were executed

        Raises:
            MalformedIdentifierError: If any operation fails validation
        """
        errors = validate_migration_plan(plan)
        if errors:
            raise MalformedIdentifierError("migration plan", errors)
        statements = plan_sql(plan)
        self.execute(statements)
        logger.info(f"Applied migration: {plan.description}")
        return statements

    def rollback(self, plan: MigrationPlan) -> list[str]:
        """Apply a plan's structured rollback operations.

        Raises:
            UnsupportedOperationError: If any forward operation cannot be undone
        """
        statements = plan_rollback_sql(plan)
        self.execute(statements)
        logger.info(f"Rolled back migration: {plan.description}")
        return statements
