"""Migration planning, SQL generation and DDL execution."""

from tablewright.migrations.constraints import (
    ColumnSpec,
    ConstraintReport,
    column_definition,
    column_definition_sql,
    default_sql_literal,
    field_to_column,
    generate_field_indexes,
    postgres_type,
    validate_field_constraints,
)
from tablewright.migrations.executor import DDLExecutor, SQLAlchemyDDLExecutor
from tablewright.migrations.operations import (
    AddColumn,
    AddForeignKey,
    AlterColumn,
    ColumnDefinition,
    CreateIndex,
    CreateTable,
    DropColumn,
    DropForeignKey,
    DropIndex,
    DropTable,
    MigrationOperation,
    MigrationPlan,
    TableConstraint,
)
from tablewright.migrations.planner import (
    MigrationPlanner,
    RelationshipReport,
    describe_operations,
    estimate_impact,
    generate_add_column_migration,
    generate_add_foreign_key_migration,
    generate_alter_column_migration,
    generate_create_table_migration,
    generate_drop_column_migration,
    generate_drop_table_migration,
    generate_migration_plan,
    generate_relationship_migration,
    generate_relationship_plan,
    validate_relationship,
)
from tablewright.migrations.sql import (
    ensure_valid,
    generate_rollback_sql,
    generate_sql,
    plan_rollback_sql,
    plan_sql,
    rollback_operation,
    validate_migration_operation,
    validate_migration_plan,
)

__all__ = [
    # Operations
    "AddColumn",
    "AddForeignKey",
    "AlterColumn",
    "ColumnDefinition",
    "CreateIndex",
    "CreateTable",
    "DropColumn",
    "DropForeignKey",
    "DropIndex",
    "DropTable",
    "MigrationOperation",
    "MigrationPlan",
    "TableConstraint",
    # Constraints
    "ColumnSpec",
    "ConstraintReport",
    "column_definition",
    "column_definition_sql",
    "default_sql_literal",
    "field_to_column",
    "generate_field_indexes",
    "postgres_type",
    "validate_field_constraints",
    # Planning
    "MigrationPlanner",
    "RelationshipReport",
    "describe_operations",
    "estimate_impact",
    "generate_add_column_migration",
    "generate_add_foreign_key_migration",
    "generate_alter_column_migration",
    "generate_create_table_migration",
    "generate_drop_column_migration",
    "generate_drop_table_migration",
    "generate_migration_plan",
    "generate_relationship_migration",
    "generate_relationship_plan",
    "validate_relationship",
    # SQL
    "ensure_valid",
    "generate_rollback_sql",
    "generate_sql",
    "plan_rollback_sql",
    "plan_sql",
    "rollback_operation",
    "validate_migration_operation",
    "validate_migration_plan",
    # Execution
    "DDLExecutor",
    "SQLAlchemyDDLExecutor",
]
