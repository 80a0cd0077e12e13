"""Migration planning and execution commands."""

from typing import Annotated

import typer

from tablewright import MigrationPlanner
from tablewright.cli.context import CLIContext
from tablewright.cli.output import OutputFormatter
from tablewright.cli.parsing import load_schema_document
from tablewright.migrations import plan_rollback_sql, plan_sql

# Create migrate subcommand group
app = typer.Typer(help="Plan and apply migrations between two schema files")


@app.command("plan")
def migrate_plan(
    ctx: typer.Context,
    current_file: Annotated[str, typer.Argument(help="Schema file describing the live database")],
    target_file: Annotated[str, typer.Argument(help="Schema file describing the desired state")],
    rollback: Annotated[
        bool,
        typer.Option("--rollback", help="Show the rollback SQL instead of the forward SQL"),
    ] = False,
) -> None:
    """Show the operations and SQL that turn CURRENT into TARGET.

    Examples:

        tablewright migrate plan v1.json v2.json
        tablewright --json migrate plan v1.json v2.json --rollback
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        plan = MigrationPlanner().diff(
            load_schema_document(current_file), load_schema_document(target_file)
        )
        statements = plan_rollback_sql(plan) if rollback else plan_sql(plan)
        formatter.print_plan(plan, statements)
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)


@app.command("apply")
def migrate_apply(
    ctx: typer.Context,
    current_file: Annotated[str, typer.Argument(help="Schema file describing the live database")],
    target_file: Annotated[str, typer.Argument(help="Schema file describing the desired state")],
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="Print the SQL without executing it"),
    ] = False,
) -> None:
    """Execute the migration from CURRENT to TARGET in one transaction."""
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        tw = cli_ctx.get_tablewright()
        plan = tw.plan_migration(
            load_schema_document(current_file), load_schema_document(target_file)
        )
        if plan.is_empty:
            formatter.print_success("Nothing to apply", {"description": plan.description})
            return
        if dry_run:
            formatter.print_plan(plan, plan_sql(plan))
            return

        statements = tw.apply_plan(plan)
        formatter.print_success(
            f"Applied migration: {plan.description}",
            {"statements": len(statements), "impact": plan.estimated_impact},
        )
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()
