"""Schema management commands."""

from typing import Annotated, cast

import typer

from tablewright import SQLSchemaSource, TableStatus
from tablewright.cli.context import CLIContext
from tablewright.cli.output import OutputFormatter
from tablewright.cli.parsing import load_schema_document

# Create schema subcommand group
app = typer.Typer(help="Manage table definitions stored in the database")


def _sql_source(cli_ctx: CLIContext) -> SQLSchemaSource:
    return cast(SQLSchemaSource, cli_ctx.get_tablewright().source)


@app.command("list")
def schema_list(
    ctx: typer.Context,
    project: Annotated[str, typer.Option("--project", "-p", help="Project id")] = "default",
) -> None:
    """List a project's active tables, newest first."""
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        tw = cli_ctx.get_tablewright()
        tables = tw.registry.get_project_tables(project)

        if cli_ctx.json_output:
            formatter.print_data([t.table_name for t in tables])
        else:
            formatter.print_table(
                f"Tables ({len(tables)} total)",
                [
                    {
                        "Name": t.table_name,
                        "Fields": len(t.fields),
                        "Status": t.status,
                        "Hash": t.schema_hash()[:12],
                    }
                    for t in tables
                ],
                ["Name", "Fields", "Status", "Hash"],
            )
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


@app.command("describe")
def schema_describe(
    ctx: typer.Context,
    table_name: Annotated[str, typer.Argument(help="Table name")],
) -> None:
    """Show an active table with its fields and relationships."""
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        tw = cli_ctx.get_tablewright()
        formatter.print_table_schema(tw.registry.get_table_schema(table_name))
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


@app.command("import")
def schema_import(
    ctx: typer.Context,
    schema_file: Annotated[str, typer.Argument(help="Schema JSON file")],
) -> None:
    """Store the tables and relationships of a schema file.

    Examples:

        tablewright --database sqlite:///designer.db schema import schema.json
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        document = load_schema_document(schema_file)
        source = _sql_source(cli_ctx)
        for table in document.tables:
            source.save_table(table)
        for relationship in document.relationships:
            source.save_relationship(relationship)

        formatter.print_success(
            f"Imported {len(document.tables)} table(s)",
            {
                "tables": document.table_names,
                "relationships": len(document.relationships),
            },
        )
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


@app.command("status")
def schema_status(
    ctx: typer.Context,
    table_name: Annotated[str, typer.Argument(help="Table name")],
    status: Annotated[TableStatus, typer.Argument(help="New status")],
) -> None:
    """Change a table's lifecycle status (draft, active, deprecated, deleted)."""
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        _sql_source(cli_ctx).set_table_status(table_name, status)
        formatter.print_success(
            f"Table '{table_name}' is now {status.value}",
            {"table_name": table_name, "status": status.value},
        )
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


@app.command("drop")
def schema_drop(
    ctx: typer.Context,
    table_name: Annotated[str, typer.Argument(help="Table name")],
    force: Annotated[
        bool,
        typer.Option("--force", help="Skip confirmation prompt"),
    ] = False,
) -> None:
    """Delete a table definition with its fields and relationships."""
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    # Confirmation prompt
    if not force and not cli_ctx.json_output:
        confirm = typer.confirm(f"Are you sure you want to drop table '{table_name}'?")
        if not confirm:
            typer.echo("Cancelled.")
            raise typer.Exit(code=0)

    try:
        if _sql_source(cli_ctx).delete_table(table_name):
            formatter.print_success(f"Table '{table_name}' dropped")
        else:
            formatter.print_error(Exception(f"Table '{table_name}' not found"))
            raise typer.Exit(code=1)
    except typer.Exit:
        raise
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()
