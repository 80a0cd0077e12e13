"""Tablewright CLI - Main entry point."""

import logging
from typing import Annotated

import typer

import tablewright
from tablewright.cli.context import CLIContext
from tablewright.core.config import get_database_url

# Create main Typer app
app = typer.Typer(
    name="tablewright",
    help="Tablewright CLI - schemas, migrations and generated APIs for designed tables",
    no_args_is_help=True,
)

# Store CLI context globally (will be set in callback)
state: dict[str, CLIContext] = {}


@app.callback()
def main_callback(
    ctx: typer.Context,
    database: Annotated[
        str | None,
        typer.Option(
            "--database",
            "-d",
            envvar="TABLEWRIGHT_URL",
            help="Database URL holding the tw_* metadata tables (PostgreSQL or SQLite)",
        ),
    ] = None,
    echo: Annotated[
        bool,
        typer.Option(
            "--echo",
            "-e",
            help="Echo SQL statements to console",
        ),
    ] = False,
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            "-j",
            help="Output as JSON (machine-readable)",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Log registry, planner and endpoint activity to stderr",
        ),
    ] = False,
) -> None:
    """Initialize CLI context with global options."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

    cli_ctx = CLIContext(
        database_url=get_database_url(database),
        echo=echo,
        json_output=json_output,
    )

    # Store in Typer context for command access
    ctx.obj = cli_ctx
    state["cli_ctx"] = cli_ctx


@app.command()
def version() -> None:
    """Show version information."""
    typer.echo(f"Tablewright v{tablewright.__version__}")


# Register command groups
from tablewright.cli.commands import api, migrate, schema, validate

app.add_typer(schema.app, name="schema")
app.add_typer(migrate.app, name="migrate")
app.add_typer(api.app, name="api")

# Register validate as a standalone command (not a group)
app.command(name="validate")(validate.validate_command)


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
