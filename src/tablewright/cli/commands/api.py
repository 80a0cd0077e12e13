"""Generated API commands."""

import json
from pathlib import Path
from typing import Annotated

import typer

from tablewright import APIGenerator
from tablewright.cli.context import CLIContext
from tablewright.cli.output import OutputFormatter
from tablewright.cli.parsing import load_schema_document
from tablewright.core.config import DEFAULT_BASE_PATH

# Create api subcommand group
app = typer.Typer(help="Generate CRUD APIs for the active tables of a schema file")

BasePathOption = Annotated[
    str,
    typer.Option(
        "--base-path",
        envvar="TABLEWRIGHT_API_BASE_PATH",
        help="Path prefix of generated endpoints",
    ),
]
OutputOption = Annotated[
    str | None,
    typer.Option("--output", "-o", help="Write to this file instead of stdout"),
]


def _write(text: str, output: str | None) -> bool:
    if output is None:
        return False
    Path(output).write_text(text)
    return True


@app.command("openapi")
def api_openapi(
    ctx: typer.Context,
    schema_file: Annotated[str, typer.Argument(help="Schema JSON file")],
    base_path: BasePathOption = DEFAULT_BASE_PATH,
    output: OutputOption = None,
) -> None:
    """Export an OpenAPI 3.0.3 document.

    Examples:

        tablewright api openapi schema.json -o openapi.json
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        document = load_schema_document(schema_file)
        generator = APIGenerator(document.tables, document.relationships, base_path=base_path)
        spec = json.dumps(generator.export_openapi(), indent=2)
        if _write(spec, output):
            formatter.print_success(f"OpenAPI document written to {output}")
        else:
            print(spec)
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)


@app.command("source")
def api_source(
    ctx: typer.Context,
    schema_file: Annotated[str, typer.Argument(help="Schema JSON file")],
    output: OutputOption = None,
) -> None:
    """Export pydantic models for every active table as Python source."""
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        document = load_schema_document(schema_file)
        source = APIGenerator(document.tables, document.relationships).export_source()
        if _write(source, output):
            formatter.print_success(f"Models written to {output}")
        else:
            formatter.print_text(source, "python")
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)


@app.command("endpoints")
def api_endpoints(
    ctx: typer.Context,
    schema_file: Annotated[str, typer.Argument(help="Schema JSON file")],
    project: Annotated[str, typer.Option("--project", "-p", help="Project id")] = "default",
) -> None:
    """Register a project's endpoints and list them."""
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        tw = cli_ctx.from_document(load_schema_document(schema_file))
        tw.sync_endpoints(project)
        endpoints = sorted(
            tw.endpoints.get_project_endpoints(project), key=lambda e: (e.table_name, e.path)
        )
        formatter.print_table(
            f"Endpoints ({len(endpoints)} total)",
            [
                {
                    "id": e.id,
                    "method": e.method,
                    "path": e.path,
                    "handler": e.endpoint.handler,
                    "table": e.table_name,
                }
                for e in endpoints
            ],
            ["method", "path", "handler", "table"],
        )
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()
