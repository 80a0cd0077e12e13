"""Request validation command."""

from typing import Annotated

import typer

from tablewright import Operation
from tablewright.cli.context import CLIContext
from tablewright.cli.output import OutputFormatter
from tablewright.cli.parsing import load_schema_document, parse_json_body, parse_query_params


def validate_command(
    ctx: typer.Context,
    operation: Annotated[Operation, typer.Argument(help="Request kind")],
    schema_file: Annotated[str, typer.Argument(help="Schema JSON file")],
    table_name: Annotated[str, typer.Argument(help="Table the request targets")],
    body: Annotated[
        str | None,
        typer.Option("--body", "-b", help="JSON body, or @path to a JSON file"),
    ] = None,
    query: Annotated[
        list[str] | None,
        typer.Option("--query", "-q", help="Query parameter key=value. Can be repeated."),
    ] = None,
    record_id: Annotated[str | None, typer.Option("--id", help="Record id path parameter")] = None,
) -> None:
    """Validate a request against a table of a schema file.

    Exits with code 1 when the request has validation errors.

    Examples:

        tablewright validate create schema.json users --body '{"email": "a@b.co"}'
        tablewright validate list schema.json users -q page=2 -q status__in=a,b
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        tw = cli_ctx.from_document(load_schema_document(schema_file))
        result = tw.validate_request(
            table_name,
            operation,
            params={"id": record_id} if record_id is not None else None,
            query=parse_query_params(query),
            body=parse_json_body(body),
        )
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()

    formatter.print_validation(result)
    if not result.is_valid:
        raise typer.Exit(code=1)
