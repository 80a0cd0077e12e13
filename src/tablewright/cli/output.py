"""Output formatting for CLI commands."""

import json
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from tablewright import MigrationPlan, TableSchema, TablewrightError, ValidationResult

console = Console()


class OutputFormatter:
    """Formats output for terminal or JSON mode."""

    def __init__(self, json_mode: bool = False) -> None:
        """Initialize formatter.

        Args:
            json_mode: If True, output JSON instead of Rich formatting
        """
        self.json_mode = json_mode

    def print_table(
        self,
        title: str,
        data: list[dict[str, Any]],
        columns: list[str],
    ) -> None:
        """Print data as Rich table or JSON array."""
        if self.json_mode:
            print(json.dumps(data, default=str, indent=2))
        else:
            table = Table(title=title, show_header=True, header_style="bold magenta")
            for col in columns:
                table.add_column(col)
            for row in data:
                table.add_row(*[str(row.get(col, "")) for col in columns])
            console.print(table)

    def print_table_schema(self, schema: TableSchema) -> None:
        """Print a table definition with its fields and relationships."""
        if self.json_mode:
            print(json.dumps(schema.model_dump(mode="json"), default=str, indent=2))
            return

        console.print(f"\n[bold]Table:[/bold] {schema.table_name}")
        console.print(f"Status: {schema.status}")
        console.print(f"Project: {schema.project_id}")
        console.print(f"Default sort: {schema.default_sort} {schema.default_order}")

        if schema.fields:
            console.print(f"\n[bold]Fields ({len(schema.fields)}):[/bold]")
            fields_table = Table(show_header=True, header_style="bold cyan")
            fields_table.add_column("Name")
            fields_table.add_column("Type")
            fields_table.add_column("Required")
            fields_table.add_column("PK")
            fields_table.add_column("Immutable")
            fields_table.add_column("Default")

            for field in schema.fields:
                fields_table.add_row(
                    field.field_name,
                    str(field.data_type),
                    "✓" if field.is_required else "",
                    "✓" if field.is_primary_key else "",
                    "✓" if field.immutable else "",
                    field.default_value or "",
                )
            console.print(fields_table)

        if schema.relationships:
            console.print(f"\n[bold]Relationships ({len(schema.relationships)}):[/bold]")
            rel_table = Table(show_header=True, header_style="bold cyan")
            rel_table.add_column("From")
            rel_table.add_column("To")
            rel_table.add_column("On delete")

            for rel in schema.relationships:
                rel_table.add_row(
                    f"{rel.target_table}.{rel.target_field}",
                    f"{rel.source_table}.{rel.source_field}",
                    str(rel.cascade_config.on_delete),
                )
            console.print(rel_table)

    def print_plan(self, plan: MigrationPlan, statements: list[str]) -> None:
        """Print a migration plan with the SQL it renders to."""
        if self.json_mode:
            print(json.dumps({**plan.to_dict(), "sql": statements}, default=str, indent=2))
            return

        console.print(f"[bold]{plan.description}[/bold] (impact: {plan.estimated_impact})")
        for warning in plan.warnings:
            console.print(f"⚠ {warning}", style="yellow")
        if statements:
            console.print(Syntax("\n\n".join(statements), "sql", word_wrap=True))

    def print_validation(self, result: ValidationResult) -> None:
        """Print a request validation result."""
        if self.json_mode:
            print(json.dumps(result.to_dict(), default=str, indent=2))
            return

        if result.is_valid:
            console.print("✓ Request is valid", style="green")
        else:
            console.print(f"✗ {len(result.errors)} validation error(s)", style="red")
        issues = [("error", i) for i in result.errors] + [("warning", i) for i in result.warnings]
        if issues:
            table = Table(show_header=True, header_style="bold cyan")
            table.add_column("Level")
            table.add_column("Field")
            table.add_column("Code")
            table.add_column("Message")
            for level, issue in issues:
                table.add_row(level, issue.field, issue.code, issue.message)
            console.print(table)

    def print_success(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Print success message."""
        if self.json_mode:
            output = {"success": True, "message": message}
            if details:
                output.update(details)
            print(json.dumps(output, default=str, indent=2))
        else:
            console.print(f"✓ {message}", style="green")
            if details:
                for key, value in details.items():
                    console.print(f"  {key}: {value}", style="dim")

    def print_error(self, error: Exception) -> None:
        """Print error message."""
        if self.json_mode:
            if isinstance(error, TablewrightError):
                print(json.dumps(error.to_dict(), default=str, indent=2))
            else:
                print(json.dumps({"error": str(error)}, indent=2))
        else:
            error_text = str(error)
            if isinstance(error, TablewrightError) and error.context:
                context_str = "\n".join(f"{k}: {v}" for k, v in error.context.items())
                error_text = f"{error_text}\n\n{context_str}"

            panel = Panel(
                error_text,
                title="[red]Error[/red]",
                border_style="red",
            )
            console.print(panel)

    def print_data(self, data: Any) -> None:
        """Print generic data (dict, list, etc.)."""
        if self.json_mode:
            print(json.dumps(data, default=str, indent=2))
        else:
            console.print(data)

    def print_text(self, text: str, language: str | None = None) -> None:
        """Print generated text; highlighted in terminal mode, raw otherwise."""
        if self.json_mode or language is None:
            print(text)
        else:
            console.print(Syntax(text, language, word_wrap=True))
