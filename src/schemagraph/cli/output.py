"""Output formatting for CLI commands."""

import json
from typing import Any

from pydantic import BaseModel
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from schemagraph.core.types import ChatAnswer, StructuralReport, TableContext
from schemagraph.exceptions import SchemaGraphError

console = Console()


class OutputFormatter:
    """Formats output for terminal or JSON mode."""

    def __init__(self, json_mode: bool = False) -> None:
        """Initialize formatter.

        Args:
            json_mode: If True, output JSON instead of Rich formatting
        """
        self.json_mode = json_mode

    def _dump(self, data: Any) -> None:
        if isinstance(data, BaseModel):
            data = data.model_dump()
        print(json.dumps(data, default=str, indent=2))

    def print_table(
        self,
        title: str,
        data: list[dict[str, Any]],
        columns: list[str],
    ) -> None:
        """Print data as Rich table or JSON array.

        Args:
            title: Table title
            data: List of row dictionaries
            columns: Column names to display
        """
        if self.json_mode:
            self._dump(data)
        else:
            table = Table(title=title, show_header=True, header_style="bold magenta")
            for col in columns:
                table.add_column(col)
            for row in data:
                table.add_row(*[str(row.get(col, "")) for col in columns])
            console.print(table)

    def print_table_context(self, context: TableContext) -> None:
        """Print the columns of one table with key flags."""
        if self.json_mode:
            self._dump(context)
            return
        console.print(f"\n[bold]Table:[/bold] {context.table_name}")
        table = Table(show_header=True, header_style="bold cyan")
        table.add_column("Column")
        table.add_column("Type")
        table.add_column("Nullable")
        table.add_column("PK")
        table.add_column("References")
        for col in context.columns:
            table.add_row(
                col.name,
                col.type or "",
                "✓" if col.is_nullable else "",
                "✓" if col.is_primary_key else "",
                col.references or "",
            )
        console.print(table)

    def print_answer(self, answer: ChatAnswer) -> None:
        """Print a retrieval answer with the context it was built from."""
        if self.json_mode:
            self._dump(answer)
            return
        style = "green" if answer.status == "answered" else "yellow"
        console.print(Panel(Markdown(answer.answer), border_style=style))
        if answer.entities:
            console.print(f"[dim]Entities: {', '.join(answer.entities)}[/dim]")
        for relation in answer.relations:
            console.print(f"[dim]  {relation}[/dim]")
        if answer.impact is not None and answer.impact.hops:
            console.print(f"[dim]Relational span: {answer.impact.hops} hop(s)[/dim]")

    def print_report(self, report: StructuralReport) -> None:
        """Print a structural health report."""
        if self.json_mode:
            self._dump(report)
            return
        console.print(f"\n[bold]Connection:[/bold] {report.connection_id}")
        console.print(f"Entities: {report.entity_count}")
        console.print(f"References: {report.reference_count}")
        console.print(f"Max relationship depth: {report.max_depth}")
        if report.isolated:
            console.print(
                f"[yellow]Isolated ({len(report.isolated)}):[/yellow] {', '.join(report.isolated)}"
            )
        else:
            console.print("[green]No isolated entities[/green]")
        if report.hubs:
            table = Table(title="Hubs", show_header=True, header_style="bold cyan")
            table.add_column("Entity")
            table.add_column("Connections", justify="right")
            table.add_column("Fields", justify="right")
            table.add_column("References", justify="right")
            for hub in report.hubs:
                table.add_row(
                    hub.name, str(hub.connections), str(hub.fields), str(hub.references)
                )
            console.print(table)

    def print_success(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Print success message.

        Args:
            message: Success message
            details: Optional details to display
        """
        if self.json_mode:
            output: dict[str, Any] = {"success": True, "message": message}
            if details:
                output.update(details)
            self._dump(output)
        else:
            console.print(f"✓ {message}", style="green")
            if details:
                for key, value in details.items():
                    console.print(f"  {key}: {value}", style="dim")

    def print_warning(self, message: str) -> None:
        if not self.json_mode:
            console.print(f"! {message}", style="yellow")

    def print_error(self, error: Exception) -> None:
        """Print error message.

        Args:
            error: Exception to display
        """
        if self.json_mode:
            if isinstance(error, SchemaGraphError):
                self._dump(error.to_dict())
            else:
                self._dump({"error": str(error)})
        else:
            error_text = str(error)
            # For SchemaGraphError, include context if available
            if isinstance(error, SchemaGraphError) and error.context:
                context_str = "\n".join(f"{k}: {v}" for k, v in error.context.items())
                error_text = f"{error_text}\n\n{context_str}"

            panel = Panel(
                error_text,
                title="[red]Error[/red]",
                border_style="red",
            )
            console.print(panel)

    def print_data(self, data: Any) -> None:
        """Print generic data (dict, list, model).

        Args:
            data: Data to print
        """
        if self.json_mode:
            self._dump(data)
        else:
            if isinstance(data, BaseModel):
                data = data.model_dump()
            console.print(data)
