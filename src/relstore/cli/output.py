"""Output formatting for CLI commands."""

import json
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from relstore.exceptions import RelstoreError

console = Console()


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    return str(value)


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
        """Print data as Rich table or JSON array.

        Args:
            title: Table title
            data: List of row dictionaries
            columns: Column names to display
        """
        if self.json_mode:
            print(json.dumps(data, default=str, indent=2))
        else:
            table = Table(title=title, show_header=True, header_style="bold magenta")
            for col in columns:
                table.add_column(col)
            for row in data:
                table.add_row(*[_cell(row.get(col)) for col in columns])
            console.print(table)

    def print_records(self, entity: str, records: list[dict[str, Any]]) -> None:
        """Print fetched records; related containers are shown as JSON."""
        columns: list[str] = []
        for record in records:
            for key in record:
                if key not in columns:
                    columns.append(key)
        self.print_table(f"{entity} ({len(records)} shown)", records, columns)

    def print_model(self, description: dict[str, Any]) -> None:
        """Print a model description with fields, indexes and relations.

        Args:
            description: Output of ``Model.describe()``
        """
        if self.json_mode:
            print(json.dumps(description, default=str, indent=2))
            return

        console.print(f"\n[bold]Entity:[/bold] {description['entity']}")
        console.print(f"Table: {description['table']}")

        if description["fields"]:
            console.print(f"\n[bold]Fields ({len(description['fields'])}):[/bold]")
            fields_table = Table(show_header=True, header_style="bold cyan")
            fields_table.add_column("Name")
            fields_table.add_column("Type")
            fields_table.add_column("Column")
            fields_table.add_column("Attributes")
            for field in description["fields"]:
                fields_table.add_row(
                    field["name"],
                    field["type"],
                    field["column"],
                    ", ".join(
                        k if v is True else f"{k}={v}" for k, v in field["attributes"].items()
                    ),
                )
            console.print(fields_table)

        if description["indexes"]:
            console.print(f"\n[bold]Indexes ({len(description['indexes'])}):[/bold]")
            index_table = Table(show_header=True, header_style="bold cyan")
            index_table.add_column("Name")
            index_table.add_column("Type")
            index_table.add_column("Fields")
            for index in description["indexes"]:
                if index["references"]:
                    fields = ", ".join(
                        f"{local} -> {index['foreign_table']}.{foreign}"
                        for local, foreign in index["references"].items()
                    )
                else:
                    fields = ", ".join(index["fields"])
                index_table.add_row(index["name"], index["type"], fields)
            console.print(index_table)

        if description["relations"]:
            console.print(f"\n[bold]Relations ({len(description['relations'])}):[/bold]")
            rel_table = Table(show_header=True, header_style="bold cyan")
            rel_table.add_column("Name")
            rel_table.add_column("Type")
            rel_table.add_column("Entity")
            rel_table.add_column("Mediator")
            rel_table.add_column("Keys")
            for rel in description["relations"]:
                keys = ", ".join(f"{k} -> {v}" for k, v in rel["keys"].items())
                if rel["target_keys"]:
                    keys += " | " + ", ".join(f"{k} -> {v}" for k, v in rel["target_keys"].items())
                rel_table.add_row(
                    rel["name"], rel["type"], rel["entity"], rel["mediator"] or "", keys
                )
            console.print(rel_table)

    def print_statements(self, statements: list[str]) -> None:
        """Print SQL statements."""
        if self.json_mode:
            print(json.dumps(statements, indent=2))
        else:
            for statement in statements:
                console.print(statement + ";", highlight=False)

    def print_success(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Print success message.

        Args:
            message: Success message
            details: Optional details to display
        """
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
        """Print error message.

        Args:
            error: Exception to display
        """
        if self.json_mode:
            if isinstance(error, RelstoreError):
                print(json.dumps(error.to_dict(), default=str, indent=2))
            else:
                print(json.dumps({"error": str(error)}, indent=2))
        else:
            error_text = str(error)
            if isinstance(error, RelstoreError) and error.context:
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
