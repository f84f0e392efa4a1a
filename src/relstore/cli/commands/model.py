"""Model inspection commands."""

from typing import Annotated

import typer

from relstore.cli.context import CLIContext
from relstore.cli.output import OutputFormatter

# Create model subcommand group
app = typer.Typer(help="Inspect registered entity models")


@app.command("list")
def model_list(ctx: typer.Context) -> None:
    """List all registered models."""
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        storage = cli_ctx.get_storage()
        models = storage.models().all()

        if cli_ctx.json_output:
            formatter.print_data([m.entity for m in models])
        else:
            table_data = [
                {
                    "Entity": model.entity,
                    "Table": model.table,
                    "Fields": len(model.fields),
                    "Indexes": len(model.indexes),
                    "Relations": ", ".join(model.relations) or "-",
                }
                for model in models
            ]
            formatter.print_table(
                f"Models ({len(models)} total)",
                table_data,
                ["Entity", "Table", "Fields", "Indexes", "Relations"],
            )
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


@app.command("describe")
def model_describe(
    ctx: typer.Context,
    entity_name: Annotated[str, typer.Argument(help="Entity identifier or alias")],
) -> None:
    """Show fields, indexes and relations of a model."""
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        storage = cli_ctx.get_storage()
        formatter.print_model(storage.get_model(entity_name).describe())
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()
