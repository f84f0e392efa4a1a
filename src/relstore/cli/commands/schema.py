"""Schema management commands."""

from typing import Annotated

import typer

from relstore.cli.context import CLIContext
from relstore.cli.output import OutputFormatter

# Create schema subcommand group
app = typer.Typer(help="Check, create and drop entity tables")

EntityArgument = Annotated[
    str | None,
    typer.Argument(help="Entity identifier (all registered entities when omitted)"),
]
SqlOption = Annotated[
    bool,
    typer.Option("--sql", help="Print the DDL instead of running it"),
]


@app.command("check")
def schema_check(ctx: typer.Context, entity_name: EntityArgument = None) -> None:
    """Show which entity tables exist."""
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        storage = cli_ctx.get_storage()
        result = storage.check(entity_name).execute()

        if cli_ctx.json_output:
            formatter.print_data(result)
        else:
            formatter.print_table(
                "Tables",
                [
                    {
                        "Entity": entity,
                        "Table": storage.get_model(entity).table,
                        "Exists": "✓" if exists else "✗",
                    }
                    for entity, exists in result.items()
                ],
                ["Entity", "Table", "Exists"],
            )
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


@app.command("create")
def schema_create(
    ctx: typer.Context, entity_name: EntityArgument = None, sql: SqlOption = False
) -> None:
    """Create missing entity tables.

    Examples:

        relstore -m models.json schema create
        relstore -m models.json schema create article --sql
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        schema = cli_ctx.get_storage().create(entity_name)
        if sql:
            formatter.print_statements(schema.query_string())
        else:
            created = schema.execute()
            formatter.print_success(f"Created {len(created)} table(s)", {"entities": created})
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


@app.command("drop")
def schema_drop(
    ctx: typer.Context,
    entity_name: EntityArgument = None,
    sql: SqlOption = False,
    force: Annotated[
        bool,
        typer.Option("--force", help="Skip confirmation prompt"),
    ] = False,
) -> None:
    """Drop entity tables and all of their data.

    Examples:

        relstore -m models.json schema drop article --force
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    # Confirmation prompt
    if not sql and not force and not cli_ctx.json_output:
        target = f"the table of '{entity_name}'" if entity_name else "all entity tables"
        confirm = typer.confirm(f"Are you sure you want to drop {target}?")
        if not confirm:
            typer.echo("Cancelled.")
            raise typer.Exit(code=0)

    try:
        schema = cli_ctx.get_storage().drop(entity_name)
        if sql:
            formatter.print_statements(schema.query_string())
        else:
            dropped = schema.execute()
            formatter.print_success(f"Dropped {len(dropped)} table(s)", {"entities": dropped})
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()
