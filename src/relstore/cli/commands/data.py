"""Data commands: count, read, write, delete, clear."""

from typing import Annotated, Any

import typer

from relstore.cli.context import CLIContext
from relstore.cli.output import OutputFormatter
from relstore.cli.parsing import parse_condition, parse_order, parse_records, read_records
from relstore.query.relations.keys import identity_fields

# Create data subcommand group
app = typer.Typer(help="Read and modify entity data")

EntityArgument = Annotated[str, typer.Argument(help="Entity identifier or alias")]
WhereOption = Annotated[
    list[str] | None,
    typer.Option("--where", "-w", help="Condition field<op>value. Can be repeated."),
]
WithOption = Annotated[
    list[str] | None,
    typer.Option("--with", help="Relation to resolve (dotted for nested). Can be repeated."),
]


def _records(data_json: str | None, from_file: str | None) -> list[dict[str, Any]]:
    if from_file:
        return read_records(from_file)
    if data_json:
        return parse_records(data_json)
    raise typer.BadParameter("Either provide --data as JSON string or use --from-file")


@app.command("count")
def data_count(
    ctx: typer.Context,
    entity_name: EntityArgument,
    where: WhereOption = None,
) -> None:
    """Count records.

    Examples:

        relstore data count article --where status=published
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        query = cli_ctx.get_storage().count(entity_name)
        for condition in where or []:
            field, value, comparison = parse_condition(condition)
            query.where(field, value, comparison)
        count = query.execute()

        if cli_ctx.json_output:
            formatter.print_data({"entity": entity_name, "count": count})
        else:
            typer.echo(f"{entity_name}: {count:,} record(s)")
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


@app.command("read")
def data_read(
    ctx: typer.Context,
    entity_name: EntityArgument,
    where: WhereOption = None,
    relations: WithOption = None,
    fields: Annotated[
        list[str] | None,
        typer.Option("--field", "-f", help="Field to read. Can be repeated."),
    ] = None,
    order: Annotated[
        str | None,
        typer.Option("--order", help="Order by field[:asc|desc]"),
    ] = None,
    limit: Annotated[
        int,
        typer.Option("--limit", "-l", help="Maximum number of records to return"),
    ] = 100,
    offset: Annotated[
        int,
        typer.Option("--offset", "-o", help="Number of records to skip"),
    ] = 0,
) -> None:
    """Read records, optionally with related data.

    Examples:

        relstore data read article --with tags --with comments.author
        relstore data read article --where "title~=%python%" --order id:desc --limit 10
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        query = cli_ctx.get_storage().read(entity_name)
        if fields:
            query.fields(*fields)
        for condition in where or []:
            field, value, comparison = parse_condition(condition)
            query.where(field, value, comparison)
        if relations:
            query.with_(relations)
        if order:
            query.order(*parse_order(order))
        query.limit(limit, offset)
        records = query.execute()

        if not records and not cli_ctx.json_output:
            typer.echo(f"No records found for {entity_name}")
        else:
            formatter.print_records(entity_name, records)
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


@app.command("write")
def data_write(
    ctx: typer.Context,
    entity_name: EntityArgument,
    data_json: Annotated[
        str | None,
        typer.Option("--data", help="Record (or list of records) as JSON string"),
    ] = None,
    from_file: Annotated[
        str | None,
        typer.Option("--from-file", help="Load records from JSON/JSONL file"),
    ] = None,
    relations: WithOption = None,
) -> None:
    """Insert or update records, with their related data.

    All records are written in one transaction.

    Examples:

        relstore data write tag --data '{"name": "python"}'
        relstore data write article --data '{"title": "Hi", "tags": [{"id": 1}]}' --with tags
        relstore data write article --from-file articles.jsonl --with tags
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        storage = cli_ctx.get_storage()
        records = _records(data_json, from_file)
        identity = identity_fields(storage.get_model(entity_name))

        with storage.transaction():
            for record in records:
                query = storage.write(record, entity_name)
                if relations:
                    query.with_(relations)
                query.execute()

        formatter.print_success(
            f"Wrote {len(records)} record(s)",
            {"keys": [{name: r.get(name) for name in identity} for r in records[:5]]},
        )
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


@app.command("delete")
def data_delete(
    ctx: typer.Context,
    entity_name: EntityArgument,
    data_json: Annotated[
        str | None,
        typer.Option("--data", help="Record (or list of records) identifying what to delete"),
    ] = None,
    where: WhereOption = None,
    relations: WithOption = None,
) -> None:
    """Delete records by identity or by conditions.

    Examples:

        relstore data delete article --data '{"id": 1, "tags": [{"id": 3}]}' --with tags
        relstore data delete comment --where article_id=1
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        storage = cli_ctx.get_storage()

        if data_json:
            records = parse_records(data_json)
            with storage.transaction():
                for record in records:
                    query = storage.delete(record, entity_name)
                    if relations:
                        query.with_(relations)
                    query.execute()
            formatter.print_success(f"Deleted {len(records)} record(s)")
        elif where:
            query = storage.delete(entity=entity_name)
            for condition in where:
                field, value, comparison = parse_condition(condition)
                query.where(field, value, comparison)
            deleted = query.execute()
            formatter.print_success(f"Deleted {deleted} record(s)", {"count": deleted})
        else:
            raise typer.BadParameter("Either provide --data or at least one --where condition")
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


@app.command("clear")
def data_clear(
    ctx: typer.Context,
    entity_name: EntityArgument,
    relations: WithOption = None,
    force: Annotated[
        bool,
        typer.Option("--force", help="Skip confirmation prompt"),
    ] = False,
) -> None:
    """Delete every record of an entity (and of the given relations).

    Examples:

        relstore data clear article --with tags --force
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    # Confirmation prompt
    if not force and not cli_ctx.json_output:
        confirm = typer.confirm(f"Are you sure you want to delete all '{entity_name}' records?")
        if not confirm:
            typer.echo("Cancelled.")
            raise typer.Exit(code=0)

    try:
        query = cli_ctx.get_storage().clear(entity_name)
        if relations:
            query.with_(relations)
        query.execute()
        formatter.print_success(f"Cleared '{entity_name}'")
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()
