"""relstore CLI - Main entry point."""

import logging
import sys
from typing import Annotated

import typer

import relstore
from relstore.cli.context import CLIContext, get_database_url, get_models_path

app = typer.Typer(
    name="relstore",
    help="relstore CLI - entity-relational storage",
    no_args_is_help=True,
)


@app.callback()
def main_callback(
    ctx: typer.Context,
    database: Annotated[
        str | None,
        typer.Option(
            "--database",
            "-d",
            envvar="RELSTORE_URL",
            help="Database URL (SQLite, PostgreSQL or MySQL)",
        ),
    ] = None,
    models: Annotated[
        str | None,
        typer.Option(
            "--models",
            "-m",
            envvar="RELSTORE_MODELS",
            help="JSON file with model definitions",
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
            help="Log statements and relation steps to stderr",
        ),
    ] = False,
) -> None:
    """Initialize CLI context with global options."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        stream=sys.stderr,
        format="%(levelname)s %(name)s: %(message)s",
    )

    ctx.obj = CLIContext(
        database_url=get_database_url(database),
        models_path=get_models_path(models),
        echo=echo,
        json_output=json_output,
    )


@app.command()
def version() -> None:
    """Show version information."""
    typer.echo(f"relstore v{relstore.__version__}")


# Register command groups
from relstore.cli.commands import data, model, schema  # noqa: E402

app.add_typer(model.app, name="model")
app.add_typer(schema.app, name="schema")
app.add_typer(data.app, name="data")


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
