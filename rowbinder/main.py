from __future__ import annotations

import json
import sys

import psycopg
import typer

from rowbinder.config import get_settings
from rowbinder.infrastructure.db_factory import build_dsn, server_version
from rowbinder.records import Record, RecordContext
from rowbinder.utils.logging import configure_logging

app = typer.Typer(help="rowbinder record mapper CLI.")


def _context() -> RecordContext:
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    return RecordContext.from_settings(settings)


@app.command()
def info(
    check: bool = typer.Option(False, "--check", help="Also connect to the database and report its version."),
) -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"DB={settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_name} "
        f"schema={settings.db_schema} | cache_on_load={settings.cache_on_load} "
        f"language={settings.default_language or '-'} env={settings.app_env}"
    )
    if not check:
        return
    try:
        version = server_version(build_dsn(settings))
    except psycopg.Error as exc:
        typer.echo(f"Database unreachable: {exc}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Connected: {version}")


@app.command()
def describe(table: str = typer.Argument(..., help="Table to introspect.")) -> None:
    """
    Print the column metadata of a table.
    """
    context = _context()
    schema = context.catalog.get_schema(table)
    if not len(schema):
        typer.echo(f"Table '{table}' has no columns or does not exist.", err=True)
        raise typer.Exit(code=1)
    typer.echo(json.dumps(schema.model_dump(mode="json"), indent=2))


@app.command()
def sample(
    table: str = typer.Argument(..., help="Table to sample."),
    count: int = typer.Option(5, "--count", "-n", help="Number of random rows."),
) -> None:
    """
    Print random rows of a table.
    """
    context = _context()
    rows = Record(context, table_name=table).select_random(count)
    typer.echo(json.dumps(rows, indent=2, default=str))


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
