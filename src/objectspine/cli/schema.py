"""
CLI: ``objectspine schema``, entity-type definitions and tables.
"""

from __future__ import annotations

from pathlib import Path

import typer

from objectspine.cli.utils import console, load_schema, open_repository, print_json, print_table, reporting_errors
from objectspine.model.loader import entity_type_to_yaml
from objectspine.model.schema import create_entity_tables

app = typer.Typer(no_args_is_help=True)


@app.command()
def apply(
    database: str | None = typer.Option(None, "--database", "-d", help="Database URL or path"),
    schema: Path | None = typer.Option(None, "--schema", "-s", help="Entity-type YAML file or directory"),
) -> None:
    """Create the tables of every entity type in the schema."""
    with reporting_errors():
        provider = load_schema(schema)
        repo = open_repository(database)
        with repo.transaction():
            touched = create_entity_tables(repo, provider.all())
    console.print(f"[green]✓[/green] {len(touched)} table(s) ready: {', '.join(touched)}")


@app.command("list")
def list_types(
    schema: Path | None = typer.Option(None, "--schema", "-s", help="Entity-type YAML file or directory"),
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """List entity types and their fields."""
    with reporting_errors():
        provider = load_schema(schema)
    rows = [
        {
            "code": et.code_name,
            "name": et.name,
            "table": et.table,
            "fields": ", ".join(f.code_name for f in et.fields),
        }
        for et in provider.all()
    ]
    if json_out:
        print_json(rows)
    else:
        print_table(rows, title="Entity Types")


@app.command()
def show(
    code: str = typer.Argument(..., help="Entity-type code"),
    schema: Path | None = typer.Option(None, "--schema", "-s", help="Entity-type YAML file or directory"),
) -> None:
    """Print one entity type as YAML."""
    with reporting_errors():
        et = load_schema(schema).get(code)
    typer.echo(entity_type_to_yaml(et))
