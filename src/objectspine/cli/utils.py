"""
CLI utility helpers: output formatting, error reporting and engine wiring.
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from objectspine.core.connection import create_connection
from objectspine.core.errors import ObjectSpineError
from objectspine.core.settings import get_settings
from objectspine.model.loader import load_entity_types
from objectspine.model.schema import InMemorySchemaProvider
from objectspine.objects.manager import EntityObjectManager
from objectspine.objects.repository import EntityObjectRepository

console = Console()
err_console = Console(stderr=True)


# ── Engine wiring ────────────────────────────────────────────────────────


def open_repository(database: str | None = None) -> EntityObjectRepository:
    """Object repository on *database*, defaulting to ``OBJECTSPINE_DATABASE_URL``."""
    conn, info = create_connection(database or get_settings().database_url)
    return EntityObjectRepository(conn, info.dialect)


def load_schema(schema: Path | None = None) -> InMemorySchemaProvider:
    """Entity types from *schema*, defaulting to ``OBJECTSPINE_SCHEMA_PATH``."""
    settings = get_settings()
    path = schema or settings.schema_path
    if path is None:
        err_console.print("[bold red]Error[/bold red]: no schema given (use --schema or OBJECTSPINE_SCHEMA_PATH)")
        raise typer.Exit(code=1)
    return InMemorySchemaProvider(load_entity_types(path, default_srid=settings.default_srid))


def make_manager(database: str | None, schema: Path | None) -> EntityObjectManager:
    return EntityObjectManager(
        open_repository(database),
        load_schema(schema),
        attachments_bucket=get_settings().attachments_bucket,
    )


@contextmanager
def reporting_errors() -> Iterator[None]:
    """Print engine and schema-file errors and exit with status 1."""
    try:
        yield
    except ObjectSpineError as e:
        err_console.print(f"[bold red]Error[/bold red] ({e.__class__.__name__}): {e.message}")
        raise typer.Exit(code=1) from e
    except FileNotFoundError as e:
        err_console.print(f"[bold red]Error[/bold red]: {e}")
        raise typer.Exit(code=1) from e


# ── Output helpers ───────────────────────────────────────────────────────


def print_json(payload: Any) -> None:
    """Write *payload* as indented JSON to stdout."""
    typer.echo(json.dumps(payload, indent=2, default=str))


def print_table(items: list[dict[str, Any]], *, title: str = "") -> None:
    """Render a list of dicts as a Rich table (columns from the first row)."""
    if not items:
        console.print("[dim]No items.[/dim]")
        return
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for col in items[0]:
        table.add_column(col, overflow="fold")
    for item in items:
        table.add_row(*(_cell(v) for v in item.values()))
    console.print(table)


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    return str(value)
