"""
CLI: ``objectspine objects``: read and mutate entity objects.

Object documents use the transport form of :mod:`objectspine.objects.mapper`.
"""

from __future__ import annotations

from pathlib import Path

import typer

from objectspine.cli.utils import console, make_manager, print_json, print_table, reporting_errors
from objectspine.core.context import request_user
from objectspine.core.errors import UnprocessableError
from objectspine.objects.conditions import And, Comparison, Condition, Op
from objectspine.objects.filter import EntityObjectFilter, PageRequest, SortType
from objectspine.objects.mapper import object_from_json, object_to_dict

app = typer.Typer(no_args_is_help=True)

DATABASE = typer.Option(None, "--database", "-d", help="Database URL or path")
SCHEMA = typer.Option(None, "--schema", "-s", help="Entity-type YAML file or directory")
USER = typer.Option("cli", "--user", "-u", help="User recorded in object metadata")


def parse_where(items: list[str] | None) -> Condition | None:
    """``code=value`` terms joined with AND; ``code=`` matches null."""
    conditions: list[Condition] = []
    for item in items or []:
        code, sep, value = item.partition("=")
        if not sep or not code.strip():
            raise UnprocessableError(f"Invalid condition {item!r}, expected code=value")
        if value == "":
            conditions.append(Comparison(code.strip(), Op.IS_NULL))
        else:
            conditions.append(Comparison(code.strip(), Op.EQ, value))
    if not conditions:
        return None
    return conditions[0] if len(conditions) == 1 else And(*conditions)


def _read_document(document: str | None, file: Path | None) -> str:
    if file is not None:
        return file.read_text(encoding="utf-8")
    if document is None:
        raise UnprocessableError("Provide an object document or --file")
    return document


@app.command("list")
def list_objects(
    entity_type: str = typer.Argument(..., help="Entity-type code"),
    where: list[str] | None = typer.Option(None, "--where", "-w", help="Condition code=value (repeatable)"),
    sort: str | None = typer.Option(None, "--sort", help="Sort field"),
    desc: bool = typer.Option(False, "--desc", help="Sort descending"),
    page: int | None = typer.Option(None, "--page", help="Zero-based page number"),
    size: int = typer.Option(20, "--size", help="Page size"),
    database: str | None = DATABASE,
    schema: Path | None = SCHEMA,
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """List objects of an entity type."""
    with reporting_errors():
        manager = make_manager(database, schema)
        et = manager.schema.get(entity_type)
        flt = EntityObjectFilter(
            condition=parse_where(where),
            sort_field=sort,
            sort_type=SortType.DESC if desc else SortType.ASC,
            page=PageRequest(page, size) if page is not None else None,
        )
        result = manager.find_page(et, flt)
        docs = [object_to_dict(et, obj) for obj in result]

    if json_out:
        print_json({"items": docs, "total": result.total, "page": result.page, "size": result.size})
        return
    rows = [
        {"id": d["id"], "name": d["name"], "status": d["status"], **d["attributes"]}
        for d in docs
    ]
    print_table(rows, title=et.name)
    if page is not None:
        console.print(f"\n[dim]Page {result.page + 1} of {result.total_pages} ({result.total} total)[/dim]")


@app.command()
def get(
    entity_type: str = typer.Argument(..., help="Entity-type code"),
    object_id: int = typer.Argument(..., help="Object id"),
    fields: list[str] | None = typer.Option(None, "--field", "-f", help="Field to select (repeatable)"),
    database: str | None = DATABASE,
    schema: Path | None = SCHEMA,
) -> None:
    """Print one object as JSON."""
    with reporting_errors():
        manager = make_manager(database, schema)
        et = manager.schema.get(entity_type)
        obj = manager.find(et, object_id, fields=fields or None)
    print_json(object_to_dict(et, obj))


@app.command()
def count(
    entity_type: str = typer.Argument(..., help="Entity-type code"),
    where: list[str] | None = typer.Option(None, "--where", "-w", help="Condition code=value (repeatable)"),
    database: str | None = DATABASE,
    schema: Path | None = SCHEMA,
) -> None:
    """Count objects matching the conditions."""
    with reporting_errors():
        manager = make_manager(database, schema)
        total = manager.count(entity_type, EntityObjectFilter(condition=parse_where(where)))
    typer.echo(total)


@app.command()
def create(
    entity_type: str = typer.Argument(..., help="Entity-type code"),
    document: str | None = typer.Argument(None, help="Object JSON document"),
    file: Path | None = typer.Option(None, "--file", help="Read the document from a file"),
    user: str = USER,
    database: str | None = DATABASE,
    schema: Path | None = SCHEMA,
) -> None:
    """Create an object from a JSON document."""
    with reporting_errors():
        manager = make_manager(database, schema)
        et = manager.schema.get(entity_type)
        obj = object_from_json(et, _read_document(document, file))
        with request_user(user):
            created = manager.create_object(et, obj)
    print_json(object_to_dict(et, created))


@app.command()
def update(
    entity_type: str = typer.Argument(..., help="Entity-type code"),
    object_id: int = typer.Argument(..., help="Object id"),
    document: str | None = typer.Argument(None, help="Patch JSON document"),
    file: Path | None = typer.Option(None, "--file", help="Read the document from a file"),
    user: str = USER,
    database: str | None = DATABASE,
    schema: Path | None = SCHEMA,
) -> None:
    """Apply a patch document to an object."""
    with reporting_errors():
        manager = make_manager(database, schema)
        et = manager.schema.get(entity_type)
        patch = object_from_json(et, _read_document(document, file))
        patch.id = object_id
        with request_user(user):
            updated = manager.update_object(et, patch)
    print_json(object_to_dict(et, updated))


@app.command()
def delete(
    entity_type: str = typer.Argument(..., help="Entity-type code"),
    object_id: int = typer.Argument(..., help="Object id"),
    force: bool = typer.Option(False, "--force", help="Remove regardless of status"),
    user: str = USER,
    database: str | None = DATABASE,
    schema: Path | None = SCHEMA,
) -> None:
    """Deactivate an active object, remove an inactive one."""
    with reporting_errors():
        manager = make_manager(database, schema)
        with request_user(user):
            if force:
                manager.delete_object_force(entity_type, object_id)
            else:
                manager.delete_object(entity_type, object_id)
    console.print(f"[green]✓[/green] {entity_type}#{object_id} deleted")


@app.command()
def activate(
    entity_type: str = typer.Argument(..., help="Entity-type code"),
    object_id: int = typer.Argument(..., help="Object id"),
    user: str = USER,
    database: str | None = DATABASE,
    schema: Path | None = SCHEMA,
) -> None:
    """Reactivate an inactive object."""
    with reporting_errors():
        manager = make_manager(database, schema)
        with request_user(user):
            manager.activate_object(entity_type, object_id)
    console.print(f"[green]✓[/green] {entity_type}#{object_id} activated")


@app.command()
def values(
    entity_type: str = typer.Argument(..., help="Entity-type code"),
    field_code: str = typer.Argument(..., help="Field code"),
    database: str | None = DATABASE,
    schema: Path | None = SCHEMA,
) -> None:
    """Distinct values of a field."""
    with reporting_errors():
        manager = make_manager(database, schema)
        result = manager.find_filter_values(entity_type, field_code)
    print_json(result)
