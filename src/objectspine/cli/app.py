"""
Root Typer application for the object-spine CLI.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as pkg_version

import typer
from typer import Typer

from objectspine import __version__
from objectspine.core.logging import configure_logging
from objectspine.core.settings import get_settings

app = Typer(
    name="objectspine",
    help="object-spine: schema-driven entity objects over SQL.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        try:
            v = pkg_version("object-spine")
        except PackageNotFoundError:
            v = __version__
        typer.echo(f"object-spine {v}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="Override OBJECTSPINE_LOG_LEVEL"),
) -> None:
    """object-spine CLI: apply schemas and manage entity objects."""
    settings = get_settings()
    configure_logging(level=log_level or settings.log_level, json_format=settings.json_logs)


# ── Sub-command registration ─────────────────────────────────────────────

from objectspine.cli.objects import app as objects_app  # noqa: E402
from objectspine.cli.schema import app as schema_app  # noqa: E402

app.add_typer(schema_app, name="schema", help="Entity-type schema operations.")
app.add_typer(objects_app, name="objects", help="Entity object operations.")
