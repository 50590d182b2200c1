"""SQL dialect abstraction for the entity-object engine.

Provides a ``Dialect`` protocol and the two supported backends. The query
builder and repository ask the dialect for every fragment whose syntax
differs between SQLite and PostgreSQL/PostGIS: placeholders, array and
JSON parameter expressions, geometry constructors and projections,
relation aggregation and column types for DDL.

Manifesto:
    The engine generates SQL from schemas defined at runtime. Backend
    differences must live in one place so that the builder's output is the
    same statement shape on every backend, differing only in fragments.

    - **One interface:** Dialect protocol for all backend-specific SQL
    - **Zero coupling:** Builders never import database drivers
    - **Fixed fragments:** Only structurally fixed expressions are spliced
      into SQL, values are always bound

Architecture::

    ┌──────────────────────────────────────────────────────────────────┐
    │                     Dialect Abstraction Layer                     │
    └──────────────────────────────────────────────────────────────────┘

    Builders:
    ┌────────────────────────────────────────────────────────────────┐
    │  params.append(d.encode_array(values))                         │
    │  sql = f"UPDATE t SET tags = {d.array_param('text')} ..."      │
    └────────────────────────────────────────────────────────────────┘
                              │
                              ▼
    ┌──────────────────────────┐   ┌─────────────────────────────────┐
    │ SQLite                   │   │ PostgreSQL + PostGIS            │
    │ ?                        │   │ %s                              │
    │ arrays: JSON text        │   │ arrays: CAST(%s AS text[])      │
    │ json_group_array(...)    │   │ json_agg(json_build_object(...))│
    │ geometry: plain text     │   │ ST_SetSRID(ST_GeomFromText(..)) │
    └──────────────────────────┘   └─────────────────────────────────┘

Examples:
    >>> from objectspine.core.dialect import get_dialect
    >>> d = get_dialect("postgresql")
    >>> d.placeholders(2)
    '%s, %s'
    >>> d.geometry_param("WKT", 4326)
    'ST_SetSRID(ST_GeomFromText(%s), 4326)'

Guardrails:
    ❌ DON'T: Write backend-specific SQL in the builder or repository
    ✅ DO: Add a Dialect method and implement it for both backends

    ❌ DON'T: Interpolate values into fragments
    ✅ DO: Interpolate only identifiers and integer SRIDs

Tags:
    dialect, sql, postgis, sqlite, portability, objectspine

Doc-Types:
    - API Reference
    - Database Portability Guide
"""

from __future__ import annotations

import json
from datetime import date, datetime, time
from typing import Any, Protocol, runtime_checkable

from objectspine.core.errors import GeometryError, UnsupportedFieldTypeError


@runtime_checkable
class Dialect(Protocol):
    """SQL dialect contract.

    Every method returns a **SQL fragment** (string) valid for the target
    database, or an encoded parameter value for it.
    """

    @property
    def name(self) -> str:
        """Human-readable dialect name (e.g. ``'sqlite'``)."""
        ...

    @property
    def supports_spatial(self) -> bool:
        """Whether CRS transforms and spatial aggregates are available."""
        ...

    # -- Placeholders ------------------------------------------------------

    def placeholder(self, index: int) -> str:
        """Single positional placeholder (0-based index)."""
        ...

    def placeholders(self, count: int) -> str:
        """Comma-separated placeholder list."""
        ...

    # -- Parameter expressions ---------------------------------------------

    def array_param(self, element_type: str) -> str:
        """Placeholder expression for a multi-valued column."""
        ...

    def json_param(self) -> str:
        """Placeholder expression for a JSON document column."""
        ...

    def geometry_param(self, geometry_format: str, srid: int) -> str:
        """Placeholder expression constructing a geometry in *srid*."""
        ...

    def encode_array(self, values: list[Any]) -> Any:
        """Driver value for a multi-valued column."""
        ...

    def encode_temporal(self, value: date | time | datetime) -> Any:
        """Driver value for a date/time/date-time column."""
        ...

    # -- Expressions -------------------------------------------------------

    def geometry_select(self, column: str, stored_srid: int, target_srid: int | None) -> str:
        """Projection of a geometry column as text in *target_srid*."""
        ...

    def array_contains(self, column: str, placeholder: str) -> str:
        """Predicate: multi-valued *column* contains the bound value."""
        ...

    def ilike(self, column: str, placeholder: str) -> str:
        """Case-insensitive LIKE predicate."""
        ...

    def json_agg_object(self, pairs: list[tuple[str, str]], order_by: str) -> str:
        """Aggregate rows into a JSON array of objects."""
        ...

    def centroid_query(self, table: str, column: str) -> str:
        """Single-row centroid query (params: srid, id)."""
        ...

    def extent_query(self, table: str, column: str) -> str:
        """Single-row extent query (params: srid, id)."""
        ...

    # -- DDL ---------------------------------------------------------------

    def id_column(self) -> str:
        """Auto-increment integer primary key definition."""
        ...

    def column_type(self, field_type: str, *, multiple: bool = False, srid: int | None = None) -> str:
        """Column type for a field type."""
        ...

    def table_exists_query(self) -> str:
        """Query returning a row if the named table exists (param: name)."""
        ...

    def column_exists_query(self) -> str:
        """Query returning a row if the named column exists (params: table, column)."""
        ...


# Scalar SQL types per field type, shared by DDL and array casts.
_SQLITE_TYPES = {
    "BOOLEAN": "INTEGER",
    "NUMERIC": "REAL",
    "STRING": "TEXT",
    "DATE": "TEXT",
    "TIME": "TEXT",
    "DATE_TIME": "TEXT",
    "GEOMETRY": "TEXT",
    "ATTACHMENT": "TEXT",
    "RELATION": "INTEGER",
}

_POSTGRES_TYPES = {
    "BOOLEAN": "boolean",
    "NUMERIC": "double precision",
    "STRING": "text",
    "DATE": "date",
    "TIME": "time",
    "DATE_TIME": "timestamp",
    "ATTACHMENT": "jsonb",
    "RELATION": "integer",
}


def _lookup_type(types: dict[str, str], field_type: str) -> str:
    try:
        return types[str(getattr(field_type, "value", field_type))]
    except KeyError as e:
        raise UnsupportedFieldTypeError(f"No column type for field type {field_type}") from e


# =========================================================================
# SQLite
# =========================================================================


class SQLiteDialect:
    """SQLite dialect: JSON text arrays, geometry stored as plain text."""

    @property
    def name(self) -> str:
        return "sqlite"

    @property
    def supports_spatial(self) -> bool:
        return False

    def placeholder(self, index: int) -> str:  # noqa: ARG002
        return "?"

    def placeholders(self, count: int) -> str:
        return ", ".join("?" for _ in range(count))

    def array_param(self, element_type: str) -> str:  # noqa: ARG002
        return "?"

    def json_param(self) -> str:
        return "?"

    def geometry_param(self, geometry_format: str, srid: int) -> str:  # noqa: ARG002
        return "?"

    def encode_array(self, values: list[Any]) -> Any:
        return json.dumps(values)

    def encode_temporal(self, value: date | time | datetime) -> Any:
        return value.isoformat()

    def geometry_select(self, column: str, stored_srid: int, target_srid: int | None) -> str:
        if target_srid is not None and int(target_srid) != int(stored_srid):
            raise GeometryError(
                f"CRS transform {stored_srid} -> {target_srid} requires PostGIS"
            )
        return column

    def array_contains(self, column: str, placeholder: str) -> str:
        return f"EXISTS (SELECT 1 FROM json_each({column}) WHERE json_each.value = {placeholder})"

    def ilike(self, column: str, placeholder: str) -> str:
        return f"LOWER({column}) LIKE LOWER({placeholder})"

    def json_agg_object(self, pairs: list[tuple[str, str]], order_by: str) -> str:  # noqa: ARG002
        body = ", ".join(f"'{key}', {expr}" for key, expr in pairs)
        return f"json_group_array(json_object({body}))"

    def centroid_query(self, table: str, column: str) -> str:
        raise GeometryError("Centroid queries require PostGIS")

    def extent_query(self, table: str, column: str) -> str:
        raise GeometryError("Extent queries require PostGIS")

    def id_column(self) -> str:
        return "INTEGER PRIMARY KEY AUTOINCREMENT"

    def column_type(self, field_type: str, *, multiple: bool = False, srid: int | None = None) -> str:  # noqa: ARG002
        if multiple:
            return "TEXT"
        return _lookup_type(_SQLITE_TYPES, field_type)

    def table_exists_query(self) -> str:
        return "SELECT name FROM sqlite_master WHERE type='table' AND name=?"

    def column_exists_query(self) -> str:
        return "SELECT name FROM pragma_table_info(?) WHERE name = ?"


# =========================================================================
# PostgreSQL + PostGIS
# =========================================================================


class PostgreSQLDialect:
    """PostgreSQL dialect with PostGIS geometry support."""

    @property
    def name(self) -> str:
        return "postgresql"

    @property
    def supports_spatial(self) -> bool:
        return True

    def placeholder(self, index: int) -> str:  # noqa: ARG002
        return "%s"

    def placeholders(self, count: int) -> str:
        return ", ".join("%s" for _ in range(count))

    def array_param(self, element_type: str) -> str:
        return f"CAST(%s AS {_lookup_type(_POSTGRES_TYPES, element_type)}[])"

    def json_param(self) -> str:
        return "CAST(%s AS jsonb)"

    def geometry_param(self, geometry_format: str, srid: int) -> str:
        fmt = str(getattr(geometry_format, "value", geometry_format))
        constructor = "ST_GeomFromGeoJSON" if fmt == "GEOJSON" else "ST_GeomFromText"
        return f"ST_SetSRID({constructor}(%s), {int(srid)})"

    def encode_array(self, values: list[Any]) -> Any:
        return list(values)

    def encode_temporal(self, value: date | time | datetime) -> Any:
        return value

    def geometry_select(self, column: str, stored_srid: int, target_srid: int | None) -> str:
        if target_srid is not None and int(target_srid) != int(stored_srid):
            return f"ST_AsText(ST_Transform({column}, {int(target_srid)}))"
        return f"ST_AsText({column})"

    def array_contains(self, column: str, placeholder: str) -> str:
        return f"{placeholder} = ANY({column})"

    def ilike(self, column: str, placeholder: str) -> str:
        return f"{column} ILIKE {placeholder}"

    def json_agg_object(self, pairs: list[tuple[str, str]], order_by: str) -> str:
        body = ", ".join(f"'{key}', {expr}" for key, expr in pairs)
        return f"json_agg(json_build_object({body}) ORDER BY {order_by})"

    def centroid_query(self, table: str, column: str) -> str:
        return (
            f"SELECT ST_AsText(ST_Centroid(ST_Transform({column}, %s))) AS cnt "
            f"FROM {table} WHERE id = %s"
        )

    def extent_query(self, table: str, column: str) -> str:
        return (
            f"SELECT CAST(ST_Extent(ST_Transform({column}, %s)) AS text) AS ext "
            f"FROM {table} WHERE id = %s"
        )

    def id_column(self) -> str:
        return "SERIAL PRIMARY KEY"

    def column_type(self, field_type: str, *, multiple: bool = False, srid: int | None = None) -> str:
        key = str(getattr(field_type, "value", field_type))
        if key == "GEOMETRY":
            return f"geometry(Geometry, {int(srid or 4326)})"
        base = _lookup_type(_POSTGRES_TYPES, key)
        return f"{base}[]" if multiple else base

    def table_exists_query(self) -> str:
        return (
            "SELECT table_name FROM information_schema.tables "
            "WHERE table_schema = 'public' AND table_name = %s"
        )

    def column_exists_query(self) -> str:
        return (
            "SELECT column_name FROM information_schema.columns "
            "WHERE table_schema = 'public' AND table_name = %s AND column_name = %s"
        )


# =========================================================================
# Registry / Factory
# =========================================================================

_DIALECTS: dict[str, Dialect] = {
    "sqlite": SQLiteDialect(),
    "postgresql": PostgreSQLDialect(),
    "postgres": PostgreSQLDialect(),
}


def get_dialect(db_type: str) -> Dialect:
    """Get a dialect by database type name.

    Raises:
        ValueError: If ``db_type`` is not recognised.

    Example:
        >>> get_dialect("sqlite").placeholders(2)
        '?, ?'
    """
    key = db_type.lower()
    if key not in _DIALECTS:
        raise ValueError(
            f"Unknown dialect '{db_type}'. "
            f"Supported: {sorted(set(_DIALECTS) - {'postgres'})}"
        )
    return _DIALECTS[key]


def register_dialect(name: str, dialect: Dialect) -> None:
    """Register a custom dialect implementation (lower-cased key)."""
    _DIALECTS[name.lower()] = dialect


__all__ = [
    "Dialect",
    "SQLiteDialect",
    "PostgreSQLDialect",
    "get_dialect",
    "register_dialect",
]
