"""Connection factory and driver adapters.

This is the **single entry point** for creating database connections.
Every caller should use ``create_connection()`` rather than importing
``sqlite3`` or ``psycopg2`` directly.

Supported URL schemes
---------------------
==================  ==========================================  ============
Scheme              Example                                     Backend
==================  ==========================================  ============
``memory``          ``memory`` or ``:memory:`` or ``None``       SQLite RAM
``sqlite``          ``sqlite:///path/to/file.db``                SQLite file
``(file path)``     ``./data/objects.db``                        SQLite file
``postgresql``      ``postgresql://user:pw@host:port/db``        PostGIS
``postgres``        ``postgres://user:pw@host:port/db``          PostGIS
==================  ==========================================  ============

Adapters
--------
* ``SqliteConnection``   -- wraps ``sqlite3`` with ``sqlite3.Row`` rows.
* ``PostgresConnection`` -- wraps ``psycopg2`` with ``RealDictCursor`` rows.
* ``SessionConnection``  -- wraps a SQLAlchemy ``Session`` so an ORM unit of
  work and the entity-object repository share one transaction.

Usage
-----
::

    from objectspine.core.connection import create_connection

    conn, info = create_connection("objects.db")
    repo = EntityObjectRepository(conn, info.dialect)
"""

from __future__ import annotations

import sqlite3
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from sqlalchemy import text
from sqlalchemy.orm import Session

from objectspine.core.dialect import Dialect, get_dialect
from objectspine.core.errors import DatabaseConnectionError
from objectspine.core.logging import get_logger

logger = get_logger(__name__)


# ── ConnectionInfo ───────────────────────────────────────────────────────


@dataclass(frozen=True)
class ConnectionInfo:
    """Metadata about a database connection."""

    backend: str
    """Backend identifier: ``"sqlite"`` or ``"postgresql"``."""

    persistent: bool
    """Whether data survives process exit."""

    url: str
    """The original URL or path used to create the connection."""

    resolved_path: str | None = None
    """For file-based SQLite, the resolved absolute path."""

    def __repr__(self) -> str:
        parts = [f"backend={self.backend!r}", f"persistent={self.persistent}"]
        if self.resolved_path:
            parts.append(f"path={self.resolved_path!r}")
        else:
            parts.append(f"url={self.url!r}")
        return f"ConnectionInfo({', '.join(parts)})"

    @property
    def is_sqlite(self) -> bool:
        return self.backend == "sqlite"

    @property
    def is_postgres(self) -> bool:
        return self.backend == "postgresql"

    @property
    def dialect(self) -> Dialect:
        return get_dialect(self.backend)


# ── Adapters ─────────────────────────────────────────────────────────────


class SqliteConnection:
    """Adapter: ``sqlite3.Connection`` → ``Connection`` protocol.

    Maintains a single cursor so that ``execute`` / ``fetchone`` /
    ``fetchall`` operate on the same result set.
    """

    def __init__(self, path: str = ":memory:", *, row_factory: Any = sqlite3.Row) -> None:
        self._conn = sqlite3.connect(path, check_same_thread=False)
        self._conn.row_factory = row_factory
        self._cursor = self._conn.cursor()

    def execute(self, sql: str, params: tuple = ()) -> Any:
        self._cursor.execute(sql, params)
        return self._cursor

    def executemany(self, sql: str, params: list[tuple]) -> Any:
        self._cursor.executemany(sql, params)
        return self._cursor

    def fetchone(self) -> Any:
        return self._cursor.fetchone()

    def fetchall(self) -> list:
        return self._cursor.fetchall()

    def commit(self) -> None:
        self._conn.commit()

    def rollback(self) -> None:
        self._conn.rollback()

    def close(self) -> None:
        self._conn.close()

    @property
    def raw(self) -> sqlite3.Connection:
        """Access the underlying ``sqlite3.Connection`` (e.g. for pragmas)."""
        return self._conn

    def __repr__(self) -> str:
        return f"SqliteConnection({self._conn!r})"


class PostgresConnection:
    """Adapter: ``psycopg2`` connection → ``Connection`` protocol.

    Rows are ``RealDictRow`` instances; ``json``/``jsonb`` aggregates and
    array columns arrive already decoded by psycopg2.
    """

    def __init__(self, url: str) -> None:
        import psycopg2
        from psycopg2.extras import RealDictCursor

        try:
            self._conn = psycopg2.connect(url, cursor_factory=RealDictCursor)
        except psycopg2.OperationalError as e:
            raise DatabaseConnectionError(f"Cannot connect to PostgreSQL: {e}", cause=e) from e
        self._cursor = self._conn.cursor()

    def execute(self, sql: str, params: tuple = ()) -> Any:
        self._cursor.execute(sql, params)
        return self._cursor

    def executemany(self, sql: str, params: list[tuple]) -> Any:
        self._cursor.executemany(sql, params)
        return self._cursor

    def fetchone(self) -> Any:
        return self._cursor.fetchone()

    def fetchall(self) -> list:
        return self._cursor.fetchall()

    def commit(self) -> None:
        self._conn.commit()

    def rollback(self) -> None:
        self._conn.rollback()

    def close(self) -> None:
        self._conn.close()


class SessionConnection:
    """Adapter that makes a SQLAlchemy ``Session`` look like ``Connection``.

    Positional placeholders of the given *dialect* are rewritten to
    ``:p0, :p1, ...`` for ``text()``. Rows are returned as plain dicts.
    """

    def __init__(self, session: Session, dialect: Dialect | None = None) -> None:
        self._session = session
        self._token = (dialect or get_dialect("sqlite")).placeholder(0)
        self._last_result: Any = None

    def _rewrite(self, sql: str) -> str:
        parts = sql.split(self._token)
        rewritten = [parts[0]]
        for idx, part in enumerate(parts[1:]):
            rewritten.append(f":p{idx}")
            rewritten.append(part)
        return "".join(rewritten)

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> SessionConnection:
        if params:
            mapping = {f"p{i}": v for i, v in enumerate(params)}
            self._last_result = self._session.execute(text(self._rewrite(sql)), mapping)
        else:
            self._last_result = self._session.execute(text(sql))
        return self

    def executemany(self, sql: str, params: Sequence[Sequence[Any]]) -> SessionConnection:
        for row in params:
            self.execute(sql, row)
        return self

    def fetchone(self) -> dict[str, Any] | None:
        if self._last_result is None or not self._last_result.returns_rows:
            return None
        row = self._last_result.mappings().fetchone()
        return dict(row) if row is not None else None

    def fetchall(self) -> list[dict[str, Any]]:
        if self._last_result is None or not self._last_result.returns_rows:
            return []
        return [dict(r) for r in self._last_result.mappings().fetchall()]

    def commit(self) -> None:
        self._session.commit()

    def rollback(self) -> None:
        self._session.rollback()

    @property
    def description(self) -> list[tuple[str, ...]] | None:
        """DB-API 2.0 compatible description from the last result."""
        if self._last_result is None or not self._last_result.returns_rows:
            return None
        return [(k, None, None, None, None, None, None) for k in self._last_result.keys()]

    @property
    def session(self) -> Session:
        return self._session


# ── URL parsing ──────────────────────────────────────────────────────────


def _parse_url(db: str | None) -> tuple[str, str]:
    """Parse a database URL into ``(scheme, target)``.

    ``scheme`` is one of ``"memory"``, ``"sqlite"``, ``"postgresql"``, ``"file"``.
    """
    if db is None or db in ("", "memory", ":memory:"):
        return "memory", ":memory:"

    for prefix in ("sqlite:///", "sqlite://"):
        if db.startswith(prefix):
            path = db[len(prefix):]
            if not path or path == ":memory:":
                return "memory", ":memory:"
            return "sqlite", path

    if db.startswith(("postgresql://", "postgres://")):
        return "postgresql", db

    if db.startswith(("postgresql+", "postgres+")):
        base = db.split("://", 1)
        scheme = base[0].split("+")[0]
        return "postgresql", f"{scheme}://{base[1]}" if len(base) > 1 else db

    return "file", db


# ── Main factory ─────────────────────────────────────────────────────────


def create_connection(db: str | None = None) -> tuple[Any, ConnectionInfo]:
    """Create a database connection from a URL, path, or keyword.

    Returns
    -------
    tuple[Connection, ConnectionInfo]
        The connection and metadata about it (including its dialect).

    Raises
    ------
    DatabaseConnectionError
        If a PostgreSQL server cannot be reached.
    """
    scheme, target = _parse_url(db)

    if scheme == "memory":
        conn: Any = SqliteConnection(":memory:")
        info = ConnectionInfo(backend="sqlite", persistent=False, url=":memory:")
    elif scheme in ("sqlite", "file"):
        path = Path(target)
        path.parent.mkdir(parents=True, exist_ok=True)
        resolved = str(path.resolve())
        conn = SqliteConnection(resolved)
        info = ConnectionInfo(
            backend="sqlite",
            persistent=True,
            url=target,
            resolved_path=resolved,
        )
    else:
        conn = PostgresConnection(target)
        info = ConnectionInfo(backend="postgresql", persistent=True, url=target)

    logger.debug("connection_opened", backend=info.backend, persistent=info.persistent)
    return conn, info


__all__ = [
    "ConnectionInfo",
    "SqliteConnection",
    "PostgresConnection",
    "SessionConnection",
    "create_connection",
]
