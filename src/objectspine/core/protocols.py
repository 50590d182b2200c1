"""
Canonical protocol definitions for object-spine.

Every module that needs a database connection depends on the shape
defined here, never on ``sqlite3`` or ``psycopg2`` directly.

Architecture:
    ::

        protocols.py
        └── Connection   sync DB protocol (sqlite3, psycopg2, SA session bridge)

    Implementations:
        SqliteConnection, PostgresConnection, SessionConnection
        (all in objectspine.core.connection)

Guardrails:
    ❌ DON'T: Duplicate Connection(Protocol) in other modules
    ✅ DO: Import from objectspine.core.protocols

    ❌ DON'T: Add implementation logic to protocol classes
    ✅ DO: Keep protocols pure contracts, adapters live in connection.py

Tags:
    protocols, connection, structural-typing, objectspine
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Connection(Protocol):
    """
    Minimal synchronous database connection contract.

    ``execute`` returns a cursor-like object whose ``fetchall`` yields rows
    that ``dict(row)`` accepts, or that exposes a DB-API ``description``.

    Examples:
        >>> from objectspine.core.connection import SqliteConnection
        >>> conn = SqliteConnection(":memory:")
        >>> isinstance(conn, Connection)
        True
    """

    def execute(self, sql: str, params: tuple = ()) -> Any:
        """Execute a single SQL statement."""
        ...

    def executemany(self, sql: str, params: list[tuple]) -> Any:
        """Execute a statement once per parameter tuple."""
        ...

    def fetchone(self) -> Any:
        """Fetch the next row of the last result."""
        ...

    def fetchall(self) -> list:
        """Fetch all remaining rows of the last result."""
        ...

    def commit(self) -> None:
        """Commit the current transaction."""
        ...

    def rollback(self) -> None:
        """Roll back the current transaction."""
        ...


__all__ = ["Connection"]
