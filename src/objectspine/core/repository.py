"""Base repository with dialect-aware database access.

Provides :class:`BaseRepository`, which pairs a
:class:`~objectspine.core.protocols.Connection` with a
:class:`~objectspine.core.dialect.Dialect` so that the entity-object
repository writes portable SQL without referencing any driver.

Architecture::

    ┌────────────────────────────────────────────────────────────────────┐
    │                       BaseRepository                               │
    │                                                                    │
    │   conn: Connection        ← protocol from objectspine.core         │
    │   dialect: Dialect        ← SQLite or PostgreSQL/PostGIS           │
    │                                                                    │
    │   execute(sql, params)     → cursor                                │
    │   query(sql, params)       → list[dict]                            │
    │   query_one(sql, params)   → dict | None                           │
    │   transaction()            → commit on success, rollback on error  │
    └────────────────────────────────────────────────────────────────────┘

Every statement is logged at DEBUG as ``sql_statement``. Driver exceptions
are re-raised as :class:`~objectspine.core.errors.QueryError` with the
original exception chained.

Tags:
    repository, database, abstraction, portability, transactions
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from objectspine.core.dialect import Dialect, SQLiteDialect
from objectspine.core.errors import ObjectSpineError, QueryError
from objectspine.core.logging import get_logger
from objectspine.core.protocols import Connection

logger = get_logger(__name__)


class BaseRepository:
    """Dialect-aware base class for data-access repositories.

    Parameters:
        conn: Any object satisfying the :class:`Connection` protocol.
        dialect: SQL dialect to use. Defaults to :class:`SQLiteDialect`.
    """

    def __init__(self, conn: Connection, dialect: Dialect | None = None) -> None:
        self.conn = conn
        self.dialect: Dialect = dialect or SQLiteDialect()
        self._tx_depth = 0

    @classmethod
    def from_session(
        cls,
        session: Any,
        dialect: Dialect | None = None,
        **kwargs: Any,
    ) -> BaseRepository:
        """Create a repository backed by a SQLAlchemy ORM session.

        Example::

            with Session(engine) as session:
                repo = EntityObjectRepository.from_session(session)
                with repo.transaction():
                    repo.save(asset_type, obj)
        """
        from objectspine.core.connection import SessionConnection

        bridge = SessionConnection(session, dialect)
        return cls(bridge, dialect, **kwargs)

    # -- Query helpers -----------------------------------------------------

    def execute(self, sql: str, params: tuple = ()) -> Any:
        """Execute a statement and return the raw cursor/result."""
        logger.debug("sql_statement", sql=sql, params=params)
        try:
            return self.conn.execute(sql, tuple(params))
        except ObjectSpineError:
            raise
        except Exception as e:
            raise QueryError(f"Statement failed: {e}", cause=e) from e

    def execute_many(self, sql: str, params: list[tuple]) -> Any:
        """Execute a statement with multiple parameter sets."""
        logger.debug("sql_statement", sql=sql, batch=len(params))
        try:
            return self.conn.executemany(sql, params)
        except ObjectSpineError:
            raise
        except Exception as e:
            raise QueryError(f"Batch statement failed: {e}", cause=e) from e

    def query(self, sql: str, params: tuple = ()) -> list[dict[str, Any]]:
        """Execute a SELECT and return rows as dicts.

        Rows that are plain tuples are keyed with the cursor ``description``;
        mapping rows (``sqlite3.Row``, ``RealDictRow``) are converted directly.
        """
        cursor = self.execute(sql, params)
        rows = cursor.fetchall()
        if not rows:
            return []

        if isinstance(rows[0], tuple) and getattr(cursor, "description", None):
            columns = [desc[0] for desc in cursor.description]
            return [dict(zip(columns, row, strict=False)) for row in rows]

        return [dict(row) for row in rows]

    def query_one(self, sql: str, params: tuple = ()) -> dict[str, Any] | None:
        """Execute a SELECT and return the first row as a dict (or None)."""
        results = self.query(sql, params)
        return results[0] if results else None

    def query_scalar(self, sql: str, params: tuple = ()) -> Any:
        """Execute a SELECT and return the first column of the first row."""
        row = self.query_one(sql, params)
        if row is None:
            return None
        return next(iter(row.values()))

    # -- Transactions ------------------------------------------------------

    def commit(self) -> None:
        """Commit the current transaction."""
        self.conn.commit()

    def rollback(self) -> None:
        """Roll back the current transaction."""
        self.conn.rollback()

    @contextmanager
    def transaction(self) -> Iterator[BaseRepository]:
        """Run a block atomically.

        Commits when the outermost block exits normally, rolls back and
        re-raises on any exception. Nested blocks join the outer one.
        """
        self._tx_depth += 1
        try:
            yield self
        except BaseException:
            self._tx_depth -= 1
            if self._tx_depth == 0:
                self.rollback()
                logger.debug("transaction_rolled_back")
            raise
        else:
            self._tx_depth -= 1
            if self._tx_depth == 0:
                self.commit()


__all__ = [
    "BaseRepository",
]
