"""Object Spine Core -- infrastructure shared by the model and the engine.

Architecture::

    Layer 1 -- Type System & Errors
        errors.py          Structured error hierarchy (ObjectSpineError, ...)
        logging.py         structlog configuration and context binding
        settings.py        pydantic-settings (OBJECTSPINE_*)
        context.py         Request user (contextvars)
        protocols.py       Connection protocol

    Layer 2 -- Database
        dialect.py         SQLite / PostgreSQL+PostGIS fragments
        connection.py      Connection factory and driver adapters
        repository.py      BaseRepository with dialect-aware helpers
"""

from objectspine.core.connection import ConnectionInfo, create_connection
from objectspine.core.dialect import Dialect, PostgreSQLDialect, SQLiteDialect, get_dialect
from objectspine.core.errors import ErrorCategory, ObjectSpineError
from objectspine.core.repository import BaseRepository

__all__ = [
    "BaseRepository",
    "ConnectionInfo",
    "Dialect",
    "ErrorCategory",
    "ObjectSpineError",
    "PostgreSQLDialect",
    "SQLiteDialect",
    "create_connection",
    "get_dialect",
]
