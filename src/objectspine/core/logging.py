"""
Structured logging for object-spine.

Manifesto:
    The engine generates SQL at runtime from schemas nobody wrote by hand,
    so the statements it runs must be observable without flooding the
    log. Every module logs through structlog with snake_case event names
    and keyword fields; the request user and the entity type being
    mutated ride along as context variables.

Architecture:
    ::

        configure_logging(level="INFO", json_format=None)
              │
              ▼
        structlog processor chain:
          1. merge_contextvars      ← bind_context / LogContext / request_user
          2. add_log_level, add_logger_name
          3. TimeStamper (iso)
          4. compact_sql            ← one-line, length-capped ``sql`` field
          5. JSONRenderer (not a tty) / ConsoleRenderer (tty)
              │
              ▼
        stdlib logging → stderr   (stdout stays clean for CLI JSON)

Examples:
    >>> from objectspine.core.logging import configure_logging, get_logger
    >>> configure_logging(level="DEBUG")
    >>> logger = get_logger(__name__)
    >>> logger.debug("object_created", entity_type="asset", object_id=7)

Guardrails:
    ❌ print("inserted", obj_id)
    ✅ logger.info("object_created", object_id=obj_id)

    ❌ logger.info(f"running {sql}")
    ✅ logger.debug("sql_statement", sql=sql, params=params)

Tags:
    logging, structlog, observability, objectspine
"""

from __future__ import annotations

import logging
import re
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

SQL_LOG_LIMIT = 2000

_WHITESPACE = re.compile(r"\s+")
_MISSING = object()


def compact_sql(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Collapse whitespace in a ``sql`` field and cap its length."""
    sql = event_dict.get("sql")
    if isinstance(sql, str):
        sql = _WHITESPACE.sub(" ", sql).strip()
        if len(sql) > SQL_LOG_LIMIT:
            sql = f"{sql[:SQL_LOG_LIMIT]}... ({len(sql)} chars)"
        event_dict["sql"] = sql
    return event_dict


def configure_logging(level: str = "INFO", json_format: bool | None = None) -> None:
    """Configure structlog and route it through stdlib logging to stderr.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR)
        json_format: True for JSON, False for console, None picks JSON when
            stderr is not a terminal
    """
    numeric_level = getattr(logging, level.upper())
    if json_format is None:
        json_format = not sys.stderr.isatty()

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        compact_sql,
    ]
    if json_format:
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=numeric_level, force=True)


def get_logger(name: str | None = None) -> Any:
    """Get a structured logger (usually ``get_logger(__name__)``)."""
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Bind fields onto every subsequent log event in this context."""
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


class LogContext:
    """Scope log fields to a block, restoring any values they shadowed.

    Example:
        with LogContext(entity_type="asset", object_id=7):
            logger.info("object_deleted")
    """

    def __init__(self, **kwargs: Any):
        self._context = kwargs
        self._previous: dict[str, Any] = {}

    def __enter__(self) -> LogContext:
        current = structlog.contextvars.get_contextvars()
        self._previous = {key: current.get(key, _MISSING) for key in self._context}
        bind_context(**self._context)
        return self

    def __exit__(self, *args: Any) -> None:
        restore = {k: v for k, v in self._previous.items() if v is not _MISSING}
        unbind_context(*(k for k, v in self._previous.items() if v is _MISSING))
        if restore:
            bind_context(**restore)


__all__ = [
    "SQL_LOG_LIMIT",
    "compact_sql",
    "configure_logging",
    "get_logger",
    "bind_context",
    "unbind_context",
    "clear_context",
    "LogContext",
]
