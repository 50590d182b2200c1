"""Request context: the user stamped into object metadata.

The manager never takes the acting user as an argument. Transport layers
wrap each request in :func:`request_user` and the engine reads it back with
:func:`current_user`.

Usage::

    with request_user("alice"):
        manager.create_object("asset", obj)   # metadata.create_user == "alice"
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

from objectspine.core.logging import LogContext

ANONYMOUS_USER = "anonymous"

_current_user: ContextVar[str | None] = ContextVar("objectspine_user", default=None)


def current_user() -> str:
    """Return the user bound to the current context (``anonymous`` if none)."""
    return _current_user.get() or ANONYMOUS_USER


@contextmanager
def request_user(user: str) -> Iterator[str]:
    """Bind *user* for the duration of the block, also in the log context."""
    token = _current_user.set(user)
    try:
        with LogContext(user=user):
            yield user
    finally:
        _current_user.reset(token)
