"""Context management for structured logging.

CLI commands bind the model and scope they work on to a contextvar so
every record emitted underneath (store statements, checker warnings,
rebuild summaries) carries them without explicit passing. Context is
async-safe: each task sees its own copy.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any

_log_context: ContextVar[dict[str, Any]] = ContextVar("log_context", default={})


def set_log_context(**kwargs: Any) -> None:
    """Add fields to the logging context of the current task.

    Example:
        ```python
        set_log_context(model="MenuItem", scope="menu_id=1")
        logger.info("Tree rebuilt")  # record carries model and scope
        ```
    """
    current = _log_context.get().copy()
    current.update(kwargs)
    _log_context.set(current)


def get_log_context() -> dict[str, Any]:
    """Get a copy of the current logging context."""
    return _log_context.get().copy()


def clear_log_context() -> None:
    """Clear all logging context for the current task."""
    _log_context.set({})


@contextmanager
def log_context(**kwargs: Any) -> Iterator[None]:
    """Bind fields for the duration of a block, restoring the previous context.

    Example:
        ```python
        with log_context(operation="nestedset.fix_tree", scope=str(scope)):
            await rebuilder.fix_tree(session)
        ```
    """
    token = _log_context.set({**_log_context.get(), **kwargs})
    try:
        yield
    finally:
        _log_context.reset(token)


class ContextInjectingFilter(logging.Filter):
    """Logging filter that copies the current context onto each LogRecord.

    Fields already present on the record (explicit ``extra``) win over
    context fields.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _log_context.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


__all__ = [
    "ContextInjectingFilter",
    "clear_log_context",
    "get_log_context",
    "log_context",
    "set_log_context",
]
