"""Logging infrastructure.

Provides structured logging with:
- JSONL or text output through a QueueHandler + QueueListener pair
- Automatic context injection (model, scope, operation) via contextvars
- Lazy evaluation for debug messages describing bound arithmetic

Basic usage:
    import logging

    from nestedtree.infra.logging import get_lazy_logger, log_context

    logger = logging.getLogger(__name__)
    lazy_logger = get_lazy_logger(__name__)

    with log_context(model="MenuItem", scope="menu_id=1"):
        lazy_logger.debug(lambda: f"gap at {cut}: {height:+d}")
        logger.info("Tree fixed")
"""

from nestedtree.infra.logging.config import configure_logging, setup_logging, shutdown
from nestedtree.infra.logging.context import (
    ContextInjectingFilter,
    clear_log_context,
    get_log_context,
    log_context,
    set_log_context,
)
from nestedtree.infra.logging.formatters import JSONFormatter
from nestedtree.infra.logging.lazy import LazyLoggerAdapter, get_lazy_logger

__all__ = [
    "ContextInjectingFilter",
    "JSONFormatter",
    "LazyLoggerAdapter",
    "clear_log_context",
    "configure_logging",
    "get_lazy_logger",
    "get_log_context",
    "log_context",
    "set_log_context",
    "setup_logging",
    "shutdown",
]
