"""Logging configuration setup.

Configures the root logger once per process using:
- dictConfig for formatters and filters
- QueueHandler + QueueListener so console/file I/O never blocks the
  coroutine issuing tree statements
- ContextInjectingFilter for automatic model/scope propagation
- JSONL or plain-text output
"""

from __future__ import annotations

import atexit
import logging
import logging.config
from logging.handlers import QueueHandler, QueueListener, RotatingFileHandler
from pathlib import Path
from queue import Queue
from typing import TYPE_CHECKING, Any

from nestedtree.infra.logging.context import ContextInjectingFilter
from nestedtree.infra.logging.formatters import JSONFormatter

if TYPE_CHECKING:
    from nestedtree.core.settings.logs import LoggingSettings

_log_queue: Queue[logging.LogRecord] | None = None
_listener: QueueListener | None = None
_queue_handler: QueueHandler | None = None
_LOGGING_INITIALIZED = False

logger = logging.getLogger(__name__)

TEXT_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
JSON_KEYS = {"level": "levelname", "logger": "name", "message": "message"}
STATIC_FIELDS = {"service": "nestedtree"}


def shutdown() -> None:
    """Stop the QueueListener and detach the QueueHandler.

    Registered with atexit on first configuration; safe to call twice.
    """
    global _log_queue, _listener, _queue_handler, _LOGGING_INITIALIZED

    if _listener is not None:
        _listener.stop()
        _listener = None

    if _queue_handler is not None:
        logging.getLogger().removeHandler(_queue_handler)
        _queue_handler = None

    _log_queue = None
    _LOGGING_INITIALIZED = False


def setup_logging(
    log_settings: LoggingSettings | None = None,
    *,
    force: bool = False,
    **configure_kwargs: Any,
) -> None:
    """Ensure logging is configured once across entrypoints.

    Args:
        log_settings: Optional logging settings instance. If omitted, settings
            are loaded via get_logging_settings().
        force: Reconfigure logging even if it was already initialized.
        **configure_kwargs: Explicit overrides for configure_logging().
    """
    global _LOGGING_INITIALIZED

    if _LOGGING_INITIALIZED and not force:
        return

    settings_obj = log_settings
    if settings_obj is None:
        from nestedtree.core.settings import get_logging_settings

        settings_obj = get_logging_settings()

    log_config = {**settings_obj.to_logging_kwargs(), **configure_kwargs}
    configure_logging(**log_config)
    _LOGGING_INITIALIZED = True


def configure_logging(
    log_level: str = "INFO",
    file_path: str | Path | None = None,
    json_logs: bool = True,
    console_enabled: bool = True,
    include_context: bool = True,
    file_max_bytes: int = 10 * 1024 * 1024,
    file_backup_count: int = 5,
    **kwargs: Any,
) -> None:
    """Configure logging with dictConfig and the QueueHandler pattern.

    Args:
        log_level: Root logger level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file_path: Path to log file. None disables file logging.
        json_logs: Enable JSONL (JSON Lines) structured logging.
        console_enabled: Enable console/stderr logging.
        include_context: Enable ContextInjectingFilter for auto context.
        file_max_bytes: Maximum log file size before rotation.
        file_backup_count: Number of rotated log files to keep.
        **kwargs: Ignored extra settings.
    """
    global _log_queue, _listener, _queue_handler

    if kwargs:
        logger.debug("Unused logging kwargs supplied: %s", ", ".join(sorted(kwargs)))

    # Reconfiguring replaces the previous listener rather than stacking handlers
    shutdown()

    path = Path(file_path) if file_path else None
    if path:
        path.parent.mkdir(parents=True, exist_ok=True)

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "root": {"level": log_level.upper(), "handlers": []},
        }
    )

    handlers: list[logging.Handler] = []

    if console_enabled:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(_build_formatter(json_logs))
        handlers.append(console_handler)

    if path:
        file_handler = RotatingFileHandler(
            path,
            maxBytes=file_max_bytes,
            backupCount=file_backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(_build_formatter(json_logs))
        handlers.append(file_handler)

    _log_queue = Queue()
    if handlers:
        _listener = QueueListener(_log_queue, *handlers, respect_handler_level=True)
        _listener.start()
        atexit.register(shutdown)

    _queue_handler = QueueHandler(_log_queue)
    if include_context:
        # Handler filters run in the emitting task, before the record is queued
        _queue_handler.addFilter(ContextInjectingFilter())
    logging.getLogger().addHandler(_queue_handler)


def _build_formatter(json_logs: bool) -> logging.Formatter:
    if json_logs:
        return JSONFormatter(fmt_keys=JSON_KEYS, static=STATIC_FIELDS)
    return logging.Formatter(fmt=TEXT_FORMAT, datefmt=DATE_FORMAT)
