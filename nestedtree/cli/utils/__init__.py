"""CLI utilities for running async operations and formatting output."""

from nestedtree.cli.utils.async_runner import coro
from nestedtree.cli.utils.formatters import (
    counts,
    error,
    header,
    info,
    section,
    success,
    tree_line,
    warning,
)
from nestedtree.cli.utils.models import load_model, parse_scope

__all__ = [
    "coro",
    "counts",
    "error",
    "header",
    "info",
    "load_model",
    "parse_scope",
    "section",
    "success",
    "tree_line",
    "warning",
]
