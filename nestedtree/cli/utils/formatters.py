"""Output formatting utilities for CLI commands."""

from typing import Any

import click


def success(message: str) -> None:
    """Print a success message in green."""
    click.secho(f"✓ {message}", fg="green")


def error(message: str) -> None:
    """Print an error message in red."""
    click.secho(f"✗ {message}", fg="red", err=True)


def warning(message: str) -> None:
    """Print a warning message in yellow."""
    click.secho(f"⚠ {message}", fg="yellow")


def info(message: str) -> None:
    """Print an info message in blue."""
    click.secho(f"ℹ {message}", fg="blue")


def header(message: str) -> None:
    """Print a header message in cyan bold."""
    click.secho(f"\n{message}", fg="cyan", bold=True)


def section(title: str) -> None:
    """Print a section divider."""
    click.secho(f"\n{'=' * 60}", fg="white", dim=True)
    click.secho(title, fg="white", bold=True)
    click.secho("=" * 60, fg="white", dim=True)


def counts(values: dict[str, int]) -> None:
    """Print named counters, highlighting non-zero ones in red."""
    width = max((len(name) for name in values), default=0)
    for name, value in values.items():
        click.echo(f"  {name.ljust(width)}  ", nl=False)
        click.secho(str(value), fg="red" if value else "green")


def tree_line(label: Any, depth: int, lft: int, rgt: int, *, deleted: bool = False) -> None:
    """Print one node of an indented tree listing."""
    bounds = click.style(f"[{lft}, {rgt}]", dim=True)
    text = f"{'  ' * depth}{label} {bounds}"
    if deleted:
        text += click.style(" (deleted)", fg="yellow")
    click.echo(text)
