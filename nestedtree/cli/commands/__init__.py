"""CLI command modules."""

from nestedtree.cli.commands import tree

__all__ = ["tree"]
