"""Main CLI entry point for nestedtree maintenance commands."""

import click

from nestedtree.cli.commands import tree
from nestedtree.infra.logging.config import setup_logging


@click.group()
@click.version_option(package_name="nestedtree", prog_name="nestedtree")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Nestedtree CLI - Maintenance commands for nested-set tree tables.

    \b
    Command Groups:
      tree       Check, repair, rebuild and print trees

    \b
    Quick Start:
      nestedtree tree init app.models:Category          # Create tables
      nestedtree tree check app.models:Category         # Count violations
      nestedtree tree fix app.models:Category           # Repair bounds
      nestedtree tree show app.models:MenuItem --scope menu_id=1
    """
    ctx.ensure_object(dict)


cli.add_command(tree.tree)


def main() -> None:
    """Entry point for CLI."""
    setup_logging()
    cli(obj={})


if __name__ == "__main__":
    main()
