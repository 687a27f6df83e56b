"""Tree maintenance commands.

Every command takes the model as ``package.module:ClassName`` and, for
scoped models, one ``--scope column=value`` per scope column. The database
comes from ``DatabaseSettings`` (``DB_URL``).

Example:bash
    # Report invariant violations (exit code 1 when broken)
    nestedtree tree check app.models:MenuItem --scope menu_id=1

    # Recompute bounds from parent pointers
    nestedtree tree fix app.models:MenuItem --scope menu_id=1

    # Replace a tree from a nested YAML/JSON description
    nestedtree tree rebuild app.models:Category categories.yaml --delete

    # Print the tree
    nestedtree tree show app.models:Category
"""

import json
import sys
from pathlib import Path
from typing import Any

import click
import yaml

from nestedtree.cli.utils import (
    coro,
    counts,
    error,
    header,
    info,
    load_model,
    parse_scope,
    section,
    success,
    tree_line,
    warning,
)
from nestedtree.core.database import RepositoryError, Scope, TreeQueries
from nestedtree.core.database.base import uses_soft_delete
from nestedtree.infra.logging import set_log_context

scope_option = click.option(
    "--scope",
    "scope_pairs",
    multiple=True,
    metavar="COLUMN=VALUE",
    help="Scope column value (repeat for each scope column)",
)
root_option = click.option(
    "--root",
    "root_id",
    type=int,
    default=None,
    help="Primary key of the node whose subtree to process",
)


@click.group(name="tree")
def tree() -> None:
    """Nested-set tree maintenance commands."""


# =============================================================================
# Schema
# =============================================================================


@tree.command()
@click.argument("model_ref", metavar="MODEL")
@coro
async def init(model_ref: str) -> None:
    """Create the model's tables if they do not exist."""
    from nestedtree.infra.database import init_database

    model = load_model(model_ref)
    try:
        await init_database(model.metadata)
    except Exception as e:
        error(f"Failed to initialize database: {e}")
        sys.exit(1)
    success(f"Tables for {model.__name__} are ready")


# =============================================================================
# Consistency
# =============================================================================


@tree.command()
@click.argument("model_ref", metavar="MODEL")
@scope_option
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format",
)
@coro
async def check(model_ref: str, scope_pairs: tuple[str, ...], output_format: str) -> None:
    """Count nested-set invariant violations."""
    from nestedtree.infra.database import get_async_session

    model = load_model(model_ref)
    scope = parse_scope(model, scope_pairs)
    set_log_context(model=model.__name__, scope=str(Scope.for_model(model, **scope)))

    async with get_async_session() as session:
        errors = await model.count_errors(session, **scope)

    if output_format == "json":
        payload = {"model": model.__name__, "scope": scope, **errors.as_dict(), "total": errors.total}
        click.echo(json.dumps(payload, indent=2, default=str))
    else:
        header(f"{model.__name__} [{Scope.for_model(model, **scope)}]")
        counts(errors.as_dict())
        if errors.is_broken:
            warning(f"Tree is broken: {errors.total} violation(s)")
        else:
            success("Tree is consistent")

    if errors.is_broken:
        sys.exit(1)


@tree.command()
@click.argument("model_ref", metavar="MODEL")
@scope_option
@root_option
@coro
async def fix(model_ref: str, scope_pairs: tuple[str, ...], root_id: int | None) -> None:
    """Recompute bounds from parent pointers."""
    from nestedtree.infra.database import get_async_session

    model = load_model(model_ref)
    scope = parse_scope(model, scope_pairs)
    set_log_context(model=model.__name__, scope=str(Scope.for_model(model, **scope)))

    async with get_async_session() as session:
        try:
            root = await _get_root(session, model, root_id)
            changed = await model.fix_tree(session, root=root, **scope)
            await session.commit()
        except RepositoryError as e:
            await session.rollback()
            error(str(e))
            sys.exit(1)

    if changed:
        success(f"Fixed {changed} row(s)")
    else:
        info("Nothing to fix")


@tree.command()
@click.argument("model_ref", metavar="MODEL")
@click.argument("data_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@scope_option
@root_option
@click.option("--delete", is_flag=True, help="Remove rows not present in the file")
@coro
async def rebuild(
    model_ref: str,
    data_file: Path,
    scope_pairs: tuple[str, ...],
    root_id: int | None,
    delete: bool,
) -> None:
    """Rebuild a tree from a nested YAML or JSON description.

    \b
    The file holds a list of nodes; each node is a mapping of attributes
    with optional "id" (existing row) and "children" (nested list):
      - name: Electronics
        children:
          - name: Phones
          - id: 7
    """
    from nestedtree.infra.database import get_async_session

    model = load_model(model_ref)
    scope = parse_scope(model, scope_pairs)
    set_log_context(model=model.__name__, scope=str(Scope.for_model(model, **scope)))
    data = _load_forest(data_file)

    async with get_async_session() as session:
        try:
            root = await _get_root(session, model, root_id)
            changed = await model.rebuild_tree(session, data, delete=delete, root=root, **scope)
            await session.commit()
        except RepositoryError as e:
            await session.rollback()
            error(str(e))
            sys.exit(1)

    success(f"Rebuilt {model.__name__}: {changed} row(s) changed")


# =============================================================================
# Inspection
# =============================================================================


@tree.command()
@click.argument("model_ref", metavar="MODEL")
@scope_option
@root_option
@click.option("--label", default=None, help="Attribute to print for each node (default: name, title or id)")
@click.option("--include-deleted", is_flag=True, help="Also list soft-deleted nodes")
@coro
async def show(
    model_ref: str,
    scope_pairs: tuple[str, ...],
    root_id: int | None,
    label: str | None,
    include_deleted: bool,
) -> None:
    """Print the tree indented by depth."""
    from nestedtree.infra.database import get_async_session

    model = load_model(model_ref)
    scope = parse_scope(model, scope_pairs)
    set_log_context(model=model.__name__, scope=str(Scope.for_model(model, **scope)))
    attribute = label or next((a for a in ("name", "title") if hasattr(model, a)), "id")
    soft_delete = uses_soft_delete(model)

    async with get_async_session() as session:
        try:
            root = await _get_root(session, model, root_id)
        except RepositoryError as e:
            error(str(e))
            sys.exit(1)
        queries = TreeQueries(model, Scope.for_model(model, **scope))
        rows = await queries.tree(session, root, include_deleted=include_deleted)

    section(f"{model.__name__} [{queries.scope}]")
    if not rows:
        info("Tree is empty")
        return
    for node, depth in rows:
        deleted = soft_delete and node.deleted_at is not None
        tree_line(getattr(node, attribute), depth, node.lft, node.rgt, deleted=deleted)


# =============================================================================
# Helpers
# =============================================================================


async def _get_root(session: Any, model: type, root_id: int | None) -> Any:
    if root_id is None:
        return None
    from nestedtree.core.database import NotFoundError

    root = await session.get(model, root_id)
    if root is None:
        raise NotFoundError(model.__name__, {"id": root_id})
    return root


def _load_forest(path: Path) -> list[dict[str, Any]]:
    """Read a node list from YAML (JSON is accepted as a YAML subset)."""
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        msg = f"cannot parse {path.name}: {e}"
        raise click.BadParameter(msg, param_hint="DATA_FILE") from e
    if data is None:
        return []
    if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
        msg = "expected a list of node mappings"
        raise click.BadParameter(msg, param_hint="DATA_FILE")
    return data
