"""Resolve tree models and scope values given on the command line."""

from __future__ import annotations

import importlib
from typing import Any

import click
from sqlalchemy import inspect as sa_inspect

from nestedtree.core.database.nestedset import NestedSetMixin


def load_model(spec: str) -> type[NestedSetMixin]:
    """Import a model class from a ``package.module:ClassName`` reference.

    Raises:
        click.BadParameter: If the reference cannot be imported or does not
            name a nested-set model.
    """
    module_name, _, class_name = spec.partition(":")
    if not module_name or not class_name:
        msg = f"expected 'module:Class', got '{spec}'"
        raise click.BadParameter(msg, param_hint="MODEL")

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        msg = f"cannot import module '{module_name}': {e}"
        raise click.BadParameter(msg, param_hint="MODEL") from e

    model = getattr(module, class_name, None)
    if not isinstance(model, type) or not issubclass(model, NestedSetMixin):
        msg = f"'{spec}' is not a NestedSetMixin model"
        raise click.BadParameter(msg, param_hint="MODEL")
    return model


def parse_scope(model: type[NestedSetMixin], pairs: tuple[str, ...]) -> dict[str, Any]:
    """Turn repeated ``--scope column=value`` options into typed values.

    Values are converted with the Python type of the column, so
    ``--scope menu_id=1`` yields the integer 1 for an integer column.
    """
    columns = sa_inspect(model).columns
    values: dict[str, Any] = {}
    for pair in pairs:
        name, sep, raw = pair.partition("=")
        if not sep:
            msg = f"expected column=value, got '{pair}'"
            raise click.BadParameter(msg, param_hint="--scope")
        if name not in model.__nestedset_scope__:
            allowed = ", ".join(model.__nestedset_scope__) or "none"
            msg = f"'{name}' is not a scope column of {model.__name__} (scope columns: {allowed})"
            raise click.BadParameter(msg, param_hint="--scope")
        values[name] = _coerce(columns[name].type, raw)

    missing = [col for col in model.__nestedset_scope__ if col not in values]
    if missing:
        msg = f"missing scope value(s) for {', '.join(missing)}"
        raise click.BadParameter(msg, param_hint="--scope")
    return values


def _coerce(column_type: Any, raw: str) -> Any:
    try:
        python_type = column_type.python_type
    except NotImplementedError:
        return raw
    if python_type is bool:
        return raw.lower() in {"1", "true", "yes", "on"}
    try:
        return python_type(raw)
    except (TypeError, ValueError) as e:
        msg = f"'{raw}' is not a valid {python_type.__name__}"
        raise click.BadParameter(msg, param_hint="--scope") from e
