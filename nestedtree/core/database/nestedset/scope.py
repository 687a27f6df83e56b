"""Scope partitions for nested-set tables.

A scope is an equality constraint over zero or more columns. Rows that
differ in any scope column belong to independent trees that share the
table but never interact: every read, bulk update and delete issued by
the engine is filtered by the scope of the node it operates on.

Example:
    >>> scope = Scope.for_model(MenuItem, menu_id=1)
    >>> stmt = scope.apply(select(MenuItem), MenuItem)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from nestedtree.core.database.exceptions import InvalidScopeError, ScopeMismatchError

if TYPE_CHECKING:
    from sqlalchemy.sql import Delete, Select, Update


@dataclass(slots=True, frozen=True)
class Scope:
    """Ordered (column, value) pairs confining an operation to one tree.

    Attributes:
        model_name: Name of the model the scope belongs to (for errors/logs).
        items: Column/value pairs in declaration order.
    """

    model_name: str
    items: tuple[tuple[str, Any], ...] = ()

    @classmethod
    def of(cls, node: Any) -> Scope:
        """Read the scope of a node instance from its scope columns."""
        model = type(node)
        columns = getattr(model, "__nestedset_scope__", ())
        return cls(model.__name__, tuple((col, getattr(node, col)) for col in columns))

    @classmethod
    def for_model(cls, model: type, **values: Any) -> Scope:
        """Build a scope for ``model`` from keyword values.

        Raises:
            InvalidScopeError: If a scope column is missing or an unknown
                column is given.
        """
        columns: tuple[str, ...] = getattr(model, "__nestedset_scope__", ())
        unknown = sorted(set(values) - set(columns))
        if unknown:
            msg = "Unknown scope columns"
            raise InvalidScopeError(msg, model.__name__, unknown)
        missing = [col for col in columns if col not in values]
        if missing:
            msg = "Missing scope values"
            raise InvalidScopeError(msg, model.__name__, missing)
        return cls(model.__name__, tuple((col, values[col]) for col in columns))

    def as_dict(self) -> dict[str, Any]:
        return dict(self.items)

    def matches(self, other: Scope) -> bool:
        return self.items == other.items

    def apply[S: (Select[Any], Update, Delete)](self, stmt: S, entity: Any) -> S:
        """Add one equality criterion per scope column to ``stmt``.

        Args:
            stmt: Select, update or delete statement.
            entity: The mapped class or an ``aliased()`` copy of it, so the
                criteria can target a specific side of a self-join.

        Returns:
            The filtered statement.
        """
        for column, value in self.items:
            stmt = stmt.where(getattr(entity, column) == value)
        return stmt

    def __str__(self) -> str:
        if not self.items:
            return "<global>"
        return ",".join(f"{col}={value!r}" for col, value in self.items)


def assert_same_scope(node: Any, other: Any) -> None:
    """Reject combining two nodes from different scopes in one operation.

    Raises:
        ScopeMismatchError: If any scope column differs.
    """
    left, right = Scope.of(node), Scope.of(other)
    if not left.matches(right):
        raise ScopeMismatchError(left.model_name, left.as_dict(), right.as_dict())


__all__ = ["Scope", "assert_same_scope"]
