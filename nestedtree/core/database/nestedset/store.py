"""Persistence adapter for nested-set bound columns.

BoundsStore is the only component that talks to the database on behalf of
the tree engine. Every statement it emits is confined to one scope, and
every structural patch (gap or move) is a single ``UPDATE`` whose ``SET``
clauses are ``CASE`` expressions, so a tree is never left half-shifted by
a partially applied patch.

Bulk bound updates run with ``synchronize_session=False``: ORM instances
already loaded into the session keep their old bounds until
``refresh_bounds`` is called on them. The engine refreshes every node it
hands back to the caller; other instances should be re-read.

Example:
    store = BoundsStore(MenuItem, Scope.for_model(MenuItem, menu_id=1))
    await store.make_gap(session, plan_gap(cut=5, height=2))
    bounds = await store.get_or_raise(session, node_id)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from sqlalchemy import case, delete, func, or_, select, update
from sqlalchemy.orm.attributes import set_committed_value

from nestedtree.core.database.base import uses_soft_delete
from nestedtree.core.database.exceptions import NotFoundError, SoftDeleteNotSupportedError
from nestedtree.core.database.nestedset.algebra import node_height
from nestedtree.core.database.nestedset.protocols import TreeNode
from nestedtree.core.database.nestedset.scope import Scope
from nestedtree.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlalchemy.orm import InstrumentedAttribute

    from nestedtree.core.database.nestedset.algebra import GapPlan, MovePlan


@dataclass(slots=True, frozen=True)
class NodeBounds:
    """Snapshot of one row's tree columns.

    Attributes:
        key: Primary key value.
        lft: Left bound.
        rgt: Right bound.
        parent_id: Recorded parent key (None for roots).
    """

    key: Any
    lft: int
    rgt: int
    parent_id: Any = None

    @property
    def height(self) -> int:
        return node_height(self.lft, self.rgt)

    def contains(self, lft: int) -> bool:
        """Whether a node starting at ``lft`` is a strict descendant."""
        return self.lft < lft < self.rgt


class BoundsStore[T: TreeNode]:
    """Scope-filtered reads and bulk bound patches for one tree model.

    Provides:
        - get(session, key) -> NodeBounds | None
        - get_or_raise(session, key) -> NodeBounds
        - max_right_bound(session) -> int
        - move(session, plan) -> int
        - make_gap(session, plan) -> int
        - load_ordered(session, root=None) -> list[NodeBounds]
        - delete_range(session, keys) -> int
        - tombstone(session, keys, timestamp) -> int
        - untombstone(session, keys, since) -> int
        - refresh_bounds(session, node) -> NodeBounds

    Reads here deliberately include soft-deleted rows: a tombstoned row
    still occupies its interval.
    """

    __slots__ = ("model", "scope", "_logger", "_lazy")

    def __init__(self, model: type[T], scope: Scope | None = None) -> None:
        """Initialize store.

        Args:
            model: Mapped model class satisfying TreeNode
            scope: Scope to confine every statement to (default: no scope
                columns, i.e. the model must not declare any)
        """
        self.model = model
        self.scope = scope if scope is not None else Scope.for_model(model)
        self._logger = logging.getLogger(f"nestedset.{model.__name__}")
        self._lazy = get_lazy_logger(f"nestedset.{model.__name__}")

    @classmethod
    def for_node(cls, node: T) -> BoundsStore[T]:
        """Store confined to the scope of ``node``."""
        return cls(type(node), Scope.of(node))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, session: AsyncSession, key: Any) -> NodeBounds | None:
        """Read a node's bounds and parent pointer, or None when absent."""
        model = self.model
        stmt = select(self._pk(), model.lft, model.rgt, model.parent_id).where(self._pk() == key)
        row = (await session.execute(self.scope.apply(stmt, model))).first()
        if row is None:
            return None
        return NodeBounds(*row)

    async def get_or_raise(self, session: AsyncSession, key: Any) -> NodeBounds:
        """Read a node's bounds or raise NotFoundError."""
        bounds = await self.get(session, key)
        if bounds is None:
            raise NotFoundError(self.model.__name__, {"id": key, **self.scope.as_dict()})
        return bounds

    async def max_right_bound(self, session: AsyncSession) -> int:
        """Highest right bound in the scope (0 for an empty scope)."""
        stmt = self.scope.apply(select(func.max(self.model.rgt)), self.model)
        return (await session.execute(stmt)).scalar() or 0

    async def load_ordered(
        self,
        session: AsyncSession,
        root: NodeBounds | None = None,
    ) -> list[NodeBounds]:
        """Load the scope ordered by left bound.

        Args:
            session: Database session
            root: Restrict to strict descendants of this node

        Returns:
            Bounds of every matching row, lowest left bound first
        """
        model = self.model
        stmt = select(self._pk(), model.lft, model.rgt, model.parent_id)
        if root is not None:
            stmt = stmt.where(model.lft > root.lft, model.lft < root.rgt)
        stmt = self.scope.apply(stmt, model).order_by(model.lft)
        result = await session.execute(stmt)
        return [NodeBounds(*row) for row in result.all()]

    async def refresh_bounds(self, session: AsyncSession, node: T) -> NodeBounds:
        """Copy the stored bounds onto ``node`` without marking it dirty.

        Only ``lft``/``rgt`` are refreshed; a parent pointer the caller has
        just assigned is kept.

        Raises:
            NotFoundError: If the node's row is not in this scope.
        """
        bounds = await self.get_or_raise(session, node.id)
        set_committed_value(node, "lft", bounds.lft)
        set_committed_value(node, "rgt", bounds.rgt)
        return bounds

    # ------------------------------------------------------------------
    # Bulk patches
    # ------------------------------------------------------------------

    async def make_gap(self, session: AsyncSession, plan: GapPlan) -> int:
        """Shift every bound at or above ``plan.cut`` by ``plan.height``.

        Left and right bounds are patched independently, so ancestors
        spanning the cut only grow on the right.

        Returns:
            Number of rows touched
        """
        model = self.model
        patch = {
            column: case((column >= plan.cut, column + plan.height), else_=column)
            for column in (model.lft, model.rgt)
        }
        stmt = (
            update(model)
            .where(or_(model.lft >= plan.cut, model.rgt >= plan.cut))
            .values(patch)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(self.scope.apply(stmt, model))
        rowcount: int = result.rowcount

        self._lazy.debug(
            lambda: f"nestedset.make_gap: {model.__name__}[{self.scope}] cut={plan.cut} height={plan.height:+d} -> {rowcount} rows"
        )
        return rowcount

    async def move(self, session: AsyncSession, plan: MovePlan) -> int:
        """Apply a move plan in one statement.

        Rows whose bound lies inside the moved subtree shift by
        ``plan.distance``; other rows inside ``plan.boundary`` shift by
        ``plan.height``.

        Returns:
            Number of rows touched
        """
        model = self.model
        from_, to = plan.boundary
        patch = {
            column: case(
                (column.between(plan.lft, plan.rgt), column + plan.distance),
                (column.between(from_, to), column + plan.height),
                else_=column,
            )
            for column in (model.lft, model.rgt)
        }
        stmt = (
            update(model)
            .where(or_(model.lft.between(from_, to), model.rgt.between(from_, to)))
            .values(patch)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(self.scope.apply(stmt, model))
        rowcount: int = result.rowcount

        self._lazy.debug(
            lambda: f"nestedset.move: {model.__name__}[{self.scope}] [{plan.lft}, {plan.rgt}] -> {plan.target} (corridor {from_}..{to}) -> {rowcount} rows"
        )
        return rowcount

    # ------------------------------------------------------------------
    # Removal
    # ------------------------------------------------------------------

    async def delete_range(self, session: AsyncSession, keys: Iterable[Any]) -> int:
        """Delete rows deepest-first.

        Rows are removed one statement at a time in descending left-bound
        order so that no row is deleted while a child still references it,
        which keeps self-referencing foreign keys satisfied on databases
        that check them per row.

        Args:
            session: Database session
            keys: Primary keys to delete (keys outside the scope are ignored)

        Returns:
            Number of rows deleted
        """
        keys_list = list(keys)
        if not keys_list:
            return 0

        pk = self._pk()
        order_stmt = self.scope.apply(select(pk).where(pk.in_(keys_list)), self.model)
        ordered = (await session.execute(order_stmt.order_by(self.model.lft.desc()))).scalars().all()

        deleted = 0
        for key in ordered:
            result = await session.execute(delete(self.model).where(pk == key))
            deleted += result.rowcount

        if deleted > 10:
            self._logger.warning(
                "Bulk subtree delete executed",
                extra={
                    "entity": self.model.__name__,
                    "requested": len(keys_list),
                    "deleted": deleted,
                    "operation": "nestedset.delete_range",
                },
            )
        else:
            self._lazy.debug(
                lambda: f"nestedset.delete_range: {self.model.__name__}[{self.scope}] -> {deleted} deleted"
            )
        return deleted

    async def tombstone(
        self,
        session: AsyncSession,
        keys: Iterable[Any],
        timestamp: datetime,
        *,
        deleted_by: str | None = None,
    ) -> int:
        """Soft-delete rows that are not already deleted.

        Rows deleted earlier keep their original timestamp, so restoring
        this deletion later does not resurrect them.

        Raises:
            SoftDeleteNotSupportedError: If the model has no deleted_at column.
        """
        model = self._require_soft_delete()
        keys_list = list(keys)
        if not keys_list:
            return 0

        stmt = (
            update(model)
            .where(self._pk().in_(keys_list), model.deleted_at.is_(None))
            .values(deleted_at=timestamp, deleted_by=deleted_by)
            .execution_options(synchronize_session="fetch")
        )
        result = await session.execute(self.scope.apply(stmt, model))
        self._lazy.debug(
            lambda: f"nestedset.tombstone: {model.__name__}[{self.scope}] -> {result.rowcount} rows"
        )
        return result.rowcount

    async def untombstone(self, session: AsyncSession, keys: Iterable[Any], since: datetime) -> int:
        """Restore rows among ``keys`` whose deletion happened at or after ``since``.

        Raises:
            SoftDeleteNotSupportedError: If the model has no deleted_at column.
        """
        model = self._require_soft_delete()
        keys_list = list(keys)
        if not keys_list:
            return 0

        stmt = (
            update(model)
            .where(self._pk().in_(keys_list), model.deleted_at >= since)
            .values(deleted_at=None, deleted_by=None)
            .execution_options(synchronize_session="fetch")
        )
        result = await session.execute(self.scope.apply(stmt, model))
        self._lazy.debug(
            lambda: f"nestedset.untombstone: {model.__name__}[{self.scope}] -> {result.rowcount} rows"
        )
        return result.rowcount

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @property
    def soft_delete(self) -> bool:
        return uses_soft_delete(self.model)

    def _require_soft_delete(self) -> Any:
        if not self.soft_delete:
            raise SoftDeleteNotSupportedError(self.model.__name__)
        return self.model

    def _pk(self) -> InstrumentedAttribute[Any]:
        return self.model.id  # type: ignore[return-value]


__all__ = ["BoundsStore", "NodeBounds"]
