"""Scoped read queries over a nested-set table.

Every query is filtered by the scope of the node (or the scope the helper
was built for) and, unless ``include_deleted=True`` is passed, skips
soft-deleted rows. The queries read the bounds held on the node instance,
so callers should pass a node whose bounds are current (every engine
operation refreshes the nodes it touches).

Self-joins draw their aliases from a QueryContext, which is created per
statement so alias names never depend on process-wide state.

Example:
    queries = TreeQueries.for_node(menu)
    children = await queries.children_of(session, menu)
    for node, depth in await queries.tree(session):
        print("  " * depth, node.title)
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select
from sqlalchemy.orm import aliased

from nestedtree.core.database.base import uses_soft_delete
from nestedtree.core.database.nestedset.protocols import TreeNode
from nestedtree.core.database.nestedset.scope import Scope
from nestedtree.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy import ColumnElement, Result, Select
    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlalchemy.orm.util import AliasedClass


@dataclass(slots=True)
class QueryContext:
    """Per-statement source of unique table aliases.

    Example:
        ctx = QueryContext()
        child, parent = ctx.alias(Category), ctx.alias(Category)
    """

    prefix: str = "_ns"
    _counter: itertools.count[int] = field(default_factory=lambda: itertools.count(1))

    def alias[M](self, model: type[M]) -> AliasedClass[M]:
        return aliased(model, name=f"{self.prefix}{next(self._counter)}")


class TreeQueries[T: TreeNode]:
    """Read helpers for one model and scope."""

    __slots__ = ("model", "scope", "_lazy")

    def __init__(self, model: type[T], scope: Scope | None = None) -> None:
        self.model = model
        self.scope = scope if scope is not None else Scope.for_model(model)
        self._lazy = get_lazy_logger(f"nestedset.{model.__name__}")

    @classmethod
    def for_node(cls, node: T) -> TreeQueries[T]:
        return cls(type(node), Scope.of(node))

    # ------------------------------------------------------------------
    # Statement builders
    # ------------------------------------------------------------------

    def statement(self, *criteria: ColumnElement[bool], include_deleted: bool = False) -> Select[Any]:
        """Scoped ``SELECT model`` with optional extra criteria, ordered by ``lft``."""
        stmt = self.scope.apply(select(self.model), self.model)
        if not include_deleted and uses_soft_delete(self.model):
            stmt = stmt.where(self.model.deleted_at.is_(None))
        return stmt.where(*criteria).order_by(self.model.lft)

    def with_depth(self, stmt: Select[Any], ctx: QueryContext | None = None) -> Select[Any]:
        """Add a ``depth`` column counting each row's ancestors.

        Args:
            stmt: Statement selecting the model entity (not an alias).
            ctx: Alias source (default: a fresh context).
        """
        ctx = ctx or QueryContext()
        model = self.model
        outer = ctx.alias(model)
        depth = (
            self.scope.apply(select(func.count() - 1), outer)
            .select_from(outer)
            .where(model.lft.between(outer.lft, outer.rgt))
            .correlate(model)
            .scalar_subquery()
            .label("depth")
        )
        return stmt.add_columns(depth)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def descendants_of(
        self,
        session: AsyncSession,
        node: T,
        *,
        and_self: bool = False,
        include_deleted: bool = False,
    ) -> list[T]:
        """Descendants of ``node`` in pre-order."""
        model = self.model
        if and_self:
            criteria = model.lft.between(node.lft, node.rgt)
        else:
            criteria = (model.lft > node.lft) & (model.lft < node.rgt)
        return await self._all(session, self.statement(criteria, include_deleted=include_deleted))

    async def ancestors_of(
        self,
        session: AsyncSession,
        node: T,
        *,
        and_self: bool = False,
        include_deleted: bool = False,
    ) -> list[T]:
        """Ancestors of ``node``, outermost first."""
        model = self.model
        if and_self:
            criteria = (model.lft <= node.lft) & (model.rgt >= node.rgt)
        else:
            criteria = (model.lft < node.lft) & (model.rgt > node.rgt)
        return await self._all(session, self.statement(criteria, include_deleted=include_deleted))

    async def children_of(
        self, session: AsyncSession, node: T, *, include_deleted: bool = False
    ) -> list[T]:
        stmt = self.statement(self.model.parent_id == node.id, include_deleted=include_deleted)
        return await self._all(session, stmt)

    async def siblings_of(
        self,
        session: AsyncSession,
        node: T,
        *,
        and_self: bool = False,
        include_deleted: bool = False,
    ) -> list[T]:
        criteria = [self._same_parent(node)]
        if not and_self:
            criteria.append(self.model.id != node.id)
        return await self._all(session, self.statement(*criteria, include_deleted=include_deleted))

    async def next_siblings(
        self, session: AsyncSession, node: T, *, include_deleted: bool = False
    ) -> list[T]:
        stmt = self.statement(
            self._same_parent(node), self.model.lft > node.lft, include_deleted=include_deleted
        )
        return await self._all(session, stmt)

    async def prev_siblings(
        self, session: AsyncSession, node: T, *, include_deleted: bool = False
    ) -> list[T]:
        stmt = self.statement(
            self._same_parent(node), self.model.lft < node.lft, include_deleted=include_deleted
        )
        return await self._all(session, stmt)

    async def sibling_at(
        self, session: AsyncSession, node: T, offset: int, *, forward: bool
    ) -> T | None:
        """The ``offset``-th non-deleted sibling after (or before) ``node``.

        Args:
            session: Database session
            node: Reference node
            offset: 1 for the immediate neighbour, 2 for the one after, ...
            forward: Search towards higher left bounds when True
        """
        model = self.model
        if forward:
            stmt = self.statement(self._same_parent(node), model.lft > node.lft)
        else:
            stmt = self.statement(self._same_parent(node), model.lft < node.lft)
            stmt = stmt.order_by(None).order_by(model.lft.desc())
        stmt = stmt.offset(max(offset - 1, 0)).limit(1)
        return (await self._execute(session, stmt)).scalars().first()

    async def next_node(self, session: AsyncSession, node: T) -> T | None:
        """Next node in pre-order at any depth."""
        stmt = self.statement(self.model.lft > node.lft).limit(1)
        return (await self._execute(session, stmt)).scalars().first()

    async def prev_node(self, session: AsyncSession, node: T) -> T | None:
        """Previous node in pre-order at any depth."""
        stmt = self.statement(self.model.lft < node.lft).order_by(None).order_by(self.model.lft.desc())
        return (await self._execute(session, stmt.limit(1))).scalars().first()

    async def leaves(self, session: AsyncSession, node: T | None = None) -> list[T]:
        """Nodes without descendants, optionally restricted to ``node``'s subtree."""
        model = self.model
        criteria = [model.rgt == model.lft + 1]
        if node is not None:
            criteria += [model.lft > node.lft, model.lft < node.rgt]
        return await self._all(session, self.statement(*criteria))

    async def roots(self, session: AsyncSession, *, include_deleted: bool = False) -> list[T]:
        stmt = self.statement(self.model.parent_id.is_(None), include_deleted=include_deleted)
        return await self._all(session, stmt)

    async def tree(
        self, session: AsyncSession, root: T | None = None, *, include_deleted: bool = False
    ) -> list[tuple[T, int]]:
        """Whole scope (or ``root``'s subtree) in pre-order with depths.

        Depth is absolute: a root has depth 0 even when only a subtree is
        requested.
        """
        model = self.model
        criteria = [] if root is None else [model.lft.between(root.lft, root.rgt)]
        stmt = self.with_depth(self.statement(*criteria, include_deleted=include_deleted))
        result = await self._execute(session, stmt)
        rows = [(node, depth) for node, depth in result.all()]
        self._lazy.debug(lambda: f"nestedset.tree: {model.__name__}[{self.scope}] -> {len(rows)} rows")
        return rows

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _same_parent(self, node: T) -> ColumnElement[bool]:
        if node.parent_id is None:
            return self.model.parent_id.is_(None)
        return self.model.parent_id == node.parent_id

    async def _execute(self, session: AsyncSession, stmt: Select[Any]) -> Result[Any]:
        # Bulk bound patches bypass the identity map, so loaded rows must
        # overwrite whatever bounds the session still holds for them.
        await session.flush()
        return await session.execute(stmt.execution_options(populate_existing=True))

    async def _all(self, session: AsyncSession, stmt: Select[Any]) -> list[T]:
        result = await self._execute(session, stmt)
        rows: Sequence[T] = result.scalars().all()
        return list(rows)


__all__ = ["QueryContext", "TreeQueries"]
