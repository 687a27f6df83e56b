"""Consistency checks for nested-set tables.

Four independent counts describe how a scope's stored bounds disagree with
the nested-set invariants. All four run as scalar subqueries of one
``SELECT`` and include soft-deleted rows, which still occupy their
interval. Corruption is reported, never raised: a broken tree is a normal
input for ``TreeRebuilder.fix_tree``.

Example:
    checker = TreeConsistencyChecker(MenuItem, Scope.for_model(MenuItem, menu_id=1))
    errors = await checker.count_errors(session)
    if errors.is_broken:
        await TreeRebuilder(MenuItem, checker.scope).fix_tree(session)
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any

from sqlalchemy import and_, func, not_, or_, select

from nestedtree.core.database.nestedset.protocols import TreeNode
from nestedtree.core.database.nestedset.queries import QueryContext
from nestedtree.core.database.nestedset.scope import Scope
from nestedtree.core.settings import get_nestedset_settings
from nestedtree.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from sqlalchemy import Select
    from sqlalchemy.ext.asyncio import AsyncSession


@dataclass(slots=True, frozen=True)
class TreeErrors:
    """Violation counts for one scope.

    Attributes:
        oddness: Rows with ``lft >= rgt`` or an even-sized interval.
        duplicates: Pairs of rows sharing a bound value.
        wrong_parent: Rows not directly nested inside their recorded parent.
        missing_parent: Rows pointing to a parent that does not exist in scope.
    """

    oddness: int = 0
    duplicates: int = 0
    wrong_parent: int = 0
    missing_parent: int = 0

    @property
    def total(self) -> int:
        return self.oddness + self.duplicates + self.wrong_parent + self.missing_parent

    @property
    def is_broken(self) -> bool:
        return self.total > 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


class TreeConsistencyChecker[T: TreeNode]:
    """Count nested-set invariant violations in one scope."""

    __slots__ = ("model", "scope", "_logger", "_lazy")

    def __init__(self, model: type[T], scope: Scope | None = None) -> None:
        self.model = model
        self.scope = scope if scope is not None else Scope.for_model(model)
        self._logger = logging.getLogger(f"nestedset.{model.__name__}")
        self._lazy = get_lazy_logger(f"nestedset.{model.__name__}")

    async def count_errors(self, session: AsyncSession) -> TreeErrors:
        """Run all checks.

        Returns:
            TreeErrors with one count per check
        """
        ctx = QueryContext()
        checks = {
            "oddness": self._oddness(ctx),
            "duplicates": self._duplicates(ctx),
            "wrong_parent": self._wrong_parent(ctx),
            "missing_parent": self._missing_parent(ctx),
        }
        stmt = select(*(query.scalar_subquery().label(name) for name, query in checks.items()))
        row = (await session.execute(stmt)).one()
        errors = TreeErrors(**{name: int(value or 0) for name, value in row._mapping.items()})

        if errors.is_broken and get_nestedset_settings().warn_on_broken:
            self._logger.warning(
                "Nested set is broken",
                extra={
                    "entity": self.model.__name__,
                    "scope": str(self.scope),
                    "operation": "nestedset.count_errors",
                    **errors.as_dict(),
                },
            )
        else:
            self._lazy.debug(
                lambda: f"nestedset.count_errors: {self.model.__name__}[{self.scope}] -> {errors.as_dict()}"
            )
        return errors

    async def total_errors(self, session: AsyncSession) -> int:
        return (await self.count_errors(session)).total

    async def is_broken(self, session: AsyncSession) -> bool:
        return (await self.count_errors(session)).is_broken

    # ------------------------------------------------------------------
    # Individual checks
    # ------------------------------------------------------------------

    def _oddness(self, ctx: QueryContext) -> Select[Any]:
        node = ctx.alias(self.model)
        stmt = (
            select(func.count())
            .select_from(node)
            .where(or_(node.lft >= node.rgt, (node.rgt - node.lft) % 2 == 0))
        )
        return self.scope.apply(stmt, node)

    def _duplicates(self, ctx: QueryContext) -> Select[Any]:
        first, second = ctx.alias(self.model), ctx.alias(self.model)
        stmt = (
            select(func.count())
            .select_from(first)
            .join(
                second,
                and_(
                    first.id < second.id,
                    or_(
                        first.lft == second.lft,
                        first.lft == second.rgt,
                        first.rgt == second.lft,
                        first.rgt == second.rgt,
                    ),
                ),
            )
        )
        return self.scope.apply(self.scope.apply(stmt, first), second)

    def _wrong_parent(self, ctx: QueryContext) -> Select[Any]:
        child, parent, between = ctx.alias(self.model), ctx.alias(self.model), ctx.alias(self.model)

        # A row strictly inside the parent that also encloses the child means
        # the child is at least two levels down.
        intermediate = self.scope.apply(
            select(between.id).where(
                between.id != parent.id,
                between.id != child.id,
                between.lft > parent.lft,
                between.lft < parent.rgt,
                between.lft < child.lft,
                between.rgt > child.lft,
            ),
            between,
        )
        stmt = (
            select(func.count(child.id.distinct()))
            .select_from(child)
            .join(parent, child.parent_id == parent.id)
            .where(
                or_(
                    not_(and_(child.lft > parent.lft, child.lft < parent.rgt)),
                    intermediate.exists(),
                )
            )
        )
        return self.scope.apply(self.scope.apply(stmt, child), parent)

    def _missing_parent(self, ctx: QueryContext) -> Select[Any]:
        child, parent = ctx.alias(self.model), ctx.alias(self.model)
        parent_exists = self.scope.apply(select(parent.id).where(parent.id == child.parent_id), parent)
        stmt = (
            select(func.count())
            .select_from(child)
            .where(child.parent_id.is_not(None), not_(parent_exists.exists()))
        )
        return self.scope.apply(stmt, child)


__all__ = ["TreeConsistencyChecker", "TreeErrors"]
