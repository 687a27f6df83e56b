"""Repair and bulk rebuild of nested-set bounds.

Both entry points reduce to the same numbering pass: nodes are grouped by
their parent pointer (keeping each group in its current ``lft`` order) and
renumbered depth-first with one running counter. Parent pointers are
therefore authoritative: ``fix_tree`` restores bounds from them, and
``rebuild_tree`` first rewrites them from a nested description.

Groups never reached from the starting level (dangling or cyclic parent
pointers) are attached to the starting level one at a time. Each pass
consumes at least one group, so the pass count is bounded by the number
of groups and corrupted input always terminates.

Only rows whose ``(lft, rgt, parent_id)`` actually changed are written.

Example:
    rebuilder = TreeRebuilder(Category)
    fixed = await rebuilder.fix_tree(session)

    await rebuilder.rebuild_tree(session, [
        {"name": "Books", "children": [{"name": "Novels"}, {"name": "Poetry"}]},
    ])
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlalchemy.orm.attributes import set_committed_value

from nestedtree.core.database.exceptions import NotFoundError
from nestedtree.core.database.nestedset.algebra import GapPlan, plan_gap
from nestedtree.core.database.nestedset.checker import TreeConsistencyChecker
from nestedtree.core.database.nestedset.protocols import TreeNode
from nestedtree.core.database.nestedset.scope import Scope
from nestedtree.core.database.nestedset.store import BoundsStore, NodeBounds
from nestedtree.core.settings import get_nestedset_settings
from nestedtree.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping, Sequence

    from sqlalchemy.ext.asyncio import AsyncSession


@dataclass(slots=True)
class _Placement[T]:
    node: T
    lft: int
    rgt: int
    parent_id: Any


@dataclass(slots=True)
class _Frame[T]:
    children: Iterator[T]
    node: T | None
    lft: int
    parent_id: Any


class TreeRebuilder[T: TreeNode]:
    """Renumber one scope of a nested-set table from parent pointers."""

    __slots__ = ("model", "scope", "store", "_logger", "_lazy")

    def __init__(self, model: type[T], scope: Scope | None = None) -> None:
        self.model = model
        self.scope = scope if scope is not None else Scope.for_model(model)
        self.store: BoundsStore[T] = BoundsStore(model, self.scope)
        self._logger = logging.getLogger(f"nestedset.{model.__name__}")
        self._lazy = get_lazy_logger(f"nestedset.{model.__name__}")

    async def fix_tree(self, session: AsyncSession, root: T | None = None) -> int:
        """Recompute bounds from parent pointers.

        Args:
            session: Database session
            root: Only repair this node's subtree (the root itself keeps
                its left bound; its right bound follows the subtree size)

        Returns:
            Number of rows changed
        """
        root_bounds = await self._root_bounds(session, root)
        nodes = await self._load(session, root_bounds)

        buckets: dict[Any, list[T]] = {}
        for node in nodes:
            buckets.setdefault(node.parent_id, []).append(node)
        snapshot = {id(node): (node.lft, node.rgt, node.parent_id) for node in nodes}

        changed = await self._apply(session, buckets, snapshot, root, root_bounds)
        self._logger.info(
            "Nested set fixed",
            extra={
                "entity": self.model.__name__,
                "scope": str(self.scope),
                "changed": changed,
                "operation": "nestedset.fix_tree",
            },
        )
        await self._verify(session)
        return changed

    async def rebuild_tree(
        self,
        session: AsyncSession,
        data: Sequence[Mapping[str, Any]],
        *,
        delete: bool = False,
        root: T | None = None,
    ) -> int:
        """Replace the scope (or ``root``'s subtree) with a nested description.

        Each item is a mapping of attributes. An ``id`` entry refers to an
        existing row, otherwise a new row is created. ``children`` holds
        nested items. Rows not mentioned are deleted when ``delete`` is set
        (tombstoned for soft-delete models) and kept under their recorded
        parent otherwise.

        Args:
            session: Database session
            data: Top-level items, in sibling order
            delete: Remove rows absent from ``data``
            root: Rebuild only beneath this node

        Returns:
            Number of rows created, moved, or removed

        Raises:
            NotFoundError: If an item references an ``id`` not in scope.
        """
        root_bounds = await self._root_bounds(session, root)
        existing = {node.id: node for node in await self._load(session, root_bounds)}
        snapshot = {id(node): (node.lft, node.rgt, node.parent_id) for node in existing.values()}

        buckets: dict[Any, list[T]] = {}
        start_key = root.id if root is not None else None
        await self._collect(session, data, existing, buckets, start_key)

        absent = list(existing.values())
        removed = 0
        if absent and delete and not self.store.soft_delete:
            changed = await self._apply(session, buckets, snapshot, root, root_bounds)
            removed = await self.store.delete_range(session, [node.id for node in absent])
        else:
            for node in absent:
                buckets.setdefault(node.parent_id, []).append(node)
            changed = await self._apply(session, buckets, snapshot, root, root_bounds)
            if absent and delete:
                removed = await self.store.tombstone(
                    session, [node.id for node in absent], datetime.now(UTC)
                )

        total = changed + removed
        self._logger.info(
            "Nested set rebuilt",
            extra={
                "entity": self.model.__name__,
                "scope": str(self.scope),
                "changed": changed,
                "removed": removed,
                "operation": "nestedset.rebuild_tree",
            },
        )
        await self._verify(session)
        return total

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def _root_bounds(self, session: AsyncSession, root: T | None) -> NodeBounds | None:
        if root is None:
            return None
        return await self.store.refresh_bounds(session, root)

    async def _load(self, session: AsyncSession, root: NodeBounds | None) -> list[T]:
        """Load the scope (or a subtree) as ORM instances, soft-deleted rows included."""
        model = self.model
        stmt = select(model)
        if root is not None:
            stmt = stmt.where(model.lft > root.lft, model.lft < root.rgt)
        stmt = self.scope.apply(stmt, model).order_by(model.lft, model.id)
        await session.flush()
        result = await session.execute(stmt.execution_options(populate_existing=True))
        return list(result.scalars().all())

    async def _collect(
        self,
        session: AsyncSession,
        items: Sequence[Mapping[str, Any]],
        existing: dict[Any, T],
        buckets: dict[Any, list[T]],
        parent_id: Any,
    ) -> None:
        """Turn nested items into parent buckets, creating rows as needed.

        Referenced rows are removed from ``existing``; what is left there
        afterwards are the rows the input does not mention.
        """
        for item in items:
            values = dict(item)
            children = values.pop("children", None) or []
            key = values.pop("id", None)

            if key is None:
                node = self.model(**self.scope.as_dict())
                node.lft = 0
                node.rgt = 0
            else:
                node = existing.pop(key, None)
                if node is None:
                    raise NotFoundError(self.model.__name__, {"id": key, **self.scope.as_dict()})

            for attribute, value in values.items():
                setattr(node, attribute, value)
            node.parent_id = parent_id
            session.add(node)
            if key is None:
                # Children need the generated key as their parent pointer.
                await session.flush()

            buckets.setdefault(parent_id, []).append(node)
            if children:
                await self._collect(session, children, existing, buckets, node.id)

    # ------------------------------------------------------------------
    # Numbering
    # ------------------------------------------------------------------

    async def _apply(
        self,
        session: AsyncSession,
        buckets: dict[Any, list[T]],
        snapshot: dict[int, tuple[int, int, Any]],
        root: T | None,
        root_bounds: NodeBounds | None,
    ) -> int:
        """Number every bucket, resize ``root`` if needed, then write changes."""
        start_key = root_bounds.key if root_bounds is not None else None
        cut = root_bounds.lft + 1 if root_bounds is not None else 1
        placements: list[_Placement[T]] = []

        cut = self._number(buckets, start_key, cut, placements)
        remaining = len(buckets)
        while buckets and remaining > 0:
            orphan_key = next(iter(buckets))
            self._lazy.debug(
                lambda: f"nestedset.fix_tree: {self.model.__name__}[{self.scope}] reattaching children of missing parent {orphan_key!r}"
            )
            buckets[start_key] = buckets.pop(orphan_key)
            cut = self._number(buckets, start_key, cut, placements)
            remaining -= 1

        changed = 0
        if root is not None and root_bounds is not None:
            grown = cut - root_bounds.rgt
            if grown:
                gap = plan_gap(root_bounds.rgt + 1, grown)
                changed += await self.store.make_gap(session, gap)
                # Descendants whose stored bounds overflowed the root were
                # shifted too; diff against the shifted values.
                for placement in placements:
                    old = snapshot.get(id(placement.node))
                    if old is not None:
                        snapshot[id(placement.node)] = self._shift_loaded(placement.node, gap, old)
                root.rgt = cut
                changed += 1

        for placement in placements:
            node = placement.node
            new = (placement.lft, placement.rgt, placement.parent_id)
            if snapshot.get(id(node)) == new:
                continue
            node.lft, node.rgt, node.parent_id = new
            changed += 1

        await session.flush()
        return changed

    @staticmethod
    def _shift_loaded(node: T, gap: GapPlan, old: tuple[int, int, Any]) -> tuple[int, int, Any]:
        """Replay ``gap`` on a loaded node's committed bounds and its snapshot."""
        lft, rgt = gap.shift(old[0]), gap.shift(old[1])
        set_committed_value(node, "lft", lft)
        set_committed_value(node, "rgt", rgt)
        return lft, rgt, old[2]

    @staticmethod
    def _number(
        buckets: dict[Any, list[T]],
        parent_id: Any,
        cut: int,
        placements: list[_Placement[T]],
    ) -> int:
        """Depth-first numbering of ``parent_id``'s bucket starting at ``cut``.

        Buckets are popped before their members are visited, so a cyclic
        parent pointer can never lead back into a bucket.

        Returns:
            The next free bound after the numbered nodes
        """
        stack: list[_Frame[T]] = [_Frame(iter(buckets.pop(parent_id, ())), None, cut, None)]
        while stack:
            frame = stack[-1]
            child = next(frame.children, None)
            if child is None:
                stack.pop()
                if frame.node is not None:
                    placements.append(_Placement(frame.node, frame.lft, cut, frame.parent_id))
                    cut += 1
                continue

            owner = frame.node.id if frame.node is not None else parent_id
            stack.append(_Frame(iter(buckets.pop(child.id, ())), child, cut, owner))
            cut += 1
        return cut

    async def _verify(self, session: AsyncSession) -> None:
        if not get_nestedset_settings().verify_after_rebuild:
            return
        errors = await TreeConsistencyChecker(self.model, self.scope).count_errors(session)
        if errors.is_broken:
            self._logger.error(
                "Nested set still broken after rebuild",
                extra={
                    "entity": self.model.__name__,
                    "scope": str(self.scope),
                    "operation": "nestedset.verify",
                    **errors.as_dict(),
                },
            )


__all__ = ["TreeRebuilder"]
