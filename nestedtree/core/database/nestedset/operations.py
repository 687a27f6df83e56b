"""Positional operations on nested-set nodes.

NodeOperations places a node relative to another one (as a root, first or
last child, previous or next sibling) and removes or restores subtrees.
Each operation is one of two shapes:

- the node is new: open a two-slot gap at the target position and give the
  node the freed bounds;
- the node already exists: move its whole subtree with a single bulk
  ``UPDATE`` (see ``plan_move``).

Preconditions are checked before anything is written, in this order: the
anchor must be persisted, must not be the node or one of its descendants,
and must share the node's scope.

Nodes passed in are refreshed from the database before use and after the
operation, so their ``lft``/``rgt`` are current when the call returns.
Other instances of the same tree held by the caller are not refreshed.

Example:
    ops = NodeOperations(Category)
    root = Category(name="Electronics")
    await ops.make_root(session, root)
    await ops.append_to(session, Category(name="Phones"), root)
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import inspect
from sqlalchemy.orm import make_transient

from nestedtree.core.database.exceptions import (
    CyclicMoveError,
    NodeNotPersistedError,
    NotFoundError,
)
from nestedtree.core.database.nestedset.algebra import (
    LEAF_HEIGHT,
    insert_at,
    is_descendant,
    plan_gap,
    plan_move,
)
from nestedtree.core.database.nestedset.protocols import TreeNode
from nestedtree.core.database.nestedset.queries import TreeQueries
from nestedtree.core.database.nestedset.scope import assert_same_scope
from nestedtree.core.database.nestedset.store import BoundsStore
from nestedtree.core.settings import get_nestedset_settings
from nestedtree.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from collections.abc import Mapping

    from sqlalchemy.ext.asyncio import AsyncSession


class NodeOperations[T: TreeNode]:
    """Structural operations for one nested-set model.

    Provides:
        - make_root(session, node) -> bool
        - append_to / prepend_to(session, node, parent) -> bool
        - insert_before / insert_after(session, node, anchor) -> bool
        - move_up / move_down(session, node, amount=None) -> bool
        - save(session, node) -> T
        - delete(session, node, hard=None) -> int
        - restore(session, node) -> int
        - create(session, attributes, parent=None) -> T

    Positional methods return True when any bound changed.
    """

    __slots__ = ("model", "_logger", "_lazy")

    def __init__(self, model: type[T]) -> None:
        self.model = model
        self._logger = logging.getLogger(f"nestedset.{model.__name__}")
        self._lazy = get_lazy_logger(f"nestedset.{model.__name__}")

    # ------------------------------------------------------------------
    # Positioning
    # ------------------------------------------------------------------

    async def make_root(self, session: AsyncSession, node: T) -> bool:
        """Make ``node`` the last root of its scope.

        A new node is inserted after every existing tree; an existing node
        is detached from its parent and its subtree moved to the end.
        """
        store = BoundsStore.for_node(node)
        node.parent_id = None
        position = await store.max_right_bound(session) + 1
        return await self._insert_at(session, store, node, position)

    async def append_to(self, session: AsyncSession, node: T, parent: T) -> bool:
        """Make ``node`` the last child of ``parent``."""
        return await self.append_or_prepend(session, node, parent, prepend=False)

    async def prepend_to(self, session: AsyncSession, node: T, parent: T) -> bool:
        """Make ``node`` the first child of ``parent``."""
        return await self.append_or_prepend(session, node, parent, prepend=True)

    async def append_or_prepend(
        self, session: AsyncSession, node: T, parent: T, *, prepend: bool
    ) -> bool:
        store = BoundsStore.for_node(node)
        await self._assert_can_place(session, store, node, parent)

        node.parent_id = parent.id
        position = parent.lft + 1 if prepend else parent.rgt
        moved = await self._insert_at(session, store, node, position)

        await store.refresh_bounds(session, parent)
        return moved

    async def insert_before(self, session: AsyncSession, node: T, anchor: T) -> bool:
        """Make ``node`` the previous sibling of ``anchor``."""
        return await self.before_or_after(session, node, anchor, after=False)

    async def insert_after(self, session: AsyncSession, node: T, anchor: T) -> bool:
        """Make ``node`` the next sibling of ``anchor``."""
        return await self.before_or_after(session, node, anchor, after=True)

    async def before_or_after(
        self, session: AsyncSession, node: T, anchor: T, *, after: bool
    ) -> bool:
        store = BoundsStore.for_node(node)
        await self._assert_can_place(session, store, node, anchor)

        if node.parent_id != anchor.parent_id:
            node.parent_id = anchor.parent_id
        position = anchor.rgt + 1 if after else anchor.lft
        moved = await self._insert_at(session, store, node, position)

        await store.refresh_bounds(session, anchor)
        return moved

    async def move_up(self, session: AsyncSession, node: T, amount: int | None = None) -> bool:
        """Swap ``node`` with the ``amount``-th previous sibling.

        Returns:
            False when there is no such sibling, True otherwise
        """
        return await self._shift_among_siblings(session, node, amount, forward=False)

    async def move_down(self, session: AsyncSession, node: T, amount: int | None = None) -> bool:
        """Swap ``node`` with the ``amount``-th next sibling.

        Returns:
            False when there is no such sibling, True otherwise
        """
        return await self._shift_among_siblings(session, node, amount, forward=True)

    async def save(self, session: AsyncSession, node: T) -> T:
        """Persist ``node``; a node never placed in a tree becomes the last root."""
        if self._is_persisted(node) and node.lft and node.rgt:
            await session.flush()
        else:
            await self.make_root(session, node)
        return node

    async def create(
        self,
        session: AsyncSession,
        attributes: Mapping[str, Any],
        parent: T | None = None,
    ) -> T:
        """Create a node (and a nested ``children`` list) from plain attributes.

        Scope columns missing from a child's attributes are inherited from
        its parent.

        Example:
            await ops.create(session, {"name": "Books", "children": [{"name": "Novels"}]})
        """
        values = dict(attributes)
        children = values.pop("children", None) or []
        if parent is not None:
            for column in self.model.__nestedset_scope__:
                values.setdefault(column, getattr(parent, column))

        node = self.model(**values)
        if parent is None:
            await self.make_root(session, node)
        else:
            await self.append_to(session, node, parent)

        for child in children:
            await self.create(session, child, parent=node)
        return node

    # ------------------------------------------------------------------
    # Removal
    # ------------------------------------------------------------------

    async def delete(
        self,
        session: AsyncSession,
        node: T,
        *,
        hard: bool | None = None,
        deleted_by: str | None = None,
    ) -> int:
        """Delete ``node`` and its whole subtree.

        A hard delete removes the rows deepest-first, closes the interval
        the subtree occupied and resets ``node`` to an unsaved root, so it
        can be saved again as a new tree. A soft delete tombstones the
        subtree with one timestamp and leaves every bound in place.

        Args:
            session: Database session
            node: Node to delete
            hard: Physically remove rows or tombstone them (default: tombstone
                when the model supports soft delete)
            deleted_by: Recorded on tombstoned rows

        Returns:
            Number of rows deleted or tombstoned
        """
        store = BoundsStore.for_node(node)
        self._require_persisted(node)
        bounds = await store.refresh_bounds(session, node)
        descendants = await store.load_ordered(session, root=bounds)

        if hard is None:
            hard = not store.soft_delete
        if not hard:
            timestamp = datetime.now(UTC)
            count = await store.tombstone(
                session, [bounds.key, *(d.key for d in descendants)], timestamp, deleted_by=deleted_by
            )
            self._logger.info(
                "Subtree soft-deleted",
                extra={
                    "entity": self.model.__name__,
                    "entity_id": bounds.key,
                    "count": count,
                    "operation": "nestedset.delete",
                },
            )
            return count

        count = await store.delete_range(session, [d.key for d in descendants])
        await session.delete(node)
        await session.flush()
        count += 1
        await store.make_gap(session, plan_gap(bounds.rgt + 1, -bounds.height))

        make_transient(node)
        node.lft = 0
        node.rgt = 0
        node.parent_id = None

        self._logger.info(
            "Subtree deleted",
            extra={
                "entity": self.model.__name__,
                "entity_id": bounds.key,
                "count": count,
                "operation": "nestedset.delete",
            },
        )
        return count

    async def restore(self, session: AsyncSession, node: T) -> int:
        """Undo a soft delete of ``node`` and of its subtree.

        Descendants tombstoned before ``node`` was deleted stay deleted.

        Returns:
            Number of rows restored
        """
        store = BoundsStore.for_node(node)
        self._require_persisted(node)
        since = node.deleted_at
        if since is None:
            return 0

        bounds = await store.refresh_bounds(session, node)
        descendants = await store.load_ordered(session, root=bounds)
        count = await store.untombstone(session, [bounds.key, *(d.key for d in descendants)], since)

        self._logger.info(
            "Subtree restored",
            extra={
                "entity": self.model.__name__,
                "entity_id": bounds.key,
                "count": count,
                "operation": "nestedset.restore",
            },
        )
        return count

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _insert_at(
        self, session: AsyncSession, store: BoundsStore[T], node: T, position: int
    ) -> bool:
        bounds = None
        if self._is_persisted(node):
            # Parent pointer changes must reach the database before the
            # bulk patch, which does not go through the unit of work.
            await session.flush()
            bounds = await store.get_or_raise(session, node.id)

        # A persisted row without bounds (lft = rgt = 0) is placed like a new one.
        if bounds is not None and bounds.lft and bounds.rgt:
            plan = plan_move(bounds.lft, bounds.rgt, position)
            if plan is None:
                await store.refresh_bounds(session, node)
                return False
            await store.move(session, plan)
            await store.refresh_bounds(session, node)
            self._lazy.debug(
                lambda: f"nestedset.move_node: {self.model.__name__}#{bounds.key} -> [{node.lft}, {node.rgt}]"
            )
            return True

        await store.make_gap(session, plan_gap(position, LEAF_HEIGHT))
        node.lft, node.rgt = insert_at(LEAF_HEIGHT, position)
        session.add(node)
        await session.flush()
        self._lazy.debug(
            lambda: f"nestedset.insert_node: {self.model.__name__}#{node.id} at [{node.lft}, {node.rgt}]"
        )
        return True

    async def _shift_among_siblings(
        self, session: AsyncSession, node: T, amount: int | None, *, forward: bool
    ) -> bool:
        if amount is None:
            amount = get_nestedset_settings().default_move_amount
        if amount < 1:
            msg = f"Move amount must be positive, got {amount}"
            raise ValueError(msg)

        self._require_persisted(node)
        await BoundsStore.for_node(node).refresh_bounds(session, node)
        sibling = await TreeQueries.for_node(node).sibling_at(session, node, amount, forward=forward)
        if sibling is None:
            return False

        if forward:
            await self.insert_after(session, node, sibling)
        else:
            await self.insert_before(session, node, sibling)
        return True

    async def _assert_can_place(
        self, session: AsyncSession, store: BoundsStore[T], node: T, anchor: T
    ) -> None:
        """Check the anchor exists, is not inside ``node`` and shares its scope."""
        model_name = self.model.__name__
        if not self._is_persisted(anchor):
            raise NodeNotPersistedError(model_name)
        try:
            await BoundsStore.for_node(anchor).refresh_bounds(session, anchor)
        except NotFoundError:
            raise NodeNotPersistedError(model_name, anchor.id) from None
        if not anchor.lft or not anchor.rgt:
            raise NodeNotPersistedError(model_name, anchor.id)

        if self._is_persisted(node):
            if anchor is node or anchor.id == node.id:
                raise CyclicMoveError(model_name, node.id, anchor.id)
            await store.refresh_bounds(session, node)
            if is_descendant(anchor.lft, node.lft, node.rgt):
                raise CyclicMoveError(model_name, node.id, anchor.id)

        assert_same_scope(node, anchor)

    def _require_persisted(self, node: T) -> None:
        if not self._is_persisted(node):
            raise NodeNotPersistedError(self.model.__name__)

    @staticmethod
    def _is_persisted(node: Any) -> bool:
        return inspect(node).has_identity


__all__ = ["NodeOperations"]
