"""Declarative mixin that turns a model into a nested-set tree.

Adds ``lft``/``rgt``/``parent_id`` columns (indexed together with the
scope columns) and async convenience methods that delegate to the engine
classes. Scope columns are declared on the model class:

Example:
    class MenuItem(Base, IntegerPKMixin, NestedSetMixin):
        __tablename__ = "menu_items"
        __nestedset_scope__ = ("menu_id",)

        menu_id: Mapped[int] = mapped_column()
        title: Mapped[str] = mapped_column(String(100))

    root = MenuItem(menu_id=1, title="Home")
    await root.save_as_root(session)
    await MenuItem(menu_id=1, title="About").append_to(session, root)

    errors = await MenuItem.count_errors(session, menu_id=1)
    if errors.is_broken:
        await MenuItem.fix_tree(session, menu_id=1)

Models that declare their own ``__table_args__`` replace the composite
index and should add ``NestedSetMixin.nestedset_index()`` themselves.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, ClassVar, Self

from sqlalchemy import ForeignKey, Index, Integer
from sqlalchemy.orm import Mapped, declared_attr, mapped_column

from nestedtree.core.database.nestedset import algebra
from nestedtree.core.database.nestedset.checker import TreeConsistencyChecker
from nestedtree.core.database.nestedset.operations import NodeOperations
from nestedtree.core.database.nestedset.queries import TreeQueries
from nestedtree.core.database.nestedset.rebuilder import TreeRebuilder
from nestedtree.core.database.nestedset.scope import Scope

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from sqlalchemy.ext.asyncio import AsyncSession

    from nestedtree.core.database.nestedset.checker import TreeErrors


class NestedSetMixin:
    """Nested-set columns and tree operations.

    Class configuration:
        __nestedset_scope__: Names of columns partitioning the table into
            independent trees (default: one tree per table).

    Provides:
        lft, rgt: Interval bounds (0 until the node is placed)
        parent_id: Self-referencing parent key (None for roots)
    """

    __allow_unmapped__ = True
    __nestedset_scope__: ClassVar[tuple[str, ...]] = ()

    lft: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Nested set left bound",
    )
    rgt: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Nested set right bound",
    )

    @declared_attr
    def parent_id(cls) -> Mapped[int | None]:
        return mapped_column(
            ForeignKey(f"{cls.__tablename__}.id"),
            nullable=True,
            comment="Parent node (NULL for roots)",
        )

    @declared_attr.directive
    def __table_args__(cls) -> tuple[Any, ...]:
        return (cls.nestedset_index(),)

    @classmethod
    def nestedset_index(cls) -> Index:
        """Composite index over the scope columns and the tree columns."""
        return Index(
            f"ix_{cls.__tablename__}_nestedset",
            *cls.__nestedset_scope__,
            "lft",
            "rgt",
            "parent_id",
        )

    # ------------------------------------------------------------------
    # Properties (no database access)
    # ------------------------------------------------------------------

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    @property
    def is_leaf(self) -> bool:
        return algebra.is_leaf(self.lft, self.rgt)

    @property
    def node_height(self) -> int:
        return algebra.node_height(self.lft, self.rgt) if self.lft and self.rgt else 2

    @property
    def descendant_count(self) -> int:
        return algebra.descendant_count(self.lft, self.rgt) if self.lft and self.rgt else 0

    @property
    def bounds(self) -> tuple[int, int]:
        return self.lft, self.rgt

    @property
    def nestedset_scope(self) -> Scope:
        return Scope.of(self)

    def is_descendant_of(self, other: NestedSetMixin) -> bool:
        if not self.nestedset_scope.matches(other.nestedset_scope):
            return False
        return algebra.is_descendant(self.lft, other.lft, other.rgt)

    def is_self_or_descendant_of(self, other: NestedSetMixin) -> bool:
        return self is other or self.is_descendant_of(other)

    def is_ancestor_of(self, other: NestedSetMixin) -> bool:
        return other.is_descendant_of(self)

    def is_child_of(self, other: NestedSetMixin) -> bool:
        return self.parent_id == other.id and self.nestedset_scope.matches(other.nestedset_scope)

    def is_sibling_of(self, other: NestedSetMixin) -> bool:
        if self is other or self.parent_id != other.parent_id:
            return False
        return self.nestedset_scope.matches(other.nestedset_scope)

    # ------------------------------------------------------------------
    # Structural operations
    # ------------------------------------------------------------------

    async def save_as_root(self, session: AsyncSession) -> bool:
        return await NodeOperations(type(self)).make_root(session, self)

    async def append_to(self, session: AsyncSession, parent: Self) -> bool:
        return await NodeOperations(type(self)).append_to(session, self, parent)

    async def prepend_to(self, session: AsyncSession, parent: Self) -> bool:
        return await NodeOperations(type(self)).prepend_to(session, self, parent)

    async def insert_before(self, session: AsyncSession, anchor: Self) -> bool:
        return await NodeOperations(type(self)).insert_before(session, self, anchor)

    async def insert_after(self, session: AsyncSession, anchor: Self) -> bool:
        return await NodeOperations(type(self)).insert_after(session, self, anchor)

    async def move_up(self, session: AsyncSession, amount: int | None = None) -> bool:
        return await NodeOperations(type(self)).move_up(session, self, amount)

    async def move_down(self, session: AsyncSession, amount: int | None = None) -> bool:
        return await NodeOperations(type(self)).move_down(session, self, amount)

    async def save_node(self, session: AsyncSession) -> Self:
        """Flush changes; an unplaced node becomes the last root."""
        return await NodeOperations(type(self)).save(session, self)

    async def delete_node(
        self, session: AsyncSession, *, hard: bool | None = None, deleted_by: str | None = None
    ) -> int:
        """Delete this node with its subtree (see ``NodeOperations.delete``)."""
        return await NodeOperations(type(self)).delete(
            session, self, hard=hard, deleted_by=deleted_by
        )

    async def restore_node(self, session: AsyncSession) -> int:
        return await NodeOperations(type(self)).restore(session, self)

    @classmethod
    async def create_tree(
        cls, session: AsyncSession, attributes: Mapping[str, Any], parent: Self | None = None
    ) -> Self:
        """Create a node and its nested ``children`` from plain attributes."""
        return await NodeOperations(cls).create(session, attributes, parent)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_children(self, session: AsyncSession) -> list[Self]:
        return await TreeQueries.for_node(self).children_of(session, self)

    async def get_descendants(self, session: AsyncSession, *, and_self: bool = False) -> list[Self]:
        return await TreeQueries.for_node(self).descendants_of(session, self, and_self=and_self)

    async def get_ancestors(self, session: AsyncSession, *, and_self: bool = False) -> list[Self]:
        return await TreeQueries.for_node(self).ancestors_of(session, self, and_self=and_self)

    async def get_siblings(self, session: AsyncSession, *, and_self: bool = False) -> list[Self]:
        return await TreeQueries.for_node(self).siblings_of(session, self, and_self=and_self)

    async def get_next_sibling(self, session: AsyncSession) -> Self | None:
        return await TreeQueries.for_node(self).sibling_at(session, self, 1, forward=True)

    async def get_prev_sibling(self, session: AsyncSession) -> Self | None:
        return await TreeQueries.for_node(self).sibling_at(session, self, 1, forward=False)

    @classmethod
    async def get_roots(cls, session: AsyncSession, **scope: Any) -> list[Self]:
        return await TreeQueries(cls, Scope.for_model(cls, **scope)).roots(session)

    # ------------------------------------------------------------------
    # Whole-tree maintenance
    # ------------------------------------------------------------------

    @classmethod
    def _tree_scope(cls, root: NestedSetMixin | None, values: dict[str, Any]) -> Scope:
        if root is not None and not values:
            return root.nestedset_scope
        return Scope.for_model(cls, **values)

    @classmethod
    async def count_errors(cls, session: AsyncSession, **scope: Any) -> TreeErrors:
        return await TreeConsistencyChecker(cls, Scope.for_model(cls, **scope)).count_errors(session)

    @classmethod
    async def is_broken(cls, session: AsyncSession, **scope: Any) -> bool:
        return (await cls.count_errors(session, **scope)).is_broken

    @classmethod
    async def fix_tree(cls, session: AsyncSession, root: Self | None = None, **scope: Any) -> int:
        """Recompute bounds from parent pointers.

        Without scope values, the scope of ``root`` (when given) is used.
        """
        tree_scope = cls._tree_scope(root, scope)
        return await TreeRebuilder(cls, tree_scope).fix_tree(session, root)

    @classmethod
    async def rebuild_tree(
        cls,
        session: AsyncSession,
        data: Sequence[Mapping[str, Any]],
        *,
        delete: bool = False,
        root: Self | None = None,
        **scope: Any,
    ) -> int:
        """Replace the scope (or ``root``'s subtree) with nested ``data``."""
        tree_scope = cls._tree_scope(root, scope)
        return await TreeRebuilder(cls, tree_scope).rebuild_tree(
            session, data, delete=delete, root=root
        )


__all__ = ["NestedSetMixin"]
