"""Tree models and assertion helpers shared by the test suite.

Three flavours cover the engine's variations:
- Category: one tree per table
- MenuItem: one tree per ``menu_id`` (scoped)
- Page: soft-deletable
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import Integer, String, select
from sqlalchemy.orm import Mapped, mapped_column

from nestedtree.core.database import Base, IntegerPKMixin, NestedSetMixin, SoftDeleteMixin
from nestedtree.core.database.nestedset import Scope

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


# ============================================================================
# Test Models
# ============================================================================


class Category(Base, IntegerPKMixin, NestedSetMixin):
    """Unscoped tree."""

    __tablename__ = "categories"

    name: Mapped[str] = mapped_column(String(100), default="")


class MenuItem(Base, IntegerPKMixin, NestedSetMixin):
    """Tree scoped by menu."""

    __tablename__ = "menu_items"
    __nestedset_scope__ = ("menu_id",)

    menu_id: Mapped[int] = mapped_column(Integer)
    title: Mapped[str] = mapped_column(String(100), default="")


class Page(Base, IntegerPKMixin, SoftDeleteMixin, NestedSetMixin):
    """Soft-deletable tree."""

    __tablename__ = "pages"

    title: Mapped[str] = mapped_column(String(100), default="")


# ============================================================================
# Helpers
# ============================================================================


async def rows(session: AsyncSession, model: type, **scope: Any) -> list[tuple[Any, int, int, Any]]:
    """Stored ``(id, lft, rgt, parent_id)`` of every row in scope, by ``lft``.

    Reads columns directly so stale ORM instances cannot mask the result.
    """
    stmt = select(model.id, model.lft, model.rgt, model.parent_id)
    stmt = Scope.for_model(model, **scope).apply(stmt, model).order_by(model.lft)
    result = await session.execute(stmt)
    return [tuple(row) for row in result.all()]


async def bounds(session: AsyncSession, node: Any) -> tuple[int, int]:
    """Stored ``(lft, rgt)`` of one node."""
    model = type(node)
    stmt = select(model.lft, model.rgt).where(model.id == node.id)
    lft, rgt = (await session.execute(stmt)).one()
    return lft, rgt


async def build(session: AsyncSession, model: type, spec: list[Any], **values: Any) -> dict[str, Any]:
    """Create nodes from ``[label, [children...]]`` pairs, returning them by label.

    Every node is reloaded at the end, so the returned bounds are current.

    Example:
        nodes = await build(session, Category, [("root", [("a", []), ("b", [])])])
    """
    label_attr = "name" if model is Category else "title"
    created: dict[str, Any] = {}

    async def add(items: list[Any], parent: Any | None) -> None:
        for label, children in items:
            node = model(**{label_attr: label, **values})
            if parent is None:
                await node.save_as_root(session)
            else:
                await node.append_to(session, parent)
            created[label] = node
            await add(children, node)

    await add(spec, None)
    for node in created.values():
        await session.refresh(node)
    return created
