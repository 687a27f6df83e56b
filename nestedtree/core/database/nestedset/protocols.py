"""Structural protocol for models the nested-set engine can operate on."""

from __future__ import annotations

from typing import Any, ClassVar, Protocol


class TreeNode(Protocol):
    """Capability a mapped model must provide to be managed as a nested set.

    ``NestedSetMixin`` satisfies it; the engine classes are generic over
    this protocol so the type checker, not a runtime check, rejects
    models without bound columns.
    """

    __nestedset_scope__: ClassVar[tuple[str, ...]]

    id: Any
    lft: int
    rgt: int
    parent_id: Any


__all__ = ["TreeNode"]
