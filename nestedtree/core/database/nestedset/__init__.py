"""Nested-set tree engine.

Trees are stored as integer intervals: every node holds a left and right
bound, and a node's descendants are exactly the rows whose bounds lie
strictly inside its own. Reading a subtree is a single range query;
structural changes are single bulk ``UPDATE`` statements that shift the
bounds of every affected row.

Components:
    - algebra: Pure bound arithmetic (gap and move plans)
    - Scope: Column equality partition confining every statement
    - BoundsStore: Scoped reads and bulk bound patches
    - NodeOperations: Root/child/sibling placement, delete and restore
    - TreeQueries: Descendant, ancestor, sibling and depth queries
    - TreeConsistencyChecker: Invariant violation counts
    - TreeRebuilder: Repair from parent pointers, rebuild from nested data
    - NestedSetMixin: Declarative columns plus model-level convenience API

Example:
    from nestedtree.core.database.nestedset import NestedSetMixin

    class Category(Base, IntegerPKMixin, NestedSetMixin):
        name: Mapped[str] = mapped_column(String(100))
"""

from .algebra import GapPlan, MovePlan, plan_gap, plan_move
from .checker import TreeConsistencyChecker, TreeErrors
from .mixins import NestedSetMixin
from .operations import NodeOperations
from .protocols import TreeNode
from .queries import QueryContext, TreeQueries
from .rebuilder import TreeRebuilder
from .scope import Scope, assert_same_scope
from .store import BoundsStore, NodeBounds

__all__ = [
    "BoundsStore",
    "GapPlan",
    "MovePlan",
    "NestedSetMixin",
    "NodeBounds",
    "NodeOperations",
    "QueryContext",
    "Scope",
    "TreeConsistencyChecker",
    "TreeErrors",
    "TreeNode",
    "TreeQueries",
    "TreeRebuilder",
    "assert_same_scope",
    "plan_gap",
    "plan_move",
]
