"""Interval arithmetic for nested-set bounds.

Pure functions with no I/O. Every structural change of a nested-set tree
reduces to one of two bulk patches over the bound columns:

- a *gap* patch, which shifts every bound at or above a cut point by a
  fixed height (positive to open room, negative to close it), and
- a *move* patch, which swaps a subtree with the corridor of nodes lying
  between its origin and its destination.

The store turns these plans into a single ``UPDATE ... CASE`` statement;
the ``shift`` methods here apply the exact same mapping to a single value,
which is what the tests and in-memory callers use.

Example:
    >>> plan = plan_move(6, 7, 2)     # move [6, 7] so it starts at 2
    >>> [plan.shift(v) for v in (2, 3, 4, 5, 6, 7)]
    [4, 5, 6, 7, 2, 3]
"""

from __future__ import annotations

from dataclasses import dataclass

from nestedtree.core.database.exceptions import MoveIntoSelfError

#: Slots consumed by a single node without descendants.
LEAF_HEIGHT = 2


def node_height(lft: int, rgt: int) -> int:
    """Number of integer slots a node and its descendants occupy."""
    return rgt - lft + 1


def descendant_count(lft: int, rgt: int) -> int:
    """Number of descendants encoded by a node's bounds."""
    return node_height(lft, rgt) // 2 - 1


def is_leaf(lft: int, rgt: int) -> bool:
    return rgt == lft + 1


def is_descendant(lft: int, ancestor_lft: int, ancestor_rgt: int) -> bool:
    """Check whether a node starting at ``lft`` lies strictly inside an ancestor."""
    return ancestor_lft < lft < ancestor_rgt


def insert_at(height: int, position: int) -> tuple[int, int]:
    """Bounds for a fresh subtree of ``height`` slots inserted at ``position``.

    Must be paired with opening a gap of the same height at ``position`` so
    existing rows make room.

    Args:
        height: Slot count of the new subtree (2 for a single node).
        position: Left bound the subtree will start at.

    Returns:
        Tuple of (new_left, new_right).
    """
    if height < LEAF_HEIGHT or height % 2:
        msg = f"Subtree height must be an even number >= {LEAF_HEIGHT}, got {height}"
        raise ValueError(msg)
    return position, position + height - 1


@dataclass(slots=True, frozen=True)
class GapPlan:
    """Open (positive height) or close (negative height) a gap at ``cut``.

    Left and right bounds of the same row are tested against ``cut``
    independently: an ancestor whose left bound lies below the cut keeps it
    while its right bound grows, which is what lets ancestors stretch around
    an insertion.
    """

    cut: int
    height: int

    def shift(self, value: int) -> int:
        if value >= self.cut:
            return value + self.height
        return value

    def reversed(self) -> GapPlan:
        """Plan that undoes this one."""
        return GapPlan(self.cut, -self.height)


def plan_gap(cut: int, height: int) -> GapPlan:
    """Build a gap plan, rejecting the meaningless zero-height gap."""
    if height == 0:
        msg = "Gap height must be non-zero"
        raise ValueError(msg)
    return GapPlan(cut=cut, height=height)


@dataclass(slots=True, frozen=True)
class MovePlan:
    """Relocation of the subtree ``[lft, rgt]`` within ``[from_, to]``.

    ``distance`` is the signed displacement of the moved subtree and
    ``height`` the signed displacement of every other row in the corridor.

    Attributes:
        lft: Left bound of the subtree being moved.
        rgt: Right bound of the subtree being moved.
        from_: Lowest bound touched by the move.
        to: Highest bound touched by the move.
        height: Signed shift applied to corridor rows.
        distance: Signed shift applied to the moved subtree.
    """

    lft: int
    rgt: int
    from_: int
    to: int
    height: int
    distance: int

    @property
    def boundary(self) -> tuple[int, int]:
        """Inclusive range a row needs a bound in to be touched at all."""
        return self.from_, self.to

    @property
    def target(self) -> int:
        """Left bound of the moved subtree after the move."""
        return self.lft + self.distance

    def shift(self, value: int) -> int:
        if self.lft <= value <= self.rgt:
            return value + self.distance
        if self.from_ <= value <= self.to:
            return value + self.height
        return value


def plan_move(lft: int, rgt: int, position: int) -> MovePlan | None:
    """Plan moving the subtree ``[lft, rgt]`` so that it starts at ``position``.

    ``position`` is expressed in the coordinates *before* the move, the
    same way ``insert_at`` positions are: appending to a parent uses the
    parent's current right bound.

    Args:
        lft: Current left bound of the subtree.
        rgt: Current right bound of the subtree.
        position: Target position.

    Returns:
        The move plan, or None when no other node lies between origin and
        destination (the move is a no-op).

    Raises:
        MoveIntoSelfError: If ``position`` lies inside the subtree itself.
    """
    if lft < position <= rgt:
        raise MoveIntoSelfError(lft, rgt, position)

    from_ = min(lft, position)
    to = max(rgt, position - 1)
    height = node_height(lft, rgt)
    distance = to - from_ + 1 - height

    if distance == 0:
        return None

    if position > lft:
        height = -height
    else:
        distance = -distance

    return MovePlan(lft=lft, rgt=rgt, from_=from_, to=to, height=height, distance=distance)


__all__ = [
    "LEAF_HEIGHT",
    "GapPlan",
    "MovePlan",
    "descendant_count",
    "insert_at",
    "is_descendant",
    "is_leaf",
    "node_height",
    "plan_gap",
    "plan_move",
]
