"""Database and tree-structure exceptions.

Custom exceptions for repository and nested-set operations that provide
better error messages and typing than raw SQLAlchemy exceptions.

Structural errors are raised synchronously, before any statement is sent
to the database, so a rejected operation never leaves the tree half-updated.
"""
from __future__ import annotations

from typing import Any


class RepositoryError(Exception):
    """Base exception for repository operations.

    Raised when a repository operation fails due to programming
    errors, configuration issues, or unexpected states.

    This is distinct from data-related errors (NotFoundError) and
    indicates a problem with the repository itself.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        """Initialize repository error.

        Args:
            message: Error description
            details: Additional context about the error
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Format error message with details."""
        if self.details:
            details_str = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class NotFoundError(RepositoryError):
    """Entity not found in database.

    Raised when a node referenced by key does not exist in the scope
    being operated on, including rebuild input that names an unknown key.

    Attributes:
        model_name: Name of the model class that wasn't found
        identifier: The key/value that was searched for
    """

    def __init__(self, model_name: str, identifier: dict[str, Any]):
        """Initialize not found error.

        Args:
            model_name: Name of the model (e.g., "Category")
            identifier: Key-value pairs used in the search (e.g., {"id": 123})
        """
        self.model_name = model_name
        self.identifier = identifier

        id_str = ", ".join(f"{k}={v!r}" for k, v in identifier.items())
        message = f"{model_name} not found with {id_str}"

        super().__init__(message, details={"model": model_name, **identifier})

    def __repr__(self) -> str:
        """Repr for debugging."""
        return f"NotFoundError(model={self.model_name!r}, identifier={self.identifier!r})"


class TreeStructureError(RepositoryError):
    """A structural tree operation was rejected.

    Base class for precondition violations (cycles, cross-scope moves,
    unpersisted anchors) and arithmetic impossibilities. These are caller
    errors and are never retried.
    """


class NodeNotPersistedError(TreeStructureError):
    """The anchor or parent node has no bounds yet."""

    def __init__(self, model_name: str, key: Any = None):
        super().__init__(
            f"{model_name} must exist in the tree before it can be used as a reference",
            details={"model": model_name, "id": key},
        )


class CyclicMoveError(TreeStructureError):
    """A node was positioned relative to itself or one of its descendants."""

    def __init__(self, model_name: str, node_key: Any, target_key: Any):
        super().__init__(
            f"{model_name} cannot be positioned relative to itself or its descendant",
            details={"model": model_name, "id": node_key, "target": target_key},
        )


class ScopeMismatchError(TreeStructureError):
    """Two nodes from different scopes were combined in one operation."""

    def __init__(self, model_name: str, left: dict[str, Any], right: dict[str, Any]):
        super().__init__(
            f"{model_name} nodes must belong to the same scope",
            details={"model": model_name, "scope": left, "other_scope": right},
        )


class MoveIntoSelfError(TreeStructureError):
    """The move target position lies inside the subtree being moved."""

    def __init__(self, lft: int, rgt: int, position: int):
        self.lft = lft
        self.rgt = rgt
        self.position = position
        super().__init__(
            "Cannot move node into itself",
            details={"lft": lft, "rgt": rgt, "position": position},
        )


class InvalidScopeError(TreeStructureError):
    """Scope values are missing or name columns outside the model's scope."""

    def __init__(self, message: str, model_name: str, columns: list[str] | None = None):
        details: dict[str, Any] = {"model": model_name}
        if columns:
            details["columns"] = columns
        super().__init__(message, details=details)


class SoftDeleteNotSupportedError(RepositoryError):
    """A tombstone operation was requested on a model without soft delete."""

    def __init__(self, model_name: str):
        super().__init__(
            f"{model_name} does not support soft deletion (no deleted_at column)",
            details={"model": model_name},
        )


__all__ = [
    "CyclicMoveError",
    "InvalidScopeError",
    "MoveIntoSelfError",
    "NodeNotPersistedError",
    "NotFoundError",
    "RepositoryError",
    "ScopeMismatchError",
    "SoftDeleteNotSupportedError",
    "TreeStructureError",
]
