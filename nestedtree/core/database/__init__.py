"""Core database package: declarative base, mixins and the tree engine.

Base Classes and Mixins:
    - Base: Declarative base with auto table naming
    - IntegerPKMixin: Integer primary key
    - SoftDeleteMixin: Soft delete support with deleted_at
    - NestedSetMixin: Nested-set tree columns and operations

Exceptions:
    - RepositoryError: Base exception for database operations
    - NotFoundError: Entity not found
    - TreeStructureError: Rejected tree operation (cycle, scope mismatch, ...)

Example:
    from nestedtree.core.database import Base, IntegerPKMixin, NestedSetMixin

    class Category(Base, IntegerPKMixin, NestedSetMixin):
        name: Mapped[str] = mapped_column(String(100))

    async with get_async_session() as session:
        root = Category(name="Root")
        await root.save_as_root(session)
        await session.commit()
"""

from .base import NAMING_CONVENTION, Base, IntegerPKMixin, SoftDeleteMixin, uses_soft_delete
from .exceptions import (
    CyclicMoveError,
    InvalidScopeError,
    MoveIntoSelfError,
    NodeNotPersistedError,
    NotFoundError,
    RepositoryError,
    ScopeMismatchError,
    SoftDeleteNotSupportedError,
    TreeStructureError,
)
from .nestedset import (
    NestedSetMixin,
    NodeOperations,
    Scope,
    TreeConsistencyChecker,
    TreeErrors,
    TreeQueries,
    TreeRebuilder,
)

__all__ = [
    "NAMING_CONVENTION",
    "Base",
    "CyclicMoveError",
    "IntegerPKMixin",
    "InvalidScopeError",
    "MoveIntoSelfError",
    "NestedSetMixin",
    "NodeNotPersistedError",
    "NodeOperations",
    "NotFoundError",
    "RepositoryError",
    "Scope",
    "ScopeMismatchError",
    "SoftDeleteMixin",
    "SoftDeleteNotSupportedError",
    "TreeConsistencyChecker",
    "TreeErrors",
    "TreeQueries",
    "TreeRebuilder",
    "TreeStructureError",
    "uses_soft_delete",
]
