"""Declarative base and composable mixins for tree models.

This module provides the foundation tree-enabled models are built from:
- A declarative base with a consistent constraint naming convention
- An integer primary key mixin
- Soft delete support (deleted_at), which the nested-set engine honours
  by tombstoning subtrees instead of closing their interval gap

Examples:
    Simple tree model:
    class Category(Base, IntegerPKMixin, NestedSetMixin):
        __tablename__ = "categories"
        name: Mapped[str] = mapped_column(String(255))

    Soft-deletable tree model:
    class Page(Base, IntegerPKMixin, SoftDeleteMixin, NestedSetMixin):
        __tablename__ = "pages"
        title: Mapped[str] = mapped_column(String(255))
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, MetaData, String
from sqlalchemy.orm import DeclarativeBase, Mapped, declared_attr, mapped_column

# Consistent naming convention for database constraints
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    """Declarative base with automatic table naming.

    Provides:
    - Consistent constraint naming via NAMING_CONVENTION
    - Automatic table name generation from class name (lowercase)

    The automatic table naming can be overridden by setting __tablename__
    explicitly on the model class.
    """

    metadata = MetaData(naming_convention=NAMING_CONVENTION)

    @declared_attr.directive
    def __tablename__(cls) -> str:
        """Auto-derive table name from class name (lowercase)."""
        return cls.__name__.lower()


class IntegerPKMixin:
    """Integer auto-increment primary key.

    The nested-set engine orders duplicate checks by primary key, so any
    totally ordered key works; integers are the common case.

    Provides:
        id: Auto-incrementing integer primary key
    """

    __allow_unmapped__ = True

    id: Mapped[int] = mapped_column(
        primary_key=True,
        autoincrement=True,
        comment="Auto-incrementing integer primary key",
    )


class SoftDeleteMixin:
    """Soft delete support for logical (reversible) deletion.

    Instead of physically removing records from the database, sets
    a deleted_at timestamp. For tree models the row keeps its bounds,
    so a tombstoned subtree still occupies its interval until it is
    purged or restored.

    Provides:
        deleted_at: Timestamp of deletion (None if not deleted)
        deleted_by: User who performed the deletion
        is_deleted: Property to check if record is deleted
    """

    __allow_unmapped__ = True

    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        default=None,
        comment="Timestamp of soft deletion",
    )
    deleted_by: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        comment="User who performed the soft deletion",
    )

    @property
    def is_deleted(self) -> bool:
        """Check if this record has been soft-deleted."""
        return self.deleted_at is not None


def uses_soft_delete(model: type) -> bool:
    """Return True when ``model`` carries the soft delete columns."""
    return isinstance(model, type) and issubclass(model, SoftDeleteMixin)


__all__ = [
    "NAMING_CONVENTION",
    "Base",
    "IntegerPKMixin",
    "SoftDeleteMixin",
    "uses_soft_delete",
]
