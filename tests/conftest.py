"""Pytest configuration and shared fixtures.

Organization:
    - Settings Fixtures: cache isolation for pydantic-settings loaders
    - Database Fixtures: in-memory SQLite engine and session with tree tables
    - CLI Fixtures: Click runner and an on-disk database for commands
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import TYPE_CHECKING

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine

if TYPE_CHECKING:
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncEngine


# ============================================================================
# Settings Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def clear_settings_caches():
    """Reload settings for every test so env overrides apply."""
    from nestedtree.core.settings import clear_all_caches

    clear_all_caches()
    yield
    clear_all_caches()


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine]:
    """Create async SQLAlchemy engine with in-memory SQLite.

    Yields:
        Async SQLAlchemy engine connected to in-memory SQLite.
    """
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)

    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
async def db_session(db_engine: AsyncEngine) -> AsyncGenerator[AsyncSession]:
    """Create async database session with the tree test tables.

    Yields:
        Async database session; the tables are dropped afterwards.

    Example:
        async def test_root(db_session):
            root = Category(name="root")
            await root.save_as_root(db_session)
            assert (root.lft, root.rgt) == (1, 2)
    """
    import tree_models  # noqa: F401  (registers the test tables)

    from nestedtree.core.database import Base

    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSession(db_engine, expire_on_commit=False) as session:
        try:
            yield session
        finally:
            await session.rollback()

    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


# ============================================================================
# CLI Fixtures
# ============================================================================


@pytest.fixture
def cli_runner():
    """Create Click CLI runner for testing commands."""
    from click.testing import CliRunner

    return CliRunner()


@pytest.fixture
def cli_database(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> str:
    """Point DatabaseSettings at a fresh SQLite file.

    Returns:
        The database URL in use.
    """
    url = f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}"
    monkeypatch.setenv("DB_URL", url)
    return url
