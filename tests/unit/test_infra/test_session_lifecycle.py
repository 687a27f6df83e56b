"""Tests for engine and session lifecycle helpers."""

from __future__ import annotations

import pytest
from sqlalchemy import text

from nestedtree.infra.database import (
    close_database,
    get_async_session,
    get_engine,
    init_database,
)


@pytest.fixture
async def database(cli_database):
    yield cli_database
    await close_database()


@pytest.mark.asyncio
class TestSessionLifecycle:
    async def test_engine_is_cached_until_closed(self, database):
        engine = get_engine()

        assert get_engine() is engine
        assert str(engine.url) == database

        await close_database()
        assert get_engine() is not engine

    async def test_sqlite_foreign_keys_enabled(self, database):
        await init_database()

        async with get_async_session() as session:
            enabled = (await session.execute(text("PRAGMA foreign_keys"))).scalar()

        assert enabled == 1

    async def test_init_creates_missing_tables(self, database):
        import tree_models

        await init_database(tree_models.Category.metadata)

        async with get_async_session() as session:
            count = (await session.execute(text("SELECT count(*) FROM categories"))).scalar()

        assert count == 0

    async def test_close_without_engine_is_noop(self, database):
        await close_database()
        await close_database()
