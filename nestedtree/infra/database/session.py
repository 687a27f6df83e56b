"""Async engine and session management.

The engine is created lazily from ``DatabaseSettings`` so that tests and
the CLI can point it at another database (``DB_URL``) before first use.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import TYPE_CHECKING

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from nestedtree.core.settings import get_db_settings

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from sqlalchemy import MetaData

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_engine() -> AsyncEngine:
    """Get the process-wide async engine.

    SQLite connections get foreign key enforcement turned on, so the
    self-referencing parent key behaves as it does on other databases.
    """
    db_settings = get_db_settings()
    engine = create_async_engine(
        db_settings.url,
        echo=db_settings.echo,
        pool_pre_ping=db_settings.pool_pre_ping,
    )

    if db_settings.is_sqlite:

        @event.listens_for(engine.sync_engine, "connect")
        def _enable_sqlite_foreign_keys(dbapi_conn, connection_record) -> None:
            _ = connection_record
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    logger.debug("Database engine created", extra={"driver": engine.dialect.driver})
    return engine


@lru_cache(maxsize=1)
def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    """Session factory bound to ``get_engine()``."""
    return async_sessionmaker(
        get_engine(),
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@asynccontextmanager
async def get_async_session() -> AsyncGenerator[AsyncSession]:
    """Get async database session.

    Yields:
        Database session that is automatically closed. Commit explicitly.

    Example:
        async with get_async_session() as session:
            await node.append_to(session, parent)
            await session.commit()
    """
    async with get_sessionmaker()() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_database(metadata: MetaData | None = None) -> None:
    """Check connectivity and optionally create missing tables.

    Args:
        metadata: Tables to create when absent (``checkfirst``); None only
            verifies the connection.

    Raises:
        sqlalchemy.exc.OperationalError: If the database is unreachable.
    """
    engine = get_engine()
    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
            if metadata is not None:
                await conn.run_sync(metadata.create_all, checkfirst=True)
    except Exception as e:
        logger.error(
            "Failed to connect to database",
            extra={"driver": engine.dialect.driver, "error": str(e)},
        )
        raise

    logger.info(
        "Database connection established",
        extra={"driver": engine.dialect.driver, "tables_created": metadata is not None},
    )


async def close_database() -> None:
    """Dispose of the engine and forget it, so the next use rebuilds it."""
    if get_engine.cache_info().currsize == 0:
        return
    logger.info("Closing database connection")
    await get_engine().dispose()
    get_sessionmaker.cache_clear()
    get_engine.cache_clear()


__all__ = [
    "close_database",
    "get_async_session",
    "get_engine",
    "get_sessionmaker",
    "init_database",
]
