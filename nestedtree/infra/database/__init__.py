"""Database infrastructure package.

Example:
    from nestedtree.infra.database import get_async_session, init_database

    await init_database(Base.metadata)
    async with get_async_session() as session:
        result = await session.execute(...)
"""

from .session import (
    close_database,
    get_async_session,
    get_engine,
    get_sessionmaker,
    init_database,
)

__all__ = [
    "close_database",
    "get_async_session",
    "get_engine",
    "get_sessionmaker",
    "init_database",
]
