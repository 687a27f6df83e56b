"""Utilities for running async operations in CLI commands."""

import asyncio
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import Any


def coro[T](f: Callable[..., Awaitable[T]]) -> Callable[..., T]:
    """
    Decorator that makes an async function synchronous for Click.

    The engine is disposed before the event loop closes, so pooled
    connections never outlive the loop they were opened on.

    Usage:
        @tree.command()
        @coro
        async def check(model: str):
            async with get_async_session() as session:
                ...
    """

    @wraps(f)
    def wrapper(*args: Any, **kwargs: Any) -> T:
        return asyncio.run(_run_and_dispose(f(*args, **kwargs)))

    return wrapper


async def _run_and_dispose[T](awaitable: Awaitable[T]) -> T:
    from nestedtree.infra.database import close_database

    try:
        return await awaitable
    finally:
        await close_database()
