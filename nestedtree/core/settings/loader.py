"""LRU-cached settings loaders.

Settings are loaded and validated once, then cached for the lifetime of the process.

Usage:
    from nestedtree.core.settings.loader import get_db_settings

    settings = get_db_settings()  # First call: loads and validates
    settings = get_db_settings()  # Subsequent calls: returns cached instance

Testing:
    In tests, clear the caches to force reload:
    clear_all_caches()
"""

from __future__ import annotations

from functools import lru_cache

from .database import DatabaseSettings
from .logs import LoggingSettings
from .nestedset import NestedSetSettings


@lru_cache(maxsize=1)
def get_db_settings() -> DatabaseSettings:
    """Get cached database settings.

    Returns:
        Validated and frozen DatabaseSettings instance.
    """
    return DatabaseSettings()


@lru_cache(maxsize=1)
def get_logging_settings() -> LoggingSettings:
    """Get cached logging settings.

    Returns:
        Validated and frozen LoggingSettings instance.
    """
    return LoggingSettings()


@lru_cache(maxsize=1)
def get_nestedset_settings() -> NestedSetSettings:
    """Get cached tree engine settings.

    Returns:
        Validated and frozen NestedSetSettings instance.
    """
    return NestedSetSettings()


def clear_all_caches() -> None:
    """Clear all settings caches.

    Useful for testing or when you need to force reload settings.
    """
    get_db_settings.cache_clear()
    get_logging_settings.cache_clear()
    get_nestedset_settings.cache_clear()
