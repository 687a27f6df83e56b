"""Modular Pydantic Settings v2 configuration.

Settings are split by domain (database, logging, nested-set engine), each
frozen and loaded through an LRU-cached loader:

    from nestedtree.core.settings import get_nestedset_settings

    settings = get_nestedset_settings()
    print(settings.warn_on_broken)

Configuration precedence (highest to lowest):
    1. init kwargs (testing/overrides)
    2. Environment variables
    3. .env file
    4. YAML/conf.d files (optional, local/dev)
    5. secrets_dir
"""

from __future__ import annotations

from .database import DatabaseSettings
from .loader import (
    clear_all_caches,
    get_db_settings,
    get_logging_settings,
    get_nestedset_settings,
)
from .logs import LoggingSettings
from .nestedset import NestedSetSettings

__all__ = [
    "DatabaseSettings",
    "LoggingSettings",
    "NestedSetSettings",
    "clear_all_caches",
    "get_db_settings",
    "get_logging_settings",
    "get_nestedset_settings",
]
