"""Tiered (multi-level) caching over an ordered list of stores."""

from multicache.exceptions import (
    ConfigurationError,
    MultiCacheException,
    StoreError,
    StoreNotFoundError,
)
from multicache.manager import CacheManager, get_cache_manager, reset_cache_manager
from multicache.repository import Repository
from multicache.tiered import REPAIR_TTL_MINUTES, TieredCache

__all__ = [
    "CacheManager",
    "ConfigurationError",
    "MultiCacheException",
    "REPAIR_TTL_MINUTES",
    "Repository",
    "StoreError",
    "StoreNotFoundError",
    "TieredCache",
    "get_cache_manager",
    "reset_cache_manager",
]
