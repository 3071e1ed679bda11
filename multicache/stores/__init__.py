"""Cache store backends usable as tiers."""

from multicache.stores.array import ArrayStore, CacheEntry
from multicache.stores.base import RetrievesMultipleKeys, Store, StoreStats
from multicache.stores.redis_store import RedisStore

__all__ = [
    "ArrayStore",
    "CacheEntry",
    "RedisStore",
    "RetrievesMultipleKeys",
    "Store",
    "StoreStats",
]
