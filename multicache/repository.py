"""
Cache repository: convenience operations layered over a single store.

The repository itself satisfies the :class:`~multicache.stores.base.Store`
protocol, so a repository resolved from the manager can be used as a
tier of a :class:`~multicache.tiered.TieredCache`.
"""

import logging
from typing import Any, Callable

from multicache.stores.base import CounterResult, RetrievesMultipleKeys, Store

logger = logging.getLogger(__name__)


class Repository(RetrievesMultipleKeys):
    """Wraps a store and adds read-through helpers.

    Args:
        store: The store every operation delegates to.
    """

    def __init__(self, store: Store) -> None:
        self._store = store

    def get_store(self) -> Store:
        """Return the wrapped store."""
        return self._store

    def get(self, key: str, default: Any = None) -> Any:
        """Retrieve a value, or *default* when the key is missing.

        A callable *default* is only invoked on a miss.
        """
        value = self._store.get(key)
        if value is None:
            return default() if callable(default) else default
        return value

    def has(self, key: str) -> bool:
        return self._store.get(key) is not None

    def missing(self, key: str) -> bool:
        return not self.has(key)

    def pull(self, key: str, default: Any = None) -> Any:
        """Retrieve a value and remove it from the store."""
        value = self.get(key, default)
        self._store.forget(key)
        return value

    def put(self, key: str, value: Any, minutes: float) -> Any:
        return self._store.put(key, value, minutes)

    def add(self, key: str, value: Any, minutes: float) -> bool:
        """Store a value only if the key is not already present.

        Returns:
            ``True`` if the value was stored.
        """
        if self.has(key):
            return False
        self._store.put(key, value, minutes)
        return True

    def forever(self, key: str, value: Any) -> Any:
        return self._store.forever(key, value)

    def remember(self, key: str, minutes: float, callback: Callable[[], Any]) -> Any:
        """Return the cached value, or compute, store and return it.

        Args:
            key: The cache key.
            minutes: TTL for a freshly computed value.
            callback: Produces the value on a miss.
        """
        value = self._store.get(key)
        if value is not None:
            return value
        value = callback()
        self._store.put(key, value, minutes)
        logger.debug("Cache value remembered", extra={"cache_key": key})
        return value

    def remember_forever(self, key: str, callback: Callable[[], Any]) -> Any:
        """Like :meth:`remember`, storing the computed value with no expiry."""
        value = self._store.get(key)
        if value is not None:
            return value
        value = callback()
        self._store.forever(key, value)
        return value

    def increment(self, key: str, value: int = 1) -> CounterResult:
        return self._store.increment(key, value)

    def decrement(self, key: str, value: int = 1) -> CounterResult:
        return self._store.decrement(key, value)

    def forget(self, key: str) -> bool:
        return self._store.forget(key)

    def flush(self) -> bool:
        return self._store.flush()

    def get_prefix(self) -> str:
        return self._store.get_prefix()
