"""
In-process array store for multicache.

Keeps entries in a dictionary guarded by a re-entrant lock.  Enforces
minute-based TTL expiration lazily on read and tracks hit/miss
statistics.  Intended as the nearest tier of a tiered cache.
"""

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel

from multicache.stores.base import CounterResult, RetrievesMultipleKeys, StoreStats

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CacheEntry(BaseModel):
    """A single stored value.

    Attributes:
        value: The cached value, stored as given.
        expires_at: UTC timestamp when the entry becomes stale, or
            ``None`` for entries stored forever.
    """

    value: Any = None
    expires_at: Optional[datetime] = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and now >= self.expires_at


class ArrayStore(RetrievesMultipleKeys):
    """Dictionary-backed store with TTL expiration.

    Args:
        _clock: Callable returning the current UTC time (testing).
    """

    def __init__(self, _clock: Optional[Callable[[], datetime]] = None) -> None:
        self._store: Dict[str, CacheEntry] = {}
        self._clock = _clock or _utcnow
        self._lock = threading.RLock()
        self._hits: int = 0
        self._misses: int = 0

    def get(self, key: str) -> Optional[Any]:
        """Look up a value by key.

        If the entry exists but has expired, it is deleted and counted
        as a miss.

        Args:
            key: The cache key to look up.

        Returns:
            The stored value on a hit, or ``None`` on a miss.
        """
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                self._misses += 1
                return None

            if entry.is_expired(self._clock()):
                del self._store[key]
                self._misses += 1
                logger.debug("Cache entry expired", extra={"cache_key": key})
                return None

            self._hits += 1
            return entry.value

    def put(self, key: str, value: Any, minutes: float) -> bool:
        """Store a value for a number of minutes.

        A non-positive TTL produces an entry that is already expired.

        Returns:
            Always ``True``.
        """
        expires_at = self._clock() + timedelta(minutes=minutes)
        with self._lock:
            self._store[key] = CacheEntry(value=value, expires_at=expires_at)
        logger.debug("Cache put", extra={"cache_key": key, "minutes": minutes})
        return True

    def forever(self, key: str, value: Any) -> bool:
        """Store a value with no expiry."""
        with self._lock:
            self._store[key] = CacheEntry(value=value, expires_at=None)
        logger.debug("Cache put forever", extra={"cache_key": key})
        return True

    def increment(self, key: str, value: int = 1) -> CounterResult:
        """Add *value* to the counter at *key*.

        A missing (or expired) key starts from zero with no expiry.  An
        existing entry keeps its expiry.

        Returns:
            The new counter value, or ``False`` if the stored value is
            not numeric.
        """
        with self._lock:
            entry = self._store.get(key)
            if entry is None or entry.is_expired(self._clock()):
                entry = CacheEntry(value=0, expires_at=None)
            current = entry.value
            if isinstance(current, bool) or not isinstance(current, (int, float)):
                logger.warning(
                    "Cannot increment non-numeric value",
                    extra={"cache_key": key, "value_type": type(current).__name__},
                )
                return False
            entry.value = current + value
            self._store[key] = entry
            return entry.value

    def decrement(self, key: str, value: int = 1) -> CounterResult:
        """Subtract *value* from the counter at *key*."""
        return self.increment(key, -value)

    def forget(self, key: str) -> bool:
        """Remove an entry by key.

        An expired entry is dropped but does not count as a removal,
        since :meth:`get` already treats it as absent.

        Returns:
            ``True`` if a live entry was removed, ``False`` otherwise.
        """
        with self._lock:
            entry = self._store.pop(key, None)
        if entry is None or entry.is_expired(self._clock()):
            return False
        logger.debug("Cache entry forgotten", extra={"cache_key": key})
        return True

    def flush(self) -> bool:
        """Remove all entries from the store.

        Returns:
            Always ``True``.
        """
        with self._lock:
            count = len(self._store)
            self._store.clear()
        logger.info("Cache flushed", extra={"entries_removed": count})
        return True

    def get_prefix(self) -> str:
        """Array stores never prefix keys."""
        return ""

    def stats(self) -> StoreStats:
        """Return aggregate store statistics."""
        with self._lock:
            total = self._hits + self._misses
            return StoreStats(
                hits=self._hits,
                misses=self._misses,
                hit_rate=self._hits / total if total > 0 else 0.0,
                entry_count=len(self._store),
            )

    def cleanup_expired(self) -> int:
        """Remove all expired entries from the store.

        Returns:
            Number of entries removed.
        """
        now = self._clock()
        with self._lock:
            expired_keys = [
                key
                for key, entry in self._store.items()
                if entry.is_expired(now)
            ]
            for key in expired_keys:
                del self._store[key]

        if expired_keys:
            logger.info(
                "Expired entries cleaned up",
                extra={"count": len(expired_keys)},
            )
        return len(expired_keys)

    @property
    def size(self) -> int:
        """Current number of entries in the store, expired ones included."""
        return len(self._store)
