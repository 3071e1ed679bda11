"""
Tiered cache facade for multicache.

Aggregates an ordered list of stores behind the single-store interface.
Reads consult the tiers nearest first and repair every tier that missed
once a value is found further down.  Writes, deletes, flushes and
counter updates fan out to every tier in order.
"""

import logging
from typing import Any, Callable, List, Mapping, Optional, Sequence

from multicache.exceptions import ConfigurationError
from multicache.stores.base import CounterResult, RetrievesMultipleKeys, Store

logger = logging.getLogger(__name__)

# Values promoted into a tier that missed are kept for one day.
REPAIR_TTL_MINUTES = 1440

StoreResolver = Callable[[str], Store]


class TieredCache(RetrievesMultipleKeys):
    """Multi-level cache over an ordered list of stores.

    Index 0 is the nearest (fastest) tier: it is read first and is the
    first tier repaired after a lower hit.  The tier list is fixed at
    construction.

    Args:
        stores: Ordered store names, nearest tier first.
        resolver: Maps a store name to a store instance.  Lookup errors
            propagate unchanged.
        prefix: Reported by :meth:`get_prefix`.  Never applied to keys;
            each tier prefixes its own keys.

    Raises:
        ConfigurationError: If *stores* is empty.
    """

    def __init__(
        self,
        stores: Sequence[str],
        resolver: StoreResolver,
        prefix: str = "",
    ) -> None:
        if not stores:
            raise ConfigurationError("No stores are defined for tiered cache.")

        self._names: List[str] = list(stores)
        self._tiers: List[Store] = [resolver(name) for name in self._names]
        self._tier_count = len(self._tiers)
        self._prefix = prefix or ""

        logger.debug(
            "Tiered cache created",
            extra={"tiers": self._names, "prefix": self._prefix},
        )

    @classmethod
    def from_config(cls, config: Mapping[str, Any], resolver: StoreResolver) -> "TieredCache":
        """Build a tiered cache from ``{"stores": [...], "prefix": "..."}``."""
        stores = config.get("stores")
        if not stores:
            raise ConfigurationError("No stores are defined for tiered cache.")
        if isinstance(stores, str):
            raise ConfigurationError("'stores' must be a list of store names, not a string.")
        return cls(stores, resolver, prefix=config.get("prefix") or "")

    def get_tiers(self) -> List[Store]:
        """Return the resolved tiers, nearest first."""
        return list(self._tiers)

    def get_tier_names(self) -> List[str]:
        """Return the configured store names, nearest first."""
        return list(self._names)

    def get_tier_count(self) -> int:
        return self._tier_count

    def get(self, key: str) -> Optional[Any]:
        """Retrieve a value, reading tiers nearest first.

        The first non-``None`` value wins.  When that value is truthy it
        is written into every tier consulted before the hit with a TTL
        of :data:`REPAIR_TTL_MINUTES`.  Falsy values (``""``, ``0``,
        ``False``, empty containers) are returned without repair.

        Args:
            key: The cache key to look up.

        Returns:
            The value, or ``None`` if no tier holds the key.
        """
        missed: List[int] = []
        found: Optional[Any] = None

        for index, tier in enumerate(self._tiers):
            value = tier.get(key)
            if value is not None:
                found = value
                break
            missed.append(index)

        if found:
            for index in missed:
                self._repair(index, key, found)

        return found

    def _repair(self, index: int, key: str, value: Any) -> None:
        """Write a value found lower down into a tier that missed it."""
        try:
            self._tiers[index].put(key, value, REPAIR_TTL_MINUTES)
        except Exception as e:
            logger.warning(
                "Tier repair write failed",
                extra={"cache_key": key, "tier": self._names[index], "error": str(e)},
            )
            return
        logger.debug(
            "Tier repaired",
            extra={"cache_key": key, "tier": self._names[index]},
        )

    def put(self, key: str, value: Any, minutes: float) -> None:
        """Store a value in every tier for *minutes* minutes."""
        for tier in self._tiers:
            tier.put(key, value, minutes)

    def forever(self, key: str, value: Any) -> None:
        """Store a value in every tier with no expiry."""
        for tier in self._tiers:
            tier.forever(key, value)

    def increment(self, key: str, value: int = 1) -> Optional[CounterResult]:
        """Increment the counter in every tier.

        Each tier applies the update to its own copy of the counter.

        Returns:
            Whatever the last tier returned; the other results are
            discarded.
        """
        result: Optional[CounterResult] = None
        for tier in self._tiers:
            result = tier.increment(key, value)
        return result

    def decrement(self, key: str, value: int = 1) -> Optional[CounterResult]:
        """Decrement the counter in every tier; returns the last tier's result."""
        result: Optional[CounterResult] = None
        for tier in self._tiers:
            result = tier.decrement(key, value)
        return result

    def forget(self, key: str) -> bool:
        """Remove a key from every tier.

        Every tier is called even after a failure.

        Returns:
            ``True`` only if every tier reported a removal.
        """
        forgotten = 0
        for tier in self._tiers:
            if tier.forget(key):
                forgotten += 1
        if forgotten != self._tier_count:
            logger.debug(
                "Key not removed from every tier",
                extra={"cache_key": key, "forgotten": forgotten, "tiers": self._tier_count},
            )
        return forgotten == self._tier_count

    def flush(self) -> bool:
        """Flush every tier.

        Returns:
            ``True`` only if every tier flushed successfully.
        """
        flushed = 0
        for tier in self._tiers:
            if tier.flush():
                flushed += 1
        if flushed != self._tier_count:
            logger.warning(
                "Flush failed on some tiers",
                extra={"flushed": flushed, "tiers": self._tier_count},
            )
        return flushed == self._tier_count

    def get_prefix(self) -> str:
        return self._prefix
