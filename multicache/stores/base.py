"""
Store abstraction for multicache tiers.

Provides the backend-agnostic :class:`Store` protocol every tier must
satisfy, a mixin that derives multi-key operations from the single-key
ones, and the statistics model shared by the bundled stores.
"""

from typing import Any, Dict, Iterable, Optional, Protocol, Union, runtime_checkable

from pydantic import BaseModel

# Result of increment/decrement: the new value, or False when the store
# could not apply the update (e.g. the stored value is not numeric).
CounterResult = Union[int, float, bool]


@runtime_checkable
class Store(Protocol):
    """Protocol for cache store backends.

    TTLs are expressed in minutes.  A store is responsible for its own
    key prefixing, serialization and expiry.
    """

    def get(self, key: str) -> Optional[Any]:
        """Return the stored value, or ``None`` when absent or expired."""
        ...

    def put(self, key: str, value: Any, minutes: float) -> Any:
        """Store *value* for *minutes* minutes."""
        ...

    def increment(self, key: str, value: int = 1) -> CounterResult:
        """Increment the stored counter and return its new value."""
        ...

    def decrement(self, key: str, value: int = 1) -> CounterResult:
        """Decrement the stored counter and return its new value."""
        ...

    def forever(self, key: str, value: Any) -> Any:
        """Store *value* with no expiry."""
        ...

    def forget(self, key: str) -> bool:
        """Remove *key*. Return ``True`` only if something was removed."""
        ...

    def flush(self) -> bool:
        """Remove every entry. Return ``True`` on success."""
        ...

    def get_prefix(self) -> str:
        """Return the key prefix this store applies."""
        ...


class RetrievesMultipleKeys:
    """Multi-key helpers built on a store's own ``get`` and ``put``."""

    def many(self, keys: Iterable[str]) -> Dict[str, Optional[Any]]:
        """Retrieve several keys at once.

        Keys that are not found map to ``None``.
        """
        return {key: self.get(key) for key in keys}  # type: ignore[attr-defined]

    def put_many(self, values: Dict[str, Any], minutes: float) -> None:
        """Store several key/value pairs for *minutes* minutes."""
        for key, value in values.items():
            self.put(key, value, minutes)  # type: ignore[attr-defined]


class StoreStats(BaseModel):
    """Aggregate store statistics.

    Attributes:
        hits: Total lookup hit count.
        misses: Total lookup miss count.
        hit_rate: Ratio of hits to total lookups (0.0 if no lookups).
        entry_count: Current number of entries in the store.
    """

    hits: int = 0
    misses: int = 0
    hit_rate: float = 0.0
    entry_count: int = 0
