"""
Redis-backed store for multicache.

Implements the same interface as :class:`~multicache.stores.array.ArrayStore`
so either can serve as a tier.  Keys are ``{prefix}:{key}``.  Integers and
floats are stored as plain numbers so ``INCRBY`` and ``DECRBY`` operate on
them directly; every other value is pickled and base64 encoded, so it comes
back exactly as it was stored.
"""

import base64
import logging
import pickle
import re
from typing import Any, Callable, Optional, TypeVar

import redis

from multicache.exceptions import StoreError
from multicache.stores.base import CounterResult, RetrievesMultipleKeys

logger = logging.getLogger(__name__)

T = TypeVar("T")

_FLUSH_BATCH_SIZE = 500

# Errors pickle raises for values it cannot encode (locks, lambdas, sockets).
_ENCODE_ERRORS = (pickle.PicklingError, TypeError, AttributeError)

_GLOB_SPECIAL = re.compile(r"([*?\[\]\\])")


def _serialize(value: Any) -> str:
    """Encode a value for Redis storage."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return repr(value)
    return base64.b64encode(pickle.dumps(value)).decode("ascii")


def _deserialize(data: str) -> Any:
    """Decode a stored value, falling back to the raw string."""
    try:
        return int(data)
    except ValueError:
        pass
    try:
        return float(data)
    except ValueError:
        pass
    try:
        return pickle.loads(base64.b64decode(data, validate=True))
    except Exception:
        # Written by another client in a format we do not own.
        return data


def _escape_glob(text: str) -> str:
    """Escape Redis glob metacharacters so *text* matches literally."""
    return _GLOB_SPECIAL.sub(r"\\\1", text)


class RedisStore(RetrievesMultipleKeys):
    """Redis store with minute-based TTLs.

    Backend errors, and values pickle cannot encode, are logged and
    reported as failure results (``None`` for reads, ``False`` for
    writes) unless *strict* is set, in which case they are raised as
    :class:`StoreError`.

    Args:
        redis_url: Redis connection URL (e.g. redis://localhost:6379/0).
        prefix: Prefix for all keys; empty for none.
        strict: Raise ``StoreError`` instead of returning failure results.
        _redis_client: Pre-built client, bypassing *redis_url* (testing).
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        prefix: str = "",
        strict: bool = False,
        _redis_client: Optional[Any] = None,
    ) -> None:
        if _redis_client is not None:
            self._client = _redis_client
        else:
            self._client = redis.from_url(redis_url, decode_responses=True)
        self._prefix = prefix.rstrip(":")
        self._strict = strict

    def _key(self, key: str) -> str:
        """Return the full Redis key for a cache key."""
        return f"{self._prefix}:{key}" if self._prefix else key

    def _guard(self, operation: str, key: Optional[str], call: Callable[[], T], failure: T) -> T:
        try:
            return call()
        except redis.RedisError as e:
            logger.warning(
                "Redis %s failed",
                operation,
                extra={"cache_key": key, "error": str(e)},
            )
            if self._strict:
                raise StoreError(f"Redis {operation} failed for key {key!r}") from e
            return failure

    def _encode(self, operation: str, key: str, value: Any) -> Optional[str]:
        """Serialize *value*, reporting unencodable values like backend errors."""
        try:
            return _serialize(value)
        except _ENCODE_ERRORS as e:
            logger.warning(
                "Redis %s value could not be encoded",
                operation,
                extra={"cache_key": key, "value_type": type(value).__name__, "error": str(e)},
            )
            if self._strict:
                raise StoreError(f"Redis {operation} could not encode value for key {key!r}") from e
            return None

    def get(self, key: str) -> Optional[Any]:
        """Look up a value by key.

        Returns:
            The decoded value on a hit, or ``None`` on a miss or on error.
        """
        data = self._guard("get", key, lambda: self._client.get(self._key(key)), None)
        if data is None:
            return None
        return _deserialize(data)

    def put(self, key: str, value: Any, minutes: float) -> bool:
        """Store a value for a number of minutes (at least one second)."""
        seconds = max(1, int(minutes * 60))
        data = self._encode("put", key, value)
        if data is None:
            return False
        return self._guard(
            "put",
            key,
            lambda: bool(self._client.setex(self._key(key), seconds, data)),
            False,
        )

    def forever(self, key: str, value: Any) -> bool:
        """Store a value with no expiry."""
        data = self._encode("forever", key, value)
        if data is None:
            return False
        return self._guard(
            "forever",
            key,
            lambda: bool(self._client.set(self._key(key), data)),
            False,
        )

    def increment(self, key: str, value: int = 1) -> CounterResult:
        """Increment the integer at *key*; ``False`` if Redis rejects it."""
        return self._guard(
            "increment",
            key,
            lambda: self._client.incrby(self._key(key), value),
            False,
        )

    def decrement(self, key: str, value: int = 1) -> CounterResult:
        """Decrement the integer at *key*; ``False`` if Redis rejects it."""
        return self._guard(
            "decrement",
            key,
            lambda: self._client.decrby(self._key(key), value),
            False,
        )

    def forget(self, key: str) -> bool:
        """Delete *key*.

        Returns:
            ``True`` if a key was removed, ``False`` otherwise.
        """
        return self._guard(
            "forget",
            key,
            lambda: self._client.delete(self._key(key)) > 0,
            False,
        )

    def flush(self) -> bool:
        """Remove every key under this store's prefix.

        Without a prefix the whole Redis database is flushed.
        """
        if not self._prefix:
            return self._guard("flush", None, lambda: bool(self._client.flushdb()), False)
        return self._guard("flush", None, self._flush_prefixed, False)

    def _flush_prefixed(self) -> bool:
        batch = []
        removed = 0
        for rkey in self._client.scan_iter(match=f"{_escape_glob(self._prefix)}:*"):
            batch.append(rkey)
            if len(batch) >= _FLUSH_BATCH_SIZE:
                removed += self._client.delete(*batch)
                batch = []
        if batch:
            removed += self._client.delete(*batch)
        logger.info(
            "Cache flushed",
            extra={"prefix": self._prefix, "entries_removed": removed},
        )
        return True

    def get_prefix(self) -> str:
        """Return the key prefix without its trailing separator."""
        return self._prefix

    @property
    def client(self) -> Any:
        """The underlying Redis client."""
        return self._client
