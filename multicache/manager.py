"""
Named store registry for multicache.

Resolves store names from :class:`~multicache.config.CacheSettings` into
:class:`~multicache.repository.Repository` instances, creating each store
once through its driver.  Custom drivers are added with
:meth:`CacheManager.extend`.
"""

import logging
import threading
from typing import Any, Callable, Dict, Optional, Set

from pydantic import BaseModel, ConfigDict, ValidationError

from multicache import provider
from multicache.config import CacheSettings, get_settings
from multicache.exceptions import ConfigurationError, StoreNotFoundError
from multicache.repository import Repository
from multicache.stores.array import ArrayStore
from multicache.stores.base import Store
from multicache.stores.redis_store import RedisStore

logger = logging.getLogger(__name__)

DriverCreator = Callable[["CacheManager", Dict[str, Any]], Store]


class StoreConfig(BaseModel):
    """Common shape of a store entry: a driver name plus driver options."""

    model_config = ConfigDict(extra="allow")

    driver: str


class RedisStoreConfig(BaseModel):
    """Options for the ``redis`` driver.

    Attributes:
        url: Redis connection URL.
        prefix: Key prefix; falls back to the cache-wide prefix.
        strict: Raise store errors instead of returning failure results.
    """

    model_config = ConfigDict(extra="ignore")

    url: str = "redis://localhost:6379/0"
    prefix: Optional[str] = None
    strict: bool = False


class CacheManager:
    """Registry of named cache stores.

    Args:
        settings: Cache settings; defaults to the global settings.
        _redis_factory: Builds a Redis client from a URL (testing).
    """

    def __init__(
        self,
        settings: Optional[CacheSettings] = None,
        _redis_factory: Optional[Callable[[str], Any]] = None,
    ) -> None:
        self._settings = settings or get_settings().cache
        self._redis_factory = _redis_factory
        self._stores: Dict[str, Repository] = {}
        self._custom_creators: Dict[str, DriverCreator] = {}
        self._resolving: Set[str] = set()
        self._lock = threading.RLock()

    @property
    def settings(self) -> CacheSettings:
        return self._settings

    def get_default_driver(self) -> str:
        """Return the name of the default store."""
        return self._settings.default

    def extend(self, driver: str, creator: DriverCreator) -> None:
        """Register a creator for a custom driver name."""
        self._custom_creators[driver] = creator
        logger.debug("Cache driver registered", extra={"driver": driver})

    def store(self, name: Optional[str] = None) -> Repository:
        """Return the repository for a named store, creating it on first use.

        Args:
            name: Store name; the default store when omitted.

        Raises:
            StoreNotFoundError: If *name* is not configured.
            ConfigurationError: If the store's config or driver is invalid,
                or if stores reference each other in a cycle.
        """
        name = name or self.get_default_driver()
        with self._lock:
            repository = self._stores.get(name)
            if repository is None:
                repository = Repository(self._resolve(name))
                self._stores[name] = repository
            return repository

    def forget_store(self, name: str) -> None:
        """Drop a memoised store so the next lookup rebuilds it."""
        with self._lock:
            self._stores.pop(name, None)

    def _resolve(self, name: str) -> Store:
        raw = self._settings.stores.get(name)
        if raw is None:
            raise StoreNotFoundError(f"Cache store [{name}] is not defined.")
        try:
            config = StoreConfig.model_validate(raw)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid config for cache store [{name}]: {e}") from e

        if name in self._resolving:
            raise ConfigurationError(f"Cache store [{name}] references itself.")
        self._resolving.add(name)
        try:
            store = self._create(name, config.driver, dict(raw))
        finally:
            self._resolving.discard(name)

        logger.info(
            "Cache store resolved",
            extra={"store": name, "driver": config.driver},
        )
        return store

    def _create(self, name: str, driver: str, config: Dict[str, Any]) -> Store:
        creator = self._custom_creators.get(driver)
        if creator is not None:
            return creator(self, config)
        if driver == "array":
            return self._create_array_driver(config)
        if driver == "redis":
            return self._create_redis_driver(config)
        raise ConfigurationError(
            f"Cache store [{name}] uses unsupported driver [{driver}]."
        )

    def _create_array_driver(self, config: Dict[str, Any]) -> Store:
        return ArrayStore()

    def _create_redis_driver(self, config: Dict[str, Any]) -> Store:
        try:
            options = RedisStoreConfig.model_validate(config)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid redis store config: {e}") from e
        prefix = options.prefix if options.prefix is not None else self._settings.prefix
        client = self._redis_factory(options.url) if self._redis_factory else None
        return RedisStore(
            redis_url=options.url,
            prefix=prefix,
            strict=options.strict,
            _redis_client=client,
        )


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_manager: Optional[CacheManager] = None
_lock = threading.Lock()


def get_cache_manager() -> CacheManager:
    """Return the process-wide manager with the ``multi`` driver registered."""
    global _manager

    if _manager is not None:
        return _manager

    with _lock:
        if _manager is None:
            manager = CacheManager()
            provider.register(manager)
            _manager = manager
        return _manager


def reset_cache_manager() -> None:
    """Clear the cached singleton (for testing)."""
    global _manager
    with _lock:
        _manager = None
