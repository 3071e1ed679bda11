"""
Tests for the cache manager and the ``multi`` driver registration.

Mirrors a typical deployment: two array stores and a redis store
(fakeredis) combined behind a ``multi`` store.
"""

from typing import Any, Dict

import pytest

from multicache import manager as manager_module
from multicache import provider
from multicache.config import CacheSettings, Settings
from multicache.exceptions import ConfigurationError, StoreNotFoundError
from multicache.manager import CacheManager, get_cache_manager, reset_cache_manager
from multicache.repository import Repository
from multicache.stores import ArrayStore, RedisStore
from multicache.tiered import TieredCache


def _settings(**stores: Dict[str, Any]) -> CacheSettings:
    base = {
        "array-primary": {"driver": "array"},
        "array-secondary": {"driver": "array"},
        "multi": {"driver": "multi", "stores": ["array-primary", "array-secondary"]},
    }
    base.update(stores)
    return CacheSettings(default="multi", prefix="", stores=base)


@pytest.fixture
def manager() -> CacheManager:
    m = CacheManager(_settings())
    provider.register(m)
    return m


@pytest.fixture
def fake_redis_factory():
    try:
        import fakeredis
    except ImportError:
        pytest.skip("fakeredis not installed")
    server = fakeredis.FakeServer()
    return lambda url: fakeredis.FakeStrictRedis(server=server, decode_responses=True)


class TestCacheManager:
    def test_default_store(self, manager: CacheManager) -> None:
        assert manager.get_default_driver() == "multi"
        assert manager.store() is manager.store("multi")

    def test_stores_are_memoised(self, manager: CacheManager) -> None:
        assert manager.store("array-primary") is manager.store("array-primary")

    def test_forget_store_rebuilds(self, manager: CacheManager) -> None:
        first = manager.store("array-primary")
        manager.forget_store("array-primary")
        assert manager.store("array-primary") is not first

    def test_array_driver(self, manager: CacheManager) -> None:
        repo = manager.store("array-primary")
        assert isinstance(repo, Repository)
        assert isinstance(repo.get_store(), ArrayStore)

    def test_unknown_store(self, manager: CacheManager) -> None:
        with pytest.raises(StoreNotFoundError, match="nope"):
            manager.store("nope")

    def test_unknown_driver(self) -> None:
        m = CacheManager(_settings(weird={"driver": "memcached"}))
        with pytest.raises(ConfigurationError, match="memcached"):
            m.store("weird")

    def test_missing_driver_key(self) -> None:
        m = CacheManager(_settings(bad={"url": "x"}))
        with pytest.raises(ConfigurationError, match="bad"):
            m.store("bad")

    def test_multi_driver_requires_registration(self) -> None:
        m = CacheManager(_settings())
        with pytest.raises(ConfigurationError, match="multi"):
            m.store("multi")

    def test_extend_custom_driver(self) -> None:
        m = CacheManager(_settings(custom={"driver": "custom"}))
        created = ArrayStore()
        m.extend("custom", lambda manager, config: created)
        assert m.store("custom").get_store() is created

    def test_self_reference_rejected(self, manager: CacheManager) -> None:
        manager.settings.stores["loop"] = {"driver": "multi", "stores": ["loop"]}
        with pytest.raises(ConfigurationError, match="loop"):
            manager.store("loop")

    def test_redis_driver(self, fake_redis_factory) -> None:
        settings = _settings(redis={"driver": "redis", "url": "redis://cache:6379/1"})
        settings.prefix = "global"
        m = CacheManager(settings, _redis_factory=fake_redis_factory)
        store = m.store("redis").get_store()
        assert isinstance(store, RedisStore)
        assert store.get_prefix() == "global"

    def test_redis_store_prefix_overrides_global(self, fake_redis_factory) -> None:
        settings = _settings(redis={"driver": "redis", "prefix": "local"})
        settings.prefix = "global"
        m = CacheManager(settings, _redis_factory=fake_redis_factory)
        assert m.store("redis").get_prefix() == "local"

    def test_invalid_redis_options(self, fake_redis_factory) -> None:
        m = CacheManager(
            _settings(redis={"driver": "redis", "strict": "sometimes"}),
            _redis_factory=fake_redis_factory,
        )
        with pytest.raises(ConfigurationError):
            m.store("redis")


class TestMultiDriver:
    """The ``multi`` driver built from named stores."""

    def _primary(self, manager: CacheManager) -> Repository:
        return manager.store("array-primary")

    def _secondary(self, manager: CacheManager) -> Repository:
        return manager.store("array-secondary")

    def test_builds_tiered_cache(self, manager: CacheManager) -> None:
        tiered = manager.store("multi").get_store()
        assert isinstance(tiered, TieredCache)
        assert tiered.get_tier_count() == 2
        assert all(isinstance(t, Repository) for t in tiered.get_tiers())
        assert tiered.get_tiers() == [self._primary(manager), self._secondary(manager)]

    def test_empty_stores_rejected(self) -> None:
        m = CacheManager(_settings(multi={"driver": "multi", "stores": []}))
        provider.register(m)
        with pytest.raises(ConfigurationError, match="No stores"):
            m.store("multi")

    def test_unknown_tier_propagates(self) -> None:
        m = CacheManager(_settings(multi={"driver": "multi", "stores": ["array-primary", "gone"]}))
        provider.register(m)
        with pytest.raises(StoreNotFoundError, match="gone"):
            m.store("multi")

    def test_prefix_from_config(self) -> None:
        m = CacheManager(
            _settings(multi={"driver": "multi", "stores": ["array-primary"], "prefix": "mc"})
        )
        provider.register(m)
        assert m.store("multi").get_prefix() == "mc"

    def test_prefix_defaults_to_empty(self, manager: CacheManager) -> None:
        assert manager.store("multi").get_prefix() == ""

    def test_get_from_primary(self, manager: CacheManager) -> None:
        self._primary(manager).put("hello", "world", 1)
        self._secondary(manager).put("hello", "world2", 1)
        assert manager.store().get("hello") == "world"

    def test_get_from_secondary_stores_in_primary(self, manager: CacheManager) -> None:
        self._secondary(manager).put("hello", "world2", 1)

        assert manager.store().get("hello") == "world2"
        assert self._primary(manager).get("hello") == "world2"

    def test_remember_through_tiers(self, manager: CacheManager) -> None:
        cache = manager.store()
        assert cache.remember("k", 5, lambda: "computed") == "computed"
        assert self._primary(manager).get("k") == "computed"
        assert self._secondary(manager).get("k") == "computed"

    def test_forget_and_flush(self, manager: CacheManager) -> None:
        cache = manager.store()
        cache.put("hello", "world", 1)
        assert cache.forget("hello") is True
        assert cache.forget("hello") is False
        cache.put("hello", "world", 1)
        assert cache.flush() is True
        assert self._secondary(manager).get("hello") is None

    def test_array_over_redis(self, fake_redis_factory) -> None:
        settings = _settings(
            redis={"driver": "redis", "prefix": "app"},
            multi={"driver": "multi", "stores": ["array-primary", "redis"]},
        )
        m = CacheManager(settings, _redis_factory=fake_redis_factory)
        provider.register(m)
        m.store("redis").forever("hello", "world2")

        assert m.store().get("hello") == "world2"
        assert m.store("array-primary").get("hello") == "world2"

        m.store("redis").forever("n", 1)
        m.store("array-primary").forever("n", 1)
        assert m.store().increment("n") == 2
        assert m.store("redis").get("n") == 2


class TestSingleton:
    @pytest.fixture(autouse=True)
    def _clean(self, monkeypatch):
        reset_cache_manager()
        settings = Settings(cache=_settings())
        monkeypatch.setattr(manager_module, "get_settings", lambda: settings)
        yield
        reset_cache_manager()

    def test_singleton_has_multi_driver(self) -> None:
        m = get_cache_manager()
        assert m is get_cache_manager()
        assert isinstance(m.store().get_store(), TieredCache)

    def test_reset(self) -> None:
        first = get_cache_manager()
        reset_cache_manager()
        assert get_cache_manager() is not first
