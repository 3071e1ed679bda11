"""Registers the ``multi`` driver, which builds a tiered cache from named stores."""

from typing import TYPE_CHECKING, Any, Dict

from multicache.tiered import TieredCache

if TYPE_CHECKING:
    from multicache.manager import CacheManager

DRIVER_NAME = "multi"


def create_multi_store(manager: "CacheManager", config: Dict[str, Any]) -> TieredCache:
    """Build a tiered cache whose tiers are resolved through *manager*."""
    return TieredCache.from_config(config, manager.store)


def register(manager: "CacheManager") -> None:
    """Install the ``multi`` driver on *manager*."""
    manager.extend(DRIVER_NAME, create_multi_store)
