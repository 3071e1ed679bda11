"""
multicache exception hierarchy.

All custom exceptions inherit from MultiCacheException so callers can
catch a single base type when they want a broad safety net.
"""


class MultiCacheException(Exception):
    """Base exception for all multicache errors."""


class ConfigurationError(MultiCacheException, ValueError):
    """Raised when cache configuration is invalid or incomplete."""


class StoreNotFoundError(MultiCacheException, KeyError):
    """Raised when a store name is not defined in the cache configuration."""


class StoreError(MultiCacheException):
    """Raised when a store backend fails and the caller asked to surface it."""
