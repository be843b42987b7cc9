"""Cache package for gitview.

Provides the short-lived in-memory cache used by the caching service decorator.
"""

from gitview.cache.ttl_cache import TTLCache, CacheEntry, Lookup

__all__ = [
    "TTLCache",
    "CacheEntry",
    "Lookup",
]
