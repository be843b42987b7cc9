"""
TTL-based cache for git read results.
Holds successful values and failures alike for a short time-to-live.
"""

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

DEFAULT_TTL = 2.0  # seconds
DEFAULT_MAX_ENTRIES = 64


@dataclass(frozen=True)
class CacheEntry:
    """A cached outcome: a value, or the error the read raised."""
    value: Any
    error: Optional[BaseException]
    expires_at: float


@dataclass(frozen=True)
class Lookup:
    """Result of a cache lookup."""
    hit: bool
    entry: Optional[CacheEntry]
    generation: int


class TTLCache:
    """
    TTL-based cache keyed by operation name.

    Features:
    - TTL (time-to-live) based expiration
    - Failed outcomes cached like successful ones
    - Thread-safe operations; the lock is never held across I/O
    - Whole-cache invalidation with a generation counter, so a store that
      was looked up before an invalidation is discarded
    - Growth bound: expired entries are dropped at the cap, and the whole
      map is flushed if that is not enough
    - Cache statistics tracking
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the cache.

        Args:
            ttl_seconds: Time-to-live for cache entries in seconds
            max_entries: Entry count at which eviction kicks in
            clock: Monotonic time source (injectable for tests)
        """
        self._entries: Dict[str, CacheEntry] = {}
        self.ttl = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._lock = threading.Lock()
        self._generation = 0
        self._hits = 0
        self._misses = 0
        self._invalidations = 0
        self._flushes = 0

    def lookup(self, key: str) -> Lookup:
        """
        Look up a key.

        Returns:
            A Lookup with ``hit`` set when a live entry exists, and the
            current generation to hand back to store()
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or self._clock() >= entry.expires_at:
                self._misses += 1
                return Lookup(hit=False, entry=None, generation=self._generation)
            self._hits += 1
            return Lookup(hit=True, entry=entry, generation=self._generation)

    def store(
        self,
        key: str,
        value: Any = None,
        error: Optional[BaseException] = None,
        generation: Optional[int] = None,
    ) -> bool:
        """
        Store a value or an error under ``key``.

        Args:
            key: Operation identifier
            value: The successful result
            error: The failure, cached instead of a value
            generation: Generation returned by the lookup that preceded the
                underlying call; the store is dropped if the cache has been
                invalidated since

        Returns:
            True if the entry was stored
        """
        with self._lock:
            if generation is not None and generation != self._generation:
                return False

            if len(self._entries) >= self.max_entries and key not in self._entries:
                self._evict_expired()
                if len(self._entries) >= self.max_entries:
                    self._entries = {}
                    self._flushes += 1

            self._entries[key] = CacheEntry(
                value=value,
                error=error,
                expires_at=self._clock() + self.ttl,
            )
            return True

    def _evict_expired(self) -> None:
        """Remove all expired entries. Caller holds the lock."""
        now = self._clock()
        expired_keys = [key for key, entry in self._entries.items() if now >= entry.expires_at]
        for key in expired_keys:
            del self._entries[key]

    def invalidate(self) -> int:
        """
        Drop every entry and start a new generation.

        Returns:
            Number of entries dropped
        """
        with self._lock:
            count = len(self._entries)
            self._entries = {}
            self._generation += 1
            self._invalidations += 1
            return count

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and self._clock() < entry.expires_at

    def stats(self) -> dict:
        """
        Return cache statistics.

        Returns:
            Dictionary containing:
            - size: Current number of entries
            - max_entries: Entry count that triggers eviction
            - hits / misses: Lookup outcomes
            - hit_rate: Ratio of hits to lookups (0-1)
            - invalidations / flushes: Whole-cache clears by writes and by
              the growth bound
            - ttl_seconds: TTL in seconds
        """
        with self._lock:
            total = self._hits + self._misses
            return {
                "size": len(self._entries),
                "max_entries": self.max_entries,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": self._hits / total if total > 0 else 0.0,
                "invalidations": self._invalidations,
                "flushes": self._flushes,
                "ttl_seconds": self.ttl,
            }
