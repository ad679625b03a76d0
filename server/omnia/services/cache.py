"""TTL-based caching service."""

import time
from typing import Any, Callable, Optional
from dataclasses import dataclass

DEFAULT_TTL = 300  # 5 minutes


@dataclass
class CacheEntry:
    """A single cache entry with TTL."""
    data: Any
    timestamp: float
    ttl: float  # TTL in seconds


class Cache:
    """Simple in-memory cache with TTL support.

    Stale entries are purged lazily when read through ``get``; there is no
    background sweep.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._cache: dict[str, CacheEntry] = {}
        self._clock = clock

    def __len__(self) -> int:
        return len(self._cache)

    def _is_live(self, entry: CacheEntry) -> bool:
        return self._clock() - entry.timestamp <= entry.ttl

    def get(self, key: str) -> Optional[Any]:
        """Get cached data if not expired."""
        entry = self._cache.get(key)
        if entry is None:
            return None

        if not self._is_live(entry):
            # Expired
            del self._cache[key]
            return None

        return entry.data

    def put(self, key: str, data: Any, ttl: float = DEFAULT_TTL) -> None:
        """Store data under key, replacing any previous entry."""
        self._cache[key] = CacheEntry(
            data=data,
            timestamp=self._clock(),
            ttl=ttl
        )

    def has(self, key: str) -> bool:
        """Check whether key holds a live entry, without purging it."""
        entry = self._cache.get(key)
        return entry is not None and self._is_live(entry)

    def invalidate(self, key: Optional[str] = None) -> None:
        """Invalidate a cache entry, or every entry when no key is given."""
        if key is None:
            self.clear()
            return
        self._cache.pop(key, None)

    def clear(self) -> None:
        """Clear all cache entries."""
        self._cache.clear()


# Global cache instance
cache = Cache()
