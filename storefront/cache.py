"""
In-memory key/value cache with per-entry TTL
"""
import time
from dataclasses import dataclass
from threading import RLock
from typing import Any, Callable, Dict, Optional

import structlog


@dataclass
class CacheEntry:
    """A cached value with its absolute expiry (clock milliseconds)"""
    key: str
    value: Any
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


@dataclass
class CacheStats:
    """Cache statistics"""
    hits: int = 0
    misses: int = 0
    expirations: int = 0
    invalidations: int = 0

    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0


def monotonic_ms() -> float:
    return time.monotonic() * 1000


class LocalCache:
    """
    TTL cache used to avoid redundant calls for cart, user and checkout data.

    A read after an entry's expiry is a miss; stale values are never returned.
    There is no capacity bound: entries leave only through expiry or
    invalidation.
    """

    def __init__(self, default_ttl_ms: int = 5 * 60 * 1000, clock: Callable[[], float] = monotonic_ms):
        self.default_ttl_ms = default_ttl_ms
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = RLock()
        self.stats = CacheStats()
        self.logger = structlog.get_logger().bind(component="local_cache")

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None on a miss"""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.stats.misses += 1
                return None

            if entry.is_expired(self._clock()):
                del self._entries[key]
                self.stats.expirations += 1
                self.stats.misses += 1
                self.logger.debug("Cache entry expired", key=key)
                return None

            self.stats.hits += 1
            return entry.value

    def set(self, key: str, value: Any, ttl_ms: Optional[int] = None) -> None:
        """Store value until now + ttl, replacing any existing entry"""
        ttl = self.default_ttl_ms if ttl_ms is None else ttl_ms
        with self._lock:
            self._entries[key] = CacheEntry(key=key, value=value, expires_at=self._clock() + ttl)
        self.logger.debug("Cache set", key=key, ttl_ms=ttl)

    def has(self, key: str) -> bool:
        return self.get(key) is not None

    def invalidate(self, key: str) -> bool:
        """Remove a single entry. Returns True if it existed."""
        with self._lock:
            removed = self._entries.pop(key, None) is not None
            if removed:
                self.stats.invalidations += 1
        return removed

    def invalidate_pattern(self, prefix: str) -> int:
        """Remove every entry whose key starts with prefix. Returns count."""
        with self._lock:
            keys = [key for key in self._entries if key.startswith(prefix)]
            for key in keys:
                del self._entries[key]
            self.stats.invalidations += len(keys)

        if keys:
            self.logger.debug("Cache pattern invalidated", prefix=prefix, removed=len(keys))
        return len(keys)

    def cleanup(self) -> int:
        """Purge expired entries. Returns count."""
        with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                del self._entries[key]
            self.stats.expirations += len(expired)
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
