"""
Cache client contract and an async in-memory implementation.

Features:
- CacheClient protocol consumed by the price and exchange-rate services
- Memory-based cache with LRU eviction
- TTL plus a stale retention window, so expired entries stay readable
  for the stale-cache fallback tier
- Disabled mode: every read is a miss and writes are ignored
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Generic, Protocol, TypeVar

from loguru import logger

T = TypeVar("T")


@dataclass(frozen=True)
class CacheMetadata:
    """Metadata attached to every cache entry."""

    source: str
    cached_at: datetime
    expires_at: datetime
    ttl_seconds: int


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """A single cache entry with metadata."""

    data: T
    metadata: CacheMetadata

    def is_fresh(self, ttl: timedelta, now: datetime | None = None) -> bool:
        """Check if the entry is younger than ttl."""
        now = now or datetime.now()
        return now - self.metadata.cached_at <= ttl


class CacheClient(Protocol):
    """Key/value store used by the services.

    get() returns entries regardless of age; callers decide freshness.
    """

    async def get(self, key: str) -> CacheEntry[Any] | None: ...

    async def set(
        self,
        key: str,
        value: Any,
        ttl_seconds: int,
        source: str = "manual",
    ) -> None: ...

    def is_enabled(self) -> bool: ...


@dataclass
class _StoredEntry:
    entry: CacheEntry[Any]
    retain_until: datetime


class CacheManager:
    """
    Async-compatible in-memory cache with TTL and stale retention.

    Usage:
        cache = CacheManager(max_size=500)

        await cache.set("prices:batch:AAPL", quotes, ttl_seconds=86400, source="gemini-api")
        entry = await cache.get("prices:batch:AAPL")
        if entry and entry.is_fresh(timedelta(days=1)):
            return entry.data
    """

    def __init__(
        self,
        max_size: int = 1000,
        stale_retention: timedelta | None = None,
        enabled: bool = True,
        debug: bool = False,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._memory: dict[str, _StoredEntry] = {}
        self._max_size = max_size
        # None keeps an expired entry for one more TTL period
        self._stale_retention = stale_retention
        self._enabled = enabled
        self._debug = debug
        self._clock = clock
        self._lock = asyncio.Lock()
        self._stats = CacheStats()

    def is_enabled(self) -> bool:
        return self._enabled

    async def get(self, key: str) -> CacheEntry[Any] | None:
        """
        Get an entry from cache.

        Returns the entry while it is within its TTL or retention window,
        None otherwise.
        """
        if not self._enabled:
            return None

        async with self._lock:
            stored = self._memory.get(key)
            if stored is None:
                self._stats.misses += 1
                self._log(f"MISS {key}")
                return None

            now = self._clock()
            if now > stored.retain_until:
                del self._memory[key]
                self._stats.misses += 1
                self._log(f"EXPIRED {key}")
                return None

            if now > stored.entry.metadata.expires_at:
                self._stats.stale_hits += 1
                self._log(f"STALE HIT {key}")
            else:
                self._stats.hits += 1
                self._log(f"HIT {key}")

            return stored.entry

    async def set(
        self,
        key: str,
        value: Any,
        ttl_seconds: int,
        source: str = "manual",
    ) -> None:
        """
        Set value in cache.

        Args:
            key: Cache key
            value: Data to cache
            ttl_seconds: Freshness lifetime
            source: Provider that produced the data
        """
        if not self._enabled:
            return

        now = self._clock()
        ttl = timedelta(seconds=ttl_seconds)
        retention = self._stale_retention if self._stale_retention is not None else ttl

        entry = CacheEntry(
            data=value,
            metadata=CacheMetadata(
                source=source,
                cached_at=now,
                expires_at=now + ttl,
                ttl_seconds=ttl_seconds,
            ),
        )

        async with self._lock:
            # LRU eviction if at capacity
            if len(self._memory) >= self._max_size and key not in self._memory:
                self._evict_oldest()

            self._memory[key] = _StoredEntry(entry=entry, retain_until=now + ttl + retention)
            self._log(f"SET {key} ttl={ttl_seconds}s source={source}")

    async def delete(self, key: str) -> bool:
        """Delete a specific key from cache."""
        async with self._lock:
            if key in self._memory:
                del self._memory[key]
                self._log(f"DELETE {key}")
                return True
            return False

    async def invalidate(self, prefix: str) -> int:
        """Drop every key starting with prefix, e.g. "rates:USD:". Returns the count."""
        async with self._lock:
            doomed = [k for k in self._memory if k.startswith(prefix)]
            for key in doomed:
                self._memory.pop(key)
            if doomed:
                self._log(f"INVALIDATE {prefix}* ({len(doomed)} entries)")
            return len(doomed)

    async def clear(self) -> None:
        """Clear all cache entries."""
        async with self._lock:
            count = len(self._memory)
            self._memory.clear()
            self._log(f"CLEAR ({count} entries)")

    def _evict_oldest(self) -> None:
        """Evict the oldest entry. Caller holds the lock."""
        if not self._memory:
            return

        oldest_key = min(
            self._memory.keys(),
            key=lambda k: self._memory[k].entry.metadata.cached_at,
        )
        del self._memory[oldest_key]
        self._stats.evictions += 1
        self._log(f"EVICT {oldest_key}")

    def get_stats(self) -> "CacheStats":
        """Get cache statistics."""
        self._stats.size = len(self._memory)
        self._stats.max_size = self._max_size
        return self._stats

    def _log(self, message: str) -> None:
        """Log debug message if debug mode is enabled."""
        if self._debug:
            logger.debug(f"cache: {message}")


@dataclass
class CacheStats:
    """Cache statistics."""

    hits: int = 0
    misses: int = 0
    stale_hits: int = 0
    evictions: int = 0
    size: int = 0
    max_size: int = 0

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate."""
        total = self.hits + self.stale_hits + self.misses
        if total == 0:
            return 0.0
        return (self.hits + self.stale_hits) / total

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "stale_hits": self.stale_hits,
            "evictions": self.evictions,
            "size": self.size,
            "max_size": self.max_size,
            "hit_rate": f"{self.hit_rate:.2%}",
        }
