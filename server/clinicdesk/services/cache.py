"""TTL-based caching service."""

import asyncio
import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

V = TypeVar("V")
T = TypeVar("T")

DEFAULT_TTL = 5 * 60  # 5 minutes


class CacheError(Exception):
    """Base error for cache operations."""


class PatternError(CacheError):
    """Raised when an invalidation pattern is not a valid regular expression."""


@dataclass
class CacheEntry(Generic[V]):
    """A single cache entry with TTL."""
    data: V
    timestamp: float
    ttl: float  # TTL in seconds

    def is_live(self, now: float) -> bool:
        return now - self.timestamp <= self.ttl


class Cache(Generic[V]):
    """In-memory key/value cache where each entry carries its own TTL.

    One instance is created per process (or per test) and handed to the
    services that need it. Expired entries are dropped lazily on ``get`` and
    ``has``, and eagerly by ``cleanup``.
    """

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.default_ttl = default_ttl
        self._clock = clock
        self._cache: dict[str, CacheEntry[V]] = {}
        self._hits = 0
        self._misses = 0

    def _live_entry(self, key: str) -> Optional[CacheEntry[V]]:
        entry = self._cache.get(key)
        if entry is None:
            return None

        if not entry.is_live(self._clock()):
            # Expired
            del self._cache[key]
            return None

        return entry

    def get(self, key: str) -> Optional[V]:
        """Get cached data if not expired."""
        entry = self._live_entry(key)
        if entry is None:
            self._misses += 1
            logger.debug("cache miss: %s", key)
            return None

        self._hits += 1
        logger.debug("cache hit: %s", key)
        return entry.data

    def has(self, key: str) -> bool:
        """Check whether a live entry exists for key."""
        return self._live_entry(key) is not None

    def set(self, key: str, data: V, ttl: Optional[float] = None) -> None:
        """Set cache data with TTL in seconds (default TTL when omitted)."""
        self._cache[key] = CacheEntry(
            data=data,
            timestamp=self._clock(),
            ttl=self.default_ttl if ttl is None else ttl,
        )

    def invalidate(self, key: str) -> None:
        """Invalidate a cache entry."""
        if key in self._cache:
            del self._cache[key]
            logger.debug("cache invalidated: %s", key)

    def invalidate_pattern(self, pattern: str) -> int:
        """Invalidate every key matching a regular expression.

        Returns the number of entries removed. Raises ``PatternError`` if the
        pattern does not compile; the cache is left untouched in that case.
        """
        try:
            regex = re.compile(pattern)
        except re.error as e:
            raise PatternError(f"Invalid cache key pattern {pattern!r}: {e}") from e

        matched = [key for key in self._cache if regex.search(key)]
        for key in matched:
            del self._cache[key]

        logger.debug("cache invalidated %d keys matching %r", len(matched), pattern)
        return len(matched)

    def clear(self) -> None:
        """Clear all cache entries."""
        self._cache.clear()

    def size(self) -> int:
        """Number of stored entries, including expired ones not yet swept."""
        return len(self._cache)

    def __len__(self) -> int:
        return self.size()

    def cleanup(self) -> int:
        """Evict all expired entries. Returns how many were removed."""
        now = self._clock()
        expired = [key for key, entry in self._cache.items() if not entry.is_live(now)]
        for key in expired:
            del self._cache[key]
        return len(expired)

    def stats(self) -> dict[str, Any]:
        """Diagnostic counters. Does not evict anything."""
        now = self._clock()
        live = sum(1 for entry in self._cache.values() if entry.is_live(now))
        return {
            "size": len(self._cache),
            "live": live,
            "expired": len(self._cache) - live,
            "hits": self._hits,
            "misses": self._misses,
            "default_ttl": self.default_ttl,
        }


class CacheSweeper:
    """Periodically runs ``cleanup`` on a cache from an asyncio task."""

    def __init__(self, cache: Cache, interval: float = 10 * 60, initial_delay: float = 1.0):
        self.cache = cache
        self.interval = interval
        self.initial_delay = initial_delay
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the sweep task on the running loop. Repeated calls are no-ops."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.info("cache sweeper started (every %ss)", self.interval)

    async def stop(self) -> None:
        """Cancel the sweep task and wait for it to finish."""
        task, self._task = self._task, None
        if task is None:
            return

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("cache sweeper stopped")

    async def _run(self) -> None:
        await asyncio.sleep(self.initial_delay)
        while True:
            removed = self.cache.cleanup()
            if removed:
                logger.debug("cache sweep evicted %d expired entries", removed)
            await asyncio.sleep(self.interval)


class SingleFlight:
    """Share one in-flight call between concurrent callers using the same key."""

    def __init__(self):
        self._inflight: dict[str, asyncio.Future] = {}

    def pending(self, key: str) -> bool:
        return key in self._inflight

    async def do(self, key: str, fn: Callable[[], Awaitable[T]]) -> T:
        """Run ``fn`` unless a call for ``key`` is already running; share its outcome."""
        future = self._inflight.get(key)
        if future is not None:
            return await asyncio.shield(future)

        future = asyncio.get_running_loop().create_future()
        self._inflight[key] = future
        try:
            result = await fn()
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as e:
            future.set_exception(e)
            # Mark retrieved so a failure nobody else awaited does not warn at GC time
            future.exception()
            raise
        else:
            future.set_result(result)
            return result
        finally:
            self._inflight.pop(key, None)
