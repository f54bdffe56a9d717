"""
Keyed request coalescing with a TTL cache.

Some lookups are slow, rate limited and requested for the same key by
many concurrent callers (for example, "tournaments FIDE already rated
for player X in month Y" while several visitors open the same player
page). RequestCoalescer makes sure only one producer call per key is
in flight and keeps the result for a TTL:

1. A cached, unexpired value is returned immediately.
2. Otherwise, if a producer for the key is already running, the caller
   awaits that same task.
3. Otherwise a new producer task is started and registered.

The in-flight entry is removed when the producer finishes, whether it
succeeded or raised, so a failed lookup can be retried by the next call.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class _CacheEntry(Generic[T]):
    value: T
    expires_at: float


class RequestCoalescer:
    """
    Deduplicates concurrent identical lookups and caches their results.

    Args:
        clock: Monotonic time source in seconds (injectable for tests)

    Usage:
        coalescer = RequestCoalescer()
        refs = await coalescer.get(
            "2253383-2025-03-01",
            ttl=900,
            producer=lambda: source.fetch_rated_tournaments("2253383", period),
        )
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._cache: dict[str, _CacheEntry[Any]] = {}
        self._in_flight: dict[str, asyncio.Future] = {}

    async def get(
        self,
        key: str,
        ttl: float,
        producer: Callable[[], Awaitable[T]],
        should_cache: Optional[Callable[[T], bool]] = None,
    ) -> T:
        """
        Return the value for key, calling producer at most once at a time.

        Args:
            key: Cache key
            ttl: Seconds to keep a successful result
            producer: Zero-argument callable returning an awaitable
            should_cache: Optional predicate; results it rejects are still
                          returned to every waiter but not cached

        Raises:
            Whatever the producer raises, to every caller awaiting it
        """
        entry = self._cache.get(key)
        if entry is not None:
            if entry.expires_at > self._clock():
                return entry.value
            del self._cache[key]

        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._run(key, ttl, producer, should_cache))
            self._in_flight[key] = task
        else:
            logger.debug("Joining in-flight lookup for %s", key)

        # shield: one cancelled waiter must not cancel the shared lookup
        return await asyncio.shield(task)

    async def _run(
        self,
        key: str,
        ttl: float,
        producer: Callable[[], Awaitable[T]],
        should_cache: Optional[Callable[[T], bool]],
    ) -> T:
        try:
            value = await producer()
            if should_cache is None or should_cache(value):
                self._cache[key] = _CacheEntry(value=value, expires_at=self._clock() + ttl)
            else:
                logger.debug("Not caching incomplete result for %s", key)
            return value
        finally:
            self._in_flight.pop(key, None)

    def invalidate(self, key: str) -> None:
        self._cache.pop(key, None)

    def clear(self) -> None:
        self._cache.clear()

    @property
    def in_flight_count(self) -> int:
        return len(self._in_flight)

    def __len__(self) -> int:
        return len(self._cache)

    def __repr__(self) -> str:
        return f"<RequestCoalescer(cached={len(self._cache)}, in_flight={len(self._in_flight)})>"
