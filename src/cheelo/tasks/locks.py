"""Per-key asyncio locks for single-flight background jobs."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator


class KeyedLocks:
    """
    Named set of asyncio locks, one per key (player id, area key, ...).

    try_acquire() is the non-blocking path used to skip a job that is
    already running; hold() waits for the lock. Locks are kept once
    created so that a waiter and a newcomer never end up on different
    lock objects for the same key.
    """

    def __init__(self, name: str = "locks") -> None:
        self.name = name
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    def is_locked(self, key: str) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    async def try_acquire(self, key: str) -> bool:
        """Acquire the lock for key if free; never waits."""
        lock = self._lock(key)
        if lock.locked():
            return False
        # An unlocked asyncio.Lock is acquired without suspending
        await lock.acquire()
        return True

    def release(self, key: str) -> None:
        self._locks[key].release()

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._lock(key)
        async with lock:
            yield

    def held_keys(self) -> list[str]:
        return [key for key, lock in self._locks.items() if lock.locked()]

    def __repr__(self) -> str:
        return f"<KeyedLocks(name='{self.name}', held={len(self.held_keys())})>"
