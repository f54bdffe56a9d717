"""Concurrency utilities and background jobs."""

from cheelo.tasks.coalescer import RequestCoalescer
from cheelo.tasks.locks import KeyedLocks
from cheelo.tasks.runtime import SyncRunResult

__all__ = [
    "KeyedLocks",
    "RequestCoalescer",
    "SyncRunResult",
]
