"""Unit tests for RequestCoalescer."""

import asyncio

import pytest

from cheelo.tasks.coalescer import RequestCoalescer


class ManualClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class CountingProducer:
    """Async producer that counts calls and can be held open."""

    def __init__(self, value="value", fail=False):
        self.value = value
        self.fail = fail
        self.calls = 0
        self.release = asyncio.Event()
        self.release.set()

    async def __call__(self):
        self.calls += 1
        await self.release.wait()
        if self.fail:
            raise RuntimeError("lookup failed")
        return f"{self.value}-{self.calls}"


@pytest.mark.asyncio
async def test_concurrent_calls_share_one_producer():
    coalescer = RequestCoalescer()
    producer = CountingProducer()
    producer.release.clear()

    waiters = [asyncio.create_task(coalescer.get("k", 60, producer)) for _ in range(10)]
    await asyncio.sleep(0)
    assert coalescer.in_flight_count == 1

    producer.release.set()
    results = await asyncio.gather(*waiters)

    assert producer.calls == 1
    assert set(results) == {"value-1"}
    assert coalescer.in_flight_count == 0


@pytest.mark.asyncio
async def test_cached_until_ttl_expires():
    clock = ManualClock()
    coalescer = RequestCoalescer(clock=clock)
    producer = CountingProducer()

    assert await coalescer.get("k", 60, producer) == "value-1"
    clock.now += 59
    assert await coalescer.get("k", 60, producer) == "value-1"
    clock.now += 2
    assert await coalescer.get("k", 60, producer) == "value-2"
    assert producer.calls == 2


@pytest.mark.asyncio
async def test_keys_are_independent():
    coalescer = RequestCoalescer()
    producer = CountingProducer()

    await coalescer.get("a", 60, producer)
    await coalescer.get("b", 60, producer)

    assert producer.calls == 2
    assert len(coalescer) == 2


@pytest.mark.asyncio
async def test_failure_reaches_all_waiters_and_allows_retry():
    coalescer = RequestCoalescer()
    failing = CountingProducer(fail=True)
    failing.release.clear()

    waiters = [asyncio.create_task(coalescer.get("k", 60, failing)) for _ in range(3)]
    await asyncio.sleep(0)
    failing.release.set()
    results = await asyncio.gather(*waiters, return_exceptions=True)

    assert all(isinstance(r, RuntimeError) for r in results)
    assert failing.calls == 1
    assert coalescer.in_flight_count == 0
    assert len(coalescer) == 0

    working = CountingProducer()
    assert await coalescer.get("k", 60, working) == "value-1"


@pytest.mark.asyncio
async def test_rejected_results_not_cached():
    coalescer = RequestCoalescer()
    producer = CountingProducer()

    await coalescer.get("k", 60, producer, should_cache=lambda value: False)
    await coalescer.get("k", 60, producer, should_cache=lambda value: False)

    assert producer.calls == 2
    assert len(coalescer) == 0


@pytest.mark.asyncio
async def test_cancelled_waiter_does_not_cancel_lookup():
    coalescer = RequestCoalescer()
    producer = CountingProducer()
    producer.release.clear()

    first = asyncio.create_task(coalescer.get("k", 60, producer))
    second = asyncio.create_task(coalescer.get("k", 60, producer))
    await asyncio.sleep(0)

    first.cancel()
    await asyncio.sleep(0)
    producer.release.set()

    assert await second == "value-1"
    assert first.cancelled()
    assert producer.calls == 1


@pytest.mark.asyncio
async def test_invalidate_and_clear():
    coalescer = RequestCoalescer()
    producer = CountingProducer()

    await coalescer.get("k", 60, producer)
    coalescer.invalidate("k")
    await coalescer.get("k", 60, producer)
    assert producer.calls == 2

    coalescer.clear()
    assert len(coalescer) == 0
