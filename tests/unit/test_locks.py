"""Unit tests for KeyedLocks and SyncRunResult."""

import asyncio
from datetime import datetime, timedelta

import pytest

from cheelo.tasks.locks import KeyedLocks
from cheelo.tasks.runtime import SyncRunResult


@pytest.mark.asyncio
async def test_try_acquire_is_exclusive_per_key():
    locks = KeyedLocks("test")

    assert await locks.try_acquire("a") is True
    assert await locks.try_acquire("a") is False
    assert await locks.try_acquire("b") is True
    assert sorted(locks.held_keys()) == ["a", "b"]

    locks.release("a")
    assert not locks.is_locked("a")
    assert await locks.try_acquire("a") is True


@pytest.mark.asyncio
async def test_hold_waits_for_release():
    locks = KeyedLocks()
    order = []

    await locks.try_acquire("p")

    async def waiter():
        async with locks.hold("p"):
            order.append("waiter")

    task = asyncio.create_task(waiter())
    await asyncio.sleep(0)
    assert order == []

    order.append("release")
    locks.release("p")
    await task

    assert order == ["release", "waiter"]
    assert not locks.is_locked("p")


@pytest.mark.asyncio
async def test_hold_releases_on_error():
    locks = KeyedLocks()

    with pytest.raises(ValueError):
        async with locks.hold("p"):
            raise ValueError("boom")

    assert not locks.is_locked("p")


def test_unknown_key_is_not_locked():
    assert KeyedLocks().is_locked("nobody") is False


def test_sync_run_result_duration_and_payload():
    started = datetime(2025, 3, 15, 10, 0, 0)
    ended = started + timedelta(seconds=12.5)
    result = SyncRunResult(
        area_key="ESP:Bilbao",
        status="success",
        started_at=started,
        ended_at=ended,
        discovered=4,
        updated=3,
        skipped=1,
        search_terms=["Bilbao", "Vizcaya"],
    )

    payload = result.to_dict()
    assert result.duration_s == 12.5
    assert payload["area_key"] == "ESP:Bilbao"
    assert payload["status"] == "success"
    assert payload["updated"] == 3
    assert payload["started_at"] == "2025-03-15T10:00:00"
    assert payload["error"] is None
