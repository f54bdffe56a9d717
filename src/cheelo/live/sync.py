"""
Stale-while-revalidate serving of live player views.

SyncCoordinator.get_or_refresh(player_id) decides between the stored
view and a new aggregation:

- No stored view: aggregate now, store it and serve it. Concurrent
  first requests for a player wait for the one aggregation and are
  served its stored result.
- Fresh stored view (younger than the freshness window, official
  ratings unchanged): serve it as is.
- Stale and not forced: serve the stored view flagged is_stale and
  refresh it in the background. At most one refresh per player runs at
  a time; a request arriving while one is running just gets the stale
  view.
- Forced: aggregate now (waiting for a running refresh of the same
  player first), store it and serve it.

Official ratings only change when FIDE publishes a new list on the
first of the month, so the profile is re-fetched for the rating check
only when the stored view predates the current month. A fresh view
from this month is therefore served with no external calls.
"""

import asyncio
import dataclasses
import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from cheelo.config import settings
from cheelo.db.store import DocumentStore
from cheelo.live.aggregation import AggregationService, utcnow
from cheelo.live.models import AggregatedPlayerView
from cheelo.tasks.locks import KeyedLocks

logger = logging.getLogger(__name__)


class SyncCoordinator:
    """
    Serves player views from the store and keeps them refreshed.

    Usage:
        coordinator = SyncCoordinator(service, store)
        view = await coordinator.get_or_refresh("2253383")
        if view.is_stale:
            ...  # poll again once the background refresh is done
    """

    def __init__(
        self,
        service: AggregationService,
        store: DocumentStore,
        locks: Optional[KeyedLocks] = None,
        freshness: Optional[timedelta] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.service = service
        self.store = store
        self.locks = locks or KeyedLocks("player-refresh")
        self.freshness = freshness or timedelta(seconds=settings.live_cache_freshness_seconds)
        self.clock = clock
        self._tasks: set[asyncio.Task] = set()

    async def is_stale(self, view: AggregatedPlayerView, now: datetime) -> bool:
        """Whether a stored view must be refreshed."""
        if view.last_updated is None or now - view.last_updated > self.freshness:
            return True

        if view.last_updated < now.replace(day=1, hour=0, minute=0, second=0, microsecond=0):
            profile = await self.service.source.fetch_profile(view.player_id)
            if profile is not None and not profile.same_ratings(view.profile):
                logger.info("Official ratings of %s changed since last aggregation", view.player_id)
                return True
        return False

    async def _aggregate_and_store(self, player_id: str) -> AggregatedPlayerView:
        view = await self.service.aggregate(player_id)
        self.store.set_player_view(player_id, view)
        return view

    async def _background_refresh(self, player_id: str) -> None:
        try:
            await self._aggregate_and_store(player_id)
            logger.info("Background refresh of %s finished", player_id)
        except Exception:
            logger.exception("Background refresh of %s failed", player_id)

    async def refresh_in_background(self, player_id: str) -> bool:
        """
        Start a background refresh unless one is already running.

        Returns:
            True if a refresh was started
        """
        if not await self.locks.try_acquire(player_id):
            logger.debug("Refresh of %s already running", player_id)
            return False

        logger.info("Triggering background refresh of %s", player_id)
        task = asyncio.create_task(self._background_refresh(player_id), name=f"refresh-{player_id}")
        self._tasks.add(task)
        # Runs even when the task is cancelled before it starts
        task.add_done_callback(lambda _: self.locks.release(player_id))
        task.add_done_callback(self._tasks.discard)
        return True

    async def get_or_refresh(self, player_id: str, force_refresh: bool = False) -> AggregatedPlayerView:
        """
        Live view of a player, from the store when possible.

        Args:
            player_id: FIDE id
            force_refresh: Aggregate now even if a stored view exists

        Returns:
            AggregatedPlayerView with is_stale and source set

        Raises:
            PlayerNotFound: when an aggregation has to run and the player
                            has no official profile
        """
        cached = self.store.get_player_view(player_id)

        if cached is None:
            async with self.locks.hold(player_id):
                # A concurrent request may have stored the view while we waited
                stored = self.store.get_player_view(player_id)
                if stored is not None:
                    return dataclasses.replace(stored, is_stale=False, source="cache")
                logger.info("No stored view for %s, aggregating", player_id)
                view = await self._aggregate_and_store(player_id)
            return dataclasses.replace(view, is_stale=False, source="scrape")

        if force_refresh:
            logger.info("Forced refresh of %s", player_id)
            async with self.locks.hold(player_id):
                view = await self._aggregate_and_store(player_id)
            return dataclasses.replace(view, is_stale=False, source="scrape")

        if not await self.is_stale(cached, self.clock()):
            return dataclasses.replace(cached, is_stale=False, source="cache")

        await self.refresh_in_background(player_id)
        return dataclasses.replace(cached, is_stale=True, source="cache")

    @property
    def pending_refreshes(self) -> int:
        return len(self._tasks)

    async def wait_idle(self) -> None:
        """Wait for all running background refreshes."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel running background refreshes."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("SyncCoordinator stopped (%d refreshes cancelled)", len(tasks))
