"""
Background discovery of tournaments by area.

For an area (country plus place) the orchestrator searches chess-results
for recently updated tournaments and stores their details (location,
coordinates, schedule, top players) as tournament documents:

1. The place expands to one or more search terms (JSON file, built-in
   mapping, or the place itself).
2. Each tournament found is processed once per run, and skipped when its
   stored document was refreshed within the minimum update interval.
3. Details without a location are not stored.
4. Fields listed in a document's edited_fields were curated by hand and
   keep their stored values.

Only one sync per area runs at a time. A second request for the same
area while one is running is skipped, not queued.
"""

import asyncio
import json
import logging
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

from cheelo.config import settings
from cheelo.db.store import DocumentStore, TournamentRecord
from cheelo.live.aggregation import utcnow
from cheelo.scrape.base import AreaTournament, ExternalDataSource
from cheelo.tasks.locks import KeyedLocks
from cheelo.tasks.runtime import SyncRunResult

logger = logging.getLogger(__name__)

# Places whose tournaments are usually listed under another name
CITY_SEARCH_MAPPING: dict[str, list[str]] = {
    "Santa Cruz de Tenerife": ["Tenerife", "La Laguna"],
    "Las Palmas": ["Gran Canaria", "Las Palmas"],
    "Madrid": ["Madrid"],
    "Barcelona": ["Barcelona"],
    "Valencia": ["Valencia"],
    "Sevilla": ["Sevilla"],
    "Bilbao": ["Bilbao", "Vizcaya"],
    "Málaga": ["Málaga"],
}


def area_key(country: str, place: str) -> str:
    return f"{country}:{place}"


def parse_area_key(key: str, default_country: str = "ESP") -> tuple[str, str]:
    """'ESP:Bilbao' → ('ESP', 'Bilbao'); a bare place uses default_country."""
    country, sep, place = key.partition(":")
    if not sep:
        return default_country, key.strip()
    return country.strip() or default_country, place.strip()


def load_search_terms(path: Optional[str]) -> dict[str, list[str]]:
    """Place → search terms mapping from a JSON file; empty when unavailable."""
    if not path:
        return {}
    file = Path(path)
    if not file.exists():
        logger.warning("Search terms file %s not found, using built-in mapping", path)
        return {}
    try:
        mapping = json.loads(file.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.error("Failed to load search terms from %s: %s", path, e)
        return {}
    return {place: list(terms) for place, terms in mapping.items() if terms}


class BackgroundSyncOrchestrator:
    """
    Keeps stored tournament documents of an area up to date.

    Usage:
        orchestrator = BackgroundSyncOrchestrator(source, store)
        result = await orchestrator.sync_area("ESP", "Bilbao")
        print(result.to_dict())

        # Fire and forget (API requests)
        orchestrator.trigger("ESP", "Bilbao")
    """

    def __init__(
        self,
        source: ExternalDataSource,
        store: DocumentStore,
        locks: Optional[KeyedLocks] = None,
        clock: Callable[[], datetime] = utcnow,
        min_update_interval: Optional[timedelta] = None,
        fetch_delay: Optional[float] = None,
        search_terms: Optional[dict[str, list[str]]] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.source = source
        self.store = store
        self.locks = locks or KeyedLocks("area-sync")
        self.clock = clock
        self.min_update_interval = min_update_interval or timedelta(hours=settings.sync_min_update_interval_hours)
        self.fetch_delay = fetch_delay if fetch_delay is not None else settings.sync_fetch_delay
        self.search_term_mapping = (
            search_terms if search_terms is not None else load_search_terms(settings.sync_area_terms_file)
        )
        self._sleep = sleep
        self._tasks: set[asyncio.Task] = set()

    def search_terms(self, place: str) -> list[str]:
        return self.search_term_mapping.get(place) or CITY_SEARCH_MAPPING.get(place) or [place]

    def is_running(self, country: str, place: str) -> bool:
        return self.locks.is_locked(area_key(country, place))

    def _is_recent(self, record: Optional[TournamentRecord], now: datetime) -> bool:
        return record is not None and record.updated_at is not None and now - record.updated_at < self.min_update_interval

    @staticmethod
    def build_payload(
        tournament: AreaTournament,
        details: dict[str, Any],
        country: str,
        previous: Optional[TournamentRecord],
    ) -> tuple[dict[str, Any], list[str]]:
        """
        Document for a freshly scraped tournament.

        Returns:
            (payload, edited_fields), with the stored values of the edited
            fields put back over the scraped ones
        """
        payload = {
            "name": tournament.name,
            "url": tournament.url,
            "fed": tournament.federation,
            **details,
            "country": country,
        }
        edited_fields: list[str] = []
        if previous is not None:
            edited_fields = list(previous.edited_fields)
            for name in edited_fields:
                if name in previous.data:
                    payload[name] = previous.data[name]
        return payload, edited_fields

    async def _sync_tournament(
        self,
        tournament: AreaTournament,
        country: str,
        key: str,
        now: datetime,
        result: SyncRunResult,
    ) -> None:
        tournament_id = tournament.tournament_id
        previous = self.store.get_tournament(tournament_id)
        if self._is_recent(previous, now):
            logger.debug("Tournament %s updated recently, skipping", tournament_id)
            result.skipped += 1
            return

        logger.info("Fetching details for %s: %s", tournament_id, tournament.name)
        try:
            details = await self.source.fetch_tournament_details(tournament.url)
            if details is not None and details.location:
                payload, edited_fields = self.build_payload(tournament, details.to_dict(), country, previous)
                self.store.set_tournament(
                    tournament_id,
                    payload,
                    area_key=key,
                    edited_fields=edited_fields,
                    updated_at=now,
                )
                result.updated += 1
                logger.info("Updated %s (%s)", tournament_id, tournament.name)
            else:
                logger.debug("No location for %s, not stored", tournament_id)
                result.skipped += 1
        finally:
            # Pace every remote fetch, failed ones included
            await self._sleep(self.fetch_delay)

    async def sync_area(self, country: str, place: str) -> SyncRunResult:
        """
        Run one sync for an area.

        Returns:
            SyncRunResult; status 'skipped' if a sync for the area is
            already running
        """
        key = area_key(country, place)
        started_at = self.clock()

        if not place or not await self.locks.try_acquire(key):
            logger.info("Sync for %s already running or no place given, skipping", key)
            return SyncRunResult(area_key=key, status="skipped", started_at=started_at, ended_at=self.clock())

        terms = self.search_terms(place)
        result = SyncRunResult(
            area_key=key,
            status="success",
            started_at=started_at,
            ended_at=started_at,
            search_terms=terms,
        )
        logger.info("Starting sync for %s (terms: %s)", key, ", ".join(terms))
        try:
            processed: set[str] = set()
            for term in terms:
                found = await self.source.search_area(country, term)
                logger.info("Term %r found %d tournaments", term, len(found))

                for tournament in found:
                    tournament_id = tournament.tournament_id
                    if not tournament_id or tournament_id in processed:
                        continue
                    processed.add(tournament_id)
                    result.discovered += 1
                    try:
                        await self._sync_tournament(tournament, country, key, started_at, result)
                    except Exception:
                        logger.exception("Failed to sync tournament %s", tournament_id)
                        result.failed += 1
        except Exception as e:
            logger.exception("Sync for %s failed", key)
            result.status = "failed"
            result.error = str(e)
        finally:
            self.locks.release(key)
            result.ended_at = self.clock()

        logger.info(
            "Sync for %s finished: %d discovered, %d updated, %d skipped, %d failed (%.1fs)",
            key, result.discovered, result.updated, result.skipped, result.failed, result.duration_s,
        )
        return result

    def trigger(self, country: str, place: str) -> Optional[asyncio.Task]:
        """
        Start sync_area in the background.

        Returns:
            The task, or None if a sync for the area is already running
        """
        if self.is_running(country, place):
            logger.info("Sync for %s already running", area_key(country, place))
            return None
        task = asyncio.create_task(self.sync_area(country, place), name=f"sync-{area_key(country, place)}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def prune_expired(self, today: Optional[date] = None) -> int:
        """Delete stored tournaments that ended more than the retention window ago."""
        today = today or self.clock().date()
        cutoff = today - timedelta(days=settings.sync_retention_days)
        deleted = self.store.delete_tournaments_ended_before(cutoff)
        logger.info("Pruned %d tournaments that ended before %s", deleted, cutoff)
        return deleted

    async def wait_idle(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel running syncs."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("BackgroundSyncOrchestrator stopped (%d syncs cancelled)", len(tasks))
