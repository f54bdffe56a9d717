"""
Live rating aggregation for one player.

AggregationService.aggregate(player_id) builds an AggregatedPlayerView:

1. Fetch the official profile (PlayerNotFound if there is none).
2. In parallel: rating history, the tournaments FIDE rated in the
   settlement window (one coalesced lookup per period) and the
   player's recent tournaments on chess-results.
3. Classify every discovered tournament; only active and pending ones
   are scraped, in parallel under a concurrency limit.
4. Classify again with what the tournament page revealed (rating list,
   page name, end date) and mark pending tournaments.
5. Partition into active / pending / next and add the per-list totals
   to the official ratings.

Only the missing profile is fatal. Every other failed lookup degrades
to an empty result.
"""

import asyncio
import dataclasses
import logging
from datetime import date, datetime, timezone
from typing import Callable, Optional

from cheelo.config import settings
from cheelo.elo.constants import RATING_TYPES
from cheelo.exceptions import PlayerNotFound
from cheelo.live.classifier import Classification, TournamentClassifier, TournamentStatus, months_before
from cheelo.live.models import AggregatedPlayerView, TournamentChange
from cheelo.live.tournament import OpponentRatingCache, TournamentScraper
from cheelo.scrape.base import (
    DiscoveredTournament,
    ExternalDataSource,
    Profile,
    RatedTournamentList,
    RatedTournamentRef,
    RatingHistoryPoint,
)
from cheelo.tasks.coalescer import RequestCoalescer

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def rated_cache_key(player_id: str, period: date) -> str:
    """Coalescer key for one player's rated tournaments in one period."""
    return f"{player_id}-{period.replace(day=1).isoformat()}"


def with_peak_standard(profile: Profile, history: list[RatingHistoryPoint]) -> Profile:
    """Profile with peak_standard raised to the best standard rating in history."""
    peak = max((point.standard or 0 for point in history), default=0)
    if peak > (profile.peak_standard or 0):
        return dataclasses.replace(profile, peak_standard=peak)
    return profile


def live_rating(base: int, delta: float) -> float:
    """base + delta, or 0 for a player without an official rating in the list."""
    return round(base + delta, 2) if base > 0 else 0.0


class AggregationService:
    """
    Computes a player's live ratings from official and in-progress results.

    Usage:
        service = AggregationService(source, RequestCoalescer())
        view = await service.aggregate("2253383")
        print(view.live_standard)
    """

    def __init__(
        self,
        source: ExternalDataSource,
        coalescer: RequestCoalescer,
        classifier: Optional[TournamentClassifier] = None,
        scraper: Optional[TournamentScraper] = None,
        clock: Callable[[], datetime] = utcnow,
        max_tournaments: Optional[int] = None,
        concurrency: Optional[int] = None,
    ):
        self.source = source
        self.coalescer = coalescer
        self.classifier = classifier or TournamentClassifier()
        self.scraper = scraper or TournamentScraper(source)
        self.clock = clock
        self.max_tournaments = max_tournaments if max_tournaments is not None else settings.live_max_tournaments
        self.concurrency = concurrency if concurrency is not None else settings.live_scrape_concurrency
        if self.concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {self.concurrency}")

    async def rated_tournaments(self, player_id: str, period: date) -> RatedTournamentList:
        """Rated tournaments for one period, shared between concurrent callers."""
        return await self.coalescer.get(
            rated_cache_key(player_id, period),
            ttl=settings.rated_tournaments_cache_ttl_seconds,
            producer=lambda: self.source.fetch_rated_tournaments(player_id, period),
            should_cache=lambda result: result.complete,
        )

    def settlement_periods(self, today: date) -> list[date]:
        """First days of the months whose rated lists matter, oldest first."""
        months = self.classifier.policy.pending_months
        return [months_before(today, offset) for offset in range(months, -1, -1)]

    @staticmethod
    def _or_empty(result, description: str, player_id: str) -> list:
        if isinstance(result, asyncio.CancelledError):
            raise result
        if isinstance(result, BaseException):
            logger.warning("%s for %s unavailable: %r", description, player_id, result)
            return []
        return result

    async def _rated_refs(self, player_id: str, today: date) -> list[RatedTournamentRef]:
        periods = self.settlement_periods(today)
        results = await asyncio.gather(
            *(self.rated_tournaments(player_id, period) for period in periods),
            return_exceptions=True,
        )
        refs: list[RatedTournamentRef] = []
        for period, result in zip(periods, results):
            if isinstance(result, BaseException):
                logger.warning("Rated tournaments for %s in %s unavailable: %s", player_id, period, result)
                continue
            refs.extend(result)
        return refs

    def _candidates(
        self,
        discovered: list[DiscoveredTournament],
        today: date,
        refs: list[RatedTournamentRef],
    ) -> list[tuple[DiscoveredTournament, Classification]]:
        seen: set[str] = set()
        candidates = []
        for tournament in discovered:
            if tournament.url in seen:
                continue
            seen.add(tournament.url)
            classification = self.classifier.classify(tournament.name, tournament.end_date, today, refs)
            if classification.counts:
                candidates.append((tournament, classification))
            else:
                logger.debug("Skipping %r (%s)", tournament.name, classification.status.value)

        if len(candidates) > self.max_tournaments:
            logger.info("Limiting %d candidate tournaments to %d", len(candidates), self.max_tournaments)
        return candidates[: self.max_tournaments]

    async def _scrape_candidate(
        self,
        tournament: DiscoveredTournament,
        classification: Classification,
        profile: Profile,
        today: date,
        refs: list[RatedTournamentRef],
        opponents: OpponentRatingCache,
        semaphore: asyncio.Semaphore,
    ) -> Optional[TournamentChange]:
        async with semaphore:
            change = await self.scraper.scrape(
                tournament.url,
                profile,
                classification.cutoff,
                opponents,
                today=today,
                name_hint=tournament.name,
            )
        if change is None:
            return None

        final = self.classifier.classify(
            change.name,
            change.end_date or tournament.end_date,
            today,
            refs,
            change.rating_type,
        )
        if final.status == TournamentStatus.EXCLUDED:
            logger.info("Dropping %r after scrape: %s rating already official", change.name, change.rating_type)
            return None
        return dataclasses.replace(change, is_pending=final.status == TournamentStatus.PENDING)

    async def aggregate(self, player_id: str, profile: Optional[Profile] = None) -> AggregatedPlayerView:
        """
        Build the live view of a player.

        Args:
            player_id: FIDE id
            profile: Already fetched official profile (fetched if None)

        Raises:
            PlayerNotFound: if there is no official profile
        """
        now = self.clock()
        today = now.date()
        logger.info("Aggregating live ratings for %s", player_id)

        if profile is None:
            profile = await self.source.fetch_profile(player_id)
        if profile is None:
            raise PlayerNotFound(player_id)

        history, refs, discovered = await asyncio.gather(
            self.source.fetch_history(player_id),
            self._rated_refs(player_id, today),
            self.source.discover_tournaments(player_id, profile.name),
            return_exceptions=True,
        )
        history = self._or_empty(history, "Rating history", player_id)
        refs = self._or_empty(refs, "Rated tournaments", player_id)
        discovered = self._or_empty(discovered, "Tournament discovery", player_id)
        profile = with_peak_standard(profile, history)

        candidates = self._candidates(discovered, today, refs)
        opponents = OpponentRatingCache(self.source)
        semaphore = asyncio.Semaphore(self.concurrency)
        results = await asyncio.gather(*(
            self._scrape_candidate(tournament, classification, profile, today, refs, opponents, semaphore)
            for tournament, classification in candidates
        ))
        changes = [change for change in results if change is not None]

        pending, active, upcoming = [], [], []
        for change in changes:
            if change.is_pending:
                pending.append(change)
            elif change.games or (change.start_date and change.start_date <= today):
                active.append(change)
            else:
                upcoming.append(change)

        deltas = {
            rating_type: round(sum(c.total_delta for c in active + pending if c.rating_type == rating_type), 2)
            for rating_type in RATING_TYPES
        }

        view = AggregatedPlayerView(
            player_id=player_id,
            profile=profile,
            history=tuple(history),
            active_tournaments=tuple(active),
            pending_tournaments=tuple(pending),
            next_tournaments=tuple(upcoming),
            live_standard=live_rating(profile.standard_rating, deltas["standard"]),
            live_rapid=live_rating(profile.rapid_rating, deltas["rapid"]),
            live_blitz=live_rating(profile.blitz_rating, deltas["blitz"]),
            delta_standard=deltas["standard"],
            delta_rapid=deltas["rapid"],
            delta_blitz=deltas["blitz"],
            is_stale=False,
            last_updated=now,
            source="scrape",
        )
        logger.info(
            "Aggregated %s: %d active, %d pending, %d next (std %+.2f, rapid %+.2f, blitz %+.2f)",
            player_id, len(active), len(pending), len(upcoming),
            deltas["standard"], deltas["rapid"], deltas["blitz"],
        )
        return view
