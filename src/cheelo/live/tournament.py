"""
Single-tournament live rating scrape.

TournamentScraper turns one tournament URL into a TournamentChange:

1. Roster (name → FIDE id) and tournament page are fetched together.
   A missing roster only means opponents keep their printed rating.
2. The rating list is detected from the time control label, then the
   page title and text, then the tournament details page. Standard is
   the default.
3. The player's rating for that list comes from the FIDE profile when
   rated there, otherwise from the page.
4. Each game row is scored. A rating change printed by the site is
   used as is. Otherwise the change is computed against the opponent's
   current FIDE rating (looked up through the roster) or, failing that,
   the printed rating. Rows without a usable change or result are dropped.
5. Games before the cutoff date are removed using the round schedule.
   Without a schedule every game is kept.

A failing tournament yields None and never aborts the aggregation.
"""

import asyncio
import dataclasses
import logging
import re
from datetime import date
from typing import Iterable, Optional

from cheelo.config import settings
from cheelo.elo.calculator import kfactor_from_birth_year, rating_delta
from cheelo.elo.constants import DEFAULT_RATING_TYPE, RESULT_SCORES, RatingType
from cheelo.live.models import GameResult, TournamentChange
from cheelo.players.aliases import resolve_roster_id
from cheelo.scrape.base import ExternalDataSource, Profile, RawGameRow, TournamentPage

logger = logging.getLogger(__name__)

_MINUS_SIGNS = re.compile(r"[\u2212\u2013\u2014]")
_DELTA_RE = re.compile(r"^[+-]?\d+(?:\.\d+)?")

_RAPID_WORDS = ("rapid", "rápido", "rapido")
_LABELLED_TYPE_RE = re.compile(r"(?:Control de tiempo|Time control)\s*\((Rapid|Blitz|Standard)\)", re.IGNORECASE)
_DETAILS_TYPE_RES: list[tuple[RatingType, list[re.Pattern]]] = [
    (
        "rapid",
        [
            re.compile(r"(?:Time control|Control de tiempo)\s*[^:]*:\s*Rapid", re.IGNORECASE),
            re.compile(r"(?:Time control|Control de tiempo)\s*\(Rapid\)", re.IGNORECASE),
            re.compile(r"Rapid Rating"),
        ],
    ),
    (
        "blitz",
        [
            re.compile(r"(?:Time control|Control de tiempo)\s*[^:]*:\s*Blitz", re.IGNORECASE),
            re.compile(r"(?:Time control|Control de tiempo)\s*\(Blitz\)", re.IGNORECASE),
            re.compile(r"Blitz Rating"),
        ],
    ),
]


# =============================================================================
# Row helpers
# =============================================================================


def parse_declared_delta(text: Optional[str]) -> Optional[float]:
    """
    Rating change as printed by the site, or None if not a number.

    Handles unicode minus/dash signs and decimal commas:
        parse_declared_delta("−4,6")  # → -4.6
    """
    if not text:
        return None
    normalized = _MINUS_SIGNS.sub("-", text.strip()).replace(",", ".")
    match = _DELTA_RE.match(normalized)
    return float(match.group()) if match else None


def parse_score(result_text: str) -> Optional[float]:
    """1, 0.5 or 0 for a played result; None for anything else (byes, forfeits)."""
    return RESULT_SCORES.get(result_text.strip()) if result_text else None


def filter_games_by_schedule(
    games: Iterable[GameResult],
    schedule: dict[str, date],
    cutoff: date,
) -> tuple[GameResult, ...]:
    """
    Keep games whose round is scheduled on or after cutoff.

    An empty schedule keeps everything. With a schedule, rounds it does
    not list are dropped. Applying the filter twice gives the same games.
    """
    games = tuple(games)
    if not schedule:
        return games
    return tuple(g for g in games if g.round in schedule and schedule[g.round] >= cutoff)


# =============================================================================
# Rating type detection
# =============================================================================


def rating_type_from_label(label: Optional[str]) -> Optional[RatingType]:
    """From the value of a 'Time control' label."""
    if not label:
        return None
    label = label.lower()
    if any(word in label for word in _RAPID_WORDS):
        return "rapid"
    if "blitz" in label:
        return "blitz"
    if "standard" in label or "estándar" in label:
        return "standard"
    return None


def rating_type_from_page(name: str, text: str) -> Optional[RatingType]:
    """From 'Time control (Rapid)' style headings, then title keywords."""
    match = _LABELLED_TYPE_RE.search(text or "")
    if match:
        return match.group(1).lower()

    title = (name or "").lower()
    if any(word in title for word in _RAPID_WORDS):
        return "rapid"
    if "blitz" in title:
        return "blitz"

    lower = (text or "").lower()
    if "ritmo de juego: rápido" in lower or "ritmo de juego: rapid" in lower:
        return "rapid"
    return None


def rating_type_from_details(html: Optional[str]) -> Optional[RatingType]:
    """From the tournament details page (only rapid and blitz are conclusive)."""
    if not html:
        return None
    for rating_type, patterns in _DETAILS_TYPE_RES:
        if any(pattern.search(html) for pattern in patterns):
            return rating_type
    return None


# =============================================================================
# Opponent ratings
# =============================================================================


class OpponentRatingCache:
    """
    Current FIDE profiles of opponents, fetched once per aggregation run.

    Concurrent requests for the same opponent share one fetch. The map of
    fetches is guarded by an asyncio.Lock since tournaments are scraped
    in parallel.
    """

    def __init__(self, source: ExternalDataSource):
        self._source = source
        self._lock = asyncio.Lock()
        self._fetches: dict[str, asyncio.Task] = {}

    async def profile(self, fide_id: str) -> Optional[Profile]:
        async with self._lock:
            task = self._fetches.get(fide_id)
            if task is None:
                task = asyncio.ensure_future(self._source.fetch_profile(fide_id))
                self._fetches[fide_id] = task
        return await task

    async def rating(self, fide_id: str, rating_type: RatingType) -> Optional[int]:
        """Opponent's official rating in one list, None when unrated or unknown."""
        profile = await self.profile(fide_id)
        if profile is None:
            return None
        value = profile.rating_for(rating_type)
        return value if value > 0 else None

    def __len__(self) -> int:
        return len(self._fetches)


# =============================================================================
# Scraper
# =============================================================================


class TournamentScraper:
    """
    Produces a TournamentChange for one tournament and player.

    Usage:
        scraper = TournamentScraper(source)
        change = await scraper.scrape(url, profile, cutoff=date(2025, 3, 1),
                                      opponents=OpponentRatingCache(source))
    """

    def __init__(self, source: ExternalDataSource, roster_match_threshold: Optional[float] = None):
        self.source = source
        self.roster_match_threshold = (
            roster_match_threshold if roster_match_threshold is not None else settings.roster_match_threshold
        )

    async def detect_rating_type(self, page: TournamentPage) -> RatingType:
        rating_type = rating_type_from_label(page.time_control) or rating_type_from_page(page.name, page.text)
        if rating_type is None:
            details = await self.source.fetch_time_control(page.url)
            rating_type = rating_type_from_details(details)
        return rating_type or DEFAULT_RATING_TYPE

    async def _score_row(
        self,
        row: RawGameRow,
        rating_type: RatingType,
        player_rating: int,
        k: int,
        roster: dict[str, str],
        opponents: OpponentRatingCache,
    ) -> Optional[GameResult]:
        score = parse_score(row.result_text)
        declared = parse_declared_delta(row.declared_delta_text)
        opponent_rating = row.opponent_rating

        if declared is not None:
            delta = round(declared, 2)
        elif score is not None:
            fide_id = resolve_roster_id(row.opponent_name, roster, self.roster_match_threshold)
            if fide_id:
                opponent_rating = await opponents.rating(fide_id, rating_type) or opponent_rating
            if player_rating > 0 and opponent_rating:
                delta = round(rating_delta(player_rating, opponent_rating, score, k), 2)
            else:
                delta = 0.0
        else:
            logger.debug("Dropping row %s vs %s: no result or rating change", row.round, row.opponent_name)
            return None

        return GameResult(
            round=row.round,
            opponent_name=row.opponent_name,
            opponent_rating=opponent_rating,
            result=row.result_text,
            score=score,
            rating_delta=delta,
        )

    async def scrape(
        self,
        url: str,
        profile: Profile,
        cutoff: date,
        opponents: OpponentRatingCache,
        today: Optional[date] = None,
        name_hint: Optional[str] = None,
    ) -> Optional[TournamentChange]:
        """
        Scrape one tournament for the player.

        Args:
            url: Tournament (player card) URL
            profile: The player's official profile
            cutoff: Games scheduled before this date are ignored
            opponents: Opponent rating cache shared by the aggregation run
            today: Reference date for the player's age
            name_hint: Name to use if the page has none

        Returns:
            TournamentChange, or None if the tournament could not be read
        """
        try:
            return await self._scrape(url, profile, cutoff, opponents, today or date.today(), name_hint)
        except Exception:
            logger.exception("Failed to scrape tournament %s", url)
            return None

    async def _scrape(
        self,
        url: str,
        profile: Profile,
        cutoff: date,
        opponents: OpponentRatingCache,
        today: date,
        name_hint: Optional[str],
    ) -> Optional[TournamentChange]:
        roster, page = await asyncio.gather(
            self.source.fetch_roster(url),
            self.source.fetch_tournament_page(url),
        )
        if page is None:
            logger.info("Tournament page unavailable: %s", url)
            return None

        rating_type = await self.detect_rating_type(page)

        player_rating = profile.rating_for(rating_type) or page.player_rating
        k = kfactor_from_birth_year(rating_type, player_rating, page.birth_year or profile.birth_year, today)

        # gather keeps page order
        scored = await asyncio.gather(*(
            self._score_row(row, rating_type, player_rating, k, roster or {}, opponents)
            for row in page.games
        ))
        games = tuple(game for game in scored if game is not None)

        if games:
            schedule = await self.source.fetch_schedule(url)
            if not schedule:
                logger.debug("No schedule for %s, keeping all %d games", url, len(games))
            games = filter_games_by_schedule(games, schedule or {}, cutoff)

        change = TournamentChange(
            name=page.name or name_hint or url,
            url=url,
            rating_type=rating_type,
            games=games,
            total_delta=round(sum(game.rating_delta for game in games), 2),
            start_date=page.start_date,
            end_date=page.end_date,
            rounds=page.rounds,
            k_factor=k,
        )
        logger.debug("Scraped %r", change)
        return change


def refilter(change: TournamentChange, schedule: dict[str, date], cutoff: date) -> TournamentChange:
    """A copy of change with its games filtered again and the total recomputed."""
    games = filter_games_by_schedule(change.games, schedule, cutoff)
    return dataclasses.replace(
        change,
        games=games,
        total_delta=round(sum(game.rating_delta for game in games), 2),
    )
