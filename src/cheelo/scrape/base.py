"""
Base scraper class and common data structures.

Two layers live here:

- ExternalDataSource: the abstract capability the live rating services
  depend on (profile, history, rated tournaments, discovery, roster,
  tournament page, schedule, area search). Implementations must degrade
  to None / empty collections instead of raising.
- BaseScraper: Playwright browser management shared by the FIDE and
  chess-results scrapers. Uses the browser context's request API for
  plain HTTP (it keeps ASP.NET session cookies across form posts) and
  stealth pages for rendered HTML.

Key features:
- Async context manager for proper resource cleanup
- Retry logic with exponential backoff
- Random delays to avoid rate limiting
- Standardized data structures for player and tournament data
"""

import asyncio
import logging
import random
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from playwright.async_api import Browser, BrowserContext, Page, async_playwright
from playwright_stealth import Stealth

from cheelo.config import settings
from cheelo.elo.constants import RatingType
from cheelo.exceptions import DataSourceError

logger = logging.getLogger(__name__)

# Stealth configuration to avoid bot detection
_stealth = Stealth()

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)


@dataclass(frozen=True)
class Profile:
    """
    Official FIDE profile snapshot.

    Ratings are 0 when the player is unrated in that list.
    """

    name: str
    standard_rating: int = 0
    rapid_rating: int = 0
    blitz_rating: int = 0
    federation: Optional[str] = None
    birth_year: Optional[int] = None
    sex: Optional[str] = None
    title: Optional[str] = None

    # Highest standard rating seen in the rating history (filled by aggregation)
    peak_standard: Optional[int] = None

    def rating_for(self, rating_type: RatingType) -> int:
        if rating_type == "rapid":
            return self.rapid_rating
        if rating_type == "blitz":
            return self.blitz_rating
        return self.standard_rating

    def same_ratings(self, other: "Profile") -> bool:
        return (
            self.standard_rating == other.standard_rating
            and self.rapid_rating == other.rapid_rating
            and self.blitz_rating == other.blitz_rating
        )

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "federation": self.federation,
            "birth_year": self.birth_year,
            "sex": self.sex,
            "title": self.title,
            "standard_rating": self.standard_rating,
            "rapid_rating": self.rapid_rating,
            "blitz_rating": self.blitz_rating,
            "peak_standard": self.peak_standard,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Profile":
        return cls(
            name=data.get("name", ""),
            standard_rating=int(data.get("standard_rating") or 0),
            rapid_rating=int(data.get("rapid_rating") or 0),
            blitz_rating=int(data.get("blitz_rating") or 0),
            federation=data.get("federation"),
            birth_year=data.get("birth_year"),
            sex=data.get("sex"),
            title=data.get("title"),
            peak_standard=data.get("peak_standard"),
        )


@dataclass(frozen=True)
class RatingHistoryPoint:
    """One official rating period. None where the player had no rating."""

    period: str
    standard: Optional[int] = None
    rapid: Optional[int] = None
    blitz: Optional[int] = None

    def to_dict(self) -> dict:
        return {"period": self.period, "standard": self.standard, "rapid": self.rapid, "blitz": self.blitz}

    @classmethod
    def from_dict(cls, data: dict) -> "RatingHistoryPoint":
        return cls(
            period=data.get("period", ""),
            standard=data.get("standard"),
            rapid=data.get("rapid"),
            blitz=data.get("blitz"),
        )


@dataclass(frozen=True)
class RatedTournamentRef:
    """Name of a tournament FIDE already rated for a player in some period."""

    name: str
    rating_type: RatingType


@dataclass
class RatedTournamentList:
    """
    Officially rated tournaments for one player and rating period.

    complete is False when one of the per-list requests failed; such a
    result is still usable but must not be cached.
    """

    period: date
    refs: list[RatedTournamentRef] = field(default_factory=list)
    complete: bool = True

    def __iter__(self):
        return iter(self.refs)

    def __len__(self) -> int:
        return len(self.refs)


@dataclass(frozen=True)
class DiscoveredTournament:
    """A tournament found by searching for a player (no game detail yet)."""

    name: str
    url: str
    end_date: Optional[date] = None


@dataclass(frozen=True)
class RawGameRow:
    """
    One crosstable row for the subject player, normalized by the adapter.

    Values are kept as displayed; the live rating services decide how to
    interpret result and rating change text.
    """

    round: str
    opponent_name: str
    result_text: str = ""
    opponent_rating: Optional[int] = None
    declared_delta_text: Optional[str] = None


@dataclass
class TournamentPage:
    """Everything the tournament page tells us about the subject player's event."""

    url: str
    name: str
    text: str = ""
    time_control: Optional[str] = None
    rounds: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    birth_year: Optional[int] = None
    player_rating: int = 0
    games: list[RawGameRow] = field(default_factory=list)


@dataclass(frozen=True)
class AreaTournament:
    """A tournament found by the area search of the background sync."""

    name: str
    url: str
    federation: Optional[str] = None

    @property
    def tournament_id(self) -> Optional[str]:
        return tournament_id_from_url(self.url)


@dataclass
class TournamentDetails:
    """Descriptive tournament data stored by the background sync."""

    organizer: Optional[str] = None
    location: Optional[str] = None
    maps_url: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    time_control: Optional[str] = None
    tempo: Optional[str] = None  # 'Standard', 'Rapid', 'Blitz'
    rounds: Optional[str] = None
    start_date: Optional[str] = None  # ISO format
    end_date: Optional[str] = None  # ISO format
    chief_arbiter: Optional[str] = None
    avg_rating: Optional[str] = None
    poster_image: Optional[str] = None
    regulations: Optional[dict] = None  # {"text": ..., "url": ...}
    schedule: list[dict] = field(default_factory=list)  # [{"round", "date", "time"}]
    top_players: list[dict] = field(default_factory=list)  # [{"name", "title", "fed", "rating"}]
    total_players: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "organizer": self.organizer,
            "location": self.location,
            "maps_url": self.maps_url,
            "lat": self.lat,
            "lng": self.lng,
            "time_control": self.time_control,
            "tempo": self.tempo,
            "rounds": self.rounds,
            "start_date": self.start_date,
            "end_date": self.end_date,
            "chief_arbiter": self.chief_arbiter,
            "avg_rating": self.avg_rating,
            "poster_image": self.poster_image,
            "regulations": self.regulations,
            "schedule": list(self.schedule),
            "top_players": list(self.top_players),
            "total_players": self.total_players,
        }


@dataclass(frozen=True)
class PlayerInfo:
    """Player search hit."""

    name: str
    fide_id: str
    federation: str = ""
    title: Optional[str] = None


def tournament_id_from_url(url: str) -> Optional[str]:
    """Numeric chess-results tournament id ('tnr123456' in the URL)."""
    match = re.search(r"tnr(\d+)", url)
    return match.group(1) if match else None


class ExternalDataSource(ABC):
    """
    Capabilities the live rating engine needs from the outside world.

    Implementations never raise for ordinary fetch failures: they log and
    return None (single objects) or an empty collection.
    """

    @abstractmethod
    async def fetch_profile(self, player_id: str) -> Optional[Profile]:
        """Official profile, or None if the player does not exist or the fetch failed."""

    @abstractmethod
    async def fetch_history(self, player_id: str) -> list[RatingHistoryPoint]:
        """Official rating history ordered by period."""

    @abstractmethod
    async def fetch_rated_tournaments(self, player_id: str, period: date) -> RatedTournamentList:
        """Tournaments already rated for the player in the rating period containing `period`."""

    @abstractmethod
    async def discover_tournaments(
        self,
        player_id: str,
        name: Optional[str] = None,
    ) -> list[DiscoveredTournament]:
        """Recent tournaments of the player, searched by id with a name fallback."""

    @abstractmethod
    async def fetch_roster(self, tournament_url: str) -> dict[str, str]:
        """Participant name → FIDE id."""

    @abstractmethod
    async def fetch_tournament_page(self, tournament_url: str) -> Optional[TournamentPage]:
        """Tournament page content including the subject player's game rows."""

    @abstractmethod
    async def fetch_time_control(self, tournament_url: str) -> Optional[str]:
        """Text of the secondary details page used to detect the rating type."""

    @abstractmethod
    async def fetch_schedule(self, tournament_url: str) -> dict[str, date]:
        """Round label → scheduled date."""

    @abstractmethod
    async def search_area(self, country: str, place: str) -> list[AreaTournament]:
        """Recently updated tournaments for a geographic area."""

    @abstractmethod
    async def fetch_tournament_details(self, tournament_url: str) -> Optional[TournamentDetails]:
        """Descriptive tournament details for the background sync."""

    async def fetch_games(self, tournament_url: str) -> list[RawGameRow]:
        page = await self.fetch_tournament_page(tournament_url)
        return list(page.games) if page else []

    async def search_players(self, query: str) -> list[PlayerInfo]:
        return []


class BaseScraper:
    """
    Playwright session shared by the site scrapers.

    Provides common functionality:
    - Browser/context lifecycle (async context manager)
    - HTTP GET/POST through the context's request API (shares cookies)
    - Rendered page fetches with stealth mode
    - Retry logic and random politeness delays

    Usage:
        async with FideScraper() as scraper:
            profile = await scraper.fetch_profile("2253383")
    """

    # Site root (override in subclasses)
    BASE_URL: str = ""

    def __init__(self, headless: bool = None, context: Optional[BrowserContext] = None):
        """
        Initialize the scraper.

        Args:
            headless: Whether to run browser in headless mode.
                     If None, uses settings.scrape_headless
            context: Existing browser context to share. When given, the
                     scraper does not own (or close) the browser.
        """
        self.headless = headless if headless is not None else settings.scrape_headless
        self.timeout = settings.scrape_timeout

        # Playwright objects (initialized in __aenter__)
        self._playwright = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = context
        self._owns_context = context is None

    async def __aenter__(self) -> "BaseScraper":
        """
        Async context manager entry - starts browser.

        Sets up Playwright with a Chromium browser and a context
        configured for web scraping (user agent, locale, timeout).
        """
        if not self._owns_context:
            return self

        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(headless=self.headless)
        self._context = await self._browser.new_context(
            user_agent=USER_AGENT,
            viewport={"width": 1920, "height": 1080},
            locale="en-US",
            extra_http_headers={"Accept-Language": "en-US,en;q=0.9"},
        )
        self._context.set_default_timeout(self.timeout)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """
        Async context manager exit - cleans up browser resources.

        Always closes browser and Playwright, even if an exception occurred.
        """
        if not self._owns_context:
            return
        if self._context:
            await self._context.close()
        if self._browser:
            await self._browser.close()
        if self._playwright:
            await self._playwright.stop()

    @property
    def context(self) -> BrowserContext:
        if not self._context:
            raise RuntimeError("Scraper not initialized. Use 'async with' context manager.")
        return self._context

    async def new_page(self) -> Page:
        """Create a new browser page with stealth mode enabled."""
        page = await self.context.new_page()
        await _stealth.apply_stealth_async(page)
        return page

    async def get_text(self, url: str, headers: Optional[dict] = None) -> str:
        """GET a URL through the context request API and return the body text."""
        return await self.with_retry(
            lambda: self._request("GET", url, headers=headers),
            description=f"GET {url}",
        )

    async def post_form(self, url: str, form: dict, headers: Optional[dict] = None) -> str:
        """POST an urlencoded form (cookies from earlier requests are sent along)."""
        return await self.with_retry(
            lambda: self._request("POST", url, form=form, headers=headers),
            description=f"POST {url}",
        )

    async def get_rendered(self, url: str) -> str:
        """Load a URL in a stealth page and return the rendered HTML."""
        page = await self.new_page()
        try:
            response = await self.with_retry(
                lambda: page.goto(url, wait_until="domcontentloaded", timeout=self.timeout),
                description=f"Navigate to {url}",
            )
            if response is not None and not response.ok:
                raise DataSourceError(f"HTTP {response.status}", url)
            return await page.content()
        finally:
            await page.close()

    async def _request(
        self,
        method: str,
        url: str,
        form: Optional[dict] = None,
        headers: Optional[dict] = None,
    ) -> str:
        if method == "POST":
            response = await self.context.request.post(
                url, form=form or {}, headers=headers, timeout=self.timeout
            )
        else:
            response = await self.context.request.get(url, headers=headers, timeout=self.timeout)
        if not response.ok:
            raise DataSourceError(f"HTTP {response.status}", url)
        return await response.text()

    async def resolve_redirects(self, url: str, timeout: Optional[int] = None) -> tuple[str, str]:
        """Follow redirects; returns (final URL, body)."""
        response = await self.context.request.get(
            url,
            headers={"Cookie": "CONSENT=YES+;"},
            timeout=timeout or self.timeout,
            max_redirects=10,
        )
        return response.url, await response.text()

    async def random_delay(self) -> None:
        """
        Wait for a random duration to avoid rate limiting.

        Delay is between scrape_delay_min and scrape_delay_max
        from settings.
        """
        delay = random.uniform(settings.scrape_delay_min, settings.scrape_delay_max)
        await asyncio.sleep(delay)

    async def with_retry(
        self,
        coro_func,
        max_attempts: int = None,
        base_delay: float = 1.0,
        description: str = "Operation",
    ):
        """
        Execute an async operation with exponential backoff retry.

        IMPORTANT: Pass a callable (like a lambda) that creates a coroutine,
        not a pre-created coroutine. Coroutines can only be awaited once,
        so we need to create a fresh one for each retry attempt.

        Args:
            coro_func: Callable that returns a coroutine (e.g., lambda: page.goto(url))
            max_attempts: Maximum attempts (default from settings)
            base_delay: Initial delay between retries (doubles each attempt)
            description: Description for logging

        Returns:
            Result of the coroutine

        Raises:
            DataSourceError: wrapping the last exception if all attempts fail
        """
        if max_attempts is None:
            max_attempts = settings.scrape_max_retries

        last_error = None

        for attempt in range(max_attempts):
            try:
                return await coro_func()
            except Exception as e:
                last_error = e

                if attempt < max_attempts - 1:
                    delay = base_delay * (2 ** attempt)
                    # Add some jitter to avoid thundering herd
                    delay += random.uniform(0, 0.5)
                    logger.warning(
                        "[Retry %d/%d] %s failed: %s. Retrying in %.1fs...",
                        attempt + 1, max_attempts, description, e, delay,
                    )
                    await asyncio.sleep(delay)

        if isinstance(last_error, DataSourceError):
            raise last_error
        raise DataSourceError(f"{description} failed: {last_error}") from last_error
