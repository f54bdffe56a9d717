"""
ExternalDataSource backed by the FIDE and chess-results scrapers.

This is the failure boundary between the scrapers and the live rating
services: every operation is bounded by a timeout, and transport
failures (DataSourceError, Playwright errors, timeouts) are logged and
turned into the documented empty value instead of propagating.

Both scrapers share one Playwright browser context, so the process
runs a single browser no matter how many lookups are in flight.

Usage:
    async with ChessDataSource() as source:
        profile = await source.fetch_profile("2253383")
"""

import asyncio
import logging
from datetime import date
from typing import Awaitable, Optional, TypeVar

from playwright.async_api import Error as PlaywrightError

from cheelo.config import settings
from cheelo.exceptions import DataSourceError
from cheelo.scrape.base import (
    AreaTournament,
    DiscoveredTournament,
    ExternalDataSource,
    PlayerInfo,
    Profile,
    RatedTournamentList,
    RatingHistoryPoint,
    TournamentDetails,
    TournamentPage,
)
from cheelo.scrape.chess_results import ChessResultsScraper
from cheelo.scrape.fide import FideScraper

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ChessDataSource(ExternalDataSource):
    """Degrading facade over FideScraper and ChessResultsScraper."""

    def __init__(self, headless: bool = None, timeout: Optional[float] = None):
        self.fide = FideScraper(headless=headless)
        self.chess_results: Optional[ChessResultsScraper] = None
        self.timeout = timeout if timeout is not None else settings.source_operation_timeout

    async def __aenter__(self) -> "ChessDataSource":
        await self.fide.__aenter__()
        self.chess_results = ChessResultsScraper(context=self.fide.context)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.fide.__aexit__(exc_type, exc_val, exc_tb)

    async def _guard(self, operation: Awaitable[T], default: T, description: str) -> T:
        try:
            return await asyncio.wait_for(operation, timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("%s timed out after %.0fs", description, self.timeout)
        except (DataSourceError, PlaywrightError) as e:
            logger.warning("%s failed: %s", description, e)
        return default

    async def fetch_profile(self, player_id: str) -> Optional[Profile]:
        return await self._guard(self.fide.fetch_profile(player_id), None, f"Profile {player_id}")

    async def fetch_history(self, player_id: str) -> list[RatingHistoryPoint]:
        return await self._guard(self.fide.fetch_history(player_id), [], f"History {player_id}")

    async def fetch_rated_tournaments(self, player_id: str, period: date) -> RatedTournamentList:
        return await self._guard(
            self.fide.fetch_rated_tournaments(player_id, period),
            RatedTournamentList(period=period.replace(day=1), complete=False),
            f"Rated tournaments {player_id} {period:%Y-%m}",
        )

    async def discover_tournaments(
        self,
        player_id: str,
        name: Optional[str] = None,
    ) -> list[DiscoveredTournament]:
        return await self._guard(
            self.chess_results.discover_tournaments(player_id, name),
            [],
            f"Tournament discovery {player_id}",
        )

    async def fetch_roster(self, tournament_url: str) -> dict[str, str]:
        return await self._guard(self.chess_results.fetch_roster(tournament_url), {}, f"Roster {tournament_url}")

    async def fetch_tournament_page(self, tournament_url: str) -> Optional[TournamentPage]:
        return await self._guard(
            self.chess_results.fetch_tournament_page(tournament_url),
            None,
            f"Tournament page {tournament_url}",
        )

    async def fetch_time_control(self, tournament_url: str) -> Optional[str]:
        return await self._guard(
            self.chess_results.fetch_time_control(tournament_url),
            None,
            f"Tournament details {tournament_url}",
        )

    async def fetch_schedule(self, tournament_url: str) -> dict[str, date]:
        return await self._guard(self.chess_results.fetch_schedule(tournament_url), {}, f"Schedule {tournament_url}")

    async def search_area(self, country: str, place: str) -> list[AreaTournament]:
        return await self._guard(
            self.chess_results.search_area(country, place),
            [],
            f"Area search {country}:{place}",
        )

    async def fetch_tournament_details(self, tournament_url: str) -> Optional[TournamentDetails]:
        return await self._guard(
            self.chess_results.fetch_tournament_details(tournament_url),
            None,
            f"Tournament details {tournament_url}",
        )

    async def search_players(self, query: str) -> list[PlayerInfo]:
        return await self._guard(self.chess_results.search_players(query), [], f"Player search {query!r}")
