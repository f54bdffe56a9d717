"""
Pytest configuration and fixtures.

This file is automatically loaded by pytest and provides
shared fixtures for all tests.
"""

import asyncio
from collections import Counter
from datetime import date, datetime, timedelta, timezone
from typing import Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from cheelo.db.models import Base
from cheelo.db.store import DocumentStore
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


class FakeDataSource(ExternalDataSource):
    """
    Scripted in-memory data source.

    Every operation returns what the test put in the matching dict (or
    the documented empty value) and counts the call in `calls`.
    `delay` makes every call yield to the event loop for that many
    seconds, which lets concurrency tests overlap requests.
    """

    def __init__(self, delay: float = 0.0):
        self.delay = delay
        self.calls: Counter = Counter()
        self.profiles: dict[str, Profile] = {}
        self.histories: dict[str, list[RatingHistoryPoint]] = {}
        self.rated: dict[tuple[str, date], RatedTournamentList] = {}
        self.discovered: dict[str, list[DiscoveredTournament]] = {}
        self.rosters: dict[str, dict[str, str]] = {}
        self.pages: dict[str, TournamentPage] = {}
        self.time_controls: dict[str, str] = {}
        self.schedules: dict[str, dict[str, date]] = {}
        self.areas: dict[tuple[str, str], list[AreaTournament]] = {}
        self.details: dict[str, TournamentDetails] = {}
        self.players: list[PlayerInfo] = []
        self.failing_pages: set[str] = set()

    async def _call(self, name: str) -> None:
        self.calls[name] += 1
        if self.delay:
            await asyncio.sleep(self.delay)

    async def fetch_profile(self, player_id: str) -> Optional[Profile]:
        await self._call("fetch_profile")
        return self.profiles.get(player_id)

    async def fetch_history(self, player_id: str) -> list[RatingHistoryPoint]:
        await self._call("fetch_history")
        return list(self.histories.get(player_id, []))

    async def fetch_rated_tournaments(self, player_id: str, period: date) -> RatedTournamentList:
        await self._call("fetch_rated_tournaments")
        period = period.replace(day=1)
        scripted = self.rated.get((player_id, period))
        return scripted if scripted is not None else RatedTournamentList(period=period)

    async def discover_tournaments(self, player_id: str, name: Optional[str] = None) -> list[DiscoveredTournament]:
        await self._call("discover_tournaments")
        return list(self.discovered.get(player_id, []))

    async def fetch_roster(self, tournament_url: str) -> dict[str, str]:
        await self._call("fetch_roster")
        return dict(self.rosters.get(tournament_url, {}))

    async def fetch_tournament_page(self, tournament_url: str) -> Optional[TournamentPage]:
        await self._call("fetch_tournament_page")
        if tournament_url in self.failing_pages:
            raise RuntimeError(f"page failed: {tournament_url}")
        return self.pages.get(tournament_url)

    async def fetch_time_control(self, tournament_url: str) -> Optional[str]:
        await self._call("fetch_time_control")
        return self.time_controls.get(tournament_url)

    async def fetch_schedule(self, tournament_url: str) -> dict[str, date]:
        await self._call("fetch_schedule")
        return dict(self.schedules.get(tournament_url, {}))

    async def search_area(self, country: str, place: str) -> list[AreaTournament]:
        await self._call("search_area")
        return list(self.areas.get((country, place), []))

    async def fetch_tournament_details(self, tournament_url: str) -> Optional[TournamentDetails]:
        await self._call("fetch_tournament_details")
        return self.details.get(tournament_url)

    async def search_players(self, query: str) -> list[PlayerInfo]:
        await self._call("search_players")
        return [p for p in self.players if query.lower() in p.name.lower() or query == p.fide_id]

    @property
    def total_calls(self) -> int:
        return sum(self.calls.values())


class FixedClock:
    """Settable clock returning timezone-aware UTC datetimes."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def fake_source():
    return FakeDataSource()


@pytest.fixture
def clock():
    return FixedClock(datetime(2025, 3, 15, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def test_engine():
    """
    SQLite in-memory engine for tests.

    StaticPool keeps a single connection so every session sees the
    same in-memory database.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return sessionmaker(bind=test_engine, autocommit=False, autoflush=False)


@pytest.fixture
def store(session_factory):
    return DocumentStore(session_factory)


@pytest.fixture
def slow_source():
    """FakeDataSource whose calls yield, so concurrent callers overlap."""
    return FakeDataSource(delay=0.01)
