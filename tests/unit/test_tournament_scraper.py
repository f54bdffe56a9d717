"""
Unit tests for the single-tournament live rating scrape.

Uses the scripted FakeDataSource from conftest.py: the scraper only
sees roster, page, schedule and opponent profiles through it.
"""

from datetime import date

import pytest

from cheelo.live.models import GameResult
from cheelo.live.tournament import (
    OpponentRatingCache,
    TournamentScraper,
    filter_games_by_schedule,
    parse_declared_delta,
    parse_score,
    rating_type_from_details,
    rating_type_from_label,
    rating_type_from_page,
    refilter,
)
from cheelo.scrape.base import Profile, RawGameRow, TournamentPage

URL = "https://chess-results.com/tnr1001.aspx?lan=2&art=9&snr=5"
TODAY = date(2025, 3, 15)
CUTOFF = date(2025, 3, 1)

PLAYER = Profile(name="Paz Mendez, German", standard_rating=1765, rapid_rating=1700, birth_year=1990)


def _page(games, **kwargs):
    defaults = dict(
        url=URL,
        name="Bilbao Open 2025",
        time_control="Standard",
        start_date=date(2025, 3, 8),
        end_date=date(2025, 3, 16),
        rounds="9",
        games=games,
    )
    defaults.update(kwargs)
    return TournamentPage(**defaults)


@pytest.fixture
def scraper(fake_source):
    return TournamentScraper(fake_source, roster_match_threshold=0.92)


async def _scrape(scraper, source, profile=PLAYER, cutoff=CUTOFF):
    return await scraper.scrape(URL, profile, cutoff, OpponentRatingCache(source), today=TODAY)


class TestRowHelpers:

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("−4,6", -4.6),
            ("+12.4", 12.4),
            ("\u20143", -3.0),
            ("7", 7.0),
            ("abc", None),
            ("", None),
            (None, None),
        ],
    )
    def test_parse_declared_delta(self, text, expected):
        assert parse_declared_delta(text) == expected

    def test_parse_score(self):
        assert parse_score("1") == 1.0
        assert parse_score("½") == 0.5
        assert parse_score("0") == 0.0
        assert parse_score("+") is None
        assert parse_score("") is None

    def test_schedule_filter_drops_rounds_before_cutoff(self):
        games = [
            GameResult("1", "A", "1", 1.0, 10.0),
            GameResult("2", "B", "0", 0.0, -10.0),
        ]
        schedule = {"1": date(2025, 2, 27), "2": date(2025, 3, 1)}
        kept = filter_games_by_schedule(games, schedule, CUTOFF)
        assert [g.round for g in kept] == ["2"]

    def test_schedule_filter_is_idempotent(self):
        games = [GameResult(str(r), "X", "1", 1.0, 1.0) for r in range(1, 5)]
        schedule = {"1": date(2025, 2, 27), "2": date(2025, 3, 2), "3": date(2025, 3, 3)}
        once = filter_games_by_schedule(games, schedule, CUTOFF)
        assert filter_games_by_schedule(once, schedule, CUTOFF) == once

    def test_empty_schedule_keeps_everything(self):
        games = [GameResult("1", "A", "1", 1.0, 10.0)]
        assert filter_games_by_schedule(games, {}, CUTOFF) == tuple(games)


class TestRatingTypeDetection:

    def test_from_label(self):
        assert rating_type_from_label("Rapid 15'+10\"") == "rapid"
        assert rating_type_from_label("Blitz") == "blitz"
        assert rating_type_from_label("Standard 90 min") == "standard"
        assert rating_type_from_label("90 min + 30 s") is None

    def test_from_page_heading(self):
        assert rating_type_from_page("Bilbao Open", "Time control (Blitz) ...") == "blitz"

    def test_from_page_title(self):
        assert rating_type_from_page("Torneo Rápido de Bilbao", "") == "rapid"
        assert rating_type_from_page("Bilbao Open", "") is None

    def test_from_details(self):
        assert rating_type_from_details("<td>Rapid Rating</td>") == "rapid"
        assert rating_type_from_details("<td>Time control: Blitz 3+2</td>") == "blitz"
        assert rating_type_from_details("<td>Standard</td>") is None
        assert rating_type_from_details(None) is None


class TestTournamentScraper:

    @pytest.mark.asyncio
    async def test_declared_and_computed_deltas(self, scraper, fake_source):
        fake_source.pages[URL] = _page([
            RawGameRow("1", "Lopez, Juan", "1", opponent_rating=1500),
            RawGameRow("2", "Perez, Ana", "0", opponent_rating=1800, declared_delta_text="−4,6"),
            RawGameRow("3", "bye", "+"),
        ])
        fake_source.rosters[URL] = {"Lopez, Juan": "100"}
        fake_source.profiles["100"] = Profile(name="Lopez, Juan", standard_rating=1765)
        fake_source.schedules[URL] = {"1": date(2025, 3, 8), "2": date(2025, 3, 9), "3": date(2025, 3, 10)}

        change = await _scrape(scraper, fake_source)

        assert change is not None
        assert change.name == "Bilbao Open 2025"
        assert change.rating_type == "standard"
        assert change.k_factor == 20
        assert [g.round for g in change.games] == ["1", "2"]
        # Live rating of the opponent replaces the printed one
        assert change.games[0].opponent_rating == 1765
        assert change.games[0].rating_delta == pytest.approx(10.0, abs=0.01)
        assert change.games[1].rating_delta == pytest.approx(-4.6, abs=0.01)
        assert change.total_delta == pytest.approx(5.4, abs=0.01)

    @pytest.mark.asyncio
    async def test_unresolved_opponent_uses_printed_rating(self, scraper, fake_source):
        profile = Profile(name="Paz Mendez, German", standard_rating=1800, birth_year=1990)
        fake_source.pages[URL] = _page([RawGameRow("1", "Unknown, Player", "1", opponent_rating=1600)])

        change = await _scrape(scraper, fake_source, profile=profile)

        assert change.games[0].opponent_rating == 1600
        assert change.total_delta == pytest.approx(4.81, abs=0.01)
        assert fake_source.calls["fetch_profile"] == 0

    @pytest.mark.asyncio
    async def test_opponent_without_rating_gives_zero(self, scraper, fake_source):
        fake_source.pages[URL] = _page([RawGameRow("1", "Newcomer, Ana", "1")])

        change = await _scrape(scraper, fake_source)

        assert change.games[0].rating_delta == 0.0
        assert change.total_delta == 0.0

    @pytest.mark.asyncio
    async def test_same_opponent_fetched_once(self, scraper, fake_source):
        fake_source.pages[URL] = _page([
            RawGameRow("1", "Lopez, Juan", "1", opponent_rating=1765),
            RawGameRow("2", "Lopez, Juan", "½", opponent_rating=1765),
        ])
        fake_source.rosters[URL] = {"Lopez, Juan": "100"}
        fake_source.profiles["100"] = Profile(name="Lopez, Juan", standard_rating=1765)

        await _scrape(scraper, fake_source)

        assert fake_source.calls["fetch_profile"] == 1

    @pytest.mark.asyncio
    async def test_games_before_cutoff_removed(self, scraper, fake_source):
        fake_source.pages[URL] = _page([
            RawGameRow("1", "A", "1", declared_delta_text="5"),
            RawGameRow("2", "B", "1", declared_delta_text="3"),
        ])
        fake_source.schedules[URL] = {"1": date(2025, 2, 28), "2": date(2025, 3, 1)}

        change = await _scrape(scraper, fake_source)

        assert [g.round for g in change.games] == ["2"]
        assert change.total_delta == pytest.approx(3.0)

    @pytest.mark.asyncio
    async def test_missing_schedule_keeps_all_games(self, scraper, fake_source):
        fake_source.pages[URL] = _page([
            RawGameRow("1", "A", "1", declared_delta_text="5"),
            RawGameRow("2", "B", "1", declared_delta_text="3"),
        ])

        change = await _scrape(scraper, fake_source)

        assert len(change.games) == 2
        assert change.total_delta == pytest.approx(8.0)

    @pytest.mark.asyncio
    async def test_no_games_skips_schedule(self, scraper, fake_source):
        fake_source.pages[URL] = _page([])

        change = await _scrape(scraper, fake_source)

        assert change.games == ()
        assert change.total_delta == 0.0
        assert fake_source.calls["fetch_schedule"] == 0

    @pytest.mark.asyncio
    async def test_rating_type_from_details_page(self, scraper, fake_source):
        fake_source.pages[URL] = _page(
            [RawGameRow("1", "A", "1", opponent_rating=1700)],
            name="Bilbao Open 2025",
            time_control=None,
        )
        fake_source.time_controls[URL] = "<td>Rapid Rating</td>"

        change = await _scrape(scraper, fake_source)

        assert change.rating_type == "rapid"
        # Player's rapid rating (1700) against 1700
        assert change.total_delta == pytest.approx(10.0, abs=0.01)

    @pytest.mark.asyncio
    async def test_defaults_to_standard(self, scraper, fake_source):
        fake_source.pages[URL] = _page([], time_control=None)

        change = await _scrape(scraper, fake_source)

        assert change.rating_type == "standard"
        assert fake_source.calls["fetch_time_control"] == 1

    @pytest.mark.asyncio
    async def test_player_rating_falls_back_to_page(self, scraper, fake_source):
        profile = Profile(name="Paz Mendez, German", standard_rating=0, birth_year=1990)
        fake_source.pages[URL] = _page(
            [RawGameRow("1", "A", "1", opponent_rating=1600)],
            player_rating=1600,
        )

        change = await _scrape(scraper, fake_source, profile=profile)

        assert change.total_delta == pytest.approx(10.0, abs=0.01)

    @pytest.mark.asyncio
    async def test_junior_k_from_page_birth_year(self, scraper, fake_source):
        fake_source.pages[URL] = _page([], birth_year=2010)

        change = await _scrape(scraper, fake_source)

        assert change.k_factor == 40

    @pytest.mark.asyncio
    async def test_missing_page_returns_none(self, scraper, fake_source):
        assert await _scrape(scraper, fake_source) is None

    @pytest.mark.asyncio
    async def test_failure_returns_none(self, scraper, fake_source):
        fake_source.failing_pages.add(URL)
        assert await _scrape(scraper, fake_source) is None

    @pytest.mark.asyncio
    async def test_refilter_recomputes_total(self, scraper, fake_source):
        fake_source.pages[URL] = _page([
            RawGameRow("1", "A", "1", declared_delta_text="5"),
            RawGameRow("2", "B", "1", declared_delta_text="3"),
        ])
        change = await _scrape(scraper, fake_source)

        narrowed = refilter(change, {"1": date(2025, 2, 28), "2": date(2025, 3, 2)}, CUTOFF)

        assert narrowed.total_delta == pytest.approx(3.0)
        assert refilter(narrowed, {"1": date(2025, 2, 28), "2": date(2025, 3, 2)}, CUTOFF) == narrowed

    @pytest.mark.asyncio
    async def test_fetch_games_reads_page_rows(self, fake_source):
        rows = [RawGameRow("1", "Lopez, Juan", "1", opponent_rating=1900)]
        fake_source.pages[URL] = _page(rows)

        assert await fake_source.fetch_games(URL) == rows
        assert await fake_source.fetch_games("https://chess-results.com/tnr404.aspx") == []
