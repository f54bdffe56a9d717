"""Unit tests for AggregationService."""

from datetime import date

import pytest

from cheelo.exceptions import PlayerNotFound
from cheelo.live.aggregation import AggregationService, live_rating, rated_cache_key
from cheelo.scrape.base import (
    DiscoveredTournament,
    Profile,
    RatedTournamentList,
    RatedTournamentRef,
    RatingHistoryPoint,
    RawGameRow,
    TournamentPage,
)
from cheelo.tasks.coalescer import RequestCoalescer

PLAYER_ID = "2253383"
PROFILE = Profile(name="Paz Mendez, German", standard_rating=1765, rapid_rating=0, birth_year=1990)


def _url(n: int) -> str:
    return f"https://chess-results.com/tnr{n}.aspx?lan=2&art=9&snr=5"


def _add_tournament(source, n, name, end_date, deltas=(), time_control="Standard", start_date=None):
    url = _url(n)
    source.discovered.setdefault(PLAYER_ID, []).append(DiscoveredTournament(name, url, end_date))
    source.pages[url] = TournamentPage(
        url=url,
        name=name,
        time_control=time_control,
        start_date=start_date or date(2025, 3, 1),
        end_date=end_date,
        games=[
            RawGameRow(str(i + 1), f"Opponent {i + 1}", "1", declared_delta_text=delta)
            for i, delta in enumerate(deltas)
        ],
    )
    return url


@pytest.fixture
def service(fake_source, clock):
    fake_source.profiles[PLAYER_ID] = PROFILE
    return AggregationService(fake_source, RequestCoalescer(), clock=clock, max_tournaments=10, concurrency=4)


def test_rated_cache_key_uses_period_month():
    assert rated_cache_key("1", date(2025, 3, 15)) == "1-2025-03-01"


def test_live_rating_zero_without_official_rating():
    assert live_rating(0, 25.0) == 0.0
    assert live_rating(1765, 2.1) == pytest.approx(1767.1)


@pytest.mark.asyncio
async def test_sums_active_tournaments(service, fake_source, clock):
    _add_tournament(fake_source, 1, "Bilbao Open 2025", date(2025, 3, 20), ["+3.2"])
    _add_tournament(fake_source, 2, "Sestao Masters", date(2025, 3, 12), ["-1.1"])

    view = await service.aggregate(PLAYER_ID)

    assert len(view.active_tournaments) == 2
    assert view.delta_standard == pytest.approx(2.1, abs=0.01)
    assert view.live_standard == pytest.approx(1767.1, abs=0.01)
    assert view.is_stale is False
    assert view.source == "scrape"
    assert view.last_updated == clock.now


@pytest.mark.asyncio
async def test_live_zero_for_unrated_list(service, fake_source):
    _add_tournament(fake_source, 3, "Torneo Rápido Getxo", date(2025, 3, 14), ["+5"], time_control="Rapid")

    view = await service.aggregate(PLAYER_ID)

    assert view.delta_rapid == pytest.approx(5.0)
    assert view.live_rapid == 0.0
    assert view.delta_standard == 0.0
    assert view.live_standard == pytest.approx(1765.0)


@pytest.mark.asyncio
async def test_pending_tournament_counts(service, fake_source):
    _add_tournament(fake_source, 4, "Leioa Open", date(2025, 2, 20), ["+4"], start_date=date(2025, 2, 10))

    view = await service.aggregate(PLAYER_ID)

    assert [t.name for t in view.pending_tournaments] == ["Leioa Open"]
    assert view.pending_tournaments[0].is_pending is True
    assert view.active_tournaments == ()
    assert view.delta_standard == pytest.approx(4.0)


@pytest.mark.asyncio
async def test_rated_last_month_not_scraped(service, fake_source):
    _add_tournament(fake_source, 4, "Leioa Open", date(2025, 2, 20), ["+4"])
    fake_source.rated[(PLAYER_ID, date(2025, 2, 1))] = RatedTournamentList(
        period=date(2025, 2, 1),
        refs=[RatedTournamentRef("Leioa Open 2025", "standard")],
    )

    view = await service.aggregate(PLAYER_ID)

    assert view.tournaments == ()
    assert fake_source.calls["fetch_tournament_page"] == 0


@pytest.mark.asyncio
async def test_rated_blitz_dropped_after_scrape(service, fake_source):
    _add_tournament(fake_source, 5, "Barakaldo Semanal 2025", date(2025, 3, 5), ["+6"], time_control="Blitz")
    fake_source.rated[(PLAYER_ID, date(2025, 3, 1))] = RatedTournamentList(
        period=date(2025, 3, 1),
        refs=[RatedTournamentRef("Barakaldo Semanal", "blitz")],
    )

    view = await service.aggregate(PLAYER_ID)

    assert view.tournaments == ()
    assert view.delta_blitz == 0.0
    assert fake_source.calls["fetch_tournament_page"] == 1


@pytest.mark.asyncio
async def test_upcoming_tournament_listed_as_next(service, fake_source):
    _add_tournament(fake_source, 6, "Durango Open", date(2025, 3, 30), [], start_date=date(2025, 3, 25))

    view = await service.aggregate(PLAYER_ID)

    assert [t.name for t in view.next_tournaments] == ["Durango Open"]
    assert view.active_tournaments == ()


@pytest.mark.asyncio
async def test_old_tournaments_excluded(service, fake_source):
    _add_tournament(fake_source, 7, "Old Open", date(2024, 12, 20), ["+9"])

    view = await service.aggregate(PLAYER_ID)

    assert view.tournaments == ()
    assert fake_source.calls["fetch_tournament_page"] == 0


@pytest.mark.asyncio
async def test_failed_tournament_does_not_abort(service, fake_source):
    ok = _add_tournament(fake_source, 1, "Bilbao Open 2025", date(2025, 3, 20), ["+3.2"])
    broken = _add_tournament(fake_source, 2, "Sestao Masters", date(2025, 3, 12), ["-1.1"])
    fake_source.failing_pages.add(broken)

    view = await service.aggregate(PLAYER_ID)

    assert [t.url for t in view.active_tournaments] == [ok]
    assert view.delta_standard == pytest.approx(3.2)


@pytest.mark.asyncio
async def test_duplicate_urls_scraped_once(service, fake_source):
    url = _add_tournament(fake_source, 1, "Bilbao Open 2025", date(2025, 3, 20), ["+3.2"])
    fake_source.discovered[PLAYER_ID].append(DiscoveredTournament("Bilbao Open 2025", url, date(2025, 3, 20)))

    view = await service.aggregate(PLAYER_ID)

    assert len(view.active_tournaments) == 1
    assert fake_source.calls["fetch_tournament_page"] == 1


@pytest.mark.asyncio
async def test_tournament_limit(fake_source, clock):
    fake_source.profiles[PLAYER_ID] = PROFILE
    service = AggregationService(fake_source, RequestCoalescer(), clock=clock, max_tournaments=1)
    _add_tournament(fake_source, 1, "Bilbao Open 2025", date(2025, 3, 20), ["+3.2"])
    _add_tournament(fake_source, 2, "Sestao Masters", date(2025, 3, 12), ["-1.1"])

    view = await service.aggregate(PLAYER_ID)

    assert len(view.active_tournaments) == 1
    assert fake_source.calls["fetch_tournament_page"] == 1


@pytest.mark.asyncio
async def test_player_not_found(service):
    with pytest.raises(PlayerNotFound):
        await service.aggregate("999")


@pytest.mark.asyncio
async def test_peak_standard_from_history(service, fake_source):
    fake_source.histories[PLAYER_ID] = [
        RatingHistoryPoint("2025-Jan", standard=1790),
        RatingHistoryPoint("2025-Feb", standard=1770),
    ]

    view = await service.aggregate(PLAYER_ID)

    assert view.profile.peak_standard == 1790
    assert len(view.history) == 2


@pytest.mark.asyncio
async def test_rated_lookups_cached_between_aggregations(service, fake_source):
    await service.aggregate(PLAYER_ID)
    await service.aggregate(PLAYER_ID)

    # One lookup per settlement period (previous and current month)
    assert fake_source.calls["fetch_rated_tournaments"] == 2


@pytest.mark.asyncio
async def test_incomplete_rated_lookup_not_cached(service, fake_source):
    fake_source.rated[(PLAYER_ID, date(2025, 3, 1))] = RatedTournamentList(period=date(2025, 3, 1), complete=False)

    await service.aggregate(PLAYER_ID)
    await service.aggregate(PLAYER_ID)

    assert fake_source.calls["fetch_rated_tournaments"] == 3


@pytest.mark.asyncio
async def test_failed_history_degrades_to_empty(service, fake_source, monkeypatch):
    _add_tournament(fake_source, 1, "Bilbao Open 2025", date(2025, 3, 20), ["+3"])

    async def broken_history(player_id):
        raise RuntimeError("history endpoint down")

    monkeypatch.setattr(fake_source, "fetch_history", broken_history)

    view = await service.aggregate(PLAYER_ID)

    assert view.history == ()
    assert len(view.active_tournaments) == 1
    assert view.live_standard == pytest.approx(1768.0)


@pytest.mark.asyncio
async def test_failed_discovery_degrades_to_empty(service, fake_source, monkeypatch):
    fake_source.histories[PLAYER_ID] = [RatingHistoryPoint("2025-Feb", standard=1765)]

    async def broken_discovery(player_id, name):
        raise RuntimeError("search failed")

    monkeypatch.setattr(fake_source, "discover_tournaments", broken_discovery)

    view = await service.aggregate(PLAYER_ID)

    assert view.tournaments == ()
    assert len(view.history) == 1
    assert view.live_standard == pytest.approx(1765.0)


@pytest.mark.asyncio
async def test_zero_max_tournaments_scrapes_nothing(fake_source, clock):
    fake_source.profiles[PLAYER_ID] = PROFILE
    _add_tournament(fake_source, 1, "Bilbao Open 2025", date(2025, 3, 20), ["+3"])
    service = AggregationService(fake_source, RequestCoalescer(), clock=clock, max_tournaments=0)

    view = await service.aggregate(PLAYER_ID)

    assert view.active_tournaments == ()
    assert view.delta_standard == 0.0
    assert fake_source.calls["fetch_tournament_page"] == 0


def test_zero_concurrency_rejected(fake_source, clock):
    with pytest.raises(ValueError):
        AggregationService(fake_source, RequestCoalescer(), clock=clock, concurrency=0)
