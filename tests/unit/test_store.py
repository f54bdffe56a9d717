"""Unit tests for the SQLAlchemy document store."""

from datetime import date, datetime, timezone

import pytest

from cheelo.db.models import PlayerView
from cheelo.live.models import AggregatedPlayerView, GameResult, TournamentChange
from cheelo.scrape.base import Profile, RatingHistoryPoint

NOW = datetime(2025, 3, 15, 12, 0, tzinfo=timezone.utc)


def _view(live_standard=1767.1, name="Paz Mendez, German"):
    change = TournamentChange(
        name="Bilbao Open 2025",
        url="https://chess-results.com/tnr1001.aspx",
        rating_type="standard",
        games=(GameResult("1", "Lopez, Juan", "1", 1.0, 3.2, opponent_rating=1900),),
        total_delta=3.2,
        start_date=date(2025, 3, 8),
        end_date=date(2025, 3, 16),
        rounds="9",
        k_factor=20,
    )
    return AggregatedPlayerView(
        player_id="2253383",
        profile=Profile(name=name, standard_rating=1765, federation="ESP", birth_year=1990),
        history=(RatingHistoryPoint("2025-Feb", standard=1765),),
        active_tournaments=(change,),
        live_standard=live_standard,
        delta_standard=2.1,
        last_updated=NOW,
        source="scrape",
    )


def test_player_view_round_trip(store):
    view = _view()

    store.set_player_view("2253383", view)
    loaded = store.get_player_view("2253383")

    assert loaded == view
    assert loaded.last_updated.tzinfo is not None


def test_missing_player_view(store):
    assert store.get_player_view("404") is None


def test_set_player_view_replaces_document(store, session_factory):
    store.set_player_view("2253383", _view())
    store.set_player_view("2253383", _view(live_standard=1770.0, name="Paz, German"))

    loaded = store.get_player_view("2253383")
    assert loaded.live_standard == 1770.0
    assert loaded.active_tournaments[0].games[0].opponent_rating == 1900

    session = session_factory()
    try:
        rows = session.query(PlayerView).all()
        assert len(rows) == 1
        assert rows[0].name == "Paz, German"
        assert rows[0].standard_rating == 1765
    finally:
        session.close()


def test_tournament_documents(store):
    store.set_tournament(
        "1001",
        {"name": "Bilbao Open 2025", "url": "u", "end_date": "2025-03-20", "location": "Bilbao"},
        area_key="ESP:Bilbao",
        edited_fields=["location"],
        updated_at=NOW,
    )
    store.set_tournament("1002", {"name": "Madrid Open", "end_date": "2025-03-10"}, area_key="ESP:Madrid")

    record = store.get_tournament("1001")
    assert record.data["location"] == "Bilbao"
    assert record.edited_fields == ("location",)
    assert record.updated_at == NOW

    assert [r.tournament_id for r in store.list_tournaments()] == ["1002", "1001"]
    assert [r.tournament_id for r in store.list_tournaments("ESP:Bilbao")] == ["1001"]

    payload = record.to_dict()
    assert payload["id"] == "1001"
    assert payload["editedFields"] == ["location"]
    assert payload["updatedAt"] == NOW.isoformat()


def test_delete_tournaments_ended_before(store):
    store.set_tournament("1", {"end_date": "2025-01-31"})
    store.set_tournament("2", {"end_date": "2025-02-01"})

    assert store.delete_tournaments_ended_before(date(2025, 2, 1)) == 1
    assert store.get_tournament("1") is None
    assert store.get_tournament("2") is not None


def test_failed_write_keeps_previous_view(store, monkeypatch):
    store.set_player_view("2253383", _view())

    def boom(self):
        raise RuntimeError("serialization failed")

    monkeypatch.setattr(AggregatedPlayerView, "to_dict", boom)
    with pytest.raises(RuntimeError):
        store.set_player_view("2253383", _view(live_standard=1800.0))
    monkeypatch.undo()

    assert store.get_player_view("2253383").live_standard == pytest.approx(1767.1)
