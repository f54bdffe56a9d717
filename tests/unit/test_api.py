"""Unit tests for the read API, run against the in-memory data source."""

from contextlib import asynccontextmanager

import pytest
from fastapi.testclient import TestClient

from cheelo.scrape.base import PlayerInfo, Profile
from cheelo.web.main import Services, create_app

PLAYER_ID = "2253383"


@pytest.fixture
def client(fake_source, store):
    fake_source.profiles[PLAYER_ID] = Profile(name="Paz Mendez, German", standard_rating=1765, federation="ESP")

    @asynccontextmanager
    async def services_factory():
        yield Services.build(fake_source, store)

    with TestClient(create_app(services_factory)) as test_client:
        yield test_client


def test_player_view_then_cache(client, fake_source):
    response = client.get(f"/api/player/{PLAYER_ID}")

    assert response.status_code == 200
    assert response.headers["cache-control"] == "no-store"
    body = response.json()
    assert body["player_id"] == PLAYER_ID
    assert body["profile"]["name"] == "Paz Mendez, German"
    assert body["live_standard"] == 1765.0
    assert body["source"] == "scrape"
    assert body["is_stale"] is False

    again = client.get(f"/api/player/{PLAYER_ID}").json()
    assert again["source"] == "cache"
    assert fake_source.calls["fetch_history"] == 1


def test_refresh_forces_aggregation(client, fake_source):
    client.get(f"/api/player/{PLAYER_ID}")

    body = client.get(f"/api/player/{PLAYER_ID}", params={"refresh": "true"}).json()

    assert body["source"] == "scrape"
    assert fake_source.calls["fetch_history"] == 2


def test_unknown_player_is_404(client):
    response = client.get("/api/player/999")

    assert response.status_code == 404
    assert response.json() == {"error": "Player not found"}
    assert response.headers["cache-control"] == "no-store"


def test_source_failure_is_500(client, fake_source, monkeypatch):
    async def broken_profile(player_id):
        raise RuntimeError("FIDE down")

    monkeypatch.setattr(fake_source, "fetch_profile", broken_profile)

    response = client.get(f"/api/player/{PLAYER_ID}")

    assert response.status_code == 500
    assert response.json() == {"error": "Failed to fetch player data"}
    assert response.headers["cache-control"] == "no-store"


def test_search(client, fake_source):
    fake_source.players = [
        PlayerInfo(name="Paz Mendez, German", fide_id=PLAYER_ID, federation="ESP"),
        PlayerInfo(name="Lopez, Juan", fide_id="2253999", federation="ESP"),
    ]

    assert client.get("/api/search", params={"q": "paz"}).json() == [
        {"name": "Paz Mendez, German", "fide_id": PLAYER_ID, "federation": "ESP", "title": None},
    ]


def test_empty_search_makes_no_calls(client, fake_source):
    assert client.get("/api/search", params={"q": "  "}).json() == []
    assert fake_source.calls["search_players"] == 0


@pytest.fixture
def stored_tournaments(store):
    store.set_tournament(
        "1001",
        {"name": "Bilbao Open 2025", "tempo": "Standard", "end_date": "2025-03-20"},
        area_key="ESP:Bilbao",
    )
    store.set_tournament(
        "1002",
        {"name": "Deusto Rapid", "tempo": "Rapid", "end_date": "2025-03-25"},
        area_key="ESP:Bilbao",
    )
    store.set_tournament(
        "1003",
        {"name": "Madrid Open", "tempo": "Standard", "end_date": "2025-03-30"},
        area_key="ESP:Madrid",
    )


def test_tournaments_latest_first(client, fake_source, stored_tournaments):
    documents = client.get("/api/tournaments").json()

    assert [doc["id"] for doc in documents] == ["1003", "1002", "1001"]
    assert documents[0]["name"] == "Madrid Open"
    assert fake_source.calls["search_area"] == 0


def test_tournaments_by_area_and_tempo(client, stored_tournaments):
    by_area = client.get("/api/tournaments", params={"area": "ESP:Bilbao"}).json()
    assert [doc["id"] for doc in by_area] == ["1002", "1001"]

    standard = client.get("/api/tournaments", params={"area": "ESP:Bilbao", "tempo": "1"}).json()
    assert [doc["id"] for doc in standard] == ["1001"]
