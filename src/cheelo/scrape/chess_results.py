"""
chess-results.com scraper.

chess-results is an ASP.NET WebForms site: searches are form posts that
must echo the page's __VIEWSTATE / __EVENTVALIDATION fields and the
session cookie set by the initial GET. All requests go through the
Playwright browser context, which keeps cookies between the GET and
the POST.

URL patterns (tnrNNN.aspx):
- art=0: starting rank / alphabetical list
- art=1: tournament details (archived events hide them behind a postback)
- art=9: player card with the player's games (snr=N)
- art=14: round schedule
"""

import asyncio
import logging
import re
from datetime import date
from typing import Optional
from urllib.parse import urlsplit

from playwright.async_api import Error as PlaywrightError

from cheelo.config import settings
from cheelo.exceptions import DataSourceError
from cheelo.scrape.base import (
    AreaTournament,
    BaseScraper,
    DiscoveredTournament,
    PlayerInfo,
    TournamentDetails,
    TournamentPage,
)
from cheelo.scrape.parsers.chess_results import (
    details_postback,
    details_url,
    find_roster_url,
    form_fields,
    parse_area_search,
    parse_player_search,
    parse_player_tournaments,
    parse_roster,
    parse_schedule,
    parse_top_players,
    parse_tournament_details,
    parse_tournament_page,
    schedule_url,
    search_button,
    starting_rank_url,
)
from cheelo.scrape.parsers.maps import resolve_coordinates

logger = logging.getLogger(__name__)

# Form field names of the player search page
FIELD_FIDE_ID = "ctl00$P1$txt_fideID"
FIELD_LAST_NAME = "ctl00$P1$txt_nachname"
FIELD_FIRST_NAME = "ctl00$P1$txt_vorname"

# Form field names of the tournament search page
FIELD_PLACE = "ctl00$P1$txt_ort"
FIELD_COUNTRY = "ctl00$P1$combo_land"
FIELD_SORT = "ctl00$P1$combo_sort"
SORT_BY_LAST_UPDATE = "1"

# Maps lookups are secondary; they get a fixed short timeout
MAPS_TIMEOUT_MS = 10000

PLAYER_SEARCH_LIMIT = 100


def _origin(url: str) -> str:
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}"


class ChessResultsScraper(BaseScraper):
    """
    Scraper for chess-results.com.

    Handles:
    - Discovering a player's recent tournaments (by FIDE id or name)
    - Participant rosters, tournament pages and round schedules
    - Tournament search by place and tournament details (background sync)
    - Player lookup by name

    Usage:
        async with ChessResultsScraper() as cr:
            tournaments = await cr.discover_tournaments("2253383", "Paz, German")
            page = await cr.fetch_tournament_page(tournaments[0].url)
    """

    BASE_URL = settings.chess_results_base_url

    # =========================================================================
    # Searches
    # =========================================================================

    async def _submit_search(self, url: str, overrides: dict[str, str], remove: tuple[str, ...] = ()) -> str:
        """GET the search form, then post it back with the given fields set."""
        initial = await self.get_text(url)
        fields = form_fields(initial)
        button_name, button_value = search_button(initial)
        fields[button_name] = button_value
        for key in remove:
            fields.pop(key, None)
        fields.update(overrides)

        await self.random_delay()
        return await self.post_form(
            url,
            form=fields,
            headers={"Origin": _origin(url), "Referer": url},
        )

    async def discover_tournaments(
        self,
        player_id: str,
        name: Optional[str] = None,
    ) -> list[DiscoveredTournament]:
        """
        Tournaments the player appears in, most recent first.

        Searches by FIDE id first. Players without an id on chess-results
        are searched by "Last, First" name instead.
        """
        url = settings.chess_results_search_url
        html = await self._submit_search(
            url,
            {FIELD_FIDE_ID: player_id},
            remove=(FIELD_LAST_NAME, FIELD_FIRST_NAME),
        )
        found = parse_player_tournaments(html, _origin(url))

        if not found and name:
            logger.info("Id search for %s found nothing, searching by name %r", player_id, name)
            last_name, _, first_name = name.partition(",")
            overrides = {FIELD_LAST_NAME: last_name.strip()}
            if first_name.strip():
                overrides[FIELD_FIRST_NAME] = first_name.strip()
            html = await self._submit_search(url, overrides, remove=(FIELD_FIDE_ID,))
            found = parse_player_tournaments(html, _origin(url))

        logger.info("Found %d tournaments for %s", len(found), player_id)
        return found

    async def _player_search(self, last_name: str, first_name: str = "") -> list[PlayerInfo]:
        html = await self._submit_search(
            settings.chess_results_search_url,
            {FIELD_LAST_NAME: last_name, FIELD_FIRST_NAME: first_name},
        )
        players = parse_player_search(html)
        logger.debug("Player search L=%r F=%r: %d results", last_name, first_name, len(players))
        return players

    async def search_players(self, query: str) -> list[PlayerInfo]:
        """
        Look up players by name.

        "Last, First" runs one search. A bare query may be either name, so
        it runs as a last name and as a first name in parallel. If that
        finds fewer than 5 players and the query has several words, it is
        also tried as "First Last Last".
        """
        query = query.strip().rstrip(",").strip()
        if not query:
            return []

        if "," in query:
            last_name, _, first_name = query.partition(",")
            return await self._player_search(last_name.strip() or "%", first_name.strip())

        by_last, by_first = await asyncio.gather(
            self._player_search(query, ""),
            self._player_search("%", query),
        )
        merged: dict[str, PlayerInfo] = {}
        for player in by_last + by_first:
            merged.setdefault(player.fide_id, player)

        words = query.split()
        if len(merged) < 5 and len(words) >= 2:
            for player in await self._player_search(" ".join(words[1:]), words[0]):
                merged.setdefault(player.fide_id, player)

        return list(merged.values())[:PLAYER_SEARCH_LIMIT]

    async def search_area(self, country: str, place: str) -> list[AreaTournament]:
        """Recently updated tournaments at a place, newest update first."""
        url = settings.chess_results_tournament_search_url
        country_code = "ESP" if country in ("Spain", "ESP") else country
        html = await self._submit_search(
            url,
            {
                FIELD_PLACE: place,
                FIELD_COUNTRY: country_code,
                FIELD_SORT: SORT_BY_LAST_UPDATE,
            },
        )
        results = parse_area_search(html, country, settings.sync_max_update_age_days, self.BASE_URL)
        logger.info("Area search %s/%s found %d tournaments", country, place, len(results))
        return results

    # =========================================================================
    # Tournament pages
    # =========================================================================

    async def fetch_roster(self, tournament_url: str) -> dict[str, str]:
        menu = await self.get_text(tournament_url)
        list_url = find_roster_url(menu, tournament_url, self.BASE_URL)
        roster = parse_roster(await self.get_text(list_url))
        logger.debug("Roster of %s: %d players with FIDE ids", tournament_url, len(roster))
        return roster

    async def fetch_tournament_page(self, tournament_url: str) -> Optional[TournamentPage]:
        html = await self.get_rendered(tournament_url)
        page = parse_tournament_page(html, tournament_url)
        if not page.name and not page.games:
            return None
        return page

    async def _details_html(self, url: str) -> str:
        """Details page, expanding hidden details of archived tournaments."""
        html = await self.get_text(url)
        postback = details_postback(html)
        if postback:
            logger.debug("Expanding hidden details on %s", url)
            html = await self.post_form(url, form=postback, headers={"Origin": _origin(url), "Referer": url})
        return html

    async def fetch_time_control(self, tournament_url: str) -> Optional[str]:
        """Raw HTML of the details page for rating type detection."""
        match = re.search(r"tnr(\d+)", tournament_url, re.IGNORECASE)
        if not match:
            return None
        url = f"{_origin(tournament_url)}/tnr{match.group(1)}.aspx?art=1&lan=2&turdet=YES&SNode=S0"
        return await self._details_html(url)

    async def _schedule_rows(self, tournament_url: str) -> list[dict]:
        return parse_schedule(await self.get_text(schedule_url(tournament_url)))

    async def fetch_schedule(self, tournament_url: str) -> dict[str, date]:
        return {row["round"]: row["date"] for row in await self._schedule_rows(tournament_url)}

    # =========================================================================
    # Tournament details (background sync)
    # =========================================================================

    async def _coordinates(self, maps_url: str) -> Optional[tuple[float, float]]:
        try:
            final_url, body = await self.resolve_redirects(maps_url, timeout=MAPS_TIMEOUT_MS)
        except PlaywrightError as e:
            logger.warning("Could not resolve maps link %s: %s", maps_url, e)
            return None
        return resolve_coordinates(final_url, body)

    async def fetch_tournament_details(self, tournament_url: str) -> Optional[TournamentDetails]:
        """
        Descriptive details of a tournament.

        Combines the details page (art=1), the round schedule (art=14) and
        the top of the starting rank list (art=0). Start and end dates fall
        back to the first and last scheduled rounds.
        """
        url = details_url(tournament_url)
        details = parse_tournament_details(await self._details_html(url), url)

        rows = sorted(await self._schedule_rows(tournament_url), key=lambda row: row["date"])
        if rows:
            details.schedule = [
                {"round": row["round"], "date": row["date"].isoformat(), "time": row["time"]}
                for row in rows
            ]
            details.start_date = details.start_date or rows[0]["date"].isoformat()
            details.end_date = details.end_date or rows[-1]["date"].isoformat()

        if details.maps_url:
            coordinates = await self._coordinates(details.maps_url)
            if coordinates:
                details.lat, details.lng = coordinates

        try:
            players_html = await self.get_text(starting_rank_url(tournament_url))
        except DataSourceError as e:
            logger.warning("No starting rank for %s: %s", tournament_url, e)
        else:
            details.top_players, details.total_players = parse_top_players(players_html)

        return details
