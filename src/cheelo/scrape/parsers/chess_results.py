"""
Parsers for chess-results.com pages.

Every function here is pure: it takes HTML (and sometimes the URL it
came from) and returns plain data. Fetching, session handling and
retries live in cheelo.scrape.chess_results.

Covers:
- ASP.NET form fields (search forms and the "show details" postback)
- Player search results (tournaments a player took part in)
- Player lookup results (name → FIDE id)
- Alphabetical participant list (roster)
- Tournament page: header data and the subject player's game rows
- Round schedule (art=14)
- Tournament search by place (background sync)
- Tournament details (art=1) and starting rank top players (art=0)
"""

import logging
import re
from typing import Optional
from urllib.parse import parse_qsl, urlencode, urljoin, urlsplit, urlunsplit

from bs4 import BeautifulSoup, Tag

from cheelo.scrape.base import (
    AreaTournament,
    DiscoveredTournament,
    PlayerInfo,
    RawGameRow,
    TournamentDetails,
    TournamentPage,
)
from cheelo.scrape.parsers.dates import parse_date, parse_date_range, parse_last_update_days

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://chess-results.com/"

TITLES = {"GM", "IM", "FM", "CM", "WGM", "WIM", "WFM", "WCM"}

_TIME_CONTROL_RE = re.compile(
    r"(?:Control de tiempo|Time control|Ritmo de juego)[^:\n]*:\s*([^\n\r]+)",
    re.IGNORECASE,
)
_ROUNDS_RE = re.compile(r"(?:Rondas|Rounds|Number of rounds):?\s*(\d+)", re.IGNORECASE)
_PLAYER_ELO_RES = [
    re.compile(r"Elo internacional\s*(\d+)", re.IGNORECASE),
    re.compile(r"FIDE-Elo\s*(\d+)", re.IGNORECASE),
    re.compile(r"Elo\s*(\d+)", re.IGNORECASE),
]
_BIRTH_YEAR_RE = re.compile(r"(?:Fecha de nacimiento|Year of birth)\s*(\d{4})", re.IGNORECASE)


# =============================================================================
# URLs and forms
# =============================================================================


def with_query(url: str, **params) -> str:
    """Return url with the given query parameters set (replacing existing ones)."""
    parts = urlsplit(url)
    query = dict(parse_qsl(parts.query, keep_blank_values=True))
    for key, value in params.items():
        if value is None:
            query.pop(key, None)
        else:
            query[key] = str(value)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))


def normalize_tournament_url(href: str, base_url: str = DEFAULT_BASE_URL) -> str:
    """Absolute tournament URL in English with tournament details shown."""
    return with_query(urljoin(base_url, href), lan=2, turdet="YES")


def details_url(url: str) -> str:
    return with_query(url, art=1, lan=2, turdet="YES", snr=None)


def schedule_url(url: str) -> str:
    return with_query(url, art=14, snr=None)


def starting_rank_url(url: str) -> str:
    return with_query(url, art=0, lan=2, turdet="YES", snr=None)


def form_fields(html: str) -> dict[str, str]:
    """
    Collect the values an ASP.NET form would post back.

    Hidden and text inputs are included, checkboxes only when checked,
    submit and image buttons never (the caller adds the one it "clicks").
    """
    soup = BeautifulSoup(html, "html.parser")
    fields: dict[str, str] = {}
    for element in soup.find_all("input"):
        name = element.get("name")
        input_type = (element.get("type") or "text").lower()
        if not name or input_type in ("submit", "image"):
            continue
        if input_type == "checkbox":
            if element.has_attr("checked"):
                fields[name] = element.get("value") or "on"
            continue
        fields[name] = element.get("value") or ""

    for select in soup.find_all("select"):
        name = select.get("name")
        if not name:
            continue
        option = select.find("option", selected=True) or select.find("option")
        if option is not None:
            fields[name] = option.get("value") or option.get_text(strip=True)
    return fields


def search_button(html: str, default: str = "ctl00$P1$cb_suchen") -> tuple[str, str]:
    """(name, value) of the search submit button; the value is localized."""
    soup = BeautifulSoup(html, "html.parser")
    for element in soup.find_all("input", type="submit"):
        name = element.get("name") or ""
        value = element.get("value") or ""
        if "cb_suchen" in name or "search" in name.lower() or "search" in value.lower():
            return name, value
    return default, "Search"


def details_postback(html: str) -> Optional[dict[str, str]]:
    """
    Form to expand an archived tournament's hidden details, or None.

    Old tournaments hide the details block behind a 'Show tournament
    details' button (cb_alleDetails).
    """
    soup = BeautifulSoup(html, "html.parser")
    button = soup.find(id="cb_alleDetails") or soup.find(attrs={"name": "cb_alleDetails"})
    if button is None:
        return None

    form = {}
    for key in ("__VIEWSTATE", "__EVENTVALIDATION", "__VIEWSTATEGENERATOR"):
        element = soup.find(id=key)
        if element is not None and element.get("value"):
            form[key] = element["value"]
    if "__VIEWSTATE" not in form or "__EVENTVALIDATION" not in form:
        return None

    form["cb_alleDetails"] = button.get("value") or "Show tournament details"
    return form


# =============================================================================
# Searches
# =============================================================================


def parse_player_tournaments(html: str, base_url: str) -> list[DiscoveredTournament]:
    """
    Parse the player search result table.

    Columns: 0 name, 1 rating, 2 FIDE id, 4 federation, 5 tournament,
    6 end date. The player-info link (art=9) is preferred over the bare
    tournament link so later fetches land on the player's own card.
    """
    soup = BeautifulSoup(html, "html.parser")
    results: list[DiscoveredTournament] = []
    seen_rows: set[str] = set()
    seen_urls: set[str] = set()

    for anchor in soup.find_all("a", href=True):
        href = anchor["href"]
        if "tnr" not in href and "SpielerInfo" not in href:
            continue
        row = anchor.find_parent("tr")
        if row is None:
            continue
        signature = row.get_text(" ", strip=True)
        if signature in seen_rows:
            continue
        seen_rows.add(signature)

        cells = row.find_all("td")
        player_name = tournament_name = date_text = ""
        if len(cells) >= 7:
            player_name = cells[0].get_text(strip=True)
            tournament_name = cells[5].get_text(strip=True)
            date_text = cells[6].get_text(strip=True)

        best = ""
        for link in row.find_all("a", href=True):
            if "tnr" in link["href"]:
                if not best or "art=9" in link["href"]:
                    best = link["href"]
        best = best or href
        if best in seen_urls:
            continue
        seen_urls.add(best)

        results.append(
            DiscoveredTournament(
                name=tournament_name or player_name,
                url=normalize_tournament_url(best, base_url),
                end_date=parse_date(date_text),
            )
        )
    return results


def parse_player_search(html: str) -> list[PlayerInfo]:
    """Player lookup: rows of name | rating | FIDE id | ... | federation."""
    soup = BeautifulSoup(html, "html.parser")
    players: list[PlayerInfo] = []
    seen: set[str] = set()
    for row in soup.find_all("tr"):
        cells = row.find_all("td")
        if len(cells) <= 4:
            continue
        name = cells[0].get_text(strip=True)
        fide_id = cells[2].get_text(strip=True)
        if not name or not fide_id.isdigit() or fide_id in seen:
            continue
        seen.add(fide_id)
        players.append(PlayerInfo(name=name, fide_id=fide_id, federation=cells[4].get_text(strip=True)))
    return players


def parse_area_search(html: str, country: str, max_age_days: int, base_url: str) -> list[AreaTournament]:
    """
    Parse the tournament search results, newest update first.

    Columns: 0 number, 1 tournament (link), 2 federation, 3 flag,
    4 last update. Reading stops at the first row older than
    max_age_days since the list is sorted by last update.
    """
    soup = BeautifulSoup(html, "html.parser")

    table = None
    for candidate in soup.find_all("table"):
        if candidate.find("tr", class_=["CRg1", "CRg2"]):
            table = candidate
            break
    if table is None:
        logger.warning("Tournament search results table not found")
        return []

    results = []
    for row in table.find_all("tr", class_=["CRg1", "CRg2"]):
        cells = row.find_all("td")
        if len(cells) < 5:
            continue
        last_update = cells[4].get_text(strip=True)
        age_days = parse_last_update_days(last_update)
        if age_days < 0:
            continue
        if age_days > max_age_days:
            logger.debug("Stopping area search at %r (%d days)", last_update, age_days)
            break

        link = cells[1].find("a", href=True)
        name = cells[1].get_text(strip=True)
        if not name or link is None:
            continue
        results.append(
            AreaTournament(
                name=name,
                url=normalize_tournament_url(link["href"], base_url),
                federation=country,
            )
        )
    return results


# =============================================================================
# Roster
# =============================================================================


def find_roster_url(html: str, tournament_url: str, base_url: str = DEFAULT_BASE_URL) -> str:
    """
    URL of the alphabetical participant list.

    Looks for the menu link by its (localized) text and falls back to
    art=0 on the tournament URL. The player filter (snr) is dropped
    because it overrides the list view, and zeilen=99999 disables paging.
    """
    soup = BeautifulSoup(html, "html.parser")
    found = None
    for anchor in soup.find_all("a", href=True):
        text = anchor.get_text(strip=True).lower()
        if (
            "alfabético de jugadores" in text
            or "alphabetical list of players" in text
            or "alphabetische liste" in text
            or ("list" in text and "players" in text and "ranking" not in text)
        ):
            found = anchor["href"]
            break

    if found:
        list_url = urljoin(base_url, found)
    else:
        logger.debug("No alphabetical list link on %s, falling back to art=0", tournament_url)
        list_url = with_query(tournament_url, art=0)

    parts = dict(parse_qsl(urlsplit(list_url).query))
    zeilen = None if "zeilen" in parts else 99999
    return with_query(list_url, snr=None, zeilen=zeilen)


def parse_roster(html: str) -> dict[str, str]:
    """Participant name ('Last, First') → FIDE id, from any table with both columns."""
    soup = BeautifulSoup(html, "html.parser")
    roster: dict[str, str] = {}
    for table in soup.find_all("table"):
        rows = table.find_all("tr")
        if not rows:
            continue
        name_idx = id_idx = -1
        for i, cell in enumerate(rows[0].find_all(["td", "th"])):
            header = cell.get_text(strip=True).lower()
            if header in ("name", "nombre") or "spieler" in header or "player" in header:
                name_idx = i
            if header in ("fideid", "fide id", "fide-id", "id"):
                id_idx = i
        if name_idx < 0 or id_idx < 0:
            continue

        for row in rows[1:]:
            cells = row.find_all("td")
            if len(cells) <= max(name_idx, id_idx):
                continue
            name = cells[name_idx].get_text(strip=True)
            fide_id = cells[id_idx].get_text(strip=True)
            if name and fide_id.isdigit():
                roster[name] = fide_id
    return roster


# =============================================================================
# Tournament page
# =============================================================================


def _page_text(soup: BeautifulSoup) -> str:
    body = soup.body or soup
    return body.get_text("\n")


def extract_time_control(text: str) -> Optional[str]:
    """Value after 'Time control ...:' (or its Spanish labels), lower-cased."""
    match = _TIME_CONTROL_RE.search(text)
    return match.group(1).strip().lower() if match else None


def _column_indexes(headers: list[str]) -> dict[str, int]:
    columns = {"change": -1, "round": -1, "name": -1, "rating": -1, "result": -1}
    for i, header in enumerate(headers):
        if any(key in header for key in ("elo +/-", "elo+/-", "rtg +/-", "rtg+/-", "var.", "w-we")):
            columns["change"] = i
        if header in ("rd", "rd.") or "round" in header or "ronda" in header:
            columns["round"] = i
        if ("name" in header or "nombre" in header) and "team" not in header and "club" not in header:
            columns["name"] = i
        if header in ("rtg", "elo", "fide-elo", "elo fide"):
            columns["rating"] = i
        if "res" in header or "pts." in header:
            columns["result"] = i
    return columns


def _cell_text(cells: list[Tag], index: int) -> str:
    if 0 <= index < len(cells):
        return cells[index].get_text(strip=True)
    return ""


def parse_game_rows(soup: BeautifulSoup) -> list[RawGameRow]:
    """
    Extract the subject player's game rows from the player card tables.

    Column positions are guessed from the header row. When the body has
    more cells than the header, the rating change column is located from
    the right, where it sits at a stable offset.
    """
    rows_out: list[RawGameRow] = []
    for table in soup.select("table.CRs1"):
        rows = table.find_all("tr")
        if not rows:
            continue
        headers = [c.get_text(strip=True).lower() for c in rows[0].find_all(["td", "th"])]
        columns = _column_indexes(headers)

        has_change = columns["change"] >= 0
        if not has_change and (columns["rating"] < 0 or columns["result"] < 0):
            continue

        for row in rows[1:]:
            cells = row.find_all("td")
            delta_text = None
            if has_change:
                if len(cells) < len(headers):
                    continue
                change_idx = columns["change"]
                if len(cells) > len(headers):
                    change_idx = len(cells) - (len(headers) - columns["change"])
                delta_text = _cell_text(cells, change_idx)
            elif len(cells) <= max(columns["rating"], columns["result"]):
                continue

            rating_text = _cell_text(cells, columns["rating"])
            rows_out.append(
                RawGameRow(
                    round=_cell_text(cells, columns["round"]),
                    opponent_name=_cell_text(cells, columns["name"]) or "Unknown",
                    result_text=_cell_text(cells, columns["result"]),
                    opponent_rating=int(rating_text) if rating_text.isdigit() and int(rating_text) > 0 else None,
                    declared_delta_text=delta_text or None,
                )
            )
    return rows_out


def parse_tournament_page(html: str, url: str) -> TournamentPage:
    """Parse a tournament page (usually the player card, art=9)."""
    soup = BeautifulSoup(html, "html.parser")
    heading = soup.find("h2") or soup.find("h1")
    name = heading.get_text(strip=True) if heading else ""
    text = _page_text(soup)

    rounds_match = _ROUNDS_RE.search(text)

    player_rating = 0
    for pattern in _PLAYER_ELO_RES:
        match = pattern.search(text)
        if match:
            player_rating = int(match.group(1))
            break

    birth_match = _BIRTH_YEAR_RE.search(text)
    start_date, end_date = parse_date_range(text)

    return TournamentPage(
        url=url,
        name=name,
        text=text,
        time_control=extract_time_control(text),
        rounds=rounds_match.group(1) if rounds_match else None,
        start_date=start_date,
        end_date=end_date,
        birth_year=int(birth_match.group(1)) if birth_match else None,
        player_rating=player_rating,
        games=parse_game_rows(soup),
    )


def parse_schedule(html: str) -> list[dict]:
    """
    Round schedule rows: [{"round", "date", "time"}] in page order.

    Rows whose date cell does not parse are skipped.
    """
    soup = BeautifulSoup(html, "html.parser")
    schedule = []
    for row in soup.select("table.CRs1 tr"):
        cells = row.find_all("td")
        if len(cells) < 2:
            continue
        round_label = cells[0].get_text(strip=True)
        when = parse_date(cells[1].get_text(strip=True))
        if not round_label or when is None:
            continue
        schedule.append({
            "round": round_label,
            "date": when,
            "time": _cell_text(cells, 2) or None,
        })
    return schedule


# =============================================================================
# Tournament details (background sync)
# =============================================================================


def tempo_from_time_control(value: str) -> Optional[str]:
    """
    'Standard', 'Rapid' or 'Blitz' from the first minutes figure.

    Example:
        tempo_from_time_control("90 min + 30 seg")  # → 'Standard'
        tempo_from_time_control("3' + 2''")         # → 'Blitz'
    """
    match = re.search(r"(\d+)\s*(?:min|')", value.lower())
    if not match:
        return None
    minutes = int(match.group(1))
    if minutes < 10:
        return "Blitz"
    if minutes < 60:
        return "Rapid"
    return "Standard"


def _iso(value: str) -> Optional[str]:
    parsed = parse_date(value)
    return parsed.isoformat() if parsed else None


def parse_tournament_details(html: str, url: str) -> TournamentDetails:
    """
    Parse the label/value rows of the details page (art=1).

    Schedule, top players and coordinates are filled in by the caller
    from their own pages.
    """
    soup = BeautifulSoup(html, "html.parser")
    details = TournamentDetails()

    poster = soup.find("img", src=re.compile("TournamentImages"))
    if poster is not None:
        details.poster_image = urljoin(url, poster["src"])

    for row in soup.select(".CRs1 tr, .CRs2 tr, .daten tr"):
        cells = row.find_all(["td", "th"])
        if len(cells) < 2:
            continue
        label = cells[0].get_text(strip=True).lower()
        value = cells[1].get_text(strip=True)
        if not value:
            continue

        if "organizer" in label or "organizador" in label:
            details.organizer = value
        elif "location" in label or "lugar" in label:
            link = cells[1].find("a", href=True)
            if link is not None:
                details.location = link.get_text(strip=True)
                details.maps_url = link["href"]
            else:
                details.location = value
        elif "elo average" in label or "rating average" in label or "media de elo" in label:
            details.avg_rating = value
        elif "chief arbiter" in label or "árbitro principal" in label:
            details.chief_arbiter = value
        elif "time control" in label or "control de tiempo" in label or "ritmo de juego" in label:
            details.time_control = value
            details.tempo = tempo_from_time_control(value)
        elif "rounds" in label or "rondas" in label:
            details.rounds = value
        elif "end date" in label or "fecha final" in label:
            details.end_date = _iso(value) or details.end_date
        elif "start date" in label or "fecha inicial" in label:
            details.start_date = _iso(value) or details.start_date
        elif label in ("fecha", "date"):
            single = _iso(value)
            if single:
                details.start_date = details.start_date or single
                details.end_date = details.end_date or single

    for anchor in soup.find_all("a", href=True):
        text = anchor.get_text(strip=True)
        lower = text.lower()
        if "regulations" in lower or "bases" in lower or "convocatoria" in lower:
            details.regulations = {"text": text, "url": urljoin(url, anchor["href"])}

    if details.location == "N/A":
        details.location = None
    return details


def parse_top_players(html: str, limit: int = 5) -> tuple[list[dict], Optional[int]]:
    """
    First `limit` players of the starting rank list, and the field size.

    The total comes from a "123 players" line when present, otherwise
    from the number of table rows.
    """
    soup = BeautifulSoup(html, "html.parser")
    table = soup.select_one("table.CRs1") or soup.select_one("table.CRs2")
    if table is None:
        return [], None

    rows = table.find_all("tr")
    players = []
    for row in rows[1:]:
        if len(players) >= limit:
            break
        cells = row.find_all("td")
        if len(cells) < 3:
            continue

        name = title = fed = ""
        rating = 0
        link = row.find("a", href=re.compile("Info"))
        if link is not None:
            name = link.get_text(strip=True)
            cell = link.find_parent("td")
            position = cells.index(cell) if cell in cells else -1
            if position > 0:
                previous = cells[position - 1].get_text(strip=True)
                if previous in TITLES:
                    title = previous
        else:
            for candidate in (cells[1].get_text(strip=True), cells[2].get_text(strip=True)):
                if not candidate.isdigit() and len(candidate) > 3:
                    name = candidate
                    break
        if not name:
            continue

        for i, cell in enumerate(cells):
            value = cell.get_text(strip=True)
            if not fed and re.fullmatch(r"[A-Z]{3}", value):
                fed = value
            # Skip the rank column; FIDE rating comes before national rating
            if i > 1 and not rating and re.fullmatch(r"\d{3,4}", value):
                rating = int(value)

        players.append({"name": name, "title": title or None, "fed": fed, "rating": rating or None})

    count_match = re.search(
        r"(\d+)\s*(?:players|teilnehmer|jugadores|teams|equipos)",
        soup.get_text(" "),
        re.IGNORECASE,
    )
    total = int(count_match.group(1)) if count_match else len(rows) - 1
    return players, total
