"""
Parsers for the FIDE ratings site.

- Profile page (ratings.fide.com/profile/<id>)
- Rating history chart data (JSON)
- Individual calculations fragment (one per rating list)
"""

import json
import logging
import re
from typing import Optional

from bs4 import BeautifulSoup

from cheelo.elo.constants import RatingType
from cheelo.scrape.base import Profile, RatedTournamentRef, RatingHistoryPoint

logger = logging.getLogger(__name__)

# "Std Rating 2083" and "2083 Std" both occur depending on layout
_RATING_PATTERNS: dict[str, list[re.Pattern]] = {
    "standard": [
        re.compile(r"Std\.?\s*Rating\s*[:.]?\s*(\d{4})", re.I),
        re.compile(r"Standard\s*Rating\s*[:.]?\s*(\d{4})", re.I),
        re.compile(r"(\d{4})\s*Std", re.I),
        re.compile(r"(\d{4})\s*Standard", re.I),
    ],
    "rapid": [
        re.compile(r"Rapid\s*Rating\s*[:.]?\s*(\d{4})", re.I),
        re.compile(r"(\d{4})\s*Rapid", re.I),
    ],
    "blitz": [
        re.compile(r"Blitz\s*Rating\s*[:.]?\s*(\d{4})", re.I),
        re.compile(r"(\d{4})\s*Blitz", re.I),
    ],
}


def _first_match(text: str, patterns: list[re.Pattern]) -> int:
    for pattern in patterns:
        match = pattern.search(text)
        if match:
            return int(match.group(1))
    return 0


def _select_text(soup: BeautifulSoup, selector: str) -> str:
    element = soup.select_one(selector)
    return element.get_text(strip=True) if element else ""


def parse_profile(html: str) -> Optional[Profile]:
    """
    Parse a FIDE profile page.

    Ratings are read from the page text first; the rating boxes in the
    DOM are only consulted when no standard rating was found. Returns
    None when the page has no player name (unknown id).
    """
    soup = BeautifulSoup(html, "html.parser")

    name = _select_text(soup, ".profile-top-title")
    if not name and soup.title:
        name = soup.title.get_text(strip=True).replace(" FIDE Profile", "").strip()
    if not name:
        return None

    text = soup.body.get_text(" ") if soup.body else soup.get_text(" ")
    ratings = {kind: _first_match(text, patterns) for kind, patterns in _RATING_PATTERNS.items()}

    if not ratings["standard"]:
        for box in soup.select(".profile-top-rating-data"):
            content = box.get_text(" ", strip=True).lower()
            value_text = _select_text(box, ".profile-top-rating-val")
            if not value_text.isdigit():
                continue
            value = int(value_text)
            if "std" in content or "standard" in content:
                ratings["standard"] = value
            if "rapid" in content:
                ratings["rapid"] = value
            if "blitz" in content:
                ratings["blitz"] = value

    born_text = _select_text(soup, ".profile-info-byear")
    birth_year = int(born_text) if born_text.isdigit() else None

    title = _select_text(soup, ".profile-info-title p") or _select_text(soup, ".profile-info-title")
    if title == "None":
        title = ""

    return Profile(
        name=name,
        standard_rating=ratings["standard"],
        rapid_rating=ratings["rapid"],
        blitz_rating=ratings["blitz"],
        federation=_select_text(soup, ".profile-info-country") or None,
        birth_year=birth_year,
        sex=_select_text(soup, ".profile-info-sex") or None,
        title=title or None,
    )


def _positive_or_none(value) -> Optional[int]:
    try:
        number = int(value or 0)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def parse_history(payload: str) -> list[RatingHistoryPoint]:
    """
    Parse the chart data endpoint.

    Items look like {"date_2": "2025-Jan", "rating": "1765",
    "rapid_rtng": "0", "blitz_rtng": "1702"}. Periods with no rating in
    any list are dropped.
    """
    if not payload or not payload.strip():
        return []
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        logger.warning("Rating history is not valid JSON: %s", e)
        return []
    if not isinstance(data, list):
        return []

    points = []
    for item in data:
        if not isinstance(item, dict):
            continue
        point = RatingHistoryPoint(
            period=item.get("date_2") or "",
            standard=_positive_or_none(item.get("rating")),
            rapid=_positive_or_none(item.get("rapid_rtng")),
            blitz=_positive_or_none(item.get("blitz_rtng")),
        )
        if point.standard is None and point.rapid is None and point.blitz is None:
            continue
        points.append(point)
    return points


def parse_rated_tournaments(html: str, rating_type: RatingType) -> list[RatedTournamentRef]:
    """Tournament names from one individual-calculations fragment."""
    soup = BeautifulSoup(html, "html.parser")
    refs = []
    for link in soup.select(".rtng_line01 a.head1"):
        name = link.get_text(strip=True)
        if name:
            refs.append(RatedTournamentRef(name=name, rating_type=rating_type))
    return refs
