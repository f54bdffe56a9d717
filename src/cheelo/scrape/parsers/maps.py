"""
Coordinate extraction from Google Maps links.

Tournament pages link the venue to Google Maps in many shapes (short
links, place URLs, search URLs). After following redirects, one of the
patterns below usually yields the coordinates, either in the final URL
or somewhere in the returned body.
"""

import re
from typing import Optional

_PATTERNS = [
    # .../@43.2630,-2.9350,17z
    re.compile(r"@(-?\d+\.\d+),(-?\d+\.\d+)"),
    # ...!3d43.2630!4d-2.9350
    re.compile(r"!3d(-?\d+\.\d+)!4d(-?\d+\.\d+)"),
    # ?q=43.2630,-2.9350 / &ll= / &center=
    re.compile(r"[?&](?:q|query|center|ll|sll)=(-?\d+\.\d+)(?:,|%20|%2C)(-?\d+\.\d+)"),
    # URL-encoded pair
    re.compile(r"%2C(-?\d+\.\d+)%2C(-?\d+\.\d+)"),
]

_STATIC_MAP_RE = re.compile(
    r"staticmap[^?]*\?[^\"']*(?:center|ll|markers)=(-?\d+\.\d+)(?:,|%2C)(-?\d+\.\d+)"
)


def extract_coordinates(text: str) -> Optional[tuple[float, float]]:
    """Return (lat, lng) from the first matching pattern, or None."""
    if not text:
        return None

    for pattern in _PATTERNS:
        match = pattern.search(text)
        if match:
            lat, lng = float(match.group(1)), float(match.group(2))
            if -90 <= lat <= 90 and -180 <= lng <= 180:
                return lat, lng

    if "staticmap" in text:
        match = _STATIC_MAP_RE.search(text)
        if match:
            return float(match.group(1)), float(match.group(2))

    return None


def resolve_coordinates(final_url: str, body: str) -> Optional[tuple[float, float]]:
    """Try the redirected URL first, then the page body."""
    return extract_coordinates(final_url) or extract_coordinates(body)
