"""
Parsers for scraped chess data.

This module contains parsers for:
- FIDE profile, rating history and rated-tournament fragments
- chess-results search, roster, tournament, schedule and details pages
- Displayed dates and relative "last update" ages
- Google Maps coordinates
"""

from cheelo.scrape.parsers.dates import parse_date, parse_last_update_days
from cheelo.scrape.parsers.maps import extract_coordinates

__all__ = [
    "parse_date",
    "parse_last_update_days",
    "extract_coordinates",
]
