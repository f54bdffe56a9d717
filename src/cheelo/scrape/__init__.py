"""
Web scraping module for Cheelo.

This module handles all data collection from external sources:
- FIDE ratings site (ratings.fide.com): profiles, history, rated tournaments
- chess-results.com: tournament discovery, rosters, games, schedules

Key components:
- ExternalDataSource: what the live rating services need from the outside
- BaseScraper: Playwright session, retries and politeness delays
- FideScraper / ChessResultsScraper: site scrapers
- ChessDataSource: the two scrapers behind one failure-tolerant facade

The scraping architecture uses:
- Playwright for HTTP and browser automation (keeps ASP.NET session cookies)
- BeautifulSoup for HTML parsing
- Async/await for concurrent operations
- Retry logic with exponential backoff for reliability
"""

from cheelo.scrape.base import (
    AreaTournament,
    BaseScraper,
    DiscoveredTournament,
    ExternalDataSource,
    PlayerInfo,
    Profile,
    RatedTournamentList,
    RatedTournamentRef,
    RatingHistoryPoint,
    RawGameRow,
    TournamentDetails,
    TournamentPage,
)

__all__ = [
    "AreaTournament",
    "BaseScraper",
    "DiscoveredTournament",
    "ExternalDataSource",
    "PlayerInfo",
    "Profile",
    "RatedTournamentList",
    "RatedTournamentRef",
    "RatingHistoryPoint",
    "RawGameRow",
    "TournamentDetails",
    "TournamentPage",
]
