"""
FIDE ratings site scraper.

Fetches the official data the live rating is built on.

URL patterns:
- Profile: /profile/{id}
- Rating history chart data: /a_chart_data.phtml?event={id}&period=0 (POST, JSON)
- Individual calculations: /a_indv_calculations.php?id_number={id}&rating_period=YYYY-MM-01&t={0,1,2}

The calculations fragment is requested once per rating list
(t=0 standard, t=1 rapid, t=2 blitz). The site rate-limits bursts of
these requests, so they run sequentially with a pause in between.
"""

import asyncio
import logging
from datetime import date
from typing import Optional

from playwright.async_api import Error as PlaywrightError

from cheelo.config import settings
from cheelo.elo.constants import RATING_TYPES
from cheelo.exceptions import DataSourceError
from cheelo.scrape.base import BaseScraper, Profile, RatedTournamentList, RatingHistoryPoint
from cheelo.scrape.parsers.fide import parse_history, parse_profile, parse_rated_tournaments

logger = logging.getLogger(__name__)


def rating_period(day: date) -> str:
    """FIDE rating period label for the month containing `day` (YYYY-MM-01)."""
    return day.replace(day=1).isoformat()


class FideScraper(BaseScraper):
    """
    Scraper for ratings.fide.com.

    Usage:
        async with FideScraper() as fide:
            profile = await fide.fetch_profile("2253383")
            history = await fide.fetch_history("2253383")
    """

    BASE_URL = settings.fide_base_url

    async def fetch_profile(self, player_id: str) -> Optional[Profile]:
        html = await self.get_text(f"{self.BASE_URL}/profile/{player_id}")
        profile = parse_profile(html)
        if profile is None:
            logger.info("No FIDE profile for %s", player_id)
        return profile

    async def fetch_history(self, player_id: str) -> list[RatingHistoryPoint]:
        url = f"{self.BASE_URL}/a_chart_data.phtml?event={player_id}&period=0"
        payload = await self.post_form(
            url,
            form={},
            headers={
                "Referer": f"{self.BASE_URL}/profile/{player_id}/chart",
                "Origin": self.BASE_URL,
                "X-Requested-With": "XMLHttpRequest",
            },
        )
        return parse_history(payload)

    async def fetch_rated_tournaments(self, player_id: str, period: date) -> RatedTournamentList:
        """
        Tournaments rated for the player in one period, across all three lists.

        Each list gets up to two extra attempts. If a list still fails the
        other lists are returned with complete=False so the caller can
        decide not to cache the partial answer.
        """
        period_label = rating_period(period)
        result = RatedTournamentList(period=period.replace(day=1))

        for index, rating_type in enumerate(RATING_TYPES):
            url = (
                f"{self.BASE_URL}/a_indv_calculations.php"
                f"?id_number={player_id}&rating_period={period_label}&t={index}"
            )
            html = await self._get_with_pause(url)
            if html is None:
                result.complete = False
            else:
                result.refs.extend(parse_rated_tournaments(html, rating_type))

            if index < len(RATING_TYPES) - 1:
                await asyncio.sleep(settings.rated_tournaments_fetch_delay)

        logger.debug(
            "Rated tournaments for %s in %s: %d (complete=%s)",
            player_id, period_label, len(result), result.complete,
        )
        return result

    async def _get_with_pause(self, url: str, retries: int = 2) -> Optional[str]:
        for attempt in range(retries + 1):
            try:
                return await self._request("GET", url, headers={"Connection": "keep-alive"})
            except (DataSourceError, PlaywrightError) as e:
                logger.warning("[%d/%d] %s failed: %s", attempt + 1, retries + 1, url, e)
                if attempt < retries:
                    await asyncio.sleep(settings.rated_tournaments_fetch_delay)
        return None

