"""
Tournament classification for live ratings.

A finished tournament is only worth projecting until FIDE publishes it.
Given a tournament's end date and the tournaments FIDE already rated
for the player (previous and current period), each tournament is:

- ACTIVE: ends in the current month or later. Games from the first day
  of the current month count.
- PENDING: ended last month and FIDE has not rated it yet. Games from
  the first day of last month count.
- EXCLUDED: anything else (already in the official rating, or too old).

Rapid and blitz results are taken as authoritative the moment FIDE
lists them, so a rated match excludes those tournaments outright.

Chess-results and FIDE spell tournament names differently (truncation,
language, sponsor names), hence the permissive token matching in
are_tournaments_same.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Iterable, Optional

from cheelo.elo.constants import RatingType
from cheelo.scrape.base import RatedTournamentRef

logger = logging.getLogger(__name__)

# Words too generic to identify a tournament (English and Spanish)
STOP_WORDS = frozenset({
    "the", "and", "for", "with", "club", "chess", "tournament", "championship", "open",
    "torneo", "campeonato", "ajedrez", "internacional", "abierto",
})

MIN_TOKEN_LENGTH = 3


class TournamentStatus(str, Enum):
    ACTIVE = "active"
    PENDING = "pending"
    EXCLUDED = "excluded"


@dataclass(frozen=True)
class Classification:
    """Status plus the first date from which games count (None when excluded)."""

    status: TournamentStatus
    cutoff: Optional[date] = None

    @property
    def counts(self) -> bool:
        return self.status != TournamentStatus.EXCLUDED


@dataclass(frozen=True)
class ClassificationPolicy:
    """
    Settlement window settings.

    pending_months: how many whole months before the current one a
        finished, unrated tournament stays pending
    authoritative_rated_types: rating lists for which a rated match
        always excludes the tournament
    """

    pending_months: int = 1
    authoritative_rated_types: frozenset = field(default_factory=lambda: frozenset({"rapid", "blitz"}))


def _tokens(name: str) -> set[str]:
    words = re.sub(r"[^a-z0-9 ]", " ", name.lower()).split()
    return {w for w in words if len(w) >= MIN_TOKEN_LENGTH and w not in STOP_WORDS}


def are_tournaments_same(name1: str, name2: str) -> bool:
    """
    Whether two tournament names likely refer to the same event.

    Both names are reduced to distinctive tokens (lowercase alphanumerics,
    at least 3 characters, no stop words). They match when they share two
    tokens, or one token when either name has only one.

    Example:
        are_tournaments_same("Open Internacional de Ajedrez Bilbao 2025", "Bilbao Open 2025")  # → True
    """
    w1 = _tokens(name1)
    w2 = _tokens(name2)
    if not w1 or not w2:
        return False

    shared = len(w1 & w2)
    if shared >= 2:
        return True
    return shared >= 1 and (len(w1) == 1 or len(w2) == 1)


def first_of_month(day: date) -> date:
    return day.replace(day=1)


def months_before(day: date, months: int) -> date:
    """First day of the month `months` months before the month of `day`."""
    index = day.year * 12 + (day.month - 1) - months
    return date(index // 12, index % 12 + 1, 1)


class TournamentClassifier:
    """
    Decides which tournaments feed the live rating.

    Usage:
        classifier = TournamentClassifier()
        result = classifier.classify("Bilbao Open 2025", date(2025, 3, 9), today, rated_refs)
        if result.counts:
            scrape(url, cutoff=result.cutoff)
    """

    def __init__(self, policy: Optional[ClassificationPolicy] = None):
        self.policy = policy or ClassificationPolicy()

    def is_rated(
        self,
        name: str,
        rated_refs: Iterable[RatedTournamentRef],
        rating_type: Optional[RatingType] = None,
    ) -> bool:
        """Name match against the rated list, restricted to one rating type when given."""
        return any(
            (rating_type is None or ref.rating_type == rating_type) and are_tournaments_same(name, ref.name)
            for ref in rated_refs
        )

    def classify(
        self,
        name: str,
        end_date: Optional[date],
        today: date,
        rated_refs: Iterable[RatedTournamentRef],
        rating_type: Optional[RatingType] = None,
    ) -> Classification:
        """
        Classify one tournament.

        Args:
            name: Tournament display name
            end_date: Last day of the tournament; None is excluded
            today: Reference date
            rated_refs: Rated tournaments of the previous and current period
            rating_type: Rating list of the tournament if already known
                         (None before the tournament page was read)
        """
        if end_date is None:
            return Classification(TournamentStatus.EXCLUDED)

        refs = list(rated_refs)
        current_start = first_of_month(today)
        window_start = months_before(today, self.policy.pending_months)

        rated = None
        if rating_type in self.policy.authoritative_rated_types:
            rated = self.is_rated(name, refs, rating_type)
            if rated:
                logger.debug("%r already rated (%s), excluded", name, rating_type)
                return Classification(TournamentStatus.EXCLUDED)

        if end_date >= current_start:
            return Classification(TournamentStatus.ACTIVE, current_start)

        if window_start <= end_date < current_start:
            if rated is None:
                rated = self.is_rated(name, refs, rating_type)
            if not rated:
                return Classification(TournamentStatus.PENDING, window_start)

        return Classification(TournamentStatus.EXCLUDED)
