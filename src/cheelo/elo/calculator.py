"""
Elo calculator for live chess rating projections.

The FIDE formula:
  Expected score: E = 1 / (1 + 10^((R_opp - R_player) / 400))
  Rating change:  delta = K * (score - E)

Where:
  R_player, R_opp = Ratings of the player and the opponent
  K = How much one game moves the rating (see k_factor)
  score = 1 for a win, 0.5 for a draw, 0 for a loss

Deltas are returned unrounded. Callers round to two decimals at the
point of use so that summing many games does not compound rounding error.
"""

from datetime import date
from typing import Optional

from cheelo.elo.constants import (
    ELITE_RATING_THRESHOLD,
    ELO_SPREAD,
    JUNIOR_AGE_LIMIT,
    K_DEFAULT,
    K_ELITE,
    K_JUNIOR,
    RatingType,
)


def expected_score(player_rating: float, opponent_rating: float) -> float:
    """
    Expected score of the player against the opponent (0 to 1).

    Example:
        expected_score(1800, 1800)  # → 0.5
        expected_score(2000, 1600)  # → ~0.909
    """
    try:
        return 1.0 / (1.0 + 10.0 ** ((opponent_rating - player_rating) / ELO_SPREAD))
    except OverflowError:
        return 0.0


def rating_delta(
    player_rating: float,
    opponent_rating: float,
    score: float,
    k_factor: float,
) -> float:
    """
    Rating change for one game.

    Args:
        player_rating: The player's rating before the game
        opponent_rating: The opponent's rating
        score: 1 (win), 0.5 (draw) or 0 (loss)
        k_factor: K-factor applying to the player

    Returns:
        Unrounded rating change. Symmetric around an even pairing:
        rating_delta(r, r, 1, k) == k / 2 and rating_delta(r, r, 0, k) == -k / 2.
    """
    return k_factor * (score - expected_score(player_rating, opponent_rating))


def k_factor(
    rating_type: RatingType,
    rating: float,
    age: Optional[int],
) -> int:
    """
    K-factor for a player in one rating list.

    Rules are evaluated in order and the last matching one wins:
      1. 20 by default
      2. 10 when rating >= 2400
      3. 40 when the player is younger than 18

    So a junior rated 2400+ still gets 40. This is a simplified
    placeholder; a fuller FIDE table can replace it as long as the
    signature stays the same. rating_type is accepted so that rapid
    and blitz lists can get their own table later.
    """
    k = K_DEFAULT
    if rating >= ELITE_RATING_THRESHOLD:
        k = K_ELITE
    if age is not None and age < JUNIOR_AGE_LIMIT:
        k = K_JUNIOR
    return k


def kfactor_from_birth_year(
    rating_type: RatingType,
    rating: float,
    birth_year: Optional[int],
    today: Optional[date] = None,
) -> int:
    """K-factor using an age derived from a birth year (0 or None = unknown)."""
    age = None
    if birth_year:
        today = today or date.today()
        age = today.year - birth_year
    return k_factor(rating_type, rating, age)
