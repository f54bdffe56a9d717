"""
Elo rating math.

Implements the FIDE expected score / rating change formula and a
placeholder K-factor policy used to project live ratings.
"""

from cheelo.elo.calculator import expected_score, k_factor, kfactor_from_birth_year, rating_delta
from cheelo.elo.constants import DEFAULT_RATING_TYPE, RATING_TYPES, RESULT_SCORES, RatingType

__all__ = [
    "DEFAULT_RATING_TYPE",
    "RATING_TYPES",
    "RESULT_SCORES",
    "RatingType",
    "expected_score",
    "k_factor",
    "kfactor_from_birth_year",
    "rating_delta",
]
