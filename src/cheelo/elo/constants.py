"""
Elo constants used for live rating projections.

FIDE ratings use a fixed spread of 400: a 400 point gap means the
stronger player is expected to score ten times as much as the weaker one.

K factor controls how far a single game moves a rating. The table
below is a simplified placeholder for the FIDE rules, which also
depend on games played, lifetime peak and rating list type.
"""

from typing import Literal

RatingType = Literal["standard", "rapid", "blitz"]

# Order matters: FIDE's calculation pages number the lists 0, 1, 2
RATING_TYPES: tuple[RatingType, ...] = ("standard", "rapid", "blitz")

DEFAULT_RATING_TYPE: RatingType = "standard"

# Rating difference that corresponds to 10:1 expected score odds
ELO_SPREAD = 400

# K-factor table (placeholder contract, see calculator.k_factor)
K_DEFAULT = 20
K_JUNIOR = 40
K_ELITE = 10

# Age below which the junior K applies
JUNIOR_AGE_LIMIT = 18

# Rating at or above which the elite K applies
ELITE_RATING_THRESHOLD = 2400

# Score values by result text as printed on crosstables
RESULT_SCORES: dict[str, float] = {
    "1": 1.0,
    "0": 0.0,
    "½": 0.5,
    "0,5": 0.5,
    "0.5": 0.5,
    "1/2": 0.5,
}
