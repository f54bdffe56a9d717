"""
Live rating engine.

- classifier: which tournaments still count (active / pending / excluded)
- tournament: one tournament's games and rating change for a player
- aggregation: a player's live ratings from all counting tournaments
- sync: stale-while-revalidate serving of stored player views
"""

from cheelo.live.classifier import Classification, ClassificationPolicy, TournamentClassifier, TournamentStatus
from cheelo.live.models import AggregatedPlayerView, GameResult, TournamentChange

__all__ = [
    "AggregatedPlayerView",
    "Classification",
    "ClassificationPolicy",
    "GameResult",
    "TournamentChange",
    "TournamentClassifier",
    "TournamentStatus",
]
