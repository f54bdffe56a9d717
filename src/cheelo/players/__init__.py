"""
Player name matching.

Tournament pages list opponents by name only, while their current FIDE
ratings are looked up by id through the tournament roster. The two
spellings rarely agree exactly (accents, titles, "Last, First" order),
so names are normalized and compared fuzzily.

The matching strategy (in priority order):
1. Exact roster name
2. Exact normalized name
3. Best fuzzy match above the threshold, when it is unambiguous
"""

from cheelo.players.aliases import compare_names, normalize_name, resolve_roster_id

__all__ = [
    "compare_names",
    "normalize_name",
    "resolve_roster_id",
]
