"""
Player name normalization and comparison utilities.

Chess player names come in a few formats depending on the page:
- chess-results lists: "Paz Mendez, German"
- FIDE profile: "Paz Mendez, German" or "German Paz Mendez"
- With and without accents: "Méndez" vs "Mendez"
- Occasionally truncated or with doubled spaces on crosstables

The crosstable of a player card and the tournament's participant list
come from the same site, so names usually match exactly. These helpers
cover the remaining cases so that an opponent can still be resolved to
a FIDE id (and a live rating).
"""

import logging
import unicodedata
from typing import Optional

import jellyfish
from rapidfuzz import fuzz

logger = logging.getLogger(__name__)


def normalize_name(name: str) -> str:
    """
    Normalize a player name for comparison.

    Normalization steps:
    1. Convert to lowercase
    2. Remove accents (é → e, ñ → n)
    3. Handle "Lastname, Firstname" format
    4. Drop title prefixes and dots
    5. Remove extra whitespace

    Examples:
        >>> normalize_name("Paz Méndez, Germán")
        'german paz mendez'
        >>> normalize_name("GM  Carlsen, Magnus")
        'magnus carlsen'
    """
    if not name:
        return ""

    normalized = name.lower().strip()

    # NFD splits é into e + combining accent; drop the combining marks
    normalized = unicodedata.normalize("NFD", normalized)
    normalized = "".join(char for char in normalized if unicodedata.category(char) != "Mn")

    for title in ("gm ", "im ", "fm ", "cm ", "wgm ", "wim ", "wfm ", "wcm "):
        if normalized.startswith(title):
            normalized = normalized[len(title):]
            break

    if "," in normalized:
        last, first = normalized.split(",", 1)
        normalized = f"{first.strip()} {last.strip()}"

    normalized = normalized.replace(".", " ")
    return " ".join(normalized.split())


def compare_names(name1: str, name2: str) -> float:
    """
    Similarity of two player names from 0.0 (no match) to 1.0 (same name).

    Takes the best of Jaro-Winkler (typos, truncation at the end) and
    token sort ratio (word order). Partial ratios are left out on
    purpose: "Garcia, Juan" would fully match "Garcia Lopez, Juan".

    Examples:
        >>> compare_names("Paz Mendez, German", "German Paz Mendez")
        1.0
        >>> compare_names("Perez, Ana", "Lopez, Juan")
        0.55  # approximate
    """
    n1 = normalize_name(name1)
    n2 = normalize_name(name2)

    if n1 == n2:
        return 1.0 if n1 else 0.0
    if not n1 or not n2:
        return 0.0

    jw_score = jellyfish.jaro_winkler_similarity(n1, n2)
    token_sort = fuzz.token_sort_ratio(n1, n2) / 100.0
    return max(jw_score, token_sort)


def resolve_roster_id(
    name: str,
    roster: dict[str, str],
    threshold: float = 0.92,
) -> Optional[str]:
    """
    Find the FIDE id of `name` in a tournament roster.

    Lookup order: exact key, normalized name, then fuzzy similarity at
    or above `threshold`. A fuzzy tie between two different ids is
    treated as no match.
    """
    if not name or not roster:
        return None

    if name in roster:
        return roster[name]

    target = normalize_name(name)
    by_normalized = {normalize_name(candidate): fide_id for candidate, fide_id in roster.items()}
    if target in by_normalized:
        return by_normalized[target]

    best_id = None
    best_score = 0.0
    tied = False
    for candidate, fide_id in by_normalized.items():
        score = compare_names(target, candidate)
        if score > best_score:
            best_id, best_score, tied = fide_id, score, False
        elif score == best_score and fide_id != best_id:
            tied = True

    if best_score >= threshold and not tied:
        logger.debug("Resolved %r to roster id %s (score %.2f)", name, best_id, best_score)
        return best_id
    return None
