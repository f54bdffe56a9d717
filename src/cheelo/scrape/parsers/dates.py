"""
Date parsing for the formats chess-results prints.

Tournament pages mix 'YYYY/MM/DD', 'DD.MM.YYYY' and 'DD/MM/YY' depending
on the organiser's locale, and the tournament search shows a relative
"last update" age instead of a date.
"""

import re
from datetime import date
from typing import Optional

_YMD_RE = re.compile(r"(\d{4})[./-](\d{1,2})[./-](\d{1,2})")
_DMY_RE = re.compile(r"(\d{1,2})[./-](\d{1,2})[./-](\d{2,4})")

# Used by parse_last_update_days for values we cannot interpret
UNKNOWN_AGE_DAYS = 999


def parse_date(text: Optional[str]) -> Optional[date]:
    """
    Parse a displayed date, year-first or day-first.

    Two-digit years are taken as 20xx.

    Example:
        parse_date("2025/03/09")  # → date(2025, 3, 9)
        parse_date("09.03.25")    # → date(2025, 3, 9)
    """
    if not text:
        return None
    text = text.strip()

    match = _YMD_RE.search(text)
    if match:
        year, month, day = (int(g) for g in match.groups())
    else:
        match = _DMY_RE.search(text)
        if not match:
            return None
        day, month, year = (int(g) for g in match.groups())
        if year < 100:
            year += 2000

    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_date_range(text: str) -> tuple[Optional[date], Optional[date]]:
    """
    Find "Date 2025/03/01 to 2025/03/09" (or the Spanish 'Fecha ... al ...').

    A single date means a one-day event: start and end are the same.
    """
    match = re.search(
        r"(?:Fecha|Date)\s*(\d{4}/\d{2}/\d{2})\s*(?:al|to|-)\s*(\d{4}/\d{2}/\d{2})",
        text,
        re.IGNORECASE,
    )
    if match:
        return parse_date(match.group(1)), parse_date(match.group(2))

    match = re.search(r"(?:Fecha|Date)\s*(\d{4}/\d{2}/\d{2})", text, re.IGNORECASE)
    if match:
        single = parse_date(match.group(1))
        return single, single

    return None, None


def parse_last_update_days(text: str) -> int:
    """
    Convert a relative "last update" cell into whole days.

    Examples: '23 Hours 27 Min.' → 0, '1 Days 1 Hours' → 1,
    '105 Días 10 Horas' → 105.

    Returns -1 for a header cell and UNKNOWN_AGE_DAYS when nothing matches.
    """
    lower = text.lower()

    if "actualización" in lower or "update" in lower:
        return -1

    # Days first, so '1 Días 3 Horas' is not read as hours
    match = re.search(r"(\d+)\s*(?:día|dia|day)", lower)
    if match:
        return int(match.group(1))

    if any(token in lower for token in ("min", "hora", "hour", "ayer", "yesterday")):
        return 0

    return UNKNOWN_AGE_DAYS
