"""Shared date utilities.

Weekday numbers follow the backend convention: 0 = Sunday .. 6 = Saturday.
Python's ``date.weekday()`` counts from Monday, so conversions go through
``sunday_weekday``.
"""
from __future__ import annotations

import datetime as _dt
from typing import Any, Optional, Tuple

__all__ = [
    "WEEKDAY_NAMES",
    "WEEKDAY_MAP",
    "parse_weekday",
    "parse_date",
    "parse_month",
    "sunday_weekday",
    "add_months",
    "month_grid_start",
]

WEEKDAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]

# Day name/abbreviation to backend weekday number
WEEKDAY_MAP = {name.lower(): i for i, name in enumerate(WEEKDAY_NAMES)}
WEEKDAY_MAP.update({k[:3]: v for k, v in list(WEEKDAY_MAP.items())})
WEEKDAY_MAP.update({"tues": 2, "thur": 4, "thurs": 4})


def parse_weekday(value: Any) -> Optional[int]:
    """Parse a weekday number or name to 0..6 (Sunday first).

    Examples:
        6 -> 6
        'Saturday' -> 6
        'sun' -> 0
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value if 0 <= value <= 6 else None
    s = str(value).strip().lower()
    if s.isdigit():
        n = int(s)
        return n if 0 <= n <= 6 else None
    return WEEKDAY_MAP.get(s)


def parse_date(value: Any) -> Optional[_dt.date]:
    """Best-effort parse of a date or ISO datetime string; None when unusable."""
    if value is None:
        return None
    if isinstance(value, _dt.datetime):
        return value.date()
    if isinstance(value, _dt.date):
        return value
    s = str(value).strip()
    if not s:
        return None
    try:
        return _dt.date.fromisoformat(s[:10])
    except ValueError:
        return None


def parse_month(value: str) -> Optional[Tuple[int, int]]:
    """Parse 'YYYY-MM' to (year, month)."""
    try:
        y, m = (int(p) for p in (value or "").strip().split("-", 1))
    except ValueError:
        return None
    if not 1 <= m <= 12:
        return None
    return y, m


def sunday_weekday(d: _dt.date) -> int:
    """Weekday of d with 0 = Sunday."""
    return (d.weekday() + 1) % 7


def add_months(year: int, month: int, offset: int) -> Tuple[int, int]:
    """Return (year, month) shifted by offset months."""
    idx = year * 12 + (month - 1) + offset
    return idx // 12, idx % 12 + 1


def month_grid_start(year: int, month: int) -> _dt.date:
    """First cell of a Sunday-first month grid (the Sunday on or before the 1st)."""
    first = _dt.date(year, month, 1)
    return first - _dt.timedelta(days=sunday_weekday(first))

