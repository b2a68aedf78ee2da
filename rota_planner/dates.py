# -*- coding: utf-8 -*-
"""
Week windowing helpers.

Weeks start on Monday. All functions work on calendar dates; datetimes are
reduced to their date first, so time-of-day never shifts a result.
"""

from datetime import date, datetime, time, timedelta
from typing import List, Tuple, Union

from .constants import MONTH_SHORT

DateLike = Union[date, datetime]


def _as_date(d: DateLike) -> date:
    return d.date() if isinstance(d, datetime) else d


def start_of_week(d: DateLike) -> date:
    """Monday of the week containing d."""
    d = _as_date(d)
    day = (d.weekday() + 1) % 7  # Sunday = 0
    offset = -6 if day == 0 else 1 - day
    return d + timedelta(days=offset)


def week_range(d: DateLike) -> List[date]:
    """The seven days Monday..Sunday of the week containing d."""
    start = start_of_week(d)
    return [start + timedelta(days=i) for i in range(7)]


def date_key(d: DateLike) -> str:
    """Canonical YYYY-MM-DD join key built from calendar fields."""
    d = _as_date(d)
    return f"{d.year:04d}-{d.month:02d}-{d.day:02d}"


def parse_date_key(key: str) -> date:
    return date.fromisoformat(key)


def previous_week_bounds(d: DateLike) -> Tuple[datetime, datetime]:
    """
    Inclusive [start, end] of the week before the one containing d.
    end is the last representable instant of Sunday.
    """
    prev_start = start_of_week(d) - timedelta(days=7)
    prev_end = prev_start + timedelta(days=6)
    return datetime.combine(prev_start, time.min), datetime.combine(prev_end, time.max)


def shift_week(d: DateLike, weeks: int) -> date:
    """Move a reference date by whole weeks (negative = back)."""
    return _as_date(d) + timedelta(weeks=weeks)


def week_label(d: DateLike) -> str:
    """'Jan 15 - Jan 21' style label for the week containing d."""
    start = start_of_week(d)
    end = start + timedelta(days=6)
    fmt = lambda x: f"{MONTH_SHORT[x.month - 1]} {x.day}"
    return f"{fmt(start)} - {fmt(end)}"
