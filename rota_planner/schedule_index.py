# -*- coding: utf-8 -*-
"""
Schedule index: employee x date lookup built from a flat entry snapshot,
plus the roster of employees shown in the grid.
"""

import locale
from typing import Dict, Iterable, List, Optional, Sequence
from datetime import date

from .dates import date_key
from .models import ScheduleEntry

ScheduleIndex = Dict[str, Dict[str, ScheduleEntry]]


def build_index(entries: Iterable[ScheduleEntry]) -> ScheduleIndex:
    """
    Bucket entries by employee name, then by date key.

    Entries without a name or date are skipped. If two entries share a slot the
    later one in input order wins.
    """
    index: ScheduleIndex = {}
    for entry in entries:
        name = getattr(entry, "employee_name", None)
        day = getattr(entry, "shift_date", None)
        if not name or not day:
            continue
        index.setdefault(name, {})[date_key(day)] = entry
    return index


def _collation_key(name: str):
    return (locale.strxfrm(name.casefold()), name)


def build_roster(index: ScheduleIndex, configured_names: Iterable[str]) -> List[str]:
    """Configured names plus every name present in the data, deduplicated and sorted."""
    names = set(configured_names) | set(index.keys())
    return sorted(names, key=_collation_key)


def entry_at(index: ScheduleIndex, employee_name: str, day: date) -> Optional[ScheduleEntry]:
    return index.get(employee_name, {}).get(date_key(day))


def week_rows(
    index: ScheduleIndex,
    roster: Sequence[str],
    days: Sequence[date],
) -> Dict[str, List[Optional[ScheduleEntry]]]:
    """Employee -> one cell per day (None when unscheduled), in roster order."""
    return {name: [entry_at(index, name, d) for d in days] for name in roster}


def count_in_week(index: ScheduleIndex, days: Sequence[date]) -> int:
    keys = {date_key(d) for d in days}
    return sum(1 for by_day in index.values() for k in by_day if k in keys)
