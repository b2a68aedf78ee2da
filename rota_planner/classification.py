# -*- coding: utf-8 -*-
"""
Shift classification.
Maps a schedule entry to the display category used for colouring, grouping
and legends. Pure data -> category, no rendering.
"""

from enum import Enum
from typing import Optional

from .constants import MIDNIGHT
from .models import EntryType, ScheduleEntry

MINUTES_PER_DAY = 24 * 60

# Upper bounds (inclusive) on start minute for each work-shift band
MORNING_UNTIL = 10 * 60
MID_DAY_UNTIL = 13 * 60
EVENING_UNTIL = 15 * 60


class ShiftCategory(str, Enum):
    MORNING = "morning"
    MID_DAY = "mid_day"
    EVENING = "evening"
    NIGHT = "night"
    ON_CALL = "on_call"
    DAY_OFF = "day_off"
    PAID_LEAVE = "paid_leave"
    RECUPERATION = "recuperation"


LEAVE_CATEGORIES = {
    EntryType.ON_CALL: ShiftCategory.ON_CALL,
    EntryType.DAY_OFF: ShiftCategory.DAY_OFF,
    EntryType.PAID_LEAVE: ShiftCategory.PAID_LEAVE,
    EntryType.RECUPERATION: ShiftCategory.RECUPERATION,
}

# (background, border) pairs for renderers
CATEGORY_COLORS = {
    ShiftCategory.MORNING: ("#0ea5e94d", "#0ea5e9"),
    ShiftCategory.MID_DAY: ("#14b8a64d", "#14b8a6"),
    ShiftCategory.EVENING: ("#f59e0b4d", "#f59e0b"),
    ShiftCategory.NIGHT: ("#f43f5e4d", "#f43f5e"),
    ShiftCategory.ON_CALL: ("#d946ef4d", "#d946ef"),
    ShiftCategory.DAY_OFF: ("#312e8199", "#4338ca"),
    ShiftCategory.PAID_LEAVE: ("#14532d99", "#15803d"),
    ShiftCategory.RECUPERATION: ("#713f1299", "#a16207"),
}


def time_to_minutes(value: Optional[str]) -> int:
    """'HH:MM' -> minutes since midnight. Missing or empty input gives 0."""
    if not value:
        return 0
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def classify(entry: ScheduleEntry) -> ShiftCategory:
    """Display category of an entry: leave type as-is, work shifts by start time."""
    if entry.entry_type is not EntryType.WORK_SHIFT:
        return LEAVE_CATEGORIES[entry.entry_type]

    start = time_to_minutes(entry.shift_start)
    if start <= MORNING_UNTIL:
        return ShiftCategory.MORNING
    if start <= MID_DAY_UNTIL:
        return ShiftCategory.MID_DAY
    if start <= EVENING_UNTIL:
        return ShiftCategory.EVENING
    return ShiftCategory.NIGHT


def is_cross_midnight(entry: ScheduleEntry) -> bool:
    return entry.entry_type is EntryType.WORK_SHIFT and entry.shift_end == MIDNIGHT


def end_minutes(entry: ScheduleEntry) -> int:
    """End minute for ordering; a '00:00' end sorts after every same-day end."""
    if is_cross_midnight(entry):
        return MINUTES_PER_DAY
    return time_to_minutes(entry.shift_end)


def display_end(end: Optional[str]) -> str:
    return "24:00" if end == MIDNIGHT else (end or "")


def display_shift_time(entry: ScheduleEntry) -> str:
    """'09:00 - 17:00'; cross-midnight ends are shown as 24:00."""
    return f"{entry.shift_start} - {display_end(entry.shift_end)}"


def shift_duration_minutes(entry: ScheduleEntry) -> int:
    if entry.entry_type is not EntryType.WORK_SHIFT:
        return 0
    return max(end_minutes(entry) - time_to_minutes(entry.shift_start), 0)
