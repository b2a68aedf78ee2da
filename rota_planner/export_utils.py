# -*- coding: utf-8 -*-
"""
Export utilities for the weekly schedule grid.
One row per employee in roster order, one column per day of the week.
"""

from io import BytesIO
from datetime import date
from typing import Optional, Sequence

import pandas as pd

from .classification import display_end
from .constants import WEEKDAY_SHORT, leave_label
from .dates import DateLike, date_key, start_of_week
from .models import EntryType, ScheduleEntry
from .schedule_index import ScheduleIndex, entry_at

EMPLOYEE_HEADER = "Employee"
CRLF = "\r\n"


def header_label(day: date, language: str = "en") -> str:
    """'Mon 1/15' in English, 'lun. 15/1' in French."""
    names = WEEKDAY_SHORT.get(language, WEEKDAY_SHORT["en"])
    weekday = names[day.weekday()]
    if language == "fr":
        return f"{weekday} {day.day}/{day.month}"
    return f"{weekday} {day.month}/{day.day}"


def cell_text(entry: Optional[ScheduleEntry]) -> str:
    if entry is None:
        return ""
    if entry.entry_type is EntryType.WORK_SHIFT:
        return f"{entry.shift_start} - {display_end(entry.shift_end)}"
    return leave_label(entry.entry_type.value)


def week_dataframe(
    roster: Sequence[str],
    days: Sequence[date],
    index: ScheduleIndex,
    language: str = "en",
) -> pd.DataFrame:
    columns = [EMPLOYEE_HEADER] + [header_label(d, language) for d in days]
    rows = [[name] + [cell_text(entry_at(index, name, d)) for d in days] for name in roster]
    return pd.DataFrame(rows, columns=columns, dtype=str)


def to_delimited_text(
    roster: Sequence[str],
    days: Sequence[date],
    index: ScheduleIndex,
    language: str = "en",
) -> str:
    """CSV text: comma separated, minimal quoting with doubled quotes, CRLF line ends."""
    df = week_dataframe(roster, days, index, language)
    return df.to_csv(index=False, lineterminator=CRLF)


def export_filename(week_day: DateLike) -> str:
    return f"schedule_{date_key(start_of_week(week_day))}.csv"


def export_to_csv(schedule_df: pd.DataFrame) -> bytes:
    """Export schedule to CSV bytes (UTF-8 with BOM so spreadsheet apps detect the encoding)."""
    output = BytesIO()
    schedule_df.to_csv(output, index=False, encoding='utf-8-sig', lineterminator=CRLF)
    output.seek(0)
    return output.getvalue()
