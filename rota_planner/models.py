# -*- coding: utf-8 -*-
"""
Pydantic Data Models for the Rota Planner
Typed, validated records for schedule entries, templates, notification logs
and the drag-and-drop copy payload.
"""

from enum import Enum
from typing import Literal, Optional, Union
from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .constants import SHIFT_TIMES, find_shift_key


ActionType = Literal["add", "edit", "delete"]


class EntryType(str, Enum):
    """Kind of assignment for one employee on one day."""
    WORK_SHIFT = "Shift"
    ON_CALL = "OnCall"
    DAY_OFF = "DayOff"
    PAID_LEAVE = "PaidLeave"
    RECUPERATION = "Recup"

    @property
    def is_leave(self) -> bool:
        return self is not EntryType.WORK_SHIFT


def coerce_date(v):
    """Accept date, datetime or 'YYYY-MM-DD' and return a plain date."""
    if isinstance(v, datetime):
        return v.date()
    if isinstance(v, date):
        return v
    if isinstance(v, str):
        try:
            return date.fromisoformat(v.strip()[:10])
        except ValueError:
            raise ValueError(f"Date must be in YYYY-MM-DD format, got: {v}")
    return v


def _validate_hhmm(v):
    if v is None or v == "":
        return None
    try:
        datetime.strptime(v, "%H:%M")
    except (TypeError, ValueError):
        raise ValueError(f"Time must be in HH:MM format, got: {v}")
    return v


class ShiftTime(BaseModel):
    """Catalog row for a selectable work-shift time."""
    key: str
    label: str
    start: str
    end: str


def shift_catalog() -> list[ShiftTime]:
    return [ShiftTime(key=k, label=label, start=s, end=e) for k, (label, s, e) in SHIFT_TIMES.items()]


class ScheduleEntry(BaseModel):
    """
    One employee's assignment for one calendar day.
    shift_start / shift_end exist only for work shifts.
    """
    id: str = Field(description="Opaque identifier assigned by the store")
    employee_name: str = Field(min_length=1, description="Employee display name")
    entry_type: EntryType = Field(description="Work shift or leave type")
    shift_date: date = Field(description="Calendar day of the assignment")
    created_at: datetime = Field(default_factory=datetime.now)
    user_id: str = Field(default="", description="Creator, kept for provenance only")
    role: str = Field(default="", description="Role label, derived or user-set")
    shift_start: Optional[str] = Field(default=None, description="HH:MM")
    shift_end: Optional[str] = Field(default=None, description="HH:MM, '00:00' = next-day midnight")

    @field_validator("shift_date", mode="before")
    @classmethod
    def coerce_shift_date(cls, v):
        return coerce_date(v)

    @field_validator("shift_start", "shift_end", mode="before")
    @classmethod
    def check_times(cls, v):
        return _validate_hhmm(v)

    @model_validator(mode="after")
    def times_only_for_work_shifts(self):
        """Work shifts carry both times, leave entries carry none."""
        if self.entry_type is EntryType.WORK_SHIFT:
            if not (self.shift_start and self.shift_end):
                raise ValueError("A work shift needs both shift_start and shift_end")
        else:
            self.shift_start = None
            self.shift_end = None
        return self

    @property
    def shift_time_key(self) -> Optional[str]:
        """Catalog key whose times match this entry, None when off-catalog."""
        return find_shift_key(self.shift_start, self.shift_end)

    def record(self) -> dict:
        """Fields as stored, without the identifier."""
        return self.model_dump(exclude={"id"})


class NewShift(BaseModel):
    """Draft coming from the entry form, before validation against the catalog."""
    employee_name: str = ""
    entry_type: EntryType = EntryType.WORK_SHIFT
    shift_date: Optional[Union[date, str]] = None
    shift_time_key: Optional[str] = None
    role: str = ""

    @field_validator("employee_name")
    @classmethod
    def strip_name(cls, v):
        return (v or "").strip()


class EntryUpdate(BaseModel):
    """Partial update; only fields that were explicitly set are applied."""
    employee_name: Optional[str] = None
    entry_type: Optional[EntryType] = None
    shift_date: Optional[Union[date, datetime, str]] = None
    shift_time_key: Optional[str] = None
    role: Optional[str] = None

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


class ShiftTemplate(BaseModel):
    """Reusable preset used to prefill the entry form. Carries no date."""
    id: str = ""
    name: str = Field(min_length=1)
    entry_type: EntryType = EntryType.WORK_SHIFT
    shift_time_key: Optional[str] = None
    role: str = ""
    shift_start: Optional[str] = None
    shift_end: Optional[str] = None
    user_id: str = ""
    created_at: datetime = Field(default_factory=datetime.now)


class EmailDraft(BaseModel):
    subject: str = "Schedule Update"
    body: str = "The schedule has been updated."


class NotificationLogEntry(BaseModel):
    """Append-only audit record of one lifecycle action."""
    model_config = ConfigDict(frozen=True)

    id: str = ""
    action: ActionType
    message: str
    email_draft: EmailDraft
    timestamp: datetime = Field(default_factory=datetime.now)


class CopyPayload(BaseModel):
    """
    Data carried by a drag-and-drop cell copy.
    Only entry_type is required; anything else about the source is optional.
    """
    model_config = ConfigDict(extra="ignore")

    entry_type: EntryType
    shift_start: Optional[str] = None
    shift_end: Optional[str] = None
    role: Optional[str] = None

    @field_validator("shift_start", "shift_end", mode="before")
    @classmethod
    def check_times(cls, v):
        return _validate_hhmm(v)

    @model_validator(mode="after")
    def work_shift_needs_times(self):
        if self.entry_type is EntryType.WORK_SHIFT and not (self.shift_start and self.shift_end):
            raise ValueError("A work-shift copy needs both shift_start and shift_end")
        if self.entry_type is not EntryType.WORK_SHIFT:
            self.shift_start = None
            self.shift_end = None
        return self

    @classmethod
    def from_entry(cls, entry: ScheduleEntry) -> "CopyPayload":
        return cls(
            entry_type=entry.entry_type,
            shift_start=entry.shift_start,
            shift_end=entry.shift_end,
            role=entry.role or None,
        )
