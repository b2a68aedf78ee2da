# -*- coding: utf-8 -*-
"""
Schedule board: the per-session state behind the week grid.

Holds the latest live snapshots, the derived index and roster, the visible
week and the save indicator, and routes user actions to the services.
"""

import time
import weakref
from datetime import date
from typing import Callable, Dict, List, Optional, Sequence

from .ai_client import ScheduleAnalyst
from .confirmation import ConfirmationGate
from .constants import PREDEFINED_EMPLOYEES
from .copy_engine import CopyEngine
from .dates import shift_week, start_of_week, week_label, week_range
from .export_utils import export_filename, export_to_csv, week_dataframe
from .logging_config import get_logger
from .models import CopyPayload, NotificationLogEntry, ScheduleEntry, ShiftTemplate
from .schedule_index import ScheduleIndex, build_index, build_roster, entry_at, week_rows
from .schedule_service import OperationResult, Outcome, ScheduleService
from .settings import ViewPreferences

logger = get_logger(__name__)

WRITE_RESET_SECONDS = 1.0
MANUAL_SAVING_SECONDS = 0.8
MANUAL_SUCCESS_SECONDS = 3.0


def _forward(board_ref, handler_name: str):
    """Deliver to the board while it is alive; the feed never keeps it alive."""
    def deliver(payload):
        board = board_ref()
        if board is not None:
            getattr(board, handler_name)(payload)
    return deliver


def _unsubscribe_all(subscriptions: list) -> None:
    while subscriptions:
        subscriptions.pop().unsubscribe()


class SaveStatus:
    """
    Local idle/saving/success indicator driven by a clock.
    It reflects what the session did, not what the store acknowledged.
    """

    IDLE = "idle"
    SAVING = "saving"
    SUCCESS = "success"

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        # (at, state) transitions in time order; the last one reached wins
        self._timeline = [(float("-inf"), self.IDLE)]

    @property
    def state(self) -> str:
        now = self._clock()
        current = self.IDLE
        for at, state in self._timeline:
            if at <= now:
                current = state
        return current

    def _set(self, *steps):
        now = self._clock()
        self._timeline = [(now + offset, state) for offset, state in steps]

    def reset(self):
        self._set((0.0, self.IDLE))

    def write_started(self):
        self._set((0.0, self.SAVING))

    def write_finished(self):
        self._set((0.0, self.SAVING), (WRITE_RESET_SECONDS, self.IDLE))

    def manual_save(self):
        self._set(
            (0.0, self.SAVING),
            (MANUAL_SAVING_SECONDS, self.SUCCESS),
            (MANUAL_SAVING_SECONDS + MANUAL_SUCCESS_SECONDS, self.IDLE),
        )


class ScheduleBoard:

    def __init__(
        self,
        store,
        service: ScheduleService,
        copy_engine: CopyEngine,
        gate: ConfirmationGate,
        analyst: Optional[ScheduleAnalyst] = None,
        preferences: Optional[ViewPreferences] = None,
        save_preferences: Optional[Callable[[ViewPreferences], None]] = None,
        configured_names: Sequence[str] = PREDEFINED_EMPLOYEES,
        today: Optional[date] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.service = service
        self.copy_engine = copy_engine
        self.gate = gate
        self.analyst = analyst
        self.preferences = preferences or ViewPreferences()
        self._save_preferences = save_preferences
        self.configured_names = list(configured_names)
        self.status = SaveStatus(clock)

        self.reference_date = self.preferences.initial_reference_date(today)
        self.entries: List[ScheduleEntry] = []
        self.notifications: List[NotificationLogEntry] = []
        self.templates: List[ShiftTemplate] = []
        self.index: ScheduleIndex = {}
        self.roster: List[str] = build_roster({}, self.configured_names)
        self.last_error: Optional[Exception] = None
        self._subscriptions: list = []
        # Session state may drop the board without detaching it
        self._finalizer = weakref.finalize(self, _unsubscribe_all, self._subscriptions)

    # ==================== Live data ====================

    def attach(self) -> None:
        if self._subscriptions:
            return
        ref = weakref.ref(self)
        on_error = _forward(ref, "_on_error")
        feeds = (
            (self.store.subscribe_entries, "_on_entries"),
            (self.store.subscribe_notifications, "_on_notifications"),
            (self.store.subscribe_templates, "_on_templates"),
        )
        # Appended one by one so a failed subscribe still lets detach clean up
        for subscribe, handler in feeds:
            self._subscriptions.append(subscribe(_forward(ref, handler), on_error))

    def detach(self) -> None:
        _unsubscribe_all(self._subscriptions)

    @property
    def attached(self) -> bool:
        return bool(self._subscriptions)

    def _on_entries(self, entries: List[ScheduleEntry]) -> None:
        self.entries = list(entries)
        self.index = build_index(self.entries)
        self.roster = build_roster(self.index, self.configured_names)

    def _on_notifications(self, notifications: List[NotificationLogEntry]) -> None:
        self.notifications = list(notifications)

    def _on_templates(self, templates: List[ShiftTemplate]) -> None:
        self.templates = list(templates)

    def _on_error(self, error: Exception) -> None:
        logger.warning(f"Live update failed, keeping last snapshot: {error}")
        self.last_error = error

    # ==================== Week navigation ====================

    @property
    def days(self) -> List[date]:
        return week_range(self.reference_date)

    @property
    def week_start(self) -> date:
        return start_of_week(self.reference_date)

    @property
    def label(self) -> str:
        return week_label(self.reference_date)

    def go_to(self, day: date) -> None:
        self.reference_date = day
        self.preferences.last_viewed = day
        if self._save_preferences:
            self._save_preferences(self.preferences)

    def previous_week(self) -> None:
        self.go_to(shift_week(self.reference_date, -1))

    def next_week(self) -> None:
        self.go_to(shift_week(self.reference_date, 1))

    def set_language(self, language: str) -> None:
        self.preferences.language = language
        self.service.language = language
        self.copy_engine.language = language
        if self._save_preferences:
            self._save_preferences(self.preferences)

    # ==================== Grid ====================

    def entry_at(self, employee_name: str, day: date) -> Optional[ScheduleEntry]:
        return entry_at(self.index, employee_name, day)

    def rows(self) -> Dict[str, List[Optional[ScheduleEntry]]]:
        return week_rows(self.index, self.roster, self.days)

    def dataframe(self):
        return week_dataframe(self.roster, self.days, self.index, self.preferences.language)

    def export_csv(self):
        """(file name, CSV bytes) for the visible week."""
        return export_filename(self.reference_date), export_to_csv(self.dataframe())

    def analyze(self) -> str:
        if self.analyst is None:
            return "AI analysis unavailable."
        return self.analyst.analyze(self.rows(), self.days, self.preferences.language)

    # ==================== Actions ====================

    def _write(self, action: Callable[[], OperationResult]) -> OperationResult:
        self.status.write_started()
        result = action()
        if result.outcome in (Outcome.PENDING_CONFIRMATION, Outcome.INVALID, Outcome.NOTHING_TO_COPY):
            self.status.reset()
        else:
            self.status.write_finished()
        return result

    def add_entry(self, draft) -> OperationResult:
        return self._write(lambda: self.service.add_entry(draft))

    def update_entry(self, entry_id: str, changes) -> OperationResult:
        return self._write(lambda: self.service.update_entry(entry_id, changes))

    def delete_entry(self, entry_id: str) -> OperationResult:
        return self._write(lambda: self.service.delete_entry(entry_id))

    def copy_previous_week(self) -> OperationResult:
        return self._write(lambda: self.copy_engine.copy_previous_week(self.reference_date, self.entries))

    def drop_on_cell(self, payload, employee_name: str, day: date) -> OperationResult:
        """Cell copy from a drag payload; the occupant is looked up from the index."""
        if isinstance(payload, dict) and not payload.get("entry_type"):
            return OperationResult(Outcome.INVALID, message="Malformed copy")
        existing = self.entry_at(employee_name, day)
        key = day.isoformat()
        return self._write(lambda: self.copy_engine.copy_to_cell(payload, employee_name, key, existing))

    def copy_entry_to_cell(self, source: ScheduleEntry, employee_name: str, day: date) -> OperationResult:
        return self.drop_on_cell(CopyPayload.from_entry(source), employee_name, day)

    def confirm(self) -> Optional[OperationResult]:
        if self.gate.pending is None:
            return None
        return self._write(self.gate.confirm)

    def cancel(self) -> OperationResult:
        self.gate.cancel()
        return OperationResult(Outcome.CANCELLED)

    def manual_save(self) -> None:
        self.status.manual_save()
