# -*- coding: utf-8 -*-
"""
Week copy and cell copy.

copy_previous_week duplicates every entry of the week before the visible one,
shifted forward by 7 days, as one atomic batch. copy_to_cell drops a single
entry onto an (employee, day) cell; an occupied cell is overwritten in place
only after confirmation.
"""

from datetime import date, datetime, time, timedelta
from typing import Any, Dict, Iterable, List, Optional, Union

from pydantic import ValidationError

from .confirmation import ConfirmationGate
from .dates import DateLike, parse_date_key, previous_week_bounds, start_of_week
from .errors import StoreError
from .logging_config import get_logger
from .models import CopyPayload, EntryType, ScheduleEntry
from .schedule_service import OperationResult, Outcome, default_role, failed

logger = get_logger(__name__)

TEAM_NAME = "Entire Team"

COPY_WEEK_TITLE = "Copy Previous Week"
COPY_WEEK_MESSAGE = "Copy {count} entries from last week into this week? Existing entries are kept."
OVERWRITE_TITLE = "Overwrite Entry"
OVERWRITE_MESSAGE = "{name} already has an entry on {day}. Replace it with the copied one?"


class CopyEngine:

    def __init__(self, store, gate: ConfirmationGate, notifier=None, user_id: str = "", language: str = "en"):
        self.store = store
        self.gate = gate
        self.notifier = notifier
        self.user_id = user_id
        self.language = language

    def _notify(self, shift: Dict[str, Any]) -> None:
        if self.notifier is not None:
            self.notifier.notify("add", shift, language=self.language)

    # ==================== Week copy ====================

    def plan_previous_week(self, reference_date: DateLike, entries: Iterable[ScheduleEntry]) -> List[Dict[str, Any]]:
        """
        New records for every entry in the week before reference_date's week,
        moved 7 days later. The old id and created_at are dropped.
        """
        start, end = previous_week_bounds(reference_date)
        plan = []
        for entry in entries:
            when = datetime.combine(entry.shift_date, time.min)
            if not (start <= when <= end):
                continue
            record = entry.record()
            record.pop("created_at", None)
            record["shift_date"] = entry.shift_date + timedelta(days=7)
            record["user_id"] = self.user_id
            plan.append(record)
        return plan

    def copy_previous_week(
        self,
        reference_date: DateLike,
        entries: Optional[Iterable[ScheduleEntry]] = None,
    ) -> OperationResult:
        """
        Ask for confirmation to copy last week into the week of reference_date.

        Returns NOTHING_TO_COPY when last week is empty, otherwise
        PENDING_CONFIRMATION; confirming the gate performs the batch write.
        """
        if entries is None:
            try:
                entries = self.store.list_entries()
            except StoreError as e:
                return failed("copy_previous_week", e)

        plan = self.plan_previous_week(reference_date, entries)
        if not plan:
            logger.info("No entries found in the previous week to copy")
            return OperationResult(Outcome.NOTHING_TO_COPY, message="No shifts found in the previous week to copy.")

        week_start = start_of_week(reference_date)
        message = COPY_WEEK_MESSAGE.format(count=len(plan))
        self.gate.request(COPY_WEEK_TITLE, message, lambda: self._submit_week(plan, week_start))
        return OperationResult(Outcome.PENDING_CONFIRMATION, message=message)

    def _submit_week(self, plan: List[Dict[str, Any]], week_start: date) -> OperationResult:
        now = datetime.now()
        records = [dict(r, created_at=now) for r in plan]
        try:
            ids = self.store.batch_insert_entries(records)
        except StoreError as e:
            return failed("copy_previous_week", e, count=len(records))

        logger.info(f"Copied {len(ids)} entries into week of {week_start}")
        self._notify({
            "employee_name": TEAM_NAME,
            "entry_type": EntryType.WORK_SHIFT,
            "shift_date": week_start,
        })
        return OperationResult(Outcome.SUCCESS, entry_ids=ids)

    # ==================== Cell copy ====================

    def copy_to_cell(
        self,
        payload: Union[CopyPayload, Dict[str, Any], None],
        target_name: str,
        target_date_key: str,
        existing: Optional[ScheduleEntry] = None,
    ) -> OperationResult:
        """
        Copy a dragged entry onto a cell.

        A malformed payload or target is a no-op (INVALID). An occupied target
        returns PENDING_CONFIRMATION and is overwritten only when the gate is
        confirmed; an empty target is written immediately.
        """
        try:
            if not isinstance(payload, CopyPayload):
                payload = CopyPayload.model_validate(payload or {})
            target_day = parse_date_key(target_date_key)
        except (ValidationError, ValueError, TypeError) as e:
            logger.warning(f"Ignoring malformed cell copy onto {target_name!r} {target_date_key!r}: {e}")
            return OperationResult(Outcome.INVALID, message="Malformed copy")

        target_name = (target_name or "").strip()
        if not target_name:
            return OperationResult(Outcome.INVALID, message="Missing target employee")

        fields = {
            "employee_name": target_name,
            "entry_type": payload.entry_type,
            "shift_date": target_day,
            "user_id": self.user_id,
            "role": payload.role or default_role(target_name, payload.entry_type),
            "shift_start": payload.shift_start,
            "shift_end": payload.shift_end,
        }

        if existing is None:
            return self._write_cell(fields, None)

        message = OVERWRITE_MESSAGE.format(name=target_name, day=target_date_key)
        self.gate.request(OVERWRITE_TITLE, message, lambda: self._write_cell(fields, existing.id))
        return OperationResult(Outcome.PENDING_CONFIRMATION, message=message, entry_id=existing.id)

    def _write_cell(self, fields: Dict[str, Any], existing_id: Optional[str]) -> OperationResult:
        fields = dict(fields, created_at=datetime.now())
        try:
            if existing_id:
                if not self.store.update_entry(existing_id, fields):
                    return OperationResult(Outcome.FAILED, message=f"Entry {existing_id} not found")
                entry_id = existing_id
            else:
                entry_id = self.store.insert_entry(fields)
        except StoreError as e:
            return failed("copy_to_cell", e, target=fields["employee_name"])

        logger.info(f"Copied {fields['entry_type'].value} to {fields['employee_name']} on {fields['shift_date']}")
        self._notify(fields)
        return OperationResult(Outcome.SUCCESS, entry_id=entry_id, entry=ScheduleEntry(id=entry_id, **fields))
