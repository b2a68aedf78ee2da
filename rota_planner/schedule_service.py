# -*- coding: utf-8 -*-
"""
Entry lifecycle: add, update and delete schedule entries, plus template CRUD.

Every public method returns an OperationResult. Validation problems come back
as Outcome.INVALID before anything is written; store failures are logged,
reported to monitoring and come back as Outcome.FAILED.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from .constants import find_shift_key, get_role_by_employee, leave_label, resolve_shift_time, LEAVE_LABELS
from .errors import EntryValidationError, StoreError
from .logging_config import get_logger
from .models import EntryType, EntryUpdate, NewShift, ScheduleEntry, ShiftTemplate, coerce_date
from .monitoring import add_breadcrumb, capture_exception

logger = get_logger(__name__)


class Outcome(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    INVALID = "invalid"
    NOTHING_TO_COPY = "nothing_to_copy"
    PENDING_CONFIRMATION = "pending_confirmation"
    CANCELLED = "cancelled"


@dataclass
class OperationResult:
    outcome: Outcome
    message: str = ""
    entry_id: Optional[str] = None
    entry_ids: List[str] = field(default_factory=list)
    entry: Optional[ScheduleEntry] = None

    @property
    def ok(self) -> bool:
        return self.outcome is Outcome.SUCCESS


def default_role(employee_name: str, entry_type: EntryType) -> str:
    """Employee's role for work shifts, the fixed leave label otherwise."""
    if entry_type is EntryType.WORK_SHIFT:
        return get_role_by_employee(employee_name)
    return leave_label(entry_type.value)


def _require_shift_times(key: Optional[str]) -> tuple:
    if not key:
        raise EntryValidationError("A work shift needs a shift time", field="shift_time_key")
    times = resolve_shift_time(key)
    if times is None:
        raise EntryValidationError(f"Unknown shift time: {key}", field="shift_time_key")
    return times


def failed(operation: str, error: Exception, **context) -> OperationResult:
    """Report a collaborator failure and turn it into a non-fatal result."""
    capture_exception(error, {"operation": operation, **context})
    return OperationResult(Outcome.FAILED, message=str(error))


class ScheduleService:

    def __init__(self, store, notifier=None, user_id: str = "", language: str = "en"):
        self.store = store
        self.notifier = notifier
        self.user_id = user_id
        self.language = language

    def _notify(self, action: str, shift: Dict[str, Any], previous: Optional[Dict[str, Any]] = None) -> None:
        if self.notifier is None:
            return
        self.notifier.notify(action, shift, previous, language=self.language)

    # ==================== Entries ====================

    def build_entry(self, draft: Union[NewShift, dict]) -> ScheduleEntry:
        """
        Validate a form draft into an unsaved entry.

        Raises EntryValidationError when the name or date is missing, or when a
        work shift has no resolvable shift time.
        """
        if isinstance(draft, dict):
            try:
                draft = NewShift(**draft)
            except ValidationError as e:
                raise EntryValidationError(f"Invalid draft: {e}") from e

        if not draft.employee_name:
            raise EntryValidationError("Employee name is required", field="employee_name")
        if not draft.shift_date:
            raise EntryValidationError("Date is required", field="shift_date")
        try:
            shift_date = coerce_date(draft.shift_date)
        except ValueError as e:
            raise EntryValidationError(str(e), field="shift_date") from e

        start = end = None
        if draft.entry_type is EntryType.WORK_SHIFT:
            start, end = _require_shift_times(draft.shift_time_key)

        return ScheduleEntry(
            id="",
            employee_name=draft.employee_name,
            entry_type=draft.entry_type,
            shift_date=shift_date,
            created_at=datetime.now(),
            user_id=self.user_id,
            role=draft.role.strip() or default_role(draft.employee_name, draft.entry_type),
            shift_start=start,
            shift_end=end,
        )

    def add_entry(self, draft: Union[NewShift, dict]) -> OperationResult:
        try:
            entry = self.build_entry(draft)
        except EntryValidationError as e:
            logger.info(f"Rejected new entry: {e}")
            return OperationResult(Outcome.INVALID, message=str(e))

        try:
            entry_id = self.store.insert_entry(entry.record())
        except StoreError as e:
            return failed("add_entry", e, employee=entry.employee_name)

        entry = entry.model_copy(update={"id": entry_id})
        add_breadcrumb(f"Added {entry.entry_type.value} for {entry.employee_name}", category="schedule")
        logger.info(f"Added entry {entry_id} | {entry.employee_name} | {entry.shift_date}")
        self._notify("add", entry.record())
        return OperationResult(Outcome.SUCCESS, entry_id=entry_id, entry=entry)

    def resolve_update(self, previous: ScheduleEntry, changes: Union[EntryUpdate, dict]) -> Dict[str, Any]:
        """
        Turn a partial update into the exact fields to write, applying the
        entry-type transitions:

        - into a work shift: times come from shift_time_key (required) and a
          leave label role is replaced by the employee's role
        - out of a work shift, or between leave types: times are cleared and
          the role becomes the leave label of the new type
        - work shift with a new shift_time_key: times are re-resolved
        """
        if isinstance(changes, dict):
            try:
                changes = EntryUpdate(**changes)
            except ValidationError as e:
                raise EntryValidationError(f"Invalid update: {e}") from e

        fields = changes.changes()
        key = fields.pop("shift_time_key", None)

        if "employee_name" in fields:
            name = (fields["employee_name"] or "").strip()
            if not name:
                raise EntryValidationError("Employee name is required", field="employee_name")
            fields["employee_name"] = name

        if "shift_date" in fields:
            if not fields["shift_date"]:
                raise EntryValidationError("Date is required", field="shift_date")
            try:
                fields["shift_date"] = coerce_date(fields["shift_date"])
            except ValueError as e:
                raise EntryValidationError(str(e), field="shift_date") from e

        if fields.get("entry_type") is None:
            fields.pop("entry_type", None)
        new_type = fields.get("entry_type", previous.entry_type)
        type_changed = new_type is not previous.entry_type
        employee = fields.get("employee_name", previous.employee_name)

        if new_type is EntryType.WORK_SHIFT:
            if type_changed or key:
                fields["shift_start"], fields["shift_end"] = _require_shift_times(key)
            if type_changed:
                role = fields.get("role")
                if not role or role in LEAVE_LABELS.values():
                    fields["role"] = get_role_by_employee(employee)
        else:
            if type_changed or previous.shift_start or previous.shift_end:
                fields["shift_start"] = None
                fields["shift_end"] = None
            if type_changed:
                fields["role"] = leave_label(new_type.value)

        if fields.get("role") is None:
            fields.pop("role", None)
        return fields

    def update_entry(self, entry_id: str, changes: Union[EntryUpdate, dict]) -> OperationResult:
        try:
            previous = self.store.get_entry(entry_id)
        except StoreError as e:
            return failed("update_entry", e, entry_id=entry_id)
        if previous is None:
            return OperationResult(Outcome.FAILED, message=f"Entry {entry_id} not found")

        try:
            fields = self.resolve_update(previous, changes)
        except EntryValidationError as e:
            logger.info(f"Rejected update of {entry_id}: {e}")
            return OperationResult(Outcome.INVALID, message=str(e))

        try:
            updated = self.store.update_entry(entry_id, fields)
        except StoreError as e:
            return failed("update_entry", e, entry_id=entry_id)
        if not updated:
            return OperationResult(Outcome.FAILED, message=f"Entry {entry_id} not found")

        entry = previous.model_copy(update=fields)
        logger.info(f"Updated entry {entry_id} | fields={sorted(fields)}")
        self._notify("edit", entry.record(), previous.record())
        return OperationResult(Outcome.SUCCESS, entry_id=entry_id, entry=entry)

    def delete_entry(self, entry_id: str) -> OperationResult:
        try:
            previous = self.store.get_entry(entry_id)
            deleted = self.store.delete_entry(entry_id)
        except StoreError as e:
            return failed("delete_entry", e, entry_id=entry_id)
        if not deleted:
            return OperationResult(Outcome.FAILED, message=f"Entry {entry_id} not found")

        logger.info(f"Deleted entry {entry_id}")
        if previous is not None:
            self._notify("delete", previous.record())
        return OperationResult(Outcome.SUCCESS, entry_id=entry_id, entry=previous)

    # ==================== Templates ====================

    def add_template(
        self,
        name: str,
        entry_type: EntryType = EntryType.WORK_SHIFT,
        shift_time_key: Optional[str] = None,
        role: str = "",
    ) -> OperationResult:
        name = (name or "").strip()
        if not name:
            return OperationResult(Outcome.INVALID, message="Template name is required")

        entry_type = EntryType(entry_type)
        start = end = None
        if entry_type is EntryType.WORK_SHIFT:
            try:
                start, end = _require_shift_times(shift_time_key)
            except EntryValidationError as e:
                return OperationResult(Outcome.INVALID, message=str(e))
        else:
            shift_time_key = None
            role = role or leave_label(entry_type.value)

        record = {
            "name": name,
            "entry_type": entry_type,
            "shift_time_key": shift_time_key,
            "role": (role or "").strip(),
            "shift_start": start,
            "shift_end": end,
            "user_id": self.user_id,
            "created_at": datetime.now(),
        }
        try:
            template_id = self.store.insert_template(record)
        except StoreError as e:
            return failed("add_template", e, name=name)
        logger.info(f"Saved template {template_id} '{name}'")
        return OperationResult(Outcome.SUCCESS, entry_id=template_id)

    def delete_template(self, template_id: str) -> OperationResult:
        try:
            deleted = self.store.delete_template(template_id)
        except StoreError as e:
            return failed("delete_template", e, template_id=template_id)
        if not deleted:
            return OperationResult(Outcome.FAILED, message=f"Template {template_id} not found")
        return OperationResult(Outcome.SUCCESS, entry_id=template_id)


def template_to_draft(template: ShiftTemplate, employee_name: str = "", day: Optional[date] = None) -> NewShift:
    """Prefill an entry form from a template."""
    key = template.shift_time_key or find_shift_key(template.shift_start, template.shift_end)
    return NewShift(
        employee_name=employee_name,
        entry_type=template.entry_type,
        shift_date=day,
        shift_time_key=key if template.entry_type is EntryType.WORK_SHIFT else None,
        role=template.role,
    )
