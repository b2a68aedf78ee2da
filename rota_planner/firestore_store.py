# -*- coding: utf-8 -*-
"""
Firestore-backed ScheduleStore.

Documents keep the field names of the existing hosted data
(employeeName, type, shiftDate, ...) under
artifacts/{app_id}/public/data/{schedules|notifications|templates}.
Dates are stored as midnight in the configured timezone.
"""

from datetime import date, datetime, time
from typing import Any, Dict, Iterable, List, Optional
from zoneinfo import ZoneInfo

from google.api_core import exceptions as gexc
from google.cloud import firestore
from pydantic import ValidationError

from .constants import (
    APP_ID, NOTIFICATION_LIMIT, NOTIFICATIONS_COLLECTION, SCHEDULES_COLLECTION,
    TEMPLATES_COLLECTION, TZ,
)
from .errors import StoreError, StoreInitError
from .live import Subscription
from .logging_config import get_logger
from .models import EmailDraft, EntryType, NotificationLogEntry, ScheduleEntry, ShiftTemplate

logger = get_logger(__name__)

# python field -> document field
ENTRY_FIELD_MAP = {
    "employee_name": "employeeName",
    "entry_type": "type",
    "shift_date": "shiftDate",
    "created_at": "createdAt",
    "user_id": "userId",
    "role": "role",
    "shift_start": "shiftStart",
    "shift_end": "shiftEnd",
}

TEMPLATE_FIELD_MAP = {
    "name": "name",
    "entry_type": "type",
    "shift_time_key": "shiftTimeKey",
    "role": "role",
    "shift_start": "shiftStart",
    "shift_end": "shiftEnd",
    "user_id": "userId",
    "created_at": "createdAt",
}


def collection_path(app_id: str, name: str) -> str:
    return f"artifacts/{app_id}/public/data/{name}"


class FirestoreScheduleStore:
    """ScheduleStore over Cloud Firestore with native snapshot listeners."""

    def __init__(self, app_id: str = APP_ID, timezone: str = TZ, client: Any = None, project: Optional[str] = None):
        self.app_id = app_id
        self.tz = ZoneInfo(timezone)
        try:
            self.client = client or firestore.Client(project=project)
        except Exception as e:
            raise StoreInitError(f"Could not initialise Firestore client: {e}") from e

    def _collection(self, name: str):
        return self.client.collection(collection_path(self.app_id, name))

    # ---------- Boundary conversions ---------- #
    def to_native_date(self, d) -> datetime:
        if isinstance(d, datetime):
            d = d.date()
        return datetime.combine(d, time.min, tzinfo=self.tz)

    def from_native_date(self, value) -> date:
        if isinstance(value, datetime):
            if value.tzinfo is not None:
                value = value.astimezone(self.tz)
            return value.date()
        if isinstance(value, date):
            return value
        return datetime.fromisoformat(str(value)).date()

    def _to_document(self, record: Dict[str, Any], field_map: Dict[str, str], partial: bool = False) -> Dict[str, Any]:
        doc = {}
        for key, value in record.items():
            if key not in field_map:
                continue
            if key == "shift_date":
                value = self.to_native_date(value)
            elif isinstance(value, EntryType):
                value = value.value
            if value is None:
                if not partial:
                    continue
                value = firestore.DELETE_FIELD
            doc[field_map[key]] = value
        return doc

    def _entry_from_doc(self, snapshot) -> Optional[ScheduleEntry]:
        data = snapshot.to_dict() or {}
        if not data.get("employeeName") or not data.get("shiftDate") or not data.get("type"):
            logger.warning(f"Skipping malformed schedule document {snapshot.id}")
            return None
        try:
            return ScheduleEntry(
                id=snapshot.id,
                employee_name=data["employeeName"],
                entry_type=data["type"],
                shift_date=self.from_native_date(data["shiftDate"]),
                created_at=data.get("createdAt") or datetime.now(self.tz),
                user_id=data.get("userId", ""),
                role=data.get("role", ""),
                shift_start=data.get("shiftStart"),
                shift_end=data.get("shiftEnd"),
            )
        except (ValidationError, ValueError, TypeError) as e:
            logger.warning(f"Skipping invalid schedule document {snapshot.id}: {e}")
            return None

    @staticmethod
    def _template_from_doc(snapshot) -> ShiftTemplate:
        data = snapshot.to_dict() or {}
        return ShiftTemplate(
            id=snapshot.id,
            name=data.get("name", ""),
            entry_type=data.get("type", EntryType.WORK_SHIFT.value),
            shift_time_key=data.get("shiftTimeKey"),
            role=data.get("role", ""),
            shift_start=data.get("shiftStart"),
            shift_end=data.get("shiftEnd"),
            user_id=data.get("userId", ""),
            created_at=data.get("createdAt") or datetime.now(),
        )

    @staticmethod
    def _notification_from_doc(snapshot) -> NotificationLogEntry:
        data = snapshot.to_dict() or {}
        return NotificationLogEntry(
            id=snapshot.id,
            action=data["type"],
            message=data.get("message", ""),
            email_draft=EmailDraft(**(data.get("emailDraft") or {})),
            timestamp=data.get("timestamp") or datetime.now(),
        )

    # ---------- Schedule entries ---------- #
    def _entries_from(self, snapshots: Iterable) -> List[ScheduleEntry]:
        entries = (self._entry_from_doc(s) for s in snapshots)
        return [e for e in entries if e is not None]

    def list_entries(self) -> List[ScheduleEntry]:
        try:
            return self._entries_from(self._collection(SCHEDULES_COLLECTION).stream())
        except gexc.GoogleAPIError as e:
            raise StoreError(f"list entries failed: {e}") from e

    def get_entry(self, entry_id: str) -> Optional[ScheduleEntry]:
        try:
            snapshot = self._collection(SCHEDULES_COLLECTION).document(entry_id).get()
        except gexc.GoogleAPIError as e:
            raise StoreError(f"get entry failed: {e}") from e
        return self._entry_from_doc(snapshot) if snapshot.exists else None

    def insert_entry(self, record: Dict[str, Any]) -> str:
        data = self._to_document(dict({"created_at": datetime.now(self.tz)}, **record), ENTRY_FIELD_MAP)
        try:
            _, ref = self._collection(SCHEDULES_COLLECTION).add(data)
        except gexc.GoogleAPIError as e:
            raise StoreError(f"insert entry failed: {e}") from e
        return ref.id

    def update_entry(self, entry_id: str, fields: Dict[str, Any]) -> bool:
        data = self._to_document(fields, ENTRY_FIELD_MAP, partial=True)
        try:
            self._collection(SCHEDULES_COLLECTION).document(entry_id).update(data)
        except gexc.NotFound:
            return False
        except gexc.GoogleAPIError as e:
            raise StoreError(f"update entry failed: {e}") from e
        return True

    def delete_entry(self, entry_id: str) -> bool:
        ref = self._collection(SCHEDULES_COLLECTION).document(entry_id)
        try:
            if not ref.get().exists:
                return False
            ref.delete()
        except gexc.GoogleAPIError as e:
            raise StoreError(f"delete entry failed: {e}") from e
        return True

    def batch_insert_entries(self, records: Iterable[Dict[str, Any]]) -> List[str]:
        col = self._collection(SCHEDULES_COLLECTION)
        batch = self.client.batch()
        ids = []
        for record in records:
            ref = col.document()
            batch.set(ref, self._to_document(dict({"created_at": datetime.now(self.tz)}, **record), ENTRY_FIELD_MAP))
            ids.append(ref.id)
        try:
            batch.commit()
        except gexc.GoogleAPIError as e:
            raise StoreError(f"batch insert failed: {e}") from e
        return ids

    # ---------- Templates ---------- #
    def list_templates(self) -> List[ShiftTemplate]:
        query = self._collection(TEMPLATES_COLLECTION).order_by("createdAt", direction=firestore.Query.DESCENDING)
        try:
            return [self._template_from_doc(s) for s in query.stream()]
        except gexc.GoogleAPIError as e:
            raise StoreError(f"list templates failed: {e}") from e

    def insert_template(self, record: Dict[str, Any]) -> str:
        data = self._to_document(dict({"created_at": datetime.now(self.tz)}, **record), TEMPLATE_FIELD_MAP)
        try:
            _, ref = self._collection(TEMPLATES_COLLECTION).add(data)
        except gexc.GoogleAPIError as e:
            raise StoreError(f"insert template failed: {e}") from e
        return ref.id

    def delete_template(self, template_id: str) -> bool:
        ref = self._collection(TEMPLATES_COLLECTION).document(template_id)
        try:
            if not ref.get().exists:
                return False
            ref.delete()
        except gexc.GoogleAPIError as e:
            raise StoreError(f"delete template failed: {e}") from e
        return True

    # ---------- Notification log ---------- #
    def _notifications_query(self, limit: int = NOTIFICATION_LIMIT):
        return (
            self._collection(NOTIFICATIONS_COLLECTION)
            .order_by("timestamp", direction=firestore.Query.DESCENDING)
            .limit(limit)
        )

    def insert_notification(self, entry: NotificationLogEntry) -> str:
        data = {
            "type": entry.action,
            "message": entry.message,
            "emailDraft": entry.email_draft.model_dump(),
            "timestamp": firestore.SERVER_TIMESTAMP,
        }
        try:
            _, ref = self._collection(NOTIFICATIONS_COLLECTION).add(data)
        except gexc.GoogleAPIError as e:
            raise StoreError(f"insert notification failed: {e}") from e
        return ref.id

    def recent_notifications(self, limit: int = NOTIFICATION_LIMIT) -> List[NotificationLogEntry]:
        try:
            return [self._notification_from_doc(s) for s in self._notifications_query(limit).stream()]
        except gexc.GoogleAPIError as e:
            raise StoreError(f"list notifications failed: {e}") from e

    # ---------- Live subscriptions ---------- #
    def _listen(self, query, convert, on_snapshot, on_error=None) -> Subscription:
        """
        Attach a Firestore watch. Snapshots older than the last one delivered
        (by read_time) are dropped.
        """
        last_read = {"at": None}

        def callback(docs, changes, read_time):
            if last_read["at"] is not None and read_time is not None and read_time < last_read["at"]:
                return
            last_read["at"] = read_time
            try:
                snapshot = convert(docs)
            except Exception as e:
                logger.error(f"Could not convert snapshot: {e}")
                if on_error:
                    on_error(e)
                return
            on_snapshot(snapshot)

        try:
            watch = query.on_snapshot(callback)
        except gexc.GoogleAPIError as e:
            raise StoreError(f"subscribe failed: {e}") from e
        return Subscription(watch.unsubscribe)

    def subscribe_entries(self, on_snapshot, on_error=None) -> Subscription:
        return self._listen(self._collection(SCHEDULES_COLLECTION), self._entries_from, on_snapshot, on_error)

    def subscribe_notifications(self, on_snapshot, on_error=None) -> Subscription:
        convert = lambda docs: [self._notification_from_doc(s) for s in docs]
        return self._listen(self._notifications_query(), convert, on_snapshot, on_error)

    def subscribe_templates(self, on_snapshot, on_error=None) -> Subscription:
        query = self._collection(TEMPLATES_COLLECTION).order_by("createdAt", direction=firestore.Query.DESCENDING)
        convert = lambda docs: [self._template_from_doc(s) for s in docs]
        return self._listen(query, convert, on_snapshot, on_error)

    def close(self) -> None:
        self.client.close()
