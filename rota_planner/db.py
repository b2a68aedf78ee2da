# -*- coding: utf-8 -*-
from __future__ import annotations

import sqlite3
import uuid
from contextlib import contextmanager
from datetime import date, datetime, time
from typing import Any, Dict, Iterable, List, Optional, Protocol

from pydantic import ValidationError

from .constants import APP_ID, DB_FILE, NOTIFICATION_LIMIT
from .errors import StoreError, StoreInitError
from .live import ErrorCallback, SnapshotCallback, SnapshotFeed, Subscription
from .logging_config import get_logger, log_error
from .models import EmailDraft, EntryType, NotificationLogEntry, ScheduleEntry, ShiftTemplate

logger = get_logger(__name__)

ENTRY_FIELDS = (
    "employee_name", "entry_type", "shift_date", "created_at",
    "user_id", "role", "shift_start", "shift_end",
)


# ---------------- Persistence Contract ---------------- #
class ScheduleStore(Protocol):
    """
    What the services need from a persistence backend.
    Every method may raise StoreError; callers turn that into a failed result.
    """

    def subscribe_entries(self, on_snapshot: SnapshotCallback, on_error: Optional[ErrorCallback] = None) -> Subscription: ...
    def subscribe_notifications(self, on_snapshot: SnapshotCallback, on_error: Optional[ErrorCallback] = None) -> Subscription: ...
    def subscribe_templates(self, on_snapshot: SnapshotCallback, on_error: Optional[ErrorCallback] = None) -> Subscription: ...

    def list_entries(self) -> List[ScheduleEntry]: ...
    def get_entry(self, entry_id: str) -> Optional[ScheduleEntry]: ...
    def insert_entry(self, record: Dict[str, Any]) -> str: ...
    def update_entry(self, entry_id: str, fields: Dict[str, Any]) -> bool: ...
    def delete_entry(self, entry_id: str) -> bool: ...
    def batch_insert_entries(self, records: List[Dict[str, Any]]) -> List[str]: ...

    def list_templates(self) -> List[ShiftTemplate]: ...
    def insert_template(self, record: Dict[str, Any]) -> str: ...
    def delete_template(self, template_id: str) -> bool: ...

    def insert_notification(self, entry: NotificationLogEntry) -> str: ...
    def recent_notifications(self, limit: int = NOTIFICATION_LIMIT) -> List[NotificationLogEntry]: ...

    def close(self) -> None: ...


# ---------------- Boundary Conversions ---------------- #
def to_native_date(d: date | datetime) -> str:
    """Calendar date -> stored timestamp text (local midnight)."""
    if isinstance(d, datetime):
        d = d.date()
    return datetime.combine(d, time.min).isoformat()


def from_native_date(value: str) -> date:
    return datetime.fromisoformat(value).date()


def _enum_value(v):
    return v.value if isinstance(v, EntryType) else v


def _entry_from_row(r: sqlite3.Row) -> Optional[ScheduleEntry]:
    try:
        return ScheduleEntry(
            id=r["id"],
            employee_name=r["employee_name"],
            entry_type=r["entry_type"],
            shift_date=from_native_date(r["shift_date"]),
            created_at=datetime.fromisoformat(r["created_at"]),
            user_id=r["user_id"] or "",
            role=r["role"] or "",
            shift_start=r["shift_start"],
            shift_end=r["shift_end"],
        )
    except ValidationError as e:
        logger.warning(f"Skipping invalid schedule row {r['id']}: {e.error_count()} error(s)")
        return None


def _template_from_row(r: sqlite3.Row) -> ShiftTemplate:
    return ShiftTemplate(
        id=r["id"],
        name=r["name"],
        entry_type=r["entry_type"],
        shift_time_key=r["shift_time_key"],
        role=r["role"] or "",
        shift_start=r["shift_start"],
        shift_end=r["shift_end"],
        user_id=r["user_id"] or "",
        created_at=datetime.fromisoformat(r["created_at"]),
    )


def _notification_from_row(r: sqlite3.Row) -> NotificationLogEntry:
    return NotificationLogEntry(
        id=r["id"],
        action=r["action"],
        message=r["message"],
        email_draft=EmailDraft(subject=r["email_subject"], body=r["email_body"]),
        timestamp=datetime.fromisoformat(r["timestamp"]),
    )


def _new_id() -> str:
    return uuid.uuid4().hex


# ---------------- SQLite Store ---------------- #
class SqliteScheduleStore:
    """
    ScheduleStore over a local SQLite file.

    All rows live in one shared namespace (app_id). Each write republishes the
    affected collection to its live subscribers after commit.
    """

    def __init__(self, db_path: str = DB_FILE, app_id: str = APP_ID):
        self.db_path = db_path
        self.app_id = app_id
        try:
            self.init_db()
        except sqlite3.Error as e:
            raise StoreInitError(f"Could not initialise SQLite store at {db_path}: {e}") from e

        self.entries_feed: SnapshotFeed[ScheduleEntry] = SnapshotFeed("schedules", self.list_entries)
        self.notifications_feed: SnapshotFeed[NotificationLogEntry] = SnapshotFeed(
            "notifications", self.recent_notifications
        )
        self.templates_feed: SnapshotFeed[ShiftTemplate] = SnapshotFeed("templates", self.list_templates)

    # ---------- Connection Helper ---------- #
    @contextmanager
    def get_conn(self):
        """
        Yields a SQLite connection with sane defaults:
        - WAL journaling
        - Row factory -> sqlite3.Row
        Commits on success, rolls back on error.
        """
        conn = sqlite3.connect(self.db_path, timeout=20.0)
        conn.execute("PRAGMA journal_mode = WAL;")
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @contextmanager
    def _guard(self, operation: str):
        """Translate sqlite failures into StoreError."""
        try:
            yield
        except sqlite3.Error as e:
            log_error(logger, f"SQLite {operation} failed", e, operation=operation)
            raise StoreError(f"{operation} failed: {e}") from e

    def init_db(self):
        """Creates tables and indexes if they do not exist."""
        with self.get_conn() as conn:
            conn.execute("""
            CREATE TABLE IF NOT EXISTS schedules (
                id TEXT PRIMARY KEY,
                app_id TEXT NOT NULL,
                employee_name TEXT NOT NULL,
                entry_type TEXT NOT NULL,
                shift_date TEXT NOT NULL,
                created_at TEXT NOT NULL,
                user_id TEXT DEFAULT '',
                role TEXT DEFAULT '',
                shift_start TEXT DEFAULT NULL,
                shift_end TEXT DEFAULT NULL
            )
            """)

            conn.execute("""
            CREATE TABLE IF NOT EXISTS notifications (
                id TEXT PRIMARY KEY,
                app_id TEXT NOT NULL,
                action TEXT NOT NULL,
                message TEXT NOT NULL,
                email_subject TEXT NOT NULL,
                email_body TEXT NOT NULL,
                timestamp TEXT NOT NULL
            )
            """)

            conn.execute("""
            CREATE TABLE IF NOT EXISTS templates (
                id TEXT PRIMARY KEY,
                app_id TEXT NOT NULL,
                name TEXT NOT NULL,
                entry_type TEXT NOT NULL,
                shift_time_key TEXT DEFAULT NULL,
                role TEXT DEFAULT '',
                shift_start TEXT DEFAULT NULL,
                shift_end TEXT DEFAULT NULL,
                user_id TEXT DEFAULT '',
                created_at TEXT NOT NULL
            )
            """)

            # No UNIQUE(employee_name, shift_date): one entry per slot is enforced by the service layer
            conn.execute("CREATE INDEX IF NOT EXISTS idx_sched_app_date ON schedules(app_id, shift_date)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_notif_app_ts ON notifications(app_id, timestamp)")

    # ---------- Schedule Entries ---------- #
    def _entry_params(self, entry_id: str, record: Dict[str, Any]) -> tuple:
        created_at = record.get("created_at") or datetime.now()
        return (
            entry_id,
            self.app_id,
            str(record["employee_name"]).strip(),
            _enum_value(record["entry_type"]),
            to_native_date(record["shift_date"]),
            created_at.isoformat(),
            record.get("user_id") or "",
            record.get("role") or "",
            record.get("shift_start"),
            record.get("shift_end"),
        )

    _INSERT_ENTRY = (
        "INSERT INTO schedules (id, app_id, employee_name, entry_type, shift_date, "
        "created_at, user_id, role, shift_start, shift_end) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)"
    )

    def list_entries(self) -> List[ScheduleEntry]:
        with self._guard("list entries"), self.get_conn() as conn:
            rows = conn.execute(
                "SELECT * FROM schedules WHERE app_id=? ORDER BY created_at, rowid",
                (self.app_id,),
            ).fetchall()
        return [e for e in map(_entry_from_row, rows) if e is not None]

    def get_entry(self, entry_id: str) -> Optional[ScheduleEntry]:
        with self._guard("get entry"), self.get_conn() as conn:
            r = conn.execute(
                "SELECT * FROM schedules WHERE app_id=? AND id=?", (self.app_id, entry_id)
            ).fetchone()
        return _entry_from_row(r) if r else None

    def insert_entry(self, record: Dict[str, Any]) -> str:
        entry_id = _new_id()
        with self._guard("insert entry"), self.get_conn() as conn:
            conn.execute(self._INSERT_ENTRY, self._entry_params(entry_id, record))
        self.entries_feed.publish()
        return entry_id

    def update_entry(self, entry_id: str, fields: Dict[str, Any]) -> bool:
        """Partial merge; a None value clears the column."""
        updates = {k: v for k, v in fields.items() if k in ENTRY_FIELDS}
        if not updates:
            return self.get_entry(entry_id) is not None

        if "shift_date" in updates:
            updates["shift_date"] = to_native_date(updates["shift_date"])
        if "created_at" in updates and isinstance(updates["created_at"], datetime):
            updates["created_at"] = updates["created_at"].isoformat()
        if "entry_type" in updates:
            updates["entry_type"] = _enum_value(updates["entry_type"])

        assignments = ", ".join(f"{col}=?" for col in updates)
        params = list(updates.values()) + [self.app_id, entry_id]
        with self._guard("update entry"), self.get_conn() as conn:
            cur = conn.execute(
                f"UPDATE schedules SET {assignments} WHERE app_id=? AND id=?", params
            )
            changed = cur.rowcount > 0
        if changed:
            self.entries_feed.publish()
        return changed

    def delete_entry(self, entry_id: str) -> bool:
        with self._guard("delete entry"), self.get_conn() as conn:
            cur = conn.execute(
                "DELETE FROM schedules WHERE app_id=? AND id=?", (self.app_id, entry_id)
            )
            deleted = cur.rowcount > 0
        if deleted:
            self.entries_feed.publish()
        return deleted

    def batch_insert_entries(self, records: Iterable[Dict[str, Any]]) -> List[str]:
        """Insert all records in one transaction: either every row lands or none does."""
        records = list(records)
        ids = [_new_id() for _ in records]
        params = [self._entry_params(i, r) for i, r in zip(ids, records)]
        with self._guard("batch insert"), self.get_conn() as conn:
            conn.executemany(self._INSERT_ENTRY, params)
        self.entries_feed.publish()
        return ids

    def subscribe_entries(self, on_snapshot, on_error=None) -> Subscription:
        return self.entries_feed.subscribe(on_snapshot, on_error)

    # ---------- Templates ---------- #
    def list_templates(self) -> List[ShiftTemplate]:
        with self._guard("list templates"), self.get_conn() as conn:
            rows = conn.execute(
                "SELECT * FROM templates WHERE app_id=? ORDER BY created_at DESC, rowid DESC",
                (self.app_id,),
            ).fetchall()
        return [_template_from_row(r) for r in rows]

    def insert_template(self, record: Dict[str, Any]) -> str:
        template_id = _new_id()
        created_at = record.get("created_at") or datetime.now()
        with self._guard("insert template"), self.get_conn() as conn:
            conn.execute(
                "INSERT INTO templates (id, app_id, name, entry_type, shift_time_key, role, "
                "shift_start, shift_end, user_id, created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    template_id,
                    self.app_id,
                    str(record["name"]).strip(),
                    _enum_value(record["entry_type"]),
                    record.get("shift_time_key"),
                    record.get("role") or "",
                    record.get("shift_start"),
                    record.get("shift_end"),
                    record.get("user_id") or "",
                    created_at.isoformat(),
                ),
            )
        self.templates_feed.publish()
        return template_id

    def delete_template(self, template_id: str) -> bool:
        with self._guard("delete template"), self.get_conn() as conn:
            cur = conn.execute(
                "DELETE FROM templates WHERE app_id=? AND id=?", (self.app_id, template_id)
            )
            deleted = cur.rowcount > 0
        if deleted:
            self.templates_feed.publish()
        return deleted

    def subscribe_templates(self, on_snapshot, on_error=None) -> Subscription:
        return self.templates_feed.subscribe(on_snapshot, on_error)

    # ---------- Notification Log ---------- #
    def insert_notification(self, entry: NotificationLogEntry) -> str:
        notification_id = _new_id()
        with self._guard("insert notification"), self.get_conn() as conn:
            conn.execute(
                "INSERT INTO notifications (id, app_id, action, message, email_subject, "
                "email_body, timestamp) VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    notification_id,
                    self.app_id,
                    entry.action,
                    entry.message,
                    entry.email_draft.subject,
                    entry.email_draft.body,
                    entry.timestamp.isoformat(),
                ),
            )
        self.notifications_feed.publish()
        return notification_id

    def recent_notifications(self, limit: int = NOTIFICATION_LIMIT) -> List[NotificationLogEntry]:
        with self._guard("list notifications"), self.get_conn() as conn:
            rows = conn.execute(
                "SELECT * FROM notifications WHERE app_id=? ORDER BY timestamp DESC, rowid DESC LIMIT ?",
                (self.app_id, limit),
            ).fetchall()
        return [_notification_from_row(r) for r in rows]

    def subscribe_notifications(self, on_snapshot, on_error=None) -> Subscription:
        return self.notifications_feed.subscribe(on_snapshot, on_error)

    def close(self) -> None:
        for feed in (self.entries_feed, self.notifications_feed, self.templates_feed):
            feed.close()


def open_store(config) -> ScheduleStore:
    """
    Build the configured backend. Raises StoreInitError if it cannot start;
    the application treats that as fatal.
    """
    if config.store_backend == "firestore":
        from .firestore_store import FirestoreScheduleStore
        logger.info(f"Using Firestore store (namespace={config.app_id})")
        return FirestoreScheduleStore(app_id=config.app_id, timezone=config.timezone)
    logger.info(f"Using SQLite store at {config.db_file} (namespace={config.app_id})")
    return SqliteScheduleStore(config.db_file, app_id=config.app_id)
