# -*- coding: utf-8 -*-
"""
Service Tests
Entry lifecycle, week/cell copy, confirmation, AI collaborators, board state
and view preferences. Uses a real SQLite store and a fake chat client.
"""

import gc
import json
import os
import tempfile
import weakref
from datetime import date, timedelta
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from rota_planner.ai_client import (
    ANALYSIS_EMPTY, ANALYSIS_FAILED, ANALYSIS_UNAVAILABLE, ChangeNotifier, ScheduleAnalyst,
    TextCompletionClient, long_date,
)
from rota_planner.board import SaveStatus, ScheduleBoard
from rota_planner.confirmation import ConfirmationGate
from rota_planner.copy_engine import CopyEngine
from rota_planner.db import SqliteScheduleStore
from rota_planner.errors import CompletionError, StoreError
from rota_planner.models import EntryType, EntryUpdate, NewShift, ScheduleEntry, ShiftTemplate
from rota_planner.schedule_index import build_index, week_rows
from rota_planner.dates import week_range
from rota_planner.schedule_service import Outcome, ScheduleService, template_to_draft
from rota_planner.settings import AppConfig, ViewPreferences, get_openai_api_key, load_preferences, save_preferences


LAST_MONDAY = date(2024, 1, 8)
MONDAY = date(2024, 1, 15)
WEDNESDAY = date(2024, 1, 17)


# ============================================================================
# FAKES & FIXTURES
# ============================================================================

class FakeChat:
    """Stands in for an OpenAI client: replays canned replies, records requests."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.requests = []
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    def _create(self, **kwargs):
        self.requests.append(kwargs)
        reply = self.replies.pop(0) if self.replies else json.dumps({"subject": "Update", "body": "Changed."})
        if isinstance(reply, Exception):
            raise reply
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=reply))])


@pytest.fixture
def temp_db():
    fd, path = tempfile.mkstemp(suffix='.db')
    os.close(fd)
    yield path
    for suffix in ['', '-wal', '-shm']:
        try:
            os.unlink(path + suffix)
        except OSError:
            pass


@pytest.fixture
def store(temp_db):
    return SqliteScheduleStore(temp_db, app_id="test-app")


@pytest.fixture
def chat():
    return FakeChat()


@pytest.fixture
def notifier(chat, store):
    return ChangeNotifier(TextCompletionClient(client=chat), store)


@pytest.fixture
def service(store, notifier):
    return ScheduleService(store, notifier, user_id="tester")


@pytest.fixture
def gate():
    return ConfirmationGate()


@pytest.fixture
def engine(store, gate, notifier):
    return CopyEngine(store, gate, notifier, user_id="tester")


def add_shift(service, name="bob", day=LAST_MONDAY, key="09:00-17:00", entry_type=EntryType.WORK_SHIFT, role=""):
    result = service.add_entry(NewShift(employee_name=name, entry_type=entry_type, shift_date=day,
                                        shift_time_key=key, role=role))
    assert result.ok, result.message
    return result.entry


# ============================================================================
# ENTRY LIFECYCLE
# ============================================================================

class TestAddEntry:
    """Adding entries from form drafts"""

    def test_work_shift_gets_times_and_employee_role(self, service, store):
        entry = add_shift(service, name="adnan el assam", key="16:00-00:00")
        stored = store.get_entry(entry.id)
        assert (stored.shift_start, stored.shift_end) == ("16:00", "00:00")
        assert stored.role == "chef de prod"
        assert stored.user_id == "tester"

    @pytest.mark.parametrize("entry_type", [t for t in EntryType if t.is_leave])
    def test_leave_entries_have_no_times(self, service, store, entry_type):
        entry = add_shift(service, entry_type=entry_type, key="09:00-17:00")
        stored = store.get_entry(entry.id)
        assert stored.shift_start is None and stored.shift_end is None

    def test_leave_role_defaults_to_label(self, service):
        entry = add_shift(service, entry_type=EntryType.PAID_LEAVE, key=None)
        assert entry.role == "Paid Leave"

    def test_explicit_role_kept_and_string_date_accepted(self, service):
        result = service.add_entry({"employee_name": "  bob ", "shift_date": "2024-01-15",
                                    "shift_time_key": "11:00-19:00", "role": "TL"})
        assert result.ok
        assert result.entry.employee_name == "bob"
        assert result.entry.shift_date == MONDAY
        assert result.entry.role == "TL"

    @pytest.mark.parametrize("draft", [
        {"employee_name": "", "shift_date": "2024-01-15", "shift_time_key": "09:00-17:00"},
        {"employee_name": "bob", "shift_date": "", "shift_time_key": "09:00-17:00"},
        {"employee_name": "bob", "shift_date": "2024-01-15"},
        {"employee_name": "bob", "shift_date": "2024-01-15", "shift_time_key": "07:00-15:00"},
        {"employee_name": "bob", "shift_date": "15/01/2024", "shift_time_key": "09:00-17:00"},
    ])
    def test_invalid_drafts_write_nothing(self, service, store, draft):
        result = service.add_entry(draft)
        assert result.outcome is Outcome.INVALID
        assert store.list_entries() == []
        assert store.recent_notifications() == []

    def test_add_logs_notification(self, service, store):
        add_shift(service, name="bob", day=MONDAY)
        [log] = store.recent_notifications()
        assert log.action == "add"
        assert log.message == "bob - added a new Shift entry for Monday, January 15"
        assert log.email_draft.subject == "Update"

    def test_store_failure_is_reported_not_raised(self, notifier):
        broken = MagicMock()
        broken.insert_entry.side_effect = StoreError("disk full")
        result = ScheduleService(broken, notifier).add_entry(
            NewShift(employee_name="bob", shift_date=MONDAY, shift_time_key="09:00-17:00"))
        assert result.outcome is Outcome.FAILED
        assert "disk full" in result.message


class TestNotifications:
    """Best-effort change notifications"""

    def test_completion_failure_skips_log_but_keeps_entry(self, store):
        chat = FakeChat(RuntimeError("quota"))
        service = ScheduleService(store, ChangeNotifier(TextCompletionClient(client=chat), store))
        entry = add_shift(service)
        assert store.get_entry(entry.id) is not None
        assert store.recent_notifications() == []

    def test_empty_reply_uses_default_draft(self, store):
        notifier = ChangeNotifier(TextCompletionClient(client=FakeChat("")), store)
        draft = notifier.notify("delete", {"employee_name": "bob", "entry_type": "DayOff", "shift_date": MONDAY})
        assert draft.subject == "Schedule Update"
        assert draft.body == "The schedule has been updated."

    def test_invalid_json_returns_none(self, store):
        notifier = ChangeNotifier(TextCompletionClient(client=FakeChat("not json")), store)
        assert notifier.notify("add", {"employee_name": "bob", "entry_type": "Shift"}) is None
        assert store.recent_notifications() == []

    def test_prompt_contents(self, store, chat):
        notifier = ChangeNotifier(TextCompletionClient(client=chat), store)
        notifier.notify(
            "edit",
            {"employee_name": "bob", "entry_type": EntryType.WORK_SHIFT, "shift_date": MONDAY,
             "shift_start": "14:00", "shift_end": "22:00"},
            {"entry_type": EntryType.WORK_SHIFT, "shift_start": "09:00", "shift_end": "17:00"},
            language="fr",
        )
        request = chat.requests[0]
        prompt = request["messages"][-1]["content"]
        assert request["response_format"] == {"type": "json_object"}
        assert "French" in prompt
        assert "- New Time: 14:00 to 22:00" in prompt
        assert "- Previous State: Shift (09:00-17:00)" in prompt
        assert "lundi 15 janvier" in prompt
        assert store.recent_notifications()[0].message == "bob - a modifié une entrée (Shift) for lundi 15 janvier"

    def test_long_date(self):
        assert long_date(MONDAY) == "Monday, January 15"
        assert long_date(None) == "unspecified date"


class TestUpdateEntry:
    """Entry-type transitions during edits"""

    def test_shift_to_leave_clears_times_and_sets_label(self, service, store):
        entry = add_shift(service)
        result = service.update_entry(entry.id, EntryUpdate(entry_type=EntryType.DAY_OFF))
        assert result.ok
        stored = store.get_entry(entry.id)
        assert stored.entry_type is EntryType.DAY_OFF
        assert stored.shift_start is None and stored.shift_end is None
        assert stored.role == "Day Off"

    def test_leave_to_leave_relabels(self, service, store):
        entry = add_shift(service, entry_type=EntryType.DAY_OFF, key=None)
        service.update_entry(entry.id, {"entry_type": "Recup"})
        assert store.get_entry(entry.id).role == "Recup"

    def test_leave_to_shift_requires_key(self, service, store):
        entry = add_shift(service, name="aziz boulehjour", entry_type=EntryType.ON_CALL, key=None)
        result = service.update_entry(entry.id, EntryUpdate(entry_type=EntryType.WORK_SHIFT))
        assert result.outcome is Outcome.INVALID
        assert store.get_entry(entry.id).entry_type is EntryType.ON_CALL

    def test_leave_to_shift_restores_employee_role(self, service, store):
        entry = add_shift(service, name="aziz boulehjour", entry_type=EntryType.ON_CALL, key=None)
        result = service.update_entry(
            entry.id, EntryUpdate(entry_type=EntryType.WORK_SHIFT, shift_time_key="14:00-22:00"))
        assert result.ok
        stored = store.get_entry(entry.id)
        assert (stored.shift_start, stored.shift_end) == ("14:00", "22:00")
        assert stored.role == "TL"

    def test_new_key_reresolves_times(self, service, store):
        entry = add_shift(service)
        service.update_entry(entry.id, {"shift_time_key": "11:00-19:00"})
        stored = store.get_entry(entry.id)
        assert (stored.shift_start, stored.shift_end) == ("11:00", "19:00")
        assert stored.id == entry.id

    def test_date_normalised(self, service, store):
        entry = add_shift(service)
        service.update_entry(entry.id, {"shift_date": "2024-01-20T10:30:00"})
        assert store.get_entry(entry.id).shift_date == date(2024, 1, 20)

    def test_edit_notification_and_missing_entry(self, service, store):
        entry = add_shift(service)
        service.update_entry(entry.id, {"role": "TL"})
        assert store.recent_notifications()[0].action == "edit"
        assert service.update_entry("missing", {"role": "TL"}).outcome is Outcome.FAILED


class TestDeleteAndTemplates:

    def test_delete(self, service, store):
        entry = add_shift(service)
        assert service.delete_entry(entry.id).ok
        assert store.get_entry(entry.id) is None
        assert store.recent_notifications()[0].action == "delete"
        assert service.delete_entry(entry.id).outcome is Outcome.FAILED

    def test_template_crud(self, service, store):
        assert service.add_template("", EntryType.WORK_SHIFT, "09:00-17:00").outcome is Outcome.INVALID
        assert service.add_template("Early", EntryType.WORK_SHIFT, None).outcome is Outcome.INVALID
        early = service.add_template("Early", EntryType.WORK_SHIFT, "09:00-17:00", "mailer")
        off = service.add_template("Off", EntryType.DAY_OFF)
        assert early.ok and off.ok
        templates = {t.name: t for t in store.list_templates()}
        assert templates["Off"].role == "Day Off"
        assert templates["Early"].shift_start == "09:00"
        assert service.delete_template(early.entry_id).ok
        assert [t.name for t in store.list_templates()] == ["Off"]
        # templates never notify
        assert store.recent_notifications() == []

    def test_template_to_draft(self):
        template = ShiftTemplate(name="Late", entry_type=EntryType.WORK_SHIFT, shift_start="16:00",
                                 shift_end="00:00", role="TL")
        draft = template_to_draft(template, "bob", MONDAY)
        assert draft.shift_time_key == "16:00-00:00"
        assert (draft.employee_name, draft.shift_date, draft.role) == ("bob", MONDAY, "TL")


# ============================================================================
# WEEK COPY & CELL COPY
# ============================================================================

class TestCopyPreviousWeek:

    def test_nothing_to_copy(self, engine, gate, store):
        result = engine.copy_previous_week(WEDNESDAY)
        assert result.outcome is Outcome.NOTHING_TO_COPY
        assert gate.pending is None
        assert store.list_entries() == []

    def test_copies_last_week_forward(self, service, engine, gate, store):
        source = add_shift(service, name="bob", day=LAST_MONDAY)
        add_shift(service, name="carol", day=date(2024, 1, 14), entry_type=EntryType.DAY_OFF, key=None)
        add_shift(service, name="dan", day=date(2024, 1, 7))
        add_shift(service, name="erin", day=MONDAY)

        result = engine.copy_previous_week(WEDNESDAY)
        assert result.outcome is Outcome.PENDING_CONFIRMATION
        assert "2" in gate.pending.message
        assert len(store.list_entries()) == 4

        confirmed = gate.confirm()
        assert confirmed.ok and len(confirmed.entry_ids) == 2
        index = build_index(store.list_entries())
        copy = index["bob"][MONDAY.isoformat()]
        assert copy.id != source.id
        assert (copy.shift_start, copy.shift_end, copy.role) == ("09:00", "17:00", source.role)
        assert index["carol"]["2024-01-21"].entry_type is EntryType.DAY_OFF
        # two weeks back and the current week are left alone
        assert list(index["dan"]) == ["2024-01-07"]
        assert list(index["erin"]) == ["2024-01-15"]

    def test_one_aggregate_notification(self, service, engine, gate, store):
        add_shift(service, name="bob", day=LAST_MONDAY)
        add_shift(service, name="carol", day=LAST_MONDAY)
        before = len(store.recent_notifications())
        engine.copy_previous_week(WEDNESDAY)
        gate.confirm()
        logs = store.recent_notifications()
        assert len(logs) == before + 1
        assert logs[0].message == "Entire Team - added a new Shift entry for Monday, January 15"

    def test_cancel_writes_nothing(self, service, engine, gate, store):
        add_shift(service, day=LAST_MONDAY)
        engine.copy_previous_week(WEDNESDAY)
        gate.cancel()
        assert gate.confirm() is None
        assert len(store.list_entries()) == 1

    def test_batch_failure_reported(self, service, store, gate):
        add_shift(service, day=LAST_MONDAY)
        broken = MagicMock(wraps=store)
        broken.batch_insert_entries.side_effect = StoreError("commit failed")
        engine = CopyEngine(broken, gate)
        engine.copy_previous_week(WEDNESDAY)
        assert gate.confirm().outcome is Outcome.FAILED
        assert len(store.list_entries()) == 1


class TestCopyToCell:

    def test_empty_target_written_immediately(self, engine, gate, store):
        payload = {"entry_type": "Shift", "shift_start": "14:00", "shift_end": "22:00"}
        result = engine.copy_to_cell(payload, "aziz boulehjour", "2024-01-16", None)
        assert result.ok
        assert gate.pending is None
        stored = store.get_entry(result.entry_id)
        assert stored.role == "TL"
        assert stored.shift_date == date(2024, 1, 16)
        assert store.recent_notifications()[0].message.startswith("aziz boulehjour - added a new Shift entry")

    @pytest.mark.parametrize("entry_type,role", [
        ("DayOff", "Day Off"),
        ("PaidLeave", "Paid Leave"),
        ("OnCall", "On Call"),
    ])
    def test_leave_copy_without_role_uses_leave_label(self, engine, store, entry_type, role):
        result = engine.copy_to_cell({"entry_type": entry_type}, "aziz boulehjour", "2024-01-16", None)
        assert result.ok
        assert store.get_entry(result.entry_id).role == role

    def test_occupied_target_cancel_leaves_store_unchanged(self, service, engine, gate, store):
        target = add_shift(service, name="bob", day=MONDAY)
        result = engine.copy_to_cell({"entry_type": "DayOff"}, "bob", "2024-01-15", target)
        assert result.outcome is Outcome.PENDING_CONFIRMATION
        gate.cancel()
        assert store.get_entry(target.id) == target

    def test_occupied_target_confirm_overwrites_in_place(self, service, engine, gate, store):
        target = add_shift(service, name="bob", day=MONDAY)
        payload = {"entry_type": "Shift", "shift_start": "16:00", "shift_end": "00:00", "role": "TL"}
        engine.copy_to_cell(payload, "bob", "2024-01-15", target)
        result = gate.confirm()
        assert result.ok and result.entry_id == target.id
        entries = store.list_entries()
        assert len(entries) == 1
        stored = entries[0]
        assert stored.id == target.id
        assert (stored.entry_type, stored.shift_start, stored.shift_end, stored.role) == (
            EntryType.WORK_SHIFT, "16:00", "00:00", "TL")

    def test_leave_copy_over_shift_clears_times(self, service, engine, gate, store):
        target = add_shift(service, name="bob", day=MONDAY)
        engine.copy_to_cell({"entry_type": "PaidLeave", "role": "Paid Leave"}, "bob", "2024-01-15", target)
        gate.confirm()
        stored = store.get_entry(target.id)
        assert stored.entry_type is EntryType.PAID_LEAVE
        assert stored.shift_start is None and stored.shift_end is None

    @pytest.mark.parametrize("payload,key", [
        (None, "2024-01-15"),
        ({}, "2024-01-15"),
        ({"entry_type": "Holiday"}, "2024-01-15"),
        ({"entry_type": "Shift"}, "2024-01-15"),
        ({"entry_type": "DayOff"}, "not-a-date"),
    ])
    def test_malformed_copy_is_noop(self, engine, gate, store, payload, key):
        result = engine.copy_to_cell(payload, "bob", key, None)
        assert result.outcome is Outcome.INVALID
        assert gate.pending is None
        assert store.list_entries() == []


class TestConfirmationGate:

    def test_confirm_runs_once(self):
        calls = []
        gate = ConfirmationGate()
        gate.request("T", "M", lambda: calls.append(1) or "done")
        assert gate.confirm() == "done"
        assert gate.confirm() is None
        assert calls == [1]

    def test_new_request_replaces_pending(self):
        calls = []
        gate = ConfirmationGate()
        gate.request("first", "", lambda: calls.append("first"))
        gate.request("second", "", lambda: calls.append("second"))
        assert gate.pending.title == "second"
        gate.confirm()
        assert calls == ["second"]


# ============================================================================
# SCHEDULE ANALYSIS
# ============================================================================

class TestScheduleAnalyst:

    def _rows(self):
        entry = ScheduleEntry(id="1", employee_name="bob", entry_type="Shift", shift_date=MONDAY,
                              shift_start="09:00", shift_end="17:00", role="mailer")
        days = week_range(MONDAY)
        return week_rows(build_index([entry]), ["alice", "bob"], days), days

    def test_returns_markdown(self):
        chat = FakeChat("## Summary\nAll good.")
        rows, days = self._rows()
        assert ScheduleAnalyst(TextCompletionClient(client=chat)).analyze(rows, days) == "## Summary\nAll good."
        prompt = chat.requests[0]["messages"][-1]["content"]
        assert "leadership coverage" in prompt
        assert "Mon, Jan 15" in prompt and "Sun, Jan 21" in prompt
        assert '"bob"' in prompt and '"alice"' in prompt

    def test_failure_message(self):
        rows, days = self._rows()
        analyst = ScheduleAnalyst(TextCompletionClient(client=FakeChat(RuntimeError("timeout"))))
        assert analyst.analyze(rows, days) == ANALYSIS_FAILED

    def test_empty_reply(self):
        rows, days = self._rows()
        assert ScheduleAnalyst(TextCompletionClient(client=FakeChat(""))).analyze(rows, days) == ANALYSIS_EMPTY

    def test_unconfigured(self):
        rows, days = self._rows()
        assert ScheduleAnalyst(TextCompletionClient()).analyze(rows, days) == ANALYSIS_UNAVAILABLE

    def test_client_without_key_raises(self):
        with pytest.raises(CompletionError):
            TextCompletionClient().complete("hi")


# ============================================================================
# BOARD & PREFERENCES
# ============================================================================

class TestBoard:

    @pytest.fixture
    def clock(self):
        return SimpleNamespace(now=100.0)

    @pytest.fixture
    def board(self, store, service, engine, gate, clock):
        saved = []
        b = ScheduleBoard(
            store, service, engine, gate,
            preferences=ViewPreferences(view_mode="sticky", last_viewed=WEDNESDAY),
            save_preferences=saved.append,
            configured_names=["alice"],
            clock=lambda: clock.now,
        )
        b.saved = saved
        b.attach()
        yield b
        b.detach()

    def test_live_index_and_roster(self, board, service):
        add_shift(service, name="zed", day=MONDAY)
        assert board.roster == ["alice", "zed"]
        assert board.entry_at("zed", MONDAY) is not None
        assert board.days[0] == MONDAY

    def test_detach_stops_updates(self, board, service):
        board.detach()
        add_shift(service, name="zed", day=MONDAY)
        assert board.entry_at("zed", MONDAY) is None

    def test_discarded_board_releases_its_listeners(self, store, service, engine, gate):
        board = ScheduleBoard(store, service, engine, gate, configured_names=["alice"])
        board.attach()
        assert len(store.entries_feed) == len(store.notifications_feed) == len(store.templates_feed) == 1

        ref = weakref.ref(board)
        del board
        gc.collect()

        assert ref() is None
        assert len(store.entries_feed) == len(store.notifications_feed) == len(store.templates_feed) == 0
        assert add_shift(service, name="zed", day=MONDAY) is not None

    def test_detach_is_idempotent_and_reattach_works(self, board, store, service):
        board.detach()
        board.detach()
        assert len(store.entries_feed) == 0
        board.attach()
        add_shift(service, name="zed", day=MONDAY)
        assert board.entry_at("zed", MONDAY) is not None

    def test_navigation_saves_last_viewed(self, board):
        board.previous_week()
        assert board.week_start == LAST_MONDAY
        board.next_week()
        board.next_week()
        assert board.week_start == date(2024, 1, 22)
        assert board.saved[-1].last_viewed == WEDNESDAY + timedelta(days=7)

    def test_drop_without_type_is_ignored(self, board, store):
        assert board.drop_on_cell({"role": "TL"}, "alice", MONDAY).outcome is Outcome.INVALID
        assert store.list_entries() == []

    def test_drop_on_occupied_cell_needs_confirmation(self, board, service):
        add_shift(service, name="alice", day=MONDAY)
        result = board.drop_on_cell({"entry_type": "DayOff"}, "alice", MONDAY)
        assert result.outcome is Outcome.PENDING_CONFIRMATION
        assert board.cancel().outcome is Outcome.CANCELLED
        assert board.entry_at("alice", MONDAY).entry_type is EntryType.WORK_SHIFT

    def test_export_is_visible_week(self, board, service):
        add_shift(service, name="alice", day=MONDAY)
        filename, data = board.export_csv()
        assert filename == "schedule_2024-01-15.csv"
        assert "09:00 - 17:00" in data.decode("utf-8-sig")

    def test_save_status_after_write(self, board, clock):
        board.add_entry(NewShift(employee_name="alice", shift_date=MONDAY, shift_time_key="09:00-17:00"))
        assert board.status.state == SaveStatus.SAVING
        clock.now = 101.5
        assert board.status.state == SaveStatus.IDLE

    def test_manual_save_timeline(self, board, clock):
        board.manual_save()
        assert board.status.state == SaveStatus.SAVING
        clock.now = 101.0
        assert board.status.state == SaveStatus.SUCCESS
        clock.now = 103.5
        assert board.status.state == SaveStatus.SUCCESS
        clock.now = 104.0
        assert board.status.state == SaveStatus.IDLE


class TestPreferences:

    @pytest.mark.parametrize("mode,last,expected", [
        ("current", None, WEDNESDAY),
        ("previous", None, WEDNESDAY - timedelta(days=7)),
        ("sticky", date(2023, 12, 1), date(2023, 12, 1)),
        ("sticky", None, WEDNESDAY),
    ])
    def test_initial_reference_date(self, mode, last, expected):
        assert ViewPreferences(view_mode=mode, last_viewed=last).initial_reference_date(WEDNESDAY) == expected

    def test_defaults_reopen_last_viewed_week(self):
        assert ViewPreferences().view_mode == "sticky"
        assert ViewPreferences.from_dict({}).view_mode == "sticky"
        assert ViewPreferences.from_dict({"view_mode": "bogus"}).view_mode == "sticky"
        assert ViewPreferences(last_viewed=MONDAY).initial_reference_date(WEDNESDAY) == MONDAY

    def test_round_trip(self, tmp_path):
        path = str(tmp_path / "prefs.json")
        save_preferences(ViewPreferences("sticky", MONDAY, "fr"), path)
        prefs = load_preferences(path)
        assert (prefs.view_mode, prefs.last_viewed, prefs.language) == ("sticky", MONDAY, "fr")

    def test_bad_file_gives_defaults(self, tmp_path):
        path = tmp_path / "prefs.json"
        path.write_text("{broken")
        assert load_preferences(str(path)) == ViewPreferences()
        assert load_preferences(str(tmp_path / "absent.json")) == ViewPreferences()

    def test_api_key_quotes_stripped(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        monkeypatch.setenv("OpenAI_API_KEY", "'sk-test'")
        assert get_openai_api_key() == "sk-test"

    def test_config_from_env(self, monkeypatch):
        monkeypatch.setenv("STORE_BACKEND", "nonsense")
        monkeypatch.setenv("ROTA_LANGUAGE", "fr")
        monkeypatch.setenv("ROTA_USER_ID", "u-42")
        config = AppConfig.from_env(dotenv=False)
        assert config.store_backend == "sqlite"
        assert config.language == "fr"
        assert config.user_id == "u-42"
