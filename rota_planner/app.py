# -*- coding: utf-8 -*-
"""
Streamlit shell for the rota planner.

Run with:  streamlit run rota_planner/app.py
"""

import pandas as pd
import streamlit as st

from rota_planner.ai_client import ChangeNotifier, ScheduleAnalyst, TextCompletionClient
from rota_planner.board import SaveStatus, ScheduleBoard
from rota_planner.classification import CATEGORY_COLORS, classify
from rota_planner.confirmation import ConfirmationGate
from rota_planner.constants import (
    DEFAULT_SHIFT_KEY, LANGUAGE_NAMES, SUPPORTED_LANGUAGES, get_role_by_employee, leave_label,
)
from rota_planner.copy_engine import CopyEngine
from rota_planner.db import open_store
from rota_planner.errors import StoreInitError
from rota_planner.export_utils import EMPLOYEE_HEADER
from rota_planner.logging_config import get_logger, setup_logging
from rota_planner.models import EntryType, EntryUpdate, NewShift, shift_catalog
from rota_planner.monitoring import init_sentry, set_user_context
from rota_planner.schedule_service import Outcome, ScheduleService, template_to_draft
from rota_planner.settings import VIEW_MODES, AppConfig, load_preferences, save_preferences

st.set_page_config(page_title="Rota Planner", page_icon="🗓️", layout="wide")

logger = get_logger(__name__)

TYPE_LABELS = {EntryType.WORK_SHIFT: "Shift", **{t: leave_label(t.value) for t in EntryType if t.is_leave}}
STATUS_TEXT = {SaveStatus.IDLE: "", SaveStatus.SAVING: "⏳ Saving…", SaveStatus.SUCCESS: "✅ Saved"}
SHIFT_LABELS = {s.key: s.label for s in shift_catalog()}


# -------------------------
# One-time wiring
# -------------------------

@st.cache_resource
def _bootstrap() -> AppConfig:
    config = AppConfig.from_env()
    setup_logging()
    init_sentry()
    return config


@st.cache_resource
def _store(_config: AppConfig):
    return open_store(_config)


def _build_board(config: AppConfig, store) -> ScheduleBoard:
    completion = TextCompletionClient(api_key=config.openai_api_key, model=config.openai_model)
    prefs = load_preferences(config.preferences_file)
    notifier = ChangeNotifier(completion, store, language=prefs.language) if completion.available else None
    gate = ConfirmationGate()
    service = ScheduleService(store, notifier, user_id=config.user_id, language=prefs.language)
    engine = CopyEngine(store, gate, notifier, user_id=config.user_id, language=prefs.language)
    return ScheduleBoard(
        store, service, engine, gate,
        analyst=ScheduleAnalyst(completion),
        preferences=prefs,
        save_preferences=lambda p: save_preferences(p, config.preferences_file),
    )


def _report(result, success: str = "Done"):
    if result is None:
        return
    if result.outcome is Outcome.SUCCESS:
        st.toast(success, icon="✅")
    elif result.outcome is Outcome.INVALID:
        st.warning(result.message or "Invalid input")
    elif result.outcome is Outcome.NOTHING_TO_COPY:
        st.info(result.message)
    elif result.outcome is Outcome.FAILED:
        st.error(f"❌ {result.message}")


# -------------------------
# Sections
# -------------------------

def render_sidebar(board: ScheduleBoard):
    with st.sidebar:
        st.markdown("### ⚙️ Preferences")
        prefs = board.preferences
        lang = st.selectbox(
            "Language", SUPPORTED_LANGUAGES,
            index=SUPPORTED_LANGUAGES.index(prefs.language),
            format_func=lambda k: LANGUAGE_NAMES[k],
        )
        if lang != prefs.language:
            board.set_language(lang)

        mode = st.radio("Open on", VIEW_MODES, index=VIEW_MODES.index(prefs.view_mode), horizontal=True)
        if mode != prefs.view_mode:
            prefs.view_mode = mode
            board.go_to(board.reference_date)

        if st.button("💾 Force sync", use_container_width=True):
            board.manual_save()
        st.caption(STATUS_TEXT[board.status.state])

        st.markdown("### 🔔 Recent changes")
        if not board.notifications:
            st.caption("No notifications yet.")
        for n in board.notifications:
            with st.expander(f"{n.timestamp:%d/%m %H:%M} · {n.email_draft.subject}"):
                st.write(n.message)
                st.caption(n.email_draft.body)


def render_grid(board: ScheduleBoard):
    c1, c2, c3 = st.columns([1, 3, 1])
    if c1.button("◀ Previous week", use_container_width=True):
        board.previous_week()
    if c3.button("Next week ▶", use_container_width=True):
        board.next_week()
    c2.markdown(f"<h3 style='text-align:center'>{board.label}</h3>", unsafe_allow_html=True)

    df = board.dataframe()
    rows = board.rows()

    def _styles(frame: pd.DataFrame) -> pd.DataFrame:
        css = pd.DataFrame("", index=frame.index, columns=frame.columns)
        for i, name in enumerate(frame[EMPLOYEE_HEADER]):
            for j, entry in enumerate(rows.get(name, [])):
                if entry is not None:
                    bg, border = CATEGORY_COLORS[classify(entry)]
                    css.iat[i, j + 1] = f"background-color:{bg}; border-left:3px solid {border}"
        return css

    st.dataframe(df.style.apply(_styles, axis=None), use_container_width=True, hide_index=True)

    filename, data = board.export_csv()
    d1, d2, d3 = st.columns(3)
    d1.download_button("📥 Export CSV", data=data, file_name=filename, mime="text/csv", use_container_width=True)
    if d2.button("📋 Copy previous week", use_container_width=True):
        _report(board.copy_previous_week())
    if d3.button("🤖 Analyze week", use_container_width=True):
        with st.spinner("Analyzing…"):
            st.session_state["analysis"] = board.analyze()
    if st.session_state.get("analysis"):
        with st.expander("AI analysis", expanded=True):
            st.markdown(st.session_state["analysis"])


def render_confirmation(board: ScheduleBoard):
    pending = board.gate.pending
    if pending is None:
        return
    with st.container(border=True):
        st.markdown(f"**{pending.title}**")
        st.write(pending.message)
        c1, c2 = st.columns(2)
        if c1.button("Confirm", type="primary", use_container_width=True):
            _report(board.confirm(), "Copied")
            st.rerun()
        if c2.button("Cancel", use_container_width=True):
            board.cancel()
            st.rerun()


def render_entry_form(board: ScheduleBoard):
    st.markdown("### ➕ Add entry")
    templates = {t.name: t for t in board.templates}
    chosen = st.selectbox("Template", ["—"] + list(templates))
    employee = st.selectbox("Employee", board.roster)
    day = st.date_input("Date", value=board.week_start)
    prefill = template_to_draft(templates[chosen], employee, day) if chosen in templates else NewShift()

    types = list(EntryType)
    entry_type = st.selectbox("Type", types, index=types.index(prefill.entry_type), format_func=TYPE_LABELS.get)
    keys = list(SHIFT_LABELS)
    key = None
    if entry_type is EntryType.WORK_SHIFT:
        key = st.selectbox(
            "Shift time", keys,
            index=keys.index(prefill.shift_time_key or DEFAULT_SHIFT_KEY),
            format_func=SHIFT_LABELS.get,
        )
    default = get_role_by_employee(employee) if entry_type is EntryType.WORK_SHIFT else leave_label(entry_type.value)
    role = st.text_input("Role", value=prefill.role or default)

    if st.button("Add", type="primary"):
        draft = NewShift(employee_name=employee, entry_type=entry_type, shift_date=day, shift_time_key=key, role=role)
        if board.entry_at(employee, day) is not None:
            st.warning(f"{employee} already has an entry on {day}. Edit it instead.")
        else:
            _report(board.add_entry(draft), "Entry added")

    with st.expander("Save as template"):
        name = st.text_input("Template name")
        if st.button("Save template"):
            _report(board.service.add_template(name, entry_type, key, role), "Template saved")
        for t in board.templates:
            if st.button(f"🗑️ {t.name}", key=f"tpl-{t.id}"):
                _report(board.service.delete_template(t.id), "Template deleted")


def render_edit(board: ScheduleBoard):
    st.markdown("### ✏️ Edit / copy")
    visible = [e for cells in board.rows().values() for e in cells if e is not None]
    if not visible:
        st.caption("Nothing scheduled this week.")
        return
    entry = st.selectbox(
        "Entry", visible,
        format_func=lambda e: f"{e.employee_name} · {e.shift_date} · {TYPE_LABELS[e.entry_type]}",
    )
    types = list(EntryType)
    new_type = st.selectbox("New type", types, index=types.index(entry.entry_type), format_func=TYPE_LABELS.get)
    key = None
    if new_type is EntryType.WORK_SHIFT:
        keys = list(SHIFT_LABELS)
        current = entry.shift_time_key or DEFAULT_SHIFT_KEY
        key = st.selectbox("New shift time", keys, index=keys.index(current), format_func=SHIFT_LABELS.get)

    c1, c2 = st.columns(2)
    if c1.button("Save changes", use_container_width=True):
        _report(board.update_entry(entry.id, EntryUpdate(entry_type=new_type, shift_time_key=key)), "Entry updated")
    if c2.button("Delete", use_container_width=True):
        _report(board.delete_entry(entry.id), "Entry deleted")

    st.markdown("**Copy to cell**")
    target = st.selectbox("Target employee", board.roster, key="copy-target")
    target_day = st.selectbox("Target day", board.days, key="copy-day")
    if st.button("Copy"):
        _report(board.copy_entry_to_cell(entry, target, target_day), "Copied")


# -------------------------
# Main
# -------------------------

def main():
    config = _bootstrap()
    try:
        store = _store(config)
    except StoreInitError as e:
        logger.critical(f"Store initialisation failed: {e}")
        st.error(f"❌ Could not connect to the schedule store: {e}")
        st.stop()

    board: ScheduleBoard = st.session_state.get("board")
    if board is not None and board.store is not store:
        # Cached store was rebuilt; release the old one's listeners
        board.detach()
        board = None
    if board is None:
        board = st.session_state["board"] = _build_board(config, store)
        set_user_context(user_id=config.user_id)
    board.attach()

    st.title("🗓️ Rota Planner")
    render_sidebar(board)
    render_confirmation(board)
    render_grid(board)
    left, right = st.columns(2)
    with left:
        render_entry_form(board)
    with right:
        render_edit(board)


if __name__ == "__main__":
    main()
