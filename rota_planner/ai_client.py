# -*- coding: utf-8 -*-
"""
AI helpers over the OpenAI chat-completions API.

- TextCompletionClient: thin request/response wrapper, errors -> CompletionError
- ScheduleAnalyst: Markdown review of one week (leadership coverage first)
- ChangeNotifier: drafts a notification email for each schedule change and
  appends it to the notification log
"""

import json
import time
from datetime import date
from typing import Any, Dict, List, Mapping, Optional, Sequence

from openai import OpenAI

from .constants import LANGUAGE_NAMES, LEADERSHIP_ROLES, MONTH_LONG, MONTH_SHORT, WEEKDAY_LONG, WEEKDAY_SHORT
from .errors import CompletionError, RotaError
from .logging_config import get_logger, log_performance
from .models import ActionType, EmailDraft, EntryType, NotificationLogEntry, ScheduleEntry
from .monitoring import capture_exception

logger = get_logger(__name__)

ANALYSIS_FAILED = "Failed to generate analysis. Please try again later."
ANALYSIS_EMPTY = "The AI analysis returned an empty response. Please check the model and prompt."
ANALYSIS_UNAVAILABLE = "AI analysis unavailable: OpenAI API not configured."


class TextCompletionClient:
    """
    Request/response access to a chat model.

    `client` may be any object exposing `chat.completions.create`; when omitted
    an OpenAI client is built from `api_key`.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gpt-4o-mini",
        temperature: float = 0.4,
        max_tokens: int = 1500,
        client: Any = None,
    ):
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        if client is None and api_key:
            client = OpenAI(api_key=api_key)
        self._client = client

    @property
    def available(self) -> bool:
        return self._client is not None

    def complete(self, prompt: str, system: Optional[str] = None, json_mode: bool = False) -> str:
        """Send one prompt and return the reply text ('' when the model returned nothing)."""
        if self._client is None:
            raise CompletionError("OpenAI API not configured")

        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        kwargs: Dict[str, Any] = dict(
            model=self.model,
            messages=messages,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        started = time.perf_counter()
        try:
            response = self._client.chat.completions.create(**kwargs)
        except Exception as e:
            raise CompletionError(f"Completion request failed: {e}") from e
        log_performance(logger, "chat_completion", (time.perf_counter() - started) * 1000, model=self.model)

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    def complete_json(self, prompt: str, system: Optional[str] = None, default: Optional[dict] = None) -> dict:
        """Like complete() but parses a JSON object. An empty reply yields `default`."""
        text = self.complete(prompt, system=system, json_mode=True)
        if not text.strip():
            if default is None:
                raise CompletionError("Empty JSON response")
            return dict(default)
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise CompletionError(f"Invalid JSON in completion: {e}") from e
        if not isinstance(data, dict):
            raise CompletionError("Expected a JSON object")
        return data


# ==================== Formatting helpers ====================

def long_date(d: Optional[date], language: str = "en") -> str:
    """'Monday, January 15' / 'lundi 15 janvier'."""
    if d is None:
        return "unspecified date"
    lang = language if language in WEEKDAY_LONG else "en"
    weekday = WEEKDAY_LONG[lang][d.weekday()]
    month = MONTH_LONG[lang][d.month - 1]
    if lang == "fr":
        return f"{weekday} {d.day} {month}"
    return f"{weekday}, {month} {d.day}"


def short_date(d: date) -> str:
    """'Mon, Jan 15'."""
    return f"{WEEKDAY_SHORT['en'][d.weekday()]}, {MONTH_SHORT[d.month - 1]} {d.day}"


def action_description(action: ActionType, entry_type: str, language: str = "en") -> str:
    if language == "fr":
        if action == "add":
            return f"a ajouté une nouvelle entrée ({entry_type})"
        if action == "edit":
            return f"a modifié une entrée ({entry_type})"
        return f"a supprimé une entrée ({entry_type})"
    if action == "add":
        return f"added a new {entry_type} entry"
    if action == "edit":
        return f"modified a {entry_type} entry"
    return f"deleted a {entry_type} entry"


def _type_value(v) -> str:
    return v.value if isinstance(v, EntryType) else str(v or "")


# ==================== Schedule analysis ====================

ANALYSIS_SYSTEM = "You are an expert HR and logistics manager for a tech support team."

ANALYSIS_PROMPT = """Your task is to analyze a weekly work schedule and provide actionable insights.

The team has the following roles: 'chef de prod', 'TL' (Team Lead), and 'mailer'.
It's critical to have at least one {leaders} on duty during all work shifts for leadership coverage.

Here is the schedule data for the week from {first_day} to {last_day}.
The data is structured as a JSON object where keys are employee names and values are their schedules for the 7 days of the week. 'null' means the employee is unscheduled.

Schedule Data:
{schedule_json}

Please perform the following analysis and structure your response in Markdown:

1.  **Overall Summary:** Briefly describe the week's schedule.
2.  **Leadership Coverage:** For each day, verify if a {leaders} is present during all scheduled shifts. Highlight any shifts or full days that lack leadership coverage. This is the most critical point.
3.  **Staffing Levels:** Identify any days that seem overstaffed or understaffed. Mention specific shifts if possible (e.g., "Wednesday evening shift seems light").
4.  **Workload Balance:** Point out if any employee seems overworked (e.g., has many consecutive shifts, or works all weekend). Also note employees with very few shifts.
5.  **Positive Observations:** Mention anything that is well-scheduled (e.g., "Good coverage on Monday," "Weekend shifts are fairly distributed").

Provide a concise, clear, and professional analysis. Write it in {language_name}."""


def _cell_payload(entry: Optional[ScheduleEntry]) -> Optional[dict]:
    if entry is None:
        return None
    return {
        "type": entry.entry_type.value,
        "role": entry.role,
        "shiftStart": entry.shift_start,
        "shiftEnd": entry.shift_end,
    }


class ScheduleAnalyst:

    def __init__(self, client: TextCompletionClient):
        self.client = client

    def build_prompt(
        self,
        rows: Mapping[str, Sequence[Optional[ScheduleEntry]]],
        days: Sequence[date],
        language: str = "en",
    ) -> str:
        schedule = {name: [_cell_payload(e) for e in cells] for name, cells in rows.items()}
        return ANALYSIS_PROMPT.format(
            first_day=short_date(days[0]),
            last_day=short_date(days[-1]),
            schedule_json=json.dumps(schedule, indent=2, ensure_ascii=False),
            leaders=" or ".join(f"'{r}'" for r in LEADERSHIP_ROLES),
            language_name=LANGUAGE_NAMES.get(language, "English"),
        )

    def analyze(
        self,
        rows: Mapping[str, Sequence[Optional[ScheduleEntry]]],
        days: Sequence[date],
        language: str = "en",
    ) -> str:
        """Markdown report for the week; on failure a user-facing message instead."""
        if not self.client.available:
            return ANALYSIS_UNAVAILABLE
        try:
            text = self.client.complete(self.build_prompt(rows, days, language), system=ANALYSIS_SYSTEM)
        except CompletionError as e:
            capture_exception(e, {"operation": "analyze_schedule"})
            return ANALYSIS_FAILED
        if not text.strip():
            return ANALYSIS_EMPTY
        return text


# ==================== Change notifications ====================

NOTIFY_SYSTEM = "You are an automated notification assistant for a corporate scheduling system."

NOTIFY_PROMPT = """Generate a professional email notification for a schedule change.
IMPORTANT: The subject and body must be in {language_name}.

Change Details:
- Employee: {employee}
- Action: {action}
- Date: {date}
{details}
Output should be in JSON format:
{{
    "subject": "A concise, clear email subject line in {language_name}",
    "body": "A professional email body summary in {language_name} (max 3 sentences)"
}}"""


class ChangeNotifier:
    """
    Drafts and logs one notification per schedule change.

    Notification is best effort: the change it describes has already been
    written, so any failure here is logged and swallowed.
    """

    def __init__(self, client: TextCompletionClient, store, language: str = "en"):
        self.client = client
        self.store = store
        self.language = language

    def build_prompt(
        self,
        action: ActionType,
        shift: Mapping[str, Any],
        previous: Optional[Mapping[str, Any]] = None,
        language: str = "en",
    ) -> str:
        entry_type = _type_value(shift.get("entry_type"))
        details: List[str] = []
        if entry_type == EntryType.WORK_SHIFT.value:
            details.append(f"- New Time: {shift.get('shift_start')} to {shift.get('shift_end')}")
        if previous:
            prev = f"- Previous State: {_type_value(previous.get('entry_type'))}"
            if previous.get("shift_start"):
                prev += f" ({previous.get('shift_start')}-{previous.get('shift_end')})"
            details.append(prev)
        return NOTIFY_PROMPT.format(
            language_name=LANGUAGE_NAMES.get(language, "English"),
            employee=shift.get("employee_name"),
            action=action_description(action, entry_type, language),
            date=long_date(shift.get("shift_date"), language),
            details="\n".join(details) + ("\n" if details else ""),
        )

    def log_message(self, action: ActionType, shift: Mapping[str, Any], language: str = "en") -> str:
        entry_type = _type_value(shift.get("entry_type"))
        return (
            f"{shift.get('employee_name')} - {action_description(action, entry_type, language)}"
            f" for {long_date(shift.get('shift_date'), language)}"
        )

    def notify(
        self,
        action: ActionType,
        shift: Mapping[str, Any],
        previous: Optional[Mapping[str, Any]] = None,
        language: Optional[str] = None,
    ) -> Optional[EmailDraft]:
        """Draft an email for the change and log it. Returns the draft, or None on failure."""
        language = language or self.language
        try:
            data = self.client.complete_json(
                self.build_prompt(action, shift, previous, language),
                system=NOTIFY_SYSTEM,
                default=EmailDraft().model_dump(),
            )
            draft = EmailDraft(**{k: str(v) for k, v in data.items() if k in ("subject", "body")})
            logger.info(f"Notification drafted | to=team | subject={draft.subject!r}")
            self.store.insert_notification(
                NotificationLogEntry(
                    action=action,
                    message=self.log_message(action, shift, language),
                    email_draft=draft,
                )
            )
            return draft
        except RotaError as e:
            capture_exception(e, {"operation": "notify_schedule_change", "action": action})
            return None
