# -*- coding: utf-8 -*-
"""
Runtime configuration and per-user view preferences.

Configuration comes from environment variables (a local .env file is loaded
first). View preferences are a small JSON document read and written through
explicit load/save hooks.
"""

import os
import json
import uuid
from dataclasses import dataclass, field, asdict
from datetime import date, timedelta
from typing import Literal, Optional

from dotenv import load_dotenv

from .constants import APP_ID, DB_FILE, SUPPORTED_LANGUAGES, TZ
from .logging_config import get_logger

logger = get_logger(__name__)

ViewMode = Literal["current", "previous", "sticky"]
VIEW_MODES = ("current", "previous", "sticky")
StoreBackend = Literal["sqlite", "firestore"]

DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_PREFERENCES_FILE = ".rota_preferences.json"


def get_openai_api_key() -> Optional[str]:
    """OpenAI key from the environment, with surrounding quotes removed."""
    api_key = os.getenv("OPENAI_API_KEY") or os.getenv("OpenAI_API_KEY")
    if api_key:
        api_key = api_key.strip("'\"")
    return api_key or None


@dataclass
class AppConfig:
    app_env: str = "development"
    app_id: str = APP_ID
    store_backend: StoreBackend = "sqlite"
    db_file: str = DB_FILE
    timezone: str = TZ
    openai_api_key: Optional[str] = None
    openai_model: str = DEFAULT_MODEL
    language: str = "en"
    preferences_file: str = DEFAULT_PREFERENCES_FILE
    user_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "AppConfig":
        if dotenv:
            load_dotenv()

        backend = os.getenv("STORE_BACKEND", "sqlite").lower()
        if backend not in ("sqlite", "firestore"):
            logger.warning(f"Unknown STORE_BACKEND '{backend}', using sqlite")
            backend = "sqlite"

        language = os.getenv("ROTA_LANGUAGE", "en").lower()
        if language not in SUPPORTED_LANGUAGES:
            logger.warning(f"Unsupported ROTA_LANGUAGE '{language}', using en")
            language = "en"

        return cls(
            app_env=os.getenv("APP_ENV", "development").lower(),
            app_id=os.getenv("APP_ID", APP_ID),
            store_backend=backend,
            db_file=os.getenv("DB_FILE", DB_FILE),
            timezone=os.getenv("ROTA_TZ", TZ),
            openai_api_key=get_openai_api_key(),
            openai_model=os.getenv("OPENAI_MODEL", DEFAULT_MODEL),
            language=language,
            preferences_file=os.getenv("PREFERENCES_FILE", DEFAULT_PREFERENCES_FILE),
            user_id=os.getenv("ROTA_USER_ID") or uuid.uuid4().hex,
        )

    @property
    def ai_enabled(self) -> bool:
        return bool(self.openai_api_key)


@dataclass
class ViewPreferences:
    """Which week the board opens on, plus the display language."""
    view_mode: ViewMode = "sticky"
    last_viewed: Optional[date] = None
    language: str = "en"

    def initial_reference_date(self, today: Optional[date] = None) -> date:
        today = today or date.today()
        if self.view_mode == "previous":
            return today - timedelta(days=7)
        if self.view_mode == "sticky" and self.last_viewed:
            return self.last_viewed
        return today

    def to_dict(self) -> dict:
        data = asdict(self)
        data["last_viewed"] = self.last_viewed.isoformat() if self.last_viewed else None
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "ViewPreferences":
        mode = data.get("view_mode", "sticky")
        if mode not in VIEW_MODES:
            mode = "sticky"
        language = data.get("language", "en")
        if language not in SUPPORTED_LANGUAGES:
            language = "en"
        last_viewed = None
        if data.get("last_viewed"):
            try:
                last_viewed = date.fromisoformat(data["last_viewed"])
            except (TypeError, ValueError):
                logger.warning(f"Ignoring malformed last_viewed: {data['last_viewed']!r}")
        return cls(view_mode=mode, last_viewed=last_viewed, language=language)


def load_preferences(path: str) -> ViewPreferences:
    """Read preferences; a missing or unreadable file gives the defaults."""
    if not os.path.exists(path):
        return ViewPreferences()
    try:
        with open(path, "r", encoding="utf-8") as f:
            return ViewPreferences.from_dict(json.load(f))
    except (OSError, ValueError) as e:
        logger.warning(f"Could not read preferences from {path}: {e}")
        return ViewPreferences()


def save_preferences(prefs: ViewPreferences, path: str) -> None:
    try:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(prefs.to_dict(), f, ensure_ascii=False, indent=2)
    except OSError as e:
        logger.warning(f"Could not save preferences to {path}: {e}")
