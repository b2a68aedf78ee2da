# -*- coding: utf-8 -*-
import os

# ---------- App Config ----------
APP_ENV = os.getenv("APP_ENV", "development").lower()
APP_ID = os.getenv("APP_ID", "default-planning-app")
DB_FILE = os.getenv("DB_FILE", "rota_planner.sqlite3")
TZ = os.getenv("ROTA_TZ", "UTC")

# ---------- Domain Constants ----------
PREDEFINED_EMPLOYEES = sorted([
    "yassine adraoui",
    "bilal el biyaali",
    "ayoub belabid",
    "khalid ghanem",
    "anas izmaz",
    "mostapha kbiri",
    "adnan el assam",
    "mouad lahrech",
    "aziz boulehjour",
    "ayoub benchaayeb",
])

EMPLOYEE_ROLE_MAP = {
    "adnan el assam": "chef de prod",
    "mouad lahrech": "chef de prod",
    "aziz boulehjour": "TL",
    "ayoub benchaayeb": "TL",
    "yassine adraoui": "mailer",
    "bilal el biyaali": "mailer",
    "ayoub belabid": "mailer",
    "khalid ghanem": "mailer",
    "anas izmaz": "mailer",
    "mostapha kbiri": "mailer",
}

UNASSIGNED_ROLE = "Unassigned"

LEADERSHIP_ROLES = ["chef de prod", "TL"]

# key -> (label, start, end); "00:00" as an end time means midnight of the next day
SHIFT_TIMES = {
    "09:00-17:00": ("09:00 - 17:00", "09:00", "17:00"),
    "11:00-19:00": ("11:00 - 19:00", "11:00", "19:00"),
    "14:00-22:00": ("14:00 - 22:00", "14:00", "22:00"),
    "16:00-00:00": ("16:00 - 00:00 (Cross-midnight)", "16:00", "00:00"),
}

DEFAULT_SHIFT_KEY = "09:00-17:00"

MIDNIGHT = "00:00"

# Fixed role/cell labels for leave types, keyed by the stored entry type value
LEAVE_LABELS = {
    "OnCall": "On Call",
    "DayOff": "Day Off",
    "PaidLeave": "Paid Leave",
    "Recup": "Recup",
}

WEEKDAY_SHORT = {
    "en": ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"],
    "fr": ["lun.", "mar.", "mer.", "jeu.", "ven.", "sam.", "dim."],
}

MONTH_SHORT = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
               "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

LANGUAGE_NAMES = {"en": "English", "fr": "French"}

SUPPORTED_LANGUAGES = tuple(LANGUAGE_NAMES)

NOTIFICATION_LIMIT = 15

# Collection names inside the shared namespace
SCHEDULES_COLLECTION = "schedules"
NOTIFICATIONS_COLLECTION = "notifications"
TEMPLATES_COLLECTION = "templates"


# ---------- Utility Functions ----------
def get_role_by_employee(employee_name: str) -> str:
    """Default role for an employee, 'Unassigned' when unknown."""
    return EMPLOYEE_ROLE_MAP.get(employee_name, UNASSIGNED_ROLE)


def resolve_shift_time(key: str | None) -> tuple[str, str] | None:
    """Return (start, end) for a catalog key, or None if the key is unknown."""
    if not key:
        return None
    times = SHIFT_TIMES.get(key)
    if not times:
        return None
    _, start, end = times
    return start, end


def find_shift_key(start: str | None, end: str | None) -> str | None:
    """Reverse lookup of a catalog key from a (start, end) pair."""
    for key, (_, s, e) in SHIFT_TIMES.items():
        if s == start and e == end:
            return key
    return None


def leave_label(entry_type: str) -> str:
    return LEAVE_LABELS.get(entry_type, entry_type)

WEEKDAY_LONG = {
    "en": ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"],
    "fr": ["lundi", "mardi", "mercredi", "jeudi", "vendredi", "samedi", "dimanche"],
}

MONTH_LONG = {
    "en": ["January", "February", "March", "April", "May", "June", "July",
           "August", "September", "October", "November", "December"],
    "fr": ["janvier", "février", "mars", "avril", "mai", "juin", "juillet",
           "août", "septembre", "octobre", "novembre", "décembre"],
}
