"""
Sentry error reporting for store and AI failures.

Reporting is off unless SENTRY_ENABLED=true and a DSN is configured; every
captured exception is logged either way. Events are scrubbed of the OpenAI
key, Firestore credentials and the DSN before they leave the process.
"""

import logging
import os
import re
from typing import Any, Optional

import sentry_sdk
from sentry_sdk.integrations.logging import LoggingIntegration

from .logging_config import CONTEXT_FIELDS

logger = logging.getLogger(__name__)

FILTERED = '[FILTERED]'

# Setting names (or fragments of them) whose values never go to Sentry
SENSITIVE_NAMES = ('api_key', 'apikey', 'secret', 'token', 'password', 'credentials', 'dsn', 'authorization')

# Secret-looking values that can end up inside messages or context
SECRET_VALUE = re.compile(r'sk-[A-Za-z0-9_\-]{8,}')

_initialized = False


def _sensitive(name: str) -> bool:
    lowered = str(name).lower()
    return any(fragment in lowered for fragment in SENSITIVE_NAMES)


def _scrub(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: FILTERED if _sensitive(k) else _scrub(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_scrub(v) for v in value]
    if isinstance(value, str):
        return SECRET_VALUE.sub(FILTERED, value)
    return value


def filter_sensitive_data(event: dict, hint: Optional[dict] = None) -> dict:
    """before_send hook: redact secrets in extras, contexts, breadcrumbs and headers."""
    for section in ('extra', 'contexts', 'request'):
        if isinstance(event.get(section), dict):
            event[section] = _scrub(event[section])

    breadcrumbs = event.get('breadcrumbs')
    values = breadcrumbs.get('values') if isinstance(breadcrumbs, dict) else None
    if isinstance(values, list):
        breadcrumbs['values'] = _scrub(values)

    if isinstance(event.get('message'), str):
        event['message'] = SECRET_VALUE.sub(FILTERED, event['message'])
    return event


def init_sentry(dsn: Optional[str] = None, environment: Optional[str] = None) -> bool:
    """Initialise the SDK from arguments or the SENTRY_* / APP_ENV environment."""
    global _initialized

    enabled = os.getenv('SENTRY_ENABLED', 'false').lower() == 'true'
    dsn = dsn or os.getenv('SENTRY_DSN')
    if not enabled or not dsn:
        logger.info("Sentry reporting disabled")
        return False

    environment = environment or os.getenv('APP_ENV', 'development')
    try:
        sentry_sdk.init(
            dsn=dsn,
            environment=environment,
            release=os.getenv('VERSION', 'dev'),
            traces_sample_rate=float(os.getenv('SENTRY_TRACES_SAMPLE_RATE', '0.0')),
            integrations=[LoggingIntegration(level=logging.INFO, event_level=None)],
            before_send=filter_sensitive_data,
            send_default_pii=False,
        )
    except Exception as e:
        logger.error(f"Failed to initialise Sentry: {e}")
        return False

    _initialized = True
    logger.info(f"Sentry reporting enabled ({environment})")
    return True


def capture_exception(exception: Exception, context: Optional[dict] = None):
    """Log the failure; also send it to Sentry when reporting is on."""
    context = context or {}
    logger.error(f"{type(exception).__name__}: {exception}", exc_info=exception,
                 extra={k: v for k, v in context.items() if k in CONTEXT_FIELDS})

    if not _initialized:
        return

    with sentry_sdk.new_scope() as scope:
        scope.set_context('schedule', {k: str(v) for k, v in context.items()})
        if 'operation' in context:
            scope.set_tag('operation', context['operation'])
        sentry_sdk.capture_exception(exception)


def set_user_context(user_id: Optional[str] = None):
    if _initialized and user_id:
        sentry_sdk.set_user({"id": user_id})


def add_breadcrumb(message: str, category: str = 'schedule', data: Optional[dict] = None):
    if _initialized:
        sentry_sdk.add_breadcrumb(message=message, category=category, level='info', data=data or {})
