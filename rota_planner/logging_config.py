"""
Logging setup for the rota planner.

Text lines for local runs, one JSON object per line when LOG_FORMAT=json.
Schedule context passed through ``extra=`` (entry id, employee, operation...)
lands under a "context" key in the JSON payload.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Optional

LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()
LOG_FORMAT = os.getenv('LOG_FORMAT', 'text')
APP_ENV = os.getenv('APP_ENV', 'development')

CONTEXT_FIELDS = (
    'operation', 'entry_id', 'employee', 'shift_date', 'action',
    'count', 'target', 'template_id', 'model', 'duration_ms', 'user_id',
)

TEXT_FORMAT = '%(asctime)s %(levelname)-8s %(name)s: %(message)s'

QUIET_LOGGERS = ('urllib3', 'httpx', 'openai', 'google', 'grpc', 'watchdog')


class JSONFormatter(logging.Formatter):
    """One JSON object per record, schedule context grouped under "context"."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            'ts': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(timespec='milliseconds'),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'env': APP_ENV,
        }
        context = {k: getattr(record, k) for k in CONTEXT_FIELDS if hasattr(record, k)}
        if context:
            payload['context'] = context
        if record.exc_info and record.exc_info[0] is not None:
            payload['error'] = {
                'type': record.exc_info[0].__name__,
                'detail': str(record.exc_info[1]),
                'traceback': self.formatException(record.exc_info),
            }
        return json.dumps(payload, default=str, ensure_ascii=False)


def setup_logging(level: Optional[str] = None, format_type: Optional[str] = None) -> logging.Handler:
    """
    Install a single stdout handler on the root logger.

    Safe to call again (Streamlit reruns the script): the handler installed by
    a previous call is replaced, handlers added by others are left alone.
    """
    level = (level or LOG_LEVEL).upper()
    format_type = format_type or LOG_FORMAT

    root = logging.getLogger()
    root.setLevel(getattr(logging, level, logging.INFO))
    for handler in list(root.handlers):
        if getattr(handler, '_rota_planner', False):
            root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler._rota_planner = True
    handler.setFormatter(JSONFormatter() if format_type == 'json' else logging.Formatter(TEXT_FORMAT))
    root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    root.debug(f"Logging ready: level={level} format={format_type} env={APP_ENV}")
    return handler


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def log_error(logger: logging.Logger, message: str, exception: Optional[Exception] = None, **context):
    """Error line with the exception attached and schedule context as extras."""
    logger.error(message, exc_info=exception, extra=context)


def log_performance(logger: logging.Logger, operation: str, duration_ms: float, **context):
    logger.info(
        f"{operation} took {duration_ms:.1f}ms",
        extra={'operation': operation, 'duration_ms': round(duration_ms, 1), **context},
    )
