# -*- coding: utf-8 -*-
"""
Two-step confirmation for destructive or bulk writes.

The gate holds at most one pending action. confirm() runs it once; cancel()
drops it without writing. A new request replaces whatever was pending.
"""

from dataclasses import dataclass
from typing import Any, Callable, Optional

from .logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class PendingConfirmation:
    title: str
    message: str
    action: Callable[[], Any]


class ConfirmationGate:

    def __init__(self):
        self._pending: Optional[PendingConfirmation] = None

    @property
    def pending(self) -> Optional[PendingConfirmation]:
        return self._pending

    def request(self, title: str, message: str, action: Callable[[], Any]) -> PendingConfirmation:
        if self._pending is not None:
            logger.info(f"Replacing pending confirmation '{self._pending.title}' with '{title}'")
        self._pending = PendingConfirmation(title, message, action)
        return self._pending

    def confirm(self) -> Any:
        """Run the pending action and clear the gate. Returns the action's result, or None if nothing was pending."""
        pending, self._pending = self._pending, None
        if pending is None:
            return None
        return pending.action()

    def cancel(self) -> None:
        if self._pending is not None:
            logger.debug(f"Cancelled '{self._pending.title}'")
        self._pending = None
