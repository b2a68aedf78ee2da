"""
Exception hierarchy for the rota planner.

Validation problems are raised before any write. Collaborator failures
(persistence, text completion) are caught by the service layer and turned into
non-fatal results; only StoreInitError is allowed to stop the application.
"""


class RotaError(Exception):
    """Base class for all rota planner errors."""


class EntryValidationError(RotaError, ValueError):
    """A draft or update is missing a required field or names an unknown shift."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class StoreError(RotaError):
    """A read or write against the persistence backend failed."""


class StoreInitError(StoreError):
    """The persistence backend could not be initialised."""


class CompletionError(RotaError):
    """The text-completion backend failed or returned unusable output."""
