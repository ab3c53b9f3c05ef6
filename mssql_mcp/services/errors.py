"""Error taxonomy shared by every service.

Services raise these; the tool boundary turns them into failed envelopes.
"""

from __future__ import annotations


class RoutineError(Exception):
    """Base exception for all service-level failures."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class MalformedParameters(RoutineError):
    """Parameter text could not be decoded; nothing was executed."""


class ExecutionFailure(RoutineError):
    """The database rejected or failed the statement."""


class NotFound(RoutineError):
    """A describe/lookup target does not exist."""
