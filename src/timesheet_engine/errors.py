"""Exception hierarchy shared by services and the HTTP layer."""

from __future__ import annotations

NOT_ACTIONABLE_MESSAGE = "Timesheet not found or not actionable"


class TimesheetError(Exception):
    """Base class for all timesheet engine errors."""

    code = "TIMESHEET_ERROR"


class ValidationError(TimesheetError):
    """Raised for malformed input, before any state change."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, errors: list[str] | None = None):
        self.errors = errors or [message]
        super().__init__(message)


class NotActionableError(TimesheetError):
    """Raised when a resource is missing or the actor may not act on it.

    The two cases are deliberately indistinguishable to the caller.
    """

    code = "NOT_ACTIONABLE"

    def __init__(self, message: str = NOT_ACTIONABLE_MESSAGE):
        super().__init__(message)


class ConflictError(TimesheetError):
    """Raised when a write would break a uniqueness or structural invariant."""

    code = "CONFLICT"


class ForbiddenError(TimesheetError):
    """Raised when the actor's role does not grant access to a surface."""

    code = "FORBIDDEN"

    def __init__(self, message: str = "Forbidden"):
        super().__init__(message)


class PersistenceError(TimesheetError):
    """Raised when the backing store is unavailable. Safe for the caller to retry."""

    code = "PERSISTENCE_ERROR"
    retryable = True


class AuthenticationError(TimesheetError):
    """Raised for missing, invalid, or expired credentials."""

    code = "UNAUTHORIZED"
