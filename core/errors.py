"""
Error taxonomy for FocusGuard.

Every failure the scheduler can report is one of these. They are local,
recoverable conditions: callers surface them as-is, nothing retries.
"""


class FocusGuardError(Exception):
    """Base class for all domain errors."""

    error_type = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        """Shape used by the CLI and any HTTP layer."""
        return {"success": False, "error": self.message, "error_type": self.error_type}


class ValidationError(FocusGuardError):
    """Malformed input: bad duration, unknown app id, bad time window."""

    error_type = "validation"


class ConflictError(FocusGuardError):
    """The operation would break the one-active-session invariant."""

    error_type = "conflict"


class NotFoundError(FocusGuardError):
    """No active session (or record) to operate on."""

    error_type = "not_found"


class LimitExceededError(FocusGuardError):
    """Emergency override budget is exhausted."""

    error_type = "limit_exceeded"
