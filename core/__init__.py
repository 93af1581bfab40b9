"""
Core focus-session logic for FocusGuard.

core.lockdown holds the read-only LockdownEngine, core.scheduler the
SessionScheduler that owns all session writes, core.sweeper the background
expiry sweep. Zero UI dependencies.

Only the error types are re-exported here: the record stores import
core.models, so pulling the engine in at package import would be circular.
"""

from core.errors import (
    ConflictError,
    FocusGuardError,
    LimitExceededError,
    NotFoundError,
    ValidationError,
)

__all__ = [
    "ConflictError",
    "FocusGuardError",
    "LimitExceededError",
    "NotFoundError",
    "ValidationError",
]
