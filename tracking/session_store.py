"""Repository of focus sessions."""

import logging
from pathlib import Path
from typing import List, Optional

from core.models import FocusSession
from tracking.store import RecordStore

logger = logging.getLogger(__name__)


class SessionStore(RecordStore[FocusSession]):
    """
    Durable FocusSession records.

    Sessions are deactivated, never deleted. The one-active-session-per-user
    invariant is enforced by SessionScheduler under its per-user lock; the
    store only answers which session is active.
    """

    def __init__(self, data_file: Optional[Path] = None) -> None:
        super().__init__(FocusSession, data_file)

    def get_active(self, user_id: int) -> Optional[FocusSession]:
        """The user's active session, or None."""
        active = self.find(lambda s: s.user_id == user_id and s.is_active)
        if len(active) > 1:
            # Should never happen; report it and use the newest
            logger.error(f"User {user_id} has {len(active)} active sessions")
        return active[-1] if active else None

    def list_active(self) -> List[FocusSession]:
        """Active sessions across all users."""
        return self.find(lambda s: s.is_active)

    def get_user_sessions(self, user_id: int) -> List[FocusSession]:
        """All of a user's sessions, newest first."""
        sessions = self.find(lambda s: s.user_id == user_id)
        sessions.reverse()
        return sessions
