"""
SessionScheduler — the only writer of focus-session state.

Starts, extends and ends sessions, grants emergency overrides, and
persists expiry in reconcile_expired(). Every mutation of a user's
sessions runs under that user's lock and inside a SessionStore
transaction, which also shuts out other processes sharing the file, and
re-reads the active session inside it. A sweep can never interleave with
an extend or override, in this process or another one.
"""

import logging
import threading
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional

import config
from core.errors import ConflictError, LimitExceededError, NotFoundError, ValidationError
from core.lockdown import LockdownEngine
from core.models import FocusSession, LockdownState
from tracking.analytics import format_minutes
from tracking.schedule_store import ScheduleStore
from tracking.session_store import SessionStore

logger = logging.getLogger(__name__)


def _validate_minutes(value, name: str) -> int:
    """Positive whole minutes; bool is rejected even though it is an int."""
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"{name} must be a positive whole number of minutes, got {value!r}")
    return value


class SessionScheduler:
    """
    Session lifecycle operations.

    Args:
        session_store: Where sessions live.
        schedule_store: Blocked apps and study schedules.
        engine: Lockdown evaluator. Built from the stores if None.
        clock: Returns the current time; datetime.now by default.
    """

    def __init__(
        self,
        session_store: SessionStore,
        schedule_store: ScheduleStore,
        engine: Optional[LockdownEngine] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.session_store = session_store
        self.schedule_store = schedule_store
        self.engine = engine or LockdownEngine(session_store, schedule_store)
        self.clock = clock or datetime.now

        self._user_locks: Dict[int, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _user_lock(self, user_id: int) -> threading.Lock:
        """Lock serialising all session writes for one user."""
        with self._locks_guard:
            lock = self._user_locks.get(user_id)
            if lock is None:
                lock = threading.Lock()
                self._user_locks[user_id] = lock
            return lock

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def start_session(
        self,
        user_id: int,
        planned_duration: int,
        focus_mode: str = config.FOCUS_MODE_STUDY,
        blocked_app_ids: Optional[Iterable[int]] = None,
        now: Optional[datetime] = None,
    ) -> FocusSession:
        """
        Start a focus session.

        Raises:
            ValidationError: Bad duration, unknown focus mode, or an app id
                that is not one of the user's blocked apps.
            ConflictError: The user already has an active session.
        """
        _validate_minutes(planned_duration, "planned_duration")
        if focus_mode not in config.FOCUS_MODES:
            raise ValidationError(
                f"Unknown focus mode {focus_mode!r}, expected one of {', '.join(config.FOCUS_MODES)}"
            )
        app_ids = list(blocked_app_ids or [])
        known = {app.id for app in self.schedule_store.get_user_blocked_apps(user_id)}
        unknown = [app_id for app_id in app_ids if app_id not in known]
        if unknown:
            raise ValidationError(f"Unknown blocked app ids for user {user_id}: {unknown}")

        with self._user_lock(user_id), self.session_store.transaction():
            existing = self.session_store.get_active(user_id)
            if existing is not None:
                raise ConflictError(
                    f"User {user_id} already has an active session (id {existing.id})"
                )
            session = self.session_store.create(FocusSession(
                user_id=user_id,
                start_time=now or self.clock(),
                planned_duration=planned_duration,
                focus_mode=focus_mode,
                blocked_apps=app_ids,
            ))

        logger.info(
            f"Session {session.id} started for user {user_id}: "
            f"{format_minutes(planned_duration)} {focus_mode}, {len(session.blocked_apps)} apps blocked"
        )
        return session

    def request_override(self, user_id: int) -> FocusSession:
        """
        Grant one emergency override (OVERRIDE_GRANT_MINUTES of access).

        The grant is just the incremented counter; the engine's budget
        formula turns it into extra minutes, so there is no second clock.

        Raises:
            NotFoundError: No active session.
            LimitExceededError: Override budget used up.
        """
        max_overrides = self.engine.max_overrides_for(user_id)
        with self._user_lock(user_id), self.session_store.transaction():
            session = self._require_active(user_id)
            if session.emergency_overrides >= max_overrides:
                raise LimitExceededError(
                    f"All {max_overrides} emergency overrides used for session {session.id}"
                )
            updated = self.session_store.update(
                session.id, emergency_overrides=session.emergency_overrides + 1
            )

        logger.info(
            f"Emergency override {updated.emergency_overrides}/{max_overrides} granted "
            f"for session {updated.id} (+{config.OVERRIDE_GRANT_MINUTES}m)"
        )
        return updated

    def extend_session(self, user_id: int, extra_minutes: int) -> FocusSession:
        """
        Add minutes to the active session's plan.

        Raises:
            ValidationError: extra_minutes is not a positive integer.
            NotFoundError: No active session.
        """
        _validate_minutes(extra_minutes, "extra_minutes")
        with self._user_lock(user_id), self.session_store.transaction():
            session = self._require_active(user_id)
            updated = self.session_store.update(
                session.id, planned_duration=session.planned_duration + extra_minutes
            )

        logger.info(
            f"Session {updated.id} extended by {format_minutes(extra_minutes)} "
            f"(plan now {format_minutes(updated.planned_duration)})"
        )
        return updated

    def end_session(self, user_id: int, now: Optional[datetime] = None) -> Optional[FocusSession]:
        """
        End the active session.

        Calling end_session() with no active session is safe and returns None.

        Returns:
            The ended session, or None if nothing was running.
        """
        now = now or self.clock()
        with self._user_lock(user_id), self.session_store.transaction():
            session = self.session_store.get_active(user_id)
            if session is None:
                logger.debug(f"end_session: no active session for user {user_id}")
                return None
            return self._end_locked(session, now)

    def reconcile_expired(self, now: Optional[datetime] = None) -> List[FocusSession]:
        """
        End every active session whose budget is used up.

        This is the only place expiry is written. A failure for one user is
        logged and the sweep moves on to the next.

        Returns:
            Sessions ended by this sweep.
        """
        now = now or self.clock()
        ended = []
        for candidate in self.session_store.list_active():
            user_id = candidate.user_id
            try:
                with self._user_lock(user_id), self.session_store.transaction():
                    # Re-read under the lock: an extend may have just landed
                    session = self.session_store.get_active(user_id)
                    if session is None:
                        continue
                    state = self.engine.evaluate_session(session, user_id, now)
                    if state.session_expired:
                        ended.append(self._end_locked(session, now))
            except Exception as e:
                logger.error(f"Expiry sweep failed for user {user_id}: {e}")
                continue

        if ended:
            logger.info(f"Expiry sweep ended {len(ended)} session(s)")
        return ended

    def get_lockdown_state(self, user_id: int, now: Optional[datetime] = None) -> LockdownState:
        return self.engine.compute_lockdown_state(user_id, now or self.clock())

    def get_active_session(self, user_id: int) -> Optional[FocusSession]:
        return self.session_store.get_active(user_id)

    def get_session_history(self, user_id: int) -> List[FocusSession]:
        """All of a user's sessions, newest first."""
        return self.session_store.get_user_sessions(user_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_active(self, user_id: int) -> FocusSession:
        """Note: assumes the caller holds the user's lock."""
        session = self.session_store.get_active(user_id)
        if session is None:
            raise NotFoundError(f"No active session for user {user_id}")
        return session

    def _end_locked(self, session: FocusSession, now: datetime) -> FocusSession:
        """
        Deactivate a session, recording end time and clamped duration.

        Note: assumes the caller holds the user's lock.
        """
        actual = min(max(session.elapsed_minutes(now), 0), session.budget_minutes())
        ended = self.session_store.update(
            session.id, is_active=False, end_time=now, actual_duration=actual
        )
        logger.info(
            f"Session {ended.id} ended for user {ended.user_id} after {format_minutes(actual)} "
            f"({ended.emergency_overrides} overrides)"
        )
        return ended
