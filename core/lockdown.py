"""
LockdownEngine — computes whether a user is locked down right now.

Everything here is read-only. The state is recomputed from
now - start_time on every call, never from a ticking counter, so a
suspended display timer can never make the lock end early or late.
Persisting expiry is SessionScheduler.reconcile_expired()'s job.
"""

import logging
from datetime import datetime
from typing import List, Optional

import config
from core.models import BlockedApp, FocusSession, LockdownState, StudySchedule
from screen.blocklist import apps_blocked_at
from tracking.schedule_store import ScheduleStore
from tracking.session_store import SessionStore
from tracking.user_store import UserStore

logger = logging.getLogger(__name__)


def evaluate_lockdown(
    session: Optional[FocusSession],
    schedule: Optional[StudySchedule],
    now: datetime,
    overrides_used: int,
    max_overrides: int = config.MAX_EMERGENCY_OVERRIDES,
    lockdown_enabled: bool = True,
) -> LockdownState:
    """
    Pure lockdown computation.

    Session budget is planned_duration + overrides_used * OVERRIDE_GRANT_MINUTES.
    A strict schedule block covering now forces the lock on as well; the two
    locks combine with OR.

    Args:
        session: The user's session (ignored unless active).
        schedule: The user's active study schedule, if any.
        now: Instant to evaluate.
        overrides_used: Emergency overrides already granted in this session.
        max_overrides: Override limit for the user.
        lockdown_enabled: The user's system_lockdown_enabled flag.

    Returns:
        LockdownState for this instant.
    """
    has_session = session is not None and session.is_active

    session_locked = False
    session_expired = False
    minutes_remaining = 0
    if has_session:
        budget = session.planned_duration + overrides_used * config.OVERRIDE_GRANT_MINUTES
        elapsed = session.elapsed_minutes(now)
        minutes_remaining = max(0, budget - elapsed)
        session_locked = minutes_remaining > 0
        session_expired = minutes_remaining == 0

    can_override = has_session and overrides_used < max_overrides

    # Never locked, but expiry is still reported so the sweep can end the session
    if not lockdown_enabled:
        return LockdownState(
            is_locked=False,
            minutes_remaining=0,
            can_override=can_override,
            session_expired=session_expired,
        )

    schedule_block = None
    schedule_locked = False
    if schedule is not None and schedule.is_active and schedule.strict_enforcement:
        matches = schedule.matching_blocks(now)
        if matches:
            schedule_locked = True
            # Latest-ending block decides how long the forced lock lasts
            longest = max(matches, key=lambda block: block.minutes_until_end(now))
            schedule_block = longest.name
            if not has_session:
                minutes_remaining = longest.minutes_until_end(now)

    return LockdownState(
        is_locked=session_locked or schedule_locked,
        minutes_remaining=minutes_remaining,
        can_override=can_override,
        session_expired=session_expired,
        schedule_block=schedule_block,
    )


class LockdownEngine:
    """
    Reads the stores and evaluates lockdown for one user.

    Stateless apart from its store references, so it can be called from a
    display timer or any number of threads at once.
    """

    def __init__(
        self,
        session_store: SessionStore,
        schedule_store: ScheduleStore,
        user_store: Optional[UserStore] = None,
        max_overrides: int = config.MAX_EMERGENCY_OVERRIDES,
    ) -> None:
        self.session_store = session_store
        self.schedule_store = schedule_store
        self.user_store = user_store or UserStore()
        self.max_overrides = max_overrides

    def max_overrides_for(self, user_id: int) -> int:
        """Per-user override limit, falling back to the global one."""
        user = self.user_store.get_or_default(user_id)
        if user.max_overrides is None:
            return self.max_overrides
        return user.max_overrides

    def lockdown_enabled_for(self, user_id: int) -> bool:
        return self.user_store.get_or_default(user_id).system_lockdown_enabled

    def evaluate_session(
        self,
        session: Optional[FocusSession],
        user_id: int,
        now: datetime,
    ) -> LockdownState:
        """Evaluate a session the caller already holds (used under the user lock)."""
        return evaluate_lockdown(
            session=session,
            schedule=self.schedule_store.get_active(user_id),
            now=now,
            overrides_used=session.emergency_overrides if session is not None else 0,
            max_overrides=self.max_overrides_for(user_id),
            lockdown_enabled=self.lockdown_enabled_for(user_id),
        )

    def compute_lockdown_state(self, user_id: int, now: Optional[datetime] = None) -> LockdownState:
        """
        Current lockdown state for a user.

        Args:
            user_id: User to evaluate.
            now: Instant to evaluate. If None, uses current time.
        """
        now = now or datetime.now()
        session = self.session_store.get_active(user_id)
        state = self.evaluate_session(session, user_id, now)
        logger.debug(f"Lockdown state for user {user_id}: {state}")
        return state

    def blocked_apps_at(self, user_id: int, now: Optional[datetime] = None) -> List[BlockedApp]:
        """The user's apps blocked right now (session list plus app windows)."""
        now = now or datetime.now()
        if not self.lockdown_enabled_for(user_id):
            return []
        return apps_blocked_at(
            self.schedule_store.get_user_blocked_apps(user_id),
            now,
            self.session_store.get_active(user_id),
        )
