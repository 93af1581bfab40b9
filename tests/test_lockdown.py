"""
Tests for core/lockdown.py — budget arithmetic, overrides and strict
schedule blocks, all evaluated without touching any stored state.
"""

import sys
import unittest
from datetime import datetime, timedelta
from pathlib import Path

# Ensure project root is on the path
sys.path.insert(0, str(Path(__file__).parent.parent))

import config
from core.lockdown import LockdownEngine, evaluate_lockdown
from core.models import FocusSession, ScheduleBlock, StudySchedule, User
from tracking.schedule_store import ScheduleStore
from tracking.session_store import SessionStore
from tracking.user_store import UserStore

# Monday 8 January 2024, 09:00
T = datetime(2024, 1, 8, 9, 0)


def make_session(planned=60, overrides=0, start=T, active=True):
    return FocusSession(
        user_id=1,
        start_time=start,
        planned_duration=planned,
        focus_mode=config.FOCUS_MODE_STUDY,
        emergency_overrides=overrides,
        is_active=active,
    )


def make_schedule(start="09:00", end="10:00", days=("mon",), strict=True, name="Morning Study"):
    return StudySchedule(
        user_id=1,
        exam_type="upsc",
        schedule_blocks=[ScheduleBlock(start=start, end=end, days=set(days), name=name)],
        strict_enforcement=strict,
    )


class TestSessionBudget(unittest.TestCase):
    """Remaining time is recomputed from now - start_time."""

    def test_expired_after_planned_duration(self):
        """60 minute session evaluated at T+61 is unlocked with 0 left."""
        session = make_session()
        state = evaluate_lockdown(session, None, T + timedelta(minutes=61), overrides_used=0)
        self.assertEqual(state.minutes_remaining, 0)
        self.assertFalse(state.is_locked)
        self.assertTrue(state.session_expired)

    def test_override_extends_lock(self):
        """One override adds 5 minutes: 60 + 5 - 63 = 2."""
        session = make_session(overrides=1)
        state = evaluate_lockdown(session, None, T + timedelta(minutes=63), overrides_used=1)
        self.assertEqual(state.minutes_remaining, 2)
        self.assertTrue(state.is_locked)
        self.assertFalse(state.session_expired)

    def test_partial_minutes_are_floored(self):
        """59m59s elapsed still counts as 59 minutes."""
        session = make_session()
        state = evaluate_lockdown(session, None, T + timedelta(minutes=59, seconds=59), overrides_used=0)
        self.assertEqual(state.minutes_remaining, 1)
        self.assertTrue(state.is_locked)

    def test_exact_budget_boundary(self):
        session = make_session()
        state = evaluate_lockdown(session, None, T + timedelta(minutes=60), overrides_used=0)
        self.assertEqual(state.minutes_remaining, 0)
        self.assertFalse(state.is_locked)

    def test_clock_before_start_counts_as_zero_elapsed(self):
        session = make_session()
        state = evaluate_lockdown(session, None, T - timedelta(minutes=5), overrides_used=0)
        self.assertEqual(state.minutes_remaining, 60)

    def test_no_session(self):
        state = evaluate_lockdown(None, None, T, overrides_used=0)
        self.assertFalse(state.is_locked)
        self.assertEqual(state.minutes_remaining, 0)
        self.assertFalse(state.can_override)
        self.assertFalse(state.session_expired)

    def test_inactive_session_is_ignored(self):
        state = evaluate_lockdown(make_session(active=False), None, T + timedelta(minutes=1), overrides_used=0)
        self.assertFalse(state.is_locked)
        self.assertEqual(state.minutes_remaining, 0)

    def test_lockdown_disabled(self):
        """Users who turned lockdown off are never locked, even by a schedule."""
        state = evaluate_lockdown(
            make_session(), make_schedule(), T + timedelta(minutes=1),
            overrides_used=0, lockdown_enabled=False,
        )
        self.assertFalse(state.is_locked)
        self.assertEqual(state.minutes_remaining, 0)
        self.assertTrue(state.can_override)
        self.assertFalse(state.session_expired)

        expired = evaluate_lockdown(
            make_session(), None, T + timedelta(hours=5),
            overrides_used=0, lockdown_enabled=False,
        )
        self.assertTrue(expired.session_expired)


class TestOverrideEligibility(unittest.TestCase):

    def test_can_override_below_limit(self):
        state = evaluate_lockdown(make_session(overrides=2), None, T, overrides_used=2, max_overrides=3)
        self.assertTrue(state.can_override)

    def test_cannot_override_at_limit(self):
        state = evaluate_lockdown(make_session(overrides=3), None, T, overrides_used=3, max_overrides=3)
        self.assertFalse(state.can_override)


class TestStrictSchedule(unittest.TestCase):
    """Strict schedule blocks force lockdown during their windows."""

    def test_block_locks_without_session(self):
        state = evaluate_lockdown(None, make_schedule(), T + timedelta(minutes=15), overrides_used=0)
        self.assertTrue(state.is_locked)
        self.assertEqual(state.minutes_remaining, 45)
        self.assertEqual(state.schedule_block, "Morning Study")
        self.assertFalse(state.can_override)

    def test_remaining_rounds_up_to_block_end(self):
        state = evaluate_lockdown(None, make_schedule(), T + timedelta(minutes=59, seconds=30), overrides_used=0)
        self.assertTrue(state.is_locked)
        self.assertEqual(state.minutes_remaining, 1)

    def test_block_end_is_exclusive(self):
        state = evaluate_lockdown(None, make_schedule(), datetime(2024, 1, 8, 10, 0), overrides_used=0)
        self.assertFalse(state.is_locked)

    def test_wrong_day_does_not_lock(self):
        tuesday = T + timedelta(days=1, minutes=15)
        state = evaluate_lockdown(None, make_schedule(), tuesday, overrides_used=0)
        self.assertFalse(state.is_locked)

    def test_lenient_schedule_does_not_lock(self):
        state = evaluate_lockdown(None, make_schedule(strict=False), T + timedelta(minutes=15), overrides_used=0)
        self.assertFalse(state.is_locked)

    def test_block_or_expired_session(self):
        """Expired session inside a strict block stays locked; time shown is the session's."""
        session = make_session(planned=10)
        state = evaluate_lockdown(session, make_schedule(), T + timedelta(minutes=20), overrides_used=0)
        self.assertTrue(state.is_locked)
        self.assertTrue(state.session_expired)
        self.assertEqual(state.minutes_remaining, 0)

    def test_overlapping_blocks_use_latest_end(self):
        schedule = StudySchedule(
            user_id=1,
            exam_type="upsc",
            schedule_blocks=[
                ScheduleBlock(start="09:00", end="10:00", days={"mon"}, name="Short"),
                ScheduleBlock(start="08:30", end="11:00", days={"mon"}, name="Long"),
            ],
        )
        state = evaluate_lockdown(None, schedule, T + timedelta(minutes=30), overrides_used=0)
        self.assertTrue(state.is_locked)
        self.assertEqual(state.schedule_block, "Long")
        self.assertEqual(state.minutes_remaining, 90)


class TestLockdownEngine(unittest.TestCase):
    """Engine reads the stores and never writes to them."""

    def setUp(self):
        self.sessions = SessionStore()
        self.schedules = ScheduleStore()
        self.users = UserStore()
        self.engine = LockdownEngine(self.sessions, self.schedules, self.users)

    def test_pure_and_repeatable(self):
        """Repeated calls give the same result and leave the store untouched."""
        session = self.sessions.create(make_session(overrides=1))
        now = T + timedelta(minutes=63)
        first = self.engine.compute_lockdown_state(1, now)
        for _ in range(5):
            self.assertEqual(self.engine.compute_lockdown_state(1, now), first)
        self.assertEqual(self.sessions.get(session.id), session)

    def test_expired_session_is_not_deactivated(self):
        self.sessions.create(make_session())
        state = self.engine.compute_lockdown_state(1, T + timedelta(minutes=90))
        self.assertTrue(state.session_expired)
        self.assertIsNotNone(self.sessions.get_active(1))

    def test_user_lockdown_flag(self):
        self.users.create(User(username="asha", system_lockdown_enabled=False))
        self.sessions.create(make_session())
        state = self.engine.compute_lockdown_state(1, T + timedelta(minutes=1))
        self.assertFalse(state.is_locked)

    def test_per_user_override_limit(self):
        self.users.create(User(username="asha", max_overrides=1))
        self.assertEqual(self.engine.max_overrides_for(1), 1)
        self.assertEqual(self.engine.max_overrides_for(2), config.MAX_EMERGENCY_OVERRIDES)

    def test_schedule_from_store(self):
        self.schedules.create_schedule(make_schedule())
        state = self.engine.compute_lockdown_state(1, T + timedelta(minutes=5))
        self.assertTrue(state.is_locked)
        self.assertEqual(state.schedule_block, "Morning Study")


if __name__ == "__main__":
    unittest.main()
