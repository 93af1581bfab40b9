"""Unit tests for the blocked-app policy and schedule windows."""

import sys
import unittest
from datetime import datetime
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import config
from core.errors import ValidationError
from core.models import BlockedApp, FocusSession, ScheduleWindow, parse_weekday
from screen.blocklist import (
    apps_blocked_at,
    describe_block,
    is_enforced,
    is_window_active,
    validate_block_level,
)

# Monday 8 January 2024
MONDAY_0930 = datetime(2024, 1, 8, 9, 30)
SATURDAY_0930 = datetime(2024, 1, 13, 9, 30)


class TestScheduleWindow(unittest.TestCase):

    def test_window_contains(self):
        window = ScheduleWindow(start="09:00", end="17:00", days={"mon", "tue"})
        self.assertTrue(is_window_active(window, MONDAY_0930))
        self.assertFalse(is_window_active(window, SATURDAY_0930))
        self.assertTrue(is_window_active(window, datetime(2024, 1, 8, 9, 0)))
        self.assertFalse(is_window_active(window, datetime(2024, 1, 8, 17, 0)))

    def test_cross_midnight_window_rejected(self):
        with self.assertRaises(ValidationError):
            ScheduleWindow(start="22:00", end="02:00", days={"mon"})

    def test_empty_window_rejected(self):
        with self.assertRaises(ValidationError):
            ScheduleWindow(start="09:00", end="09:00", days={"mon"})

    def test_malformed_times_rejected(self):
        for start in ("9am", "25:00", "09:60", "", "09:00:00"):
            with self.subTest(start=start):
                with self.assertRaises(ValidationError):
                    ScheduleWindow(start=start, end="23:00", days={"mon"})

    def test_weekday_parsing(self):
        self.assertEqual(parse_weekday("Monday"), "mon")
        self.assertEqual(parse_weekday("SAT"), "sat")
        with self.assertRaises(ValidationError):
            parse_weekday("funday")

    def test_minutes_until_end(self):
        window = ScheduleWindow(start="09:00", end="10:00", days={"mon"})
        self.assertEqual(window.minutes_until_end(MONDAY_0930), 30)


class TestAppsBlockedAt(unittest.TestCase):

    def setUp(self):
        self.instagram = BlockedApp(user_id=1, app_name="Instagram", id=1, block_level=config.BLOCK_LEVEL_HARD)
        self.youtube = BlockedApp(
            user_id=1,
            app_name="YouTube",
            id=2,
            block_schedule=[ScheduleWindow(start="09:00", end="12:00", days={"mon", "tue", "wed", "thu", "fri"})],
        )
        self.whatsapp = BlockedApp(user_id=1, app_name="WhatsApp", id=3)
        self.apps = [self.instagram, self.youtube, self.whatsapp]

    def _session(self, blocked, active=True):
        return FocusSession(
            user_id=1,
            start_time=MONDAY_0930,
            planned_duration=60,
            focus_mode=config.FOCUS_MODE_STUDY,
            blocked_apps=blocked,
            is_active=active,
        )

    def test_own_windows_only(self):
        blocked = apps_blocked_at(self.apps, MONDAY_0930)
        self.assertEqual([a.app_name for a in blocked], ["YouTube"])
        self.assertEqual(apps_blocked_at(self.apps, SATURDAY_0930), [])

    def test_session_apps_added(self):
        blocked = apps_blocked_at(self.apps, MONDAY_0930, self._session([1]))
        self.assertEqual([a.app_name for a in blocked], ["Instagram", "YouTube"])

    def test_inactive_session_ignored(self):
        blocked = apps_blocked_at(self.apps, SATURDAY_0930, self._session([1, 3], active=False))
        self.assertEqual(blocked, [])


class TestBlockLevels(unittest.TestCase):

    def test_enforcement(self):
        self.assertFalse(is_enforced(BlockedApp(user_id=1, app_name="a", block_level=config.BLOCK_LEVEL_SOFT)))
        self.assertTrue(is_enforced(BlockedApp(user_id=1, app_name="b", block_level=config.BLOCK_LEVEL_HARD)))
        self.assertTrue(is_enforced(BlockedApp(user_id=1, app_name="c", block_level=config.BLOCK_LEVEL_SYSTEM)))

    def test_validate_block_level(self):
        self.assertEqual(validate_block_level("hard"), "hard")
        with self.assertRaises(ValidationError):
            validate_block_level("HARD")

    def test_describe_block(self):
        app = BlockedApp(user_id=1, app_name="TikTok", block_level=config.BLOCK_LEVEL_HARD)
        self.assertEqual(describe_block(app), "TikTok (Blocked)")


if __name__ == "__main__":
    unittest.main()
