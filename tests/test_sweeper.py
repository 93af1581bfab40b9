"""Tests for core/sweeper.py — the periodic expiry sweep."""

import sys
import threading
import time
import unittest
from datetime import datetime, timedelta
from pathlib import Path
from unittest.mock import MagicMock

# Ensure project root is on the path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.scheduler import SessionScheduler
from core.sweeper import ExpirySweeper
from tracking.schedule_store import ScheduleStore
from tracking.session_store import SessionStore

T = datetime(2024, 1, 8, 9, 0)


class TestExpirySweeper(unittest.TestCase):

    def test_run_once_ends_expired(self):
        sessions = SessionStore()
        scheduler = SessionScheduler(sessions, ScheduleStore(), clock=lambda: T)
        scheduler.start_session(1, 60)
        sweeper = ExpirySweeper(scheduler, interval_seconds=60)

        self.assertEqual(sweeper.run_once(T + timedelta(minutes=30)), [])
        ended = sweeper.run_once(T + timedelta(minutes=61))
        self.assertEqual(len(ended), 1)
        self.assertIsNone(sessions.get_active(1))

    def test_loop_runs_and_stops(self):
        scheduler = MagicMock()
        swept = threading.Event()
        scheduler.reconcile_expired.side_effect = lambda now=None: swept.set() or []

        sweeper = ExpirySweeper(scheduler, interval_seconds=0.01)
        sweeper.start()
        try:
            self.assertTrue(swept.wait(2.0))
            self.assertTrue(sweeper.is_running)
        finally:
            sweeper.stop()
        self.assertFalse(sweeper.is_running)

    def test_loop_survives_errors(self):
        """An exception from one sweep is logged and the loop keeps going."""
        scheduler = MagicMock()
        calls = []
        second_call = threading.Event()

        def sweep(now=None):
            calls.append(now)
            if len(calls) == 1:
                raise RuntimeError("disk full")
            second_call.set()
            return []

        scheduler.reconcile_expired.side_effect = sweep
        sweeper = ExpirySweeper(scheduler, interval_seconds=0.01)
        with self.assertLogs("core.sweeper", level="ERROR"):
            sweeper.start()
            try:
                self.assertTrue(second_call.wait(2.0))
            finally:
                sweeper.stop()

    def test_start_twice_is_noop(self):
        scheduler = MagicMock()
        scheduler.reconcile_expired.return_value = []
        sweeper = ExpirySweeper(scheduler, interval_seconds=10)
        sweeper.start()
        try:
            thread = sweeper.thread
            sweeper.start()
            self.assertIs(sweeper.thread, thread)
        finally:
            start = time.monotonic()
            sweeper.stop()
            # stop() wakes the loop instead of waiting out the interval
            self.assertLess(time.monotonic() - start, 5.0)


if __name__ == "__main__":
    unittest.main()
