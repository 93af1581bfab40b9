"""Background expiry sweep for focus sessions."""

import logging
import threading
from datetime import datetime
from typing import List, Optional

import config
from core.models import FocusSession
from core.scheduler import SessionScheduler

logger = logging.getLogger(__name__)


class ExpirySweeper:
    """
    Calls SessionScheduler.reconcile_expired() on a fixed interval.

    Runs on a daemon thread and waits on an Event between sweeps, so stop()
    takes effect immediately instead of after the next interval.
    """

    def __init__(
        self,
        scheduler: SessionScheduler,
        interval_seconds: float = config.SWEEP_INTERVAL_SECONDS,
    ) -> None:
        self.scheduler = scheduler
        self.interval_seconds = interval_seconds
        self.should_stop: threading.Event = threading.Event()
        self.thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self.thread is not None and self.thread.is_alive()

    def start(self) -> None:
        """Start sweeping. A no-op if already running."""
        if self.is_running:
            return
        self.should_stop.clear()
        self.thread = threading.Thread(target=self._sweep_loop, name="expiry-sweeper", daemon=True)
        self.thread.start()
        logger.info(f"Expiry sweeper started (every {self.interval_seconds}s)")

    def stop(self, timeout: float = 5.0) -> None:
        """Stop sweeping and wait for the thread to exit."""
        self.should_stop.set()
        if self.thread is not None:
            self.thread.join(timeout=timeout)
            if self.thread.is_alive():
                logger.warning("Expiry sweeper did not stop within timeout")
            self.thread = None
        logger.info("Expiry sweeper stopped")

    def run_once(self, now: Optional[datetime] = None) -> List[FocusSession]:
        """Run a single sweep."""
        return self.scheduler.reconcile_expired(now)

    def _sweep_loop(self) -> None:
        while not self.should_stop.is_set():
            try:
                self.run_once()
            except Exception as e:
                logger.error(f"Expiry sweep error: {e}")
            self.should_stop.wait(self.interval_seconds)
