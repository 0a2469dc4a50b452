"""
Health monitoring for a worker's browser session.
Detects a dead session and restarts the browser when needed.
"""

import logging
import time
from typing import TYPE_CHECKING, Callable, List

if TYPE_CHECKING:
    from crawler.fgirl_scraper import BrowserSession

logger = logging.getLogger(__name__)


class HealthMonitor:
    """Monitors browser session health and triggers recovery."""

    def __init__(
        self,
        session: "BrowserSession",
        max_failures: int = 5,
        failure_window: float = 600.0,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Initialize monitor with a session reference.

        Args:
            session: BrowserSession to monitor
            max_failures: Max failures within window before the worker gives up
            failure_window: Time window in seconds for counting failures
            clock: Monotonic clock, replaceable in tests
        """
        self.session = session
        self.max_failures = max_failures
        self.failure_window = failure_window
        self._clock = clock
        self._failure_times: List[float] = []
        self._recovery_count = 0

    def check_health(self) -> bool:
        """
        Check if the browser session is responsive.

        Returns:
            True if the session answers, False otherwise
        """
        return self.session.is_alive()

    def record_failure(self):
        """Record a session failure event."""
        now = self._clock()
        self._failure_times.append(now)
        cutoff = now - self.failure_window
        self._failure_times = [t for t in self._failure_times if t > cutoff]
        logger.warning("Session failure recorded (%d in window)", len(self._failure_times))

    def should_pause(self) -> bool:
        return self.get_failure_count() >= self.max_failures

    def recover(self) -> bool:
        """
        Restart the browser session.

        Returns:
            True if the restarted session is responsive
        """
        self._recovery_count += 1
        logger.info("Attempting session recovery (attempt #%d)...", self._recovery_count)

        try:
            self.session.restart()
        except Exception as e:
            logger.error("Session recovery failed: %s", e)
            return False

        if self.check_health():
            logger.info("Session recovery successful")
            return True
        logger.error("Session recovery failed - browser not responsive")
        return False

    def ensure_healthy(self) -> bool:
        """
        Check the session and recover it if needed.

        Returns:
            False when the worker should stop using this session
        """
        if self.check_health():
            return True
        self.record_failure()
        if self.should_pause():
            logger.error("Too many session failures, stopping worker")
            return False
        return self.recover()

    def get_failure_count(self) -> int:
        cutoff = self._clock() - self.failure_window
        return len([t for t in self._failure_times if t > cutoff])
