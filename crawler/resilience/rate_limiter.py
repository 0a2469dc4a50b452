"""
Adaptive pacing between consecutive URLs handled by one worker.
Slows down after failures, speeds back up on success, with jitter and cooldown.
"""

import logging
import random
import time
from typing import Callable, Optional

from crawler.config import PacingConfig

logger = logging.getLogger(__name__)


class RateLimiter:
    """Adaptive per-worker delay with backoff, jitter and cooldown."""

    def __init__(
        self,
        config: Optional[PacingConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Initialize rate limiter with configuration.

        Args:
            config: PacingConfig instance, uses defaults if None
            sleep: Sleep function; a CancellationToken.wait works too
            clock: Monotonic clock, replaceable in tests
        """
        self.config = config or PacingConfig()
        self._sleep = sleep
        self._clock = clock
        self._current_delay = self.config.initial_delay
        self._consecutive_failures = 0
        self._last_request_time: Optional[float] = None
        self._cooldown_until: Optional[float] = None

    def wait(self):
        """Wait for the appropriate delay before the next request."""
        if self._cooldown_until is not None:
            remaining = self._cooldown_until - self._clock()
            if remaining > 0:
                logger.info("In cooldown, waiting %.1fs...", remaining)
                self._sleep(remaining)
            self._cooldown_until = None

        jitter_range = self._current_delay * self.config.jitter_percent
        jitter = random.uniform(-jitter_range, jitter_range)
        actual_delay = max(self.config.min_delay, self._current_delay + jitter)

        if self._last_request_time is not None:
            elapsed = self._clock() - self._last_request_time
            remaining_delay = actual_delay - elapsed
            if remaining_delay > 0:
                self._sleep(remaining_delay)
        else:
            self._sleep(actual_delay)

        self._last_request_time = self._clock()

    def record_success(self):
        """Record a successful URL and decrease the delay by 10%."""
        self._consecutive_failures = 0
        self._current_delay = max(self.config.min_delay, self._current_delay * 0.9)

    def record_failure(self):
        """Record a failed URL and back off."""
        self._consecutive_failures += 1
        new_delay = self._current_delay * self.config.backoff_factor
        self._current_delay = min(self.config.max_delay, new_delay)

    def should_cooldown(self) -> bool:
        return self._consecutive_failures >= self.config.cooldown_threshold

    def cooldown(self):
        """Enter a cooldown period; the elevated delay is kept afterwards."""
        self._cooldown_until = self._clock() + self.config.cooldown_duration
        logger.warning(
            "Entering cooldown for %.0fs due to %d consecutive failures",
            self.config.cooldown_duration, self._consecutive_failures
        )
        self._consecutive_failures = 0
