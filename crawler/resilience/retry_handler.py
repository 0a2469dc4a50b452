"""
Blocking-aware retry handling for profile pages.
Wraps one fetch + extract operation in a bounded retry loop and never raises.
"""

import logging
import time
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, List, Optional, Protocol

from crawler.config import RetryConfig
from crawler.exceptions import NavigationError
from crawler.models import (
    FAILED_AFTER_RETRIES,
    RETRY_EXHAUSTED,
    BlockingDetection,
    BlockType,
    PageResponse,
    ProfileRecord,
)
from crawler.resilience.blocking_detector import BlockingDetector, log_blocking_incident
from crawler.resilience.countermeasures import AntiDetection, SessionHandle
from crawler.resilience.stats import BlockingStats
from crawler.resilience.validity import determine_block_type, is_valid_profile

logger = logging.getLogger(__name__)


class PageFetcher(Protocol):
    """Browser-backed page access used by the retry loop."""

    session: SessionHandle

    def fetch(self, url: str) -> PageResponse:
        """Navigate to url. Raises NavigationError on transport failure."""
        ...

    def reload_content(self) -> Optional[str]:
        """Re-read the current page content without navigating."""
        ...

    def extract(self, response: PageResponse) -> ProfileRecord:
        """Extract a profile record from a fetched page."""
        ...


@dataclass
class RetryAttempt:
    """Runtime state of one attempt, kept for failure diagnostics."""
    index: int
    user_agent: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict)
    error: Optional[str] = None
    detection: Optional[BlockingDetection] = None


class RetryHandler:
    """Drives the fetch, classify, validate and retry cycle for a single URL."""

    def __init__(
        self,
        fetcher: PageFetcher,
        config: Optional[RetryConfig] = None,
        stats: Optional[BlockingStats] = None,
        detector: Optional[BlockingDetector] = None,
        countermeasures: Optional[AntiDetection] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        """
        Initialize retry handler.

        Args:
            fetcher: Page fetcher owned by the calling worker
            config: RetryConfig instance, uses defaults if None
            stats: Run-wide counters shared between workers
            detector: Response classifier, built from config and stats if None
            countermeasures: Anti-detection measures, built from config if None
            sleep: Sleep function, replaceable in tests
        """
        self.fetcher = fetcher
        self.config = config or RetryConfig()
        self.stats = stats or BlockingStats()
        self.detector = detector or BlockingDetector(
            stats=self.stats,
            threshold=self.config.detection_threshold
        )
        self.countermeasures = countermeasures or AntiDetection(config=self.config, sleep=sleep)
        self._sleep = sleep
        self.history: List[RetryAttempt] = []

    def retry_delay(self, attempt: int) -> float:
        """
        Delay before the attempt following ``attempt`` (zero-based).

        With the default backoff_factor of 1.0 this is a fixed delay.
        """
        return self.config.delay_for(attempt)

    def fetch_with_retry(self, url: str) -> ProfileRecord:
        """
        Fetch and extract a profile, retrying on blocks and invalid data.

        Args:
            url: Profile URL

        Returns:
            The first valid record, or a RETRY_EXHAUSTED placeholder
        """
        max_attempts = self.config.max_attempts
        last_error: Optional[str] = None
        last_detection: Optional[BlockingDetection] = None
        self.history = []

        for attempt in range(max_attempts):
            logger.info("Extracting data from: %s (attempt %d/%d)", url, attempt + 1, max_attempts)

            if attempt > 0 and self.config.anti_detection:
                self.countermeasures.rotate(self.fetcher.session, attempt)

            state = RetryAttempt(
                index=attempt,
                user_agent=self.countermeasures.current_user_agent,
                headers=dict(self.countermeasures.current_headers)
            )
            self.history.append(state)

            record = self._attempt(url, state)
            if record is not None:
                if attempt > 0:
                    self.stats.record_retry_success()
                    logger.info("Successfully extracted data after %d attempts", attempt + 1)
                return record

            if state.error:
                last_error = state.error
            if state.detection:
                last_detection = state.detection

            if attempt < max_attempts - 1:
                delay = self.retry_delay(attempt)
                logger.debug("Waiting %.2fs before retry...", delay)
                self._sleep(delay)

        self.stats.record_retry_failure()
        logger.error("Failed to extract data from %s after %d attempts", url, max_attempts)

        return ProfileRecord.placeholder(
            url,
            RETRY_EXHAUSTED,
            FAILED_AFTER_RETRIES,
            last_error=last_error or "Unknown error",
            last_detection=last_detection
        )

    def _attempt(self, url: str, state: RetryAttempt) -> Optional[ProfileRecord]:
        """Run one attempt. Returns a valid record, or None with state filled in."""
        attempt_number = state.index + 1

        try:
            response = self.fetcher.fetch(url)
        except NavigationError as e:
            state.error = str(e)
            state.detection = BlockingDetection(
                is_blocked=True,
                block_type=BlockType.NAVIGATION_ERROR,
                confidence=0.6,
                indicators=[f"Navigation error: {e}"]
            )
            log_blocking_incident(url, state.detection, attempt_number)
            return None
        except Exception as e:
            state.error = str(e)
            logger.error("Attempt %d failed: %s", attempt_number, e)
            return None

        detection = self.detector.classify(response.status, response.headers, response.content)

        if detection.is_blocked and detection.block_type == BlockType.CHALLENGE_PAGE:
            logger.info("Waiting for challenge page to resolve...")
            self._sleep(self.config.challenge_wait)
            try:
                content = self.fetcher.reload_content()
            except Exception as e:
                state.error = str(e)
                state.detection = detection
                log_blocking_incident(url, detection, attempt_number)
                return None
            response = replace(response, content=content)
            detection = self.detector.classify(response.status, response.headers, response.content)

        if detection.is_blocked:
            state.error = f"Cloudflare blocking detected: {detection.block_type.value if detection.block_type else 'UNKNOWN'}"
            state.detection = detection
            log_blocking_incident(url, detection, attempt_number)
            return None

        try:
            record = self.fetcher.extract(response)
        except Exception as e:
            state.error = str(e)
            logger.error("Extraction failed for %s: %s", url, e)
            return None

        if is_valid_profile(record):
            return record

        state.detection = BlockingDetection(
            is_blocked=True,
            block_type=determine_block_type(record),
            confidence=0.8,
            indicators=[f"Incomplete data: {(record.nickname if record else '') or 'Unknown'}"]
        )
        log_blocking_incident(url, state.detection, attempt_number)
        return None


def log_failed_profile(url: str, record: ProfileRecord, max_attempts: int, worker: str = ""):
    """Log diagnostics for a URL that exhausted its retries."""
    prefix = f"{worker}: " if worker else ""
    lines = [
        f"{prefix}FAILED PROFILE {url}",
        f"  Last error: {record.last_error or 'Unknown error'}",
    ]
    detection = record.last_detection
    if detection:
        lines.append(f"  Block type: {detection.block_type.value if detection.block_type else 'Unknown'}")
        lines.append(f"  Confidence: {detection.confidence:.2f}")
        if detection.indicators:
            lines.append(f"  Indicators: {', '.join(detection.indicators)}")
    lines.append(f"  Attempts: {max_attempts}")
    logger.warning("\n".join(lines))
