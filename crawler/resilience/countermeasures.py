"""
Anti-detection measures applied to a browser session between retry attempts.
"""

import logging
import random
import time
from typing import Callable, Dict, Optional, Protocol

from crawler.config import RetryConfig

logger = logging.getLogger(__name__)


USER_AGENTS = [
    # Chrome on Windows
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36",
    # Chrome on macOS
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    # Firefox on Windows
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:109.0) Gecko/20100101 Firefox/121.0",
    # Safari on macOS
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.1 Safari/605.1.15",
    # Chrome on Linux
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
]

ACCEPT_LANGUAGES = [
    'en-US,en;q=0.9',
    'en-GB,en;q=0.9',
    'fr-FR,fr;q=0.9,en;q=0.8',
    'de-DE,de;q=0.9,en;q=0.8',
    'es-ES,es;q=0.9,en;q=0.8',
]

BASE_HEADERS = {
    'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,image/apng,*/*;q=0.8',
    'Accept-Encoding': 'gzip, deflate, br',
    'Cache-Control': 'no-cache',
    'Pragma': 'no-cache',
    'Sec-Fetch-Dest': 'document',
    'Sec-Fetch-Mode': 'navigate',
    'Sec-Fetch-Site': 'none',
    'Upgrade-Insecure-Requests': '1',
}


class SessionHandle(Protocol):
    """Browser session operations the countermeasures need."""

    def set_user_agent(self, user_agent: str) -> None: ...

    def set_headers(self, headers: Dict[str, str]) -> None: ...

    def clear_cookies_and_storage(self) -> None: ...


class AntiDetection:
    """Rotates identity material and clears session state before a retry."""

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        rng: Optional[random.Random] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        """
        Initialize countermeasures.

        Args:
            config: RetryConfig instance, uses defaults if None
            rng: Random source for rotation, seeded per instance if None
            sleep: Sleep function, replaceable in tests
        """
        self.config = config or RetryConfig()
        self._rng = rng or random.Random()
        self._sleep = sleep
        self.current_user_agent: Optional[str] = None
        self.current_headers: Dict[str, str] = {}

    def random_user_agent(self) -> str:
        return self._rng.choice(USER_AGENTS)

    def random_headers(self) -> Dict[str, str]:
        headers = {'Accept-Language': self._rng.choice(ACCEPT_LANGUAGES)}
        headers.update(BASE_HEADERS)
        return headers

    def rotate(self, session: SessionHandle, attempt: int):
        """
        Prepare the session for the next attempt.

        Never decides whether to retry. Failures are logged, not raised.

        Args:
            session: Session to modify
            attempt: Zero-based index of the attempt about to run
        """
        logger.info("Applying anti-detection measures (attempt %d)", attempt + 1)

        try:
            if self.config.rotate_user_agent:
                self.current_user_agent = self.random_user_agent()
                session.set_user_agent(self.current_user_agent)
                logger.debug("Rotated user agent: %s...", self.current_user_agent[:50])

            self.current_headers = self.random_headers()
            session.set_headers(self.current_headers)

            if self.config.countermeasure_delay > 0:
                self._sleep(self.config.countermeasure_delay)

            session.clear_cookies_and_storage()
            logger.debug("Cleared cookies and storage")
        except Exception as e:
            logger.warning("Error applying anti-detection measures: %s", e)
