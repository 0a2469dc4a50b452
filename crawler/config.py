"""
Configuration dataclasses for the crawler.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


@dataclass
class RetryConfig:
    """Configuration for the blocking-aware retry loop."""
    max_attempts: int = 8
    base_delay: float = 0.1
    max_delay: float = 0.1
    # 1.0 keeps the delay fixed; anything above turns it into capped backoff
    backoff_factor: float = 1.0

    # Wait before re-reading a challenge page. Real deployments want seconds.
    challenge_wait: float = 0.1
    detection_threshold: float = 0.5

    # Countermeasures applied between attempts
    anti_detection: bool = True
    rotate_user_agent: bool = True
    countermeasure_delay: float = 0.1

    # Per-attempt navigation timeout
    attempt_timeout: float = 15.0

    def delay_for(self, attempt: int) -> float:
        """Delay after the zero-based ``attempt``, capped at max_delay but never below base_delay."""
        cap = max(self.max_delay, self.base_delay)
        return min(self.base_delay * (self.backoff_factor ** attempt), cap)

    @property
    def worst_case_seconds(self) -> float:
        """Upper bound on wall-clock time spent retrying a single URL."""
        return self.max_attempts * (self.attempt_timeout + max(self.max_delay, self.base_delay))


@dataclass
class PacingConfig:
    """Configuration for pacing between consecutive URLs in one worker."""
    min_delay: float = 0.1
    max_delay: float = 5.0
    initial_delay: float = 0.1
    backoff_factor: float = 1.5
    jitter_percent: float = 0.2
    cooldown_threshold: int = 5
    cooldown_duration: float = 30.0


@dataclass
class CrawlerConfig:
    """Main configuration for the crawler system."""
    # Site
    base_url: str = "https://www.en.fgirl.ch"
    listing_path: str = "/filles/"

    # Output files
    data_dir: str = "."
    listing_file: str = "list.csv"
    stored_file: str = "list-stored.csv"
    detail_file: str = "detail.csv"

    # Browser settings
    headless: bool = True
    save_debug: bool = False
    page_load_wait: float = 0.5
    # First navigation to the site root, lets the CDN check settle
    warmup_wait: float = 8.0
    proxy: Optional[str] = None
    proxy_user: Optional[str] = None
    proxy_password: Optional[str] = None

    # Concurrency
    workers: int = 10
    max_profiles: Optional[int] = None
    listing_max_retries: int = 10

    # Health monitoring
    max_session_failures: int = 5
    session_failure_window: float = 600.0

    retry: RetryConfig = field(default_factory=RetryConfig)
    pacing: PacingConfig = field(default_factory=PacingConfig)

    @property
    def listing_url(self) -> str:
        return f"{self.base_url.rstrip('/')}{self.listing_path}"

    def page_url(self, page: int) -> str:
        """URL of the listing page with the given 1-based number."""
        return f"{self.listing_url}?page={page}"

    @property
    def listing_path_on_disk(self) -> Path:
        return Path(self.data_dir) / self.listing_file

    @property
    def stored_path_on_disk(self) -> Path:
        return Path(self.data_dir) / self.stored_file

    @property
    def detail_path_on_disk(self) -> Path:
        return Path(self.data_dir) / self.detail_file

    @property
    def proxy_string(self) -> Optional[str]:
        """Proxy in the ``user:pass@host:port`` form SeleniumBase accepts."""
        if not self.proxy:
            return None
        if self.proxy_user and self.proxy_password:
            return f"{self.proxy_user}:{self.proxy_password}@{self.proxy}"
        return self.proxy
