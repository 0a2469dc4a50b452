"""
Profile crawler.

Fetches every profile URL found by the listing crawler through the
blocking-aware retry loop and appends valid records to the detail file.
"""

import logging
from typing import Callable, List, Optional

from crawler.base_crawler import BaseCrawler
from crawler.csv_store import DETAIL_SCHEMA, AppendResult, ThreadSafeCsvAppender
from crawler.fgirl_scraper import BrowserSession, ProfilePageFetcher
from crawler.models import CrawlResult
from crawler.resilience.countermeasures import AntiDetection
from crawler.resilience.health_monitor import HealthMonitor
from crawler.resilience.rate_limiter import RateLimiter
from crawler.resilience.retry_handler import PageFetcher, RetryHandler, log_failed_profile
from crawler.utils import now_iso, read_profile_urls

logger = logging.getLogger(__name__)

FetcherFactory = Callable[[BrowserSession], PageFetcher]


class ProfileCrawler(BaseCrawler):
    """Extracts detail records for every URL in the listing file."""

    mode = "profiles"

    def __init__(self, *args, fetcher_factory: Optional[FetcherFactory] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.fetcher_factory = fetcher_factory or ProfilePageFetcher
        self.appender = ThreadSafeCsvAppender(self.config.detail_path_on_disk, DETAIL_SCHEMA)

    def run(self) -> CrawlResult:
        """
        Crawl all profile URLs from the listing file.

        Returns:
            CrawlResult with written / duplicate / failed counts
        """
        self._started_at = now_iso()

        urls = read_profile_urls(self.config.listing_path_on_disk, self.config.max_profiles)
        if not urls:
            logger.error("No profile URLs found in %s", self.config.listing_file)
            return self._create_result(success=False, total_discovered=0)

        self.appender.clear()
        self.progress.set_expected_total(len(urls))
        logger.info(
            "Crawling %d profiles with %d workers (worst case %.0fs per URL)",
            len(urls), min(self.config.workers, len(urls)), self.config.retry.worst_case_seconds
        )

        self._run_workers(urls, self._crawl_urls)

        self._log_summary()
        return self._create_result(
            success=self._worker_errors == 0,
            total_discovered=len(urls)
        )

    def _crawl_urls(self, worker_id: int, urls: List[str]):
        name = f"Worker-{worker_id}"
        limiter = RateLimiter(config=self.config.pacing, sleep=self.token.wait)
        total = len(urls)
        session = None
        done = 0

        try:
            session = self.session_factory(self.config, name)
            fetcher = self.fetcher_factory(session)
            monitor = HealthMonitor(
                session,
                max_failures=self.config.max_session_failures,
                failure_window=self.config.session_failure_window
            )
            handler = RetryHandler(
                fetcher,
                config=self.config.retry,
                stats=self.stats,
                countermeasures=AntiDetection(config=self.config.retry, sleep=self._sleep),
                sleep=self._sleep
            )

            for i, url in enumerate(urls, 1):
                if self.token.cancelled:
                    logger.info("%s: stopped by user", name)
                    break

                if not monitor.ensure_healthy():
                    logger.error("%s: session unusable, abandoning %d URLs", name, total - i + 1)
                    break

                limiter.wait()
                logger.info("%s: [%d/%d] %s", name, i, total, url)
                record = handler.fetch_with_retry(url)

                if record.is_retry_exhausted:
                    log_failed_profile(url, record, self.config.retry.max_attempts, worker=name)
                    self.progress.record_failed()
                    done = i
                    limiter.record_failure()
                    if limiter.should_cooldown():
                        limiter.cooldown()
                    continue

                limiter.record_success()
                result = self.appender.append(record)
                if result is AppendResult.WRITTEN:
                    self.progress.record_written()
                    logger.info("%s: saved %s", name, record.nickname)
                elif result is AppendResult.DUPLICATE:
                    self.progress.record_duplicate()
                else:
                    self.progress.record_failed()
                done = i
        except Exception:
            logger.error("%s: abandoning %d URLs", name, total - done)
            for _ in range(total - done):
                self.progress.record_failed()
            raise
        finally:
            if session is not None:
                session.close()
