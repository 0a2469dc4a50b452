"""
Listing crawler.

Walks every listing page, appends (name, location, profile URL) rows to the
current listing file, then reconciles it against the stored listing file.
"""

import logging
from typing import List, Optional, Tuple

from crawler.base_crawler import BaseCrawler
from crawler.csv_store import LISTING_SCHEMA, ThreadSafeCsvAppender
from crawler.exceptions import BlockedError, CrawlerError, NavigationError, ReconciliationError
from crawler.extraction import parse_listing_cards, parse_total_pages, parse_total_results
from crawler.fgirl_scraper import BrowserSession
from crawler.models import BlockType, CrawlResult, ListingRecord, ReconciliationReport
from crawler.reconciler import CsvReconciler
from crawler.resilience.blocking_detector import BlockingDetector, log_blocking_incident
from crawler.resilience.rate_limiter import RateLimiter
from crawler.utils import now_iso

logger = logging.getLogger(__name__)


class ListingCrawler(BaseCrawler):
    """Discovers profile links across all listing pages."""

    mode = "listing"

    PAGE_MAX_RETRIES = 3

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.appender = ThreadSafeCsvAppender(self.config.listing_path_on_disk, LISTING_SCHEMA)
        self.detector = BlockingDetector(
            stats=self.stats,
            threshold=self.config.retry.detection_threshold
        )
        self.reconciler = CsvReconciler(LISTING_SCHEMA)
        self._failed_pages: List[int] = []

    def run(self) -> CrawlResult:
        """
        Crawl all listing pages and reconcile the result.

        Returns:
            CrawlResult; ``reconciliation`` is set when the run was not cancelled
        """
        self._started_at = now_iso()
        self._failed_pages = []
        logger.info("Starting listing crawl of %s", self.config.listing_url)

        self.appender.clear()

        try:
            total_pages, total_results = self.discover_totals()
        except CrawlerError as e:
            logger.error("Could not discover listing size: %s", e)
            return self._create_result(success=False, total_discovered=0)

        self.progress.set_total_pages(total_pages)
        self.progress.set_expected_total(total_results)
        logger.info("Discovered %d pages, %d expected profiles", total_pages, total_results)

        self._run_workers(list(range(1, total_pages + 1)), self._crawl_pages)

        if self._failed_pages:
            logger.warning("Failed to fetch pages: %s", sorted(self._failed_pages))

        discovered = self.appender.count()
        reconciliation = None
        success = self._worker_errors == 0
        if self.token.cancelled:
            logger.info("Listing crawl cancelled, skipping reconciliation")
        elif self._worker_errors:
            logger.error(
                "%d workers failed, skipping reconciliation to keep %s intact",
                self._worker_errors, self.config.stored_file
            )
        else:
            try:
                reconciliation = self.reconcile()
            except ReconciliationError as e:
                logger.error("Reconciliation failed: %s", e)
                success = False

        self._log_summary()
        return self._create_result(
            success=success,
            total_discovered=discovered,
            reconciliation=reconciliation,
            total_failed=len(self._failed_pages)
        )

    def reconcile(self) -> ReconciliationReport:
        report = self.reconciler.reconcile(
            self.config.listing_path_on_disk,
            self.config.stored_path_on_disk
        )
        logger.info(
            "CSV sync completed: %d new, %d duplicates removed, %d obsolete, "
            "%d total stored, %d total current",
            report.new_records, report.duplicates_removed, report.obsolete_records,
            report.total_stored, report.total_current
        )
        return report

    def discover_totals(self) -> Tuple[int, int]:
        """
        Load the listing root and read the page count and result count.

        Returns:
            Tuple of (total_pages, total_results); pages is at least 1

        Raises:
            CrawlerError: If the root page could not be loaded within the retry budget
        """
        session = self.session_factory(self.config, "Discovery")
        try:
            html = self._load_with_retries(
                session, self.config.listing_url, self.config.listing_max_retries
            )
        finally:
            session.close()

        if html is None:
            raise CrawlerError(
                f"Listing root unavailable after {self.config.listing_max_retries} attempts"
            )
        return max(1, parse_total_pages(html)), parse_total_results(html)

    def load_page(self, session: BrowserSession, url: str) -> str:
        """
        Load one listing page and make sure it is not a block page.

        Raises:
            NavigationError: On transport failure
            BlockedError: If the page is still blocked after the challenge wait
        """
        response = session.navigate(url)
        session.dismiss_modals()
        detection = self.detector.classify(response.status, response.headers, response.content)

        if detection.is_blocked and detection.block_type == BlockType.CHALLENGE_PAGE:
            logger.info("Waiting for challenge page to resolve...")
            self.token.wait(self.config.retry.challenge_wait)
            content = session.page_source()
            detection = self.detector.classify(response.status, response.headers, content)
            response.content = content

        if detection.is_blocked:
            raise BlockedError(f"Listing page blocked: {url}", detection)

        session.save_debug(url, response.content)
        return response.content or ""

    def _load_with_retries(self, session: BrowserSession, url: str, max_retries: int) -> Optional[str]:
        for attempt in range(1, max_retries + 1):
            if self.token.cancelled:
                return None
            try:
                return self.load_page(session, url)
            except BlockedError as e:
                log_blocking_incident(url, e.detection, attempt)
            except NavigationError as e:
                logger.warning("Error loading %s (attempt %d/%d): %s", url, attempt, max_retries, e)
            if attempt < max_retries:
                self.token.wait(self.config.retry.delay_for(attempt - 1))
        return None

    def _page_cards(self, session: BrowserSession, page: int) -> Optional[List[ListingRecord]]:
        url = self.config.page_url(page)
        for attempt in range(1, self.PAGE_MAX_RETRIES + 1):
            html = self._load_with_retries(session, url, 1)
            if html is not None:
                cards = parse_listing_cards(html, self.config.base_url)
                if cards:
                    return cards
                logger.info("Page %d returned no profiles (attempt %d/%d)", page, attempt, self.PAGE_MAX_RETRIES)
            if attempt < self.PAGE_MAX_RETRIES and not self.token.cancelled:
                self.token.wait(self.config.retry.delay_for(attempt - 1))
        return None

    def _reached_expected_total(self) -> bool:
        expected = self.progress.snapshot()['expected_total']
        return expected > 0 and self.appender.count() >= expected

    def _crawl_pages(self, worker_id: int, pages: List[int]):
        name = f"Worker-{worker_id}"
        limiter = RateLimiter(config=self.config.pacing, sleep=self.token.wait)
        logger.info("%s: pages %d-%d", name, pages[0], pages[-1])
        session = None
        position = 0

        try:
            session = self.session_factory(self.config, name)
            for position, page in enumerate(pages):
                if self.token.cancelled:
                    logger.info("%s: stopped by user", name)
                    break
                if self._reached_expected_total():
                    logger.info("%s: expected total reached, stopping", name)
                    break

                limiter.wait()
                self.progress.set_current_page(page)
                cards = self._page_cards(session, page)
                if cards is None:
                    self._failed_pages.append(page)
                    limiter.record_failure()
                    if limiter.should_cooldown():
                        limiter.cooldown()
                    continue

                written, duplicates = self.appender.append_many(cards)
                self.progress.record_written(written)
                self.progress.record_duplicate(duplicates)
                limiter.record_success()
                logger.info(
                    "%s: page %d, %d profiles (%d new, %d duplicates)",
                    name, page, len(cards), written, duplicates
                )
        except Exception:
            abandoned = [p for p in pages[position:] if p not in self._failed_pages]
            self._failed_pages.extend(abandoned)
            logger.error("%s: abandoning pages %s", name, abandoned)
            raise
        finally:
            if session is not None:
                session.close()
