"""
Shared run scaffolding for the listing and profile crawlers.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, List, Optional, Sequence

from crawler.config import CrawlerConfig
from crawler.fgirl_scraper import BrowserSession
from crawler.models import CrawlResult, ReconciliationReport
from crawler.resilience.cancellation import CancellationToken
from crawler.resilience.stats import BlockingStats, CrawlProgress
from crawler.utils import now_iso, seconds_between, split_batches

logger = logging.getLogger(__name__)

SessionFactory = Callable[[CrawlerConfig, str], BrowserSession]


class BaseCrawler:
    """Owns the per-run state: config, cancellation token and counters."""

    mode = "base"

    def __init__(
        self,
        config: Optional[CrawlerConfig] = None,
        token: Optional[CancellationToken] = None,
        stats: Optional[BlockingStats] = None,
        progress: Optional[CrawlProgress] = None,
        session_factory: Optional[SessionFactory] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        """
        Initialize a crawler for one run.

        Args:
            config: CrawlerConfig instance, uses defaults if None
            token: Stop signal for this run, a fresh one if None
            stats: Blocking counters for this run
            progress: Progress counters for this run
            session_factory: Builds a browser session per worker
            sleep: Sleep function for retry delays, replaceable in tests
        """
        self.config = config or CrawlerConfig()
        self.token = token or CancellationToken()
        self.stats = stats or BlockingStats()
        self.progress = progress or CrawlProgress()
        self.session_factory = session_factory or BrowserSession
        self._sleep = sleep
        self._started_at: Optional[str] = None
        self._worker_errors = 0

    def stop(self):
        """Ask workers to finish their current item and stop."""
        logger.info("Stop requested for %s crawler", self.mode)
        self.token.cancel()

    def _run_workers(self, items: Sequence, work: Callable[[int, List], None]):
        """Run ``work(worker_id, batch)`` for each contiguous batch in its own thread."""
        batches = split_batches(items, self.config.workers)
        if not batches:
            return

        logger.info(
            "Starting %d workers for %d items (%s)",
            len(batches), len(items), ", ".join(str(len(b)) for b in batches)
        )

        with ThreadPoolExecutor(
            max_workers=len(batches),
            thread_name_prefix=f"{self.mode}-worker"
        ) as pool:
            futures = {
                pool.submit(work, worker_id, batch): worker_id
                for worker_id, batch in enumerate(batches, 1)
            }
            for future in as_completed(futures):
                try:
                    future.result()
                except Exception as e:
                    self._worker_errors += 1
                    logger.error("Worker-%d failed: %s", futures[future], e)

    def _log_summary(self):
        stats = self.stats.snapshot()
        progress = self.progress.snapshot()
        logger.info(
            "\n".join([
                "=" * 60,
                f"SESSION SUMMARY ({self.mode})",
                "=" * 60,
                f"Total requests:      {stats['total_requests']}",
                f"Blocked requests:    {stats['blocked_requests']}",
                f"Blocking rate:       {stats['blocking_rate']}%",
                f"Successful retries:  {stats['successful_retries']}",
                f"Failed retries:      {stats['failed_retries']}",
                f"Retry success rate:  {stats['retry_success_rate']}%",
                f"Written:             {progress['written']}",
                f"Duplicates:          {progress['duplicates']}",
                f"Failed:              {progress['failed']}",
            ])
        )

    def _create_result(
        self,
        success: bool,
        total_discovered: int,
        reconciliation: Optional[ReconciliationReport] = None,
        total_failed: Optional[int] = None
    ) -> CrawlResult:
        """Create CrawlResult from the run counters."""
        completed_at = now_iso()
        started_at = self._started_at or completed_at
        progress = self.progress.snapshot()

        return CrawlResult(
            success=success,
            mode=self.mode,
            started_at=started_at,
            completed_at=completed_at,
            total_discovered=total_discovered,
            total_written=progress['written'],
            total_duplicates=progress['duplicates'],
            total_failed=progress['failed'] if total_failed is None else total_failed,
            cancelled=self.token.cancelled,
            duration_seconds=seconds_between(started_at, completed_at),
            reconciliation=reconciliation,
            stats=self.stats.snapshot()
        )
