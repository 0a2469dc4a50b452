"""
Counters shared between crawl workers.

Each crawl run builds its own instances so concurrent or consecutive runs
never see each other's numbers.
"""

import threading
from typing import Optional


class BlockingStats:
    """Thread-safe blocking and retry counters for one crawl run."""

    def __init__(self):
        self._lock = threading.Lock()
        self._total_requests = 0
        self._blocked_requests = 0
        self._successful_retries = 0
        self._failed_retries = 0

    def record_request(self, blocked: bool):
        """Record one classified response."""
        with self._lock:
            self._total_requests += 1
            if blocked:
                self._blocked_requests += 1

    def record_retry_success(self):
        with self._lock:
            self._successful_retries += 1

    def record_retry_failure(self):
        with self._lock:
            self._failed_retries += 1

    def snapshot(self) -> dict:
        """
        Get a point-in-time copy of the counters.

        Returns:
            Dict with raw counters plus blocking and retry success rates in percent
        """
        with self._lock:
            total = self._total_requests
            blocked = self._blocked_requests
            successful = self._successful_retries
            failed = self._failed_retries

        blocking_rate = round(blocked / total * 100, 2) if total else 0.0
        retry_success_rate = round(successful / blocked * 100, 2) if blocked else 0.0
        return {
            'total_requests': total,
            'blocked_requests': blocked,
            'blocking_rate': blocking_rate,
            'successful_retries': successful,
            'failed_retries': failed,
            'retry_success_rate': retry_success_rate,
        }


class CrawlProgress:
    """Thread-safe progress counters for one crawl run."""

    def __init__(self, expected_total: int = 0):
        self._lock = threading.Lock()
        self._expected_total = expected_total
        self._processed = 0
        self._written = 0
        self._duplicates = 0
        self._failed = 0
        self._current_page: Optional[int] = None
        self._total_pages = 0

    def set_expected_total(self, total: int):
        with self._lock:
            self._expected_total = max(0, total)

    def set_total_pages(self, total_pages: int):
        with self._lock:
            self._total_pages = total_pages

    def set_current_page(self, page: int):
        with self._lock:
            if self._current_page is None or page > self._current_page:
                self._current_page = page

    def record_written(self, count: int = 1):
        with self._lock:
            self._processed += count
            self._written += count

    def record_duplicate(self, count: int = 1):
        with self._lock:
            self._processed += count
            self._duplicates += count

    def record_failed(self):
        """Record a URL that exhausted its retries; it no longer counts towards the total."""
        with self._lock:
            self._failed += 1
            self._expected_total = max(0, self._expected_total - 1)

    def snapshot(self) -> dict:
        with self._lock:
            total = self._expected_total
            processed = self._processed
            if total and processed >= total:
                percent = 100.0
            elif total:
                percent = round(processed / total * 100, 1)
            else:
                percent = 0.0
            return {
                'expected_total': total,
                'processed': processed,
                'written': self._written,
                'duplicates': self._duplicates,
                'failed': self._failed,
                'current_page': self._current_page,
                'total_pages': self._total_pages,
                'percent': percent,
            }
