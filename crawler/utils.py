"""
Shared utility functions for the crawler.
"""

import csv
import logging
from datetime import datetime
from typing import List, Optional, Sequence, TypeVar

from crawler.csv_store import PathLike, read_rows

logger = logging.getLogger(__name__)

T = TypeVar("T")

PROFILE_URL_COLUMN = 2


def split_batches(items: Sequence[T], workers: int) -> List[List[T]]:
    """
    Split items into at most ``workers`` contiguous, non-empty batches.

    Args:
        items: Pages or URLs to distribute
        workers: Number of worker threads

    Returns:
        Batches whose sizes differ by at most one
    """
    items = list(items)
    if not items:
        return []
    workers = max(1, min(workers, len(items)))
    size, extra = divmod(len(items), workers)

    batches = []
    start = 0
    for i in range(workers):
        end = start + size + (1 if i < extra else 0)
        batches.append(items[start:end])
        start = end
    return batches


def read_profile_urls(path: PathLike, limit: Optional[int] = None) -> List[str]:
    """
    Read profile URLs from the listing file's URL column.

    Args:
        path: Listing CSV
        limit: Keep at most this many URLs

    Returns:
        URLs in file order, only ``http`` values
    """
    try:
        rows = read_rows(path)
    except (OSError, csv.Error, UnicodeError) as e:
        logger.error("Could not read %s: %s", path, e)
        return []

    urls = []
    for row in rows:
        if len(row) <= PROFILE_URL_COLUMN:
            continue
        url = row[PROFILE_URL_COLUMN].strip()
        if url.startswith("http"):
            urls.append(url)

    if limit is not None and limit > 0:
        urls = urls[:limit]
    logger.info("Found %d profile URLs", len(urls))
    return urls


def now_iso() -> str:
    return datetime.now().isoformat()


def seconds_between(started_at: str, completed_at: str) -> float:
    start = datetime.fromisoformat(started_at)
    end = datetime.fromisoformat(completed_at)
    return (end - start).total_seconds()
