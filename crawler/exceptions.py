"""
Exception types raised by the crawler.

Blocking, invalid data and retry exhaustion are modelled as data, not
exceptions; these cover the cases that do cross a boundary.
"""


class CrawlerError(Exception):
    """Base class for crawler errors."""


class NavigationError(CrawlerError):
    """Transport-level failure while loading a page (timeout, net error, dead session)."""


class BlockedError(CrawlerError):
    """A page stayed blocked after the challenge wait."""

    def __init__(self, message: str, detection=None):
        super().__init__(message)
        self.detection = detection


class ReconciliationError(CrawlerError):
    """Reconciliation could not read or rewrite one of its files."""


class CrawlerBusyError(CrawlerError):
    """A crawl run of the same kind is already active."""
