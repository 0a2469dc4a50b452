"""
Crawler run management for the dashboard.
Starts crawl runs in background threads and keeps their state and log tail.
"""
import logging
import threading
from collections import deque
from datetime import datetime
from pathlib import Path
from typing import Callable, Deque, Dict, Optional

from backend.app.core.config import Settings, settings as default_settings
from crawler.base_crawler import BaseCrawler
from crawler.config import CrawlerConfig
from crawler.csv_store import LISTING_SCHEMA
from crawler.exceptions import CrawlerBusyError
from crawler.listing_crawler import ListingCrawler
from crawler.models import CrawlResult, ReconciliationReport
from crawler.profile_crawler import ProfileCrawler
from crawler.reconciler import CsvReconciler
from crawler.resilience.cancellation import CancellationToken
from crawler.resilience.stats import BlockingStats, CrawlProgress

logger = logging.getLogger(__name__)

LISTING = "listing"
PROFILES = "profiles"
CRAWLER_KINDS = (LISTING, PROFILES)

LOG_FORMAT = "%(asctime)s %(levelname)s %(message)s"

CrawlerFactory = Callable[..., BaseCrawler]


class RunLogHandler(logging.Handler):
    """Keeps the last N log lines emitted by one crawler's threads."""

    def __init__(self, kind: str, capacity: int = 100):
        super().__init__(level=logging.INFO)
        self.kind = kind
        self.lines: Deque[str] = deque(maxlen=capacity)
        self.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S"))

    def emit(self, record: logging.LogRecord):
        # Run thread is "<kind>-run", its workers "<kind>-worker_<n>"
        if not record.threadName.startswith(f"{self.kind}-"):
            return
        try:
            self.lines.append(self.format(record))
        except Exception:
            self.handleError(record)

    def tail(self) -> list:
        return list(self.lines)


class RunState:
    """State of one crawler kind: the active run, or the last finished one."""

    def __init__(self, kind: str, log_capacity: int):
        self.kind = kind
        self.log_handler = RunLogHandler(kind, log_capacity)
        self.thread: Optional[threading.Thread] = None
        self.token: Optional[CancellationToken] = None
        self.stats = BlockingStats()
        self.progress = CrawlProgress()
        self.started_at: Optional[str] = None
        self.completed_at: Optional[str] = None
        self.result: Optional[CrawlResult] = None
        self.error: Optional[str] = None

    @property
    def running(self) -> bool:
        return self.thread is not None and self.thread.is_alive()

    def to_dict(self) -> dict:
        return {
            "running": self.running,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "stop_requested": bool(self.token and self.token.cancelled),
            "progress": self.progress.snapshot(),
            "stats": self.stats.snapshot(),
            "last_result": self.result.to_dict() if self.result else None,
            "error": self.error,
            "logs": self.log_handler.tail(),
        }


class CrawlerManager:
    """Owns the listing and profile crawler runs of this process."""

    def __init__(
        self,
        app_settings: Optional[Settings] = None,
        factories: Optional[Dict[str, CrawlerFactory]] = None
    ):
        self.settings = app_settings or default_settings
        self.factories = factories or {LISTING: ListingCrawler, PROFILES: ProfileCrawler}
        self._lock = threading.Lock()
        self._states = {
            kind: RunState(kind, self.settings.log_buffer_size) for kind in CRAWLER_KINDS
        }
        root = logging.getLogger("crawler")
        if root.level == logging.NOTSET:
            root.setLevel(logging.INFO)
        for state in self._states.values():
            root.addHandler(state.log_handler)

    @property
    def config(self) -> CrawlerConfig:
        return self.settings.to_crawler_config()

    def file_paths(self) -> Dict[str, Path]:
        config = self.config
        return {
            "list": config.listing_path_on_disk,
            "list-stored": config.stored_path_on_disk,
            "detail": config.detail_path_on_disk,
        }

    def _state(self, kind: str) -> RunState:
        if kind not in self._states:
            raise ValueError(f"Unknown crawler: {kind}")
        return self._states[kind]

    def start(self, kind: str) -> dict:
        """
        Start a crawl run in a background thread.

        Raises:
            ValueError: Unknown crawler kind
            CrawlerBusyError: A run of this kind is already active
            FileNotFoundError: Profile run requested before any listing exists
        """
        state = self._state(kind)
        config = self.config

        with self._lock:
            if state.running:
                raise CrawlerBusyError(f"{kind} crawler is already running")
            if kind == PROFILES and not config.listing_path_on_disk.exists():
                raise FileNotFoundError(f"{config.listing_file} not found, run the listing crawler first")

            state.token = CancellationToken()
            state.stats = BlockingStats()
            state.progress = CrawlProgress()
            state.started_at = datetime.now().isoformat()
            state.completed_at = None
            state.error = None
            state.log_handler.lines.clear()

            crawler = self.factories[kind](
                config,
                token=state.token,
                stats=state.stats,
                progress=state.progress
            )
            state.thread = threading.Thread(
                target=self._run,
                args=(state, crawler),
                name=f"{kind}-run",
                daemon=True
            )
            state.thread.start()

        logger.info("%s crawler started", kind)
        return state.to_dict()

    def _run(self, state: RunState, crawler: BaseCrawler):
        try:
            state.result = crawler.run()
        except Exception as e:
            logger.exception("%s crawler failed", state.kind)
            state.error = str(e)
        finally:
            state.completed_at = datetime.now().isoformat()

    def stop(self, kind: str) -> bool:
        """
        Ask a running crawler to stop after its current items.

        Returns:
            False if the crawler was not running
        """
        state = self._state(kind)
        with self._lock:
            if not state.running or state.token is None:
                return False
            state.token.cancel()
        logger.info("Stop requested for %s crawler", kind)
        return True

    def close(self):
        """Stop active runs and detach the log handlers."""
        for kind in CRAWLER_KINDS:
            self.stop(kind)
        root = logging.getLogger("crawler")
        for state in self._states.values():
            root.removeHandler(state.log_handler)

    def wait(self, kind: str, timeout: Optional[float] = None):
        thread = self._state(kind).thread
        if thread is not None:
            thread.join(timeout)

    def state(self, kind: str) -> dict:
        return self._state(kind).to_dict()

    def states(self) -> dict:
        return {kind: state.to_dict() for kind, state in self._states.items()}

    def sync(self, force: bool = False) -> ReconciliationReport:
        """
        Reconcile the current and stored listing files on demand.

        Raises:
            CrawlerBusyError: The listing crawler is writing the current file
            FileNotFoundError: No current listing file yet
            ReconciliationError: On I/O failure during the rewrite
        """
        config = self.config
        # Held throughout so a listing run cannot start mid-sync
        with self._lock:
            if self._states[LISTING].running:
                raise CrawlerBusyError("Listing crawler is running, try again when it finishes")
            if not config.listing_path_on_disk.exists():
                raise FileNotFoundError(f"{config.listing_file} not found")

            return CsvReconciler(LISTING_SCHEMA).reconcile(
                config.listing_path_on_disk,
                config.stored_path_on_disk,
                force=force
            )

    def profile_stats(self) -> dict:
        """Blocking and retry counters of the current or last profile run."""
        return self._states[PROFILES].stats.snapshot()


_manager: Optional[CrawlerManager] = None
_manager_lock = threading.Lock()


def get_crawler_manager() -> CrawlerManager:
    global _manager
    with _manager_lock:
        if _manager is None:
            _manager = CrawlerManager()
        return _manager
