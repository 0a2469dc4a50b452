"""
Crawler runner.

Usage:
    python run_crawler.py --mode listing          # Crawl listing pages, then reconcile
    python run_crawler.py --mode profiles         # Crawl every profile in list.csv
    python run_crawler.py --mode sync             # Reconcile list.csv with list-stored.csv
    python run_crawler.py --visible --workers 2   # Show browser windows, two workers
"""
import argparse
import logging
import signal
import sys
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

from backend.app.core.config import Settings  # noqa: E402
from crawler.base_crawler import BaseCrawler  # noqa: E402
from crawler.config import CrawlerConfig  # noqa: E402
from crawler.exceptions import ReconciliationError  # noqa: E402
from crawler.listing_crawler import ListingCrawler  # noqa: E402
from crawler.profile_crawler import ProfileCrawler  # noqa: E402
from crawler.reconciler import reconcile  # noqa: E402

logger = logging.getLogger("run_crawler")

# Active crawler for signal handling
_crawler: Optional[BaseCrawler] = None


def signal_handler(signum, frame):
    """Handle SIGINT/SIGTERM for graceful shutdown."""
    logger.warning("STOP SIGNAL RECEIVED - finishing current items...")
    if _crawler:
        _crawler.stop()
    else:
        sys.exit(0)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Profile directory crawler')
    parser.add_argument('--mode', type=str, default='listing',
                        choices=['listing', 'profiles', 'sync'],
                        help='What to run (default: listing)')
    parser.add_argument('--workers', type=int, default=None,
                        help='Number of browser workers')
    parser.add_argument('--visible', action='store_true',
                        help='Show browser windows (default: headless)')
    parser.add_argument('--max-attempts', type=int, default=None,
                        help='Attempts per profile URL before giving up')
    parser.add_argument('--retry-delay', type=float, default=None,
                        help='Seconds between attempts on one URL')
    parser.add_argument('--max-retry-delay', type=float, default=None,
                        help='Upper bound for the delay between attempts')
    parser.add_argument('--backoff-factor', type=float, default=None,
                        help='Delay multiplier per attempt (1.0 keeps it fixed)')
    parser.add_argument('--challenge-wait', type=float, default=None,
                        help='Seconds to let a challenge page settle before re-reading it')
    parser.add_argument('--attempt-timeout', type=float, default=None,
                        help='Page load timeout per attempt in seconds')
    parser.add_argument('--data-dir', type=str, default=None,
                        help='Directory holding the CSV files')
    parser.add_argument('--max-profiles', type=int, default=None,
                        help='Crawl at most this many profiles')
    parser.add_argument('--force', action='store_true',
                        help='Sync mode: reconcile even if list.csv is unchanged')
    parser.add_argument('--debug', action='store_true',
                        help='Verbose logging and debug HTML files')
    return parser


def build_config(args: argparse.Namespace) -> CrawlerConfig:
    """Crawler configuration from settings, with command-line overrides applied."""
    config = Settings().to_crawler_config()
    if args.workers:
        config.workers = args.workers
    if args.visible:
        config.headless = False
    if args.max_attempts:
        config.retry.max_attempts = args.max_attempts
    if args.retry_delay is not None:
        config.retry.base_delay = args.retry_delay
    if args.max_retry_delay is not None:
        config.retry.max_delay = args.max_retry_delay
    if args.backoff_factor is not None:
        config.retry.backoff_factor = args.backoff_factor
    if args.challenge_wait is not None:
        config.retry.challenge_wait = args.challenge_wait
    if args.attempt_timeout is not None:
        config.retry.attempt_timeout = args.attempt_timeout
    if args.data_dir:
        config.data_dir = args.data_dir
    if args.max_profiles:
        config.max_profiles = args.max_profiles
    if args.debug:
        config.save_debug = True
    return config


def main(argv=None) -> int:
    global _crawler

    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s [%(threadName)s] %(levelname)s %(message)s",
        datefmt="%H:%M:%S"
    )

    config = build_config(args)

    if args.mode == 'sync':
        try:
            report = reconcile(
                config.listing_path_on_disk,
                config.stored_path_on_disk,
                force=args.force
            )
        except ReconciliationError as e:
            logger.error("Sync failed: %s", e)
            return 1
        logger.info(
            "Sync done: %d new, %d duplicates removed, %d obsolete, %d stored, %d current",
            report.new_records, report.duplicates_removed, report.obsolete_records,
            report.total_stored, report.total_current
        )
        return 0

    crawler_class = ListingCrawler if args.mode == 'listing' else ProfileCrawler
    _crawler = crawler_class(config)

    signal.signal(signal.SIGINT, signal_handler)
    # SIGTERM is not reliably available on Windows
    if hasattr(signal, 'SIGTERM') and sys.platform != 'win32':
        signal.signal(signal.SIGTERM, signal_handler)

    logger.info("Starting %s crawl (press Ctrl+C to stop)", args.mode)
    result = _crawler.run()

    logger.info("=" * 60)
    logger.info("CRAWL COMPLETE")
    logger.info("=" * 60)
    logger.info("Mode:        %s", result.mode)
    logger.info("Success:     %s", result.success)
    logger.info("Cancelled:   %s", result.cancelled)
    logger.info("Duration:    %.1f minutes", result.duration_seconds / 60)
    logger.info("Discovered:  %d", result.total_discovered)
    logger.info("Written:     %d", result.total_written)
    logger.info("Duplicates:  %d", result.total_duplicates)
    logger.info("Failed:      %d", result.total_failed)
    if result.reconciliation:
        r = result.reconciliation
        logger.info(
            "Sync:        %d new, %d duplicates removed, %d obsolete",
            r.new_records, r.duplicates_removed, r.obsolete_records
        )

    return 0 if result.success else 1


if __name__ == '__main__':
    sys.exit(main())
