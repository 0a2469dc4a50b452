"""
Resilience components for the crawler.
"""

from .blocking_detector import BlockingDetector
from .cancellation import CancellationToken
from .countermeasures import AntiDetection
from .health_monitor import HealthMonitor
from .rate_limiter import RateLimiter
from .retry_handler import RetryHandler
from .stats import BlockingStats, CrawlProgress
from .validity import determine_block_type, is_valid_profile

__all__ = [
    'AntiDetection',
    'BlockingDetector',
    'BlockingStats',
    'CancellationToken',
    'CrawlProgress',
    'HealthMonitor',
    'RateLimiter',
    'RetryHandler',
    'determine_block_type',
    'is_valid_profile',
]
