"""
Blocking detection for responses served through the CDN protection layer.
Scores independent evidence additively and turns it into a verdict.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Mapping, Optional

from crawler.models import BlockingDetection, BlockType
from crawler.resilience.stats import BlockingStats

logger = logging.getLogger(__name__)


BLOCKING_STATUS_CODES = frozenset([403, 503, 520, 521, 522, 523, 524, 525, 526, 527, 530])

CHALLENGE_PATTERNS = [
    'checking your browser before accessing',
    'cloudflare ray id',
    'cf-ray',
    'cloudflare',
    'ddos protection by cloudflare',
    'please wait while we check your browser',
    'browser check',
    'security check',
    'cf-browser-verification',
    'cf-challenge-form',
]

ERROR_PATTERNS = [
    'error 1020',
    'access denied',
    'accès refusé',
    'blocked by cloudflare',
    'your ip has been blocked',
    'rate limited',
]

STATUS_WEIGHT = 0.7
CHALLENGE_WEIGHT = 0.3
ERROR_WEIGHT = 0.4
MINIMAL_CONTENT_WEIGHT = 0.2
HEADER_WEIGHT = 0.1

MINIMAL_CONTENT_LENGTH = 500


class BlockingDetector:
    """Classifies a response as blocked or legitimate."""

    def __init__(self, stats: Optional[BlockingStats] = None, threshold: float = 0.5):
        """
        Initialize detector.

        Args:
            stats: Counters to update per classification, private ones if None
            threshold: Accumulated confidence at which a response counts as blocked
        """
        self.stats = stats or BlockingStats()
        self.threshold = threshold

    def classify(
        self,
        status_code: Optional[int],
        headers: Optional[Mapping[str, str]],
        content: Optional[str]
    ) -> BlockingDetection:
        """
        Classify one response.

        Confidence is the raw sum of every signal that fired and is not
        clamped. Any status or content pattern match is a hard signal and
        blocks on its own; the soft signals (short content, CDN headers)
        only block once the sum reaches the threshold.

        Args:
            status_code: HTTP status, None if unknown
            headers: Response headers (any case)
            content: Rendered page content, None if unavailable

        Returns:
            BlockingDetection verdict
        """
        detection = BlockingDetection(status_code=status_code)
        hard_signal = False
        content_type: Optional[BlockType] = None

        if status_code in BLOCKING_STATUS_CODES:
            hard_signal = True
            detection.block_type = BlockType.HTTP_STATUS
            detection.confidence += STATUS_WEIGHT
            detection.indicators.append(f"HTTP {status_code} status code")

        if content:
            content_lower = content.lower()

            for pattern in CHALLENGE_PATTERNS:
                if pattern in content_lower:
                    hard_signal = True
                    content_type = content_type or BlockType.CHALLENGE_PAGE
                    detection.confidence += CHALLENGE_WEIGHT
                    detection.indicators.append(f"Content pattern: {pattern}")

            for pattern in ERROR_PATTERNS:
                if pattern in content_lower:
                    hard_signal = True
                    content_type = content_type or BlockType.ERROR_PAGE
                    detection.confidence += ERROR_WEIGHT
                    detection.indicators.append(f"Error pattern: {pattern}")

            if len(content) < MINIMAL_CONTENT_LENGTH and '<!doctype html>' not in content_lower:
                detection.confidence += MINIMAL_CONTENT_WEIGHT
                detection.indicators.append("Minimal content length")

        if headers and self._has_cdn_headers(headers):
            detection.confidence += HEADER_WEIGHT
            detection.indicators.append("Cloudflare headers detected")

        if detection.block_type is None:
            detection.block_type = content_type

        detection.is_blocked = hard_signal or detection.confidence >= self.threshold
        self.stats.record_request(detection.is_blocked)
        return detection

    @staticmethod
    def _has_cdn_headers(headers: Mapping[str, str]) -> bool:
        lowered = {str(k).lower(): str(v) for k, v in headers.items()}
        if 'cf-ray' in lowered or 'cf-cache-status' in lowered:
            return True
        return 'cloudflare' in lowered.get('server', '').lower()


def log_blocking_incident(url: str, detection: BlockingDetection, attempt: int):
    """Log one blocking incident as a structured payload."""
    entry = {
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'url': url,
        'attempt': attempt,
        **detection.to_dict(),
    }
    logger.warning("Blocking detected [attempt %d]: %s", attempt, json.dumps(entry))
