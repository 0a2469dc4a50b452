"""
Data models for the crawler.
"""

from dataclasses import dataclass, field, asdict, fields
from enum import Enum
from typing import List, Optional


class BlockType(str, Enum):
    """Category of a blocking verdict."""
    HTTP_STATUS = "HTTP_STATUS"
    CHALLENGE_PAGE = "CHALLENGE_PAGE"
    ERROR_PAGE = "ERROR_PAGE"
    NAVIGATION_ERROR = "NAVIGATION_ERROR"
    CLOUDFLARE_CHALLENGE = "CLOUDFLARE_CHALLENGE"
    ACCESS_DENIED = "ACCESS_DENIED"
    BLOCKED_STATUS = "BLOCKED_STATUS"
    CLOUDFLARE_REDIRECT = "CLOUDFLARE_REDIRECT"
    INCOMPLETE_DATA = "INCOMPLETE_DATA"
    NO_DATA = "NO_DATA"


@dataclass
class BlockingDetection:
    """Verdict about a single fetch attempt. Never persisted."""
    is_blocked: bool = False
    block_type: Optional[BlockType] = None
    # Raw additive sum; may exceed 1.0
    confidence: float = 0.0
    indicators: List[str] = field(default_factory=list)
    status_code: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            'is_blocked': self.is_blocked,
            'block_type': self.block_type.value if self.block_type else None,
            'confidence': round(self.confidence, 2),
            'indicators': list(self.indicators),
            'status_code': self.status_code,
        }


@dataclass
class PageResponse:
    """What a page fetcher saw after navigating to a URL."""
    url: str
    status: Optional[int] = None
    headers: dict = field(default_factory=dict)
    content: Optional[str] = None


@dataclass(frozen=True)
class ListingRecord:
    """One profile card discovered on a listing page."""
    name: str
    location: str
    profile_url: str


@dataclass(frozen=True)
class ProfileRecord:
    """One profile detail page. The URL is the unique key."""
    url: str
    canton: str = ""
    city: str = ""
    nickname: str = ""
    category: str = ""
    phone: str = ""
    status: str = ""
    certified: str = ""
    about: str = ""
    visits: str = ""
    services: str = ""
    location: str = ""
    description: str = ""
    link: str = ""
    likes: str = ""
    followers: str = ""
    reviews: str = ""

    # Diagnostics, only set on terminal failure records; never written to CSV
    last_error: Optional[str] = field(default=None, compare=False)
    last_detection: Optional[BlockingDetection] = field(default=None, compare=False)

    @classmethod
    def placeholder(cls, url: str, nickname: str, status: str, **diagnostics) -> "ProfileRecord":
        """Build a sentinel record carrying no profile data."""
        return cls(url=url, nickname=nickname, status=status, **diagnostics)

    @property
    def is_retry_exhausted(self) -> bool:
        return self.nickname == RETRY_EXHAUSTED and self.status == FAILED_AFTER_RETRIES

    def to_dict(self) -> dict:
        data = asdict(self)
        data['last_detection'] = self.last_detection.to_dict() if self.last_detection else None
        return data


# Column order of the detail CSV, matching ProfileRecord payload fields
PROFILE_FIELDS = [f.name for f in fields(ProfileRecord) if f.name not in ('last_error', 'last_detection')]

# Sentinel nicknames/statuses produced by the fetch layer and the retry loop
ACCESS_DENIED = "ACCESS_DENIED"
ERROR = "ERROR"
RETRY_EXHAUSTED = "RETRY_EXHAUSTED"
STATUS_BLOCKED = "blocked"
STATUS_ERROR = "error"
FAILED_AFTER_RETRIES = "failed_after_retries"


@dataclass
class ReconciliationReport:
    """Outcome of one reconciliation pass."""
    new_records: int
    duplicates_removed: int
    obsolete_records: int
    total_stored: int
    total_current: int

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class CrawlResult:
    """Result of a crawl run."""
    success: bool
    mode: str
    started_at: str
    completed_at: str
    total_discovered: int
    total_written: int
    total_duplicates: int
    total_failed: int
    cancelled: bool = False
    duration_seconds: float = 0.0
    reconciliation: Optional[ReconciliationReport] = None
    stats: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        data = asdict(self)
        data['reconciliation'] = self.reconciliation.to_dict() if self.reconciliation else None
        return data
