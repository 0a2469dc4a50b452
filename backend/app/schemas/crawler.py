"""Crawler dashboard schemas."""
from typing import Dict, List, Optional
from pydantic import BaseModel


class ProgressResponse(BaseModel):
    """Progress counters of one run."""
    expected_total: int = 0
    processed: int = 0
    written: int = 0
    duplicates: int = 0
    failed: int = 0
    current_page: Optional[int] = None
    total_pages: int = 0
    percent: float = 0.0


class BlockingStatsResponse(BaseModel):
    """Blocking and retry counters."""
    total_requests: int = 0
    blocked_requests: int = 0
    blocking_rate: float = 0.0
    successful_retries: int = 0
    failed_retries: int = 0
    retry_success_rate: float = 0.0


class ReconciliationResponse(BaseModel):
    """Outcome of one reconciliation pass."""
    new_records: int
    duplicates_removed: int
    obsolete_records: int
    total_stored: int
    total_current: int


class CrawlResultResponse(BaseModel):
    """Result of a finished run."""
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
    reconciliation: Optional[ReconciliationResponse] = None
    stats: BlockingStatsResponse = BlockingStatsResponse()


class CrawlerStateResponse(BaseModel):
    """State of one crawler."""
    running: bool
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    stop_requested: bool = False
    progress: ProgressResponse
    stats: BlockingStatsResponse
    last_result: Optional[CrawlResultResponse] = None
    error: Optional[str] = None
    logs: List[str] = []


class CrawlerStatesResponse(BaseModel):
    """State of both crawlers."""
    listing: CrawlerStateResponse
    profiles: CrawlerStateResponse


class ActionResponse(BaseModel):
    """Acknowledgement of a start/stop request."""
    status: str
    message: str
    crawler: str


class SyncResponse(BaseModel):
    """On-demand reconciliation result."""
    status: str
    report: ReconciliationResponse


class FileCountsResponse(BaseModel):
    """Row counts of the data files."""
    files: Dict[str, int]
