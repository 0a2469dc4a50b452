"""Pydantic schemas."""
from backend.app.schemas.crawler import (
    ActionResponse,
    BlockingStatsResponse,
    CrawlerStateResponse,
    CrawlerStatesResponse,
    CrawlResultResponse,
    FileCountsResponse,
    ProgressResponse,
    ReconciliationResponse,
    SyncResponse,
)

__all__ = [
    "ActionResponse",
    "BlockingStatsResponse",
    "CrawlerStateResponse",
    "CrawlerStatesResponse",
    "CrawlResultResponse",
    "FileCountsResponse",
    "ProgressResponse",
    "ReconciliationResponse",
    "SyncResponse",
]
