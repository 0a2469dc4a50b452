"""Blocking statistics routes."""
from fastapi import APIRouter, Depends

from backend.app.api.deps import get_manager
from backend.app.schemas import BlockingStatsResponse
from backend.app.services.crawler_service import CrawlerManager

router = APIRouter(prefix="/stats", tags=["stats"])


@router.get("", response_model=BlockingStatsResponse)
def get_stats(manager: CrawlerManager = Depends(get_manager)):
    """Blocking and retry counters of the current or last profile run."""
    return manager.profile_stats()
