"""Crawler control routes."""
from fastapi import APIRouter, Depends, HTTPException

from backend.app.api.deps import get_manager
from backend.app.schemas import ActionResponse, CrawlerStatesResponse
from backend.app.services.crawler_service import CRAWLER_KINDS, CrawlerManager
from crawler.exceptions import CrawlerBusyError

router = APIRouter(tags=["crawlers"])


def _check_kind(kind: str):
    if kind not in CRAWLER_KINDS:
        raise HTTPException(status_code=404, detail=f"Unknown crawler: {kind}")


@router.get("/crawler-state", response_model=CrawlerStatesResponse)
def get_crawler_state(manager: CrawlerManager = Depends(get_manager)):
    """Running flag, progress, last result and recent log lines of both crawlers."""
    return manager.states()


@router.post("/crawlers/{kind}/start", response_model=ActionResponse)
def start_crawler(kind: str, manager: CrawlerManager = Depends(get_manager)):
    """Start a crawler in the background."""
    _check_kind(kind)
    try:
        manager.start(kind)
    except CrawlerBusyError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except FileNotFoundError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {"status": "started", "message": f"{kind} crawler started", "crawler": kind}


@router.post("/crawlers/{kind}/stop", response_model=ActionResponse)
def stop_crawler(kind: str, manager: CrawlerManager = Depends(get_manager)):
    """Ask a running crawler to stop after its current items."""
    _check_kind(kind)
    if not manager.stop(kind):
        raise HTTPException(status_code=400, detail=f"{kind} crawler is not running")

    return {"status": "stopping", "message": f"Stop requested for {kind} crawler", "crawler": kind}
