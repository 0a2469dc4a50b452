"""CSV download and reconciliation routes."""
from datetime import date

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse

from backend.app.api.deps import get_manager
from backend.app.schemas import FileCountsResponse, SyncResponse
from backend.app.services.crawler_service import CrawlerManager
from crawler.csv_store import count_rows
from crawler.exceptions import CrawlerBusyError, ReconciliationError

router = APIRouter(tags=["files"])


@router.get("/download/{name}")
def download_csv(name: str, manager: CrawlerManager = Depends(get_manager)):
    """Download one of the data files as a dated attachment."""
    paths = manager.file_paths()
    if name not in paths:
        raise HTTPException(status_code=404, detail=f"Unknown file: {name}")

    path = paths[name]
    if not path.exists():
        raise HTTPException(status_code=404, detail=f"{path.name} not found")
    if count_rows(path) == 0:
        raise HTTPException(status_code=400, detail=f"{path.name} has no data")

    return FileResponse(
        path,
        media_type="text/csv",
        filename=f"{name}-{date.today().isoformat()}.csv"
    )


@router.get("/files", response_model=FileCountsResponse)
def get_file_counts(manager: CrawlerManager = Depends(get_manager)):
    """Data rows per file, 0 for missing files."""
    return {"files": {name: count_rows(path) for name, path in manager.file_paths().items()}}


@router.post("/sync", response_model=SyncResponse)
def sync_listing(force: bool = False, manager: CrawlerManager = Depends(get_manager)):
    """Reconcile the current and stored listing files."""
    try:
        report = manager.sync(force=force)
    except CrawlerBusyError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except FileNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ReconciliationError as e:
        raise HTTPException(status_code=500, detail=str(e))

    return {"status": "completed", "report": report.to_dict()}
