"""FastAPI application entry point - crawler dashboard."""
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backend.app.api.router import api_router
from backend.app.core.config import settings

logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": settings.api_version}


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler to log all errors."""
    logger.exception("ERROR: %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"detail": str(exc), "type": type(exc).__name__}
    )


app.include_router(api_router)


@app.on_event("startup")
async def startup_event():
    """Run on application startup."""
    base_url = f"http://{settings.host}:{settings.port}"
    logger.info("=" * 60)
    logger.info("%s v%s", settings.app_name, settings.api_version)
    logger.info("=" * 60)
    logger.info("CORS origins: %s", settings.cors_origins_list)
    logger.info("Data directory: %s", settings.data_dir)
    logger.info("API Docs:  %s/docs", base_url)
    logger.info("Health:    %s/api/health", base_url)


@app.on_event("shutdown")
async def shutdown_event():
    """Stop running crawlers on shutdown."""
    from backend.app.services.crawler_service import get_crawler_manager

    logger.info("Shutting down...")
    get_crawler_manager().close()
