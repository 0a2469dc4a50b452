"""Main API router - aggregates all route modules."""
from fastapi import APIRouter

from backend.app.api.routes import crawlers, files, stats

api_router = APIRouter(prefix="/api")

api_router.include_router(crawlers.router)
api_router.include_router(files.router)
api_router.include_router(stats.router)
