"""API dependencies."""
from backend.app.services.crawler_service import CrawlerManager, get_crawler_manager


def get_manager() -> CrawlerManager:
    """Crawler manager of this process; overridden in tests."""
    return get_crawler_manager()
