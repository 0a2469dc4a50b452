"""Run the dashboard server locally."""
import logging

import uvicorn
from dotenv import load_dotenv

load_dotenv()

from backend.app.core.config import settings  # noqa: E402

if __name__ == "__main__":
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s [%(threadName)s] %(levelname)s %(name)s: %(message)s"
    )

    uvicorn.run(
        "backend.app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
