"""Application configuration."""
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from crawler.config import CrawlerConfig, RetryConfig


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=Path(__file__).parent.parent.parent.parent / ".env",
        env_file_encoding="utf-8",
        env_prefix="CRAWLER_",
        extra="ignore",
    )

    # API
    app_name: str = "Profile Crawler Dashboard"
    api_version: str = "1.0.0"
    debug: bool = False

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # CORS - accepts comma-separated string from env
    cors_origins: str = "http://localhost:5173,http://localhost:3000"

    @property
    def cors_origins_list(self) -> list[str]:
        """Return CORS origins as a list."""
        if not self.cors_origins:
            return ["http://localhost:5173", "http://localhost:3000"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    # Crawler
    base_url: str = "https://www.en.fgirl.ch"
    data_dir: str = "."
    workers: int = 10
    headless: bool = True
    max_attempts: int = 8
    retry_delay: float = 0.1
    max_retry_delay: float = 0.1
    backoff_factor: float = 1.0
    challenge_wait: float = 0.1
    attempt_timeout: float = 15.0
    max_profiles: Optional[int] = None
    save_debug: bool = False

    # Proxy (host:port)
    proxy: Optional[str] = None
    proxy_user: Optional[str] = None
    proxy_password: Optional[str] = None

    # Lines of log kept per crawler for the dashboard
    log_buffer_size: int = 100

    def to_crawler_config(self) -> CrawlerConfig:
        """Build the crawl engine configuration from these settings."""
        return CrawlerConfig(
            base_url=self.base_url,
            data_dir=self.data_dir,
            workers=self.workers,
            headless=self.headless,
            save_debug=self.save_debug,
            max_profiles=self.max_profiles,
            proxy=self.proxy,
            proxy_user=self.proxy_user,
            proxy_password=self.proxy_password,
            retry=RetryConfig(
                max_attempts=self.max_attempts,
                base_delay=self.retry_delay,
                max_delay=self.max_retry_delay,
                backoff_factor=self.backoff_factor,
                challenge_wait=self.challenge_wait,
                attempt_timeout=self.attempt_timeout,
            ),
        )


settings = Settings()
