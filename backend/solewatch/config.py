"""Application configuration via Pydantic Settings."""

from typing import Optional, Set

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Global application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # App
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    # Storage
    BLOB_DIR: str = "./data/blobs"
    CATALOG_KEY: str = "deals.json"
    ALERTS_KEY: str = "alerts.json"

    # Sources
    SOURCES_FILE: str = "./sources.json"
    ENABLED_SOURCES: str = ""  # Comma-separated source ids; empty enables all
    SOURCE_CONCURRENCY: int = 4
    REQUEST_TIMEOUT_SECONDS: float = 30.0
    MAX_PAGES: int = 50
    PAGE_DELAY_MIN_SECONDS: float = 3.0
    PAGE_DELAY_MAX_SECONDS: float = 5.0
    HTTP_USER_AGENT: str = (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
    )

    # Deal validation
    MIN_DISCOUNT_PERCENT: int = 5
    MAX_DISCOUNT_PERCENT: int = 90
    MIN_PRICE: float = 10.0
    MAX_PRICE: float = 1000.0

    # Alerts
    ALERT_TTL_DAYS: int = 30
    ALERT_COOLDOWN_HOURS: int = 24
    ALERT_MAX_ACTIVE_PER_EMAIL: int = 7
    ALERT_EMAIL_TOP_N: int = 12

    # Signed manage links
    ALERTS_LINK_SECRET: str = ""
    MANAGE_LINK_TTL_DAYS: int = 30
    SITE_BASE_URL: str = "https://shoebeagle.com"

    # SendGrid
    SENDGRID_API_KEY: str = ""
    SENDGRID_ALERTS_EMAIL: str = ""
    SENDGRID_FROM_EMAIL: str = ""

    # Cron
    CRON_SECRET: str = ""
    SCHEDULER_ENABLED: bool = False
    MERGE_CRON_HOUR: int = 6
    ALERTS_CRON_HOUR: int = 7

    @model_validator(mode="after")
    def fix_site_base_url(self) -> "Settings":
        """Trailing slashes would double up when links are joined."""
        self.SITE_BASE_URL = self.SITE_BASE_URL.rstrip("/")
        return self

    def get_enabled_sources(self) -> Optional[Set[str]]:
        """Parse ENABLED_SOURCES into a set of source ids.

        Returns:
            Set of source ids, or None when every configured source is enabled
        """
        ids = [s.strip() for s in self.ENABLED_SOURCES.split(",") if s.strip()]
        return set(ids) if ids else None

    def get_sender_email(self) -> str:
        """Alerts sender address, falling back to the generic sender."""
        return self.SENDGRID_ALERTS_EMAIL or self.SENDGRID_FROM_EMAIL


settings = Settings()
