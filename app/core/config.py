"""Application configuration."""
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str = "sqlite+aiosqlite:///./storefront.db"
    database_echo: bool = False
    sqlite_busy_timeout_seconds: float = 15.0

    # Logging
    log_level: str = "INFO"

    # Storefront
    store_name: str = "Storefront"
    pickup_address: str = "our kitchen"
    transfer_alias: str = ""
    catalog_file: Optional[str] = None

    # Notification channel (phone number used for the deep link)
    notification_phone: Optional[str] = None

    # Ready-time estimate for immediate orders
    eta_base_minutes: int = 30
    eta_congestion_threshold: int = 5
    eta_congestion_increment_minutes: int = 15

    # Atomic commit
    commit_timeout_seconds: float = 10.0

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )


settings = Settings()
