"""
Application configuration management.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Persistence
    database_url: Optional[str] = None
    redis_url: Optional[str] = None
    store_backend: Optional[str] = None  # mysql, redis, memory, none; inferred when unset
    db_enabled: bool = True

    # Operator channel
    error_log_webhook_url: Optional[str] = None
    support_url: Optional[str] = None
    public_base_url: Optional[str] = None  # links notifications to /api/errors/{id}
    notification_timeout_seconds: float = 10.0

    # Admin API
    admin_api_key: Optional[str] = None

    # Notification throttle
    throttle_limit: int = 5
    throttle_window_seconds: float = 60.0
    throttle_sweep_interval_seconds: float = 300.0

    # Maintenance
    prune_after_days: Optional[int] = None
    prune_interval_seconds: int = 86400

    # Application
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = False


# Global settings instance
settings = Settings()
