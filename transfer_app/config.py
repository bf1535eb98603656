"""Transfer app configuration."""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Environment-driven settings (CHAINRAILS_* variables or .env)."""

    api_url: str = "https://api.chainrails.io/api/v1"
    api_key: str = ""
    http_timeout: float = 30.0
    # Reads only; POST /intents is never retried
    http_max_retries: int = 3
    http_retry_base_delay: float = 0.5
    http_retry_max_delay: float = 10.0

    # Empty secret = webhook verification skipped (development only)
    webhook_secret: str = ""
    # Redelivery dedup by event id (Redis); off keeps every delivery
    webhook_dedupe: bool = False
    redis_url: str = "redis://localhost:6379/0"

    log_level: str = "INFO"

    model_config = {"env_prefix": "CHAINRAILS_", "env_file": ".env", "extra": "ignore"}


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()
