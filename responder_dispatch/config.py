"""Application configuration using Pydantic settings."""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

EscalationLevelName = Literal["normal", "elevated", "critical", "emergency"]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database
    database_url: str = "postgresql+asyncpg://localhost:5432/responder_dispatch"
    storage_timeout_seconds: float = 10.0
    storage_max_retries: int = 1

    # Dispatch
    escalation_level_no_responders: EscalationLevelName = "critical"
    escalation_level_no_location: EscalationLevelName = "elevated"
    auto_dispatch_on_alert: bool = True

    # Re-dispatch of incidents left in "reported"
    redispatch_enabled: bool = True
    redispatch_interval_minutes: int = 2
    redispatch_batch_size: int = 25

    # API settings
    api_v1_prefix: str = "/api/v1"
    functions_prefix: str = "/functions/v1"
    cors_origins: list[str] = ["*"]
    cors_allow_headers: list[str] = ["authorization", "x-client-info", "apikey", "content-type"]
    rate_limit_per_minute: int = 60
    rate_limit_enabled: bool = True

    # Environment
    debug: bool = False


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
