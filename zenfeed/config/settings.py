"""Application settings using Pydantic Settings for environment-based configuration."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Central configuration for the ZenFeed aggregation service.

    Values come from the process environment or a local .env file, keyed by
    the upper-cased field name (YOUTUBE_API_KEY, MAX_CONCURRENT_FETCHES).
    Platform credentials here are app-level; a user's connected account
    token overrides them per request.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    environment: Literal["development", "staging", "production"] = "development"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    debug: bool = False

    # Platform credentials (app-level fallbacks; per-user tokens take precedence)
    youtube_api_key: str | None = Field(
        default=None,
        description="YouTube Data API key, comma-separated for rotation",
    )
    twitter_bearer_token: str | None = None
    instagram_access_token: str | None = None

    # Outbound HTTP
    user_agent: str = "ZenFeed/1.0 (Content Aggregator)"
    fetch_timeout_seconds: float = Field(default=30.0, gt=0.0, le=120.0)
    validation_timeout_seconds: float = Field(default=10.0, gt=0.0, le=60.0)
    info_timeout_seconds: float = Field(default=15.0, gt=0.0, le=60.0)

    # HTTP retry configuration (0 = single pass, no retries)
    max_http_retries: int = Field(default=0, ge=0, le=10)
    max_backoff_seconds: float = Field(default=10.0, ge=1.0, le=300.0)

    # Aggregation limits
    default_fetch_limit: int = Field(default=10, ge=1)
    batch_limit_cap: int = Field(default=100, ge=1)
    single_limit_cap: int = Field(default=50, ge=1)
    max_concurrent_fetches: int = Field(default=5, ge=1, le=50)

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8001
    request_timeout_seconds: float = Field(default=60.0, ge=0.0)
    cors_origins: str = "http://localhost:3000"
    cors_allow_credentials: bool = True

    # Observability
    metrics_enabled: bool = True
    metrics_port: int = 8000

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def youtube_configured(self) -> bool:
        """Check if a YouTube API key is configured."""
        return bool(self.youtube_api_key and self.youtube_api_key.strip())

    @property
    def twitter_configured(self) -> bool:
        """Check if a Twitter bearer token is configured."""
        return self.twitter_bearer_token is not None

    @property
    def instagram_configured(self) -> bool:
        """Check if an Instagram access token is configured."""
        return self.instagram_access_token is not None


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are loaded only once.
    Clear cache with get_settings.cache_clear() if needed.
    """
    return Settings()
