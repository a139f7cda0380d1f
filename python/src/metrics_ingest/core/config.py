"""
Application configuration using Pydantic Settings.

Loads process-wide defaults from environment variables with validation.
Per-tenant values live in ``ClientConfig`` and are passed explicitly to
each client, so clients with different limits can coexist in one process.
"""

from typing import Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable loading."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Environment
    ENVIRONMENT: str = Field(default="development")
    LOG_LEVEL: str = Field(default="INFO")

    # Transport
    HTTP_TIMEOUT_SECONDS: float = Field(default=30.0, gt=0)

    # Result cache
    CACHE_TTL_SECONDS: float = Field(default=300.0, gt=0)
    CACHE_SWEEP_INTERVAL_SECONDS: float = Field(default=300.0, gt=0)

    # Retry
    MAX_RETRIES: int = Field(default=3, ge=0)
    RETRY_INITIAL_DELAY_SECONDS: float = Field(default=1.0, ge=0)
    RETRY_BACKOFF_MULTIPLIER: float = Field(default=2.0, ge=1)

    # Rate limiting
    RATE_LIMIT_DEFAULT_RETRY_AFTER_SECONDS: float = Field(default=60.0, ge=0)

    # Provider endpoints
    SEARCH_CONSOLE_API_BASE: str = Field(default="https://www.googleapis.com/webmasters/v3")
    ANALYTICS_API_BASE: str = Field(default="https://analyticsdata.googleapis.com/v1beta")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize log level name."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unsupported LOG_LEVEL: {v}")
        return level


class ClientConfig(BaseModel):
    """
    Per-tenant client configuration.

    Anything left as ``None`` falls back to the provider profile default
    (quota, inter-request delay, page size) or to ``Settings``.

    Example:
        >>> config = ClientConfig(
        ...     access_token="ya29...",
        ...     account_id="https://example.com/",
        ...     quota_limit=300,
        ... )
    """

    access_token: str = Field(..., min_length=1, max_length=10000)
    account_id: str = Field(..., min_length=1, description="Site URL or property id")
    timezone: str = Field(default="UTC")

    # Caching
    enable_caching: bool = True
    cache_ttl_seconds: Optional[float] = Field(default=None, gt=0)
    cache_sweep_interval_seconds: Optional[float] = Field(default=None, gt=0)

    # Retry
    max_retries: Optional[int] = Field(default=None, ge=0)
    initial_retry_delay: Optional[float] = Field(default=None, ge=0)
    backoff_multiplier: Optional[float] = Field(default=None, ge=1)

    # Rate governor
    quota_limit: Optional[int] = Field(default=None, gt=0)
    quota_window_seconds: Optional[float] = Field(default=None, gt=0)
    inter_request_delay: Optional[float] = Field(default=None, ge=0)
    default_retry_after: Optional[float] = Field(default=None, ge=0)
    max_rate_limit_requeues: Optional[int] = Field(default=None, ge=0)

    # Transport
    timeout_seconds: Optional[float] = Field(default=None, gt=0)

    @field_validator("access_token", "account_id")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        """Reject whitespace-only credentials and identifiers."""
        if not v.strip():
            raise ValueError("must be a non-empty string")
        return v


# Global settings instance
settings = Settings()
