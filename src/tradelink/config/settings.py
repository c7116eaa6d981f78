"""
Client settings with environment variable support.

Uses Pydantic Settings for type-safe configuration with automatic
environment variable loading and validation.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from tradelink.config.constants import (
    DEFAULT_API_BASE_URL,
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_HEALTH_CHECK_INTERVAL,
    DEFAULT_HTTP_TIMEOUT,
    DEFAULT_MAX_RECONNECT_ATTEMPTS,
    DEFAULT_RECONNECT_DELAY,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_WS_URL,
)


class Settings(BaseSettings):
    """
    Client settings loaded from environment variables.

    All settings can be overridden via environment variables
    (e.g. ``API_BASE_URL``, ``WS_URL``, ``CONNECT_TIMEOUT``).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # =========================================================================
    # Endpoints
    # =========================================================================

    api_base_url: str = Field(
        default=DEFAULT_API_BASE_URL,
        description="Base URL of the trading service REST API",
    )

    ws_url: str = Field(
        default=DEFAULT_WS_URL,
        description="URL of the trading service WebSocket channel",
    )

    # =========================================================================
    # Timeouts
    # =========================================================================

    connect_timeout: float = Field(
        default=DEFAULT_CONNECT_TIMEOUT,
        gt=0.0,
        le=60.0,
        description="Seconds to wait for the channel to open before falling back",
    )

    request_timeout: float = Field(
        default=DEFAULT_REQUEST_TIMEOUT,
        gt=0.0,
        le=300.0,
        description="Seconds to wait for a correlated channel response",
    )

    http_timeout: float = Field(
        default=DEFAULT_HTTP_TIMEOUT,
        gt=0.0,
        le=300.0,
        description="Total timeout for a single fallback HTTP call",
    )

    # =========================================================================
    # Reconnection
    # =========================================================================

    reconnect_delay: float = Field(
        default=DEFAULT_RECONNECT_DELAY,
        ge=0.0,
        le=300.0,
        description="Fixed delay between reconnection attempts",
    )

    max_reconnect_attempts: int = Field(
        default=DEFAULT_MAX_RECONNECT_ATTEMPTS,
        ge=0,
        le=100,
        description="Reconnection attempts after a network loss before giving up",
    )

    health_check_interval: float = Field(
        default=DEFAULT_HEALTH_CHECK_INTERVAL,
        gt=0.0,
        description="Period of the channel health check",
    )

    resubscribe_on_reconnect: bool = Field(
        default=False,
        description="Replay active subscriptions after the channel reconnects",
    )

    # =========================================================================
    # Logging
    # =========================================================================

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )

    log_file: Path | None = Field(
        default=None,
        description="Optional log file path",
    )

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("api_base_url", mode="after")
    @classmethod
    def validate_api_base_url(cls, v: str) -> str:
        """Require an http(s) URL and strip the trailing slash."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"API base URL must be http(s): {v}")
        return v.rstrip("/")

    @field_validator("ws_url", mode="after")
    @classmethod
    def validate_ws_url(cls, v: str) -> str:
        """Require a ws(s) or http(s) URL."""
        if not v.startswith(("ws://", "wss://", "http://", "https://")):
            raise ValueError(f"WebSocket URL must be ws(s) or http(s): {v}")
        return v

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def worst_case_call_seconds(self) -> float:
        """Upper bound on how long a single facade call may take."""
        return self.connect_timeout + 2 * self.request_timeout + self.http_timeout


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses LRU cache to ensure settings are loaded only once.
    Clear cache with `get_settings.cache_clear()` if needed.
    """
    return Settings()
