"""Service configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Tests set TESTING=true so a developer's local .env never leaks into them.
_env_file = (
    str(_env_path)
    if _env_path.is_file() and os.getenv("TESTING", "").lower() != "true"
    else None
)

# Nested BaseSettings don't inherit env_file, so populate os.environ up front.
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


FailStrategy = Literal["open", "closed"]


class RedisSettings(BaseSettings):
    """Connection settings for the shared counter store."""

    url: str = Field(
        "redis://localhost:6379/0",
        description="Redis connection URL (redis:// or rediss://)",
    )
    socket_timeout_seconds: float = Field(
        2.0,
        description="Per-command socket timeout; the only timeout applied to store calls",
        gt=0,
    )
    connect_timeout_seconds: float = Field(
        2.0,
        description="Timeout for establishing a new connection",
        gt=0,
    )
    retry_interval_seconds: float = Field(
        1.0,
        description="After a connection failure, how long the store reports itself down before probing again",
        ge=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="REDIS_",
        case_sensitive=False,
    )


class AppSettings(BaseSettings):
    """Rate limiting and admin configuration."""

    rate_limit_enabled: bool = Field(
        True,
        description="Enable rate limiting on protected routes",
    )
    rate_limit_requests: int = Field(
        100,
        description="Maximum number of requests admitted per window (per identifier)",
        ge=1,
    )
    rate_limit_window_seconds: int = Field(
        60,
        description="Fixed window length in seconds",
        ge=1,
    )
    rate_limit_namespace: str = Field(
        "api",
        description="Key prefix separating this limiter from others sharing the store",
        min_length=1,
    )
    rate_limit_fail_strategy: FailStrategy = Field(
        "open",
        description="What to do when the store is down: 'open' admits, 'closed' answers 503",
    )
    rate_limit_include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers",
    )
    rate_limit_message: str = Field(
        "Too many requests. Please try again later.",
        description="Error message returned with HTTP 429",
    )
    trust_proxy_headers: bool = Field(
        True,
        description="Derive the client IP from X-Forwarded-For / X-Real-IP when present",
    )
    admin_key_required: bool = Field(
        True,
        description="Whether the admin endpoints require an X-API-Key",
    )
    admin_api_keys: str | None = Field(
        None,
        description="Comma-separated list of admin API keys",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="'json' or 'plain'")
    output: str = Field("stdout", description="'stdout' or 'file'")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        10_485_760,
        description="Rotate the log file at this size; 0 disables rotation",
        ge=0,
    )
    backup_count: int = Field(5, description="Rotated files to keep", ge=0)
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to read and echo the correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file. Raises
    validation errors on startup if a value is malformed.
    """

    app_env: str = APP_ENV
    redis: RedisSettings = Field(default_factory=RedisSettings)
    app: AppSettings = Field(default_factory=AppSettings)
    log: LogSettings = Field(default_factory=LogSettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


settings = Settings()
