"""Configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
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

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Nested BaseSettings don't inherit env_file, so populate os.environ first.
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


class EndpointLimits(BaseModel):
    """Per-endpoint override of the default rate limits.

    A field left as None falls back to the corresponding default limit.
    """

    per_minute: int | None = Field(None, ge=1)
    per_hour: int | None = Field(None, ge=1)


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Log format: json or plain")
    output: str = Field("stdout", description="Log destination: stdout or file")
    file_path: str | None = Field(
        None,
        description="Log file path when output=file",
    )
    max_bytes: int = Field(
        10_485_760,
        description="Rotate the log file after this many bytes (0 disables rotation)",
    )
    backup_count: int = Field(5, description="Number of rotated log files to keep")
    request_id_header: str = Field(
        "X-Request-ID",
        description="HTTP header carrying the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class RateLimitSettings(BaseSettings):
    """Fixed-window rate limiting applied by every service facade."""

    per_minute: int | None = Field(
        60,
        description="Default maximum calls per endpoint per minute",
        ge=1,
    )
    per_hour: int | None = Field(
        None,
        description="Default maximum calls per endpoint per hour",
        ge=1,
    )
    endpoint_limits: dict[str, EndpointLimits] = Field(
        default_factory=dict,
        description="JSON mapping of endpoint name to per-endpoint overrides",
    )

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )


class HostSettings(BaseSettings):
    """HTTP host configuration for the local services server."""

    host: str = Field("127.0.0.1", description="Interface to bind")
    port: int = Field(7077, description="Port to listen on")
    title: str = Field("servicekit", description="Application title")

    model_config = SettingsConfigDict(
        env_prefix="HOST_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    """

    app_env: str = APP_ENV
    log: LogSettings = Field(default_factory=LogSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    host: HostSettings = Field(default_factory=HostSettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


settings = Settings()
