"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Map environments to their respective .env files (relative to PROJECT_ROOT)
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


def _build_app_settings() -> "AppSettings":
    """Build app settings from environment.

    Pydantic Settings (v2) populates values from environment variables, but
    static type checkers treat required fields as constructor arguments.
    """

    return AppSettings()  # type: ignore[call-arg]


def _build_backend_settings() -> "BackendSettings":
    return BackendSettings()  # type: ignore[call-arg]


def _build_log_settings() -> "LogSettings":
    return LogSettings()  # type: ignore[call-arg]


class BackendSettings(BaseSettings):
    """Managed backend (auth service + REST gateway) configuration.

    The service-role key is optional: when it is absent the admin gate has
    no elevated client and cannot bypass row-level security.
    """

    url: str | None = Field(
        None,
        description="Base URL of the managed backend (e.g., https://xyz.supabase.co)",
    )
    anon_key: str | None = Field(
        None,
        description="Public (anon) API key sent with every backend request",
    )
    service_role_key: str | None = Field(
        None,
        description="Service-role key enabling the elevated profile lookup",
    )
    profiles_table: str = Field(
        "profiles",
        description="Table holding one row per user with a role column",
    )
    timeout_seconds: float = Field(
        5.0,
        description="Backend request timeout in seconds",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="BACKEND_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field(
        "json",
        description="Log format: 'json' for structured output, 'plain' for text",
    )
    output: str = Field("stdout", description="Log destination: 'stdout' or 'file'")
    file_path: str | None = Field(
        None,
        description="Log file path when output=file (default logs/app.log)",
    )
    max_bytes: int = Field(
        10 * 1024 * 1024,
        description="Rotate the log file after this many bytes (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(5, description="Rotated log files to keep", ge=0)
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to read and echo the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    admin_role: str = Field(
        "admin",
        description="Role value that identifies platform administrators",
    )

    rate_limit_enabled: bool = Field(
        True,
        description="Enable per-route and global rate limiting",
    )
    global_rate_limit_enabled: bool = Field(
        True,
        description="Apply the GLOBAL_IP budget to every /api request",
    )
    rate_limit_include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* headers when throttling (Retry-After is always sent)",
    )
    rate_limit_overrides: dict[str, dict[str, int]] = Field(
        default_factory=dict,
        description=(
            "JSON object overriding named budgets, e.g. "
            '{"SEARCH": {"max_requests": 10}}'
        ),
    )
    rate_limit_sweep_interval_seconds: int = Field(
        60,
        description="Minimum interval between opportunistic sweeps of expired limiter entries",
        ge=1,
    )
    trust_proxy_headers: bool = Field(
        True,
        description="Resolve client IP from X-Forwarded-For / X-Real-IP",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.

    Environments:
    - development: Local development (DEBUG=true)
    - testing: Automated tests (uses .env.testing)
    - staging: Pre-production (uses .env.staging)
    - production: Production deployment (uses .env.production)
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=_build_app_settings)
    backend: BackendSettings = Field(default_factory=_build_backend_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Nested settings are created via default_factory so env loading works.
settings = Settings()
