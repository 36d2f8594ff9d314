"""keygate configuration.

Values come from environment variables, grouped by prefix (``SERVER_``,
``RATE_LIMIT_``, ``BACKEND_``, ``LOG_``). ``APP_ENV`` selects an optional
``.env.<env>`` file at the project root that is loaded first. Settings are
read once at import time.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


APP_ENV = os.getenv("APP_ENV", "development")
KNOWN_ENVS = ("development", "testing", "staging", "production")

PROJECT_ROOT = Path(__file__).resolve().parents[2]

_env_path = PROJECT_ROOT / f".env.{APP_ENV if APP_ENV in KNOWN_ENVS else 'development'}"

# Nested BaseSettings ignore env_file, so the file is pushed into os.environ
if _env_path.is_file():
    load_dotenv(_env_path, override=True)


class ServerSettings(BaseSettings):
    """Listener addresses and HTTP timeouts."""

    listen_addr: str = Field(
        ":8080",
        description="Public HTTP serving address (host:port, empty host binds all interfaces)",
    )
    local_addr: str = Field(
        ":8081",
        description="Admin RPC serving address; must not be reachable by untrusted clients",
    )
    read_timeout_seconds: float = Field(
        120.0,
        description="Upper bound for reading a request body",
        gt=0,
    )
    write_timeout_seconds: float = Field(
        120.0,
        description="Upper bound for producing a response (collaborator call included)",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="SERVER_",
        case_sensitive=False,
    )


class RateLimitSettings(BaseSettings):
    """GCRA quota applied to the secret verification endpoint."""

    enabled: bool = Field(
        True,
        description="Enable rate limiting on /v1/verify",
    )
    rate_per_second: float = Field(
        2.0,
        description="Steady-state admissions per second for one rate limit key",
        ge=1,
    )
    burst: int = Field(
        2,
        description="Requests a fresh key may issue back to back before throttling",
        ge=1,
    )
    max_keys: int = Field(
        65536,
        description="Capacity of the bucket store; least recently used keys are evicted",
        ge=1,
    )
    vary_by_path: bool = Field(
        True,
        description="Include the request path in the rate limit key",
    )
    vary_by_headers: str = Field(
        "X-Forwarded-For",
        description="Comma-separated request headers included in the rate limit key",
    )
    include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers on responses",
    )

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )

    @property
    def header_names(self) -> list[str]:
        """Vary-by header names, trimmed and without empties."""
        return [name.strip() for name in self.vary_by_headers.split(",") if name.strip()]


class BackendSettings(BaseSettings):
    """Key backend selection."""

    provider: str = Field(
        "memory",
        description="Key backend provider (memory)",
    )
    key_prefix: str = Field(
        "key",
        description="Prefix for generated key names",
    )
    cert_validity_days: int = Field(
        90,
        description="Validity period of generated certificates",
        ge=1,
    )

    model_config = SettingsConfigDict(
        env_prefix="BACKEND_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Log format: json or plain")
    output: str = Field("stdout", description="Log output: stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        10 * 1024 * 1024,
        description="Rotate the log file after this many bytes (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(5, description="Number of rotated log files to keep", ge=0)
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to propagate the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main settings container.

    Invalid values raise at import, so a bad rate limit quota fails startup
    instead of individual requests.
    """

    app_env: str = APP_ENV
    server: ServerSettings = Field(default_factory=ServerSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    backend: BackendSettings = Field(default_factory=BackendSettings)
    log: LogSettings = Field(default_factory=LogSettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


settings = Settings()
