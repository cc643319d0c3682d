"""
Application configuration using Pydantic Settings.
Loads configuration from environment variables with sensible defaults.
"""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from jobdispatch.constants import (
    DEFAULT_CACHE_SIZE,
    DEFAULT_PORT,
    DEFAULT_SHUTDOWN_GRACE_SECONDS,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = DEFAULT_PORT
    shutdown_grace_seconds: int = DEFAULT_SHUTDOWN_GRACE_SECONDS

    # Static resources served next to the dispatcher
    resource_root: Path | None = None

    # Committed jobs are appended here as JSON lines when set
    commit_log_path: Path | None = None

    # Worker Configuration
    dispatcher_url: str = f"http://localhost:{DEFAULT_PORT}"
    worker_id: str | None = None
    worker_poll_interval_seconds: float = 1.0
    worker_cache_size: int = DEFAULT_CACHE_SIZE
    worker_exit_when_idle: bool = False
    worker_request_timeout_seconds: float = 30.0

    # Observability
    otel_exporter_otlp_endpoint: str | None = None
    otel_service_name: str = "job-dispatcher"
    log_level: str = "INFO"
    log_format: str = "json"  # json or console


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
