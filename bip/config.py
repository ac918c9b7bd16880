"""
Application configuration using Pydantic Settings.
Loads configuration from environment variables with sensible defaults.
"""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from bip.constants import DEFAULT_API_PORT, DEFAULT_DATA_ROOT


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Storage
    data_root: Path = Path(DEFAULT_DATA_ROOT)
    fsync_writes: bool = True
    requeue_in_flight: bool = True

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = DEFAULT_API_PORT

    # CLI client
    server_url: str = f"http://localhost:{DEFAULT_API_PORT}"
    request_timeout_seconds: float = 10.0

    # Observability
    otel_exporter_otlp_endpoint: str = "http://localhost:4317"
    otel_service_name: str = "bip"
    tracing_enabled: bool = False
    log_level: str = "INFO"
    log_format: str = "json"  # json or console


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
