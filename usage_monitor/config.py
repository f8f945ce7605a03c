"""
AI Usage Monitor Configuration Module

This module manages application settings and environment variables using
pydantic-settings for type-safe configuration management.

Environment variables are loaded from .env file or system environment.
Per-service pricing and free-tier limits are NOT settings: they live in the
service registry (usage_monitor/registry/services.py) as static configuration.
"""

from functools import lru_cache
from typing import Literal
import logging
import sys

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Pydantic Settings automatically reads from:
    1. Environment variables
    2. .env file in working directory
    3. Default values defined here
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore unknown env vars
    )

    store_backend: Literal["memory", "sqlite"] = Field(
        default="memory",
        description="Document store backing metric, decision and alert records",
    )

    sqlite_path: str = Field(
        default="usage_monitor.db",
        description="Database file used when store_backend is 'sqlite'",
    )

    max_scan_rows: int = Field(
        default=50_000,
        gt=0,
        description="Maximum metric records aggregated per query; larger windows are truncated",
    )

    alert_cooldown_hours: float = Field(
        default=24.0,
        ge=0.0,
        description="Window in which an open alert suppresses duplicates (0 disables)",
    )

    alert_check_interval_seconds: int = Field(
        default=0,
        ge=0,
        description="Period of the background threshold check (0 disables)",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Application log level"
    )

    host: str = Field(default="0.0.0.0", description="Server bind host")

    port: int = Field(default=8000, description="Server bind port")

    debug: bool = Field(default=False, description="Enable debug mode")

    @field_validator("sqlite_path")
    @classmethod
    def validate_sqlite_path(cls, v: str) -> str:
        """Ensure the sqlite path is not blank."""
        if not v.strip():
            raise ValueError("sqlite_path cannot be empty")
        return v


@lru_cache
def get_settings() -> Settings:
    """
    Returns cached settings instance.

    Using lru_cache ensures settings are loaded once and reused,
    avoiding repeated file reads and environment parsing.

    Returns:
        Settings: The application settings singleton.
    """
    return Settings()


def configure_logging(settings: Settings) -> None:
    """
    Configure application logging based on settings.

    Sets up structured logging with timestamps and reduces noise
    from third-party HTTP libraries.

    Args:
        settings: The application settings instance.
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
