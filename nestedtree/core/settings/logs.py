"""Logging configuration settings."""

from __future__ import annotations

import logging
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .sources import logging_source

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class LoggingSettings(BaseSettings):
    """Structured logging configuration.

    Environment variables use LOG_ prefix.
    Example: LOG_LEVEL=DEBUG, LOG_JSON_LOGS=true
    """

    level: LogLevel = Field(
        default="INFO",
        description="Logging level (DEBUG|INFO|WARNING|ERROR|CRITICAL)",
    )
    json_logs: bool = Field(
        default=False, description="Enable JSON-formatted structured logs"
    )
    log_file: str | None = Field(
        default=None,
        max_length=500,
        description="Log file path (None to disable file logging)",
    )
    max_bytes: int = Field(
        default=10_485_760, ge=1024, le=1_073_741_824, description="Max log file size in bytes (10MB, max 1GB)"
    )
    backup_count: int = Field(
        default=5, ge=0, le=100, description="Number of backup log files to keep"
    )
    console_enabled: bool = Field(
        default=True, description="Enable console/stderr logging"
    )
    include_context: bool = Field(
        default=True, description="Inject model/scope context into every record"
    )

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v: str) -> str:
        """Normalize log level to uppercase."""
        if isinstance(v, str):
            return v.upper()
        return v

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    @classmethod
    def settings_customise_sources(
        cls, settings_cls, init_settings, env_settings, dotenv_settings, file_secret_settings
    ):
        """Customize settings source precedence."""

        def files_source(_=None):
            return logging_source()

        return (init_settings, env_settings, dotenv_settings, files_source, file_secret_settings)

    @property
    def level_int(self) -> int:
        """Get numeric log level."""
        return getattr(logging, self.level, logging.INFO)

    def to_logging_kwargs(self) -> dict[str, Any]:
        """Translate settings into configure_logging() keyword arguments."""
        return {
            "log_level": self.level,
            "json_logs": self.json_logs,
            "file_path": self.log_file,
            "file_max_bytes": self.max_bytes,
            "file_backup_count": self.backup_count,
            "console_enabled": self.console_enabled,
            "include_context": self.include_context,
        }
