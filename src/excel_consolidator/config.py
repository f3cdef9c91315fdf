"""Runtime settings for the Excel consolidator.

Values come from ``XLC_``-prefixed environment variables or a ``.env`` file
in the working directory, e.g.::

    XLC_MAX_FILE_SIZE_MB=50
    XLC_MAX_FILES=20
    XLC_OUTPUT_SHEET_NAME=Consolidated
    XLC_OUTPUT_BASE=first_input
    XLC_LOG_LEVEL=DEBUG
    XLC_DEBUG=false
    XLC_CORS_ORIGINS=https://app.example.com,https://admin.example.com
    XLC_SERVER_HOST=0.0.0.0
    XLC_SERVER_PORT=8000
"""

import logging
from enum import Enum
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

# Excel rejects worksheet titles longer than this.
MAX_SHEET_TITLE_LENGTH = 31


class OutputBase(str, Enum):
    """Which workbook carries the consolidated sheet."""

    NEW = "new"
    """A fresh workbook that only contains the consolidated sheet."""

    FIRST_INPUT = "first_input"
    """The first input workbook; its other sheets survive in the output."""


class Settings(BaseSettings):
    """Consolidator settings; see the module docstring for the variables."""

    model_config = SettingsConfigDict(
        env_prefix="XLC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # =========================================================================
    # Upload limits
    # =========================================================================

    max_file_size_mb: int = Field(default=20, ge=1, le=500)
    """Largest accepted workbook, per file."""

    max_files: int = Field(default=50, ge=1)
    """Most workbooks accepted by one merge request."""

    # =========================================================================
    # Merge output
    # =========================================================================

    output_sheet_name: str = Field(
        default="Consolidated", min_length=1, max_length=MAX_SHEET_TITLE_LENGTH
    )
    """Title of the output sheet. Input sheets with this title are skipped."""

    output_base: OutputBase = OutputBase.NEW

    # =========================================================================
    # Logging and server
    # =========================================================================

    log_level: LogLevel = "INFO"
    debug: bool = False
    """Expose exception details in 500 responses."""

    cors_origins: str = "*"
    """Comma-separated allowed origins, or ``*``."""

    server_host: str = "0.0.0.0"
    server_port: int = Field(default=8000, ge=1, le=65535)

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: Any) -> Any:
        return v.strip().upper() if isinstance(v, str) else v

    @field_validator("output_sheet_name", mode="before")
    @classmethod
    def strip_sheet_name(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024

    @property
    def cors_origins_list(self) -> list[str]:
        origins = [origin.strip() for origin in self.cors_origins.split(",")]
        return [origin for origin in origins if origin] or ["*"]

    @property
    def log_level_int(self) -> int:
        return logging.getLevelName(self.log_level)

    def to_safe_dict(self) -> dict[str, Any]:
        """Plain, JSON-friendly view of the settings for log output."""
        return self.model_dump(mode="json")


def validate_settings_on_startup(s: Settings) -> None:
    """Log the effective configuration and warn about permissive CORS."""
    logger = logging.getLogger(__name__)

    if s.cors_origins_list == ["*"] and not s.debug:
        logger.warning(
            "CORS allows every origin (*); set XLC_CORS_ORIGINS to restrict it."
        )

    logger.info(
        "Configuration loaded: "
        + ", ".join(f"{key}={value}" for key, value in s.to_safe_dict().items())
    )


settings = Settings()
