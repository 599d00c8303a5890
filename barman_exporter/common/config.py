"""Exporter configuration using pydantic-settings.

All settings are read from environment variables with the
BARMAN_EXPORTER_ prefix (e.g. BARMAN_EXPORTER_BACKUP_LOG_FILE). Every
field has a default, so the exporter starts with no environment set; a
source is only scraped when its log file is configured.
"""

from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")
LOG_FORMATS = ("json", "console")


class ExporterSettings(BaseSettings):
    """Barman Cloud exporter configuration from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="BARMAN_EXPORTER_",
        case_sensitive=False,
    )

    # -------------------------------------------------------------------------
    # Sources
    # -------------------------------------------------------------------------
    # TSV appended after each barman-cloud-backup run
    backup_log_file: Optional[str] = None

    # TSV appended after each barman-cloud-wal-archive run
    wal_log_file: Optional[str] = None

    # Bytes read from the end of each log per scrape
    tail_buffer_size: int = 65536

    # Trailing window for counting failed WAL archives
    wal_failure_window_seconds: int = 3600

    # Rows with fewer fields are discarded
    min_record_fields: int = 6

    # -------------------------------------------------------------------------
    # Scrape deadline
    # -------------------------------------------------------------------------
    # Deadline used when Prometheus sends no timeout header
    default_scrape_timeout_seconds: Optional[float] = None

    # Subtracted from the header timeout to leave room for the response
    scrape_timeout_offset_seconds: float = 0.5

    # -------------------------------------------------------------------------
    # Server
    # -------------------------------------------------------------------------
    host: str = "0.0.0.0"
    port: int = 61092
    telemetry_path: str = "/metrics"

    # -------------------------------------------------------------------------
    # Logging
    # -------------------------------------------------------------------------
    log_level: str = "INFO"
    log_format: str = "json"

    # -------------------------------------------------------------------------
    # Validators
    # -------------------------------------------------------------------------
    @field_validator("backup_log_file", "wal_log_file")
    @classmethod
    def validate_log_file(cls, v: Optional[str]) -> Optional[str]:
        """Treat blank paths as unset."""
        if v is None or not v.strip():
            return None
        return v

    @field_validator("tail_buffer_size")
    @classmethod
    def validate_tail_buffer_size(cls, v: int) -> int:
        if v < 64:
            raise ValueError("tail_buffer_size must be at least 64 bytes")
        return v

    @field_validator("wal_failure_window_seconds")
    @classmethod
    def validate_window(cls, v: int) -> int:
        if v < 1:
            raise ValueError("wal_failure_window_seconds must be at least 1")
        return v

    @field_validator("min_record_fields")
    @classmethod
    def validate_min_record_fields(cls, v: int) -> int:
        """Every record kind reads columns 0 through 5."""
        if v < 6:
            raise ValueError("min_record_fields must be at least 6")
        return v

    @field_validator("default_scrape_timeout_seconds")
    @classmethod
    def validate_default_timeout(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v <= 0:
            raise ValueError("default_scrape_timeout_seconds must be positive")
        return v

    @field_validator("scrape_timeout_offset_seconds")
    @classmethod
    def validate_timeout_offset(cls, v: float) -> float:
        if v < 0:
            raise ValueError("scrape_timeout_offset_seconds cannot be negative")
        return v

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate that port is in valid range."""
        if not 1 <= v <= 65535:
            raise ValueError("port must be between 1 and 65535")
        return v

    @field_validator("telemetry_path")
    @classmethod
    def validate_telemetry_path(cls, v: str) -> str:
        if not v.startswith("/"):
            raise ValueError("telemetry_path must start with /")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        return level

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        fmt = v.lower()
        if fmt not in LOG_FORMATS:
            raise ValueError(f"log_format must be one of {', '.join(LOG_FORMATS)}")
        return fmt


def get_settings() -> ExporterSettings:
    """Create and return ExporterSettings from the environment.

    Raises:
        pydantic.ValidationError: If a value is invalid.
    """
    return ExporterSettings()
