"""
Line monitor configuration loaded from environment variables.

Uses Pydantic BaseSettings for automatic env var loading and validation.
All configuration values come from environment variables or .env files;
no hardcoded stream URLs.

CHANGELOG:
- 2026-10-13: Add GAP_THRESHOLD_S and REPORT_INTERVAL_S
- 2026-10-08: Initial creation (STORY-001)

TODO:
- None
"""

import logging

from pydantic import field_validator
from pydantic_settings import BaseSettings

from monitor.src.buffer import DEFAULT_CAPACITY
from monitor.src.window import DEFAULT_WINDOW_MINUTES, WINDOW_CHOICES

_MAX_BUFFER_CAPACITY = 86_400


class MonitorSettings(BaseSettings):
    """Line monitor configuration.

    All values are loaded from environment variables; every one has a
    default, so an empty environment yields a working (ingestion-disabled)
    configuration.

    Attributes:
        stream_url: Device event stream URL. Empty disables ingestion.
        buffer_capacity: Samples kept in memory (1800 = 30 min at 1 Hz).
        window_minutes: Default visible window, one of WINDOW_CHOICES.
        gap_threshold_s: Seconds without data before a gap is flagged.
        max_backoff_s: Cap for the stream reconnect backoff.
        report_interval_s: Seconds between daemon KPI/insight reports.
        health_path: Health JSON file written by the daemon.
        log_level: Root log level name.
    """

    stream_url: str = ""
    buffer_capacity: int = DEFAULT_CAPACITY
    window_minutes: int = DEFAULT_WINDOW_MINUTES
    gap_threshold_s: float = 10.0
    max_backoff_s: float = 30.0
    report_interval_s: float = 10.0
    health_path: str = "/data/health.json"
    log_level: str = "INFO"

    @field_validator("stream_url")
    @classmethod
    def stream_url_must_be_http(cls, v: str) -> str:
        """Validate that a configured stream URL is http:// or https://."""
        if v and not v.lower().startswith(("http://", "https://")):
            raise ValueError(
                f"STREAM_URL must start with http:// or https:// (got: '{v[:20]}...')"
            )
        return v

    @field_validator("buffer_capacity")
    @classmethod
    def buffer_capacity_must_be_valid(cls, v: int) -> int:
        """Validate buffer capacity is between 1 and one day at 1 Hz."""
        if v < 1 or v > _MAX_BUFFER_CAPACITY:
            raise ValueError(
                f"BUFFER_CAPACITY must be >= 1 and <= {_MAX_BUFFER_CAPACITY}"
            )
        return v

    @field_validator("window_minutes")
    @classmethod
    def window_minutes_must_be_a_choice(cls, v: int) -> int:
        """Validate the default window is one of the offered choices."""
        if v not in WINDOW_CHOICES:
            choices = ", ".join(str(c) for c in WINDOW_CHOICES)
            raise ValueError(f"WINDOW_MINUTES must be one of {choices}")
        return v

    @field_validator("gap_threshold_s", "report_interval_s")
    @classmethod
    def interval_must_be_positive(cls, v: float) -> float:
        """Validate gap threshold and report interval are positive."""
        if v <= 0:
            raise ValueError("GAP_THRESHOLD_S and REPORT_INTERVAL_S must be > 0")
        return v

    @field_validator("max_backoff_s")
    @classmethod
    def max_backoff_must_be_valid(cls, v: float) -> float:
        """Validate the reconnect backoff cap is at least one second."""
        if v < 1:
            raise ValueError("MAX_BACKOFF_S must be >= 1")
        return v

    @field_validator("log_level")
    @classmethod
    def log_level_must_be_known(cls, v: str) -> str:
        """Validate and upper-case the log level name."""
        level = v.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"LOG_LEVEL '{v}' is not a known logging level")
        return level

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}
