"""Configuration schema models using Pydantic."""

import re
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .duration import DurationParseError, parse_duration, validate_duration_range

_CHANNEL_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}$")


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Log output formats."""

    JSON = "json"
    KEY_VALUE = "key-value"


class ListenerConfig(BaseModel):
    """Event channel subscription settings."""

    channel: str = Field(
        "notification_channel", description="PostgreSQL LISTEN/NOTIFY channel name"
    )
    poll_interval: float = Field(
        1.0,
        gt=0,
        le=60,
        description="Seconds to wait for channel activity before re-checking for shutdown",
    )

    @field_validator("channel")
    @classmethod
    def validate_channel(cls, v: str) -> str:
        """Channel names are interpolated into LISTEN, so only plain identifiers are allowed."""
        stripped = v.strip()
        if not _CHANNEL_PATTERN.match(stripped):
            raise ValueError(
                f"Invalid channel name '{v}': use letters, digits and underscores "
                "(max 63 characters, not starting with a digit)"
            )
        return stripped


class DeliveryConfig(BaseModel):
    """Email delivery and retry settings."""

    max_retries: int = Field(
        3, ge=0, le=10, description="Retries after the first attempt (3 means 4 attempts)"
    )
    backoff_base_seconds: float = Field(
        1.0, gt=0, le=60, description="Base unit for exponential backoff (base * 2**attempt)"
    )
    max_backoff_seconds: float = Field(
        60.0, ge=1, le=3600, description="Upper bound for a single backoff wait"
    )
    use_tls: bool = Field(True, description="Use STARTTLS on non-465 ports")
    smtp_timeout_seconds: int = Field(
        30, ge=5, le=300, description="Socket timeout for SMTP connections"
    )
    send_html: bool = Field(True, description="Attach an HTML alternative to each email")
    dashboard_url: str = Field(
        "https://blood-care.vercel.app",
        min_length=1,
        description="Link rendered in the HTML body",
    )

    @model_validator(mode="after")
    def validate_backoff_bounds(self):
        """The clamp must not be smaller than the first wait."""
        if self.max_backoff_seconds < self.backoff_base_seconds:
            raise ValueError(
                "max_backoff_seconds must be greater than or equal to backoff_base_seconds"
            )
        return self


class RecoveryConfig(BaseModel):
    """Recovery sweep settings."""

    grace_period: str = Field(
        "30s",
        description="Only pending notifications older than this are swept (avoids racing live events)",
    )
    sweep_interval: Optional[str] = Field(
        "5m", description="Periodic sweep interval; null or '0' runs the sweep at startup only"
    )
    batch_size: int = Field(
        500, ge=1, le=10000, description="Maximum notifications re-dispatched per sweep"
    )

    # Computed fields
    grace_period_seconds: Optional[int] = None
    sweep_interval_seconds: Optional[int] = None

    @field_validator("grace_period")
    @classmethod
    def validate_grace_period(cls, v: str) -> str:
        try:
            seconds = parse_duration(v, allow_zero=True)
            validate_duration_range(seconds, 0, 86400, label="grace_period")
        except DurationParseError as e:
            raise ValueError(str(e)) from e
        return v

    @field_validator("sweep_interval")
    @classmethod
    def validate_sweep_interval(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        try:
            seconds = parse_duration(v, allow_zero=True)
            if seconds:
                validate_duration_range(seconds, 10, 86400, label="sweep_interval")
        except DurationParseError as e:
            raise ValueError(str(e)) from e
        return v

    @model_validator(mode="after")
    def compute_seconds(self):
        self.grace_period_seconds = parse_duration(self.grace_period, allow_zero=True)
        if self.sweep_interval is None:
            self.sweep_interval_seconds = None
        else:
            self.sweep_interval_seconds = (
                parse_duration(self.sweep_interval, allow_zero=True) or None
            )
        return self


class WorkerConfig(BaseModel):
    """Concurrency and lifecycle settings."""

    max_workers: int = Field(
        4, ge=1, le=64, description="Notifications processed concurrently"
    )
    shutdown_timeout: str = Field(
        "30s", description="How long shutdown waits for in-flight deliveries"
    )

    shutdown_timeout_seconds: Optional[int] = None

    @field_validator("shutdown_timeout")
    @classmethod
    def validate_shutdown_timeout(cls, v: str) -> str:
        try:
            seconds = parse_duration(v)
            validate_duration_range(seconds, 1, 3600, label="shutdown_timeout")
        except DurationParseError as e:
            raise ValueError(str(e)) from e
        return v

    @model_validator(mode="after")
    def compute_seconds(self):
        self.shutdown_timeout_seconds = parse_duration(self.shutdown_timeout)
        return self


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: LogLevel = Field(LogLevel.INFO, description="Log level")
    format: LogFormat = Field(
        LogFormat.KEY_VALUE, description="Log output format (json or key-value)"
    )

    model_config = {"use_enum_values": True}


class AppConfig(BaseModel):
    """Root configuration object for the dispatch worker.

    Every section has defaults, so an empty document is a valid config.
    """

    listener: ListenerConfig = Field(default_factory=ListenerConfig)
    delivery: DeliveryConfig = Field(default_factory=DeliveryConfig)
    recovery: RecoveryConfig = Field(default_factory=RecoveryConfig)
    worker: WorkerConfig = Field(default_factory=WorkerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"extra": "forbid"}
