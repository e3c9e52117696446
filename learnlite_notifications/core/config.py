"""Runtime configuration for notification delivery.

Settings are read once at process startup from ``NOTIFICATIONS_*`` environment
variables (or a ``.env`` file) and then passed explicitly to the publisher,
worker and status reporter.
"""

from enum import Enum
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from learnlite_notifications import __version__

DEFAULT_STORE_URL = "sqlite+aiosqlite:///var/outbox.db"
DEFAULT_LOG_FILE = Path("var") / "notifications.log"


class SinkKind(str, Enum):
    """Supported delivery sinks."""

    CONSOLE = "console"
    FILE = "file"


class NotificationSettings(BaseSettings):
    """Configuration for the outbox publisher and delivery worker."""

    enabled: bool = Field(False, description="Master switch for notification delivery")
    sink: SinkKind = SinkKind.CONSOLE
    poll_interval: float = Field(5.0, gt=0, description="Seconds between poll cycles")
    batch_size: int = Field(50, ge=1, description="Max events claimed per cycle")
    log_file: Path = DEFAULT_LOG_FILE
    store_url: str = Field(DEFAULT_STORE_URL, description="memory://, redis://... or a SQLAlchemy async URL")
    delivery_timeout: float = Field(30.0, gt=0, description="Per-delivery timeout for async sinks")
    log_level: str = "INFO"
    version: str = __version__

    model_config = SettingsConfigDict(
        env_prefix="NOTIFICATIONS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("sink", mode="before")
    @classmethod
    def normalize_sink(cls, v: object) -> object:
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"log_level must be a standard logging level, got: {v!r}")
        return level

    def summary(self) -> dict[str, object]:
        """Redacted view of the settings for startup logging."""
        return {
            "enabled": self.enabled,
            "sink": self.sink.value,
            "poll_interval": self.poll_interval,
            "batch_size": self.batch_size,
            "log_file": str(self.log_file),
            "store_url": "[REDACTED]" if self.store_url else "[NOT SET]",
            "delivery_timeout": self.delivery_timeout,
            "log_level": self.log_level,
            "version": self.version,
        }
