"""
ssmctl Config - Configuration models.

Pydantic models for type-safe configuration.
"""

from __future__ import annotations

import re
from datetime import timedelta
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

DEFAULT_DATA_DIR = Path.home() / ".ssmctl"

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h|d)")
_DURATION_UNITS = {
    "ms": timedelta(milliseconds=1),
    "s": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
    "d": timedelta(days=1),
}


def parse_duration(value: str) -> timedelta:
    """
    Parse a Go-style duration string.

    Accepts one or more number+unit pairs ("90s", "30m", "24h", "1h30m", "7d").

    Raises:
        ValueError: If the string is empty or contains anything else.
    """
    text = value.strip().lower()
    if not text:
        raise ValueError("empty duration")

    total = timedelta()
    pos = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()

    if pos != len(text):
        raise ValueError(f"invalid duration: {value!r}")
    return total


class DatabaseConfig(BaseModel):
    """Local cache settings."""

    path: Path = Field(
        default=DEFAULT_DATA_DIR / "database.db", description="SQLite database file"
    )

    @field_validator("path", mode="after")
    @classmethod
    def _expand(cls, value: Path) -> Path:
        return value.expanduser()


class AWSConfig(BaseModel):
    """Remote inventory and session settings."""

    max_concurrent_sessions: int = Field(
        default=5, ge=1, le=64, description="Concurrent profile/region discovery units"
    )
    session_command: str = Field(
        default="aws", description="Executable used to open SSM sessions"
    )


class DiscoveryConfig(BaseModel):
    """Discovery settings."""

    ttl: str = Field(default="24h", description="Evict cache entries not seen for this long")

    @field_validator("ttl")
    @classmethod
    def _valid_ttl(cls, value: str) -> str:
        parse_duration(value)
        return value

    @property
    def ttl_delta(self) -> timedelta:
        """TTL as a timedelta."""
        return parse_duration(self.ttl)


class LoggingConfig(BaseModel):
    """Logging settings."""

    log_dir: Path = Field(default=DEFAULT_DATA_DIR / "logs", description="Log directory")
    file_level: Literal["debug", "info", "warning", "error"] = Field(
        default="debug", description="File log level"
    )
    console_level: Literal["debug", "info", "warning", "error"] = Field(
        default="warning", description="Console log level when not verbose"
    )
    rotation: str = Field(default="10 MB", description="Rotate the log file at this size")
    retention: str = Field(default="7 days", description="Keep rotated logs this long")

    @field_validator("log_dir", mode="after")
    @classmethod
    def _expand(cls, value: Path) -> Path:
        return value.expanduser()


class Config(BaseModel):
    """Root configuration."""

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    aws: AWSConfig = Field(default_factory=AWSConfig)
    discovery: DiscoveryConfig = Field(default_factory=DiscoveryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
