"""
Configuration management for the data type store.

All configuration is done via environment variables prefixed with
DATATYPE_STORE_ (for example DATATYPE_STORE_DATABASE_PATH). Settings is
a pydantic-settings model, so values are typed and validated on load.

Invariants:
    - All settings have sensible defaults for local development
    - The pre-value cache TTL is an inactivity window (sliding), not an
      absolute lifetime

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Keep log_config() free of anything secret
"""

from __future__ import annotations

import logging
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings

from .cache import DEFAULT_MAX_ENTRIES, DEFAULT_TTL_SECONDS

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Data type store configuration."""

    # Storage
    database_path: str = Field(default="datatypes.db", description="SQLite database file")
    busy_timeout_ms: int = Field(default=5000, ge=0)
    wal_mode: bool = Field(default=True, description="Use the SQLite WAL journal")

    # Pre-value cache
    cache_ttl_seconds: float = Field(default=DEFAULT_TTL_SECONDS, gt=0)
    cache_max_entries: int = Field(default=DEFAULT_MAX_ENTRIES, gt=0)

    # Logging
    log_level: str = Field(default="INFO")
    log_format: Literal["json", "text"] = Field(default="json")

    model_config = {"env_prefix": "DATATYPE_STORE_"}

    def log_config(self) -> None:
        """Log the effective configuration."""
        logger.info(
            "Data type store configuration loaded",
            extra={
                "database_path": self.database_path,
                "wal_mode": self.wal_mode,
                "cache_ttl_seconds": self.cache_ttl_seconds,
                "cache_max_entries": self.cache_max_entries,
                "log_level": self.log_level,
            },
        )
