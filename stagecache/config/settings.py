"""Cache configuration with validation.

Settings are read from ``STAGECACHE_*`` environment variables and an
optional ``.env`` file, for example::

    STAGECACHE_APP_ID=task-index
    STAGECACHE_APP_VERSION=1.4.0
    STAGECACHE_SCHEMA_REVISION=2
    STAGECACHE_BACKEND=sqlite
    STAGECACHE_CACHE_DIR=~/.cache/task-index
"""
from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union

from pydantic import Field, PositiveInt, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..cache.validity import VersionContext

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class ConfigurationError(Exception):
    """Raised when configuration validation fails."""


class BackendType(str, Enum):
    """Available byte store backends."""

    MEMORY = "memory"
    SQLITE = "sqlite"


class CacheConfig(BaseSettings):
    """Stage cache settings.

    The app version and schema revision seed the running
    :class:`VersionContext`; records stamped with anything else are evicted
    on load.
    """

    model_config = SettingsConfigDict(
        env_prefix="STAGECACHE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_id: str = "stagecache"
    app_version: str = "1.0.0"
    schema_revision: PositiveInt = 1

    backend: BackendType = BackendType.MEMORY
    cache_dir: Optional[Path] = None
    compress: bool = False
    max_memory_mb: Optional[PositiveInt] = Field(None, description="Quota for the memory backend")

    log_level: str = "INFO"
    log_dir: Optional[Path] = None

    @field_validator("app_id", "app_version")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"unknown log level {v!r}; expected one of {sorted(_LOG_LEVELS)}")
        return level

    @field_validator("cache_dir", "log_dir")
    @classmethod
    def expand_user(cls, v: Optional[Path]) -> Optional[Path]:
        return v.expanduser() if v is not None else None

    @classmethod
    def load(cls, env_file: Optional[Union[str, Path]] = None, **overrides: Any) -> "CacheConfig":
        """Build settings from the environment, a .env file and overrides.

        Explicit overrides win over environment variables, which win over
        the .env file.

        Raises:
            ConfigurationError: If any value fails validation
        """
        try:
            if env_file is not None:
                return cls(_env_file=env_file, **overrides)
            return cls(**overrides)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid stage cache configuration: {e}") from e

    @property
    def log_level_value(self) -> int:
        return getattr(logging, self.log_level)

    def version_context(self) -> VersionContext:
        """Create the running version context from these settings."""
        return VersionContext(app_version=self.app_version, schema_revision=self.schema_revision)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")
