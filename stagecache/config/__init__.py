"""Configuration for the stage cache."""

from .settings import BackendType, CacheConfig, ConfigurationError

__all__ = ["BackendType", "CacheConfig", "ConfigurationError"]
