"""Utility helpers."""

from .logging_factory import LoggingFactory, get_logger

__all__ = ["LoggingFactory", "get_logger"]
