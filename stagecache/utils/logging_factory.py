"""Centralized logging setup for applications embedding the stage cache.

Library modules only call ``logging.getLogger(__name__)``; handlers are
installed once through this factory by whoever builds the storage.

Usage:
    LoggingFactory.initialize(level=logging.DEBUG)
    logger = LoggingFactory.get_logger(__name__)

    # Or use the convenience function
    from stagecache.utils.logging_factory import get_logger
    logger = get_logger(__name__)
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

ROOT_LOGGER = "stagecache"
DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_FILE_NAME = "stagecache.log"


class LoggingFactory:
    """Configure the ``stagecache`` logger hierarchy once per process.

    Output goes to the console, plus ``<log_dir>/stagecache.log`` when a log
    directory is given. Later ``initialize`` calls are ignored.
    """

    _initialized = False
    _log_dir: Optional[Path] = None

    @classmethod
    def initialize(
        cls,
        log_dir: Optional[Path] = None,
        level: int = logging.INFO,
        format_string: Optional[str] = None,
    ) -> None:
        """Install handlers on the package logger.

        Args:
            log_dir: Directory for the log file; console only when None
            level: Level for the package logger
            format_string: Custom record format
        """
        if cls._initialized:
            return

        formatter = logging.Formatter(format_string or DEFAULT_FORMAT)
        handlers: List[logging.Handler] = [logging.StreamHandler()]
        if log_dir is not None:
            log_dir.mkdir(parents=True, exist_ok=True)
            cls._log_dir = log_dir
            handlers.append(logging.FileHandler(cls._log_dir / LOG_FILE_NAME))

        root = logging.getLogger(ROOT_LOGGER)
        root.setLevel(level)
        for handler in handlers:
            handler.setFormatter(formatter)
            root.addHandler(handler)

        cls._initialized = True

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """Return a logger, initializing with defaults on first use."""
        if not cls._initialized:
            cls.initialize()
        return logging.getLogger(name)

    @classmethod
    def set_level(cls, name: str, level: int) -> None:
        logging.getLogger(name).setLevel(level)

    @classmethod
    def reset(cls) -> None:
        """Remove installed handlers so ``initialize`` can run again."""
        root = logging.getLogger(ROOT_LOGGER)
        for handler in list(root.handlers):
            root.removeHandler(handler)
            handler.close()
        root.setLevel(logging.NOTSET)
        cls._initialized = False
        cls._log_dir = None

    @classmethod
    def log_file(cls) -> Optional[Path]:
        """Path of the active log file, or None when logging to the console only."""
        if cls._log_dir is None:
            return None
        return cls._log_dir / LOG_FILE_NAME

    @classmethod
    def is_initialized(cls) -> bool:
        return cls._initialized


def get_logger(name: str) -> logging.Logger:
    return LoggingFactory.get_logger(name)
