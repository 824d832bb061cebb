"""Build byte stores and storage facades from configuration."""
from __future__ import annotations

import logging
from typing import Optional

from ..config.settings import BackendType, CacheConfig
from ..utils.logging_factory import LoggingFactory
from .backends import ByteStore, InMemoryByteStore, SqliteByteStore
from .envelope import EnvelopeCodec
from .storage import Storage

logger = logging.getLogger(__name__)


def create_byte_store(config: CacheConfig) -> ByteStore:
    """Instantiate the configured byte store backend.

    Raises:
        ValueError: If the backend type is not supported
    """
    if config.backend == BackendType.MEMORY:
        return InMemoryByteStore(max_size_mb=config.max_memory_mb)
    if config.backend == BackendType.SQLITE:
        return SqliteByteStore(cache_dir=config.cache_dir, app_id=config.app_id)
    raise ValueError(f"Unsupported backend: {config.backend}")


def create_storage(
    config: Optional[CacheConfig] = None,
    byte_store: Optional[ByteStore] = None,
) -> Storage:
    """Create a Storage from settings.

    Args:
        config: Settings; loaded from the environment when None
        byte_store: Pre-built backend overriding ``config.backend``

    Returns:
        Storage seeded with the configured version and schema revision
    """
    if config is None:
        config = CacheConfig.load()

    LoggingFactory.initialize(log_dir=config.log_dir, level=config.log_level_value)

    store = byte_store or create_byte_store(config)
    logger.debug(f"Creating storage with {type(store).__name__} (compress={config.compress})")
    return Storage(
        store,
        version=config.version_context(),
        codec=EnvelopeCodec(compress=config.compress),
        app_id=config.app_id,
    )
