"""stagecache - versioned local cache for text-parsing pipeline stages."""

from .cache import (
    ByteStoreError,
    InMemoryByteStore,
    RecordKind,
    SqliteByteStore,
    Storage,
    VersionContext,
)
from .cache.factory import create_byte_store, create_storage
from .config import CacheConfig, ConfigurationError
from .models import ProjectData

__version__ = "1.0.0"

__all__ = [
    "ByteStoreError",
    "CacheConfig",
    "ConfigurationError",
    "InMemoryByteStore",
    "ProjectData",
    "RecordKind",
    "SqliteByteStore",
    "Storage",
    "VersionContext",
    "create_byte_store",
    "create_storage",
]
