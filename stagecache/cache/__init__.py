"""Versioned multi-stage cache for parsed records.

This package stores the intermediate results of a text-parsing pipeline
(raw items, project data, augmented items, the consolidated index and event
collections) so unchanged sources are not parsed again.

Components:
    Key namespaces:
        - RecordKind / resolve_key: non-overlapping key prefix per kind

    Envelopes:
        - RecordEnvelope: payload + fingerprint + version/schema stamps
        - EnvelopeCodec: JSON blob encoding with optional compression

    Validity:
        - VersionContext: running app version and schema revision
        - is_valid / check_validity: version, schema, mtime and content gates

    Stores:
        - RawStore, ProjectStore, AugmentedStore: per source path
        - ConsolidatedStore, EventStore: identifier-less snapshots
        - MetaStore: small unversioned values
        - Storage: bundles the stores with namespace maintenance

    Backends:
        - ByteStore: abstract key to blob storage
        - InMemoryByteStore, SqliteByteStore

Usage::

    from stagecache.cache import InMemoryByteStore, Storage, VersionContext

    storage = Storage(InMemoryByteStore(), VersionContext("1.0.0", 1))
    await storage.raw.store("a.md", items, content=text)
    envelope = await storage.raw.load("a.md", fresh_content=text)
"""

from .backends import ByteStore, InMemoryByteStore, SqliteByteStore
from .envelope import EnvelopeCodec, RecordEnvelope, fingerprint, wrap
from .errors import ByteStoreError, EnvelopeDecodeError, FingerprintError, StageCacheError
from .keys import RecordKind, kind_for_key, resolve_key
from .stage_stores import (
    AugmentedStore,
    ConsolidatedStore,
    EventStore,
    LoadResult,
    LoadStatus,
    MetaStore,
    ProjectStore,
    RawStore,
)
from .storage import PersistedVersion, Storage, StorageStats
from .validity import InvalidReason, VersionContext, check_validity, is_valid

__all__ = [
    "AugmentedStore",
    "ByteStore",
    "ByteStoreError",
    "ConsolidatedStore",
    "EnvelopeCodec",
    "EnvelopeDecodeError",
    "EventStore",
    "FingerprintError",
    "InMemoryByteStore",
    "InvalidReason",
    "LoadResult",
    "LoadStatus",
    "MetaStore",
    "PersistedVersion",
    "ProjectStore",
    "RawStore",
    "RecordEnvelope",
    "RecordKind",
    "SqliteByteStore",
    "StageCacheError",
    "Storage",
    "StorageStats",
    "VersionContext",
    "check_validity",
    "fingerprint",
    "is_valid",
    "kind_for_key",
    "resolve_key",
    "wrap",
]
