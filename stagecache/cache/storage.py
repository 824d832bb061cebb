"""Storage facade: stage stores plus namespace-wide maintenance.

Usage::

    storage = Storage(InMemoryByteStore(), VersionContext("1.4.0", 2))

    envelope = await storage.raw.load("notes/a.md", fresh_content=text)
    if envelope is None:
        items = parse(text)
        await storage.raw.store("notes/a.md", items, content=text, modified_at=mtime)

    await storage.update_current_version("1.5.0")   # later loads evict old records
    print((await storage.stats()).to_dict())

Listing and statistics scan all keys without a snapshot; a store or remove
that commits mid-scan may or may not be reflected.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .backends import ByteStore
from .envelope import EnvelopeCodec, now_ms
from .errors import EnvelopeDecodeError
from .keys import SOURCE_KINDS, RecordKind, kind_for_key, resolve_key, strip_prefix
from .stage_stores import (
    AugmentedStore,
    ConsolidatedStore,
    EventStore,
    MetaStore,
    ProjectStore,
    RawStore,
)
from .validity import VersionContext

logger = logging.getLogger(__name__)

VERSION_META_KEY = "version"
SCHEMA_META_KEY = "schemaVersion"

SNAPSHOT_FORMAT = 1


@dataclass
class StorageStats:
    """Key counts by namespace.

    Keys matching no known prefix count toward ``total_keys`` only, so the
    per-namespace sum never exceeds the total.
    """

    total_keys: int = 0
    per_namespace: Dict[RecordKind, int] = field(
        default_factory=lambda: {kind: 0 for kind in RecordKind}
    )

    @property
    def unclassified(self) -> int:
        return self.total_keys - sum(self.per_namespace.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_keys": self.total_keys,
            "by_namespace": {kind.value: count for kind, count in self.per_namespace.items()},
            "unclassified": self.unclassified,
        }


@dataclass(frozen=True)
class PersistedVersion:
    """Version marker written by the last ``update_current_version`` call."""

    version: str
    schema: int


class Storage:
    """Entry point bundling the stage stores over one byte store.

    All stores share one :class:`VersionContext`, so
    :meth:`update_current_version` affects every kind immediately.

    Attributes:
        raw: Extracted items per source path
        project: Project data per source path
        augmented: Augmented items per source path
        consolidated: Whole-corpus index
        events: Event collection
        meta: Small unversioned JSON values
    """

    def __init__(
        self,
        byte_store: ByteStore,
        version: Optional[VersionContext] = None,
        codec: Optional[EnvelopeCodec] = None,
        app_id: str = "stagecache",
    ):
        self.app_id = app_id
        self._byte_store = byte_store
        self._version = version or VersionContext()
        self._codec = codec or EnvelopeCodec()

        self.raw = RawStore(byte_store, self._version, self._codec)
        self.project = ProjectStore(byte_store, self._version, self._codec)
        self.augmented = AugmentedStore(byte_store, self._version, self._codec)
        self.consolidated = ConsolidatedStore(byte_store, self._version, self._codec)
        self.events = EventStore(byte_store, self._version, self._codec)
        self.meta = MetaStore(byte_store, self._codec)

        logger.info(
            f"Initialized Storage for {app_id} "
            f"(version={self._version.app_version}, schema={self._version.schema_revision})"
        )

    @property
    def version(self) -> VersionContext:
        return self._version

    @property
    def byte_store(self) -> ByteStore:
        return self._byte_store

    # Namespace-wide operations

    async def list_identifiers(self, kind: RecordKind) -> List[str]:
        """List identifiers stored under a kind by key prefix."""
        keys = await self._byte_store.list_keys()
        return [strip_prefix(kind, key) for key in keys if key.startswith(kind.prefix)]

    async def list_raw_paths(self) -> List[str]:
        return await self.list_identifiers(RecordKind.RAW)

    async def list_augmented_paths(self) -> List[str]:
        return await self.list_identifiers(RecordKind.AUGMENTED)

    async def clear_namespace(self, kind: RecordKind) -> int:
        """Delete every key under a kind's prefix.

        Returns:
            Number of keys deleted
        """
        keys = [key for key in await self._byte_store.list_keys() if key.startswith(kind.prefix)]
        for key in keys:
            await self._byte_store.delete(key)
        logger.info(f"Cleared {len(keys)} {kind.value} records")
        return len(keys)

    async def clear_all(self) -> None:
        await self._byte_store.clear_all()
        logger.info("Cleared all cached records")

    async def clear_identifier(self, path: str) -> None:
        """Remove raw, project and augmented records for one source path."""
        for kind in SOURCE_KINDS:
            await self._byte_store.delete(resolve_key(kind, path))
        logger.debug(f"Cleared cached records for {path}")

    async def stats(self) -> StorageStats:
        """Count keys per namespace in a single pass."""
        keys = await self._byte_store.list_keys()
        stats = StorageStats(total_keys=len(keys))
        for key in keys:
            kind = kind_for_key(key)
            if kind is not None:
                stats.per_namespace[kind] += 1
        return stats

    # Version hooks

    async def update_current_version(self, version: str, schema_revision: Optional[int] = None) -> None:
        """Switch the running version/schema and persist the marker.

        Stored records are not touched; each is evicted on its next load.

        Raises:
            ByteStoreError: If the marker cannot be written
        """
        previous = (self._version.app_version, self._version.schema_revision)
        self._version.update(version, schema_revision)
        await self.meta.save(VERSION_META_KEY, {"version": self._version.app_version})
        await self.meta.save(SCHEMA_META_KEY, {"schema": self._version.schema_revision})
        logger.info(
            f"Cache version updated from {previous[0]}/{previous[1]} "
            f"to {self._version.app_version}/{self._version.schema_revision}"
        )

    async def load_persisted_version(self) -> Optional[PersistedVersion]:
        """Read the marker written by the last version update.

        Informational only; validity always uses the in-memory version.
        """
        version_data = await self.meta.load(VERSION_META_KEY)
        schema_data = await self.meta.load(SCHEMA_META_KEY)
        if not isinstance(version_data, dict) or not isinstance(schema_data, dict):
            return None

        version = version_data.get("version")
        schema = schema_data.get("schema")
        if not isinstance(version, str) or not isinstance(schema, int):
            logger.warning("Persisted version marker has unexpected shape")
            return None
        return PersistedVersion(version=version, schema=schema)

    async def schema_changed_since_last_run(self) -> bool:
        """Whether the persisted marker differs from the running version.

        Returns True when no marker has been persisted yet.
        """
        persisted = await self.load_persisted_version()
        if persisted is None:
            return True
        return (persisted.version, persisted.schema) != (
            self._version.app_version,
            self._version.schema_revision,
        )

    # Backup

    async def export_snapshot(self) -> Dict[str, Any]:
        """Export every decodable record as JSON-compatible data.

        Undecodable blobs are skipped with a warning.
        """
        records: Dict[str, Any] = {}
        singletons: List[str] = []
        for key in await self._byte_store.list_keys():
            blob = await self._byte_store.get(key)
            if blob is None:
                blob = await self._byte_store.get_singleton(key)
                if blob is None:
                    continue
                singletons.append(key)
            try:
                records[key] = self._codec.decode_value(blob)
            except EnvelopeDecodeError as e:
                logger.warning(f"Skipping undecodable record {key} in export: {e}")

        logger.info(f"Exported {len(records)} records")
        return {
            "format": SNAPSHOT_FORMAT,
            "app_id": self.app_id,
            "version": self._version.app_version,
            "schema": self._version.schema_revision,
            "exported_at": now_ms(),
            "singletons": sorted(singletons),
            "records": records,
        }

    async def import_snapshot(self, snapshot: Dict[str, Any], replace: bool = False) -> int:
        """Write records from :meth:`export_snapshot` back into the store.

        Envelopes keep their original stamps, so records exported under an
        older version are evicted on their next load as usual.

        Args:
            snapshot: Exported snapshot
            replace: Clear the store before importing

        Returns:
            Number of records written

        Raises:
            ValueError: If the snapshot has an unsupported format
            ByteStoreError: If a write fails
        """
        if snapshot.get("format") != SNAPSHOT_FORMAT or not isinstance(snapshot.get("records"), dict):
            raise ValueError(f"Unsupported snapshot format: {snapshot.get('format')!r}")

        if replace:
            await self.clear_all()

        singletons = set(snapshot.get("singletons", []))
        count = 0
        for key, value in snapshot["records"].items():
            data = self._codec.encode_value(value)
            if key in singletons:
                await self._byte_store.set_singleton(key, data)
            else:
                await self._byte_store.set(key, data)
            count += 1

        logger.info(f"Imported {count} records")
        return count

    async def close(self) -> None:
        await self._byte_store.close()
