"""Stage stores: load/store/remove for each cached record kind.

Each store resolves keys through the namespace resolver, wraps payloads in
versioned envelopes and runs the staleness gates before returning a hit.

Load outcomes are typed:

- HIT: a valid envelope was found
- MISS: nothing stored (or the byte store could not be read)
- EVICTED: something was stored but was corrupt or stale; it has been deleted

Envelopes failing the version or schema gate are deleted on first access,
so a version bump clears dead entries lazily without a bulk sweep.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Dict, Generic, List, Optional, TypeVar

from ..models.project import ProjectData
from .backends import ByteStore
from .envelope import EnvelopeCodec, RecordEnvelope, fingerprint, wrap
from .errors import ByteStoreError, EnvelopeDecodeError
from .keys import RecordKind, resolve_key
from .validity import InvalidReason, VersionContext, check_validity

logger = logging.getLogger(__name__)

T = TypeVar("T")

Item = Dict[str, Any]


class LoadStatus(Enum):
    """Outcome category of a stage store load."""

    HIT = "hit"
    MISS = "miss"
    EVICTED = "evicted"


@dataclass(frozen=True)
class LoadResult(Generic[T]):
    """Typed result of a load.

    Attributes:
        status: Hit, miss or evicted
        envelope: The valid envelope on a hit, otherwise None
        reason: Why the record was evicted, for EVICTED results
    """

    status: LoadStatus
    envelope: Optional[RecordEnvelope[T]] = None
    reason: Optional[InvalidReason] = None

    @property
    def is_hit(self) -> bool:
        return self.status is LoadStatus.HIT

    @property
    def payload(self) -> Optional[T]:
        return self.envelope.payload if self.envelope is not None else None

    @classmethod
    def hit(cls, envelope: RecordEnvelope[T]) -> "LoadResult[T]":
        return cls(LoadStatus.HIT, envelope=envelope)

    @classmethod
    def miss(cls) -> "LoadResult[T]":
        return cls(LoadStatus.MISS)

    @classmethod
    def evicted(cls, reason: InvalidReason) -> "LoadResult[T]":
        return cls(LoadStatus.EVICTED, reason=reason)


class StageStore(Generic[T]):
    """Base class holding the shared load/store/evict sequence.

    Subclasses set ``kind`` and expose identifier-specific public methods.
    They may override ``_encode_payload``/``_decode_payload`` to convert
    between the in-memory payload type and its JSON form.
    """

    kind: ClassVar[RecordKind]
    has_mtime_gate: ClassVar[bool] = False
    uses_singleton_tier: ClassVar[bool] = False

    def __init__(
        self,
        byte_store: ByteStore,
        version: VersionContext,
        codec: Optional[EnvelopeCodec] = None,
    ):
        self._byte_store = byte_store
        self._version = version
        self._codec = codec or EnvelopeCodec()

    @property
    def version(self) -> VersionContext:
        return self._version

    def _encode_payload(self, payload: T) -> Any:
        return payload

    def _decode_payload(self, data: Any) -> T:
        return data

    async def _read_blob(self, key: str) -> Optional[bytes]:
        if self.uses_singleton_tier:
            return await self._byte_store.get_singleton(key)
        return await self._byte_store.get(key)

    async def _write_blob(self, key: str, data: bytes) -> None:
        if self.uses_singleton_tier:
            await self._byte_store.set_singleton(key, data)
        else:
            await self._byte_store.set(key, data)

    def _wrap(
        self,
        payload: T,
        fingerprint_source: Any,
        source_modified_at: Optional[int] = None,
    ) -> RecordEnvelope[T]:
        # Always stamp the running version, never the replaced record's
        return wrap(
            payload,
            self._version.app_version,
            self._version.schema_revision,
            fingerprint_source,
            source_modified_at=source_modified_at,
        )

    async def _fetch(
        self,
        key: str,
        fresh_fingerprint: Optional[str] = None,
        fresh_modified_at: Optional[int] = None,
    ) -> LoadResult[T]:
        try:
            blob = await self._read_blob(key)
        except ByteStoreError as e:
            logger.error(f"Error loading {key}: {e}")
            return LoadResult.miss()

        if blob is None:
            logger.debug(f"Cache miss for {key}")
            return LoadResult.miss()

        try:
            envelope = self._codec.decode(blob, self._decode_payload)
        except EnvelopeDecodeError as e:
            logger.warning(f"Discarding corrupt cache entry {key}: {e}")
            return await self._evict(key, InvalidReason.CORRUPT)

        reason = check_validity(
            envelope,
            self._version.app_version,
            self._version.schema_revision,
            fresh_fingerprint=fresh_fingerprint,
            fresh_modified_at=fresh_modified_at,
            check_modified_at=self.has_mtime_gate,
        )
        if reason is not None:
            logger.debug(
                f"Evicting {key}: {reason.value} "
                f"(stored {envelope.app_version}/{envelope.schema_revision}, "
                f"current {self._version.app_version}/{self._version.schema_revision})"
            )
            return await self._evict(key, reason)

        logger.debug(f"Cache hit for {key}")
        return LoadResult.hit(envelope)

    async def _evict(self, key: str, reason: InvalidReason) -> LoadResult[T]:
        try:
            await self._byte_store.delete(key)
        except ByteStoreError as e:
            # The load still reports the record as unusable
            logger.error(f"Failed to evict {key}: {e}")
        return LoadResult.evicted(reason)

    async def _store(self, key: str, envelope: RecordEnvelope[T]) -> RecordEnvelope[T]:
        data = self._codec.encode(envelope, self._encode_payload)
        await self._write_blob(key, data)
        logger.debug(f"Stored {key} ({len(data)} bytes)")
        return envelope

    async def _remove(self, key: str) -> None:
        await self._byte_store.delete(key)


class PathStageStore(StageStore[T]):
    """Stage store keyed by source path; fingerprints the payload."""

    async def fetch(self, path: str) -> LoadResult[T]:
        """Load the record for ``path`` as a typed outcome."""
        return await self._fetch(resolve_key(self.kind, path))

    async def load(self, path: str) -> Optional[RecordEnvelope[T]]:
        """Load the record for ``path``, or None on miss or eviction."""
        return (await self.fetch(path)).envelope

    async def store(self, path: str, payload: T) -> RecordEnvelope[T]:
        """Write a fresh envelope for ``path``.

        Raises:
            ByteStoreError: If the byte store rejects the write
        """
        envelope = self._wrap(payload, self._encode_payload(payload))
        return await self._store(resolve_key(self.kind, path), envelope)

    async def remove(self, path: str) -> None:
        """Delete the record for ``path``; absent records are ignored."""
        await self._remove(resolve_key(self.kind, path))


def _decode_item_list(data: Any) -> List[Item]:
    if not isinstance(data, list):
        raise TypeError(f"Expected item list, got {type(data).__name__}")
    return data


class RawStore(PathStageStore[List[Item]]):
    """Extracted items per source file, gated by content hash and mtime."""

    kind = RecordKind.RAW
    has_mtime_gate = True

    def _decode_payload(self, data: Any) -> List[Item]:
        return _decode_item_list(data)

    async def fetch(
        self,
        path: str,
        fresh_content: Optional[str] = None,
        fresh_modified_at: Optional[int] = None,
    ) -> LoadResult[List[Item]]:
        """Load raw items for ``path``.

        When the current file content or mtime is supplied, the content and
        mtime gates run as well and a stale record is evicted.
        """
        fresh_fingerprint = fingerprint(fresh_content) if fresh_content else None
        return await self._fetch(
            resolve_key(self.kind, path),
            fresh_fingerprint=fresh_fingerprint,
            fresh_modified_at=fresh_modified_at,
        )

    async def load(
        self,
        path: str,
        fresh_content: Optional[str] = None,
        fresh_modified_at: Optional[int] = None,
    ) -> Optional[RecordEnvelope[List[Item]]]:
        result = await self.fetch(path, fresh_content, fresh_modified_at)
        return result.envelope

    async def store(
        self,
        path: str,
        items: List[Item],
        content: Optional[str] = None,
        modified_at: Optional[int] = None,
    ) -> RecordEnvelope[List[Item]]:
        """Write raw items for ``path``.

        Args:
            path: Source file path
            items: Extracted items
            content: Source text the items were parsed from; hashed when
                given, otherwise the items themselves are hashed
            modified_at: Source file mtime in ms

        Raises:
            ByteStoreError: If the byte store rejects the write
        """
        envelope = self._wrap(items, content or items, source_modified_at=modified_at)
        return await self._store(resolve_key(self.kind, path), envelope)

    def is_fresh(
        self,
        path: str,
        envelope: RecordEnvelope[List[Item]],
        fresh_content: Optional[str] = None,
        fresh_modified_at: Optional[int] = None,
    ) -> bool:
        """Run every staleness gate against an envelope already in hand."""
        reason = check_validity(
            envelope,
            self._version.app_version,
            self._version.schema_revision,
            fresh_fingerprint=fingerprint(fresh_content) if fresh_content else None,
            fresh_modified_at=fresh_modified_at,
            check_modified_at=True,
        )
        if reason is not None:
            logger.debug(f"Raw record for {path} is stale: {reason.value}")
        return reason is None


class ProjectStore(PathStageStore[ProjectData]):
    """Resolved project reference and enhanced metadata per source file."""

    kind = RecordKind.PROJECT

    def _encode_payload(self, payload: ProjectData) -> Dict[str, Any]:
        return payload.to_dict()

    def _decode_payload(self, data: Any) -> ProjectData:
        return ProjectData.from_dict(data)


class AugmentedStore(PathStageStore[List[Item]]):
    """Fully augmented items per source file."""

    kind = RecordKind.AUGMENTED

    def _decode_payload(self, data: Any) -> List[Item]:
        return _decode_item_list(data)


class SnapshotStore(StageStore[T]):
    """Identifier-less store valid by version and schema only."""

    def _fingerprint_source(self, payload: T) -> Any:
        return self._encode_payload(payload)

    @property
    def key(self) -> str:
        return resolve_key(self.kind)

    async def fetch(self) -> LoadResult[T]:
        return await self._fetch(self.key)

    async def load(self) -> Optional[RecordEnvelope[T]]:
        return (await self.fetch()).envelope

    async def store(self, payload: T) -> RecordEnvelope[T]:
        """Replace the snapshot.

        Raises:
            ByteStoreError: If the byte store rejects the write
        """
        envelope = self._wrap(payload, self._fingerprint_source(payload))
        return await self._store(self.key, envelope)

    async def remove(self) -> None:
        await self._remove(self.key)


class ConsolidatedStore(SnapshotStore[Dict[str, Any]]):
    """Whole-corpus index snapshot, kept in the singleton tier."""

    kind = RecordKind.CONSOLIDATED
    uses_singleton_tier = True

    def _decode_payload(self, data: Any) -> Dict[str, Any]:
        if not isinstance(data, dict):
            raise TypeError(f"Expected index mapping, got {type(data).__name__}")
        return data

    def _fingerprint_source(self, payload: Dict[str, Any]) -> Any:
        # The index can be large; digest its key set only
        return sorted(payload, key=str)

    async def store(self, payload: Dict[str, Any]) -> RecordEnvelope[Dict[str, Any]]:
        logger.info(f"Storing consolidated index with {len(payload)} entries")
        return await super().store(payload)


class EventStore(SnapshotStore[List[Item]]):
    """Collection of externally sourced events."""

    kind = RecordKind.EVENTS

    def _decode_payload(self, data: Any) -> List[Item]:
        return _decode_item_list(data)

    async def load_events(self) -> List[Item]:
        """Return cached events, or an empty list on miss."""
        envelope = await self.load()
        return envelope.payload if envelope is not None else []

    async def store(self, payload: List[Item]) -> RecordEnvelope[List[Item]]:
        envelope = await super().store(payload)
        logger.info(f"Stored {len(payload)} events")
        return envelope


class MetaStore:
    """Small JSON values under ``meta:<key>``.

    Meta values are not enveloped, so they survive version and schema
    changes. The persisted version marker is kept here.
    """

    kind = RecordKind.META

    def __init__(self, byte_store: ByteStore, codec: Optional[EnvelopeCodec] = None):
        self._byte_store = byte_store
        self._codec = codec or EnvelopeCodec()

    async def save(self, key: str, value: Any) -> None:
        """Store a JSON value.

        Raises:
            ValueError: If the value is not JSON-serializable
            ByteStoreError: If the byte store rejects the write
        """
        await self._byte_store.set(resolve_key(self.kind, key), self._codec.encode_value(value))

    async def load(self, key: str) -> Optional[Any]:
        """Return the stored value, or None if absent or unreadable."""
        storage_key = resolve_key(self.kind, key)
        try:
            blob = await self._byte_store.get(storage_key)
        except ByteStoreError as e:
            logger.error(f"Error loading meta {key}: {e}")
            return None
        if blob is None:
            return None

        try:
            return self._codec.decode_value(blob)
        except EnvelopeDecodeError as e:
            logger.warning(f"Discarding corrupt meta entry {storage_key}: {e}")
            try:
                await self._byte_store.delete(storage_key)
            except ByteStoreError as delete_error:
                logger.error(f"Failed to evict {storage_key}: {delete_error}")
            return None

    async def remove(self, key: str) -> None:
        await self._byte_store.delete(resolve_key(self.kind, key))
