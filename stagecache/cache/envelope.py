"""Versioned record envelope, fingerprinting and blob codec.

Every cached stage record is wrapped in a :class:`RecordEnvelope` carrying:

- ``fingerprint``: change-detector digest of the source content or payload
- ``written_at``: write time in milliseconds since the epoch
- ``app_version`` / ``schema_revision``: stamps checked on every load
- ``source_modified_at``: source file mtime (raw records only)

Fingerprints are the first 64 bits of a SHA-256 digest. They are change
detectors only: equal inputs always give equal digests and distinct text
files or item lists collide with negligible probability.

Blob layout (UTF-8 JSON, optionally zlib-compressed)::

    {"hash": "...", "time": 1700000000000, "version": "1.0.0",
     "schema": 1, "data": <payload>, "mtime": 1699999999000}
"""
from __future__ import annotations

import hashlib
import json
import time
import zlib
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Generic, Optional, TypeVar

from .errors import EnvelopeDecodeError, FingerprintError

T = TypeVar("T")

# zlib streams start with 0x78; plain JSON envelopes start with "{"
_ZLIB_MAGIC = 0x78


def _canonical_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    try:
        return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    except (TypeError, ValueError) as e:
        raise FingerprintError(f"Cannot fingerprint value of type {type(value).__name__}: {e}") from e


def fingerprint(value: Any) -> str:
    """Compute a short digest of a string or JSON-serializable value.

    Strings are hashed verbatim. Other values are serialized to canonical
    JSON (sorted keys, compact separators) first, so dict key order does not
    matter but list order does.

    Args:
        value: Content string or serializable payload

    Returns:
        16 lowercase hex digits

    Raises:
        FingerprintError: If the value is not JSON-serializable
    """
    return hashlib.sha256(_canonical_text(value).encode("utf-8")).hexdigest()[:16]


def now_ms() -> int:
    """Current wall-clock time in milliseconds since the epoch."""
    return int(time.time() * 1000)


@dataclass(frozen=True)
class RecordEnvelope(Generic[T]):
    """Versioned wrapper around a cached payload."""

    fingerprint: str
    written_at: int
    app_version: str
    schema_revision: int
    payload: T
    source_modified_at: Optional[int] = None

    def with_payload(self, payload: Any) -> "RecordEnvelope[Any]":
        """Return a copy carrying a different payload representation."""
        return replace(self, payload=payload)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the persisted dictionary layout."""
        data: Dict[str, Any] = {
            "hash": self.fingerprint,
            "time": self.written_at,
            "version": self.app_version,
            "schema": self.schema_revision,
            "data": self.payload,
        }
        if self.source_modified_at is not None:
            data["mtime"] = self.source_modified_at
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RecordEnvelope[Any]":
        """Create from the persisted dictionary layout.

        Raises:
            EnvelopeDecodeError: If required fields are missing or mistyped
        """
        if not isinstance(data, dict):
            raise EnvelopeDecodeError(f"Expected envelope object, got {type(data).__name__}")
        try:
            fingerprint_value = data["hash"]
            written_at = data["time"]
            app_version = data["version"]
            schema_revision = data["schema"]
            payload = data["data"]
        except KeyError as e:
            raise EnvelopeDecodeError(f"Envelope missing field {e}") from e

        mtime = data.get("mtime")
        if not isinstance(fingerprint_value, str) or not isinstance(app_version, str):
            raise EnvelopeDecodeError("Envelope hash and version must be strings")
        if not _is_int(written_at) or not _is_int(schema_revision):
            raise EnvelopeDecodeError("Envelope time and schema must be integers")
        if mtime is not None and not _is_int(mtime):
            raise EnvelopeDecodeError("Envelope mtime must be an integer")

        return cls(
            fingerprint=fingerprint_value,
            written_at=written_at,
            app_version=app_version,
            schema_revision=schema_revision,
            payload=payload,
            source_modified_at=mtime,
        )


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def wrap(
    payload: T,
    app_version: str,
    schema_revision: int,
    fingerprint_source: Any,
    source_modified_at: Optional[int] = None,
) -> RecordEnvelope[T]:
    """Build a fresh envelope stamped with the given version and schema.

    Args:
        payload: Value to cache
        app_version: Producing application version
        schema_revision: Current payload schema revision
        fingerprint_source: Content string or payload to digest
        source_modified_at: Source mtime in ms (raw records only)

    Returns:
        New RecordEnvelope with ``written_at`` set to now
    """
    return RecordEnvelope(
        fingerprint=fingerprint(fingerprint_source),
        written_at=now_ms(),
        app_version=app_version,
        schema_revision=schema_revision,
        payload=payload,
        source_modified_at=source_modified_at,
    )


class EnvelopeCodec:
    """Convert envelopes to and from byte blobs.

    Payloads pass through optional encoder/decoder hooks so each stage store
    controls its own payload shape while the envelope layout stays uniform.
    """

    def __init__(self, compress: bool = False, level: int = 6):
        self.compress = compress
        self.level = level

    def encode(
        self,
        envelope: RecordEnvelope[Any],
        payload_encoder: Optional[Callable[[Any], Any]] = None,
    ) -> bytes:
        """Serialize an envelope to bytes.

        Raises:
            ValueError: If the payload is not JSON-serializable
        """
        if payload_encoder is not None:
            envelope = envelope.with_payload(payload_encoder(envelope.payload))
        return self.encode_value(envelope.to_dict())

    def decode(
        self,
        data: bytes,
        payload_decoder: Optional[Callable[[Any], Any]] = None,
    ) -> RecordEnvelope[Any]:
        """Deserialize bytes into an envelope.

        Raises:
            EnvelopeDecodeError: On corrupt bytes, invalid JSON, a foreign
                shape, or a payload the decoder rejects
        """
        envelope = RecordEnvelope.from_dict(self.decode_value(data))
        if payload_decoder is None:
            return envelope
        try:
            return envelope.with_payload(payload_decoder(envelope.payload))
        except (KeyError, TypeError, ValueError) as e:
            raise EnvelopeDecodeError(f"Payload has unexpected shape: {e}") from e

    def encode_value(self, value: Any) -> bytes:
        """Serialize a plain JSON value, compressing if enabled."""
        try:
            raw = json.dumps(value, ensure_ascii=False).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise ValueError(f"Failed to serialize cache value: {e}") from e
        if self.compress:
            return zlib.compress(raw, level=self.level)
        return raw

    def decode_value(self, data: bytes) -> Any:
        """Deserialize a plain JSON value, decompressing when needed.

        Compression is detected from the leading byte, so blobs written with
        either setting remain readable after the setting changes.
        """
        if not data:
            raise EnvelopeDecodeError("Empty blob")
        try:
            if data[0] == _ZLIB_MAGIC:
                data = zlib.decompress(data)
            return json.loads(data.decode("utf-8"))
        except (zlib.error, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise EnvelopeDecodeError(f"Failed to decode blob: {e}") from e
