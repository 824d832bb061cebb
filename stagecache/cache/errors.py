"""Exception types raised by the stage cache layer."""
from __future__ import annotations

from typing import Optional


class StageCacheError(Exception):
    """Base class for stage cache errors."""


class ByteStoreError(StageCacheError):
    """Underlying byte store failed to read, write or delete a key."""

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message)
        self.key = key


class EnvelopeDecodeError(StageCacheError):
    """Stored blob is corrupt or does not have the envelope shape."""


class FingerprintError(StageCacheError):
    """Value could not be serialized for fingerprinting.

    Payloads are always expected to be JSON-serializable, so this indicates
    a programming error in the caller rather than a cache condition.
    """
