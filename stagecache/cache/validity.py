"""Staleness gates for cached record envelopes.

Gates are checked in order and short-circuit on the first failure:

1. App version must equal the current version (exact match)
2. Schema revision must equal the current revision (exact match)
3. Source mtime must match, when the kind has an mtime gate and both sides
   supply one
4. Fingerprint must match, when a fresh fingerprint is supplied

The mtime gate runs before the fingerprint gate because filesystem metadata
is available without reading the file body.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from .envelope import RecordEnvelope


class InvalidReason(Enum):
    """Why an envelope failed validation or could not be loaded."""

    VERSION_MISMATCH = "version_mismatch"
    SCHEMA_MISMATCH = "schema_mismatch"
    MTIME_MISMATCH = "mtime_mismatch"
    FINGERPRINT_MISMATCH = "fingerprint_mismatch"
    CORRUPT = "corrupt"


@dataclass
class VersionContext:
    """Application version and schema revision of the running code.

    One instance is shared by every stage store of a ``Storage`` so a version
    update is seen by all of them at once.
    """

    app_version: str = "1.0.0"
    schema_revision: int = 1

    def update(self, app_version: str, schema_revision: Optional[int] = None) -> None:
        self.app_version = app_version
        if schema_revision is not None:
            self.schema_revision = schema_revision


def check_validity(
    envelope: RecordEnvelope[Any],
    current_app_version: str,
    current_schema_revision: int,
    fresh_fingerprint: Optional[str] = None,
    fresh_modified_at: Optional[int] = None,
    check_modified_at: bool = False,
) -> Optional[InvalidReason]:
    """Return the first failing gate, or None if the envelope is valid.

    Args:
        envelope: Loaded envelope
        current_app_version: Version of the running application
        current_schema_revision: Schema revision of the running application
        fresh_fingerprint: Digest of the current source content, if known
        fresh_modified_at: Current source mtime in ms, if known
        check_modified_at: Whether the record kind carries an mtime gate
    """
    if envelope.app_version != current_app_version:
        return InvalidReason.VERSION_MISMATCH
    if envelope.schema_revision != current_schema_revision:
        return InvalidReason.SCHEMA_MISMATCH
    if (
        check_modified_at
        and envelope.source_modified_at is not None
        and fresh_modified_at is not None
        and envelope.source_modified_at != fresh_modified_at
    ):
        return InvalidReason.MTIME_MISMATCH
    if fresh_fingerprint is not None and envelope.fingerprint != fresh_fingerprint:
        return InvalidReason.FINGERPRINT_MISMATCH
    return None


def is_valid(
    envelope: RecordEnvelope[Any],
    current_app_version: str,
    current_schema_revision: int,
    fresh_fingerprint: Optional[str] = None,
    fresh_modified_at: Optional[int] = None,
    check_modified_at: bool = False,
) -> bool:
    """Decide whether a cached envelope may be reused."""
    return (
        check_validity(
            envelope,
            current_app_version,
            current_schema_revision,
            fresh_fingerprint=fresh_fingerprint,
            fresh_modified_at=fresh_modified_at,
            check_modified_at=check_modified_at,
        )
        is None
    )
