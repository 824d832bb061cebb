"""Key namespace resolution for stage cache records.

Every record kind owns a distinct key prefix. Per-identifier kinds append the
identifier verbatim after the prefix; identifier-less kinds map to a single
fixed key. No prefix starts with another, so a key belongs to at most one
kind and ``str.startswith`` classification is unambiguous.
"""
from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional


class RecordKind(Enum):
    """Categories of cached records."""

    RAW = "raw"  # Extracted items per source path
    PROJECT = "project"  # Resolved project data per source path
    AUGMENTED = "augmented"  # Fully augmented items per source path
    CONSOLIDATED = "consolidated"  # Whole-corpus index snapshot
    EVENTS = "events"  # Event collection snapshot
    META = "meta"  # Arbitrary small JSON values

    @property
    def prefix(self) -> str:
        return _PREFIXES[self]

    @property
    def per_identifier(self) -> bool:
        return self in _PER_IDENTIFIER


_PREFIXES: Dict[RecordKind, str] = {
    RecordKind.RAW: "tasks.raw:",
    RecordKind.PROJECT: "project.data:",
    RecordKind.AUGMENTED: "tasks.augmented:",
    RecordKind.CONSOLIDATED: "consolidated:",
    RecordKind.EVENTS: "ics:",
    RecordKind.META: "meta:",
}

_PER_IDENTIFIER = frozenset(
    {RecordKind.RAW, RecordKind.PROJECT, RecordKind.AUGMENTED, RecordKind.META}
)

# Fixed suffixes for identifier-less kinds
_SINGLETON_NAMES: Dict[RecordKind, str] = {
    RecordKind.CONSOLIDATED: "taskIndex",
    RecordKind.EVENTS: "events",
}

# Kinds removed together by a per-path clear
SOURCE_KINDS: List[RecordKind] = [RecordKind.RAW, RecordKind.PROJECT, RecordKind.AUGMENTED]


def resolve_key(kind: RecordKind, identifier: Optional[str] = None) -> str:
    """Map a record kind and identifier to its storage key.

    Args:
        kind: Record kind
        identifier: Source path or meta key; must be omitted for
            consolidated and events kinds

    Returns:
        Storage key string

    Raises:
        ValueError: If the identifier is missing for a per-identifier kind
            or supplied for an identifier-less kind
    """
    if kind.per_identifier:
        if identifier is None:
            raise ValueError(f"{kind.value} records require an identifier")
        return f"{kind.prefix}{identifier}"

    if identifier is not None:
        raise ValueError(f"{kind.value} records do not take an identifier")
    return f"{kind.prefix}{_SINGLETON_NAMES[kind]}"


def kind_for_key(key: str) -> Optional[RecordKind]:
    """Classify a storage key by prefix, or None if no kind owns it."""
    for kind, prefix in _PREFIXES.items():
        if key.startswith(prefix):
            return kind
    return None


def strip_prefix(kind: RecordKind, key: str) -> str:
    """Remove the kind's prefix from a key.

    Raises:
        ValueError: If the key does not belong to the kind
    """
    if not key.startswith(kind.prefix):
        raise ValueError(f"Key {key!r} is not in the {kind.value} namespace")
    return key[len(kind.prefix):]
