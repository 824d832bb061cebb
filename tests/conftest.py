"""Global pytest fixtures and configuration.

This module provides shared fixtures for all tests including:
- Version contexts and in-memory byte stores
- Storage facades over memory and SQLite backends
- Sample parsed items and source text
"""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List

import pytest

from stagecache.cache import (
    EnvelopeCodec,
    InMemoryByteStore,
    SqliteByteStore,
    Storage,
    VersionContext,
)


@pytest.fixture(autouse=True)
def clear_stagecache_env(monkeypatch, tmp_path: Path):
    """Isolate tests from STAGECACHE_* variables and any local .env file."""
    import os

    for name in list(os.environ):
        if name.startswith("STAGECACHE_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def version() -> VersionContext:
    return VersionContext(app_version="1.0.0", schema_revision=1)


@pytest.fixture
def byte_store() -> InMemoryByteStore:
    return InMemoryByteStore()


@pytest.fixture
def storage(byte_store: InMemoryByteStore, version: VersionContext) -> Storage:
    return Storage(byte_store, version=version, app_id="test-app")


@pytest.fixture
def sqlite_store(tmp_path: Path) -> SqliteByteStore:
    return SqliteByteStore(cache_dir=tmp_path / "cache", app_id="test-app")


@pytest.fixture
def sqlite_storage(sqlite_store: SqliteByteStore, version: VersionContext) -> Storage:
    return Storage(sqlite_store, version=version, codec=EnvelopeCodec(compress=True), app_id="test-app")


@pytest.fixture
def source_text() -> str:
    return "- [ ] buy milk\n- [x] call bank 📅 2024-05-01\n"


@pytest.fixture
def raw_items() -> List[Dict[str, Any]]:
    return [
        {"id": "a.md-L1", "content": "buy milk", "completed": False, "line": 0},
        {"id": "a.md-L2", "content": "call bank", "completed": True, "line": 1,
         "metadata": {"dueDate": 1714521600000}},
    ]
