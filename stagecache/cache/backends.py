"""Byte store contract and implementations.

The stage cache keeps no storage of its own; it writes opaque blobs through a
:class:`ByteStore`. Two implementations are provided:

- InMemoryByteStore: dict-backed store with an optional size quota.
  Best for: tests and short-lived processes.

- SqliteByteStore: persistent SQLite database with WAL journaling.
  Best for: keeping parse results across application restarts.

Both expose two tiers sharing one key space: regular records and singletons
(used for the consolidated index, which may be large and is written rarely).
``list_keys``, ``delete`` and ``clear_all`` cover both tiers.
"""
from __future__ import annotations

import asyncio
import logging
import re
import sqlite3
import time
from abc import ABC, abstractmethod
from pathlib import Path
from threading import Lock
from typing import Dict, List, Optional, Union

from .common import SizeLimitManager
from .errors import ByteStoreError

logger = logging.getLogger(__name__)


class ByteStore(ABC):
    """Abstract durable key to blob storage.

    Implementations know nothing about envelopes or namespaces. Write
    failures must raise :class:`ByteStoreError`; ``delete`` of an absent key
    is not an error.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[bytes]:
        """Return the blob stored under ``key``, or None."""

    @abstractmethod
    async def set(self, key: str, data: bytes) -> None:
        """Store ``data`` under ``key``, replacing any previous value."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove ``key`` from either tier; idempotent."""

    @abstractmethod
    async def list_keys(self) -> List[str]:
        """Return every key in both tiers."""

    @abstractmethod
    async def get_singleton(self, name: str) -> Optional[bytes]:
        """Return the singleton blob stored under ``name``, or None."""

    @abstractmethod
    async def set_singleton(self, name: str, data: bytes) -> None:
        """Store a singleton blob under ``name``."""

    @abstractmethod
    async def clear_all(self) -> None:
        """Remove everything from both tiers."""

    async def close(self) -> None:
        """Release backend resources."""


class InMemoryByteStore(ByteStore):
    """Dict-backed byte store.

    Args:
        max_size_mb: Optional quota across both tiers; writes that would
            exceed it raise ByteStoreError, mirroring a full disk or browser
            storage quota.
    """

    def __init__(self, max_size_mb: Optional[float] = None):
        self._records: Dict[str, bytes] = {}
        self._singletons: Dict[str, bytes] = {}
        self._size_manager: Optional[SizeLimitManager] = None
        if max_size_mb is not None:
            self._size_manager = SizeLimitManager(int(max_size_mb * 1024 * 1024))

        logger.debug(f"Initialized InMemoryByteStore with max_size={max_size_mb}MB")

    async def get(self, key: str) -> Optional[bytes]:
        return self._records.get(key)

    async def set(self, key: str, data: bytes) -> None:
        self._write(self._records, key, data)

    async def delete(self, key: str) -> None:
        for tier in (self._records, self._singletons):
            old = tier.pop(key, None)
            if old is not None and self._size_manager is not None:
                self._size_manager.remove_entry(len(old))

    async def list_keys(self) -> List[str]:
        return list(self._records) + list(self._singletons)

    async def get_singleton(self, name: str) -> Optional[bytes]:
        return self._singletons.get(name)

    async def set_singleton(self, name: str, data: bytes) -> None:
        self._write(self._singletons, name, data)

    async def clear_all(self) -> None:
        self._records.clear()
        self._singletons.clear()
        if self._size_manager is not None:
            self._size_manager.reset()

    @property
    def size(self) -> int:
        """Total stored bytes across both tiers."""
        return sum(len(v) for v in self._records.values()) + sum(
            len(v) for v in self._singletons.values()
        )

    def _write(self, tier: Dict[str, bytes], key: str, data: bytes) -> None:
        if not isinstance(data, (bytes, bytearray)):
            raise ByteStoreError(f"Expected bytes for {key}, got {type(data).__name__}", key=key)

        if self._size_manager is not None:
            old = tier.get(key)
            replaced = len(old) if old is not None else 0
            if self._size_manager.would_exceed_limit(len(data), replaced):
                raise ByteStoreError(
                    f"Quota exceeded writing {key} ({len(data)} bytes, "
                    f"{self._size_manager.available_space} available)",
                    key=key,
                )
            self._size_manager.remove_entry(replaced)
            self._size_manager.add_entry(len(data))

        tier[key] = bytes(data)


def _safe_db_name(app_id: str) -> str:
    return re.sub(r"[^A-Za-z0-9_.-]", "_", app_id) or "stagecache"


class SqliteByteStore(ByteStore):
    """Persistent byte store using SQLite with WAL mode.

    Blocking sqlite3 calls run in worker threads via ``asyncio.to_thread``.
    A single connection is shared and guarded by a lock, since sqlite3
    connections must not be used concurrently.

    Attributes:
        cache_dir: Directory containing the database
        db_path: Path to the ``<app_id>.db`` database file
    """

    def __init__(self, cache_dir: Optional[Union[str, Path]] = None, app_id: str = "stagecache"):
        if cache_dir is None:
            self.cache_dir = Path.home() / ".stagecache"
        else:
            self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.db_path = self.cache_dir / f"{_safe_db_name(app_id)}.db"
        self._lock = Lock()
        self._conn: Optional[sqlite3.Connection] = None

        self._run(self._init_database)
        logger.info(f"Initialized SqliteByteStore at {self.db_path} (WAL mode)")

    def _get_connection(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            # WAL allows readers while a writer is active
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA synchronous=NORMAL")
            self._conn.execute("PRAGMA temp_store=MEMORY")
        return self._conn

    def _init_database(self, conn: sqlite3.Connection) -> None:
        for table in ("records", "singletons"):
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {table} (
                    key TEXT PRIMARY KEY,
                    value BLOB NOT NULL,
                    size INTEGER NOT NULL,
                    updated_at REAL NOT NULL
                )
            """
            )
        conn.commit()

    def _run(self, operation, *args):
        """Run ``operation(conn, *args)`` under the lock, wrapping sqlite errors."""
        with self._lock:
            try:
                return operation(self._get_connection(), *args)
            except sqlite3.Error as e:
                key = args[0] if args and isinstance(args[0], str) else None
                raise ByteStoreError(f"SQLite operation failed: {e}", key=key) from e

    async def _call(self, operation, *args):
        return await asyncio.to_thread(self._run, operation, *args)

    @staticmethod
    def _select(table: str):
        def operation(conn: sqlite3.Connection, key: str) -> Optional[bytes]:
            row = conn.execute(f"SELECT value FROM {table} WHERE key = ?", (key,)).fetchone()
            return bytes(row[0]) if row else None

        return operation

    @staticmethod
    def _upsert(table: str):
        def operation(conn: sqlite3.Connection, key: str, data: bytes) -> None:
            conn.execute(
                f"""
                INSERT OR REPLACE INTO {table} (key, value, size, updated_at)
                VALUES (?, ?, ?, ?)
            """,
                (key, sqlite3.Binary(data), len(data), time.time()),
            )
            conn.commit()

        return operation

    @staticmethod
    def _delete(conn: sqlite3.Connection, key: str) -> None:
        conn.execute("DELETE FROM records WHERE key = ?", (key,))
        conn.execute("DELETE FROM singletons WHERE key = ?", (key,))
        conn.commit()

    @staticmethod
    def _keys(conn: sqlite3.Connection) -> List[str]:
        rows = conn.execute("SELECT key FROM records UNION ALL SELECT key FROM singletons").fetchall()
        return [row[0] for row in rows]

    @staticmethod
    def _clear(conn: sqlite3.Connection) -> None:
        conn.execute("DELETE FROM records")
        conn.execute("DELETE FROM singletons")
        conn.commit()

    async def get(self, key: str) -> Optional[bytes]:
        return await self._call(self._select("records"), key)

    async def set(self, key: str, data: bytes) -> None:
        await self._call(self._upsert("records"), key, data)

    async def delete(self, key: str) -> None:
        await self._call(self._delete, key)

    async def list_keys(self) -> List[str]:
        return await self._call(self._keys)

    async def get_singleton(self, name: str) -> Optional[bytes]:
        return await self._call(self._select("singletons"), name)

    async def set_singleton(self, name: str, data: bytes) -> None:
        await self._call(self._upsert("singletons"), name, data)

    async def clear_all(self) -> None:
        await self._call(self._clear)
        logger.info(f"Cleared all records in {self.db_path}")

    async def close(self) -> None:
        """Close the database connection; safe to call more than once."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
