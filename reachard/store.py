"""Persistent key-value store for client secrets, backed by SQLite.

Each store is one database file; each partition is one table holding
``key -> value`` records. The schema version lives in ``PRAGMA user_version``
so later releases can migrate existing files.

All public operations are coroutines. SQLite work runs in a worker thread and
an asyncio lock serializes operations in the order they were issued, so two
writes to the same key are never applied out of program order.
"""

import asyncio
import logging
import sqlite3
from pathlib import Path

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

# Partitions created on first open. Table names come only from this tuple.
PARTITIONS = ("auth",)


class StorageError(Exception):
    """Base class for credential store failures."""

    pass


class StorageUnavailable(StorageError):
    """Raised when persistent storage cannot be opened or read."""

    pass


class StorageWriteError(StorageError):
    """Raised when a write to persistent storage fails."""

    pass


def _connect(path: str) -> sqlite3.Connection:
    """Open the database file and create missing partitions.

    Raises:
        StorageUnavailable: If the file cannot be created, opened or migrated.
    """
    try:
        parent_dir = Path(path).parent
        if not parent_dir.exists():
            parent_dir.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(path, check_same_thread=False)
    except sqlite3.Error as e:
        raise StorageUnavailable(f"Failed to open store at {path}: {e}")
    except OSError as e:
        raise StorageUnavailable(f"Failed to create store directory for {path}: {e}")

    try:
        version = conn.execute("PRAGMA user_version").fetchone()[0]
        if version > SCHEMA_VERSION:
            raise StorageUnavailable(
                f"Store at {path} has schema version {version}, newer than supported {SCHEMA_VERSION}"
            )

        for partition in PARTITIONS:
            conn.execute(f"""
                CREATE TABLE IF NOT EXISTS {partition} (
                    key TEXT PRIMARY KEY,
                    value
                )
            """)

        if version < SCHEMA_VERSION:
            conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
        conn.commit()
        return conn

    except StorageUnavailable:
        conn.close()
        raise
    except sqlite3.Error as e:
        conn.close()
        raise StorageUnavailable(f"Failed to initialize store at {path}: {e}")


class CredentialStore:
    """Async key-value store scoped to one partition."""

    def __init__(self, path: str, partition: str = "auth") -> None:
        if partition not in PARTITIONS:
            raise ValueError(f"Unknown store partition '{partition}'")
        self._path = path
        self._partition = partition
        self._conn: sqlite3.Connection | None = None
        self._lock = asyncio.Lock()

    @property
    def path(self) -> str:
        return self._path

    async def open(self) -> "CredentialStore":
        """Ensure the backing file and partition exist. Safe to call repeatedly.

        Raises:
            StorageUnavailable: If the environment denies persistent storage.
        """
        async with self._lock:
            await self._ensure_open()
        return self

    async def _ensure_open(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = await asyncio.to_thread(_connect, self._path)
            logger.debug("Opened credential store at %s", self._path)
        return self._conn

    async def get(self, key: str) -> str:
        """Return the stored string, or "" if absent or not a non-empty string.

        Raises:
            StorageUnavailable: If the store cannot be opened or read.
        """
        async with self._lock:
            conn = await self._ensure_open()
            try:
                row = await asyncio.to_thread(self._select, conn, key)
            except sqlite3.Error as e:
                raise StorageUnavailable(f"Failed to read '{key}': {e}")

        if row is None:
            return ""
        value = row[0]
        if not isinstance(value, str) or not value:
            logger.warning("Ignoring non-string value stored under '%s'", key)
            return ""
        return value

    async def put(self, key: str, value: str) -> None:
        """Insert or replace a value.

        Raises:
            ValueError: If value is not a non-empty string.
            StorageUnavailable: If the store cannot be opened.
            StorageWriteError: If the write fails (e.g. disk full).
        """
        if not isinstance(value, str) or not value:
            raise ValueError("Stored values must be non-empty strings")

        async with self._lock:
            conn = await self._ensure_open()
            try:
                await asyncio.to_thread(self._upsert, conn, key, value)
            except sqlite3.Error as e:
                raise StorageWriteError(f"Failed to write '{key}': {e}")

    async def delete(self, key: str) -> None:
        """Remove a value. Deleting an absent key is a no-op.

        Raises:
            StorageUnavailable: If the store cannot be opened.
            StorageWriteError: If the delete fails.
        """
        async with self._lock:
            conn = await self._ensure_open()
            try:
                await asyncio.to_thread(self._remove, conn, key)
            except sqlite3.Error as e:
                raise StorageWriteError(f"Failed to delete '{key}': {e}")

    async def close(self) -> None:
        async with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def _select(self, conn: sqlite3.Connection, key: str) -> tuple | None:
        cursor = conn.execute(f"SELECT value FROM {self._partition} WHERE key = ?", (key,))
        return cursor.fetchone()

    def _upsert(self, conn: sqlite3.Connection, key: str, value: str) -> None:
        conn.execute(
            f"INSERT OR REPLACE INTO {self._partition} (key, value) VALUES (?, ?)",
            (key, value),
        )
        conn.commit()

    def _remove(self, conn: sqlite3.Connection, key: str) -> None:
        conn.execute(f"DELETE FROM {self._partition} WHERE key = ?", (key,))
        conn.commit()
