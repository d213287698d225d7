"""Durable key-value stores backing the cache's second tier."""

import sqlite3
import threading
from pathlib import Path
from typing import Protocol

import structlog

from newshub.cache.errors import DurableStoreError


logger = structlog.get_logger()


class DurableStore(Protocol):
    """Protocol for the durable key-value tier.

    Implementations may raise DurableStoreError; the Cache Manager never
    lets it reach callers.
    """

    def get(self, key: str) -> bytes | None:
        """Read a value, or None if the key is absent."""
        ...

    def set(self, key: str, value: bytes) -> None:
        """Write a value, replacing any previous one."""
        ...

    def remove(self, key: str) -> None:
        """Delete a key if present."""
        ...

    def keys_with_prefix(self, prefix: str) -> list[str]:
        """List keys starting with prefix."""
        ...


class InMemoryDurableStore:
    """Dictionary-backed store for tests and ephemeral runs."""

    def __init__(self) -> None:
        self._data: dict[str, bytes] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> bytes | None:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: bytes) -> None:
        with self._lock:
            self._data[key] = value

    def remove(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys_with_prefix(self, prefix: str) -> list[str]:
        with self._lock:
            return [k for k in self._data if k.startswith(prefix)]

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)


class SqliteDurableStore:
    """SQLite-backed durable store.

    Stores values in a single kv table. Uses WAL mode and a lock-guarded
    connection shared across the cache's worker threads.
    """

    def __init__(self, db_path: Path | str) -> None:
        """Initialize the store.

        Args:
            db_path: Path to SQLite database file, or ":memory:".
        """
        self._db_path = str(db_path)
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()
        self._log = logger.bind(component="durable_store", db_path=self._db_path)

    @property
    def is_connected(self) -> bool:
        """Check if connected to database."""
        return self._conn is not None

    def connect(self) -> None:
        """Open the database and create the kv table.

        Creates parent directories for file-backed databases.

        Raises:
            DurableStoreError: If the database cannot be opened.
        """
        if self._conn is not None:
            return

        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)

        try:
            conn = sqlite3.connect(self._db_path, check_same_thread=False)
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")
            conn.execute(
                "CREATE TABLE IF NOT EXISTS kv ("
                "key TEXT PRIMARY KEY, "
                "value BLOB NOT NULL, "
                "updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP)"
            )
            conn.commit()
        except sqlite3.Error as e:
            raise DurableStoreError("connect", None, str(e)) from e

        self._conn = conn
        self._log.info("durable_store_connected")

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
                self._log.info("durable_store_closed")

    def __enter__(self) -> "SqliteDurableStore":
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Context manager exit."""
        self.close()

    def _ensure_connected(self, operation: str, key: str | None) -> sqlite3.Connection:
        if self._conn is None:
            raise DurableStoreError(operation, key, "database not connected")
        return self._conn

    def get(self, key: str) -> bytes | None:
        with self._lock:
            conn = self._ensure_connected("get", key)
            try:
                row = conn.execute(
                    "SELECT value FROM kv WHERE key = ?", (key,)
                ).fetchone()
            except sqlite3.Error as e:
                raise DurableStoreError("get", key, str(e)) from e
        return bytes(row[0]) if row else None

    def set(self, key: str, value: bytes) -> None:
        with self._lock:
            conn = self._ensure_connected("set", key)
            try:
                conn.execute(
                    "INSERT INTO kv (key, value, updated_at) "
                    "VALUES (?, ?, CURRENT_TIMESTAMP) "
                    "ON CONFLICT(key) DO UPDATE SET "
                    "value = excluded.value, updated_at = excluded.updated_at",
                    (key, value),
                )
                conn.commit()
            except sqlite3.Error as e:
                raise DurableStoreError("set", key, str(e)) from e

    def remove(self, key: str) -> None:
        with self._lock:
            conn = self._ensure_connected("remove", key)
            try:
                conn.execute("DELETE FROM kv WHERE key = ?", (key,))
                conn.commit()
            except sqlite3.Error as e:
                raise DurableStoreError("remove", key, str(e)) from e

    def keys_with_prefix(self, prefix: str) -> list[str]:
        with self._lock:
            conn = self._ensure_connected("keys", prefix)
            try:
                rows = conn.execute(
                    "SELECT key FROM kv "
                    "WHERE substr(key, 1, length(?)) = ? ORDER BY key",
                    (prefix, prefix),
                ).fetchall()
            except sqlite3.Error as e:
                raise DurableStoreError("keys", prefix, str(e)) from e
        return [row[0] for row in rows]
