"""
Key/value storage backends.

Client-local persistence used by the quota tracker. Every backend exposes
the same small surface: get, set, remove and an atomic update.
"""

import logging
import sqlite3
from typing import Callable, Dict, Optional, Protocol

from .db import DEFAULT_DB_PATH, get_connection

logger = logging.getLogger(__name__)


class StorageUnavailable(Exception):
    """Raised when the backing store cannot be read or written."""


class KeyValueStorage(Protocol):
    """String key/value store injected into the quota tracker."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        ...

    def update(self, key: str, fn: Callable[[Optional[str]], str]) -> str:
        ...


class InMemoryStorage:
    """Process-local store; each instance is one tracking context."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def update(self, key: str, fn: Callable[[Optional[str]], str]) -> str:
        value = fn(self._data.get(key))
        self._data[key] = value
        return value


class SQLiteStorage:
    """Key/value store persisted in a SQLite file.

    ``update`` runs inside ``BEGIN IMMEDIATE`` so concurrent writers
    (several processes sharing one database) serialize their
    read-modify-write cycles instead of losing increments.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        """Initialize the store with a database path.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        try:
            return get_connection(self.db_path)
        except (sqlite3.Error, OSError) as e:
            raise StorageUnavailable(f"Cannot open storage at {self.db_path}: {e}") from e

    def get(self, key: str) -> Optional[str]:
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT value FROM kv_store WHERE key = ?", (key,)
            ).fetchone()
            return row[0] if row else None
        except sqlite3.Error as e:
            raise StorageUnavailable(f"Cannot read key {key!r}: {e}") from e
        finally:
            conn.close()

    def set(self, key: str, value: str) -> None:
        conn = self._connect()
        try:
            conn.execute(
                "INSERT OR REPLACE INTO kv_store (key, value) VALUES (?, ?)",
                (key, value)
            )
        except sqlite3.Error as e:
            raise StorageUnavailable(f"Cannot write key {key!r}: {e}") from e
        finally:
            conn.close()

    def remove(self, key: str) -> None:
        conn = self._connect()
        try:
            conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
        except sqlite3.Error as e:
            raise StorageUnavailable(f"Cannot remove key {key!r}: {e}") from e
        finally:
            conn.close()

    def update(self, key: str, fn: Callable[[Optional[str]], str]) -> str:
        """Atomically replace the value stored under ``key``.

        Args:
            key: Storage key
            fn: Receives the current value (or None) and returns the new one

        Returns:
            The value written
        """
        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                "SELECT value FROM kv_store WHERE key = ?", (key,)
            ).fetchone()
            value = fn(row[0] if row else None)
            conn.execute(
                "INSERT OR REPLACE INTO kv_store (key, value) VALUES (?, ?)",
                (key, value)
            )
            conn.execute("COMMIT")
            return value
        except sqlite3.Error as e:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise StorageUnavailable(f"Cannot update key {key!r}: {e}") from e
        except Exception:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        finally:
            conn.close()


def initialize_schema(db_path: str = DEFAULT_DB_PATH) -> None:
    """Create the kv_store table if it doesn't exist.

    Args:
        db_path: Path to SQLite database file

    Raises:
        StorageUnavailable: If the database cannot be opened or is corrupt
    """
    try:
        conn = get_connection(db_path)
    except (sqlite3.Error, OSError) as e:
        raise StorageUnavailable(f"Cannot open storage at {db_path}: {e}") from e
    try:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            )
        """)
        logger.debug("Initialized kv_store schema at %s", db_path)
    except sqlite3.Error as e:
        raise StorageUnavailable(f"Cannot initialize storage at {db_path}: {e}") from e
    finally:
        conn.close()


def get_storage(db_path: Optional[str] = None) -> SQLiteStorage:
    """Return an initialized SQLite store.

    A database that cannot be initialized is logged and still returned;
    its reads and writes then raise StorageUnavailable, which callers
    treat as an empty record.

    Args:
        db_path: Path to SQLite database file (defaults to ".tabconvert.db")
    """
    path = db_path or DEFAULT_DB_PATH
    try:
        initialize_schema(path)
    except StorageUnavailable as e:
        logger.warning("Usage storage unavailable: %s", e)
    return SQLiteStorage(path)
