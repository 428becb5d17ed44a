"""Durable key-value store backends.

Provides an in-memory store for tests, a JSON file store that writes
atomically, and a SQLite store for larger payloads.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path
from threading import Lock

from aifamily.config import AIFamilyConfig, StorageBackend
from aifamily.errors import StoreError

from .base import Store

logger = logging.getLogger(__name__)


class InMemoryStore:
    """Dict-backed store. Nothing survives the process."""

    def __init__(self, data: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(data or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class JsonFileStore:
    """
    Store backed by a single JSON document.

    The whole document is rewritten on every change: written to a temp
    file first, then renamed over the original.
    """

    def __init__(self, path: str | Path) -> None:
        """Initialize JSON file store.

        Args:
            path: Path to the JSON document. Parent directories are created.
        """
        self._path = Path(path).expanduser()
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = Lock()
        self._data: dict[str, str] = {}
        self._load()

    def _load(self) -> None:
        if not self._path.exists():
            logger.debug(f"No existing store at {self._path}")
            return

        try:
            with self._path.open("r") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to read store {self._path}, starting empty: {e}")
            self._set_aside()
            return

        if not isinstance(data, dict):
            logger.warning(f"Store {self._path} is not a JSON object, starting empty")
            self._set_aside()
            return

        self._data = {str(k): str(v) for k, v in data.items()}
        logger.debug(f"Loaded {len(self._data)} keys from {self._path}")

    def _set_aside(self) -> None:
        """Keep an unreadable document as *.corrupt."""
        corrupt_path = self._path.with_suffix(self._path.suffix + ".corrupt")
        try:
            self._path.replace(corrupt_path)
            logger.warning(f"Moved unreadable store to {corrupt_path}")
        except OSError as e:
            logger.warning(f"Could not move unreadable store {self._path}: {e}")

    def _save(self) -> None:
        try:
            temp_path = self._path.with_suffix(".tmp")
            with temp_path.open("w") as f:
                json.dump(self._data, f, indent=2)
            temp_path.replace(self._path)
        except OSError as e:
            raise StoreError(f"Failed to write store {self._path}: {e}") from e

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value
            self._save()

    def remove(self, key: str) -> None:
        with self._lock:
            if self._data.pop(key, None) is not None:
                self._save()

    @property
    def path(self) -> Path:
        return self._path


class SqliteStore:
    """Store backed by a single SQLite table."""

    def __init__(self, db_path: str | Path) -> None:
        """Initialize SQLite store.

        Args:
            db_path: Path to SQLite database (will be created if needed).
        """
        self._db_path = Path(db_path).expanduser()
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            self._conn = sqlite3.connect(str(self._db_path))
        except sqlite3.Error as e:
            raise StoreError(f"Failed to open store {self._db_path}: {e}") from e

        try:
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
            """
            )
            self._conn.commit()
        except sqlite3.Error as e:
            self._conn.close()
            raise StoreError(f"Failed to open store {self._db_path}: {e}") from e

    def get(self, key: str) -> str | None:
        try:
            row = self._conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to read key {key!r}: {e}") from e
        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        try:
            self._conn.execute(
                """
                INSERT INTO kv (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value
            """,
                (key, value),
            )
            self._conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to write key {key!r}: {e}") from e

    def remove(self, key: str) -> None:
        try:
            self._conn.execute("DELETE FROM kv WHERE key = ?", (key,))
            self._conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to remove key {key!r}: {e}") from e

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()


def create_store(config: AIFamilyConfig) -> Store:
    """Create the store backend selected in config.

    A backend that cannot be opened is replaced by an in-memory store.
    """
    backend = config.storage.backend
    if backend == StorageBackend.MEMORY:
        logger.warning("Using in-memory store; memories will not survive a restart")
        return InMemoryStore()

    try:
        if backend == StorageBackend.JSON:
            return JsonFileStore(config.storage_path)
        return SqliteStore(config.storage_path)
    except StoreError as e:
        logger.warning(f"{e}; using in-memory store, memories will not survive a restart")
        return InMemoryStore()
