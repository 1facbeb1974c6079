"""
Storage - Key-value persistence ports for the progress record.

Progress is persisted as one JSON blob under one fixed key, so every
backend only needs whole-value get/set/remove:
- SQLiteStorage: ~/.awwal/progress.db, survives restarts
- MemoryStorage: dict-backed, for tests and throwaway sessions
"""

import sqlite3
from pathlib import Path
from typing import Optional, Protocol


DEFAULT_STORAGE_DIR = Path.home() / ".awwal"
DEFAULT_STORAGE_DB = DEFAULT_STORAGE_DIR / "progress.db"


class KeyValueStorage(Protocol):
    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class SQLiteStorage:
    """
    Key-value store in a single SQLite table.

    Each method opens its own connection, so one instance may be shared
    between the UI thread and the sync worker.
    """

    def __init__(self, db_path: Optional[Path] = None):
        """
        Initialize storage.

        Args:
            db_path: Path to progress.db (default: ~/.awwal/progress.db)
        """
        self.db_path = Path(db_path) if db_path else DEFAULT_STORAGE_DB
        self._ensure_database()

    def _ensure_database(self):
        """Create database and table if they don't exist."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(str(self.db_path))
        try:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );
            """)
            conn.commit()
        finally:
            conn.close()

    def _get_connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        return conn

    def get_item(self, key: str) -> Optional[str]:
        conn = self._get_connection()
        try:
            cursor = conn.execute(
                "SELECT value FROM kv_store WHERE key = ?",
                (key,)
            )
            row = cursor.fetchone()
            return row["value"] if row else None
        finally:
            conn.close()

    def set_item(self, key: str, value: str) -> None:
        conn = self._get_connection()
        try:
            conn.execute(
                """INSERT INTO kv_store (key, value) VALUES (?, ?)
                   ON CONFLICT(key) DO UPDATE SET value = excluded.value""",
                (key, value)
            )
            conn.commit()
        finally:
            conn.close()

    def remove_item(self, key: str) -> None:
        conn = self._get_connection()
        try:
            conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
            conn.commit()
        finally:
            conn.close()


class MemoryStorage:
    """In-process key-value store."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._items: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)
