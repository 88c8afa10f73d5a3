"""Local key-value store holding the on-device collections and settings."""

import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional

from ..config import Config

__all__ = [
    "LocalStore",
    "WORKOUTS_KEY",
    "TRAINING_PLANS_KEY",
    "DRIVE_CLIENT_ID_KEY",
    "DRIVE_AUTO_SYNC_KEY",
    "DRIVE_FILE_ID_KEY",
    "migration_flag_key",
]

logger = logging.getLogger(__name__)

WORKOUTS_KEY = "workouts"
TRAINING_PLANS_KEY = "trainingPlans"
DRIVE_CLIENT_ID_KEY = "googleDriveClientId"
DRIVE_AUTO_SYNC_KEY = "googleDriveAutoSync"
DRIVE_FILE_ID_KEY = "googleDriveFileId"


def migration_flag_key(user_id: str) -> str:
    """Key of the per-user sentinel written once migration completes."""
    return f"migrated_{user_id}"


class LocalStore:
    """SQLite-based key-value store.

    Values are stored as text. Collections (workouts, training plans) are
    JSON-encoded lists under a single key each.
    """

    def __init__(self, db_path: Optional[Path] = None):
        """Initialize the local store.

        Args:
            db_path: Path to SQLite database file
        """
        if db_path is None:
            db_path = Config.get_data_dir() / "local_store.db"

        self.db_path = db_path
        self._local = threading.local()
        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        """Get thread-local database connection."""
        if not hasattr(self._local, "connection"):
            self._local.connection = sqlite3.connect(str(self.db_path))
            self._local.connection.row_factory = sqlite3.Row
        return self._local.connection

    @contextmanager
    def _cursor(self) -> Iterator[sqlite3.Cursor]:
        """Context manager for database cursor."""
        conn = self._get_connection()
        cursor = conn.cursor()
        try:
            yield cursor
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()

    def _init_db(self) -> None:
        """Initialize the database schema."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        with self._cursor() as cursor:
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS kv_entries (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )

    # Raw values

    def get(self, key: str) -> Optional[str]:
        """Get the raw value stored under a key, or None."""
        with self._cursor() as cursor:
            cursor.execute("SELECT value FROM kv_entries WHERE key = ?", (key,))
            row = cursor.fetchone()
            return row["value"] if row else None

    def set(self, key: str, value: str) -> None:
        """Store a raw value, replacing any previous one."""
        now = datetime.now(timezone.utc).isoformat()
        with self._cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO kv_entries (key, value, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
                """,
                (key, value, now),
            )

    def remove(self, key: str) -> bool:
        """Remove a key. Returns True if it existed."""
        with self._cursor() as cursor:
            cursor.execute("DELETE FROM kv_entries WHERE key = ?", (key,))
            return cursor.rowcount > 0

    def has(self, key: str) -> bool:
        return self.get(key) is not None

    def keys(self) -> list[str]:
        with self._cursor() as cursor:
            cursor.execute("SELECT key FROM kv_entries ORDER BY key")
            return [row["key"] for row in cursor.fetchall()]

    # Typed helpers

    def get_collection(self, name: str) -> list[dict]:
        """Get a JSON list collection.

        Missing, unparsable or non-list values read as an empty collection.
        """
        raw = self.get(name)
        if raw is None:
            return []
        try:
            value = json.loads(raw)
        except ValueError as e:
            logger.warning(f"Collection {name!r} is not valid JSON, ignoring: {e}")
            return []
        if not isinstance(value, list):
            logger.warning(f"Collection {name!r} is not a list, ignoring")
            return []
        return value

    def set_collection(self, name: str, records: list[dict]) -> None:
        """Store a collection as a JSON list."""
        self.set(name, json.dumps(records, ensure_ascii=False))

    def get_bool(self, key: str, default: bool = False) -> bool:
        raw = self.get(key)
        if raw is None:
            return default
        return raw == "true"

    def set_bool(self, key: str, value: bool) -> None:
        self.set(key, "true" if value else "false")

    def close(self) -> None:
        """Close the database connection."""
        if hasattr(self._local, "connection"):
            self._local.connection.close()
            del self._local.connection
