"""Hosted document store collaborator.

The hosted store is a black box offering create/delete and a live query
filtered by owner. ``DocumentStoreProtocol`` is the seam the migration
runner depends on; ``DocumentStore`` is a SQLite-backed implementation
used by the desktop app and the tests.
"""

import json
import logging
import sqlite3
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterator, Optional, Protocol, runtime_checkable

from ..config import Config
from ..errors import DocumentStoreError

__all__ = [
    "DocumentStore",
    "DocumentStoreProtocol",
    "COLLECTIONS",
    "Unsubscribe",
]

logger = logging.getLogger(__name__)

COLLECTIONS = ("workouts", "trainingPlans", "routes")

Listener = Callable[[list[dict]], None]
Unsubscribe = Callable[[], None]


@runtime_checkable
class DocumentStoreProtocol(Protocol):
    """Interface of the hosted document store."""

    def add(self, collection: str, data: dict) -> str: ...

    def delete(self, collection: str, doc_id: str) -> None: ...

    def query(self, collection: str, owner_id: str) -> list[dict]: ...

    def subscribe(
        self, collection: str, owner_id: str, callback: Listener
    ) -> Unsubscribe: ...


class DocumentStore:
    """SQLite-backed document store with owner-filtered live queries."""

    def __init__(self, db_path: Optional[Path] = None):
        if db_path is None:
            db_path = Config.get_data_dir() / "documents.db"

        self.db_path = db_path
        self._local = threading.local()
        self._listeners: dict[tuple[str, str], list[Listener]] = {}
        self._listeners_lock = threading.Lock()
        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        """Get thread-local database connection."""
        if not hasattr(self._local, "connection"):
            self._local.connection = sqlite3.connect(str(self.db_path))
            self._local.connection.row_factory = sqlite3.Row
        return self._local.connection

    @contextmanager
    def _cursor(self) -> Iterator[sqlite3.Cursor]:
        """Cursor that commits on success and maps sqlite errors."""
        conn = self._get_connection()
        cursor = conn.cursor()
        try:
            yield cursor
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise DocumentStoreError(f"Document store error: {e}") from e
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()

    def _init_db(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        with self._cursor() as cursor:
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS documents (
                    collection TEXT NOT NULL,
                    id TEXT NOT NULL,
                    owner_id TEXT,
                    data TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    PRIMARY KEY (collection, id)
                )
                """
            )
            cursor.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_documents_owner
                ON documents(collection, owner_id)
                """
            )

    @staticmethod
    def _check_collection(collection: str) -> None:
        if collection not in COLLECTIONS:
            raise DocumentStoreError(f"Unknown collection: {collection}")

    def add(self, collection: str, data: dict) -> str:
        """Create a document and return its store-assigned ID.

        Any ``id`` in ``data`` is dropped; the store owns identity.
        """
        self._check_collection(collection)
        doc = {k: v for k, v in data.items() if k != "id"}
        doc_id = uuid.uuid4().hex
        try:
            payload = json.dumps(doc, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise DocumentStoreError(f"Document is not serializable: {e}") from e

        now = datetime.now(timezone.utc).isoformat()
        with self._cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO documents (collection, id, owner_id, data, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (collection, doc_id, doc.get("userId"), payload, now),
            )

        logger.debug(f"Added document {doc_id} to {collection}")
        self._notify(collection, doc.get("userId"))
        return doc_id

    def delete(self, collection: str, doc_id: str) -> None:
        """Delete a document. Deleting a missing document is a no-op."""
        self._check_collection(collection)
        with self._cursor() as cursor:
            cursor.execute(
                "SELECT owner_id FROM documents WHERE collection = ? AND id = ?",
                (collection, doc_id),
            )
            row = cursor.fetchone()
            if row is None:
                return
            owner_id = row["owner_id"]
            cursor.execute(
                "DELETE FROM documents WHERE collection = ? AND id = ?",
                (collection, doc_id),
            )

        self._notify(collection, owner_id)

    def query(self, collection: str, owner_id: str) -> list[dict]:
        """Documents owned by ``owner_id``, newest ``date`` first."""
        self._check_collection(collection)
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT id, data FROM documents
                WHERE collection = ? AND owner_id = ?
                ORDER BY created_at ASC
                """,
                (collection, owner_id),
            )
            docs = [{"id": row["id"], **json.loads(row["data"])} for row in cursor.fetchall()]

        # Documents without a date sort last.
        dated = [d for d in docs if d.get("date")]
        undated = [d for d in docs if not d.get("date")]
        dated.sort(key=lambda d: str(d["date"]), reverse=True)
        return dated + undated

    def subscribe(self, collection: str, owner_id: str, callback: Listener) -> Unsubscribe:
        """Live query: ``callback`` gets the current result now and after each change."""
        self._check_collection(collection)
        key = (collection, owner_id)
        with self._listeners_lock:
            self._listeners.setdefault(key, []).append(callback)

        callback(self.query(collection, owner_id))

        def unsubscribe() -> None:
            with self._listeners_lock:
                listeners = self._listeners.get(key, [])
                if callback in listeners:
                    listeners.remove(callback)

        return unsubscribe

    def _notify(self, collection: str, owner_id: Optional[str]) -> None:
        if owner_id is None:
            return
        with self._listeners_lock:
            listeners = list(self._listeners.get((collection, owner_id), []))
        if not listeners:
            return

        snapshot = self.query(collection, owner_id)
        for listener in listeners:
            try:
                listener(snapshot)
            except Exception as e:
                logger.warning(f"Document listener failed: {e}")

    def close(self) -> None:
        """Close the database connection."""
        if hasattr(self._local, "connection"):
            self._local.connection.close()
            del self._local.connection
