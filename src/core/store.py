"""
Document store collaborator.
A key-value document store over SQLite: get/create/set/update/delete/list,
query-by-field, and an atomic counter used to number new records.
"""

import json
import sqlite3
import time
import uuid
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional

from . import config
from .db import get_db, init_db, health_check as db_health_check
from .errors import InternalError
from util.logging import logger


def _encode_value(value: Any) -> Any:
    """JSON fallback encoder: dates become ISO strings."""
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _dumps(data: Dict[str, Any]) -> str:
    body = {k: v for k, v in data.items() if k != "id"}
    return json.dumps(body, default=_encode_value)


def _row_to_document(doc_id: str, raw: str) -> Dict[str, Any]:
    document = json.loads(raw)
    document["id"] = doc_id
    return document


def _is_lock_error(error: sqlite3.OperationalError) -> bool:
    message = str(error).lower()
    return "locked" in message or "busy" in message


class DocumentStore:
    """SQLite-backed document store. One connection per operation."""

    def __init__(self, db_path: Optional[str] = None):
        self.db_path = db_path or config.DB_PATH
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        init_db(self.db_path)

    @contextmanager
    def _connection(self, operation: str, collection: str, isolation_level: Optional[str] = "") -> Generator[sqlite3.Connection, None, None]:
        try:
            with get_db(self.db_path, isolation_level=isolation_level) as conn:
                yield conn
        except sqlite3.Error as e:
            logger.error(f"Store {operation} failed on '{collection}': {e}")
            raise InternalError() from e

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Get a document by id."""
        with self._connection("get", collection) as conn:
            row = conn.execute(
                "SELECT id, data FROM documents WHERE collection = ? AND id = ?",
                (collection, doc_id)
            ).fetchone()
        return _row_to_document(*row) if row else None

    def create(self, collection: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Create a document with an auto-generated id."""
        doc_id = uuid.uuid4().hex
        with self._connection("create", collection) as conn:
            conn.execute(
                "INSERT INTO documents (collection, id, data) VALUES (?, ?, ?)",
                (collection, doc_id, _dumps(data))
            )
            conn.commit()
        logger.log_store_operation("create", collection, doc_id)
        return self.get(collection, doc_id)

    def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Create or replace a document under a known id."""
        with self._connection("set", collection) as conn:
            conn.execute(
                """
                INSERT INTO documents (collection, id, data) VALUES (?, ?, ?)
                ON CONFLICT(collection, id) DO UPDATE SET data = excluded.data, updated_at = CURRENT_TIMESTAMP
                """,
                (collection, doc_id, _dumps(data))
            )
            conn.commit()
        logger.log_store_operation("set", collection, doc_id)
        return self.get(collection, doc_id)

    def update(self, collection: str, doc_id: str, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Merge fields into an existing document. Returns None when it does not exist."""
        with self._connection("update", collection, isolation_level=None) as conn:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                "SELECT data FROM documents WHERE collection = ? AND id = ?",
                (collection, doc_id)
            ).fetchone()
            if not row:
                conn.execute("ROLLBACK")
                return None
            merged = json.loads(row[0])
            merged.update({k: v for k, v in updates.items() if k != "id"})
            conn.execute(
                "UPDATE documents SET data = ?, updated_at = CURRENT_TIMESTAMP WHERE collection = ? AND id = ?",
                (_dumps(merged), collection, doc_id)
            )
            conn.execute("COMMIT")
        logger.log_store_operation("update", collection, doc_id)
        return self.get(collection, doc_id)

    def array_update(self, collection: str, doc_id: str, field: str, value: Any, add: bool = True) -> Optional[Dict[str, Any]]:
        """Add a value to (or remove it from) an array field, without duplicates."""
        with self._connection("array_update", collection, isolation_level=None) as conn:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                "SELECT data FROM documents WHERE collection = ? AND id = ?",
                (collection, doc_id)
            ).fetchone()
            if not row:
                conn.execute("ROLLBACK")
                return None
            document = json.loads(row[0])
            values = [v for v in document.get(field) or [] if v != value]
            if add:
                values.append(value)
            document[field] = values
            conn.execute(
                "UPDATE documents SET data = ?, updated_at = CURRENT_TIMESTAMP WHERE collection = ? AND id = ?",
                (_dumps(document), collection, doc_id)
            )
            conn.execute("COMMIT")
        logger.log_store_operation("array_update", collection, doc_id)
        return self.get(collection, doc_id)

    def delete(self, collection: str, doc_id: str) -> bool:
        """Delete a document. Returns False when nothing was deleted."""
        with self._connection("delete", collection) as conn:
            cursor = conn.execute(
                "DELETE FROM documents WHERE collection = ? AND id = ?",
                (collection, doc_id)
            )
            conn.commit()
            deleted = cursor.rowcount > 0
        logger.log_store_operation("delete", collection, doc_id, "success" if deleted else "not_found")
        return deleted

    def list(self, collection: str) -> List[Dict[str, Any]]:
        """List every document in a collection, oldest first."""
        with self._connection("list", collection) as conn:
            rows = conn.execute(
                "SELECT id, data FROM documents WHERE collection = ? ORDER BY created_at, rowid",
                (collection,)
            ).fetchall()
        return [_row_to_document(doc_id, raw) for doc_id, raw in rows]

    def query(self, collection: str, field: str, value: Any) -> List[Dict[str, Any]]:
        """List documents whose top-level field equals value."""
        if isinstance(value, bool):
            value = int(value)
        with self._connection("query", collection) as conn:
            rows = conn.execute(
                "SELECT id, data FROM documents WHERE collection = ? AND json_extract(data, ?) = ? ORDER BY created_at, rowid",
                (collection, f"$.{field}", value)
            ).fetchall()
        return [_row_to_document(doc_id, raw) for doc_id, raw in rows]

    def count(self, collection: str) -> int:
        with self._connection("count", collection) as conn:
            return conn.execute(
                "SELECT COUNT(*) FROM documents WHERE collection = ?", (collection,)
            ).fetchone()[0]

    def next_sequence(self, name: str, start: int = 0) -> int:
        """Atomically increment a counter and return the new value."""
        return self._run_counter_transaction(name, start, lambda conn, number: None)

    def create_numbered(self, collection: str, data: Dict[str, Any], counter: str, field: str, start: int = 0) -> Dict[str, Any]:
        """Create a document numbered from a counter, inside one transaction.

        The counter read, increment and document insert commit together, so
        concurrent creations never share a number.
        """
        doc_id = uuid.uuid4().hex

        def insert(conn: sqlite3.Connection, number: int) -> None:
            conn.execute(
                "INSERT INTO documents (collection, id, data) VALUES (?, ?, ?)",
                (collection, doc_id, _dumps({**data, field: number}))
            )

        number = self._run_counter_transaction(counter, start, insert)
        logger.log_store_operation("create_numbered", collection, doc_id)
        document = self.get(collection, doc_id)
        document[field] = number
        return document

    def _run_counter_transaction(self, name: str, start: int, on_number) -> int:
        attempts = 0
        while True:
            attempts += 1
            try:
                with get_db(self.db_path, isolation_level=None) as conn:
                    try:
                        conn.execute("BEGIN IMMEDIATE")
                        row = conn.execute("SELECT value FROM counters WHERE name = ?", (name,)).fetchone()
                        number = (row[0] if row else start) + 1
                        conn.execute(
                            """
                            INSERT INTO counters (name, value) VALUES (?, ?)
                            ON CONFLICT(name) DO UPDATE SET value = excluded.value
                            """,
                            (name, number)
                        )
                        on_number(conn, number)
                        conn.execute("COMMIT")
                        return number
                    except sqlite3.Error:
                        if conn.in_transaction:
                            conn.execute("ROLLBACK")
                        raise
            except sqlite3.OperationalError as e:
                if not _is_lock_error(e):
                    logger.error(f"Counter '{name}' transaction failed: {e}")
                    raise InternalError() from e
                if attempts >= config.COUNTER_RETRY_LIMIT:
                    logger.error(f"Counter '{name}' contention exceeded {attempts} attempts")
                    raise InternalError(details={"counter": name}) from e
                logger.warning(f"Counter '{name}' busy, retrying (attempt {attempts})")
                time.sleep(config.COUNTER_RETRY_BACKOFF_SEC * attempts)
            except sqlite3.Error as e:
                logger.error(f"Counter '{name}' transaction failed: {e}")
                raise InternalError() from e

    def health_check(self) -> bool:
        return db_health_check(self.db_path)
