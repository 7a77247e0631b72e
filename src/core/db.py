"""
SQLite foundation for the document store.
Documents are JSON blobs keyed by (collection, id); counters back record numbering.
"""

import sqlite3
from contextlib import contextmanager
from typing import Generator, Optional
from . import config


@contextmanager
def get_db(db_path: Optional[str] = None, isolation_level: Optional[str] = "") -> Generator[sqlite3.Connection, None, None]:
    """Get a SQLite database connection.

    Pass ``isolation_level=None`` for manual transaction control (BEGIN IMMEDIATE).
    """
    conn = sqlite3.connect(
        db_path or config.DB_PATH,
        timeout=config.STORE_BUSY_TIMEOUT_SEC,
        isolation_level=isolation_level,
    )
    try:
        yield conn
    finally:
        conn.close()


def init_db(db_path: Optional[str] = None):
    """Initialize the database with required tables."""
    with get_db(db_path) as conn:
        cursor = conn.cursor()

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS documents (
                collection TEXT NOT NULL,
                id TEXT NOT NULL,
                data TEXT NOT NULL,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                PRIMARY KEY (collection, id)
            )
        ''')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS counters (
                name TEXT PRIMARY KEY,
                value INTEGER NOT NULL
            )
        ''')

        cursor.execute('CREATE INDEX IF NOT EXISTS idx_documents_collection ON documents(collection)')

        conn.commit()


def health_check(db_path: Optional[str] = None):
    """Check database health."""
    try:
        with get_db(db_path) as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT name FROM sqlite_master WHERE type='table';")
            table_names = [table[0] for table in cursor.fetchall()]
            return all(table in table_names for table in ['documents', 'counters'])
    except sqlite3.Error:
        return False
