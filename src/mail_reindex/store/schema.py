"""SQLite schema for the message store.

The store uses:
- messages: Per-message metadata keyed by the store document id
- index_mapping: Store doc id -> index doc id (NULL for excluded messages)

The messages table is only ever read by the reindexer. State flags and
labels are JSON arrays of strings; the date is Unix seconds (UTC) and may be
NULL or garbage on malformed messages.
"""

import logging
import sqlite3
from pathlib import Path

logger = logging.getLogger(__name__)

# Connection-scoped only; the store file's journal mode is left as found
DEFAULT_PRAGMAS = {
    "synchronous": "NORMAL",
    "busy_timeout": 5000,
}

INSERT_MESSAGE_SQL = """INSERT INTO messages
    (doc_id, state, labels, date, loc)
    VALUES (?, ?, ?, ?, ?)"""

# Overwrite semantics: a reindex replaces whatever a previous run recorded
WRITE_MAPPING_SQL = """INSERT OR REPLACE INTO index_mapping
    (store_doc_id, index_doc_id)
    VALUES (?, ?)"""

MESSAGES_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS messages (
    doc_id INTEGER PRIMARY KEY,
    state TEXT NOT NULL DEFAULT '[]',   -- JSON array, e.g. ["deleted"]
    labels TEXT NOT NULL DEFAULT '[]',  -- JSON array of label names
    date INTEGER,                       -- Unix seconds, may be NULL
    loc INTEGER NOT NULL                -- Byte offset into the blob file
);
"""

MAPPING_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS index_mapping (
    store_doc_id INTEGER PRIMARY KEY,
    index_doc_id INTEGER               -- NULL: processed but not indexed
);
"""


def create_connection(db_path: Path) -> sqlite3.Connection:
    """
    Create a store connection with standard configuration.

    Args:
        db_path: Path to the store database file

    Returns:
        Configured connection with busy timeout and Row factory
    """
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row

    for pragma, value in DEFAULT_PRAGMAS.items():
        conn.execute(f"PRAGMA {pragma}={value}")

    return conn


def get_schema_sql() -> str:
    """Return the complete store schema SQL."""
    return MESSAGES_SCHEMA_SQL + MAPPING_SCHEMA_SQL


def init_store(db_path: Path) -> sqlite3.Connection:
    """
    Create (or open) a store database with the full schema.

    Args:
        db_path: Path to the store database file

    Returns:
        Open store connection
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = create_connection(db_path)
    conn.executescript(get_schema_sql())
    conn.commit()
    logger.debug("Initialized store schema at %s", db_path)
    return conn


def has_messages_table(conn: sqlite3.Connection) -> bool:
    """Check whether a connection points at a message store."""
    cursor = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name='messages'"
    )
    return cursor.fetchone() is not None


def ensure_mapping_table(conn: sqlite3.Connection) -> None:
    """Create the id mapping table on stores that predate it."""
    conn.executescript(MAPPING_SCHEMA_SQL)
    conn.commit()
