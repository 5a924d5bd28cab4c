"""SQLite schema for the FTS5 message index.

The schema uses:
- entries: One row per indexed message; the rowid is the index doc id
- entries_fts: FTS5 virtual table over entries (external content)
- labels: Label postings, (doc_id, label) pairs

Index doc ids are assigned by the index and are independent of store ids.
"""

import logging
import os
import sqlite3
from pathlib import Path

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

DEFAULT_PRAGMAS = {
    "journal_mode": "WAL",
    "synchronous": "NORMAL",
    "busy_timeout": 5000,
}

INSERT_ENTRY_SQL = """INSERT INTO entries
    (sender, recipients, subject, body, date)
    VALUES (?, ?, ?, ?, ?)"""

INSERT_LABEL_SQL = """INSERT OR IGNORE INTO labels
    (doc_id, label)
    VALUES (?, ?)"""

TRIGGERS_SQL = """
CREATE TRIGGER IF NOT EXISTS entries_ai AFTER INSERT ON entries BEGIN
    INSERT INTO entries_fts(rowid, sender, recipients, subject, body)
    VALUES (new.rowid, new.sender, new.recipients, new.subject, new.body);
END;

CREATE TRIGGER IF NOT EXISTS entries_ad AFTER DELETE ON entries BEGIN
    INSERT INTO entries_fts(
        entries_fts, rowid, sender, recipients, subject, body
    ) VALUES(
        'delete', old.rowid, old.sender, old.recipients,
        old.subject, old.body
    );
END;
"""

TRIGGER_NAMES = ("entries_ai", "entries_ad")


def create_connection(db_path: Path) -> sqlite3.Connection:
    """
    Create an index connection with standard configuration.

    Args:
        db_path: Path to the index database file

    Returns:
        Configured connection with WAL mode, busy timeout, and Row factory
    """
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row

    for pragma, value in DEFAULT_PRAGMAS.items():
        conn.execute(f"PRAGMA {pragma}={value}")

    return conn


def get_schema_sql() -> str:
    """Return the complete schema creation SQL."""
    return (
        """
-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

-- Searchable fields, already lowercased by the classifier
CREATE TABLE IF NOT EXISTS entries (
    rowid INTEGER PRIMARY KEY AUTOINCREMENT,
    sender TEXT,
    recipients TEXT,
    subject TEXT,
    body TEXT,
    date TEXT,                       -- ISO 8601, '' when unknown
    indexed_at TEXT DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_entries_date ON entries(date DESC);

-- FTS5 index (external content - shares storage with entries table)
CREATE VIRTUAL TABLE IF NOT EXISTS entries_fts USING fts5(
    sender,
    recipients,
    subject,
    body,
    content='entries',
    content_rowid='rowid',
    tokenize='porter unicode61'
);

-- Label postings (state flags are folded in as labels)
CREATE TABLE IF NOT EXISTS labels (
    doc_id INTEGER NOT NULL REFERENCES entries(rowid) ON DELETE CASCADE,
    label TEXT NOT NULL,
    PRIMARY KEY(doc_id, label)
);
CREATE INDEX IF NOT EXISTS idx_labels_label ON labels(label);
"""
        + TRIGGERS_SQL
    )


def init_database(db_path: Path) -> sqlite3.Connection:
    """
    Initialize the database with schema, creating parent directories if needed.

    Args:
        db_path: Path to the SQLite database file

    Returns:
        Open database connection

    Security:
        Sets file permissions to 0600 (owner read/write only) on new databases
        to protect message content from other users on shared systems.
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)

    is_new_db = not db_path.exists()

    conn = create_connection(db_path)

    if is_new_db:
        try:
            os.chmod(db_path, 0o600)
            logger.debug("Set secure permissions (0600) on %s", db_path)
        except OSError as e:
            logger.warning(
                "Could not set secure permissions on %s: %s", db_path, e
            )

    cursor = conn.execute(
        "SELECT name FROM sqlite_master "
        "WHERE type='table' AND name='schema_version'"
    )
    if cursor.fetchone() is None:
        logger.info(
            "Creating fresh index schema (version %d)", SCHEMA_VERSION
        )
        conn.executescript(get_schema_sql())
        conn.execute(
            "INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,)
        )
        conn.commit()

    return conn


def drop_triggers(conn: sqlite3.Connection) -> None:
    """Disable FTS sync triggers before a bulk load."""
    for name in TRIGGER_NAMES:
        conn.execute(f"DROP TRIGGER IF EXISTS {name}")


def create_triggers(conn: sqlite3.Connection) -> None:
    """Re-enable FTS sync triggers after a bulk load."""
    conn.executescript(TRIGGERS_SQL)


def rebuild_fts_index(conn: sqlite3.Connection) -> None:
    """
    Rebuild the FTS index from the entries table.

    Use this after bulk inserts without triggers or to fix corruption.
    """
    conn.execute("INSERT INTO entries_fts(entries_fts) VALUES('rebuild')")
    conn.commit()


def optimize_fts_index(conn: sqlite3.Connection) -> None:
    """Merge FTS b-trees for better query performance."""
    conn.execute("INSERT INTO entries_fts(entries_fts) VALUES('optimize')")
    conn.commit()
