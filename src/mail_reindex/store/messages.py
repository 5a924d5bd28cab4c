"""MessageStore - read access to the authoritative message store.

Provides:
- load_record(): Full StoreRecord for a document id
- load_summary(): Date-only metadata for the reorder pre-pass
- write_mapping(): Record the store id -> index id association

Message records are never modified; the only writes go to the
index_mapping table.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from ..errors import StoreOpenError
from .schema import (
    WRITE_MAPPING_SQL,
    create_connection,
    ensure_mapping_table,
    has_messages_table,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoreRecord:
    """One message as the store knows it."""

    doc_id: int
    state: frozenset[str]
    labels: frozenset[str]
    date: datetime | None
    loc: int


@dataclass(frozen=True)
class RecordSummary:
    """Lightweight metadata: enough to sort by date."""

    doc_id: int
    date: datetime | None


def _parse_date(value: object, doc_id: int) -> datetime | None:
    """Convert a stored Unix timestamp, tolerating junk."""
    if value is None:
        return None
    try:
        return datetime.fromtimestamp(int(value), tz=UTC)
    except (TypeError, ValueError, OverflowError, OSError):
        logger.debug("Invalid date %r on doc %d", value, doc_id)
        return None


def _parse_flags(value: object, doc_id: int) -> frozenset[str]:
    """Convert a stored JSON array of strings; anything else loads empty."""
    if not value:
        return frozenset()
    try:
        flags = json.loads(value)
    except (TypeError, ValueError):
        flags = None
    if not isinstance(flags, list) or not all(
        isinstance(flag, str) for flag in flags
    ):
        logger.warning("Invalid flag list %r on doc %d", value, doc_id)
        return frozenset()
    return frozenset(flags)


class MessageStore:
    """
    Store of message records keyed by a dense integer doc id.

    Usage:
        store = MessageStore.open(base_dir / "store")
        record = store.load_record(1)
        store.write_mapping(1, 42)
        store.close()
    """

    def __init__(self, conn: sqlite3.Connection, db_path: Path | None = None):
        self._conn = conn
        self._db_path = db_path

    @classmethod
    def open(cls, db_path: Path) -> MessageStore:
        """
        Open an existing store.

        Args:
            db_path: Path to the store database

        Raises:
            StoreOpenError: If the file is missing or is not a message store
        """
        if not db_path.is_file():
            raise StoreOpenError(f"Store not found: {db_path}")

        try:
            conn = create_connection(db_path)
            if not has_messages_table(conn):
                conn.close()
                raise StoreOpenError(f"Not a message store: {db_path}")
            ensure_mapping_table(conn)
        except sqlite3.Error as e:
            raise StoreOpenError(f"Cannot open store {db_path}: {e}") from e

        logger.info("Opened store %s", db_path)
        return cls(conn, db_path)

    @property
    def db_path(self) -> Path | None:
        return self._db_path

    def __contains__(self, doc_id: int) -> bool:
        cursor = self._conn.execute(
            "SELECT 1 FROM messages WHERE doc_id = ?", (doc_id,)
        )
        return cursor.fetchone() is not None

    def load_record(self, doc_id: int) -> StoreRecord | None:
        """
        Load the full record for a document id.

        Returns:
            StoreRecord, or None if the store has no such id
        """
        row = self._conn.execute(
            "SELECT doc_id, state, labels, date, loc FROM messages "
            "WHERE doc_id = ?",
            (doc_id,),
        ).fetchone()
        if row is None:
            return None

        return StoreRecord(
            doc_id=row["doc_id"],
            state=_parse_flags(row["state"], doc_id),
            labels=_parse_flags(row["labels"], doc_id),
            date=_parse_date(row["date"], doc_id),
            loc=row["loc"],
        )

    def load_summary(self, doc_id: int) -> RecordSummary | None:
        """Load only the date of a record (no labels, no blob access)."""
        row = self._conn.execute(
            "SELECT date FROM messages WHERE doc_id = ?", (doc_id,)
        ).fetchone()
        if row is None:
            return None
        return RecordSummary(doc_id=doc_id, date=_parse_date(row["date"], doc_id))

    def write_mapping(self, store_doc_id: int, index_doc_id: int | None) -> None:
        """
        Associate a store id with an index id.

        Args:
            store_doc_id: Store document id
            index_doc_id: Index document id, or None for an excluded message
        """
        self._conn.execute(WRITE_MAPPING_SQL, (store_doc_id, index_doc_id))

    def get_mapping(self, store_doc_id: int) -> tuple[bool, int | None]:
        """
        Look up the index id recorded for a store id.

        Returns:
            (found, index_doc_id); index_doc_id is None for excluded messages
        """
        row = self._conn.execute(
            "SELECT index_doc_id FROM index_mapping WHERE store_doc_id = ?",
            (store_doc_id,),
        ).fetchone()
        if row is None:
            return (False, None)
        return (True, row["index_doc_id"])

    def commit(self) -> None:
        self._conn.commit()

    def close(self) -> None:
        """Commit pending mapping writes and close the connection."""
        if self._conn is not None:
            self._conn.commit()
            self._conn.close()
            self._conn = None
