"""SearchIndex - the FTS5 index a reindex run writes into.

Provides:
- create(): Start a fresh index directory (refuses to reuse one)
- add_entry() / add_label(): Posting writes, returning index doc ids
- bulk_load(): Context manager that defers FTS maintenance to the end
- search(): BM25 search with optional label filters
- get_stats(): Counts and size for status reporting
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from ..config import INDEX_DB_NAME
from ..errors import IndexExistsError
from .schema import (
    INSERT_ENTRY_SQL,
    INSERT_LABEL_SQL,
    create_triggers,
    drop_triggers,
    init_database,
    optimize_fts_index,
    rebuild_fts_index,
)
from .search import SearchResult

if TYPE_CHECKING:
    from collections.abc import Iterator

    from ..pipeline.classifier import IndexableEntry

logger = logging.getLogger(__name__)


@dataclass
class IndexStats:
    """Statistics about a search index."""

    entry_count: int
    label_count: int
    distinct_labels: int
    db_size_mb: float


class SearchIndex:
    """
    Full-text index of messages, stored under one directory.

    Usage:
        index = SearchIndex.create(base_dir / "index-reindexed" / "whistlepig")
        with index.bulk_load():
            doc_id = index.add_entry(entry)
            index.add_label(doc_id, "inbox")
        index.close()
    """

    def __init__(self, index_dir: Path):
        """
        Initialize the index handle. Nothing is opened until first use.

        Args:
            index_dir: Directory holding the index database
        """
        self._index_dir = index_dir
        self._db_path = index_dir / INDEX_DB_NAME
        self._conn: sqlite3.Connection | None = None

    @classmethod
    def create(cls, index_dir: Path) -> SearchIndex:
        """
        Create a new, empty index.

        Raises:
            IndexExistsError: If index_dir already exists
        """
        if index_dir.exists():
            raise IndexExistsError(
                f"{index_dir} already exists; please delete it first"
            )
        index = cls(index_dir)
        index._get_conn()
        logger.info("Created index at %s", index_dir)
        return index

    @property
    def index_dir(self) -> Path:
        return self._index_dir

    @property
    def db_path(self) -> Path:
        return self._db_path

    def exists(self) -> bool:
        """Check if the index database has been written."""
        return self._db_path.exists()

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = init_database(self._db_path)
        return self._conn

    def add_entry(self, entry: IndexableEntry) -> int:
        """
        Add one entry to the index.

        Returns:
            The index doc id assigned to the entry
        """
        if entry.is_empty:
            raise ValueError("Refusing to index an empty entry")
        cursor = self._get_conn().execute(
            INSERT_ENTRY_SQL,
            (entry.from_, entry.to, entry.subject, entry.body, entry.date),
        )
        return cursor.lastrowid

    def add_label(self, doc_id: int, label: str) -> None:
        """Attach a label to an indexed entry."""
        self._get_conn().execute(INSERT_LABEL_SQL, (doc_id, label))

    def get_labels(self, doc_id: int) -> set[str]:
        cursor = self._get_conn().execute(
            "SELECT label FROM labels WHERE doc_id = ?", (doc_id,)
        )
        return {row[0] for row in cursor}

    def commit(self) -> None:
        if self._conn is not None:
            self._conn.commit()

    @contextmanager
    def bulk_load(self) -> Iterator[SearchIndex]:
        """
        Insert many entries with FTS maintenance deferred.

        Triggers are dropped on entry; on exit, even after an error, the FTS
        table is rebuilt from whatever was inserted and triggers come back.
        """
        conn = self._get_conn()
        drop_triggers(conn)
        try:
            yield self
        finally:
            conn.commit()
            count = conn.execute("SELECT COUNT(*) FROM entries").fetchone()[0]
            if count > 0:
                logger.info("Building full-text index over %d entries", count)
                rebuild_fts_index(conn)
                optimize_fts_index(conn)
            create_triggers(conn)
            conn.commit()

    def search(
        self,
        query: str,
        labels: list[str] | None = None,
        limit: int = 20,
    ) -> list[SearchResult]:
        """
        Search indexed entries.

        Args:
            query: Search query (supports FTS5 syntax)
            labels: Only return entries carrying all of these labels
            limit: Maximum results (default: 20)

        Returns:
            List of SearchResult ordered by relevance (BM25 score)
        """
        from .search import search_fts

        return search_fts(self._get_conn(), query, labels=labels, limit=limit)

    def get_stats(self) -> IndexStats:
        conn = self._get_conn()
        entry_count = conn.execute("SELECT COUNT(*) FROM entries").fetchone()[0]
        label_count = conn.execute("SELECT COUNT(*) FROM labels").fetchone()[0]
        distinct = conn.execute(
            "SELECT COUNT(DISTINCT label) FROM labels"
        ).fetchone()[0]

        db_size_mb = 0.0
        if self._db_path.exists():
            db_size_mb = self._db_path.stat().st_size / (1024 * 1024)

        return IndexStats(
            entry_count=entry_count,
            label_count=label_count,
            distinct_labels=distinct,
            db_size_mb=db_size_mb,
        )

    def close(self) -> None:
        """Commit and close the database connection."""
        if self._conn is not None:
            self._conn.commit()
            self._conn.close()
            self._conn = None
