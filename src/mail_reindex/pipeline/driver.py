"""Replay store records into a fresh index.

For every id an IterationStrategy yields, the driver reloads the record,
classifies it, writes index postings for Indexed outcomes, and records the
store id -> index id mapping for every processed record. Skipped and
malformed records are mapped to None.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from itertools import islice
from typing import TYPE_CHECKING

from .classifier import Indexed, Malformed, Skipped, SkipReason

if TYPE_CHECKING:
    from collections.abc import Callable

    from ..index.manager import SearchIndex
    from ..store.messages import MessageStore
    from .classifier import IndexPolicy, MessageClassifier
    from .ordering import IterationStrategy

logger = logging.getLogger(__name__)

DEFAULT_PROGRESS_INTERVAL = 5.0


@dataclass
class RunStats:
    """Counters for one reindex run."""

    started_at: float
    last_report_at: float
    num_docs: int = 0
    num_spam: int = 0
    num_deleted: int = 0
    num_malformed: int = 0
    num_processed: int = 0
    elapsed: float = 0.0

    @property
    def rate(self) -> float:
        """Indexed messages per second."""
        if self.elapsed <= 0:
            return 0.0
        return self.num_docs / self.elapsed

    def summary(self) -> str:
        return (
            f"indexed {self.num_docs} messages, "
            f"skipped {self.num_spam} spam and {self.num_deleted} deleted "
            f"({self.num_malformed} malformed) "
            f"in {self.elapsed:.1f}s = {self.rate:.1f} m/s"
        )


class ReindexDriver:
    """
    Drives one reindex run.

    Usage:
        driver = ReindexDriver(store, index, progress_callback=print_stats)
        stats = driver.run(Sequential(), classifier, IndexPolicy())
    """

    def __init__(
        self,
        store: MessageStore,
        index: SearchIndex,
        *,
        clock: Callable[[], float] = time.monotonic,
        progress_callback: Callable[[RunStats], None] | None = None,
    ):
        """
        Initialize the driver.

        Args:
            store: Source of records; receives the id mapping writes
            index: Fresh index to write into
            clock: Seconds source used for elapsed time and report pacing
            progress_callback: Optional callback(stats) for each report
        """
        self._store = store
        self._index = index
        self._clock = clock
        self._progress_callback = progress_callback

    def run(
        self,
        strategy: IterationStrategy,
        classifier: MessageClassifier,
        policy: IndexPolicy,
        limit: int | None = None,
        progress_interval: float = DEFAULT_PROGRESS_INTERVAL,
    ) -> RunStats:
        """
        Replay the store into the index.

        Args:
            strategy: Order in which store ids are visited
            classifier: Turns records into outcomes
            policy: Whether deleted and spam records are indexed
            limit: Stop after this many processed records (None = all)
            progress_interval: Seconds between progress reports

        Returns:
            RunStats with final counts

        Raises:
            BlobReadError: If raw messages become unreadable
            sqlite3.Error: If the store or index cannot be written
        """
        now = self._clock()
        stats = RunStats(started_at=now, last_report_at=now)

        doc_ids = strategy.doc_ids(self._store)
        if limit is not None:
            doc_ids = islice(doc_ids, limit)

        logger.info(
            "Reindexing with %s order (limit=%s, deleted=%s, spam=%s)",
            strategy.name,
            limit,
            policy.index_deleted,
            policy.index_spam,
        )

        try:
            with self._index.bulk_load():
                for store_doc_id in doc_ids:
                    self._process(store_doc_id, classifier, policy, stats)

                    now = self._clock()
                    if now - stats.last_report_at > progress_interval:
                        self._report(stats, now)
        finally:
            self._store.commit()
            stats.elapsed = self._clock() - stats.started_at

        logger.info("Reindex finished: %s", stats.summary())
        return stats

    def _process(
        self,
        store_doc_id: int,
        classifier: MessageClassifier,
        policy: IndexPolicy,
        stats: RunStats,
    ) -> None:
        record = self._store.load_record(store_doc_id)
        if record is None:
            logger.warning("Doc %d vanished from the store", store_doc_id)
            return

        outcome = classifier.classify(record, policy)
        stats.num_processed += 1

        if isinstance(outcome, Indexed):
            index_doc_id = self._index.add_entry(outcome.entry)
            for label in sorted(outcome.labels):
                self._index.add_label(index_doc_id, label)
            self._store.write_mapping(store_doc_id, index_doc_id)
            stats.num_docs += 1
        elif isinstance(outcome, Skipped):
            if outcome.reason is SkipReason.DELETED:
                stats.num_deleted += 1
            else:
                stats.num_spam += 1
            self._store.write_mapping(store_doc_id, None)
        elif isinstance(outcome, Malformed):
            logger.warning(
                "Skipping malformed doc %d: %s", store_doc_id, outcome.reason
            )
            stats.num_malformed += 1
            self._store.write_mapping(store_doc_id, None)

    def _report(self, stats: RunStats, now: float) -> None:
        self._index.commit()
        self._store.commit()
        stats.last_report_at = now
        stats.elapsed = now - stats.started_at
        logger.info("Progress: %s", stats.summary())
        if self._progress_callback:
            self._progress_callback(stats)
