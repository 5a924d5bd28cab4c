"""Orders in which store document ids are replayed into the index.

- Sequential: ids 1, 2, 3, ... as the store assigned them
- DateSorted: every id, ordered by message date (needs a full pre-pass)

Both stop at the first id the store has no record for, and each call to
doc_ids() starts again from id 1.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from itertools import count
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

    from ..store.messages import MessageStore, RecordSummary

logger = logging.getLogger(__name__)

FIRST_DOC_ID = 1

# Undated records sort before every dated one
_UNDATED = datetime.min.replace(tzinfo=UTC)


class IterationStrategy:
    """Produces the sequence of store doc ids to process."""

    name = "base"

    def doc_ids(self, store: MessageStore) -> Iterator[int]:
        raise NotImplementedError


class Sequential(IterationStrategy):
    """Natural ascending id order, no pre-pass."""

    name = "sequential"

    def doc_ids(self, store: MessageStore) -> Iterator[int]:
        for doc_id in count(FIRST_DOC_ID):
            if doc_id not in store:
                return
            yield doc_id


def _date_key(summary: RecordSummary) -> datetime:
    date = summary.date
    if date is None:
        return _UNDATED
    if date.tzinfo is None:
        return date.replace(tzinfo=UTC)
    return date


class DateSorted(IterationStrategy):
    """
    Ascending message date.

    Only dates are loaded during the pre-pass; full records are fetched
    again when each id is processed. sorted() is stable and the pre-pass
    visits ids in ascending order, so equal dates keep doc id order.
    """

    name = "date-sorted"

    def load_summaries(self, store: MessageStore) -> list[RecordSummary]:
        summaries = []
        for doc_id in count(FIRST_DOC_ID):
            summary = store.load_summary(doc_id)
            if summary is None:
                break
            summaries.append(summary)
        logger.info("Loaded dates for %d messages", len(summaries))
        return summaries

    def doc_ids(self, store: MessageStore) -> Iterator[int]:
        summaries = self.load_summaries(store)
        for summary in sorted(summaries, key=_date_key):
            yield summary.doc_id


def get_strategy(reorder: bool) -> IterationStrategy:
    """Pick the iteration strategy for the --reorder flag."""
    return DateSorted() if reorder else Sequential()
