"""The reindexing pipeline: ordering, classification and replay.

This module provides:
- Sequential / DateSorted: the order store ids are visited in
- MessageClassifier: indexable-or-skipped decision per record
- ReindexDriver: replays records into the index and tracks RunStats
"""

from .classifier import (
    IndexableEntry,
    Indexed,
    IndexPolicy,
    Malformed,
    MessageClassifier,
    Skipped,
    SkipReason,
)
from .driver import ReindexDriver, RunStats
from .ordering import DateSorted, IterationStrategy, Sequential, get_strategy

__all__ = [
    "DateSorted",
    "IndexPolicy",
    "IndexableEntry",
    "Indexed",
    "IterationStrategy",
    "Malformed",
    "MessageClassifier",
    "ReindexDriver",
    "RunStats",
    "Sequential",
    "SkipReason",
    "Skipped",
    "get_strategy",
]
