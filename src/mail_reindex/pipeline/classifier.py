"""Decide whether a store record is indexed, and build its entry.

Each record ends up as exactly one of:
- Indexed: entry and labels to submit to the index
- Skipped: deleted or spam under a policy that excludes it
- Malformed: the raw message could not be framed or parsed

The classifier keeps no state between calls. A BlobReadError is not an
outcome: it means the blob file is gone for every later record too, so it
propagates and ends the run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from ..errors import MalformedMessageError
from ..message import parse_message

if TYPE_CHECKING:
    from ..store.blobs import BlobStore
    from ..store.messages import StoreRecord

logger = logging.getLogger(__name__)

DELETED = "deleted"
SPAM = "spam"


@dataclass(frozen=True)
class IndexPolicy:
    """Which excluded-by-default records to index anyway."""

    index_deleted: bool = False
    index_spam: bool = False


class SkipReason(Enum):
    DELETED = DELETED
    SPAM = SPAM


@dataclass(frozen=True)
class IndexableEntry:
    """Searchable text of one message, lowercased."""

    from_: str = ""
    to: str = ""
    subject: str = ""
    body: str = ""
    date: str = ""

    @classmethod
    def empty(cls) -> IndexableEntry:
        """The placeholder carried by records that are not indexed."""
        return EMPTY_ENTRY

    @property
    def is_empty(self) -> bool:
        return self is EMPTY_ENTRY


EMPTY_ENTRY = IndexableEntry()


@dataclass(frozen=True)
class Indexed:
    entry: IndexableEntry
    labels: frozenset[str]


@dataclass(frozen=True)
class Skipped:
    reason: SkipReason
    entry: IndexableEntry = field(default=EMPTY_ENTRY, repr=False)


@dataclass(frozen=True)
class Malformed:
    reason: str
    entry: IndexableEntry = field(default=EMPTY_ENTRY, repr=False)


Outcome = Indexed | Skipped | Malformed


class MessageClassifier:
    """
    Turns store records into classification outcomes.

    Usage:
        classifier = MessageClassifier(blobs)
        outcome = classifier.classify(record, IndexPolicy())
    """

    def __init__(self, blobs: BlobStore):
        self._blobs = blobs

    def classify(self, record: StoreRecord, policy: IndexPolicy) -> Outcome:
        """
        Classify one record.

        Args:
            record: The store record
            policy: Whether deleted and spam records are indexed

        Returns:
            Indexed, Skipped or Malformed

        Raises:
            BlobReadError: If the blob file cannot be read
        """
        if DELETED in record.state and not policy.index_deleted:
            return Skipped(SkipReason.DELETED)
        if SPAM in record.state and not policy.index_spam:
            return Skipped(SkipReason.SPAM)

        try:
            raw = self._blobs.read(record.loc)
            entry = build_entry(raw, record)
        except MalformedMessageError as e:
            logger.debug("Doc %d is malformed: %s", record.doc_id, e)
            return Malformed(str(e))

        return Indexed(entry=entry, labels=record.labels | record.state)


def build_entry(raw: bytes, record: StoreRecord) -> IndexableEntry:
    """
    Build the index entry for a raw message.

    The message date wins over the store date; both missing gives ''.

    Raises:
        MalformedMessageError: If the message cannot be parsed
    """
    parsed = parse_message(raw)
    date = parsed.date or record.date
    return IndexableEntry(
        from_=parsed.from_.lower(),
        to=" ".join(parsed.recipients).lower(),
        subject=parsed.subject.lower(),
        body=parsed.body_text().lower(),
        date=date.isoformat() if date else "",
    )
