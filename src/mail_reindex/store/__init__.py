"""Read-side access to the message store and its raw message blobs.

This module provides:
- MessageStore: Per-message metadata and the store-to-index id mapping
- BlobStore: Raw message bytes addressed by location tokens
"""

from .blobs import BlobStore
from .messages import MessageStore, RecordSummary, StoreRecord

__all__ = ["BlobStore", "MessageStore", "RecordSummary", "StoreRecord"]
