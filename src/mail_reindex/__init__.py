"""mail-reindex - Rebuild a message search index from the message store.

Replays every record of the authoritative store into a fresh FTS5 index,
either in store order or sorted by message date, without touching the
store's message records.

Usage:
    mail-reindex                 # Rebuild into ./index-reindexed/whistlepig
    mail-reindex --reorder       # Add messages in date order
    mail-reindex status          # Show statistics of the rebuilt index
    mail-reindex search QUERY    # Query the rebuilt index
"""

from .cli import main

__all__ = ["main"]
