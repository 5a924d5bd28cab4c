"""Command-line interface for mail-reindex.

Provides commands for:
- (default): Rebuild the search index from the message store
- status: Show statistics of a rebuilt index
- search: Query a rebuilt index before swapping it in

Usage:
    mail-reindex                    # Rebuild into ./index-reindexed/whistlepig
    mail-reindex --dir ~/mail --reorder
    mail-reindex status --dir ~/mail
    mail-reindex search "quarterly report" --label inbox
"""

import logging
import sys
import time
from pathlib import Path
from typing import Annotated

import cyclopts

from .config import (
    INDEX_NAME,
    REINDEX_DIR_NAME,
    get_base_dir,
    get_max_message_bytes,
    get_messages_path,
    get_progress_interval,
    get_reindex_path,
    get_store_path,
)
from .errors import IndexExistsError, StartupError
from .index import SearchIndex
from .pipeline import (
    IndexPolicy,
    MessageClassifier,
    ReindexDriver,
    RunStats,
    get_strategy,
)
from .store import BlobStore, MessageStore

app = cyclopts.App(
    name="mail-reindex",
    help="Rebuild the full-text search index from the message store.",
)

BaseDirParam = Annotated[
    Path | None,
    cyclopts.Parameter(
        name=["--dir", "-d"],
        help="Base directory holding store, messages and the index "
        "(default: $MAIL_REINDEX_DIR or .)",
    ),
]


def setup_logging(verbose: bool) -> None:
    """Configure logging with timestamp and module info."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _format_size(size_mb: float) -> str:
    if size_mb < 1:
        return f"{size_mb * 1024:.1f} KB"
    return f"{size_mb:.1f} MB"


def _format_time(seconds: float) -> str:
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes = int(seconds // 60)
    secs = seconds % 60
    return f"{minutes}m {secs:.1f}s"


def _print_progress(stats: RunStats) -> None:
    print(f"; {stats.summary()}", flush=True)


def run_reindex(
    base_dir: Path,
    *,
    reorder: bool = False,
    policy: IndexPolicy | None = None,
    limit: int | None = None,
    progress_interval: float | None = None,
    progress_callback=_print_progress,
) -> RunStats:
    """
    Rebuild the index under base_dir/index-reindexed/whistlepig.

    Args:
        base_dir: Directory holding store and messages
        reorder: Replay in message date order instead of id order
        policy: Which deleted/spam records to index (defaults: neither)
        limit: Stop after this many records
        progress_interval: Seconds between progress reports
        progress_callback: Called with RunStats on each report

    Returns:
        Final RunStats

    Raises:
        ConfigError: If a MAIL_REINDEX_* setting is unusable
        IndexExistsError: If the destination index already exists
        StoreOpenError: If the store cannot be opened
    """
    # Settings, destination and store are all checked before the index
    # directory is created, so a refused run writes nothing
    if progress_interval is None:
        progress_interval = get_progress_interval()
    max_message_bytes = get_max_message_bytes()

    index_dir = get_reindex_path(base_dir)
    if index_dir.exists():
        raise IndexExistsError(
            f"{index_dir} already exists; please delete it first"
        )

    store = MessageStore.open(get_store_path(base_dir))
    try:
        with BlobStore(
            get_messages_path(base_dir), max_message_bytes
        ) as blobs:
            index = SearchIndex.create(index_dir)
            try:
                driver = ReindexDriver(
                    store, index, progress_callback=progress_callback
                )
                return driver.run(
                    get_strategy(reorder),
                    MessageClassifier(blobs),
                    policy or IndexPolicy(),
                    limit=limit,
                    progress_interval=progress_interval,
                )
            finally:
                index.close()
    finally:
        store.close()


@app.default
def reindex(
    *,
    base_dir: BaseDirParam = None,
    reorder: Annotated[
        bool,
        cyclopts.Parameter(
            name="--reorder",
            help="Add messages in date order instead of store order",
        ),
    ] = False,
    index_deleted: Annotated[
        bool,
        cyclopts.Parameter(
            name="--index-deleted", help="Index deleted messages too"
        ),
    ] = False,
    index_spam: Annotated[
        bool,
        cyclopts.Parameter(
            name=["--index-spam", "-s"], help="Index spam messages too"
        ),
    ] = False,
    num: Annotated[
        int | None,
        cyclopts.Parameter(
            name=["--num", "-n"],
            help="Only process this many messages (default: all)",
        ),
    ] = None,
    verbose: Annotated[
        bool,
        cyclopts.Parameter(name=["--verbose", "-v"], help="Verbose logging"),
    ] = False,
) -> None:
    """
    Rebuild the search index from the message store.

    The new index is written to <dir>/index-reindexed/whistlepig, which must
    not exist yet. The store's messages are never modified. When the run
    finishes, replace <dir>/index with <dir>/index-reindexed by hand.
    """
    if num is not None and num < 0:
        print("Error: --num must be non-negative", file=sys.stderr)
        sys.exit(1)

    setup_logging(verbose)
    base = base_dir or get_base_dir()
    policy = IndexPolicy(index_deleted=index_deleted, index_spam=index_spam)

    start = time.time()
    try:
        stats = run_reindex(base, reorder=reorder, policy=policy, limit=num)
    except StartupError as e:
        print(f"✗ {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        print(
            f"\nInterrupted. Delete {base / REINDEX_DIR_NAME} before retrying.",
            file=sys.stderr,
        )
        sys.exit(130)
    except Exception as e:
        print(f"\n✗ Error: {e}", file=sys.stderr)
        sys.exit(1)

    print(f"; {stats.summary()}")
    print(f"✓ Reindex finished in {_format_time(time.time() - start)}")
    print()
    print(f"Now you must replace {base / INDEX_NAME} with "
          f"{base / REINDEX_DIR_NAME}, e.g.:")
    print(f"  mv {base / INDEX_NAME} {base / (INDEX_NAME + '-old')}")
    print(f"  mv {base / REINDEX_DIR_NAME} {base / INDEX_NAME}")


@app.command
def status(*, base_dir: BaseDirParam = None) -> None:
    """
    Show statistics of the rebuilt index.

    Displays entry count, label postings and database size.
    """
    base = base_dir or get_base_dir()
    index_dir = get_reindex_path(base)
    index = SearchIndex(index_dir)

    if not index.exists():
        print("No rebuilt index found.")
        print(f"Expected location: {index_dir}")
        print()
        print("Run 'mail-reindex' to build it.")
        sys.exit(1)

    try:
        stats = index.get_stats()
    finally:
        index.close()

    print("Rebuilt Index Status")
    print("=" * 40)
    print(f"Location:     {index_dir}")
    print(f"Entries:      {stats.entry_count:,}")
    print(f"Labels:       {stats.distinct_labels} ({stats.label_count:,} postings)")
    print(f"Database:     {_format_size(stats.db_size_mb)}")


@app.command
def search(
    query: str,
    *,
    base_dir: BaseDirParam = None,
    label: Annotated[
        list[str] | None,
        cyclopts.Parameter(
            name=["--label", "-l"],
            help="Only show messages with this label (repeatable)",
        ),
    ] = None,
    limit: Annotated[
        int,
        cyclopts.Parameter(name=["--limit"], help="Maximum results"),
    ] = 20,
) -> None:
    """
    Search the rebuilt index.

    Supports FTS5 syntax: phrases, prefix*, OR/AND/NOT.
    """
    base = base_dir or get_base_dir()
    index = SearchIndex(get_reindex_path(base))

    if not index.exists():
        print(f"No rebuilt index at {index.index_dir}", file=sys.stderr)
        sys.exit(1)

    try:
        results = index.search(query, labels=label, limit=limit)
    finally:
        index.close()

    if not results:
        print("No matches.")
        return

    for result in results:
        labels = ",".join(result.labels)
        print(f"[{result.doc_id}] {result.date[:10]:10s} {result.sender}")
        print(f"    {result.subject}  ({labels})")
        if result.snippet:
            print(f"    {result.snippet}")


def main() -> None:
    """Entry point for the CLI."""
    app()
