"""Configuration for mail-reindex."""

import os
from pathlib import Path

from .errors import ConfigError

# Names under the base directory
STORE_NAME = "store"
MESSAGES_NAME = "messages"
INDEX_NAME = "index"
REINDEX_DIR_NAME = "index-reindexed"
INDEX_ENGINE_NAME = "whistlepig"
INDEX_DB_NAME = "index.db"

# Payloads larger than this are treated as malformed (25 MB)
DEFAULT_MAX_MESSAGE_BYTES = 25 * 1024 * 1024


def get_base_dir() -> Path:
    """
    Get the default base directory.

    Set MAIL_REINDEX_DIR to customize. Defaults to the current directory.

    Returns:
        Directory holding store, messages and the index directories.
    """
    return Path(os.environ.get("MAIL_REINDEX_DIR", ".")).expanduser()


def get_progress_interval() -> float:
    """
    Get the number of seconds between progress reports.

    Set MAIL_REINDEX_PROGRESS_INTERVAL to customize. Defaults to 5 seconds.

    Raises:
        ConfigError: If the value is not a number
    """
    env_val = os.environ.get("MAIL_REINDEX_PROGRESS_INTERVAL", "5")
    try:
        return float(env_val)
    except ValueError:
        raise ConfigError(
            f"MAIL_REINDEX_PROGRESS_INTERVAL must be a number, got {env_val!r}"
        ) from None


def get_max_message_bytes() -> int:
    """
    Get the largest raw message size that will be parsed.

    Set MAIL_REINDEX_MAX_MESSAGE_BYTES to customize. Defaults to 25 MB.

    Raises:
        ConfigError: If the value is not a positive integer
    """
    env_val = os.environ.get("MAIL_REINDEX_MAX_MESSAGE_BYTES")
    if not env_val:
        return DEFAULT_MAX_MESSAGE_BYTES
    try:
        max_bytes = int(env_val)
    except ValueError:
        max_bytes = 0
    if max_bytes < 1:
        raise ConfigError(
            "MAIL_REINDEX_MAX_MESSAGE_BYTES must be a positive integer, "
            f"got {env_val!r}"
        )
    return max_bytes


def get_store_path(base_dir: Path) -> Path:
    """Path to the message store database."""
    return base_dir / STORE_NAME


def get_messages_path(base_dir: Path) -> Path:
    """Path to the raw message blob file."""
    return base_dir / MESSAGES_NAME


def get_reindex_path(base_dir: Path) -> Path:
    """Directory the rebuilt index is written to."""
    return base_dir / REINDEX_DIR_NAME / INDEX_ENGINE_NAME
