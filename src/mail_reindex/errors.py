"""Exception hierarchy for mail-reindex."""


class ReindexError(Exception):
    """Base exception for all reindex errors."""


class StartupError(ReindexError):
    """Raised before any processing when the run cannot start."""


class IndexExistsError(StartupError):
    """The destination index directory already exists."""


class StoreOpenError(StartupError):
    """The message store could not be opened."""


class BlobReadError(ReindexError):
    """Reading the raw message blob file failed at the I/O level."""


class MalformedMessageError(ReindexError):
    """A raw message could not be framed or parsed."""


class ConfigError(StartupError):
    """A MAIL_REINDEX_* setting has an unusable value."""
