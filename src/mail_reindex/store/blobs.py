"""Read raw message bytes from the append-only blob file.

Blob file format, repeated for every message:
    1255                      ← Byte count of the raw message
    From: sender@example.com  ← RFC 5322 headers + body, exactly 1255 bytes
    Subject: Hello
    ...

A location token is the byte offset of the count line. The bytes are
returned untouched; decoding happens only in the MIME parser.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import BinaryIO

from ..config import get_max_message_bytes
from ..errors import BlobReadError, MalformedMessageError

logger = logging.getLogger(__name__)

# A count line longer than this cannot be a decimal length
MAX_COUNT_LINE = 32


class BlobStore:
    """
    Random-access reader for the raw message blob file.

    Usage:
        with BlobStore(base_dir / "messages") as blobs:
            raw = blobs.read(record.loc)
    """

    def __init__(self, path: Path, max_message_bytes: int | None = None):
        """
        Initialize the reader. The file is opened on first read.

        Args:
            path: Path to the blob file
            max_message_bytes: Size limit (uses config default if None)
        """
        self._path = path
        self._max_bytes = (
            max_message_bytes
            if max_message_bytes is not None
            else get_max_message_bytes()
        )
        self._fh: BinaryIO | None = None

    @property
    def path(self) -> Path:
        return self._path

    def _get_file(self) -> BinaryIO:
        if self._fh is None:
            try:
                self._fh = open(self._path, "rb")  # noqa: SIM115
            except OSError as e:
                raise BlobReadError(
                    f"Cannot open blob file {self._path}: {e}"
                ) from e
        return self._fh

    def read(self, loc: int) -> bytes:
        """
        Read the raw message stored at a location.

        Args:
            loc: Byte offset of the message's count line

        Returns:
            The raw message bytes

        Raises:
            BlobReadError: If the file cannot be read at all
            MalformedMessageError: If the framing at loc is invalid
        """
        if loc < 0:
            raise MalformedMessageError(f"Negative blob location {loc}")

        fh = self._get_file()
        try:
            fh.seek(loc)
            count_line = fh.readline(MAX_COUNT_LINE)
            if not count_line.endswith(b"\n"):
                raise MalformedMessageError(
                    f"No length header at offset {loc}"
                )
            try:
                byte_count = int(count_line.strip())
            except ValueError:
                raise MalformedMessageError(
                    f"Bad length header {count_line!r} at offset {loc}"
                ) from None

            if byte_count < 0 or byte_count > self._max_bytes:
                raise MalformedMessageError(
                    f"Message at offset {loc} has invalid size {byte_count}"
                )

            raw = fh.read(byte_count)
        except OSError as e:
            raise BlobReadError(
                f"Failed reading {self._path} at offset {loc}: {e}"
            ) from e

        if len(raw) != byte_count:
            raise MalformedMessageError(
                f"Truncated message at offset {loc}: "
                f"expected {byte_count} bytes, got {len(raw)}"
            )
        return raw

    def close(self) -> None:
        if self._fh is not None:
            self._fh.close()
            self._fh = None

    def __enter__(self) -> BlobStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def append_message(path: Path, raw: bytes) -> int:
    """
    Append a raw message to a blob file.

    Args:
        path: Path to the blob file (created if missing)
        raw: Raw message bytes

    Returns:
        Location token of the appended message
    """
    with open(path, "ab") as fh:
        loc = fh.tell()
        fh.write(f"{len(raw)}\n".encode())
        fh.write(raw)
    logger.debug("Appended %d bytes to %s at %d", len(raw), path, loc)
    return loc
