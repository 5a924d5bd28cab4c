"""Tests for reading raw messages from the blob file."""

from __future__ import annotations

from pathlib import Path

import pytest

from mail_reindex.errors import BlobReadError, MalformedMessageError
from mail_reindex.store.blobs import BlobStore, append_message


@pytest.fixture
def blob_path(tmp_path: Path) -> Path:
    return tmp_path / "messages"


class TestRead:
    """Tests for BlobStore.read."""

    def test_reads_each_message_at_its_location(self, blob_path: Path):
        first = append_message(blob_path, b"Subject: one\n\nfirst")
        second = append_message(blob_path, b"Subject: two\n\nsecond")

        with BlobStore(blob_path) as blobs:
            assert blobs.read(second) == b"Subject: two\n\nsecond"
            assert blobs.read(first) == b"Subject: one\n\nfirst"

        assert first == 0
        assert second > first

    def test_returns_bytes_untouched(self, blob_path: Path):
        raw = b"Subject: caf\xe9\r\n\r\n\x00\xff binary \xc3\x28"
        loc = append_message(blob_path, raw)

        with BlobStore(blob_path) as blobs:
            data = blobs.read(loc)

        assert isinstance(data, bytes)
        assert data == raw


class TestMalformedFraming:
    """Bad framing is a per-message problem, not an I/O failure."""

    def test_bad_length_header(self, blob_path: Path):
        blob_path.write_bytes(b"abc\nSubject: x\n\n")
        with BlobStore(blob_path) as blobs:
            with pytest.raises(MalformedMessageError, match="Bad length"):
                blobs.read(0)

    def test_offset_past_end(self, blob_path: Path):
        append_message(blob_path, b"Subject: x\n\nbody")
        with BlobStore(blob_path) as blobs:
            with pytest.raises(MalformedMessageError, match="No length"):
                blobs.read(10_000)

    def test_truncated_message(self, blob_path: Path):
        blob_path.write_bytes(b"100\nSubject: short\n\n")
        with BlobStore(blob_path) as blobs:
            with pytest.raises(MalformedMessageError, match="Truncated"):
                blobs.read(0)

    def test_oversized_message(self, blob_path: Path):
        loc = append_message(blob_path, b"x" * 64)
        with BlobStore(blob_path, max_message_bytes=32) as blobs:
            with pytest.raises(MalformedMessageError, match="invalid size"):
                blobs.read(loc)

    def test_negative_location(self, blob_path: Path):
        append_message(blob_path, b"Subject: x\n\nbody")
        with BlobStore(blob_path) as blobs:
            with pytest.raises(MalformedMessageError):
                blobs.read(-1)


class TestIOFailure:
    """Tests for unreadable blob files."""

    def test_missing_file_raises_blob_read_error(self, blob_path: Path):
        blobs = BlobStore(blob_path)
        with pytest.raises(BlobReadError, match="Cannot open"):
            blobs.read(0)

    def test_close_is_idempotent(self, blob_path: Path):
        append_message(blob_path, b"Subject: x\n\nbody")
        blobs = BlobStore(blob_path)
        blobs.read(0)
        blobs.close()
        blobs.close()
