"""Shared pytest fixtures for mail-reindex tests."""

from __future__ import annotations

import json
import sqlite3
from datetime import UTC, datetime
from email.utils import format_datetime
from pathlib import Path

import pytest

from mail_reindex.index.schema import SCHEMA_VERSION, get_schema_sql
from mail_reindex.store.blobs import append_message
from mail_reindex.store.schema import INSERT_MESSAGE_SQL, init_store


def ts(day: str) -> int:
    """Unix seconds for an ISO date such as '2020-01-03'."""
    return int(datetime.fromisoformat(day).replace(tzinfo=UTC).timestamp())


def make_raw(
    subject: str = "Hello",
    sender: str = "Alice Example <alice@example.com>",
    to: str = "Bob <bob@example.com>",
    date: int | None = None,
    body: str = "Hello Bob, see you tomorrow.",
) -> bytes:
    """Build a simple text/plain RFC 5322 message."""
    lines = [f"From: {sender}", f"To: {to}", f"Subject: {subject}"]
    if date is not None:
        dt = datetime.fromtimestamp(date, tz=UTC)
        lines.append(f"Date: {format_datetime(dt)}")
    lines.append('Content-Type: text/plain; charset="utf-8"')
    return ("\n".join(lines) + "\n\n" + body + "\n").encode()


@pytest.fixture
def make_mail_dir(tmp_path: Path):
    """
    Factory building a base directory with store and messages files.

    Each record dict may carry: doc_id, state, labels, date (Unix seconds
    or any stored value), subject, body, raw (bytes), loc.
    """

    def _make(records: list[dict]) -> Path:
        base = tmp_path / "mail"
        base.mkdir(exist_ok=True)
        (base / "messages").touch()
        conn = init_store(base / "store")

        for position, rec in enumerate(records, start=1):
            doc_id = rec.get("doc_id", position)
            date = rec.get("date")
            raw = rec.get("raw")
            if raw is None:
                raw = make_raw(
                    subject=rec.get("subject", f"Message {doc_id}"),
                    date=date if isinstance(date, int) else None,
                    body=rec.get("body", f"Body of message {doc_id}"),
                )
            loc = rec.get("loc")
            if loc is None:
                loc = append_message(base / "messages", raw)

            conn.execute(
                INSERT_MESSAGE_SQL,
                (
                    doc_id,
                    json.dumps(sorted(rec.get("state", []))),
                    json.dumps(sorted(rec.get("labels", []))),
                    date,
                    loc,
                ),
            )

        conn.commit()
        conn.close()
        return base

    return _make


@pytest.fixture
def three_dated(make_mail_dir) -> Path:
    """Ids 1..3 dated 2020-01-03, 2020-01-01, 2020-01-02."""
    return make_mail_dir(
        [
            {"date": ts("2020-01-03"), "labels": ["inbox"]},
            {"date": ts("2020-01-01"), "labels": ["inbox"]},
            {"date": ts("2020-01-02"), "labels": ["inbox", "work"]},
        ]
    )


@pytest.fixture
def temp_index_db():
    """An in-memory index database with the schema."""
    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    conn.executescript(get_schema_sql())
    conn.execute(
        "INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,)
    )
    conn.commit()
    yield conn
    conn.close()
