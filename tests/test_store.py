"""Tests for the message store."""

from __future__ import annotations

import sqlite3
from datetime import UTC, datetime
from pathlib import Path

import pytest
from conftest import make_raw, ts

from mail_reindex.errors import StoreOpenError
from mail_reindex.store.messages import MessageStore, RecordSummary
from mail_reindex.store.schema import MESSAGES_SCHEMA_SQL


class TestOpen:
    """Tests for opening a store."""

    def test_missing_store_raises(self, tmp_path: Path):
        with pytest.raises(StoreOpenError, match="not found"):
            MessageStore.open(tmp_path / "store")

    def test_sqlite_file_without_messages_raises(self, tmp_path: Path):
        path = tmp_path / "store"
        conn = sqlite3.connect(path)
        conn.execute("CREATE TABLE other (x INTEGER)")
        conn.commit()
        conn.close()

        with pytest.raises(StoreOpenError, match="Not a message store"):
            MessageStore.open(path)

    def test_garbage_file_raises(self, tmp_path: Path):
        path = tmp_path / "store"
        path.write_bytes(b"this is not a database" * 100)

        with pytest.raises(StoreOpenError):
            MessageStore.open(path)

    def test_creates_mapping_table_on_older_store(self, tmp_path: Path):
        path = tmp_path / "store"
        conn = sqlite3.connect(path)
        conn.executescript(MESSAGES_SCHEMA_SQL)
        conn.commit()
        conn.close()

        store = MessageStore.open(path)
        store.write_mapping(1, 7)
        assert store.get_mapping(1) == (True, 7)
        store.close()


class TestLoadRecord:
    """Tests for record loading."""

    def test_loads_all_fields(self, make_mail_dir):
        base = make_mail_dir(
            [
                {
                    "date": ts("2020-01-03"),
                    "state": ["spam", "unread"],
                    "labels": ["inbox"],
                }
            ]
        )
        store = MessageStore.open(base / "store")

        record = store.load_record(1)

        assert record is not None
        assert record.doc_id == 1
        assert record.state == frozenset({"spam", "unread"})
        assert record.labels == frozenset({"inbox"})
        assert record.date == datetime(2020, 1, 3, tzinfo=UTC)
        assert record.loc == 0
        store.close()

    def test_missing_id_returns_none(self, make_mail_dir):
        store = MessageStore.open(make_mail_dir([{}]) / "store")
        assert store.load_record(2) is None
        store.close()

    @pytest.mark.parametrize("bad_date", [None, "yesterday", 10**15])
    def test_bad_dates_load_as_none(self, make_mail_dir, bad_date):
        base = make_mail_dir([{"date": bad_date, "raw": make_raw()}])
        store = MessageStore.open(base / "store")

        assert store.load_record(1).date is None
        assert store.load_summary(1).date is None
        store.close()

    @pytest.mark.parametrize(
        "bad_flags", ["not json", '"spam"', '{"spam": true}', "[1, 2]"]
    )
    def test_bad_flag_lists_load_as_empty(self, make_mail_dir, bad_flags):
        base = make_mail_dir([{"state": ["spam"], "labels": ["inbox"]}])
        conn = sqlite3.connect(base / "store")
        conn.execute(
            "UPDATE messages SET state = ?, labels = ? WHERE doc_id = 1",
            (bad_flags, bad_flags),
        )
        conn.commit()
        conn.close()
        store = MessageStore.open(base / "store")

        record = store.load_record(1)

        assert record.state == frozenset()
        assert record.labels == frozenset()
        store.close()

    def test_contains(self, make_mail_dir):
        store = MessageStore.open(make_mail_dir([{}, {}]) / "store")
        assert 1 in store
        assert 2 in store
        assert 3 not in store
        store.close()


class TestLoadSummary:
    """Tests for the date-only metadata load."""

    def test_returns_date_only(self, make_mail_dir):
        base = make_mail_dir([{"date": ts("2020-01-01")}])
        store = MessageStore.open(base / "store")

        summary = store.load_summary(1)

        assert summary == RecordSummary(
            doc_id=1, date=datetime(2020, 1, 1, tzinfo=UTC)
        )
        assert store.load_summary(2) is None
        store.close()


class TestMapping:
    """Tests for the store id -> index id mapping."""

    def test_unmapped_id(self, make_mail_dir):
        store = MessageStore.open(make_mail_dir([{}]) / "store")
        assert store.get_mapping(1) == (False, None)
        store.close()

    def test_tombstone_is_distinct_from_unmapped(self, make_mail_dir):
        store = MessageStore.open(make_mail_dir([{}]) / "store")
        store.write_mapping(1, None)
        assert store.get_mapping(1) == (True, None)
        store.close()

    def test_overwrites_previous_mapping(self, make_mail_dir):
        base = make_mail_dir([{}])
        store = MessageStore.open(base / "store")
        store.write_mapping(1, 5)
        store.write_mapping(1, 9)
        store.close()

        reopened = MessageStore.open(base / "store")
        assert reopened.get_mapping(1) == (True, 9)
        reopened.close()

    def test_journal_mode_is_left_unchanged(self, make_mail_dir):
        base = make_mail_dir([{}])

        store = MessageStore.open(base / "store")
        store.write_mapping(1, 7)
        mode = store._conn.execute("PRAGMA journal_mode").fetchone()[0]
        store.close()

        assert mode == "delete"
        conn = sqlite3.connect(base / "store")
        assert conn.execute("PRAGMA journal_mode").fetchone()[0] == "delete"
        conn.close()

    def test_close_is_idempotent(self, make_mail_dir):
        store = MessageStore.open(make_mail_dir([{}]) / "store")
        store.close()
        store.close()
