"""
Tests for the SQLite document store, including atomic record numbering.
"""

import sqlite3
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from datetime import date
from unittest.mock import MagicMock, patch

import pytest

from src.core.errors import InternalError
from src.core.store import DocumentStore


class TestDocuments:

    def test_create_and_get(self, store):
        created = store.create("books", {"title": "Dune", "price": 18.99})
        assert created["id"]
        assert store.get("books", created["id"]) == {"id": created["id"], "title": "Dune", "price": 18.99}

    def test_get_missing_returns_none(self, store):
        assert store.get("books", "nope") is None

    def test_dates_are_stored_as_iso_strings(self, store):
        created = store.create("events", {"name": "Slam", "date": date(2024, 3, 15)})
        assert created["date"] == "2024-03-15"

    def test_set_replaces_document(self, store):
        store.set("books", "b1", {"title": "Dune", "stock": 1})
        store.set("books", "b1", {"title": "Dune Messiah"})
        assert store.get("books", "b1") == {"id": "b1", "title": "Dune Messiah"}

    def test_update_merges_fields(self, store):
        store.set("books", "b1", {"title": "Dune", "stock": 1})
        updated = store.update("books", "b1", {"stock": 5, "id": "ignored"})
        assert updated == {"id": "b1", "title": "Dune", "stock": 5}

    def test_update_missing_returns_none(self, store):
        assert store.update("books", "nope", {"stock": 1}) is None

    def test_delete(self, store):
        store.set("books", "b1", {"title": "Dune"})
        assert store.delete("books", "b1") is True
        assert store.delete("books", "b1") is False
        assert store.get("books", "b1") is None

    def test_collections_are_separate(self, store):
        store.set("books", "x", {"title": "Dune"})
        store.set("events", "x", {"name": "Slam"})
        assert [d["id"] for d in store.list("books")] == ["x"]
        assert store.count("events") == 1
        assert store.count("contacts") == 0

    def test_list_is_oldest_first(self, store):
        for title in ["A", "B", "C"]:
            store.create("books", {"title": title})
        assert [b["title"] for b in store.list("books")] == ["A", "B", "C"]

    def test_query_by_field(self, seeded_store):
        assert {t["id"] for t in seeded_store.query("transactions", "contactId", "c-alice")} == {"t-1", "t-3"}
        assert seeded_store.query("transactions", "contactId", "c-nobody") == []

    def test_query_by_boolean_field(self, seeded_store):
        subscribed = seeded_store.query("contacts", "sendTNSBNewsletter", True)
        assert [c["id"] for c in subscribed] == ["c-alice"]

    def test_array_update(self, store):
        store.set("events", "e1", {"name": "Slam", "attendeeIds": []})
        store.array_update("events", "e1", "attendeeIds", "c1")
        store.array_update("events", "e1", "attendeeIds", "c1")
        store.array_update("events", "e1", "attendeeIds", "c2")
        assert store.get("events", "e1")["attendeeIds"] == ["c1", "c2"]

        store.array_update("events", "e1", "attendeeIds", "c1", add=False)
        assert store.get("events", "e1")["attendeeIds"] == ["c2"]

    def test_array_update_missing_document(self, store):
        assert store.array_update("events", "nope", "attendeeIds", "c1") is None

    def test_health_check(self, store):
        assert store.health_check() is True


class TestNumbering:

    def test_next_sequence_starts_after_start(self, store):
        assert store.next_sequence("expenseReports", start=1000) == 1001
        assert store.next_sequence("expenseReports", start=1000) == 1002

    def test_create_numbered(self, store):
        first = store.create_numbered("expenseReports", {"staffName": "Mary"}, "expenseReports", "reportNumber", 1000)
        second = store.create_numbered("expenseReports", {"staffName": "Bob"}, "expenseReports", "reportNumber", 1000)
        assert (first["reportNumber"], second["reportNumber"]) == (1001, 1002)
        assert store.get("expenseReports", first["id"])["reportNumber"] == 1001

    def test_concurrent_creates_get_distinct_numbers(self, store):
        store.next_sequence("expenseReports", start=1000)

        def create(i):
            return store.create_numbered(
                "expenseReports", {"staffName": f"Staff {i}"}, "expenseReports", "reportNumber", 1000
            )["reportNumber"]

        with ThreadPoolExecutor(max_workers=8) as pool:
            numbers = list(pool.map(create, range(20)))

        assert sorted(numbers) == list(range(1002, 1022))
        stored = sorted(r["reportNumber"] for r in store.list("expenseReports"))
        assert stored == list(range(1002, 1022))

    def test_contention_retries_then_fails(self, store, monkeypatch):
        monkeypatch.setattr("src.core.config.COUNTER_RETRY_LIMIT", 3)
        monkeypatch.setattr("src.core.config.COUNTER_RETRY_BACKOFF_SEC", 0)
        attempts = []

        @contextmanager
        def locked_db(*args, **kwargs):
            attempts.append(1)
            conn = MagicMock()
            conn.in_transaction = False
            conn.execute.side_effect = sqlite3.OperationalError("database is locked")
            yield conn

        with patch("src.core.store.get_db", locked_db):
            with pytest.raises(InternalError) as exc_info:
                store.next_sequence("expenseReports", start=1000)

        assert len(attempts) == 3
        assert exc_info.value.details == {"counter": "expenseReports"}

    def test_other_database_errors_are_not_retried(self, store):
        attempts = []

        @contextmanager
        def broken_db(*args, **kwargs):
            attempts.append(1)
            conn = MagicMock()
            conn.in_transaction = False
            conn.execute.side_effect = sqlite3.OperationalError("no such table: counters")
            yield conn

        with patch("src.core.store.get_db", broken_db):
            with pytest.raises(InternalError):
                store.next_sequence("expenseReports")

        assert len(attempts) == 1


class TestErrors:

    def test_sqlite_errors_become_internal_errors(self, store):
        with patch("src.core.store.get_db", side_effect=sqlite3.DatabaseError("disk I/O error")):
            with pytest.raises(InternalError) as exc_info:
                store.list("books")

        assert exc_info.value.message == "The request could not be completed."
        assert "disk" not in exc_info.value.message
