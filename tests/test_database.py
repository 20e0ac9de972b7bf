import logging
import sqlite3

import pytest

import database
from database import BOOKS_KEY, MEMBERS_KEY, TRANSACTIONS_KEY, KeyValueStore, get_db_connection
from ids import SequentialIdGenerator
from library import Library


@pytest.fixture
def store(db_file):
    return KeyValueStore(db_file)


def test_load_missing_key_returns_none(store):
    assert store.load("nothing-here") is None


def test_save_and_load_json(store):
    payload = [{"id": "B1", "title": "Ulysses", "copies": 2}, {"id": "B2", "title": "Dubliners", "copies": 0}]
    assert store.save(BOOKS_KEY, payload) is True
    assert store.load(BOOKS_KEY) == payload


def test_save_overwrites_previous_value(store):
    store.save(MEMBERS_KEY, [{"id": "M1", "name": "Ann"}])
    store.save(MEMBERS_KEY, [])
    assert store.load(MEMBERS_KEY) == []


def test_invalid_json_is_treated_as_absent(store, db_file, caplog):
    conn = get_db_connection(db_file)
    conn.execute("INSERT INTO kv_store (key, value) VALUES (?, ?)", (BOOKS_KEY, "{not json"))
    conn.commit()
    conn.close()

    with caplog.at_level(logging.ERROR, logger="database"):
        assert store.load(BOOKS_KEY) is None
    assert "not valid JSON" in caplog.text


def test_unserialisable_value_is_not_saved(store, caplog):
    with caplog.at_level(logging.ERROR, logger="database"):
        assert store.save(BOOKS_KEY, [object()]) is False
    assert store.load(BOOKS_KEY) is None


def test_write_failure_returns_false(store, monkeypatch, caplog):
    def broken(*args, **kwargs):
        raise sqlite3.OperationalError("disk I/O error")

    monkeypatch.setattr(database, "get_db_connection", broken)
    with caplog.at_level(logging.ERROR, logger="database"):
        assert store.save(BOOKS_KEY, []) is False
        assert store.load(BOOKS_KEY) is None
    assert "Store write failed" in caplog.text
    assert "Store read failed" in caplog.text


def test_library_falls_back_to_seed_on_malformed_data(db_file):
    store = KeyValueStore(db_file)
    store.save(BOOKS_KEY, {"not": "a list"})
    store.save(MEMBERS_KEY, [{"email": "missing-id-and-name@example.com"}])
    store.save(TRANSACTIONS_KEY, [])

    lib = Library(store=store, id_generator=SequentialIdGenerator())
    assert len(lib.list_books()) == 3
    assert len(lib.list_members()) == 2
    assert lib.list_transactions() == []
    # the seed is written back so the next start reads it cleanly
    assert len(store.load(BOOKS_KEY)) == 3


@pytest.mark.parametrize("key, items", [(BOOKS_KEY, ["not-a-record"]), (MEMBERS_KEY, [None]), (BOOKS_KEY, [{"id": "B1", "title": "Ok"}, 7])])
def test_library_falls_back_to_seed_on_non_record_items(db_file, key, items):
    store = KeyValueStore(db_file)
    store.save(key, items)

    lib = Library(store=store, id_generator=SequentialIdGenerator())
    assert len(lib.list_books()) == 3
    assert len(lib.list_members()) == 2


def _stored_issue(returned):
    return {
        "id": "T1", "book_id": "B1", "member_id": "M1", "kind": "issue",
        "issued_at": "2024-01-01T09:00:00+00:00", "due_at": "2024-01-15T09:00:00+00:00",
        "returned": returned, "returned_at": None, "issue_id": None,
    }


def test_non_boolean_returned_flag_is_malformed(db_file):
    store = KeyValueStore(db_file)
    store.save(BOOKS_KEY, [{"id": "B1", "title": "Dune", "copies": 1}])
    store.save(MEMBERS_KEY, [{"id": "M1", "name": "Ann"}])
    store.save(TRANSACTIONS_KEY, [_stored_issue("false")])

    lib = Library(store=store, id_generator=SequentialIdGenerator())
    assert lib.list_transactions() == []
    assert lib.available_copies("B1") == 1
    assert store.load(TRANSACTIONS_KEY) == []


def test_boolean_returned_flag_loads(db_file):
    store = KeyValueStore(db_file)
    store.save(BOOKS_KEY, [{"id": "B1", "title": "Dune", "copies": 1}])
    store.save(MEMBERS_KEY, [{"id": "M1", "name": "Ann"}])
    store.save(TRANSACTIONS_KEY, [_stored_issue(False)])

    lib = Library(store=store, id_generator=SequentialIdGenerator())
    assert [t.id for t in lib.active_issues()] == ["T1"]
    assert lib.available_copies("B1") == 0


def test_transactions_for_missing_records_are_dropped_on_load(db_file, caplog):
    store = KeyValueStore(db_file)
    store.save(BOOKS_KEY, {"broken": True})
    store.save(MEMBERS_KEY, [{"id": "M1", "name": "Ann"}])
    store.save(TRANSACTIONS_KEY, [_stored_issue(False)])

    with caplog.at_level(logging.WARNING, logger="library"):
        lib = Library(store=store, id_generator=SequentialIdGenerator())

    assert lib.find_book("B1") is None
    assert lib.list_transactions() == []
    assert lib.dashboard_counts()["total_active_issues"] == 0
    assert store.load(TRANSACTIONS_KEY) == []
    assert "dropped 1 rows" in caplog.text


def test_library_keeps_working_when_store_is_unwritable(db_file, monkeypatch):
    lib = Library(db_file=db_file, id_generator=SequentialIdGenerator(), seed=False)

    def broken(*args, **kwargs):
        raise sqlite3.OperationalError("database is locked")

    monkeypatch.setattr(database, "get_db_connection", broken)
    lib.add_book(title="Dune")
    lib.add_member(name="Ann")
    tx = lib.issue("B1", "M1")
    assert lib.active_issues() == [tx]


def test_round_trip_is_field_for_field(lib, db_file):
    lib.add_book(title="Ulysses", author="James Joyce", isbn="9780199535675", copies=1, category="Fiction")
    lib.add_member(name="Ann", email="ann@example.com", phone="555")
    tx = lib.issue("B1", "M1", 7)
    lib.return_transaction(tx.id)

    store = KeyValueStore(db_file)
    assert store.load(BOOKS_KEY) == [b.to_dict() for b in lib.list_books()]
    assert store.load(MEMBERS_KEY) == [m.to_dict() for m in lib.list_members()]
    assert store.load(TRANSACTIONS_KEY) == [t.to_dict() for t in lib.list_transactions()]

    reloaded = Library(store=store)
    for original, loaded in zip(lib.list_transactions(), reloaded.list_transactions()):
        assert loaded.to_dict() == original.to_dict()
        assert loaded == original
