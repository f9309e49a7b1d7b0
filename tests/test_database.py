import sqlite3

import pytest

from asynctracker.database import Database


@pytest.fixture
def db():
    database = Database(":memory:")
    with database.transaction() as conn:
        conn.execute("CREATE TABLE items (name TEXT NOT NULL)")
    yield database
    database.close()


def _names(db):
    return db.execute_tx(
        lambda conn: [row["name"] for row in conn.execute("SELECT name FROM items")]
    )


def test_transaction_commits(db):
    with db.transaction() as conn:
        conn.execute("INSERT INTO items (name) VALUES (?)", ("alpha",))
    assert _names(db) == ["alpha"]


def test_transaction_rolls_back_on_error(db):
    with pytest.raises(ValueError):
        with db.transaction() as conn:
            conn.execute("INSERT INTO items (name) VALUES (?)", ("alpha",))
            raise ValueError("boom")
    assert _names(db) == []


def test_execute_tx_returns_result(db):
    def insert(conn):
        conn.execute("INSERT INTO items (name) VALUES (?)", ("beta",))
        return conn.execute("SELECT COUNT(*) FROM items").fetchone()[0]

    assert db.execute_tx(insert) == 1


def test_execute_tx_propagates_and_rolls_back(db):
    def failing(conn):
        conn.execute("INSERT INTO items (name) VALUES (?)", ("gamma",))
        conn.execute("INSERT INTO items (name) VALUES (NULL)")

    with pytest.raises(sqlite3.IntegrityError):
        db.execute_tx(failing)
    assert _names(db) == []


def test_closed_database_rejects_transactions():
    database = Database(":memory:")
    database.close()
    with pytest.raises(sqlite3.ProgrammingError):
        with database.transaction():
            pass


def test_context_manager_closes_and_data_persists(tmp_path):
    path = tmp_path / "store.db"
    with Database(path) as first:
        with first.transaction() as conn:
            conn.execute("CREATE TABLE items (name TEXT NOT NULL)")
            conn.execute("INSERT INTO items (name) VALUES (?)", ("delta",))
    with pytest.raises(sqlite3.ProgrammingError):
        first.execute_tx(lambda conn: conn.execute("SELECT 1"))
    with Database(path) as second:
        assert _names(second) == ["delta"]