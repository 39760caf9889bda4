"""
Tests for the database engine (TesseraDatabase) and the SQLite adapter.
"""

import sqlite3

import pytest

from tessera.db import (
    TesseraDatabase,
    configure_database,
    count_placeholders,
    get_database,
    set_database,
)
from tessera.faults import DatabaseConnectionFault, QueryFault


DEFERRED_FK_SCHEMA = [
    "CREATE TABLE parents (id INTEGER PRIMARY KEY)",
    "CREATE TABLE children (id INTEGER PRIMARY KEY, parent_id INTEGER "
    "REFERENCES parents (id) DEFERRABLE INITIALLY DEFERRED)",
]


@pytest.fixture
def db():
    database = TesseraDatabase("sqlite:///:memory:")
    database.connect()
    database.query("CREATE TABLE items (id INTEGER PRIMARY KEY AUTOINCREMENT, name TEXT)")
    yield database
    database.disconnect()


# ============================================================================
# Placeholders
# ============================================================================


class TestPlaceholders:
    def test_counts_bare_marks(self):
        assert count_placeholders('SELECT * FROM "t" WHERE "a" = ? AND "b" IN (?, ?)') == 3

    def test_ignores_quoted_marks(self):
        assert count_placeholders("SELECT '?' FROM \"we?ird\" WHERE a = ?") == 1

    def test_mismatch_fails_before_dispatch(self, db):
        with pytest.raises(QueryFault) as info:
            db.query("SELECT * FROM items WHERE id = ?", [])
        assert info.value.sql == "SELECT * FROM items WHERE id = ?"
        assert info.value.metadata["params"] == []


# ============================================================================
# Query execution
# ============================================================================


class TestQuery:
    def test_insert_reports_id_and_count(self, db):
        result = db.query("INSERT INTO items (name) VALUES (?)", ["a"])
        assert result.affected_row_count == 1
        assert result.last_insert_id == 1
        assert result.rows == []

    def test_select_returns_dict_rows(self, db):
        db.query("INSERT INTO items (name) VALUES (?), (?)", ["a", "b"])
        result = db.query("SELECT id, name FROM items ORDER BY id")
        assert result.rows == [{"id": 1, "name": "a"}, {"id": 2, "name": "b"}]
        assert result.first_row == {"id": 1, "name": "a"}

    def test_fetch_helpers(self, db):
        db.execute("INSERT INTO items (name) VALUES (?)", ["a"])
        assert db.fetch_all("SELECT name FROM items") == [{"name": "a"}]
        assert db.fetch_one("SELECT name FROM items WHERE id = ?", [99]) is None
        assert db.fetch_val("SELECT COUNT(*) FROM items") == 1

    def test_execute_many(self, db):
        db.execute_many("INSERT INTO items (name) VALUES (?)", [["a"], ["b"], ["c"]])
        assert db.fetch_val("SELECT COUNT(*) FROM items") == 3

    def test_driver_error_becomes_query_fault(self, db):
        with pytest.raises(QueryFault) as info:
            db.query("SELECT * FROM missing_table")
        assert "missing_table" in info.value.message
        assert info.value.__cause__ is not None

    def test_introspection(self, db):
        assert db.table_exists("items")
        assert not db.table_exists("nope")
        columns = db.get_columns("items")
        assert [c.name for c in columns] == ["id", "name"]
        assert columns[0].primary_key is True


# ============================================================================
# Transactions
# ============================================================================


class TestTransactions:
    def test_commit(self, db):
        db.begin()
        assert db.in_transaction
        db.query("INSERT INTO items (name) VALUES (?)", ["a"])
        db.commit()
        assert not db.in_transaction
        assert db.fetch_val("SELECT COUNT(*) FROM items") == 1

    def test_rollback(self, db):
        db.begin()
        db.query("INSERT INTO items (name) VALUES (?)", ["a"])
        db.rollback()
        assert db.fetch_val("SELECT COUNT(*) FROM items") == 0

    def test_nested_rollback_uses_savepoint(self, db):
        with db.transaction():
            db.query("INSERT INTO items (name) VALUES (?)", ["outer"])
            with pytest.raises(ValueError):
                with db.transaction():
                    db.query("INSERT INTO items (name) VALUES (?)", ["inner"])
                    raise ValueError("inner failure")
        assert db.fetch_all("SELECT name FROM items") == [{"name": "outer"}]

    def test_failed_commit_raises_fault_and_rolls_back(self, db):
        for statement in DEFERRED_FK_SCHEMA:
            db.query(statement)
        db.begin()
        db.query("INSERT INTO children (parent_id) VALUES (?)", [99])
        with pytest.raises(QueryFault) as info:
            db.commit()

        assert info.value.sql == "COMMIT"
        assert "FOREIGN KEY" in info.value.metadata["reason"]
        assert isinstance(info.value.__cause__, sqlite3.IntegrityError)
        assert not db.in_transaction
        assert not db.adapter.in_transaction
        assert db.fetch_val("SELECT COUNT(*) FROM children") == 0

        db.begin()
        db.query("INSERT INTO items (name) VALUES (?)", ["after"])
        db.commit()
        assert db.fetch_val("SELECT COUNT(*) FROM items") == 1

    def test_failed_commit_inside_context_manager(self, db):
        for statement in DEFERRED_FK_SCHEMA:
            db.query(statement)
        with pytest.raises(QueryFault):
            with db.transaction():
                db.query("INSERT INTO children (parent_id) VALUES (?)", [99])
        assert db.transaction_depth == 0
        with db.transaction():
            db.query("INSERT INTO children (parent_id) VALUES (?)", [None])
        assert db.fetch_val("SELECT COUNT(*) FROM children") == 1

    def test_begin_failure_is_a_fault(self, db):
        db.adapter.begin()
        with pytest.raises(QueryFault) as info:
            db.begin()
        assert info.value.sql == "BEGIN"
        assert not db.in_transaction
        db.adapter.rollback()

    def test_commit_without_transaction(self, db):
        with pytest.raises(QueryFault):
            db.commit()
        with pytest.raises(QueryFault):
            db.rollback()


# ============================================================================
# Connection management
# ============================================================================


class TestConnection:
    def test_unsupported_scheme(self):
        with pytest.raises(DatabaseConnectionFault):
            TesseraDatabase("mysql://localhost/db")

    def test_lazy_connect_on_query(self):
        database = TesseraDatabase("sqlite:///:memory:")
        assert not database.is_connected
        assert database.fetch_val("SELECT 1") == 1
        assert database.is_connected
        database.disconnect()
        assert not database.is_connected

    def test_default_database_accessors(self):
        set_database(None)
        with pytest.raises(DatabaseConnectionFault):
            get_database()
        database = configure_database("sqlite:///:memory:")
        try:
            assert get_database() is database
        finally:
            database.disconnect()
            set_database(None)
