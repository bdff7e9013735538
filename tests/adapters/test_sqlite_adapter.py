import sqlite3

import pytest

from dbbridge.adapters import AdapterConnectionError, AdapterExecutionError, ConnectionConfig, SQLiteAdapter
from dbbridge.dialects import EngineType


@pytest.fixture
def adapter(tmp_path):
    adapter = SQLiteAdapter()
    config = ConnectionConfig(url=f"sqlite:///{tmp_path / 'test.db'}")
    adapter.connect(config)
    yield adapter
    adapter.close()


def test_connect_creates_database(tmp_path):
    adapter = SQLiteAdapter()
    config = ConnectionConfig(url=f"sqlite:///{tmp_path / 'connect.db'}")
    connection = adapter.connect(config)
    assert isinstance(connection, sqlite3.Connection)
    assert adapter.dialect.engine is EngineType.SQLITE
    assert adapter.autocommit
    adapter.close()


def test_execute_returns_cursor_with_rowcount(adapter):
    adapter.execute("CREATE TABLE example (id INTEGER PRIMARY KEY, name TEXT NOT NULL)")
    cursor = adapter.execute("INSERT INTO example (name) VALUES (?)", ("Alice",))
    assert cursor.rowcount == 1
    rows = adapter.execute("SELECT name FROM example WHERE id = ?", (1,)).fetchall()
    assert rows[0]["name"] == "Alice"


def test_manual_transaction_commit_and_rollback(adapter):
    adapter.execute("CREATE TABLE item (id INTEGER PRIMARY KEY, value INTEGER)")

    adapter.set_autocommit(False)
    adapter.execute("INSERT INTO item (value) VALUES (10)")
    adapter.commit()
    adapter.execute("INSERT INTO item (value) VALUES (20)")
    adapter.rollback()
    adapter.set_autocommit(True)
    assert adapter.execute("SELECT COUNT(*) FROM item").fetchone()[0] == 1


def test_enabling_autocommit_commits_open_transaction(adapter):
    adapter.execute("CREATE TABLE item (value INTEGER)")
    adapter.set_autocommit(False)
    adapter.execute("INSERT INTO item (value) VALUES (1)")
    adapter.set_autocommit(True)
    adapter.rollback()
    assert adapter.execute("SELECT COUNT(*) FROM item").fetchone()[0] == 1


def test_error_codes_classify_duplicate_keys(adapter):
    adapter.execute("CREATE TABLE item (id INTEGER PRIMARY KEY)")
    adapter.execute("INSERT INTO item (id) VALUES (1)")
    with pytest.raises(sqlite3.IntegrityError) as excinfo:
        adapter.execute("INSERT INTO item (id) VALUES (1)")
    sqlstate, code = adapter.error_codes(excinfo.value)
    assert sqlstate is None
    assert adapter.dialect.matches_constraint_violation(sqlstate, code)


def test_no_stored_procedures(adapter):
    assert adapter.describe_procedure("anything") is None
    with pytest.raises(AdapterExecutionError):
        adapter.call_procedure(type("Spec", (), {"procedure_name": "p"})(), [])


def test_in_memory_database():
    adapter = SQLiteAdapter()
    adapter.connect(ConnectionConfig(url="sqlite:///:memory:"))
    adapter.execute("CREATE TABLE sample (value TEXT)")
    adapter.execute("INSERT INTO sample (value) VALUES (?)", ("hello",))
    assert adapter.execute("SELECT value FROM sample").fetchone()[0] == "hello"
    adapter.close()


def test_execute_without_connection_raises():
    with pytest.raises(AdapterConnectionError):
        SQLiteAdapter().execute("SELECT 1")
