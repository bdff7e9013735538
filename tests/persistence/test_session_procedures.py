import logging

import pytest

from dbbridge.dialects import get_dialect
from dbbridge.errors import (
    DialectConstraintUnrecognizedError,
    MalformedStatementError,
    ReadOnlyViolationError,
    UnsupportedWriteModeError,
)
from dbbridge.persistence import ExecutionKind, Session
from dbbridge.query import StoredProcedureSpec


class UniqueViolation(Exception):
    sqlstate = "23505"


class FakeCursor:
    def __init__(self, rowcount=1, rows=()):
        self.rowcount = rowcount
        self.rows = list(rows)
        self.closed = False

    def fetchone(self):
        return self.rows.pop(0) if self.rows else None

    def fetchall(self):
        rows, self.rows = self.rows, []
        return rows

    def __iter__(self):
        return iter(self.fetchall())

    def close(self):
        self.closed = True


class FakeAdapter:
    def __init__(self, dialect="postgresql"):
        self.dialect = get_dialect(dialect)
        self.statements = []
        self.calls = []
        self.failures = {}
        self.procedures = {}
        self.describe_calls = []
        self.procedure_rows = [(7,)]
        self.cursors = []

    def connect(self, config):
        self.calls.append("connect")

    def close(self):
        self.calls.append("close")

    def execute(self, sql, params=None):
        self.statements.append(sql)
        for prefix, exc in self.failures.items():
            if sql.startswith(prefix):
                raise exc
        cursor = FakeCursor(rows=[(3,)])
        self.cursors.append(cursor)
        return cursor

    def set_autocommit(self, enabled):
        self.calls.append(f"autocommit={enabled}")

    def commit(self):
        self.calls.append("commit")

    def rollback(self):
        self.calls.append("rollback")

    def error_codes(self, exc):
        return getattr(exc, "sqlstate", None), None

    def describe_procedure(self, name):
        self.describe_calls.append(name)
        return self.procedures.get(name)

    def call_procedure(self, spec, args):
        self.calls.append((spec.procedure_name, list(args)))
        return FakeCursor(rowcount=2, rows=list(self.procedure_rows))


ADD_STATION = StoredProcedureSpec.from_metadata_rows(
    "add_station",
    [(None, "integer", "RETURN", None), ("station", "varchar", "IN", None), ("elevation", "int4", "IN", None)],
    is_function=True,
)

PURGE = StoredProcedureSpec.from_metadata_rows(
    "purge", [("station", "varchar", "IN", None)], is_function=False
)


@pytest.fixture
def adapter():
    adapter = FakeAdapter()
    adapter.procedures = {"add_station": ADD_STATION, "purge": PURGE}
    return adapter


@pytest.fixture
def session(adapter):
    return Session(adapter).open()


def upsert(session):
    return session.new_write().add_table("t").add_field("a").add_value(1).add_where("a = 1")


def test_insert_update_uses_savepoint_inside_transaction(adapter, session):
    adapter.failures["INSERT"] = UniqueViolation("duplicate key")
    session.begin_transaction()
    execution = session.write(upsert(session))
    assert adapter.statements == [
        "SAVEPOINT dbbridge_sp_1",
        'INSERT INTO t ("a") VALUES (1)',
        "ROLLBACK TO SAVEPOINT dbbridge_sp_1",
        "RELEASE SAVEPOINT dbbridge_sp_1",
        'UPDATE t SET "a" = 1 WHERE a = 1',
    ]
    assert execution.result == 1
    session.commit()
    assert adapter.calls[-2:] == ["commit", "autocommit=True"]
    assert len(adapter.cursors) == 4
    assert all(cursor.closed for cursor in adapter.cursors)


def test_insert_update_without_transaction_skips_savepoint(adapter, session):
    adapter.failures["INSERT"] = UniqueViolation("duplicate key")
    session.write(upsert(session))
    assert adapter.statements == ['INSERT INTO t ("a") VALUES (1)', 'UPDATE t SET "a" = 1 WHERE a = 1']


def test_unrecognized_constraint_for_engine_without_signatures():
    adapter = FakeAdapter("oracle")
    adapter.failures["INSERT"] = UniqueViolation("duplicate key")
    session = Session(adapter).open()
    with pytest.raises(DialectConstraintUnrecognizedError) as excinfo:
        session.write(upsert(session))
    assert isinstance(excinfo.value.original, UniqueViolation)
    assert len(adapter.statements) == 1


def test_begin_transaction_settles_prior_work(adapter, session):
    session.begin_transaction("commit")
    assert adapter.calls[-2:] == ["autocommit=False", "commit"]
    session.rollback()
    session.begin_transaction()
    assert adapter.calls[-2:] == ["autocommit=False", "rollback"]


def test_procedure_spec_is_cached_including_missing(adapter, session):
    assert session.procedure_spec("add_station") is ADD_STATION
    assert session.procedure_spec("ADD_STATION") is ADD_STATION
    assert session.procedure_spec("nope") is None
    assert session.procedure_spec("nope") is None
    assert adapter.describe_calls == ["add_station", "nope"]


def test_procedure_uses_dialect_parameter_prefix(adapter):
    sqlserver = Session(adapter, engine="sqlserver").open()
    assert sqlserver.procedure("add_station").parameter_prefix == "@"
    postgres = Session(FakeAdapter()).open()
    postgres.adapter.procedures = {"purge": PURGE}
    assert postgres.procedure("purge").parameter_prefix == ""
    assert postgres.procedure("missing") is None


def test_procedure_write_returns_declared_return_value(adapter, session):
    stmt = session.procedure("add_station").add_where("station = 'A1'").add_where("elevation = 10")
    execution = session.write(stmt)
    assert execution.kind is ExecutionKind.WRITE
    assert execution.result == 7
    assert execution.sql == "exec add_station 'A1', 10"
    assert adapter.calls[-1] == ("add_station", ["A1", 10])


def test_procedure_write_without_return_value_reports_rowcount(adapter, session):
    stmt = session.procedure("purge").add_value("A1")
    assert session.write(stmt).result == 2


def test_procedure_select_count_and_replay(adapter, session):
    stmt = session.procedure("purge").add_value("A1")
    execution = session.select(stmt)
    assert execution.result.fetchall() == [(7,)]
    assert session.count(stmt).result == 7

    replayed = session.execute_last_statement(execution)
    assert replayed.is_procedure
    procedure_calls = [call for call in adapter.calls if isinstance(call, tuple)]
    assert len(procedure_calls) == 3


def test_procedure_with_unbound_parameters_is_not_called(adapter, session):
    with pytest.raises(MalformedStatementError):
        session.write(session.procedure("add_station").add_value("A1"))
    assert not any(isinstance(call, tuple) for call in adapter.calls)


def test_read_only_blocks_procedure_writes(adapter):
    session = Session(adapter, read_only=True).open()
    with pytest.raises(ReadOnlyViolationError):
        session.write(session.procedure("purge").add_value("A1"))
    with pytest.raises(ReadOnlyViolationError):
        session.delete(session.procedure("purge").add_value("A1"))


def test_procedure_call_logging(adapter, caplog):
    caplog.set_level(logging.INFO, logger="dbbridge.persistence.session")
    session = Session(adapter, dump_sql_on_execution=True).open()
    session.delete(session.procedure("purge").add_value("A1"))
    assert any("Executing procedure: exec purge 'A1'" in r.getMessage() for r in caplog.records)


def test_close_calls_adapter(adapter, session):
    session.close()
    assert adapter.calls[-1] == "close"


def test_delete_insert_is_rejected_for_every_statement_kind(adapter, session):
    with pytest.raises(UnsupportedWriteModeError):
        session.write("INSERT INTO t (id) VALUES (1)", "delete_insert")
    with pytest.raises(UnsupportedWriteModeError):
        session.write(session.procedure("purge").add_value("A1"), "DELETE_INSERT")
    with pytest.raises(UnsupportedWriteModeError):
        session.write(upsert(session), "delete_insert")
    assert adapter.statements == []
    assert not any(isinstance(call, tuple) for call in adapter.calls)


def test_select_through_execute_leaves_session_clean(adapter, session):
    session.begin_transaction()
    session.execute("SELECT * FROM t")
    assert not session.dirty
    session.execute("UPDATE t SET a = 2")
    assert session.dirty


def test_failed_procedure_write_does_not_mark_dirty(adapter, session):
    class BrokenCursor(FakeCursor):
        def fetchone(self):
            raise RuntimeError("lost connection")

    adapter.call_procedure = lambda spec, args: BrokenCursor()
    session.begin_transaction()
    stmt = session.procedure("add_station").add_where("station = 'A1'").add_where("elevation = 10")
    with pytest.raises(RuntimeError):
        session.write(stmt)
    assert not session.dirty
