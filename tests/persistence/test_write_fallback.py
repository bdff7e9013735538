from contextlib import contextmanager

import pytest

from dbbridge.dialects import get_dialect
from dbbridge.errors import (
    DialectConstraintUnrecognizedError,
    MalformedStatementError,
    UnsupportedWriteModeError,
)
from dbbridge.persistence import FallbackWriter
from dbbridge.query import WriteMode, WriteStatement


class DriverError(Exception):
    def __init__(self, sqlstate=None, code=None):
        super().__init__(f"driver failure {sqlstate} {code}")
        self.sqlstate = sqlstate
        self.code = code


class FakeRunner:
    def __init__(self, fail_inserts=None, update_rowcount=1):
        self.statements = []
        self.fail_inserts = fail_inserts
        self.update_rowcount = update_rowcount

    def __call__(self, sql):
        self.statements.append(sql)
        if sql.startswith("INSERT") and self.fail_inserts is not None:
            raise self.fail_inserts
        if sql.startswith("UPDATE"):
            return self.update_rowcount
        return 1


def classify(exc):
    return exc.sqlstate, exc.code


def station(dialect="sqlserver"):
    return (
        WriteStatement(dialect=dialect)
        .add_table("Stations")
        .add_field("Station")
        .add_value("01234")
        .add_field("Elevation")
        .add_value(1500)
        .add_where("Station = '01234'")
    )


def make_writer(dialect, runner, **kwargs):
    return FallbackWriter(get_dialect(dialect), runner, classify, **kwargs)


def test_insert_mode_runs_one_insert():
    runner = FakeRunner()
    assert make_writer("sqlserver", runner).write(station(), WriteMode.INSERT) == 1
    assert runner.statements == [
        "INSERT INTO Stations ([Station], [Elevation]) VALUES ('01234', 1500)"
    ]


def test_update_mode_needs_where():
    runner = FakeRunner()
    stmt = WriteStatement(dialect="sqlserver").add_table("t").add_field("a").add_value(1)
    with pytest.raises(MalformedStatementError):
        make_writer("sqlserver", runner).write(stmt, "update")
    assert runner.statements == []


def test_insert_update_falls_back_on_matching_signature():
    runner = FakeRunner(fail_inserts=DriverError("23000", 2627))
    count = make_writer("sqlserver", runner).write(station(), WriteMode.INSERT_UPDATE)
    assert count == 1
    assert len(runner.statements) == 2
    assert runner.statements[1] == (
        "UPDATE Stations SET [Station] = '01234', [Elevation] = 1500 WHERE Station = '01234'"
    )


def test_insert_update_reraises_other_errors_unchanged():
    failure = DriverError("23000", 547)
    runner = FakeRunner(fail_inserts=failure)
    with pytest.raises(DriverError) as excinfo:
        make_writer("sqlserver", runner).write(station(), WriteMode.INSERT_UPDATE)
    assert excinfo.value is failure
    assert len(runner.statements) == 1


def test_insert_update_without_signatures_raises_unrecognized():
    failure = DriverError("23000", 1)
    runner = FakeRunner(fail_inserts=failure)
    with pytest.raises(DialectConstraintUnrecognizedError) as excinfo:
        make_writer("oracle", runner).write(station("oracle"), WriteMode.INSERT_UPDATE)
    assert excinfo.value.original is failure
    assert excinfo.value.__cause__ is failure
    assert len(runner.statements) == 1


def test_insert_update_runs_insert_inside_isolation():
    events = []

    @contextmanager
    def isolate():
        events.append("enter")
        try:
            yield
        except Exception:
            events.append("rollback")
            raise
        events.append("release")

    runner = FakeRunner(fail_inserts=DriverError("23505"))
    make_writer("postgresql", runner, isolate=isolate).write(
        station("postgresql"), WriteMode.INSERT_UPDATE
    )
    assert events == ["enter", "rollback"]
    assert runner.statements[1].startswith("UPDATE")


def test_update_insert_inserts_when_nothing_updated():
    runner = FakeRunner(update_rowcount=0)
    stmt = station().add_where_clauses([])
    unfiltered = WriteStatement(dialect="sqlserver").add_table("t").add_field("a").add_value(1)
    make_writer("sqlserver", runner).write(unfiltered, WriteMode.UPDATE_INSERT)
    assert runner.statements == [
        "UPDATE t SET [a] = 1 WHERE [a] = 1",
        "INSERT INTO t ([a]) VALUES (1)",
    ]
    runner.statements.clear()
    make_writer("sqlserver", runner).write(stmt, WriteMode.UPDATE_INSERT)
    assert len(runner.statements) == 2


def test_update_insert_stops_after_update_hits_rows():
    runner = FakeRunner(update_rowcount=3)
    assert make_writer("sqlserver", runner).write(station(), WriteMode.UPDATE_INSERT) == 3
    assert len(runner.statements) == 1


def test_delete_insert_is_rejected_before_running_anything():
    runner = FakeRunner()
    with pytest.raises(UnsupportedWriteModeError):
        make_writer("sqlserver", runner).write(station(), WriteMode.DELETE_INSERT)
    assert runner.statements == []
