"""
Session management coordinating an adapter, the transaction state machine,
and statement execution for SQL-mode and stored-procedure statements.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional

from ..adapters import adapter_for_family
from ..adapters.base import ConnectionConfig, DatabaseAdapter
from ..dialects.base import DialectProfile, EngineType
from ..dialects.engines import get_dialect
from ..errors import (
    MalformedStatementError,
    ReadOnlyViolationError,
    ReplayNotSupportedError,
    UnsupportedWriteModeError,
)
from ..query.delete import DeleteStatement
from ..query.procedure import ProcedureStatement, StoredProcedureSpec
from ..query.select import SelectStatement, count_sql
from ..query.write import WriteMode, WriteStatement
from ..security.redaction import redact_sql
from ..utils import get_logger
from .transaction import SessionState, TransactionAction, TransactionManager
from .write_fallback import FallbackWriter


class ExecutionKind(str, Enum):
    SELECT = "select"
    WRITE = "write"
    DELETE = "delete"
    COUNT = "count"
    SQL = "sql"


@dataclass(frozen=True)
class Execution:
    """
    Record of one executed operation, handed back to the caller.

    ``sql`` is the text actually sent (the debug string for procedures);
    ``statement`` is the builder it came from, if any.
    """

    kind: ExecutionKind
    sql: str
    result: Any = None
    statement: Any = None
    mode: Optional[WriteMode] = None

    @property
    def is_procedure(self) -> bool:
        return isinstance(self.statement, ProcedureStatement)


class ResultSet:
    """
    Cursor wrapper returned by ``Session.select``.

    Closing it inside a transaction parks the cursor until commit/rollback.
    """

    def __init__(self, cursor: Any, release: Callable[[Any], None]) -> None:
        self.cursor = cursor
        self._release = release
        self.closed = False

    @property
    def description(self) -> Any:
        return getattr(self.cursor, "description", None)

    def fetchone(self) -> Any:
        return self.cursor.fetchone()

    def fetchall(self) -> List[Any]:
        return list(self.cursor.fetchall())

    def __iter__(self) -> Iterator[Any]:
        return iter(self.cursor)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._release(self.cursor)

    def __enter__(self) -> "ResultSet":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class Session:
    """
    One logical connection with explicit open/close and transaction control.

    SQL is rendered with the session's dialect unless a statement carries its
    own. Every operation returns an ``Execution`` that can be handed back to
    ``execute_last_statement`` to run it again.
    """

    def __init__(
        self,
        adapter: DatabaseAdapter,
        *,
        engine: DialectProfile | EngineType | str | None = None,
        connection_config: Optional[ConnectionConfig] = None,
        dsn: Optional[str] = None,
        read_only: bool = False,
        capitalize: bool = False,
        dump_sql_on_error: bool = False,
        dump_sql_on_execution: bool = False,
    ) -> None:
        if connection_config is not None and dsn is not None:
            raise ValueError("Pass either connection_config or dsn, not both.")
        if dsn is not None:
            connection_config = ConnectionConfig.from_dsn(dsn)
        self.adapter = adapter
        self.connection_config = connection_config or ConnectionConfig(url="sqlite:///:memory:")
        if engine is not None:
            self.dialect = get_dialect(engine)
        else:
            self.dialect = getattr(adapter, "dialect", None) or get_dialect(EngineType.SQLITE)
        self.read_only = read_only
        self.capitalize = capitalize
        self.dump_sql_on_error = dump_sql_on_error
        self.dump_sql_on_execution = dump_sql_on_execution
        self.transaction_manager = TransactionManager(adapter, self.dialect)
        self._procedures: Dict[str, Optional[StoredProcedureSpec]] = {}
        self.logger = get_logger("persistence.session")

    @classmethod
    def from_dsn(cls, dsn: str, **kwargs: Any) -> "Session":
        """Build a session whose adapter is chosen from the DSN scheme."""

        config = ConnectionConfig.from_dsn(dsn)
        adapter = adapter_for_family(config.family)
        return cls(adapter, connection_config=config, **kwargs)

    # ------------------------------------------------------------------ #
    # Connection state
    # ------------------------------------------------------------------ #
    @property
    def state(self) -> SessionState:
        return self.transaction_manager.state

    @property
    def is_open(self) -> bool:
        return self.state is not SessionState.CLOSED

    @property
    def in_transaction(self) -> bool:
        return self.transaction_manager.in_transaction

    @property
    def dirty(self) -> bool:
        return self.transaction_manager.dirty

    @property
    def autocommit(self) -> bool:
        return self.transaction_manager.autocommit

    def open(self) -> "Session":
        self.transaction_manager.mark_open()
        try:
            self.adapter.connect(self.connection_config)
        except Exception:
            self.transaction_manager.state = SessionState.CLOSED
            raise
        self.logger.debug("Session opened on %s", self.connection_config.descriptive_label())
        if not self.connection_config.autocommit:
            self.transaction_manager.set_autocommit(False)
        return self

    def close(self) -> None:
        try:
            self.transaction_manager.mark_closed()
        finally:
            self.adapter.close()
        self.logger.debug("Session closed")

    def __enter__(self) -> "Session":
        if not self.is_open:
            self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self.is_open:
            self.close()

    # ------------------------------------------------------------------ #
    # Transactions
    # ------------------------------------------------------------------ #
    def set_autocommit(self, enabled: bool) -> None:
        self.transaction_manager.set_autocommit(enabled)

    def begin_transaction(
        self, initial_action: TransactionAction | str = TransactionAction.ROLLBACK
    ) -> None:
        self.transaction_manager.begin(initial_action)

    def commit(self) -> None:
        self.transaction_manager.commit()

    def rollback(self) -> None:
        self.transaction_manager.rollback()

    @contextmanager
    def transaction(self, initial_action: TransactionAction | str = TransactionAction.ROLLBACK):
        with self.transaction_manager.transaction(initial_action):
            yield self

    # ------------------------------------------------------------------ #
    # Statement constructors
    # ------------------------------------------------------------------ #
    def new_select(self) -> SelectStatement:
        return SelectStatement(dialect=self.dialect)

    def new_write(self) -> WriteStatement:
        return WriteStatement(dialect=self.dialect)

    def new_delete(self) -> DeleteStatement:
        return DeleteStatement(dialect=self.dialect)

    def procedure_spec(self, name: str) -> Optional[StoredProcedureSpec]:
        """
        Metadata for stored procedure ``name``, looked up once per session.

        A missing procedure is cached as ``None`` too.
        """

        self.transaction_manager.require_open()
        key = name.casefold()
        if key not in self._procedures:
            spec = self.adapter.describe_procedure(name)
            if spec is not None:
                self.logger.debug("%s", spec.describe())
            self._procedures[key] = spec
        return self._procedures[key]

    def procedure(self, name: str) -> Optional[ProcedureStatement]:
        spec = self.procedure_spec(name)
        if spec is None:
            return None
        return ProcedureStatement(spec, parameter_prefix=self.dialect.procedure_parameter_prefix)

    # ------------------------------------------------------------------ #
    # Operations
    # ------------------------------------------------------------------ #
    def select(self, statement: SelectStatement | ProcedureStatement | str) -> Execution:
        self.transaction_manager.require_open()
        if isinstance(statement, ProcedureStatement):
            cursor = self._call(statement)
            sql = statement.debug_string()
        else:
            sql = self._prepare(self._render(statement))
            cursor = self._run(sql)
        result = ResultSet(cursor, self.transaction_manager.release)
        return Execution(ExecutionKind.SELECT, sql, result, statement)

    def count(self, statement: SelectStatement | ProcedureStatement | str) -> Execution:
        self.transaction_manager.require_open()
        if isinstance(statement, ProcedureStatement):
            cursor = self._call(statement)
            sql = statement.debug_string()
        else:
            sql = self._prepare(count_sql(self._render(statement)))
            cursor = self._run(sql)
        try:
            row = cursor.fetchone()
        finally:
            self.transaction_manager.release(cursor)
        count = int(row[0]) if row is not None and row[0] is not None else 0
        return Execution(ExecutionKind.COUNT, sql, count, statement)

    def write(
        self,
        statement: WriteStatement | ProcedureStatement | str,
        mode: WriteMode | str = WriteMode.INSERT_UPDATE,
    ) -> Execution:
        self._require_writable("write")
        mode = WriteMode.coerce(mode)
        if mode is WriteMode.DELETE_INSERT:
            raise UnsupportedWriteModeError(
                "Write mode DELETE_INSERT is not supported; "
                "delete-then-insert ordering and atomicity are undefined."
            )
        if isinstance(statement, ProcedureStatement):
            result = self._call_for_count(statement, use_return_value=True)
            return Execution(ExecutionKind.WRITE, statement.debug_string(), result, statement, mode)
        if isinstance(statement, str):
            sql = self._prepare(statement)
            return Execution(ExecutionKind.WRITE, sql, self._run_update(sql), statement, mode)

        sent: List[str] = []

        def run_update(sql: str) -> int:
            sql = self._prepare(sql)
            sent.append(sql)
            return self._run_update(sql)

        writer = FallbackWriter(
            self._dialect_for(statement),
            run_update,
            self.adapter.error_codes,
            isolate=self._isolation(),
        )
        result = writer.write(statement, mode)
        return Execution(ExecutionKind.WRITE, sent[-1], result, statement, mode)

    def delete(self, statement: DeleteStatement | ProcedureStatement | str) -> Execution:
        self._require_writable("delete")
        if isinstance(statement, ProcedureStatement):
            result = self._call_for_count(statement)
            return Execution(ExecutionKind.DELETE, statement.debug_string(), result, statement)
        sql = self._prepare(self._render(statement))
        return Execution(ExecutionKind.DELETE, sql, self._run_update(sql), statement)

    def execute(self, sql: str) -> Execution:
        """Run raw SQL (DDL or DML); ``.result`` is the affected-row count."""

        self.transaction_manager.require_open()
        is_query = sql.lstrip().upper().startswith("SELECT")
        if not is_query:
            self._require_writable("execute")
        sql = self._prepare(sql)
        return Execution(ExecutionKind.SQL, sql, self._run_update(sql, dirty=not is_query), sql)

    def execute_last_statement(self, execution: Execution) -> Execution:
        """
        Run a previously returned execution again.

        SELECT, DELETE and COUNT replay the SQL that was sent; writes replay
        as UPDATE_INSERT. Procedure executions are called again with the same
        bindings. Raw SQL executions cannot be replayed.
        """

        kind = ExecutionKind(execution.kind)
        if kind is ExecutionKind.SQL:
            raise ReplayNotSupportedError(
                "Raw SQL executions cannot be replayed; call execute() again instead."
            )
        self.logger.debug("Replaying %s execution: %s", kind.value, redact_sql(execution.sql))
        if kind is ExecutionKind.WRITE:
            if isinstance(execution.statement, (WriteStatement, ProcedureStatement)):
                return self.write(execution.statement, WriteMode.UPDATE_INSERT)
            return self.write(execution.sql, WriteMode.UPDATE_INSERT)
        target = execution.statement if execution.is_procedure else execution.sql
        if kind is ExecutionKind.SELECT:
            return self.select(target)
        if kind is ExecutionKind.COUNT:
            return self.count(target)
        return self.delete(target)

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #
    def _require_writable(self, operation: str) -> None:
        self.transaction_manager.require_open()
        if self.read_only:
            raise ReadOnlyViolationError(f"Cannot {operation}: session is read-only.")

    def _dialect_for(self, statement: Any) -> DialectProfile:
        return getattr(statement, "dialect", None) or self.dialect

    def _render(self, statement: Any) -> str:
        if isinstance(statement, str):
            return statement
        if isinstance(statement, (SelectStatement, DeleteStatement)):
            return statement.render(self._dialect_for(statement))
        raise MalformedStatementError(
            f"Cannot execute a {type(statement).__name__} here."
        )

    def _prepare(self, sql: str) -> str:
        if self.capitalize:
            sql = sql.upper()
        if self.dump_sql_on_execution:
            self.logger.info("Executing SQL: %s", redact_sql(sql))
        return sql

    def _isolation(self):
        if self.dialect.aborts_transaction_on_error:
            return self.transaction_manager.savepoint
        return None

    def _run(self, sql: str) -> Any:
        try:
            return self.adapter.execute(sql)
        except Exception:
            if self.dump_sql_on_error:
                self.logger.warning("Statement failed: %s", redact_sql(sql))
            raise

    def _run_update(self, sql: str, *, dirty: bool = True) -> int:
        cursor = self._run(sql)
        try:
            count = getattr(cursor, "rowcount", -1)
        finally:
            self.transaction_manager.release(cursor)
        if dirty:
            self.transaction_manager.mark_dirty()
        return count

    def _call(self, statement: ProcedureStatement) -> Any:
        args = statement.bound_values()
        if self.dump_sql_on_execution:
            self.logger.info("Executing procedure: %s", statement.debug_string())
        try:
            return self.adapter.call_procedure(statement.spec, args)
        except Exception:
            if self.dump_sql_on_error:
                self.logger.warning("Procedure call failed: %s", statement.debug_string())
            raise

    def _call_for_count(self, statement: ProcedureStatement, *, use_return_value: bool = False) -> int:
        cursor = self._call(statement)
        try:
            if use_return_value and statement.spec.has_return_value:
                row = cursor.fetchone()
                result = int(row[0]) if row is not None and row[0] is not None else 0
            else:
                result = getattr(cursor, "rowcount", -1)
        finally:
            self.transaction_manager.release(cursor)
        self.transaction_manager.mark_dirty()
        return result
