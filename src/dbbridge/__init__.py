"""
dbbridge public package initialization.

Dialect-aware SQL statement builders, stored-procedure binding, and a
session that executes them over a DB-API adapter.
"""

from .adapters import ConnectionConfig, MySQLAdapter, PostgresAdapter, SQLiteAdapter  # noqa: F401
from .dialects import DialectProfile, EngineType, get_dialect  # noqa: F401
from .errors import (  # noqa: F401
    DbBridgeError,
    DialectConstraintUnrecognizedError,
    FilterCriteriaError,
    MalformedStatementError,
    NotConnectedError,
    ProcedureBindingError,
    ReadOnlyViolationError,
    ReplayNotSupportedError,
    TransactionStateError,
    UnknownEngineError,
    UnsupportedWriteModeError,
)
from .persistence import Execution, ExecutionKind, Session, SessionState, TransactionAction  # noqa: F401
from .query import (  # noqa: F401
    DeleteStatement,
    FilterType,
    ProcedureStatement,
    SelectStatement,
    StoredProcedureSpec,
    WriteMode,
    WriteStatement,
    format_where,
)

__all__ = [
    "ConnectionConfig",
    "DbBridgeError",
    "DeleteStatement",
    "DialectConstraintUnrecognizedError",
    "DialectProfile",
    "EngineType",
    "Execution",
    "ExecutionKind",
    "FilterCriteriaError",
    "FilterType",
    "MalformedStatementError",
    "MySQLAdapter",
    "NotConnectedError",
    "PostgresAdapter",
    "ProcedureBindingError",
    "ProcedureStatement",
    "ReadOnlyViolationError",
    "ReplayNotSupportedError",
    "SQLiteAdapter",
    "SelectStatement",
    "Session",
    "SessionState",
    "StoredProcedureSpec",
    "TransactionAction",
    "TransactionStateError",
    "UnknownEngineError",
    "UnsupportedWriteModeError",
    "WriteMode",
    "WriteStatement",
    "format_where",
    "get_dialect",
]
