"""
Statement builders: SELECT, INSERT/UPDATE, DELETE, and stored procedures.
"""

from .clauses import ClauseSet, Join, JoinKind
from .delete import DeleteStatement
from .filters import FilterType, and_clause, format_where, or_clause
from .procedure import ProcedureParameter, ProcedureStatement, SqlType, StoredProcedureSpec
from .select import SelectStatement, count_sql
from .statement import BindableStatement, Statement, is_missing
from .write import WriteMode, WriteStatement

__all__ = [
    "BindableStatement",
    "ClauseSet",
    "DeleteStatement",
    "FilterType",
    "Join",
    "JoinKind",
    "ProcedureParameter",
    "ProcedureStatement",
    "SelectStatement",
    "SqlType",
    "Statement",
    "StoredProcedureSpec",
    "WriteMode",
    "WriteStatement",
    "and_clause",
    "count_sql",
    "format_where",
    "is_missing",
    "or_clause",
]
