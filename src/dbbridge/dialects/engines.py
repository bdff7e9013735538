"""
Dialect profile registry keyed by engine tag.

Adding an engine means adding one profile to ``DIALECTS`` and, if it has
legacy spellings, entries in ``_ALIASES``.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

from ..errors import UnknownEngineError
from .base import (
    ConstraintSignature,
    DateTimeStyle,
    DialectProfile,
    EngineType,
    RowLimitStyle,
)

ACCESS = DialectProfile(
    engine=EngineType.ACCESS,
    name="Access",
    left_escape="[",
    right_escape="]",
    row_limit_style=RowLimitStyle.NONE,
    nested_joins=True,
    escape_select_fields=False,
    datetime_style=DateTimeStyle.ACCESS,
    boolean_literals=("True", "False"),
    constraint_signatures=(ConstraintSignature("S1000", 0),),
)

INFORMIX = DialectProfile(
    engine=EngineType.INFORMIX,
    name="Informix",
    quote_escape="\\'",
    datetime_style=DateTimeStyle.INFORMIX,
    boolean_literals=("'t'", "'f'"),
)

MYSQL = DialectProfile(
    engine=EngineType.MYSQL,
    name="MySQL",
    left_escape="`",
    right_escape="`",
    quote_escape="\\'",
    row_limit_style=RowLimitStyle.LIMIT,
    boolean_literals=("TRUE", "FALSE"),
    supports_savepoints=True,
    constraint_signatures=(ConstraintSignature(None, 1062),),
)

ORACLE = DialectProfile(
    engine=EngineType.ORACLE,
    name="Oracle",
    row_limit_style=RowLimitStyle.ROWNUM,
)

POSTGRESQL = DialectProfile(
    engine=EngineType.POSTGRESQL,
    name="PostgreSQL",
    row_limit_style=RowLimitStyle.LIMIT,
    boolean_literals=("TRUE", "FALSE"),
    supports_savepoints=True,
    aborts_transaction_on_error=True,
    constraint_signatures=(ConstraintSignature("23505", None),),  # unique_violation
)

SQLSERVER = DialectProfile(
    engine=EngineType.SQLSERVER,
    name="SQL Server",
    left_escape="[",
    right_escape="]",
    row_limit_style=RowLimitStyle.TOP,
    procedure_parameter_prefix="@",
    constraint_signatures=(
        ConstraintSignature("23000", 2627),
        ConstraintSignature("23000", 2601),
    ),
)

H2 = DialectProfile(
    engine=EngineType.H2,
    name="H2",
    left_escape="",
    right_escape="",
    row_limit_style=RowLimitStyle.LIMIT,
    supports_savepoints=True,
    boolean_literals=("TRUE", "FALSE"),
)

SQLITE = DialectProfile(
    engine=EngineType.SQLITE,
    name="SQLite",
    row_limit_style=RowLimitStyle.LIMIT,
    constraint_signatures=(
        ConstraintSignature(None, 1555),  # SQLITE_CONSTRAINT_PRIMARYKEY
        ConstraintSignature(None, 2067),  # SQLITE_CONSTRAINT_UNIQUE
    ),
)

DIALECTS: Mapping[EngineType, DialectProfile] = MappingProxyType(
    {
        EngineType.ACCESS: ACCESS,
        EngineType.INFORMIX: INFORMIX,
        EngineType.MYSQL: MYSQL,
        EngineType.ORACLE: ORACLE,
        EngineType.POSTGRESQL: POSTGRESQL,
        EngineType.SQLSERVER: SQLSERVER,
        EngineType.H2: H2,
        EngineType.SQLITE: SQLITE,
    }
)

_ALIASES = {
    "access": EngineType.ACCESS,
    "odbc": EngineType.ACCESS,
    "informix": EngineType.INFORMIX,
    "mysql": EngineType.MYSQL,
    "mariadb": EngineType.MYSQL,
    "oracle": EngineType.ORACLE,
    "postgresql": EngineType.POSTGRESQL,
    "postgres": EngineType.POSTGRESQL,
    "sqlserver": EngineType.SQLSERVER,
    "sql_server": EngineType.SQLSERVER,
    "sqlserver7": EngineType.SQLSERVER,
    "sqlserver2000": EngineType.SQLSERVER,
    "sqlserver2005": EngineType.SQLSERVER,
    "mssql": EngineType.SQLSERVER,
    "h2": EngineType.H2,
    "sqlite": EngineType.SQLITE,
    "sqlite3": EngineType.SQLITE,
}


def resolve_engine(engine: EngineType | str) -> EngineType:
    if isinstance(engine, EngineType):
        return engine
    key = str(engine).strip().lower().replace(" ", "_")
    try:
        return _ALIASES[key]
    except KeyError:
        raise UnknownEngineError(
            f"Unknown database engine '{engine}'. Known engines are: "
            + ", ".join(member.value for member in EngineType)
        ) from None


def get_dialect(engine: EngineType | str | DialectProfile) -> DialectProfile:
    """
    Return the shared profile for an engine tag, legacy engine name, or profile.
    """

    if isinstance(engine, DialectProfile):
        return engine
    return DIALECTS[resolve_engine(engine)]
