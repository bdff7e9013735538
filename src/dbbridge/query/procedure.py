"""
Stored-procedure signatures and ordinal parameter binding.

Ordinals are 1-based. A procedure with a declared return value reserves
ordinal 1 for it, so caller parameters start at 2; otherwise they start
at 1. Values can be bound sequentially, by explicit ordinal, or from a
where-clause fragment such as ``"Station = '01234'"``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..errors import (
    MalformedStatementError,
    ParameterLookupError,
    UnsupportedParameterTypeError,
    WhereClauseParseError,
)
from .statement import is_missing, remove_table_name


class SqlType(str, Enum):
    BIT = "BIT"
    BOOLEAN = "BOOLEAN"
    TINYINT = "TINYINT"
    SMALLINT = "SMALLINT"
    INTEGER = "INTEGER"
    BIGINT = "BIGINT"
    REAL = "REAL"
    FLOAT = "FLOAT"
    DOUBLE = "DOUBLE"
    DECIMAL = "DECIMAL"
    NUMERIC = "NUMERIC"
    CHAR = "CHAR"
    VARCHAR = "VARCHAR"
    LONGVARCHAR = "LONGVARCHAR"
    NCHAR = "NCHAR"
    NVARCHAR = "NVARCHAR"
    DATE = "DATE"
    TIME = "TIME"
    TIMESTAMP = "TIMESTAMP"
    BINARY = "BINARY"
    OTHER = "OTHER"

    @classmethod
    def from_type_name(cls, type_name: Optional[str]) -> "SqlType":
        """
        Map a database metadata type name (``int4``, ``character varying``,
        ``datetime2``...) onto a member. Unknown names map to ``OTHER``.
        """

        if not type_name:
            return cls.OTHER
        normalized = type_name.strip().lower()
        # "varchar(20)" / "numeric(10, 2)" -> base name
        normalized = normalized.split("(", 1)[0].strip()
        if normalized in _TYPE_ALIASES:
            return _TYPE_ALIASES[normalized]
        try:
            return cls(normalized.upper())
        except ValueError:
            return cls.OTHER


_TYPE_ALIASES: Mapping[str, SqlType] = MappingProxyType(
    {
        "bool": SqlType.BOOLEAN,
        "int": SqlType.INTEGER,
        "int2": SqlType.SMALLINT,
        "int4": SqlType.INTEGER,
        "int8": SqlType.BIGINT,
        "mediumint": SqlType.INTEGER,
        "serial": SqlType.INTEGER,
        "bigserial": SqlType.BIGINT,
        "float4": SqlType.REAL,
        "float8": SqlType.DOUBLE,
        "double precision": SqlType.DOUBLE,
        "money": SqlType.DECIMAL,
        "smallmoney": SqlType.DECIMAL,
        "character": SqlType.CHAR,
        "bpchar": SqlType.CHAR,
        "character varying": SqlType.VARCHAR,
        "varchar2": SqlType.VARCHAR,
        "text": SqlType.LONGVARCHAR,
        "mediumtext": SqlType.LONGVARCHAR,
        "longtext": SqlType.LONGVARCHAR,
        "ntext": SqlType.LONGVARCHAR,
        "enum": SqlType.VARCHAR,
        "datetime": SqlType.TIMESTAMP,
        "datetime2": SqlType.TIMESTAMP,
        "smalldatetime": SqlType.TIMESTAMP,
        "timestamp without time zone": SqlType.TIMESTAMP,
        "timestamp with time zone": SqlType.TIMESTAMP,
        "timestamptz": SqlType.TIMESTAMP,
        "time without time zone": SqlType.TIME,
        "bytea": SqlType.BINARY,
        "varbinary": SqlType.BINARY,
        "blob": SqlType.BINARY,
    }
)

_STRING_TYPES = frozenset(
    {SqlType.CHAR, SqlType.VARCHAR, SqlType.LONGVARCHAR, SqlType.NCHAR, SqlType.NVARCHAR}
)
_INTEGER_TYPES = frozenset({SqlType.TINYINT, SqlType.SMALLINT, SqlType.INTEGER, SqlType.BIGINT})
_FLOAT_TYPES = frozenset({SqlType.REAL, SqlType.FLOAT, SqlType.DOUBLE})
_DECIMAL_TYPES = frozenset({SqlType.DECIMAL, SqlType.NUMERIC})
_BOOLEAN_TYPES = frozenset({SqlType.BIT, SqlType.BOOLEAN})


@dataclass(frozen=True)
class ProcedureParameter:
    name: str
    sql_type: SqlType
    nullable: bool = True
    type_name: Optional[str] = None

    @property
    def display_type(self) -> str:
        return self.type_name or self.sql_type.value


@dataclass(frozen=True)
class StoredProcedureSpec:
    """
    Signature of one stored procedure as discovered from database metadata.
    """

    procedure_name: str
    parameters: Tuple[ProcedureParameter, ...] = ()
    return_type: Optional[SqlType] = None
    return_name: Optional[str] = None
    return_type_name: Optional[str] = None
    is_function: bool = field(default=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "parameters", tuple(self.parameters))

    @property
    def has_return_value(self) -> bool:
        return self.return_type is not None

    @property
    def parameter_count(self) -> int:
        return len(self.parameters)

    @property
    def first_ordinal(self) -> int:
        return 2 if self.has_return_value else 1

    @property
    def last_ordinal(self) -> int:
        return self.first_ordinal + self.parameter_count - 1

    def ordinal_of(self, index: int) -> int:
        return self.first_ordinal + index

    def index_of(self, ordinal: int) -> int:
        if not self.first_ordinal <= ordinal <= self.last_ordinal:
            raise ParameterLookupError(f"ordinal {ordinal}", self.parameter_names())
        return ordinal - self.first_ordinal

    def parameter_names(self) -> List[str]:
        return [p.name for p in self.parameters]

    def find_parameter(self, name: str) -> Optional[int]:
        folded = name.casefold()
        for index, parameter in enumerate(self.parameters):
            if parameter.name.casefold() == folded:
                return index
        return None

    def call_string(self) -> str:
        placeholders = ", ".join("?" for _ in self.parameters)
        prefix = "? = " if self.has_return_value else ""
        return f"{{{prefix}call {self.procedure_name} ({placeholders})}}"

    def describe(self) -> str:
        lines = [f"Stored Procedure: '{self.procedure_name}'"]
        lines.append(f"  Call string: {self.call_string()}")
        if self.has_return_value:
            lines.append(
                f"  Returns: {self.return_name or '(unnamed)'} "
                f"{self.return_type_name or self.return_type.value}"
            )
        else:
            lines.append("  Returns: nothing")
        lines.append(f"  Parameters ({self.parameter_count}):")
        for index, parameter in enumerate(self.parameters):
            nullable = "NULL" if parameter.nullable else "NOT NULL"
            lines.append(
                f"    [{self.ordinal_of(index)}] {parameter.name} {parameter.display_type} {nullable}"
            )
        return "\n".join(lines)

    @classmethod
    def from_metadata_rows(
        cls,
        procedure_name: str,
        rows: Iterable[Sequence[Any]],
        *,
        is_function: bool = False,
    ) -> "StoredProcedureSpec":
        """
        Build a spec from ``(name, type_name, mode, nullable)`` metadata rows.

        ``mode`` is one of IN, OUT, INOUT, or RETURN. A RETURN row (or an
        unnamed OUT row on a function) becomes the return value.
        """

        parameters: List[ProcedureParameter] = []
        return_type: Optional[SqlType] = None
        return_name: Optional[str] = None
        return_type_name: Optional[str] = None
        for row in rows:
            name, type_name, mode, nullable = (list(row) + [None] * 4)[:4]
            mode = (mode or "IN").upper()
            is_return = mode == "RETURN" or (is_function and mode == "OUT" and not name)
            if is_return:
                return_type = SqlType.from_type_name(type_name)
                return_name = name or None
                return_type_name = type_name
                continue
            parameters.append(
                ProcedureParameter(
                    name=name or f"arg{len(parameters) + 1}",
                    sql_type=SqlType.from_type_name(type_name),
                    nullable=True if nullable is None else _as_bool(nullable),
                    type_name=type_name,
                )
            )
        return cls(
            procedure_name=procedure_name,
            parameters=tuple(parameters),
            return_type=return_type,
            return_name=return_name,
            return_type_name=return_type_name,
            is_function=is_function,
        )

    def __str__(self) -> str:
        return self.describe()


class _Unbound:
    def __repr__(self) -> str:
        return "<unbound>"


UNBOUND = _Unbound()


class ProcedureStatement:
    """
    Procedure-mode counterpart of a SQL statement: values bind to ordinals.

    Instances are immutable; every bind returns a new statement with the
    sequential cursor advanced as needed.
    """

    is_procedure = True

    def __init__(
        self,
        spec: StoredProcedureSpec,
        *,
        parameter_prefix: str = "@",
    ) -> None:
        self.spec = spec
        self.parameter_prefix = parameter_prefix
        self._bindings: Mapping[int, Any] = MappingProxyType({})
        self._cursor = spec.first_ordinal

    # ------------------------------------------------------------------ #
    # Inspection
    # ------------------------------------------------------------------ #
    @property
    def procedure_name(self) -> str:
        return self.spec.procedure_name

    @property
    def next_ordinal(self) -> int:
        return self._cursor

    @property
    def bindings(self) -> Mapping[int, Any]:
        return self._bindings

    def is_bound(self, ordinal: int) -> bool:
        return ordinal in self._bindings

    def value_at(self, ordinal: int) -> Any:
        self.spec.index_of(ordinal)
        return self._bindings.get(ordinal, UNBOUND)

    def bound_values(self) -> List[Any]:
        """Arguments in ordinal order, ready for the driver."""

        missing = [
            parameter.name
            for index, parameter in enumerate(self.spec.parameters)
            if self.spec.ordinal_of(index) not in self._bindings
        ]
        if missing:
            raise MalformedStatementError(
                f"Stored procedure '{self.procedure_name}' has unbound parameters: {', '.join(missing)}"
            )
        return [self._bindings[self.spec.ordinal_of(i)] for i in range(self.spec.parameter_count)]

    # ------------------------------------------------------------------ #
    # Binding
    # ------------------------------------------------------------------ #
    def add_value(self, value: Any) -> "ProcedureStatement":
        return self._bind(value, self._cursor, advance=True)

    def set_value(self, value: Any, ordinal: int) -> "ProcedureStatement":
        return self._bind(value, ordinal, advance=False)

    def add_null_value(self) -> "ProcedureStatement":
        return self.add_value(None)

    def add_value_or_null(self, value: Any) -> "ProcedureStatement":
        return self.add_value(None if is_missing(value) else value)

    def add_where(self, predicate: str) -> "ProcedureStatement":
        return self.bind_from_where_clause(predicate)

    def add_where_clauses(self, predicates: Iterable[str | None]) -> "ProcedureStatement":
        stmt = self
        for predicate in predicates:
            if predicate:
                stmt = stmt.bind_from_where_clause(predicate)
        return stmt

    def bind_from_where_clause(self, predicate: str) -> "ProcedureStatement":
        """
        Bind ``column = value``, ``column LIKE value``, or ``column IS NULL``.

        The operators are tried in that order. A ``table.`` qualifier is
        dropped and the parameter prefix added before the case-insensitive
        lookup against the declared parameter names.
        """

        upper = predicate.upper()
        raw: Optional[str]
        position = predicate.find("=")
        if position >= 0:
            column, raw = predicate[:position], predicate[position + 1 :]
        elif " LIKE " in upper:
            position = upper.index(" LIKE ")
            column, raw = predicate[:position], predicate[position + len(" LIKE ") :]
        elif " IS NULL" in upper:
            column, raw = predicate[: upper.index(" IS NULL")], None
        else:
            raise WhereClauseParseError(
                f"Cannot determine columns or value from where clause: '{predicate}'",
                predicate=predicate,
            )

        column = remove_table_name(column.strip())
        if not column:
            raise WhereClauseParseError(
                f"Where clause has no column name: '{predicate}'", predicate=predicate
            )
        name = f"{self.parameter_prefix}{column}"
        index = self.spec.find_parameter(name)
        if index is None and self.parameter_prefix:
            index = self.spec.find_parameter(column)
        if index is None:
            raise ParameterLookupError(name, self.spec.parameter_names(), predicate=predicate)

        parameter = self.spec.parameters[index]
        value = None if raw is None else _convert(parameter, raw.strip(), predicate)
        return self.set_value(value, self.spec.ordinal_of(index))

    # ------------------------------------------------------------------ #
    # Diagnostics
    # ------------------------------------------------------------------ #
    def display_values(self) -> List[str]:
        return [
            _display(self._bindings.get(self.spec.ordinal_of(i), UNBOUND))
            for i in range(self.spec.parameter_count)
        ]

    def debug_string(self) -> str:
        """``exec name p1, p2`` for pasting into a query tool; never executed."""

        return f"exec {self.procedure_name} " + ", ".join(self.display_values())

    def call_string(self) -> str:
        return self.spec.call_string()

    def __str__(self) -> str:
        prefix = f"{self.spec.return_type_name} " if self.spec.return_type_name else ""
        return f"{prefix}{self.procedure_name}({', '.join(self.display_values())})"

    def __repr__(self) -> str:
        return f"<ProcedureStatement {self.debug_string()}>"

    # ------------------------------------------------------------------ #
    def _bind(self, value: Any, ordinal: int, *, advance: bool) -> "ProcedureStatement":
        self.spec.index_of(ordinal)
        clone = object.__new__(type(self))
        clone.__dict__.update(self.__dict__)
        bindings = dict(self._bindings)
        bindings[ordinal] = value
        clone._bindings = MappingProxyType(bindings)
        if advance:
            clone._cursor = ordinal + 1
        return clone


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().upper() in ("YES", "Y", "TRUE", "T", "1")
    return bool(value)


def _unquote(raw: str) -> str:
    if len(raw) >= 2 and raw[0] == raw[-1] and raw[0] in "'#":
        return raw[1:-1].replace("''", "'")
    return raw


def _parse_date(text: str) -> date:
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    for fmt in ("%m/%d/%Y", "%m-%d-%Y", "%Y/%m/%d"):
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return _parse_datetime(text).date()


def _parse_datetime(text: str) -> datetime:
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        pass
    for fmt in ("%m/%d/%Y %H:%M:%S", "%m/%d/%Y %H:%M", "%m-%d-%Y %H:%M:%S", "%Y-%m-%d %H"):
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    raise ValueError(f"Unrecognised date/time literal: {text!r}")


def _convert(parameter: ProcedureParameter, raw: str, predicate: str) -> Any:
    sql_type = parameter.sql_type
    text = _unquote(raw)
    try:
        if sql_type in _STRING_TYPES:
            return text
        if sql_type in _INTEGER_TYPES:
            return int(text)
        if sql_type in _FLOAT_TYPES:
            return float(text)
        if sql_type in _DECIMAL_TYPES:
            return Decimal(text)
        if sql_type in _BOOLEAN_TYPES:
            lowered = text.strip().lower()
            if lowered in ("1", "true", "t", "yes"):
                return True
            if lowered in ("0", "false", "f", "no"):
                return False
            raise ValueError(f"Not a boolean literal: {text!r}")
        if sql_type is SqlType.DATE:
            return _parse_date(text)
        if sql_type is SqlType.TIMESTAMP:
            return _parse_datetime(text)
    except (ValueError, InvalidOperation) as exc:
        raise WhereClauseParseError(
            f"Value {raw!r} in where clause '{predicate}' is not a valid "
            f"{parameter.display_type} for parameter '{parameter.name}'.",
            predicate=predicate,
            original=exc,
        ) from exc
    raise UnsupportedParameterTypeError(parameter.name, parameter.display_type)


def _display(value: Any) -> str:
    if value is UNBOUND:
        return "?"
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, datetime):
        return f"'{value.isoformat(sep=' ')}'"
    if isinstance(value, date):
        return f"'{value.isoformat()}'"
    if isinstance(value, str):
        return "'" + value.replace("'", "''") + "'"
    return str(value)
