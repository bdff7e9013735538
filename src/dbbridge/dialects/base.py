"""
Dialect profiles describing how each database engine spells SQL.

A profile is an immutable record: escape delimiters, string quoting,
row-limiting style, join rendering, date/time literal format, and the
error signatures that identify a duplicate-key failure during writes.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum, IntEnum
from typing import Any, Optional


class EngineType(str, Enum):
    ACCESS = "access"
    INFORMIX = "informix"
    MYSQL = "mysql"
    ORACLE = "oracle"
    POSTGRESQL = "postgresql"
    SQLSERVER = "sqlserver"
    H2 = "h2"
    SQLITE = "sqlite"


class RowLimitStyle(str, Enum):
    NONE = "none"
    TOP = "top"
    LIMIT = "limit"
    ROWNUM = "rownum"


class DateTimeStyle(str, Enum):
    ACCESS = "access"
    INFORMIX = "informix"
    ISO = "iso"


class DateTimePrecision(IntEnum):
    YEAR = 1
    MONTH = 2
    DAY = 3
    HOUR = 4
    MINUTE = 5
    SECOND = 6


@dataclass(frozen=True)
class ConstraintSignature:
    """
    (SQLSTATE, vendor error code) pair reported for a duplicate key.

    ``None`` in either slot matches any value. Comparison is by value.
    """

    sqlstate: Optional[str] = None
    error_code: Optional[int] = None

    def __post_init__(self) -> None:
        if self.sqlstate is None and self.error_code is None:
            raise ValueError("ConstraintSignature needs a SQLSTATE, an error code, or both.")

    def matches(self, sqlstate: Optional[str], error_code: Any) -> bool:
        if self.sqlstate is not None:
            if sqlstate is None or str(sqlstate).strip().upper() != self.sqlstate.upper():
                return False
        if self.error_code is not None:
            try:
                code = int(error_code)
            except (TypeError, ValueError):
                return False
            if code != self.error_code:
                return False
        return True


@dataclass(frozen=True)
class DateTimeValue:
    """
    A date or datetime paired with the precision it should be rendered at.
    """

    value: date
    precision: Optional[DateTimePrecision] = None


@dataclass(frozen=True)
class DialectProfile:
    engine: EngineType
    name: str
    left_escape: str = '"'
    right_escape: str = '"'
    string_delimiter: str = "'"
    quote_escape: str = "''"
    statement_terminator: str = ""
    row_limit_style: RowLimitStyle = RowLimitStyle.NONE
    nested_joins: bool = False
    escape_select_fields: bool = True
    datetime_style: DateTimeStyle = DateTimeStyle.ISO
    boolean_literals: tuple[str, str] = ("1", "0")
    procedure_parameter_prefix: str = ""
    supports_savepoints: bool = False
    aborts_transaction_on_error: bool = False
    constraint_signatures: tuple[ConstraintSignature, ...] = field(default_factory=tuple)

    # ------------------------------------------------------------------ #
    # Identifiers
    # ------------------------------------------------------------------ #
    def escape_field(self, field_name: str) -> str:
        """
        Wrap each dotted part of ``field_name`` in the escape delimiters.

        Function calls and names already carrying the left delimiter are
        returned untouched, as are all names when the engine has no delimiters.
        """

        if not self.left_escape:
            return field_name
        if "(" in field_name or self.left_escape in field_name:
            return field_name
        parts = []
        for part in field_name.split("."):
            if part.startswith(self.left_escape):
                parts.append(part)
            else:
                parts.append(f"{self.left_escape}{part}{self.right_escape}")
        return ".".join(parts)

    def quote_identifier(self, identifier: str) -> str:
        if not self.left_escape:
            return identifier
        doubled = identifier.replace(self.right_escape, self.right_escape * 2)
        return f"{self.left_escape}{doubled}{self.right_escape}"

    # ------------------------------------------------------------------ #
    # Literals
    # ------------------------------------------------------------------ #
    def quote_string(self, value: str) -> str:
        delimiter = self.string_delimiter
        if "\\" in self.quote_escape:
            # A lone backslash would escape the closing delimiter.
            value = value.replace("\\", "\\\\")
        return f"{delimiter}{value.replace(delimiter, self.quote_escape)}{delimiter}"

    def format_boolean(self, value: bool) -> str:
        return self.boolean_literals[0] if value else self.boolean_literals[1]

    def format_datetime(
        self,
        value: date,
        precision: Optional[DateTimePrecision] = None,
        *,
        escape: bool = True,
    ) -> str:
        """
        Render a date/time literal in the engine's syntax.

        ``precision`` defaults to DAY for plain dates and SECOND for datetimes.
        """

        if precision is None:
            precision = (
                DateTimePrecision.SECOND if isinstance(value, datetime) else DateTimePrecision.DAY
            )
        precision = DateTimePrecision(precision)
        if not isinstance(value, datetime) and precision > DateTimePrecision.DAY:
            value = datetime(value.year, value.month, value.day)

        year = f"{value.year:04d}"
        month = f"{value.month:02d}"
        day = f"{value.day:02d}"
        time_part = ""
        if precision >= DateTimePrecision.HOUR:
            time_part += f" {value.hour:02d}"
        if precision >= DateTimePrecision.MINUTE:
            time_part += f":{value.minute:02d}"
        if precision >= DateTimePrecision.SECOND:
            time_part += f":{value.second:02d}"

        if self.datetime_style is DateTimeStyle.ACCESS:
            # Access has no partial-date literal; always month-day-year.
            body = f"{month}-{day}-{year}{time_part}"
            return f"#{body}#" if escape else body

        if self.engine is EngineType.POSTGRESQL:
            date_part = f"{year}-{month}-{day}"
        else:
            date_part = year
            if precision >= DateTimePrecision.MONTH:
                date_part += f"-{month}"
            if precision >= DateTimePrecision.DAY:
                date_part += f"-{day}"
        body = f"{date_part}{time_part}"

        if not escape:
            return body
        if self.datetime_style is DateTimeStyle.INFORMIX:
            return f"DATETIME ({body})"
        return self.quote_string(body)

    def format_value(self, value: Any) -> str:
        """
        Render a Python value as an inline SQL literal for this engine.
        """

        if value is None:
            return "NULL"
        if isinstance(value, bool):
            return self.format_boolean(value)
        if isinstance(value, int):
            return str(value)
        if isinstance(value, float):
            if math.isnan(value) or math.isinf(value):
                return "NULL"
            return repr(value)
        if isinstance(value, Decimal):
            return str(value)
        if isinstance(value, DateTimeValue):
            return self.format_datetime(value.value, value.precision)
        if isinstance(value, (date, datetime)):
            return self.format_datetime(value)
        if isinstance(value, str):
            return self.quote_string(value)
        raise TypeError(f"Cannot render value of type {type(value).__name__} as SQL")

    # ------------------------------------------------------------------ #
    # Write-fallback support
    # ------------------------------------------------------------------ #
    @property
    def has_constraint_signatures(self) -> bool:
        return bool(self.constraint_signatures)

    def matches_constraint_violation(self, sqlstate: Optional[str], error_code: Any) -> bool:
        return any(sig.matches(sqlstate, error_code) for sig in self.constraint_signatures)

    def __str__(self) -> str:
        return self.name
