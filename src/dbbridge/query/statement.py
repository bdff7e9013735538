"""
Common statement base and the bindable-statement interface.

SQL-mode statements keep typed values and render them as literals; the
stored-procedure statement binds the same calls to ordinals instead.
Both satisfy ``BindableStatement`` so callers can feed either one.
"""

from __future__ import annotations

import math
from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Iterable, Protocol, Tuple, TypeVar, runtime_checkable

from ..dialects.base import DateTimePrecision, DateTimeValue, DialectProfile
from ..dialects.engines import get_dialect
from ..errors import MalformedStatementError
from .clauses import ClauseSet

if TYPE_CHECKING:
    from ..dialects.base import EngineType

S = TypeVar("S", bound="Statement")

# Value types accepted by SQL-mode statements, besides None and nested selects.
SQL_VALUE_TYPES = (bool, int, float, Decimal, str, date, DateTimeValue)


def remove_table_name(field_name: str) -> str:
    """
    Keep only the column part of a qualified name.

    Everything up to the last dot is dropped, so ``table.column`` and
    ``schema.table.column`` both give ``column``.
    """

    return field_name.rsplit(".", 1)[-1]


def is_missing(value: Any) -> bool:
    """Values that ``add_value_or_null`` binds as NULL."""

    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if isinstance(value, str) and value == "":
        return True
    return False


@runtime_checkable
class BindableStatement(Protocol):
    is_procedure: bool

    def add_value(self, value: Any) -> "BindableStatement": ...

    def add_null_value(self) -> "BindableStatement": ...

    def add_value_or_null(self, value: Any) -> "BindableStatement": ...

    def add_where(self, predicate: str) -> "BindableStatement": ...


class Statement:
    """
    Immutable SQL-mode statement: every mutator returns a new statement.
    """

    is_procedure = False

    def __init__(
        self,
        *,
        dialect: "DialectProfile | EngineType | str | None" = None,
        clauses: ClauseSet | None = None,
        values: Tuple[Any, ...] = (),
    ) -> None:
        self.dialect: DialectProfile | None = get_dialect(dialect) if dialect is not None else None
        self._clauses = clauses or ClauseSet()
        self._values = tuple(values)

    # ------------------------------------------------------------------ #
    # Inspection
    # ------------------------------------------------------------------ #
    @property
    def clauses(self) -> ClauseSet:
        return self._clauses

    @property
    def values(self) -> Tuple[Any, ...]:
        return self._values

    @property
    def fields(self) -> Tuple[str, ...]:
        return self._clauses.fields

    @property
    def tables(self) -> Tuple[str, ...]:
        return self._clauses.tables

    @property
    def where(self) -> Tuple[str, ...]:
        return self._clauses.where

    # ------------------------------------------------------------------ #
    # Shared clause builders
    # ------------------------------------------------------------------ #
    def add_field(self: S, name: str) -> S:
        return self._clone(fields=self._clauses.fields + (name,))

    def add_fields(self: S, names: Iterable[str]) -> S:
        return self._clone(fields=self._clauses.fields + tuple(names))

    def remove_field(self: S, name: str) -> S:
        if name not in self._clauses.fields:
            return self
        index = self._clauses.fields.index(name)
        fields = self._clauses.fields[:index] + self._clauses.fields[index + 1 :]
        if len(self._values) > index:
            values = self._values[:index] + self._values[index + 1 :]
            return self._clone(fields=fields, values=values)
        return self._clone(fields=fields)

    def add_table(self: S, name: str) -> S:
        return self._clone(tables=self._clauses.tables + (name,))

    def add_where(self: S, predicate: str) -> S:
        return self._clone(where=self._clauses.where + (predicate,))

    def add_where_clauses(self: S, predicates: Iterable[str | None]) -> S:
        kept = tuple(p for p in predicates if p)
        if not kept:
            return self
        return self._clone(where=self._clauses.where + kept)

    # ------------------------------------------------------------------ #
    # Values
    # ------------------------------------------------------------------ #
    def add_value(self: S, value: Any) -> S:
        if value is not None and not isinstance(value, SQL_VALUE_TYPES) and not _is_select(value):
            raise TypeError(f"Unsupported statement value type: {type(value).__name__}")
        return self._clone(values=self._values + (value,))

    def add_datetime(self: S, value: date, precision: DateTimePrecision) -> S:
        return self.add_value(DateTimeValue(value, precision))

    def add_null_value(self: S) -> S:
        return self._clone(values=self._values + (None,))

    def add_value_or_null(self: S, value: Any) -> S:
        if is_missing(value):
            return self.add_null_value()
        return self.add_value(value)

    # ------------------------------------------------------------------ #
    def render_value(self, value: Any, dialect: DialectProfile) -> str:
        if _is_select(value):
            return f"({value.render(dialect)})"
        return dialect.format_value(value)

    def _resolve_dialect(self, dialect: "DialectProfile | EngineType | str | None") -> DialectProfile:
        if dialect is not None:
            return get_dialect(dialect)
        if self.dialect is not None:
            return self.dialect
        raise MalformedStatementError(
            f"{type(self).__name__} has no dialect; pass one to the constructor or to render()."
        )

    def _clone(self: S, *, values: Tuple[Any, ...] | None = None, **clause_changes: Any) -> S:
        clone = object.__new__(type(self))
        clone.__dict__.update(self.__dict__)
        clone._clauses = replace(self._clauses, **clause_changes) if clause_changes else self._clauses
        clone._values = self._values if values is None else values
        return clone

    def __repr__(self) -> str:
        return f"<{type(self).__name__} tables={list(self.tables)!r} fields={list(self.fields)!r}>"


def _is_select(value: Any) -> bool:
    from .select import SelectStatement

    return isinstance(value, SelectStatement)
