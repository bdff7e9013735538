"""
INSERT/UPDATE statement rendering and the write modes understood by the session.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, List

from ..dialects.base import DialectProfile
from ..errors import MalformedStatementError, UnsupportedWriteModeError
from .statement import Statement, remove_table_name

if TYPE_CHECKING:
    from ..dialects.base import EngineType


class WriteMode(str, Enum):
    INSERT = "insert"
    UPDATE = "update"
    INSERT_UPDATE = "insert_update"
    UPDATE_INSERT = "update_insert"
    DELETE_INSERT = "delete_insert"

    @classmethod
    def coerce(cls, value: "WriteMode | str") -> "WriteMode":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise UnsupportedWriteModeError(f"Unknown write mode: {value!r}") from None


class WriteStatement(Statement):
    """
    Accumulates field/value pairs for one table and renders INSERT or UPDATE.

    Rendering failures raise ``MalformedStatementError`` instead of producing
    partial SQL.
    """

    @property
    def table(self) -> str:
        if not self._clauses.tables:
            raise MalformedStatementError("No table specified for the write statement.")
        return self._clauses.tables[0]

    def to_insert_string(self, dialect: "DialectProfile | EngineType | str | None" = None) -> str:
        profile = self._resolve_dialect(dialect)
        table = self.table
        self._check_fields_and_values()
        columns = ", ".join(profile.escape_field(remove_table_name(f)) for f in self.fields)
        values = ", ".join(self.render_value(v, profile) for v in self.values)
        return f"INSERT INTO {table} ({columns}) VALUES ({values})"

    def to_update_string(
        self,
        try_build_where: bool = False,
        dialect: "DialectProfile | EngineType | str | None" = None,
    ) -> str:
        """
        Render ``UPDATE table SET f = v, ... WHERE ...``.

        With no explicit where predicates and ``try_build_where`` set, the
        WHERE clause equates every field to its own value, which turns the
        statement into an existence probe for UPDATE_INSERT.
        """

        profile = self._resolve_dialect(dialect)
        table = self.table
        self._check_fields_and_values()
        pairs = self._pairs(profile)
        assignments = ", ".join(f"{field} = {value}" for field, value in pairs)

        if self.where:
            where = " AND ".join(self.where)
        elif try_build_where:
            where = " AND ".join(
                f"{field} IS NULL" if value == "NULL" else f"{field} = {value}"
                for field, value in pairs
            )
        else:
            raise MalformedStatementError(
                f"No where clause specified for UPDATE of '{table}'; "
                "add one or allow it to be built from the fields."
            )
        return f"UPDATE {table} SET {assignments} WHERE {where}"

    def describe(self, dialect: "DialectProfile | EngineType | str | None" = None) -> str:
        return (
            f"Insert string version: \n{self.to_insert_string(dialect)}\n"
            f"Update string version: \n{self.to_update_string(True, dialect)}"
        )

    # ------------------------------------------------------------------ #
    def _pairs(self, profile: DialectProfile) -> List[tuple[str, str]]:
        return [
            (profile.escape_field(field), self.render_value(value, profile))
            for field, value in zip(self.fields, self.values)
        ]

    def _check_fields_and_values(self) -> None:
        if not self.fields:
            raise MalformedStatementError(f"No fields specified for '{self.table}'.")
        if not self.values:
            raise MalformedStatementError(f"No values specified for '{self.table}'.")
        if len(self.fields) != len(self.values):
            raise MalformedStatementError(
                f"Can't build SQL with {len(self.fields)} column names "
                f"and {len(self.values)} values to put in those columns."
            )
