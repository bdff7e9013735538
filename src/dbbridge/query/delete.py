"""
DELETE statement rendering.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..errors import MalformedStatementError
from .statement import Statement

if TYPE_CHECKING:
    from ..dialects.base import DialectProfile, EngineType


class DeleteStatement(Statement):
    def render(self, dialect: "DialectProfile | EngineType | str | None" = None) -> str:
        profile = self._resolve_dialect(dialect)
        if not self.tables:
            raise MalformedStatementError("No table specified for the delete statement.")
        sql = f"DELETE FROM {self.tables[0]}{self._clauses.render_where()}"
        terminator = profile.statement_terminator
        if terminator and not sql.endswith(terminator):
            sql += terminator
        return sql

    to_sql = render

    def __str__(self) -> str:
        if self.dialect is None:
            return repr(self)
        return self.render()
