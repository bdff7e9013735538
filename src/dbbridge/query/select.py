"""
SELECT statement builder rendering dialect-specific SQL.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Iterable, Optional

from ..dialects.base import DialectProfile, RowLimitStyle
from ..errors import MalformedStatementError
from .clauses import ClauseSet, Join, JoinKind
from .statement import Statement

if TYPE_CHECKING:
    from ..dialects.base import EngineType


class SelectStatement(Statement):
    """
    Chainable SELECT builder.

    >>> stmt = SelectStatement().add_field("id").add_field("name").add_table("users")
    >>> stmt.add_where("id > 5").set_row_limit(10).render("mysql")
    'SELECT id, `name` FROM users WHERE id > 5 LIMIT 10'
    """

    # Public API --------------------------------------------------------
    def add_join(self, kind: JoinKind | str, table: str, on: str) -> "SelectStatement":
        if not self._clauses.tables:
            raise MalformedStatementError(
                f"Cannot join '{table}' before any base table has been added."
            )
        if not isinstance(kind, JoinKind):
            kind = JoinKind(str(kind).upper())
        join = Join(table=table, kind=kind, on=on)
        return self._clone(joins=self._clauses.joins + (join,))

    def add_inner_join(self, table: str, on: str) -> "SelectStatement":
        return self.add_join(JoinKind.INNER, table, on)

    def add_left_join(self, table: str, on: str) -> "SelectStatement":
        return self.add_join(JoinKind.LEFT, table, on)

    def add_right_join(self, table: str, on: str) -> "SelectStatement":
        return self.add_join(JoinKind.RIGHT, table, on)

    def add_order_by(self, term: str) -> "SelectStatement":
        if self._clauses.has_order_term(term):
            return self
        return self._clone(order_by=self._clauses.order_by + (term,))

    def add_order_by_clauses(self, terms: Iterable[str]) -> "SelectStatement":
        stmt = self
        for term in terms:
            stmt = stmt.add_order_by(term)
        return stmt

    def set_distinct(self, distinct: bool = True) -> "SelectStatement":
        return self._clone(distinct=bool(distinct))

    def set_group_by(self, group_by: bool = True) -> "SelectStatement":
        return self._clone(group_by=bool(group_by))

    def set_row_limit(self, limit: Optional[int]) -> "SelectStatement":
        if limit is not None and (isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0):
            raise ValueError(f"Row limit must be a positive integer or None, got {limit!r}")
        return self._clone(row_limit=limit)

    def render(self, dialect: "DialectProfile | EngineType | str | None" = None) -> str:
        profile = self._resolve_dialect(dialect)
        clauses = self._clauses
        if clauses.joins and not clauses.tables:
            raise MalformedStatementError("SELECT has joins but no base table.")

        sql = ["SELECT "]
        if clauses.distinct:
            sql.append("DISTINCT ")
        limit = clauses.row_limit
        if limit and profile.row_limit_style is RowLimitStyle.TOP:
            sql.append(f"TOP {limit} ")
        sql.append(self._render_fields(profile))
        sql.append(self._render_from(profile))

        sql.append(clauses.render_where())
        if limit and profile.row_limit_style is RowLimitStyle.ROWNUM:
            sql.append(" AND " if clauses.where else " WHERE ")
            sql.append(f"(ROWNUM <= {limit})")

        if clauses.order_by:
            sql.append(" GROUP BY " if clauses.group_by else " ORDER BY ")
            sql.append(", ".join(clauses.order_by))

        if limit and profile.row_limit_style is RowLimitStyle.LIMIT:
            sql.append(f" LIMIT {limit}")

        statement = "".join(sql)
        terminator = profile.statement_terminator
        if terminator and not statement.endswith(terminator):
            statement += terminator
        return statement

    def to_sql(self, dialect: "DialectProfile | EngineType | str | None" = None) -> str:
        return self.render(dialect)

    def __str__(self) -> str:
        if self.dialect is None:
            return repr(self)
        return self.render()

    # Internal helpers --------------------------------------------------
    def _render_fields(self, profile: DialectProfile) -> str:
        fields = self._clauses.fields
        if not fields:
            return ""
        # The first field is never escaped, only the ones after it.
        rest = fields[1:]
        if profile.escape_select_fields:
            rest = tuple(profile.escape_field(f) for f in rest)
        return ", ".join((fields[0],) + rest)

    def _render_from(self, profile: DialectProfile) -> str:
        clauses = self._clauses
        if not clauses.tables:
            return ""
        if not clauses.joins:
            return " FROM " + ", ".join(clauses.tables)
        if not profile.nested_joins:
            return " FROM " + ", ".join(clauses.tables) + "".join(j.render() for j in clauses.joins)

        # Access wants every join but the last wrapped:
        # FROM ((a INNER JOIN b ON x) LEFT JOIN c ON y) INNER JOIN d ON z
        if len(clauses.tables) > 1:
            raise MalformedStatementError(
                f"{profile.name} join syntax supports a single base table, got {list(clauses.tables)!r}."
            )
        joins = clauses.joins
        sql = " FROM " + "(" * (len(joins) - 1) + clauses.tables[0]
        for index, join in enumerate(joins):
            sql += join.render()
            if index < len(joins) - 1:
                sql += ")"
        return sql


_SELECT_COUNT = re.compile(r"^\s*SELECT\s+COUNT\b", re.IGNORECASE)
_FROM = re.compile(r"\bFROM\b", re.IGNORECASE)
_ORDER_BY = re.compile(r"\s+ORDER\s+BY\b", re.IGNORECASE)


def count_sql(sql: str) -> str:
    """
    Rewrite a SELECT into ``SELECT COUNT(*) FROM ...``.

    The select list and any ORDER BY are dropped. Statements that already
    start with ``SELECT COUNT`` come back unchanged.
    """

    if _SELECT_COUNT.match(sql):
        return sql
    match = _FROM.search(sql)
    if match is None:
        raise MalformedStatementError(f"Cannot build a COUNT query from SQL without FROM: {sql!r}")
    remainder = sql[match.start():]
    order = _ORDER_BY.search(remainder)
    if order is not None:
        remainder = remainder[: order.start()]
    return f"SELECT COUNT(*) {remainder.rstrip()}"


__all__ = ["ClauseSet", "JoinKind", "SelectStatement", "count_sql"]
