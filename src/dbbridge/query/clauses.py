"""
Clause storage shared by the statement builders.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple, Optional, Tuple


class JoinKind(str, Enum):
    INNER = "INNER"
    LEFT = "LEFT"
    RIGHT = "RIGHT"


class Join(NamedTuple):
    table: str
    kind: JoinKind
    on: str

    def render(self) -> str:
        return f" {self.kind.value} JOIN {self.table} ON {self.on}"


@dataclass(frozen=True)
class ClauseSet:
    """
    Ordered clause fragments accumulated by a builder.

    Order is significant everywhere; order-by terms are unique
    case-insensitively, enforced when they are added.
    """

    fields: Tuple[str, ...] = ()
    tables: Tuple[str, ...] = ()
    joins: Tuple[Join, ...] = ()
    where: Tuple[str, ...] = ()
    order_by: Tuple[str, ...] = ()
    distinct: bool = False
    group_by: bool = False
    row_limit: Optional[int] = None

    def has_order_term(self, term: str) -> bool:
        folded = term.casefold()
        return any(existing.casefold() == folded for existing in self.order_by)

    def render_where(self) -> str:
        """``WHERE p1 AND (p2) AND (p3)``, or an empty string."""

        if not self.where:
            return ""
        rest = "".join(f" AND ({predicate})" for predicate in self.where[1:])
        return f" WHERE {self.where[0]}{rest}"
