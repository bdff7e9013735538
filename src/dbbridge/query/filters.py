"""
Ad-hoc filter grammar turning user-typed criteria into WHERE predicates.

Numeric criteria::

    BETWEEN 10 AND 20      -> field BETWEEN 10 AND 20
    550                    -> field = 550
    <= 550                 -> field <= 550
    *                      -> no predicate (match everything)

String criteria::

    LIKE COLO*             -> field LIKE 'COLO%'
    = COLORADO             -> field = 'COLORADO'
    COLORADO               -> field LIKE 'COLORADO'

``is null`` and ``is not null`` are accepted for every type.
"""

from __future__ import annotations

import math
import re
from enum import Enum
from typing import Iterable, Optional

from ..errors import FilterCriteriaError


class FilterType(str, Enum):
    INTEGER = "integer"
    DOUBLE = "double"
    FLOAT = "float"
    STRING = "string"

    @property
    def is_numeric(self) -> bool:
        return self is not FilterType.STRING


_INTEGER_EXAMPLES = (
    "\nBETWEEN 500 AND 550"
    "\n= 550"
    "\n<= 550"
    "\nis null"
    "\nis not null"
    "\n* (returns all records)"
)
_DECIMAL_EXAMPLES = (
    "\nBETWEEN 12.34 AND 56.78"
    "\n= 1234.56"
    "\n<= 1345.56"
    "\nis null"
    "\nis not null"
    "\n* (returns all records)"
)
_STRING_EXAMPLES = (
    "\nLIKE COLORADO"
    "\n= COLORADO"
    "\nis null"
    "\nis not null"
    "\n* (wildcard)"
)

# ASCII literals only; int() and float() also take "1_0", "nan" and "inf".
_INTEGER = re.compile(r"[+-]?[0-9]+")
_DECIMAL = re.compile(r"[+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")


def format_where(
    field: str,
    criteria: Optional[str],
    value_type: FilterType | str = FilterType.STRING,
) -> Optional[str]:
    """
    Build a predicate for ``field`` from free-form ``criteria``.

    Returns ``None`` when the criteria match every row and should be left out
    of the WHERE clause. Invalid criteria raise ``FilterCriteriaError``.
    """

    value_type = FilterType(value_type)
    field = field.strip()
    if criteria is None:
        if value_type.is_numeric:
            return None
        raise FilterCriteriaError("Search criteria are required. Examples are:" + _STRING_EXAMPLES)
    criteria = criteria.strip()

    if criteria.lower() in ("is null", "is not null"):
        return f"{field} {criteria}"
    if value_type.is_numeric:
        return _format_numeric(field, criteria, value_type)
    return _format_string(field, criteria)


def and_clause(predicates: Iterable[str]) -> str:
    return "(" + " AND ".join(predicates) + ")"


def or_clause(predicates: Iterable[str]) -> str:
    return "(" + " OR ".join(predicates) + ")"


def _normalize_number(token: str, value_type: FilterType) -> str:
    token = token.strip()
    pattern = _INTEGER if value_type is FilterType.INTEGER else _DECIMAL
    if pattern.fullmatch(token):
        if value_type is FilterType.INTEGER:
            return str(int(token))
        number = float(token)
        if math.isfinite(number):
            return repr(number)
    raise FilterCriteriaError(
        f"{token} is not a valid search criteria. Examples are:{_examples(value_type)}"
    )


def _examples(value_type: FilterType) -> str:
    if value_type is FilterType.INTEGER:
        return _INTEGER_EXAMPLES
    if value_type.is_numeric:
        return _DECIMAL_EXAMPLES
    return _STRING_EXAMPLES


def _format_numeric(field: str, criteria: str, value_type: FilterType) -> Optional[str]:
    if criteria == "*":
        return None
    if not criteria:
        raise FilterCriteriaError(
            'You must supply an "Is" query criteria. Examples are:' + _examples(value_type)
        )

    tokens = criteria.split()
    if tokens[0].upper() == "BETWEEN":
        example = "BETWEEN 12 AND 56" if value_type is FilterType.INTEGER else "BETWEEN 12.34 AND 56.78"
        if len(tokens) != 4 or tokens[2].upper() != "AND":
            raise FilterCriteriaError(
                f"BETWEEN searches must be specified as follows:\n{example}"
            )
        low = _normalize_number(tokens[1], value_type)
        high = _normalize_number(tokens[3], value_type)
        return f"{field} BETWEEN {low} AND {high}"

    if criteria[0] not in "=<>":
        return f"{field} = {_normalize_number(criteria, value_type)}"

    operator = criteria[0]
    rest = criteria[1:]
    if operator in "<>" and rest.startswith("="):
        operator += "="
        rest = rest[1:]
    if not rest.strip():
        raise FilterCriteriaError(
            f"{criteria} is not a valid search criteria. Examples are:{_examples(value_type)}"
        )
    return f"{field} {operator} {_normalize_number(rest, value_type)}"


def _format_string(field: str, criteria: str) -> str:
    if not criteria:
        raise FilterCriteriaError(
            'You must supply an "Is" query criteria. Examples are:' + _STRING_EXAMPLES
        )
    if "'" in criteria:
        raise FilterCriteriaError("Single quotes are not permitted in queries.")

    replaced = criteria.replace("*", "%")
    if replaced.startswith("="):
        operator, remainder = "=", replaced[1:].strip()
    elif replaced[:4].lower() == "like" and len(replaced) > 4:
        operator, remainder = "LIKE", replaced[4:].strip()
    else:
        operator, remainder = "LIKE", replaced.strip()
    return f"{field} {operator} '{remainder}'"
