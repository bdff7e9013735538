"""
Dialect profile registry.
"""

from .base import (
    ConstraintSignature,
    DateTimePrecision,
    DateTimeStyle,
    DateTimeValue,
    DialectProfile,
    EngineType,
    RowLimitStyle,
)
from .engines import DIALECTS, get_dialect, resolve_engine

__all__ = [
    "ConstraintSignature",
    "DateTimePrecision",
    "DateTimeStyle",
    "DateTimeValue",
    "DialectProfile",
    "EngineType",
    "RowLimitStyle",
    "DIALECTS",
    "get_dialect",
    "resolve_engine",
]
