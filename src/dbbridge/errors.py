"""
Error taxonomy shared by the statement builders, binders, and session.
"""

from __future__ import annotations

from typing import Iterable, Sequence


class DbBridgeError(RuntimeError):
    """Base error for every failure raised by dbbridge itself."""

    def __init__(self, message: str, *, original: BaseException | None = None) -> None:
        super().__init__(message)
        self.original = original


class UnknownEngineError(DbBridgeError):
    """Raised when an engine tag or legacy engine name has no dialect profile."""


class NotConnectedError(DbBridgeError):
    """Raised when an operation needs an open session."""


class ReadOnlyViolationError(DbBridgeError):
    """Raised when a write or delete is attempted on a read-only session."""


class MalformedStatementError(DbBridgeError):
    """Raised when a statement cannot be rendered from what was accumulated."""


class UnsupportedWriteModeError(DbBridgeError):
    """Raised for DELETE_INSERT or an unrecognised write mode."""


class DialectConstraintUnrecognizedError(DbBridgeError):
    """
    Raised when INSERT_UPDATE cannot classify an insert failure because the
    active dialect declares no duplicate-key signature. The driver error is
    available as ``original`` and as ``__cause__``.
    """


class TransactionStateError(DbBridgeError):
    """Raised on double-open or commit/rollback without an active transaction."""


class ReplayNotSupportedError(DbBridgeError):
    """Raised when an execution handle has no replayable statement."""


class FilterCriteriaError(DbBridgeError, ValueError):
    """Raised when ad-hoc filter criteria cannot be turned into a predicate."""


class ProcedureBindingError(DbBridgeError):
    """Base for stored-procedure binding failures."""


class WhereClauseParseError(ProcedureBindingError):
    """Raised when a where-clause fragment has no recognised operator or value."""

    def __init__(self, message: str, *, predicate: str, original: BaseException | None = None) -> None:
        super().__init__(message, original=original)
        self.predicate = predicate


class ParameterLookupError(ProcedureBindingError):
    """Raised when a column or ordinal does not match any declared parameter."""

    def __init__(
        self,
        name: str,
        known_parameters: Iterable[str],
        *,
        predicate: str | None = None,
    ) -> None:
        self.name = name
        self.known_parameters: Sequence[str] = tuple(known_parameters)
        self.predicate = predicate
        known = ", ".join(self.known_parameters)
        if predicate is not None:
            message = (
                f"Couldn't find parameter '{name}', specified in where clause: '{predicate}'.\n"
                f"Known parameters are: '{known}'"
            )
        else:
            message = f"Couldn't find parameter '{name}'.\nKnown parameters are: '{known}'"
        super().__init__(message)


class UnsupportedParameterTypeError(ProcedureBindingError):
    """Raised when a declared parameter type has no where-clause conversion."""

    def __init__(self, parameter: str, type_name: str) -> None:
        super().__init__(f"Unsupported type '{type_name}' for parameter '{parameter}'.")
        self.parameter = parameter
        self.type_name = type_name


__all__ = [
    "DbBridgeError",
    "UnknownEngineError",
    "NotConnectedError",
    "ReadOnlyViolationError",
    "MalformedStatementError",
    "UnsupportedWriteModeError",
    "DialectConstraintUnrecognizedError",
    "TransactionStateError",
    "ReplayNotSupportedError",
    "FilterCriteriaError",
    "ProcedureBindingError",
    "WhereClauseParseError",
    "ParameterLookupError",
    "UnsupportedParameterTypeError",
]
