"""
Write strategies: plain INSERT/UPDATE and the two fallback writes.

INSERT_UPDATE inserts and, when the failure matches one of the dialect's
duplicate-key signatures, updates instead. UPDATE_INSERT updates with a
WHERE built from the fields and inserts when nothing was touched.
"""

from __future__ import annotations

import logging
from contextlib import AbstractContextManager, nullcontext
from typing import Callable, Optional, Tuple

from ..dialects.base import DialectProfile
from ..errors import (
    DbBridgeError,
    DialectConstraintUnrecognizedError,
    UnsupportedWriteModeError,
)
from ..query.write import WriteMode, WriteStatement
from ..utils import get_logger

RunUpdate = Callable[[str], int]
ClassifyError = Callable[[BaseException], Tuple[Optional[str], Optional[int]]]


class FallbackWriter:
    """
    Executes a ``WriteStatement`` under one ``WriteMode``.

    ``run_update`` executes one SQL string and returns its affected-row
    count; ``classify_error`` pulls (SQLSTATE, vendor code) out of a driver
    error. ``isolate`` optionally wraps the first insert attempt, e.g. in a
    savepoint, so a duplicate-key failure leaves the transaction usable.
    """

    def __init__(
        self,
        dialect: DialectProfile,
        run_update: RunUpdate,
        classify_error: ClassifyError,
        *,
        isolate: Callable[[], AbstractContextManager] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.dialect = dialect
        self.run_update = run_update
        self.classify_error = classify_error
        self.isolate = isolate or nullcontext
        self.logger = logger or get_logger("persistence.write")

    def write(self, statement: WriteStatement, mode: WriteMode | str) -> int:
        mode = WriteMode.coerce(mode)
        if mode is WriteMode.INSERT:
            return self.run_update(statement.to_insert_string(self.dialect))
        if mode is WriteMode.UPDATE:
            return self.run_update(statement.to_update_string(False, self.dialect))
        if mode is WriteMode.INSERT_UPDATE:
            return self._insert_then_update(statement)
        if mode is WriteMode.UPDATE_INSERT:
            return self._update_then_insert(statement)
        raise UnsupportedWriteModeError(
            f"Write mode {mode.name} is not supported; "
            "delete-then-insert ordering and atomicity are undefined."
        )

    # ------------------------------------------------------------------ #
    def _insert_then_update(self, statement: WriteStatement) -> int:
        insert_sql = statement.to_insert_string(self.dialect)
        try:
            with self.isolate():
                return self.run_update(insert_sql)
        except DbBridgeError:
            raise
        except Exception as exc:
            if not self.dialect.has_constraint_signatures:
                raise DialectConstraintUnrecognizedError(
                    f"INSERT_UPDATE may have hit an existing record, but {self.dialect.name} "
                    "has no known duplicate-key error codes; not attempting the update.",
                    original=exc,
                ) from exc
            sqlstate, error_code = self.classify_error(exc)
            if not self.dialect.matches_constraint_violation(sqlstate, error_code):
                raise
            self.logger.debug(
                "Insert into %s hit a duplicate key (sqlstate=%s, code=%s); updating instead",
                statement.table,
                sqlstate,
                error_code,
            )
        return self.run_update(statement.to_update_string(False, self.dialect))

    def _update_then_insert(self, statement: WriteStatement) -> int:
        count = self.run_update(statement.to_update_string(True, self.dialect))
        if count != 0:
            return count
        self.logger.debug("Update of %s touched no rows; inserting instead", statement.table)
        return self.run_update(statement.to_insert_string(self.dialect))
