"""
Session state machine: connection state, autocommit, dirty flag, and the
statement handles whose release is deferred until commit or rollback.
"""

from __future__ import annotations

import itertools
from contextlib import contextmanager
from enum import Enum
from typing import Any, Generator, List

from ..adapters.base import DatabaseAdapter
from ..dialects.base import DialectProfile
from ..errors import NotConnectedError, TransactionStateError
from ..utils import get_logger


class SessionState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    IN_TRANSACTION = "in_transaction"


class TransactionAction(str, Enum):
    COMMIT = "commit"
    ROLLBACK = "rollback"


class TransactionManager:
    """
    Tracks CLOSED -> OPEN -> IN_TRANSACTION and back.

    Turning autocommit off is what puts the session in a transaction;
    commit and rollback turn it back on. While a transaction is active,
    released statement handles are parked and closed in one go when it ends.
    """

    def __init__(self, adapter: DatabaseAdapter, dialect: DialectProfile) -> None:
        self.adapter = adapter
        self.dialect = dialect
        self.state = SessionState.CLOSED
        self.autocommit = True
        self.dirty = False
        self._pending: List[Any] = []
        self._savepoint_counter = itertools.count(1)
        self.logger = get_logger("persistence.transaction")

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def in_transaction(self) -> bool:
        return self.state is SessionState.IN_TRANSACTION

    # ------------------------------------------------------------------ #
    # Connection state
    # ------------------------------------------------------------------ #
    def mark_open(self) -> None:
        if self.state is not SessionState.CLOSED:
            raise TransactionStateError(
                "Must close the first connection before opening a new one."
            )
        self.state = SessionState.OPEN
        self.autocommit = True
        self.dirty = False

    def mark_closed(self) -> None:
        if self.state is SessionState.CLOSED:
            raise NotConnectedError("Session is not open.")
        if self.in_transaction:
            self.logger.warning("Closing session with an active transaction; rolling back.")
            try:
                self.adapter.rollback()
            finally:
                self._release_pending()
        else:
            self._release_pending()
        self.state = SessionState.CLOSED
        self.autocommit = True
        self.dirty = False

    def require_open(self) -> None:
        if self.state is SessionState.CLOSED:
            raise NotConnectedError("Session is not open; call open() first.")

    # ------------------------------------------------------------------ #
    # Transactions
    # ------------------------------------------------------------------ #
    def begin(self, initial_action: TransactionAction | str = TransactionAction.ROLLBACK) -> None:
        """
        Turn autocommit off, settle any prior pending work with
        ``initial_action``, and enter the transaction state.
        """

        self.require_open()
        action = TransactionAction(initial_action)
        self.adapter.set_autocommit(False)
        self.autocommit = False
        if action is TransactionAction.COMMIT:
            self.adapter.commit()
        else:
            self.adapter.rollback()
        self._release_pending()
        self.dirty = False
        self.state = SessionState.IN_TRANSACTION
        self.logger.debug("Transaction started (initial action %s)", action.value)

    def commit(self) -> None:
        self._require_transaction("commit")
        self.adapter.commit()
        self._finish()

    def rollback(self) -> None:
        self._require_transaction("roll back")
        self.adapter.rollback()
        self._finish()

    def set_autocommit(self, enabled: bool) -> None:
        self.require_open()
        if enabled == self.autocommit:
            return
        if enabled:
            # Leaving manual mode commits outstanding work, as DB-API drivers do.
            self.commit()
        else:
            self.adapter.set_autocommit(False)
            self.autocommit = False
            self.state = SessionState.IN_TRANSACTION

    @contextmanager
    def transaction(
        self, initial_action: TransactionAction | str = TransactionAction.ROLLBACK
    ) -> Generator[None, None, None]:
        self.begin(initial_action)
        try:
            yield
        except Exception:
            self.rollback()
            raise
        else:
            self.commit()

    @contextmanager
    def savepoint(self) -> Generator[None, None, None]:
        """
        Scope a statement so its failure does not poison the surrounding
        transaction. A no-op outside a transaction or on engines without
        savepoints.
        """

        if not (self.in_transaction and self.dialect.supports_savepoints):
            yield
            return
        name = f"dbbridge_sp_{next(self._savepoint_counter)}"
        self._control(f"SAVEPOINT {name}")
        try:
            yield
        except Exception:
            self._control(f"ROLLBACK TO SAVEPOINT {name}")
            self._control(f"RELEASE SAVEPOINT {name}")
            raise
        else:
            self._control(f"RELEASE SAVEPOINT {name}")

    # ------------------------------------------------------------------ #
    # Dirty flag and statement handles
    # ------------------------------------------------------------------ #
    def mark_dirty(self) -> None:
        if not self.autocommit:
            self.dirty = True

    def release(self, handle: Any) -> None:
        """
        Close ``handle`` now, or at commit/rollback when inside a transaction.
        """

        if handle is None:
            return
        if self.in_transaction:
            self._pending.append(handle)
            return
        _close_handle(handle)

    def _control(self, sql: str) -> None:
        self.release(self.adapter.execute(sql))

    def _require_transaction(self, verb: str) -> None:
        self.require_open()
        if not self.in_transaction:
            raise TransactionStateError(f"No active transaction to {verb}.")

    def _finish(self) -> None:
        self._release_pending()
        self.adapter.set_autocommit(True)
        self.autocommit = True
        self.dirty = False
        self.state = SessionState.OPEN

    def _release_pending(self) -> None:
        pending, self._pending = self._pending, []
        for handle in pending:
            _close_handle(handle)


def _close_handle(handle: Any) -> None:
    close = getattr(handle, "close", None)
    if close is not None:
        close()
