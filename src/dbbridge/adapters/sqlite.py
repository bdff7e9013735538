"""
SQLite database adapter implementation.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from typing import Any, Sequence

from ..dialects.engines import SQLITE
from ..security.redaction import redact_params
from ..utils import get_logger, resolve_slow_query_ms, time_call
from .base import (
    AdapterConnectionError,
    AdapterExecutionError,
    ConnectionConfig,
    DatabaseAdapter,
    ErrorCodes,
)


@dataclass(slots=True)
class SQLiteConnectionState:
    connection: sqlite3.Connection
    config: ConnectionConfig


class SQLiteAdapter(DatabaseAdapter):
    """
    Adapter wrapping the Python stdlib sqlite3 module.

    SQLite has no stored procedures: ``describe_procedure`` always reports
    none and ``call_procedure`` raises.
    """

    def __init__(self, slow_query_ms: int | None = None) -> None:
        self.dialect = SQLITE
        self._state: SQLiteConnectionState | None = None
        self.logger = get_logger("adapters.sqlite")
        self.slow_query_ms = resolve_slow_query_ms(default=100, override=slow_query_ms)

    # ------------------------------------------------------------------ #
    # Connection management
    # ------------------------------------------------------------------ #
    def connect(self, config: ConnectionConfig) -> sqlite3.Connection:
        path = self._normalize_path(config.url)
        timeout = config.login_timeout if config.login_timeout is not None else 5.0
        self.logger.info("Opening SQLite database %s", config.descriptive_label())

        try:
            connection = sqlite3.connect(
                path,
                isolation_level=None if config.autocommit else "DEFERRED",
                timeout=timeout,
                detect_types=sqlite3.PARSE_DECLTYPES,
                check_same_thread=False,
            )
        except sqlite3.Error as exc:
            raise AdapterConnectionError(f"Failed to open SQLite database {path!r}.") from exc
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON")

        if config.isolation_level and not config.autocommit:
            connection.isolation_level = config.isolation_level

        self._state = SQLiteConnectionState(connection, config)
        return connection

    def close(self) -> None:
        if self._state:
            self._state.connection.close()
            self._state = None

    def _ensure_connection(self) -> sqlite3.Connection:
        if not self._state:
            raise AdapterConnectionError("SQLiteAdapter is not connected.")
        return self._state.connection

    # ------------------------------------------------------------------ #
    # Execution
    # ------------------------------------------------------------------ #
    def execute(self, sql: str, params: Sequence[Any] | None = None) -> sqlite3.Cursor:
        connection = self._ensure_connection()
        cursor = connection.cursor()
        with time_call(
            "sqlite.execute",
            self.logger,
            sql=sql,
            params=redact_params(params),
            threshold_ms=self.slow_query_ms,
        ):
            if params is None:
                cursor.execute(sql)
            else:
                cursor.execute(sql, tuple(params))
        return cursor

    # ------------------------------------------------------------------ #
    # Transactions
    # ------------------------------------------------------------------ #
    def set_autocommit(self, enabled: bool) -> None:
        connection = self._ensure_connection()
        if enabled:
            # sqlite3 leaves an open transaction pending when switching modes.
            if connection.in_transaction:
                connection.commit()
            connection.isolation_level = None
        else:
            config = self._state.config if self._state else None
            connection.isolation_level = (config and config.isolation_level) or "DEFERRED"

    @property
    def autocommit(self) -> bool:
        return self._ensure_connection().isolation_level is None

    def commit(self) -> None:
        self._ensure_connection().commit()

    def rollback(self) -> None:
        self._ensure_connection().rollback()

    # ------------------------------------------------------------------ #
    # Errors and procedures
    # ------------------------------------------------------------------ #
    def error_codes(self, exc: BaseException) -> ErrorCodes:
        code = getattr(exc, "sqlite_errorcode", None)
        return None, code

    def describe_procedure(self, name: str) -> None:
        return None

    def call_procedure(self, spec: Any, args: Sequence[Any]) -> Any:
        raise AdapterExecutionError(
            f"SQLite does not support stored procedures (requested '{spec.procedure_name}')."
        )

    @staticmethod
    def _normalize_path(url: str) -> str:
        if url in ("sqlite://", "sqlite:///:memory:", ":memory:"):
            return ":memory:"
        prefix = "sqlite:///"
        if url.startswith(prefix):
            return url[len(prefix) :]
        return url
