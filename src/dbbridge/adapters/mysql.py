"""
MySQL database adapter implementation.
"""

from __future__ import annotations

from contextlib import closing
from dataclasses import dataclass
from typing import Any, Sequence

from ..dialects.engines import MYSQL
from ..query.procedure import StoredProcedureSpec
from ..security.redaction import redact_params
from ..utils import get_logger, resolve_slow_query_ms, time_call
from .base import (
    AdapterConfigurationError,
    AdapterConnectionError,
    ConnectionConfig,
    DatabaseAdapter,
    ErrorCodes,
    validate_format_params,
)

_ROUTINE_SQL = (
    "SELECT ROUTINE_TYPE FROM information_schema.ROUTINES "
    "WHERE ROUTINE_SCHEMA = DATABASE() AND ROUTINE_NAME = %s"
)
# ORDINAL_POSITION 0 is a function's return value.
_PARAMETER_SQL = (
    "SELECT PARAMETER_NAME, DATA_TYPE, PARAMETER_MODE, ORDINAL_POSITION "
    "FROM information_schema.PARAMETERS "
    "WHERE SPECIFIC_SCHEMA = DATABASE() AND SPECIFIC_NAME = %s "
    "ORDER BY ORDINAL_POSITION"
)


def _load_driver():
    try:
        import pymysql  # type: ignore[import-untyped]

        return pymysql
    except ImportError:
        try:
            import MySQLdb

            return MySQLdb
        except ImportError:
            return None


@dataclass
class MySQLConnectionState:
    connection: Any
    config: ConnectionConfig
    driver: Any
    autocommit: bool


class MySQLAdapter(DatabaseAdapter):
    """
    Adapter wrapping a MySQL DB-API driver (PyMySQL or mysqlclient).
    """

    def __init__(self, slow_query_ms: int | None = None) -> None:
        self.dialect = MYSQL
        self._state: MySQLConnectionState | None = None
        self.logger = get_logger("adapters.mysql")
        self.slow_query_ms = resolve_slow_query_ms(default=100, override=slow_query_ms)

    # ------------------------------------------------------------------ #
    # Connection management
    # ------------------------------------------------------------------ #
    def connect(self, config: ConnectionConfig) -> Any:
        driver = _load_driver()
        if driver is None:
            raise AdapterConfigurationError(
                "PyMySQL or mysqlclient is required to use MySQLAdapter."
            )
        if not config.dsn:
            raise AdapterConfigurationError(
                "ConnectionConfig must be built from a DSN for MySQL connections."
            )

        options = dict(config.options or {})
        if config.ssl:
            for key, value in config.ssl.mysql_options().items():
                options.setdefault(key, value)
        if config.login_timeout and "connect_timeout" not in options:
            options["connect_timeout"] = int(config.login_timeout)

        self.logger.info(
            "Connecting to MySQL %s (autocommit=%s)",
            config.descriptive_label(),
            config.autocommit,
        )

        dsn = config.dsn
        connect_kwargs = {
            "host": dsn.host or "localhost",
            "user": dsn.username,
            "password": dsn.password,
            "database": dsn.database,
            **options,
        }
        if dsn.port:
            connect_kwargs["port"] = dsn.port

        try:
            connection = driver.connect(**connect_kwargs)
        except Exception as exc:
            raise AdapterConnectionError("Failed to connect to MySQL.") from exc
        connection.autocommit(bool(config.autocommit))

        self._state = MySQLConnectionState(connection, config, driver, bool(config.autocommit))
        if config.isolation_level:
            self.execute(f"SET SESSION TRANSACTION ISOLATION LEVEL {config.isolation_level}").close()
        return connection

    def close(self) -> None:
        if self._state:
            try:
                self._state.connection.close()
            finally:
                self._state = None

    def _ensure_connection(self):
        if not self._state:
            raise AdapterConnectionError("MySQLAdapter is not connected.")
        return self._state.connection

    # ------------------------------------------------------------------ #
    # Execution
    # ------------------------------------------------------------------ #
    def execute(self, sql: str, params: Sequence[Any] | None = None):
        connection = self._ensure_connection()
        cursor = connection.cursor()
        validate_format_params(sql, params)
        with time_call(
            "mysql.execute",
            self.logger,
            sql=sql,
            params=redact_params(params),
            threshold_ms=self.slow_query_ms,
        ):
            cursor.execute(sql, None if params is None else tuple(params))
        return cursor

    # ------------------------------------------------------------------ #
    # Transactions
    # ------------------------------------------------------------------ #
    def set_autocommit(self, enabled: bool) -> None:
        connection = self._ensure_connection()
        connection.autocommit(bool(enabled))
        if self._state:
            self._state.autocommit = bool(enabled)

    def commit(self) -> None:
        self._ensure_connection().commit()

    def rollback(self) -> None:
        self._ensure_connection().rollback()

    # ------------------------------------------------------------------ #
    # Errors and procedures
    # ------------------------------------------------------------------ #
    def error_codes(self, exc: BaseException) -> ErrorCodes:
        args = getattr(exc, "args", ())
        code = args[0] if args and isinstance(args[0], int) else None
        return None, code

    def describe_procedure(self, name: str) -> StoredProcedureSpec | None:
        with closing(self.execute(_ROUTINE_SQL, (name,))) as cursor:
            routine = cursor.fetchone()
        if not routine:
            return None
        is_function = str(routine[0]).upper() == "FUNCTION"
        rows = []
        with closing(self.execute(_PARAMETER_SQL, (name,))) as cursor:
            parameters = cursor.fetchall()
        for parameter_name, data_type, mode, position in parameters:
            if int(position) == 0:
                rows.append((None, data_type, "RETURN", None))
            else:
                rows.append((parameter_name, data_type, mode, None))
        return StoredProcedureSpec.from_metadata_rows(name, rows, is_function=is_function)

    def call_procedure(self, spec: StoredProcedureSpec, args: Sequence[Any]):
        placeholders = ", ".join("%s" for _ in args)
        keyword = "SELECT" if spec.is_function else "CALL"
        return self.execute(f"{keyword} {spec.procedure_name}({placeholders})", list(args))
