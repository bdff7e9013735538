"""
PostgreSQL database adapter implementation.
"""

from __future__ import annotations

from contextlib import closing
from dataclasses import dataclass
from typing import Any, Sequence

from ..dialects.engines import POSTGRESQL
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
    "SELECT specific_name, routine_type, data_type FROM information_schema.routines "
    "WHERE lower(routine_name) = lower(%s) "
    "AND routine_schema NOT IN ('pg_catalog', 'information_schema') "
    "ORDER BY specific_name"
)
_PARAMETER_SQL = (
    "SELECT parameter_name, data_type, parameter_mode FROM information_schema.parameters "
    "WHERE specific_name = %s ORDER BY ordinal_position"
)


def _load_driver():
    try:
        import psycopg

        return psycopg
    except ImportError:
        return None


@dataclass
class PostgresConnectionState:
    connection: Any
    config: ConnectionConfig
    driver: Any


class PostgresAdapter(DatabaseAdapter):
    """
    Adapter wrapping the psycopg PostgreSQL driver.
    """

    def __init__(self, slow_query_ms: int | None = None) -> None:
        self.dialect = POSTGRESQL
        self._state: PostgresConnectionState | None = None
        self.logger = get_logger("adapters.postgres")
        self.slow_query_ms = resolve_slow_query_ms(default=100, override=slow_query_ms)

    # ------------------------------------------------------------------ #
    # Connection management
    # ------------------------------------------------------------------ #
    def connect(self, config: ConnectionConfig) -> Any:
        driver = _load_driver()
        if driver is None:
            raise AdapterConfigurationError("psycopg is required to use PostgresAdapter.")

        options = dict(config.options or {})
        if config.ssl:
            for key, value in config.ssl.postgres_options().items():
                options.setdefault(key, value)
        if config.login_timeout and "connect_timeout" not in options:
            options["connect_timeout"] = int(config.login_timeout)

        self.logger.info(
            "Connecting to PostgreSQL %s (autocommit=%s)",
            config.descriptive_label(),
            config.autocommit,
        )
        try:
            connection = driver.connect(config.url, **options)
        except Exception as exc:
            raise AdapterConnectionError("Failed to connect to PostgreSQL.") from exc
        connection.autocommit = bool(config.autocommit)
        if config.isolation_level:
            setattr(connection, "isolation_level", config.isolation_level)

        self._state = PostgresConnectionState(connection, config, driver)
        return connection

    def close(self) -> None:
        if self._state:
            try:
                self._state.connection.close()
            finally:
                self._state = None

    def _ensure_connection(self):
        if not self._state:
            raise AdapterConnectionError("PostgresAdapter is not connected.")
        conn = self._state.connection
        if getattr(conn, "closed", False):
            raise AdapterConnectionError("PostgreSQL connection was closed by the server.")
        return conn

    # ------------------------------------------------------------------ #
    # Execution
    # ------------------------------------------------------------------ #
    def execute(self, sql: str, params: Sequence[Any] | None = None):
        connection = self._ensure_connection()
        cursor = connection.cursor()
        validate_format_params(sql, params)
        with time_call(
            "postgres.execute",
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
        if enabled and not connection.autocommit:
            # psycopg refuses to flip autocommit inside an open transaction.
            connection.commit()
        connection.autocommit = bool(enabled)

    def commit(self) -> None:
        self._ensure_connection().commit()

    def rollback(self) -> None:
        self._ensure_connection().rollback()

    # ------------------------------------------------------------------ #
    # Errors and procedures
    # ------------------------------------------------------------------ #
    def error_codes(self, exc: BaseException) -> ErrorCodes:
        sqlstate = getattr(exc, "sqlstate", None)
        if sqlstate is None:
            sqlstate = getattr(getattr(exc, "diag", None), "sqlstate", None)
        return sqlstate, None

    def describe_procedure(self, name: str) -> StoredProcedureSpec | None:
        with closing(self.execute(_ROUTINE_SQL, (name,))) as cursor:
            routine = cursor.fetchone()
        if not routine:
            return None
        specific_name, routine_type, data_type = routine[0], routine[1], routine[2]
        is_function = str(routine_type).upper() == "FUNCTION"
        rows = []
        with closing(self.execute(_PARAMETER_SQL, (specific_name,))) as cursor:
            parameters = cursor.fetchall()
        for parameter_name, parameter_type, mode in parameters:
            if is_function and str(mode).upper() == "OUT":
                # OUT columns of a function come back in its result set.
                continue
            rows.append((parameter_name, parameter_type, mode, None))
        if is_function and data_type and str(data_type).lower() != "void":
            rows.append((None, data_type, "RETURN", None))
        return StoredProcedureSpec.from_metadata_rows(name, rows, is_function=is_function)

    def call_procedure(self, spec: StoredProcedureSpec, args: Sequence[Any]):
        placeholders = ", ".join("%s" for _ in args)
        if spec.is_function:
            sql = f"SELECT * FROM {spec.procedure_name}({placeholders})"
        else:
            sql = f"CALL {spec.procedure_name}({placeholders})"
        return self.execute(sql, list(args))
