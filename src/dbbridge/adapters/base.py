"""
Connection collaborator interface and DSN-driven configuration.

Adapters own one DB-API connection each. Driver errors propagate unchanged
so the session can classify them; configuration and connection problems
are reported through the ``AdapterError`` hierarchy.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional, Protocol, Sequence, Tuple

from ..dialects.base import DialectProfile
from ..errors import DbBridgeError
from ..security.dsns import DSNConfig, parse_dsn

if TYPE_CHECKING:
    from ..query.procedure import StoredProcedureSpec


class AdapterError(DbBridgeError):
    """Base error for adapter-related failures."""


class AdapterConfigurationError(AdapterError):
    """Raised when configuration is invalid or a driver is not installed."""


class AdapterConnectionError(AdapterError):
    """Raised when establishing or using a connection fails."""


class AdapterExecutionError(AdapterError):
    """Raised when a statement cannot be sent, e.g. mismatched parameters."""


@dataclass
class SSLConfig:
    mode: str | None = None
    rootcert: str | None = None
    cert: str | None = None
    key: str | None = None
    ca: str | None = None
    check_hostname: bool | None = None

    def is_empty(self) -> bool:
        return all(getattr(self, name) is None for name in _SSL_ATTRIBUTES)

    def postgres_options(self) -> dict[str, Any]:
        pairs = {
            "sslmode": self.mode,
            "sslrootcert": self.rootcert,
            "sslcert": self.cert,
            "sslkey": self.key,
        }
        return {key: value for key, value in pairs.items() if value}

    def mysql_options(self) -> dict[str, Any]:
        ssl = {
            key: value
            for key, value in (("ca", self.ca), ("cert", self.cert), ("key", self.key))
            if value
        }
        if self.check_hostname is not None:
            ssl["check_hostname"] = self.check_hostname
        return {"ssl": ssl} if ssl else {}


_SSL_ATTRIBUTES = ("mode", "rootcert", "cert", "key", "ca", "check_hostname")

# DSN query key -> SSLConfig attribute; both libpq and MySQL spellings accepted.
_SSL_QUERY_KEYS = {
    "sslmode": "mode",
    "sslrootcert": "rootcert",
    "sslcert": "cert",
    "sslkey": "key",
    "ssl_ca": "ca",
    "ssl_cert": "cert",
    "ssl_key": "key",
}

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _parse_bool(value: str, *, key: str) -> bool:
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise AdapterConfigurationError(f"Invalid boolean value for '{key}': {value!r}")


def _parse_number(value: str, *, key: str, kind: type) -> Any:
    try:
        return kind(value)
    except ValueError as exc:
        raise AdapterConfigurationError(
            f"Invalid {kind.__name__} value for '{key}': {value!r}"
        ) from exc


def _pop_bool(query: dict[str, str], key: str) -> bool | None:
    if key not in query:
        return None
    return _parse_bool(query.pop(key), key=key)


def _pop_float(query: dict[str, str], key: str) -> float | None:
    if key not in query:
        return None
    return _parse_number(query.pop(key), key=key, kind=float)


def _parse_ssl(query: dict[str, str]) -> SSLConfig | None:
    ssl = SSLConfig()
    for query_key, attribute in _SSL_QUERY_KEYS.items():
        if query_key in query:
            setattr(ssl, attribute, query.pop(query_key))
    if "ssl_check_hostname" in query:
        ssl.check_hostname = _parse_bool(query.pop("ssl_check_hostname"), key="ssl_check_hostname")
    return None if ssl.is_empty() else ssl


def _parse_option_values(query: dict[str, str]) -> dict[str, Any]:
    options: dict[str, Any] = dict(query)
    if "connect_timeout" in options:
        options["connect_timeout"] = _parse_number(
            options["connect_timeout"], key="connect_timeout", kind=int
        )
    return options


@dataclass
class ConnectionConfig:
    """
    Normalized connection settings handed to ``DatabaseAdapter.connect``.

    ``login_timeout`` (seconds) bounds connection establishment only;
    statements themselves run without a deadline.
    """

    url: str
    autocommit: bool = True
    isolation_level: str | None = None
    login_timeout: float | None = None
    options: dict[str, Any] | None = None
    ssl: SSLConfig | None = None
    dsn: DSNConfig | None = None
    source: str | None = None

    @classmethod
    def from_dsn(cls, dsn: str, **kwargs: Any) -> "ConnectionConfig":
        """
        Parse a DSN such as ``postgresql://user:pw@host/db?login_timeout=5``.

        Keyword arguments override values found in the query string.
        """

        parsed = parse_dsn(dsn)
        query = dict(parsed.query)

        parsed_autocommit = _pop_bool(query, "autocommit")
        parsed_timeout = _pop_float(query, "login_timeout")
        if parsed_timeout is None:
            parsed_timeout = _pop_float(query, "timeout")
        parsed_isolation_level = query.pop("isolation_level", None)
        parsed_ssl = _parse_ssl(query)

        options = _parse_option_values(query)
        options.update(kwargs.pop("options", None) or {})

        autocommit = kwargs.pop("autocommit", parsed_autocommit)
        return cls(
            url=dsn,
            dsn=parsed,
            autocommit=True if autocommit is None else autocommit,
            isolation_level=kwargs.pop("isolation_level", parsed_isolation_level),
            login_timeout=kwargs.pop("login_timeout", parsed_timeout),
            options=options or None,
            ssl=kwargs.pop("ssl", parsed_ssl),
            **kwargs,
        )

    @classmethod
    def from_env(cls, env_var: str, **kwargs: Any) -> "ConnectionConfig":
        value = os.getenv(env_var)
        if not value:
            raise AdapterConfigurationError(f"Environment variable {env_var} is not set")
        return cls.from_dsn(value, source=env_var, **kwargs)

    @property
    def family(self) -> str | None:
        """Backend family named by the DSN scheme (``sqlite``, ``postgresql``, ``mysql``)."""

        dsn = self.dsn or (parse_dsn(self.url) if "://" in self.url else None)
        return dsn.family if dsn else None

    def redacted_dsn(self) -> str:
        if self.dsn:
            return self.dsn.redacted()
        return self.url

    def descriptive_label(self) -> str:
        redacted = self.redacted_dsn()
        if self.source:
            return f"{self.source} ({redacted})"
        return redacted


ErrorCodes = Tuple[Optional[str], Optional[int]]


class DatabaseAdapter(Protocol):
    """
    Connection collaborator used by ``Session``.
    """

    dialect: DialectProfile
    slow_query_ms: int

    def connect(self, config: ConnectionConfig) -> Any:
        """
        Establish the connection; ``config.login_timeout`` applies here only.
        """

    def close(self) -> None:
        """
        Close underlying resources. Implementations should be idempotent.
        """

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> Any:
        """
        Execute one statement and return a cursor exposing ``rowcount``.
        """

    def set_autocommit(self, enabled: bool) -> None:
        """
        Switch the connection's autocommit mode.
        """

    def commit(self) -> None:
        """
        Commit the current transaction.
        """

    def rollback(self) -> None:
        """
        Roll back the current transaction.
        """

    def error_codes(self, exc: BaseException) -> ErrorCodes:
        """
        Return the (SQLSTATE, vendor error code) pair carried by a driver error.
        """

    def describe_procedure(self, name: str) -> "StoredProcedureSpec | None":
        """
        Look up a stored procedure's signature, or ``None`` if it does not exist.
        """

    def call_procedure(self, spec: "StoredProcedureSpec", args: Sequence[Any]) -> Any:
        """
        Invoke a stored procedure and return a cursor over its results.
        """


def count_format_placeholders(sql: str) -> int:
    """
    Count ``%s`` placeholders, skipping escaped ``%%`` and anything inside
    single-quoted literals.
    """

    count = 0
    idx = 0
    in_literal = False
    while idx < len(sql):
        char = sql[idx]
        if char == "'":
            in_literal = not in_literal
        elif not in_literal and char == "%" and idx + 1 < len(sql):
            nxt = sql[idx + 1]
            if nxt == "s":
                count += 1
                idx += 2
                continue
            if nxt == "%":
                idx += 2
                continue
        idx += 1
    return count


def validate_format_params(sql: str, params: Sequence[Any] | None) -> None:
    """
    Check that ``params`` line up with the ``%s`` placeholders in ``sql``.

    Statements executed without parameters are sent as-is and not checked.
    """

    if params is None:
        return
    placeholder_count = count_format_placeholders(sql)
    if placeholder_count != len(params):
        raise AdapterExecutionError(
            f"Parameter count mismatch: expected {placeholder_count}, received {len(params)}."
        )
