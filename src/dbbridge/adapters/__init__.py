"""
Database adapter interfaces and implementations.
"""

from .base import (
    AdapterConfigurationError,
    AdapterConnectionError,
    AdapterError,
    AdapterExecutionError,
    ConnectionConfig,
    DatabaseAdapter,
    SSLConfig,
)
from .mysql import MySQLAdapter
from .postgres import PostgresAdapter
from .sqlite import SQLiteAdapter

__all__ = [
    "ConnectionConfig",
    "DatabaseAdapter",
    "SSLConfig",
    "AdapterError",
    "AdapterConfigurationError",
    "AdapterConnectionError",
    "AdapterExecutionError",
    "SQLiteAdapter",
    "PostgresAdapter",
    "MySQLAdapter",
    "adapter_for_family",
]


def adapter_for_family(family: str | None, **kwargs) -> DatabaseAdapter:
    """Instantiate the adapter for a DSN scheme family."""

    adapters = {"sqlite": SQLiteAdapter, "postgresql": PostgresAdapter, "mysql": MySQLAdapter}
    try:
        return adapters[family](**kwargs)
    except KeyError:
        raise AdapterConfigurationError(
            f"No adapter available for DSN scheme family {family!r}."
        ) from None
