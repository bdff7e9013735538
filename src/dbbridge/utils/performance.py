"""
Slow-query threshold resolution shared by the adapters and the session.
"""

from __future__ import annotations

import os

from ..errors import DbBridgeError

SLOW_QUERY_ENV_VAR = "DBBRIDGE_SLOW_QUERY_MS"


def resolve_slow_query_ms(
    *,
    default: int = 100,
    override: int | None = None,
    env_var: str = SLOW_QUERY_ENV_VAR,
) -> int:
    """
    Pick the slow-query threshold in milliseconds.

    An explicit ``override`` wins, then the environment variable, then ``default``.
    """

    if override is not None:
        if override < 0:
            raise DbBridgeError(f"Slow query threshold must be non-negative, got {override}.")
        return override
    raw = os.getenv(env_var)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw.strip())
    except ValueError as exc:
        raise DbBridgeError(f"Invalid integer value for {env_var}: {raw!r}") from exc
    if value < 0:
        raise DbBridgeError(f"{env_var} must be non-negative, got {value}.")
    return value
