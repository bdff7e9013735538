"""DSN parsing and credential-safe rendering."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import parse_qs, urlencode, urlparse

from .redaction import redact_query_params

# Scheme spellings accepted for each supported backend family.
_SCHEME_FAMILIES = {
    "sqlite": "sqlite",
    "sqlite3": "sqlite",
    "postgres": "postgresql",
    "postgresql": "postgresql",
    "psql": "postgresql",
    "mysql": "mysql",
    "mariadb": "mysql",
}


@dataclass
class DSNConfig:
    driver: str
    username: Optional[str]
    password: Optional[str]
    host: Optional[str]
    port: Optional[int]
    database: Optional[str]
    path: str
    query: dict[str, str] = field(default_factory=dict)

    @property
    def family(self) -> str | None:
        """Backend family for the scheme, e.g. ``postgresql`` for ``postgres+psycopg``."""

        base = self.driver.split("+", 1)[0].lower()
        return _SCHEME_FAMILIES.get(base)

    def redacted(self) -> str:
        """
        Return the DSN with the password and sensitive query values masked.
        """

        netloc = ""
        if self.username:
            netloc += self.username
            if self.password:
                netloc += ":***"
            netloc += "@"
        if self.host:
            netloc += self.host
        if self.port:
            netloc += f":{self.port}"

        # Built by hand so "sqlite:///path" keeps its triple slash.
        result = f"{self.driver}://{netloc}{self.path or ''}"
        if self.query:
            result += "?" + urlencode(redact_query_params(self.query))
        return result


def parse_dsn(dsn: str) -> DSNConfig:
    if "://" not in dsn:
        raise ValueError(f"DSN must include a scheme, got {dsn!r}")
    parsed = urlparse(dsn)
    query = {k: v[0] for k, v in parse_qs(parsed.query).items()}
    return DSNConfig(
        driver=parsed.scheme,
        username=parsed.username,
        password=parsed.password,
        host=parsed.hostname,
        port=parsed.port,
        database=parsed.path.lstrip("/") or None,
        path=parsed.path or "",
        query=query,
    )


def dsn_from_env(env_var: str) -> DSNConfig:
    value = os.getenv(env_var)
    if not value:
        raise ValueError(f"Environment variable {env_var} is not set")
    return parse_dsn(value)
