"""Database configuration, read once from the environment at startup.

Environment variables (a .env file in the working directory is honoured):
  MSSQL_DRIVER, MSSQL_HOST, MSSQL_USER, MSSQL_PASSWORD, MSSQL_DATABASE,
  MSSQL_QUERY_TIMEOUT, MSSQL_ODBC_DRIVER, MSSQL_MAX_OPEN_CONNS,
  MSSQL_MAX_IDLE_CONNS, MSSQL_CONN_MAX_LIFETIME
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping

from dotenv import load_dotenv
from loguru import logger

from mssql_mcp.errors import ConfigurationError

DEFAULT_QUERY_TIMEOUT = 120  # seconds
DEFAULT_ODBC_DRIVER = "ODBC Driver 18 for SQL Server"

# Labels accepted for MSSQL_DRIVER; all of them resolve to pyodbc.
_SUPPORTED_DRIVERS = ("sqlserver", "mssql", "pyodbc")


def _get_int(env: Mapping[str, str], key: str, default: int) -> int:
    value = env.get(key)
    if value is None:
        return default
    try:
        return int(value.strip())
    except ValueError:
        logger.warning(f"{key}={value!r} is not an integer, using {default}")
        return default


@dataclass(frozen=True)
class DbConfig:
    """Connection settings shared by every component."""

    user: str
    password: str
    database: str
    driver: str = "sqlserver"
    server: str = "localhost"
    query_timeout: int = DEFAULT_QUERY_TIMEOUT
    odbc_driver: str = DEFAULT_ODBC_DRIVER
    max_open_conns: int = 10
    max_idle_conns: int = 5
    conn_max_lifetime: int = 180  # seconds

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "DbConfig":
        """Build the config from ``environ`` (defaults to ``os.environ`` after loading .env).

        Raises ConfigurationError if MSSQL_USER, MSSQL_PASSWORD or
        MSSQL_DATABASE is missing or empty.
        """
        if environ is None:
            load_dotenv()
            environ = os.environ

        user = environ.get("MSSQL_USER", "")
        password = environ.get("MSSQL_PASSWORD", "")
        database = environ.get("MSSQL_DATABASE", "")
        if not user or not password or not database:
            raise ConfigurationError(
                "missing required database configuration "
                "(MSSQL_USER, MSSQL_PASSWORD, MSSQL_DATABASE)"
            )

        driver = environ.get("MSSQL_DRIVER", "sqlserver")
        if driver.lower() not in _SUPPORTED_DRIVERS:
            raise ConfigurationError(
                f"unsupported MSSQL_DRIVER {driver!r} "
                f"(expected one of: {', '.join(_SUPPORTED_DRIVERS)})"
            )

        max_open = _get_int(environ, "MSSQL_MAX_OPEN_CONNS", 10)
        max_idle = _get_int(environ, "MSSQL_MAX_IDLE_CONNS", 5)
        if max_open < 1 or max_idle < 0:
            raise ConfigurationError("connection pool sizes must be positive")

        return cls(
            user=user,
            password=password,
            database=database,
            driver=driver,
            server=environ.get("MSSQL_HOST", "localhost"),
            query_timeout=_get_int(environ, "MSSQL_QUERY_TIMEOUT", DEFAULT_QUERY_TIMEOUT),
            odbc_driver=environ.get("MSSQL_ODBC_DRIVER", DEFAULT_ODBC_DRIVER),
            max_open_conns=max_open,
            # idle connections can never outnumber open ones
            max_idle_conns=min(max_idle, max_open),
            conn_max_lifetime=_get_int(environ, "MSSQL_CONN_MAX_LIFETIME", 180),
        )

    def describe(self) -> str:
        """Loggable summary, never includes the password."""
        return f"{self.server}/{self.database} as {self.user}"
