"""Query execution against SQL Server.

Connections come from a bounded SQLAlchemy pool over pyodbc. Every call
checks a connection out inside a ``with`` block so it goes back to the pool
on success, on error and on timeout alike.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from loguru import logger
from sqlalchemy import create_engine
from sqlalchemy.engine import URL, Connection, Engine
from sqlalchemy.exc import DBAPIError, SQLAlchemyError

from mssql_mcp.config import DEFAULT_QUERY_TIMEOUT, DbConfig
from mssql_mcp.errors import DatabaseConnectionError, QueryError
from mssql_mcp.sql.models import (
    Cell,
    EffectResult,
    ExecutionMode,
    QueryResult,
    TabularResult,
)

# SQLSTATE pyodbc reports when the per-connection query timeout fires
_TIMEOUT_SQLSTATE = "HYT00"


def _odbc_value(value: str) -> str:
    """Brace a connection-string value when ODBC would otherwise misread it."""
    if any(ch in value for ch in ";{}") or value != value.strip():
        return "{" + value.replace("}", "}}") + "}"
    return value


def build_connection_string(config: DbConfig) -> str:
    """ODBC connection string with encryption on and certificate checks relaxed."""
    parts = {
        "DRIVER": "{" + config.odbc_driver + "}",
        "SERVER": _odbc_value(config.server),
        "UID": _odbc_value(config.user),
        "PWD": _odbc_value(config.password),
        "DATABASE": _odbc_value(config.database),
        "Encrypt": "yes",
        "TrustServerCertificate": "yes",
    }
    return ";".join(f"{key}={value}" for key, value in parts.items())


def build_engine(config: DbConfig) -> Engine:
    """Create the pooled engine. No connection is opened until first use.

    pool_size holds the idle connections, max_overflow tops them up to the
    open-connection limit, and pool_recycle retires connections after their
    max lifetime. SQLAlchemy has no idle-time eviction; pool_pre_ping drops
    connections the server has already closed.
    """
    url = URL.create(
        "mssql+pyodbc",
        query={"odbc_connect": build_connection_string(config)},
    )
    pool_size = max(config.max_idle_conns, 1)
    return create_engine(
        url,
        pool_size=pool_size,
        max_overflow=max(config.max_open_conns - pool_size, 0),
        pool_recycle=config.conn_max_lifetime,
        pool_pre_ping=True,
        pool_timeout=config.query_timeout,
    )


def decode_cell(value: Any) -> Cell:
    """Map a driver value onto the closed Cell variant."""
    if value is None or isinstance(value, (bool, int, float, Decimal, str)):
        return value
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", errors="replace")
    # dates, times, GUIDs and anything else the driver hands back
    return str(value)


def _driver_message(exc: SQLAlchemyError) -> str:
    orig = getattr(exc, "orig", None)
    return str(orig) if orig is not None else str(exc)


def _is_timeout(exc: DBAPIError) -> bool:
    args = getattr(exc.orig, "args", ())
    return args[:1] == (_TIMEOUT_SQLSTATE,)


class QueryExecutor:
    """Runs queries on pooled connections and returns normalized results."""

    def __init__(self, engine: Engine, timeout_seconds: int = DEFAULT_QUERY_TIMEOUT):
        self.engine = engine
        self.timeout_seconds = timeout_seconds

    @classmethod
    def from_config(cls, config: DbConfig) -> "QueryExecutor":
        return cls(build_engine(config), timeout_seconds=config.query_timeout)

    def execute(
        self,
        query: str,
        mode: ExecutionMode = ExecutionMode.READ_FETCH,
        timeout_seconds: int | None = None,
    ) -> QueryResult:
        """Run ``query`` and return a TabularResult or EffectResult.

        Raises DatabaseConnectionError if no connection can be obtained (or
        the connection drops mid-query) and QueryError if the database
        rejects the statement or the timeout expires.
        """
        timeout = timeout_seconds if timeout_seconds is not None else self.timeout_seconds
        with self._connect() as conn:
            self._apply_timeout(conn, timeout)
            try:
                if mode is ExecutionMode.EFFECT_ONLY:
                    return self._execute_effect(conn, query)
                return self._fetch(conn, query)
            except DBAPIError as e:
                message = _driver_message(e)
                # pyodbc dialects count HYT00 as a disconnect, so test it first
                if _is_timeout(e):
                    raise QueryError(f"query timed out after {timeout} seconds: {message}") from e
                if e.connection_invalidated:
                    raise DatabaseConnectionError(message) from e
                raise QueryError(message) from e
            except SQLAlchemyError as e:
                raise QueryError(_driver_message(e)) from e

    def ping(self) -> None:
        """Open a connection and run a trivial query."""
        with self._connect() as conn:
            try:
                conn.exec_driver_sql("SELECT 1")
            except SQLAlchemyError as e:
                raise DatabaseConnectionError(_driver_message(e)) from e

    def _connect(self) -> Connection:
        try:
            conn = self.engine.connect()
        except SQLAlchemyError as e:
            raise DatabaseConnectionError(_driver_message(e)) from e
        # raw text goes to the driver untouched: no bind parameter parsing
        return conn.execution_options(no_parameters=True)

    @staticmethod
    def _apply_timeout(conn: Connection, timeout: int) -> None:
        # pyodbc exposes a writable per-connection query timeout
        dbapi_conn = conn.connection.dbapi_connection
        if dbapi_conn is not None and hasattr(dbapi_conn, "timeout"):
            dbapi_conn.timeout = timeout

    @staticmethod
    def _fetch(conn: Connection, query: str) -> TabularResult:
        result = conn.exec_driver_sql(query)
        if not result.returns_rows:
            return TabularResult(columns=[])

        columns = list(result.keys())
        rows = [
            {name: decode_cell(value) for name, value in zip(columns, record)}
            for record in result
        ]
        logger.debug(f"Fetched {len(rows)} rows, {len(columns)} columns")
        return TabularResult(columns=columns, rows=rows)

    @staticmethod
    def _execute_effect(conn: Connection, query: str) -> EffectResult:
        result = conn.exec_driver_sql(query)
        count = result.rowcount
        conn.commit()
        return EffectResult(rows_affected=count if count and count > 0 else 0)
