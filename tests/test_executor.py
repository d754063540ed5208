import datetime
import sqlite3
from types import SimpleNamespace
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import QueuePool

from mssql_mcp.config import DbConfig
from mssql_mcp.errors import DatabaseConnectionError, QueryError
from mssql_mcp.sql.executor import (
    QueryExecutor,
    build_connection_string,
    decode_cell,
)
from mssql_mcp.sql.models import EffectResult, ExecutionMode, TabularResult


def test_fetch_returns_columns_and_rows(executor):
    result = executor.execute("SELECT id, customer, total FROM orders ORDER BY id")

    assert isinstance(result, TabularResult)
    assert result.columns == ["id", "customer", "total"]
    assert result.rows == [
        {"id": 1, "customer": "acme", "total": 9.5},
        {"id": 2, "customer": None, "total": 12.0},
    ]


def test_column_order_is_database_order(executor):
    result = executor.execute("SELECT total, id FROM orders WHERE id = 1")
    assert result.columns == ["total", "id"]


def test_bytes_are_decoded_to_text(executor):
    result = executor.execute("SELECT X'6869' AS raw")
    assert result.rows == [{"raw": "hi"}]


def test_empty_result(executor):
    result = executor.execute("SELECT id FROM orders WHERE id > 100")
    assert result.columns == ["id"]
    assert result.rows == []


def test_statement_without_rows_gives_empty_table(executor):
    result = executor.execute("CREATE TABLE scratch (x INTEGER)", ExecutionMode.READ_FETCH)
    assert result == TabularResult(columns=[])


def test_effect_only_reports_rows_affected(executor):
    result = executor.execute(
        "INSERT INTO orders VALUES (3, 'globex', 1.0), (4, 'initech', 2.0)",
        ExecutionMode.EFFECT_ONLY,
    )
    assert result == EffectResult(rows_affected=2)

    count = executor.execute("SELECT COUNT(*) AS n FROM orders")
    assert count.rows == [{"n": 4}]


def test_effect_only_without_count_defaults_to_zero(executor):
    result = executor.execute("CREATE TABLE scratch (x INTEGER)", ExecutionMode.EFFECT_ONLY)
    assert result.rows_affected == 0


def test_bad_sql_raises_query_error(executor, engine):
    with pytest.raises(QueryError, match="no such table"):
        executor.execute("SELECT * FROM missing_table")
    assert engine.pool.checkedout() == 0


def test_connection_released_after_success(executor, engine):
    executor.execute("SELECT 1 AS one")
    executor.execute("SELECT 2 AS two")
    assert engine.pool.checkedout() == 0


def test_unreachable_database_raises_connection_error(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'missing' / 'dir' / 'x.db'}", poolclass=QueuePool
    )
    executor = QueryExecutor(engine)

    with pytest.raises(DatabaseConnectionError, match="^database connection error: "):
        executor.execute("SELECT 1")
    with pytest.raises(DatabaseConnectionError):
        executor.ping()


def test_ping(executor):
    executor.ping()


def test_decode_cell():
    assert decode_cell(None) is None
    assert decode_cell(True) is True
    assert decode_cell(3) == 3
    assert decode_cell(Decimal("1.10")) == Decimal("1.10")
    assert decode_cell(b"abc") == "abc"
    assert decode_cell(bytearray(b"\xff")) == "\ufffd"
    assert decode_cell(datetime.date(2024, 1, 31)) == "2024-01-31"


def test_connection_string_enables_encryption():
    config = DbConfig(user="reader", password="pw", database="sales", server="db.local,1433")
    conn_str = build_connection_string(config)

    assert conn_str == (
        "DRIVER={ODBC Driver 18 for SQL Server};SERVER=db.local,1433;UID=reader;"
        "PWD=pw;DATABASE=sales;Encrypt=yes;TrustServerCertificate=yes"
    )


def test_connection_string_braces_special_values():
    config = DbConfig(user="reader", password="a;b}c", database="sales")
    assert "PWD={a;b}}c};" in build_connection_string(config)


def _raise_on_execute(engine, monkeypatch, error, disconnect_codes):
    """Make every statement fail with ``error`` and mimic pyodbc's disconnect codes."""

    def do_execute_no_params(*args, **kwargs):
        raise error

    monkeypatch.setattr(engine.dialect, "do_execute_no_params", do_execute_no_params)
    monkeypatch.setattr(
        engine.dialect,
        "is_disconnect",
        lambda e, connection, cursor: e.args[:1] and e.args[0] in disconnect_codes,
    )


# SQLAlchemy's pyodbc dialect treats these SQLSTATEs as disconnects, HYT00 included
PYODBC_DISCONNECT_CODES = {"08S01", "08001", "HYT00"}


def test_timeout_is_query_error_naming_limit(engine, monkeypatch):
    _raise_on_execute(
        engine,
        monkeypatch,
        sqlite3.OperationalError("HYT00", "[HYT00] Query timeout expired (0) (SQLExecDirectW)"),
        PYODBC_DISCONNECT_CODES,
    )
    executor = QueryExecutor(engine, timeout_seconds=30)

    with pytest.raises(QueryError, match="^query timed out after 30 seconds: .*Query timeout expired"):
        executor.execute("SELECT 1")
    with pytest.raises(QueryError, match="after 3 seconds"):
        executor.execute("SELECT 1", timeout_seconds=3)
    assert engine.pool.checkedout() == 0


def test_dropped_connection_is_connection_error(engine, monkeypatch):
    _raise_on_execute(
        engine,
        monkeypatch,
        sqlite3.OperationalError("08S01", "[08S01] Communication link failure"),
        PYODBC_DISCONNECT_CODES,
    )
    executor = QueryExecutor(engine)

    with pytest.raises(DatabaseConnectionError, match="Communication link failure") as exc:
        executor.execute("SELECT 1")
    assert not isinstance(exc.value, QueryError)
    assert engine.pool.checkedout() == 0


def test_apply_timeout_sets_driver_timeout():
    dbapi_conn = SimpleNamespace(timeout=0)
    conn = SimpleNamespace(connection=SimpleNamespace(dbapi_connection=dbapi_conn))

    QueryExecutor._apply_timeout(conn, 45)

    assert dbapi_conn.timeout == 45


def test_explicit_zero_timeout_is_kept(executor, monkeypatch):
    applied = []
    monkeypatch.setattr(
        QueryExecutor, "_apply_timeout", staticmethod(lambda conn, timeout: applied.append(timeout))
    )

    executor.execute("SELECT 1 AS one", timeout_seconds=0)
    executor.execute("SELECT 1 AS one")

    assert applied == [0, 5]
