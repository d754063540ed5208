import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import QueuePool

from mssql_mcp.config import DbConfig
from mssql_mcp.sql.executor import QueryExecutor
from mssql_mcp.tools import sql_query


@pytest.fixture
def config():
    return DbConfig(user="reader", password="s3cret", database="sales", server="db.local")


# File-backed SQLite behind a QueuePool, so checked-out connections can be counted
@pytest.fixture
def engine(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'sales.db'}", poolclass=QueuePool)
    with engine.begin() as conn:
        conn.exec_driver_sql("CREATE TABLE orders (id INTEGER, customer TEXT, total REAL)")
        conn.exec_driver_sql(
            "INSERT INTO orders VALUES (1, 'acme', 9.5), (2, NULL, 12.0)"
        )
    yield engine
    engine.dispose()


@pytest.fixture
def executor(engine):
    return QueryExecutor(engine, timeout_seconds=5)


@pytest.fixture(autouse=True)
def reset_tool_handler():
    yield
    sql_query.set_handler(None)
