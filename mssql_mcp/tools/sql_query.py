"""LangChain tool wrapper for read-only SQL Server queries.

Single source of truth: the MCP server and any LangChain/LangGraph agent
share the handler held here.
"""

from __future__ import annotations

from langchain_core.tools import tool

from mssql_mcp.config import DbConfig
from mssql_mcp.sql.handler import ToolInvocationHandler

TOOL_DESCRIPTION = (
    "Execute a read-only SQL query on the MSSQL server. Write operations "
    "(CREATE, ALTER, DROP, INSERT, UPDATE, DELETE, etc.) are not permitted."
)

_handler: ToolInvocationHandler | None = None


def get_handler() -> ToolInvocationHandler:
    """Return the process-wide handler, building it from the environment on first use."""
    global _handler
    if _handler is None:
        _handler = ToolInvocationHandler.from_config(DbConfig.from_env())
    return _handler


def set_handler(handler: ToolInvocationHandler | None) -> None:
    global _handler
    _handler = handler


@tool
def execute_sql(query: str) -> str:
    """Execute a read-only SQL query against the configured SQL Server database.

    Results come back as comma-separated text with a header line. Use
    "SHOW TABLES" to list the tables in the database. Errors are returned
    as text, not raised.

    Args:
        query: The SQL query to execute (read-only operations only).
    """
    return get_handler().handle(query).text
