"""MSSQL MCP Server - thin wrapper around mssql_mcp/tools/sql_query.py.

Run standalone:  python -m mssql_mcp.mcp_servers.mssql_server
                 (or the ``mssql-mcp`` console script)
External use:    Claude Desktop, Cursor, or any MCP client via stdio
"""

from __future__ import annotations

import asyncio
import os
import sys

from loguru import logger
from mcp.server.fastmcp import FastMCP
from mcp.types import CallToolResult, TextContent

from mssql_mcp.config import DbConfig
from mssql_mcp.errors import ConfigurationError, DatabaseConnectionError
from mssql_mcp.sql.handler import ToolInvocationHandler
from mssql_mcp.tools.sql_query import TOOL_DESCRIPTION, get_handler, set_handler

mcp = FastMCP("MSSQL MCP Server")


@mcp.tool(description=TOOL_DESCRIPTION)
async def execute_sql(query: str) -> CallToolResult:
    """Run one query. The response text goes back unchanged, flagged with isError on failure."""
    handler = get_handler()
    # Database calls block; keep them off the event loop so requests overlap.
    loop = asyncio.get_event_loop()
    response = await loop.run_in_executor(None, handler.handle, query)
    return CallToolResult(
        content=[TextContent(type="text", text=response.text)],
        isError=response.is_error,
    )


def configure_logging() -> None:
    # stdout carries the MCP protocol, so logs go to stderr
    logger.remove()
    logger.add(sys.stderr, level=os.getenv("LOG_LEVEL", "INFO"))


def main() -> None:
    configure_logging()

    try:
        config = DbConfig.from_env()
    except ConfigurationError as e:
        logger.critical(f"Configuration error: {e}")
        sys.exit(1)
    logger.info(f"Database config: {config.describe()}")

    handler = ToolInvocationHandler.from_config(config)
    try:
        handler.executor.ping()
        logger.info("Database connection verified")
    except DatabaseConnectionError as e:
        logger.warning(f"Database not reachable at startup, each query will connect on demand: {e}")
    set_handler(handler)

    logger.info("Starting MSSQL MCP server...")
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
