"""Per-request orchestration for the execute_sql tool.

classify -> (SHOW TABLES shortcut) -> execute -> format -> respond.
``handle`` never raises: every failure comes back as an error ToolResponse.
"""

from __future__ import annotations

import re

from loguru import logger

from mssql_mcp.config import DbConfig
from mssql_mcp.errors import FormatError, MssqlMcpError, PolicyDeniedError
from mssql_mcp.sql.classifier import ensure_allowed
from mssql_mcp.sql.executor import QueryExecutor
from mssql_mcp.sql.formatter import format_cell, format_result
from mssql_mcp.sql.models import ExecutionMode, TabularResult, ToolResponse

SHOW_TABLES_RE = re.compile(r"\s*SHOW\s+TABLES\s*", re.IGNORECASE)
SHOW_TABLES_QUERY = (
    "SELECT TABLE_NAME FROM INFORMATION_SCHEMA.TABLES WHERE TABLE_TYPE = 'BASE TABLE';"
)

_LOG_QUERY_MAX = 100


def truncate(text: str, max_len: int = _LOG_QUERY_MAX) -> str:
    if len(text) <= max_len:
        return text
    return text[:max_len] + "..."


def is_show_tables(query: str) -> bool:
    return SHOW_TABLES_RE.fullmatch(query) is not None


class ToolInvocationHandler:
    """Turns one query string into one ToolResponse."""

    def __init__(self, executor: QueryExecutor, database_name: str):
        self.executor = executor
        self.database_name = database_name

    @classmethod
    def from_config(cls, config: DbConfig) -> "ToolInvocationHandler":
        return cls(QueryExecutor.from_config(config), config.database)

    def handle(self, query: str) -> ToolResponse:
        if not query or not query.strip():
            return ToolResponse.error("Query is required")

        logger.info(f"Executing SQL query: {query}")

        try:
            ensure_allowed(query)
        except PolicyDeniedError as e:
            logger.warning(f"Attempted write operation denied: {truncate(query)}")
            return ToolResponse.error(str(e))

        try:
            if is_show_tables(query):
                return self._show_tables()
            return self._run(query)
        except Exception as e:
            logger.exception(f"Unexpected error handling '{truncate(query)}'")
            return ToolResponse.error(f"Unexpected error: {e}")

    def _run(self, query: str) -> ToolResponse:
        try:
            result = self.executor.execute(query, ExecutionMode.READ_FETCH)
        except MssqlMcpError as e:
            logger.error(f"Error executing SQL '{truncate(query)}': {e}")
            return ToolResponse.error(f"Error executing query: {e}")

        try:
            text = format_result(result)
        except FormatError as e:
            logger.error(f"Error formatting results: {e}")
            return ToolResponse.error(f"Error formatting results: {e}")
        return ToolResponse.ok(text)

    def _show_tables(self) -> ToolResponse:
        try:
            result = self.executor.execute(SHOW_TABLES_QUERY, ExecutionMode.READ_FETCH)
        except MssqlMcpError as e:
            logger.error(f"Error listing tables: {e}")
            return ToolResponse.error(f"Error executing query: {e}")

        if not isinstance(result, TabularResult):
            return ToolResponse.error("Error formatting results: unknown result format")

        lines = [f"Tables_in_{self.database_name}"]
        lines.extend(format_cell(row.get("TABLE_NAME")) for row in result.rows)
        return ToolResponse.ok("\n".join(lines) + "\n")
