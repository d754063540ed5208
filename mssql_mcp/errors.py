"""Error taxonomy for the MSSQL query tool.

Only ConfigurationError is fatal, and only at startup. Everything else is
raised per request and turned into an error response by the handler.
"""

from __future__ import annotations


class MssqlMcpError(Exception):
    """Base class for every error this package raises on purpose."""


class ConfigurationError(MssqlMcpError):
    """Required connection settings are missing or invalid."""


class DatabaseConnectionError(MssqlMcpError):
    """The database could not be reached or rejected the credentials."""

    def __init__(self, message: str):
        super().__init__(f"database connection error: {message}")


class QueryError(MssqlMcpError):
    """The database rejected the statement, or it ran past the timeout."""


class PolicyDeniedError(MssqlMcpError):
    """The statement was classified as a write operation."""


class FormatError(MssqlMcpError):
    """A result did not have a shape the formatter understands."""
