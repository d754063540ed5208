"""Lexical write-statement guard.

This is a heuristic, not a security boundary. A statement is denied when,
after trimming and upper-casing, it starts with a mutating verb or contains
one with a single space on each side. Known gaps, kept on purpose so that
accept/reject decisions stay stable:

- verbs next to newlines, tabs, parentheses or semicolons are not caught
  mid-statement (``SELECT 1;\\nDROP TABLE t`` is allowed)
- comments are not stripped
- verbs inside string literals or identifiers surrounded by spaces are
  denied (false positives are the safe direction)
- the prefix test is a plain prefix, so ``UPDATES ...`` at the start is denied

Run the server with a read-only database login.
"""

from __future__ import annotations

from mssql_mcp.errors import PolicyDeniedError

WRITE_OPERATIONS = (
    "CREATE", "ALTER", "DROP", "INSERT", "UPDATE", "DELETE",
    "TRUNCATE", "MERGE", "UPSERT", "GRANT", "REVOKE", "EXEC", "EXECUTE",
)

DENIED_MESSAGE = (
    "Write operations (CREATE, ALTER, DROP, INSERT, UPDATE, DELETE, etc.) "
    "are not permitted for security reasons."
)


def is_write_operation(query: str) -> bool:
    """Return True if ``query`` looks like it modifies data or schema."""
    normalized = query.strip().upper()
    for operation in WRITE_OPERATIONS:
        if normalized.startswith(operation) or f" {operation} " in normalized:
            return True
    return False


def classify(query: str) -> bool:
    """True means the query may be executed."""
    return not is_write_operation(query)


def ensure_allowed(query: str) -> None:
    """Raise PolicyDeniedError if ``query`` is classified as a write."""
    if is_write_operation(query):
        raise PolicyDeniedError(DENIED_MESSAGE)
