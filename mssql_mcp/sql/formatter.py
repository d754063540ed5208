"""Render normalized results as plain text.

Tables come out as comma-separated lines with no quoting, so values that
contain commas or newlines are not escaped.
"""

from __future__ import annotations

import math
import re
from decimal import Decimal
from typing import Any

from mssql_mcp.errors import FormatError
from mssql_mcp.sql.models import Cell, EffectResult, TabularResult

NO_RESULTS = "No results found"

_SHORT_EXPONENT_RE = re.compile(r"e([+-])(\d)$")


def format_float(value: float) -> str:
    """Shortest round-trip digits, in exponent form below 1e-4 or from 1e6 up.

    12.0 renders as "12", 1234567.0 as "1.234567e+06", 0.00001 as "1e-05".
    """
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"

    digits = Decimal(repr(value)).normalize()
    exponent = digits.adjusted()
    if exponent < -4 or exponent >= 6:
        return _SHORT_EXPONENT_RE.sub(r"e\g<1>0\2", f"{digits:e}")
    return f"{digits:f}"


def format_cell(value: Cell) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return format_float(value)
    return str(value)


def format_result(result: Any) -> str:
    if isinstance(result, EffectResult):
        return f"Query executed successfully. Rows affected: {result.rows_affected}"
    if not isinstance(result, TabularResult):
        raise FormatError("unknown result format")
    if not result.rows:
        return NO_RESULTS

    lines = [",".join(result.columns)]
    for row in result.rows:
        try:
            lines.append(",".join(format_cell(row[col]) for col in result.columns))
        except KeyError as e:
            raise FormatError(f"row is missing column {e.args[0]!r}") from e
    return "\n".join(lines) + "\n"
