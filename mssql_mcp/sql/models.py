"""Normalized, driver-independent result types."""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Union

from pydantic import BaseModel, model_validator

# A single result cell. Bytes and other driver types are converted to str
# before they get here.
Cell = Union[None, bool, int, float, Decimal, str]


class ExecutionMode(str, Enum):
    READ_FETCH = "read_fetch"
    EFFECT_ONLY = "effect_only"


class TabularResult(BaseModel):
    """Columns in database order plus rows keyed by column name."""

    columns: list[str]
    rows: list[dict[str, Cell]] = []

    @model_validator(mode="after")
    def _rows_match_columns(self) -> "TabularResult":
        expected = set(self.columns)
        for i, row in enumerate(self.rows):
            if set(row) != expected:
                raise ValueError(f"row {i} does not match the declared columns")
        return self


class EffectResult(BaseModel):
    """Row count reported by a statement that returns no rows."""

    rows_affected: int = 0


QueryResult = Union[TabularResult, EffectResult]


class ToolResponse(BaseModel):
    """What the transport sends back: text plus a success/failure flag."""

    text: str
    is_error: bool = False

    @classmethod
    def ok(cls, text: str) -> "ToolResponse":
        return cls(text=text)

    @classmethod
    def error(cls, text: str) -> "ToolResponse":
        return cls(text=text, is_error=True)
