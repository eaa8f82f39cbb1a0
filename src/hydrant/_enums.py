"""String enums shared across the engine, each member carrying a docstring."""

from __future__ import annotations

from enum import StrEnum
from typing import Self


class StrEnumWithDoc(StrEnum):
    """String enum whose members accept a docstring as a second value."""

    def __new__(cls, value: str, doc: str = "") -> Self:
        obj = str.__new__(cls, value)
        obj._value_ = value
        obj.__doc__ = doc
        return obj


class ValueKind(StrEnumWithDoc):
    """Type of a variable value."""

    STRING = "string", "Arbitrary text."
    UINT = "uint", "Unsigned 256-bit integer."
    INT = "int", "Signed 128-bit integer."
    DECIMAL = "decimal", "Unsigned fixed-point number with 18 fractional digits."
    BOOL = "bool", "Boolean, written as 'true' or 'false'."
    AMOUNT = "amount", "Unsigned 128-bit token amount."
    ASSET = "asset", "Asset reference such as a denom or contract address."
    TIMESTAMP = "timestamp", "Seconds since the Unix epoch."
    BLOCK_HEIGHT = "block_height", "Chain block height."


class CompareOp(StrEnumWithDoc):
    """Relational operator of a comparison node."""

    LT = "lt", "<"
    LTE = "lte", "<="
    GT = "gt", ">"
    GTE = "gte", ">="
    EQ = "eq", "=="
    NEQ = "neq", "!="
    STARTS_WITH = "starts_with", "String prefix test."
    ENDS_WITH = "ends_with", "String suffix test."
    CONTAINS = "contains", "Substring test."

    @classmethod
    def from_symbol(cls, symbol: str) -> CompareOp:
        for op in cls:
            if op.__doc__ == symbol or op.value == symbol:
                return op
        msg = f"Unknown comparison operator: {symbol!r}"
        raise ValueError(msg)


class JobStatus(StrEnumWithDoc):
    """Lifecycle status of a job, as reported by the job queue."""

    PENDING = "pending", "Waiting for its condition to hold."
    EXECUTED = "executed", "Instructions ran successfully."
    FAILED = "failed", "Instructions ran and failed."
    CANCELLED = "cancelled", "Cancelled by its owner."
    EVICTED = "evicted", "Evicted from the queue."


class Encoding(StrEnumWithDoc):
    """Text encoding applied to variables declared with `encode=true`."""

    BASE64 = "base64", "Standard base64 of the UTF-8 text."
    HEX = "hex", "Lowercase hex of the UTF-8 text."
