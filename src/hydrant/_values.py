"""Typed values with canonical text forms, comparison, and checked arithmetic.

Variable values travel between entry points as text. This module is the only
place that turns text into typed values and back, so every other component
sees the same canonical forms:

- integer kinds: base-10 digits, with a leading '-' only for `int`
- `decimal`: fixed point without exponent and without trailing zeros
- `bool`: 'true' or 'false'
- `string` and `asset`: the text itself

Decimal arithmetic keeps 18 fractional digits and always rounds toward zero.
Integer and decimal arithmetic never wraps: leaving a kind's range raises
`ArithmeticOverflow` or `ArithmeticUnderflow`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import ROUND_CEILING, ROUND_DOWN, ROUND_FLOOR, Context, Decimal, InvalidOperation
from math import isqrt
from typing import Final

from ._enums import CompareOp, ValueKind
from ._errors import (
    ArithmeticOverflow,
    ArithmeticUnderflow,
    DivisionByZero,
    InvalidArguments,
    ParseError,
    TypeMismatch,
)

DECIMAL_PLACES: Final = 18

INTEGER_BOUNDS: Final[dict[ValueKind, tuple[int, int]]] = {
    ValueKind.UINT: (0, 2**256 - 1),
    ValueKind.INT: (-(2**127), 2**127 - 1),
    ValueKind.AMOUNT: (0, 2**128 - 1),
    ValueKind.TIMESTAMP: (0, 2**64 - 1),
    ValueKind.BLOCK_HEIGHT: (0, 2**64 - 1),
}

NUMERIC_KINDS: Final = frozenset({*INTEGER_BOUNDS, ValueKind.DECIMAL})
TEXT_KINDS: Final = frozenset({ValueKind.STRING, ValueKind.ASSET})

_QUANTUM: Final = Decimal(1).scaleb(-DECIMAL_PLACES)
_DECIMAL_MAX: Final = Decimal(2**256 - 1).scaleb(-DECIMAL_PLACES)
_DECIMAL_CONTEXT: Final = Context(prec=200, rounding=ROUND_DOWN)

_UNSIGNED_RE: Final = re.compile(r"[0-9]+")
_SIGNED_RE: Final = re.compile(r"-?[0-9]+")
_DECIMAL_RE: Final = re.compile(r"[0-9]+(?:\.([0-9]+))?")


@dataclass(frozen=True, slots=True)
class Value:
    """A typed value.

    Attributes:
        kind: The value's kind.
        raw: Python payload: `int` for integer kinds, `Decimal` for decimal,
            `bool` for bool, and `str` for string and asset.

    """

    kind: ValueKind
    raw: int | Decimal | bool | str

    def __str__(self) -> str:
        return format_value(self)


# =============================================================================
# Text forms
# =============================================================================


def parse_value(text: str, kind: ValueKind) -> Value:  # noqa: C901
    """Parse canonical text into a value of the given kind.

    Raises:
        ParseError: If the text is not a valid value of `kind`.

    """
    if not isinstance(text, str):
        msg = f"Expected text for {kind} value, got {type(text).__name__}"
        raise ParseError(msg)

    match kind:
        case ValueKind.STRING:
            return Value(kind, text)
        case ValueKind.ASSET:
            if not text or any(c.isspace() for c in text):
                msg = f"Invalid asset reference: {text!r}"
                raise ParseError(msg)
            return Value(kind, text)
        case ValueKind.BOOL:
            if text == "true":
                return Value(kind, True)
            if text == "false":
                return Value(kind, False)
            msg = f"Invalid bool: {text!r} (expected 'true' or 'false')"
            raise ParseError(msg)
        case ValueKind.DECIMAL:
            return Value(kind, _parse_decimal(text))
        case _ if kind in INTEGER_BOUNDS:
            pattern = _SIGNED_RE if kind is ValueKind.INT else _UNSIGNED_RE
            if pattern.fullmatch(text) is None:
                msg = f"Invalid {kind}: {text!r}"
                raise ParseError(msg)
            number = int(text)
            low, high = INTEGER_BOUNDS[kind]
            if not low <= number <= high:
                msg = f"{kind} out of range: {text}"
                raise ParseError(msg)
            return Value(kind, number)
        case _:
            msg = f"Unknown value kind: {kind!r}"
            raise ParseError(msg)


def _parse_decimal(text: str) -> Decimal:
    match = _DECIMAL_RE.fullmatch(text)
    if match is None:
        msg = f"Invalid decimal: {text!r}"
        raise ParseError(msg)
    fraction = match.group(1)
    if fraction is not None and len(fraction) > DECIMAL_PLACES:
        msg = f"Decimal has more than {DECIMAL_PLACES} fractional digits: {text}"
        raise ParseError(msg)
    number = Decimal(text)
    if number > _DECIMAL_MAX:
        msg = f"decimal out of range: {text}"
        raise ParseError(msg)
    return number


def format_value(value: Value) -> str:
    """Render a value in its canonical text form."""
    match value.raw:
        case bool(flag):
            return "true" if flag else "false"
        case Decimal() as number:
            return format(number.normalize(_DECIMAL_CONTEXT), "f")
        case int(number):
            return str(number)
        case str(text):
            return text
        case _:
            msg = f"Unsupported value payload: {type(value.raw).__name__}"
            raise TypeError(msg)


def infer_literal(text: str) -> Value:
    """Parse a literal that has no declared kind.

    'true'/'false' become bool, plain digits uint, signed digits int, fixed
    point decimal; anything else is kept as a string.
    """
    for kind in (ValueKind.BOOL, ValueKind.UINT, ValueKind.INT, ValueKind.DECIMAL):
        try:
            return parse_value(text, kind)
        except ParseError:
            continue
    return Value(ValueKind.STRING, text)


# =============================================================================
# Comparison
# =============================================================================


def compare_values(left: Value, right: Value, op: CompareOp) -> bool:  # noqa: PLR0911
    """Compare two values of the same kind.

    Raises:
        TypeMismatch: If the kinds differ or `op` does not apply to the kind.

    """
    if left.kind is not right.kind:
        msg = f"Cannot compare {left.kind} with {right.kind}"
        raise TypeMismatch(msg)

    match op:
        case CompareOp.EQ:
            return left.raw == right.raw
        case CompareOp.NEQ:
            return left.raw != right.raw
        case CompareOp.LT | CompareOp.LTE | CompareOp.GT | CompareOp.GTE:
            if left.kind not in NUMERIC_KINDS:
                msg = f"Operator '{op}' is not defined for {left.kind} values"
                raise TypeMismatch(msg)
            a, b = left.raw, right.raw
            if op is CompareOp.LT:
                return a < b  # type: ignore[operator]
            if op is CompareOp.LTE:
                return a <= b  # type: ignore[operator]
            if op is CompareOp.GT:
                return a > b  # type: ignore[operator]
            return a >= b  # type: ignore[operator]
        case CompareOp.STARTS_WITH | CompareOp.ENDS_WITH | CompareOp.CONTAINS:
            if left.kind not in TEXT_KINDS:
                msg = f"Operator '{op}' is not defined for {left.kind} values"
                raise TypeMismatch(msg)
            text, needle = str(left.raw), str(right.raw)
            if op is CompareOp.STARTS_WITH:
                return text.startswith(needle)
            if op is CompareOp.ENDS_WITH:
                return text.endswith(needle)
            return needle in text
    msg = f"Unknown comparison operator: {op!r}"
    raise TypeMismatch(msg)


# =============================================================================
# Arithmetic
# =============================================================================


def checked(kind: ValueKind, number: int | Decimal) -> Value:
    """Wrap an arithmetic result, failing if it leaves the kind's range."""
    if kind is ValueKind.DECIMAL:
        number = Decimal(number)
        if number < 0:
            msg = f"decimal underflow: {number}"
            raise ArithmeticUnderflow(msg)
        if number > _DECIMAL_MAX:
            msg = "decimal overflow"
            raise ArithmeticOverflow(msg)
        return Value(kind, number.quantize(_QUANTUM, rounding=ROUND_DOWN, context=_DECIMAL_CONTEXT))

    low, high = INTEGER_BOUNDS[kind]
    if number < low:
        msg = f"{kind} underflow: {number}"
        raise ArithmeticUnderflow(msg)
    if number > high:
        msg = f"{kind} overflow"
        raise ArithmeticOverflow(msg)
    return Value(kind, int(number))


def _require_numeric(op: str, *values: Value) -> ValueKind:
    kind = values[0].kind
    for value in values:
        if value.kind is not kind:
            msg = f"'{op}' operands must share a kind, got {values[0].kind} and {value.kind}"
            raise TypeMismatch(msg)
    if kind not in NUMERIC_KINDS:
        msg = f"'{op}' is not defined for {kind} values"
        raise TypeMismatch(msg)
    return kind


def _truncating_divmod(a: int, b: int) -> tuple[int, int]:
    """Integer division rounding toward zero; the remainder takes the dividend's sign."""
    quotient = abs(a) // abs(b)
    if (a < 0) != (b < 0):
        quotient = -quotient
    return quotient, a - b * quotient


def apply_binary(op: str, left: Value, right: Value) -> Value:  # noqa: C901, PLR0911
    """Apply a binary arithmetic operator.

    Supported operators are add, sub, mul, div, mod, min and max.

    Raises:
        TypeMismatch: If the operands are not numeric values of one kind.
        DivisionByZero: If `div` or `mod` is given a zero divisor.
        ArithmeticOverflow: If the result exceeds the kind's maximum.
        ArithmeticUnderflow: If the result is below the kind's minimum.

    """
    kind = _require_numeric(op, left, right)
    a, b = left.raw, right.raw
    ctx = _DECIMAL_CONTEXT

    match op:
        case "add":
            return checked(kind, ctx.add(a, b) if kind is ValueKind.DECIMAL else a + b)  # type: ignore[operator]
        case "sub":
            return checked(kind, ctx.subtract(a, b) if kind is ValueKind.DECIMAL else a - b)  # type: ignore[operator]
        case "mul":
            return checked(kind, ctx.multiply(a, b) if kind is ValueKind.DECIMAL else a * b)  # type: ignore[operator]
        case "div" | "mod":
            if b == 0:
                msg = f"'{op}' by zero"
                raise DivisionByZero(msg)
            if kind is ValueKind.DECIMAL:
                try:
                    result = ctx.divide(a, b) if op == "div" else ctx.remainder(a, b)
                except InvalidOperation as e:
                    raise ArithmeticOverflow(str(e)) from e
                return checked(kind, result)
            quotient, remainder = _truncating_divmod(a, b)  # type: ignore[arg-type]
            return checked(kind, quotient if op == "div" else remainder)
        case "min":
            return left if a <= b else right  # type: ignore[operator]
        case "max":
            return left if a >= b else right  # type: ignore[operator]
    msg = f"Unknown arithmetic operator: {op!r}"
    raise InvalidArguments(msg)


def apply_unary(op: str, value: Value) -> Value:  # noqa: C901, PLR0911
    """Apply a unary numeric operator: abs, neg, floor, ceil or sqrt."""
    kind = _require_numeric(op, value)
    raw = value.raw

    match op:
        case "abs":
            return checked(kind, abs(raw))  # type: ignore[arg-type]
        case "neg":
            return checked(kind, -raw)  # type: ignore[operator]
        case "floor" | "ceil":
            if kind is not ValueKind.DECIMAL:
                return value
            rounding = ROUND_FLOOR if op == "floor" else ROUND_CEILING
            return checked(kind, raw.to_integral_value(rounding=rounding, context=_DECIMAL_CONTEXT))  # type: ignore[union-attr]
        case "sqrt":
            if raw < 0:  # type: ignore[operator]
                msg = "sqrt of a negative number"
                raise InvalidArguments(msg)
            if kind is ValueKind.DECIMAL:
                return checked(kind, raw.sqrt(_DECIMAL_CONTEXT))  # type: ignore[union-attr]
            return checked(kind, isqrt(raw))  # type: ignore[arg-type]
    msg = f"Unknown unary operator: {op!r}"
    raise InvalidArguments(msg)
