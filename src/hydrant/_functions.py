"""Closed registry of pure functions available to expressions.

Each function receives already-evaluated operands and the caller's
`ExecutionContext`; none of them keeps state between calls. How literal
operands are typed is declared per function through `ArgPolicy`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING, Final

from ._enums import ValueKind
from ._errors import InvalidArguments, TypeMismatch, UnsupportedFunction
from ._values import TEXT_KINDS, Value, apply_binary, apply_unary, checked

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from ._context import ExecutionContext

logger = logging.getLogger(__name__)


class ArgPolicy(Enum):
    """How a function's operands are typed."""

    SHARED = auto()
    """All operands share one numeric kind, which is also the result kind."""
    TEXT = auto()
    """Operands are string or asset values."""
    NONE = auto()
    """The function takes no operands."""


@dataclass(frozen=True, slots=True)
class FunctionSpec:
    name: str
    policy: ArgPolicy
    min_args: int
    max_args: int | None
    impl: Callable[[Sequence[Value], ExecutionContext], Value]
    result_kind: ValueKind | None = None
    """Fixed result kind, or None when the result takes the operands' kind."""

    def check_arity(self, count: int) -> None:
        if count < self.min_args or (self.max_args is not None and count > self.max_args):
            expected = (
                str(self.min_args)
                if self.min_args == self.max_args
                else f"{self.min_args}..{self.max_args if self.max_args is not None else 'n'}"
            )
            msg = f"Function '{self.name}' takes {expected} arguments, got {count}"
            raise InvalidArguments(msg)


def _fold(op: str) -> Callable[[Sequence[Value], ExecutionContext], Value]:
    def impl(args: Sequence[Value], _context: ExecutionContext) -> Value:
        result = args[0]
        for arg in args[1:]:
            result = apply_binary(op, result, arg)
        return result

    return impl


def _unary(op: str) -> Callable[[Sequence[Value], ExecutionContext], Value]:
    def impl(args: Sequence[Value], _context: ExecutionContext) -> Value:
        return apply_unary(op, args[0])

    return impl


def _text(args: Sequence[Value]) -> list[str]:
    for arg in args:
        if arg.kind not in TEXT_KINDS:
            msg = f"Expected string operands, got {arg.kind}"
            raise TypeMismatch(msg)
    return [str(arg.raw) for arg in args]


def _block_height(_args: Sequence[Value], context: ExecutionContext) -> Value:
    return checked(ValueKind.BLOCK_HEIGHT, context.block_height)


def _timestamp(_args: Sequence[Value], context: ExecutionContext) -> Value:
    return checked(ValueKind.TIMESTAMP, context.timestamp)


def _concat(args: Sequence[Value], _context: ExecutionContext) -> Value:
    return Value(ValueKind.STRING, "".join(_text(args)))


def _lowercase(args: Sequence[Value], _context: ExecutionContext) -> Value:
    return Value(ValueKind.STRING, _text(args)[0].lower())


def _uppercase(args: Sequence[Value], _context: ExecutionContext) -> Value:
    return Value(ValueKind.STRING, _text(args)[0].upper())


def _trim(args: Sequence[Value], _context: ExecutionContext) -> Value:
    return Value(ValueKind.STRING, _text(args)[0].strip())


def _length(args: Sequence[Value], _context: ExecutionContext) -> Value:
    return Value(ValueKind.UINT, len(_text(args)[0]))


FUNCTIONS: Final[dict[str, FunctionSpec]] = {
    spec.name: spec
    for spec in (
        FunctionSpec("add", ArgPolicy.SHARED, 2, None, _fold("add")),
        FunctionSpec("sub", ArgPolicy.SHARED, 2, 2, _fold("sub")),
        FunctionSpec("mul", ArgPolicy.SHARED, 2, None, _fold("mul")),
        FunctionSpec("div", ArgPolicy.SHARED, 2, 2, _fold("div")),
        FunctionSpec("mod", ArgPolicy.SHARED, 2, 2, _fold("mod")),
        FunctionSpec("min", ArgPolicy.SHARED, 1, None, _fold("min")),
        FunctionSpec("max", ArgPolicy.SHARED, 1, None, _fold("max")),
        FunctionSpec("abs", ArgPolicy.SHARED, 1, 1, _unary("abs")),
        FunctionSpec("neg", ArgPolicy.SHARED, 1, 1, _unary("neg")),
        FunctionSpec("floor", ArgPolicy.SHARED, 1, 1, _unary("floor")),
        FunctionSpec("ceil", ArgPolicy.SHARED, 1, 1, _unary("ceil")),
        FunctionSpec("sqrt", ArgPolicy.SHARED, 1, 1, _unary("sqrt")),
        FunctionSpec("block_height", ArgPolicy.NONE, 0, 0, _block_height, ValueKind.BLOCK_HEIGHT),
        FunctionSpec("timestamp", ArgPolicy.NONE, 0, 0, _timestamp, ValueKind.TIMESTAMP),
        FunctionSpec("concat", ArgPolicy.TEXT, 1, None, _concat, ValueKind.STRING),
        FunctionSpec("lowercase", ArgPolicy.TEXT, 1, 1, _lowercase, ValueKind.STRING),
        FunctionSpec("uppercase", ArgPolicy.TEXT, 1, 1, _uppercase, ValueKind.STRING),
        FunctionSpec("trim", ArgPolicy.TEXT, 1, 1, _trim, ValueKind.STRING),
        FunctionSpec("length", ArgPolicy.TEXT, 1, 1, _length, ValueKind.UINT),
    )
}


def get_function(name: str) -> FunctionSpec:
    """Look up a function by its operation tag.

    Raises:
        UnsupportedFunction: If no function is registered under `name`.

    """
    try:
        return FUNCTIONS[name]
    except KeyError:
        msg = f"Unsupported function: {name!r}"
        raise UnsupportedFunction(msg) from None
