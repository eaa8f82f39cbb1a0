"""Evaluation of expression trees against resolved variables."""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from hydrant._enums import Encoding, ValueKind
from hydrant._errors import ParseError, TypeConversionFailed, TypeMismatch, UnknownVariable, UnresolvedReference
from hydrant._expr import FnCall, Literal, VarRef
from hydrant._functions import ArgPolicy, get_function
from hydrant._settings import DEFAULT_SETTINGS, EngineSettings
from hydrant._values import Value, infer_literal, parse_value

if TYPE_CHECKING:
    from collections.abc import Mapping

    from hydrant._context import ExecutionContext
    from hydrant._expr import Expression
    from hydrant._models import Variable

logger = logging.getLogger(__name__)


def encode_text(text: str, encoding: Encoding) -> str:
    """Encode a variable's canonical text for variables declared with `encode=true`."""
    data = text.encode("utf-8")
    match encoding:
        case Encoding.BASE64:
            return base64.b64encode(data).decode("ascii")
        case Encoding.HEX:
            return data.hex()
    msg = f"Unknown encoding: {encoding!r}"
    raise ValueError(msg)


@dataclass(frozen=True, slots=True)
class EvaluationEnv:
    """Everything an expression may read.

    Attributes:
        variables: Variables in scope, by name, with their current values.
        context: Ambient chain context.
        settings: Engine settings.
        apply_encoding: When True, references to variables declared with
            `encode=true` evaluate to their encoded text (as a string value)
            instead of their raw typed value.

    """

    variables: Mapping[str, Variable]
    context: ExecutionContext
    settings: EngineSettings = DEFAULT_SETTINGS
    apply_encoding: bool = False


def variable_value(name: str, env: EvaluationEnv) -> Value:
    """Read the current typed value of a variable.

    Raises:
        UnknownVariable: If no variable named `name` is in scope.
        UnresolvedReference: If the variable has no value yet.

    """
    variable = env.variables.get(name)
    if variable is None:
        msg = f"Unknown variable: '{name}'"
        raise UnknownVariable(msg)
    if variable.value is None:
        msg = f"Variable '{name}' has no resolved value"
        raise UnresolvedReference(msg)
    if env.apply_encoding and variable.encode:
        return Value(ValueKind.STRING, encode_text(variable.value, env.settings.encoding))
    try:
        return parse_value(variable.value, variable.kind)
    except ParseError as e:
        msg = f"Stored value of '{name}' is not a valid {variable.kind}: {e}"
        raise TypeConversionFailed(msg) from e


def literal_value(text: str, kind: ValueKind | None) -> Value:
    if kind is None:
        return infer_literal(text)
    try:
        return parse_value(text, kind)
    except ParseError as e:
        msg = f"Literal {text!r} is not a valid {kind}"
        raise TypeMismatch(msg) from e


def _expect(value: Value, expected: ValueKind | None) -> Value:
    if expected is not None and value.kind is not expected:
        msg = f"Expected a {expected} value, got {value.kind}"
        raise TypeMismatch(msg)
    return value


def evaluate_expression(expr: Expression, env: EvaluationEnv, expected: ValueKind | None = None) -> Value:
    """Evaluate an expression tree.

    Literals take the `expected` kind when one is given. Otherwise a literal
    next to typed operands takes their kind, and a literal on its own is
    inferred from its text.

    Raises:
        TypeMismatch: If an operand or the result does not have the required kind.
        UnknownVariable: If a reference names a variable not in scope.
        UnresolvedReference: If a referenced variable has no value.
        UnsupportedFunction: If a function tag is not registered.

    """
    match expr:
        case Literal(text):
            return literal_value(text, expected)
        case VarRef(name):
            return _expect(variable_value(name, env), expected)
        case FnCall(op, args):
            return _expect(_call(op, args, env, expected), expected)
    msg = f"Unknown expression node: {expr!r}"
    raise TypeError(msg)


def evaluate_operands(
    operands: tuple[Expression, ...],
    env: EvaluationEnv,
    kind: ValueKind | None,
) -> list[Value]:
    """Evaluate operands that must share a kind.

    Non-literal operands are evaluated first, in order; the first of them
    fixes the kind used for the literals when `kind` is not given.
    """
    values: dict[int, Value] = {}
    for i, operand in enumerate(operands):
        if not isinstance(operand, Literal):
            values[i] = evaluate_expression(operand, env, kind)
            if kind is None:
                kind = values[i].kind
    for i, operand in enumerate(operands):
        if isinstance(operand, Literal):
            values[i] = literal_value(operand.text, kind)
    return [values[i] for i in range(len(operands))]


def _call(op: str, args: tuple[Expression, ...], env: EvaluationEnv, expected: ValueKind | None) -> Value:
    spec = get_function(op)
    spec.check_arity(len(args))

    match spec.policy:
        case ArgPolicy.NONE:
            values: list[Value] = []
        case ArgPolicy.TEXT:
            values = [
                literal_value(arg.text, ValueKind.STRING) if isinstance(arg, Literal) else evaluate_expression(arg, env)
                for arg in args
            ]
        case ArgPolicy.SHARED:
            values = evaluate_operands(args, env, expected)

    result = spec.impl(values, env.context)
    logger.debug("%s(%s) -> %s", op, ", ".join(str(v) for v in values), result)
    return result
