"""Boolean evaluation of condition trees."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from hydrant._enums import ValueKind
from hydrant._errors import TypeMismatch, UnknownVariable
from hydrant._expr import And, BoolConst, BoolExpr, Compare, Exists, Expired, Literal, Not, Or
from hydrant._values import compare_values

from ._expression import evaluate_expression, evaluate_operands, literal_value

if TYPE_CHECKING:
    from hydrant._expr import Condition, Expression

    from ._expression import EvaluationEnv

logger = logging.getLogger(__name__)


def evaluate_condition(cond: Condition, env: EvaluationEnv) -> bool:  # noqa: PLR0911
    """Evaluate a condition tree to a bool.

    `and` and `or` evaluate children left to right and stop at the first
    child that decides the result, so later children may be unresolvable.

    Raises:
        UnknownVariable: If the condition names a variable that is not declared.
        UnresolvedReference: If a compared variable has no value.
        TypeMismatch: If operands have incompatible kinds.

    """
    match cond:
        case BoolConst(value):
            return value
        case And(children):
            return all(evaluate_condition(child, env) for child in children)
        case Or(children):
            return any(evaluate_condition(child, env) for child in children)
        case Not(child):
            return not evaluate_condition(child, env)
        case Compare(left, op, right, kind):
            a, b = evaluate_operands((left, right), env, kind)
            result = compare_values(a, b, op)
            logger.debug("%s %s %s -> %s", a, op.__doc__, b, result)
            return result
        case BoolExpr(expr):
            return bool(evaluate_expression(expr, env, ValueKind.BOOL).raw)
        case Exists(name):
            if name not in env.variables:
                msg = f"Unknown variable: '{name}'"
                raise UnknownVariable(msg)
            return env.variables[name].value is not None
        case Expired(deadline):
            return _expired(deadline, env)
    msg = f"Unknown condition node: {cond!r}"
    raise TypeError(msg)


def _expired(deadline: Expression, env: EvaluationEnv) -> bool:
    # A bare literal deadline is read as a timestamp.
    if isinstance(deadline, Literal):
        value = literal_value(deadline.text, ValueKind.TIMESTAMP)
    else:
        value = evaluate_expression(deadline, env)
    match value.kind:
        case ValueKind.TIMESTAMP:
            return env.context.timestamp >= value.raw  # type: ignore[operator]
        case ValueKind.BLOCK_HEIGHT:
            return env.context.block_height >= value.raw  # type: ignore[operator]
    msg = f"Expiry deadline must be a timestamp or block_height, got {value.kind}"
    raise TypeMismatch(msg)
