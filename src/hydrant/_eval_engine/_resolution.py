"""Resolution of variable values from their declared sources."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from hydrant._errors import MissingExternalInput, ParseError, QueryFailed, TypeConversionFailed
from hydrant._expr import expression_from_json
from hydrant._models import ExternalVariable, QueryVariable, StaticVariable
from hydrant._query import evaluate_query_expression
from hydrant._settings import DEFAULT_SETTINGS, EngineSettings
from hydrant._values import Value, parse_value

from ._expression import EvaluationEnv, evaluate_expression

if TYPE_CHECKING:
    from collections.abc import Mapping

    from hydrant._context import ExecutionContext
    from hydrant._models import Variable
    from hydrant._query import QueryCapability

logger = logging.getLogger(__name__)


def needs_resolution(variable: Variable) -> bool:
    """A variable is (re)resolved when it has no cached value or asks to be reinitialized."""
    return variable.value is None or variable.reinitialize


def _parse_text(variable: Variable, text: str, origin: str) -> Value:
    try:
        return parse_value(text, variable.kind)
    except ParseError as e:
        msg = f"{origin} for '{variable.name}' is not a valid {variable.kind}: {e}"
        raise TypeConversionFailed(msg) from e


def resolve_variable(
    variable: Variable,
    scope: Mapping[str, Variable],
    external_inputs: Mapping[str, str],
    *,
    context: ExecutionContext,
    queries: QueryCapability | None,
    settings: EngineSettings = DEFAULT_SETTINGS,
) -> Value:
    """Compute a variable's value from its source, ignoring any cached value.

    Args:
        variable: The variable to resolve.
        scope: Variables declared before `variable`, already resolved.
        external_inputs: Caller-supplied values for external variables.
        context: Ambient chain context.
        queries: Capability answering state queries.
        settings: Engine settings.

    Raises:
        MissingExternalInput: If an external variable has no input.
        QueryFailed: If a query cannot be answered or no capability is given.
        SelectorNotFound: If a query selector does not match the response.
        TypeConversionFailed: If the obtained text is not valid for the kind.
        EvaluationError: If an init expression fails to evaluate.

    """
    match variable:
        case StaticVariable(init_fn=str(text)):
            return _parse_text(variable, text, "Initial value")
        case StaticVariable(init_fn=dict(data)):
            expr = expression_from_json(data, settings)
            env = EvaluationEnv(variables=scope, context=context, settings=settings)
            return evaluate_expression(expr, env, variable.kind)
        case ExternalVariable():
            key = variable.input_key
            if key not in external_inputs:
                msg = f"No external input '{key}' for variable '{variable.name}'"
                raise MissingExternalInput(msg)
            return _parse_text(variable, external_inputs[key], "External input")
        case QueryVariable(init_fn=expr):
            if queries is None:
                msg = f"Variable '{variable.name}' needs a query capability"
                raise QueryFailed(msg)
            return evaluate_query_expression(expr, variable.kind, queries)
    msg = f"Unknown variable source: {variable!r}"
    raise TypeError(msg)


def hydrate_variables(
    variables: list[Variable],
    external_inputs: Mapping[str, str] | None = None,
    *,
    context: ExecutionContext,
    queries: QueryCapability | None = None,
    settings: EngineSettings = DEFAULT_SETTINGS,
) -> list[Variable]:
    """Resolve variables in declaration order.

    A variable keeps its cached value unless it has none or is marked
    `reinitialize`. Each resolved variable is visible to the expressions of
    the variables declared after it, and only to those.

    Returns:
        New variables carrying canonical value text, in the input order.

    """
    inputs = external_inputs or {}
    scope: dict[str, Variable] = {}
    resolved: list[Variable] = []
    for variable in variables:
        if needs_resolution(variable):
            value = resolve_variable(
                variable,
                scope,
                inputs,
                context=context,
                queries=queries,
                settings=settings,
            )
            variable = variable.with_value(str(value))  # noqa: PLW2901
            logger.debug("Resolved %s = %s", variable.name, variable.value)
        scope[variable.name] = variable
        resolved.append(variable)
    return resolved
