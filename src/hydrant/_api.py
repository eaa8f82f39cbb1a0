"""Entry points of the engine.

Every entry point is a pure function over text: variables arrive as their
serialized JSON array and leave the same way, so the caller decides where
resolved values live between calls.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from ._errors import (
    EvaluationError,
    InvalidCondition,
    InvalidSelector,
    InvalidVariables,
    MalformedExpression,
    ParseError,
)
from ._eval_engine import (
    EvaluationEnv,
    apply_update_functions,
    evaluate_condition,
    hydrate_variables,
)
from ._expr import (
    FnCall,
    condition_references,
    expression_from_json,
    expression_references,
    iter_condition_expressions,
    iter_expression_nodes,
    parse_condition,
)
from ._functions import get_function
from ._models import QueryVariable, StaticVariable, dump_variables, load_variables
from ._path import select
from ._query import parse_selector
from ._settings import DEFAULT_SETTINGS, EngineSettings
from ._templates import check_instructions, check_references, scan_placeholders, substitute
from ._values import parse_value

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from ._context import ExecutionContext
    from ._enums import JobStatus
    from ._expr import Condition, Expression
    from ._models import Job, Variable
    from ._query import QueryCapability

logger = logging.getLogger(__name__)


# =============================================================================
# Validation
# =============================================================================


def _check_calls(exprs: Iterable[Expression]) -> None:
    for expr in exprs:
        for node in iter_expression_nodes(expr):
            if isinstance(node, FnCall):
                get_function(node.op).check_arity(len(node.args))


def load_condition(text: str, settings: EngineSettings = DEFAULT_SETTINGS) -> Condition:
    """Parse condition text and check that every function call is known.

    Raises:
        InvalidCondition: If the text is malformed, too deep, or calls an
            unknown function or a function with the wrong number of arguments.

    """
    try:
        cond = parse_condition(text, settings)
        _check_calls(iter_condition_expressions(cond))
    except (MalformedExpression, EvaluationError) as e:
        msg = f"Invalid condition: {e}"
        raise InvalidCondition(msg) from e
    return cond


def _check_expression(data: Any, visible: set[str], settings: EngineSettings, what: str) -> None:
    expr = expression_from_json(data, settings)
    _check_calls([expr])
    unknown = sorted(expression_references(expr) - visible)
    if unknown:
        msg = f"{what} references variables not in scope: {', '.join(unknown)}"
        raise InvalidVariables(msg)


def check_variables(variables: list[Variable], settings: EngineSettings = DEFAULT_SETTINGS) -> None:
    """Check each variable's value text, initializer and update expressions.

    An initializer expression may only reference variables declared before
    it; update expressions may reference any declared variable, itself
    included.

    Raises:
        InvalidVariables: On the first variable that fails a check.

    """
    declared = {variable.name for variable in variables}
    earlier: set[str] = set()
    for variable in variables:
        try:
            if variable.value is not None:
                parse_value(variable.value, variable.kind)
            match variable:
                case StaticVariable(init_fn=str(text)):
                    parse_value(text, variable.kind)
                case StaticVariable(init_fn=dict(data)):
                    _check_expression(data, earlier, settings, "init_fn")
                case QueryVariable(init_fn=query):
                    parse_selector(query.selector)
            if variable.update_fn is not None:
                for branch in ("on_success", "on_error"):
                    data = getattr(variable.update_fn, branch)
                    if data is not None:
                        _check_expression(data, declared, settings, f"update_fn.{branch}")
        except (ParseError, InvalidSelector, MalformedExpression, EvaluationError) as e:
            msg = f"Variable '{variable.name}': {e}"
            raise InvalidVariables(msg) from e
        earlier.add(variable.name)


def _validate(
    conditions: list[str],
    vars_text: str,
    msgs: list[str],
    settings: EngineSettings,
) -> list[Variable]:
    parsed = [load_condition(text, settings) for text in conditions]
    variables = load_variables(vars_text)
    check_variables(variables, settings)

    referenced: set[str] = set()
    for cond in parsed:
        referenced |= condition_references(cond)
    for text in msgs:
        referenced.update(scan_placeholders(text, settings))
    check_references([variable.name for variable in variables], referenced)

    for text in msgs:
        check_instructions(text, settings)
    return variables


def validate_job_creation(
    condition: str,
    vars: str,  # noqa: A002
    msgs: str,
    terminate_condition: str | None = None,
    *,
    settings: EngineSettings = DEFAULT_SETTINGS,
) -> None:
    """Check a job definition for internal consistency before it is stored.

    Checks run in order: conditions, variable definitions, duplicate names,
    references to undeclared names, declared names never referenced, and
    instruction structure. The first failing check raises.

    Raises:
        InvalidCondition: If a condition is malformed.
        InvalidVariables: If the variable list or a variable is invalid.
        VariablesContainDuplicates: If a name is declared twice.
        VariablesMissingFromTemplates: If a template names an undeclared variable.
        ExcessVariablesInTemplates: If a declared variable is never referenced.
        InvalidInstructions: If the instructions are malformed.

    """
    conditions = [condition] if terminate_condition is None else [condition, terminate_condition]
    _validate(conditions, vars, [msgs], settings)
    logger.debug("Job definition is valid")


def validate_job(job: Job, settings: EngineSettings = DEFAULT_SETTINGS) -> None:
    """Validate a job with all of its executions at once.

    A variable counts as referenced if any execution or the terminate
    condition refers to it.
    """
    conditions = [execution.condition for execution in job.executions]
    if job.terminate_condition is not None:
        conditions.append(job.terminate_condition)
    _validate(conditions, job.vars_text(), [execution.msgs for execution in job.executions], settings)
    logger.debug("Job '%s' with %d executions is valid", job.name, len(job.executions))


# =============================================================================
# Resolution and evaluation
# =============================================================================


def hydrate_vars(
    vars: str,  # noqa: A002
    external_inputs: Mapping[str, str] | None = None,
    *,
    context: ExecutionContext,
    queries: QueryCapability | None = None,
    settings: EngineSettings = DEFAULT_SETTINGS,
) -> str:
    """Resolve every variable that has no value or reinitializes, and serialize the result."""
    variables = hydrate_variables(
        load_variables(vars),
        external_inputs,
        context=context,
        queries=queries,
        settings=settings,
    )
    return dump_variables(variables)


def resolve_condition(
    condition: str,
    vars: str,  # noqa: A002
    *,
    context: ExecutionContext,
    settings: EngineSettings = DEFAULT_SETTINGS,
    apply_encoding: bool = False,
) -> bool:
    """Evaluate a condition against resolved variables.

    With `apply_encoding`, variables declared with `encode=true` are compared
    by their encoded text instead of their raw value.
    """
    cond = load_condition(condition, settings)
    variables = load_variables(vars)
    env = EvaluationEnv(
        variables={variable.name: variable for variable in variables},
        context=context,
        settings=settings,
        apply_encoding=apply_encoding,
    )
    result = evaluate_condition(cond, env)
    logger.debug("Condition %r -> %s", condition, result)
    return result


def apply_var_fn(
    vars: str,  # noqa: A002
    status: JobStatus | str,
    *,
    context: ExecutionContext,
    settings: EngineSettings = DEFAULT_SETTINGS,
) -> str:
    """Apply each variable's update expression for the job's final status."""
    variables = apply_update_functions(load_variables(vars), status, context=context, settings=settings)
    return dump_variables(variables)


def hydrate_msgs(
    msgs: str,
    vars: str,  # noqa: A002
    *,
    settings: EngineSettings = DEFAULT_SETTINGS,
) -> str:
    """Substitute resolved variable values into instruction templates."""
    variables = load_variables(vars)
    return substitute(msgs, {variable.name: variable for variable in variables}, settings)


def simulate_query(query: Any, queries: QueryCapability, selector: str | None = None) -> str:
    """Run a query once and return its raw response (or the selected part) as compact JSON.

    `query` may be given as JSON text or as an already decoded request.

    Raises:
        MalformedExpression: If the query text is not valid JSON.
        InvalidSelector: If the selector is malformed.
        QueryFailed: If the capability cannot answer.
        SelectorNotFound: If a selector segment is missing from the response.

    """
    request = query
    if isinstance(query, str):
        try:
            request = json.loads(query)
        except json.JSONDecodeError as e:
            msg = f"Query is not valid JSON: {e}"
            raise MalformedExpression(msg) from e
    parsed = parse_selector(selector) if selector is not None else None
    response = queries.query(request)
    if parsed is not None:
        response = select(response, parsed)
    return json.dumps(response, separators=(",", ":"))
