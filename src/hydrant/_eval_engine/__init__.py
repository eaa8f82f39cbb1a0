"""Evaluation engine for hydrant.

This module provides pure functions over variable lists and parsed trees.
None of them holds state between calls: resolved variables are returned to
the caller and passed back in on the next call.

Key types:
- EvaluationEnv: Variables, chain context and settings an expression may read
- evaluate_expression: Evaluate a function expression to a typed value
- evaluate_condition: Evaluate a condition tree to a bool
- hydrate_variables: Resolve variables from their sources in declaration order
- apply_update_functions: Compute next values after an execution
"""

from ._condition import evaluate_condition
from ._expression import EvaluationEnv, encode_text, evaluate_expression, variable_value
from ._resolution import hydrate_variables, needs_resolution, resolve_variable
from ._update import apply_update_functions

__all__ = [
    "EvaluationEnv",
    "apply_update_functions",
    "encode_text",
    "evaluate_condition",
    "evaluate_expression",
    "hydrate_variables",
    "needs_resolution",
    "resolve_variable",
    "variable_value",
]
