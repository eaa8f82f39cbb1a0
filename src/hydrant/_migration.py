"""Conversion of legacy variable and job shapes to the current models.

Legacy variables are externally tagged (`{"static": {...}}`) and legacy static
variables carry a plain `value` instead of an initializer. Legacy jobs hold a
single condition and instruction list instead of a list of executions.

None of this is used by the evaluation entry points; a stored job is migrated
once and then handled like any other.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError as PydanticValidationError

from ._enums import JobStatus
from ._errors import InvalidVariables
from ._models import (
    VARIABLES_ADAPTER,
    Execution,
    ExternalVariable,
    Job,
    QueryVariable,
    StaticVariable,
    dump_variables,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

    from ._models import Variable

logger = logging.getLogger(__name__)

_COMMON_FIELDS = ("kind", "name", "encode", "update_fn")


def _common(body: Mapping[str, Any]) -> dict[str, Any]:
    return {field: body[field] for field in _COMMON_FIELDS if field in body}


def migrate_legacy_variable(data: Any) -> Variable:
    """Convert one legacy variable to the current model.

    A legacy static variable's `value` becomes both its literal initializer
    and its cached value, and it never reinitializes. External and query
    variables keep their initializer and cached value. A variable already in
    the current shape (with a `source` field) is validated and returned.

    Raises:
        InvalidVariables: If `data` matches no known shape.

    """
    try:
        match data:
            case {"source": _}:
                return VARIABLES_ADAPTER.validate_python([data])[0]
            case {"static": {"value": str(value)} as body}:
                return StaticVariable(**_common(body), init_fn=value, value=value, reinitialize=False)
            case {"external": {"init_fn": init_fn} as body}:
                return ExternalVariable(
                    **_common(body),
                    init_fn=init_fn,
                    reinitialize=body.get("reinitialize", False),
                    value=body.get("value"),
                )
            case {"query": {"init_fn": init_fn} as body}:
                return QueryVariable(
                    **_common(body),
                    init_fn=init_fn,
                    reinitialize=body.get("reinitialize", False),
                    value=body.get("value"),
                )
    except PydanticValidationError as e:
        msg = f"Invalid legacy variable: {e}"
        raise InvalidVariables(msg) from e
    msg = f"Unrecognized variable shape: {json.dumps(data)[:200]}"
    raise InvalidVariables(msg)


def _legacy_list(text: str) -> list[Variable]:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        msg = f"Variables are not valid JSON: {e}"
        raise InvalidVariables(msg) from e
    if not isinstance(data, list):
        msg = "Variables must be a JSON array"
        raise InvalidVariables(msg)
    variables = [migrate_legacy_variable(item) for item in data]
    logger.debug("Migrated %d variables", len(variables))
    return variables


def migrate_legacy_variables(text: str) -> str:
    """Convert a serialized legacy variable list to the current serialized form."""
    return dump_variables(_legacy_list(text))


def migrate_legacy_job(old: Mapping[str, Any]) -> Job:
    """Convert a legacy single-execution job to the current model.

    The legacy `condition` and `msgs` become the job's only execution, and
    the job has no terminate condition. Fields outside the engine's model
    (owner, reward, labels and the like) are dropped.
    """
    vars_data = old.get("vars", "[]")
    vars_text = vars_data if isinstance(vars_data, str) else json.dumps(vars_data)
    variables = _legacy_list(vars_text)
    return Job(
        name=old.get("name", ""),
        executions=[Execution(condition=old["condition"], msgs=old["msgs"])],
        terminate_condition=None,
        vars=variables,
        recurring=old.get("recurring", False),
        status=old.get("status", JobStatus.PENDING),
    )
