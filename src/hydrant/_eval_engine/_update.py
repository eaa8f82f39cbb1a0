"""Post-execution update of variable values."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from hydrant._enums import JobStatus
from hydrant._errors import HydrantError, InvalidJobStatus, UpdateFailed
from hydrant._expr import expression_from_json
from hydrant._settings import DEFAULT_SETTINGS, EngineSettings

from ._expression import EvaluationEnv, evaluate_expression

if TYPE_CHECKING:
    from pydantic import JsonValue

    from hydrant._context import ExecutionContext
    from hydrant._models import Variable

logger = logging.getLogger(__name__)


def _coerce_status(status: JobStatus | str) -> JobStatus:
    try:
        status = JobStatus(status)
    except ValueError:
        msg = f"Unknown job status: {status!r}"
        raise InvalidJobStatus(msg) from None
    if status not in (JobStatus.EXECUTED, JobStatus.FAILED):
        msg = f"Variables are only updated after an executed or failed job, got {status}"
        raise InvalidJobStatus(msg)
    return status


def update_expression(variable: Variable, status: JobStatus) -> JsonValue | None:
    """The update expression of `variable` that applies after a job ended with `status`."""
    if variable.update_fn is None:
        return None
    return variable.update_fn.on_success if status is JobStatus.EXECUTED else variable.update_fn.on_error


def apply_update_functions(
    variables: list[Variable],
    status: JobStatus | str,
    *,
    context: ExecutionContext,
    settings: EngineSettings = DEFAULT_SETTINGS,
) -> list[Variable]:
    """Compute every variable's next value after an execution.

    All update expressions read the values the variables had before the
    update; no update observes another update's result. A variable without
    an applicable expression keeps its value, unless it is marked
    `reinitialize`, in which case its value is cleared for the next
    resolution.

    Raises:
        InvalidJobStatus: If `status` is neither executed nor failed.
        UpdateFailed: If an update expression fails, naming the variable.

    """
    status = _coerce_status(status)
    env = EvaluationEnv(
        variables={variable.name: variable for variable in variables},
        context=context,
        settings=settings,
    )

    updated: list[Variable] = []
    for variable in variables:
        data = update_expression(variable, status)
        if data is None:
            updated.append(variable.with_value(None) if variable.reinitialize else variable)
            continue
        try:
            value = evaluate_expression(expression_from_json(data, settings), env, variable.kind)
        except HydrantError as e:
            raise UpdateFailed(variable.name, e) from e
        logger.debug("Updated %s: %s -> %s", variable.name, variable.value, value)
        updated.append(variable.with_value(str(value)))
    return updated
