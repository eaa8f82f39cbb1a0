"""One evaluation cycle of a job: resolve, check termination, pick an execution, hydrate."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ._api import load_condition
from ._eval_engine import EvaluationEnv, evaluate_condition, hydrate_variables
from ._settings import DEFAULT_SETTINGS, EngineSettings
from ._templates import substitute

if TYPE_CHECKING:
    from collections.abc import Mapping

    from ._context import ExecutionContext
    from ._models import Job, Variable
    from ._query import QueryCapability

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CycleOutcome:
    """Result of one cycle.

    Attributes:
        variables: Variables after resolution, to be stored by the caller.
        terminated: Whether the terminate condition held. No execution is
            selected when it did.
        execution_index: Index of the first execution whose condition held,
            or None.
        msgs: Hydrated instructions of the selected execution, or None.

    """

    variables: list[Variable]
    terminated: bool = False
    execution_index: int | None = None
    msgs: str | None = None

    @property
    def triggered(self) -> bool:
        return self.execution_index is not None


def run_cycle(
    job: Job,
    *,
    context: ExecutionContext,
    queries: QueryCapability | None = None,
    external_inputs: Mapping[str, str] | None = None,
    settings: EngineSettings = DEFAULT_SETTINGS,
) -> CycleOutcome:
    """Run one cycle of `job` against the given context.

    Variables are resolved first; the terminate condition is then checked,
    and finally the executions are tried in order until one's condition
    holds. Its instructions are hydrated with the resolved variables.
    """
    variables = hydrate_variables(
        job.vars,
        external_inputs,
        context=context,
        queries=queries,
        settings=settings,
    )
    env = EvaluationEnv(
        variables={variable.name: variable for variable in variables},
        context=context,
        settings=settings,
    )

    if job.terminate_condition is not None and evaluate_condition(
        load_condition(job.terminate_condition, settings), env
    ):
        logger.info("Job '%s' terminated", job.name)
        return CycleOutcome(variables=variables, terminated=True)

    for index, execution in enumerate(job.executions):
        if evaluate_condition(load_condition(execution.condition, settings), env):
            logger.info("Job '%s' triggered execution %d", job.name, index)
            return CycleOutcome(
                variables=variables,
                execution_index=index,
                msgs=substitute(execution.msgs, env.variables, settings),
            )

    logger.debug("No execution of job '%s' is ready", job.name)
    return CycleOutcome(variables=variables)
