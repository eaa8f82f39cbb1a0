"""Variable resolution and condition evaluation engine for conditional automation jobs."""

__all__ = [
    "CompareOp",
    "CycleOutcome",
    "Encoding",
    "EngineSettings",
    "EvaluationError",
    "ExecutionContext",
    "Execution",
    "ExternalVariable",
    "HydrantError",
    "Job",
    "JobFile",
    "JobStatus",
    "ParseError",
    "QueryCapability",
    "QueryVariable",
    "ResolutionError",
    "StaticQueryCapability",
    "StaticVariable",
    "TemplateError",
    "ValidationError",
    "Value",
    "ValueKind",
    "Variable",
    "apply_var_fn",
    "dump_variables",
    "export_job_to_toml",
    "format_value",
    "hydrate_msgs",
    "hydrate_vars",
    "load_job_file",
    "load_variables",
    "migrate_legacy_job",
    "migrate_legacy_variables",
    "parse_condition",
    "parse_value",
    "resolve_condition",
    "run_cycle",
    "simulate_query",
    "validate_job",
    "validate_job_creation",
]

from ._api import (
    apply_var_fn,
    hydrate_msgs,
    hydrate_vars,
    resolve_condition,
    simulate_query,
    validate_job,
    validate_job_creation,
)
from ._context import ExecutionContext
from ._cycle import CycleOutcome, run_cycle
from ._enums import CompareOp, Encoding, JobStatus, ValueKind
from ._errors import (
    EvaluationError,
    HydrantError,
    ParseError,
    ResolutionError,
    TemplateError,
    ValidationError,
)
from ._expr import parse_condition
from ._io import JobFile, export_job_to_toml, load_job_file
from ._migration import migrate_legacy_job, migrate_legacy_variables
from ._models import (
    Execution,
    ExternalVariable,
    Job,
    QueryVariable,
    StaticVariable,
    Variable,
    dump_variables,
    load_variables,
)
from ._query import QueryCapability, StaticQueryCapability
from ._settings import EngineSettings
from ._values import Value, format_value, parse_value
