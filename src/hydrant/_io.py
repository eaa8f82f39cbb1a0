"""Reading and writing job files.

A job file is TOML:

    name = "dca"
    condition = "price > 50"
    terminate_condition = "expired(1700000000)"
    msgs = '[{"bank": {"send": {"amount": "$var.price"}}}]'

    [[vars]]
    source = "static"
    name = "price"
    kind = "uint"
    init_fn = "100"

    [context]
    block_height = 12
    timestamp = 1700000000

    [inputs]
    quote = "1.25"

    [[responses]]
    request = {bank = {balance = {address = "addr1"}}}
    response = {balance = {amount = "42"}}

`vars` may also be given as one JSON string, and `msgs` as a JSON string or an
array. Several steps are written as `[[executions]]` tables with their own
`condition` and `msgs`.
"""

import json
import logging
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import tomli_w
from pydantic import ValidationError as PydanticValidationError

from ._context import ExecutionContext
from ._errors import HydrantError
from ._models import Job
from ._query import StaticQueryCapability

logger = logging.getLogger(__name__)

_RUNTIME_SECTIONS = ("context", "inputs", "responses")


class JobFileError(HydrantError):
    """A job file cannot be read or does not describe a valid job."""

    code = "JobFileError"


@dataclass(frozen=True, slots=True)
class JobFile:
    """A job together with the runtime data needed to run it offline."""

    job: Job
    context: ExecutionContext = field(default_factory=ExecutionContext)
    inputs: dict[str, str] = field(default_factory=dict)
    queries: StaticQueryCapability = field(default_factory=StaticQueryCapability)


def _input_text(value: Any) -> str:
    match value:
        case bool(flag):
            return "true" if flag else "false"
        case str(text):
            return text
        case int() | float():
            return str(value)
    msg = f"External input must be a scalar, got {value!r}"
    raise JobFileError(msg)


def _json_field(value: Any) -> Any:
    return json.loads(value) if isinstance(value, str) else value


def toml_to_job_file(contents: dict[str, Any]) -> JobFile:
    """Build a job file from parsed TOML contents.

    Raises:
        JobFileError: If a section is malformed or the job does not validate.

    """
    job_data = {key: value for key, value in contents.items() if key not in _RUNTIME_SECTIONS}
    try:
        if isinstance(job_data.get("vars"), str):
            job_data["vars"] = json.loads(job_data["vars"])
        job = Job.model_validate(job_data)
        context = ExecutionContext(**contents.get("context", {}))
        queries = StaticQueryCapability.from_pairs(
            (_json_field(entry["request"]), _json_field(entry["response"])) for entry in contents.get("responses", [])
        )
    except (PydanticValidationError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
        msg = f"Invalid job file: {e}"
        raise JobFileError(msg) from e

    inputs = {key: _input_text(value) for key, value in contents.get("inputs", {}).items()}
    return JobFile(job=job, context=context, inputs=inputs, queries=queries)


def load_job_file(path: Path | str) -> JobFile:
    """Load a job file from disk."""
    path = Path(path)
    try:
        with path.open("rb") as f:
            contents = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        msg = f"Cannot read job file {path}: {e}"
        raise JobFileError(msg) from e
    job_file = toml_to_job_file(contents)
    logger.debug("Loaded job '%s' from %s", job_file.job.name, path)
    return job_file


def job_to_toml_dict(job: Job) -> dict[str, Any]:
    """Convert a job to TOML-compatible data; unset (null) fields are left out."""
    data = job.model_dump(mode="json", exclude_none=True)
    if len(job.executions) == 1:
        (execution,) = data.pop("executions")
        data["condition"] = execution["condition"]
        data["msgs"] = execution["msgs"]
    return data


def export_job_to_toml(job: Job, output_path: Path | str) -> None:
    """Write a job, typically with freshly resolved variables, to a TOML file."""
    output_path = Path(output_path)
    with output_path.open("wb") as f:
        tomli_w.dump(job_to_toml_dict(job), f)
    logger.debug("Exported job '%s' to %s", job.name, output_path)
