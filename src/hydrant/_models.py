"""Pydantic models for variables and jobs, and their JSON text form.

Variables cross every entry point as a JSON array of objects discriminated by
their `source` field. The models are frozen; a new value is produced with
`with_value`, never by mutation.
"""

from __future__ import annotations

import json
from typing import Annotated, Any, Literal, Self

from pydantic import BaseModel, ConfigDict, Field, JsonValue, TypeAdapter, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from ._enums import JobStatus, ValueKind
from ._errors import InvalidVariables
from ._settings import NAME_PATTERN


class _Frozen(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class UpdateFn(_Frozen):
    """Expressions computing a variable's next value after an execution."""

    on_success: JsonValue | None = None
    on_error: JsonValue | None = None


class ExternalExpr(_Frozen):
    """Where an off-engine keeper fetches an external value.

    Only `key` is used by the engine: it names the entry of the caller's
    external inputs. The remaining fields are carried through untouched.
    """

    key: str | None = None
    url: str = ""
    method: str = "get"
    headers: dict[str, str] = Field(default_factory=dict)
    body: str | None = None
    selector: str | None = None


class QueryExpr(_Frozen):
    """An opaque state query and the selector extracting a value from its response."""

    selector: str
    query: JsonValue


class _VariableBase(_Frozen):
    name: Annotated[str, Field(pattern=f"^{NAME_PATTERN}$")]
    kind: ValueKind
    encode: bool = False
    reinitialize: bool = False
    value: str | None = None
    update_fn: UpdateFn | None = None

    def with_value(self, value: str | None) -> Self:
        return self.model_copy(update={"value": value})


class StaticVariable(_VariableBase):
    """A variable initialized from a literal or from an expression over earlier variables."""

    source: Literal["static"] = "static"
    init_fn: str | dict[str, JsonValue]

    @field_validator("init_fn", mode="before")
    @classmethod
    def _scalar_to_text(cls, value: Any) -> Any:
        match value:
            case bool(flag):
                return "true" if flag else "false"
            case int() | float():
                return str(value)
        return value


class ExternalVariable(_VariableBase):
    """A variable whose value is supplied by the caller at resolution time."""

    source: Literal["external"] = "external"
    init_fn: ExternalExpr = Field(default_factory=ExternalExpr)

    @property
    def input_key(self) -> str:
        return self.init_fn.key or self.name


class QueryVariable(_VariableBase):
    """A variable derived from a state query response."""

    source: Literal["query"] = "query"
    init_fn: QueryExpr


Variable = Annotated[StaticVariable | ExternalVariable | QueryVariable, Field(discriminator="source")]

VARIABLES_ADAPTER: TypeAdapter[list[Variable]] = TypeAdapter(list[Variable])


def load_variables(text: str) -> list[Variable]:
    """Parse the serialized variable list.

    Raises:
        InvalidVariables: If the text is not a JSON array of valid variables.

    """
    try:
        return VARIABLES_ADAPTER.validate_json(text)
    except PydanticValidationError as e:
        msg = f"Invalid variables: {e}"
        raise InvalidVariables(msg) from e


def dump_variables(variables: list[Variable]) -> str:
    """Serialize variables to their JSON array text."""
    return VARIABLES_ADAPTER.dump_json(variables).decode("utf-8")


# =============================================================================
# Jobs
# =============================================================================


class Execution(_Frozen):
    """One candidate step of a job: a trigger condition and its instruction templates."""

    condition: str
    msgs: str

    @field_validator("msgs", mode="before")
    @classmethod
    def _msgs_as_text(cls, value: Any) -> Any:
        if isinstance(value, list):
            return json.dumps(value)
        return value


class Job(_Frozen):
    """A job definition as held by the caller.

    A job written with top-level `condition` and `msgs` is read as a job with
    a single execution.
    """

    name: str = ""
    executions: list[Execution]
    terminate_condition: str | None = None
    vars: list[Variable] = Field(default_factory=list)
    recurring: bool = False
    status: JobStatus = JobStatus.PENDING

    @model_validator(mode="before")
    @classmethod
    def _single_execution(cls, data: Any) -> Any:
        if isinstance(data, dict) and ("condition" in data or "msgs" in data):
            data = dict(data)
            if "executions" in data:
                msg = "A job takes either 'condition'/'msgs' or 'executions', not both"
                raise ValueError(msg)
            data["executions"] = [{"condition": data.pop("condition", "true"), "msgs": data.pop("msgs", "[]")}]
        return data

    def vars_text(self) -> str:
        return dump_variables(self.vars)

    def with_vars(self, variables: list[Variable]) -> Self:
        return self.model_copy(update={"vars": variables})
