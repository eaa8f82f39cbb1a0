"""Tests for post-execution variable updates (apply_var_fn)."""

import pytest

from hydrant import apply_var_fn
from hydrant._context import ExecutionContext
from hydrant._enums import JobStatus, ValueKind
from hydrant._errors import ArithmeticUnderflow, InvalidJobStatus, UpdateFailed
from hydrant._eval_engine import apply_update_functions
from hydrant._models import StaticVariable, UpdateFn, dump_variables, load_variables

CONTEXT = ExecutionContext(block_height=42, timestamp=1_700_000_000)

INCREMENT = {"fn": {"op": "add", "args": [{"ref": "$var.counter"}, {"simple": "1"}]}}


def _counter(value: str, update_fn: UpdateFn | None = None, *, reinitialize: bool = False) -> StaticVariable:
    return StaticVariable(
        name="counter",
        kind=ValueKind.UINT,
        init_fn="0",
        value=value,
        update_fn=update_fn,
        reinitialize=reinitialize,
    )


def _apply(variables: list[StaticVariable], status: JobStatus | str) -> dict[str, str | None]:
    text = apply_var_fn(dump_variables(variables), status, context=CONTEXT)
    return {variable.name: variable.value for variable in load_variables(text)}


def test_increment_after_success():
    """A counter with an add update goes from 5 to 6 after an executed job."""
    assert _apply([_counter("5", UpdateFn(on_success=INCREMENT))], "executed") == {"counter": "6"}


def test_on_error_branch_after_failure():
    """The on_error expression applies after a failed job."""
    update_fn = UpdateFn(on_success=INCREMENT, on_error={"simple": "0"})
    assert _apply([_counter("5", update_fn)], JobStatus.FAILED) == {"counter": "0"}


def test_missing_branch_keeps_value():
    """A variable without an expression for the status keeps its value."""
    assert _apply([_counter("5", UpdateFn(on_success=INCREMENT))], "failed") == {"counter": "5"}


def test_no_update_keeps_value():
    """A variable without update_fn is left untouched."""
    assert _apply([_counter("5")], "executed") == {"counter": "5"}


def test_reinitialize_without_update_clears_value():
    """A reinitializing variable with no applicable update is cleared for the next resolution."""
    assert _apply([_counter("5", reinitialize=True)], "executed") == {"counter": None}


def test_updates_read_prior_values():
    """Every update sees the values from before the update, so two variables can swap."""
    a, b = (
        StaticVariable(name=name, kind=ValueKind.UINT, init_fn=value, value=value, update_fn=UpdateFn(on_success=other))
        for name, value, other in (("a", "1", {"ref": "$var.b"}), ("b", "2", {"ref": "$var.a"}))
    )
    assert _apply([a, b], "executed") == {"a": "2", "b": "1"}


def test_update_can_read_context():
    """Update expressions see the ambient context."""
    variable = StaticVariable(
        name="last_run",
        kind=ValueKind.BLOCK_HEIGHT,
        init_fn="0",
        value="0",
        update_fn=UpdateFn(on_success={"env": "block_height"}),
    )
    assert _apply([variable], "executed") == {"last_run": "42"}


@pytest.mark.parametrize("status", ["pending", "cancelled", "evicted", "bogus"])
def test_invalid_status(status: str):
    """Only executed and failed jobs update their variables."""
    with pytest.raises(InvalidJobStatus):
        _apply([_counter("5", UpdateFn(on_success=INCREMENT))], status)


def test_failure_names_the_variable():
    """A failing update is reported with the variable's name and the underlying error."""
    decrement = {"fn": {"op": "sub", "args": [{"ref": "$var.counter"}, "1"]}}
    with pytest.raises(UpdateFailed, match="counter") as excinfo:
        _apply([_counter("0", UpdateFn(on_success=decrement))], "executed")
    assert excinfo.value.variable == "counter"
    assert isinstance(excinfo.value.cause, ArithmeticUnderflow)


def test_inputs_are_not_modified():
    """The engine returns new variables and leaves its inputs alone."""
    variables = [_counter("5", UpdateFn(on_success=INCREMENT))]
    updated = apply_update_functions(variables, JobStatus.EXECUTED, context=CONTEXT)
    assert updated[0].value == "6"
    assert variables[0].value == "5"
