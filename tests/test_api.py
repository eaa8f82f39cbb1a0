"""Tests for job validation entry points."""

import json

import pytest

from hydrant import Execution, Job, validate_job, validate_job_creation
from hydrant._enums import ValueKind
from hydrant._errors import (
    ExcessVariablesInTemplates,
    InvalidCondition,
    InvalidInstructions,
    InvalidVariables,
    VariablesContainDuplicates,
    VariablesMissingFromTemplates,
)
from hydrant._models import QueryExpr, QueryVariable, StaticVariable, UpdateFn, dump_variables
from hydrant._settings import EngineSettings

SEND = '[{"bank": {"send": {"to_address": "cosmos1xyz", "amount": "$var.price"}}}]'


def _static(name: str, init_fn: str | dict = "1", **kwargs: object) -> StaticVariable:
    return StaticVariable(name=name, kind=ValueKind.UINT, init_fn=init_fn, **kwargs)  # type: ignore[arg-type]


def _vars(*variables: StaticVariable | QueryVariable) -> str:
    return dump_variables(list(variables))


class TestValidateJobCreation:
    """Tests for validate_job_creation."""

    def test_valid_job(self) -> None:
        validate_job_creation("price > 50", _vars(_static("price")), SEND)

    def test_no_variables(self) -> None:
        validate_job_creation("true", "[]", '[{"bank": {"send": {}}}]')

    def test_condition_reference_counts(self) -> None:
        validate_job_creation("limit > 1", _vars(_static("limit")), "[]")

    def test_terminate_condition_reference_counts(self) -> None:
        validate_job_creation("true", _vars(_static("stop_at")), "[]", terminate_condition="block_height > stop_at")

    def test_duplicate_names(self) -> None:
        with pytest.raises(VariablesContainDuplicates, match="price"):
            validate_job_creation("price > 50", _vars(_static("price"), _static("price")), SEND)

    def test_undeclared_template_reference(self) -> None:
        with pytest.raises(VariablesMissingFromTemplates, match="price"):
            validate_job_creation("true", "[]", SEND)

    def test_undeclared_condition_reference(self) -> None:
        with pytest.raises(VariablesMissingFromTemplates, match="ghost"):
            validate_job_creation("ghost > 1", _vars(_static("price")), SEND)

    def test_unreferenced_variable(self) -> None:
        with pytest.raises(ExcessVariablesInTemplates, match="unused"):
            validate_job_creation("price > 50", _vars(_static("price"), _static("unused")), SEND)

    def test_init_expression_reference_does_not_count(self) -> None:
        variables = _vars(
            _static("base"),
            _static("price", {"fn": {"op": "add", "args": [{"ref": "$var.base"}, "1"]}}),
        )
        with pytest.raises(ExcessVariablesInTemplates, match="base"):
            validate_job_creation("true", variables, SEND)

    def test_malformed_condition(self) -> None:
        with pytest.raises(InvalidCondition):
            validate_job_creation("price >", _vars(_static("price")), SEND)

    def test_condition_is_checked_first(self) -> None:
        with pytest.raises(InvalidCondition):
            validate_job_creation("price >", "not json", "not json")

    def test_unknown_function_in_condition(self) -> None:
        with pytest.raises(InvalidCondition, match="pow"):
            validate_job_creation("pow(price, 2) > 1", _vars(_static("price")), SEND)

    def test_wrong_arity_in_condition(self) -> None:
        with pytest.raises(InvalidCondition, match="takes 2 arguments"):
            validate_job_creation("sub(price) > 1", _vars(_static("price")), SEND)

    def test_malformed_instructions(self) -> None:
        with pytest.raises(InvalidInstructions):
            validate_job_creation("true", "[]", '{"bank": {}}')

    def test_placeholders_do_not_break_instruction_check(self) -> None:
        msgs = '[{"wasm": {"execute": {"flag": "$var.flag", "memo": "id-$var.flag"}}}]'
        variables = dump_variables([StaticVariable(name="flag", kind=ValueKind.BOOL, init_fn="true")])
        validate_job_creation("flag", variables, msgs)

    def test_custom_prefix(self) -> None:
        settings = EngineSettings(placeholder_prefix="@")
        msgs = '[{"bank": {"send": {"amount": "@price"}}}]'
        validate_job_creation("@price > 1", _vars(_static("price")), msgs, settings=settings)


class TestVariableChecks:
    """Per-variable checks run by validation."""

    @pytest.mark.parametrize(
        "vars_text",
        [
            "not json",
            "{}",
            '[{"source": "static", "name": "price", "kind": "uint"}]',
            '[{"source": "oracle", "name": "price", "kind": "uint", "init_fn": "1"}]',
            '[{"source": "static", "name": "bad name", "kind": "uint", "init_fn": "1"}]',
            '[{"source": "static", "name": "price", "kind": "float", "init_fn": "1"}]',
            '[{"source": "static", "name": "price", "kind": "uint", "init_fn": "1", "extra": 1}]',
        ],
    )
    def test_invalid_variable_list(self, vars_text: str) -> None:
        with pytest.raises(InvalidVariables):
            validate_job_creation("price > 1", vars_text, SEND)

    def test_invalid_literal_initializer(self) -> None:
        with pytest.raises(InvalidVariables, match="price"):
            validate_job_creation("price > 1", _vars(_static("price", "-1")), SEND)

    def test_invalid_cached_value(self) -> None:
        with pytest.raises(InvalidVariables, match="price"):
            validate_job_creation("price > 1", _vars(_static("price", value="x")), SEND)

    def test_initializer_reads_later_variable(self) -> None:
        variables = _vars(
            _static("price", {"fn": {"op": "add", "args": [{"ref": "$var.base"}, "1"]}}),
            _static("base"),
        )
        with pytest.raises(InvalidVariables, match="not in scope: base"):
            validate_job_creation("price > base", variables, SEND)

    def test_initializer_calls_unknown_function(self) -> None:
        variables = _vars(_static("price", {"fn": {"op": "pow", "args": ["2", "3"]}}))
        with pytest.raises(InvalidVariables, match="pow"):
            validate_job_creation("price > 1", variables, SEND)

    def test_update_may_read_itself(self) -> None:
        update_fn = UpdateFn(on_success={"fn": {"op": "add", "args": [{"ref": "$var.price"}, "1"]}})
        validate_job_creation("price > 1", _vars(_static("price", update_fn=update_fn)), SEND)

    def test_update_reads_undeclared_variable(self) -> None:
        update_fn = UpdateFn(on_error={"ref": "$var.ghost"})
        with pytest.raises(InvalidVariables, match="update_fn.on_error"):
            validate_job_creation("price > 1", _vars(_static("price", update_fn=update_fn)), SEND)

    def test_invalid_query_selector(self) -> None:
        variable = QueryVariable(
            name="price",
            kind=ValueKind.UINT,
            init_fn=QueryExpr(selector="a..b", query={"price": {}}),
        )
        with pytest.raises(InvalidVariables, match="price"):
            validate_job_creation("price > 1", _vars(variable), SEND)


class TestValidateJob:
    """Tests for validate_job over several executions."""

    def test_references_span_executions(self) -> None:
        job = Job(
            name="dca",
            executions=[
                Execution(condition="price < low", msgs=SEND),
                Execution(condition="price > high", msgs="[]"),
            ],
            vars=[_static("price"), _static("low"), _static("high")],
        )
        validate_job(job)

    def test_terminate_condition(self) -> None:
        job = Job(
            executions=[Execution(condition="true", msgs=SEND)],
            terminate_condition="block_height > deadline",
            vars=[_static("price"), _static("deadline")],
        )
        validate_job(job)

    def test_unreferenced_variable(self) -> None:
        job = Job(executions=[Execution(condition="true", msgs=SEND)], vars=[_static("price"), _static("spare")])
        with pytest.raises(ExcessVariablesInTemplates, match="spare"):
            validate_job(job)

    def test_each_execution_is_checked(self) -> None:
        job = Job(
            executions=[
                Execution(condition="true", msgs="[]"),
                Execution(condition="true", msgs=json.dumps({"bank": {}})),
            ],
        )
        with pytest.raises(InvalidInstructions):
            validate_job(job)
