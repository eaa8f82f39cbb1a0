"""Tests for job file reading and writing in hydrant._io."""

import json
from pathlib import Path

import pytest

from hydrant._context import ExecutionContext
from hydrant._enums import ValueKind
from hydrant._io import (
    JobFileError,
    export_job_to_toml,
    job_to_toml_dict,
    load_job_file,
    toml_to_job_file,
)
from hydrant._models import Execution, Job, StaticVariable

JOB_TOML = """
name = "limit"
condition = "price > 50"
terminate_condition = "expired(1700000000)"
msgs = '[{"bank": {"send": {"amount": "$var.price"}}}]'

[[vars]]
source = "external"
name = "price"
kind = "uint"

[context]
block_height = 12
timestamp = 1699999999

[inputs]
price = 75

[[responses]]
request = {bank = {balance = {address = "addr1"}}}
response = '{"balance": {"amount": "42"}}'
"""


@pytest.fixture
def job_path(tmp_path: Path) -> Path:
    path = tmp_path / "job.toml"
    path.write_text(JOB_TOML)
    return path


# --- load_job_file() Tests ---


class TestLoadJobFile:
    def test_job(self, job_path: Path):
        job = load_job_file(job_path).job
        assert job.name == "limit"
        assert job.terminate_condition == "expired(1700000000)"
        assert job.executions == [
            Execution(condition="price > 50", msgs='[{"bank": {"send": {"amount": "$var.price"}}}]'),
        ]
        assert job.vars[0].kind is ValueKind.UINT

    def test_runtime_sections(self, job_path: Path):
        job_file = load_job_file(job_path)
        assert job_file.context == ExecutionContext(block_height=12, timestamp=1699999999)
        assert job_file.inputs == {"price": "75"}
        assert job_file.queries.query({"bank": {"balance": {"address": "addr1"}}}) == {"balance": {"amount": "42"}}

    def test_accepts_str_path(self, job_path: Path):
        assert load_job_file(str(job_path)).job.name == "limit"

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(JobFileError, match="Cannot read job file"):
            load_job_file(tmp_path / "missing.toml")

    def test_invalid_toml(self, tmp_path: Path):
        path = tmp_path / "job.toml"
        path.write_text("condition = \n")
        with pytest.raises(JobFileError, match="Cannot read job file"):
            load_job_file(path)


# --- toml_to_job_file() Tests ---


class TestTomlToJobFile:
    def test_defaults(self):
        job_file = toml_to_job_file({"condition": "true", "msgs": "[]"})
        assert job_file.context == ExecutionContext()
        assert job_file.inputs == {}
        assert job_file.job.vars == []

    def test_vars_as_json_string(self):
        vars_text = json.dumps([{"source": "static", "name": "a", "kind": "uint", "init_fn": "1"}])
        job_file = toml_to_job_file({"condition": "true", "msgs": "[]", "vars": vars_text})
        assert job_file.job.vars == [StaticVariable(name="a", kind=ValueKind.UINT, init_fn="1")]

    def test_msgs_as_array(self):
        job_file = toml_to_job_file({"condition": "true", "msgs": [{"bank": {"send": {}}}]})
        assert json.loads(job_file.job.executions[0].msgs) == [{"bank": {"send": {}}}]

    def test_executions(self):
        contents = {
            "executions": [
                {"condition": "price < 10", "msgs": "[]"},
                {"condition": "price > 90", "msgs": "[]"},
            ],
        }
        job = toml_to_job_file(contents).job
        assert [e.condition for e in job.executions] == ["price < 10", "price > 90"]

    def test_bool_input(self):
        assert toml_to_job_file({"condition": "true", "msgs": "[]", "inputs": {"flag": True}}).inputs == {"flag": "true"}

    @pytest.mark.parametrize(
        "contents",
        [
            {"msgs": "[]", "executions": []},
            {"condition": "true", "msgs": "[]", "vars": "not json"},
            {"condition": "true", "msgs": "[]", "vars": [{"source": "static", "name": "a"}]},
            {"condition": "true", "msgs": "[]", "context": {"height": 1}},
            {"condition": "true", "msgs": "[]", "context": {"block_height": -1}},
            {"condition": "true", "msgs": "[]", "responses": [{"request": {}}]},
            {"condition": "true", "msgs": "[]", "inputs": {"price": [1, 2]}},
        ],
    )
    def test_invalid_contents(self, contents: dict):
        with pytest.raises(JobFileError):
            toml_to_job_file(contents)


# --- job_to_toml_dict() / export_job_to_toml() Tests ---


class TestExport:
    def test_single_execution_is_collapsed(self):
        job = Job(name="j", executions=[Execution(condition="true", msgs="[]")])
        data = job_to_toml_dict(job)
        assert data["condition"] == "true"
        assert data["msgs"] == "[]"
        assert "executions" not in data
        assert "terminate_condition" not in data

    def test_several_executions_are_kept(self):
        job = Job(executions=[Execution(condition="a", msgs="[]"), Execution(condition="b", msgs="[]")])
        assert len(job_to_toml_dict(job)["executions"]) == 2

    def test_resolved_job_reloads(self, job_path: Path, tmp_path: Path):
        job = load_job_file(job_path).job
        resolved = job.with_vars([job.vars[0].with_value("75")])
        output = tmp_path / "resolved.toml"

        export_job_to_toml(resolved, output)

        assert load_job_file(output).job == resolved
