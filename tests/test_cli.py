"""Tests for the TSL CLI commands."""

import json

import pytest
from click.testing import CliRunner

from tsl.cli.main import cli


RECORDS = [
    {"name": "Ada", "status": "active", "count": 3},
    {"name": "Grace", "status": "inactive", "count": 7},
    {"name": "Linus", "status": "active", "count": 12},
]


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("TSL_STRICT_FIELDS", "TSL_MAX_DEPTH", "TSL_MAX_LENGTH", "TSL_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def records_file(tmp_path):
    path = tmp_path / "records.json"
    path.write_text(json.dumps(RECORDS))
    return path


class TestParseCommand:
    def test_parse_json(self, runner):
        result = runner.invoke(cli, ["parse", "a = 1"])
        assert result.exit_code == 0
        assert json.loads(result.output) == {
            "type": "binary",
            "op": "=",
            "left": {"type": "identifier", "name": "a"},
            "right": {"type": "literal", "value": 1},
        }

    def test_parse_tsl(self, runner):
        result = runner.invoke(cli, ["parse", "--format", "tsl", "NOT a AND b"])
        assert result.exit_code == 0
        assert result.output.strip() == "((NOT a) AND b)"

    def test_parse_yaml(self, runner):
        result = runner.invoke(cli, ["parse", "--format", "yaml", "x IS NULL"])
        assert result.exit_code == 0
        assert "type: is_null" in result.output

    def test_parse_error(self, runner):
        result = runner.invoke(cli, ["parse", "(1 + 2"])
        assert result.exit_code == 1
        assert "Error: Expected ')'" in result.output

    def test_lexer_error(self, runner):
        result = runner.invoke(cli, ["parse", "a # b"])
        assert result.exit_code == 1
        assert "line 1, column 3" in result.output

    def test_length_limit_from_env(self, runner, clean_env):
        clean_env.setenv("TSL_MAX_LENGTH", "5")
        result = runner.invoke(cli, ["parse", "count > 100"])
        assert result.exit_code == 1
        assert "limit is 5" in result.output

    def test_invalid_env(self, runner, clean_env):
        clean_env.setenv("TSL_MAX_DEPTH", "deep")
        result = runner.invoke(cli, ["parse", "a"])
        assert result.exit_code == 2
        assert "TSL_MAX_DEPTH must be an integer" in result.output


class TestEvalCommand:
    def test_eval_with_assignments(self, runner):
        result = runner.invoke(
            cli, ["eval", "name = 'Ada' AND count > 1", "--set", "name=Ada", "--set", "count=3"]
        )
        assert result.exit_code == 0
        assert result.output.strip() == "true"

    def test_eval_prints_json_values(self, runner):
        result = runner.invoke(cli, ["eval", "[1 + 2, 'x', NULL, 2024-01-01]"])
        assert result.exit_code == 0
        assert json.loads(result.output) == [3, "x", None, "2024-01-01T00:00:00Z"]

    def test_eval_with_record_file(self, runner, tmp_path):
        record = tmp_path / "record.yaml"
        record.write_text("status: active\ntags: [a, b]\nspec:\n  pages: 120\n")

        result = runner.invoke(
            cli,
            ["eval", "LEN(tags) = 2 AND spec.pages > 100", "--record", str(record)],
        )
        assert result.exit_code == 0
        assert result.output.strip() == "true"

    def test_assignment_overrides_record(self, runner, tmp_path):
        record = tmp_path / "record.json"
        record.write_text('{"count": 1}')

        result = runner.invoke(
            cli, ["eval", "count", "--record", str(record), "--set", "count=5"]
        )
        assert result.output.strip() == "5"

    def test_record_must_be_mapping(self, runner, tmp_path):
        record = tmp_path / "record.yaml"
        record.write_text("- 1\n- 2\n")

        result = runner.invoke(cli, ["eval", "a", "--record", str(record)])
        assert result.exit_code == 1
        assert "must contain a mapping" in result.output

    def test_bad_assignment(self, runner):
        result = runner.invoke(cli, ["eval", "a", "--set", "novalue"])
        assert result.exit_code == 2
        assert "FIELD=VALUE" in result.output

    def test_unknown_field_lenient_by_default(self, runner):
        result = runner.invoke(cli, ["eval", "missing IS NULL"])
        assert result.output.strip() == "true"

    def test_unknown_field_strict(self, runner):
        result = runner.invoke(cli, ["eval", "--strict", "missing = 1"])
        assert result.exit_code == 1
        assert "Unknown field 'missing'" in result.output

    def test_strict_from_env(self, runner, clean_env):
        clean_env.setenv("TSL_STRICT_FIELDS", "true")

        result = runner.invoke(cli, ["eval", "missing = 1"])
        assert result.exit_code == 1

        result = runner.invoke(cli, ["eval", "--lenient", "missing = 1"])
        assert result.exit_code == 0
        assert result.output.strip() == "false"

    def test_evaluation_error(self, runner):
        result = runner.invoke(cli, ["eval", "1 / 0"])
        assert result.exit_code == 1
        assert "Division by zero" in result.output


class TestFilterCommand:
    def test_filter(self, runner, records_file):
        result = runner.invoke(
            cli, ["filter", "status = 'active'", "--input", str(records_file)]
        )
        assert result.exit_code == 0
        assert [r["name"] for r in json.loads(result.output)] == ["Ada", "Linus"]

    def test_filter_yaml_output(self, runner, records_file):
        result = runner.invoke(
            cli,
            ["filter", "count BETWEEN 5 AND 10", "--input", str(records_file),
             "--format", "yaml"],
        )
        assert result.exit_code == 0
        assert "name: Grace" in result.output
        assert "Ada" not in result.output

    def test_filter_yaml_input(self, runner, tmp_path):
        path = tmp_path / "records.yaml"
        path.write_text("- {name: a, n: 1}\n- {name: b, n: 2}\n")

        result = runner.invoke(cli, ["filter", "n > 1", "--input", str(path)])
        assert json.loads(result.output) == [{"name": "b", "n": 2}]

    def test_filter_no_matches(self, runner, records_file):
        result = runner.invoke(cli, ["filter", "count > 100", "--input", str(records_file)])
        assert result.exit_code == 0
        assert json.loads(result.output) == []

    def test_filter_logs_summary(self, runner, records_file):
        result = runner.invoke(
            cli,
            ["--log-level", "info", "filter", "count > 5", "--input", str(records_file)],
        )
        assert result.exit_code == 0
        assert "2 of 3 records matched" in result.output

    def test_filter_error_fails(self, runner, tmp_path):
        path = tmp_path / "records.json"
        path.write_text(json.dumps([{"count": 3}, {"count": "many"}]))

        result = runner.invoke(cli, ["filter", "count > 1", "--input", str(path)])
        assert result.exit_code == 1
        assert "Error (record 1)" in result.output

    def test_filter_error_skip(self, runner, tmp_path):
        path = tmp_path / "records.json"
        path.write_text(json.dumps([{"count": 3}, {"count": "many"}]))

        result = runner.invoke(
            cli, ["filter", "count > 1", "--input", str(path), "--on-error", "skip"]
        )
        assert result.exit_code == 0
        assert "Skipping record 1" in result.output
        assert '"count": 3' in result.output
        assert '"many"' not in result.output

    def test_filter_strict(self, runner, records_file):
        result = runner.invoke(
            cli, ["filter", "--strict", "age > 1", "--input", str(records_file)]
        )
        assert result.exit_code == 1
        assert "Unknown field 'age'" in result.output

    def test_filter_parse_error(self, runner, records_file):
        result = runner.invoke(cli, ["filter", "a <", "--input", str(records_file)])
        assert result.exit_code == 1
        assert "Unexpected end of input" in result.output

    def test_filter_input_must_be_list(self, runner, tmp_path):
        path = tmp_path / "records.json"
        path.write_text('{"a": 1}')

        result = runner.invoke(cli, ["filter", "a = 1", "--input", str(path)])
        assert result.exit_code == 1
        assert "must contain a list" in result.output


class TestAggregatesCommand:
    def test_lists_aggregates(self, runner):
        result = runner.invoke(cli, ["aggregates"])
        assert result.exit_code == 0
        docs = json.loads(result.output)
        assert set(docs["aggregates"]) == {"LEN", "ANY", "ALL", "SUM"}
        assert docs["aggregates"]["SUM"]["returnType"] == "number"


class TestInputErrors:
    def test_malformed_json_input(self, runner, tmp_path):
        path = tmp_path / "records.json"
        path.write_text('[{"a": 1},')

        result = runner.invoke(cli, ["filter", "a = 1", "--input", str(path)])
        assert result.exit_code == 1
        assert "Error (reading" in result.output
        assert "Traceback" not in result.output

    def test_malformed_yaml_record(self, runner, tmp_path):
        path = tmp_path / "record.yaml"
        path.write_text("a: [1, 2\nb: 3\n")

        result = runner.invoke(cli, ["eval", "a", "--record", str(path)])
        assert result.exit_code == 1
        assert "Error (reading" in result.output

    def test_malformed_assignment_value(self, runner):
        result = runner.invoke(cli, ["eval", "x", "--set", "x=[1,"])
        assert result.exit_code == 1
        assert "Error (--set x)" in result.output

    def test_integer_too_large(self, runner, tmp_path):
        path = tmp_path / "records.json"
        path.write_text('[{"n": 1' + "0" * 400 + "}]")

        result = runner.invoke(cli, ["filter", "n > 1", "--input", str(path)])
        assert result.exit_code == 1
        assert "Error (record 0)" in result.output
        assert "too large" in result.output
