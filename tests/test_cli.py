"""Tests for CLI commands.

Tests the flowcore CLI commands using Click's CliRunner:
- validate: Graph and configuration checks
- order: Resolved execution order
- run: Workflow execution with an initial context
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest
import yaml
from click.testing import CliRunner

from flowcore.cli import main

EXAMPLES_DIR = Path(__file__).parent.parent / "examples" / "workflows"


@pytest.fixture
def cli_runner() -> CliRunner:
    """Create a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def cyclic_file(tmp_path: Path, make_workflow) -> Path:
    workflow = make_workflow(
        [
            ("start", "trigger", {}),
            ("a", "function", {"functionName": "add"}),
            ("b", "function", {"functionName": "add"}),
        ],
        [("start", "a"), ("a", "b"), ("b", "a")],
    )
    path = tmp_path / "cyclic.yaml"
    path.write_text(yaml.safe_dump(workflow.model_dump(by_alias=True)))
    return path


class TestValidateCommand:
    """Tests for 'flowcore validate'."""

    def test_valid_workflow(self, cli_runner, workflow_file):
        result = cli_runner.invoke(main, ["validate", str(workflow_file)])

        assert result.exit_code == 0
        assert "Workflow is valid" in result.output
        assert "Nodes: 4" in result.output

    def test_reports_issues(self, cli_runner, cyclic_file):
        result = cli_runner.invoke(main, ["validate", str(cyclic_file)])

        assert result.exit_code == 1
        assert "Validation Issues" in result.output
        assert "Cycle detected" in result.output

    def test_unreadable_definition(self, cli_runner, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("- not\n- a mapping\n")
        result = cli_runner.invoke(main, ["validate", str(path)])

        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_missing_file(self, cli_runner):
        result = cli_runner.invoke(main, ["validate", "does-not-exist.yaml"])
        assert result.exit_code == 2


class TestOrderCommand:
    def test_prints_order(self, cli_runner, workflow_file):
        result = cli_runner.invoke(main, ["order", str(workflow_file)])

        assert result.exit_code == 0
        assert "Execution order" in result.output
        assert "Independent levels" in result.output
        assert "cond" in result.output

    def test_lists_unresolved_nodes(self, cli_runner, cyclic_file):
        result = cli_runner.invoke(main, ["order", str(cyclic_file)])

        assert result.exit_code == 0
        assert "Not statically ordered" in result.output


class TestRunCommand:
    """Tests for 'flowcore run'."""

    def test_true_branch(self, cli_runner, workflow_file):
        result = cli_runner.invoke(
            main, ["run", str(workflow_file), "--context", json.dumps({"input": {"x": 10}})]
        )

        assert result.exit_code == 0, result.output
        assert "succeeded" in result.output
        assert "big" in result.output

    def test_context_file(self, cli_runner, workflow_file, tmp_path):
        context_path = tmp_path / "context.yaml"
        context_path.write_text("input:\n  x: 1\n")
        result = cli_runner.invoke(
            main, ["run", str(workflow_file), "--context-file", str(context_path), "--show-logs"]
        )

        assert result.exit_code == 0, result.output
        assert "small" in result.output
        assert "Skipping node A" in result.output

    def test_failed_run_exits_nonzero(self, cli_runner, workflow_file):
        """Without input.x the condition cannot be evaluated."""
        result = cli_runner.invoke(main, ["run", str(workflow_file)])

        assert result.exit_code == 1
        assert "failed" in result.output

    def test_invalid_context_json(self, cli_runner, workflow_file):
        result = cli_runner.invoke(main, ["run", str(workflow_file), "--context", "{oops"])

        assert result.exit_code == 2
        assert "invalid JSON" in result.output

    def test_context_must_be_object(self, cli_runner, workflow_file):
        result = cli_runner.invoke(main, ["run", str(workflow_file), "--context", "[1, 2]"])
        assert result.exit_code == 2

    def test_invalid_config(self, cli_runner, workflow_file, tmp_path):
        config_path = tmp_path / "flowcore.yaml"
        config_path.write_text("unknown_key: 1\n")
        result = cli_runner.invoke(
            main, ["run", str(workflow_file), "--config", str(config_path)]
        )

        assert result.exit_code == 1
        assert "Invalid engine config" in result.output

    @pytest.mark.parametrize(
        "name,context",
        [
            ("conditional_routing.yaml", {"input": {"x": 10}}),
            ("rag_pipeline.yaml", {"input": {"query": "What is a DAG?"}}),
        ],
    )
    def test_bundled_examples_run(self, cli_runner, name, context):
        result = cli_runner.invoke(
            main, ["run", str(EXAMPLES_DIR / name), "--context", json.dumps(context)]
        )
        assert result.exit_code == 0, result.output
