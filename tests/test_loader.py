"""Tests for workflow file loading and engine configuration."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from flowcore.core.config import EngineConfig, load_engine_config
from flowcore.core.exceptions import WorkflowConfigurationError, WorkflowLoadError
from flowcore.core.loader import load_workflow, parse_workflow

EXAMPLES_DIR = Path(__file__).parent.parent / "examples" / "workflows"

MINIMAL = {
    "id": "w",
    "name": "Minimal",
    "nodes": [{"id": "t", "type": "trigger"}],
    "edges": [],
}


class TestParseWorkflow:
    def test_mapping(self):
        workflow = parse_workflow(MINIMAL)
        assert workflow.id == "w"
        assert workflow.nodes[0].data == {}

    def test_model_passes_through(self, branch_workflow):
        assert parse_workflow(branch_workflow) is branch_workflow

    def test_not_a_mapping(self):
        with pytest.raises(WorkflowConfigurationError, match="must be a mapping"):
            parse_workflow(["nodes"])

    def test_schema_errors_are_summarised(self):
        with pytest.raises(WorkflowConfigurationError, match="Invalid workflow definition") as exc:
            parse_workflow({"id": "w", "nodes": [{"type": "trigger"}]})
        assert "nodes.0.id" in str(exc.value)


class TestLoadWorkflow:
    """Reading definitions from disk."""

    def test_yaml_file(self, workflow_file):
        loaded = load_workflow(workflow_file)
        assert [n.id for n in loaded.nodes] == ["trigger", "cond", "A", "B"]
        assert loaded.edges[1].is_true_branch

    def test_json_file(self, tmp_path):
        path = tmp_path / "w.json"
        path.write_text(json.dumps(MINIMAL))
        assert load_workflow(path).name == "Minimal"

    def test_editor_wrapper_unwrapped(self, tmp_path):
        path = tmp_path / "export.json"
        path.write_text(json.dumps({"workflow": MINIMAL}))
        assert load_workflow(path).id == "w"

    def test_missing_file(self, tmp_path):
        with pytest.raises(WorkflowLoadError, match="Cannot read workflow file"):
            load_workflow(tmp_path / "absent.yaml")

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("nodes: [unclosed")
        with pytest.raises(WorkflowLoadError, match="Invalid workflow file"):
            load_workflow(path)

    def test_scalar_document(self, tmp_path):
        path = tmp_path / "scalar.yaml"
        path.write_text("just text")
        with pytest.raises(WorkflowLoadError, match="must contain a mapping"):
            load_workflow(path)

    @pytest.mark.parametrize("name", ["conditional_routing.yaml", "rag_pipeline.yaml"])
    def test_bundled_examples_are_valid(self, name):
        workflow = load_workflow(EXAMPLES_DIR / name)
        assert workflow.validate_graph() == []


class TestEngineConfig:
    """EngineConfig model and YAML loading."""

    def test_defaults(self):
        config = EngineConfig()
        assert config.node_timeout is None
        assert config.simulated_latency == 0.0
        assert config.log_to_logger is True

    def test_rejects_non_positive_timeout(self):
        with pytest.raises(ValueError):
            EngineConfig(node_timeout=0)

    def test_load_from_yaml(self, tmp_path):
        path = tmp_path / "flowcore.yaml"
        path.write_text("node_timeout: 2.5\nrandom_seed: 3\n")
        config = load_engine_config(path)
        assert config.node_timeout == 2.5
        assert config.random_seed == 3

    def test_missing_file_gives_defaults(self, tmp_path):
        assert load_engine_config(tmp_path / "nope.yaml") == EngineConfig()

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "flowcore.yaml"
        path.write_text("")
        assert load_engine_config(path) == EngineConfig()

    def test_unknown_setting(self, tmp_path):
        path = tmp_path / "flowcore.yaml"
        path.write_text("retries: 3\n")
        with pytest.raises(WorkflowConfigurationError, match="Invalid engine config"):
            load_engine_config(path)

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "flowcore.yaml"
        path.write_text("- 1\n- 2\n")
        with pytest.raises(WorkflowConfigurationError, match="must contain a mapping"):
            load_engine_config(path)

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "flowcore.yaml"
        path.write_text("node_timeout: [1\n")
        with pytest.raises(WorkflowConfigurationError, match="Invalid YAML"):
            load_engine_config(path)
