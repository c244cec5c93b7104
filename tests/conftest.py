# conftest.py - Shared pytest fixtures for all tests
"""Shared pytest fixtures for the flowcore test suite.

Provides:
- A ``make_workflow`` fixture for building small workflow graphs
- Canonical workflows: linear chain and conditional branch
- Test executors that raise or stall (``raising_executor``, ``slow_executor``)
- An engine with zero simulated latency and a fixed random seed
- A ``run_workflow`` helper that drives the async engine with asyncio.run

Usage:
    Import fixtures implicitly via pytest's fixture discovery.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
import yaml

from flowcore.core.config import EngineConfig
from flowcore.core.engine import WorkflowCallbacks, WorkflowEngine
from flowcore.core.graph_schema import NodeExecutionResult, Workflow, WorkflowExecutionResult
from flowcore.executors import default_registry
from flowcore.executors.base import ExecutorHooks, NodeExecutor


def build_workflow(
    nodes: list[tuple[str, str, dict[str, Any]]],
    edges: list[tuple[str, str] | tuple[str, str, dict[str, Any]]] | None = None,
    workflow_id: str = "wf-test",
) -> Workflow:
    """Build a Workflow from compact tuples.

    Example:
        build_workflow(
            [("t", "trigger", {}), ("o", "output", {"variableName": "x", "value": 1})],
            [("t", "o")],
        )
    """
    edge_dicts = []
    for index, edge in enumerate(edges or []):
        source, target = edge[0], edge[1]
        extra = edge[2] if len(edge) > 2 else {}
        edge_dicts.append({"id": f"e{index}", "source": source, "target": target, **extra})
    return Workflow.model_validate(
        {
            "id": workflow_id,
            "name": "Test Workflow",
            "nodes": [{"id": nid, "type": ntype, "data": data} for nid, ntype, data in nodes],
            "edges": edge_dicts,
        }
    )


class RaisingExecutor(NodeExecutor):
    """Executor that always raises, for failure-isolation tests."""

    def __init__(self, message: str = "boom"):
        self.message = message

    async def execute(self, node, context, hooks: ExecutorHooks):
        raise RuntimeError(self.message)


class SlowExecutor(NodeExecutor):
    """Executor that sleeps (uninterruptibly) before succeeding."""

    def __init__(self, seconds: float):
        self.seconds = seconds

    async def execute(self, node, context, hooks: ExecutorHooks):
        await asyncio.sleep(self.seconds)
        return NodeExecutionResult.ok("done")


@pytest.fixture
def raising_executor() -> RaisingExecutor:
    """Executor that fails every node with "boom"."""
    return RaisingExecutor("boom")


@pytest.fixture
def slow_executor() -> SlowExecutor:
    """Executor that would hold a node for 30 seconds."""
    return SlowExecutor(30)


# =============================================================================
# Engine Fixtures
# =============================================================================


@pytest.fixture
def engine_config() -> EngineConfig:
    """Engine settings with no simulated latency and a fixed seed."""
    return EngineConfig(simulated_latency=0.0, random_seed=7, log_to_logger=False)


@pytest.fixture
def engine(engine_config: EngineConfig) -> WorkflowEngine:
    """Engine wired to the default registry."""
    return WorkflowEngine(config=engine_config)


@pytest.fixture
def run_workflow(engine: WorkflowEngine) -> Callable[..., WorkflowExecutionResult]:
    """Run a workflow synchronously on the shared engine.

    Example:
        def test_x(run_workflow, linear_workflow):
            result = run_workflow(linear_workflow, {"input": 1})
    """

    def _run(
        workflow: Workflow | dict,
        context: dict[str, Any] | None = None,
        callbacks: WorkflowCallbacks | None = None,
        **kwargs: Any,
    ) -> WorkflowExecutionResult:
        return asyncio.run(engine.execute(workflow, context, callbacks, **kwargs))

    return _run


@pytest.fixture
def registry():
    """Fresh default executor registry."""
    return default_registry(random_seed=7)


@pytest.fixture
def hooks() -> tuple[ExecutorHooks, list[str]]:
    """ExecutorHooks whose log lines are captured in the returned list."""
    lines: list[str] = []
    return ExecutorHooks(log=lines.append), lines


# =============================================================================
# Workflow Fixtures
# =============================================================================


@pytest.fixture
def make_workflow() -> Callable[..., Workflow]:
    """Builder for ad-hoc workflows from compact node and edge tuples.

    Example:
        def test_x(make_workflow):
            workflow = make_workflow([("t", "trigger", {})])
    """
    return build_workflow


@pytest.fixture
def linear_workflow() -> Workflow:
    """trigger -> function(toUpperCase) -> output."""
    return build_workflow(
        [
            ("start", "trigger", {"inputs": {"name": "ada"}}),
            (
                "upper",
                "function",
                {"functionName": "toUpperCase", "params": {"text": "{{name}}"}},
            ),
            ("out", "output", {"variableName": "greeting", "value": "Hello {{upper}}"}),
        ],
        [("start", "upper"), ("upper", "out")],
    )


@pytest.fixture
def branch_workflow() -> Workflow:
    """trigger -> conditional({{input.x}} > 5) -> {true: A="big", false: B="small"}."""
    return build_workflow(
        [
            ("trigger", "trigger", {}),
            ("cond", "conditional", {"condition": "{{input.x}} > 5"}),
            ("A", "output", {"variableName": "A", "value": "big"}),
            ("B", "output", {"variableName": "B", "value": "small"}),
        ],
        [
            ("trigger", "cond"),
            ("cond", "A", {"label": "true"}),
            ("cond", "B", {"label": "false"}),
        ],
    )


@pytest.fixture
def workflow_file(tmp_path: Path, branch_workflow: Workflow) -> Path:
    """The branch workflow written to a YAML file."""
    path = tmp_path / "branch.yaml"
    path.write_text(yaml.safe_dump(branch_workflow.model_dump(by_alias=True)))
    return path
