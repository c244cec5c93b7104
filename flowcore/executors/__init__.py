"""Built-in node executors and the default registry."""

from __future__ import annotations

import random

from flowcore.core.graph_schema import NodeType
from flowcore.executors.agent import AgentExecutor
from flowcore.executors.base import (
    CancellationToken,
    ExecutorHooks,
    ExecutorRegistry,
    NodeExecutor,
)
from flowcore.executors.basic import InputExecutor, OutputExecutor, TriggerExecutor
from flowcore.executors.conditional import ConditionalExecutor
from flowcore.executors.function import FunctionExecutor
from flowcore.executors.stubs import ExternalServiceStub

__all__ = [
    "AgentExecutor",
    "CancellationToken",
    "ConditionalExecutor",
    "ExecutorHooks",
    "ExecutorRegistry",
    "ExternalServiceStub",
    "FunctionExecutor",
    "InputExecutor",
    "NodeExecutor",
    "OutputExecutor",
    "TriggerExecutor",
    "default_registry",
]


def default_registry(
    simulated_latency: float = 0.0,
    random_seed: int | None = None,
) -> ExecutorRegistry:
    """Build a registry with an executor for every NodeType.

    Args:
        simulated_latency: Base latency for simulated agent responses (seconds)
        random_seed: Seed for the agent executor's random source

    Raises:
        RuntimeError: If a NodeType member has no executor
    """
    agent = AgentExecutor(simulated_latency=simulated_latency, rng=random.Random(random_seed))
    stub = ExternalServiceStub()

    registry = ExecutorRegistry(
        {
            NodeType.TRIGGER: TriggerExecutor(),
            NodeType.INPUT: InputExecutor(),
            NodeType.OUTPUT: OutputExecutor(),
            NodeType.AGENT: agent,
            NodeType.LLM: agent,
            NodeType.CONDITIONAL: ConditionalExecutor(),
            NodeType.FUNCTION: FunctionExecutor(),
        }
    )
    for node_type in NodeType.external_types():
        registry.register(node_type, stub)

    missing = registry.missing_types()
    if missing:
        raise RuntimeError(f"No executor registered for: {sorted(t.value for t in missing)}")
    return registry
