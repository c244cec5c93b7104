"""Placeholder executors for node types backed by external services.

Retrieval, web search, knowledge-base and vector queries need providers this
runtime does not talk to. These executors satisfy the node contract by echoing
their configuration, so workflows that contain such nodes still run end to end.
"""

from __future__ import annotations

from typing import Any

from flowcore.core.graph_schema import NodeExecutionResult, WorkflowNode
from flowcore.executors.base import ExecutorHooks, NodeExecutor


class ExternalServiceStub(NodeExecutor):
    """Echoes the node's configuration as its output."""

    async def execute(
        self, node: WorkflowNode, context: dict[str, Any], hooks: ExecutorHooks
    ) -> NodeExecutionResult:
        hooks.log(f"Simulating external {node.type} node {node.id}")
        return NodeExecutionResult.ok(
            {
                "message": f"Simulated result for {node.type} node",
                "data": dict(node.data),
            }
        )
