"""Core modules for the flowcore workflow runtime."""

from flowcore.core.exceptions import (
    ConditionError,
    ExpressionError,
    FlowcoreError,
    FunctionExecutionError,
    FunctionNotFoundError,
    NodeConfigurationError,
    UnsupportedNodeTypeError,
    WorkflowConfigurationError,
    WorkflowLoadError,
)
from flowcore.core.graph_schema import (
    NodeExecutionResult,
    NodeStatus,
    NodeType,
    Workflow,
    WorkflowEdge,
    WorkflowExecutionResult,
    WorkflowNode,
)

__all__ = [
    "ConditionError",
    "ExpressionError",
    "FlowcoreError",
    "FunctionExecutionError",
    "FunctionNotFoundError",
    "NodeConfigurationError",
    "NodeExecutionResult",
    "NodeStatus",
    "NodeType",
    "UnsupportedNodeTypeError",
    "Workflow",
    "WorkflowConfigurationError",
    "WorkflowEdge",
    "WorkflowExecutionResult",
    "WorkflowLoadError",
    "WorkflowNode",
]
