"""Trigger, input and output executors: the nodes that move data in and out of a run."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

from flowcore.core.expression import to_number, truthy
from flowcore.core.graph_schema import NodeExecutionResult, WorkflowNode
from flowcore.core.templating import resolve_template_value, substitute, to_json, to_text
from flowcore.executors.base import ExecutorHooks, NodeExecutor

logger = logging.getLogger(__name__)


def utc_timestamp() -> str:
    """Current time as an ISO-8601 string with millisecond precision and a Z suffix."""
    return _iso_z(datetime.now(timezone.utc))


def _iso_z(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    text = moment.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    return text.replace("+00:00", "Z")


def _to_iso_date(value: Any) -> str:
    """Convert a datetime, epoch milliseconds or date string to an ISO timestamp."""
    if isinstance(value, datetime):
        return _iso_z(value)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return _iso_z(datetime.fromtimestamp(value / 1000, tz=timezone.utc))
    if isinstance(value, str):
        try:
            return _iso_z(datetime.fromisoformat(value.strip()))
        except ValueError as e:
            raise ValueError(f"Invalid time value: {value!r}") from e
    raise ValueError(f"Invalid time value: {value!r}")


def format_output(value: Any, fmt: str | None) -> Any:
    """Coerce an output value to a declared format tag.

    Unknown or empty tags return the value unchanged.
    """
    if not fmt:
        return value
    fmt = fmt.lower()
    if fmt == "json":
        return json.loads(value) if isinstance(value, str) else value
    if fmt == "string":
        if isinstance(value, (dict, list)):
            return to_json(value)
        return to_text(value)
    if fmt == "number":
        return to_number(value)
    if fmt == "boolean":
        return truthy(value)
    if fmt == "date":
        return _to_iso_date(value)
    return value


class TriggerExecutor(NodeExecutor):
    """Starts a run: copies configured ``inputs`` into the context."""

    async def execute(
        self, node: WorkflowNode, context: dict[str, Any], hooks: ExecutorHooks
    ) -> NodeExecutionResult:
        inputs = node.data.get("inputs") or {}
        processed: dict[str, Any] = {}
        if isinstance(inputs, dict):
            for key, value in inputs.items():
                context[key] = value
                processed[key] = value

        return NodeExecutionResult.ok(
            {
                "triggerType": node.data.get("triggerType") or "manual",
                "inputs": processed,
                "timestamp": utc_timestamp(),
            }
        )


class InputExecutor(NodeExecutor):
    """Provides a literal ``value``, or the context variable named by ``variableName``."""

    async def execute(
        self, node: WorkflowNode, context: dict[str, Any], hooks: ExecutorHooks
    ) -> NodeExecutionResult:
        value = node.data.get("value")
        if value is not None:
            return NodeExecutionResult.ok(resolve_template_value(value, context))

        variable = node.data.get("variableName")
        if variable and variable in context:
            return NodeExecutionResult.ok(context[variable])

        return NodeExecutionResult.ok({})


class OutputExecutor(NodeExecutor):
    """Publishes a value under the node's declared variable name.

    Without an explicit ``value`` the node returns a snapshot of the whole
    context instead.
    """

    async def execute(
        self, node: WorkflowNode, context: dict[str, Any], hooks: ExecutorHooks
    ) -> NodeExecutionResult:
        if "value" not in node.data:
            return NodeExecutionResult.ok(dict(context))

        value = node.data["value"]
        if isinstance(value, str):
            value = substitute(value, context)

        formatted = format_output(value, node.data.get("format"))

        key = output_variable(node)
        if key:
            context[key] = formatted
            hooks.log(f"Output node {node.id} stored '{key}'")

        return NodeExecutionResult.ok(formatted)


def output_variable(node: WorkflowNode) -> str | None:
    """Declared variable name of an output node (``variableName`` or ``outputKey``)."""
    return node.data.get("variableName") or node.data.get("outputKey") or None
