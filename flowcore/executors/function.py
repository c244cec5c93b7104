"""Function executor: calls a named utility from a function registry.

Node configuration::

    functionName: filter
    params:
      array: "{{ documents }}"
      predicate: "item.score > 0.5"

``params`` are template-substituted (a value that is exactly one placeholder
passes the raw context value through) and then passed positionally, in the
order they are declared.
"""

from __future__ import annotations

import inspect
import logging
import math
import re
from collections.abc import Callable
from typing import Any

from flowcore.core.exceptions import (
    FunctionExecutionError,
    FunctionNotFoundError,
    NodeConfigurationError,
)
from flowcore.core.expression import make_item_function, truthy
from flowcore.core.graph_schema import NodeExecutionResult, WorkflowNode
from flowcore.core.templating import resolve_template_value
from flowcore.executors.base import ExecutorHooks, NodeExecutor

logger = logging.getLogger(__name__)


# --- Built-in functions ---


def _replace(text: str, search: str, replacement: str) -> str:
    return re.sub(search, replacement, text)


def _filter(array: list, predicate: str) -> list:
    keep = make_item_function(predicate)
    return [item for item in array if truthy(keep(item))]


def _map(array: list, mapper: str) -> list:
    transform = make_item_function(mapper)
    return [transform(item) for item in array]


def _sort(array: list, key: str | None = None) -> list:
    if key:
        return sorted(array, key=lambda item: item[key])
    return sorted(array)


def _pick(obj: dict, keys: list) -> dict:
    return {key: obj[key] for key in keys if key in obj}


def _omit(obj: dict, keys: list) -> dict:
    return {key: value for key, value in obj.items() if key not in keys}


def _round(number: float, decimals: int = 0) -> float | int:
    """Round half up (2.5 -> 3, -2.5 -> -2)."""
    factor = 10**decimals
    rounded = math.floor(number * factor + 0.5) / factor
    return int(rounded) if decimals <= 0 else rounded


BUILTIN_FUNCTIONS: dict[str, Callable[..., Any]] = {
    # Strings
    "toUpperCase": lambda text: text.upper(),
    "toLowerCase": lambda text: text.lower(),
    "trim": lambda text: text.strip(),
    "replace": _replace,
    # Arrays
    "filter": _filter,
    "map": _map,
    "sort": _sort,
    # Objects
    "pick": _pick,
    "omit": _omit,
    # Math
    "add": lambda a, b: a + b,
    "subtract": lambda a, b: a - b,
    "multiply": lambda a, b: a * b,
    "divide": lambda a, b: a / b,
    "round": _round,
}


class FunctionExecutor(NodeExecutor):
    """Executes ``function`` nodes against a per-executor function registry."""

    def __init__(self, functions: dict[str, Callable[..., Any]] | None = None):
        self.functions: dict[str, Callable[..., Any]] = dict(BUILTIN_FUNCTIONS)
        if functions:
            self.functions.update(functions)

    def register_function(self, name: str, fn: Callable[..., Any]) -> None:
        """Register a custom function (sync or async) under ``name``."""
        self.functions[name] = fn

    def validate(self, node: WorkflowNode) -> bool:
        name = node.data.get("functionName")
        return bool(name) and name in self.functions

    async def execute(
        self, node: WorkflowNode, context: dict[str, Any], hooks: ExecutorHooks
    ) -> NodeExecutionResult:
        name = node.data.get("functionName")
        if not name:
            raise NodeConfigurationError("Function node requires a function name")

        fn = self.functions.get(name)
        if fn is None:
            raise FunctionNotFoundError(name)

        params = resolve_template_value(node.data.get("params") or {}, context)
        if isinstance(params, dict):
            args = list(params.values())
        elif isinstance(params, list):
            args = params
        else:
            args = [params]
        hooks.log(f"Function Node - Executing {name} with {len(args)} argument(s)")

        try:
            result = fn(*args)
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            logger.error(f"Error executing function '{name}': {e}")
            raise FunctionExecutionError(f"Function execution failed: {e}") from e

        return NodeExecutionResult.ok(result)
