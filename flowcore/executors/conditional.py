"""Conditional executor: evaluates a boolean and reports which branch to take.

Three condition styles are supported, chosen by ``conditionType`` or, when it
is absent, by which fields are configured:

- ``expression``: ``condition: "{{input.x}} > 5 && {{input.mode}} === 'fast'"``
- ``comparison``: ``left``/``operator``/``right`` (or ``leftValue``/``rightValue``)
- ``exists``: ``variable: "input.user"``

The engine routes on the ``result`` field of the output; outgoing edges
labelled (or handled) "true"/"false" are selected accordingly.
"""

from __future__ import annotations

import logging
import math
import re
from typing import Any

from flowcore.core.exceptions import ConditionError
from flowcore.core.expression import (
    compare_values,
    evaluate_condition,
    loose_equals,
    strict_equals,
    to_number,
)
from flowcore.core.graph_schema import NodeExecutionResult, WorkflowNode
from flowcore.core.templating import (
    MISSING,
    get_value_by_path,
    is_defined,
    substitute,
    substitute_expression,
    to_text,
)
from flowcore.executors.base import ExecutorHooks, NodeExecutor

logger = logging.getLogger(__name__)

CONDITION_TYPES = ("expression", "comparison", "exists")

OPERATORS = (
    "==",
    "===",
    "!=",
    "!==",
    "<",
    "<=",
    ">",
    ">=",
    "contains",
    "startsWith",
    "endsWith",
    "matches",
)

_SINGLE_PLACEHOLDER = re.compile(r"^\s*\{\{\s*([^}]+?)\s*\}\}\s*$")


def infer_condition_type(data: dict[str, Any]) -> str | None:
    """Pick the condition style from the configured fields."""
    condition_type = data.get("conditionType")
    if condition_type:
        return condition_type
    if data.get("condition"):
        return "expression"
    if data.get("operator"):
        return "comparison"
    if data.get("variable"):
        return "exists"
    return None


def _side(data: dict[str, Any], name: str) -> Any:
    """Comparison operand, accepting the ``leftValue``/``rightValue`` spelling."""
    if name in data:
        return data[name]
    return data.get(f"{name}Value", MISSING)


def _coerce_numeric(value: Any) -> Any:
    """Numeric-looking strings become numbers; everything else is unchanged."""
    if isinstance(value, str) and value.strip() and "_" not in value:
        number = to_number(value)
        if not math.isnan(number):
            return number
    return value


def resolve_operand(value: Any, context: dict[str, Any]) -> Any:
    """Resolve a comparison operand against the context.

    A bare ``{{path}}`` is looked up by dot-path, a string naming a context
    variable yields that variable, and anything else is a literal (with any
    embedded placeholders rendered).
    """
    if not isinstance(value, str):
        return value
    single = _SINGLE_PLACEHOLDER.match(value)
    if single:
        return get_value_by_path(context, single.group(1))
    if value in context:
        return context[value]
    return substitute(value, context)


def _display(value: Any) -> str:
    if value is MISSING:
        return "undefined"
    if isinstance(value, str):
        return f'"{value}"'
    return to_text(value)


def apply_operator(operator: str, left: Any, right: Any) -> bool:
    """Apply a comparison operator to two resolved operands.

    Raises:
        ConditionError: For unknown operators or invalid ``matches`` patterns
    """
    if operator == "==":
        return loose_equals(left, right)
    if operator == "===":
        return strict_equals(left, right)
    if operator == "!=":
        return not loose_equals(left, right)
    if operator == "!==":
        return not strict_equals(left, right)
    if operator in ("<", "<=", ">", ">="):
        return compare_values(operator, left, right)
    if operator == "contains":
        if isinstance(left, str):
            return to_text(right) in left
        if isinstance(left, list):
            return any(strict_equals(item, right) for item in left)
        return False
    if operator == "startsWith":
        return isinstance(left, str) and left.startswith(to_text(right))
    if operator == "endsWith":
        return isinstance(left, str) and left.endswith(to_text(right))
    if operator == "matches":
        if not isinstance(left, str):
            return False
        try:
            return re.search(to_text(right), left) is not None
        except re.error as e:
            raise ConditionError(f"Invalid pattern for matches: {e}") from e
    raise ConditionError(f"Unsupported operator: {operator}")


class ConditionalExecutor(NodeExecutor):
    """Executes ``conditional`` nodes."""

    def validate(self, node: WorkflowNode) -> bool:
        data = node.data
        condition_type = infer_condition_type(data)
        if condition_type == "expression":
            return bool(data.get("condition"))
        if condition_type == "comparison":
            return data.get("operator") in OPERATORS and is_defined(_side(data, "left"))
        if condition_type == "exists":
            return bool(data.get("variable"))
        return False

    async def execute(
        self, node: WorkflowNode, context: dict[str, Any], hooks: ExecutorHooks
    ) -> NodeExecutionResult:
        data = node.data
        condition_type = infer_condition_type(data)
        hooks.log(f"Conditional Node - Type: {condition_type}, Evaluating condition")

        if condition_type == "expression":
            condition = data.get("condition") or ""
            result, evaluated = self._evaluate_expression(condition, context, hooks)
        elif condition_type == "comparison":
            left, operator, right = _side(data, "left"), data.get("operator"), _side(data, "right")
            raw_left = to_text(left) if is_defined(left) else ""
            raw_right = to_text(right) if is_defined(right) else ""
            condition = f"{raw_left} {operator} {raw_right}"
            result, evaluated = self._evaluate_comparison(left, operator, right, context)
        elif condition_type == "exists":
            condition = data.get("variable") or ""
            result, evaluated = self._evaluate_exists(condition, context)
        elif condition_type is None:
            raise ConditionError(
                "Conditional node requires a condition expression, a comparison "
                "(left, operator, right) or a variable to check"
            )
        else:
            raise ConditionError(f"Unsupported condition type: {condition_type}")

        hooks.log(f"Conditional Node - {evaluated} = {str(result).lower()}")

        return NodeExecutionResult.ok(
            {
                "result": result,
                "condition": condition.strip(),
                "path": "true" if result else "false",
                "evaluatedExpression": evaluated,
            }
        )

    def _evaluate_expression(
        self, condition: str, context: dict[str, Any], hooks: ExecutorHooks
    ) -> tuple[bool, str]:
        if not condition:
            raise ConditionError("Expression condition requires a condition")
        processed = substitute_expression(condition, context)
        hooks.log(f"Conditional Node - Processed expression: {processed}")
        return evaluate_condition(processed, context), processed

    def _evaluate_comparison(
        self, left: Any, operator: Any, right: Any, context: dict[str, Any]
    ) -> tuple[bool, str]:
        if not operator:
            raise ConditionError("Comparison condition requires an operator")

        left_value = _coerce_numeric(resolve_operand(left, context))
        right_value = _coerce_numeric(resolve_operand(right, context))

        result = apply_operator(
            operator,
            None if left_value is MISSING else left_value,
            None if right_value is MISSING else right_value,
        )
        return result, f"{_display(left_value)} {operator} {_display(right_value)}"

    def _evaluate_exists(self, variable: str, context: dict[str, Any]) -> tuple[bool, str]:
        if not variable:
            raise ConditionError("Exists condition requires a variable")
        exists = is_defined(get_value_by_path(context, variable))
        return exists, f"{variable} exists: {str(exists).lower()}"
