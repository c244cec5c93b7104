"""Restricted expression language for conditions and function predicates.

Expressions are written in the script-like syntax the workflow editor produces
(``{{input.x}} > 5 && status !== "failed"``). They are rewritten token by
token into Python syntax, parsed with ``ast`` and evaluated by walking a strict
whitelist of node types. There is no ``eval``/``exec`` and no function calls.

Supported:
- literals: numbers, strings, true/false/null/undefined, arrays, objects
- variable references, attribute access (``a.b``), subscripts (``a[0]``),
  ``.length`` on strings, arrays and objects
- arithmetic ``+ - * / %`` (``+`` concatenates when either side is a string)
- comparisons ``== != === !== < <= > >=`` plus ``in`` / ``not in``
- boolean connectives ``&& || !`` (and the Python spellings)

Equality follows the editor's semantics: ``==`` is loose (``"5" == 5``),
``===`` is strict. Truthiness follows script rules (empty arrays and objects
are truthy).
"""

from __future__ import annotations

import ast
import math
from collections.abc import Callable, Mapping
from functools import lru_cache
from typing import Any

from flowcore.core.exceptions import ExpressionError
from flowcore.core.templating import to_text

__all__ = [
    "CompiledExpression",
    "ExpressionError",
    "compare_values",
    "compile_expression",
    "evaluate",
    "evaluate_condition",
    "loose_equals",
    "make_item_function",
    "strict_equals",
    "to_number",
    "truthy",
]

_KEYWORD_LITERALS = {
    "true": "True",
    "false": "False",
    "null": "None",
    "undefined": "None",
}

# Longest first so "===" wins over "=="
_OPERATOR_REWRITES = (
    ("===", " is "),
    ("!==", " is not "),
    ("==", "=="),
    ("!=", "!="),
    ("&&", " and "),
    ("||", " or "),
)

_ALLOWED_NODES = (
    ast.Expression,
    ast.Compare,
    ast.BoolOp,
    ast.UnaryOp,
    ast.BinOp,
    ast.Attribute,
    ast.Subscript,
    ast.Name,
    ast.Constant,
    ast.Load,
    ast.List,
    ast.Tuple,
    ast.Dict,
    ast.Eq,
    ast.NotEq,
    ast.Is,
    ast.IsNot,
    ast.Lt,
    ast.LtE,
    ast.Gt,
    ast.GtE,
    ast.In,
    ast.NotIn,
    ast.And,
    ast.Or,
    ast.Not,
    ast.USub,
    ast.UAdd,
    ast.Add,
    ast.Sub,
    ast.Mult,
    ast.Div,
    ast.Mod,
)


# --- Value semantics ---


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def to_number(value: Any) -> float | int:
    """Convert a value to a number the way the editor's scripts would.

    Booleans become 0/1, None becomes 0, numeric strings are parsed (an empty
    string is 0) and anything else is NaN.
    """
    if isinstance(value, bool):
        return int(value)
    if _is_number(value):
        return value
    if value is None:
        return 0
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0
        try:
            number = float(text)
        except ValueError:
            return math.nan
        return int(number) if number.is_integer() and abs(number) < 2**53 else number
    return math.nan


def truthy(value: Any) -> bool:
    """Script truthiness: containers are always truthy, NaN is falsy."""
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if _is_number(value):
        return value != 0 and not math.isnan(value)
    if isinstance(value, str):
        return value != ""
    return True


def strict_equals(left: Any, right: Any) -> bool:
    """``===``: same kind of value and equal (ints and floats are one kind)."""
    if _is_number(left) and _is_number(right):
        return left == right
    if type(left) is not type(right):
        return False
    return left == right


def loose_equals(left: Any, right: Any) -> bool:
    """``==``: like strict equality, but numbers, numeric strings and booleans compare by value."""
    if left is None or right is None:
        return left is None and right is None
    if strict_equals(left, right):
        return True
    scalar = (str, int, float, bool)
    if isinstance(left, scalar) and isinstance(right, scalar):
        if isinstance(left, str) and isinstance(right, str):
            return False
        return to_number(left) == to_number(right)
    return False


def compare_values(operator: str, left: Any, right: Any) -> bool:
    """Ordering comparison (``< <= > >=``) with numeric coercion.

    Two strings compare lexically; any other pair is compared numerically and
    a comparison involving NaN is False.
    """
    if not (isinstance(left, str) and isinstance(right, str)):
        left, right = to_number(left), to_number(right)
        if math.isnan(left) or math.isnan(right):
            return False
    if operator == "<":
        return left < right
    if operator == "<=":
        return left <= right
    if operator == ">":
        return left > right
    if operator == ">=":
        return left >= right
    raise ValueError(f"Not an ordering operator: {operator}")


# --- Translation and parsing ---


def _translate(expression: str) -> str:
    """Rewrite script operators and keywords into Python syntax.

    String literals are copied verbatim; only code outside them is rewritten.
    """
    out: list[str] = []
    i = 0
    length = len(expression)

    while i < length:
        char = expression[i]

        if char in ("'", '"'):
            end = i + 1
            while end < length and expression[end] != char:
                end += 2 if expression[end] == "\\" else 1
            if end >= length:
                raise ExpressionError(expression, "Unterminated string literal")
            out.append(expression[i : end + 1])
            i = end + 1
            continue

        if char == "`":
            raise ExpressionError(expression, "Template literals are not supported")

        for token, replacement in _OPERATOR_REWRITES:
            if expression.startswith(token, i):
                out.append(replacement)
                i += len(token)
                break
        else:
            if char == "!":
                out.append(" not ")
                i += 1
            elif char.isalpha() or char in "_$":
                end = i
                while end < length and (expression[end].isalnum() or expression[end] in "_$"):
                    end += 1
                word = expression[i:end]
                out.append(_KEYWORD_LITERALS.get(word, word))
                i = end
            elif char.isdigit():
                # Keep number literals intact so "1e5" is not split at "e"
                end = i
                while end < length and (expression[end].isalnum() or expression[end] == "."):
                    end += 1
                out.append(expression[i:end])
                i = end
            else:
                out.append(char)
                i += 1

    return "".join(out)


def _validate_ast(node: ast.AST, expression: str) -> None:
    """Reject any syntax outside the whitelist."""
    if isinstance(node, ast.Call):
        raise ExpressionError(expression, "Function calls are not allowed in expressions")
    if not isinstance(node, _ALLOWED_NODES):
        raise ExpressionError(expression, f"Disallowed expression type: {type(node).__name__}")
    for child in ast.iter_child_nodes(node):
        _validate_ast(child, expression)


@lru_cache(maxsize=256)
def _parse(expression: str) -> ast.Expression:
    source = _translate(expression).strip()
    if not source:
        raise ExpressionError(expression, "Expression cannot be empty")
    try:
        tree = ast.parse(source, mode="eval")
    except SyntaxError as e:
        raise ExpressionError(expression, f"Syntax error: {e.msg}") from e
    _validate_ast(tree, expression)
    return tree


# --- Evaluation ---


class _Evaluator:
    def __init__(self, expression: str, variables: Mapping[str, Any]):
        self.expression = expression
        self.variables = variables

    def fail(self, reason: str) -> ExpressionError:
        return ExpressionError(self.expression, reason)

    def eval(self, node: ast.AST) -> Any:
        if isinstance(node, ast.Constant):
            return node.value

        if isinstance(node, ast.Name):
            if node.id not in self.variables:
                raise self.fail(f"{node.id} is not defined")
            return self.variables[node.id]

        if isinstance(node, ast.Attribute):
            return self._member(self.eval(node.value), node.attr)

        if isinstance(node, ast.Subscript):
            return self._member(self.eval(node.value), self.eval(node.slice))

        if isinstance(node, ast.BoolOp):
            # Short-circuit, returning the deciding operand
            is_and = isinstance(node.op, ast.And)
            value: Any = None
            for operand in node.values:
                value = self.eval(operand)
                if truthy(value) != is_and:
                    return value
            return value

        if isinstance(node, ast.UnaryOp):
            operand = self.eval(node.operand)
            if isinstance(node.op, ast.Not):
                return not truthy(operand)
            number = to_number(operand)
            return -number if isinstance(node.op, ast.USub) else number

        if isinstance(node, ast.BinOp):
            return self._binary(node.op, self.eval(node.left), self.eval(node.right))

        if isinstance(node, ast.Compare):
            # Chains fold left to right: "3 > 2 > 1" is "(3 > 2) > 1"
            result = self.eval(node.left)
            for op, comparator in zip(node.ops, node.comparators):
                result = self._compare(op, result, self.eval(comparator))
            return result

        if isinstance(node, (ast.List, ast.Tuple)):
            return [self.eval(elt) for elt in node.elts]

        if isinstance(node, ast.Dict):
            if any(key is None for key in node.keys):
                raise self.fail("Spread syntax is not supported")
            return {self.eval(k): self.eval(v) for k, v in zip(node.keys, node.values)}

        raise self.fail(f"Unsupported syntax: {type(node).__name__}")

    def _member(self, value: Any, key: Any) -> Any:
        if value is None:
            raise self.fail(f"Cannot read properties of null (reading '{key}')")
        if key == "length" and isinstance(value, (str, list, dict)) and not (
            isinstance(value, dict) and "length" in value
        ):
            return len(value)
        if isinstance(value, Mapping):
            return value.get(key)
        if isinstance(value, (list, str)):
            if isinstance(key, bool) or not isinstance(key, int):
                return None
            return value[key] if 0 <= key < len(value) else None
        return None

    def _binary(self, op: ast.operator, left: Any, right: Any) -> Any:
        if isinstance(op, ast.Add):
            if isinstance(left, str) or isinstance(right, str):
                return to_text(left) + to_text(right)
            return to_number(left) + to_number(right)
        a, b = to_number(left), to_number(right)
        try:
            if isinstance(op, ast.Sub):
                return a - b
            if isinstance(op, ast.Mult):
                return a * b
            if isinstance(op, ast.Div):
                return a / b
            if isinstance(op, ast.Mod):
                return math.fmod(a, b)
        except (ZeroDivisionError, ValueError) as e:
            raise self.fail(str(e)) from e
        raise self.fail(f"Unsupported operator: {type(op).__name__}")

    def _compare(self, op: ast.cmpop, left: Any, right: Any) -> bool:
        if isinstance(op, ast.Eq):
            return loose_equals(left, right)
        if isinstance(op, ast.NotEq):
            return not loose_equals(left, right)
        if isinstance(op, ast.Is):
            return strict_equals(left, right)
        if isinstance(op, ast.IsNot):
            return not strict_equals(left, right)
        if isinstance(op, (ast.In, ast.NotIn)):
            try:
                contained = left in right
            except TypeError as e:
                raise self.fail(str(e)) from e
            return contained if isinstance(op, ast.In) else not contained
        symbol = {ast.Lt: "<", ast.LtE: "<=", ast.Gt: ">", ast.GtE: ">="}[type(op)]
        return compare_values(symbol, left, right)


class CompiledExpression:
    """A parsed, validated expression that can be evaluated repeatedly."""

    def __init__(self, expression: str):
        self.expression = expression
        self._tree = _parse(expression)

    def __call__(self, variables: Mapping[str, Any] | None = None) -> Any:
        return _Evaluator(self.expression, variables or {}).eval(self._tree.body)

    def __repr__(self) -> str:
        return f"CompiledExpression({self.expression!r})"


def compile_expression(expression: str) -> CompiledExpression:
    """Parse and validate an expression.

    Raises:
        ExpressionError: On syntax errors or disallowed constructs
    """
    return CompiledExpression(expression)


def evaluate(expression: str, variables: Mapping[str, Any] | None = None) -> Any:
    """Evaluate an expression and return its raw value."""
    return compile_expression(expression)(variables)


def evaluate_condition(expression: str, variables: Mapping[str, Any] | None = None) -> bool:
    """Evaluate an expression and coerce the result with script truthiness."""
    return truthy(evaluate(expression, variables))


def make_item_function(expression: str) -> Callable[[Any], Any]:
    """Build a one-argument function that evaluates ``expression`` with ``item`` bound."""
    compiled = compile_expression(expression)
    return lambda item: compiled({"item": item})
