"""Template and variable substitution shared by every node executor.

Placeholders look like ``{{ user.name }}``: a dot-separated path, surrounding
whitespace ignored. Paths are resolved against the run context one segment at a
time and resolution never raises; a missing segment yields ``MISSING``.

Unresolved placeholders are left in the output exactly as written. Downstream
consumers (prompts shown to a human, or templates rendered later in the run)
rely on still seeing the raw ``{{...}}`` text.
"""

from __future__ import annotations

import json
import math
import re
from collections.abc import Callable, Mapping, Sequence
from typing import Any

PLACEHOLDER_PATTERN = re.compile(r"\{\{([^}]+)\}\}")

# A value that is exactly one placeholder, e.g. "{{ items }}"
_SINGLE_PLACEHOLDER = re.compile(r"^\s*\{\{\s*([^}]+?)\s*\}\}\s*$")


class _Missing:
    """Sentinel for an unresolved path (distinct from an explicit ``None``)."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


def is_defined(value: Any) -> bool:
    """Return True unless value is the MISSING sentinel."""
    return value is not MISSING


def get_value_by_path(data: Any, path: str) -> Any:
    """Resolve a dot-path such as ``"input.items.0.name"`` against nested data.

    Mappings are descended by key and sequences by integer segment. Descent
    stops at the first missing segment, or at a None/empty value that cannot be
    descended into, and returns MISSING.

    Args:
        data: Root mapping (usually the run context)
        path: Dot-separated path, surrounding whitespace ignored

    Returns:
        The resolved value, or MISSING if any segment is absent
    """
    current = data
    for segment in path.strip().split("."):
        if isinstance(current, Mapping):
            if segment not in current:
                return MISSING
            current = current[segment]
        elif isinstance(current, Sequence) and not isinstance(current, (str, bytes)):
            if not segment.lstrip("-").isdigit():
                return MISSING
            index = int(segment)
            if not -len(current) <= index < len(current):
                return MISSING
            current = current[index]
        else:
            return MISSING
    return current


def to_json(value: Any, pretty: bool = False) -> str:
    """Serialize a value to JSON, compact unless ``pretty`` is set."""
    if pretty:
        return json.dumps(value, indent=2, ensure_ascii=False, default=str)
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)


def to_text(value: Any, pretty: bool = False) -> str:
    """Coerce a resolved value to text.

    Scalars use script-style spelling (``true``, ``false``, ``null``, integral
    floats without a trailing ``.0``) so rendered templates match what the
    workflow editor shows. Mappings and sequences are JSON-serialized.
    """
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, (Mapping, list, tuple)):
        return to_json(value, pretty=pretty)
    return str(value)


def to_expression_literal(value: Any) -> str:
    """Render a value as a literal for the restricted expression language.

    Strings become JSON string literals (quotes and backslashes escaped),
    mappings/sequences become compact JSON, and everything else is coerced
    with ``to_text``.
    """
    if isinstance(value, str):
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, (Mapping, list, tuple)):
        return to_json(value)
    return to_text(value)


def find_placeholders(template: str) -> list[str]:
    """Return the trimmed paths of all placeholders, in order of appearance."""
    return [match.strip() for match in PLACEHOLDER_PATTERN.findall(template)]


def substitute(
    template: str,
    context: Mapping[str, Any],
    formatter: Callable[[Any], str] = to_text,
) -> str:
    """Replace every resolvable ``{{path}}`` in template using context.

    Args:
        template: Text containing zero or more placeholders
        context: Variables to resolve paths against
        formatter: Turns a resolved value into replacement text

    Returns:
        The rendered text. Placeholders whose path does not resolve are kept
        verbatim.
    """
    if not template or "{{" not in template:
        return template

    def _replace(match: re.Match) -> str:
        value = get_value_by_path(context, match.group(1))
        if value is MISSING:
            return match.group(0)
        return formatter(value)

    return PLACEHOLDER_PATTERN.sub(_replace, template)


def substitute_pretty(template: str, context: Mapping[str, Any]) -> str:
    """Render a human-readable prompt: objects are pretty-printed JSON."""
    return substitute(template, context, formatter=lambda v: to_text(v, pretty=True))


def substitute_expression(template: str, context: Mapping[str, Any]) -> str:
    """Render an expression string: values become expression literals."""
    return substitute(template, context, formatter=to_expression_literal)


def resolve_template_value(value: Any, context: Mapping[str, Any]) -> Any:
    """Substitute templates through a parameter structure.

    Strings that consist of a single resolvable placeholder yield the raw value
    (so ``"{{ items }}"`` passes the list itself). Other strings are rendered
    as text. Mappings and lists are processed recursively; all other values
    are returned unchanged.
    """
    if isinstance(value, str):
        single = _SINGLE_PLACEHOLDER.match(value)
        if single:
            resolved = get_value_by_path(context, single.group(1))
            if resolved is not MISSING:
                return resolved
        return substitute(value, context)
    if isinstance(value, Mapping):
        return {key: resolve_template_value(item, context) for key, item in value.items()}
    if isinstance(value, list):
        return [resolve_template_value(item, context) for item in value]
    return value
