"""Tests for template and variable substitution."""

from flowcore.core.expression import evaluate
from flowcore.core.templating import (
    MISSING,
    find_placeholders,
    get_value_by_path,
    is_defined,
    resolve_template_value,
    substitute,
    substitute_expression,
    substitute_pretty,
    to_text,
)


class TestGetValueByPath:
    """Dot-path resolution against nested data."""

    def test_nested_mapping(self):
        """Each segment descends one mapping level."""
        assert get_value_by_path({"user": {"name": "Ada"}}, "user.name") == "Ada"

    def test_sequence_index(self):
        """Integer segments index into lists."""
        data = {"items": [{"id": 1}, {"id": 2}]}
        assert get_value_by_path(data, "items.1.id") == 2

    def test_missing_segment_short_circuits(self):
        """Any missing segment yields MISSING instead of raising."""
        assert get_value_by_path({"a": {}}, "a.b.c") is MISSING
        assert get_value_by_path({"a": None}, "a.b") is MISSING
        assert get_value_by_path({"a": "text"}, "a.b") is MISSING
        assert get_value_by_path({"items": [1]}, "items.5") is MISSING

    def test_explicit_none_is_defined(self):
        """A key holding None is found (distinct from a missing key)."""
        value = get_value_by_path({"a": None}, "a")
        assert value is None
        assert is_defined(value)

    def test_whitespace_is_trimmed(self):
        assert get_value_by_path({"x": 1}, "  x ") == 1


class TestSubstitute:
    """Placeholder replacement in text."""

    def test_replaces_all_occurrences(self):
        """Every placeholder is processed, left to right."""
        text = substitute("{{a}} and {{ b }} and {{a}}", {"a": "x", "b": "y"})
        assert text == "x and y and x"

    def test_unresolved_placeholder_left_verbatim(self):
        """Unknown paths keep the exact original text."""
        assert substitute("Hi {{ user.name }}!", {}) == "Hi {{ user.name }}!"

    def test_mixed_resolved_and_unresolved(self):
        text = substitute("{{known}} {{unknown}}", {"known": 1})
        assert text == "1 {{unknown}}"

    def test_scalar_coercion(self):
        """Scalars use script spelling."""
        context = {"t": True, "f": False, "n": None, "i": 3, "fl": 3.0, "x": 2.5}
        assert substitute("{{t}} {{f}} {{n}} {{i}} {{fl}} {{x}}", context) == (
            "true false null 3 3 2.5"
        )

    def test_objects_serialized_compactly(self):
        assert substitute("{{obj}}", {"obj": {"a": [1, 2]}}) == '{"a":[1,2]}'

    def test_text_without_placeholders_unchanged(self):
        assert substitute("plain text", {"a": 1}) == "plain text"

    def test_empty_template(self):
        assert substitute("", {"a": 1}) == ""


class TestSubstitutionVariants:
    """Prompt and expression renderings."""

    def test_pretty_prompt_rendering(self):
        """Prompts pretty-print objects for human readers."""
        text = substitute_pretty("Data: {{obj}}", {"obj": {"a": 1}})
        assert text == 'Data: {\n  "a": 1\n}'

    def test_expression_rendering_quotes_strings(self):
        """Strings become double-quoted literals, numbers stay bare."""
        context = {"status": "ok", "count": 4, "tags": ["a"]}
        text = substitute_expression("{{status}} == 'ok' && {{count}} > 1 && {{tags}}", context)
        assert text == '"ok" == \'ok\' && 4 > 1 && ["a"]'

    def test_expression_rendering_keeps_unresolved(self):
        assert substitute_expression("{{missing}} > 1", {}) == "{{missing}} > 1"

    def test_expression_rendering_escapes_quotes(self):
        """Quotes and backslashes in values cannot break out of the literal."""
        context = {"quote": 'say "hi"', "path": "C:\\tmp"}
        text = substitute_expression("{{quote}} === {{path}}", context)
        assert text == '"say \\"hi\\"" === "C:\\\\tmp"'
        assert evaluate(substitute_expression('{{quote}} === \'say "hi"\'', context)) is True


class TestResolveTemplateValue:
    """Value-preserving parameter substitution."""

    def test_single_placeholder_returns_raw_value(self):
        """A string that is exactly one placeholder passes the value through."""
        items = [1, 2, 3]
        assert resolve_template_value("{{ items }}", {"items": items}) is items

    def test_embedded_placeholder_renders_text(self):
        assert resolve_template_value("n={{n}}", {"n": 5}) == "n=5"

    def test_unresolved_single_placeholder_kept(self):
        assert resolve_template_value("{{nope}}", {}) == "{{nope}}"

    def test_recurses_through_structures(self):
        """Nested dicts and lists are processed; other values untouched."""
        params = {"a": "{{x}}", "b": ["{{y}}", 7], "c": {"d": "v={{x}}"}, "e": None}
        resolved = resolve_template_value(params, {"x": 1, "y": "why"})
        assert resolved == {"a": 1, "b": ["why", 7], "c": {"d": "v=1"}, "e": None}


class TestHelpers:
    def test_find_placeholders(self):
        assert find_placeholders("{{ a.b }} x {{c}}") == ["a.b", "c"]

    def test_to_text_large_integral_float(self):
        assert to_text(10.0) == "10"
        assert to_text(float("inf")) == "Infinity"

    def test_missing_is_falsy_singleton(self):
        assert not MISSING
        assert repr(MISSING) == "MISSING"
