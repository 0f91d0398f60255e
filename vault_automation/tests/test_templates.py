"""
Tests for template resolution
"""

import pytest

from vault_automation.runtime_data.templates import (
    has_placeholders,
    lookup,
    resolve_template,
    resolve_value,
)


class TestResolveTemplate:
    """Tests for resolve_template."""

    def test_plain_variable(self):
        """Test substituting a plain variable."""
        assert resolve_template("Hello {{name}}!", {"name": "World"}) == "Hello World!"

    def test_dotted_field_access(self):
        """Test dotted access into structured values."""
        variables = {"topic": {"input": "Foo", "button": "OK"}}
        assert resolve_template("Summarize {{topic.input}}", variables) == "Summarize Foo"

    def test_field_access_on_json_string(self):
        """Test that string variables holding JSON can be navigated."""
        variables = {"data": '{"user": {"name": "Ann"}}'}
        assert resolve_template("{{data.user.name}}", variables) == "Ann"

    def test_field_access_on_fenced_json(self):
        """Test JSON wrapped in a fenced code block."""
        variables = {"reply": '```json\n{"score": 7}\n```'}
        assert resolve_template("{{reply.score}}", variables) == "7"

    def test_bracket_index(self):
        """Test literal list indexes."""
        variables = {"items": ["a", "b", "c"]}
        assert resolve_template("{{items[0]}}-{{items[2]}}", variables) == "a-c"

    def test_quoted_key(self):
        """Test quoted keys in brackets."""
        variables = {"headers": {"Content-Type": "text/plain"}}
        assert resolve_template('{{headers["Content-Type"]}}', variables) == "text/plain"

    def test_variable_as_index(self):
        """Test a bare variable name used as an index."""
        variables = {"items": ["a", "b", "c"], "i": 1}
        assert resolve_template("{{items[i]}}", variables) == "b"

    def test_nested_template_index(self):
        """Test nested placeholders are resolved innermost first."""
        variables = {"items": ["a", "b", "c"], "i": 2}
        assert resolve_template("{{items[{{i}}]}}", variables) == "c"

    def test_nested_index_with_missing_variable(self):
        """Test that an unbound inner index empties the whole placeholder."""
        diagnostics = []

        result = resolve_template("x={{items[{{i}}]}}", {"items": ["a", "b"]}, diagnostics)

        assert result == "x="
        assert "Unresolved variable 'i' replaced with empty string" in diagnostics

    def test_list_length(self):
        """Test the length pseudo-field of lists."""
        assert resolve_template("{{items.length}}", {"items": [1, 2, 3]}) == "3"

    def test_structured_value_rendered_as_json(self):
        """Test that objects and arrays are substituted as compact JSON."""
        variables = {"obj": {"a": 1, "b": [True, None]}}
        assert resolve_template("{{obj}}", variables) == '{"a":1,"b":[true,null]}'

    def test_scalar_rendering(self):
        """Test booleans and integral floats."""
        variables = {"flag": True, "count": 3.0, "ratio": 0.5}
        assert resolve_template("{{flag}} {{count}} {{ratio}}", variables) == "true 3 0.5"

    def test_missing_variable_is_empty_and_diagnosed(self):
        """Test that missing variables become empty strings with a diagnostic."""
        diagnostics = []
        result = resolve_template("[{{missing}}]", {}, diagnostics)

        assert result == "[]"
        assert len(diagnostics) == 1
        assert "missing" in diagnostics[0]

    def test_missing_field_is_empty(self):
        """Test that a missing path segment resolves to an empty string."""
        assert resolve_template("{{obj.nope}}", {"obj": {"a": 1}}) == ""

    def test_json_modifier_escapes(self):
        """Test the :json modifier for embedding text in JSON."""
        variables = {"text": 'He said "hi"\nbye'}
        result = resolve_template('{"q": "{{text:json}}"}', variables)
        assert result == '{"q": "He said \\"hi\\"\\nbye"}'

    def test_unparseable_expression_left_literal(self):
        """Test that an invalid expression is kept as written."""
        diagnostics = []
        result = resolve_template("{{1abc}} and {{ok}}", {"ok": "yes"}, diagnostics)

        assert result == "{{1abc}} and yes"
        assert diagnostics

    def test_unclosed_placeholder_kept(self):
        """Test that an unclosed placeholder is left alone."""
        assert resolve_template("value {{name", {"name": "x"}) == "value {{name"

    def test_substituted_text_not_rescanned(self):
        """Test that values containing placeholders are not expanded again."""
        variables = {"a": "{{b}}", "b": "secret"}
        assert resolve_template("{{a}}", variables) == "{{b}}"

    def test_idempotent_for_bound_variables(self):
        """Test that resolving resolved output is a no-op."""
        variables = {"name": "World", "items": [1, 2]}
        once = resolve_template("Hi {{name}} {{items[1]}}", variables)
        assert resolve_template(once, variables) == once

    def test_non_string_template(self):
        """Test that non-string templates are rendered as text."""
        assert resolve_template(42, {}) == "42"


class TestResolveValue:
    """Tests for resolve_value."""

    def test_lone_placeholder_keeps_structure(self):
        """Test that a whole-template placeholder returns the raw value."""
        items = [{"a": 1}]
        assert resolve_value("{{items}}", {"items": items}) is items

    def test_mixed_text_returns_string(self):
        """Test that surrounding text forces a string result."""
        assert resolve_value("n={{n}}", {"n": 5}) == "n=5"

    def test_missing_lone_placeholder(self):
        """Test that a missing lone placeholder is an empty string."""
        assert resolve_value("{{nope}}", {}) == ""

    def test_missing_nested_lone_placeholder(self):
        assert resolve_value("{{items[{{i}}]}}", {"items": [1]}) == ""

    def test_two_placeholders_are_text(self):
        """Test that two adjacent placeholders are not a lone placeholder."""
        assert resolve_value("{{a}}{{b}}", {"a": 1, "b": 2}) == "12"


class TestLookup:
    """Tests for lookup."""

    def test_lookup_returns_raw(self):
        assert lookup("a.b[1]", {"a": {"b": [10, 20]}}) == 20

    def test_lookup_missing_returns_none(self):
        assert lookup("a.b", {"a": 1}) is None

    def test_lookup_invalid_raises(self):
        with pytest.raises(ValueError, match="Invalid template expression"):
            lookup("a..b", {})

    def test_has_placeholders(self):
        assert has_placeholders("x {{y}}")
        assert not has_placeholders("plain")
