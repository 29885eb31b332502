"""
Tests for template rendering.
"""

import logging

import pytest

from expr_sandbox import (
    UNDEFINED_PLACEHOLDER,
    ExpressionLimits,
    LimitExceededError,
    ParseError,
    SecurityError,
    TemplateOptions,
    TemplateRenderer,
    evaluate_template,
)
from expr_sandbox.errors import TypeError as ExprTypeError


class TestEvaluateTemplate:
    """Tests for rendering templates in one call."""

    def test_simple_substitution(self):
        assert evaluate_template("Hello, {{ name }}!", {"name": "World"}) == "Hello, World!"

    def test_arithmetic(self):
        result = evaluate_template("{{ a }} + {{ b }} = {{ a + b }}", {"a": 10, "b": 20})
        assert result == "10 + 20 = 30"

    def test_text_only(self):
        assert evaluate_template("no expressions here") == "no expressions here"

    def test_regex_literal_with_quote(self):
        result = evaluate_template("{{ /'/.test(s) }} {{ s.replace(/'/g, '') }}", {"s": "it's"})
        assert result == "true its"

    def test_member_access(self):
        context = {"user": {"name": "Ada", "roles": ["admin", "dev"]}}
        result = evaluate_template("{{ user.name }} ({{ user.roles.length }})", context)
        assert result == "Ada (2)"

    @pytest.mark.parametrize(
        "expression,expected",
        [
            ("[1, 2, 3]", "1,2,3"),
            ("null", "null"),
            ("true", "true"),
            ("0.1 + 0.2", "0.30000000000000004"),
            ("({a: 1})", "[object Object]"),
            ("10n", "10"),
            ("1 / 0", "Infinity"),
        ],
    )
    def test_value_formatting(self, expression, expected):
        assert evaluate_template(f"{{{{ {expression} }}}}") == expected

    def test_missing_property_renders_undefined(self):
        assert evaluate_template("[{{ o.missing }}]", {"o": {}}) == "[undefined]"

    def test_undefined_variable_renders_placeholder(self):
        assert UNDEFINED_PLACEHOLDER == ""
        assert evaluate_template("Hi {{ missing }}!") == "Hi !"

    def test_undefined_variable_in_member_chain(self):
        assert evaluate_template("[{{ missing.name }}]") == "[]"

    def test_other_expressions_still_render(self):
        assert evaluate_template("{{ missing }}{{ 1 + 1 }}") == "2"

    def test_type_error_propagates(self):
        with pytest.raises(ExprTypeError, match="Cannot read property 'a' of null"):
            evaluate_template("{{ obj.a }}", {"obj": None})

    def test_security_error_propagates(self):
        with pytest.raises(SecurityError, match="Mutable method is not allowed"):
            evaluate_template("{{ items.push(1) }}", {"items": []})

    def test_syntax_error_propagates(self):
        with pytest.raises(ParseError):
            evaluate_template("{{ 1 + }}")

    def test_limits_apply_to_each_expression(self):
        limits = ExpressionLimits(max_expression_length=5)
        assert evaluate_template("{{ 1 }}", {}, None, limits) == "1"
        with pytest.raises(LimitExceededError):
            evaluate_template("{{ 'abcdefgh' }}", {}, None, limits)

    def test_custom_markers(self):
        options = TemplateOptions(expression_start="${", expression_end="}")
        assert evaluate_template("Hi ${ name }", {"name": "World"}, options) == "Hi World"

    def test_dict_options(self):
        options = {"expressionStart": "<%", "expressionEnd": "%>"}
        assert evaluate_template("<% n * 2 %>", {"n": 21}, options) == "42"

    def test_arrow_functions_and_builtins(self):
        context = {"items": [{"price": 2}, {"price": 3}]}
        template = "Total: {{ items.map(i => i.price).reduce((a, b) => a + b, 0) }}"
        assert evaluate_template(template, context) == "Total: 5"

    def test_string_containing_closing_marker(self):
        assert evaluate_template('Value: {{ "brace: }}" }} end.') == "Value: brace: }} end."


class TestTemplateRenderer:
    """Tests for the reusable renderer."""

    def test_renders_many_templates(self):
        renderer = TemplateRenderer({"x": 1})
        assert renderer.render("{{ x }}") == "1"
        assert renderer.render("{{ x + 1 }}") == "2"

    def test_context_is_not_modified(self):
        context = {"items": [3, 1, 2]}
        renderer = TemplateRenderer(context)
        assert renderer.render("{{ items.toSorted() }}") == "1,2,3"
        assert context == {"items": [3, 1, 2]}

    def test_logs_placeholder_substitution(self, caplog):
        caplog.set_level(logging.DEBUG, logger="expr_sandbox.template")
        TemplateRenderer().render("{{ missing }}")
        records = [r for r in caplog.records if r.getMessage() == "template_placeholder_substituted"]
        assert len(records) == 1
        assert records[0].identifier == "missing"
        assert records[0].position == 0
