"""
Tests for the template tokenizer.
"""

import pytest
from pydantic import ValidationError

from expr_sandbox import TemplateOptions, TemplateParser, TemplateToken


def values(tokens):
    return [(token.type, token.value) for token in tokens]


def rebuild(template, tokens, start_marker="{{", end_marker="}}"):
    parts = []
    for token in tokens:
        if token.type == "text":
            parts.append(token.value)
        else:
            parts.append(
                start_marker + template[token.content_start : token.content_end] + end_marker
            )
    return "".join(parts)


class TestTemplateParser:
    """Tests for splitting templates into tokens."""

    def test_text_only(self):
        assert values(TemplateParser().parse("plain text")) == [("text", "plain text")]

    def test_empty_template(self):
        assert TemplateParser().parse("") == []

    def test_text_and_expressions(self):
        tokens = TemplateParser().parse("Hello, {{ name }}!")
        assert values(tokens) == [
            ("text", "Hello, "),
            ("expression", "name"),
            ("text", "!"),
        ]

    def test_adjacent_expressions(self):
        tokens = TemplateParser().parse("{{a}}{{b}}")
        assert values(tokens) == [("expression", "a"), ("expression", "b")]

    def test_positions(self):
        template = "Hello, {{ name }}!"
        expression = TemplateParser().parse(template)[1]
        assert expression == TemplateToken(
            type="expression",
            value="name",
            start=7,
            end=17,
            content_start=9,
            content_end=15,
        )
        assert template[expression.start : expression.end] == "{{ name }}"

    def test_text_positions_cover_source(self):
        template = "a {{ b }} c"
        tokens = TemplateParser().parse(template)
        assert [template[t.start : t.end] for t in tokens] == ["a ", "{{ b }}", " c"]
        assert tokens[0].content_start is None

    def test_unclosed_expression_is_text(self):
        tokens = TemplateParser().parse("a{{b c")
        assert values(tokens) == [("text", "a"), ("text", "{{b c")]
        assert tokens[1].start == 1

    def test_blank_expression_is_dropped(self):
        assert values(TemplateParser().parse("a{{   }}b")) == [("text", "a"), ("text", "b")]

    def test_closing_marker_inside_string(self):
        tokens = TemplateParser().parse('Value: {{ "brace: }}" }} end.')
        assert values(tokens) == [
            ("text", "Value: "),
            ("expression", '"brace: }}"'),
            ("text", " end."),
        ]

    def test_escaped_quote_inside_string(self):
        tokens = TemplateParser().parse("{{ 'it\\'s }}' }}")
        assert values(tokens) == [("expression", "'it\\'s }}'")]

    def test_closing_marker_inside_object_literal(self):
        tokens = TemplateParser().parse("{{ ({a: {b: 1}}).a.b }}")
        assert values(tokens) == [("expression", "({a: {b: 1}}).a.b")]

    def test_template_literal_substitution(self):
        tokens = TemplateParser().parse("{{ `x}}${ {a: 1}.a }` }}")
        assert values(tokens) == [("expression", "`x}}${ {a: 1}.a }`")]

    def test_quote_inside_regex_literal(self):
        tokens = TemplateParser().parse("{{ /'/.test(s) }} ok")
        assert values(tokens) == [("expression", "/'/.test(s)"), ("text", " ok")]

    @pytest.mark.parametrize(
        "expression",
        [
            "s.replace(/\"/g, \"'\")",
            "/}}/.test(s)",
            "/[/}`]/.test(s)",
            "/\\/'/.test(s)",
            "typeof /'/",
            "a ? /'/ : /\"/",
        ],
    )
    def test_regex_literal_bodies_are_skipped(self, expression):
        tokens = TemplateParser().parse("{{ " + expression + " }}!")
        assert values(tokens) == [("expression", expression), ("text", "!")]

    def test_slash_after_operand_is_division(self):
        tokens = TemplateParser().parse("{{ a / b }}/{{ (c) / 2 }}/{{ 10 /2}}")
        assert values(tokens) == [
            ("expression", "a / b"),
            ("text", "/"),
            ("expression", "(c) / 2"),
            ("text", "/"),
            ("expression", "10 /2"),
        ]

    def test_rejects_non_string(self):
        with pytest.raises(TypeError, match="Template must be a string"):
            TemplateParser().parse(42)  # type: ignore[arg-type]

    def test_parse_template_helper(self):
        assert values(TemplateParser.parse_template("{{ x }}")) == [("expression", "x")]


class TestTemplateOptions:
    """Tests for tokenizer options."""

    def test_defaults(self):
        options = TemplateOptions()
        assert options.expression_start == "{{"
        assert options.expression_end == "}}"
        assert options.preserve_whitespace is True
        assert options.include_positions is True

    def test_custom_markers(self):
        parser = TemplateParser(TemplateOptions(expression_start="${", expression_end="}"))
        assert values(parser.parse("Hi ${ name }!")) == [
            ("text", "Hi "),
            ("expression", "name"),
            ("text", "!"),
        ]

    def test_custom_markers_track_braces(self):
        parser = TemplateParser({"expression_start": "${", "expression_end": "}"})
        assert values(parser.parse("${ {a: 1}.a }")) == [("expression", "{a: 1}.a")]

    def test_camel_case_aliases(self):
        parser = TemplateParser({"expressionStart": "<%", "expressionEnd": "%>"})
        assert parser.options.expression_start == "<%"
        assert values(parser.parse("<% x %>")) == [("expression", "x")]

    def test_without_whitespace(self):
        parser = TemplateParser({"preserveWhitespace": False})
        tokens = parser.parse("  x  {{ a }} \n {{ b }}  ")
        assert values(tokens) == [
            ("text", "x"),
            ("expression", "a"),
            ("expression", "b"),
        ]

    def test_without_positions(self):
        parser = TemplateParser(TemplateOptions(include_positions=False))
        tokens = parser.parse("a {{ b }}")
        assert all(token.start is None and token.end is None for token in tokens)
        assert tokens[1].content_start is None

    def test_options_are_frozen(self):
        options = TemplateOptions()
        with pytest.raises(ValidationError):
            options.expression_start = "<%"  # type: ignore[misc]

    def test_rejects_empty_marker(self):
        with pytest.raises(ValidationError):
            TemplateOptions(expression_start="")


class TestReconstruction:
    """Tests that token values and positions reproduce the template text."""

    @pytest.mark.parametrize(
        "template",
        [
            "Hello, {{ name }}!",
            "{{a}}{{b}}{{ c }}",
            "  {{ a }}  \n",
            "{{\n  a +\tb\t}}",
            "x {{ a }} y {{ b",
            "{{ a }}{{",
            "q {{ \"}}\" + '}}' }} r",
            "{{ `}}${ {a: 1}.a }` }}",
            "{{ /'/.test(s) }} and {{ /[/}]/.test(t) }}",
            "}} stray close {{ x }}",
            "no markers at all",
        ],
    )
    def test_default_markers(self, template):
        tokens = TemplateParser().parse(template)
        assert rebuild(template, tokens) == template
        assert [(token.start, token.end) for token in tokens] == list(
            zip([0] + [token.end for token in tokens[:-1]], [token.end for token in tokens])
        )
        assert tokens[-1].end == len(template)

    @pytest.mark.parametrize(
        "template",
        [
            "a ${{ x }}${{y}} b",
            "${{ '}}' }} tail ${{ unclosed",
            "${{ {a: {b: 1}}.a.b }}",
            " ${{\tx\n}} ",
        ],
    )
    def test_custom_markers(self, template):
        parser = TemplateParser({"expressionStart": "${{", "expressionEnd": "}}"})
        tokens = parser.parse(template)
        assert rebuild(template, tokens, "${{", "}}") == template

    def test_expression_values_are_trimmed_content(self):
        template = "{{  a + b \n}}"
        (token,) = TemplateParser().parse(template)
        assert token.value == "a + b"
        assert template[token.content_start : token.content_end] == "  a + b \n"
