"""
Tests for expression parser.
"""

import pytest

from expr_sandbox import (
    ExpressionLimits,
    LimitExceededError,
    ParseError,
    ast_to_string,
    calculate_ast_depth,
    count_ast_nodes,
    describe_node,
    parse,
)
from expr_sandbox.values import JSBigInt


class TestLiterals:
    """Tests for literal parsing."""

    def test_parses_string_literal(self):
        ast = parse('"hello"')
        assert ast.type == "Literal"
        assert ast.value == "hello"
        assert ast.raw == '"hello"'

    def test_parses_number_literal(self):
        ast = parse("42")
        assert ast.type == "Literal"
        assert ast.value == 42

    def test_parses_bigint_literal(self):
        assert parse("10n").value == JSBigInt(10)

    def test_parses_keyword_literals(self):
        assert parse("true").value is True
        assert parse("false").value is False
        assert parse("null").value is None

    def test_parses_regex_literal(self):
        ast = parse("/a+/g")
        assert ast.type == "RegExpLiteral"
        assert ast.pattern == "a+"
        assert ast.flags == "g"

    def test_parses_empty_array(self):
        ast = parse("[]")
        assert ast.type == "ArrayExpression"
        assert list(ast.elements) == []

    def test_parses_array_holes(self):
        ast = parse("[1, , 3]")
        assert len(ast.elements) == 3
        assert ast.elements[1] is None

    def test_parses_trailing_comma_in_array(self):
        assert len(parse("[1, 2,]").elements) == 2

    def test_parses_array_spread(self):
        ast = parse("[...a, 1]")
        assert ast.elements[0].type == "SpreadElement"
        assert ast.elements[0].argument.name == "a"


class TestObjectLiterals:
    """Tests for object literal parsing."""

    def test_parses_plain_properties(self):
        ast = parse("({a: 1, 'b': 2, 3: 4})")
        assert ast.type == "ObjectExpression"
        keys = [prop.key for prop in ast.properties]
        assert keys[0].type == "Identifier"
        assert keys[1].value == "b"
        assert keys[2].value == 3

    def test_parses_shorthand_property(self):
        prop = parse("({a})").properties[0]
        assert prop.shorthand is True
        assert prop.value.name == "a"

    def test_parses_computed_key(self):
        prop = parse("({[k]: 1})").properties[0]
        assert prop.computed is True
        assert prop.key.name == "k"

    def test_parses_object_spread(self):
        ast = parse("({...a, b: 1})")
        assert ast.properties[0].type == "SpreadElement"

    def test_keyword_keys_are_allowed(self):
        prop = parse("({if: 1})").properties[0]
        assert prop.key.name == "if"

    def test_rejects_method_definition(self):
        with pytest.raises(ParseError, match="Method definitions are not supported"):
            parse("({a() {}})")


class TestMemberAndCall:
    """Tests for member access, calls and optional chains."""

    def test_parses_dot_member(self):
        ast = parse("a.b")
        assert ast.type == "MemberExpression"
        assert ast.computed is False
        assert ast.property.name == "b"

    def test_parses_computed_member(self):
        ast = parse("a[0]")
        assert ast.computed is True
        assert ast.property.value == 0

    def test_keyword_property_names(self):
        assert parse("a.new").property.name == "new"

    def test_parses_call_with_arguments(self):
        ast = parse("f(1, x)")
        assert ast.type == "CallExpression"
        assert ast.callee.name == "f"
        assert len(ast.arguments) == 2

    def test_parses_spread_argument(self):
        ast = parse("f(...xs)")
        assert ast.arguments[0].type == "SpreadElement"

    def test_optional_chain_is_wrapped(self):
        ast = parse("a?.b.c")
        assert ast.type == "ChainExpression"
        inner = ast.expression
        assert inner.type == "MemberExpression"
        assert inner.optional is False
        assert inner.object.optional is True

    def test_optional_call(self):
        ast = parse("f?.()")
        assert ast.type == "ChainExpression"
        assert ast.expression.type == "CallExpression"
        assert ast.expression.optional is True

    def test_parses_new_with_arguments(self):
        ast = parse("new Date(0)")
        assert ast.type == "NewExpression"
        assert ast.callee.name == "Date"
        assert len(ast.arguments) == 1

    def test_parses_new_without_arguments(self):
        ast = parse("new Map")
        assert ast.type == "NewExpression"
        assert list(ast.arguments) == []

    def test_new_with_member_callee(self):
        ast = parse("new a.B()")
        assert ast.callee.type == "MemberExpression"

    def test_rejects_optional_chain_from_new(self):
        with pytest.raises(ParseError):
            parse("new a?.b()")


class TestOperators:
    """Tests for operator parsing and precedence."""

    def test_multiplication_before_addition(self):
        ast = parse("1 + 2 * 3")
        assert ast.operator == "+"
        assert ast.right.operator == "*"

    def test_left_associative_subtraction(self):
        ast = parse("1 - 2 - 3")
        assert ast.left.operator == "-"

    def test_exponent_is_right_associative(self):
        ast = parse("2 ** 3 ** 2")
        assert ast.operator == "**"
        assert ast.right.operator == "**"

    def test_rejects_unary_before_exponent(self):
        with pytest.raises(ParseError, match="Unary operator used immediately"):
            parse("-2 ** 2")

    def test_parenthesized_unary_before_exponent(self):
        assert parse("(-2) ** 2").operator == "**"

    def test_logical_operators(self):
        ast = parse("a || b && c")
        assert ast.type == "LogicalExpression"
        assert ast.operator == "||"
        assert ast.right.operator == "&&"

    def test_nullish_operator(self):
        assert parse("a ?? b").operator == "??"

    def test_relational_keywords(self):
        assert parse("'a' in o").operator == "in"
        assert parse("a instanceof B").operator == "instanceof"

    def test_conditional(self):
        ast = parse("a ? b : c")
        assert ast.type == "ConditionalExpression"
        assert ast.alternate.name == "c"

    def test_unary_operators(self):
        for source, operator in [("!a", "!"), ("typeof a", "typeof"), ("void 0", "void")]:
            ast = parse(source)
            assert ast.type == "UnaryExpression"
            assert ast.operator == operator

    def test_assignment_is_parsed(self):
        assert parse("a = 1").type == "AssignmentExpression"

    def test_update_is_parsed(self):
        assert parse("a++").type == "UpdateExpression"

    def test_sequence_is_parsed(self):
        assert parse("a, b").type == "SequenceExpression"

    def test_trailing_semicolon_is_tolerated(self):
        assert parse("a + b;").type == "BinaryExpression"


class TestArrowFunctions:
    """Tests for arrow function parsing."""

    def test_single_parameter(self):
        ast = parse("x => x + 1")
        assert ast.type == "ArrowFunctionExpression"
        assert [p.name for p in ast.params] == ["x"]

    def test_parenthesized_parameters(self):
        ast = parse("(a, b) => a + b")
        assert [p.name for p in ast.params] == ["a", "b"]

    def test_no_parameters(self):
        assert list(parse("() => 1").params) == []

    def test_rejects_block_body(self):
        with pytest.raises(ParseError, match="block bodies are not supported"):
            parse("x => { return x }")

    def test_rejects_rest_parameter(self):
        with pytest.raises(ParseError, match="Rest parameters"):
            parse("(...a) => a")

    def test_rejects_default_parameter(self):
        with pytest.raises(ParseError, match="Default parameters"):
            parse("(a = 1) => a")

    def test_rejects_duplicate_parameters(self):
        with pytest.raises(ParseError, match="Duplicate parameter name"):
            parse("(a, a) => a")


class TestTemplates:
    """Tests for template literal parsing."""

    def test_parses_template_literal(self):
        ast = parse("`a${x}b`")
        assert ast.type == "TemplateLiteral"
        assert [q.cooked for q in ast.quasis] == ["a", "b"]
        assert ast.expressions[0].name == "x"
        assert ast.quasis[-1].tail is True

    def test_substitution_positions_point_into_source(self):
        source = "`v=${a + b}`"
        ast = parse(source)
        expression = ast.expressions[0]
        assert source[expression.start : expression.end] == "a + b"

    def test_tagged_template_is_parsed(self):
        assert parse("tag`x`").type == "TaggedTemplateExpression"


class TestStatementsAndErrors:
    """Tests for statements and syntax errors."""

    def test_statement_spans_rest_of_source(self):
        source = "with (obj) { foo }"
        ast = parse(source)
        assert ast.type == "Statement"
        assert ast.keyword == "with"
        assert source[ast.start : ast.end] == source

    def test_unexpected_token(self):
        with pytest.raises(ParseError, match="Unexpected token"):
            parse("1 +")

    def test_unexpected_trailing_token(self):
        with pytest.raises(ParseError) as exc_info:
            parse("a b")
        assert exc_info.value.position == 2

    def test_unclosed_paren(self):
        with pytest.raises(ParseError, match="expected '\\)'"):
            parse("(1 + 2")

    def test_keyword_in_expression(self):
        with pytest.raises(ParseError, match="Unexpected keyword 'return'"):
            parse("1 + return")

    def test_error_formats_with_context(self):
        with pytest.raises(ParseError) as exc_info:
            parse("a b")
        assert exc_info.value.format_with_context().endswith("a b\n    ^")


class TestLimits:
    """Tests for parse-time limits."""

    def test_node_count_limit(self):
        limits = ExpressionLimits(max_ast_nodes=3)
        with pytest.raises(LimitExceededError) as exc_info:
            parse("1 + 2 + 3", limits)
        assert exc_info.value.limit_name == "max_ast_nodes"

    def test_depth_limit(self):
        limits = ExpressionLimits(max_ast_depth=3)
        with pytest.raises(LimitExceededError):
            parse("((((a))))[0][0][0]", limits)

    @pytest.mark.parametrize(
        "source",
        [
            "(" * 60 + "1" + ")" * 60,
            "[" * 60 + "]" * 60,
            "{a: " * 60 + "1" + "}" * 60,
            "f(" * 60 + ")" * 60,
            "a" + "[b" * 60 + "]" * 60,
            "!" * 2000 + "x",
            "-" * 2000 + "x",
            "2 ** " * 1000 + "2",
            "x => " * 200 + "x",
            "a ? b : " * 500 + "c",
        ],
    )
    def test_deep_nesting_fails_while_parsing(self, source):
        with pytest.raises(LimitExceededError) as exc_info:
            parse(source)
        assert exc_info.value.limit_name == "max_ast_depth"

    def test_nested_template_substitutions_count_toward_depth(self):
        source = "`${" * 40 + "1" + "}`" * 40
        with pytest.raises(LimitExceededError) as exc_info:
            parse(source)
        assert exc_info.value.limit_name == "max_ast_depth"

    def test_moderate_nesting_parses(self):
        ast = parse("(" * 20 + "1" + ")" * 20)
        assert ast.type == "Literal"
        assert parse("[" * 20 + "]" * 20).type == "ArrayExpression"

    def test_long_operator_chain_fails_with_node_limit(self):
        with pytest.raises(LimitExceededError) as exc_info:
            parse("1 + " * 3000 + "1")
        assert exc_info.value.limit_name == "max_ast_nodes"

    def test_function_argument_limit(self):
        limits = ExpressionLimits(max_function_args=2)
        with pytest.raises(LimitExceededError):
            parse("f(1, 2, 3)", limits)

    def test_regex_pattern_limit(self):
        limits = ExpressionLimits(max_regex_pattern_length=3)
        with pytest.raises(LimitExceededError):
            parse("/abcd/", limits)


class TestAstUtilities:
    """Tests for AST helper functions."""

    def test_counts_nodes(self):
        assert count_ast_nodes(parse("1 + 2")) == 3

    def test_calculates_depth(self):
        assert calculate_ast_depth(parse("a.b.c")) == 3

    def test_ast_to_string(self):
        text = ast_to_string(parse("a + 1"))
        assert text.splitlines() == [
            "BinaryExpression: +",
            "  Identifier: a",
            "  Literal: 1",
        ]

    @pytest.mark.parametrize(
        "source,expected",
        [
            ("foo", "foo"),
            ("a.b.c", "a.b.c"),
            ("a[0]", "a[0]"),
            ("a?.b", "a?.b"),
            ("[1,2,3]", "[1,2,3]"),
            ("({})", "{}"),
            ("({a: 1})", "{(intermediate value)}"),
            ("'x'", "'x'"),
        ],
    )
    def test_describe_node(self, source, expected):
        assert describe_node(parse(source)) == expected

    def test_describe_node_returns_none_for_calls(self):
        assert describe_node(parse("f()")) is None
