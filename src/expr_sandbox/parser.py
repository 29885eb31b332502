"""
Parser for the expression language.

Parses a stream of tokens into an Abstract Syntax Tree (AST).
Uses recursive descent parsing with ECMAScript operator precedence.

Precedence (lowest to highest):
1. Sequence: ,
2. Assignment / arrow functions: = += ... =>
3. Conditional: ? :
4. Logical OR / nullish: || ??
5. Logical AND: &&
6. Bitwise OR: |
7. Bitwise XOR: ^
8. Bitwise AND: &
9. Equality: == != === !==
10. Relational: < <= > >= in instanceof
11. Shift: << >> >>>
12. Additive: + -
13. Multiplicative: * / %
14. Exponentiation: ** (right associative)
15. Unary: ! ~ + - typeof void delete ++ --
16. Postfix: ++ --
17. Call / member: . ?. [] () new, tagged templates
18. Primary: literals, identifiers, parentheses, array/object/template literals

Assignment, update, sequence and tagged-template expressions are parsed so
that the evaluator can reject them with a message quoting the source.
"""

from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, Optional, Union

from .ast import (
    ArrayExpressionNode,
    ArrowFunctionExpressionNode,
    AssignmentExpressionNode,
    AstNode,
    BinaryExpressionNode,
    CallExpressionNode,
    ChainExpressionNode,
    ConditionalExpressionNode,
    IdentifierNode,
    LiteralNode,
    LogicalExpressionNode,
    MemberExpressionNode,
    NewExpressionNode,
    ObjectExpressionNode,
    PropertyNode,
    RegExpLiteralNode,
    SequenceExpressionNode,
    SpreadElementNode,
    StatementNode,
    TaggedTemplateExpressionNode,
    TemplateElementNode,
    TemplateLiteralNode,
    ThisExpressionNode,
    UnaryExpressionNode,
    UpdateExpressionNode,
    calculate_ast_depth,
    count_ast_nodes,
)
from .errors import LimitExceededError, ParseError
from .limits import (
    DEFAULT_EXPRESSION_LIMITS,
    ExpressionLimits,
    check_array_length,
    check_ast_depth,
    check_ast_node_count,
    check_function_arg_count,
    check_regex_pattern_length,
)
from .tokenizer import TemplateParts, Token, TokenType, tokenize

# Binary operator tables, one per precedence level (lowest first).
_BINARY_LEVELS: List[Dict[TokenType, str]] = [
    {TokenType.PIPE: "|"},
    {TokenType.CARET: "^"},
    {TokenType.AMP: "&"},
    {
        TokenType.EQ: "==",
        TokenType.NE: "!=",
        TokenType.STRICT_EQ: "===",
        TokenType.STRICT_NE: "!==",
    },
    {
        TokenType.LT: "<",
        TokenType.LE: "<=",
        TokenType.GT: ">",
        TokenType.GE: ">=",
        TokenType.IN: "in",
        TokenType.INSTANCEOF: "instanceof",
    },
    {TokenType.SHL: "<<", TokenType.SHR: ">>", TokenType.USHR: ">>>"},
    {TokenType.PLUS: "+", TokenType.MINUS: "-"},
    {TokenType.STAR: "*", TokenType.SLASH: "/", TokenType.PERCENT: "%"},
]

_BINARY_PRECEDENCE: Dict[TokenType, int] = {
    token_type: level
    for level, operators in enumerate(_BINARY_LEVELS)
    for token_type in operators
}

_UNARY_OPERATORS: Dict[TokenType, str] = {
    TokenType.NOT: "!",
    TokenType.MINUS: "-",
    TokenType.PLUS: "+",
    TokenType.TILDE: "~",
    TokenType.TYPEOF: "typeof",
    TokenType.VOID: "void",
    TokenType.DELETE: "delete",
}

# Tokens that may appear as a property name after "." or as an object key.
_NAME_TOKENS = frozenset(
    [
        TokenType.IDENTIFIER,
        TokenType.KEYWORD,
        TokenType.TRUE,
        TokenType.FALSE,
        TokenType.NULL,
        TokenType.THIS,
        TokenType.NEW,
        TokenType.TYPEOF,
        TokenType.VOID,
        TokenType.DELETE,
        TokenType.IN,
        TokenType.INSTANCEOF,
    ]
)


def _describe_token(token: Token) -> str:
    if token.type == TokenType.EOF:
        return "end of input"
    return f"'{token.value}'"


class Parser:
    """Parser for expression strings."""

    def __init__(
        self,
        tokens: List[Token],
        source: str,
        limits: ExpressionLimits = DEFAULT_EXPRESSION_LIMITS,
        depth: int = 0,
    ):
        self._tokens = tokens
        self._source = source
        self._limits = limits
        self._current = 0
        # Nesting of sub-expressions and brackets, checked while descending
        self._depth = depth
        self._deepest = depth

    def parse(self) -> AstNode:
        """Parses the token stream into an AST."""
        try:
            if self._check(TokenType.KEYWORD):
                ast: AstNode = self._parse_statement()
            else:
                ast = self._parse_sequence()

                # A single trailing semicolon is tolerated, as in "a + b;"
                self._match(TokenType.SEMICOLON)
        except RecursionError:
            raise LimitExceededError(
                "max_ast_depth", self._limits.max_ast_depth, self._deepest
            ) from None

        if not self._is_at_end():
            raise self._unexpected(self._peek())

        # Validate AST limits
        node_count = count_ast_nodes(ast)
        check_ast_node_count(node_count, self._limits)

        depth = calculate_ast_depth(ast)
        check_ast_depth(depth, self._limits)

        return ast

    def parse_substitution(self) -> AstNode:
        """Parses the body of a template ${...} substitution."""
        ast = self._parse_sequence()
        if not self._is_at_end():
            raise self._unexpected(self._peek())
        return ast

    # ============================================================
    # Token Helpers
    # ============================================================

    def _is_at_end(self) -> bool:
        return self._peek().type == TokenType.EOF

    def _peek(self, offset: int = 0) -> Token:
        index = min(self._current + offset, len(self._tokens) - 1)
        return self._tokens[index]

    def _previous(self) -> Token:
        return self._tokens[self._current - 1]

    def _advance(self) -> Token:
        if not self._is_at_end():
            self._current += 1
        return self._previous()

    def _check(self, token_type: TokenType) -> bool:
        if self._is_at_end():
            return False
        return self._peek().type == token_type

    def _match(self, *types: TokenType) -> bool:
        for token_type in types:
            if self._check(token_type):
                self._advance()
                return True
        return False

    def _consume(self, token_type: TokenType, message: str) -> Token:
        if self._check(token_type):
            return self._advance()
        raise self._unexpected(self._peek(), message)

    def _unexpected(self, token: Token, expected: Optional[str] = None) -> ParseError:
        message = f"Unexpected token: {_describe_token(token)}"
        if expected:
            message = f"{message} ({expected})"
        return ParseError(message, token.position, self._source)

    @contextmanager
    def _nested(self) -> Iterator[None]:
        """Counts one level of nesting, failing as soon as max_ast_depth is passed."""
        self._depth += 1
        self._deepest = max(self._deepest, self._depth)
        try:
            check_ast_depth(self._depth, self._limits)
            yield
        finally:
            self._depth -= 1

    # ============================================================
    # Statements
    # ============================================================

    def _parse_statement(self) -> AstNode:
        """Wraps a statement in an opaque node spanning the rest of the source."""
        keyword = self._advance()
        while not self._is_at_end():
            self._advance()
        end = self._peek().position
        return StatementNode(start=keyword.position, end=end, keyword=keyword.value)

    # ============================================================
    # Expression Parsing (by precedence, lowest to highest)
    # ============================================================

    def _parse_sequence(self) -> AstNode:
        """Parses comma expressions: a, b, c"""
        start = self._peek().position
        node = self._parse_assignment()

        if not self._check(TokenType.COMMA):
            return node

        expressions = [node]
        while self._match(TokenType.COMMA):
            expressions.append(self._parse_assignment())

        return SequenceExpressionNode(
            start=start, end=expressions[-1].end, expressions=expressions
        )

    def _parse_assignment(self) -> AstNode:
        """Parses arrow functions and assignments: a => b, a = b, a += b"""
        with self._nested():
            if self._is_arrow_ahead():
                return self._parse_arrow_function()

            start = self._peek().position
            node = self._parse_conditional()

            if self._match(TokenType.ASSIGN):
                operator = self._previous().value
                right = self._parse_assignment()
                return AssignmentExpressionNode(
                    start=start, end=right.end, operator=operator, left=node, right=right
                )

            return node

    def _is_arrow_ahead(self) -> bool:
        """Looks ahead for "x =>" or "(...) =>" without consuming tokens."""
        token = self._peek()
        if token.type == TokenType.IDENTIFIER:
            return self._peek(1).type == TokenType.ARROW

        if token.type != TokenType.LPAREN:
            return False

        depth = 0
        offset = 0
        while True:
            current = self._peek(offset)
            if current.type == TokenType.EOF:
                return False
            if current.type in (TokenType.LPAREN, TokenType.LBRACKET, TokenType.LBRACE):
                depth += 1
            elif current.type in (
                TokenType.RPAREN,
                TokenType.RBRACKET,
                TokenType.RBRACE,
            ):
                depth -= 1
                if depth == 0:
                    return self._peek(offset + 1).type == TokenType.ARROW
            offset += 1

    def _parse_arrow_function(self) -> AstNode:
        start = self._peek().position
        params: List[IdentifierNode] = []

        if self._match(TokenType.IDENTIFIER):
            token = self._previous()
            params.append(IdentifierNode(start=token.position, end=token.end, name=token.value))
        else:
            self._consume(TokenType.LPAREN, "expected '('")
            if not self._check(TokenType.RPAREN):
                while True:
                    params.append(self._parse_arrow_parameter())
                    if not self._match(TokenType.COMMA):
                        break
                    if self._check(TokenType.RPAREN):
                        break
            self._consume(TokenType.RPAREN, "expected ')' after parameters")

        names = [param.name for param in params]
        if len(set(names)) != len(names):
            raise ParseError(
                "Duplicate parameter name not allowed in this context",
                start,
                self._source,
            )

        self._consume(TokenType.ARROW, "expected '=>'")

        if self._check(TokenType.LBRACE):
            raise ParseError(
                "Arrow function block bodies are not supported",
                self._peek().position,
                self._source,
            )

        body = self._parse_assignment()
        return ArrowFunctionExpressionNode(start=start, end=body.end, params=params, body=body)

    def _parse_arrow_parameter(self) -> IdentifierNode:
        token = self._peek()

        if token.type == TokenType.ELLIPSIS:
            raise ParseError("Rest parameters are not supported", token.position, self._source)
        if token.type in (TokenType.LBRACE, TokenType.LBRACKET):
            raise ParseError(
                "Destructuring parameters are not supported", token.position, self._source
            )

        name = self._consume(TokenType.IDENTIFIER, "expected parameter name")
        if self._check(TokenType.ASSIGN):
            raise ParseError(
                "Default parameters are not supported", self._peek().position, self._source
            )
        return IdentifierNode(start=name.position, end=name.end, name=name.value)

    def _parse_conditional(self) -> AstNode:
        """Parses ternary expressions: test ? consequent : alternate"""
        start = self._peek().position
        node = self._parse_logical_or()

        if self._match(TokenType.QUESTION):
            consequent = self._parse_assignment()
            self._consume(TokenType.COLON, "expected ':' in conditional expression")
            alternate = self._parse_assignment()

            node = ConditionalExpressionNode(
                start=start,
                end=alternate.end,
                test=node,
                consequent=consequent,
                alternate=alternate,
            )

        return node

    def _parse_logical_or(self) -> AstNode:
        """Parses logical OR and nullish coalescing: ||, ??"""
        start = self._peek().position
        node = self._parse_logical_and()

        while self._match(TokenType.OR, TokenType.NULLISH):
            operator = "||" if self._previous().type == TokenType.OR else "??"
            right = self._parse_logical_and()
            node = LogicalExpressionNode(
                start=start, end=right.end, operator=operator, left=node, right=right  # type: ignore[arg-type]
            )

        return node

    def _parse_logical_and(self) -> AstNode:
        """Parses logical AND: &&"""
        start = self._peek().position
        node = self._parse_binary(0)

        while self._match(TokenType.AND):
            right = self._parse_binary(0)
            node = LogicalExpressionNode(
                start=start, end=right.end, operator="&&", left=node, right=right
            )

        return node

    def _parse_binary(self, level: int) -> AstNode:
        """Parses left-associative binary operators binding at least as tight as level."""
        start = self._peek().position
        node = self._parse_exponent()

        while not self._is_at_end():
            operator_level = _BINARY_PRECEDENCE.get(self._peek().type)
            if operator_level is None or operator_level < level:
                break
            operator = _BINARY_LEVELS[operator_level][self._advance().type]
            right = self._parse_binary(operator_level + 1)
            node = BinaryExpressionNode(
                start=start, end=right.end, operator=operator, left=node, right=right  # type: ignore[arg-type]
            )

        return node

    def _parse_exponent(self) -> AstNode:
        """Parses exponentiation: a ** b (right associative)"""
        start = self._peek().position
        is_unary = self._peek().type in _UNARY_OPERATORS
        node = self._parse_unary()

        if self._check(TokenType.STAR_STAR):
            if is_unary:
                raise ParseError(
                    "Unary operator used immediately before exponentiation expression. "
                    "Parenthesis must be used to disambiguate operator precedence",
                    self._peek().position,
                    self._source,
                )
            self._advance()
            with self._nested():
                right = self._parse_exponent()
            node = BinaryExpressionNode(
                start=start, end=right.end, operator="**", left=node, right=right
            )

        return node

    def _parse_unary(self) -> AstNode:
        """Parses unary operators and prefix updates"""
        token = self._peek()

        if token.type in _UNARY_OPERATORS:
            self._advance()
            with self._nested():
                argument = self._parse_unary()
            return UnaryExpressionNode(
                start=token.position,
                end=argument.end,
                operator=_UNARY_OPERATORS[token.type],  # type: ignore[arg-type]
                argument=argument,
            )

        if token.type in (TokenType.PLUS_PLUS, TokenType.MINUS_MINUS):
            self._advance()
            with self._nested():
                argument = self._parse_unary()
            return UpdateExpressionNode(
                start=token.position,
                end=argument.end,
                operator=token.value,  # type: ignore[arg-type]
                argument=argument,
                prefix=True,
            )

        return self._parse_postfix()

    def _parse_postfix(self) -> AstNode:
        """Parses postfix updates: a++, a--"""
        node = self._parse_call_member()

        if self._match(TokenType.PLUS_PLUS, TokenType.MINUS_MINUS):
            token = self._previous()
            node = UpdateExpressionNode(
                start=node.start,
                end=token.end,
                operator=token.value,  # type: ignore[arg-type]
                argument=node,
                prefix=False,
            )

        return node

    def _parse_call_member(self) -> AstNode:
        """Parses member access, calls and optional chains"""
        if self._check(TokenType.NEW):
            node = self._parse_new()
        else:
            node = self._parse_primary()

        start = node.start
        in_chain = False

        while True:
            if self._match(TokenType.DOT):
                node = self._parse_dot_member(node, start, optional=False)
            elif self._match(TokenType.QUESTION_DOT):
                in_chain = True
                if self._match(TokenType.LPAREN):
                    arguments = self._parse_arguments()
                    node = CallExpressionNode(
                        start=start,
                        end=self._previous().end,
                        callee=node,
                        arguments=arguments,
                        optional=True,
                    )
                elif self._match(TokenType.LBRACKET):
                    node = self._parse_computed_member(node, start, optional=True)
                else:
                    node = self._parse_dot_member(node, start, optional=True)
            elif self._match(TokenType.LBRACKET):
                node = self._parse_computed_member(node, start, optional=False)
            elif self._match(TokenType.LPAREN):
                arguments = self._parse_arguments()
                node = CallExpressionNode(
                    start=start, end=self._previous().end, callee=node, arguments=arguments
                )
            elif self._check(TokenType.TEMPLATE):
                if in_chain:
                    raise ParseError(
                        "Invalid tagged template on optional chain",
                        self._peek().position,
                        self._source,
                    )
                quasi = self._parse_template(self._advance())
                node = TaggedTemplateExpressionNode(
                    start=start, end=quasi.end, tag=node, quasi=quasi
                )
            else:
                break

        if in_chain:
            node = ChainExpressionNode(start=start, end=node.end, expression=node)

        return node

    def _parse_dot_member(self, obj: AstNode, start: int, optional: bool) -> AstNode:
        token = self._peek()
        if token.type not in _NAME_TOKENS:
            raise self._unexpected(token, "expected property name")
        self._advance()
        prop = IdentifierNode(start=token.position, end=token.end, name=token.value)
        return MemberExpressionNode(
            start=start,
            end=token.end,
            object=obj,
            property=prop,
            computed=False,
            optional=optional,
        )

    def _parse_computed_member(self, obj: AstNode, start: int, optional: bool) -> AstNode:
        with self._nested():
            prop = self._parse_sequence()
        closing = self._consume(TokenType.RBRACKET, "expected ']' after computed property")
        return MemberExpressionNode(
            start=start,
            end=closing.end,
            object=obj,
            property=prop,
            computed=True,
            optional=optional,
        )

    def _parse_new(self) -> AstNode:
        """Parses constructor calls: new Foo(args)"""
        new_token = self._consume(TokenType.NEW, "expected 'new'")

        with self._nested():
            if self._check(TokenType.NEW):
                callee = self._parse_new()
            else:
                callee = self._parse_primary()

        # The constructor target may be a member chain, but not a call
        while True:
            if self._match(TokenType.DOT):
                callee = self._parse_dot_member(callee, callee.start, optional=False)
            elif self._match(TokenType.LBRACKET):
                callee = self._parse_computed_member(callee, callee.start, optional=False)
            else:
                break

        if self._check(TokenType.QUESTION_DOT):
            raise ParseError(
                "Invalid optional chain from new expression",
                self._peek().position,
                self._source,
            )

        arguments: List[AstNode] = []
        end = callee.end
        if self._match(TokenType.LPAREN):
            arguments = self._parse_arguments()
            end = self._previous().end

        return NewExpressionNode(
            start=new_token.position, end=end, callee=callee, arguments=arguments
        )

    def _parse_arguments(self) -> List[AstNode]:
        """Parses call arguments; the opening parenthesis is already consumed."""
        arguments: List[AstNode] = []

        with self._nested():
            while not self._check(TokenType.RPAREN):
                arguments.append(self._parse_spread_or_assignment())
                if not self._match(TokenType.COMMA):
                    break

        self._consume(TokenType.RPAREN, "expected ')' after arguments")
        check_function_arg_count(len(arguments), self._limits)
        return arguments

    def _parse_spread_or_assignment(self) -> AstNode:
        if self._match(TokenType.ELLIPSIS):
            start = self._previous().position
            argument = self._parse_assignment()
            return SpreadElementNode(start=start, end=argument.end, argument=argument)
        return self._parse_assignment()

    def _parse_primary(self) -> AstNode:
        """Parses primary expressions: literals, identifiers, groups"""
        token = self._peek()
        handler = self._primary_handlers().get(token.type)

        if handler is None:
            if token.type == TokenType.KEYWORD:
                raise ParseError(
                    f"Unexpected keyword '{token.value}'", token.position, self._source
                )
            raise self._unexpected(token)

        return handler()

    def _primary_handlers(self) -> Dict[TokenType, Callable[[], AstNode]]:
        return {
            TokenType.NUMBER: self._parse_literal,
            TokenType.BIGINT: self._parse_literal,
            TokenType.STRING: self._parse_literal,
            TokenType.TRUE: self._parse_literal,
            TokenType.FALSE: self._parse_literal,
            TokenType.NULL: self._parse_literal,
            TokenType.REGEX: self._parse_regex,
            TokenType.TEMPLATE: lambda: self._parse_template(self._advance()),
            TokenType.IDENTIFIER: self._parse_identifier,
            TokenType.THIS: self._parse_this,
            TokenType.LPAREN: self._parse_group,
            TokenType.LBRACKET: self._parse_array,
            TokenType.LBRACE: self._parse_object,
        }

    def _parse_literal(self) -> AstNode:
        token = self._advance()
        if token.type == TokenType.TRUE:
            value = True
        elif token.type == TokenType.FALSE:
            value = False
        elif token.type == TokenType.NULL:
            value = None
        else:
            value = token.data
        return LiteralNode(start=token.position, end=token.end, value=value, raw=token.value)

    def _parse_regex(self) -> AstNode:
        token = self._advance()
        pattern, flags = token.data
        check_regex_pattern_length(pattern, self._limits)
        return RegExpLiteralNode(start=token.position, end=token.end, pattern=pattern, flags=flags)

    def _parse_identifier(self) -> AstNode:
        token = self._advance()
        return IdentifierNode(start=token.position, end=token.end, name=token.value)

    def _parse_this(self) -> AstNode:
        token = self._advance()
        return ThisExpressionNode(start=token.position, end=token.end)

    def _parse_group(self) -> AstNode:
        self._advance()
        with self._nested():
            node = self._parse_sequence()
        self._consume(TokenType.RPAREN, "expected ')' after expression")
        return node

    def _parse_array(self) -> AstNode:
        start = self._advance().position
        elements: List[Optional[AstNode]] = []

        with self._nested():
            while not self._check(TokenType.RBRACKET):
                if self._match(TokenType.COMMA):
                    # Hole: [1, , 3]
                    elements.append(None)
                    continue

                elements.append(self._parse_spread_or_assignment())

                if not self._check(TokenType.RBRACKET):
                    self._consume(TokenType.COMMA, "expected ',' or ']' in array literal")

        closing = self._consume(TokenType.RBRACKET, "expected ']' after array elements")
        check_array_length(len(elements), self._limits)
        return ArrayExpressionNode(start=start, end=closing.end, elements=elements)

    def _parse_object(self) -> AstNode:
        start = self._advance().position
        properties: List[Union[PropertyNode, SpreadElementNode]] = []

        with self._nested():
            while not self._check(TokenType.RBRACE):
                if self._match(TokenType.ELLIPSIS):
                    spread_start = self._previous().position
                    argument = self._parse_assignment()
                    properties.append(
                        SpreadElementNode(start=spread_start, end=argument.end, argument=argument)
                    )
                else:
                    properties.append(self._parse_property())

                if not self._check(TokenType.RBRACE):
                    self._consume(TokenType.COMMA, "expected ',' or '}' in object literal")

        closing = self._consume(TokenType.RBRACE, "expected '}' after object properties")
        return ObjectExpressionNode(start=start, end=closing.end, properties=properties)

    def _parse_property(self) -> PropertyNode:
        token = self._peek()
        computed = False

        if token.type in _NAME_TOKENS:
            self._advance()
            key: AstNode = IdentifierNode(start=token.position, end=token.end, name=token.value)
        elif token.type in (TokenType.STRING, TokenType.NUMBER, TokenType.BIGINT):
            key = self._parse_literal()
        elif self._match(TokenType.LBRACKET):
            computed = True
            key = self._parse_assignment()
            self._consume(TokenType.RBRACKET, "expected ']' after computed key")
        else:
            raise self._unexpected(token, "expected property name")

        if self._match(TokenType.COLON):
            value = self._parse_assignment()
            return PropertyNode(
                start=token.position, end=value.end, key=key, value=value, computed=computed
            )

        # Shorthand: { a }
        if token.type == TokenType.IDENTIFIER and not computed and (
            self._check(TokenType.COMMA) or self._check(TokenType.RBRACE)
        ):
            return PropertyNode(
                start=token.position,
                end=token.end,
                key=key,
                value=IdentifierNode(start=token.position, end=token.end, name=token.value),
                shorthand=True,
            )

        if self._check(TokenType.LPAREN):
            raise ParseError(
                "Method definitions are not supported", self._peek().position, self._source
            )
        raise self._unexpected(self._peek(), "expected ':' after property name")

    def _parse_template(self, token: Token) -> TemplateLiteralNode:
        parts: TemplateParts = token.data
        quasis = []
        for index, (cooked, raw, start, end) in enumerate(parts.quasis):
            quasis.append(
                TemplateElementNode(
                    start=start,
                    end=end,
                    cooked=cooked,
                    raw=raw,
                    tail=index == len(parts.quasis) - 1,
                )
            )

        expressions = []
        for start, end in parts.expressions:
            tokens = tokenize(self._source, self._limits, start, end)
            sub_parser = Parser(tokens, self._source, self._limits, self._depth + 1)
            expressions.append(sub_parser.parse_substitution())
            self._deepest = max(self._deepest, sub_parser._deepest)

        return TemplateLiteralNode(
            start=token.position, end=token.end, quasis=quasis, expressions=expressions
        )


def parse(source: str, limits: ExpressionLimits = DEFAULT_EXPRESSION_LIMITS) -> AstNode:
    """
    Parses an expression string into an AST.

    Args:
        source: The expression string to parse
        limits: Optional expression limits

    Returns:
        The root AST node

    Raises:
        TokenizerError: If the expression contains invalid tokens
        ParseError: If the expression has invalid syntax
        LimitExceededError: If the expression exceeds configured limits
    """
    tokens = tokenize(source, limits)
    parser = Parser(tokens, source, limits)
    return parser.parse()
