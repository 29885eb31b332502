"""
Tokenizer (lexer) for the expression language.

Converts expression strings into a stream of tokens for the parser. The
lexical grammar is the expression subset of ECMAScript: punctuators,
numeric (including BigInt) literals, string literals, template literals,
regular expression literals, identifiers and keywords.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .errors import TokenizerError
from .limits import ExpressionLimits, check_expression_length
from .values import MAX_SAFE_INTEGER, JSBigInt, int_to_float, normalize_number


class TokenType(Enum):
    """Token types produced by the tokenizer."""

    # Literals
    STRING = "STRING"
    NUMBER = "NUMBER"
    BIGINT = "BIGINT"
    TEMPLATE = "TEMPLATE"
    REGEX = "REGEX"
    TRUE = "TRUE"
    FALSE = "FALSE"
    NULL = "NULL"

    # Identifiers and keywords
    IDENTIFIER = "IDENTIFIER"
    THIS = "THIS"
    NEW = "NEW"
    TYPEOF = "TYPEOF"
    VOID = "VOID"
    DELETE = "DELETE"
    IN = "IN"
    INSTANCEOF = "INSTANCEOF"
    KEYWORD = "KEYWORD"

    # Operators
    PLUS = "PLUS"
    MINUS = "MINUS"
    STAR = "STAR"
    STAR_STAR = "STAR_STAR"
    SLASH = "SLASH"
    PERCENT = "PERCENT"
    PLUS_PLUS = "PLUS_PLUS"
    MINUS_MINUS = "MINUS_MINUS"
    LT = "LT"
    LE = "LE"
    GT = "GT"
    GE = "GE"
    EQ = "EQ"
    NE = "NE"
    STRICT_EQ = "STRICT_EQ"
    STRICT_NE = "STRICT_NE"
    AND = "AND"
    OR = "OR"
    NULLISH = "NULLISH"
    NOT = "NOT"
    TILDE = "TILDE"
    AMP = "AMP"
    PIPE = "PIPE"
    CARET = "CARET"
    SHL = "SHL"
    SHR = "SHR"
    USHR = "USHR"
    ASSIGN = "ASSIGN"
    ARROW = "ARROW"
    QUESTION = "QUESTION"
    QUESTION_DOT = "QUESTION_DOT"
    COLON = "COLON"

    # Delimiters
    LPAREN = "LPAREN"
    RPAREN = "RPAREN"
    LBRACKET = "LBRACKET"
    RBRACKET = "RBRACKET"
    LBRACE = "LBRACE"
    RBRACE = "RBRACE"
    DOT = "DOT"
    ELLIPSIS = "ELLIPSIS"
    COMMA = "COMMA"
    SEMICOLON = "SEMICOLON"

    # Special
    EOF = "EOF"


@dataclass
class Token:
    """A token produced by the tokenizer."""

    type: TokenType
    value: str
    position: int
    end: int = 0
    data: Any = field(default=None, compare=False)
    """Decoded payload: number value, cooked string, regex parts, template parts."""


@dataclass
class TemplateParts:
    """Decoded pieces of a template literal token."""

    quasis: List[Tuple[str, str, int, int]]
    """(cooked, raw, start, end) for every literal segment."""

    expressions: List[Tuple[int, int]]
    """(start, end) source spans of the ${...} substitutions."""


# Keywords recognized by the tokenizer
KEYWORDS: Dict[str, TokenType] = {
    "true": TokenType.TRUE,
    "false": TokenType.FALSE,
    "null": TokenType.NULL,
    "this": TokenType.THIS,
    "new": TokenType.NEW,
    "typeof": TokenType.TYPEOF,
    "void": TokenType.VOID,
    "delete": TokenType.DELETE,
    "in": TokenType.IN,
    "instanceof": TokenType.INSTANCEOF,
}

# Reserved words that only start statements or declarations.
STATEMENT_KEYWORDS = frozenset(
    [
        "break",
        "case",
        "catch",
        "class",
        "const",
        "continue",
        "debugger",
        "default",
        "do",
        "else",
        "export",
        "extends",
        "finally",
        "for",
        "function",
        "if",
        "import",
        "let",
        "return",
        "super",
        "switch",
        "throw",
        "try",
        "var",
        "while",
        "with",
        "yield",
        "await",
    ]
)

# Longest punctuators first so that ">>>=" wins over ">>>" over ">>".
PUNCTUATORS: List[Tuple[str, TokenType]] = [
    (">>>=", TokenType.ASSIGN),
    ("...", TokenType.ELLIPSIS),
    ("===", TokenType.STRICT_EQ),
    ("!==", TokenType.STRICT_NE),
    ("**=", TokenType.ASSIGN),
    ("<<=", TokenType.ASSIGN),
    (">>=", TokenType.ASSIGN),
    (">>>", TokenType.USHR),
    ("&&=", TokenType.ASSIGN),
    ("||=", TokenType.ASSIGN),
    ("??=", TokenType.ASSIGN),
    ("=>", TokenType.ARROW),
    ("==", TokenType.EQ),
    ("!=", TokenType.NE),
    ("<=", TokenType.LE),
    (">=", TokenType.GE),
    ("&&", TokenType.AND),
    ("||", TokenType.OR),
    ("??", TokenType.NULLISH),
    ("**", TokenType.STAR_STAR),
    ("++", TokenType.PLUS_PLUS),
    ("--", TokenType.MINUS_MINUS),
    ("<<", TokenType.SHL),
    (">>", TokenType.SHR),
    ("+=", TokenType.ASSIGN),
    ("-=", TokenType.ASSIGN),
    ("*=", TokenType.ASSIGN),
    ("/=", TokenType.ASSIGN),
    ("%=", TokenType.ASSIGN),
    ("&=", TokenType.ASSIGN),
    ("|=", TokenType.ASSIGN),
    ("^=", TokenType.ASSIGN),
    ("(", TokenType.LPAREN),
    (")", TokenType.RPAREN),
    ("[", TokenType.LBRACKET),
    ("]", TokenType.RBRACKET),
    ("{", TokenType.LBRACE),
    ("}", TokenType.RBRACE),
    (".", TokenType.DOT),
    (",", TokenType.COMMA),
    (";", TokenType.SEMICOLON),
    (":", TokenType.COLON),
    ("?", TokenType.QUESTION),
    ("+", TokenType.PLUS),
    ("-", TokenType.MINUS),
    ("*", TokenType.STAR),
    ("/", TokenType.SLASH),
    ("%", TokenType.PERCENT),
    ("<", TokenType.LT),
    (">", TokenType.GT),
    ("=", TokenType.ASSIGN),
    ("!", TokenType.NOT),
    ("~", TokenType.TILDE),
    ("&", TokenType.AMP),
    ("|", TokenType.PIPE),
    ("^", TokenType.CARET),
]

# After these tokens a "/" is division; anywhere else it starts a regex.
_DIVISION_CONTEXT = frozenset(
    [
        TokenType.IDENTIFIER,
        TokenType.NUMBER,
        TokenType.BIGINT,
        TokenType.STRING,
        TokenType.TEMPLATE,
        TokenType.REGEX,
        TokenType.TRUE,
        TokenType.FALSE,
        TokenType.NULL,
        TokenType.THIS,
        TokenType.RPAREN,
        TokenType.RBRACKET,
        TokenType.RBRACE,
        TokenType.PLUS_PLUS,
        TokenType.MINUS_MINUS,
    ]
)

_SIMPLE_ESCAPES = {
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "b": "\b",
    "f": "\f",
    "v": "\v",
}

_HEX_DIGITS = "0123456789abcdefABCDEF"


def _is_digit(ch: str) -> bool:
    """Checks if a character is a digit."""
    return "0" <= ch <= "9"


def _is_identifier_start(ch: str) -> bool:
    """Checks if a character can start an identifier."""
    return ch == "_" or ch == "$" or ch.isalpha()


def _is_identifier_part(ch: str) -> bool:
    """Checks if a character can continue an identifier."""
    return _is_identifier_start(ch) or _is_digit(ch) or (ch != "\0" and ch.isalnum())


def _is_whitespace(ch: str) -> bool:
    """Checks if a character is whitespace."""
    return ch in (" ", "\t", "\n", "\r", "\v", "\f", "\u00a0", "\ufeff", "\u2028", "\u2029")


def _to_number(value: int) -> Any:
    # Integers beyond the safe range lose precision exactly like JS doubles.
    if abs(value) > MAX_SAFE_INTEGER:
        return int_to_float(value)
    return value


class Tokenizer:
    """Tokenizer for expression strings."""

    def __init__(
        self,
        source: str,
        limits: Optional[ExpressionLimits] = None,
        start: int = 0,
        end: Optional[int] = None,
    ):
        self._source = source
        self._limits = limits
        self._position = start
        self._end = len(source) if end is None else end
        self._tokens: List[Token] = []

    def tokenize(self) -> List[Token]:
        """Tokenizes the source expression and returns all tokens."""
        check_expression_length(self._source, self._limits)

        while True:
            self._skip_trivia()
            if self._is_at_end():
                break
            self._scan_token()

        self._tokens.append(Token(TokenType.EOF, "", self._position, self._position))
        return self._tokens

    def _is_at_end(self) -> bool:
        return self._position >= self._end

    def _peek(self, offset: int = 0) -> str:
        index = self._position + offset
        if index >= self._end:
            return "\0"
        return self._source[index]

    def _peek_next(self) -> str:
        return self._peek(1)

    def _advance(self) -> str:
        ch = self._source[self._position]
        self._position += 1
        return ch

    def _add_token(
        self, token_type: TokenType, value: str, position: int, data: Any = None
    ) -> None:
        self._tokens.append(Token(token_type, value, position, self._position, data))

    def _error(self, message: str, position: int) -> TokenizerError:
        return TokenizerError(message, position, self._source)

    def _skip_trivia(self) -> None:
        """Skips whitespace and comments."""
        while not self._is_at_end():
            ch = self._peek()
            if _is_whitespace(ch):
                self._advance()
            elif ch == "/" and self._peek_next() == "/":
                while not self._is_at_end() and self._peek() not in ("\n", "\r"):
                    self._advance()
            elif ch == "/" and self._peek_next() == "*":
                start_position = self._position
                self._position += 2
                while not self._is_at_end() and not (
                    self._peek() == "*" and self._peek_next() == "/"
                ):
                    self._advance()
                if self._is_at_end():
                    raise self._error("Unterminated comment", start_position)
                self._position += 2
            else:
                return

    def _regex_allowed(self) -> bool:
        if not self._tokens:
            return True
        return self._tokens[-1].type not in _DIVISION_CONTEXT

    def _scan_token(self) -> None:
        ch = self._peek()
        start_position = self._position

        # String literals
        if ch == '"' or ch == "'":
            self._advance()
            self._scan_string(ch, start_position)
            return

        # Template literals
        if ch == "`":
            self._advance()
            self._scan_template(start_position)
            return

        # Number literals (including ".5")
        if _is_digit(ch) or (ch == "." and _is_digit(self._peek_next())):
            self._scan_number(start_position)
            return

        # Identifiers and keywords
        if _is_identifier_start(ch):
            self._scan_identifier(start_position)
            return

        # Regular expression literals
        if ch == "/" and self._regex_allowed():
            self._advance()
            self._scan_regex(start_position)
            return

        # Optional chaining, unless it is "?" followed by a number like ".5"
        if ch == "?" and self._peek_next() == "." and not _is_digit(self._peek(2)):
            self._position += 2
            self._add_token(TokenType.QUESTION_DOT, "?.", start_position)
            return

        for text, token_type in PUNCTUATORS:
            if self._source.startswith(text, self._position) and (
                self._position + len(text) <= self._end
            ):
                self._position += len(text)
                self._add_token(token_type, text, start_position)
                return

        raise self._error(f"Unexpected character: '{ch}'", start_position)

    # ------------------------------------------------------------
    # Strings
    # ------------------------------------------------------------

    def _read_escape(self, start_position: int) -> str:
        """Reads one escape sequence; the backslash is already consumed."""
        if self._is_at_end():
            raise self._error("Unterminated string", start_position)
        escaped = self._advance()

        if escaped in _SIMPLE_ESCAPES:
            return _SIMPLE_ESCAPES[escaped]

        if escaped == "0" and not _is_digit(self._peek()):
            return "\0"

        if escaped == "x":
            digits = self._source[self._position : self._position + 2]
            if len(digits) != 2 or any(d not in _HEX_DIGITS for d in digits):
                raise self._error("Invalid hexadecimal escape sequence", self._position - 2)
            self._position += 2
            return chr(int(digits, 16))

        if escaped == "u":
            if self._peek() == "{":
                close = self._source.find("}", self._position, self._end)
                digits = self._source[self._position + 1 : close] if close != -1 else ""
                if not digits or any(d not in _HEX_DIGITS for d in digits):
                    raise self._error("Invalid Unicode escape sequence", self._position - 2)
                code_point = int(digits, 16)
                if code_point > 0x10FFFF:
                    raise self._error("Undefined Unicode code-point", self._position - 2)
                self._position = close + 1
                return chr(code_point)
            digits = self._source[self._position : self._position + 4]
            if len(digits) != 4 or any(d not in _HEX_DIGITS for d in digits):
                raise self._error("Invalid Unicode escape sequence", self._position - 2)
            self._position += 4
            return chr(int(digits, 16))

        # Line continuation
        if escaped == "\r":
            if self._peek() == "\n":
                self._advance()
            return ""
        if escaped in ("\n", "\u2028", "\u2029"):
            return ""

        return escaped

    def _scan_string(self, quote: str, start_position: int) -> None:
        parts: List[str] = []

        while not self._is_at_end() and self._peek() != quote:
            ch = self._advance()

            if ch == "\\":
                parts.append(self._read_escape(start_position))
            elif ch in ("\n", "\r"):
                raise self._error(
                    "Unterminated string (newline in string literal)", start_position
                )
            else:
                parts.append(ch)

        if self._is_at_end():
            raise self._error("Unterminated string", start_position)

        # Consume closing quote
        self._advance()

        self._add_token(
            TokenType.STRING,
            self._source[start_position : self._position],
            start_position,
            "".join(parts),
        )

    def _scan_template(self, start_position: int) -> None:
        quasis: List[Tuple[str, str, int, int]] = []
        expressions: List[Tuple[int, int]] = []
        cooked: List[str] = []
        segment_start = self._position

        while True:
            if self._is_at_end():
                raise self._error("Unterminated template literal", start_position)

            ch = self._advance()
            if ch == "`":
                segment_end = self._position - 1
                quasis.append(
                    (
                        "".join(cooked),
                        self._source[segment_start:segment_end],
                        segment_start,
                        segment_end,
                    )
                )
                break

            if ch == "\\":
                cooked.append(self._read_escape(start_position))
            elif ch == "$" and self._peek() == "{":
                segment_end = self._position - 1
                quasis.append(
                    (
                        "".join(cooked),
                        self._source[segment_start:segment_end],
                        segment_start,
                        segment_end,
                    )
                )
                cooked = []
                self._advance()
                expression_start = self._position
                expression_end = self._find_substitution_end(expression_start)
                expressions.append((expression_start, expression_end))
                self._position = expression_end + 1
                segment_start = self._position
            else:
                cooked.append(ch)

        self._add_token(
            TokenType.TEMPLATE,
            self._source[start_position : self._position],
            start_position,
            TemplateParts(quasis=quasis, expressions=expressions),
        )

    def _find_substitution_end(self, position: int) -> int:
        """Returns the index of the "}" closing a ${ substitution."""
        depth = 0
        index = position
        source = self._source

        while index < self._end:
            ch = source[index]
            if ch in ("'", '"'):
                index = self._skip_quoted(index, ch)
                continue
            if ch == "`":
                index = self._skip_template_text(index)
                continue
            if ch == "{":
                depth += 1
            elif ch == "}":
                if depth == 0:
                    return index
                depth -= 1
            index += 1

        raise self._error("Unterminated template substitution", position - 2)

    def _skip_quoted(self, index: int, quote: str) -> int:
        index += 1
        while index < self._end:
            ch = self._source[index]
            if ch == "\\":
                index += 2
                continue
            if ch == quote:
                return index + 1
            index += 1
        raise self._error("Unterminated string", index)

    def _skip_template_text(self, index: int) -> int:
        start = index
        index += 1
        while index < self._end:
            ch = self._source[index]
            if ch == "\\":
                index += 2
                continue
            if ch == "`":
                return index + 1
            if ch == "$" and index + 1 < self._end and self._source[index + 1] == "{":
                index = self._find_substitution_end(index + 2) + 1
                continue
            index += 1
        raise self._error("Unterminated template literal", start)

    # ------------------------------------------------------------
    # Numbers
    # ------------------------------------------------------------

    def _scan_digits(self, valid: str, start_position: int) -> str:
        digits = ""
        while True:
            ch = self._peek()
            if ch in valid and ch != "\0":
                digits += self._advance()
            elif ch == "_" and digits and self._peek_next() in valid:
                self._advance()
            else:
                return digits

    def _scan_number(self, start_position: int) -> None:
        ch = self._peek()

        # Hex, octal and binary integers
        if ch == "0" and self._peek_next() in ("x", "X", "o", "O", "b", "B"):
            prefix = self._peek_next().lower()
            self._position += 2
            valid, base = {
                "x": (_HEX_DIGITS, 16),
                "o": ("01234567", 8),
                "b": ("01", 2),
            }[prefix]
            digits = self._scan_digits(valid, start_position)
            if not digits:
                raise self._error("Invalid number: expected digits", start_position)
            value = int(digits, base)
            if self._peek() == "n":
                self._advance()
                self._finish_number(start_position)
                self._add_token(
                    TokenType.BIGINT,
                    self._source[start_position : self._position],
                    start_position,
                    JSBigInt(value),
                )
                return
            self._finish_number(start_position)
            self._add_token(
                TokenType.NUMBER,
                self._source[start_position : self._position],
                start_position,
                _to_number(value),
            )
            return

        # Integer part
        text = self._scan_digits("0123456789", start_position)
        is_integer = True

        # BigInt suffix
        if text and self._peek() == "n":
            self._advance()
            self._finish_number(start_position)
            self._add_token(
                TokenType.BIGINT,
                self._source[start_position : self._position],
                start_position,
                JSBigInt(int(text)),
            )
            return

        # Fractional part
        if self._peek() == ".":
            is_integer = False
            self._advance()
            text += "." + self._scan_digits("0123456789", start_position)

        # Exponent part
        if self._peek() in ("e", "E"):
            is_integer = False
            text += self._advance()
            if self._peek() in ("+", "-"):
                text += self._advance()
            exponent = self._scan_digits("0123456789", start_position)
            if not exponent:
                raise self._error(
                    "Invalid number: expected exponent digits", start_position
                )
            text += exponent

        self._finish_number(start_position)
        value: Any = _to_number(int(text)) if is_integer else normalize_number(float(text))
        self._add_token(
            TokenType.NUMBER,
            self._source[start_position : self._position],
            start_position,
            value,
        )

    def _finish_number(self, start_position: int) -> None:
        # "3in" or "1x" are errors, not two tokens
        if _is_identifier_start(self._peek()) or _is_digit(self._peek()):
            raise self._error(
                "Identifier starts immediately after numeric literal", self._position
            )

    # ------------------------------------------------------------
    # Regular expressions
    # ------------------------------------------------------------

    def _scan_regex(self, start_position: int) -> None:
        pattern = ""
        in_class = False

        while True:
            if self._is_at_end() or self._peek() in ("\n", "\r"):
                raise self._error(
                    "Invalid regular expression: missing /", start_position
                )
            ch = self._advance()
            if ch == "\\":
                if self._is_at_end():
                    raise self._error(
                        "Invalid regular expression: missing /", start_position
                    )
                pattern += ch + self._advance()
                continue
            if ch == "[":
                in_class = True
            elif ch == "]":
                in_class = False
            elif ch == "/" and not in_class:
                break
            pattern += ch

        flags = ""
        while _is_identifier_part(self._peek()):
            flags += self._advance()

        self._add_token(
            TokenType.REGEX,
            self._source[start_position : self._position],
            start_position,
            (pattern, flags),
        )

    # ------------------------------------------------------------
    # Identifiers
    # ------------------------------------------------------------

    def _scan_identifier(self, start_position: int) -> None:
        value = ""

        while _is_identifier_part(self._peek()):
            value += self._advance()

        keyword_type = KEYWORDS.get(value)
        if keyword_type:
            self._add_token(keyword_type, value, start_position)
        elif value in STATEMENT_KEYWORDS:
            self._add_token(TokenType.KEYWORD, value, start_position)
        else:
            self._add_token(TokenType.IDENTIFIER, value, start_position)


def tokenize(
    source: str,
    limits: Optional[ExpressionLimits] = None,
    start: int = 0,
    end: Optional[int] = None,
) -> List[Token]:
    """
    Tokenizes an expression string into tokens.

    Args:
        source: The expression string to tokenize
        limits: Optional expression limits
        start: Offset to start scanning at (used for template substitutions)
        end: Offset to stop scanning at

    Returns:
        List of tokens

    Raises:
        TokenizerError: If the expression contains invalid tokens
    """
    tokenizer = Tokenizer(source, limits, start, end)
    return tokenizer.tokenize()
