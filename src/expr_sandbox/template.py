"""
Template tokenizer and renderer.

A template is literal text with embedded expressions between two markers,
``{{`` and ``}}`` by default:

    Hello, {{ user.name }}! You have {{ items.length }} new messages.

The tokenizer only splits the text; it never evaluates. The renderer
evaluates each expression token against a context and joins the results.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .errors import ReferenceError
from .evaluator import Evaluator
from .limits import ExpressionLimits
from .values import to_display_string

logger = logging.getLogger("expr_sandbox.template")

# Text substituted for an expression that names an undefined variable
UNDEFINED_PLACEHOLDER = ""

_QUOTES = ("'", '"', "`")

# A "/" after one of these characters (or words) opens a regex literal
_REGEX_PRECEDING = frozenset("(,=:[!&|?{;+-*%<>~^")
_REGEX_PRECEDING_WORDS = frozenset(
    ["typeof", "void", "delete", "in", "instanceof", "new", "return", "of"]
)


class TemplateOptions(BaseModel):
    """Template tokenizer configuration."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    # Marker that opens an embedded expression
    expression_start: str = Field(default="{{", min_length=1, alias="expressionStart")

    # Marker that closes an embedded expression
    expression_end: str = Field(default="}}", min_length=1, alias="expressionEnd")

    # Keep text tokens exactly as written (False trims them and drops blank ones)
    preserve_whitespace: bool = Field(default=True, alias="preserveWhitespace")

    # Record source offsets on every token
    include_positions: bool = Field(default=True, alias="includePositions")


TemplateOptionsInput = Union[TemplateOptions, Mapping[str, Any], None]


def _normalize_options(options: TemplateOptionsInput) -> TemplateOptions:
    if options is None:
        return TemplateOptions()
    if isinstance(options, TemplateOptions):
        return options
    return TemplateOptions.model_validate(dict(options))


@dataclass(frozen=True)
class TemplateToken:
    """
    A span of template text.

    ``start``/``end`` cover the whole token including markers;
    ``content_start``/``content_end`` cover the expression text between the
    markers. Positions are None when the parser was built with
    ``include_positions=False``.
    """

    type: Literal["text", "expression"]
    value: str
    start: Optional[int] = None
    end: Optional[int] = None
    content_start: Optional[int] = None
    content_end: Optional[int] = None


class TemplateParser:
    """Splits a template into text and expression tokens."""

    def __init__(self, options: TemplateOptionsInput = None):
        self._options = _normalize_options(options)
        self._start_marker = self._options.expression_start
        self._end_marker = self._options.expression_end

    @property
    def options(self) -> TemplateOptions:
        return self._options

    def parse(self, template: str) -> List[TemplateToken]:
        """
        Parses a template into tokens.

        An expression whose closing marker never appears is kept as text,
        opening marker included. Blank expressions produce no token.

        Raises:
            TypeError: If template is not a string
        """
        if not isinstance(template, str):
            raise TypeError("Template must be a string")

        tokens: List[TemplateToken] = []
        length = len(template)
        pos = 0

        while pos < length:
            open_pos = template.find(self._start_marker, pos)
            if open_pos == -1:
                self._add_text(tokens, template, pos, length)
                break

            self._add_text(tokens, template, pos, open_pos)

            content_start = open_pos + len(self._start_marker)
            close_pos = self._find_close(template, content_start)
            if close_pos == -1:
                self._add_text(tokens, template, open_pos, length)
                break

            self._add_expression(tokens, template, content_start, close_pos)
            pos = close_pos + len(self._end_marker)

        return tokens

    @staticmethod
    def parse_template(
        template: str, options: TemplateOptionsInput = None
    ) -> List[TemplateToken]:
        """Parses a template with a one-off parser."""
        return TemplateParser(options).parse(template)

    def _find_close(self, template: str, pos: int) -> int:
        """
        Finds the closing marker of the expression starting at ``pos``.

        Quoted strings, template literals (with their ``${}`` substitutions),
        regex literals and braces are tracked so a closing marker inside them
        is skipped.
        Returns -1 if the expression is never closed.
        """
        # Each entry is a quote character, "{" or "${"
        stack: List[str] = []
        length = len(template)
        i = pos

        while i < length:
            ch = template[i]
            top = stack[-1] if stack else None

            if top in ("'", '"'):
                if ch == "\\":
                    i += 2
                    continue
                if ch == top:
                    stack.pop()
                i += 1
                continue

            if top == "`":
                if ch == "\\":
                    i += 2
                    continue
                if ch == "`":
                    stack.pop()
                elif template.startswith("${", i):
                    stack.append("${")
                    i += 2
                    continue
                i += 1
                continue

            if not stack and template.startswith(self._end_marker, i):
                return i

            if ch == "/" and _starts_regex(template, pos, i):
                regex_end = _skip_regex(template, i)
                if regex_end != -1:
                    i = regex_end
                    continue

            if ch in _QUOTES:
                stack.append(ch)
            elif ch == "{":
                stack.append("{")
            elif ch == "}" and stack:
                stack.pop()
            i += 1

        return -1

    def _add_text(self, tokens: List[TemplateToken], template: str, start: int, end: int) -> None:
        if start >= end:
            return

        value = template[start:end]
        if not self._options.preserve_whitespace:
            value = value.strip()
            if not value:
                return

        if self._options.include_positions:
            tokens.append(TemplateToken(type="text", value=value, start=start, end=end))
        else:
            tokens.append(TemplateToken(type="text", value=value))

    def _add_expression(
        self, tokens: List[TemplateToken], template: str, start: int, end: int
    ) -> None:
        value = template[start:end].strip()
        if not value:
            return

        if self._options.include_positions:
            tokens.append(
                TemplateToken(
                    type="expression",
                    value=value,
                    start=start - len(self._start_marker),
                    end=end + len(self._end_marker),
                    content_start=start,
                    content_end=end,
                )
            )
        else:
            tokens.append(TemplateToken(type="expression", value=value))


def _is_word_char(ch: str) -> bool:
    return ch.isalnum() or ch in "_$"


def _starts_regex(template: str, pos: int, slash: int) -> bool:
    """Decides from the preceding text whether the "/" at ``slash`` opens a regex."""
    if template.startswith(("//", "/*"), slash):
        return False

    j = slash - 1
    while j >= pos and template[j].isspace():
        j -= 1
    if j < pos:
        return True

    previous = template[j]
    if previous in _REGEX_PRECEDING:
        return True
    if not _is_word_char(previous):
        return False

    word_end = j + 1
    while j >= pos and _is_word_char(template[j]):
        j -= 1
    return template[j + 1 : word_end] in _REGEX_PRECEDING_WORDS


def _skip_regex(template: str, slash: int) -> int:
    """Returns the index just past the regex literal opening at ``slash``, or -1."""
    in_class = False
    i = slash + 1
    while i < len(template):
        ch = template[i]
        if ch == "\\":
            i += 2
            continue
        if ch == "\n":
            return -1
        if in_class:
            if ch == "]":
                in_class = False
        elif ch == "[":
            in_class = True
        elif ch == "/":
            return i + 1
        i += 1
    return -1


class TemplateRenderer:
    """
    Renders templates against a context.

    Each ``render`` call uses one Evaluator for all of the template's
    expressions.
    """

    def __init__(
        self,
        context: Optional[Mapping[str, Any]] = None,
        options: TemplateOptionsInput = None,
        limits: Optional[ExpressionLimits] = None,
    ):
        self._context = context if context is not None else {}
        self._parser = TemplateParser(options)
        self._limits = limits

    def render(self, template: str) -> str:
        """
        Renders a template.

        An expression that references an undefined variable renders as
        UNDEFINED_PLACEHOLDER; every other error propagates.
        """
        evaluator = Evaluator(self._context, self._limits)
        parts: List[str] = []

        for token in self._parser.parse(template):
            if token.type == "text":
                parts.append(token.value)
                continue

            try:
                value = evaluator.evaluate(token.value)
            except ReferenceError as e:
                logger.debug(
                    "template_placeholder_substituted",
                    extra={"identifier": e.name, "position": token.start},
                )
                parts.append(UNDEFINED_PLACEHOLDER)
                continue

            parts.append(to_display_string(value))

        return "".join(parts)


def evaluate_template(
    source: str,
    context: Optional[Mapping[str, Any]] = None,
    options: TemplateOptionsInput = None,
    limits: Optional[ExpressionLimits] = None,
) -> str:
    """
    Renders a template in one call.

    Args:
        source: The template text
        context: Variable bindings available to the expressions
        options: Tokenizer options (model or dict, camelCase keys accepted)
        limits: Optional expression limits

    Returns:
        The rendered text
    """
    return TemplateRenderer(context, options, limits).render(source)
