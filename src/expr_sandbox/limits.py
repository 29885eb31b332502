"""
Resource limits for expression parsing and evaluation.

These limits reject oversized or deeply nested expressions before they
reach the evaluator. They are not a CPU budget: a small expression can
still do a lot of work through the built-in library.
"""

from dataclasses import dataclass
from typing import Optional

from .errors import LimitExceededError


@dataclass(frozen=True)
class ExpressionLimits:
    """Expression limits configuration."""

    # Maximum expression string length in characters
    max_expression_length: int = 8192

    # Maximum AST depth (nesting level)
    max_ast_depth: int = 64

    # Maximum number of AST nodes
    max_ast_nodes: int = 2048

    # Maximum regex pattern length
    max_regex_pattern_length: int = 256

    # Maximum array literal length
    max_array_length: int = 1024

    # Maximum function call arguments
    max_function_args: int = 64

    # Maximum nesting of arrow-function invocations
    max_call_depth: int = 64


# Default expression limits.
DEFAULT_EXPRESSION_LIMITS = ExpressionLimits()


def check_expression_length(
    expression: str, limits: Optional[ExpressionLimits] = None
) -> None:
    """Validates that expression length is within limits."""
    limits = limits or DEFAULT_EXPRESSION_LIMITS
    if len(expression) > limits.max_expression_length:
        raise LimitExceededError(
            "max_expression_length", limits.max_expression_length, len(expression)
        )


def check_ast_depth(depth: int, limits: Optional[ExpressionLimits] = None) -> None:
    """Validates AST depth after parsing."""
    limits = limits or DEFAULT_EXPRESSION_LIMITS
    if depth > limits.max_ast_depth:
        raise LimitExceededError("max_ast_depth", limits.max_ast_depth, depth)


def check_ast_node_count(
    count: int, limits: Optional[ExpressionLimits] = None
) -> None:
    """Validates AST node count after parsing."""
    limits = limits or DEFAULT_EXPRESSION_LIMITS
    if count > limits.max_ast_nodes:
        raise LimitExceededError("max_ast_nodes", limits.max_ast_nodes, count)


def check_regex_pattern_length(
    pattern: str, limits: Optional[ExpressionLimits] = None
) -> None:
    """Validates regex pattern length before compilation."""
    limits = limits or DEFAULT_EXPRESSION_LIMITS
    if len(pattern) > limits.max_regex_pattern_length:
        raise LimitExceededError(
            "max_regex_pattern_length", limits.max_regex_pattern_length, len(pattern)
        )


def check_array_length(length: int, limits: Optional[ExpressionLimits] = None) -> None:
    """Validates the length of an array built by a literal or a built-in."""
    limits = limits or DEFAULT_EXPRESSION_LIMITS
    if length > limits.max_array_length:
        raise LimitExceededError("max_array_length", limits.max_array_length, length)


def check_function_arg_count(
    count: int, limits: Optional[ExpressionLimits] = None
) -> None:
    """Validates function argument count."""
    limits = limits or DEFAULT_EXPRESSION_LIMITS
    if count > limits.max_function_args:
        raise LimitExceededError("max_function_args", limits.max_function_args, count)


def check_call_depth(depth: int, limits: Optional[ExpressionLimits] = None) -> None:
    """Validates arrow-function call nesting during evaluation."""
    limits = limits or DEFAULT_EXPRESSION_LIMITS
    if depth > limits.max_call_depth:
        raise LimitExceededError("max_call_depth", limits.max_call_depth, depth)
