"""
Sandboxed JavaScript expression engine.

This package evaluates JavaScript expressions and ``{{ }}`` templates
against a caller-supplied context, exposing only an allow-listed set of
built-ins and refusing any call that would mutate a value in place.
"""

# Core types and utilities
from .ast import (
    AstNode,
    AstNodeBase,
    BinaryOperator,
    LogicalOperator,
    UnaryOperator,
    ast_to_string,
    calculate_ast_depth,
    count_ast_nodes,
    describe_node,
)
from .errors import (
    BuiltinError,
    EvaluationError,
    ExpressionError,
    ExpressionSyntaxError,
    LimitExceededError,
    ParseError,
    ReferenceError,
    SecurityError,
    TokenizerError,
    TypeError,
)

# Evaluator
from .evaluator import (
    Closure,
    EvaluationResult,
    Evaluator,
    evaluate_expression,
    try_evaluate,
)
from .globals import GLOBAL_SCOPE, build_global_scope
from .limits import (
    DEFAULT_EXPRESSION_LIMITS,
    ExpressionLimits,
    check_array_length,
    check_ast_depth,
    check_ast_node_count,
    check_call_depth,
    check_expression_length,
    check_function_arg_count,
    check_regex_pattern_length,
)

# Parser
from .parser import Parser, parse
from .security import (
    MUTABLE_METHOD_PATHS,
    MUTABLE_METHODS,
    assert_call_allowed,
    build_mutable_method_set,
    is_mutable_method,
)

# Templates
from .template import (
    UNDEFINED_PLACEHOLDER,
    TemplateOptions,
    TemplateParser,
    TemplateRenderer,
    TemplateToken,
    evaluate_template,
)

# Tokenizer
from .tokenizer import (
    Token,
    Tokenizer,
    TokenType,
    tokenize,
)

# Values
from .values import (
    UNDEFINED,
    JSBigInt,
    JSSymbol,
    to_display_string,
    typeof,
)

__all__ = [
    # AST types
    "AstNode",
    "AstNodeBase",
    "UnaryOperator",
    "BinaryOperator",
    "LogicalOperator",
    "count_ast_nodes",
    "calculate_ast_depth",
    "ast_to_string",
    "describe_node",
    # Errors
    "ExpressionError",
    "ExpressionSyntaxError",
    "TokenizerError",
    "ParseError",
    "EvaluationError",
    "ReferenceError",
    "TypeError",
    "SecurityError",
    "LimitExceededError",
    "BuiltinError",
    # Limits
    "ExpressionLimits",
    "DEFAULT_EXPRESSION_LIMITS",
    "check_expression_length",
    "check_ast_depth",
    "check_ast_node_count",
    "check_regex_pattern_length",
    "check_array_length",
    "check_function_arg_count",
    "check_call_depth",
    # Tokenizer
    "Token",
    "TokenType",
    "Tokenizer",
    "tokenize",
    # Parser
    "Parser",
    "parse",
    # Values
    "UNDEFINED",
    "JSBigInt",
    "JSSymbol",
    "typeof",
    "to_display_string",
    # Globals and security
    "GLOBAL_SCOPE",
    "build_global_scope",
    "MUTABLE_METHOD_PATHS",
    "MUTABLE_METHODS",
    "build_mutable_method_set",
    "is_mutable_method",
    "assert_call_allowed",
    # Evaluator
    "Closure",
    "EvaluationResult",
    "Evaluator",
    "evaluate_expression",
    "try_evaluate",
    # Templates
    "UNDEFINED_PLACEHOLDER",
    "TemplateOptions",
    "TemplateParser",
    "TemplateRenderer",
    "TemplateToken",
    "evaluate_template",
]
