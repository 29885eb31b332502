"""
Error types for the sandboxed expression engine.

All expression errors extend ExpressionError for consistent handling.
"""

from typing import Optional


class ExpressionError(Exception):
    """
    Base error class for all expression-related errors.
    """

    def __init__(
        self,
        message: str,
        position: Optional[int] = None,
        expression: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.position = position
        self.expression = expression

    def format_with_context(self) -> str:
        """
        Returns a formatted error message with position context.
        """
        if self.expression is None or self.position is None:
            return self.message

        pointer = " " * self.position + "^"
        return f"{self.message}\n  {self.expression}\n  {pointer}"


class ExpressionSyntaxError(ExpressionError):
    """
    Malformed expression text. Raised before any evaluation happens.
    """

    pass


class TokenizerError(ExpressionSyntaxError):
    """
    Error thrown during tokenization (lexical analysis).
    """

    pass


class ParseError(ExpressionSyntaxError):
    """
    Error thrown during parsing (syntax analysis).
    """

    pass


class EvaluationError(ExpressionError):
    """
    Error thrown during evaluation (runtime error).
    """

    pass


class ReferenceError(EvaluationError):
    """
    Error thrown when an identifier is not bound in any scope frame.
    """

    def __init__(
        self,
        name: str,
        position: Optional[int] = None,
        expression: Optional[str] = None,
    ):
        super().__init__(f"{name} is not defined", position, expression)
        self.name = name


class TypeError(EvaluationError):
    """
    Error thrown for property reads on null/undefined and calls of non-functions.
    """

    pass


class SecurityError(EvaluationError):
    """
    Error thrown when an expression reaches for a blocked capability.
    """

    pass


class LimitExceededError(ExpressionError):
    """
    Error thrown when expression limits are exceeded.
    """

    def __init__(self, limit_name: str, limit: int, actual: int):
        message = f"Limit exceeded: {limit_name} (limit: {limit}, actual: {actual})"
        super().__init__(message)
        self.limit_name = limit_name
        self.limit = limit
        self.actual = actual


class BuiltinError(EvaluationError):
    """
    Error thrown when a built-in function encounters an error.
    """

    def __init__(
        self,
        function_name: str,
        message: str,
        position: Optional[int] = None,
        expression: Optional[str] = None,
        error_name: str = "Error",
    ):
        full_message = f"{function_name}: {message}"
        super().__init__(full_message, position, expression)
        self.function_name = function_name
        self.error_name = error_name
