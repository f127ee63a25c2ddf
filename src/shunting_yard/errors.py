"""
Error types for the expression engine.

All recoverable errors extend ExpressionError for consistent handling.
ConfigError signals a defect in the grammar definition and is raised
eagerly instead of being folded into a result object.
"""

from typing import TYPE_CHECKING, Optional, Sequence, Tuple

if TYPE_CHECKING:
    from .tokenizer import Token


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


class ConfigError(Exception):
    """
    Error thrown for an invalid grammar definition (bad pattern, dangling
    rule or next-set reference, stalled rule).
    """

    pass


class LexError(ExpressionError):
    """
    Error thrown during tokenization when no reachable rule matches.
    """

    def __init__(
        self,
        message: str,
        index: int,
        expected: Sequence[str] = (),
        expression: Optional[str] = None,
    ):
        super().__init__(message, index, expression)
        self.index = index
        self.expected: Tuple[str, ...] = tuple(expected)


class NotationError(ExpressionError):
    """
    Error thrown while compiling tokens into RPN or PN.

    ``index`` is the offending token's index in the token list; ``position``
    is its character offset in the source.
    """

    def __init__(
        self,
        message: str,
        index: int,
        token: Optional["Token"] = None,
        expression: Optional[str] = None,
    ):
        position = token.position if token is not None else None
        super().__init__(message, position, expression)
        self.index = index
        self.token = token


class EvalError(ExpressionError):
    """
    Error thrown while evaluating a notation sequence.
    """

    def __init__(
        self,
        message: str,
        token: Optional["Token"] = None,
        value_stack: Sequence[float] = (),
        expression: Optional[str] = None,
    ):
        position = token.position if token is not None else None
        super().__init__(message, position, expression)
        self.token = token
        self.value_stack: Tuple[float, ...] = tuple(value_stack)


class LimitExceededError(ExpressionError):
    """
    Error thrown when expression limits are exceeded.
    """

    def __init__(
        self,
        limit_name: str,
        limit: int,
        actual: int,
        position: Optional[int] = None,
    ):
        message = f"Limit exceeded: {limit_name} (limit: {limit}, actual: {actual})"
        super().__init__(message, position)
        self.limit_name = limit_name
        self.limit = limit
        self.actual = actual
