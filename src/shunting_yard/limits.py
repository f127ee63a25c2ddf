"""
Resource limits for tokenizing, compiling and evaluating expressions.

These limits guard against runaway grammars and overly complex input.
"""

from dataclasses import dataclass
from typing import Optional

from .errors import LimitExceededError


@dataclass(frozen=True)
class ExpressionLimits:
    """Expression limits configuration."""

    # Maximum expression string length in characters
    max_expression_length: int = 4096

    # Consecutive zero-length matches tolerated at one offset
    same_index_limit: int = 100

    # Maximum function call arguments
    max_function_args: int = 16

    # Maximum nesting of function-argument evaluation
    max_call_depth: int = 32


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


def check_function_arg_count(
    count: int,
    limits: Optional[ExpressionLimits] = None,
    position: Optional[int] = None,
) -> None:
    """Validates function argument count."""
    limits = limits or DEFAULT_EXPRESSION_LIMITS
    if count > limits.max_function_args:
        raise LimitExceededError(
            "max_function_args", limits.max_function_args, count, position
        )


def check_call_depth(
    depth: int,
    limits: Optional[ExpressionLimits] = None,
    position: Optional[int] = None,
) -> None:
    """Validates nesting depth of function-argument evaluation."""
    limits = limits or DEFAULT_EXPRESSION_LIMITS
    if depth > limits.max_call_depth:
        raise LimitExceededError("max_call_depth", limits.max_call_depth, depth, position)
