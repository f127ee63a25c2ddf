"""
Shunting yard expression engine.

This package provides a grammar-driven tokenizer, an operator-precedence
compiler to Reverse Polish or Polish Notation and a stack-machine
evaluator, each runnable eagerly or one transition at a time.
"""

# Configuration
from .config import EngineConfig, OperatorConfig, load_engine_config

# Engine
from .engine import ExpressionEngine, TokenizeResult
from .errors import (
    ConfigError,
    EvalError,
    ExpressionError,
    LexError,
    LimitExceededError,
    NotationError,
)

# Evaluator
from .evaluator import EvalStep, EvalStepType, EvaluationResult, Evaluator

# Grammar
from .grammar import MATH_TOKENIZER, TokenKind, create_math_tokenizer
from .limits import (
    DEFAULT_EXPRESSION_LIMITS,
    ExpressionLimits,
    check_call_depth,
    check_expression_length,
    check_function_arg_count,
)

# Notation
from .notation import (
    NotationBuilder,
    NotationMode,
    NotationResult,
    NotationStep,
    NotationStepType,
    is_evaluable,
    notation_to_string,
)

# Registries
from .registry import (
    BINARY_FUNCTIONS,
    DEFAULT_CONSTANTS,
    DEFAULT_FUNCTIONS,
    DEFAULT_OPERATORS,
    ConstantRegistry,
    FunctionRegistry,
    MathFunction,
    Operator,
    OperatorFunction,
    OperatorRegistry,
    Registries,
)
from .stepping import StepOutcome, Stepper, run_to_completion

# Tokenizer
from .tokenizer import SyntaxRule, Token, Tokenizer

__all__ = [
    # Errors
    "ExpressionError",
    "ConfigError",
    "LexError",
    "NotationError",
    "EvalError",
    "LimitExceededError",
    # Limits
    "ExpressionLimits",
    "DEFAULT_EXPRESSION_LIMITS",
    "check_expression_length",
    "check_function_arg_count",
    "check_call_depth",
    # Tokenizer
    "SyntaxRule",
    "Token",
    "Tokenizer",
    # Grammar
    "TokenKind",
    "MATH_TOKENIZER",
    "create_math_tokenizer",
    # Registries
    "Operator",
    "OperatorFunction",
    "MathFunction",
    "OperatorRegistry",
    "FunctionRegistry",
    "ConstantRegistry",
    "Registries",
    "BINARY_FUNCTIONS",
    "DEFAULT_OPERATORS",
    "DEFAULT_FUNCTIONS",
    "DEFAULT_CONSTANTS",
    # Notation
    "NotationMode",
    "NotationStepType",
    "NotationStep",
    "NotationResult",
    "NotationBuilder",
    "is_evaluable",
    "notation_to_string",
    # Evaluator
    "EvalStepType",
    "EvalStep",
    "EvaluationResult",
    "Evaluator",
    # Stepping
    "Stepper",
    "StepOutcome",
    "run_to_completion",
    # Configuration
    "EngineConfig",
    "OperatorConfig",
    "load_engine_config",
    # Engine
    "ExpressionEngine",
    "TokenizeResult",
]
