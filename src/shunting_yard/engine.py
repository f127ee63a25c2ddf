"""
Expression engine.

Ties the tokenizer, notation compiler and evaluator together behind the
operations a driver needs: tokenize, build notation (eager or stepped),
check evaluability and evaluate (eager or stepped).
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Sequence, Union

from .config import EngineConfig
from .errors import ExpressionError, EvalError, LexError, LimitExceededError
from .evaluator import EvalStep, EvaluationResult, Evaluator
from .grammar import MATH_TOKENIZER, TokenKind
from .limits import DEFAULT_EXPRESSION_LIMITS, ExpressionLimits, check_expression_length
from .notation import (
    NotationBuilder,
    NotationMode,
    NotationResult,
    NotationStep,
    is_evaluable,
)
from .registry import BINARY_FUNCTIONS, MathFunction, Operator, OperatorFunction, Registries
from .stepping import Stepper, run_to_completion
from .tokenizer import Token, Tokenizer

logger = logging.getLogger("shunting_yard.engine")

OPERATOR_RULE = "operatorToken"


@dataclass
class TokenizeResult:
    """Result of tokenizing an expression."""

    tokens: List[Token] = field(default_factory=list)
    """Tokens, empty on failure."""

    success: bool = True
    """Whether tokenizing succeeded."""

    error: Optional[ExpressionError] = None
    """LexError or LimitExceededError if tokenizing failed."""


class ExpressionEngine:
    """Arithmetic expression engine with its own registries and grammar."""

    def __init__(
        self,
        registries: Optional[Registries] = None,
        limits: Optional[ExpressionLimits] = None,
        tokenizer: Optional[Tokenizer] = None,
    ):
        self.registries = registries if registries is not None else Registries()
        self.limits = limits or DEFAULT_EXPRESSION_LIMITS
        self.tokenizer = tokenizer if tokenizer is not None else MATH_TOKENIZER.clone()

    @classmethod
    def from_config(cls, config: Union[EngineConfig, Mapping[str, Any]]) -> "ExpressionEngine":
        """Creates an engine from the defaults with ``config`` applied."""
        if not isinstance(config, EngineConfig):
            config = EngineConfig.model_validate(config)

        engine = cls(limits=config.limits)
        for name, value in config.constants.items():
            engine.register_constant(name, value)
        for symbol, operator in config.operators.items():
            engine.register_operator(
                symbol,
                operator.level,
                BINARY_FUNCTIONS[operator.function],
                operator.right_associative,
            )
        for name in config.disabled_functions:
            engine.registries.functions.pop(name, None)

        logger.debug(
            "engine_configured",
            extra={
                "constants": len(config.constants),
                "operators": len(config.operators),
                "disabled_functions": len(config.disabled_functions),
            },
        )
        return engine

    # ============================================================
    # Registration
    # ============================================================

    def register_operator(
        self,
        symbol: str,
        level: int,
        function: OperatorFunction,
        right_associative: bool = False,
    ) -> Operator:
        """Inserts or overrides an operator, teaching the grammar new symbols."""
        operator = self.registries.register_operator(symbol, level, function, right_associative)
        rule = self.tokenizer.syntaxes.get(OPERATOR_RULE)
        if rule is not None and rule.pattern.fullmatch(symbol) is None:
            # Longest symbols first so none is shadowed by its prefix
            symbols = sorted(self.registries.operators, key=len, reverse=True)
            self.tokenizer.add_syntax(
                rule.name,
                "|".join(re.escape(s) for s in symbols),
                rule.next,
                on_match=rule.on_match,
                ignore=rule.ignore,
                alias=rule.alias,
                final=rule.final,
                flags=rule.pattern.flags,
            )
        return operator

    def register_function(self, name: str, function: MathFunction) -> None:
        self.registries.register_function(name, function)

    def register_constant(self, name: str, value: float) -> None:
        self.registries.register_constant(name, value)

    # ============================================================
    # Pipeline
    # ============================================================

    def tokenize(self, text: str) -> TokenizeResult:
        """Tokenizes ``text``; failures are reported in the result."""
        try:
            check_expression_length(text, self.limits)
            tokens = self.tokenizer.parse(text, self.limits.same_index_limit)
        except (LexError, LimitExceededError) as error:
            logger.debug(
                "tokenize_failed",
                extra={"position": error.position, "error": error.message},
            )
            return TokenizeResult(success=False, error=error)

        logger.debug("tokenized", extra={"token_count": len(tokens)})
        return TokenizeResult(tokens=tokens)

    def iterate_build_notation(
        self,
        tokens: Sequence[Token],
        mode: NotationMode = NotationMode.RPN,
        source: Optional[str] = None,
    ) -> "Stepper[NotationStep, NotationResult]":
        """Stepped compilation; the stepper's result is the NotationResult."""
        builder = NotationBuilder(tokens, self.registries, mode, self.limits, source)
        return Stepper(builder.run(stepping=True))

    def build_notation(
        self,
        tokens: Sequence[Token],
        mode: NotationMode = NotationMode.RPN,
        source: Optional[str] = None,
    ) -> NotationResult:
        builder = NotationBuilder(tokens, self.registries, mode, self.limits, source)
        return run_to_completion(builder.run(stepping=False))

    def is_evaluable(self, tokens: Sequence[Token]) -> Union[bool, Token]:
        """Returns True or the first unknown constant/function token."""
        return is_evaluable(tokens, self.registries)

    def iterate_evaluate_notation(
        self,
        notation: Sequence[Token],
        mode: NotationMode = NotationMode.RPN,
        source: Optional[str] = None,
    ) -> "Stepper[EvalStep, EvaluationResult]":
        """Stepped evaluation; the stepper's result is the EvaluationResult."""
        evaluator = Evaluator(self.registries, self.limits, source)
        return Stepper(evaluator.run(notation, mode, stepping=True))

    def evaluate_notation(
        self,
        notation: Sequence[Token],
        mode: NotationMode = NotationMode.RPN,
        source: Optional[str] = None,
    ) -> EvaluationResult:
        evaluator = Evaluator(self.registries, self.limits, source)
        return run_to_completion(evaluator.run(notation, mode, stepping=False))

    def evaluate(self, text: str, mode: NotationMode = NotationMode.RPN) -> EvaluationResult:
        """
        Runs the whole pipeline on ``text``.

        Returns:
            The evaluation result, or the first failure of any stage
        """
        tokenized = self.tokenize(text)
        if not tokenized.success:
            return EvaluationResult(value=None, success=False, error=tokenized.error)

        compiled = self.build_notation(tokenized.tokens, mode, text)
        if not compiled.success:
            return EvaluationResult(value=None, success=False, error=compiled.error)

        offending = self.is_evaluable(tokenized.tokens)
        if isinstance(offending, Token):
            what = "function" if offending.kind == TokenKind.FUNC_CALL else "constant"
            error = EvalError(f"Unknown {what} {offending.text}", offending, (), text)
            return EvaluationResult(value=None, success=False, error=error)

        return self.evaluate_notation(compiled.notation, mode, text)
