"""
Notation evaluator.

A stack machine that interprets RPN (read left to right) or PN (read right
to left). Function-call tokens evaluate each of their parameter lists in a
fresh stack and apply the registered function to the results.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Generator, List, Optional, Sequence, Tuple

from .errors import EvalError, ExpressionError, LimitExceededError
from .grammar import TokenKind
from .limits import DEFAULT_EXPRESSION_LIMITS, ExpressionLimits, check_call_depth
from .notation import NotationMode
from .registry import Registries
from .tokenizer import Token

logger = logging.getLogger("shunting_yard.evaluator")


class EvalStepType(str, Enum):
    """Evaluator transitions."""

    INSERT_VALUE = "insertValue"
    OPERATION = "operation"
    FUNC_CALL = "funcCall"
    UPDATE_STACK = "updateStack"
    RESULT = "result"


@dataclass(frozen=True)
class EvalStep:
    """
    One evaluator transition.

    ``nested`` is set for steps taken while evaluating a function argument;
    a nested UPDATE_STACK with an empty stack marks entry into such an
    evaluation.
    """

    type: EvalStepType
    token: Optional[Token]
    index: int
    value_stack: Tuple[float, ...]
    value: float = 0.0
    nested: bool = False
    operands: Optional[Tuple[float, float]] = None


@dataclass
class EvaluationResult:
    """Result of evaluating a notation sequence."""

    value: Optional[float]
    """The evaluated value."""

    success: bool
    """Whether evaluation succeeded."""

    error: Optional[ExpressionError] = None
    """Error if evaluation (or an earlier stage) failed."""


class Evaluator:
    """Evaluates compiled notation against a set of registries."""

    def __init__(
        self,
        registries: Registries,
        limits: Optional[ExpressionLimits] = None,
        source: Optional[str] = None,
    ):
        self._registries = registries
        self._limits = limits or DEFAULT_EXPRESSION_LIMITS
        self._source = source

    def run(
        self,
        notation: Sequence[Token],
        mode: NotationMode = NotationMode.RPN,
        stepping: bool = False,
    ) -> Generator[EvalStep, None, EvaluationResult]:
        """Evaluates ``notation``; yields steps only when ``stepping``."""
        mode = NotationMode(mode)
        try:
            value = yield from self._evaluate(notation, mode, stepping, 0)
        except (EvalError, LimitExceededError) as error:
            logger.debug(
                "evaluation_failed",
                extra={"mode": mode.value, "error": error.message},
            )
            return EvaluationResult(value=None, success=False, error=error)

        logger.debug("evaluation_finished", extra={"mode": mode.value, "value": value})
        if stepping:
            yield EvalStep(EvalStepType.RESULT, None, len(notation), (value,), value)
        return EvaluationResult(value=value, success=True)

    def _evaluate(
        self,
        notation: Sequence[Token],
        mode: NotationMode,
        stepping: bool,
        depth: int,
        caller: Optional[Token] = None,
    ) -> Generator[EvalStep, None, float]:
        stack: List[float] = []
        nested = depth > 0

        if nested and stepping:
            yield EvalStep(EvalStepType.UPDATE_STACK, caller, -1, (), nested=True)

        indices = range(len(notation)) if mode is NotationMode.RPN else range(len(notation) - 1, -1, -1)
        for index in indices:
            token = notation[index]
            kind = token.kind

            if kind == TokenKind.NUMBER:
                try:
                    value = float(token.text)
                except ValueError as e:
                    raise self._error(f"Invalid number {token.text!r}", token, stack) from e
                stack.append(value)
                if stepping:
                    yield EvalStep(EvalStepType.INSERT_VALUE, token, index, tuple(stack), value, nested)

            elif kind == TokenKind.VARIABLE:
                constant = self._registries.get_constant(token.text)
                if constant is None:
                    raise self._error(f"Unknown constant {token.text}", token, stack)
                stack.append(constant)
                if stepping:
                    yield EvalStep(EvalStepType.INSERT_VALUE, token, index, tuple(stack), constant, nested)

            elif kind == TokenKind.FUNC_CALL:
                function = self._registries.get_function(token.text)
                if function is None:
                    raise self._error(f"Unknown function {token.text}", token, stack)
                if token.params is None:
                    raise self._error(f"Function {token.text} has no compiled parameters", token, stack)
                check_call_depth(depth + 1, self._limits, token.position)

                args = []
                for params in token.params:
                    arg = yield from self._evaluate(params, mode, stepping, depth + 1, token)
                    args.append(arg)
                if stepping:
                    yield EvalStep(EvalStepType.UPDATE_STACK, token, index, tuple(stack), nested=nested)

                value = self._apply(function, args, token, stack)
                stack.append(value)
                if stepping:
                    yield EvalStep(EvalStepType.FUNC_CALL, token, index, tuple(stack), value, nested)

            elif kind == TokenKind.OPERATOR:
                if len(stack) < 2:
                    raise self._error(f'Missing lvalue and rvalue for operator "{token.text}"', token, stack)
                operator = self._registries.get_operator(token.text)
                if operator is None:
                    raise self._error(f'Unknown operator "{token.text}"', token, stack)

                # PN is read backwards, so the most recent operand is the left one
                if mode is NotationMode.RPN:
                    right = stack.pop()
                    left = stack.pop()
                else:
                    left = stack.pop()
                    right = stack.pop()

                value = self._apply(operator.function, [left, right], token, stack)
                stack.append(value)
                if stepping:
                    yield EvalStep(
                        EvalStepType.OPERATION,
                        token,
                        index,
                        tuple(stack),
                        value,
                        nested,
                        (left, right),
                    )

            else:
                raise self._error(f"Unexpected token {token.text!r} in notation", token, stack)

        if len(stack) != 1:
            last = notation[-1] if notation else caller
            raise self._error("Invalid result stack length", last, stack)
        return stack[0]

    def _apply(
        self,
        function: Callable[..., float],
        args: List[float],
        token: Token,
        stack: List[float],
    ) -> float:
        try:
            return float(function(*args))
        except (ArithmeticError, ValueError, TypeError) as e:
            raise self._error(f"{token.text.strip()}: {e}", token, stack) from e

    def _error(self, message: str, token: Optional[Token], stack: List[float]) -> EvalError:
        return EvalError(message, token, stack, self._source)
