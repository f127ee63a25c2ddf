"""
Notation compiler.

Converts a token stream into Reverse Polish Notation (forward scan) or
Polish Notation (reverse scan) with the shunting yard algorithm.

Function calls stay in the output as a single ``funcCall`` token; each of
their comma-separated arguments is compiled into its own token list and
stored in ``token.params``. Parameters are written once, when a compile
succeeds; compiling tokens that already carry them is a NotationError, so
compile RPN and PN from separate ``tokenize`` outputs.

Both directions run as generators. When stepping, every elementary
transition yields a NotationStep before or after it happens; otherwise
nothing is yielded. The terminal NotationResult is the generator's return
value.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Generator, List, Optional, Sequence, Tuple, Union, cast

from .errors import ExpressionError, LimitExceededError, NotationError
from .grammar import TokenKind
from .limits import DEFAULT_EXPRESSION_LIMITS, ExpressionLimits, check_function_arg_count
from .registry import Registries
from .tokenizer import Token

logger = logging.getLogger("shunting_yard.notation")


class NotationMode(str, Enum):
    """Output notation."""

    RPN = "rpn"
    PN = "pn"


class NotationStepType(str, Enum):
    """Elementary compiler transitions."""

    LOOKUP = "lookup"
    INSERT_VALUE = "insertValue"
    INSERT_OP_STACK = "insertOpStack"
    POP_MOVE_OP_STACK = "popMoveOpStack"
    POP_OP_STACK = "popOpStack"
    UPDATE_PARAMS = "updateParams"


@dataclass(frozen=True)
class NotationStep:
    """
    One compiler transition.

    ``notation`` and ``op_stack`` are snapshots taken when the step is
    produced. For PN the notation snapshot is shown in reading order, i.e.
    reversed relative to the order it is being built in.
    """

    type: NotationStepType
    token: Token
    index: int
    inserting_token: Optional[Token]
    notation: Tuple[Token, ...]
    op_stack: Tuple[Token, ...]
    description: str = ""


@dataclass
class NotationResult:
    """Result of compiling a token stream."""

    notation: List[Token]
    """Compiled notation, empty on failure."""

    success: bool
    """Whether compilation succeeded."""

    is_evaluable: bool = False
    """Whether every constant and function referenced is registered."""

    error: Optional[ExpressionError] = None
    """NotationError or LimitExceededError if compilation failed."""


@dataclass
class _BracketFrame:
    """An open bracket group on the operator stack."""

    bracket: Token
    index: int
    start: int
    owner: Optional[Token] = None
    segments: List[List[Token]] = field(default_factory=list)
    separator: Optional[Token] = None
    separator_index: int = -1


_VALUE_KINDS = (TokenKind.NUMBER, TokenKind.VARIABLE)

_OUTSIDE_ARGUMENTS = 'Operator "," cannot be used outside function argument list'


class NotationBuilder:
    """Compiles one token stream into RPN or PN."""

    def __init__(
        self,
        tokens: Sequence[Token],
        registries: Registries,
        mode: NotationMode = NotationMode.RPN,
        limits: Optional[ExpressionLimits] = None,
        source: Optional[str] = None,
    ):
        self._tokens = tokens
        self._registries = registries
        self._mode = NotationMode(mode)
        self._limits = limits or DEFAULT_EXPRESSION_LIMITS
        self._source = source
        self._stepping = False
        self._index = 0
        self._output: List[Token] = []
        self._op_stack: List[Token] = []
        self._frames: List[_BracketFrame] = []
        # Arguments per function call, written onto the tokens on success
        self._params: Dict[Token, List[List[Token]]] = {}

    def run(self, stepping: bool = False) -> Generator[NotationStep, None, NotationResult]:
        """Runs the compiler; yields steps only when ``stepping``."""
        self._stepping = stepping
        try:
            self._check_not_compiled()
            if self._mode is NotationMode.RPN:
                yield from self._scan_forward()
                notation = list(self._output)
            else:
                yield from self._scan_reverse()
                notation = list(reversed(self._output))
        except (NotationError, LimitExceededError) as error:
            logger.debug(
                "notation_failed",
                extra={"mode": self._mode.value, "error": error.message},
            )
            return NotationResult(notation=[], success=False, error=error)

        for token, params in self._params.items():
            token.params = params
        evaluable = is_evaluable(self._tokens, self._registries) is True
        logger.debug(
            "notation_built",
            extra={"mode": self._mode.value, "length": len(notation), "evaluable": evaluable},
        )
        return NotationResult(notation=notation, success=True, is_evaluable=evaluable)

    # ============================================================
    # Forward scan (RPN)
    # ============================================================

    def _scan_forward(self) -> Generator[NotationStep, None, None]:
        tokens = self._tokens
        for index, token in enumerate(tokens):
            self._index = index
            kind = token.kind

            if kind in _VALUE_KINDS:
                self._output.append(token)
                if self._stepping:
                    yield self._step(NotationStepType.INSERT_VALUE)

            elif kind == TokenKind.FUNC_CALL:
                self._output.append(token)
                if self._stepping:
                    yield self._step(NotationStepType.INSERT_VALUE)
                following = tokens[index + 1] if index + 1 < len(tokens) else None
                if following is None or following.kind != TokenKind.OPEN_BRACKET:
                    raise self._error('Expecting "(" for function call', token)
                self._params[token] = []

            elif kind == TokenKind.OPERATOR:
                yield from self._push_operator(token)

            elif kind == TokenKind.OPEN_BRACKET:
                preceding = tokens[index - 1] if index > 0 else None
                owner = preceding if preceding is not None and preceding.kind == TokenKind.FUNC_CALL else None
                self._op_stack.append(token)
                self._frames.append(_BracketFrame(token, index, len(self._output), owner))
                if self._stepping:
                    yield self._step(NotationStepType.INSERT_OP_STACK, description="Inserting open bracket")

            elif kind == TokenKind.CLOSE_BRACKET:
                yield from self._pop_until(TokenKind.OPEN_BRACKET, "Unmatched closing bracket")
                frame = self._frames.pop()
                if frame.owner is None:
                    self._check_group_not_empty(frame)
                else:
                    yield from self._close_arguments(frame.owner, frame)

            elif kind == TokenKind.ARGUMENT_SEPARATOR:
                frame = self._frames[-1] if self._frames else None
                if frame is None or frame.owner is None:
                    raise self._error(_OUTSIDE_ARGUMENTS, token)
                yield from self._pop_until(TokenKind.OPEN_BRACKET, "Unmatched argument separator", discard=False)
                self._attach_argument(frame.owner, self._splice(frame.start), token)

            else:
                raise self._error(f"Unknown token {token.text!r}", token)

        self._index = len(tokens)
        if self._frames:
            frame = self._frames[-1]
            raise self._error("Unmatched opening bracket", frame.bracket, frame.index)
        yield from self._flush()

    def _close_arguments(self, owner: Token, frame: _BracketFrame) -> Generator[NotationStep, None, None]:
        segment = self._splice(frame.start)
        if segment:
            self._attach_argument(owner, segment, self._tokens[self._index])
        elif self._params.get(owner):
            raise self._error("Empty function argument", self._tokens[self._index])
        if self._stepping:
            yield self._step(NotationStepType.UPDATE_PARAMS, owner, "Attaching function parameters")

    # ============================================================
    # Reverse scan (PN)
    # ============================================================

    def _scan_reverse(self) -> Generator[NotationStep, None, None]:
        tokens = self._tokens
        # Bracket group closed most recently, waiting for its function name
        pending: Optional[_BracketFrame] = None

        for index in range(len(tokens) - 1, -1, -1):
            self._index = index
            token = tokens[index]
            kind = token.kind

            if kind in _VALUE_KINDS:
                self._output.append(token)
                if self._stepping:
                    yield self._step(NotationStepType.INSERT_VALUE)

            elif kind == TokenKind.FUNC_CALL:
                following = tokens[index + 1] if index + 1 < len(tokens) else None
                if pending is None or following is not pending.bracket:
                    raise self._error('Expecting "(" for function call', token)
                yield from self._collect_arguments(token, pending)
                pending = None
                self._output.append(token)
                if self._stepping:
                    yield self._step(NotationStepType.INSERT_VALUE)

            elif kind == TokenKind.OPERATOR:
                yield from self._push_operator(token)

            elif kind == TokenKind.CLOSE_BRACKET:
                self._op_stack.append(token)
                self._frames.append(_BracketFrame(token, index, len(self._output)))
                if self._stepping:
                    yield self._step(NotationStepType.INSERT_OP_STACK, description="Inserting close bracket")

            elif kind == TokenKind.OPEN_BRACKET:
                yield from self._pop_until(TokenKind.CLOSE_BRACKET, "Unmatched opening bracket")
                frame = self._frames.pop()
                frame.bracket = token
                frame.index = index
                preceding = tokens[index - 1] if index > 0 else None
                if preceding is not None and preceding.kind == TokenKind.FUNC_CALL:
                    pending = frame
                else:
                    if frame.separator is not None:
                        raise self._error(_OUTSIDE_ARGUMENTS, frame.separator, frame.separator_index)
                    self._check_group_not_empty(frame)
                    pending = None

            elif kind == TokenKind.ARGUMENT_SEPARATOR:
                frame = self._frames[-1] if self._frames else None
                if frame is None:
                    raise self._error(_OUTSIDE_ARGUMENTS, token)
                yield from self._pop_until(TokenKind.CLOSE_BRACKET, "Unmatched argument separator", discard=False)
                segment = self._splice(frame.start)
                if not segment:
                    raise self._error("Empty function argument", token)
                frame.segments.append(segment)
                frame.separator = token
                frame.separator_index = index

            else:
                raise self._error(f"Unknown token {token.text!r}", token)

        self._index = -1
        if self._frames:
            frame = self._frames[-1]
            raise self._error("Unmatched closing bracket", frame.bracket, frame.index)
        yield from self._flush()

    def _collect_arguments(self, owner: Token, frame: _BracketFrame) -> Generator[NotationStep, None, None]:
        segments = list(frame.segments)
        last = self._splice(frame.start)
        if last:
            segments.append(last)
        elif segments:
            raise self._error("Empty function argument", frame.bracket, frame.index)

        # Arguments were scanned right to left, each in reverse
        self._params[owner] = []
        for segment in reversed(segments):
            self._attach_argument(owner, list(reversed(segment)), owner)
        if self._stepping:
            yield self._step(NotationStepType.UPDATE_PARAMS, owner, "Attaching function parameters")

    # ============================================================
    # Shared transitions
    # ============================================================

    def _push_operator(self, token: Token) -> Generator[NotationStep, None, None]:
        operator = self._registries.get_operator(token.text)
        if operator is None:
            raise self._error(f'Invalid operator "{token.text}"', token)

        if self._stepping:
            yield self._step(
                NotationStepType.LOOKUP,
                description=f"Operator {token.text} has level {operator.level}",
            )

        forward = self._mode is NotationMode.RPN
        while self._op_stack:
            top = self._op_stack[-1]
            if top.kind != TokenKind.OPERATOR:
                break
            top_operator = self._registries.get_operator(top.text)
            if top_operator is None:
                break

            # Equal levels pop when grouping runs against the scan direction
            if top_operator.level == operator.level:
                pops = operator.right_associative != forward
                comparison = "="
            else:
                pops = top_operator.level > operator.level
                comparison = ">"
            if not pops:
                break

            self._op_stack.pop()
            self._output.append(top)
            if self._stepping:
                yield self._step(
                    NotationStepType.POP_MOVE_OP_STACK,
                    top,
                    f"Higher precedence: {top.text} ({top_operator.level}) "
                    f"{comparison} {token.text} ({operator.level})",
                )

        self._op_stack.append(token)
        if self._stepping:
            yield self._step(NotationStepType.INSERT_OP_STACK)

    def _pop_until(
        self, bracket_kind: TokenKind, unmatched: str, discard: bool = True
    ) -> Generator[NotationStep, None, None]:
        while self._op_stack:
            top = self._op_stack[-1]
            if top.kind == bracket_kind:
                if discard:
                    self._op_stack.pop()
                    if self._stepping:
                        yield self._step(
                            NotationStepType.POP_OP_STACK,
                            top,
                            "Bracket is not included in the notation",
                        )
                return

            self._op_stack.pop()
            self._output.append(top)
            if self._stepping:
                yield self._step(NotationStepType.POP_MOVE_OP_STACK, top, "Pop until bracket is found")

        raise self._error(unmatched, self._tokens[self._index])

    def _flush(self) -> Generator[NotationStep, None, None]:
        while self._op_stack:
            top = self._op_stack.pop()
            self._output.append(top)
            if self._stepping:
                yield self._step(NotationStepType.POP_MOVE_OP_STACK, top, "Leftover operator")

    def _splice(self, start: int) -> List[Token]:
        segment = self._output[start:]
        del self._output[start:]
        return segment

    def _attach_argument(self, owner: Token, segment: List[Token], at: Token) -> None:
        if not segment:
            raise self._error("Empty function argument", at)
        params = self._params.setdefault(owner, [])
        params.append(segment)
        check_function_arg_count(len(params), self._limits, owner.position)

    def _check_group_not_empty(self, frame: _BracketFrame) -> None:
        if len(self._output) == frame.start:
            raise self._error("Empty brackets", frame.bracket, frame.index)

    # ============================================================
    # Helpers
    # ============================================================

    def _check_not_compiled(self) -> None:
        # Function parameters are written once; a second compile would replace them
        for index, token in enumerate(self._tokens):
            if token.kind == TokenKind.FUNC_CALL and token.params is not None:
                raise self._error("Tokens are already compiled", token, index)

    def _step(
        self,
        step_type: NotationStepType,
        token: Optional[Token] = None,
        description: str = "",
    ) -> NotationStep:
        current = self._tokens[self._index] if 0 <= self._index < len(self._tokens) else None
        acting = cast(Token, token if token is not None else current)
        notation = self._output if self._mode is NotationMode.RPN else reversed(self._output)
        return NotationStep(
            type=step_type,
            token=acting,
            index=self._index,
            inserting_token=current,
            notation=tuple(notation),
            op_stack=tuple(self._op_stack),
            description=description,
        )

    def _error(self, message: str, token: Optional[Token], index: Optional[int] = None) -> NotationError:
        return NotationError(
            message,
            self._index if index is None else index,
            token,
            self._source,
        )


def is_evaluable(tokens: Sequence[Token], registries: Registries) -> Union[bool, Token]:
    """
    Checks that every constant and function referenced is registered.

    Returns:
        True, or the first variable/function call token that is unknown
    """
    for token in tokens:
        if token.kind == TokenKind.VARIABLE and registries.get_constant(token.text) is None:
            return token
        if token.kind == TokenKind.FUNC_CALL and registries.get_function(token.text) is None:
            return token
    return True


def notation_to_string(notation: Sequence[Token]) -> str:
    """Renders a notation list, function parameters as ``f(a b +, c)``."""
    parts = []
    for token in notation:
        text = token.text.strip()
        if token.kind == TokenKind.FUNC_CALL and token.params is not None:
            arguments = ", ".join(notation_to_string(params) for params in token.params)
            text = f"{text}({arguments})"
        parts.append(text)
    return " ".join(parts)
