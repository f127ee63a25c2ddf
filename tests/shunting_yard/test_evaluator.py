"""
Tests for the notation evaluator.
"""

import math

import pytest

from shunting_yard import (
    MATH_TOKENIZER,
    EvalError,
    EvalStepType,
    Evaluator,
    ExpressionLimits,
    LimitExceededError,
    NotationBuilder,
    NotationMode,
    Registries,
    Token,
    TokenKind,
    run_to_completion,
)

BOTH_MODES = [NotationMode.RPN, NotationMode.PN]


def compile_text(text: str, mode=NotationMode.RPN, registries=None):
    # Tokenize per mode: compiling writes function parameters onto the tokens
    tokens = MATH_TOKENIZER.parse(text)
    result = run_to_completion(NotationBuilder(tokens, registries or Registries(), mode).run())
    assert result.success, result.error
    return result.notation


def evaluate(text: str, mode=NotationMode.RPN, registries=None, limits=None):
    registries = registries or Registries()
    notation = compile_text(text, mode, registries)
    return run_to_completion(Evaluator(registries, limits).run(notation, mode))


def value_of(text: str, mode=NotationMode.RPN) -> float:
    result = evaluate(text, mode)
    assert result.success, result.error
    return result.value


def number(text: str, position: int = 0) -> Token:
    return Token(TokenKind.NUMBER.value, text, position)


def operator(text: str, position: int = 0) -> Token:
    return Token(TokenKind.OPERATOR.value, text, position)


class TestArithmetic:
    """Tests for operator evaluation."""

    @pytest.mark.parametrize("mode", BOTH_MODES)
    def test_sample_expression(self, mode):
        assert value_of("(-3+1)-(-1*-8)*(8/-4)+2/8*4-16/4+4", mode) == 15

    @pytest.mark.parametrize("mode", BOTH_MODES)
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("1+2*3", 7),
            ("1-2-3", -4),
            ("2^3^2", 512),
            ("(1+2)*3", 9),
            ("8/4/2", 1),
            ("7×2÷4", 3.5),
            ("-7%3", -1),
            ("1<<4", 16),
            ("16>>2", 4),
            ("5&3", 1),
            ("5|3", 7),
            ("1+2<<1", 6),
        ],
    )
    def test_operators(self, mode, text, expected):
        assert value_of(text, mode) == expected

    @pytest.mark.parametrize("mode", BOTH_MODES)
    def test_operand_order_is_preserved(self, mode):
        assert value_of("10-4", mode) == 6
        assert value_of("2^3", mode) == 8

    @pytest.mark.parametrize("mode", BOTH_MODES)
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("1/0", math.inf),
            ("-1/0", -math.inf),
            ("1/-0", -math.inf),
            ("0^-1", math.inf),
            ("10^400", math.inf),
            ("(-10)^401", -math.inf),
            ("ln(0)", -math.inf),
            ("exp(1000)", math.inf),
            ("round(1/0)", math.inf),
            ("floor(minInf)", -math.inf),
        ],
    )
    def test_overflow_and_division_by_zero_give_infinity(self, mode, text, expected):
        assert value_of(text, mode) == expected

    def test_bitwise_operands_wrap_to_32_bits(self):
        assert value_of("1<<31") == -2147483648
        assert value_of("2147483648|0") == -2147483648


class TestFunctionsAndConstants:
    """Tests for function calls and constants."""

    @pytest.mark.parametrize("mode", BOTH_MODES)
    def test_function_calls(self, mode):
        assert value_of("sqrt(16)", mode) == 4
        assert value_of("log(8, 2)", mode) == pytest.approx(3)
        assert value_of("max(1, 2+3, 4)", mode) == 5
        assert value_of("1 + max(min(4, 2), 3)", mode) == 4

    @pytest.mark.parametrize("mode", BOTH_MODES)
    def test_constants(self, mode):
        assert value_of("2*pi", mode) == pytest.approx(2 * math.pi)
        assert value_of("e", mode) == pytest.approx(math.e)

    def test_function_without_arguments(self):
        assert value_of("max()") == -math.inf
        assert 0 <= value_of("random()") < 1

    def test_registered_function(self):
        registries = Registries()
        registries.register_function("double", lambda x: 2 * x)
        result = evaluate("double(21)", registries=registries)
        assert result.value == 42


class TestErrors:
    """Tests for evaluation errors."""

    def test_unknown_constant(self):
        result = evaluate("x+1")
        assert not result.success
        assert isinstance(result.error, EvalError)
        assert result.error.message == "Unknown constant x"
        assert result.error.token.text == "x"

    def test_unknown_function(self):
        result = evaluate("foo(1)")
        assert not result.success
        assert result.error.message == "Unknown function foo"

    def test_missing_operands(self):
        notation = [number("1"), operator("+", 1)]
        result = run_to_completion(Evaluator(Registries()).run(notation))
        assert not result.success
        assert result.error.message == 'Missing lvalue and rvalue for operator "+"'
        assert result.error.value_stack == (1.0,)

    def test_invalid_result_stack(self):
        notation = [number("1"), number("2", 2)]
        result = run_to_completion(Evaluator(Registries()).run(notation))
        assert not result.success
        assert result.error.message == "Invalid result stack length"
        assert result.error.value_stack == (1.0, 2.0)

    def test_empty_notation(self):
        result = run_to_completion(Evaluator(Registries()).run([]))
        assert not result.success
        assert result.error.message == "Invalid result stack length"

    def test_bracket_in_notation(self):
        notation = [Token(TokenKind.OPEN_BRACKET.value, "(", 0)]
        result = run_to_completion(Evaluator(Registries()).run(notation))
        assert not result.success
        assert "Unexpected token" in result.error.message

    def test_uncompiled_function_call(self):
        notation = [Token(TokenKind.FUNC_CALL.value, "max", 0)]
        result = run_to_completion(Evaluator(Registries()).run(notation))
        assert not result.success
        assert "no compiled parameters" in result.error.message

    @pytest.mark.parametrize("text", ["0/0", "5%0", "ln(-1)", "sqrt(-1)"])
    def test_domain_errors(self, text):
        result = evaluate(text)
        assert not result.success
        assert isinstance(result.error, EvalError)

    def test_call_depth_limit(self):
        result = evaluate("abs(abs(1))", limits=ExpressionLimits(max_call_depth=1))
        assert not result.success
        assert isinstance(result.error, LimitExceededError)
        assert result.error.limit_name == "max_call_depth"

    def test_error_context(self):
        registries = Registries()
        notation = compile_text("1+x", registries=registries)
        result = run_to_completion(Evaluator(registries, source="1+x").run(notation))
        assert result.error.format_with_context() == "Unknown constant x\n  1+x\n    ^"


class TestStepping:
    """Tests for stepped evaluation."""

    def steps(self, text, mode=NotationMode.RPN):
        registries = Registries()
        notation = compile_text(text, mode, registries)
        generator = Evaluator(registries).run(notation, mode, stepping=True)
        collected = []
        while True:
            try:
                collected.append(next(generator))
            except StopIteration as stop:
                return collected, stop.value

    def test_operation_steps(self):
        steps, result = self.steps("1+2")
        assert [s.type for s in steps] == [
            EvalStepType.INSERT_VALUE,
            EvalStepType.INSERT_VALUE,
            EvalStepType.OPERATION,
            EvalStepType.RESULT,
        ]
        assert steps[2].operands == (1.0, 2.0)
        assert steps[2].value_stack == (3.0,)
        assert steps[-1].value == result.value == 3

    def test_pn_visits_tokens_right_to_left(self):
        steps, _ = self.steps("10-4", NotationMode.PN)
        assert [s.index for s in steps[:3]] == [2, 1, 0]
        assert steps[2].operands == (10.0, 4.0)
        assert steps[2].value == 6

    def test_function_call_steps(self):
        steps, result = self.steps("max(1,2)")
        assert [s.type for s in steps] == [
            EvalStepType.UPDATE_STACK,
            EvalStepType.INSERT_VALUE,
            EvalStepType.UPDATE_STACK,
            EvalStepType.INSERT_VALUE,
            EvalStepType.UPDATE_STACK,
            EvalStepType.FUNC_CALL,
            EvalStepType.RESULT,
        ]
        assert [s.nested for s in steps] == [True, True, True, True, False, False, False]
        assert steps[0].value_stack == ()
        assert steps[0].token.text == "max"
        assert steps[5].value == 2
        assert result.value == 2

    def test_failed_run_yields_no_result_step(self):
        steps, result = self.steps("x")
        assert steps == []
        assert not result.success
