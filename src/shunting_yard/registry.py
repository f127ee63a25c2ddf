"""
Operator, function and constant tables.

Operators bind tighter the higher their level. All built-in functions are
plain numeric callables accepting a variable number of arguments; missing
trailing arguments fall back to the function's defaults.
"""

import logging
import math
import random
import struct
import sys
from dataclasses import dataclass, field
from typing import Callable, Dict, Mapping, Optional

logger = logging.getLogger("shunting_yard.registry")

# Signature of a binary operator implementation.
OperatorFunction = Callable[[float, float], float]

# Signature of a registered math function.
MathFunction = Callable[..., float]


@dataclass(frozen=True)
class Operator:
    """A binary infix operator."""

    level: int
    function: OperatorFunction
    right_associative: bool = False


# Function registry for built-in and injected functions.
FunctionRegistry = Dict[str, MathFunction]

# Operator table keyed by symbol.
OperatorRegistry = Dict[str, Operator]

# Named numeric constants.
ConstantRegistry = Dict[str, float]


# ============================================================
# Binary operations
# ============================================================


def _int32(value: float) -> int:
    """Truncates to a signed 32-bit integer, as bitwise operands are."""
    if not math.isfinite(value):
        return 0
    result = int(value) & 0xFFFFFFFF
    return result - 0x100000000 if result & 0x80000000 else result


def _add(a: float, b: float) -> float:
    return a + b


def _sub(a: float, b: float) -> float:
    return a - b


def _mul(a: float, b: float) -> float:
    return a * b


def _div(a: float, b: float) -> float:
    if b == 0 and a != 0 and not math.isnan(a):
        # Signed infinity, as in IEEE 754 division
        return math.copysign(math.inf, a) * math.copysign(1.0, b)
    return a / b


def _mod(a: float, b: float) -> float:
    # Result takes the sign of the dividend
    return math.fmod(a, b)


def _pow(a: float, b: float) -> float:
    try:
        result = a**b
    except (OverflowError, ZeroDivisionError):
        negative = a < 0 or (a == 0 and math.copysign(1.0, a) < 0)
        odd = float(b).is_integer() and b % 2 == 1
        return -math.inf if negative and odd else math.inf
    if isinstance(result, complex):
        raise ValueError(f"{a} ^ {b} has no real result")
    return result


def _shl(a: float, b: float) -> float:
    return _int32(_int32(a) << (_int32(b) & 31))


def _shr(a: float, b: float) -> float:
    return _int32(a) >> (_int32(b) & 31)


def _bit_and(a: float, b: float) -> float:
    return _int32(a) & _int32(b)


def _bit_or(a: float, b: float) -> float:
    return _int32(a) | _int32(b)


# Binary functions addressable by name (used by configuration files).
BINARY_FUNCTIONS: Dict[str, OperatorFunction] = {
    "add": _add,
    "sub": _sub,
    "mul": _mul,
    "div": _div,
    "mod": _mod,
    "pow": _pow,
    "shl": _shl,
    "shr": _shr,
    "and": _bit_and,
    "or": _bit_or,
}


def _build_default_operators() -> OperatorRegistry:
    # Loosest first; position in the list is the level
    levels = [
        {"&": "and", "|": "or"},
        {"<<": "shl", ">>": "shr"},
        {"+": "add", "-": "sub"},
        {"*": "mul", "×": "mul", "/": "div", "÷": "div", "%": "mod"},
        {"^": "pow"},
    ]
    operators: OperatorRegistry = {}
    for level, symbols in enumerate(levels):
        for symbol, function_name in symbols.items():
            operators[symbol] = Operator(
                level=level,
                function=BINARY_FUNCTIONS[function_name],
                right_associative=symbol == "^",
            )
    return operators


DEFAULT_OPERATORS: Mapping[str, Operator] = _build_default_operators()


# ============================================================
# Math functions
# ============================================================


def _ln(x: float) -> float:
    """ln(x) - Natural logarithm; ln(0) is -inf."""
    if x == 0:
        return -math.inf
    return math.log(x)


def _log(num: float, base: float = 10) -> float:
    """log(num, base=10) - Logarithm of num in the given base."""
    return _ln(num) / _ln(base)


def _sqrt(num: float, base: float = 2) -> float:
    """sqrt(num, base=2) - The base-th root of num."""
    return _pow(num, 1 / base)


def _round(x: float) -> float:
    """round(x) - Rounds half up, towards positive infinity."""
    return math.floor(x + 0.5)


def _integral(function: Callable[[float], float]) -> MathFunction:
    """Wraps an integer-rounding function so inf and nan pass through."""

    def wrapper(x: float) -> float:
        if not math.isfinite(x):
            return x
        return function(x)

    return wrapper


def _overflow_to_inf(function: Callable[[float], float]) -> MathFunction:
    def wrapper(x: float) -> float:
        try:
            return function(x)
        except OverflowError:
            return math.inf

    return wrapper


def _fround(x: float) -> float:
    """fround(x) - Nearest single precision float."""
    return struct.unpack("f", struct.pack("f", x))[0]


def _sign(x: float) -> float:
    if math.isnan(x):
        return x
    return (x > 0) - (x < 0)


def _max(*args: float) -> float:
    return max(args, default=-math.inf)


def _min(*args: float) -> float:
    return min(args, default=math.inf)


def _random(*_args: float) -> float:
    return random.random()


DEFAULT_FUNCTIONS: Mapping[str, MathFunction] = {
    "ln": _ln,
    "log": _log,
    "sqrt": _sqrt,
    "sin": math.sin,
    "cos": math.cos,
    "tan": math.tan,
    "sinh": math.sinh,
    "cosh": math.cosh,
    "tanh": math.tanh,
    "asin": math.asin,
    "acos": math.acos,
    "atan": math.atan,
    "asinh": math.asinh,
    "acosh": math.acosh,
    "atanh": math.atanh,
    "ceil": _integral(math.ceil),
    "floor": _integral(math.floor),
    "round": _integral(_round),
    "trunc": _integral(math.trunc),
    "fround": _fround,
    "abs": abs,
    "sign": _sign,
    "exp": _overflow_to_inf(math.exp),
    "expm1": _overflow_to_inf(math.expm1),
    "random": _random,
    "max": _max,
    "min": _min,
}


DEFAULT_CONSTANTS: Mapping[str, float] = {
    "e": math.e,
    "pi": math.pi,
    "phi": (1 + math.sqrt(5)) / 2,
    "epsilon": sys.float_info.epsilon,
    "inf": math.inf,
    "minInf": -math.inf,
}


@dataclass
class Registries:
    """
    The operator, function and constant tables used by one engine.

    Entries are inserted or overridden at setup time; compilation and
    evaluation only read them.
    """

    operators: OperatorRegistry = field(default_factory=lambda: dict(DEFAULT_OPERATORS))
    functions: FunctionRegistry = field(default_factory=lambda: dict(DEFAULT_FUNCTIONS))
    constants: ConstantRegistry = field(default_factory=lambda: dict(DEFAULT_CONSTANTS))

    def register_operator(
        self,
        symbol: str,
        level: int,
        function: OperatorFunction,
        right_associative: bool = False,
    ) -> Operator:
        """Inserts or overrides an operator."""
        if symbol in self.operators:
            logger.debug("operator_overridden", extra={"symbol": symbol, "level": level})
        operator = Operator(level=level, function=function, right_associative=right_associative)
        self.operators[symbol] = operator
        return operator

    def register_function(self, name: str, function: MathFunction) -> None:
        """Inserts or overrides a function."""
        if name in self.functions:
            logger.debug("function_overridden", extra={"function_name": name})
        self.functions[name] = function

    def register_constant(self, name: str, value: float) -> None:
        """Inserts or overrides a constant."""
        if name in self.constants:
            logger.debug("constant_overridden", extra={"constant": name})
        self.constants[name] = float(value)

    def get_operator(self, symbol: str) -> Optional[Operator]:
        return self.operators.get(symbol)

    def get_function(self, name: str) -> Optional[MathFunction]:
        return self.functions.get(name)

    def get_constant(self, name: str) -> Optional[float]:
        return self.constants.get(name)

    def copy(self) -> "Registries":
        return Registries(
            operators=dict(self.operators),
            functions=dict(self.functions),
            constants=dict(self.constants),
        )
