"""
Grammar for flat arithmetic expressions.

The grammar alternates between two whitespace-skipping states: ``value``
(a number, variable, function call or bracket may follow) and ``operator``
(a binary operator, separator or closing bracket may follow).
"""

import re
from enum import Enum

from .tokenizer import SyntaxRule, Tokenizer


class TokenKind(str, Enum):
    """Token kinds emitted by the arithmetic grammar."""

    NUMBER = "number"
    VARIABLE = "variable"
    FUNC_CALL = "funcCall"
    OPERATOR = "operator"
    OPEN_BRACKET = "openBracket"
    CLOSE_BRACKET = "closeBracket"
    ARGUMENT_SEPARATOR = "argumentSeparator"


VALUE_STATE = "value"
OPERATOR_STATE = "operator"

OPERATOR_PATTERN = r"<<|>>|[-+*/%&|×÷^]"


def create_math_tokenizer() -> Tokenizer:
    """Builds a fresh tokenizer for the arithmetic grammar."""
    return Tokenizer(
        [
            SyntaxRule(
                name=TokenKind.NUMBER.value,
                pattern=re.compile(r"[-+]?\d+(\.\d*)?(e[-+]\d+)?"),
                next=[OPERATOR_STATE],
            ),
            SyntaxRule(
                name=TokenKind.VARIABLE.value,
                pattern=re.compile(r"[a-z]\w*", re.IGNORECASE),
                next=[OPERATOR_STATE],
            ),
            SyntaxRule(
                name=TokenKind.FUNC_CALL.value,
                pattern=re.compile(r"[a-z]\w*(?=\s*\()", re.IGNORECASE),
                next=[TokenKind.OPEN_BRACKET.value],
                final=False,
            ),
            SyntaxRule(
                name=TokenKind.OPEN_BRACKET.value,
                pattern=re.compile(r"\s*\(\s*"),
                next=[VALUE_STATE],
                final=False,
            ),
            SyntaxRule(
                name=TokenKind.CLOSE_BRACKET.value,
                pattern=re.compile(r"\s*\)\s*"),
                next=[OPERATOR_STATE],
            ),
            SyntaxRule(
                name=TokenKind.ARGUMENT_SEPARATOR.value,
                pattern=re.compile(r","),
                next=[VALUE_STATE],
                final=False,
            ),
            SyntaxRule(
                name="operatorToken",
                alias=TokenKind.OPERATOR.value,
                pattern=re.compile(OPERATOR_PATTERN),
                next=[VALUE_STATE],
                final=False,
            ),
            SyntaxRule(
                name=VALUE_STATE,
                pattern=re.compile(r"\s*"),
                next=[
                    TokenKind.OPEN_BRACKET.value,
                    TokenKind.CLOSE_BRACKET.value,
                    TokenKind.NUMBER.value,
                    TokenKind.FUNC_CALL.value,
                    TokenKind.VARIABLE.value,
                ],
                ignore=True,
                final=False,
            ),
            SyntaxRule(
                name=OPERATOR_STATE,
                pattern=re.compile(r"\s*"),
                next=[
                    TokenKind.CLOSE_BRACKET.value,
                    TokenKind.ARGUMENT_SEPARATOR.value,
                    "operatorToken",
                ],
                ignore=True,
            ),
        ],
        entry=VALUE_STATE,
    )


# Shared base grammar; engines specialize a clone of it.
MATH_TOKENIZER = create_math_tokenizer()
