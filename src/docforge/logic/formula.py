"""Formula engine — safe arithmetic for calculated fields and payment amounts.

Grammar:
    numbers      [0-9.]+
    variables    bare identifiers [a-zA-Z_][a-zA-Z0-9_]* or explicit {{name}}
    operators    + - * /   (left-associative, * and / bind tighter)
    grouping     ( )

No unary minus, functions, string literals or comparisons. Unknown
characters are skipped by the tokenizer.

Pipeline: tokenize → shunting-yard to RPN → stack evaluation. Variables
resolve through a caller-supplied callback; unresolvable or non-numeric
values count as 0. Division by zero yields 0. Results are rounded to the
configured precision (4 places by default).

Evaluation never raises: a malformed expression comes back as the
FORMULA_ERROR sentinel so a broken formula degrades the displayed number
instead of crashing the render path.
"""

from __future__ import annotations

import enum
import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

from docforge.logic.scope import ROOT_SCOPE, EvaluationScope
from docforge.models.block import Block
from docforge.models.document import Variable
from docforge.tree.manager import TreeManager

logger = logging.getLogger(__name__)

FORMULA_ERROR = "Err"

_PRECEDENCE: dict[str, int] = {"+": 1, "-": 1, "*": 2, "/": 2}

_NUMBER_CHARS = frozenset("0123456789.")

_LEADING_NUMBER = re.compile(r"\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


class FormulaError(Exception):
    """Raised internally for a malformed expression."""


class TokenKind(str, enum.Enum):
    NUMBER = "number"
    OPERATOR = "operator"
    LPAREN = "lparen"
    RPAREN = "rparen"
    VARIABLE = "variable"


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    value: str


def to_number(value: Any) -> float:
    """Lenient numeric coercion: leading number of the text, else 0.

    "10" -> 10.0, "12.5kg" -> 12.5, "abc" -> 0.0, None -> 0.0.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return 0.0
        return number if math.isfinite(number) else 0.0
    match = _LEADING_NUMBER.match(str(value))
    if match is None:
        return 0.0
    number = float(match.group(1))
    return number if math.isfinite(number) else 0.0


def tokenize(expression: str) -> list[Token]:
    """Split an expression into a flat token stream."""
    tokens: list[Token] = []
    cursor = 0
    length = len(expression)

    while cursor < length:
        char = expression[cursor]

        if char.isspace():
            cursor += 1
            continue

        if char in _NUMBER_CHARS:
            start = cursor
            while cursor < length and expression[cursor] in _NUMBER_CHARS:
                cursor += 1
            literal = expression[start:cursor]
            if literal.count(".") > 1 or literal == ".":
                raise FormulaError(f"Malformed number: {literal!r}")
            tokens.append(Token(TokenKind.NUMBER, literal))
            continue

        if expression.startswith("{{", cursor):
            end = expression.find("}}", cursor + 2)
            if end == -1:
                raise FormulaError("Unterminated {{ variable")
            tokens.append(Token(TokenKind.VARIABLE, expression[cursor + 2:end].strip()))
            cursor = end + 2
            continue

        if char.isascii() and (char.isalpha() or char == "_"):
            start = cursor
            while cursor < length and expression[cursor].isascii() and (
                expression[cursor].isalnum() or expression[cursor] == "_"
            ):
                cursor += 1
            tokens.append(Token(TokenKind.VARIABLE, expression[start:cursor]))
            continue

        if char in _PRECEDENCE:
            tokens.append(Token(TokenKind.OPERATOR, char))
        elif char == "(":
            tokens.append(Token(TokenKind.LPAREN, char))
        elif char == ")":
            tokens.append(Token(TokenKind.RPAREN, char))
        cursor += 1

    return tokens


def to_rpn(tokens: list[Token]) -> list[Token]:
    """Shunting-yard conversion to reverse Polish notation."""
    output: list[Token] = []
    stack: list[Token] = []

    for token in tokens:
        if token.kind in (TokenKind.NUMBER, TokenKind.VARIABLE):
            output.append(token)
        elif token.kind == TokenKind.OPERATOR:
            while (
                stack
                and stack[-1].kind == TokenKind.OPERATOR
                and _PRECEDENCE[stack[-1].value] >= _PRECEDENCE[token.value]
            ):
                output.append(stack.pop())
            stack.append(token)
        elif token.kind == TokenKind.LPAREN:
            stack.append(token)
        else:
            while stack and stack[-1].kind != TokenKind.LPAREN:
                output.append(stack.pop())
            if not stack:
                raise FormulaError("Unbalanced ')'")
            stack.pop()

    while stack:
        token = stack.pop()
        if token.kind == TokenKind.LPAREN:
            raise FormulaError("Unbalanced '('")
        output.append(token)

    return output


def evaluate_rpn(rpn: list[Token], get_value: Callable[[str], Any]) -> float:
    """Evaluate an RPN token list. Raises FormulaError on operand underflow."""
    stack: list[float] = []

    for token in rpn:
        if token.kind == TokenKind.NUMBER:
            stack.append(float(token.value))
        elif token.kind == TokenKind.VARIABLE:
            stack.append(to_number(get_value(token.value)))
        else:
            if len(stack) < 2:
                raise FormulaError(f"Operator {token.value!r} is missing an operand")
            right = stack.pop()
            left = stack.pop()
            if token.value == "+":
                stack.append(left + right)
            elif token.value == "-":
                stack.append(left - right)
            elif token.value == "*":
                stack.append(left * right)
            else:
                stack.append(0.0 if right == 0 else left / right)

    if not stack:
        return 0.0
    if len(stack) > 1:
        raise FormulaError("Expression has operands without an operator")
    return stack[0]


class FormulaEngine:
    """Evaluates formulas against current answers and globals.

    Usage:
        engine = FormulaEngine()
        engine.evaluate("{{price}} * qty", {"price": "10", "qty": "3"})  # 30.0
        engine.evaluate("bogus(((", {})                                  # "Err"
    """

    def __init__(self, precision: int = 4) -> None:
        self._precision = precision

    def evaluate(self, formula: Optional[str], context: Mapping[str, Any]) -> float | str:
        """Evaluate with variables looked up by name in context."""
        return self.evaluate_with(formula, context.get)

    def evaluate_with(
        self,
        formula: Optional[str],
        get_value: Callable[[str], Any],
    ) -> float | str:
        """Evaluate with variables resolved through get_value."""
        if not formula or not formula.strip():
            return 0.0
        try:
            result = float(evaluate_rpn(to_rpn(tokenize(formula)), get_value))
        except FormulaError as exc:
            logger.warning("Formula error in %r: %s", formula, exc)
            return FORMULA_ERROR
        except Exception as exc:
            # Includes failures raised by get_value
            logger.warning("Formula %r failed: %s: %s", formula, type(exc).__name__, exc)
            return FORMULA_ERROR
        if not math.isfinite(result):
            logger.warning("Formula %r produced a non-finite result", formula)
            return FORMULA_ERROR
        return round(result, self._precision)

    @staticmethod
    def build_context(
        blocks: list[Block],
        form_values: Mapping[str, Any],
        variables: Optional[list[Variable]] = None,
        scope: EvaluationScope = ROOT_SCOPE,
    ) -> dict[str, Any]:
        """Map variable names to current values.

        Global variables come first; answers of blocks bound to the same
        name override them. Answers resolve through the scope (scoped key,
        then bare block id).
        """
        context: dict[str, Any] = {}
        for variable in variables or []:
            context[variable.key] = variable.value
        for block in TreeManager.iter_nodes(blocks):
            if not block.variable_name:
                continue
            value = scope.lookup(form_values, block.id)
            if value is not None:
                context[block.variable_name] = value
        return context
