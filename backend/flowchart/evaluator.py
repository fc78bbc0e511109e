"""Arithmetic expression evaluator for flowchart blocks.

Expressions are small infix formulas such as ``"(a + 2) * -b"``. They are
parsed and reduced in one pass by a recursive-descent parser: every grammar
level takes the current position in the (whitespace-stripped) text and
returns the new position together with the value computed so far. No syntax
tree is built because each expression is evaluated exactly once.

Grammar, lowest to highest precedence::

    expression := term (('+'|'-') term)*
    term       := factor (('*'|'/') factor)*
    factor     := ('+'|'-') factor | '(' expression ')' | number | identifier

Failures are reported by raising `EvalError` with one of the error codes
defined below. Division by zero is not an error: it produces an infinity or
NaN exactly like IEEE-754 hardware would.
"""

import logging
import math
from typing import Mapping, NoReturn, Optional, Tuple

logger = logging.getLogger(__name__)

EMPTY_FACTOR = "EMPTY_FACTOR"
UNBALANCED_PARENTHESES = "UNBALANCED_PARENTHESES"
INVALID_NUMBER_FORMAT = "INVALID_NUMBER_FORMAT"
UNDEFINED_VARIABLE = "UNDEFINED_VARIABLE"
UNEXPECTED_CHARACTER = "UNEXPECTED_CHARACTER"
TRAILING_INPUT = "TRAILING_INPUT"
NESTING_TOO_DEEP = "NESTING_TOO_DEEP"


class EvalError(Exception):
    """Raised when an expression cannot be parsed or evaluated.

    Attributes:
        code: stable machine-readable error kind (e.g. ``UNDEFINED_VARIABLE``)
        column: optional 1-based column in the whitespace-stripped expression
        text: optional whitespace-stripped expression text
        detail: the offending name or character, when there is one
    """

    def __init__(
        self,
        code: str,
        message: str,
        *,
        column: Optional[int] = None,
        text: Optional[str] = None,
        detail: Optional[str] = None,
    ):
        super().__init__(message)
        self.code = code
        self.column = column
        self.text = text
        self.detail = detail

    def to_dict(self) -> dict:
        err = {"code": self.code, "message": str(self)}
        if self.column is not None:
            err["column"] = self.column
        if self.text is not None:
            err["text"] = self.text
        if self.detail is not None:
            err["detail"] = self.detail
        return err


def divide(left: float, right: float) -> float:
    """Floating point division with IEEE-754 results for a zero divisor."""
    try:
        return left / right
    except ZeroDivisionError:
        if left == 0.0 or math.isnan(left):
            return math.nan
        return math.copysign(math.inf, left) * math.copysign(1.0, right)


def _is_digit(c: str) -> bool:
    return c.isdecimal() or c == "."


def _is_name_char(c: str) -> bool:
    return c.isalpha() or c.isdecimal()


class _Reducer:
    """One-shot parser/evaluator over a whitespace-free expression."""

    def __init__(self, text: str, variables: Mapping[str, float]):
        self.text = text
        self.variables = variables

    def fail(self, code: str, message: str, pos: int, detail: Optional[str] = None) -> NoReturn:
        raise EvalError(code, message, column=pos + 1, text=self.text, detail=detail)

    def expression(self, pos: int) -> Tuple[int, float]:
        pos, value = self.term(pos)
        while pos < len(self.text):
            c = self.text[pos]
            if c == "+":
                pos, rhs = self.term(pos + 1)
                value += rhs
            elif c == "-":
                pos, rhs = self.term(pos + 1)
                value -= rhs
            else:
                break
        return pos, value

    def term(self, pos: int) -> Tuple[int, float]:
        pos, value = self.factor(pos)
        while pos < len(self.text):
            c = self.text[pos]
            if c == "*":
                pos, rhs = self.factor(pos + 1)
                value *= rhs
            elif c == "/":
                pos, rhs = self.factor(pos + 1)
                value = divide(value, rhs)
            else:
                break
        return pos, value

    def factor(self, pos: int) -> Tuple[int, float]:
        text = self.text
        if pos >= len(text):
            self.fail(EMPTY_FACTOR, "Empty factor", pos)
        first = text[pos]
        if first == "+":
            return self.factor(pos + 1)
        if first == "-":
            pos, value = self.factor(pos + 1)
            return pos, -value
        if first == "(":
            end, value = self.expression(pos + 1)
            if end >= len(text) or text[end] != ")":
                self.fail(UNBALANCED_PARENTHESES, "Missing closing parenthesis", end)
            return end + 1, value
        if _is_digit(first):
            end = pos
            while end < len(text) and _is_digit(text[end]):
                end += 1
            literal = text[pos:end]
            try:
                value = float(literal)
            except ValueError:
                pass
            else:
                return end, value
            self.fail(INVALID_NUMBER_FORMAT, f"Invalid number format: {literal}", pos, literal)
        if first.isalpha():
            end = pos
            while end < len(text) and _is_name_char(text[end]):
                end += 1
            name = text[pos:end]
            if name not in self.variables:
                self.fail(UNDEFINED_VARIABLE, f"Undefined variable '{name}'", pos, name)
            return end, float(self.variables[name])
        self.fail(UNEXPECTED_CHARACTER, f"Unexpected character: {first}", pos, first)


def strip_whitespace(expr: str) -> str:
    return "".join(c for c in expr if not c.isspace())


def evaluate(expr: str, variables: Mapping[str, float]) -> float:
    """Evaluate an arithmetic expression against a variable environment.

    All whitespace is removed before parsing, including whitespace inside
    numbers and names (``"1 2"`` reads as ``12``). Identifiers are looked up
    in `variables`; a missing name is an error rather than zero.

    Args:
        expr: expression source text, e.g. ``"x * (y + 1)"``.
        variables: mapping of declared variable names to their values.

    Returns:
        The value of the expression as a float.

    Raises:
        EvalError: if the text is malformed, names an unknown variable or
            leaves characters unconsumed after a complete expression.
    """
    text = strip_whitespace(expr)
    reducer = _Reducer(text, variables)
    try:
        pos, value = reducer.expression(0)
    except RecursionError:
        raise EvalError(NESTING_TOO_DEEP, "Expression is nested too deeply", text=text) from None
    if pos < len(text):
        reducer.fail(TRAILING_INPUT, f"Unexpected character: {text[pos]}", pos, text[pos])
    logger.debug("evaluated %r -> %r", text, value)
    return value
