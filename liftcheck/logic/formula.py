"""Whitelisted arithmetic evaluation for calculated questions.

A formula is free text over numeric literals, the ids of its declared input
questions, ``+ - * /``, parentheses and unary minus. Nothing else is accepted:
there are no names, calls or attribute lookups to reach. Results are rounded
half-up to two decimals and checked against the question's bounds.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, DecimalException, InvalidOperation
from typing import Mapping, Optional, Sequence

from liftcheck.logic.errors import CalculationError
from liftcheck.models.generation import CalculationFlag
from liftcheck.models.question import AnswerValue, QuestionDefinition, QuestionType

logger = logging.getLogger(__name__)

MISSING_INPUT = "missing_input"
NON_NUMERIC_INPUT = "non_numeric_input"
INVALID_FORMULA = "invalid_formula"
OUT_OF_RANGE = "out_of_range"
NUMERIC_OVERFLOW = "numeric_overflow"

_NUMBER = re.compile(r"\d+(?:[.,]\d+)?|[.,]\d+")
_OPERATORS = frozenset("+-*/()")
_TWO_PLACES = Decimal("0.01")


@dataclass(frozen=True)
class Token:
    kind: str  # "num", "var", "op"
    text: str


def tokenize(formula: str, variables: Sequence[str]) -> list[Token]:
    """Split a formula into tokens, matching the longest variable name first."""
    names = sorted({v for v in variables if v}, key=len, reverse=True)
    tokens: list[Token] = []
    pos = 0
    while pos < len(formula):
        ch = formula[pos]
        if ch.isspace():
            pos += 1
            continue
        name = next((n for n in names if formula.startswith(n, pos)), None)
        if name is not None:
            tokens.append(Token("var", name))
            pos += len(name)
            continue
        if ch in _OPERATORS:
            tokens.append(Token("op", ch))
            pos += 1
            continue
        match = _NUMBER.match(formula, pos)
        if match:
            tokens.append(Token("num", match.group(0).replace(",", ".")))
            pos = match.end()
            continue
        raise CalculationError(INVALID_FORMULA, f"unexpected {formula[pos:pos + 10]!r} at position {pos}")
    return tokens


class _Parser:
    """Recursive-descent evaluator.

    expr   := term (("+" | "-") term)*
    term   := factor (("*" | "/") factor)*
    factor := ("-" | "+") factor | NUMBER | VAR | "(" expr ")"
    """

    def __init__(self, tokens: list[Token], values: Mapping[str, Decimal]) -> None:
        self.tokens = tokens
        self.values = values
        self.pos = 0

    def _peek(self) -> Optional[Token]:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _at_op(self, ops: str) -> bool:
        tok = self._peek()
        return tok is not None and tok.kind == "op" and tok.text in ops

    def _take(self) -> Token:
        tok = self._peek()
        if tok is None:
            raise CalculationError(INVALID_FORMULA, "unexpected end of formula")
        self.pos += 1
        return tok

    def parse(self) -> Decimal:
        if not self.tokens:
            raise CalculationError(INVALID_FORMULA, "empty formula")
        result = self._expr()
        if self._peek() is not None:
            raise CalculationError(INVALID_FORMULA, f"unexpected token {self._peek().text!r}")  # type: ignore[union-attr]
        return result

    def _expr(self) -> Decimal:
        value = self._term()
        while self._at_op("+-"):
            tok = self._take()
            rhs = self._term()
            value = value + rhs if tok.text == "+" else value - rhs
        return value

    def _term(self) -> Decimal:
        value = self._factor()
        while self._at_op("*/"):
            tok = self._take()
            rhs = self._factor()
            if tok.text == "*":
                value = value * rhs
            else:
                if rhs == 0:
                    raise CalculationError(INVALID_FORMULA, "division by zero")
                value = value / rhs
        return value

    def _factor(self) -> Decimal:
        tok = self._take()
        if tok.kind == "op" and tok.text in "+-":
            operand = self._factor()
            return -operand if tok.text == "-" else operand
        if tok.kind == "num":
            return Decimal(tok.text)
        if tok.kind == "var":
            return self.values[tok.text]
        if tok.text == "(":
            value = self._expr()
            closing = self._take()
            if closing.text != ")":
                raise CalculationError(INVALID_FORMULA, "missing closing parenthesis")
            return value
        raise CalculationError(INVALID_FORMULA, f"unexpected token {tok.text!r}")


def to_decimal(value: AnswerValue | None) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip().replace(",", ".")
    if not text:
        return None
    try:
        number = Decimal(text)
    except InvalidOperation:
        return None
    return number if number.is_finite() else None


def evaluate(formula: str, inputs: Sequence[str], answers: Mapping[str, AnswerValue]) -> Decimal:
    """Evaluate ``formula`` with each input id replaced by its numeric answer.

    Raises ``CalculationError`` when an input is missing or non-numeric, or
    when the formula is not plain arithmetic over the inputs, or when the
    result is too wide to round to two decimals.
    """
    values: dict[str, Decimal] = {}
    for qid in inputs:
        raw = answers.get(qid)
        if raw is None or (isinstance(raw, str) and not raw.strip()):
            raise CalculationError(MISSING_INPUT, f"input {qid} has no answer")
        number = to_decimal(raw)
        if number is None:
            raise CalculationError(NON_NUMERIC_INPUT, f"input {qid} is not numeric: {raw!r}")
        values[qid] = number
    tokens = tokenize(formula, list(inputs))
    try:
        return _Parser(tokens, values).parse().quantize(_TWO_PLACES, rounding=ROUND_HALF_UP)
    except DecimalException as e:
        # Results wider than the decimal context precision cannot be rounded to cents
        raise CalculationError(NUMERIC_OVERFLOW, f"result cannot be represented: {type(e).__name__}") from e


def display_number(value: Decimal) -> int | float:
    """Integral results render as ints (21, not 21.0)."""
    if value == value.to_integral_value():
        return int(value)
    return float(value)


@dataclass(frozen=True)
class CalculationOutcome:
    value: Optional[int | float]
    flag: Optional[CalculationFlag] = None


def calculate_question(question: QuestionDefinition, answers: Mapping[str, AnswerValue]) -> CalculationOutcome:
    """Evaluate one calculated question; failures become flags, never exceptions."""
    if not question.calculation_formula:
        return CalculationOutcome(None, CalculationFlag(question_id=question.id, reason=INVALID_FORMULA, detail="no formula"))
    try:
        result = evaluate(question.calculation_formula, question.calculation_inputs, answers)
    except CalculationError as e:
        logger.info("calculation.skipped question_id=%s reason=%s detail=%s", question.id, e.reason, e.detail)
        return CalculationOutcome(None, CalculationFlag(question_id=question.id, reason=e.reason, detail=e.detail))

    value = display_number(result)
    below = question.min_value is not None and result < Decimal(str(question.min_value))
    above = question.max_value is not None and result > Decimal(str(question.max_value))
    if below or above:
        detail = f"{value} outside [{question.min_value}, {question.max_value}]"
        logger.info("calculation.out_of_range question_id=%s %s", question.id, detail)
        return CalculationOutcome(value, CalculationFlag(question_id=question.id, reason=OUT_OF_RANGE, value=float(result), detail=detail))
    return CalculationOutcome(value)


def apply_calculations(
    questions: Sequence[QuestionDefinition],
    answers: Mapping[str, AnswerValue],
) -> tuple[dict[str, AnswerValue], list[CalculationFlag]]:
    """Return answers with calculated fields filled in, plus their flags.

    A calculated field that cannot be evaluated is removed from the result so
    it renders blank.
    """
    result: dict[str, AnswerValue] = dict(answers)
    flags: list[CalculationFlag] = []
    for q in questions:
        if q.type != QuestionType.CALCULATED:
            continue
        outcome = calculate_question(q, result)
        if outcome.value is None:
            result.pop(q.id, None)
        else:
            result[q.id] = outcome.value
        if outcome.flag is not None:
            flags.append(outcome.flag)
    return result, flags


__all__ = [
    "CalculationOutcome",
    "INVALID_FORMULA",
    "MISSING_INPUT",
    "NON_NUMERIC_INPUT",
    "NUMERIC_OVERFLOW",
    "OUT_OF_RANGE",
    "apply_calculations",
    "calculate_question",
    "display_number",
    "evaluate",
    "to_decimal",
    "tokenize",
]
