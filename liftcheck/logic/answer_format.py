"""Display formatting of answers for generated documents.

Choice answers are stored as internal codes (``yes``/``no``/``na``, ``true``,
``ok``/``not_ok``) and rendered as localized words. Numeric questions render
as numbers so spreadsheet formulas and number formats keep working.
"""

from __future__ import annotations

from typing import Optional

from liftcheck.logic.formula import display_number, to_decimal
from liftcheck.logic.visibility_rules import NOT_APPLICABLE_SENTINEL
from liftcheck.models.question import AnswerValue, QuestionType

AFFIRMATIVE = "affirmative"
NEGATIVE = "negative"
NOT_APPLICABLE = "not_applicable"

LOCALIZED_TOKENS: dict[str, dict[str, str]] = {
    "hu": {AFFIRMATIVE: "Igen", NEGATIVE: "Nem", NOT_APPLICABLE: "Nem alkalmazható"},
    "de": {AFFIRMATIVE: "Ja", NEGATIVE: "Nein", NOT_APPLICABLE: "Nicht zutreffend"},
    "en": {AFFIRMATIVE: "Yes", NEGATIVE: "No", NOT_APPLICABLE: "Not applicable"},
}

_AFFIRMATIVE_CODES = frozenset({"yes", "ok", "true", "igen", "ja", "1", "x"})
_NEGATIVE_CODES = frozenset({"no", "not_ok", "false", "nem", "nein", "0"})
_NOT_APPLICABLE_CODES = frozenset({"na", "n/a", "n.a.", "not_applicable", "nicht_zutreffend"})


def choice_state(value: AnswerValue | None) -> Optional[str]:
    """Classify a choice answer as affirmative, negative or not applicable."""
    if value is None:
        return None
    if isinstance(value, bool):
        return AFFIRMATIVE if value else NEGATIVE
    token = str(value).strip().lower()
    if token in _AFFIRMATIVE_CODES:
        return AFFIRMATIVE
    if token in _NEGATIVE_CODES:
        return NEGATIVE
    if token in _NOT_APPLICABLE_CODES:
        return NOT_APPLICABLE
    return None


def localized_token(state: str, language: str) -> str:
    return LOCALIZED_TOKENS.get(language, LOCALIZED_TOKENS["hu"])[state]


def format_answer(value: AnswerValue | None, question_type: str, language: str) -> Optional[AnswerValue]:
    """Return the value to write into a document cell, or None for nothing."""
    if value is None:
        return None
    if isinstance(value, str) and not value.strip():
        return None
    if question_type in QuestionType.CHOICE:
        state = choice_state(value)
        return localized_token(state, language) if state else str(value)
    if question_type in QuestionType.NUMERIC:
        if choice_state(value) == NOT_APPLICABLE:
            return localized_token(NOT_APPLICABLE, language)
        number = to_decimal(value)
        return display_number(number) if number is not None else str(value)
    if isinstance(value, bool):
        return localized_token(AFFIRMATIVE if value else NEGATIVE, language)
    if isinstance(value, str) and value.strip().lower() == NOT_APPLICABLE_SENTINEL:
        return localized_token(NOT_APPLICABLE, language)
    return value if isinstance(value, (int, float)) else str(value)


__all__ = [
    "AFFIRMATIVE",
    "LOCALIZED_TOKENS",
    "NEGATIVE",
    "NOT_APPLICABLE",
    "choice_state",
    "format_answer",
    "localized_token",
]
