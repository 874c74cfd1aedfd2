"""Conditional visibility resolution for the inspection questionnaire.

A controller is a choice question carrying a ``conditional_group_key``. When
its answer is truthy, questions whose ``group_key`` equals that key are live;
otherwise they are hidden. Controllers and questions outside every controlled
group are always visible.
"""

from __future__ import annotations

import logging
from typing import Mapping, Sequence

from liftcheck.models.question import AnswerMap, AnswerValue, QuestionDefinition
from liftcheck.models.visibility import VisibilityResult

logger = logging.getLogger(__name__)

NOT_APPLICABLE_SENTINEL = "n.a."

TRUTHY_TOKENS = frozenset({"true", "yes", "ja", "igen", "1", "x"})


def is_truthy(value: AnswerValue | None) -> bool:
    """Return True when a controller answer switches its group on.

    Booleans are taken as-is; any other value is compared case-insensitively
    against the truthy vocabulary after trimming.
    """
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in TRUTHY_TOKENS


def active_condition_keys(questions: Sequence[QuestionDefinition], answers: Mapping[str, AnswerValue]) -> list[str]:
    active: list[str] = []
    for q in questions:
        if q.is_controller and is_truthy(answers.get(q.id)) and q.conditional_group_key not in active:
            active.append(q.conditional_group_key)  # type: ignore[arg-type]
    return active


def resolve_visibility(
    questions: Sequence[QuestionDefinition],
    answers: Mapping[str, AnswerValue],
) -> VisibilityResult:
    """Compute the visible questions and active condition keys.

    Pure: neither argument is mutated and equal inputs give equal results.
    """
    active = active_condition_keys(questions, answers)
    active_set = set(active)
    universe = {q.conditional_group_key for q in questions if q.is_controller}

    visible: list[QuestionDefinition] = []
    hidden: list[str] = []
    for q in questions:
        if q.is_controller or not q.group_key:
            visible.append(q)
        elif q.group_key in universe and q.group_key not in active_set:
            hidden.append(q.id)
        else:
            visible.append(q)

    return VisibilityResult(
        visible_questions=visible,
        active_condition_keys=active,
        hidden_question_ids=hidden,
    )


def fill_hidden_answers(
    questions: Sequence[QuestionDefinition],
    answers: Mapping[str, AnswerValue],
    result: VisibilityResult | None = None,
) -> AnswerMap:
    """Return a copy of ``answers`` where hidden, unanswered questions hold a sentinel.

    Existing answers are never overwritten, even for hidden questions. The
    sentinel is the question's ``default_if_hidden`` when set, else ``"n.a."``.
    Running the pass on its own output returns an equal map.
    """
    result = result or resolve_visibility(questions, answers)
    by_id = {q.id: q for q in questions}
    filled: AnswerMap = dict(answers)
    for qid in result.hidden_question_ids:
        current = filled.get(qid)
        if current is None or (isinstance(current, str) and not current.strip()):
            question = by_id[qid]
            filled[qid] = question.default_if_hidden or NOT_APPLICABLE_SENTINEL
    return filled


class VisibilityResolver:
    """Memoizing wrapper around :func:`resolve_visibility`.

    Keeps only the most recent call. A repeated call with the same objects,
    or with a shallow-equal question list and answer map, returns the cached
    result without recomputation. The memo is a single ``(questions,
    answers, result)`` tuple, replaced whole. One instance per session; the
    HTTP endpoint resolves without it.
    """

    def __init__(self) -> None:
        self._memo: tuple[tuple[QuestionDefinition, ...], dict[str, AnswerValue], VisibilityResult] | None = None
        self.computations = 0

    @staticmethod
    def _matches(
        memo: tuple[tuple[QuestionDefinition, ...], dict[str, AnswerValue], VisibilityResult],
        questions: Sequence[QuestionDefinition],
        answers: Mapping[str, AnswerValue],
    ) -> bool:
        last_questions, last_answers, _ = memo
        same_questions = len(questions) == len(last_questions) and all(
            a is b or a == b for a, b in zip(questions, last_questions)
        )
        return same_questions and dict(answers) == last_answers

    def resolve(self, questions: Sequence[QuestionDefinition], answers: Mapping[str, AnswerValue]) -> VisibilityResult:
        memo = self._memo
        if memo is not None and self._matches(memo, questions, answers):
            return memo[2]
        self.computations += 1
        result = resolve_visibility(questions, answers)
        self._memo = (tuple(questions), dict(answers), result)
        logger.debug(
            "visibility.resolved visible=%d hidden=%d active=%s",
            len(result.visible_questions),
            len(result.hidden_question_ids),
            result.active_condition_keys,
        )
        return result

    def reset(self) -> None:
        self._memo = None


__all__ = [
    "NOT_APPLICABLE_SENTINEL",
    "TRUTHY_TOKENS",
    "VisibilityResolver",
    "active_condition_keys",
    "fill_hidden_answers",
    "is_truthy",
    "resolve_visibility",
]
