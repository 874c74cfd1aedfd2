"""Helpers to compute visibility deltas and suppressed answers.

Exposes a single function that computes now_visible, now_hidden, and the list
of suppressed answers using a caller-provided check for answer existence.
"""

from __future__ import annotations

from typing import Callable, Iterable, Mapping

from liftcheck.logic.visibility_rules import NOT_APPLICABLE_SENTINEL
from liftcheck.models.question import AnswerValue


def compute_visibility_delta(
    pre_visible: Iterable[str],
    post_visible: Iterable[str],
    has_answer: Callable[[str], bool],
) -> tuple[list[str], list[str], list[str]]:
    """Compute visibility delta and suppressed answers.

    - now_visible: questions newly visible (in post but not in pre)
    - now_hidden: questions newly hidden (in pre but not in post)
    - suppressed_answers: subset of now_hidden that still hold a user answer

    Exceptions raised by ``has_answer`` propagate to the caller.
    """
    pre_set = {str(qid).strip() for qid in pre_visible if str(qid).strip()}
    post_set = {str(qid).strip() for qid in post_visible if str(qid).strip()}

    now_visible = sorted(post_set - pre_set)
    now_hidden = sorted(pre_set - post_set)
    suppressed_answers = [qid for qid in now_hidden if has_answer(qid)]
    return now_visible, now_hidden, suppressed_answers


def answer_checker(answers: Mapping[str, AnswerValue]) -> Callable[[str], bool]:
    """Return a ``has_answer`` check over an answer map.

    Sentinel fills and blank strings do not count as user input.
    """

    def _has_answer(qid: str) -> bool:
        value = answers.get(qid)
        if value is None:
            return False
        if isinstance(value, str):
            return bool(value.strip()) and value.strip() != NOT_APPLICABLE_SENTINEL
        return True

    return _has_answer


__all__ = ["answer_checker", "compute_visibility_delta"]
