"""Functional tests for conditional visibility, fill-if-empty and the visibility delta."""

from __future__ import annotations

import copy
from concurrent.futures import ThreadPoolExecutor

import pytest

from liftcheck.logic.visibility_delta import answer_checker, compute_visibility_delta
from liftcheck.logic.visibility_rules import (
    NOT_APPLICABLE_SENTINEL,
    VisibilityResolver,
    active_condition_keys,
    fill_hidden_answers,
    is_truthy,
    resolve_visibility,
)
from liftcheck.models.question import QuestionDefinition, QuestionType


def _questions() -> list[QuestionDefinition]:
    return [
        QuestionDefinition(id="Q1", type=QuestionType.BOOLEAN, title="Modernizáció?", conditional_group_key="modernization"),
        QuestionDefinition(id="Q2", type=QuestionType.TEXT, title="Modernizáció éve", group_key="modernization"),
        QuestionDefinition(
            id="Q3",
            type=QuestionType.MEASUREMENT,
            title="Új kötelek átmérője",
            group_key="modernization",
            default_if_hidden="-",
        ),
        QuestionDefinition(id="Q4", type=QuestionType.NUMBER, title="Teherbírás"),
        QuestionDefinition(id="Q5", type=QuestionType.TEXT, title="Megjegyzés", group_key="general"),
    ]


def _visible_ids(answers: dict) -> list[str]:
    return [q.id for q in resolve_visibility(_questions(), answers).visible_questions]


@pytest.mark.parametrize("value", [True, "true", "TRUE", " yes ", "ja", "Igen", "1", "x", "X", 1])
def test_truthy_controller_answer_shows_group__verifies_truthy_vocabulary(value):
    """Verifies every truthy token switches the controlled group on."""
    # Assert: the token is truthy
    assert is_truthy(value) is True
    # Assert: both controlled questions are visible
    assert _visible_ids({"Q1": value}) == ["Q1", "Q2", "Q3", "Q4", "Q5"]


@pytest.mark.parametrize("value", [False, "false", "no", "nein", "nem", "0", "", "n.a.", None, 0])
def test_other_controller_answers_hide_group__verifies_falsy_values(value):
    """Verifies any non-truthy answer keeps the controlled group hidden."""
    answers = {} if value is None else {"Q1": value}
    result = resolve_visibility(_questions(), answers)
    # Assert: controlled questions are hidden, ungrouped and unrelated groups are not
    assert result.hidden_question_ids == ["Q2", "Q3"]
    assert [q.id for q in result.visible_questions] == ["Q1", "Q4", "Q5"]
    assert result.active_condition_keys == []


def test_question_in_group_without_controller_is_visible__verifies_universe():
    """Verifies a group key that no controller owns never hides its members."""
    result = resolve_visibility(_questions(), {})
    # Assert: Q5 belongs to "general", which no controller declares
    assert "Q5" not in result.hidden_question_ids


def test_controller_inside_inactive_group_stays_visible__verifies_controller_always_visible():
    """Verifies a controller is visible even when its own group is inactive."""
    questions = _questions() + [
        QuestionDefinition(
            id="Q6",
            type=QuestionType.TRI_STATE,
            group_key="modernization",
            conditional_group_key="drive_change",
        ),
        QuestionDefinition(id="Q7", type=QuestionType.TEXT, group_key="drive_change"),
    ]
    result = resolve_visibility(questions, {"Q6": "yes"})
    visible = [q.id for q in result.visible_questions]
    # Assert: Q6 is visible although "modernization" is off
    assert "Q6" in visible
    # Assert: Q6 activates its own group
    assert "Q7" in visible
    assert result.active_condition_keys == ["drive_change"]


def test_resolution_does_not_mutate_inputs__verifies_purity():
    """Verifies resolve and fill-if-empty leave both inputs untouched."""
    questions = _questions()
    answers = {"Q1": "false", "Q4": 630}
    questions_before = copy.deepcopy(questions)
    answers_before = dict(answers)
    # Act
    first = resolve_visibility(questions, answers)
    filled = fill_hidden_answers(questions, answers)
    second = resolve_visibility(questions, answers)
    # Assert: inputs unchanged and results deterministic
    assert questions == questions_before
    assert answers == answers_before
    assert filled is not answers
    assert first == second


def test_fill_if_empty_sentinels_hidden_questions_only__verifies_sentinel_fill():
    """Verifies hidden unanswered questions get the sentinel or their own default."""
    filled = fill_hidden_answers(_questions(), {"Q1": "false"})
    # Assert: default sentinel for Q2, question-specific default for Q3
    assert filled["Q2"] == NOT_APPLICABLE_SENTINEL
    assert filled["Q3"] == "-"
    # Assert: visible unanswered questions are left alone
    assert "Q4" not in filled
    assert "Q5" not in filled


def test_fill_if_empty_keeps_existing_answers_and_is_idempotent__verifies_no_overwrite():
    """Verifies existing answers survive and a second pass changes nothing."""
    answers = {"Q1": "false", "Q2": "2019", "Q3": "  "}
    once = fill_hidden_answers(_questions(), answers)
    twice = fill_hidden_answers(_questions(), once)
    # Assert: user input on a hidden question is kept
    assert once["Q2"] == "2019"
    # Assert: a blank answer counts as empty
    assert once["Q3"] == "-"
    # Assert: idempotent
    assert twice == once


def test_retracting_controller_keeps_descendant_answer__verifies_retraction_scenario():
    """Verifies a retracted controller hides its group but keeps the entered answer."""
    questions = _questions()
    answers = {"Q1": "true", "Q2": "2019"}
    before = resolve_visibility(questions, answers)
    # Act: the controller answer is retracted
    answers["Q1"] = "false"
    after = resolve_visibility(questions, answers)
    filled = fill_hidden_answers(questions, answers, after)
    now_visible, now_hidden, suppressed = compute_visibility_delta(
        [q.id for q in before.visible_questions],
        [q.id for q in after.visible_questions],
        answer_checker(answers),
    )
    # Assert: Q2 and Q3 are newly hidden
    assert now_visible == []
    assert now_hidden == ["Q2", "Q3"]
    # Assert: only Q2 holds user input and it is kept
    assert filled["Q2"] == "2019"
    assert filled["Q3"] == "-"
    assert suppressed == ["Q2"]


def test_answer_checker_ignores_sentinel_and_blank__verifies_has_answer():
    """Verifies the sentinel and blank strings are not treated as user input."""
    has_answer = answer_checker({"A": NOT_APPLICABLE_SENTINEL, "B": " ", "C": 0, "D": False, "E": "x"})
    # Assert
    assert [has_answer(qid) for qid in "ABCDEF"] == [False, False, True, True, True, False]


def test_active_condition_keys_are_unique_and_ordered__verifies_active_keys():
    """Verifies active keys follow question order without duplicates."""
    questions = [
        QuestionDefinition(id="C1", type=QuestionType.BOOLEAN, conditional_group_key="b"),
        QuestionDefinition(id="C2", type=QuestionType.BOOLEAN, conditional_group_key="a"),
        QuestionDefinition(id="C3", type=QuestionType.TRI_STATE, conditional_group_key="b"),
        QuestionDefinition(id="T1", type=QuestionType.TEXT, conditional_group_key="c"),
    ]
    keys = active_condition_keys(questions, {"C1": True, "C2": "yes", "C3": "x", "T1": "true"})
    # Assert: a text question is never a controller
    assert keys == ["b", "a"]


def test_resolver_memoizes_last_call__verifies_memoization():
    """Verifies repeated equal inputs reuse the cached result."""
    resolver = VisibilityResolver()
    questions = _questions()
    answers = {"Q1": "true"}
    # Act
    first = resolver.resolve(questions, answers)
    second = resolver.resolve(questions, answers)
    third = resolver.resolve(list(questions), dict(answers))
    # Assert: one computation for identical and shallow-equal inputs
    assert resolver.computations == 1
    assert first is second is third
    # Act: answers change
    changed = resolver.resolve(questions, {"Q1": "false"})
    # Assert
    assert resolver.computations == 2
    assert changed.hidden_question_ids == ["Q2", "Q3"]
    # Act: reset forces recomputation
    resolver.reset()
    resolver.resolve(questions, {"Q1": "false"})
    assert resolver.computations == 3


def test_resolver_does_not_reuse_result_after_in_place_answer_change__verifies_snapshot():
    """Verifies the cache compares against a snapshot, not the caller's dict."""
    resolver = VisibilityResolver()
    questions = _questions()
    answers = {"Q1": "true"}
    resolver.resolve(questions, answers)
    # Act: the caller mutates its own map
    answers["Q1"] = "false"
    result = resolver.resolve(questions, answers)
    # Assert
    assert resolver.computations == 2
    assert result.hidden_question_ids == ["Q2", "Q3"]


def test_resolver_shared_across_threads__verifies_results_match_own_inputs():
    """Verifies concurrent callers never receive a result computed for other inputs."""
    controlled = [
        QuestionDefinition(id="C", type=QuestionType.BOOLEAN, conditional_group_key="g"),
        QuestionDefinition(id="D", type=QuestionType.TEXT, group_key="g"),
    ]
    uncontrolled = [
        QuestionDefinition(id="C", type=QuestionType.TEXT),
        QuestionDefinition(id="D", type=QuestionType.TEXT, group_key="g"),
    ]
    cases = [(controlled, {"C": "no"}), (uncontrolled, {"C": "no"}), (controlled, {"C": "yes"})]
    expected = [resolve_visibility(questions, answers).hidden_question_ids for questions, answers in cases]
    resolver = VisibilityResolver()

    def run(i: int) -> tuple[int, list[str]]:
        questions, answers = cases[i % len(cases)]
        return i % len(cases), resolver.resolve(questions, answers).hidden_question_ids

    # Act
    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(run, range(600)))
    # Assert
    assert expected == [["D"], [], []]
    assert all(hidden == expected[case] for case, hidden in results)
