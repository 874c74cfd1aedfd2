"""Visibility resolution endpoint.

Runs the resolver, the fill-if-empty pass and the visibility delta in one
call. Hidden questions that still carry user input are reported as
``suppressed_answers``; they stay in the returned answer map.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter

from liftcheck.logic.visibility_delta import answer_checker, compute_visibility_delta
from liftcheck.logic.visibility_rules import fill_hidden_answers, resolve_visibility
from liftcheck.models.visibility import VisibilityRequest, VisibilityResponse

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post(
    "/visibility/resolve",
    summary="Resolve visible questions and fill hidden ones",
    operation_id="resolveVisibility",
    response_model=VisibilityResponse,
)
def resolve_visibility_endpoint(body: VisibilityRequest) -> VisibilityResponse:
    result = resolve_visibility(body.questions, body.answers)
    filled = fill_hidden_answers(body.questions, body.answers, result)
    visible_ids = [q.id for q in result.visible_questions]
    previous = body.previously_visible if body.previously_visible is not None else [q.id for q in body.questions]
    now_visible, now_hidden, suppressed = compute_visibility_delta(previous, visible_ids, answer_checker(body.answers))
    logger.info(
        "visibility.resolve visible=%d hidden=%d suppressed=%d",
        len(visible_ids),
        len(result.hidden_question_ids),
        len(suppressed),
    )
    return VisibilityResponse(
        visible_question_ids=visible_ids,
        active_condition_keys=result.active_condition_keys,
        hidden_question_ids=result.hidden_question_ids,
        answers=filled,
        now_visible=now_visible,
        now_hidden=now_hidden,
        suppressed_answers=suppressed,
    )
