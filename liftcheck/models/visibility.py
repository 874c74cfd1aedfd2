"""Request/response shapes for visibility resolution."""

from __future__ import annotations

from pydantic import BaseModel, Field

from liftcheck.models.question import AnswerValue, QuestionDefinition


class VisibilityResult(BaseModel):
    visible_questions: list[QuestionDefinition]
    active_condition_keys: list[str]
    hidden_question_ids: list[str]


class VisibilityRequest(BaseModel):
    questions: list[QuestionDefinition]
    answers: dict[str, AnswerValue] = Field(default_factory=dict)
    previously_visible: list[str] | None = None


class VisibilityResponse(BaseModel):
    visible_question_ids: list[str]
    active_condition_keys: list[str]
    hidden_question_ids: list[str]
    answers: dict[str, AnswerValue]
    now_visible: list[str] = Field(default_factory=list)
    now_hidden: list[str] = Field(default_factory=list)
    suppressed_answers: list[str] = Field(default_factory=list)


__all__ = ["VisibilityRequest", "VisibilityResponse", "VisibilityResult"]
