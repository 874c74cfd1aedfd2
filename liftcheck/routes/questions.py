"""Questionnaire endpoint: the active question set for a language."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from liftcheck.models.question import SUPPORTED_LANGUAGES
from liftcheck.models.template import TemplateType
from liftcheck.services import Services, get_services, load_questionnaire

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get(
    "/questions/{language}",
    summary="Parse the active questionnaire template",
    operation_id="getQuestions",
)
async def get_questions(
    language: str,
    template_id: Optional[str] = Query(default=None),
    template_type: str = Query(default=TemplateType.UNIFIED, alias="type"),
    services: Services = Depends(get_services),
):
    if language not in SUPPORTED_LANGUAGES:
        raise HTTPException(
            status_code=400,
            detail={"title": "Unsupported language", "detail": f"language must be one of {list(SUPPORTED_LANGUAGES)}"},
        )
    questions, resolved = await load_questionnaire(services, template_id, template_type, language)
    return {
        "template_id": resolved.record.id if resolved.record else None,
        "source": resolved.source,
        "is_fallback": resolved.is_fallback,
        "questions": [
            {
                **q.model_dump(),
                "display_title": q.title_for(language),
                "display_placeholder": q.placeholder_for(language),
                "display_group_name": q.group_name_for(language),
            }
            for q in questions
        ],
    }
