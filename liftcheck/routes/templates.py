"""Template catalog, download and cache maintenance endpoints."""

from __future__ import annotations

import logging
import mimetypes
from typing import Optional

import anyio
from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.exc import SQLAlchemyError

from liftcheck.models.template import MULTILINGUAL, TemplateType
from liftcheck.services import Services, get_services

router = APIRouter()
logger = logging.getLogger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def media_type_for(file_name: str) -> str:
    if file_name.lower().endswith(".xlsx"):
        return XLSX_MEDIA_TYPE
    return mimetypes.guess_type(file_name)[0] or "application/octet-stream"


@router.get(
    "/templates",
    summary="List bundled and remote templates",
    operation_id="listTemplates",
)
async def list_templates(services: Services = Depends(get_services)):
    bundled = services.resolver.available_bundled_templates()
    try:
        remote = await anyio.to_thread.run_sync(services.resolver.repository.list_templates)
    except SQLAlchemyError:
        logger.error("templates.list.remote_failed", exc_info=True)
        remote = []
    return {
        "bundled": [r.model_dump() for r in bundled],
        "remote": [r.model_dump() for r in remote],
    }


@router.delete(
    "/templates/cache",
    summary="Clear the template cache, registry copy and parsed questions",
    operation_id="clearTemplateCache",
)
def clear_template_cache(services: Services = Depends(get_services)):
    removed = services.resolver.clear_cache()
    services.registry.invalidate()
    cleared_questions = services.questions.clear()
    return {"cache_removed": removed, "question_sets_cleared": cleared_questions}


@router.get(
    "/templates/{template_id}",
    summary="Resolve and download a template",
    operation_id="getTemplate",
)
async def get_template(
    template_id: str,
    template_type: str = Query(default=TemplateType.UNIFIED, alias="type"),
    language: str = Query(default=MULTILINGUAL),
    strategy: Optional[str] = Query(default=None),
    services: Services = Depends(get_services),
):
    if template_type not in TemplateType.ALL:
        raise HTTPException(status_code=400, detail={"title": "Unknown template type", "detail": template_type})
    try:
        resolved = await services.resolver.resolve(template_id, template_type, language, strategy)
    except ValueError as e:
        raise HTTPException(status_code=400, detail={"title": "Unknown load strategy", "detail": str(e)}) from e
    if not resolved.binary:
        raise HTTPException(status_code=404, detail={"title": "Template not found", "detail": template_id})
    file_name = resolved.record.file_name if resolved.record else f"{template_id}.xlsx"
    return Response(
        content=resolved.binary,
        media_type=media_type_for(file_name),
        headers={
            "X-Template-Source": resolved.source,
            "X-Template-Fallback": "true" if resolved.is_fallback else "false",
            "X-Template-Id": resolved.record.id if resolved.record else template_id,
        },
    )
