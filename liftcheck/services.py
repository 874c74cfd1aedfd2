"""Process-wide collaborators shared by the HTTP routes.

Built once per application by ``create_app`` and stored on
``app.state.services``; routes obtain it through ``get_services``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

import anyio
import httpx
from fastapi import Request

from liftcheck.config import AppConfig, load_config
from liftcheck.logic.errors import ConfigurationError
from liftcheck.logic.object_storage import ObjectStorageClient
from liftcheck.logic.question_parser import QuestionCache
from liftcheck.logic.registry_cache import RegistryCache
from liftcheck.logic.template_resolver import TemplateResolutionService
from liftcheck.models.question import QuestionDefinition
from liftcheck.models.template import MULTILINGUAL, ResolvedTemplate, TemplateRecord, TemplateType

logger = logging.getLogger(__name__)

# Template types that carry question configuration, in lookup order
QUESTION_SOURCE_TYPES = (TemplateType.UNIFIED, TemplateType.QUESTIONS)


@dataclass
class Services:
    config: AppConfig
    registry: RegistryCache
    storage: ObjectStorageClient
    resolver: TemplateResolutionService
    questions: QuestionCache = field(default_factory=QuestionCache)


def build_services(
    config: Optional[AppConfig] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Services:
    config = config or load_config()
    registry = RegistryCache(config.templates.registry_path)
    storage = ObjectStorageClient(config.storage, transport=transport)
    resolver = TemplateResolutionService(config.templates, registry, storage)
    return Services(config=config, registry=registry, storage=storage, resolver=resolver)


def get_services(request: Request) -> Services:
    return request.app.state.services


async def _stored_questions(services: Services, record_id: str) -> list[QuestionDefinition]:
    return await anyio.to_thread.run_sync(services.resolver.repository.list_question_configs, record_id)


async def load_questionnaire(
    services: Services,
    template_id: Optional[str],
    template_type: str,
    language: str,
    strategy: Optional[str] = None,
) -> tuple[list[QuestionDefinition], ResolvedTemplate]:
    """Resolve a template and return its questions with the resolved template.

    Question metadata stored for the template record takes precedence over
    the workbook's own question sheet.
    """
    resolved = await services.resolver.resolve(template_id, template_type, language, strategy)
    if resolved.record is not None:
        stored = await _stored_questions(services, resolved.record.id)
        if stored:
            logger.info("questions.load.stored template_id=%s count=%d", resolved.record.id, len(stored))
            return stored, resolved
    if not resolved.binary:
        raise ConfigurationError("no questionnaire template could be resolved")
    questions = await anyio.to_thread.run_sync(services.questions.get_or_parse, resolved.binary)
    return questions, resolved


def _active_question_record(services: Services, language: str) -> Optional[TemplateRecord]:
    repository = services.resolver.repository
    return repository.get_active_template(TemplateType.UNIFIED, MULTILINGUAL) or repository.get_active_template(
        TemplateType.QUESTIONS, language
    )


def _default_bundled_question_record(services: Services) -> Optional[TemplateRecord]:
    available = services.resolver.available_bundled_templates()
    for template_type in QUESTION_SOURCE_TYPES:
        candidates = [r for r in available if r.type == template_type]
        candidates.sort(key=lambda r: not r.is_default)
        if candidates:
            return candidates[0]
    return None


async def load_protocol_questions(
    services: Services,
    questions_template_id: Optional[str],
    language: str,
) -> list[QuestionDefinition]:
    """Question metadata for filling a protocol workbook.

    The protocol workbook only receives values; the questions come from a
    separate source, tried in order:

    1. the explicitly named questions template;
    2. the active unified template, then the active questions template for
       the language, using stored configs before the workbook;
    3. the default bundled unified or questions workbook.
    """
    if questions_template_id:
        questions, _ = await load_questionnaire(services, questions_template_id, TemplateType.QUESTIONS, language)
        return questions

    record = await anyio.to_thread.run_sync(_active_question_record, services, language)
    if record is not None:
        stored = await _stored_questions(services, record.id)
        if stored:
            logger.info("protocol.questions.stored template_id=%s count=%d", record.id, len(stored))
            return stored
        questions, _ = await load_questionnaire(services, record.id, record.type, record.language)
        return questions

    bundled = await anyio.to_thread.run_sync(_default_bundled_question_record, services)
    if bundled is None:
        raise ConfigurationError("no questionnaire template is available for protocol generation")
    logger.info("protocol.questions.bundled template_id=%s", bundled.id)
    questions, _ = await load_questionnaire(services, bundled.id, bundled.type, language)
    return questions


__all__ = ["Services", "build_services", "get_services", "load_protocol_questions", "load_questionnaire"]
