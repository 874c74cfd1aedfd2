"""Template resolution across bundled, cached and remote storage tiers.

``resolve`` is total: when every tier fails, the first bundled template of the
requested type (or the first bundled template at all) is returned and marked
``is_fallback``. Tier order follows the load strategy:

- ``local_first``: bundled, cache, remote
- ``cache_first``: cache, bundled, remote
- ``remote_only``: remote
"""

from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from types import ModuleType
from typing import Optional

import anyio

from liftcheck.config import TemplatesConfig
from liftcheck.logic import repository_templates
from liftcheck.logic.errors import ResolutionExhausted
from liftcheck.logic.filename_repair import filename_candidates
from liftcheck.logic.object_storage import ObjectStorageClient
from liftcheck.logic.registry_cache import RegistryCache
from liftcheck.logic.strategy_chain import Strategy, run_first_success_async
from liftcheck.models.template import (
    MULTILINGUAL,
    ResolvedTemplate,
    TemplateLoadStrategy,
    TemplateRecord,
    TemplateSource,
)
from liftcheck.template_registry import BUNDLED_TEMPLATES

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TemplateRequest:
    template_id: Optional[str]
    template_type: str
    language: str = MULTILINGUAL


class TemplateNotFound(LookupError):
    pass


class TemplateResolutionService:
    def __init__(
        self,
        config: TemplatesConfig,
        registry: RegistryCache,
        storage: ObjectStorageClient,
        repository: ModuleType = repository_templates,
    ) -> None:
        self.config = config
        self.registry = registry
        self.storage = storage
        self.repository = repository

    # -- catalog -----------------------------------------------------------

    def bundled_records(self) -> list[TemplateRecord]:
        """Registry entries first, then compiled-in entries with unseen ids."""
        document = self.registry.get()
        records = list(document.records()) if document else []
        seen = {r.id for r in records}
        records.extend(r for r in BUNDLED_TEMPLATES if r.id not in seen)
        return records

    def bundled_path(self, record: TemplateRecord) -> Path:
        return Path(self.config.bundled_dir) / record.file_name

    def available_bundled_templates(self) -> list[TemplateRecord]:
        return [r for r in self.bundled_records() if self.bundled_path(r).is_file()]

    def _effective_strategy(self, strategy: Optional[str]) -> str:
        if strategy:
            if strategy not in TemplateLoadStrategy.ALL:
                raise ValueError(f"unknown load strategy: {strategy}")
            return strategy
        document = self.registry.get()
        if document and document.settings.load_strategy in TemplateLoadStrategy.ALL:
            return document.settings.load_strategy
        return self.config.load_strategy

    def _cache_enabled(self) -> bool:
        document = self.registry.get()
        if document is not None and not document.settings.cache_enabled:
            return False
        return self.config.cache_enabled

    # -- tiers -------------------------------------------------------------

    def _load_bundled(self, request: TemplateRequest) -> ResolvedTemplate:
        if not request.template_id:
            raise TemplateNotFound("bundled tier needs a template id")
        record = next((r for r in self.bundled_records() if r.id == request.template_id), None)
        if record is None:
            raise TemplateNotFound(f"no bundled template with id {request.template_id}")
        path = self.bundled_path(record)
        if not path.is_file():
            raise FileNotFoundError(f"bundled template file missing: {path}")
        return ResolvedTemplate(binary=path.read_bytes(), source=TemplateSource.BUNDLED, record=record)

    def _load_cached(self, request: TemplateRequest) -> ResolvedTemplate:
        cache_dir = Path(self.config.cache_dir)
        if not cache_dir.is_dir():
            raise FileNotFoundError(f"template cache directory missing: {cache_dir}")
        composite = f"{request.template_type}-{request.language}"
        for name in sorted(os.listdir(cache_dir)):
            if (request.template_id and request.template_id in name) or composite in name:
                path = cache_dir / name
                if path.is_file():
                    return ResolvedTemplate(binary=path.read_bytes(), source=TemplateSource.CACHE)
        raise TemplateNotFound(f"no cached template matches id={request.template_id} key={composite}")

    def _lookup_remote_record(self, request: TemplateRequest) -> TemplateRecord:
        record = self.repository.get_template(request.template_id) if request.template_id else None
        if record is None:
            record = self.repository.get_active_template(request.template_type, request.language)
        if record is None:
            raise TemplateNotFound(
                f"no remote template for id={request.template_id} type={request.template_type} "
                f"language={request.language}"
            )
        return record

    async def _load_remote(self, request: TemplateRequest) -> ResolvedTemplate:
        record = await anyio.to_thread.run_sync(self._lookup_remote_record, request)
        storage_path = record.file_path or record.file_name
        strategies = [
            Strategy(candidate.strategy, partial(self._download, candidate.path))
            for candidate in filename_candidates(storage_path)
        ]
        outcome = await run_first_success_async(strategies, storage_path, label="template.download")
        binary = outcome.result
        if self._cache_enabled():
            await anyio.to_thread.run_sync(self._write_cache, request, record, binary)
        return ResolvedTemplate(binary=binary, source=TemplateSource.REMOTE, record=record)

    async def _download(self, path: str, _original: str) -> bytes:
        return await self.storage.download(path)

    def cache_file_name(self, request: TemplateRequest, record: TemplateRecord) -> str:
        return f"{request.template_type}-{request.language}-{record.id}-{Path(record.file_name).name}"

    def _write_cache(self, request: TemplateRequest, record: TemplateRecord, binary: bytes) -> None:
        cache_dir = Path(self.config.cache_dir)
        cache_dir.mkdir(parents=True, exist_ok=True)
        target = cache_dir / self.cache_file_name(request, record)
        # Same name, same content: concurrent writers are interchangeable
        tmp = target.with_name(f".{target.name}.{os.getpid()}.tmp")
        tmp.write_bytes(binary)
        os.replace(tmp, target)
        logger.info("template.cache.written path=%s bytes=%d", target, len(binary))

    def _static_fallback(self, request: TemplateRequest) -> ResolvedTemplate:
        records = self.bundled_records()
        record = next((r for r in records if r.type == request.template_type), None) or records[0]
        path = self.bundled_path(record)
        if path.is_file():
            binary = path.read_bytes()
        else:
            logger.error("template.fallback.file_missing id=%s path=%s", record.id, path)
            binary = b""
        return ResolvedTemplate(binary=binary, source=TemplateSource.BUNDLED, record=record, is_fallback=True)

    # -- public API --------------------------------------------------------

    def _tiers(self, strategy: str) -> list[Strategy]:
        bundled = Strategy(TemplateSource.BUNDLED, partial(anyio.to_thread.run_sync, self._load_bundled))
        cache = Strategy(TemplateSource.CACHE, partial(anyio.to_thread.run_sync, self._load_cached))
        remote = Strategy(TemplateSource.REMOTE, self._load_remote)
        if strategy == TemplateLoadStrategy.CACHE_FIRST:
            return [cache, bundled, remote]
        if strategy == TemplateLoadStrategy.REMOTE_ONLY:
            return [remote]
        return [bundled, cache, remote]

    async def resolve(
        self,
        template_id: Optional[str],
        template_type: str,
        language: str = MULTILINGUAL,
        strategy: Optional[str] = None,
    ) -> ResolvedTemplate:
        request = TemplateRequest(template_id, template_type, language)
        effective = self._effective_strategy(strategy)
        logger.info(
            "template.resolve id=%s type=%s language=%s strategy=%s",
            template_id,
            template_type,
            language,
            effective,
        )
        try:
            outcome = await run_first_success_async(self._tiers(effective), request, label="template.resolve")
        except ResolutionExhausted as exc:
            logger.warning("template.resolve.exhausted id=%s detail=%s", template_id, exc)
            return await anyio.to_thread.run_sync(self._static_fallback, request)
        return outcome.result

    def clear_cache(self) -> bool:
        """Delete the whole cache directory. Returns True when something was removed."""
        cache_dir = Path(self.config.cache_dir)
        if not cache_dir.exists():
            return False
        shutil.rmtree(cache_dir)
        logger.info("template.cache.cleared path=%s", cache_dir)
        return True


__all__ = ["TemplateNotFound", "TemplateRequest", "TemplateResolutionService"]
