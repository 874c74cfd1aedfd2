"""Template records and the registry document shape."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class TemplateType:
    QUESTIONS = "questions"
    PROTOCOL = "protocol"
    UNIFIED = "unified"
    FORM_PDF = "form_pdf"

    ALL = frozenset({QUESTIONS, PROTOCOL, UNIFIED, FORM_PDF})


class TemplateLoadStrategy:
    LOCAL_FIRST = "local_first"
    CACHE_FIRST = "cache_first"
    REMOTE_ONLY = "remote_only"

    ALL = frozenset({LOCAL_FIRST, CACHE_FIRST, REMOTE_ONLY})


class TemplateSource:
    BUNDLED = "bundled"
    CACHE = "cache"
    REMOTE = "remote"


MULTILINGUAL = "multilingual"


class TemplateRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    type: str
    file_name: str
    language: str = MULTILINGUAL
    file_path: Optional[str] = None
    name_de: Optional[str] = None
    description: Optional[str] = None
    is_active: bool = True
    is_default: bool = False


class RegistryEntry(BaseModel):
    """One template entry of the registry document (camelCase on disk)."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str
    name: str
    file_name: str = Field(alias="fileName")
    type: str
    name_de: Optional[str] = None
    language: str = MULTILINGUAL
    lift_type: Optional[str] = Field(default=None, alias="liftType")
    description: Optional[str] = None
    is_default: bool = Field(default=False, alias="isDefault")

    def to_record(self) -> TemplateRecord:
        return TemplateRecord(
            id=self.id,
            name=self.name,
            name_de=self.name_de,
            type=self.type,
            file_name=self.file_name,
            language=self.language,
            description=self.description,
            is_default=self.is_default,
        )


class RegistryTemplates(BaseModel):
    questions: list[RegistryEntry] = Field(default_factory=list)
    protocols: list[RegistryEntry] = Field(default_factory=list)


class RegistrySettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    load_strategy: str = Field(default=TemplateLoadStrategy.LOCAL_FIRST, alias="loadStrategy")
    cache_enabled: bool = Field(default=True, alias="cacheEnabled")
    offline_support: bool = Field(default=False, alias="offlineSupport")


class RegistryDocument(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    version: str = "1.0"
    last_updated: Optional[str] = Field(default=None, alias="lastUpdated")
    templates: RegistryTemplates = Field(default_factory=RegistryTemplates)
    settings: RegistrySettings = Field(default_factory=RegistrySettings)

    def records(self) -> list[TemplateRecord]:
        return [e.to_record() for e in (*self.templates.questions, *self.templates.protocols)]


class ResolvedTemplate(BaseModel):
    binary: bytes
    source: str
    record: Optional[TemplateRecord] = None
    is_fallback: bool = False


__all__ = [
    "MULTILINGUAL",
    "RegistryDocument",
    "RegistryEntry",
    "RegistrySettings",
    "RegistryTemplates",
    "ResolvedTemplate",
    "TemplateLoadStrategy",
    "TemplateRecord",
    "TemplateSource",
    "TemplateType",
]
