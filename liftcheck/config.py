"""Configuration utilities for the form engine.

This module loads application configuration with the following rules:
- Primary source: `liftcheck_config.json` at the project root.
- Overrides: environment variables, then optional text files under `config/`.
- Validation: Pydantic models enforce required fields and value constraints.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator

from liftcheck.models.template import TemplateLoadStrategy


CONFIG_DIR = Path("config")
ROOT_CONFIG = Path("liftcheck_config.json")
logger = logging.getLogger(__name__)


def _read_config_file(rel_path: str) -> Optional[str]:
    path = CONFIG_DIR / rel_path
    try:
        if path.exists():
            return path.read_text(encoding="utf-8").strip()
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Failed to read override %s: %s", path, e)
        return None
    return None


def _env(key: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(key, default)


class DatabaseConfig(BaseModel):
    dsn: str

    @field_validator("dsn")
    @classmethod
    def dsn_must_be_non_empty(cls, v: str) -> str:
        if not isinstance(v, str) or not v.strip():
            raise ValueError("database.dsn must be a non-empty string")
        return v


class TemplatesConfig(BaseModel):
    bundled_dir: Path = Field(default=Path("templates"))
    cache_dir: Path = Field(default=Path("temp"))
    registry_path: Path = Field(default=Path("templates/templates.json"))
    load_strategy: str = Field(default=TemplateLoadStrategy.LOCAL_FIRST)
    cache_enabled: bool = Field(default=True)

    @field_validator("load_strategy")
    @classmethod
    def strategy_must_be_known(cls, v: str) -> str:
        if v not in TemplateLoadStrategy.ALL:
            raise ValueError(f"templates.load_strategy must be one of {sorted(TemplateLoadStrategy.ALL)}")
        return v


class StorageConfig(BaseModel):
    base_url: Optional[str] = None
    bucket: str = Field(default="templates")
    api_key: Optional[str] = None
    timeout_seconds: float = Field(default=30.0, gt=0)


class DocumentsConfig(BaseModel):
    default_language: str = Field(default="hu")
    signature_cell: str = Field(default="F9")
    error_list_start_row: int = Field(default=737, gt=0)
    flatten_pdf: bool = Field(default=True)
    office_binary: str = Field(default="soffice")
    render_timeout_seconds: float = Field(default=120.0, gt=0)

    @field_validator("default_language")
    @classmethod
    def language_must_be_supported(cls, v: str) -> str:
        allowed = {"hu", "de", "en"}
        if v not in allowed:
            raise ValueError(f"documents.default_language must be one of {sorted(allowed)}")
        return v


class AppConfig(BaseModel):
    database: DatabaseConfig
    templates: TemplatesConfig
    storage: StorageConfig
    documents: DocumentsConfig


def _read_json_file(path: Path) -> dict:
    try:
        if path.exists():
            return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:  # pragma: no cover
        logger.error("Failed to read JSON config %s: %s", path, e)
    return {}


def _truthy(text: object) -> bool:
    return str(text).strip().lower() in {"1", "true", "yes", "on"}


def load_config() -> AppConfig:
    """Load configuration with validation.

    Precedence (highest first):
    1) Environment variables
    2) Text files in `config/` (optional)
    3) liftcheck_config.json at project root
    4) Safe defaults for development
    """

    base = _read_json_file(ROOT_CONFIG)

    def _base(path: str, default: Optional[str] = None) -> Optional[str]:
        cur: object = base
        for key in path.split("."):
            if not isinstance(cur, dict) or key not in cur:
                return default
            cur = cur[key]
        return str(cur) if cur is not None else default

    def _pick(env_key: str, file_key: str, base_key: str, default: Optional[str] = None) -> Optional[str]:
        return _env(env_key) or _read_config_file(file_key) or _base(base_key, default)

    dsn = (
        _env("TEST_DATABASE_URL")
        or _pick("DATABASE_URL", "database.url", "database.dsn", "sqlite+pysqlite:///:memory:")
    )

    try:
        templates = TemplatesConfig(
            bundled_dir=Path(_pick("TEMPLATES_DIR", "templates.dir", "templates.bundled_dir", "templates")),
            cache_dir=Path(_pick("TEMPLATE_CACHE_DIR", "templates.cache_dir", "templates.cache_dir", "temp")),
            registry_path=Path(
                _pick("TEMPLATE_REGISTRY", "templates.registry", "templates.registry_path", "templates/templates.json")
            ),
            load_strategy=(
                _pick("TEMPLATE_LOAD_STRATEGY", "templates.load_strategy", "templates.load_strategy", "local_first")
                or ""
            ).strip(),
            cache_enabled=_truthy(
                _pick("TEMPLATE_CACHE_ENABLED", "templates.cache_enabled", "templates.cache_enabled", "true")
            ),
        )
        storage = StorageConfig(
            base_url=_pick("STORAGE_URL", "storage.url", "storage.base_url"),
            bucket=_pick("STORAGE_BUCKET", "storage.bucket", "storage.bucket", "templates"),
            api_key=_pick("STORAGE_API_KEY", "storage.api_key", "storage.api_key"),
            timeout_seconds=float(_pick("STORAGE_TIMEOUT", "storage.timeout", "storage.timeout_seconds", "30")),
        )
        documents = DocumentsConfig(
            default_language=_pick("DEFAULT_LANGUAGE", "documents.language", "documents.default_language", "hu"),
            signature_cell=_pick("SIGNATURE_CELL", "documents.signature_cell", "documents.signature_cell", "F9"),
            error_list_start_row=int(
                _pick("ERROR_LIST_START_ROW", "documents.error_row", "documents.error_list_start_row", "737")
            ),
            flatten_pdf=_truthy(_pick("FLATTEN_PDF", "documents.flatten_pdf", "documents.flatten_pdf", "true")),
            office_binary=_pick("OFFICE_BINARY", "documents.office_binary", "documents.office_binary", "soffice"),
            render_timeout_seconds=float(
                _pick("RENDER_TIMEOUT", "documents.render_timeout", "documents.render_timeout_seconds", "120")
            ),
        )
        return AppConfig(
            database=DatabaseConfig(dsn=dsn),
            templates=templates,
            storage=storage,
            documents=documents,
        )
    except PydanticValidationError as e:
        logger.error("Invalid application configuration: %s", e)
        raise


__all__ = [
    "AppConfig",
    "DatabaseConfig",
    "TemplatesConfig",
    "StorageConfig",
    "DocumentsConfig",
    "load_config",
]
