"""Functional tests for multi-tier template resolution.

Object storage is replaced by an ``httpx.MockTransport``; template metadata
lives in the functional SQLite database.
"""

from __future__ import annotations

import json

import anyio
import httpx
import pytest

from liftcheck.config import StorageConfig
from liftcheck.logic import repository_templates
from liftcheck.models.question import QuestionDefinition, QuestionType
from liftcheck.models.template import TemplateRecord, TemplateSource
from liftcheck.services import build_services

_STORED_PATH = "/storage/v1/object/templates/templates/Kérdéssor.xlsx"


@pytest.fixture
def storage_log():
    return []


@pytest.fixture
def storage_config(app_config):
    return app_config.model_copy(update={"storage": StorageConfig(base_url="https://storage.test", api_key="k")})


@pytest.fixture
def services(storage_config, storage_log):
    def handler(request: httpx.Request) -> httpx.Response:
        storage_log.append(request.url.path)
        if request.url.path == _STORED_PATH:
            return httpx.Response(200, content=b"remote-binary")
        return httpx.Response(404, json={"error": "not_found"})

    return build_services(storage_config, transport=httpx.MockTransport(handler))


@pytest.fixture
def remote_record():
    record = TemplateRecord(
        id="remote_q1",
        name="Remote Kérdéssor",
        type="questions",
        file_name="kerdessor.xlsx",
        file_path="templates/KÃ©rdÃ©ssor.xlsx",
        is_active=True,
    )
    repository_templates.insert_template(record)
    return record


def test_remote_download_repairs_filename__verifies_third_candidate_and_cache(services, remote_record, storage_log):
    """Verifies a double-encoded storage key is repaired and the binary is cached."""
    # Act
    resolved = anyio.run(services.resolver.resolve, "remote_q1", "questions")
    # Assert: the remote tier succeeded on the repaired name
    assert resolved.source == TemplateSource.REMOTE
    assert resolved.binary == b"remote-binary"
    assert resolved.record.id == "remote_q1"
    assert resolved.is_fallback is False
    # Assert: original and URL-encoded attempts missed first
    assert len(storage_log) == 3
    assert storage_log[-1] == _STORED_PATH
    # Assert: cache file written under the composite name
    cached = services.config.templates.cache_dir / "questions-multilingual-remote_q1-kerdessor.xlsx"
    assert cached.read_bytes() == b"remote-binary"


def test_second_resolution_hits_cache__verifies_no_second_download(services, remote_record, storage_log):
    """Verifies a cached remote template is served from the cache tier."""
    anyio.run(services.resolver.resolve, "remote_q1", "questions")
    downloads = len(storage_log)
    # Act
    resolved = anyio.run(services.resolver.resolve, "remote_q1", "questions")
    # Assert
    assert resolved.source == TemplateSource.CACHE
    assert resolved.binary == b"remote-binary"
    assert len(storage_log) == downloads


def test_active_template_by_type_and_language__verifies_lookup_without_id(services, remote_record):
    """Verifies the remote tier finds the active multilingual record for a type."""
    # Act
    resolved = anyio.run(services.resolver.resolve, None, "questions", "de", "remote_only")
    # Assert: no German record exists, the multilingual one is used
    assert resolved.source == TemplateSource.REMOTE
    assert resolved.record.id == "remote_q1"


def test_bundled_tier_wins_local_first__verifies_tier_order(services):
    """Verifies local_first reads the bundled file before the cache."""
    templates = services.config.templates
    (templates.bundled_dir / "expressz_protokoll.xlsx").write_bytes(b"bundled")
    templates.cache_dir.mkdir(parents=True)
    (templates.cache_dir / "protocol-multilingual-expressz_protokoll-expressz_protokoll.xlsx").write_bytes(b"cached")
    # Act
    local = anyio.run(services.resolver.resolve, "expressz_protokoll", "protocol")
    cache_first = anyio.run(services.resolver.resolve, "expressz_protokoll", "protocol", "multilingual", "cache_first")
    # Assert
    assert (local.source, local.binary) == (TemplateSource.BUNDLED, b"bundled")
    assert (cache_first.source, cache_first.binary) == (TemplateSource.CACHE, b"cached")


def test_every_tier_failing__verifies_static_fallback(services, storage_log):
    """Verifies resolution is total and marks the result as a fallback."""
    templates = services.config.templates
    (templates.bundled_dir / "Erdungskontrolle.pdf").write_bytes(b"%PDF-form")
    # Act
    resolved = anyio.run(services.resolver.resolve, "unknown", "form_pdf")
    # Assert: first bundled template of the requested type
    assert resolved.is_fallback is True
    assert resolved.record.id == "alap_erdungskontrolle"
    assert resolved.binary == b"%PDF-form"
    # Assert: no record, so no download was attempted
    assert storage_log == []


def test_fallback_file_missing__verifies_empty_binary(services):
    """Verifies a missing fallback file yields an empty binary instead of raising."""
    # Act
    resolved = anyio.run(services.resolver.resolve, "unknown", "protocol")
    # Assert
    assert resolved.is_fallback is True
    assert resolved.record.id == "expressz_protokoll"
    assert resolved.binary == b""


def test_unconfigured_storage__verifies_remote_tier_fails_over(app_config, remote_record):
    """Verifies a record without reachable storage falls back to bundled templates."""
    services = build_services(app_config)
    # Act
    resolved = anyio.run(services.resolver.resolve, "remote_q1", "questions")
    # Assert
    assert resolved.is_fallback is True
    assert resolved.record.id == "bovitett_kerdesek"


def test_unknown_strategy__verifies_value_error(services):
    """Verifies an unsupported load strategy is rejected."""
    with pytest.raises(ValueError):
        anyio.run(services.resolver.resolve, "expressz_protokoll", "protocol", "multilingual", "newest_first")


def test_registry_document__verifies_entries_and_settings(services, remote_record, storage_log):
    """Verifies registry entries come first and settings override config defaults."""
    templates = services.config.templates
    templates.registry_path.write_text(
        json.dumps(
            {
                "version": "2.0",
                "templates": {
                    "questions": [],
                    "protocols": [{"id": "custom", "name": "Custom", "fileName": "custom.xlsx", "type": "protocol"}],
                },
                "settings": {"loadStrategy": "remote_only", "cacheEnabled": False},
            }
        ),
        encoding="utf-8",
    )
    # Act
    records = services.resolver.bundled_records()
    resolved = anyio.run(services.resolver.resolve, "remote_q1", "questions")
    # Assert: registry entry first, compiled-in entries after it
    assert records[0].id == "custom"
    assert "alap_egysegu" in [r.id for r in records]
    # Assert: remote_only skipped bundled and cache, cache writing disabled
    assert resolved.source == TemplateSource.REMOTE
    assert not templates.cache_dir.exists()


def test_clear_cache__verifies_directory_removed(services, remote_record):
    """Verifies clearing removes the cache directory and reports whether it existed."""
    anyio.run(services.resolver.resolve, "remote_q1", "questions")
    # Act
    first = services.resolver.clear_cache()
    second = services.resolver.clear_cache()
    # Assert
    assert first is True
    assert second is False
    assert not services.config.templates.cache_dir.exists()


def test_available_bundled_templates__verifies_only_existing_files(services):
    """Verifies the catalog lists bundled templates whose files exist."""
    (services.config.templates.bundled_dir / "minimal_kerdesek.xlsx").write_bytes(b"x")
    # Act
    available = services.resolver.available_bundled_templates()
    # Assert
    assert [r.id for r in available] == ["minimal_kerdesek"]


def test_stored_question_config__verifies_every_field_kept(remote_record):
    """Verifies stored question metadata reads back with localized and grouping fields intact."""
    question = QuestionDefinition(
        id="Q7",
        type=QuestionType.TRI_STATE,
        title="Ajtók",
        title_hu="Ajtók rendben?",
        title_de="Türen in Ordnung?",
        title_en="Doors fine?",
        placeholder="Megjegyzés",
        placeholder_de="Bemerkung",
        group_name="Akna",
        group_name_de="Schacht",
        group_order=3,
        group_key="modernization",
        cell_reference="C10",
        multi_cell=True,
        options=["igen", "nem"],
        default_if_hidden="-",
    )
    other = QuestionDefinition(id="Q1", type=QuestionType.TEXT, title="Első", group_order=1)
    # Act
    repository_templates.upsert_question_config(remote_record.id, question)
    repository_templates.upsert_question_config(remote_record.id, other)
    stored = repository_templates.list_question_configs(remote_record.id)
    # Assert: group order first, then every field round-trips
    assert [q.id for q in stored] == ["Q1", "Q7"]
    assert stored[1] == question
