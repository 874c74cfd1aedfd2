"""Template metadata repository for the remote tier.

Encapsulates DB reads of the ``template`` and ``question_config`` tables so
the resolver and routes stay free of SQL. Errors are logged with context and
re-raised.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import text as sql_text

from liftcheck.db.base import get_engine
from liftcheck.models.question import QuestionDefinition
from liftcheck.models.template import MULTILINGUAL, TemplateRecord

logger = logging.getLogger(__name__)

_TEMPLATE_COLUMNS = "id, name, type, file_name, file_path, language, is_active"


def _row_to_record(row) -> TemplateRecord:  # type: ignore[no-untyped-def]
    return TemplateRecord(
        id=str(row[0]),
        name=str(row[1]),
        type=str(row[2]),
        file_name=str(row[3]),
        file_path=str(row[4]),
        language=str(row[5] or MULTILINGUAL),
        is_active=bool(row[6]),
    )


def get_template(template_id: str) -> Optional[TemplateRecord]:
    eng = get_engine()
    try:
        with eng.connect() as conn:
            row = conn.execute(
                sql_text(f"SELECT {_TEMPLATE_COLUMNS} FROM template WHERE id = :tid"),
                {"tid": str(template_id)},
            ).fetchone()
    except Exception:
        logger.error("get_template failed template_id=%s", template_id, exc_info=True)
        raise
    return _row_to_record(row) if row else None


def get_active_template(template_type: str, language: str) -> Optional[TemplateRecord]:
    """Return the active template for ``type + language``.

    Falls back to the ``multilingual`` record of the same type when no
    language-specific one is active.
    """
    eng = get_engine()
    languages = [language] if language == MULTILINGUAL else [language, MULTILINGUAL]
    try:
        with eng.connect() as conn:
            for lang in languages:
                row = conn.execute(
                    sql_text(
                        f"SELECT {_TEMPLATE_COLUMNS} FROM template "
                        "WHERE type = :t AND language = :lang AND is_active = :active "
                        "ORDER BY uploaded_at DESC LIMIT 1"
                    ),
                    {"t": str(template_type), "lang": lang, "active": True},
                ).fetchone()
                if row:
                    return _row_to_record(row)
    except Exception:
        logger.error(
            "get_active_template failed type=%s language=%s", template_type, language, exc_info=True
        )
        raise
    return None


def list_templates() -> list[TemplateRecord]:
    eng = get_engine()
    try:
        with eng.connect() as conn:
            rows = conn.execute(
                sql_text(f"SELECT {_TEMPLATE_COLUMNS} FROM template ORDER BY type, language, id")
            ).fetchall()
    except Exception:
        logger.error("list_templates failed", exc_info=True)
        raise
    return [_row_to_record(r) for r in rows]


def insert_template(record: TemplateRecord) -> None:
    eng = get_engine()
    try:
        with eng.begin() as conn:
            conn.execute(
                sql_text(
                    "INSERT INTO template (id, name, type, file_name, file_path, language, is_active) "
                    "VALUES (:id, :name, :type, :file_name, :file_path, :language, :is_active)"
                ),
                {
                    "id": record.id,
                    "name": record.name,
                    "type": record.type,
                    "file_name": record.file_name,
                    "file_path": record.file_path or record.file_name,
                    "language": record.language,
                    "is_active": record.is_active,
                },
            )
    except Exception:
        logger.error("insert_template failed template_id=%s", record.id, exc_info=True)
        raise


# question_config columns carried verbatim by QuestionDefinition fields
_QUESTION_CONFIG_FIELDS = (
    "title",
    "title_hu",
    "title_de",
    "title_en",
    "type",
    "required",
    "placeholder",
    "placeholder_hu",
    "placeholder_de",
    "placeholder_en",
    "group_name",
    "group_name_hu",
    "group_name_de",
    "group_name_en",
    "group_order",
    "cell_reference",
    "sheet_name",
    "multi_cell",
    "group_key",
    "conditional_group_key",
    "unit",
    "min_value",
    "max_value",
    "calculation_formula",
    "calculation_inputs",
    "options",
    "default_if_hidden",
)
# Stored comma-joined
_LIST_FIELDS = ("calculation_inputs", "options")


def _row_to_question(row) -> QuestionDefinition:  # type: ignore[no-untyped-def]
    values = {k: v for k, v in row._mapping.items() if v is not None}
    values["id"] = str(values.pop("question_id"))
    values["required"] = bool(values.get("required", False))
    values["multi_cell"] = bool(values.get("multi_cell", False))
    return QuestionDefinition(**values)


def list_question_configs(template_id: str) -> list[QuestionDefinition]:
    """Return stored question metadata for a template, in group order."""
    eng = get_engine()
    try:
        with eng.connect() as conn:
            rows = conn.execute(
                sql_text(
                    "SELECT question_id, title, title_hu, title_de, title_en, type, required, "
                    "placeholder, placeholder_hu, placeholder_de, placeholder_en, "
                    "group_name, group_name_hu, group_name_de, group_name_en, group_order, "
                    "cell_reference, sheet_name, multi_cell, group_key, conditional_group_key, unit, "
                    "min_value, max_value, calculation_formula, calculation_inputs, options, default_if_hidden "
                    "FROM question_config WHERE template_id = :tid ORDER BY group_order, question_id"
                ),
                {"tid": str(template_id)},
            ).fetchall()
    except Exception:
        logger.error("list_question_configs failed template_id=%s", template_id, exc_info=True)
        raise
    return [_row_to_question(r) for r in rows]


def upsert_question_config(template_id: str, question: QuestionDefinition) -> None:
    eng = get_engine()
    params = {name: getattr(question, name) for name in _QUESTION_CONFIG_FIELDS}
    for name in _LIST_FIELDS:
        params[name] = ",".join(params[name]) or None
    params.update(
        id=f"{template_id}:{question.id}",
        template_id=template_id,
        question_id=question.id,
        title=question.title or question.id,
    )
    try:
        with eng.begin() as conn:
            conn.execute(sql_text("DELETE FROM question_config WHERE id = :id"), {"id": params["id"]})
            conn.execute(
                sql_text(
                    "INSERT INTO question_config (id, template_id, question_id, title, title_hu, title_de, "
                    "title_en, type, required, placeholder, placeholder_hu, placeholder_de, placeholder_en, "
                    "group_name, group_name_hu, group_name_de, group_name_en, group_order, cell_reference, "
                    "sheet_name, multi_cell, group_key, conditional_group_key, unit, min_value, max_value, "
                    "calculation_formula, calculation_inputs, options, default_if_hidden) VALUES "
                    "(:id, :template_id, :question_id, :title, :title_hu, :title_de, :title_en, :type, "
                    ":required, :placeholder, :placeholder_hu, :placeholder_de, :placeholder_en, :group_name, "
                    ":group_name_hu, :group_name_de, :group_name_en, :group_order, :cell_reference, "
                    ":sheet_name, :multi_cell, :group_key, :conditional_group_key, :unit, :min_value, "
                    ":max_value, :calculation_formula, :calculation_inputs, :options, :default_if_hidden)"
                ),
                params,
            )
    except Exception:
        logger.error(
            "upsert_question_config failed template_id=%s question_id=%s", template_id, question.id, exc_info=True
        )
        raise


__all__ = [
    "get_active_template",
    "get_template",
    "insert_template",
    "list_question_configs",
    "list_templates",
    "upsert_question_config",
]
