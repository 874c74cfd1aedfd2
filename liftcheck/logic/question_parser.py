"""Questionnaire-source workbook parsing.

Reads the first worksheet (or a named one) of a questionnaire workbook with
openpyxl, resolves column roles from the header row and turns every data row
into a ``QuestionDefinition``. Bad rows are skipped with a warning; only a
missing required column or an unreadable workbook fails the whole parse.
"""

from __future__ import annotations

import hashlib
import logging
import re
import unicodedata
import zipfile
from io import BytesIO
from typing import Any, Optional, Sequence

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException
from pydantic import ValidationError as PydanticValidationError

from liftcheck.logic.errors import ConfigurationError
from liftcheck.logic.header_roles import normalize_header, resolve_header_roles
from liftcheck.models.question import QuestionDefinition, QuestionType

logger = logging.getLogger(__name__)

_TYPE_SYNONYMS: dict[str, Sequence[str]] = {
    QuestionType.TRI_STATE: ("yes_no_na", "tri_state", "igen_nem_na", "ja_nein_na"),
    QuestionType.BOOLEAN: ("true_false", "yes_no", "boolean", "bool", "checkbox", "radio", "binary", "igen_nem"),
    QuestionType.MEASUREMENT: ("measurement", "mérés", "numeric_with_unit", "messung"),
    QuestionType.CALCULATED: ("calculated", "computed", "számított", "berechnet"),
    QuestionType.NUMBER: ("number", "numeric", "integer", "float", "decimal", "szám"),
    QuestionType.TEXT: (
        "text", "string", "str", "szöveg", "textarea", "memo", "multiline", "longtext",
        "select", "dropdown", "list", "date", "dátum", "datum", "time", "phone", "email",
    ),
}

TYPE_SYNONYMS: dict[str, str] = {
    normalize_header(token): qtype for qtype, tokens in _TYPE_SYNONYMS.items() for token in tokens
}

_BOOLEAN_TRUE = frozenset({"true", "yes", "igen", "ja", "1", "x"})


def parse_question_type(raw: object) -> Optional[str]:
    """Map a raw type cell onto the closed type set.

    An empty cell means ``text``; an unrecognized token returns None.
    """
    if raw is None or not str(raw).strip():
        return QuestionType.TEXT
    return TYPE_SYNONYMS.get(normalize_header(raw))


def parse_boolean(value: object) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, (int, float)):
        return value != 0
    return str(value).strip().lower() in _BOOLEAN_TRUE


def slugify(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text.replace("ß", "ss"))
    ascii_text = "".join(ch for ch in decomposed if not unicodedata.combining(ch)).lower()
    return re.sub(r"[^a-z0-9]+", "_", ascii_text).strip("_")


def _as_float(value: object, qid: str, field: str) -> Optional[float]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if isinstance(value, str):
        value = value.replace(",", ".")
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        logger.warning("questions.parse.bad_number question_id=%s field=%s value=%r", qid, field, value)
        return None


def _as_int(value: object) -> int:
    try:
        return int(float(value))  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0


def parse_question_rows(rows: Sequence[Sequence[Any]]) -> list[QuestionDefinition]:
    """Parse a header row followed by data rows into question definitions."""
    if not rows:
        raise ConfigurationError("questionnaire sheet is empty")
    roles = resolve_header_roles(rows[0])

    def cell(row: Sequence[Any], role: str) -> Optional[Any]:
        idx = roles.get(role)
        if idx is None or idx >= len(row):
            return None
        value = row[idx]
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    def text(row: Sequence[Any], role: str) -> Optional[str]:
        value = cell(row, role)
        return None if value is None else str(value)

    questions: list[QuestionDefinition] = []
    for line_no, row in enumerate(rows[1:], start=2):
        if row is None:
            continue
        qid = text(row, "id")
        if not qid:
            continue
        qtype = parse_question_type(cell(row, "type"))
        if qtype is None:
            logger.warning("questions.parse.unknown_type row=%d question_id=%s type=%r", line_no, qid, cell(row, "type"))
            continue

        group_names = [text(row, r) for r in ("group_name", "group_name_hu", "group_name_de", "group_name_en")]
        group_key = text(row, "group_key")
        if not group_key:
            first_name = next((g for g in group_names if g), None)
            group_key = slugify(first_name) if first_name else None

        try:
            questions.append(
                QuestionDefinition(
                    id=qid,
                    type=qtype,
                    title=text(row, "title") or "",
                    title_hu=text(row, "title_hu"),
                    title_de=text(row, "title_de"),
                    title_en=text(row, "title_en"),
                    required=parse_boolean(cell(row, "required")),
                    placeholder=text(row, "placeholder"),
                    placeholder_hu=text(row, "placeholder_hu"),
                    placeholder_de=text(row, "placeholder_de"),
                    placeholder_en=text(row, "placeholder_en"),
                    group_name=group_names[0],
                    group_name_hu=group_names[1],
                    group_name_de=group_names[2],
                    group_name_en=group_names[3],
                    group_order=_as_int(cell(row, "group_order")),
                    group_key=group_key,
                    conditional_group_key=text(row, "conditional_group_key"),
                    cell_reference=text(row, "cell_reference"),
                    sheet_name=text(row, "sheet_name"),
                    multi_cell=parse_boolean(cell(row, "multi_cell")),
                    unit=text(row, "unit"),
                    min_value=_as_float(cell(row, "min_value"), qid, "min_value"),
                    max_value=_as_float(cell(row, "max_value"), qid, "max_value"),
                    calculation_formula=text(row, "calculation_formula"),
                    calculation_inputs=text(row, "calculation_inputs") or [],
                    options=text(row, "options") or [],
                    default_if_hidden=text(row, "default_if_hidden"),
                )
            )
        except PydanticValidationError as e:
            logger.warning("questions.parse.invalid_row row=%d question_id=%s error=%s", line_no, qid, e)
            continue
    logger.info("questions.parse.done count=%d roles=%s", len(questions), sorted(roles))
    return questions


def parse_questions_workbook(binary: bytes, sheet_name: Optional[str] = None) -> list[QuestionDefinition]:
    try:
        wb = load_workbook(BytesIO(binary), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as e:
        raise ConfigurationError(f"questionnaire workbook is unreadable: {e}") from e
    try:
        if sheet_name and sheet_name in wb.sheetnames:
            ws = wb[sheet_name]
        else:
            ws = wb.worksheets[0]
        rows = [tuple(r) for r in ws.iter_rows(values_only=True)]
    finally:
        wb.close()
    return parse_question_rows(rows)


class QuestionCache:
    """Parsed question sets keyed by a digest of the source workbook."""

    def __init__(self) -> None:
        self._entries: dict[str, list[QuestionDefinition]] = {}

    @staticmethod
    def key_for(binary: bytes) -> str:
        return hashlib.sha256(binary).hexdigest()

    def get_or_parse(self, binary: bytes) -> list[QuestionDefinition]:
        key = self.key_for(binary)
        cached = self._entries.get(key)
        if cached is not None:
            return cached
        parsed = parse_questions_workbook(binary)
        self._entries[key] = parsed
        return parsed

    def clear(self) -> int:
        count = len(self._entries)
        self._entries = {}
        return count


__all__ = [
    "QuestionCache",
    "TYPE_SYNONYMS",
    "parse_boolean",
    "parse_question_rows",
    "parse_question_type",
    "parse_questions_workbook",
    "slugify",
]
