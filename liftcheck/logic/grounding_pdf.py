"""Grounding-check PDF form filling.

The form has a fixed field layout (see ``liftcheck.field_maps``): a header
block, an OK / not-OK field pair per checklist item and a small table of
remark rows. Missing fields are reported as warnings, never as errors; only
an unreadable template aborts the fill.
"""

from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass, field
from typing import Mapping, Optional, Sequence

import fitz

from liftcheck.field_maps import (
    ANSWER_FIELDS,
    DEFAULT_REMARK_TEXT,
    METADATA_FIELDS,
    NOT_APPLICABLE_MARK,
    OK_MARK,
    REMARK_ROWS,
    SIGNATURE_FIELD,
    AnswerFields,
    RemarkRow,
)
from liftcheck.logic.errors import ConfigurationError
from liftcheck.models.generation import GroundingAnswer, ProtocolMetadata, RemarkEntry

logger = logging.getLogger(__name__)

PNG_DATA_URL_PREFIX = "data:image/png;base64,"


@dataclass
class FormFillResult:
    binary: bytes
    remarks: list[RemarkEntry] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    dropped_remarks: int = 0


def _open(template_binary: bytes) -> fitz.Document:
    if not template_binary:
        raise ConfigurationError("grounding template is empty")
    try:
        doc = fitz.open(stream=template_binary, filetype="pdf")
    except (RuntimeError, ValueError) as e:
        raise ConfigurationError(f"grounding template is not a readable PDF: {e}") from e
    if not doc.is_form_pdf:
        doc.close()
        raise ConfigurationError("grounding template has no form fields")
    return doc


def remark_text(answer_fields: AnswerFields, item_texts: Mapping[str, str], language: str) -> str:
    text = item_texts.get(answer_fields.question_id)
    if text and text.strip():
        return text.strip()
    template = DEFAULT_REMARK_TEXT.get(language, DEFAULT_REMARK_TEXT["hu"])
    return template.format(location=answer_fields.location_code)


def answer_field_values(
    answers: Mapping[str, str],
    item_texts: Mapping[str, str],
    language: str,
    answer_fields: Sequence[AnswerFields] = ANSWER_FIELDS,
) -> tuple[dict[str, str], list[RemarkEntry], list[str]]:
    """Map tri-state answers onto field values and collect remarks in item order."""
    values: dict[str, str] = {}
    remarks: list[RemarkEntry] = []
    known = {a.question_id for a in answer_fields}
    warnings = [f"{qid}: no field on the form" for qid in sorted(answers) if qid not in known]
    for item in answer_fields:
        answer = answers.get(item.question_id)
        if answer == GroundingAnswer.OK:
            values[item.ok_field] = OK_MARK
        elif answer == GroundingAnswer.NOT_OK:
            values[item.not_ok_field] = OK_MARK
            remarks.append(RemarkEntry(location_code=item.location_code, text=remark_text(item, item_texts, language)))
        elif answer == GroundingAnswer.NOT_APPLICABLE:
            values[item.ok_field] = NOT_APPLICABLE_MARK
    return values, remarks, warnings


def remark_field_values(
    remarks: Sequence[RemarkEntry],
    rows: Sequence[RemarkRow] = REMARK_ROWS,
) -> tuple[dict[str, str], int]:
    """Place remarks into the fixed rows in order; returns values and the overflow count."""
    values: dict[str, str] = {}
    for row, remark in zip(rows, remarks):
        values[row.location_field] = remark.location_code
        values[row.text_field] = remark.text
    return values, max(0, len(remarks) - len(rows))


def _decode_signature(data_url: str) -> Optional[bytes]:
    if not data_url.startswith(PNG_DATA_URL_PREFIX):
        return None
    try:
        return base64.b64decode(data_url[len(PNG_DATA_URL_PREFIX):], validate=True)
    except (binascii.Error, ValueError):
        return None


def fill(
    template_binary: bytes,
    metadata: ProtocolMetadata,
    answers: Mapping[str, str],
    item_texts: Optional[Mapping[str, str]] = None,
    language: str = "de",
    flatten: bool = True,
) -> FormFillResult:
    """Fill the grounding-check form and return the new PDF.

    Raises ``ConfigurationError`` when the template is empty, unreadable or
    has no form fields.
    """
    doc = _open(template_binary)
    try:
        values: dict[str, str] = {}
        warnings: list[str] = []
        for attr, field_name in METADATA_FIELDS.items():
            value = getattr(metadata, attr)
            if value is not None and str(value) != "":
                values[field_name] = str(value)

        answer_values, remarks, answer_warnings = answer_field_values(answers, item_texts or {}, language)
        values.update(answer_values)
        warnings.extend(answer_warnings)
        remark_values, dropped = remark_field_values(remarks)
        values.update(remark_values)
        if dropped:
            logger.warning("grounding.remarks.dropped count=%d capacity=%d", dropped, len(REMARK_ROWS))

        filled: set[str] = set()
        signature_rects: list[tuple[int, fitz.Rect]] = []
        for page in doc:
            for widget in page.widgets():
                name = widget.field_name
                if name == SIGNATURE_FIELD:
                    signature_rects.append((page.number, fitz.Rect(widget.rect)))
                if name not in values:
                    continue
                widget.field_value = values[name]
                widget.update()
                filled.add(name)

        for name in values:
            if name not in filled:
                warnings.append(f"{name}: field not found on the form")

        if metadata.signature:
            image = _decode_signature(metadata.signature)
            if image is None:
                warnings.append(f"{SIGNATURE_FIELD}: signature is not a PNG data URL")
            elif not signature_rects:
                warnings.append(f"{SIGNATURE_FIELD}: field not found on the form")
            else:
                page_number, rect = signature_rects[0]
                try:
                    doc[page_number].insert_image(rect, stream=image, keep_proportion=True)
                except (RuntimeError, ValueError) as e:
                    logger.warning("grounding.signature.failed error=%s", e)
                    warnings.append(f"{SIGNATURE_FIELD}: {e}")

        for warning in warnings:
            logger.warning("grounding.fill.warning %s", warning)

        if flatten:
            doc.bake()
        binary = doc.tobytes(garbage=3, deflate=True)
    finally:
        doc.close()

    logger.info(
        "grounding.fill.done fields=%d remarks=%d dropped=%d warnings=%d",
        len(filled),
        len(remarks),
        dropped,
        len(warnings),
    )
    return FormFillResult(binary=binary, remarks=remarks, warnings=warnings, dropped_remarks=dropped)


__all__ = [
    "FormFillResult",
    "answer_field_values",
    "fill",
    "remark_field_values",
    "remark_text",
]
