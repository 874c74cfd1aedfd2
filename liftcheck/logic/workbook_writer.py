"""Workbook writing through the openpyxl object model.

``rewrite_cells`` is the second fidelity tier: the template is loaded fresh
and only ``cell.value`` is assigned, so cell styles survive, though features
openpyxl does not model (images, some conditional formats) may be lost.
``synthesize_workbook`` is the last tier: a plain protocol built from scratch
when no usable template exists.
"""

from __future__ import annotations

import logging
from io import BytesIO
from typing import Iterable, Mapping, Optional, Sequence

from openpyxl import Workbook, load_workbook
from openpyxl.cell.cell import MergedCell
from openpyxl.styles import Alignment, Font, PatternFill

from liftcheck.logic.answer_format import format_answer
from liftcheck.logic.cell_mappings import severity_label
from liftcheck.logic.errors import PartialWriteFailure
from liftcheck.models.generation import CellMapping, ProtocolError, ProtocolMetadata
from liftcheck.models.question import AnswerValue, QuestionDefinition

logger = logging.getLogger(__name__)

_LABELS: dict[str, dict[str, str]] = {
    "hu": {
        "title": "Lift átvételi protokoll",
        "date": "Átvétel dátuma",
        "language": "Nyelv",
        "address": "Cím",
        "lift_id": "Lift azonosító",
        "question": "Kérdés",
        "answer": "Válasz",
        "errors": "Hibalista",
        "number": "Sorszám",
        "description": "Leírás",
        "severity": "Súlyosság",
        "signature": "Aláírás",
        "signer": "Név",
    },
    "de": {
        "title": "Aufzugsabnahmeprotokoll",
        "date": "Abnahmedatum",
        "language": "Sprache",
        "address": "Adresse",
        "lift_id": "Anlagennummer",
        "question": "Frage",
        "answer": "Antwort",
        "errors": "Fehlerliste",
        "number": "Nr.",
        "description": "Beschreibung",
        "severity": "Schweregrad",
        "signature": "Unterschrift",
        "signer": "Name",
    },
    "en": {
        "title": "Elevator acceptance protocol",
        "date": "Reception date",
        "language": "Language",
        "address": "Address",
        "lift_id": "Lift id",
        "question": "Question",
        "answer": "Answer",
        "errors": "Error list",
        "number": "No.",
        "description": "Description",
        "severity": "Severity",
        "signature": "Signature",
        "signer": "Name",
    },
}

_HEADER_FILL = PatternFill(start_color="FFD9D9D9", end_color="FFD9D9D9", fill_type="solid")
_COLUMN_WIDTHS = {"A": 30, "B": 30, "C": 15, "D": 15}


def labels_for(language: str) -> dict[str, str]:
    return _LABELS.get(language, _LABELS["hu"])


def rewrite_cells(
    binary: bytes,
    mappings: Iterable[CellMapping],
) -> tuple[bytes, int, list[PartialWriteFailure]]:
    """Assign mapped values on a freshly loaded copy of the template.

    Raises when the template cannot be loaded; per-cell problems (unknown
    sheet, merged non-anchor cell) are returned as failures.
    """
    wb = load_workbook(BytesIO(binary))
    failures: list[PartialWriteFailure] = []
    written = 0
    for mapping in mappings:
        if mapping.value is None:
            continue
        if mapping.sheet_name and mapping.sheet_name not in wb.sheetnames:
            failures.append(
                PartialWriteFailure(mapping.cell_reference, f"sheet {mapping.sheet_name!r} not found", mapping.question_id)
            )
            continue
        ws = wb[mapping.sheet_name] if mapping.sheet_name else wb.worksheets[0]
        cell = ws[mapping.cell_reference]
        if isinstance(cell, MergedCell):
            failures.append(
                PartialWriteFailure(mapping.cell_reference, "cell is inside a merged range", mapping.question_id)
            )
            continue
        cell.value = mapping.value
        written += 1
    out = BytesIO()
    wb.save(out)
    logger.info("xlsx.rewrite.done cells=%d failures=%d", written, len(failures))
    return out.getvalue(), written, failures


def synthesize_workbook(
    questions: Sequence[QuestionDefinition],
    answers: Mapping[str, AnswerValue],
    language: str,
    errors: Sequence[ProtocolError] = (),
    metadata: Optional[ProtocolMetadata] = None,
) -> tuple[bytes, int]:
    """Build a bare protocol: title block, question/answer table, errors, signature."""
    labels = labels_for(language)
    metadata = metadata or ProtocolMetadata()
    wb = Workbook()
    ws = wb.active
    ws.title = "Protocol"
    bold = Font(bold=True)

    ws.append([labels["title"]])
    ws["A1"].font = Font(bold=True, size=14)
    ws.append([labels["date"], metadata.reception_date or ""])
    ws.append([labels["language"], language])
    if metadata.building_address:
        ws.append([labels["address"], metadata.building_address])
    if metadata.lift_id:
        ws.append([labels["lift_id"], metadata.lift_id])
    ws.append([])

    ws.append([labels["question"], labels["answer"]])
    for cell in ws[ws.max_row]:
        cell.font = bold
        cell.fill = _HEADER_FILL
    written = 0
    for q in questions:
        value = format_answer(answers.get(q.id), q.type, language)
        if value is None:
            continue
        unit = f" {q.unit}" if q.unit and not isinstance(value, str) else ""
        ws.append([q.title_for(language), f"{value}{unit}" if unit else value])
        ws.cell(row=ws.max_row, column=1).alignment = Alignment(wrap_text=True)
        written += 1

    if errors:
        ws.append([])
        ws.append([labels["errors"]])
        ws.cell(row=ws.max_row, column=1).font = bold
        ws.append([labels["number"], labels["description"], labels["severity"]])
        for cell in ws[ws.max_row]:
            cell.font = bold
            cell.fill = _HEADER_FILL
        for index, error in enumerate(errors, start=1):
            ws.append([index, error.description or error.title, severity_label(error.severity, language)])

    ws.append([])
    ws.append([labels["signature"]])
    ws.cell(row=ws.max_row, column=1).font = bold
    ws.append([labels["signer"], metadata.signer_name or metadata.inspector_name or ""])

    for column, width in _COLUMN_WIDTHS.items():
        ws.column_dimensions[column].width = width

    out = BytesIO()
    wb.save(out)
    logger.info("xlsx.synthesize.done answers=%d errors=%d", written, len(errors))
    return out.getvalue(), written


__all__ = ["labels_for", "rewrite_cells", "synthesize_workbook"]
