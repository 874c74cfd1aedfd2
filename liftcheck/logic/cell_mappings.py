"""Translate answers, protocol errors and the signer into cell mappings.

A question's ``cell_reference`` is either a single address (``B5``,
optionally sheet-qualified as ``Protokoll!B5``) or a tri-state multi-cell
reference ``"yesCells,noCells,naCells"`` where each group lists one or more
``;``-separated addresses that receive an ``X``.
"""

from __future__ import annotations

import logging
import re
from typing import Mapping, Optional, Sequence

from liftcheck.logic.answer_format import AFFIRMATIVE, NEGATIVE, NOT_APPLICABLE, choice_state, format_answer
from liftcheck.logic.errors import PartialWriteFailure
from liftcheck.models.generation import CellMapping, ProtocolError, Severity
from liftcheck.models.question import AnswerValue, QuestionDefinition

logger = logging.getLogger(__name__)

MARK = "X"

_CELL = re.compile(r"^\$?([A-Za-z]{1,3})\$?([1-9][0-9]*)$")
_STATE_INDEX = {AFFIRMATIVE: 0, NEGATIVE: 1, NOT_APPLICABLE: 2}

SEVERITY_LABELS: dict[str, dict[str, str]] = {
    "hu": {Severity.CRITICAL: "Kritikus", Severity.MEDIUM: "Közepes", Severity.LOW: "Alacsony"},
    "de": {Severity.CRITICAL: "Kritisch", Severity.MEDIUM: "Mittel", Severity.LOW: "Niedrig"},
    "en": {Severity.CRITICAL: "Critical", Severity.MEDIUM: "Medium", Severity.LOW: "Low"},
}

ERROR_NUMBER_COLUMN = "A"
ERROR_DESCRIPTION_COLUMN = "D"
ERROR_SEVERITY_COLUMN = "K"


def split_reference(reference: str) -> tuple[Optional[str], str]:
    """Split ``Sheet!B5`` into (sheet, cell); unqualified refs have no sheet.

    Raises ValueError for anything that is not a single A1-style address.
    """
    sheet: Optional[str] = None
    ref = reference.strip()
    if "!" in ref:
        sheet, ref = ref.rsplit("!", 1)
        sheet = sheet.strip().strip("'") or None
    match = _CELL.match(ref.strip())
    if not match:
        raise ValueError(f"invalid cell reference {reference!r}")
    return sheet, f"{match.group(1).upper()}{match.group(2)}"


def severity_label(severity: str, language: str) -> str:
    return SEVERITY_LABELS.get(language, SEVERITY_LABELS["hu"]).get(severity, severity)


def _multi_cell_mappings(
    question: QuestionDefinition,
    value: AnswerValue,
    failures: list[PartialWriteFailure],
) -> list[CellMapping]:
    groups = [g.strip() for g in (question.cell_reference or "").split(",")]
    state = choice_state(value)
    if state is None:
        failures.append(PartialWriteFailure(question.cell_reference or "", f"answer {value!r} has no cell group", question.id))
        return []
    index = _STATE_INDEX[state]
    if index >= len(groups) or not groups[index]:
        return []
    mappings: list[CellMapping] = []
    for ref in groups[index].split(";"):
        if not ref.strip():
            continue
        try:
            sheet, cell = split_reference(ref)
        except ValueError as e:
            failures.append(PartialWriteFailure(ref, str(e), question.id))
            continue
        mappings.append(CellMapping(question_id=question.id, cell_reference=cell, value=MARK, sheet_name=sheet or question.sheet_name))
    return mappings


def question_mappings(
    questions: Sequence[QuestionDefinition],
    answers: Mapping[str, AnswerValue],
    language: str,
) -> tuple[list[CellMapping], list[PartialWriteFailure]]:
    mappings: list[CellMapping] = []
    failures: list[PartialWriteFailure] = []
    for q in questions:
        if not q.cell_reference:
            continue
        raw = answers.get(q.id)
        if raw is None or (isinstance(raw, str) and not raw.strip()):
            continue
        if "," in q.cell_reference:
            mappings.extend(_multi_cell_mappings(q, raw, failures))
            continue
        value = format_answer(raw, q.type, language)
        if value is None:
            continue
        try:
            sheet, cell = split_reference(q.cell_reference)
        except ValueError as e:
            failures.append(PartialWriteFailure(q.cell_reference, str(e), q.id))
            continue
        mappings.append(CellMapping(question_id=q.id, cell_reference=cell, value=value, sheet_name=sheet or q.sheet_name))
    return mappings, failures


def error_list_mappings(errors: Sequence[ProtocolError], language: str, start_row: int) -> list[CellMapping]:
    mappings: list[CellMapping] = []
    for index, error in enumerate(errors):
        row = start_row + index
        key = f"error:{error.id}"
        mappings.extend(
            [
                CellMapping(question_id=key, cell_reference=f"{ERROR_NUMBER_COLUMN}{row}", value=index + 1),
                CellMapping(
                    question_id=key,
                    cell_reference=f"{ERROR_DESCRIPTION_COLUMN}{row}",
                    value=error.description or error.title,
                ),
                CellMapping(
                    question_id=key,
                    cell_reference=f"{ERROR_SEVERITY_COLUMN}{row}",
                    value=severity_label(error.severity, language),
                ),
            ]
        )
    return mappings


def build_cell_mappings(
    questions: Sequence[QuestionDefinition],
    answers: Mapping[str, AnswerValue],
    language: str,
    errors: Sequence[ProtocolError] = (),
    signer_name: Optional[str] = None,
    signature_cell: str = "F9",
    error_start_row: int = 737,
) -> tuple[list[CellMapping], list[PartialWriteFailure]]:
    """Return every cell write for one protocol, plus reference failures.

    The signer's name goes to ``signature_cell`` unless a question already
    targets that cell.
    """
    mappings, failures = question_mappings(questions, answers, language)
    mappings.extend(error_list_mappings(errors, language, error_start_row))
    if signer_name and signer_name.strip():
        _, signature_ref = split_reference(signature_cell)
        if all(m.cell_reference != signature_ref or m.sheet_name for m in mappings):
            mappings.append(CellMapping(question_id="signature", cell_reference=signature_ref, value=signer_name.strip()))
    logger.info("protocol.mappings.built cells=%d failures=%d", len(mappings), len(failures))
    return mappings, failures


__all__ = [
    "MARK",
    "SEVERITY_LABELS",
    "build_cell_mappings",
    "error_list_mappings",
    "question_mappings",
    "severity_label",
    "split_reference",
]
