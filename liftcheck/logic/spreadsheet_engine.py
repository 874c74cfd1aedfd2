"""Protocol workbook population.

``populate`` turns a resolved template, the questionnaire and the answers into
a filled workbook. Writes go through a fidelity ladder: markup patch first,
then an openpyxl rewrite, then a synthesized workbook. The first tier that
produces a workbook wins; the tier name is reported on the result.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import partial
from typing import Mapping, Optional, Sequence

from liftcheck.logic.cell_mappings import build_cell_mappings
from liftcheck.logic.formula import apply_calculations
from liftcheck.logic.strategy_chain import Strategy, run_first_success
from liftcheck.logic.visibility_rules import fill_hidden_answers, resolve_visibility
from liftcheck.logic.workbook_writer import rewrite_cells, synthesize_workbook
from liftcheck.logic.xlsx_xml_patch import patch_workbook
from liftcheck.models.generation import CalculationFlag, CellMapping, ProtocolError, ProtocolMetadata
from liftcheck.models.question import AnswerValue, QuestionDefinition

logger = logging.getLogger(__name__)


class FidelityTier:
    XML_PATCH = "xml_patch"
    OBJECT_MODEL = "object_model"
    SYNTHESIZED = "synthesized"

    ORDER = (XML_PATCH, OBJECT_MODEL, SYNTHESIZED)


@dataclass
class PopulationResult:
    binary: bytes
    tier: str
    written_cells: int
    errors: list[str] = field(default_factory=list)
    flags: list[CalculationFlag] = field(default_factory=list)
    failed_tiers: list[str] = field(default_factory=list)
    answers: dict[str, AnswerValue] = field(default_factory=dict)


def prepare_answers(
    questions: Sequence[QuestionDefinition],
    answers: Mapping[str, AnswerValue],
    fill_hidden: bool = True,
) -> tuple[dict[str, AnswerValue], list[CalculationFlag]]:
    """Evaluate visible calculated fields, then fill hidden unanswered questions.

    Hidden calculated fields are not evaluated; they take the hidden sentinel
    like any other hidden question.
    """
    visibility = resolve_visibility(questions, answers)
    computed, flags = apply_calculations(visibility.visible_questions, answers)
    if fill_hidden:
        computed = fill_hidden_answers(questions, computed, visibility)
    return computed, flags


def _synthesize(
    questions: Sequence[QuestionDefinition],
    answers: Mapping[str, AnswerValue],
    language: str,
    errors: Sequence[ProtocolError],
    metadata: Optional[ProtocolMetadata],
    mappings: Sequence[CellMapping],
) -> tuple[bytes, int, list]:
    binary, written = synthesize_workbook(questions, answers, language, errors, metadata)
    return binary, written, []


def populate(
    template_binary: bytes,
    questions: Sequence[QuestionDefinition],
    answers: Mapping[str, AnswerValue],
    language: str,
    errors: Sequence[ProtocolError] = (),
    metadata: Optional[ProtocolMetadata] = None,
    fill_hidden: bool = True,
    signature_cell: str = "F9",
    error_start_row: int = 737,
) -> PopulationResult:
    """Populate a protocol workbook and report how it was produced.

    Narrow failures (bad cell references, unknown sheets, unusable formula
    inputs) are collected on the result; the call only raises if every tier
    fails, which cannot happen unless synthesis itself fails.
    """
    metadata = metadata or ProtocolMetadata()
    prepared, flags = prepare_answers(questions, answers, fill_hidden)
    mappings, mapping_failures = build_cell_mappings(
        questions,
        prepared,
        language,
        errors,
        signer_name=metadata.signer_name or metadata.inspector_name,
        signature_cell=signature_cell,
        error_start_row=error_start_row,
    )

    synthesized = Strategy(
        FidelityTier.SYNTHESIZED,
        partial(_synthesize, questions, prepared, language, errors, metadata),
    )
    if template_binary:
        strategies = [
            Strategy(FidelityTier.XML_PATCH, partial(patch_workbook, template_binary)),
            Strategy(FidelityTier.OBJECT_MODEL, partial(rewrite_cells, template_binary)),
            synthesized,
        ]
    else:
        logger.warning("protocol.populate.no_template language=%s", language)
        strategies = [synthesized]

    outcome = run_first_success(strategies, mappings, label="protocol.populate")
    binary, written, write_failures = outcome.result
    messages = [str(f) for f in mapping_failures] + [str(f) for f in write_failures]
    logger.info(
        "protocol.populate.done tier=%s cells=%d errors=%d flags=%d",
        outcome.name,
        written,
        len(messages),
        len(flags),
    )
    return PopulationResult(
        binary=binary,
        tier=outcome.name,
        written_cells=written,
        errors=messages,
        flags=flags,
        failed_tiers=[name for name, _ in outcome.failures],
        answers=prepared,
    )


__all__ = ["FidelityTier", "PopulationResult", "populate", "prepare_answers"]
