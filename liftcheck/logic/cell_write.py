"""Cell write-back onto an existing protocol workbook."""

from __future__ import annotations

import logging
from functools import partial
from typing import Mapping, Sequence

from liftcheck.logic.cell_mappings import split_reference
from liftcheck.logic.errors import ResolutionExhausted
from liftcheck.logic.strategy_chain import Strategy, run_first_success
from liftcheck.logic.workbook_writer import rewrite_cells
from liftcheck.logic.xlsx_xml_patch import patch_workbook
from liftcheck.models.generation import CellMapping, CellWrite, CellWriteResponse

logger = logging.getLogger(__name__)


def resolve_writes(
    writes: Sequence[CellWrite],
    mappings: Mapping[str, str],
) -> tuple[list[CellMapping], list[str], list[str]]:
    """Turn writes into cell mappings.

    A write without ``cell_reference`` is looked up in ``mappings`` (question
    id to reference); multi-cell references cannot receive a single value and
    count as missing. Returns (mappings, missing question ids, errors).
    """
    resolved: list[CellMapping] = []
    missing: list[str] = []
    errors: list[str] = []
    for write in writes:
        reference = write.cell_reference or mappings.get(write.question_id)
        if not reference or "," in reference:
            missing.append(write.question_id)
            continue
        try:
            sheet, cell = split_reference(reference)
        except ValueError as e:
            errors.append(f"{write.question_id}: {e}")
            continue
        resolved.append(CellMapping(question_id=write.question_id, cell_reference=cell, value=write.value, sheet_name=sheet))
    return resolved, missing, errors


def write_cells(
    workbook_binary: bytes,
    writes: Sequence[CellWrite],
    mappings: Mapping[str, str] | None = None,
) -> tuple[bytes, CellWriteResponse]:
    """Apply ``writes`` and return the new workbook with a write report.

    Only the format-preserving tiers are used; if both fail the original
    workbook is returned unchanged with ``success`` false.
    """
    resolved, missing, errors = resolve_writes(writes, mappings or {})
    if missing:
        logger.warning("cells.write.missing_mappings question_ids=%s", missing)

    strategies = [
        Strategy("xml_patch", partial(patch_workbook, workbook_binary)),
        Strategy("object_model", partial(rewrite_cells, workbook_binary)),
    ]
    try:
        outcome = run_first_success(strategies, resolved, label="cells.write")
    except ResolutionExhausted as e:
        logger.error("cells.write.failed error=%s", e)
        errors.extend(f"{name}: {exc}" for name, exc in e.failures)
        return workbook_binary, CellWriteResponse(
            success=False, written_cells=0, errors=errors, missing_mappings=missing
        )

    binary, written, failures = outcome.result
    errors.extend(str(f) for f in failures)
    response = CellWriteResponse(
        success=not errors and not missing,
        written_cells=written,
        errors=errors,
        missing_mappings=missing,
    )
    logger.info("cells.write.done tier=%s cells=%d errors=%d", outcome.name, written, len(errors))
    return binary, response


__all__ = ["resolve_writes", "write_cells"]
