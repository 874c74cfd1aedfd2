"""Protocol document generation endpoints.

Every endpoint resolves its template through the template resolution service
and runs the blocking document work in a worker thread.
"""

from __future__ import annotations

import logging
import time
from functools import partial

import anyio
import httpx
from fastapi import APIRouter, Depends, Response
from fastapi.responses import JSONResponse

from liftcheck.logic.cell_write import write_cells
from liftcheck.logic.error_export import export_error_list
from liftcheck.logic.grounding_pdf import fill
from liftcheck.logic.object_storage import ObjectStorageError
from liftcheck.logic.protocol_pdf import render_workbook_pdf
from liftcheck.logic.spreadsheet_engine import PopulationResult, populate
from liftcheck.models.generation import (
    CellWriteRequest,
    ErrorListRequest,
    ExcelProtocolRequest,
    GroundingPdfRequest,
)
from liftcheck.models.template import TemplateType
from liftcheck.routes.templates import XLSX_MEDIA_TYPE
from liftcheck.services import Services, get_services, load_protocol_questions

router = APIRouter()
logger = logging.getLogger(__name__)

PDF_MEDIA_TYPE = "application/pdf"


def _flags_header(result: PopulationResult) -> str:
    return ",".join(f"{f.question_id}:{f.reason}" for f in result.flags)


async def _populate_protocol(body: ExcelProtocolRequest, services: Services) -> PopulationResult:
    resolved = await services.resolver.resolve(body.template_id, TemplateType.PROTOCOL, body.language)
    questions = await load_protocol_questions(services, body.questions_template_id, body.language)
    logger.info(
        "protocol.populate template_id=%s source=%s questions=%d",
        resolved.record.id if resolved.record else None,
        resolved.source,
        len(questions),
    )
    documents = services.config.documents
    return await anyio.to_thread.run_sync(
        partial(
            populate,
            resolved.binary,
            questions,
            body.answers,
            body.language,
            errors=body.errors,
            metadata=body.metadata,
            fill_hidden=body.fill_hidden,
            signature_cell=documents.signature_cell,
            error_start_row=documents.error_list_start_row,
        )
    )


def _report_headers(result: PopulationResult) -> dict[str, str]:
    return {
        "X-Fidelity-Tier": result.tier,
        "X-Written-Cells": str(result.written_cells),
        "X-Generation-Errors": str(len(result.errors)),
        "X-Calculation-Flags": _flags_header(result),
    }


@router.post(
    "/protocols/excel",
    summary="Populate the protocol workbook",
    operation_id="generateExcelProtocol",
)
async def generate_excel_protocol(body: ExcelProtocolRequest, services: Services = Depends(get_services)):
    result = await _populate_protocol(body, services)
    return Response(
        content=result.binary,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": 'attachment; filename="protocol.xlsx"', **_report_headers(result)},
    )


@router.post(
    "/protocols/excel/report",
    summary="Populate the protocol workbook and return the generation report",
    operation_id="generateExcelProtocolReport",
)
async def generate_excel_protocol_report(body: ExcelProtocolRequest, services: Services = Depends(get_services)):
    result = await _populate_protocol(body, services)
    return {
        "tier": result.tier,
        "written_cells": result.written_cells,
        "errors": result.errors,
        "failed_tiers": result.failed_tiers,
        "flags": [f.model_dump() for f in result.flags],
        "answers": result.answers,
    }


@router.post(
    "/protocols/pdf",
    summary="Populate the protocol workbook and render it as PDF",
    operation_id="generatePdfProtocol",
)
async def generate_pdf_protocol(body: ExcelProtocolRequest, services: Services = Depends(get_services)):
    result = await _populate_protocol(body, services)
    documents = services.config.documents
    pdf = await anyio.to_thread.run_sync(
        partial(
            render_workbook_pdf,
            result.binary,
            office_binary=documents.office_binary,
            timeout_seconds=documents.render_timeout_seconds,
        )
    )
    return Response(
        content=pdf,
        media_type=PDF_MEDIA_TYPE,
        headers={"Content-Disposition": 'attachment; filename="protocol.pdf"', **_report_headers(result)},
    )


@router.post(
    "/protocols/grounding-pdf",
    summary="Fill the grounding-check PDF form",
    operation_id="generateGroundingPdf",
)
async def generate_grounding_pdf(body: GroundingPdfRequest, services: Services = Depends(get_services)):
    resolved = await services.resolver.resolve(body.template_id, TemplateType.FORM_PDF, body.language)
    result = await anyio.to_thread.run_sync(
        partial(
            fill,
            resolved.binary,
            body.metadata,
            body.answers,
            body.item_texts,
            language=body.language,
            flatten=services.config.documents.flatten_pdf,
        )
    )
    return Response(
        content=result.binary,
        media_type=PDF_MEDIA_TYPE,
        headers={
            "Content-Disposition": 'attachment; filename="grounding-check.pdf"',
            "X-Remarks": str(len(result.remarks)),
            "X-Dropped-Remarks": str(result.dropped_remarks),
            "X-Form-Warnings": str(len(result.warnings)),
        },
    )


@router.post(
    "/protocols/errors/excel",
    summary="Export the protocol error list",
    operation_id="exportErrorList",
)
async def export_errors_excel(body: ErrorListRequest):
    binary = await anyio.to_thread.run_sync(partial(export_error_list, body.errors, body.metadata, body.language))
    return Response(
        content=binary,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": 'attachment; filename="error-list.xlsx"'},
    )


@router.post(
    "/protocols/{template_id}/cells",
    summary="Write cell values into a protocol workbook",
    operation_id="writeProtocolCells",
)
async def write_protocol_cells(
    template_id: str,
    body: CellWriteRequest,
    services: Services = Depends(get_services),
):
    resolved = await services.resolver.resolve(template_id, TemplateType.PROTOCOL)
    record_id = resolved.record.id if resolved.record else template_id
    questions = await anyio.to_thread.run_sync(services.resolver.repository.list_question_configs, record_id)
    mappings = {q.id: q.cell_reference for q in questions if q.cell_reference}
    binary, response = await anyio.to_thread.run_sync(write_cells, resolved.binary, body.writes, mappings)

    if response.written_cells and services.storage.configured:
        path = f"protocols/{record_id}/protocol_v{int(time.time() * 1000)}.xlsx"
        try:
            response.storage_path = await services.storage.upload(path, binary, XLSX_MEDIA_TYPE)
        except (ObjectStorageError, httpx.HTTPError) as e:
            logger.error("cells.write.upload_failed path=%s", path, exc_info=True)
            response.errors.append(f"upload: {e}")
            response.success = False
    status = 200 if response.success else 207
    return JSONResponse(response.model_dump(by_alias=True), status_code=status)
