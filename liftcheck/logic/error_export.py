"""Standalone error list workbook."""

from __future__ import annotations

import logging
from datetime import datetime
from io import BytesIO
from typing import Optional, Sequence

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill

from liftcheck.logic.cell_mappings import severity_label
from liftcheck.models.generation import ProtocolError, ProtocolMetadata, Severity

logger = logging.getLogger(__name__)

ERROR_LIST_LABELS: dict[str, dict[str, str]] = {
    "hu": {
        "title": "Hibalista",
        "building": "Épület",
        "lift_id": "Lift azonosító",
        "inspector": "Ellenőr",
        "date": "Dátum",
        "number": "Hiba száma",
        "severity": "Súlyossági szint",
        "error_title": "Hiba címe",
        "description": "Leírás",
        "photos": "Fotók száma",
        "summary": "Összesítő",
        "total": "Összes hiba",
        "generated_on": "Generálva",
    },
    "de": {
        "title": "Fehlerliste",
        "building": "Gebäude",
        "lift_id": "Aufzug ID",
        "inspector": "Prüfer",
        "date": "Datum",
        "number": "Fehlernummer",
        "severity": "Schweregrad",
        "error_title": "Fehler Titel",
        "description": "Beschreibung",
        "photos": "Anzahl Fotos",
        "summary": "Zusammenfassung",
        "total": "Gesamtfehler",
        "generated_on": "Erstellt am",
    },
    "en": {
        "title": "Error list",
        "building": "Building",
        "lift_id": "Lift id",
        "inspector": "Inspector",
        "date": "Date",
        "number": "Error no.",
        "severity": "Severity",
        "error_title": "Title",
        "description": "Description",
        "photos": "Photos",
        "summary": "Summary",
        "total": "Total errors",
        "generated_on": "Generated on",
    },
}

_TITLE_FILL = PatternFill(start_color="FF1F4E79", end_color="FF1F4E79", fill_type="solid")
_COLUMN_WIDTHS = {"A": 10, "B": 15, "C": 30, "D": 50, "E": 12}
HEADER_ROW = 8


def export_error_list(
    errors: Sequence[ProtocolError],
    metadata: Optional[ProtocolMetadata] = None,
    language: str = "hu",
    generated_at: Optional[datetime] = None,
) -> bytes:
    """Render the protocol errors as a workbook with a header and a summary block."""
    labels = ERROR_LIST_LABELS.get(language, ERROR_LIST_LABELS["hu"])
    metadata = metadata or ProtocolMetadata()
    generated_at = generated_at or datetime.now()

    wb = Workbook()
    ws = wb.active
    ws.title = labels["title"]

    ws.append([labels["title"]])
    ws.append([])
    ws.append([labels["building"], metadata.building_address or ""])
    ws.append([labels["lift_id"], metadata.lift_id or ""])
    ws.append([labels["inspector"], metadata.inspector_name or ""])
    ws.append([labels["date"], metadata.reception_date or generated_at.date().isoformat()])
    ws.append([])
    ws.append([labels["number"], labels["severity"], labels["error_title"], labels["description"], labels["photos"]])

    ws["A1"].font = Font(bold=True, size=16, color="FFFFFFFF")
    ws["A1"].fill = _TITLE_FILL
    for cell in ws[HEADER_ROW]:
        cell.font = Font(bold=True)
        cell.alignment = Alignment(horizontal="left")

    for index, error in enumerate(errors, start=1):
        ws.append([index, severity_label(error.severity, language), error.title, error.description, len(error.images)])
        ws.cell(row=ws.max_row, column=4).alignment = Alignment(wrap_text=True, vertical="top")

    ws.append([])
    ws.append([labels["summary"]])
    ws.cell(row=ws.max_row, column=1).font = Font(bold=True)
    ws.append([labels["total"], len(errors)])
    for severity in Severity.ALL:
        ws.append([severity_label(severity, language), sum(1 for e in errors if e.severity == severity)])
    ws.append([])
    ws.append([labels["generated_on"], generated_at.strftime("%Y-%m-%d %H:%M")])

    for column, width in _COLUMN_WIDTHS.items():
        ws.column_dimensions[column].width = width

    out = BytesIO()
    wb.save(out)
    logger.info("errors.export.done errors=%d language=%s", len(errors), language)
    return out.getvalue()


__all__ = ["ERROR_LIST_LABELS", "HEADER_ROW", "export_error_list"]
