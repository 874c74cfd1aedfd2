"""Functional tests for the error list workbook and workbook-to-PDF rendering."""

from __future__ import annotations

import subprocess
from datetime import datetime
from io import BytesIO
from pathlib import Path

import pytest
from openpyxl import load_workbook

from liftcheck.logic.error_export import HEADER_ROW, export_error_list
from liftcheck.logic.errors import RenderingError
from liftcheck.logic.protocol_pdf import render_workbook_pdf
from liftcheck.models.generation import ProtocolError, ProtocolMetadata

ERRORS = [
    ProtocolError(id="e1", title="Korlát", description="Hiányzó korlát", severity="critical", images=["a", "b"]),
    ProtocolError(id="e2", title="Lámpa", severity="low"),
    ProtocolError(id="e3", title="Ajtó", description="Ajtózár hibás", severity="critical"),
]


def test_error_list_layout__verifies_header_rows_and_summary():
    """Verifies metadata block, one row per error and per-severity counts."""
    metadata = ProtocolMetadata(building_address="Fő utca 1.", lift_id="L-42", inspector_name="Kovács Anna")
    # Act
    binary = export_error_list(ERRORS, metadata, "hu", generated_at=datetime(2026, 3, 1, 9, 30))
    ws = load_workbook(BytesIO(binary)).active
    rows = [row[:5] for row in ws.iter_rows(values_only=True)]
    # Assert: sheet and header block
    assert ws.title == "Hibalista"
    assert rows[0][0] == "Hibalista"
    assert rows[2][:2] == ("Épület", "Fő utca 1.")
    assert rows[3][:2] == ("Lift azonosító", "L-42")
    assert rows[5][:2] == ("Dátum", "2026-03-01")
    assert rows[HEADER_ROW - 1] == ("Hiba száma", "Súlyossági szint", "Hiba címe", "Leírás", "Fotók száma")
    # Assert: error rows
    assert rows[HEADER_ROW] == (1, "Kritikus", "Korlát", "Hiányzó korlát", 2)
    assert rows[HEADER_ROW + 1][:2] == (2, "Alacsony")
    assert rows[HEADER_ROW + 2][4] == 0
    # Assert: summary block
    summary = {row[0]: row[1] for row in rows[HEADER_ROW + 3:] if row[0]}
    assert summary["Összes hiba"] == 3
    assert (summary["Kritikus"], summary["Közepes"], summary["Alacsony"]) == (2, 0, 1)
    assert summary["Generálva"] == "2026-03-01 09:30"


def test_error_list_german__verifies_labels_and_empty_list():
    """Verifies German labels and a zero summary for no errors."""
    binary = export_error_list([], language="de", generated_at=datetime(2026, 3, 1, 9, 30))
    ws = load_workbook(BytesIO(binary)).active
    rows = [row[:2] for row in ws.iter_rows(values_only=True)]
    # Assert
    assert ws.title == "Fehlerliste"
    assert ("Gesamtfehler", 0) in rows
    assert ("Kritisch", 0) in rows


def _fake_converter(returncode: int = 0, produce: bool = True):
    def _run(command, **kwargs):
        outdir = Path(command[command.index("--outdir") + 1])
        if produce:
            (outdir / "protocol.pdf").write_bytes(b"%PDF-1.7 rendered")
        return subprocess.CompletedProcess(command, returncode, stdout="", stderr="boom" if returncode else "")

    return _run


def test_render_pdf__verifies_converter_output_returned(mocker):
    """Verifies the converter is invoked headless and its PDF is returned."""
    run = mocker.patch("liftcheck.logic.protocol_pdf.subprocess.run", side_effect=_fake_converter())
    # Act
    pdf = render_workbook_pdf(b"PK\x03\x04workbook", office_binary="/opt/office/soffice", timeout_seconds=5)
    # Assert
    assert pdf == b"%PDF-1.7 rendered"
    command = run.call_args.args[0]
    assert command[0] == "/opt/office/soffice"
    assert "--headless" in command
    assert run.call_args.kwargs["timeout"] == 5


@pytest.mark.parametrize(
    "side_effect, message",
    [
        (FileNotFoundError("soffice"), "not found"),
        (subprocess.TimeoutExpired(["soffice"], 5), "timed out"),
        (_fake_converter(returncode=1, produce=False), "exit code 1"),
        (_fake_converter(returncode=0, produce=False), "exit code 0"),
    ],
)
def test_render_pdf_failures__verifies_rendering_error(mocker, side_effect, message):
    """Verifies a missing, hanging or failing converter raises a rendering error."""
    mocker.patch("liftcheck.logic.protocol_pdf.subprocess.run", side_effect=side_effect)
    with pytest.raises(RenderingError) as excinfo:
        render_workbook_pdf(b"PK\x03\x04workbook")
    # Assert
    assert message in str(excinfo.value)


def test_render_pdf_empty_workbook__verifies_rendering_error():
    """Verifies an empty workbook is rejected before any process starts."""
    with pytest.raises(RenderingError):
        render_workbook_pdf(b"")
