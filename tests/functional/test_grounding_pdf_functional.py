"""Functional tests for the grounding-check PDF form filler."""

from __future__ import annotations

import base64

import fitz
import pytest

from liftcheck.field_maps import ANSWER_FIELDS, METADATA_FIELDS, REMARK_ROWS
from liftcheck.logic.errors import ConfigurationError
from liftcheck.logic.grounding_pdf import answer_field_values, fill, remark_field_values
from liftcheck.models.generation import ProtocolMetadata, RemarkEntry

FORM_FIELDS = [
    *METADATA_FIELDS.values(),
    "OK1/1",
    "nicht OK1/1",
    "OK1/2",
    "nicht OK1/2",
    "OK1/3",
    "nicht OK1/3",
    "OK2/1",
    "nicht OK2/1",
    *(name for row in REMARK_ROWS for name in (row.location_field, row.text_field)),
]


def _png_data_url() -> str:
    pix = fitz.Pixmap(fitz.csRGB, fitz.IRect(0, 0, 4, 4), False)
    pix.clear_with(0)
    return "data:image/png;base64," + base64.b64encode(pix.tobytes("png")).decode("ascii")


def test_answers_and_remarks_filled__verifies_tri_state_marks_and_capacity(make_pdf_form, pdf_fields):
    """Verifies marks per answer state, remarks in item order and overflow counting."""
    template = make_pdf_form(FORM_FIELDS)
    answers = {
        "OK1/1": "ok",
        "OK1/2": "not_ok",
        "OK1/3": "not_applicable",
        "OK2/1": "not_ok",
        "OK5/6": "not_ok",
    }
    # Act
    result = fill(
        template,
        ProtocolMetadata(lift_id="L-42", inspector_name="Hans Muster"),
        answers,
        item_texts={"OK2/1": "Erdung fehlt"},
        language="de",
        flatten=False,
    )
    fields = pdf_fields(result.binary)
    # Assert: header block
    assert fields["Anlage Nr"] == "L-42"
    assert fields["Name des Technikers"] == "Hans Muster"
    # Assert: tri-state marks
    assert fields["OK1/1"] == "X"
    assert fields["nicht OK1/2"] == "X"
    assert fields["OK1/3"] == "-"
    assert fields["nicht OK2/1"] == "X"
    # Assert: first two remarks in form order, the third dropped
    assert (fields["PunktRow1"], fields["Bemerkung Row1"]) == ("1/2", "Mangel bei Punkt 1/2.")
    assert (fields["PunktRow2"], fields["Bemerkung Row2"]) == ("2/1", "Erdung fehlt")
    assert [r.location_code for r in result.remarks] == ["1/2", "2/1", "5/6"]
    assert result.dropped_remarks == 1
    # Assert: the field missing from this form is a warning, not an error
    assert "nicht OK5/6: field not found on the form" in result.warnings


def test_unknown_answer_id__verifies_warning():
    """Verifies an answer with no field pair on the form is reported."""
    values, remarks, warnings = answer_field_values({"OK9/9": "ok", "OK1/1": "ok"}, {}, "hu")
    # Assert
    assert values == {"OK1/1": "X"}
    assert remarks == []
    assert warnings == ["OK9/9: no field on the form"]


def test_default_remark_text__verifies_localized_wording():
    """Verifies a not-OK item without a text gets the localized default."""
    _, remarks, _ = answer_field_values({"OK3/12": "not_ok"}, {"OK3/12": "   "}, "hu")
    # Assert
    assert remarks == [RemarkEntry(location_code="3/12", text="Hiba a 3/12 pontnál.")]


def test_remark_rows__verifies_order_and_overflow():
    """Verifies remarks fill the fixed rows in order and the rest are counted."""
    remarks = [RemarkEntry(location_code=f"1/{i}", text=f"t{i}") for i in range(1, 5)]
    # Act
    values, dropped = remark_field_values(remarks)
    # Assert
    assert values == {
        "PunktRow1": "1/1",
        "Bemerkung Row1": "t1",
        "PunktRow2": "1/2",
        "Bemerkung Row2": "t2",
    }
    assert dropped == 2


def test_field_layout__verifies_skipped_items():
    """Verifies the printed gaps of sections 3 and 4 have no field pairs."""
    ids = {a.question_id for a in ANSWER_FIELDS}
    # Assert
    assert {"OK3/9", "OK3/12", "OK4/7", "OK4/10"} <= ids
    assert not {"OK3/10", "OK3/11", "OK4/8", "OK4/9"} & ids
    assert len(ANSWER_FIELDS) == 12 + 14 + 10 + 8 + 6


def test_signature_image__verifies_inserted_into_signature_rect(make_pdf_form):
    """Verifies a PNG data URL signature is drawn on the page."""
    template = make_pdf_form(["Anlage Nr"], signature="signature")
    # Act
    result = fill(template, ProtocolMetadata(lift_id="L-1", signature=_png_data_url()), {}, flatten=False)
    doc = fitz.open(stream=result.binary, filetype="pdf")
    try:
        images = doc[0].get_images()
    finally:
        doc.close()
    # Assert
    assert result.warnings == []
    assert len(images) == 1


def test_signature_not_png__verifies_warning(make_pdf_form):
    """Verifies a non-PNG signature is skipped with a warning."""
    template = make_pdf_form(["Anlage Nr"], signature="signature")
    # Act
    result = fill(template, ProtocolMetadata(signature="data:image/jpeg;base64,AAAA"), {}, flatten=False)
    # Assert
    assert result.warnings == ["signature: signature is not a PNG data URL"]


def test_flatten__verifies_no_interactive_fields_remain(make_pdf_form):
    """Verifies a flattened result carries no widgets."""
    template = make_pdf_form(FORM_FIELDS)
    # Act
    result = fill(template, ProtocolMetadata(lift_id="L-42"), {"OK1/1": "ok"}, flatten=True)
    doc = fitz.open(stream=result.binary, filetype="pdf")
    try:
        widgets = [w for page in doc for w in page.widgets()]
    finally:
        doc.close()
    # Assert
    assert widgets == []


@pytest.mark.parametrize("binary", [b"", b"%PDF-garbage"])
def test_unreadable_template__verifies_configuration_error(binary):
    """Verifies empty and unreadable templates abort the fill."""
    with pytest.raises(ConfigurationError):
        fill(binary, ProtocolMetadata(), {})


def test_pdf_without_fields__verifies_configuration_error():
    """Verifies a PDF with no form fields is rejected."""
    doc = fitz.open()
    doc.new_page()
    binary = doc.tobytes()
    doc.close()
    with pytest.raises(ConfigurationError):
        fill(binary, ProtocolMetadata(), {})
