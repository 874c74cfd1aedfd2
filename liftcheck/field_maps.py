"""Fixed field layout of the grounding-check (Erdungskontrolle) PDF form."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class AnswerFields:
    question_id: str
    ok_field: str
    not_ok_field: str

    @property
    def location_code(self) -> str:
        return self.ok_field.replace("OK", "", 1)


@dataclass(frozen=True)
class RemarkRow:
    location_field: str
    text_field: str


# ProtocolMetadata attribute -> PDF field name
METADATA_FIELDS: dict[str, str] = {
    "lift_id": "Anlage Nr",
    "inspector_name": "Name des Technikers",
    "agency": "Agentur",
    "reception_date": "Datum",
    "building_address": "Adresse der Anlage",
}

SIGNATURE_FIELD = "signature"

# Section number -> item numbers printed on the form. Section 3 skips 10 and 11,
# section 4 skips 8 and 9.
_SECTION_ITEMS: dict[int, tuple[int, ...]] = {
    1: tuple(range(1, 13)),
    2: tuple(range(1, 15)),
    3: tuple(range(1, 10)) + (12,),
    4: tuple(range(1, 8)) + (10,),
    5: tuple(range(1, 7)),
}

ANSWER_FIELDS: tuple[AnswerFields, ...] = tuple(
    AnswerFields(f"OK{section}/{item}", f"OK{section}/{item}", f"nicht OK{section}/{item}")
    for section, items in _SECTION_ITEMS.items()
    for item in items
)

REMARK_ROWS: tuple[RemarkRow, ...] = (
    RemarkRow("PunktRow1", "Bemerkung Row1"),
    RemarkRow("PunktRow2", "Bemerkung Row2"),
)

DEFAULT_REMARK_TEXT: dict[str, str] = {
    "hu": "Hiba a {location} pontnál.",
    "de": "Mangel bei Punkt {location}.",
    "en": "Defect at item {location}.",
}

OK_MARK = "X"
NOT_APPLICABLE_MARK = "-"


__all__ = [
    "ANSWER_FIELDS",
    "AnswerFields",
    "DEFAULT_REMARK_TEXT",
    "METADATA_FIELDS",
    "NOT_APPLICABLE_MARK",
    "OK_MARK",
    "REMARK_ROWS",
    "RemarkRow",
    "SIGNATURE_FIELD",
]
