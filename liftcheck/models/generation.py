"""Document generation contracts: cell writes, remarks, protocol errors."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from liftcheck.models.question import AnswerValue


class CellMapping(BaseModel):
    model_config = ConfigDict(frozen=True)

    question_id: str
    cell_reference: str
    value: Optional[AnswerValue] = None
    sheet_name: Optional[str] = None


class CellWrite(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    question_id: str = Field(alias="questionId")
    cell_reference: Optional[str] = Field(default=None, alias="cellReference")
    value: Optional[AnswerValue] = None


class CellWriteRequest(BaseModel):
    writes: list[CellWrite]


class CellWriteResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    written_cells: int = Field(alias="writtenCells")
    errors: list[str] = Field(default_factory=list)
    missing_mappings: list[str] = Field(default_factory=list, alias="missingMappings")
    storage_path: Optional[str] = Field(default=None, alias="storagePath")


class RemarkEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    location_code: str
    text: str


class Severity:
    CRITICAL = "critical"
    MEDIUM = "medium"
    LOW = "low"

    ALL = (CRITICAL, MEDIUM, LOW)


class ProtocolError(BaseModel):
    id: str
    title: str
    description: str = ""
    severity: str = Severity.MEDIUM
    images: list[str] = Field(default_factory=list)

    @field_validator("severity")
    @classmethod
    def severity_must_be_known(cls, v: str) -> str:
        if v not in Severity.ALL:
            raise ValueError(f"severity must be one of {list(Severity.ALL)}")
        return v


class CalculationFlag(BaseModel):
    question_id: str
    reason: str
    value: Optional[float] = None
    detail: str = ""


class ProtocolMetadata(BaseModel):
    """Header data shared by every deliverable of one inspection."""

    building_address: Optional[str] = None
    lift_id: Optional[str] = None
    inspector_name: Optional[str] = None
    agency: Optional[str] = None
    reception_date: Optional[str] = None
    signer_name: Optional[str] = None
    signature: Optional[str] = None


class ExcelProtocolRequest(BaseModel):
    """Protocol generation request.

    ``template_id`` names the protocol workbook to fill; ``questions_template_id``
    names the template whose question configuration drives the mapping.
    """

    template_id: Optional[str] = None
    questions_template_id: Optional[str] = None
    language: str = "hu"
    answers: dict[str, AnswerValue] = Field(default_factory=dict)
    errors: list[ProtocolError] = Field(default_factory=list)
    metadata: ProtocolMetadata = Field(default_factory=ProtocolMetadata)
    fill_hidden: bool = True


class GroundingAnswer:
    OK = "ok"
    NOT_OK = "not_ok"
    NOT_APPLICABLE = "not_applicable"

    ALL = frozenset({OK, NOT_OK, NOT_APPLICABLE})


class GroundingPdfRequest(BaseModel):
    template_id: str = "alap_erdungskontrolle"
    language: str = "de"
    metadata: ProtocolMetadata = Field(default_factory=ProtocolMetadata)
    answers: dict[str, str] = Field(default_factory=dict)
    item_texts: dict[str, str] = Field(default_factory=dict)

    @field_validator("answers")
    @classmethod
    def answers_must_be_tri_state(cls, v: dict[str, str]) -> dict[str, str]:
        bad = sorted(k for k, val in v.items() if val not in GroundingAnswer.ALL)
        if bad:
            raise ValueError(f"answers must be one of {sorted(GroundingAnswer.ALL)}; invalid for {bad}")
        return v


class ErrorListRequest(BaseModel):
    language: str = "hu"
    errors: list[ProtocolError] = Field(default_factory=list)
    metadata: ProtocolMetadata = Field(default_factory=ProtocolMetadata)


__all__ = [
    "CalculationFlag",
    "CellMapping",
    "CellWrite",
    "CellWriteRequest",
    "CellWriteResponse",
    "ErrorListRequest",
    "ExcelProtocolRequest",
    "GroundingAnswer",
    "GroundingPdfRequest",
    "ProtocolError",
    "ProtocolMetadata",
    "RemarkEntry",
    "Severity",
]
