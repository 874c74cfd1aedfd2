"""Question definitions for the inspection questionnaire.

QuestionType is a simple constants container instead of an Enum so raw
strings parsed from workbooks compare directly.
"""

from __future__ import annotations

from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class QuestionType:
    TRI_STATE = "yes_no_na"
    BOOLEAN = "true_false"
    MEASUREMENT = "measurement"
    CALCULATED = "calculated"
    NUMBER = "number"
    TEXT = "text"

    ALL = frozenset({TRI_STATE, BOOLEAN, MEASUREMENT, CALCULATED, NUMBER, TEXT})
    CHOICE = frozenset({TRI_STATE, BOOLEAN})
    NUMERIC = frozenset({MEASUREMENT, CALCULATED, NUMBER})


AnswerValue = Union[bool, int, float, str]
AnswerMap = dict[str, AnswerValue]

SUPPORTED_LANGUAGES = ("hu", "de", "en")


class QuestionDefinition(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    type: str = QuestionType.TEXT
    title: str = ""
    title_hu: Optional[str] = None
    title_de: Optional[str] = None
    title_en: Optional[str] = None
    required: bool = False
    placeholder: Optional[str] = None
    placeholder_hu: Optional[str] = None
    placeholder_de: Optional[str] = None
    placeholder_en: Optional[str] = None
    group_name: Optional[str] = None
    group_name_hu: Optional[str] = None
    group_name_de: Optional[str] = None
    group_name_en: Optional[str] = None
    group_order: int = 0
    group_key: Optional[str] = None
    conditional_group_key: Optional[str] = None
    cell_reference: Optional[str] = None
    sheet_name: Optional[str] = None
    multi_cell: bool = False
    unit: Optional[str] = None
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    calculation_formula: Optional[str] = None
    calculation_inputs: list[str] = Field(default_factory=list)
    options: list[str] = Field(default_factory=list)
    default_if_hidden: Optional[str] = None

    @field_validator("type")
    @classmethod
    def type_must_be_known(cls, v: str) -> str:
        if v not in QuestionType.ALL:
            raise ValueError(f"type must be one of {sorted(QuestionType.ALL)}")
        return v

    @field_validator("calculation_inputs", "options", mode="before")
    @classmethod
    def split_comma_list(cls, v: object) -> object:
        if isinstance(v, str):
            return [part.strip() for part in v.split(",") if part.strip()]
        return v

    @property
    def is_controller(self) -> bool:
        return bool(self.conditional_group_key) and self.type in QuestionType.CHOICE

    def _localized(self, field: str, language: str) -> Optional[str]:
        return getattr(self, f"{field}_{language}", None) or getattr(self, field, None)

    def title_for(self, language: str) -> str:
        return self._localized("title", language) or self.id

    def placeholder_for(self, language: str) -> Optional[str]:
        return self._localized("placeholder", language)

    def group_name_for(self, language: str) -> Optional[str]:
        return self._localized("group_name", language)


__all__ = [
    "AnswerMap",
    "AnswerValue",
    "QuestionDefinition",
    "QuestionType",
    "SUPPORTED_LANGUAGES",
]
