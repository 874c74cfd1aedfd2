"""Domain error taxonomy for template resolution and document generation.

Only whole-operation failures are exceptions. Narrow failures (a missing cell,
an absent PDF field, a formula with unusable inputs) are collected as records
and returned alongside the partially populated document.
"""

from __future__ import annotations

from dataclasses import dataclass


class ConfigurationError(Exception):
    """Template or question source is structurally unusable."""

    code = "CONFIGURATION_ERROR"


class ResolutionExhausted(Exception):
    """Every strategy in a fallback chain failed.

    ``failures`` holds ``(strategy_name, exception)`` pairs in attempt order.
    """

    code = "RESOLUTION_EXHAUSTED"

    def __init__(self, message: str, failures: list[tuple[str, BaseException]] | None = None) -> None:
        super().__init__(message)
        self.failures = list(failures or [])

    @property
    def last_error(self) -> BaseException | None:
        return self.failures[-1][1] if self.failures else None


class CalculationError(Exception):
    """A calculated field could not be evaluated."""

    code = "CALCULATION_ERROR"

    def __init__(self, reason: str, detail: str = "") -> None:
        super().__init__(detail or reason)
        self.reason = reason
        self.detail = detail


class RenderingError(Exception):
    """External document rendering failed."""

    code = "RENDERING_ERROR"


@dataclass(frozen=True)
class PartialWriteFailure:
    """A mapped cell or form field that could not be written."""

    target: str
    message: str
    question_id: str | None = None

    def __str__(self) -> str:
        return f"{self.target}: {self.message}"


__all__ = [
    "ConfigurationError",
    "ResolutionExhausted",
    "CalculationError",
    "RenderingError",
    "PartialWriteFailure",
]
