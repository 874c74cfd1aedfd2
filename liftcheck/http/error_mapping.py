"""Central mapping from domain exceptions to problem+json codes and statuses.

Handlers import from here instead of hardcoding strings or numbers.
"""

from __future__ import annotations

from liftcheck.logic.errors import CalculationError, ConfigurationError, RenderingError, ResolutionExhausted

DOMAIN_ERROR_MAP: dict[type[Exception], dict] = {
    ConfigurationError: {"code": ConfigurationError.code, "status": 422, "title": "Unusable Template"},
    CalculationError: {"code": CalculationError.code, "status": 422, "title": "Calculation Failed"},
    ResolutionExhausted: {"code": ResolutionExhausted.code, "status": 502, "title": "Template Unavailable"},
    RenderingError: {"code": RenderingError.code, "status": 502, "title": "Rendering Failed"},
}


def problem_for(exc: Exception) -> dict:
    for exc_type, entry in DOMAIN_ERROR_MAP.items():
        if isinstance(exc, exc_type):
            return {
                "title": entry["title"],
                "status": entry["status"],
                "code": entry["code"],
                "detail": str(exc),
            }
    return {"title": "Internal Server Error", "status": 500}


__all__ = ["DOMAIN_ERROR_MAP", "problem_for"]
