"""APIRouter registration for the form engine."""

from __future__ import annotations

from fastapi import APIRouter

from liftcheck.routes.protocols import router as protocols_router
from liftcheck.routes.questions import router as questions_router
from liftcheck.routes.templates import router as templates_router
from liftcheck.routes.visibility import router as visibility_router

api_router = APIRouter()
api_router.include_router(visibility_router, tags=["Visibility"])
api_router.include_router(questions_router, tags=["Questions"])
api_router.include_router(templates_router, tags=["Templates"])
api_router.include_router(protocols_router, tags=["Protocols"])

__all__ = ["api_router"]
