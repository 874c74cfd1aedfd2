"""FastAPI application package for the elevator acceptance form engine.

Exposes the application factory. Business logic lives in
`liftcheck/logic/` and route handlers in `liftcheck/routes/`.
"""

from __future__ import annotations

from liftcheck.main import create_app

__all__ = ["create_app"]
