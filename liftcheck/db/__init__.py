"""Database bootstrap utilities.

Convenience imports for the shared engine and the migrations runner that
applies SQL files from the project's migrations/ directory.
"""

from liftcheck.db.base import get_engine
from liftcheck.db.migrations_runner import apply_migrations

__all__ = [
    "get_engine",
    "apply_migrations",
]
