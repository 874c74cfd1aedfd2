"""Process-lifetime copy of the template registry document.

The registry is read lazily on first use and then held until ``replace`` or
``invalidate`` is called. It is never mutated in place; updates swap the
whole document.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from liftcheck.models.template import RegistryDocument

logger = logging.getLogger(__name__)


class RegistryCache:
    def __init__(self, registry_path: Path) -> None:
        self.registry_path = Path(registry_path)
        self._document: Optional[RegistryDocument] = None
        self._loaded = False

    def get(self) -> Optional[RegistryDocument]:
        """Return the registry document, or None when absent or unreadable."""
        if not self._loaded:
            self._document = self._load()
            self._loaded = True
        return self._document

    def replace(self, document: RegistryDocument) -> None:
        self._document = document
        self._loaded = True
        logger.info("template.registry.replaced templates=%d", len(document.records()))

    def invalidate(self) -> None:
        self._document = None
        self._loaded = False
        logger.info("template.registry.invalidated path=%s", self.registry_path)

    def _load(self) -> Optional[RegistryDocument]:
        if not self.registry_path.exists():
            logger.info("template.registry.absent path=%s", self.registry_path)
            return None
        try:
            raw = json.loads(self.registry_path.read_text(encoding="utf-8"))
            document = RegistryDocument.model_validate(raw)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError, PydanticValidationError):
            # An unreadable registry falls back to the compiled-in catalog
            logger.error("template.registry.unreadable path=%s", self.registry_path, exc_info=True)
            return None
        logger.info("template.registry.loaded path=%s templates=%d", self.registry_path, len(document.records()))
        return document


__all__ = ["RegistryCache"]
