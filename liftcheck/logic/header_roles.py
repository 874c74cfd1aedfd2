"""Header-role resolution for questionnaire-source workbooks.

Each logical column role accepts a list of header aliases. Headers and aliases
are compared after normalization (lower-case, diacritics removed, separators
dropped). Exact matches are claimed first across all roles; remaining roles
then match unclaimed headers by substring containment in either direction.
"""

from __future__ import annotations

import re
import unicodedata
from typing import Mapping, Optional, Sequence

from liftcheck.logic.errors import ConfigurationError

REQUIRED_ROLES = ("id", "title", "type")

HEADER_ALIASES: Mapping[str, Sequence[str]] = {
    "id": ("id", "question_id", "questionId", "kérdés_id"),
    "title": ("title", "name", "név", "kérdés"),
    "title_hu": ("title_hu", "titleHu", "magyar_cím"),
    "title_de": ("title_de", "titleDe", "német_cím"),
    "title_en": ("title_en", "titleEn", "angol_cím"),
    "type": ("type", "típus", "tipus"),
    "required": ("required", "kötelező", "kell"),
    "placeholder": ("placeholder", "description", "leírás"),
    "placeholder_hu": ("placeholder_hu", "placeholderHu"),
    "placeholder_de": ("placeholder_de", "placeholderDe"),
    "placeholder_en": ("placeholder_en", "placeholderEn"),
    "cell_reference": ("cell_reference", "cellReference", "cella", "cell ref"),
    "sheet_name": ("sheet_name", "sheetName", "munkalap"),
    "multi_cell": ("multi_cell", "multiCell", "több_cella"),
    "group_name": ("group_name", "groupName", "csoport"),
    "group_name_hu": ("group_name_hu", "groupNameHu"),
    "group_name_de": ("group_name_de", "groupNameDe"),
    "group_name_en": ("group_name_en", "groupNameEn"),
    "group_key": ("group_key", "groupKey"),
    "group_order": ("group_order", "groupOrder", "sorrend"),
    "conditional_group_key": ("conditional_group_key", "conditionalGroupKey"),
    "default_if_hidden": ("default_if_hidden", "defaultIfHidden"),
    "options": ("options", "choices", "opciók", "választások"),
    "unit": ("unit", "egység", "mértékegység"),
    "min_value": ("min_value", "minValue", "min"),
    "max_value": ("max_value", "maxValue", "max"),
    "calculation_formula": ("calculation_formula", "calculationFormula", "képlet"),
    "calculation_inputs": ("calculation_inputs", "calculationInputs", "bemenetek"),
}

_SEPARATORS = re.compile(r"[\s_\-.:/]+")
_MIN_CONTAINMENT_LENGTH = 2


def normalize_header(text: object) -> str:
    if text is None:
        return ""
    decomposed = unicodedata.normalize("NFKD", str(text))
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _SEPARATORS.sub("", stripped.lower().strip())


def resolve_header_roles(
    headers: Sequence[object],
    aliases: Mapping[str, Sequence[str]] = HEADER_ALIASES,
    required: Sequence[str] = REQUIRED_ROLES,
) -> dict[str, int]:
    """Map each resolvable role to its column index.

    Raises ``ConfigurationError`` naming every unresolved required role. A
    required role is also satisfied by one of its per-language variants.
    Optional roles that cannot be resolved are simply absent from the result.
    """
    normalized = [normalize_header(h) for h in headers]
    normalized_aliases = {role: [normalize_header(a) for a in names] for role, names in aliases.items()}

    roles: dict[str, int] = {}
    claimed: set[int] = set()

    for role, names in normalized_aliases.items():
        for idx, header in enumerate(normalized):
            if idx not in claimed and header and header in names:
                roles[role] = idx
                claimed.add(idx)
                break

    for role, names in normalized_aliases.items():
        if role in roles:
            continue
        idx = _containment_match(normalized, names, claimed)
        if idx is not None:
            roles[role] = idx
            claimed.add(idx)

    # A per-language column alone satisfies its base role (title_hu for title)
    missing = [r for r in required if r not in roles and not any(k.startswith(f"{r}_") for k in roles)]
    if missing:
        raise ConfigurationError(
            f"required header roles not found: {', '.join(missing)} (headers: {[str(h) for h in headers]})"
        )
    return roles


def _containment_match(normalized: Sequence[str], names: Sequence[str], claimed: set[int]) -> Optional[int]:
    for idx, header in enumerate(normalized):
        if idx in claimed or len(header) < _MIN_CONTAINMENT_LENGTH:
            continue
        for alias in names:
            if len(alias) < _MIN_CONTAINMENT_LENGTH:
                continue
            if alias in header or header in alias:
                return idx
    return None


__all__ = ["HEADER_ALIASES", "REQUIRED_ROLES", "normalize_header", "resolve_header_roles"]
