"""Filename repair candidates for object-storage downloads.

Template files uploaded from different clients end up in storage under names
that were percent-encoded, mangled by a second UTF-8 encoding pass, or stripped
of diacritics. Each candidate here is one guess at the stored key; callers try
them in order through the strategy runner.
"""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass
from urllib.parse import quote

ORIGINAL = "original path"
URL_ENCODED = "URL encoded path"
DOUBLE_UTF8_FIXED = "UTF-8 double-encoding fixed"
ASCII_SAFE = "ASCII-safe path"
CLEAN_ASCII = "clean ASCII path"

_NON_ASCII_RUN = re.compile(r"[^\x00-\x7f]+")
# A triple-encoded accent loses its invisible U+0083 on many copy paths,
# leaving "ÃÂ" where "Ã\x83Â" was stored.
_LOST_C1_RESIDUE = re.compile("ÃÂ")
_MAX_REPAIR_PASSES = 3

_TRANSLITERATION_EXTRAS = {"ß": "ss", "Æ": "AE", "æ": "ae", "Ø": "O", "ø": "o", "Œ": "OE", "œ": "oe", "Ł": "L", "ł": "l"}


@dataclass(frozen=True)
class FilenameCandidate:
    strategy: str
    path: str


def url_encode_path(path: str) -> str:
    """Percent-encode each path segment, keeping the separators."""
    return "/".join(quote(part, safe="!*'()") for part in path.split("/"))


def _mojibake_bytes(text: str) -> bytes:
    out = bytearray()
    for ch in text:
        try:
            out += ch.encode("cp1252")
        except UnicodeEncodeError:
            if ord(ch) > 0xFF:
                raise
            out.append(ord(ch))
    return bytes(out)


def _repair_run(run: str) -> str:
    current = run
    for _ in range(_MAX_REPAIR_PASSES):
        try:
            repaired = _mojibake_bytes(current).decode("utf-8")
        except (UnicodeEncodeError, UnicodeDecodeError):
            break
        if repaired == current:
            break
        current = repaired
    return current


def fix_double_encoded_utf8(text: str) -> str:
    """Undo UTF-8 text that was decoded as cp1252/latin-1 and re-encoded.

    Works per run of non-ASCII characters so correctly encoded characters
    elsewhere in the path stay untouched. ``"KÃ©rdÃ©ssor"`` becomes
    ``"Kérdéssor"``.
    """
    text = _LOST_C1_RESIDUE.sub("Ã\u0083Â", text)
    return _NON_ASCII_RUN.sub(lambda m: _repair_run(m.group(0)), text)


def to_ascii_safe(text: str) -> str:
    """Replace accented Latin letters by their base letters."""
    text = "".join(_TRANSLITERATION_EXTRAS.get(ch, ch) for ch in text)
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def strip_non_ascii(text: str) -> str:
    return _NON_ASCII_RUN.sub("", text)


def filename_candidates(path: str) -> list[FilenameCandidate]:
    """Return repair candidates in attempt order, skipping repeated paths."""
    ordered = [
        FilenameCandidate(ORIGINAL, path),
        FilenameCandidate(URL_ENCODED, url_encode_path(path)),
        FilenameCandidate(DOUBLE_UTF8_FIXED, fix_double_encoded_utf8(path)),
        FilenameCandidate(ASCII_SAFE, to_ascii_safe(path)),
        FilenameCandidate(CLEAN_ASCII, strip_non_ascii(path)),
    ]
    seen: set[str] = set()
    unique: list[FilenameCandidate] = []
    for candidate in ordered:
        if candidate.path in seen:
            continue
        seen.add(candidate.path)
        unique.append(candidate)
    return unique


__all__ = [
    "ASCII_SAFE",
    "CLEAN_ASCII",
    "DOUBLE_UTF8_FIXED",
    "FilenameCandidate",
    "ORIGINAL",
    "URL_ENCODED",
    "filename_candidates",
    "fix_double_encoded_utf8",
    "strip_non_ascii",
    "to_ascii_safe",
    "url_encode_path",
]
