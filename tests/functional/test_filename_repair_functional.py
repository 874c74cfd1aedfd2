"""Functional tests for filename repair candidates and the strategy runner."""

from __future__ import annotations

import anyio
import pytest

from liftcheck.logic.errors import ResolutionExhausted
from liftcheck.logic.filename_repair import (
    ASCII_SAFE,
    CLEAN_ASCII,
    DOUBLE_UTF8_FIXED,
    ORIGINAL,
    URL_ENCODED,
    filename_candidates,
    fix_double_encoded_utf8,
    strip_non_ascii,
    to_ascii_safe,
    url_encode_path,
)
from liftcheck.logic.strategy_chain import Strategy, run_first_success, run_first_success_async


def test_candidates_for_accented_name__verifies_order_and_dedup():
    """Verifies attempt order and that an unchanged double-fix is skipped."""
    candidates = filename_candidates("templates/Kérdéssor.xlsx")
    # Assert: strategy order without the repeated original path
    assert [c.strategy for c in candidates] == [ORIGINAL, URL_ENCODED, ASCII_SAFE, CLEAN_ASCII]
    # Assert: concrete paths
    assert [c.path for c in candidates] == [
        "templates/Kérdéssor.xlsx",
        "templates/K%C3%A9rd%C3%A9ssor.xlsx",
        "templates/Kerdessor.xlsx",
        "templates/Krdssor.xlsx",
    ]


def test_candidates_for_mojibake_name__verifies_double_encoding_repair_third():
    """Verifies a double-encoded name is repaired by the third attempt."""
    candidates = filename_candidates("templates/KÃ©rdÃ©ssor.xlsx")
    # Assert
    assert candidates[2].strategy == DOUBLE_UTF8_FIXED
    assert candidates[2].path == "templates/Kérdéssor.xlsx"


def test_candidates_for_plain_ascii__verifies_single_attempt():
    """Verifies an ASCII name produces exactly one candidate."""
    candidates = filename_candidates("templates/protocol.xlsx")
    # Assert
    assert [c.strategy for c in candidates] == [ORIGINAL]


def test_url_encode_keeps_separators__verifies_segment_encoding():
    """Verifies each segment is percent-encoded while slashes survive."""
    # Assert
    assert url_encode_path("Átvételi protokoll/v 2.xlsx") == "%C3%81tv%C3%A9teli%20protokoll/v%202.xlsx"


def test_fix_double_encoded_utf8__verifies_triple_and_mixed_input():
    """Verifies repeated encoding passes are unwound and correct text is untouched."""
    # Assert: triple-encoded é
    assert fix_double_encoded_utf8("KÃƒÂ©rdÃƒÂ©ssor") == "Kérdéssor"
    # Assert: already correct characters are preserved
    assert fix_double_encoded_utf8("Prüfung") == "Prüfung"
    # Assert: a mix of correct and mangled runs
    assert fix_double_encoded_utf8("Prüfung-KÃ©rdÃ©s") == "Prüfung-Kérdés"


def test_ascii_transliteration__verifies_safe_and_clean_variants():
    """Verifies accented letters fold to base letters and leftovers can be stripped."""
    # Assert: folding
    assert to_ascii_safe("Abnahmeprüfung Größe") == "Abnahmeprufung Grosse"
    assert to_ascii_safe("Łódź") == "Lodz"
    # Assert: stripping
    assert strip_non_ascii("Abnahmeprüfung") == "Abnahmeprfung"


def test_first_success_wins__verifies_failures_recorded_in_order():
    """Verifies earlier failures are recorded and later strategies are not run."""
    calls: list[str] = []

    def failing(name):
        def _run(value):
            calls.append(name)
            raise LookupError(f"{name} missed {value}")

        return _run

    def succeeding(value):
        calls.append("third")
        return value.upper()

    strategies = [
        Strategy("first", failing("first")),
        Strategy("second", failing("second")),
        Strategy("third", succeeding),
        Strategy("fourth", failing("fourth")),
    ]
    # Act
    outcome = run_first_success(strategies, "key")
    # Assert
    assert outcome.name == "third"
    assert outcome.result == "KEY"
    assert [name for name, _ in outcome.failures] == ["first", "second"]
    assert calls == ["first", "second", "third"]


def test_all_strategies_failing__verifies_exhausted_carries_failures():
    """Verifies exhaustion reports every attempt and the last error."""

    def boom(value):
        raise ValueError(value)

    # Act
    with pytest.raises(ResolutionExhausted) as excinfo:
        run_first_success([Strategy("a", boom), Strategy("b", boom)], "x", label="demo")
    # Assert
    assert [name for name, _ in excinfo.value.failures] == ["a", "b"]
    assert isinstance(excinfo.value.last_error, ValueError)
    assert "demo" in str(excinfo.value)


def test_empty_strategy_list__verifies_exhausted():
    """Verifies an empty chain fails instead of returning nothing."""
    with pytest.raises(ResolutionExhausted) as excinfo:
        run_first_success([], "x")
    # Assert
    assert excinfo.value.failures == []
    assert excinfo.value.last_error is None


def test_async_chain__verifies_first_success_wins():
    """Verifies the async runner awaits strategies in order."""

    async def miss(value):
        raise FileNotFoundError(value)

    async def hit(value):
        return f"found:{value}"

    # Act
    outcome = anyio.run(
        run_first_success_async,
        [Strategy("miss", miss), Strategy("hit", hit)],
        "path",
    )
    # Assert
    assert outcome.name == "hit"
    assert outcome.result == "found:path"
    assert len(outcome.failures) == 1
