"""First-success-wins runner over an ordered list of named strategies.

Template tiers, filename-repair attempts and spreadsheet fidelity tiers are
each expressed as a list of ``Strategy`` values and evaluated here, so every
fallback ladder shares one failure-recording and logging path.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Sequence, TypeVar

from liftcheck.logic.errors import ResolutionExhausted

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


@dataclass(frozen=True)
class Strategy(Generic[T, R]):
    name: str
    run: Callable[[T], R]


@dataclass(frozen=True)
class ChainOutcome(Generic[R]):
    name: str
    result: R
    failures: tuple[tuple[str, BaseException], ...] = ()


def run_first_success(
    strategies: Sequence[Strategy[T, R]],
    value: T,
    *,
    label: str = "chain",
) -> ChainOutcome[R]:
    """Return the outcome of the first strategy that does not raise.

    Raises ``ResolutionExhausted`` carrying every ``(name, exception)`` pair
    when all strategies fail, or when ``strategies`` is empty.
    """
    failures: list[tuple[str, BaseException]] = []
    for strategy in strategies:
        try:
            result = strategy.run(value)
        except Exception as exc:
            logger.info("%s.strategy_failed name=%s error=%s", label, strategy.name, exc)
            failures.append((strategy.name, exc))
            continue
        logger.info("%s.strategy_succeeded name=%s attempts=%d", label, strategy.name, len(failures) + 1)
        return ChainOutcome(strategy.name, result, tuple(failures))
    raise ResolutionExhausted(_summary(label, failures), failures)


async def run_first_success_async(
    strategies: Sequence[Strategy[T, Awaitable[R]]],
    value: T,
    *,
    label: str = "chain",
) -> ChainOutcome[R]:
    """Async variant of :func:`run_first_success` for awaitable strategies."""
    failures: list[tuple[str, BaseException]] = []
    for strategy in strategies:
        try:
            result = await strategy.run(value)
        except Exception as exc:
            logger.info("%s.strategy_failed name=%s error=%s", label, strategy.name, exc)
            failures.append((strategy.name, exc))
            continue
        logger.info("%s.strategy_succeeded name=%s attempts=%d", label, strategy.name, len(failures) + 1)
        return ChainOutcome(strategy.name, result, tuple(failures))
    raise ResolutionExhausted(_summary(label, failures), failures)


def _summary(label: str, failures: list[tuple[str, Any]]) -> str:
    if not failures:
        return f"{label}: no strategies configured"
    tried = ", ".join(f"{name}: {exc}" for name, exc in failures)
    return f"{label}: all {len(failures)} strategies failed ({tried})"


__all__ = ["ChainOutcome", "Strategy", "run_first_success", "run_first_success_async"]
