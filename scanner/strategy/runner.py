"""Runs the selected strategies and folds them into one weighted vote."""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from scanner.strategy.base import StrategyContext, StrategyProtocol, StrategySignal
from scanner.strategy.registry import get_strategy
from scanner.strategy.selector import StrategySelection

logger = logging.getLogger("scanner.strategy")


@dataclass(frozen=True)
class WeightedSignal:
    signal: StrategySignal
    weight: float
    weighted_score: float


@dataclass(frozen=True)
class StrategyRunResult:
    primary: Optional[StrategySignal]
    primary_weighted_score: float
    signals: tuple[WeightedSignal, ...]
    notes: tuple[str, ...]
    score_boost: float


def run_strategies(
    selection: StrategySelection,
    context: StrategyContext,
    resolve: Callable[[str], StrategyProtocol] = get_strategy,
) -> StrategyRunResult:
    """Evaluate every active strategy and pick the primary.

    Raw scores are multiplied by the regime weight.  The highest weighted
    directional signal becomes primary.  Every weighted score above the
    materiality threshold adds a note and accumulates into a boost capped
    at ``boost_cap``.  A runner that raises is logged and skipped.
    """
    config = context.config
    weighted: list[WeightedSignal] = []
    notes: list[str] = []
    boost = 0.0
    primary: Optional[WeightedSignal] = None

    for entry in selection.active_strategies:
        if entry.weight <= 0:
            continue
        try:
            signal = resolve(entry.id).evaluate(context)
        except Exception as exc:
            logger.warning("%s: strategy '%s' failed: %s", context.symbol, entry.id, exc)
            continue

        if signal.signal == "NEUTRAL":
            logger.debug("%s: %s neutral — %s", context.symbol, entry.id, signal.reason)
            continue

        item = WeightedSignal(signal=signal, weight=entry.weight, weighted_score=signal.score * entry.weight)
        weighted.append(item)
        if primary is None or item.weighted_score > primary.weighted_score:
            primary = item
        if item.weighted_score > config.materiality_threshold:
            notes.append(f"{entry.id}: {signal.signal} ({signal.score:.0f}) - {signal.reason}")
            boost += item.weighted_score

    return StrategyRunResult(
        primary=primary.signal if primary else None,
        primary_weighted_score=primary.weighted_score if primary else 0.0,
        signals=tuple(weighted),
        notes=tuple(notes),
        score_boost=min(boost, config.boost_cap),
    )
