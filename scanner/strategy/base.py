"""Strategy protocol and shared signal types.

Defines the interface every strategy runner implements.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Protocol, runtime_checkable

from scanner.analysis.models import IndicatorSet
from scanner.models.pipeline_config import PipelineConfig
from scanner.structure.models import StructureSet

Side = Literal["LONG", "SHORT", "NEUTRAL"]


@dataclass(frozen=True)
class StrategyContext:
    """Everything a runner may read for one asset snapshot."""

    symbol: str
    indicators: IndicatorSet
    structure: StructureSet
    config: PipelineConfig = field(default_factory=PipelineConfig)


@dataclass(frozen=True)
class StrategySignal:
    """Directional verdict of one runner.

    *score* is the raw 0-100 score before regime weighting.
    """

    strategy_id: str
    signal: Side
    score: float
    reason: str
    is_fresh: bool = True

    @classmethod
    def neutral(cls, strategy_id: str, reason: str) -> StrategySignal:
        return cls(strategy_id=strategy_id, signal="NEUTRAL", score=0.0, reason=reason)


@runtime_checkable
class StrategyProtocol(Protocol):
    """Interface that all strategy runners must satisfy."""

    strategy_id: str

    def evaluate(self, context: StrategyContext) -> StrategySignal:
        """Score the snapshot; return a NEUTRAL signal when there is no setup."""
        ...
