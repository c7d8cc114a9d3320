"""Composite scoring — base technical score plus context adjustments."""

from dataclasses import dataclass
from typing import Optional

from scanner.analysis.models import IndicatorSet
from scanner.models.pipeline_config import PipelineConfig
from scanner.structure.models import Divergence, StructureSet

_EMA_ALIGNMENT_POINTS = 15
_RSI_EXTREME_POINTS = 10
_RSI_DIVERGENCE_POINTS = 20
_Z_EXTREME_POINTS = 20
_ORDER_FLOW_POINTS = 15


@dataclass(frozen=True)
class BaseScore:
    score: float
    reasoning: tuple[str, ...]


def score_base(indicators: IndicatorSet, structure: StructureSet) -> BaseScore:
    """Side-agnostic technical score, capped at 100."""
    score = 0.0
    reasoning: list[str] = []

    alignment = indicators.trend_status.ema_alignment
    if alignment != "NEUTRAL":
        score += _EMA_ALIGNMENT_POINTS
        reasoning.append(f"EMA stack {alignment.lower()} (+{_EMA_ALIGNMENT_POINTS})")

    if indicators.rsi < 30 or indicators.rsi > 70:
        score += _RSI_EXTREME_POINTS
        reasoning.append(f"RSI extreme {indicators.rsi:.0f} (+{_RSI_EXTREME_POINTS})")

    if structure.rsi_divergence is not None:
        score += _RSI_DIVERGENCE_POINTS
        reasoning.append(
            f"RSI divergence {structure.rsi_divergence.type.lower()} (+{_RSI_DIVERGENCE_POINTS})"
        )

    if abs(indicators.z_score) > 2:
        score += _Z_EXTREME_POINTS
        reasoning.append(f"Z-score {indicators.z_score:+.2f} beyond 2σ (+{_Z_EXTREME_POINTS})")

    return BaseScore(score=min(score, 100.0), reasoning=tuple(reasoning))


def apply_technical_context(
    score: float,
    indicators: IndicatorSet,
    strategy_id: Optional[str],
    config: PipelineConfig = PipelineConfig(),
) -> float:
    """ADX filter.

    In a range (ADX below ``adx_filter``) strategies that need a trend are
    halved.  In a trend, mean reversion without an RSI extreme keeps 80 %.
    """
    if indicators.adx < config.adx_filter:
        if strategy_id not in config.range_friendly_strategies:
            return score * 0.5
        return score
    if strategy_id == "mean_reversion" and 35 < indicators.rsi < 65:
        return score * 0.8
    return score


def apply_order_flow(
    score: float,
    side: str,
    cvd_divergence: Optional[Divergence],
) -> tuple[float, Optional[str]]:
    """CVD absorption agreeing with *side* adds 15; disagreeing costs 15."""
    if cvd_divergence is None or side not in ("LONG", "SHORT"):
        return score, None
    aligned = cvd_divergence.is_bullish == (side == "LONG")
    if aligned:
        return score + _ORDER_FLOW_POINTS, "Order flow: absorption supports the trade"
    return score - _ORDER_FLOW_POINTS, "Order flow: absorption contradicts the trade"
