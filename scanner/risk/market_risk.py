"""Global market risk — volatility and manipulation proxy from a reference asset.

Computed once per scan cycle from 1h candles of a high-liquidity pair and
shared read-only by every per-asset evaluation.
"""

from dataclasses import dataclass
from typing import Literal

from scanner.analysis.models import CandleData
from scanner.models.pipeline_config import PipelineConfig


@dataclass(frozen=True)
class MarketRisk:
    level: Literal["LOW", "MEDIUM", "HIGH"]
    note: str
    risk_type: Literal["NORMAL", "VOLATILITY", "MANIPULATION"]


def get_market_risk(
    candles: list[CandleData],
    config: PipelineConfig = PipelineConfig(),
) -> MarketRisk:
    """Compare the latest bar against the trailing ``risk_window`` bars.

    Range is ``(high - low) / open``.  Checks, first match wins:

        volume > 3.5× avg                  → HIGH / MANIPULATION
        range > 3× avg or > 2.5 %          → HIGH / VOLATILITY
        range > 1.8× avg                   → MEDIUM / VOLATILITY
        volume > 2× avg                    → MEDIUM / MANIPULATION
        otherwise                          → LOW / NORMAL

    Raises ``ValueError`` if fewer than ``risk_window + 1`` candles.
    """
    window = config.risk_window
    if len(candles) < window + 1:
        raise ValueError(
            f"Need at least {window + 1} candles for market risk, got {len(candles)}"
        )

    current = candles[-1]
    previous = candles[-window - 1 : -1]

    ranges = [(c.high - c.low) / c.open for c in previous if c.open > 0]
    avg_range = sum(ranges) / len(ranges) if ranges else 0.0
    current_range = (current.high - current.low) / current.open if current.open > 0 else 0.0

    avg_volume = sum(c.volume for c in previous) / len(previous)
    volume_ratio = current.volume / avg_volume if avg_volume > 0 else 0.0

    if volume_ratio > config.manipulation_volume_mult:
        return MarketRisk(
            level="HIGH",
            note=f"Reference volume {volume_ratio:.1f}x average: possible manipulation",
            risk_type="MANIPULATION",
        )
    if current_range > avg_range * config.volatility_range_mult or current_range > config.volatility_abs_range:
        return MarketRisk(
            level="HIGH",
            note=f"Reference range {current_range:.2%} vs average {avg_range:.2%}: unstable market",
            risk_type="VOLATILITY",
        )
    if current_range > avg_range * config.medium_range_mult:
        return MarketRisk(level="MEDIUM", note="Volatility above average", risk_type="VOLATILITY")
    if volume_ratio > config.medium_volume_mult:
        return MarketRisk(level="MEDIUM", note="Reference volume elevated", risk_type="MANIPULATION")
    return MarketRisk(level="LOW", note="Stable conditions", risk_type="NORMAL")
