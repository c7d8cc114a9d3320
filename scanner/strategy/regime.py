"""Market regime classification.

First match wins, in this order:

    1. TRENDING  — ADX ≥ trend threshold and EMA stack monotonic
    2. RANGING   — Bollinger bandwidth compressed and ADX below range threshold
    3. VOLATILE  — last bar's range is a multiple of ATR
    4. EXTREME   — |Z| or RSI beyond the extreme thresholds
    5. RANGING   — fallback
"""

from dataclasses import dataclass
from typing import Literal

from scanner.analysis.models import IndicatorSet
from scanner.models.pipeline_config import PipelineConfig

Regime = Literal["TRENDING", "RANGING", "VOLATILE", "EXTREME"]


@dataclass(frozen=True)
class RegimeMetrics:
    ema_alignment: str
    adx: float
    bandwidth: float
    range_atr_ratio: float
    z_score: float
    rsi: float
    ema_slope: float


@dataclass(frozen=True)
class MarketRegime:
    regime: Regime
    metrics: RegimeMetrics
    reasoning: str


def _range_atr_ratio(indicators: IndicatorSet) -> float:
    series = indicators.series
    if not series.highs or indicators.atr <= 0:
        return 0.0
    return (series.highs[-1] - series.lows[-1]) / indicators.atr


def detect_regime(
    indicators: IndicatorSet,
    config: PipelineConfig = PipelineConfig(),
) -> MarketRegime:
    """Classify the snapshot into one of the four regimes."""
    metrics = RegimeMetrics(
        ema_alignment=indicators.trend_status.ema_alignment,
        adx=indicators.adx,
        bandwidth=indicators.bollinger.bandwidth,
        range_atr_ratio=_range_atr_ratio(indicators),
        z_score=indicators.z_score,
        rsi=indicators.rsi,
        ema_slope=indicators.ema_slope,
    )

    stacked = metrics.ema_alignment != "NEUTRAL"
    if metrics.adx >= config.trend_adx and stacked:
        return MarketRegime(
            "TRENDING", metrics,
            f"ADX {metrics.adx:.1f} with {metrics.ema_alignment.lower()} EMA stack",
        )

    if metrics.bandwidth < config.compression_bandwidth and metrics.adx < config.range_adx:
        return MarketRegime(
            "RANGING", metrics,
            f"Bandwidth {metrics.bandwidth:.2f}% compressed, ADX {metrics.adx:.1f}",
        )

    if metrics.range_atr_ratio > config.volatility_expansion:
        return MarketRegime(
            "VOLATILE", metrics,
            f"Last bar range {metrics.range_atr_ratio:.1f}x ATR",
        )

    if (
        abs(metrics.z_score) > config.extreme_z
        or metrics.rsi < config.extreme_rsi_low
        or metrics.rsi > config.extreme_rsi_high
    ):
        return MarketRegime(
            "EXTREME", metrics,
            f"Z {metrics.z_score:.2f}, RSI {metrics.rsi:.1f} at extremes",
        )

    return MarketRegime("RANGING", metrics, "No directional or volatility edge")
