"""Structure analyzer — runs every detector with an isolated empty fallback."""

import logging
from typing import Callable, TypeVar

from scanner.analysis.models import CandleData, IndicatorSet
from scanner.models.pipeline_config import PipelineConfig
from scanner.structure.chart_patterns import detect_chart_patterns
from scanner.structure.divergence import calculate_reversal_target, detect_divergence
from scanner.structure.fair_value_gaps import detect_fair_value_gaps
from scanner.structure.harmonics import detect_harmonic_patterns
from scanner.structure.liquidity import estimate_liquidation_clusters
from scanner.structure.models import EMPTY_VOLUME_PROFILE, StructureSet
from scanner.structure.order_blocks import detect_order_blocks
from scanner.structure.volume_profile import calculate_volume_profile

logger = logging.getLogger("scanner.structure")

T = TypeVar("T")


def _safe(symbol: str, name: str, fn: Callable[[], T], fallback: T) -> T:
    try:
        return fn()
    except Exception as exc:
        logger.warning("%s: %s detector failed: %s", symbol, name, exc)
        return fallback


def analyze_structure(
    candles: list[CandleData],
    indicators: IndicatorSet,
    config: PipelineConfig = PipelineConfig(),
) -> StructureSet:
    """Build the ``StructureSet`` for one candle window.

    A detector that raises is logged and replaced by its empty result so
    the remaining detectors still contribute.
    """
    symbol = indicators.symbol
    atr = indicators.atr
    series = indicators.series
    lookback = config.divergence_lookback

    bullish_obs, bearish_obs = _safe(
        symbol, "order_blocks", lambda: detect_order_blocks(candles, atr), ([], [])
    )
    bullish_fvgs, bearish_fvgs = _safe(
        symbol, "fair_value_gaps", lambda: detect_fair_value_gaps(candles, atr), ([], [])
    )

    return StructureSet(
        volume_profile=_safe(
            symbol, "volume_profile",
            lambda: calculate_volume_profile(candles, atr),
            EMPTY_VOLUME_PROFILE,
        ),
        bullish_order_blocks=tuple(bullish_obs),
        bearish_order_blocks=tuple(bearish_obs),
        bullish_fvgs=tuple(bullish_fvgs),
        bearish_fvgs=tuple(bearish_fvgs),
        harmonic_patterns=tuple(_safe(
            symbol, "harmonics", lambda: detect_harmonic_patterns(candles), []
        )),
        chart_patterns=tuple(_safe(
            symbol, "chart_patterns", lambda: detect_chart_patterns(candles), []
        )),
        rsi_divergence=_safe(
            symbol, "rsi_divergence",
            lambda: detect_divergence(series.highs, series.lows, series.rsi, "RSI", lookback),
            None,
        ),
        macd_divergence=_safe(
            symbol, "macd_divergence",
            lambda: detect_divergence(
                series.highs, series.lows, series.macd_histogram, "MACD", lookback
            ),
            None,
        ),
        cvd_divergence=_safe(
            symbol, "cvd_divergence",
            lambda: detect_divergence(series.highs, series.lows, series.cvd, "CVD", lookback),
            None,
        ),
        reversal_target=_safe(
            symbol, "reversal_target",
            lambda: calculate_reversal_target(
                series.highs, series.lows, series.closes, series.rsi
            ),
            None,
        ),
        liquidation_clusters=tuple(_safe(
            symbol, "liquidation_clusters",
            lambda: estimate_liquidation_clusters(candles, indicators.price),
            [],
        )),
    )
