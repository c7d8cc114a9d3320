"""Indicator engine — builds one immutable ``IndicatorSet`` per candle window."""

import logging
import math
from typing import Optional

from scanner.analysis.indicators import (
    calculate_adx,
    calculate_atr,
    calculate_auto_fibs,
    calculate_bandwidth,
    calculate_bollinger,
    calculate_cvd,
    calculate_ema,
    calculate_ema_slope,
    calculate_ichimoku,
    calculate_macd,
    calculate_pivots,
    calculate_rsi,
    calculate_rvol,
    calculate_slope,
    calculate_stoch_rsi,
    calculate_vwap,
    calculate_z_score,
)
from scanner.analysis.models import (
    BollingerValues,
    CandleData,
    IndicatorSeries,
    IndicatorSet,
    MACDValues,
    TrendStatus,
)
from scanner.models.pipeline_config import PipelineConfig

logger = logging.getLogger("scanner.indicators")


def _last(series: list[float], default: float = 0.0) -> float:
    value = series[-1] if series else default
    return default if math.isnan(value) else value


def classify_ema_alignment(
    ema20: float, ema50: float, ema100: float, ema200: float
) -> str:
    """BULLISH for a strictly rising stack, BEARISH strictly falling, else NEUTRAL."""
    if ema20 > ema50 > ema100 > ema200:
        return "BULLISH"
    if ema20 < ema50 < ema100 < ema200:
        return "BEARISH"
    return "NEUTRAL"


def build_indicator_set(
    symbol: str,
    candles: list[CandleData],
    config: PipelineConfig = PipelineConfig(),
) -> Optional[IndicatorSet]:
    """Compute every indicator for *candles* (oldest-first).

    Returns ``None`` when fewer than ``config.min_candles`` bars are
    supplied; callers skip the asset instead of computing on a short
    window.
    """
    if len(candles) < config.min_candles:
        logger.debug(
            "%s: %d candles < %d required — skipping",
            symbol, len(candles), config.min_candles,
        )
        return None

    closes = [c.close for c in candles]
    volumes = [c.volume for c in candles]
    price = closes[-1]

    ema20 = calculate_ema(candles, 20)
    ema50 = calculate_ema(candles, 50)
    ema100 = calculate_ema(candles, 100)
    ema200 = calculate_ema(candles, 200)
    e20, e50, e100, e200 = _last(ema20), _last(ema50), _last(ema100), _last(ema200)

    rsi = calculate_rsi(candles, config.rsi_period)
    line, signal, histogram = calculate_macd(candles)
    upper, middle, lower = calculate_bollinger(candles)
    bandwidth = calculate_bandwidth(upper, middle, lower)
    adx = calculate_adx(candles, config.adx_period)
    cvd = calculate_cvd(candles)

    try:
        ichimoku = calculate_ichimoku(candles)
    except ValueError:
        ichimoku = None

    trend_status = TrendStatus(
        ema_alignment=classify_ema_alignment(e20, e50, e100, e200),
        golden_cross=e50 > e200,
        death_cross=e50 < e200,
    )

    return IndicatorSet(
        symbol=symbol,
        price=price,
        rsi=_last(rsi, 50.0),
        stoch_rsi=calculate_stoch_rsi(rsi, config.rsi_period),
        adx=_last(adx, 20.0),
        atr=calculate_atr(candles, config.atr_period),
        rvol=calculate_rvol(volumes, config.rvol_period),
        vwap=calculate_vwap(candles),
        ema20=e20,
        ema50=e50,
        ema100=e100,
        ema200=e200,
        z_score=calculate_z_score(closes, e200, config.z_period),
        ema_slope=calculate_ema_slope(ema200, config.slope_window),
        macd=MACDValues(
            line=_last(line), signal=_last(signal), histogram=_last(histogram)
        ),
        bollinger=BollingerValues(
            upper=_last(upper, price),
            middle=_last(middle, price),
            lower=_last(lower, price),
            bandwidth=_last(bandwidth),
        ),
        pivots=calculate_pivots(candles),
        fibonacci=calculate_auto_fibs(candles, e200),
        trend_status=trend_status,
        ichimoku=ichimoku,
        cvd=cvd[-1],
        cvd_slope=calculate_slope(cvd, config.slope_window, normalize=False),
        series=IndicatorSeries(
            opens=tuple(c.open for c in candles),
            highs=tuple(c.high for c in candles),
            lows=tuple(c.low for c in candles),
            closes=tuple(closes),
            volumes=tuple(volumes),
            rsi=tuple(rsi),
            macd_histogram=tuple(histogram),
            bandwidth=tuple(bandwidth),
            bb_lower=tuple(lower),
            bb_upper=tuple(upper),
            ema20=tuple(ema20),
            ema50=tuple(ema50),
            ema200=tuple(ema200),
            cvd=tuple(cvd),
        ),
    )
