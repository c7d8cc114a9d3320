"""Classic chart patterns from the most recent fractals."""

from scanner.analysis.indicators import find_fractals
from scanner.analysis.models import CandleData
from scanner.structure.models import ChartPattern

_SHOULDER_TOLERANCE = 0.02
_DOUBLE_TOLERANCE = 0.015
_WEDGE_CONTRACTION = 0.8


def _head_and_shoulders(highs: list[tuple[int, float]], lows: list[tuple[int, float]]) -> list[ChartPattern]:
    found: list[ChartPattern] = []
    if len(highs) >= 3:
        (_, left), (_, head), (_, right) = highs[-3:]
        if head > left and head > right and abs(left - right) / left < _SHOULDER_TOLERANCE:
            found.append(ChartPattern(
                type="HEAD_SHOULDERS",
                signal="BEARISH",
                confidence=0.85,
                description="Head & shoulders top: shoulders within 2%, head above both",
                price=right,
                invalidation_level=head,
                price_target=right - (head - right),
            ))
    if len(lows) >= 3:
        (_, left), (_, head), (_, right) = lows[-3:]
        if head < left and head < right and abs(left - right) / left < _SHOULDER_TOLERANCE:
            found.append(ChartPattern(
                type="INV_HEAD_SHOULDERS",
                signal="BULLISH",
                confidence=0.85,
                description="Inverse head & shoulders: shoulders within 2%, head below both",
                price=right,
                invalidation_level=head,
                price_target=right + (right - head),
            ))
    return found


def _double_tops_bottoms(highs: list[tuple[int, float]], lows: list[tuple[int, float]]) -> list[ChartPattern]:
    found: list[ChartPattern] = []
    if len(highs) >= 2:
        (_, first), (_, second) = highs[-2:]
        if abs(first - second) / first < _DOUBLE_TOLERANCE:
            found.append(ChartPattern(
                type="DOUBLE_TOP",
                signal="BEARISH",
                confidence=0.75,
                description="Double top: two highs within 1.5%",
                price=max(first, second),
                invalidation_level=max(first, second) * 1.01,
            ))
    if len(lows) >= 2:
        (_, first), (_, second) = lows[-2:]
        if abs(first - second) / first < _DOUBLE_TOLERANCE:
            found.append(ChartPattern(
                type="DOUBLE_BOTTOM",
                signal="BULLISH",
                confidence=0.75,
                description="Double bottom: two lows within 1.5%",
                price=min(first, second),
                invalidation_level=min(first, second) * 0.99,
            ))
    return found


def _wedges(highs: list[tuple[int, float]], lows: list[tuple[int, float]]) -> list[ChartPattern]:
    if len(highs) < 3 or len(lows) < 3:
        return []
    h1, h2, h3 = (p for _, p in highs[-3:])
    l1, l2, l3 = (p for _, p in lows[-3:])
    first_range = h1 - l1
    last_range = h3 - l3
    if first_range <= 0 or last_range >= first_range * _WEDGE_CONTRACTION:
        return []

    if h3 < h2 < h1 and l3 < l2 < l1:
        return [ChartPattern(
            type="FALLING_WEDGE",
            signal="BULLISH",
            confidence=0.80,
            description="Falling wedge: lower highs and lower lows with contracting range",
            price=l3,
            invalidation_level=l3 * 0.98,
        )]
    if h3 > h2 > h1 and l3 > l2 > l1:
        return [ChartPattern(
            type="RISING_WEDGE",
            signal="BEARISH",
            confidence=0.80,
            description="Rising wedge: higher highs and higher lows with contracting range",
            price=h3,
            invalidation_level=h3 * 1.02,
        )]
    return []


def detect_chart_patterns(candles: list[CandleData]) -> list[ChartPattern]:
    """Head & shoulders, double tops/bottoms and wedges from recent fractals."""
    fractal_highs, fractal_lows = find_fractals(
        [c.high for c in candles], [c.low for c in candles]
    )
    return (
        _head_and_shoulders(fractal_highs, fractal_lows)
        + _double_tops_bottoms(fractal_highs, fractal_lows)
        + _wedges(fractal_highs, fractal_lows)
    )
