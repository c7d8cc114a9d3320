"""Harmonic XABCD pattern detection on fractal pivots."""

from typing import Optional

from scanner.analysis.indicators import find_fractals
from scanner.analysis.models import CandleData
from scanner.structure.models import HarmonicPattern

_RECENT_BARS = 20
_EXTENSION_STOP_XA = 0.13


def _near(value: float, target: float, tolerance: float) -> bool:
    return abs(value - target) <= tolerance


def _classify(b_xa: float, d_xa: float) -> Optional[tuple[str, float]]:
    """Match AB/XA and AD/XA against the canonical ratio sets."""
    if _near(b_xa, 0.618, 0.05) and _near(d_xa, 0.786, 0.05):
        return "GARTLEY", 0.90
    if (_near(b_xa, 0.382, 0.05) or _near(b_xa, 0.5, 0.05)) and _near(d_xa, 0.886, 0.05):
        return "BAT", 0.85
    if _near(b_xa, 0.786, 0.05) and (_near(d_xa, 1.27, 0.07) or _near(d_xa, 1.618, 0.07)):
        return "BUTTERFLY", 0.88
    if 0.382 - 0.05 <= b_xa <= 0.618 and _near(d_xa, 1.618, 0.05):
        return "CRAB", 0.82
    return None


def _merged_pivots(candles: list[CandleData]) -> list[tuple[int, float, str]]:
    """Fractal highs and lows merged chronologically, alternating H/L.

    When two pivots of the same kind follow each other only the more
    extreme one is kept.
    """
    highs = [c.high for c in candles]
    lows = [c.low for c in candles]
    fractal_highs, fractal_lows = find_fractals(highs, lows)
    raw = sorted(
        [(i, p, "H") for i, p in fractal_highs] + [(i, p, "L") for i, p in fractal_lows],
        key=lambda x: (x[0], x[2]),
    )

    pivots: list[tuple[int, float, str]] = []
    for pivot in raw:
        if pivots and pivots[-1][2] == pivot[2]:
            prev = pivots[-1]
            more_extreme = pivot[1] > prev[1] if pivot[2] == "H" else pivot[1] < prev[1]
            if more_extreme:
                pivots[-1] = pivot
            continue
        pivots.append(pivot)
    return pivots


def detect_harmonic_patterns(candles: list[CandleData]) -> list[HarmonicPattern]:
    """Find completed Gartley / Bat / Butterfly / Crab patterns.

    Slides a five-pivot window over alternating fractal pivots.  The
    pattern is bullish when X is a low.  D must print within the last 20
    bars.  PRZ is D; the structural stop sits at X for retracement
    patterns and 0.13 × XA beyond D for the extension patterns.
    """
    pivots = _merged_pivots(candles)
    n = len(candles)
    patterns: list[HarmonicPattern] = []

    for j in range(len(pivots) - 4):
        (_, x, _), (_, a, _), (_, b, _), (_, c, _), (d_idx, d, _) = pivots[j : j + 5]
        if d_idx < n - _RECENT_BARS:
            continue

        xa = abs(a - x)
        if xa == 0:
            continue
        b_xa = abs(a - b) / xa
        d_xa = abs(a - d) / xa

        match = _classify(b_xa, d_xa)
        if match is None:
            continue
        pattern_type, confidence = match
        bullish = x < a

        if pattern_type in ("GARTLEY", "BAT"):
            stop = x
        elif bullish:
            stop = d - _EXTENSION_STOP_XA * xa
        else:
            stop = d + _EXTENSION_STOP_XA * xa

        patterns.append(HarmonicPattern(
            type=pattern_type,
            direction="BULLISH" if bullish else "BEARISH",
            prz=d,
            confidence=confidence,
            stop_loss=stop,
            d_index=d_idx,
        ))

    return patterns
