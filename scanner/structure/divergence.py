"""Price/oscillator divergence and RSI reversal projections.

The generic detector compares the first and last bar of a short window
for price and the oscillator.  RSI divergences are additionally filtered
by level (a bearish divergence must start above 60 and so on).  For the
CVD source the same geometry is reported as absorption instead.
"""

import math
from typing import Optional, Sequence

from scanner.structure.models import Divergence, ReversalTarget

_REVERSAL_WINDOW = 20
_REVERSAL_RECENT = 5


def detect_divergence(
    highs: Sequence[float],
    lows: Sequence[float],
    oscillator: Sequence[float],
    source: str = "RSI",
    lookback: int = 5,
) -> Optional[Divergence]:
    """Classify the divergence between price and *oscillator* over *lookback* bars.

    Returns ``None`` when the window is too short, contains ``nan``
    oscillator values, or no divergence is present.
    """
    if lookback < 2 or min(len(highs), len(lows), len(oscillator)) < lookback:
        return None

    start, end = -lookback, -1
    osc_start, osc_end = oscillator[start], oscillator[end]
    if math.isnan(osc_start) or math.isnan(osc_end):
        return None

    higher_high = highs[end] > highs[start]
    lower_high = highs[end] < highs[start]
    lower_low = lows[end] < lows[start]
    higher_low = lows[end] > lows[start]
    osc_up = osc_end > osc_start
    osc_down = osc_end < osc_start

    if source == "CVD":
        if lower_low and osc_up:
            return Divergence(
                type="CVD_ABSORPTION_BUY",
                strength=0.95,
                description=(
                    "Absorption (buy): price made a lower low while CVD made a "
                    "higher low; passive bids are absorbing aggressive sellers"
                ),
            )
        if higher_high and osc_down:
            return Divergence(
                type="CVD_ABSORPTION_SELL",
                strength=0.95,
                description=(
                    "Absorption (sell): price made a higher high while CVD made a "
                    "lower high; passive offers are absorbing aggressive buyers"
                ),
            )
        return None

    is_rsi = source == "RSI"

    if higher_high and osc_down and (not is_rsi or osc_start > 60):
        return Divergence(
            type="BEARISH",
            strength=0.8,
            description=f"Regular bearish divergence ({source}): price higher high, {source} lower high",
        )
    if lower_low and osc_up and (not is_rsi or osc_start < 40):
        return Divergence(
            type="BULLISH",
            strength=0.8,
            description=f"Regular bullish divergence ({source}): price lower low, {source} higher low",
        )
    if higher_low and osc_down and (not is_rsi or osc_end > 40):
        return Divergence(
            type="HIDDEN_BULLISH",
            strength=0.9,
            description=f"Hidden bullish divergence ({source}): price higher low, {source} lower low",
        )
    if lower_high and osc_up and (not is_rsi or osc_end < 60):
        return Divergence(
            type="HIDDEN_BEARISH",
            strength=0.9,
            description=f"Hidden bearish divergence ({source}): price lower high, {source} higher high",
        )
    return None


def _rsi_pivots(rsi: Sequence[float], want_low: bool) -> list[int]:
    idx: list[int] = []
    for i in range(2, len(rsi) - 2):
        window = (rsi[i - 2], rsi[i - 1], rsi[i + 1], rsi[i + 2])
        if want_low and all(rsi[i] < v for v in window):
            idx.append(i)
        elif not want_low and all(rsi[i] > v for v in window):
            idx.append(i)
    return idx


def calculate_reversal_target(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    rsi: Sequence[float],
) -> Optional[ReversalTarget]:
    """Cardwell positive / negative reversal projection.

    Positive reversal: the last two RSI lows W then Y where price at Y is
    higher than at W but RSI at Y is lower.  Target = X + (Y − W) with X
    the highest high between them.  The negative reversal mirrors this on
    RSI highs.  Y must be within the last five bars of the window.
    """
    window = min(_REVERSAL_WINDOW, len(closes), len(rsi))
    if window < 5:
        return None
    rsi_w = list(rsi[-window:])
    if any(math.isnan(v) for v in rsi_w):
        return None
    highs_w = list(highs[-window:])
    lows_w = list(lows[-window:])

    troughs = _rsi_pivots(rsi_w, want_low=True)
    if len(troughs) >= 2:
        w, y = troughs[-2], troughs[-1]
        if y >= window - _REVERSAL_RECENT and lows_w[y] > lows_w[w] and rsi_w[y] < rsi_w[w]:
            x = max(highs_w[w : y + 1])
            return ReversalTarget(
                type="POSITIVE",
                target_price=x + (lows_w[y] - lows_w[w]),
                pattern="Cardwell positive reversal (price higher low, RSI lower low)",
            )

    peaks = _rsi_pivots(rsi_w, want_low=False)
    if len(peaks) >= 2:
        w, y = peaks[-2], peaks[-1]
        if y >= window - _REVERSAL_RECENT and highs_w[y] < highs_w[w] and rsi_w[y] > rsi_w[w]:
            x = min(lows_w[w : y + 1])
            return ReversalTarget(
                type="NEGATIVE",
                target_price=x - (highs_w[w] - highs_w[y]),
                pattern="Cardwell negative reversal (price lower high, RSI higher high)",
            )

    return None
