"""Fair value gap detection."""

from scanner.analysis.models import CandleData
from scanner.structure.models import FairValueGap

_MAX_LOOKBACK = 30
_MIN_SIZE_ATR = 0.3
_MAX_GAPS = 5


def _is_filled(candles: list[CandleData], after: int, top: float, bottom: float) -> bool:
    return any(c.low <= top and c.high >= bottom for c in candles[after + 1 :])


def detect_fair_value_gaps(
    candles: list[CandleData],
    atr: float,
) -> tuple[list[FairValueGap], list[FairValueGap]]:
    """Detect three-candle gaps at least 0.3 × ATR wide.

    Bullish: candle 3's low sits above candle 1's high and candle 2 closed
    up.  Bearish is mirrored.  A gap is filled once any candle after the
    third trades into ``[bottom, top]``.

    Returns ``(bullish, bearish)``, each the five largest gaps.
    """
    n = len(candles)
    if n < 3 or atr <= 0:
        return [], []

    lookback = min(_MAX_LOOKBACK, n - 2)
    min_size = _MIN_SIZE_ATR * atr
    bullish: list[FairValueGap] = []
    bearish: list[FairValueGap] = []

    for i in range(n - lookback - 1, n - 1):
        c1, c2, c3 = candles[i - 1], candles[i], candles[i + 1]

        if c2.close > c2.open and c3.low > c1.high:
            bottom, top = c1.high, c3.low
            if top - bottom > min_size:
                bullish.append(FairValueGap(
                    direction="BULLISH",
                    top=top,
                    bottom=bottom,
                    midpoint=(top + bottom) / 2,
                    size=top - bottom,
                    filled=_is_filled(candles, i + 1, top, bottom),
                    index=i,
                ))
        elif c2.close < c2.open and c3.high < c1.low:
            top, bottom = c1.low, c3.high
            if top - bottom > min_size:
                bearish.append(FairValueGap(
                    direction="BEARISH",
                    top=top,
                    bottom=bottom,
                    midpoint=(top + bottom) / 2,
                    size=top - bottom,
                    filled=_is_filled(candles, i + 1, top, bottom),
                    index=i,
                ))

    bullish.sort(key=lambda g: g.size, reverse=True)
    bearish.sort(key=lambda g: g.size, reverse=True)
    return bullish[:_MAX_GAPS], bearish[:_MAX_GAPS]
