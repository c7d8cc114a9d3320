"""Order block detection — the last opposing candle before an impulse."""

from scanner.analysis.models import CandleData
from scanner.structure.models import OrderBlock

_MAX_LOOKBACK = 50
_DISPLACEMENT_ATR = 1.5
_IMPULSE_ATR = 1.0
_VOLUME_MULT = 1.2
_MAX_BLOCKS = 5


def _is_mitigated(candles: list[CandleData], after: int, top: float, bottom: float) -> bool:
    """True once a closed candle after *after*, before the current bar, trades back into the body."""
    return any(c.low <= top and c.high >= bottom for c in candles[after + 1 : -1])


def _strength(volume: float, avg_volume: float, displacement: float, atr: float) -> float:
    vol_score = min(volume / avg_volume * 3, 5.0)
    disp_score = min(displacement / atr * 2, 5.0)
    return min(vol_score + disp_score, 10.0)


def detect_order_blocks(
    candles: list[CandleData],
    atr: float,
) -> tuple[list[OrderBlock], list[OrderBlock]]:
    """Detect bullish and bearish order blocks in the recent window.

    A candle at index *i* is a candidate when the close two bars later has
    moved more than 1.5 × ATR away from its close and the candle itself
    traded above 1.2 × the average volume.  A bearish candle followed by an
    up-impulse is a bullish block; a bullish candle followed by a
    down-impulse is a bearish block.  The zone is the candle body.

    The impulse candles and the current bar are excluded from the
    mitigation check, so price returning into a block right now still
    sees it as unmitigated.

    Returns ``(bullish, bearish)``, each the strongest five blocks.
    """
    n = len(candles)
    if n < 5 or atr <= 0:
        return [], []

    avg_volume = sum(c.volume for c in candles) / n
    if avg_volume <= 0:
        return [], []

    lookback = min(_MAX_LOOKBACK, n - 3)
    bullish: list[OrderBlock] = []
    bearish: list[OrderBlock] = []

    for i in range(n - lookback, n - 2):
        candle = candles[i]
        impulse_close = candles[i + 2].close
        displacement = abs(impulse_close - candle.close)
        if displacement <= _DISPLACEMENT_ATR * atr:
            continue
        if candle.volume <= _VOLUME_MULT * avg_volume:
            continue

        top = max(candle.open, candle.close)
        bottom = min(candle.open, candle.close)
        strength = _strength(candle.volume, avg_volume, displacement, atr)

        if impulse_close > candle.close + _IMPULSE_ATR * atr and candle.close <= candle.open:
            direction = "BULLISH"
        elif impulse_close < candle.close - _IMPULSE_ATR * atr and candle.close >= candle.open:
            direction = "BEARISH"
        else:
            continue

        block = OrderBlock(
            direction=direction,
            price=(top + bottom) / 2,
            top=top,
            bottom=bottom,
            strength=strength,
            mitigated=_is_mitigated(candles, i + 2, top, bottom),
            index=i,
        )
        (bullish if direction == "BULLISH" else bearish).append(block)

    bullish.sort(key=lambda b: b.strength, reverse=True)
    bearish.sort(key=lambda b: b.strength, reverse=True)
    return bullish[:_MAX_BLOCKS], bearish[:_MAX_BLOCKS]
