"""Ichimoku "dragon" — cloud position plus Tenkan/Kijun cross."""

from scanner.analysis.models import IchimokuCloud
from scanner.strategy.base import StrategyContext, StrategySignal

_CROSS_THRESHOLD = 0.0002  # fraction of price
_THICK_CLOUD = 0.005
_OVEREXTENDED_TK = 0.02
_BREAKOUT_BUFFER = 0.001
_MIN_SCORE = 75
_TENKAN, _KIJUN, _SENKOU = 9, 26, 52


def _midpoint(highs: tuple[float, ...], lows: tuple[float, ...], end: int, length: int) -> float:
    start = end - length + 1
    return (max(highs[start : end + 1]) + min(lows[start : end + 1])) / 2


def _previous_breakout(highs: tuple[float, ...], lows: tuple[float, ...], closes: tuple[float, ...], long: bool) -> bool:
    """Whether the bar before the last already sat clear of its cloud on the same side."""
    prev = len(closes) - 2
    at = prev - _KIJUN
    if at - _SENKOU + 1 < 0:
        return False
    tenkan = _midpoint(highs, lows, prev, _TENKAN)
    kijun = _midpoint(highs, lows, prev, _KIJUN)
    span_a = (_midpoint(highs, lows, at, _TENKAN) + _midpoint(highs, lows, at, _KIJUN)) / 2
    span_b = _midpoint(highs, lows, at, _SENKOU)
    if long:
        return closes[prev] > max(span_a, span_b) * (1 + _BREAKOUT_BUFFER) and tenkan > kijun
    return closes[prev] < min(span_a, span_b) * (1 - _BREAKOUT_BUFFER) and tenkan < kijun


def _cloud_position(price: float, cloud: IchimokuCloud) -> str:
    if price > cloud.cloud_top:
        return "ABOVE"
    if price < cloud.cloud_bottom:
        return "BELOW"
    return "INSIDE"


class IchimokuDragonStrategy:
    """Trend-following entries from the Ichimoku cloud.

    Implements ``StrategyProtocol``.

    A fresh TK cross starts at 60 and collects points for cloud side,
    a free chikou, a supportive future cloud and a thick cloud; an
    over-stretched TK gap costs 10.  Scores below 75 stay NEUTRAL.
    Without a cross, a clean kumo breakout with Tenkan over Kijun scores 70;
    it is marked stale when the previous bar had already broken out.
    """

    strategy_id = "ichimoku_dragon"

    def evaluate(self, context: StrategyContext) -> StrategySignal:
        ind = context.indicators
        cloud = ind.ichimoku
        if cloud is None:
            return StrategySignal.neutral(self.strategy_id, "Not enough history for Ichimoku")

        price = ind.price
        position = _cloud_position(price, cloud)
        if position == "INSIDE":
            return StrategySignal.neutral(self.strategy_id, "Price inside the cloud")

        highs, lows = ind.series.highs, ind.series.lows
        prev = len(highs) - 2
        prev_tenkan = _midpoint(highs, lows, prev, _TENKAN)
        prev_kijun = _midpoint(highs, lows, prev, _KIJUN)
        threshold = price * _CROSS_THRESHOLD

        bullish_cross = prev_tenkan <= prev_kijun and cloud.tenkan > cloud.kijun + threshold
        bearish_cross = prev_tenkan >= prev_kijun and cloud.tenkan < cloud.kijun - threshold

        if bullish_cross or bearish_cross:
            long = bullish_cross
            score = 60
            notes = ["TK cross " + ("up" if long else "down")]
            if position == ("ABOVE" if long else "BELOW"):
                score += 20
                notes.append("price " + position.lower() + " cloud")
            if cloud.chikou_free and cloud.chikou_direction == ("BULLISH" if long else "BEARISH"):
                score += 15
                notes.append("chikou free")
            future_bullish = cloud.future_senkou_a > cloud.future_senkou_b
            if future_bullish == long:
                score += 5
                notes.append("future cloud agrees")
            if cloud.cloud_thickness > _THICK_CLOUD:
                score += 5
            if cloud.tk_separation > _OVEREXTENDED_TK:
                score -= 10
                notes.append("TK overextended")

            if score < _MIN_SCORE:
                return StrategySignal.neutral(
                    self.strategy_id, f"TK cross too weak ({score}): " + ", ".join(notes)
                )
            return StrategySignal(
                strategy_id=self.strategy_id,
                signal="LONG" if long else "SHORT",
                score=float(min(score, 100)),
                reason=", ".join(notes),
            )

        if position == "ABOVE" and price > cloud.cloud_top * (1 + _BREAKOUT_BUFFER) and cloud.tenkan > cloud.kijun:
            return StrategySignal(
                strategy_id=self.strategy_id,
                signal="LONG",
                score=70.0,
                reason="Kumo breakout with Tenkan above Kijun",
                is_fresh=not _previous_breakout(highs, lows, ind.series.closes, long=True),
            )
        if position == "BELOW" and price < cloud.cloud_bottom * (1 - _BREAKOUT_BUFFER) and cloud.tenkan < cloud.kijun:
            return StrategySignal(
                strategy_id=self.strategy_id,
                signal="SHORT",
                score=70.0,
                reason="Kumo breakdown with Tenkan below Kijun",
                is_fresh=not _previous_breakout(highs, lows, ind.series.closes, long=False),
            )

        return StrategySignal.neutral(self.strategy_id, f"No cross, price {position.lower()} cloud")
