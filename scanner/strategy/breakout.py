"""Breakout momentum — Donchian break with relative-volume confirmation."""

import math

from scanner.strategy.base import StrategyContext, StrategySignal

_CHANNEL = 20
_MIN_RVOL = 1.5
_CLOSE_STRENGTH = 0.7
_SR_PENALTY = 20
_SR_DISTANCE_ATR = 0.5


class BreakoutMomentumStrategy:
    """Close beyond the prior 20-bar extreme on expanding bands and volume.

    Implements ``StrategyProtocol``.  Breaks on RVOL below 1.5 are
    rejected; a break that runs straight into the next floor pivot loses
    20 points.
    """

    strategy_id = "breakout_momentum"

    def evaluate(self, context: StrategyContext) -> StrategySignal:
        ind = context.indicators
        s = ind.series
        if len(s.closes) < _CHANNEL + 2:
            return StrategySignal.neutral(self.strategy_id, "Not enough bars for channel")

        upper = max(s.highs[-_CHANNEL - 1 : -1])
        lower = min(s.lows[-_CHANNEL - 1 : -1])
        close, high, low = s.closes[-1], s.highs[-1], s.lows[-1]

        if close > upper:
            side = "LONG"
        elif close < lower:
            side = "SHORT"
        else:
            return StrategySignal.neutral(self.strategy_id, "Inside the 20-bar channel")

        if ind.rvol < _MIN_RVOL:
            return StrategySignal.neutral(
                self.strategy_id, f"Low-volume break rejected (RVOL {ind.rvol:.2f})"
            )

        bw_now, bw_prev = s.bandwidth[-1], s.bandwidth[-2]
        if math.isnan(bw_now) or math.isnan(bw_prev) or bw_now <= bw_prev:
            return StrategySignal.neutral(self.strategy_id, "Bands not expanding")

        bar_range = high - low
        strength = (close - low) / bar_range if bar_range > 0 else 0.5
        if side == "LONG" and strength < _CLOSE_STRENGTH:
            return StrategySignal.neutral(self.strategy_id, "Weak close on upside break")
        if side == "SHORT" and strength > 1 - _CLOSE_STRENGTH:
            return StrategySignal.neutral(self.strategy_id, "Weak close on downside break")

        score = 75 + min(ind.rvol * 5, 20)
        reason = f"{'Upside' if side == 'LONG' else 'Downside'} breakout on {ind.rvol:.1f}x volume"

        reach = _SR_DISTANCE_ATR * ind.atr
        pv = ind.pivots
        if side == "LONG":
            blocked = any(close < lvl <= close + reach for lvl in (pv.r1, pv.r2))
        else:
            blocked = any(close - reach <= lvl < close for lvl in (pv.s1, pv.s2))
        if blocked:
            score -= _SR_PENALTY
            reason += ", pivot level directly ahead"

        return StrategySignal(
            strategy_id=self.strategy_id,
            signal=side,
            score=float(score),
            reason=reason,
        )
