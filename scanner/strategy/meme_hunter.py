"""Meme hunter — aggressive momentum on volume spikes."""

from scanner.strategy.base import StrategyContext, StrategySignal

_DEAD_RVOL = 1.0
_SPIKE_RVOL = 1.8


class MemeHunterStrategy:
    """Relative-volume spike plus RSI extremity.

    Implements ``StrategyProtocol``.  Below-baseline volume is "dead"
    and always NEUTRAL.  A capitulation wick below the lower band with
    StochRSI K under 15 is bought as a dip.
    """

    strategy_id = "meme_hunter"

    def evaluate(self, context: StrategyContext) -> StrategySignal:
        ind = context.indicators
        if ind.rvol < _DEAD_RVOL:
            return StrategySignal.neutral(self.strategy_id, f"Dead volume (RVOL {ind.rvol:.2f})")

        price = ind.price
        if ind.rvol > _SPIKE_RVOL:
            boost = min(ind.rvol * 3, 15)
            if price > ind.ema20 and price > ind.vwap and ind.rsi > 55:
                return StrategySignal(
                    strategy_id=self.strategy_id,
                    signal="LONG",
                    score=80 + boost,
                    reason=f"Volume spike {ind.rvol:.1f}x with RSI {ind.rsi:.0f} above VWAP",
                )
            if price < ind.ema20 and price < ind.vwap and ind.rsi < 45:
                return StrategySignal(
                    strategy_id=self.strategy_id,
                    signal="SHORT",
                    score=80 + boost,
                    reason=f"Volume dump {ind.rvol:.1f}x with RSI {ind.rsi:.0f} below VWAP",
                )

        if price < ind.bollinger.lower and ind.stoch_rsi.k < 15:
            return StrategySignal(
                strategy_id=self.strategy_id,
                signal="LONG",
                score=80.0,
                reason=f"Dip below lower band, StochRSI K {ind.stoch_rsi.k:.0f}",
            )

        return StrategySignal.neutral(self.strategy_id, "No momentum spike")
