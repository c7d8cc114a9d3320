"""Volatility squeeze — compressed Bollinger bandwidth with aligned flow."""

import math

from scanner.strategy.base import StrategyContext, StrategySignal

_SQUEEZE_WINDOW = 50
_SQUEEZE_RATIO = 1.2


class QuantVolatilityStrategy:
    """Trade the release of a Bollinger squeeze.

    Implements ``StrategyProtocol``.  The squeeze holds while bandwidth
    stays within 1.2× its minimum of the previous 50 bars; direction comes
    from price vs VWAP and the 20-SMA, RSI, and the CVD slope.
    """

    strategy_id = "quant_volatility"

    def evaluate(self, context: StrategyContext) -> StrategySignal:
        ind = context.indicators
        history = [
            bw for bw in ind.series.bandwidth[-_SQUEEZE_WINDOW - 1 : -1] if not math.isnan(bw)
        ]
        current = ind.bollinger.bandwidth
        if not history:
            return StrategySignal.neutral(self.strategy_id, "No bandwidth history")

        floor = min(history)
        if current > floor * _SQUEEZE_RATIO:
            return StrategySignal.neutral(
                self.strategy_id, f"No squeeze (bandwidth {current:.2f}% vs floor {floor:.2f}%)"
            )

        price = ind.price
        sma20 = ind.bollinger.middle
        if price > ind.vwap and price > sma20 and ind.rsi > 52:
            if ind.cvd_slope <= 0:
                return StrategySignal.neutral(self.strategy_id, "Squeeze long rejected: CVD falling")
            return StrategySignal(
                strategy_id=self.strategy_id,
                signal="LONG",
                score=80.0,
                reason=f"Squeeze ({current:.2f}%) resolving up above VWAP, RSI {ind.rsi:.0f}",
            )
        if price < ind.vwap and price < sma20 and ind.rsi < 48:
            if ind.cvd_slope >= 0:
                return StrategySignal.neutral(self.strategy_id, "Squeeze short rejected: CVD rising")
            return StrategySignal(
                strategy_id=self.strategy_id,
                signal="SHORT",
                score=80.0,
                reason=f"Squeeze ({current:.2f}%) resolving down below VWAP, RSI {ind.rsi:.0f}",
            )
        return StrategySignal.neutral(self.strategy_id, "Squeeze without directional alignment")
