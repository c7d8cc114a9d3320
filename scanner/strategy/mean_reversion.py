"""Mean reversion "Pinball" — pullbacks into the EMA50/EMA200 value band.

In a secular trend (EMA50 and EMA200 ordered, EMA200 sloping) the band
between the two averages is treated as value.  Entries fire only within
2 % of EMA200, in the direction of the secular trend.
"""

from scanner.strategy.base import StrategyContext, StrategySignal

_MAX_EMA200_DISTANCE = 0.02


class MeanReversionStrategy:
    """Implements ``StrategyProtocol``."""

    strategy_id = "mean_reversion"

    def evaluate(self, context: StrategyContext) -> StrategySignal:
        ind = context.indicators
        price, ema50, ema200, slope = ind.price, ind.ema50, ind.ema200, ind.ema_slope
        if ema200 <= 0:
            return StrategySignal.neutral(self.strategy_id, "EMA200 unavailable")

        distance = abs(price - ema200) / ema200

        if ema50 > ema200 and slope > context.config.flat_slope_degrees:
            if not ema200 <= price <= ema50:
                return StrategySignal.neutral(self.strategy_id, "Uptrend but price outside value band")
            if distance > _MAX_EMA200_DISTANCE:
                return StrategySignal.neutral(
                    self.strategy_id, f"In band but {distance:.1%} from EMA200"
                )
            score = 90 + (5 if ind.rsi < 40 else 0)
            return StrategySignal(
                strategy_id=self.strategy_id,
                signal="LONG",
                score=float(score),
                reason=f"Pinball long: pullback to {distance:.1%} above rising EMA200",
            )

        if ema50 < ema200 and slope < -context.config.flat_slope_degrees:
            if not ema50 <= price <= ema200:
                return StrategySignal.neutral(self.strategy_id, "Downtrend but price outside value band")
            if distance > _MAX_EMA200_DISTANCE:
                return StrategySignal.neutral(
                    self.strategy_id, f"In band but {distance:.1%} from EMA200"
                )
            score = 90 + (5 if ind.rsi > 60 else 0)
            return StrategySignal(
                strategy_id=self.strategy_id,
                signal="SHORT",
                score=float(score),
                reason=f"Pinball short: rally to {distance:.1%} below falling EMA200",
            )

        return StrategySignal.neutral(self.strategy_id, "No secular trend (EMA200 flat or unordered)")
