"""SMC liquidity — stop-hunt sweeps and order-block returns."""

from typing import Optional

from scanner.structure.models import OrderBlock
from scanner.strategy.base import StrategyContext, StrategySignal

_SWEEP_WINDOW = 20
_GOLDEN_POCKET_TOLERANCE = 0.005
_OB_PROXIMITY_ATR = 1.0


def _in_golden_pocket(price: float, level_618: float, level_65: float) -> bool:
    lo, hi = min(level_618, level_65), max(level_618, level_65)
    return lo * (1 - _GOLDEN_POCKET_TOLERANCE) <= price <= hi * (1 + _GOLDEN_POCKET_TOLERANCE)


def _touched_block(blocks: tuple[OrderBlock, ...], low: float, high: float) -> Optional[OrderBlock]:
    for block in blocks:
        if not block.mitigated and low <= block.top and high >= block.bottom:
            return block
    return None


class SMCLiquidityStrategy:
    """Liquidity sweep + reclaim, or a return into a fresh order block.

    Implements ``StrategyProtocol``.

    A sweep is the current bar piercing the prior 20-bar low (high) and
    closing back inside the range.  Base score 80, adjusted for golden
    pocket location, RSI divergence, volume and a nearby order block.
    A bounce without a sweep or block is not a setup.
    """

    strategy_id = "smc_liquidity"

    def evaluate(self, context: StrategyContext) -> StrategySignal:
        ind = context.indicators
        st = context.structure
        s = ind.series
        if len(s.closes) < _SWEEP_WINDOW + 2:
            return StrategySignal.neutral(self.strategy_id, "Not enough bars for sweep check")

        prior_low = min(s.lows[-_SWEEP_WINDOW - 1 : -1])
        prior_high = max(s.highs[-_SWEEP_WINDOW - 1 : -1])
        close, high, low = s.closes[-1], s.highs[-1], s.lows[-1]

        side: Optional[str] = None
        if low < prior_low and close > prior_low:
            side, swept = "LONG", prior_low
        elif high > prior_high and close < prior_high:
            side, swept = "SHORT", prior_high

        if side is not None:
            long = side == "LONG"
            score = 80
            notes = [f"Swept {'lows' if long else 'highs'} at {swept:.6g} and reclaimed"]

            fib = ind.fibonacci
            if _in_golden_pocket(close, fib.level0_618, fib.level0_65):
                score += 10
                notes.append("golden pocket")
            div = st.rsi_divergence
            if div is not None and div.is_bullish == long:
                score += 5
                notes.append(div.type.lower().replace("_", " ") + " RSI divergence")
            if ind.rvol < 1.2:
                score -= 15
                notes.append("thin volume")
            elif ind.rvol > 2.0:
                score += 10
                notes.append(f"{ind.rvol:.1f}x volume")
            blocks = st.bullish_order_blocks if long else st.bearish_order_blocks
            if any(
                not b.mitigated and abs(b.price - close) <= _OB_PROXIMITY_ATR * ind.atr
                for b in blocks
            ):
                score += 10
                notes.append("order block nearby")

            return StrategySignal(
                strategy_id=self.strategy_id,
                signal=side,
                score=float(min(score, 100)),
                reason=", ".join(notes),
            )

        bull_block = _touched_block(st.bullish_order_blocks, low, high)
        if bull_block is not None and close >= bull_block.bottom:
            return StrategySignal(
                strategy_id=self.strategy_id,
                signal="LONG",
                score=75.0 + (10.0 if ind.rvol > 1.5 else 0.0),
                reason=f"Return into bullish order block ({bull_block.strength:.1f})",
            )
        bear_block = _touched_block(st.bearish_order_blocks, low, high)
        if bear_block is not None and close <= bear_block.top:
            return StrategySignal(
                strategy_id=self.strategy_id,
                signal="SHORT",
                score=75.0 + (10.0 if ind.rvol > 1.5 else 0.0),
                reason=f"Return into bearish order block ({bear_block.strength:.1f})",
            )

        return StrategySignal.neutral(self.strategy_id, "No sweep or order-block return")
