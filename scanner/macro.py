"""Macro context — reference-asset regime and stablecoin liquidity trend.

Computed once per scan cycle and used only to scale composite scores.
"""

import logging
from dataclasses import dataclass
from typing import Literal, Optional

from scanner.analysis.indicators import ema_series
from scanner.analysis.models import CandleData
from scanner.models.pipeline_config import PipelineConfig

logger = logging.getLogger("scanner.macro")

MacroRegime = Literal["BULL", "BEAR", "RANGE"]
DominanceTrend = Literal["RISING", "FALLING", "STABLE"]

_LONG_BEAR_FACTOR = 0.7
_LONG_RANGE_FACTOR = 0.9
_SHORT_WEEKLY_BULL_PENALTY = 30.0
_SHORT_DAILY_BULL_PENALTY = 20.0
_LIQUIDITY_DRAIN_FACTOR = 0.75
_DOMINANCE_THRESHOLD_PCT = 1.0


@dataclass(frozen=True)
class MacroContext:
    btc_regime: MacroRegime
    btc_weekly_regime: Optional[MacroRegime] = None
    usdt_dominance_trend: DominanceTrend = "STABLE"


def classify_btc_regime(candles: list[CandleData]) -> MacroRegime:
    """Classify the reference asset from its EMA50 / EMA200 structure.

    Golden cross with price above both EMAs is BULL, death cross with price
    below both is BEAR.  Otherwise the side of EMA200 decides, and a price
    sitting exactly on EMA200 is RANGE.

    Raises ``ValueError`` with fewer than 200 candles.
    """
    if len(candles) < 200:
        raise ValueError(f"Need at least 200 candles for the macro regime, got {len(candles)}")

    closes = [c.close for c in candles]
    ema50 = ema_series(closes, 50)[-1]
    ema200 = ema_series(closes, 200)[-1]
    price = closes[-1]

    if ema50 > ema200 and price > ema50 and price > ema200:
        return "BULL"
    if ema50 < ema200 and price < ema50 and price < ema200:
        return "BEAR"
    if price > ema200:
        return "BULL"
    if price < ema200:
        return "BEAR"
    return "RANGE"


def classify_dominance_trend(values: list[float]) -> DominanceTrend:
    """Percent change of the last reading against the first.

    Moves within 1 % either way are STABLE.
    """
    if len(values) < 2 or values[0] <= 0:
        return "STABLE"
    change = (values[-1] - values[0]) / values[0] * 100
    if change > _DOMINANCE_THRESHOLD_PCT:
        return "RISING"
    if change < -_DOMINANCE_THRESHOLD_PCT:
        return "FALLING"
    return "STABLE"

def apply_macro_filters(
    score: float,
    symbol: str,
    side: str,
    macro: MacroContext,
    config: PipelineConfig = PipelineConfig(),
) -> tuple[float, Optional[str]]:
    """Scale *score* by the macro backdrop.

    The reference asset itself is exempt, and so is any setup scoring at
    least ``decoupled_runner_score``.  The result never drops below zero.
    """
    if score >= config.decoupled_runner_score:
        return score, "Decoupled runner: macro filters skipped"

    adjusted = score
    notes: list[str] = []
    is_reference = "BTC" in symbol

    if not is_reference and side == "LONG":
        if macro.btc_regime == "BEAR":
            adjusted *= _LONG_BEAR_FACTOR
            notes.append("BTC bear regime")
        elif macro.btc_regime == "RANGE":
            adjusted *= _LONG_RANGE_FACTOR
            notes.append("BTC ranging")

    if not is_reference and side == "SHORT":
        if macro.btc_weekly_regime == "BULL":
            adjusted -= _SHORT_WEEKLY_BULL_PENALTY
            notes.append("shorting a weekly BTC bull")
        elif macro.btc_regime == "BULL":
            adjusted -= _SHORT_DAILY_BULL_PENALTY
            notes.append("shorting a daily BTC bull")

    if macro.usdt_dominance_trend == "RISING" and side == "LONG":
        adjusted *= _LIQUIDITY_DRAIN_FACTOR
        notes.append("USDT dominance rising")

    adjusted = max(adjusted, 0.0)
    if not notes:
        return adjusted, None
    return adjusted, "Macro: " + ", ".join(notes)
