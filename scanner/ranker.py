"""Opportunity ranker — final gates, score adjustments and ordering.

Stages, in order:

1. Risk shield and minimum composite score.
2. Macro filters (scale only).
3. Staleness against the live price.
4. 1h structural veto against the EMA200.
5. Sort descending, keep the top N.
"""

import logging
from dataclasses import dataclass, replace
from typing import Mapping, Optional

from scanner.macro import MacroContext, apply_macro_filters
from scanner.models.opportunity import Opportunity
from scanner.models.pipeline_config import PipelineConfig
from scanner.risk.market_risk import MarketRisk

logger = logging.getLogger("scanner.ranker")


@dataclass(frozen=True)
class TimeframeContext:
    """Higher-timeframe snapshot used for the structural veto."""

    price: float
    ema200: float


def _append_reason(opportunity: Opportunity, score: float, note: Optional[str]) -> Opportunity:
    reasoning = opportunity.technical_reasoning
    if note:
        reasoning = f"{reasoning} | {note}" if reasoning else note
    return replace(opportunity, confidence_score=score, technical_reasoning=reasoning)


def mtf_penalty(
    side: str,
    context: TimeframeContext,
    config: PipelineConfig = PipelineConfig(),
) -> Optional[float]:
    """Score penalty from the 1h EMA200, or ``None`` for a veto.

    A LONG below the EMA200 (SHORT above) by more than ``mtf_veto_pct`` is
    vetoed.  Closer than that the penalty grows linearly up to
    ``mtf_max_penalty``.  An aligned trade costs nothing.
    """
    if context.ema200 <= 0:
        return 0.0
    distance_pct = (context.price - context.ema200) / context.ema200 * 100
    against = -distance_pct if side == "LONG" else distance_pct
    if against <= 0:
        return 0.0
    if against > config.mtf_veto_pct:
        return None
    return config.mtf_max_penalty * against / config.mtf_veto_pct


def rank_opportunities(
    candidates: list[Opportunity],
    live_prices: Mapping[str, float],
    risk: MarketRisk,
    config: PipelineConfig = PipelineConfig(),
    macro: Optional[MacroContext] = None,
    mtf: Optional[Mapping[str, TimeframeContext]] = None,
) -> list[Opportunity]:
    """Filter, adjust and order one cycle's candidates.

    A symbol missing from *live_prices* skips the staleness check, and one
    missing from *mtf* skips the structural veto.
    """
    if risk.level == "HIGH" and risk.risk_type == "MANIPULATION":
        logger.warning("Risk shield active — discarding %d candidate(s): %s", len(candidates), risk.note)
        return []

    min_score = config.min_score
    if risk.level == "HIGH":
        min_score += config.high_risk_score_penalty

    ranked: list[Opportunity] = []
    for opp in candidates:
        if opp.confidence_score < min_score:
            logger.debug("%s rejected: score %.1f < %.1f", opp.symbol, opp.confidence_score, min_score)
            continue

        if macro is not None:
            score, note = apply_macro_filters(opp.confidence_score, opp.symbol, opp.side, macro, config)
            opp = _append_reason(opp, score, note)

        live = live_prices.get(opp.symbol)
        if live is not None and opp.detection_price > 0:
            moved = abs(live - opp.detection_price) / opp.detection_price * 100
            if moved > config.staleness_pct:
                logger.info(
                    "%s rejected: stale, price moved %.1f%% since detection",
                    opp.symbol, moved,
                )
                continue

        context = mtf.get(opp.symbol) if mtf else None
        if context is not None:
            penalty = mtf_penalty(opp.side, context, config)
            if penalty is None:
                logger.info("%s rejected: 1h structure vetoes %s", opp.symbol, opp.side)
                continue
            if penalty > 0:
                opp = _append_reason(
                    opp,
                    max(opp.confidence_score - penalty, 0.0),
                    f"1h structure against trade (-{penalty:.0f})",
                )

        ranked.append(opp)

    ranked.sort(key=lambda o: o.confidence_score, reverse=True)
    return ranked[: config.top_n]
