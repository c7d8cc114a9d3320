"""Per-asset pipeline — candles in, at most one ``Opportunity`` out.

Pure and synchronous: everything it reads arrives as an argument, so
assets can be evaluated in any order, on any thread.
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional

from scanner.analysis.indicator_engine import build_indicator_set
from scanner.analysis.models import CandleData, IndicatorSet
from scanner.models.opportunity import (
    EntryZone,
    Opportunity,
    OpportunityMetrics,
    TakeProfitLevels,
)
from scanner.models.pipeline_config import PipelineConfig
from scanner.risk.dca_planner import DCAPlan, DCARequest, plan_dca
from scanner.risk.position_sizer import calculate_kelly_size, volatility_adjusted_leverage
from scanner.risk.tiers import calculate_fundamental_tier
from scanner.strategy.base import StrategyContext, StrategySignal
from scanner.strategy.regime import detect_regime
from scanner.strategy.runner import run_strategies
from scanner.strategy.scorer import apply_order_flow, apply_technical_context, score_base
from scanner.strategy.selector import select_strategies
from scanner.structure.analyzer import analyze_structure
from scanner.structure.confluence import ConfluenceInputs, compute_confluence
from scanner.structure.models import OrderBookWall, StructureSet

logger = logging.getLogger("scanner.pipeline")

_MIN_RR_FOR_KELLY = 0.1
_PRESSURE_BAND = 0.2  # bid/ask ratios within 1 ± this are balanced


@dataclass(frozen=True)
class OrderBookContext:
    """Walls and bid/ask depth ratio from a depth snapshot.  Any may be missing."""

    bid_wall: Optional[OrderBookWall] = None
    ask_wall: Optional[OrderBookWall] = None
    buying_pressure: Optional[float] = None


def _predictive_targets(
    side: str,
    price: float,
    structure: StructureSet,
    order_book: Optional[OrderBookContext],
) -> tuple[Optional[float], Optional[float], Optional[float]]:
    """``(reversal, wall, liquidation)`` targets that agree with *side*."""
    long = side == "LONG"

    reversal = None
    target = structure.reversal_target
    if target is not None and target.type == ("POSITIVE" if long else "NEGATIVE"):
        reversal = target.target_price

    wall = None
    if order_book is not None:
        opposite = order_book.ask_wall if long else order_book.bid_wall
        if opposite is not None:
            wall = opposite.price

    liquidation = None
    wanted = "SHORT_LIQ" if long else "LONG_LIQ"
    clusters = [c for c in structure.liquidation_clusters if c.type == wanted]
    if clusters:
        nearest = min(clusters, key=lambda c: abs(c.midpoint - price))
        liquidation = nearest.midpoint

    return reversal, wall, liquidation


def is_chasing(signal: StrategySignal, plan: DCAPlan, timeframe: str, config: PipelineConfig) -> bool:
    """A stale signal whose nearest entry is already too far from price."""
    if signal.is_fresh:
        return False
    return abs(plan.entries[0].distance_pct) > config.chase_limit_for(timeframe)


def _book_note(side: str, order_book: Optional[OrderBookContext]) -> Optional[str]:
    if order_book is None or order_book.buying_pressure is None:
        return None
    pressure = order_book.buying_pressure
    if abs(pressure - 1.0) <= _PRESSURE_BAND:
        return None
    bid_heavy = pressure > 1.0
    verdict = "supports" if bid_heavy == (side == "LONG") else "leans against"
    return f"Order book {verdict} {side} (bid/ask {pressure:.2f})"


def _metrics(
    indicators: IndicatorSet,
    regime: str,
    poi_score: float,
    risk_reward: float,
    rr_red_flag: bool,
) -> OpportunityMetrics:
    return OpportunityMetrics(
        rsi=indicators.rsi,
        adx=indicators.adx,
        atr=indicators.atr,
        rvol=indicators.rvol,
        z_score=indicators.z_score,
        ema_slope=indicators.ema_slope,
        vwap=indicators.vwap,
        regime=regime,
        ema_alignment=indicators.trend_status.ema_alignment,
        poi_score=poi_score,
        risk_reward=risk_reward,
        rr_red_flag=rr_red_flag,
    )


def evaluate_asset(
    symbol: str,
    candles: list[CandleData],
    config: PipelineConfig = PipelineConfig(),
    timeframe: str = "15m",
    order_book: Optional[OrderBookContext] = None,
    timestamp: Optional[int] = None,
) -> Optional[Opportunity]:
    """Run the full per-asset pipeline.

    Returns ``None`` when the history is too short, no strategy takes a
    side, or a stale signal would have to chase price.  The composite score is not gated here; the ranker decides.
    """
    indicators = build_indicator_set(symbol, candles, config)
    if indicators is None:
        logger.debug("%s: skipped, %d candles < %d", symbol, len(candles), config.min_candles)
        return None

    structure = analyze_structure(candles, indicators, config)
    regime = detect_regime(indicators, config)
    selection = select_strategies(regime, config)
    context = StrategyContext(symbol=symbol, indicators=indicators, structure=structure, config=config)
    run = run_strategies(selection, context)

    primary = run.primary
    if primary is None or primary.signal == "NEUTRAL":
        logger.debug("%s: no directional signal in %s regime", symbol, regime.regime)
        return None
    side = primary.signal

    # Composite score
    base = score_base(indicators, structure)
    reasoning = [f"Regime {regime.regime}: {regime.reasoning}"]
    reasoning.append(f"{primary.strategy_id}: {primary.reason}")
    reasoning.extend(base.reasoning)
    reasoning.extend(run.notes)

    score = base.score + primary.score + run.score_boost
    score = apply_technical_context(score, indicators, primary.strategy_id, config)
    score, flow_note = apply_order_flow(score, side, structure.cvd_divergence)
    if flow_note:
        reasoning.append(flow_note)
    book_note = _book_note(side, order_book)
    if book_note:
        reasoning.append(book_note)
    score = max(0.0, min(score, 100.0))

    # Levels and plan
    confluence = compute_confluence(
        ConfluenceInputs(
            price=indicators.price,
            atr=indicators.atr,
            fibonacci=indicators.fibonacci,
            pivots=indicators.pivots,
            ema200=indicators.ema200,
            ema50=indicators.ema50,
            volume_profile=structure.volume_profile,
            bullish_order_blocks=structure.bullish_order_blocks,
            bearish_order_blocks=structure.bearish_order_blocks,
            bullish_fvgs=structure.bullish_fvgs,
            bearish_fvgs=structure.bearish_fvgs,
            harmonic_patterns=structure.harmonic_patterns,
            chart_patterns=structure.chart_patterns,
            bid_wall=order_book.bid_wall if order_book else None,
            ask_wall=order_book.ask_wall if order_book else None,
            liquidation_clusters=structure.liquidation_clusters or None,
        ),
        config,
    )

    tier = calculate_fundamental_tier(symbol, primary.strategy_id == "meme_hunter", config)
    reversal, wall, liquidation = _predictive_targets(side, indicators.price, structure, order_book)
    plan = plan_dca(
        DCARequest(
            signal_price=indicators.price,
            confluence=confluence,
            atr=indicators.atr,
            side=side,
            regime=regime.regime,
            fibonacci=indicators.fibonacci,
            tier=tier,
            harmonic_patterns=structure.harmonic_patterns,
            reversal_target=reversal,
            wall_price=wall,
            liquidation_target=liquidation,
        ),
        config,
    )

    if is_chasing(primary, plan, timeframe, config):
        logger.info(
            "%s: rejected, stale %s signal with nearest entry %.2f%% away",
            symbol, primary.strategy_id, abs(plan.entries[0].distance_pct),
        )
        return None

    if plan.proximity_penalty > 0:
        score = max(score - plan.proximity_penalty, 0.0)
        reasoning.append(f"Entry proximity penalty -{plan.proximity_penalty:.0f}")
    reasoning.extend(plan.warnings)

    kelly = calculate_kelly_size(score / 100, max(plan.risk_reward, _MIN_RR_FOR_KELLY))
    leverage = volatility_adjusted_leverage(indicators.atr, indicators.price)

    entry_prices = [e.price for e in plan.entries]
    logger.info(
        "%s: %s %s score %.1f (%s, tier %s, R:R %.2f)",
        symbol, side, primary.strategy_id, score, regime.regime, tier, plan.risk_reward,
    )

    return Opportunity(
        symbol=symbol,
        side=side,
        confidence_score=round(score, 1),
        entry_zone=EntryZone(
            min=min(entry_prices),
            max=max(entry_prices),
            current_price=indicators.price,
        ),
        stop_loss=plan.stop_loss,
        take_profits=TakeProfitLevels(
            tp1=plan.take_profits[0].price,
            tp2=plan.take_profits[1].price,
            tp3=plan.take_profits[2].price,
        ),
        dca_plan=plan,
        metrics=_metrics(indicators, regime.regime, confluence.poi_score, plan.risk_reward, plan.rr_red_flag),
        technical_reasoning=" | ".join(reasoning),
        timestamp=timestamp if timestamp is not None else int(time.time() * 1000),
        strategy=primary.strategy_id,
        tier=tier,
        timeframe=timeframe,
        detection_price=indicators.price,
        kelly_size=kelly,
        recommended_leverage=leverage,
    )
