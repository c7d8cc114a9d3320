"""Confluence engine — scores support/resistance points of interest.

Every structural element contributes a candidate level with a weight.
Levels within ``confluence_tolerance_atr × ATR`` of an existing level
merge into it.  Fib + order-block (+ wall/liquidation) stacks get a
synergy multiplier before ranking.
"""

import math
from dataclasses import dataclass, field
from typing import Literal, Optional

from scanner.analysis.models import FibonacciLevels, Pivots
from scanner.models.pipeline_config import PipelineConfig
from scanner.structure.models import (
    ChartPattern,
    EMPTY_VOLUME_PROFILE,
    FairValueGap,
    HarmonicPattern,
    LiquidationCluster,
    OrderBlock,
    OrderBookWall,
    VolumeProfile,
)

_FIB_WEIGHTS = (
    (0.236, "Fib 0.236", 1),
    (0.382, "Fib 0.382", 2),
    (0.5, "Fib 0.5", 2),
    (0.618, "Fib 0.618 (golden pocket)", 3),
    (0.65, "Fib 0.65 (golden pocket low)", 3),
    (0.786, "Fib 0.786", 2),
    (0.886, "Fib 0.886", 3),
)


@dataclass(frozen=True)
class ConfluencePOI:
    price: float
    score: float
    factors: tuple[str, ...]
    type: Literal["SUPPORT", "RESISTANCE"]


@dataclass(frozen=True)
class ConfluenceAnalysis:
    top_supports: tuple[ConfluencePOI, ...]
    top_resistances: tuple[ConfluencePOI, ...]
    poi_score: float  # best single POI score on either side


@dataclass(frozen=True)
class ConfluenceInputs:
    """Everything the engine scores.  Walls and clusters are optional."""

    price: float
    atr: float
    fibonacci: FibonacciLevels
    pivots: Pivots
    ema200: float
    ema50: float
    volume_profile: VolumeProfile = EMPTY_VOLUME_PROFILE
    bullish_order_blocks: tuple[OrderBlock, ...] = ()
    bearish_order_blocks: tuple[OrderBlock, ...] = ()
    bullish_fvgs: tuple[FairValueGap, ...] = ()
    bearish_fvgs: tuple[FairValueGap, ...] = ()
    harmonic_patterns: tuple[HarmonicPattern, ...] = ()
    chart_patterns: tuple[ChartPattern, ...] = ()
    bid_wall: Optional[OrderBookWall] = None
    ask_wall: Optional[OrderBookWall] = None
    liquidation_clusters: Optional[tuple[LiquidationCluster, ...]] = None


@dataclass
class _Level:
    price: float
    score: float
    factors: list[str] = field(default_factory=list)


class _LevelBook:
    """Mutable accumulator used only while one analysis is being built."""

    def __init__(self, tolerance: float) -> None:
        self._tolerance = tolerance
        self.levels: list[_Level] = []

    def add(self, price: float, score: float, factor: str) -> None:
        for level in self.levels:
            if abs(level.price - price) < self._tolerance:
                level.score += score
                level.factors.append(factor)
                level.price = (level.price + price) / 2
                return
        self.levels.append(_Level(price=price, score=score, factors=[factor]))


def _apply_synergy(levels: list[_Level]) -> None:
    for level in levels:
        has_fib = any(f.startswith("Fib") for f in level.factors)
        has_ob = any(" OB " in f for f in level.factors)
        has_liquidity = any("Wall" in f or "Liq cluster" in f for f in level.factors)
        if has_fib and has_ob and has_liquidity:
            level.score = math.ceil(level.score * 2.0)
            level.factors.append("Fib + OB + liquidity synergy")
        elif has_fib and has_ob:
            level.score = math.ceil(level.score * 1.5)
            level.factors.append("Fib + OB synergy")


def _rank(
    levels: list[_Level],
    price: float,
    kind: Literal["SUPPORT", "RESISTANCE"],
    top_n: int,
) -> tuple[ConfluencePOI, ...]:
    ordered = sorted(
        levels,
        key=lambda lvl: (-lvl.score, -len(lvl.factors), abs(lvl.price - price)),
    )
    return tuple(
        ConfluencePOI(price=lvl.price, score=lvl.score, factors=tuple(lvl.factors), type=kind)
        for lvl in ordered[:top_n]
    )


def compute_confluence(
    inputs: ConfluenceInputs,
    config: PipelineConfig = PipelineConfig(),
) -> ConfluenceAnalysis:
    """Rank the strongest support and resistance levels around ``inputs.price``."""
    price = inputs.price
    tolerance = max(inputs.atr * config.confluence_tolerance_atr, 0.0)
    supports = _LevelBook(tolerance)
    resistances = _LevelBook(tolerance)

    def _side(level: float, score: float, factor: str) -> None:
        (supports if level < price else resistances).add(level, score, factor)

    retracements = inputs.fibonacci.retracements()
    for ratio, name, score in _FIB_WEIGHTS:
        _side(retracements[ratio], score, name)

    pv = inputs.pivots
    for level, name, score, kind in (
        (pv.s2, "Pivot S2", 1, "SUPPORT"),
        (pv.s1, "Pivot S1", 2, "SUPPORT"),
        (pv.p, "Pivot P", 2, "SUPPORT" if price > pv.p else "RESISTANCE"),
        (pv.r1, "Pivot R1", 2, "RESISTANCE"),
        (pv.r2, "Pivot R2", 1, "RESISTANCE"),
    ):
        if kind == "SUPPORT" and level < price:
            supports.add(level, score, name)
        elif kind == "RESISTANCE" and level > price:
            resistances.add(level, score, name)

    _side(inputs.ema200, 2, "EMA200")
    _side(inputs.ema50, 1, "EMA50")

    vp = inputs.volume_profile
    if vp.poc > 0:
        _side(vp.poc, 5, "POC")
        _side(vp.value_area_high, 2, "VAH")
        _side(vp.value_area_low, 2, "VAL")

    for ob in inputs.bullish_order_blocks:
        if not ob.mitigated and ob.price < price:
            supports.add(ob.price, math.ceil(ob.strength / 2.5), f"Bullish OB ({ob.strength:.1f})")
    for ob in inputs.bearish_order_blocks:
        if not ob.mitigated and ob.price > price:
            resistances.add(ob.price, math.ceil(ob.strength / 2.5), f"Bearish OB ({ob.strength:.1f})")

    for fvg in inputs.bullish_fvgs:
        if not fvg.filled and fvg.midpoint < price:
            supports.add(fvg.midpoint, 3, "Bullish FVG")
    for fvg in inputs.bearish_fvgs:
        if not fvg.filled and fvg.midpoint > price:
            resistances.add(fvg.midpoint, 3, "Bearish FVG")

    for pattern in inputs.harmonic_patterns:
        if pattern.direction == "BULLISH":
            supports.add(pattern.prz, 4, f"Bullish {pattern.type} PRZ")
        else:
            resistances.add(pattern.prz, 4, f"Bearish {pattern.type} PRZ")

    for pattern in inputs.chart_patterns:
        if pattern.invalidation_level is None:
            continue
        if pattern.type in ("HEAD_SHOULDERS", "INV_HEAD_SHOULDERS"):
            score = 5
        elif pattern.type.endswith("WEDGE"):
            score = 4
        else:
            score = 3
        book = supports if pattern.signal == "BULLISH" else resistances
        book.add(pattern.invalidation_level, score, f"{pattern.type} pivot")

    if inputs.bid_wall is not None and inputs.bid_wall.strength >= 50:
        supports.add(inputs.bid_wall.price, 6, "Bid Wall")
    if inputs.ask_wall is not None and inputs.ask_wall.strength >= 50:
        resistances.add(inputs.ask_wall.price, 6, "Ask Wall")

    for cluster in inputs.liquidation_clusters or ():
        score = 4 if cluster.strength >= 50 else 3
        if cluster.type == "SHORT_LIQ":
            resistances.add(cluster.midpoint, score, "Short Liq cluster")
        else:
            supports.add(cluster.midpoint, score, "Long Liq cluster")

    _apply_synergy(supports.levels)
    _apply_synergy(resistances.levels)

    top_supports = _rank(supports.levels, price, "SUPPORT", config.confluence_top_n)
    top_resistances = _rank(resistances.levels, price, "RESISTANCE", config.confluence_top_n)
    best = [poi.score for poi in top_supports + top_resistances]
    return ConfluenceAnalysis(
        top_supports=top_supports,
        top_resistances=top_resistances,
        poi_score=max(best) if best else 0.0,
    )
