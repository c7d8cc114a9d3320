"""Liquidity context — estimated liquidation clusters and order-book walls.

Both are optional enrichments.  Callers that have no depth snapshot
simply pass ``None`` downstream.
"""

from typing import Optional, Sequence

from scanner.analysis.models import CandleData
from scanner.structure.models import LiquidationCluster, OrderBookWall

_CLUSTER_WINDOW = 50
_LEVERAGES = (100, 50, 25)
_MAINTENANCE_BUFFER = 0.002
_CLUSTER_HALF_WIDTH = 0.001
_MAX_CLUSTERS = 5

_WALL_DEPTH = 20
_WALL_MULTIPLIER = 3.0
_FULL_STRENGTH_MULTIPLIER = 10.0  # wall size (x mean level) that rates 100


def _pivot_points(candles: list[CandleData]) -> tuple[list[float], list[float]]:
    highs: list[float] = []
    lows: list[float] = []
    for i in range(2, len(candles) - 2):
        window = candles[i - 2 : i + 3]
        if candles[i].high == max(c.high for c in window):
            highs.append(candles[i].high)
        if candles[i].low == min(c.low for c in window):
            lows.append(candles[i].low)
    return highs, lows


def _merge(clusters: list[LiquidationCluster]) -> list[LiquidationCluster]:
    merged: list[LiquidationCluster] = []
    for cluster in sorted(clusters, key=lambda c: (c.type, c.price_min)):
        last = merged[-1] if merged else None
        if last is not None and last.type == cluster.type and cluster.price_min <= last.price_max:
            merged[-1] = LiquidationCluster(
                price_min=last.price_min,
                price_max=max(last.price_max, cluster.price_max),
                strength=min(last.strength + cluster.strength, 100.0),
                type=last.type,
            )
        else:
            merged.append(cluster)
    return merged


def estimate_liquidation_clusters(
    candles: list[CandleData],
    current_price: float,
) -> list[LiquidationCluster]:
    """Project where leveraged positions opened at recent pivots get liquidated.

    Shorts opened at a pivot high liquidate above it at roughly
    ``high × (1 + 1/lev + buffer)``; longs opened at a pivot low liquidate
    below at ``low × (1 − 1/lev − buffer)``.  Only levels on the correct
    side of *current_price* are kept.  Overlapping bands of the same type
    merge; the five nearest survive.
    """
    recent = candles[-_CLUSTER_WINDOW:]
    if len(recent) < 5 or current_price <= 0:
        return []

    pivot_highs, pivot_lows = _pivot_points(recent)
    clusters: list[LiquidationCluster] = []

    for lev in _LEVERAGES:
        for high in pivot_highs:
            level = high * (1 + 1 / lev + _MAINTENANCE_BUFFER)
            if level > current_price:
                clusters.append(LiquidationCluster(
                    price_min=level * (1 - _CLUSTER_HALF_WIDTH),
                    price_max=level * (1 + _CLUSTER_HALF_WIDTH),
                    strength=float(lev),
                    type="SHORT_LIQ",
                ))
        for low in pivot_lows:
            level = low * (1 - 1 / lev - _MAINTENANCE_BUFFER)
            if level < current_price:
                clusters.append(LiquidationCluster(
                    price_min=level * (1 - _CLUSTER_HALF_WIDTH),
                    price_max=level * (1 + _CLUSTER_HALF_WIDTH),
                    strength=float(lev),
                    type="LONG_LIQ",
                ))

    merged = _merge(clusters)
    merged.sort(key=lambda c: abs(c.midpoint - current_price))
    return merged[:_MAX_CLUSTERS]


def _find_wall(
    levels: Sequence[tuple[float, float]],
    side: str,
) -> Optional[OrderBookWall]:
    top = list(levels[:_WALL_DEPTH])
    if not top:
        return None
    avg = sum(qty for _, qty in top) / len(top)
    price, qty = max(top, key=lambda lvl: lvl[1])
    if avg <= 0 or qty <= avg * _WALL_MULTIPLIER:
        return None
    strength = min(qty / avg / _FULL_STRENGTH_MULTIPLIER * 100, 100.0)
    return OrderBookWall(side=side, price=price, volume=qty, strength=round(strength, 1))


def detect_order_book_walls(
    bids: Sequence[tuple[float, float]],
    asks: Sequence[tuple[float, float]],
) -> tuple[Optional[OrderBookWall], Optional[OrderBookWall]]:
    """Largest bid / ask level when it exceeds 3 × the mean of the top 20.

    Strength scales with that multiple: 5 × the mean rates 50, 10 × or
    more rates 100.

    *bids* and *asks* are ``(price, quantity)`` pairs, best price first.
    Returns ``(bid_wall, ask_wall)``; either may be ``None``.
    """
    return _find_wall(bids, "BID"), _find_wall(asks, "ASK")


def buying_pressure(
    bids: Sequence[tuple[float, float]],
    asks: Sequence[tuple[float, float]],
) -> float:
    """Bid / ask quantity ratio over the top 20 levels (1.0 when asks are empty)."""
    bid_volume = sum(qty for _, qty in bids[:_WALL_DEPTH])
    ask_volume = sum(qty for _, qty in asks[:_WALL_DEPTH])
    return bid_volume / ask_volume if ask_volume > 0 else 1.0
