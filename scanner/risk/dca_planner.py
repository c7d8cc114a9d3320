"""DCA planner — three-entry ladder, stop-loss and take-profits.

Entries come from side-appropriate confluence POIs, topped up with
Fibonacci and then ATR fallbacks.  The stop is the tier ATR stop around
the weighted-average entry unless an aligned harmonic pattern supplies a
structural invalidation.  Take-profits come from opposite POIs and
optional predictive targets, filled out in 2 × ATR steps.
"""

import logging
from dataclasses import dataclass
from typing import Iterator, Literal, Optional

from scanner.analysis.models import FibonacciLevels
from scanner.models.pipeline_config import PipelineConfig
from scanner.risk.tiers import FundamentalTier, tier_sl_multiplier
from scanner.structure.confluence import ConfluenceAnalysis, ConfluencePOI
from scanner.structure.models import HarmonicPattern

logger = logging.getLogger("scanner.risk")

_SIDE_TOLERANCE = 0.001
_FIB_DUPLICATE = 0.005
_MOMENTUM_PROXIMITY = 0.04
_MOMENTUM_MIN_SCORE = 2
_HIGH_QUALITY_SCORE = 4
_DYNAMIC_GAP = 0.03
_DYNAMIC_ATR = 1.2
_ATR_FALLBACKS = (1.5, 2.5, 3.5)
_RR_PRECHECK_STOP_ATR = 1.5
_RR_PRECHECK_TP_ATR = 4.0
_RR_PRECHECK_MIN = 1.5
_RR_SHIFT = 0.02
_PROXIMITY_ATR = 2.5
_TP_DUPLICATE = 0.01
_TP_STEP_ATR = 2.0
_ENTRY_COUNT = 3

_FIB_FALLBACKS = (
    (0.618, "Fib 0.618 (golden pocket)", 5.0),
    (0.65, "Fib 0.65 (golden pocket low)", 5.0),
    (0.5, "Fib 0.5", 2.0),
    (0.786, "Fib 0.786", 3.0),
    (0.886, "Fib 0.886 (deep)", 4.0),
)

_PREDICTIVE_SCORES = {"reversal": 20.0, "liquidation": 18.0, "wall": 15.0}


@dataclass(frozen=True)
class DCAEntry:
    level: int
    price: float
    size_pct: float
    distance_pct: float
    factors: tuple[str, ...]
    score: float


@dataclass(frozen=True)
class TakeProfit:
    price: float
    exit_pct: float
    reason: str


@dataclass(frozen=True)
class DCAPlan:
    entries: tuple[DCAEntry, DCAEntry, DCAEntry]
    average_entry: float
    stop_loss: float
    take_profits: tuple[TakeProfit, TakeProfit, TakeProfit]
    risk_reward: float
    rr_red_flag: bool
    stop_source: Literal["ATR", "HARMONIC", "MIN_DISTANCE"]
    total_risk_pct: float
    proximity_penalty: float
    warnings: tuple[str, ...]


@dataclass(frozen=True)
class DCARequest:
    """Inputs for one plan.  The predictive targets are optional."""

    signal_price: float
    confluence: ConfluenceAnalysis
    atr: float
    side: Literal["LONG", "SHORT"]
    regime: Optional[str] = None
    fibonacci: Optional[FibonacciLevels] = None
    tier: FundamentalTier = "B"
    harmonic_patterns: tuple[HarmonicPattern, ...] = ()
    reversal_target: Optional[float] = None
    wall_price: Optional[float] = None
    liquidation_target: Optional[float] = None


@dataclass
class _Level:
    price: float
    score: float
    factors: list[str]


def _on_entry_side(price: float, signal_price: float, long: bool) -> bool:
    if long:
        return price <= signal_price * (1 + _SIDE_TOLERANCE)
    return price >= signal_price * (1 - _SIDE_TOLERANCE)


def _is_duplicate(price: float, levels: list[_Level], tolerance: float) -> bool:
    return any(abs(lvl.price - price) / price < tolerance for lvl in levels)


def _fallback_levels(req: DCARequest, long: bool) -> Iterator[tuple[_Level, float]]:
    """Fibonacci, then ATR, then deeper ATR steps, with a duplicate tolerance each."""
    if req.fibonacci is not None:
        retracements = req.fibonacci.retracements()
        for ratio, label, score in _FIB_FALLBACKS:
            price = retracements[ratio]
            if price > 0 and _on_entry_side(price, req.signal_price, long):
                yield _Level(price, score, [label]), _FIB_DUPLICATE

    sign = -1.0 if long else 1.0
    for mult in _ATR_FALLBACKS:
        price = req.signal_price + sign * req.atr * mult
        yield _Level(price, 2.0, [f"ATR {mult}x fallback"]), _SIDE_TOLERANCE

    # Steps at least twice the duplicate tolerance apart, so a third level
    # always survives even when ATR is tiny relative to price.
    step = max(req.atr, req.signal_price * _SIDE_TOLERANCE * 2)
    deepest = req.atr * _ATR_FALLBACKS[-1]
    for k in range(1, _ENTRY_COUNT + 1):
        price = req.signal_price + sign * (deepest + step * k)
        if price > 0:
            yield _Level(price, 1.0, ["Deep ATR fallback"]), _SIDE_TOLERANCE


def _fill_levels(levels: list[_Level], req: DCARequest, long: bool) -> list[_Level]:
    """Top *levels* up to exactly three, skipping near-duplicates."""
    levels = levels[:_ENTRY_COUNT]
    for candidate, tolerance in _fallback_levels(req, long):
        if len(levels) >= _ENTRY_COUNT:
            break
        if not _is_duplicate(candidate.price, levels, tolerance):
            levels.append(candidate)
    return levels


def _select_levels(req: DCARequest, long: bool) -> tuple[list[_Level], list[ConfluencePOI]]:
    pois = req.confluence.top_supports if long else req.confluence.top_resistances
    relevant = [p for p in pois if _on_entry_side(p.price, req.signal_price, long)]
    levels = [_Level(p.price, p.score, list(p.factors)) for p in relevant[:_ENTRY_COUNT]]
    return _fill_levels(levels, req, long), relevant


def _inject_momentum(
    levels: list[_Level],
    relevant: list[ConfluencePOI],
    req: DCARequest,
    long: bool,
) -> list[_Level]:
    """Pull a close, decent level to the front in momentum regimes."""
    momentum_regime = req.regime in ("TRENDING", "VOLATILE")
    closest = next(
        (
            p for p in relevant
            if abs(req.signal_price - p.price) / req.signal_price < _MOMENTUM_PROXIMITY
            and p.score >= _MOMENTUM_MIN_SCORE
        ),
        None,
    )
    high_quality = closest is not None and closest.score >= _HIGH_QUALITY_SCORE

    if (momentum_regime or high_quality) and req.tier != "C":
        price = closest.price if closest else req.signal_price
        factors = list(closest.factors) + ["Momentum entry"] if closest else ["Market entry"]
        kept = [lvl for lvl in levels if abs(lvl.price - price) / price > _SIDE_TOLERANCE]
        levels = [_Level(price, closest.score if closest else 5.0, factors)] + kept

    if momentum_regime and levels:
        gap = abs(levels[0].price - req.signal_price) / req.signal_price
        if gap > _DYNAMIC_GAP:
            offset = req.atr * _DYNAMIC_ATR
            price = req.signal_price - offset if long else req.signal_price + offset
            if abs(price - req.signal_price) / req.signal_price < gap:
                levels = [_Level(price, 4.0, ["Dynamic momentum (ATR)"])] + levels

    return _fill_levels(levels, req, long)


def _weighted_average(levels: list[_Level], sizes: tuple[float, float, float]) -> float:
    pairs = list(zip(levels, sizes))
    return sum(lvl.price * size for lvl, size in pairs) / sum(size for _, size in pairs)


def _aligned_harmonic(req: DCARequest, wap: float, long: bool) -> Optional[HarmonicPattern]:
    direction = "BULLISH" if long else "BEARISH"
    candidates = [
        p for p in req.harmonic_patterns
        if p.direction == direction and (p.stop_loss < wap if long else p.stop_loss > wap)
    ]
    return max(candidates, key=lambda p: p.confidence) if candidates else None


def _predictive_targets(req: DCARequest, long: bool) -> list[tuple[float, float, str]]:
    """Aligned predictive targets as ``(price, score, label)``."""
    targets = []
    for key, price, label in (
        ("reversal", req.reversal_target, "RSI reversal target"),
        ("liquidation", req.liquidation_target, "Liquidation cluster"),
        ("wall", req.wall_price, "Order-book wall"),
    ):
        if price is None:
            continue
        aligned = price > req.signal_price if long else price < req.signal_price
        if aligned:
            targets.append((price, _PREDICTIVE_SCORES[key], label))
    return targets


def plan_dca(request: DCARequest, config: PipelineConfig = PipelineConfig()) -> DCAPlan:
    """Build the full DCA plan for one signal.

    Raises ``ValueError`` when price or ATR is non-positive.
    """
    req = request
    if req.signal_price <= 0:
        raise ValueError(f"signal_price must be positive, got {req.signal_price}")
    if req.atr <= 0:
        raise ValueError(f"atr must be positive, got {req.atr}")

    long = req.side == "LONG"
    direction = 1.0 if long else -1.0
    warnings: list[str] = []

    levels, relevant = _select_levels(req, long)
    levels = _inject_momentum(levels, relevant, req, long)
    levels.sort(key=lambda lvl: abs(lvl.price - req.signal_price))

    entry_sizes = config.entry_sizes.get(req.regime or "", config.default_entry_sizes)
    exit_sizes = config.exit_sizes.get(req.regime or "", config.default_exit_sizes)

    # Pre-check R:R with a nominal stop and target; shift deeper when poor.
    temp_wap = _weighted_average(levels, entry_sizes)
    temp_sl = levels[-1].price - direction * req.atr * _RR_PRECHECK_STOP_ATR
    temp_tp = temp_wap + direction * req.atr * _RR_PRECHECK_TP_ATR
    temp_risk = abs(temp_wap - temp_sl)
    initial_rr = abs(temp_tp - temp_wap) / temp_risk if temp_risk > 0 else 0.0
    has_momentum = any("momentum" in f.lower() for lvl in levels for f in lvl.factors)
    if initial_rr < _RR_PRECHECK_MIN and not has_momentum:
        shift = 1 - _RR_SHIFT if long else 1 + _RR_SHIFT
        for lvl in levels:
            lvl.price *= shift
            lvl.factors.append("R:R shift")

    wap = _weighted_average(levels, entry_sizes)

    entry_gap = abs(wap - req.signal_price) / req.signal_price
    proximity_penalty = 0.0
    if entry_gap * 100 > config.proximity_warning_pct or abs(wap - req.signal_price) / req.atr > _PROXIMITY_ATR:
        proximity_penalty = float(min(30, round(entry_gap * 100 * 2)))
        warnings.append(f"Average entry {entry_gap:.1%} from price")

    # Stop: tier ATR stop, harmonic invalidation takes priority.
    multiplier = tier_sl_multiplier(req.tier, config)
    stop = wap - direction * req.atr * multiplier
    stop_source = "ATR"
    harmonic = _aligned_harmonic(req, wap, long)
    if harmonic is not None:
        stop = harmonic.stop_loss
        stop_source = "HARMONIC"
    if abs(wap - stop) / wap < config.min_stop_pct:
        stop = wap * (1 - direction * config.min_stop_pct)
        stop_source = "MIN_DISTANCE"
        warnings.append("Stop widened to minimum distance")

    risk_distance = abs(wap - stop)
    min_tp_distance = max(risk_distance * 0.8, req.atr * config.min_tp_atr)

    # Take-profits.
    target_pois = req.confluence.top_resistances if long else req.confluence.top_supports
    candidates: list[tuple[float, float, str]] = [
        (p.price, p.score, "Structure") for p in target_pois
        if (p.price - wap) * direction >= min_tp_distance
    ]
    if not candidates:
        candidates.append((wap + direction * min_tp_distance, 2.0, "Minimum R:R target"))
    predictive = _predictive_targets(req, long)
    candidates.extend(t for t in predictive if (t[0] - wap) * direction >= min_tp_distance)

    unique: list[list] = []
    for price, score, label in sorted(candidates):
        existing = next((u for u in unique if abs(u[0] - price) / price < _TP_DUPLICATE), None)
        if existing is not None:
            existing[1] = max(existing[1], score)
            if label not in existing[2]:
                existing[2] += f" + {label}"
        else:
            unique.append([price, score, label])
    unique.sort(key=lambda u: abs(u[0] - wap))

    targets = [(u[0], u[2]) for u in unique[:3]]
    while len(targets) < 3:
        prev = targets[-1][0] if targets else wap
        targets.append((prev + direction * req.atr * _TP_STEP_ATR, f"{_TP_STEP_ATR:g}x ATR step"))
    targets.sort(key=lambda t: t[0] * direction)

    # Moonbag: the strongest aligned predictive target beyond TP2 replaces TP3.
    beyond = [t for t in predictive if (t[0] - targets[1][0]) * direction > 0]
    if beyond:
        price, _, label = max(beyond, key=lambda t: t[1])
        targets[2] = (price, f"{label} (predictive)")

    take_profits = (
        TakeProfit(targets[0][0], exit_sizes[0], f"{targets[0][1]}; move stop to breakeven"),
        TakeProfit(targets[1][0], exit_sizes[1], f"{targets[1][1]}; trend continuation"),
        TakeProfit(targets[2][0], exit_sizes[2], f"{targets[2][1]}; moonbag"),
    )

    rr_tp = take_profits[2] if config.rr_target == "tp3" else take_profits[1]
    risk_reward = abs(rr_tp.price - wap) / risk_distance if risk_distance > 0 else 0.0
    rr_red_flag = risk_reward < 1.0
    if rr_red_flag:
        warnings.append(f"Reward:risk {risk_reward:.2f} below 1.0")

    entries = tuple(
        DCAEntry(
            level=i + 1,
            price=lvl.price,
            size_pct=entry_sizes[i],
            distance_pct=(req.signal_price - lvl.price) / req.signal_price * 100 * direction,
            factors=tuple(lvl.factors),
            score=lvl.score,
        )
        for i, lvl in enumerate(levels[:3])
    )

    logger.debug(
        "DCA %s: WAP %.6g SL %.6g (%s) R:R %.2f",
        req.side, wap, stop, stop_source, risk_reward,
    )

    return DCAPlan(
        entries=entries,
        average_entry=wap,
        stop_loss=stop,
        take_profits=take_profits,
        risk_reward=risk_reward,
        rr_red_flag=rr_red_flag,
        stop_source=stop_source,
        total_risk_pct=risk_distance / wap * 100,
        proximity_penalty=proximity_penalty,
        warnings=tuple(warnings),
    )
