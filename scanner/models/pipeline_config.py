"""Pipeline configuration dataclass.

Every tunable of the per-asset scan pipeline lives here: the regime →
strategy weight matrix, tier tables, risk thresholds, DCA sizing and
ranker gates.  Instances are immutable and passed explicitly into the
pipeline so alternate configurations can be tested side by side.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Literal, Mapping


STRATEGY_IDS: tuple[str, ...] = (
    "ichimoku_dragon",
    "breakout_momentum",
    "smc_liquidity",
    "quant_volatility",
    "mean_reversion",
    "meme_hunter",
    "divergence_hunter",
)


def _frozen(table: dict) -> Mapping:
    return MappingProxyType(
        {k: MappingProxyType(v) if isinstance(v, dict) else v for k, v in table.items()}
    )


def _default_strategy_weights() -> Mapping[str, Mapping[str, float]]:
    # Every regime lists all seven ids; zero means hard-excluded.
    return _frozen({
        "TRENDING": {
            "ichimoku_dragon": 0.6,
            "breakout_momentum": 0.4,
            "smc_liquidity": 0.0,
            "quant_volatility": 0.0,
            "mean_reversion": 0.0,
            "meme_hunter": 0.0,
            "divergence_hunter": 0.0,
        },
        "RANGING": {
            "ichimoku_dragon": 0.0,
            "breakout_momentum": 0.0,
            "smc_liquidity": 0.3,
            "quant_volatility": 0.2,
            "mean_reversion": 0.5,
            "meme_hunter": 0.0,
            "divergence_hunter": 0.0,
        },
        "VOLATILE": {
            "ichimoku_dragon": 0.0,
            "breakout_momentum": 0.3,
            "smc_liquidity": 0.0,
            "quant_volatility": 0.5,
            "mean_reversion": 0.0,
            "meme_hunter": 0.2,
            "divergence_hunter": 0.0,
        },
        "EXTREME": {
            "ichimoku_dragon": 0.0,
            "breakout_momentum": 0.0,
            "smc_liquidity": 0.3,
            "quant_volatility": 0.0,
            "mean_reversion": 0.2,
            "meme_hunter": 0.0,
            "divergence_hunter": 0.5,
        },
    })


def _default_tier_multipliers() -> Mapping[str, float]:
    return MappingProxyType({"S": 2.5, "A": 2.0, "B": 1.5, "C": 1.0})


def _default_chase_limits() -> Mapping[str, float]:
    return MappingProxyType({"4h": 1.5})


def _default_entry_sizes() -> Mapping[str, tuple[float, float, float]]:
    return MappingProxyType({
        "TRENDING": (50.0, 30.0, 20.0),
        "RANGING": (40.0, 30.0, 30.0),
        "VOLATILE": (30.0, 30.0, 40.0),
        "EXTREME": (25.0, 35.0, 40.0),
    })


def _default_exit_sizes() -> Mapping[str, tuple[float, float, float]]:
    return MappingProxyType({
        "TRENDING": (30.0, 30.0, 40.0),
        "RANGING": (40.0, 30.0, 30.0),
        "VOLATILE": (50.0, 30.0, 20.0),
        "EXTREME": (60.0, 25.0, 15.0),
    })


@dataclass(frozen=True)
class PipelineConfig:
    """Immutable tunables for one scan pipeline."""

    # ── Indicators ───────────────────────────────────────────────────────
    min_candles: int = 200
    rsi_period: int = 14
    atr_period: int = 14
    adx_period: int = 14
    slope_window: int = 10
    flat_slope_degrees: float = 0.5  # mean reversion needs |EMA200 slope| above this
    z_period: int = 20
    rvol_period: int = 20

    # ── Regime ───────────────────────────────────────────────────────────
    trend_adx: float = 25.0
    range_adx: float = 20.0
    compression_bandwidth: float = 4.0  # Bollinger bandwidth, % of middle
    volatility_expansion: float = 2.0  # last-bar range / ATR
    extreme_z: float = 2.5
    extreme_rsi_low: float = 20.0
    extreme_rsi_high: float = 80.0

    # ── Strategies ───────────────────────────────────────────────────────
    strategy_weights: Mapping[str, Mapping[str, float]] = field(
        default_factory=_default_strategy_weights
    )
    materiality_threshold: float = 10.0
    boost_cap: float = 100.0

    # ── Structure / confluence ───────────────────────────────────────────
    divergence_lookback: int = 5
    confluence_tolerance_atr: float = 0.5
    confluence_top_n: int = 3

    # ── Risk ─────────────────────────────────────────────────────────────
    risk_window: int = 24
    manipulation_volume_mult: float = 3.5
    volatility_range_mult: float = 3.0
    volatility_abs_range: float = 0.025
    medium_range_mult: float = 1.8
    medium_volume_mult: float = 2.0
    s_tier: tuple[str, ...] = (
        "BTCUSDT", "ETHUSDT", "SOLUSDT", "BNBUSDT", "XAGUSDT", "XAUUSDT",
    )
    a_tier: tuple[str, ...] = (
        "XRPUSDT", "ADAUSDT", "LINKUSDT", "AVAXUSDT", "DOTUSDT",
        "TRXUSDT", "TONUSDT", "SUIUSDT", "APTUSDT",
    )
    c_tier_patterns: tuple[str, ...] = (
        "PEPE", "DOGE", "SHIB", "BONK", "WIF", "FLOKI",
        "1000SATS", "ORDI", "MEME", "LUNA", "LUNC",
    )
    ignored_symbols: tuple[str, ...] = (
        "USDCUSDT", "FDUSDUSDT", "TUSDUSDT", "USDPUSDT", "EURUSDT",
        "DAIUSDT", "BUSDUSDT", "PAXGUSDT", "USDEUSDT", "USD1USDT",
        "BFUSDUSDT", "AEURUSDT",
    )
    tier_sl_multipliers: Mapping[str, float] = field(
        default_factory=_default_tier_multipliers
    )

    # ── DCA planner ──────────────────────────────────────────────────────
    entry_sizes: Mapping[str, tuple[float, float, float]] = field(
        default_factory=_default_entry_sizes
    )
    exit_sizes: Mapping[str, tuple[float, float, float]] = field(
        default_factory=_default_exit_sizes
    )
    default_entry_sizes: tuple[float, float, float] = (40.0, 30.0, 30.0)
    default_exit_sizes: tuple[float, float, float] = (40.0, 30.0, 30.0)
    rr_target: Literal["tp2", "tp3"] = "tp2"
    min_stop_pct: float = 0.008
    min_tp_atr: float = 1.0
    proximity_warning_pct: float = 3.0
    # stale signals are dropped when the first entry sits further than this (% of price)
    chase_limits: Mapping[str, float] = field(default_factory=_default_chase_limits)
    default_chase_limit_pct: float = 0.6

    # ── Ranker ───────────────────────────────────────────────────────────
    min_score: float = 75.0
    high_risk_score_penalty: float = 10.0  # added to min_score when risk is HIGH
    decoupled_runner_score: float = 90.0
    staleness_pct: float = 5.0
    mtf_veto_pct: float = 3.0  # 1h EMA200 distance that vetoes outright
    mtf_max_penalty: float = 20.0
    adx_filter: float = 25.0
    top_n: int = 10
    range_friendly_strategies: tuple[str, ...] = (
        "mean_reversion", "divergence_hunter", "smc_liquidity",
    )

    def weights_for(self, regime: str) -> Mapping[str, float]:
        """Weight row for *regime*; raises ``KeyError`` for unknown regimes."""
        return self.strategy_weights[regime]

    def chase_limit_for(self, timeframe: str) -> float:
        return self.chase_limits.get(timeframe, self.default_chase_limit_pct)
