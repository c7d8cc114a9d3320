"""Analysis data models — candle input and the per-snapshot indicator set."""

from dataclasses import dataclass
from typing import Literal, Optional


@dataclass(frozen=True)
class CandleData:
    """A single closed candlestick bar for analysis."""

    time: int  # open time, epoch milliseconds
    open: float
    high: float
    low: float
    close: float
    volume: float
    taker_buy_volume: Optional[float] = None  # None → assume a 50/50 split


@dataclass(frozen=True)
class MACDValues:
    line: float
    signal: float
    histogram: float


@dataclass(frozen=True)
class BollingerValues:
    upper: float
    middle: float
    lower: float
    bandwidth: float  # (upper - lower) / middle × 100


@dataclass(frozen=True)
class StochRSI:
    k: float
    d: float


@dataclass(frozen=True)
class Pivots:
    """Classic floor pivots from the previous completed bar."""

    p: float
    r1: float
    s1: float
    r2: float
    s2: float


@dataclass(frozen=True)
class FibonacciLevels:
    """Retracements of the last fractal swing plus extension targets.

    In an uptrend ``level0`` is the swing high and retracements count
    downwards; in a downtrend ``level0`` is the swing low.
    """

    trend: Literal["UP", "DOWN"]
    level0: float
    level0_236: float
    level0_382: float
    level0_5: float
    level0_618: float
    level0_65: float
    level0_786: float
    level0_886: float
    level1: float
    tp1: float
    tp2: float
    tp3: float
    tp4: float
    tp5: float

    def retracements(self) -> dict[float, float]:
        """Map of ratio → price for the retracement levels."""
        return {
            0.236: self.level0_236,
            0.382: self.level0_382,
            0.5: self.level0_5,
            0.618: self.level0_618,
            0.65: self.level0_65,
            0.786: self.level0_786,
            0.886: self.level0_886,
        }


@dataclass(frozen=True)
class TrendStatus:
    ema_alignment: Literal["BULLISH", "BEARISH", "NEUTRAL"]
    golden_cross: bool
    death_cross: bool


@dataclass(frozen=True)
class IchimokuCloud:
    """Ichimoku snapshot at the latest bar (9/26/52)."""

    tenkan: float
    kijun: float
    senkou_a: float  # current cloud, projected from 26 bars ago
    senkou_b: float
    future_senkou_a: float
    future_senkou_b: float
    chikou_free: bool
    chikou_direction: Literal["BULLISH", "BEARISH", "NEUTRAL"]
    cloud_thickness: float  # |A - B| / mid
    tk_separation: float  # |tenkan - kijun| / kijun

    @property
    def cloud_top(self) -> float:
        return max(self.senkou_a, self.senkou_b)

    @property
    def cloud_bottom(self) -> float:
        return min(self.senkou_a, self.senkou_b)


@dataclass(frozen=True)
class IndicatorSeries:
    """Full per-bar series kept for runners that look back in time."""

    opens: tuple[float, ...]
    highs: tuple[float, ...]
    lows: tuple[float, ...]
    closes: tuple[float, ...]
    volumes: tuple[float, ...]
    rsi: tuple[float, ...]
    macd_histogram: tuple[float, ...]
    bandwidth: tuple[float, ...]
    bb_lower: tuple[float, ...]
    bb_upper: tuple[float, ...]
    ema20: tuple[float, ...]
    ema50: tuple[float, ...]
    ema200: tuple[float, ...]
    cvd: tuple[float, ...]


@dataclass(frozen=True)
class IndicatorSet:
    """Every indicator computed for one (symbol, interval) snapshot."""

    symbol: str
    price: float
    rsi: float
    stoch_rsi: StochRSI
    adx: float
    atr: float
    rvol: float
    vwap: float
    ema20: float
    ema50: float
    ema100: float
    ema200: float
    z_score: float
    ema_slope: float
    macd: MACDValues
    bollinger: BollingerValues
    pivots: Pivots
    fibonacci: FibonacciLevels
    trend_status: TrendStatus
    ichimoku: Optional[IchimokuCloud]
    cvd: float
    cvd_slope: float
    series: IndicatorSeries
