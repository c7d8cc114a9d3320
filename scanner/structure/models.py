"""Structure data models — order blocks, gaps, profiles, patterns, divergences."""

from dataclasses import dataclass, field
from typing import Literal, Optional


@dataclass(frozen=True)
class OrderBlock:
    """Last opposite-coloured candle before an impulsive move."""

    direction: Literal["BULLISH", "BEARISH"]
    price: float  # body midpoint
    top: float
    bottom: float
    strength: float  # 0-10
    mitigated: bool
    index: int


@dataclass(frozen=True)
class FairValueGap:
    """Three-candle price inefficiency."""

    direction: Literal["BULLISH", "BEARISH"]
    top: float
    bottom: float
    midpoint: float
    size: float
    filled: bool
    index: int  # index of the middle candle


@dataclass(frozen=True)
class VolumeProfile:
    poc: float
    value_area_high: float
    value_area_low: float
    total_volume: float
    low_volume_nodes: tuple[float, ...] = ()


EMPTY_VOLUME_PROFILE = VolumeProfile(
    poc=0.0, value_area_high=0.0, value_area_low=0.0, total_volume=0.0
)


@dataclass(frozen=True)
class HarmonicPattern:
    type: Literal["GARTLEY", "BAT", "BUTTERFLY", "CRAB"]
    direction: Literal["BULLISH", "BEARISH"]
    prz: float
    confidence: float
    stop_loss: float
    d_index: int


@dataclass(frozen=True)
class ChartPattern:
    type: Literal[
        "HEAD_SHOULDERS", "INV_HEAD_SHOULDERS",
        "DOUBLE_TOP", "DOUBLE_BOTTOM",
        "RISING_WEDGE", "FALLING_WEDGE",
    ]
    signal: Literal["BULLISH", "BEARISH"]
    confidence: float
    description: str
    price: float  # structural level the pattern is anchored on
    invalidation_level: Optional[float] = None
    price_target: Optional[float] = None


DivergenceType = Literal[
    "BULLISH", "BEARISH", "HIDDEN_BULLISH", "HIDDEN_BEARISH",
    "CVD_ABSORPTION_BUY", "CVD_ABSORPTION_SELL",
]


@dataclass(frozen=True)
class Divergence:
    type: DivergenceType
    strength: float
    description: str

    @property
    def is_bullish(self) -> bool:
        return self.type in ("BULLISH", "HIDDEN_BULLISH", "CVD_ABSORPTION_BUY")


@dataclass(frozen=True)
class ReversalTarget:
    """Cardwell positive/negative reversal projection from RSI pivots."""

    type: Literal["POSITIVE", "NEGATIVE"]
    target_price: float
    pattern: str


@dataclass(frozen=True)
class LiquidationCluster:
    """Estimated leveraged-position liquidation band."""

    price_min: float
    price_max: float
    strength: float  # 0-100
    type: Literal["LONG_LIQ", "SHORT_LIQ"]

    @property
    def midpoint(self) -> float:
        return (self.price_min + self.price_max) / 2


@dataclass(frozen=True)
class OrderBookWall:
    side: Literal["BID", "ASK"]
    price: float
    volume: float
    strength: float  # 0-100


@dataclass(frozen=True)
class StructureSet:
    """All higher-order market structure for one candle window."""

    volume_profile: VolumeProfile = EMPTY_VOLUME_PROFILE
    bullish_order_blocks: tuple[OrderBlock, ...] = ()
    bearish_order_blocks: tuple[OrderBlock, ...] = ()
    bullish_fvgs: tuple[FairValueGap, ...] = ()
    bearish_fvgs: tuple[FairValueGap, ...] = ()
    harmonic_patterns: tuple[HarmonicPattern, ...] = ()
    chart_patterns: tuple[ChartPattern, ...] = ()
    rsi_divergence: Optional[Divergence] = None
    macd_divergence: Optional[Divergence] = None
    cvd_divergence: Optional[Divergence] = None
    reversal_target: Optional[ReversalTarget] = None
    liquidation_clusters: tuple[LiquidationCluster, ...] = field(default_factory=tuple)
