"""Opportunity — the terminal artifact of one asset evaluation."""

from dataclasses import asdict, dataclass
from typing import Literal

from scanner.risk.dca_planner import DCAPlan


@dataclass(frozen=True)
class EntryZone:
    min: float
    max: float
    current_price: float


@dataclass(frozen=True)
class TakeProfitLevels:
    tp1: float
    tp2: float
    tp3: float


@dataclass(frozen=True)
class OpportunityMetrics:
    """Indicator snapshot carried along for display and auditing."""

    rsi: float
    adx: float
    atr: float
    rvol: float
    z_score: float
    ema_slope: float
    vwap: float
    regime: str
    ema_alignment: str
    poi_score: float
    risk_reward: float
    rr_red_flag: bool


@dataclass(frozen=True)
class Opportunity:
    """A ranked, risk-annotated trade idea.  Never mutated after creation."""

    symbol: str
    side: Literal["LONG", "SHORT"]
    confidence_score: float
    entry_zone: EntryZone
    stop_loss: float
    take_profits: TakeProfitLevels
    dca_plan: DCAPlan
    metrics: OpportunityMetrics
    technical_reasoning: str
    timestamp: int  # epoch milliseconds
    strategy: str
    tier: str
    timeframe: str
    detection_price: float
    kelly_size: float
    recommended_leverage: float


def opportunity_to_dict(opportunity: Opportunity) -> dict:
    """Plain nested dict for JSON transport (tuples become lists)."""
    data = asdict(opportunity)
    data["dca_plan"]["entries"] = [dict(e, factors=list(e["factors"])) for e in data["dca_plan"]["entries"]]
    data["dca_plan"]["take_profits"] = list(data["dca_plan"]["take_profits"])
    data["dca_plan"]["warnings"] = list(data["dca_plan"]["warnings"])
    return data
