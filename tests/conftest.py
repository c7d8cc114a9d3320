"""Shared factories for synthetic candles, indicator snapshots and opportunities.

Every factory is deterministic: same arguments, same objects.
"""

import pytest

from scanner.analysis.models import (
    BollingerValues,
    CandleData,
    FibonacciLevels,
    IchimokuCloud,
    IndicatorSeries,
    IndicatorSet,
    MACDValues,
    Pivots,
    StochRSI,
    TrendStatus,
)
from scanner.models.opportunity import (
    EntryZone,
    Opportunity,
    OpportunityMetrics,
    TakeProfitLevels,
)
from scanner.risk.dca_planner import DCARequest, plan_dca
from scanner.structure.confluence import ConfluenceAnalysis


def _make_candle(
    t: int, o: float, h: float, l: float, c: float, vol: float = 1000.0, buy: float | None = None,
) -> CandleData:
    return CandleData(time=t, open=o, high=h, low=l, close=c, volume=vol, taker_buy_volume=buy)


def _uptrend_candles(n: int = 300, start: float = 100.0, step: float = 0.5) -> list[CandleData]:
    """Strictly linear uptrend: every bar opens 0.3 below its close."""
    candles = []
    for i in range(n):
        close = start + step * i
        candles.append(_make_candle(i * 60_000, close - 0.3, close + 0.1, close - 0.4, close))
    return candles


def _flat_candles(n: int = 30, price: float = 100.0, vol: float = 100.0) -> list[CandleData]:
    return [
        _make_candle(i * 60_000, price, price + 0.5, price - 0.5, price, vol)
        for i in range(n)
    ]


def _fibonacci(swing_high: float, swing_low: float) -> FibonacciLevels:
    """Uptrend retracements measured down from *swing_high*."""
    diff = swing_high - swing_low
    return FibonacciLevels(
        trend="UP",
        level0=swing_high,
        level0_236=swing_high - diff * 0.236,
        level0_382=swing_high - diff * 0.382,
        level0_5=swing_high - diff * 0.5,
        level0_618=swing_high - diff * 0.618,
        level0_65=swing_high - diff * 0.65,
        level0_786=swing_high - diff * 0.786,
        level0_886=swing_high - diff * 0.886,
        level1=swing_low,
        tp1=swing_high + diff * 0.272,
        tp2=swing_high + diff * 0.618,
        tp3=swing_high + diff,
        tp4=swing_high + diff * 1.618,
        tp5=swing_high + diff * 2.618,
    )


def _series(n: int = 60, price: float = 100.0, **overrides) -> IndicatorSeries:
    flat = (price,) * n
    fields = dict(
        opens=flat,
        highs=(price + 0.5,) * n,
        lows=(price - 0.5,) * n,
        closes=flat,
        volumes=(1000.0,) * n,
        rsi=(50.0,) * n,
        macd_histogram=(0.0,) * n,
        bandwidth=(5.0,) * n,
        bb_lower=(price - 2.5,) * n,
        bb_upper=(price + 2.5,) * n,
        ema20=flat,
        ema50=flat,
        ema200=flat,
        cvd=(0.0,) * n,
    )
    fields.update(overrides)
    return IndicatorSeries(**fields)


def _indicators(price: float = 100.0, **overrides) -> IndicatorSet:
    """A quiet, directionless snapshot; override what the test needs."""
    fields = dict(
        symbol="TESTUSDT",
        price=price,
        rsi=50.0,
        stoch_rsi=StochRSI(k=50.0, d=50.0),
        adx=20.0,
        atr=1.0,
        rvol=1.0,
        vwap=price,
        ema20=price,
        ema50=price,
        ema100=price,
        ema200=price,
        z_score=0.0,
        ema_slope=0.0,
        macd=MACDValues(line=0.0, signal=0.0, histogram=0.0),
        bollinger=BollingerValues(upper=price + 2.5, middle=price, lower=price - 2.5, bandwidth=5.0),
        pivots=Pivots(p=price, r1=price + 3, s1=price - 3, r2=price + 6, s2=price - 6),
        fibonacci=_fibonacci(price + 10, price - 10),
        trend_status=TrendStatus(ema_alignment="NEUTRAL", golden_cross=False, death_cross=False),
        ichimoku=None,
        cvd=0.0,
        cvd_slope=0.0,
        series=_series(price=price),
    )
    fields.update(overrides)
    return IndicatorSet(**fields)


def _cloud(**overrides) -> IchimokuCloud:
    fields = dict(
        tenkan=100.0,
        kijun=99.0,
        senkou_a=95.0,
        senkou_b=94.0,
        future_senkou_a=99.0,
        future_senkou_b=96.0,
        chikou_free=True,
        chikou_direction="BULLISH",
        cloud_thickness=0.01,
        tk_separation=0.01,
    )
    fields.update(overrides)
    return IchimokuCloud(**fields)


@pytest.fixture
def make_candle():
    return _make_candle


@pytest.fixture
def uptrend_candles():
    return _uptrend_candles


@pytest.fixture
def flat_candles():
    return _flat_candles


@pytest.fixture
def make_series():
    return _series


@pytest.fixture
def make_indicators():
    return _indicators


@pytest.fixture
def make_cloud():
    return _cloud


@pytest.fixture
def make_fibonacci():
    return _fibonacci


def _opportunity(
    symbol: str = "ETHUSDT",
    side: str = "LONG",
    score: float = 85.0,
    price: float = 100.0,
    strategy: str = "ichimoku_dragon",
):
    """A complete ``Opportunity`` built through the real DCA planner."""
    plan = plan_dca(DCARequest(
        signal_price=price,
        confluence=ConfluenceAnalysis(top_supports=(), top_resistances=(), poi_score=0.0),
        atr=price / 100,
        side=side,
    ))
    entries = [e.price for e in plan.entries]
    return Opportunity(
        symbol=symbol,
        side=side,
        confidence_score=score,
        entry_zone=EntryZone(min=min(entries), max=max(entries), current_price=price),
        stop_loss=plan.stop_loss,
        take_profits=TakeProfitLevels(*(tp.price for tp in plan.take_profits)),
        dca_plan=plan,
        metrics=OpportunityMetrics(
            rsi=50.0, adx=30.0, atr=price / 100, rvol=1.0, z_score=0.0, ema_slope=1.0,
            vwap=price, regime="TRENDING", ema_alignment="BULLISH", poi_score=0.0,
            risk_reward=plan.risk_reward, rr_red_flag=plan.rr_red_flag,
        ),
        technical_reasoning="Regime TRENDING: test",
        timestamp=1_700_000_000_000,
        strategy=strategy,
        tier="S",
        timeframe="15m",
        detection_price=price,
        kelly_size=0.02,
        recommended_leverage=1.0,
    )


@pytest.fixture
def make_opportunity():
    return _opportunity
