"""Deterministic tests for the indicator functions and the indicator engine.

All tests use fixed synthetic candles. Same input = same output, always.
"""

import math

import pytest

from scanner.analysis.indicator_engine import build_indicator_set, classify_ema_alignment
from scanner.analysis.indicators import (
    calculate_adx,
    calculate_atr,
    calculate_bandwidth,
    calculate_bollinger,
    calculate_cvd,
    calculate_ema,
    calculate_ichimoku,
    calculate_pivots,
    calculate_rsi,
    calculate_rvol,
    calculate_slope,
    calculate_stoch_rsi,
    calculate_vwap,
    calculate_z_score,
    ema_series,
    find_fractals,
)
from scanner.analysis.models import CandleData


def _make_candle(t: int, o: float, h: float, l: float, c: float, vol: float = 1000.0, buy=None) -> CandleData:
    return CandleData(time=t, open=o, high=h, low=l, close=c, volume=vol, taker_buy_volume=buy)


# ── ATR / EMA / RSI ──────────────────────────────────────────────────────


class TestCoreIndicators:

    def test_atr_of_linear_trend(self, uptrend_candles):
        """A steady trend has a constant true range."""
        # TR is |high - prev_close| = 0.6 on every bar
        assert calculate_atr(uptrend_candles(50)) == pytest.approx(0.6)

    def test_atr_rejects_short_window(self, uptrend_candles):
        """ATR needs period + 1 candles."""
        with pytest.raises(ValueError, match="ATR"):
            calculate_atr(uptrend_candles(10))

    def test_ema_seeded_with_sma(self):
        """The first EMA value is the SMA of the seed window."""
        candles = [_make_candle(i, c, c, c, c) for i, c in enumerate([1.0, 2.0, 3.0, 4.0])]
        ema = calculate_ema(candles, 3)
        assert math.isnan(ema[0]) and math.isnan(ema[1])
        assert ema[2] == pytest.approx(2.0)
        assert ema[3] == pytest.approx(4.0 * 0.5 + 2.0 * 0.5)

    def test_ema_rejects_short_window(self):
        """Fewer candles than the period raise."""
        with pytest.raises(ValueError, match="EMA"):
            calculate_ema([_make_candle(0, 1, 1, 1, 1)], 5)

    def test_ema_series_skips_leading_nan(self):
        """Leading NaNs are skipped before seeding."""
        values = [float("nan"), float("nan"), 2.0, 4.0, 6.0]
        out = ema_series(values, 2)
        assert math.isnan(out[2])
        assert out[3] == pytest.approx(3.0)

    def test_rsi_all_gains_is_100(self, uptrend_candles):
        """Only gains drive RSI to 100 after warm-up."""
        rsi = calculate_rsi(uptrend_candles(30))
        assert math.isnan(rsi[13])
        assert rsi[-1] == pytest.approx(100.0)

    def test_rsi_rejects_short_window(self, uptrend_candles):
        """RSI needs period + 1 closes."""
        with pytest.raises(ValueError, match="RSI"):
            calculate_rsi(uptrend_candles(14))

    def test_stoch_rsi_flat_window_is_zero(self):
        """A flat RSI window has no range and reads zero."""
        result = calculate_stoch_rsi([50.0] * 20)
        assert result.k == 0.0
        assert result.d == 0.0

    def test_stoch_rsi_at_window_high(self):
        """RSI at its window high reads 100."""
        rsi = [float(v) for v in range(30, 50)]
        result = calculate_stoch_rsi(rsi)
        assert result.k == pytest.approx(100.0)


# ── ADX / Bollinger / volume ─────────────────────────────────────────────


class TestTrendAndVolume:

    def test_adx_pure_uptrend_is_maximal(self, uptrend_candles):
        """Directional movement in one direction only pins ADX at 100."""
        adx = calculate_adx(uptrend_candles(60))
        assert math.isnan(adx[26])
        assert adx[27] == pytest.approx(100.0)
        assert adx[-1] == pytest.approx(100.0)

    def test_adx_rejects_short_window(self, uptrend_candles):
        """ADX needs two periods of history plus one."""
        with pytest.raises(ValueError, match="ADX"):
            calculate_adx(uptrend_candles(28))

    def test_bollinger_flat_prices_zero_bandwidth(self, flat_candles):
        """Flat closes collapse the bands onto the middle."""
        upper, middle, lower = calculate_bollinger(flat_candles(25))
        bandwidth = calculate_bandwidth(upper, middle, lower)
        assert middle[-1] == pytest.approx(100.0)
        assert upper[-1] == lower[-1] == pytest.approx(100.0)
        assert bandwidth[-1] == pytest.approx(0.0)
        assert math.isnan(bandwidth[0])

    def test_rvol_spike(self):
        """Last volume over the prior 20-bar average."""
        assert calculate_rvol([100.0] * 20 + [400.0]) == pytest.approx(4.0)

    def test_rvol_short_history_defaults_to_one(self):
        """Without a full average window RVOL is neutral."""
        assert calculate_rvol([100.0] * 5) == 1.0

    def test_cvd_from_taker_volume(self):
        """Delta is taker buys minus taker sells, accumulated."""
        candles = [_make_candle(i, 1, 1, 1, 1, vol=100.0, buy=70.0) for i in range(3)]
        assert calculate_cvd(candles) == [40.0, 80.0, 120.0]

    def test_cvd_without_taker_volume_is_flat(self, flat_candles):
        """No taker split, no delta."""
        assert calculate_cvd(flat_candles(5)) == [0.0] * 5

    def test_vwap_weights_by_volume(self):
        """Heavier bars pull VWAP toward their price."""
        candles = [
            _make_candle(0, 10, 10, 10, 10, vol=1.0),
            _make_candle(1, 20, 20, 20, 20, vol=3.0),
        ]
        assert calculate_vwap(candles) == pytest.approx(17.5)

    def test_z_score_zero_when_flat(self):
        """No dispersion, no z-score."""
        assert calculate_z_score([100.0] * 20, 90.0) == 0.0

    def test_slope_normalized_to_percent(self):
        """Normalised slope is percent of the mean per bar."""
        assert calculate_slope([99.0, 100.0, 101.0]) == pytest.approx(1.0)
        assert calculate_slope([99.0, 100.0, 101.0], normalize=False) == pytest.approx(1.0)
        assert calculate_slope([198.0, 200.0, 202.0], normalize=False) == pytest.approx(2.0)


# ── Pivots / fractals / Ichimoku ─────────────────────────────────────────


class TestLevels:

    def test_pivots_from_previous_bar(self):
        """Classic floor pivots come from the bar before the last."""
        candles = [
            _make_candle(0, 100, 110, 90, 100),
            _make_candle(1, 100, 101, 99, 100),
        ]
        pivots = calculate_pivots(candles)
        assert pivots.p == pytest.approx(100.0)
        assert pivots.r1 == pytest.approx(110.0)
        assert pivots.s1 == pytest.approx(90.0)
        assert pivots.r2 == pytest.approx(120.0)
        assert pivots.s2 == pytest.approx(80.0)

    def test_five_bar_fractals(self):
        """A fractal needs two lower highs (or higher lows) on each side."""
        highs = [1.0, 2.0, 5.0, 2.0, 1.0, 1.5, 1.2]
        lows = [3.0, 2.0, 0.5, 2.0, 3.0, 2.5, 2.8]
        fractal_highs, fractal_lows = find_fractals(highs, lows)
        assert fractal_highs == [(2, 5.0)]
        assert fractal_lows == [(2, 0.5)]

    def test_ichimoku_uptrend_chikou_free(self, uptrend_candles):
        """In a clean uptrend the chikou clears both price and cloud."""
        cloud = calculate_ichimoku(uptrend_candles(120))
        assert cloud.tenkan > cloud.kijun
        assert cloud.chikou_direction == "BULLISH"
        assert cloud.chikou_free is True
        assert cloud.cloud_bottom <= cloud.cloud_top

    def test_ichimoku_rejects_short_window(self, uptrend_candles):
        """Ichimoku needs senkou + 2 kijun periods."""
        with pytest.raises(ValueError, match="Ichimoku"):
            calculate_ichimoku(uptrend_candles(100))


# ── Engine ───────────────────────────────────────────────────────────────


class TestIndicatorEngine:

    def test_short_window_returns_none(self, uptrend_candles):
        """Under 200 candles there is no snapshot."""
        assert build_indicator_set("TESTUSDT", uptrend_candles(199)) is None

    def test_linear_uptrend_snapshot(self, uptrend_candles):
        """Every scalar of the snapshot on a known uptrend."""
        result = build_indicator_set("TESTUSDT", uptrend_candles(300))

        assert result is not None
        assert result.price == pytest.approx(249.5)
        assert result.trend_status.ema_alignment == "BULLISH"
        assert result.trend_status.golden_cross is True
        assert result.adx == pytest.approx(100.0)
        assert result.rsi == pytest.approx(100.0)
        assert result.atr == pytest.approx(0.6)
        assert result.ema_slope > 0.5
        assert result.rvol == pytest.approx(1.0)
        assert result.cvd == 0.0
        assert result.ichimoku is not None
        assert result.fibonacci.trend == "UP"
        assert result.fibonacci.level0 > result.fibonacci.level0_618 > result.fibonacci.level1
        assert len(result.series.closes) == 300

    def test_deterministic(self, uptrend_candles):
        """Same candles in, same snapshot out."""
        candles = uptrend_candles(250)
        a = build_indicator_set("TESTUSDT", candles)
        b = build_indicator_set("TESTUSDT", candles)

        # series hold nan warm-up values, compare the scalar snapshot
        for name in ("price", "rsi", "adx", "atr", "rvol", "vwap", "ema200", "z_score", "ema_slope"):
            assert getattr(a, name) == getattr(b, name)
        assert a.macd == b.macd
        assert a.fibonacci == b.fibonacci
        assert a.ichimoku == b.ichimoku

    @pytest.mark.parametrize(
        "emas,expected",
        [
            ((4, 3, 2, 1), "BULLISH"),
            ((1, 2, 3, 4), "BEARISH"),
            ((4, 3, 3, 1), "NEUTRAL"),
        ],
    )
    def test_ema_alignment(self, emas, expected):
        """Strictly stacked EMAs are directional; any tie is neutral."""
        assert classify_ema_alignment(*emas) == expected
