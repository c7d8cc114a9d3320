"""Tests for the macro context: reference regime, dominance trend, score filters."""

import pytest

from scanner.analysis.models import CandleData
from scanner.macro import (
    MacroContext,
    apply_macro_filters,
    classify_btc_regime,
    classify_dominance_trend,
)


def _linear(n: int, start: float, step: float) -> list[CandleData]:
    candles = []
    for i in range(n):
        c = start + step * i
        candles.append(CandleData(time=i, open=c, high=c + 0.2, low=c - 0.2, close=c, volume=1.0))
    return candles


class TestBtcRegime:

    def test_uptrend_is_bull(self):
        """Golden cross with price above both EMAs."""
        assert classify_btc_regime(_linear(250, 100.0, 0.5)) == "BULL"

    def test_downtrend_is_bear(self):
        """Death cross with price below both EMAs."""
        assert classify_btc_regime(_linear(250, 300.0, -0.5)) == "BEAR"

    def test_flat_is_range(self):
        """Price sitting on EMA200 is neither side."""
        assert classify_btc_regime(_linear(250, 100.0, 0.0)) == "RANGE"

    def test_needs_200_candles(self):
        """The regime needs a full EMA200 window."""
        with pytest.raises(ValueError, match="200 candles"):
            classify_btc_regime(_linear(150, 100.0, 0.5))


class TestDominanceTrend:

    @pytest.mark.parametrize(
        "values,expected",
        [
            ([5.0, 5.05, 5.1], "RISING"),
            ([5.0, 4.95, 4.9], "FALLING"),
            ([5.0, 5.02], "STABLE"),
            ([5.0], "STABLE"),
        ],
    )
    def test_trend(self, values, expected):
        """Moves beyond 1 % either way set the trend; less is stable."""
        assert classify_dominance_trend(values) == expected


class TestMacroFilters:

    def test_long_against_bear_regime(self):
        """Longs lose 30 % in a BTC bear regime."""
        score, note = apply_macro_filters(80.0, "ETHUSDT", "LONG", MacroContext(btc_regime="BEAR"))
        assert score == pytest.approx(56.0)
        assert note == "Macro: BTC bear regime"

    def test_long_in_ranging_regime(self):
        """Longs lose 10 % while BTC ranges."""
        score, _ = apply_macro_filters(80.0, "ETHUSDT", "LONG", MacroContext(btc_regime="RANGE"))
        assert score == pytest.approx(72.0)

    def test_short_against_weekly_bull(self):
        """A weekly BTC bull costs shorts 30 points."""
        macro = MacroContext(btc_regime="BULL", btc_weekly_regime="BULL")
        score, note = apply_macro_filters(80.0, "ETHUSDT", "SHORT", macro)
        assert score == 50.0
        assert "weekly" in note

    def test_short_against_daily_bull(self):
        """A daily BTC bull alone costs shorts 20 points."""
        macro = MacroContext(btc_regime="BULL", btc_weekly_regime="BEAR")
        score, _ = apply_macro_filters(80.0, "ETHUSDT", "SHORT", macro)
        assert score == 60.0

    def test_reference_asset_exempt(self):
        """BTC pairs are not filtered against BTC."""
        macro = MacroContext(btc_regime="BULL", btc_weekly_regime="BULL")
        assert apply_macro_filters(80.0, "BTCUSDT", "SHORT", macro) == (80.0, None)

    def test_decoupled_runner_exempt(self):
        """Scores at the runner threshold skip the filters."""
        score, note = apply_macro_filters(92.0, "ETHUSDT", "LONG", MacroContext(btc_regime="BEAR"))
        assert score == 92.0
        assert note.startswith("Decoupled runner")

    def test_rising_usdt_dominance_drains_longs(self):
        """Rising stablecoin dominance trims longs by a quarter."""
        macro = MacroContext(btc_regime="BULL", usdt_dominance_trend="RISING")
        score, note = apply_macro_filters(80.0, "ETHUSDT", "LONG", macro)
        assert score == pytest.approx(60.0)
        assert "USDT dominance" in note

    def test_never_negative(self):
        """Penalties floor the score at zero."""
        macro = MacroContext(btc_regime="BULL", btc_weekly_regime="BULL")
        score, _ = apply_macro_filters(20.0, "ETHUSDT", "SHORT", macro)
        assert score == 0.0
