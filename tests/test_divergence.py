"""Tests for price/oscillator divergence and Cardwell reversal targets."""

import pytest

from scanner.structure.divergence import calculate_reversal_target, detect_divergence


def _window(start: float, end: float, n: int = 5) -> list[float]:
    """A window whose only meaningful values are its first and last bar."""
    mid = (start + end) / 2
    return [start] + [mid] * (n - 2) + [end]


class TestRegularDivergence:

    def test_bullish_rsi(self):
        """Lower low in price, higher low in RSI from oversold."""
        result = detect_divergence(
            highs=_window(102.0, 101.0),
            lows=_window(100.0, 98.0),
            oscillator=_window(35.0, 38.0),
            source="RSI",
        )
        assert result is not None
        assert result.type == "BULLISH"
        assert result.strength == 0.8
        assert result.is_bullish

    def test_bearish_rsi(self):
        """Higher high in price, lower high in RSI from overbought."""
        result = detect_divergence(
            highs=_window(100.0, 102.0),
            lows=_window(98.0, 98.0),
            oscillator=_window(70.0, 65.0),
            source="RSI",
        )
        assert result is not None
        assert result.type == "BEARISH"
        assert not result.is_bullish

    def test_rsi_level_filter_blocks_mid_range(self):
        """RSI divergences away from the extremes are ignored."""
        result = detect_divergence(
            highs=_window(102.0, 102.0),
            lows=_window(100.0, 98.0),
            oscillator=_window(50.0, 55.0),
            source="RSI",
        )
        assert result is None

    def test_macd_has_no_level_filter(self):
        """MACD divergences count at any level."""
        result = detect_divergence(
            highs=_window(102.0, 102.0),
            lows=_window(100.0, 98.0),
            oscillator=_window(50.0, 55.0),
            source="MACD",
        )
        assert result is not None
        assert result.type == "BULLISH"
        assert "MACD" in result.description


class TestHiddenDivergence:

    def test_hidden_bullish(self):
        """Higher low in price with a lower oscillator low."""
        result = detect_divergence(
            highs=_window(103.0, 103.0),
            lows=_window(100.0, 101.0),
            oscillator=_window(55.0, 45.0),
            source="RSI",
        )
        assert result is not None
        assert result.type == "HIDDEN_BULLISH"
        assert result.strength == 0.9

    def test_hidden_bearish(self):
        """Lower high in price with a higher oscillator high."""
        result = detect_divergence(
            highs=_window(105.0, 104.0),
            lows=_window(100.0, 100.0),
            oscillator=_window(45.0, 55.0),
            source="RSI",
        )
        assert result is not None
        assert result.type == "HIDDEN_BEARISH"


class TestCVDAbsorption:

    def test_buy_absorption(self):
        """Falling price with rising CVD is buy absorption."""
        result = detect_divergence(
            highs=_window(102.0, 101.0),
            lows=_window(100.0, 98.0),
            oscillator=_window(-10.0, 5.0),
            source="CVD",
        )
        assert result is not None
        assert result.type == "CVD_ABSORPTION_BUY"
        assert result.strength == 0.95
        assert result.is_bullish

    def test_sell_absorption(self):
        """Rising price with falling CVD is sell absorption."""
        result = detect_divergence(
            highs=_window(100.0, 102.0),
            lows=_window(98.0, 99.0),
            oscillator=_window(10.0, -5.0),
            source="CVD",
        )
        assert result is not None
        assert result.type == "CVD_ABSORPTION_SELL"

    def test_cvd_never_reports_hidden(self):
        """CVD only reports absorption, never hidden divergence."""
        result = detect_divergence(
            highs=_window(103.0, 103.0),
            lows=_window(100.0, 101.0),
            oscillator=_window(10.0, 5.0),
            source="CVD",
        )
        assert result is None


class TestDivergenceEdges:

    def test_window_too_short(self):
        """Fewer bars than the lookback yields nothing."""
        assert detect_divergence([1.0, 2.0], [1.0, 2.0], [1.0, 2.0], lookback=5) is None

    def test_nan_oscillator(self):
        """Warm-up NaN in the oscillator yields nothing."""
        result = detect_divergence(
            highs=_window(100.0, 102.0),
            lows=_window(98.0, 98.0),
            oscillator=_window(float("nan"), 65.0),
        )
        assert result is None


class TestReversalTarget:

    def test_positive_reversal(self):
        """Bullish RSI divergence projects a target above the swing high."""
        rsi = [50.0] * 20
        rsi[8], rsi[16] = 30.0, 25.0
        lows = [99.0] * 20
        lows[8], lows[16] = 95.0, 97.0
        highs = [100.0] * 20
        highs[12] = 105.0

        target = calculate_reversal_target(highs, lows, [100.0] * 20, rsi)

        assert target is not None
        assert target.type == "POSITIVE"
        assert target.target_price == pytest.approx(107.0)

    def test_negative_reversal(self):
        """Bearish RSI divergence projects a target below the swing low."""
        rsi = [50.0] * 20
        rsi[8], rsi[16] = 70.0, 75.0
        highs = [101.0] * 20
        highs[8], highs[16] = 110.0, 108.0
        lows = [100.0] * 20
        lows[12] = 96.0

        target = calculate_reversal_target(highs, lows, [100.0] * 20, rsi)

        assert target is not None
        assert target.type == "NEGATIVE"
        assert target.target_price == pytest.approx(94.0)

    def test_stale_pivot_ignored(self):
        """Pivots too far back do not produce a target."""
        rsi = [50.0] * 20
        rsi[4], rsi[9] = 30.0, 25.0
        lows = [99.0] * 20
        lows[4], lows[9] = 95.0, 97.0

        assert calculate_reversal_target([100.0] * 20, lows, [100.0] * 20, rsi) is None

    def test_nan_rsi_returns_none(self):
        """An all-NaN RSI has no pivots to project from."""
        rsi = [float("nan")] * 20
        assert calculate_reversal_target([1.0] * 20, [1.0] * 20, [1.0] * 20, rsi) is None
