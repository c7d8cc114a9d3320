"""Deterministic tests for the structure detectors and the structure analyzer."""

import pytest

from scanner.analysis.indicator_engine import build_indicator_set
from scanner.analysis.models import CandleData
from scanner.structure import analyzer
from scanner.structure.analyzer import analyze_structure
from scanner.structure.chart_patterns import detect_chart_patterns
from scanner.structure.fair_value_gaps import detect_fair_value_gaps
from scanner.structure.harmonics import detect_harmonic_patterns
from scanner.structure.liquidity import (
    buying_pressure,
    detect_order_book_walls,
    estimate_liquidation_clusters,
)
from scanner.structure.models import EMPTY_VOLUME_PROFILE
from scanner.structure.order_blocks import detect_order_blocks
from scanner.structure.volume_profile import calculate_volume_profile


def _make_candle(t: int, o: float, h: float, l: float, c: float, vol: float = 100.0) -> CandleData:
    return CandleData(time=t, open=o, high=h, low=l, close=c, volume=vol)


def _path_candles(points: list[float], steps: int = 4) -> list[CandleData]:
    """Interpolate a zig-zag through *points*, one thin candle per step."""
    closes = [points[0]]
    for start, end in zip(points, points[1:]):
        for s in range(1, steps + 1):
            closes.append(start + (end - start) * s / steps)
    return [_make_candle(i, c, c + 0.05, c - 0.05, c) for i, c in enumerate(closes)]


# ── Fair value gaps ──────────────────────────────────────────────────────


def _fvg_candles() -> list[CandleData]:
    """One bullish gap between candle 0's high (100) and candle 2's low (102)."""
    return [
        _make_candle(0, 99.0, 100.0, 98.0, 99.5),
        _make_candle(1, 99.5, 103.0, 99.5, 102.8),
        _make_candle(2, 102.8, 104.0, 102.0, 103.5),
        _make_candle(3, 103.5, 105.0, 103.0, 104.5),
        _make_candle(4, 104.5, 105.5, 103.2, 105.0),
    ]


class TestFairValueGaps:

    def test_single_unfilled_bullish_gap(self):
        """A three-bar gap up is recorded with its bounds and midpoint."""
        bullish, bearish = detect_fair_value_gaps(_fvg_candles(), atr=1.0)

        assert bearish == []
        assert len(bullish) == 1
        gap = bullish[0]
        assert gap.bottom == 100.0
        assert gap.top == 102.0
        assert gap.midpoint == 101.0
        assert gap.filled is False
        assert gap.index == 1

    def test_gap_filled_once_price_trades_back_in(self):
        """A later bar trading into the gap marks it filled."""
        candles = _fvg_candles() + [_make_candle(5, 105.0, 105.0, 101.5, 104.0)]
        bullish, _ = detect_fair_value_gaps(candles, atr=1.0)
        assert len(bullish) == 1
        assert bullish[0].filled is True

    def test_gap_smaller_than_atr_fraction_ignored(self):
        """Gaps under the ATR fraction are noise."""
        bullish, _ = detect_fair_value_gaps(_fvg_candles(), atr=10.0)
        assert bullish == []

    def test_bearish_gap_mirrored(self):
        """Gaps down mirror the bullish case."""
        candles = [
            _make_candle(0, 101.0, 102.0, 100.0, 100.5),
            _make_candle(1, 100.5, 100.5, 97.0, 97.2),
            _make_candle(2, 97.2, 98.0, 96.0, 96.5),
            _make_candle(3, 96.5, 97.0, 95.0, 95.5),
        ]
        bullish, bearish = detect_fair_value_gaps(candles, atr=1.0)
        assert bullish == []
        assert len(bearish) == 1
        assert bearish[0].top == 100.0
        assert bearish[0].bottom == 98.0

    def test_degenerate_inputs(self):
        """Too few candles or no ATR yields no gaps."""
        assert detect_fair_value_gaps(_fvg_candles()[:2], atr=1.0) == ([], [])
        assert detect_fair_value_gaps(_fvg_candles(), atr=0.0) == ([], [])


# ── Order blocks ─────────────────────────────────────────────────────────


def _ob_candles() -> list[CandleData]:
    """Quiet base, a heavy down candle at index 10, then a 3-ATR rally."""
    candles = [_make_candle(i, 100.0, 100.5, 99.5, 100.0) for i in range(10)]
    candles += [
        _make_candle(10, 100.2, 100.4, 99.6, 99.8, vol=500.0),
        _make_candle(11, 99.8, 101.5, 99.8, 101.3, vol=200.0),
        _make_candle(12, 101.3, 103.0, 101.2, 102.8, vol=200.0),
        _make_candle(13, 102.8, 103.5, 102.5, 103.2),
        _make_candle(14, 103.2, 103.6, 103.0, 103.4),
    ]
    return candles


class TestOrderBlocks:

    def test_bullish_block_before_impulse(self):
        """The last down candle before an impulse is the block."""
        bullish, bearish = detect_order_blocks(_ob_candles(), atr=1.0)

        assert bearish == []
        assert len(bullish) == 1
        block = bullish[0]
        assert block.index == 10
        assert block.price == pytest.approx(100.0)
        assert block.top == 100.2
        assert block.bottom == 99.8
        assert block.strength == pytest.approx(10.0)
        assert block.mitigated is False

    def test_current_bar_retest_does_not_mitigate(self):
        """Only closed bars can mitigate a block."""
        candles = _ob_candles()
        candles[-1] = _make_candle(14, 103.2, 103.6, 100.0, 103.4)
        bullish, _ = detect_order_blocks(candles, atr=1.0)
        assert bullish[0].mitigated is False

    def test_closed_retest_mitigates(self):
        """A closed bar back into the block mitigates it."""
        candles = _ob_candles()
        candles[-1] = _make_candle(14, 103.2, 103.6, 100.0, 103.4)
        candles.append(_make_candle(15, 103.4, 103.8, 103.2, 103.6))
        bullish, _ = detect_order_blocks(candles, atr=1.0)
        assert bullish[0].mitigated is True

    def test_no_blocks_without_atr(self):
        """No ATR, no impulse, no blocks."""
        assert detect_order_blocks(_ob_candles(), atr=0.0) == ([], [])


# ── Volume profile ───────────────────────────────────────────────────────


class TestVolumeProfile:

    def test_poc_at_heaviest_band(self):
        """The point of control sits in the band with the most volume."""
        candles = [_make_candle(i, 100.5, 101.0, 100.0, 100.5, vol=1000.0) for i in range(20)]
        candles += [_make_candle(20 + i, 104.5, 105.0, 104.0, 104.5, vol=10.0) for i in range(2)]

        profile = calculate_volume_profile(candles, atr=1.0)

        assert 100.0 <= profile.poc <= 101.0
        assert profile.value_area_low <= profile.poc <= profile.value_area_high
        assert profile.total_volume == pytest.approx(20_020.0)

    def test_empty_without_atr(self):
        """Zero ATR gives the empty profile."""
        candles = [_make_candle(0, 100.0, 101.0, 99.0, 100.0)]
        assert calculate_volume_profile(candles, atr=0.0) == EMPTY_VOLUME_PROFILE

    def test_empty_without_candles(self):
        """No candles give the empty profile."""
        assert calculate_volume_profile([], atr=1.0) == EMPTY_VOLUME_PROFILE


# ── Patterns ─────────────────────────────────────────────────────────────


class TestPatterns:

    def test_bullish_gartley(self):
        """XABCD at Gartley ratios gives a PRZ at D and a stop beyond X."""
        # X=100, A=110, B at 0.618 XA, C=108, D at 0.786 XA
        candles = _path_candles([105.0, 100.0, 110.0, 103.82, 108.0, 102.14, 104.0])

        patterns = detect_harmonic_patterns(candles)

        assert len(patterns) == 1
        pattern = patterns[0]
        assert pattern.type == "GARTLEY"
        assert pattern.direction == "BULLISH"
        assert pattern.prz == pytest.approx(102.09)
        assert pattern.stop_loss == pytest.approx(99.95)
        assert pattern.d_index == 20

    def test_no_harmonic_without_pivots(self, uptrend_candles):
        """A straight trend has no swing pivots to fit."""
        assert detect_harmonic_patterns(uptrend_candles(50)) == []

    def test_double_top(self):
        """Two matching highs with a trough between form a double top."""
        candles = _path_candles([100.0, 105.0, 100.0, 105.5, 100.0], steps=2)

        patterns = detect_chart_patterns(candles)

        assert [p.type for p in patterns] == ["DOUBLE_TOP"]
        assert patterns[0].signal == "BEARISH"
        assert patterns[0].price == pytest.approx(105.55)


# ── Liquidity ────────────────────────────────────────────────────────────


class TestLiquidity:

    def test_bid_wall_detected(self):
        """A level over 3x the mean depth is a wall rated by its multiple."""
        bids = [(100.0 - i * 0.1, 1.0) for i in range(19)] + [(98.0, 10.0)]
        asks = [(100.1 + i * 0.1, 1.0) for i in range(20)]

        bid_wall, ask_wall = detect_order_book_walls(bids, asks)

        assert bid_wall is not None
        assert bid_wall.side == "BID"
        assert bid_wall.price == 98.0
        assert bid_wall.volume == 10.0
        assert ask_wall is None
        # 10 against a mean level of 1.45
        assert bid_wall.strength == pytest.approx(69.0)

    def test_no_walls_on_empty_book(self):
        """An empty book has no walls."""
        assert detect_order_book_walls([], []) == (None, None)

    def test_buying_pressure(self):
        """Bid over ask quantity; an empty ask side is balanced."""
        assert buying_pressure([(1.0, 3.0)], [(1.1, 1.5)]) == pytest.approx(2.0)
        assert buying_pressure([(1.0, 3.0)], []) == 1.0

    def test_liquidation_clusters_on_correct_side(self, flat_candles):
        """Short liquidations sit above price, long liquidations below."""
        clusters = estimate_liquidation_clusters(flat_candles(30), current_price=100.0)

        assert 0 < len(clusters) <= 5
        for cluster in clusters:
            if cluster.type == "SHORT_LIQ":
                assert cluster.price_min > 100.0
            else:
                assert cluster.price_max < 100.0
        assert abs(clusters[0].midpoint - 100.0) <= abs(clusters[-1].midpoint - 100.0)

    def test_liquidation_clusters_need_history(self, flat_candles):
        """Fewer than five candles give no clusters."""
        assert estimate_liquidation_clusters(flat_candles(3), current_price=100.0) == []


# ── Analyzer ─────────────────────────────────────────────────────────────


class TestStructureAnalyzer:

    def test_builds_structure_for_trend(self, uptrend_candles):
        """A clean trend yields a profile but no harmonics or bearish blocks."""
        candles = uptrend_candles(250)
        indicators = build_indicator_set("TESTUSDT", candles)

        structure = analyze_structure(candles, indicators)

        assert structure.volume_profile.poc > 0
        assert structure.harmonic_patterns == ()
        assert structure.bearish_order_blocks == ()

    def test_failing_detector_is_isolated(self, uptrend_candles, monkeypatch, caplog):
        """A raising detector leaves its fields empty and the rest intact."""
        candles = uptrend_candles(250)
        indicators = build_indicator_set("TESTUSDT", candles)

        def _boom(*args, **kwargs):
            raise RuntimeError("detector exploded")

        monkeypatch.setattr(analyzer, "detect_order_blocks", _boom)
        with caplog.at_level("WARNING", logger="scanner.structure"):
            structure = analyze_structure(candles, indicators)

        assert structure.bullish_order_blocks == ()
        assert structure.bearish_order_blocks == ()
        assert structure.volume_profile.poc > 0
        assert "order_blocks detector failed" in caplog.text
