"""Tests for the confluence engine (point-of-interest scoring)."""

import pytest

from scanner.analysis.models import Pivots
from scanner.models.pipeline_config import PipelineConfig
from scanner.structure.confluence import ConfluenceInputs, compute_confluence
from scanner.structure.liquidity import detect_order_book_walls
from scanner.structure.models import (
    FairValueGap,
    LiquidationCluster,
    OrderBlock,
    OrderBookWall,
)

# Pivots and EMAs far from the fib grid so only the levels under test merge
_PIVOTS = Pivots(p=100.0, r1=120.0, s1=80.0, r2=130.0, s2=70.0)


def _inputs(fib, **overrides) -> ConfluenceInputs:
    fields = dict(
        price=100.0,
        atr=1.0,
        fibonacci=fib,
        pivots=_PIVOTS,
        ema200=85.0,
        ema50=115.0,
    )
    fields.update(overrides)
    return ConfluenceInputs(**fields)


def _bullish_ob(price: float = 97.64, mitigated: bool = False) -> OrderBlock:
    return OrderBlock(
        direction="BULLISH",
        price=price,
        top=price + 0.2,
        bottom=price - 0.2,
        strength=10.0,
        mitigated=mitigated,
        index=0,
    )


class TestConfluence:

    def test_sides_relative_to_price(self, make_fibonacci):
        """Levels below price are supports, at or above are resistances."""
        result = compute_confluence(_inputs(make_fibonacci(110.0, 90.0)))

        assert all(p.price < 100.0 and p.type == "SUPPORT" for p in result.top_supports)
        assert all(p.price >= 100.0 and p.type == "RESISTANCE" for p in result.top_resistances)
        assert len(result.top_supports) == 3
        assert len(result.top_resistances) == 3

    def test_fib_order_block_synergy(self, make_fibonacci):
        """A fib level and an order block at one price earn the synergy bonus."""
        result = compute_confluence(
            _inputs(make_fibonacci(110.0, 90.0), bullish_order_blocks=(_bullish_ob(),))
        )

        best = result.top_supports[0]
        # Fib 0.618 (3) + OB strength 10 (4) = 7, x1.5 rounded up
        assert best.score == 11
        assert best.price == pytest.approx(97.64)
        assert "Fib + OB synergy" in best.factors
        assert result.poi_score == 11

    def test_liquidity_triple_synergy(self, make_fibonacci):
        """Fib, order block and a bid wall stack into the top support."""
        wall = OrderBookWall(side="BID", price=97.64, volume=1000.0, strength=100.0)
        result = compute_confluence(
            _inputs(
                make_fibonacci(110.0, 90.0),
                bullish_order_blocks=(_bullish_ob(),),
                bid_wall=wall,
            )
        )

        best = result.top_supports[0]
        assert best.score == 26
        assert "Fib + OB + liquidity synergy" in best.factors
        assert "Bid Wall" in best.factors

    def test_weak_wall_ignored(self, make_fibonacci):
        """Walls under strength 50 add nothing."""
        wall = OrderBookWall(side="BID", price=97.64, volume=10.0, strength=40.0)
        result = compute_confluence(
            _inputs(make_fibonacci(110.0, 90.0), bid_wall=wall)
        )
        assert all("Bid Wall" not in p.factors for p in result.top_supports)

    @pytest.mark.parametrize("wall_qty, counted", [(5.0, False), (40.0, True)])
    def test_detected_wall_counts_by_size(self, make_fibonacci, wall_qty, counted):
        """A wall barely over the detection threshold is too weak to be a level."""
        bids = [(99.9 - i * 0.1, 1.0) for i in range(19)] + [(97.64, wall_qty)]
        bid_wall, _ = detect_order_book_walls(bids, [])
        result = compute_confluence(_inputs(make_fibonacci(110.0, 90.0), bid_wall=bid_wall))

        assert bid_wall is not None
        assert any("Bid Wall" in p.factors for p in result.top_supports) is counted

    def test_mitigated_and_filled_structure_ignored(self, make_fibonacci):
        """Spent order blocks and filled gaps are not levels."""
        fvg = FairValueGap(
            direction="BULLISH", top=92.0, bottom=91.0, midpoint=91.5,
            size=1.0, filled=True, index=0,
        )
        result = compute_confluence(
            _inputs(
                make_fibonacci(110.0, 90.0),
                bullish_order_blocks=(_bullish_ob(mitigated=True),),
                bullish_fvgs=(fvg,),
            )
        )
        factors = [f for p in result.top_supports for f in p.factors]
        assert not any("OB" in f for f in factors)
        assert "Bullish FVG" not in factors

    def test_short_liquidation_cluster_is_resistance(self, make_fibonacci):
        """Short liquidations above price count as resistance."""
        cluster = LiquidationCluster(price_min=111.9, price_max=112.1, strength=100.0, type="SHORT_LIQ")
        result = compute_confluence(
            _inputs(make_fibonacci(110.0, 90.0), liquidation_clusters=(cluster,))
        )
        best = result.top_resistances[0]
        assert best.price == pytest.approx(112.0)
        assert best.factors == ("Short Liq cluster",)
        assert best.score == 4

    def test_top_n_respected(self, make_fibonacci):
        """Each side is cut to the configured count."""
        config = PipelineConfig(confluence_top_n=1)
        result = compute_confluence(_inputs(make_fibonacci(110.0, 90.0)), config)
        assert len(result.top_supports) == 1
        assert len(result.top_resistances) == 1
