"""Opportunity scanner — scan-cycle coordinator.

Computes the shared per-cycle inputs (market risk, macro context,
universe), fans out one task per symbol, ranks what comes back and
publishes the result atomically.
"""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import httpx

from scanner.analysis.indicators import ema_series
from scanner.analysis.models import CandleData
from scanner.config import Config
from scanner.exchange.binance_client import BinanceClient
from scanner.macro import DominanceTrend, MacroContext, classify_btc_regime, classify_dominance_trend
from scanner.models.opportunity import Opportunity
from scanner.models.pipeline_config import PipelineConfig
from scanner.pipeline import OrderBookContext, evaluate_asset
from scanner.ranker import TimeframeContext, rank_opportunities
from scanner.risk.market_risk import MarketRisk, get_market_risk
from scanner.structure.liquidity import buying_pressure, detect_order_book_walls

logger = logging.getLogger("scanner.engine")

_RISK_INTERVAL = "1h"
_RISK_LIMIT = 50
_MACRO_LIMIT = 250
_MTF_INTERVAL = "1h"
_MTF_LIMIT = 250
_DOMINANCE_READINGS = 12  # trend spans the last dozen cycles


class DataSourceUnavailable(Exception):
    """A whole-cycle input (reference risk or universe) could not be fetched."""


@dataclass(frozen=True)
class ScanResult:
    cycle_id: int
    opportunities: tuple[Opportunity, ...]
    market_risk: MarketRisk
    macro: Optional[MacroContext]
    symbols_scanned: int
    started_at: str
    finished_at: str


@dataclass(frozen=True)
class _Candidate:
    opportunity: Opportunity
    live_price: Optional[float]
    mtf: Optional[TimeframeContext]


class ScanEngine:
    """Runs scan cycles, one at a time.

    Args:
        config: Application configuration.
        client: A ``BinanceClient`` (or compatible duck-type / mock).
        pipeline_config: Pipeline tunables; defaults to ``config.pipeline_config()``.
    """

    def __init__(
        self,
        config: Config,
        client: BinanceClient,
        pipeline_config: Optional[PipelineConfig] = None,
    ) -> None:
        self._config = config
        self._client = client
        self._pipeline_config = pipeline_config or config.pipeline_config()
        self._lock = asyncio.Lock()
        self._cycle_id = 0
        self._latest: Optional[ScanResult] = None
        self._running = False
        self._last_error: Optional[str] = None
        self._dominance: deque[float] = deque(maxlen=_DOMINANCE_READINGS)

    # ── Public API ───────────────────────────────────────────────────────

    @property
    def latest(self) -> Optional[ScanResult]:
        """The most recently completed cycle, or ``None`` before the first."""
        return self._latest

    @property
    def is_scanning(self) -> bool:
        return self._lock.locked()

    def status(self) -> dict:
        latest = self._latest
        return {
            "running": self._running,
            "scanning": self.is_scanning,
            "cycle_count": self._cycle_id,
            "last_cycle_id": latest.cycle_id if latest else None,
            "last_finished_at": latest.finished_at if latest else None,
            "opportunities": len(latest.opportunities) if latest else 0,
            "market_risk": latest.market_risk.level if latest else None,
            "last_error": self._last_error,
        }

    def stop(self) -> None:
        """Signal the loop to stop after the current cycle."""
        self._running = False

    # ── Polling loop ─────────────────────────────────────────────────────

    async def run(
        self,
        poll_interval: int | None = None,
        max_cycles: int = 0,
    ) -> list[ScanResult]:
        """Run scan cycles until stopped.

        Args:
            poll_interval: Seconds between cycles.  Defaults to config.
            max_cycles: Stop after this many cycles (0 = unlimited).

        Returns:
            Results of the cycles that completed.
        """
        if poll_interval is None:
            poll_interval = self._config.poll_interval_seconds
        self._running = True
        results: list[ScanResult] = []
        cycle = 0

        while self._running:
            cycle += 1
            try:
                results.append(await self.run_cycle())
            except DataSourceUnavailable as exc:
                logger.error("Cycle %d aborted: %s", cycle, exc)

            if max_cycles > 0 and cycle >= max_cycles:
                break

            # Interruptible sleep, checks _running every second
            for _ in range(poll_interval):
                if not self._running:
                    break
                await asyncio.sleep(1)

        self._running = False
        return results

    # ── Single cycle ─────────────────────────────────────────────────────

    async def run_cycle(self) -> ScanResult:
        """Execute one full scan cycle.

        A request while a cycle is in flight waits for it to finish and
        then runs its own.

        Raises:
            DataSourceUnavailable: If the reference risk or the universe
                cannot be fetched.
        """
        async with self._lock:
            self._cycle_id += 1
            cycle_id = self._cycle_id
            started_at = datetime.now(timezone.utc).isoformat()

            try:
                risk = await self._load_market_risk()
                macro = await self._load_macro()
                symbols = await self._load_universe()
            except DataSourceUnavailable as exc:
                self._last_error = str(exc)
                raise

            logger.info(
                "Cycle %d: scanning %d symbol(s) — risk %s (%s)",
                cycle_id, len(symbols), risk.level, risk.note,
            )

            results = await asyncio.gather(*(self._evaluate_symbol(s) for s in symbols))
            candidates = [r for r in results if r is not None]

            live_prices = {
                c.opportunity.symbol: c.live_price for c in candidates if c.live_price is not None
            }
            mtf = {c.opportunity.symbol: c.mtf for c in candidates if c.mtf is not None}
            ranked = rank_opportunities(
                [c.opportunity for c in candidates],
                live_prices,
                risk,
                self._pipeline_config,
                macro,
                mtf,
            )

            result = ScanResult(
                cycle_id=cycle_id,
                opportunities=tuple(ranked),
                market_risk=risk,
                macro=macro,
                symbols_scanned=len(symbols),
                started_at=started_at,
                finished_at=datetime.now(timezone.utc).isoformat(),
            )
            self._publish(result)
            self._last_error = None
            logger.info(
                "Cycle %d complete: %d candidate(s), %d ranked",
                cycle_id, len(candidates), len(ranked),
            )
            return result

    def _publish(self, result: ScanResult) -> None:
        if self._latest is not None and self._latest.cycle_id > result.cycle_id:
            logger.warning(
                "Discarding late result of cycle %d (cycle %d already published)",
                result.cycle_id, self._latest.cycle_id,
            )
            return
        self._latest = result

    # ── Shared per-cycle inputs ──────────────────────────────────────────

    async def _load_market_risk(self) -> MarketRisk:
        symbol = self._config.reference_symbol
        try:
            candles = await self._client.fetch_candles(symbol, _RISK_INTERVAL, _RISK_LIMIT)
            return get_market_risk(candles, self._pipeline_config)
        except (httpx.HTTPError, ValueError) as exc:
            raise DataSourceUnavailable(f"Market risk from {symbol} unavailable: {exc}") from exc

    async def _load_macro(self) -> Optional[MacroContext]:
        """Macro context is optional; a failure drops it for this cycle."""
        symbol = self._config.reference_symbol
        try:
            daily = await self._client.fetch_candles(symbol, "1d", _MACRO_LIMIT)
            btc_regime = classify_btc_regime(daily)
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Macro context unavailable, filters skipped: %s", exc)
            return None

        weekly_regime = None
        try:
            weekly = await self._client.fetch_candles(symbol, "1w", _MACRO_LIMIT)
            weekly_regime = classify_btc_regime(weekly)
        except (httpx.HTTPError, ValueError) as exc:
            logger.debug("Weekly macro regime unavailable: %s", exc)

        return MacroContext(
            btc_regime=btc_regime,
            btc_weekly_regime=weekly_regime,
            usdt_dominance_trend=await self._load_dominance_trend(),
        )

    async def _load_dominance_trend(self) -> DominanceTrend:
        """Trend over the readings kept from earlier cycles.

        A failed fetch keeps the history and classifies what is there.
        """
        if not self._config.fetch_dominance:
            return "STABLE"
        try:
            self._dominance.append(await self._client.fetch_usdt_dominance())
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("USDT dominance unavailable: %s", exc)
        return classify_dominance_trend(list(self._dominance))

    async def _load_universe(self) -> list[str]:
        if not self._config.auto_universe:
            return list(self._config.scan_universe)
        try:
            return await self._client.fetch_top_symbols(self._config.universe_size)
        except httpx.HTTPError as exc:
            raise DataSourceUnavailable(f"Universe fetch failed: {exc}") from exc

    # ── Per-symbol task ──────────────────────────────────────────────────

    async def _evaluate_symbol(self, symbol: str) -> Optional[_Candidate]:
        """Fetch, evaluate and enrich one symbol; failures exclude it."""
        try:
            candles = await self._client.fetch_candles(
                symbol, self._config.scan_interval, self._config.candle_limit,
            )
            order_book = await self._load_order_book(symbol)
            opportunity = await asyncio.to_thread(
                evaluate_asset,
                symbol,
                candles,
                self._pipeline_config,
                timeframe=self._config.scan_interval,
                order_book=order_book,
            )
            if opportunity is None:
                return None

            live_price = await self._client.fetch_price(symbol)
            mtf = await self._load_mtf(symbol, candles)
            return _Candidate(opportunity=opportunity, live_price=live_price, mtf=mtf)
        except Exception as exc:
            logger.warning("%s: evaluation failed, excluded from cycle: %s", symbol, exc)
            return None

    async def _load_order_book(self, symbol: str) -> Optional[OrderBookContext]:
        if not self._config.fetch_order_books:
            return None
        book = await self._client.fetch_order_book(symbol)
        bid_wall, ask_wall = detect_order_book_walls(book.bids, book.asks)
        return OrderBookContext(
            bid_wall=bid_wall,
            ask_wall=ask_wall,
            buying_pressure=buying_pressure(book.bids, book.asks),
        )

    async def _load_mtf(
        self,
        symbol: str,
        candles: list[CandleData],
    ) -> Optional[TimeframeContext]:
        if self._config.scan_interval != _MTF_INTERVAL:
            candles = await self._client.fetch_candles(symbol, _MTF_INTERVAL, _MTF_LIMIT)
        if len(candles) < 200:
            return None
        closes = [c.close for c in candles]
        return TimeframeContext(price=closes[-1], ema200=ema_series(closes, 200)[-1])
