"""Binance public REST async client.

Read-only market data: klines, 24h tickers, last price and order-book
depth, plus the USDT market-cap dominance from a global-metrics
endpoint.  No API key is needed.
"""

import asyncio
import logging
from typing import Optional

import httpx

from scanner.analysis.models import CandleData
from scanner.config import Config
from scanner.exchange.models import OrderBook, Ticker
from scanner.models.pipeline_config import PipelineConfig

logger = logging.getLogger("scanner.exchange")

# Retry settings
_MAX_RETRIES = 3
_RETRY_BASE_DELAY = 2.0  # seconds; doubles each attempt
_RETRYABLE_STATUS_CODES = {502, 503, 504, 429}

_LEVERAGED_MARKERS = ("UP", "DOWN")
_QUOTE_ASSET = "USDT"


class BinanceClient:
    """Async client wrapping the Binance spot market-data endpoints."""

    def __init__(self, config: Config, pipeline_config: PipelineConfig = PipelineConfig()) -> None:
        self._base_url = config.binance_base_url.rstrip("/")
        self._dominance_url = config.dominance_url
        self._ignored = set(pipeline_config.ignored_symbols)
        self._headers = {"Accept": "application/json"}

    # ── Retry helper ─────────────────────────────────────────────────────

    async def _request_with_retry(
        self,
        method: str,
        url: str,
        **kwargs,
    ) -> httpx.Response:
        """Execute an HTTP request with exponential-backoff retry.

        Retries on transient server errors (502, 503, 504), rate-limits
        (429) and transport errors.  Other errors are raised immediately.
        """
        last_exc: Optional[Exception] = None

        for attempt in range(_MAX_RETRIES):
            try:
                async with httpx.AsyncClient() as client:
                    resp = await getattr(client, method)(
                        url,
                        headers=self._headers,
                        timeout=30.0,
                        **kwargs,
                    )

                if resp.status_code in _RETRYABLE_STATUS_CODES:
                    delay = _RETRY_BASE_DELAY * (2 ** attempt)
                    logger.warning(
                        "Binance %s %s returned %d — retry %d/%d in %.1fs",
                        method.upper(), url, resp.status_code,
                        attempt + 1, _MAX_RETRIES, delay,
                    )
                    await asyncio.sleep(delay)
                    last_exc = httpx.HTTPStatusError(
                        f"Server error '{resp.status_code}'",
                        request=resp.request,
                        response=resp,
                    )
                    continue

                resp.raise_for_status()
                return resp

            except httpx.TransportError as exc:
                delay = _RETRY_BASE_DELAY * (2 ** attempt)
                logger.warning(
                    "Binance %s %s transport error (%s) — retry %d/%d in %.1fs",
                    method.upper(), url, exc,
                    attempt + 1, _MAX_RETRIES, delay,
                )
                last_exc = exc
                await asyncio.sleep(delay)

        # All retries exhausted
        raise last_exc  # type: ignore[misc]

    # ── Candles ──────────────────────────────────────────────────────────

    async def fetch_candles(
        self,
        symbol: str,
        interval: str,
        limit: int = 300,
    ) -> list[CandleData]:
        """Fetch klines for *symbol*.

        Args:
            symbol: e.g. ``"ETHUSDT"``
            interval: e.g. ``"15m"``, ``"1h"``, ``"1d"``
            limit: number of bars to request (max 1000)

        Returns:
            List of ``CandleData`` ordered oldest-first, with taker-buy
            base volume populated.
        """
        url = f"{self._base_url}/api/v3/klines"
        params = {"symbol": symbol, "interval": interval, "limit": limit}

        resp = await self._request_with_retry("get", url, params=params)

        candles: list[CandleData] = []
        for k in resp.json():
            candles.append(
                CandleData(
                    time=int(k[0]),
                    open=float(k[1]),
                    high=float(k[2]),
                    low=float(k[3]),
                    close=float(k[4]),
                    volume=float(k[5]),
                    taker_buy_volume=float(k[9]) if len(k) > 9 else None,
                )
            )
        return candles

    # ── Universe ─────────────────────────────────────────────────────────

    async def fetch_tickers(self) -> list[Ticker]:
        """All 24h tickers, unfiltered."""
        url = f"{self._base_url}/api/v3/ticker/24hr"

        resp = await self._request_with_retry("get", url)

        return [
            Ticker(
                symbol=t["symbol"],
                last_price=float(t.get("lastPrice", 0)),
                quote_volume=float(t.get("quoteVolume", 0)),
                price_change_pct=float(t.get("priceChangePercent", 0)),
            )
            for t in resp.json()
        ]

    def _is_tradeable(self, symbol: str) -> bool:
        if not symbol.endswith(_QUOTE_ASSET) or symbol in self._ignored:
            return False
        return not any(marker in symbol for marker in _LEVERAGED_MARKERS)

    async def fetch_top_symbols(self, limit: int = 50) -> list[str]:
        """USDT pairs by descending 24h quote volume.

        Ignored symbols (stablecoins, wrapped fiat) and leveraged tokens
        are excluded.
        """
        tickers = [t for t in await self.fetch_tickers() if self._is_tradeable(t.symbol)]
        tickers.sort(key=lambda t: t.quote_volume, reverse=True)
        return [t.symbol for t in tickers[:limit]]

    # ── Prices & depth ───────────────────────────────────────────────────

    async def fetch_price(self, symbol: str) -> float:
        """Last traded price for *symbol*."""
        url = f"{self._base_url}/api/v3/ticker/price"

        resp = await self._request_with_retry("get", url, params={"symbol": symbol})

        return float(resp.json()["price"])

    async def fetch_order_book(self, symbol: str, limit: int = 20) -> OrderBook:
        """Depth snapshot with the best *limit* levels per side."""
        url = f"{self._base_url}/api/v3/depth"

        resp = await self._request_with_retry(
            "get", url, params={"symbol": symbol, "limit": limit},
        )

        data = resp.json()
        return OrderBook(
            symbol=symbol,
            bids=tuple((float(p), float(q)) for p, q in data.get("bids", [])),
            asks=tuple((float(p), float(q)) for p, q in data.get("asks", [])),
        )

    # ── Global metrics ───────────────────────────────────────────────────

    async def fetch_usdt_dominance(self) -> float:
        """USDT share of total crypto market cap, in percent.

        Reads a CoinGecko-style ``/global`` payload.  Raises ``ValueError``
        when the payload carries no USDT share.
        """
        resp = await self._request_with_retry("get", self._dominance_url)

        shares = resp.json().get("data", {}).get("market_cap_percentage", {})
        if "usdt" not in shares:
            raise ValueError("Global metrics carry no USDT dominance")
        return float(shares["usdt"])
