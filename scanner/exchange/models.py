"""Exchange data models — typed representations of Binance public REST objects."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Ticker:
    """24h rolling statistics for one symbol."""

    symbol: str
    last_price: float
    quote_volume: float
    price_change_pct: float


@dataclass(frozen=True)
class OrderBook:
    """A depth snapshot; levels are ``(price, quantity)``, best first."""

    symbol: str
    bids: tuple[tuple[float, float], ...]
    asks: tuple[tuple[float, float], ...]
