"""Opportunity scanner — application configuration.

Loads .env variables into a typed config object.
Validates required variables on startup.
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from scanner.models.pipeline_config import PipelineConfig


_REQUIRED_VARS = [
    "SCAN_UNIVERSE",
]

_RR_TARGETS = ("tp2", "tp3")


@dataclass(frozen=True)
class Config:
    """Typed configuration loaded from environment variables."""

    scan_universe: tuple[str, ...]  # empty → auto-select by volume
    universe_size: int
    scan_interval: str
    candle_limit: int
    reference_symbol: str
    binance_base_url: str
    poll_interval_seconds: int
    fetch_order_books: bool
    fetch_dominance: bool
    dominance_url: str  # CoinGecko-style /global endpoint
    rr_target: str  # "tp2" or "tp3"
    log_level: str
    api_port: int

    @property
    def auto_universe(self) -> bool:
        """True when the universe is selected by 24h quote volume."""
        return not self.scan_universe

    def pipeline_config(self) -> PipelineConfig:
        """Pipeline tunables with the env-level overrides applied."""
        return PipelineConfig(rr_target=self.rr_target)


def _parse_universe(raw: str) -> tuple[str, ...]:
    if raw.strip().lower() == "auto":
        return ()
    return tuple(s.strip().upper() for s in raw.split(",") if s.strip())


def load_config(env_path: str | None = None) -> Config:
    """Load configuration from environment variables.

    Raises ``ValueError`` with a message naming the missing variable when a
    required variable is absent, or when ``RR_TARGET`` is not recognised.
    """
    load_dotenv(dotenv_path=env_path)

    missing = [v for v in _REQUIRED_VARS if not os.environ.get(v)]
    if missing:
        raise ValueError(
            f"Missing required environment variable(s): {', '.join(missing)}"
        )

    rr_target = os.environ.get("RR_TARGET", "tp2").lower()
    if rr_target not in _RR_TARGETS:
        raise ValueError(
            f"RR_TARGET must be one of {', '.join(_RR_TARGETS)}, got '{rr_target}'"
        )

    return Config(
        scan_universe=_parse_universe(os.environ["SCAN_UNIVERSE"]),
        universe_size=int(os.environ.get("UNIVERSE_SIZE", "50")),
        scan_interval=os.environ.get("SCAN_INTERVAL", "15m"),
        candle_limit=int(os.environ.get("CANDLE_LIMIT", "300")),
        reference_symbol=os.environ.get("REFERENCE_SYMBOL", "BTCUSDT"),
        binance_base_url=os.environ.get("BINANCE_BASE_URL", "https://data-api.binance.vision"),
        poll_interval_seconds=int(os.environ.get("POLL_INTERVAL_SECONDS", "300")),
        fetch_order_books=os.environ.get("FETCH_ORDER_BOOKS", "false").lower() in ("1", "true", "yes"),
        fetch_dominance=os.environ.get("FETCH_DOMINANCE", "false").lower() in ("1", "true", "yes"),
        dominance_url=os.environ.get("DOMINANCE_URL", "https://api.coingecko.com/api/v3/global"),
        rr_target=rr_target,
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
        api_port=int(os.environ.get("API_PORT", "8080")),
    )
