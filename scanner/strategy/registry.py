"""Strategy registry — maps strategy ids to runner classes.

Built once at import; the pipeline resolves the active ids of a
``StrategySelection`` through ``get_strategy``.
"""

from scanner.strategy.base import StrategyProtocol
from scanner.strategy.breakout import BreakoutMomentumStrategy
from scanner.strategy.divergence_hunter import DivergenceHunterStrategy
from scanner.strategy.ichimoku import IchimokuDragonStrategy
from scanner.strategy.mean_reversion import MeanReversionStrategy
from scanner.strategy.meme_hunter import MemeHunterStrategy
from scanner.strategy.quant_volatility import QuantVolatilityStrategy
from scanner.strategy.smc_liquidity import SMCLiquidityStrategy


STRATEGY_REGISTRY: dict[str, type] = {
    "ichimoku_dragon": IchimokuDragonStrategy,
    "breakout_momentum": BreakoutMomentumStrategy,
    "smc_liquidity": SMCLiquidityStrategy,
    "quant_volatility": QuantVolatilityStrategy,
    "mean_reversion": MeanReversionStrategy,
    "meme_hunter": MemeHunterStrategy,
    "divergence_hunter": DivergenceHunterStrategy,
}


def get_strategy(name: str) -> StrategyProtocol:
    """Look up and instantiate a strategy by registry key.

    Raises ``KeyError`` if the strategy id is not registered.
    """
    if name not in STRATEGY_REGISTRY:
        raise KeyError(
            f"Unknown strategy '{name}'. "
            f"Available: {', '.join(STRATEGY_REGISTRY.keys())}"
        )
    return STRATEGY_REGISTRY[name]()
