"""Regime → strategy weight selection."""

from dataclasses import dataclass

from scanner.models.pipeline_config import PipelineConfig
from scanner.strategy.regime import MarketRegime


@dataclass(frozen=True)
class StrategyWeight:
    id: str
    weight: float
    reason: str


@dataclass(frozen=True)
class StrategySelection:
    regime: str
    active_strategies: tuple[StrategyWeight, ...]
    disabled_strategies: tuple[str, ...]
    total_weight: float


def select_strategies(
    regime: MarketRegime,
    config: PipelineConfig = PipelineConfig(),
) -> StrategySelection:
    """Split the weight row for *regime* into active and disabled ids.

    Zero-weight strategies are disabled and never executed.
    """
    row = config.weights_for(regime.regime)
    active = tuple(
        StrategyWeight(
            id=strategy_id,
            weight=weight,
            reason=f"{strategy_id} weighted {weight:.0%} in {regime.regime}",
        )
        for strategy_id, weight in row.items()
        if weight > 0
    )
    disabled = tuple(sid for sid, weight in row.items() if weight <= 0)
    return StrategySelection(
        regime=regime.regime,
        active_strategies=active,
        disabled_strategies=disabled,
        total_weight=sum(w.weight for w in active),
    )
