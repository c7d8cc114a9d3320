"""Fundamental tier classification (S / A / B / C)."""

from typing import Literal

from scanner.models.pipeline_config import PipelineConfig

FundamentalTier = Literal["S", "A", "B", "C"]


def calculate_fundamental_tier(
    symbol: str,
    is_speculative: bool = False,
    config: PipelineConfig = PipelineConfig(),
) -> FundamentalTier:
    """Static lookup: S list, then C (flag or name pattern), then A list, else B."""
    if symbol in config.s_tier:
        return "S"
    if is_speculative or any(pattern in symbol for pattern in config.c_tier_patterns):
        return "C"
    if symbol in config.a_tier:
        return "A"
    return "B"


def tier_sl_multiplier(tier: FundamentalTier, config: PipelineConfig = PipelineConfig()) -> float:
    """ATR multiple for the stop-loss of *tier*."""
    return config.tier_sl_multipliers[tier]
