"""Configuration package for the rebalancing engine."""

from .loader import load_config, load_strategy_config
from .models import EngineConfig, RunSettings, StrategyConfig, UniverseConfig

__all__ = [
    "EngineConfig",
    "RunSettings",
    "StrategyConfig",
    "UniverseConfig",
    "load_config",
    "load_strategy_config",
]
