"""Target calculation and rebalance order generation."""

from .rebalancer import RebalancePlan, calculate_rebalance_orders, fit_to_buying_power
from .target_calculator import calculate_target_positions

__all__ = [
    "RebalancePlan",
    "calculate_rebalance_orders",
    "calculate_target_positions",
    "fit_to_buying_power",
]
