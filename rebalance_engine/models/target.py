"""Target position models."""

from dataclasses import dataclass, field
from enum import Enum

from .position import Side


class TargetOrigin(str, Enum):
    """Where a target came from."""

    RANKER = "ranker"
    SIGNAL = "signal"


@dataclass(frozen=True)
class Target:
    """Desired holding for one symbol.

    Weight and value are signed by side: positive long, negative short.
    """

    symbol: str
    side: Side
    target_weight: float
    target_value: float
    current_value: float = 0.0
    score: float = 0.0
    capped: bool = False
    origin: TargetOrigin = TargetOrigin.RANKER

    def __post_init__(self) -> None:
        """Validate sign consistency."""
        if self.side == Side.LONG and (self.target_weight < 0 or self.target_value < 0):
            raise ValueError(f"Long target for {self.symbol} must be non-negative")
        if self.side == Side.SHORT and (self.target_weight > 0 or self.target_value > 0):
            raise ValueError(f"Short target for {self.symbol} must be non-positive")


@dataclass(frozen=True)
class TargetCalculation:
    """Targets plus the capital split they were computed from."""

    targets: list[Target]
    investable_amount: float
    cash_reserve: float
    total_equity: float
    capped_symbols: list[str] = field(default_factory=list)

    def gross_weight(self, side: Side) -> float:
        """Sum of absolute target weights on one side."""
        return sum(abs(t.target_weight) for t in self.targets if t.side == side)
