"""Position and side models."""

from dataclasses import dataclass
from enum import Enum


class Side(str, Enum):
    """Position orientation."""

    LONG = "long"
    SHORT = "short"


@dataclass(frozen=True)
class CurrentPosition:
    """Holding reported by the broker. Read-only within a run."""

    symbol: str
    side: Side
    quantity: float
    market_value: float
    cost_basis: float = 0.0

    @property
    def signed_value(self) -> float:
        """Market value signed by side: positive long, negative short."""
        magnitude = abs(self.market_value)
        return -magnitude if self.side == Side.SHORT else magnitude
