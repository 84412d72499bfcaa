"""Order intent and order outcome models."""

from dataclasses import dataclass
from enum import Enum


class OrderSide(str, Enum):
    """Order direction."""

    BUY = "buy"
    SELL = "sell"


class OrderStatus(str, Enum):
    """Outcome of handing an order to the broker."""

    SUBMITTED = "submitted"
    SIMULATED = "simulated"
    FAILED = "failed"


@dataclass(frozen=True)
class Order:
    """Notional order intent. Direction lives in ``side``, never in the sign."""

    symbol: str
    side: OrderSide
    notional: float
    reason: str
    is_short_target: bool = False
    # False when the fill leaves the strategy flat in this symbol
    holds_after: bool = True

    def __post_init__(self) -> None:
        if self.notional < 0:
            raise ValueError("Order notional must be non-negative")


@dataclass(frozen=True)
class OrderResult:
    """What happened to one order."""

    order: Order
    status: OrderStatus
    broker_order_id: str | None = None
    error: str | None = None

    @property
    def placed(self) -> bool:
        """True when the order counts as placed (live success or dry-run)."""
        return self.status in (OrderStatus.SUBMITTED, OrderStatus.SIMULATED)
