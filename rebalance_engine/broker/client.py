"""Abstract broker client interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from rebalance_engine.models import Bar, CurrentPosition, OrderSide


@dataclass(frozen=True)
class SubmissionResult:
    """Broker acknowledgement of a notional order."""

    success: bool
    order_id: str | None = None
    error: str | None = None


class BrokerClient(ABC):
    """Abstract interface for a tenant's brokerage account."""

    @abstractmethod
    def get_account_equity(self) -> float:
        """Return total account equity in USD."""
        ...

    @abstractmethod
    def get_positions(self) -> list[CurrentPosition]:
        """Return open positions."""
        ...

    @abstractmethod
    def get_bars(self, symbol: str, timeframe: str, limit: int) -> list[Bar]:
        """
        Fetch historical bars.

        Args:
            symbol: Ticker or crypto pair (e.g. "AAPL", "BTC/USD")
            timeframe: Bar size (e.g. "1Day")
            limit: Maximum bars to return, most recent last

        Returns:
            Bars ordered oldest first
        """
        ...

    @abstractmethod
    def submit_order(self, symbol: str, side: OrderSide, notional: float) -> SubmissionResult:
        """
        Submit a market order for a dollar amount.

        Raises:
            OrderSubmissionError: If the broker rejects the order outright
        """
        ...

    def get_buying_power(self) -> float | None:
        """Available buying power, or None when the broker does not report it."""
        return None
