"""Stub broker client for testing and local dry runs with deterministic data."""

import itertools
import threading
import zlib
from collections.abc import Mapping
from datetime import datetime, timedelta, timezone

from rebalance_engine.errors import OrderSubmissionError
from rebalance_engine.models import Bar, CurrentPosition, OrderSide

from .client import BrokerClient, SubmissionResult


class StubBrokerClient(BrokerClient):
    """In-memory broker returning fixed account data and recording orders."""

    def __init__(
        self,
        equity: float = 100_000.0,
        positions: list[CurrentPosition] | None = None,
        bars: Mapping[str, list[Bar]] | None = None,
        buying_power: float | None = None,
        fail_symbols: set[str] | None = None,
        base_price: float = 100.0,
    ):
        """
        Initialize stub broker.

        Args:
            equity: Account equity in USD
            positions: Open positions
            bars: Explicit bars per symbol; other symbols get a synthetic trend
            buying_power: Reported buying power (None = not reported)
            fail_symbols: Symbols whose orders are rejected
            base_price: Starting price of synthetic series
        """
        self.equity = equity
        self.positions = list(positions or [])
        self.bars = dict(bars or {})
        self.buying_power = buying_power
        self.fail_symbols = set(fail_symbols or ())
        self.base_price = base_price
        self.submitted: list[tuple[str, OrderSide, float]] = []
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def get_account_equity(self) -> float:
        return self.equity

    def get_positions(self) -> list[CurrentPosition]:
        return list(self.positions)

    def get_bars(self, symbol: str, timeframe: str, limit: int) -> list[Bar]:
        """Return explicit bars if set, otherwise a deterministic daily trend."""
        if symbol in self.bars:
            return list(self.bars[symbol])[-limit:]

        # Drift between -1% and +1% per bar, fixed per symbol
        drift = ((zlib.crc32(symbol.encode()) % 21) - 10) / 1000.0
        end = datetime.now(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
        return [
            Bar.flat(
                timestamp=end - timedelta(days=limit - 1 - i),
                close=self.base_price * (1.0 + drift) ** i,
                volume=1_000.0,
            )
            for i in range(limit)
        ]

    def get_buying_power(self) -> float | None:
        return self.buying_power

    def submit_order(self, symbol: str, side: OrderSide, notional: float) -> SubmissionResult:
        if symbol in self.fail_symbols:
            raise OrderSubmissionError(symbol, "rejected by stub broker")
        with self._lock:
            self.submitted.append((symbol, side, notional))
            order_id = f"stub-{next(self._ids)}"
        return SubmissionResult(success=True, order_id=order_id)


def create_stub_broker(credentials: Mapping[str, str]) -> StubBrokerClient:
    """Broker factory used when no real broker integration is configured."""
    return StubBrokerClient()
