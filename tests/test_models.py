"""Tests for domain models."""

from datetime import datetime, timezone

import pytest

from rebalance_engine.core import StrategyRunState
from rebalance_engine.models import (
    Bar,
    CurrentPosition,
    InjectedTarget,
    Order,
    OrderResult,
    OrderSide,
    OrderStatus,
    Side,
    Target,
    TriggerAction,
)
from rebalance_engine.models.run import RunReport, StrategyRunResult, TenantRunResult

TS = datetime(2024, 6, 28, tzinfo=timezone.utc)


def test_bar_validation() -> None:
    """Test OHLC consistency is enforced."""
    Bar(timestamp=TS, open=10, high=12, low=9, close=11, volume=100)
    with pytest.raises(ValueError, match="High"):
        Bar(timestamp=TS, open=10, high=9, low=8, close=9.5)
    with pytest.raises(ValueError, match="Low"):
        Bar(timestamp=TS, open=10, high=12, low=10.5, close=11)
    with pytest.raises(ValueError, match="Volume"):
        Bar.flat(TS, 10, volume=-1)


def test_position_signed_value() -> None:
    """Test shorts carry a negative signed value regardless of input sign."""
    assert CurrentPosition("AAPL", Side.LONG, 10, 1_000.0).signed_value == 1_000.0
    assert CurrentPosition("TSLA", Side.SHORT, 5, 500.0).signed_value == -500.0
    assert CurrentPosition("TSLA", Side.SHORT, -5, -500.0).signed_value == -500.0


def test_target_sign_validation() -> None:
    """Test target weight and value signs must match the side."""
    with pytest.raises(ValueError, match="Long target"):
        Target("AAPL", Side.LONG, -0.1, -100.0)
    with pytest.raises(ValueError, match="Short target"):
        Target("TSLA", Side.SHORT, 0.1, 100.0)


@pytest.mark.parametrize("allocation", [0.0, 1.5, -0.2])
def test_injected_target_allocation(allocation: float) -> None:
    """Test direct-trigger allocations are limited to (0, 1]."""
    with pytest.raises(ValueError, match="allocation_pct"):
        InjectedTarget("BTC/USD", TriggerAction.BUY, allocation)


def test_run_result_counts() -> None:
    """Test placed and failed counts across statuses."""
    order = Order("AAPL", OrderSide.BUY, 100.0, "Increase long position")
    result = StrategyRunResult(
        strategy_id="s-1",
        tenant_id="t-1",
        dry_run=False,
        state=StrategyRunState.RECORDED,
        order_results=[
            OrderResult(order, OrderStatus.SUBMITTED),
            OrderResult(order, OrderStatus.FAILED, error="x"),
        ],
        errors=["Order AAPL failed: x"],
    )
    assert result.orders_placed == 1
    assert result.orders_failed == 1
    assert result.succeeded is False
    assert result.to_dict()["orders"][1] == {
        "symbol": "AAPL",
        "side": "buy",
        "notional": 100.0,
        "reason": "Increase long position",
        "status": "failed",
        "error": "x",
    }

    tenant = TenantRunResult("t-1", strategies=[result], errors=["late"])
    assert tenant.all_errors() == ["late", "Strategy s-1: Order AAPL failed: x"]

    report = RunReport(dry_run=False, results=[tenant])
    assert report.total_orders == 1
    assert report.result_for("t-2") is None
    assert report.to_dict()["mode"] == "live"
    assert report.to_dict()["finishedAt"] is None
