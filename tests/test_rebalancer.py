"""Tests for rebalance order generation."""

import pytest

from rebalance_engine.models import CurrentPosition, Order, OrderSide, Side, Target
from rebalance_engine.portfolio import calculate_rebalance_orders, fit_to_buying_power


def _long(symbol: str, value: float, weight: float = 0.3) -> Target:
    return Target(symbol=symbol, side=Side.LONG, target_weight=weight, target_value=value)


def _short(symbol: str, value: float, weight: float = -0.1) -> Target:
    return Target(symbol=symbol, side=Side.SHORT, target_weight=weight, target_value=value)


def test_no_order_when_position_matches_target() -> None:
    """Holding exactly the target value emits nothing."""
    positions = [CurrentPosition("AAPL", Side.LONG, 150, 30_000.0)]
    plan = calculate_rebalance_orders([_long("AAPL", 30_000.0)], positions, 1.0)

    assert plan.orders == []
    assert plan.total_buy_notional == 0.0
    assert plan.total_sell_notional == 0.0


def test_side_flip_is_single_sell() -> None:
    """Long $20,000 to short $10,000 sells $30,000 in one order."""
    positions = [CurrentPosition("AAPL", Side.LONG, 100, 20_000.0)]
    plan = calculate_rebalance_orders([_short("AAPL", -10_000.0)], positions, 1.0)

    assert len(plan.orders) == 1
    order = plan.orders[0]
    assert order.side == OrderSide.SELL
    assert order.notional == pytest.approx(30_000.0)
    assert "short" in order.reason
    assert order.is_short_target is True


def test_partial_step_buys_fraction_of_gap() -> None:
    """A quarter step toward a $40,000 target buys $10,000."""
    plan = calculate_rebalance_orders([_long("AAPL", 40_000.0)], [], 0.25)

    assert len(plan.orders) == 1
    assert plan.orders[0].side == OrderSide.BUY
    assert plan.orders[0].notional == pytest.approx(10_000.0)
    assert "25% step" in plan.orders[0].reason


def test_untargeted_position_is_stepped_toward_zero() -> None:
    """Holdings without a target are reduced by the same fraction."""
    positions = [CurrentPosition("NFLX", Side.LONG, 10, 8_000.0)]
    plan = calculate_rebalance_orders([], positions, 0.5)

    assert plan.symbols_to_close == ["NFLX"]
    assert plan.orders[0].side == OrderSide.SELL
    assert plan.orders[0].notional == pytest.approx(4_000.0)
    assert plan.orders[0].reason.startswith("Close long position")


def test_untargeted_short_is_bought_back() -> None:
    """Closing a short buys and is flagged as a short target."""
    positions = [CurrentPosition("GME", Side.SHORT, 10, 1_000.0)]
    plan = calculate_rebalance_orders([], positions, 1.0)

    order = plan.orders[0]
    assert order.side == OrderSide.BUY
    assert order.notional == pytest.approx(1_000.0)
    assert order.is_short_target is True
    assert "short" in order.reason


def test_holds_after_marks_orders_that_flatten() -> None:
    """Only orders that take a position to zero report holds_after=False."""
    positions = [
        CurrentPosition("NFLX", Side.LONG, 10, 8_000.0),
        CurrentPosition("TSLA", Side.SHORT, 5, 2_000.0),
    ]
    full = calculate_rebalance_orders([_long("AAPL", 10_000.0)], positions, 1.0)
    partial = calculate_rebalance_orders([], positions, 0.5)

    assert {o.symbol: o.holds_after for o in full.orders} == {
        "NFLX": False,
        "TSLA": False,
        "AAPL": True,
    }
    assert all(o.holds_after for o in partial.orders)


def test_dust_deltas_are_skipped() -> None:
    """Deltas below the notional floor produce no order."""
    positions = [CurrentPosition("AAPL", Side.LONG, 1, 29_999.5)]
    plan = calculate_rebalance_orders(
        [_long("AAPL", 30_000.0)], positions, 1.0, min_order_notional=1.0
    )
    assert plan.orders == []


def test_sells_come_before_buys() -> None:
    """Sell orders are listed first, keeping their relative order."""
    targets = [_long("AAPL", 10_000.0), _long("MSFT", 0.0, weight=0.0)]
    positions = [
        CurrentPosition("MSFT", Side.LONG, 10, 5_000.0),
        CurrentPosition("NFLX", Side.LONG, 10, 2_000.0),
    ]
    plan = calculate_rebalance_orders(targets, positions, 1.0)

    assert [o.side for o in plan.orders] == [OrderSide.SELL, OrderSide.SELL, OrderSide.BUY]
    assert [o.symbol for o in plan.orders] == ["MSFT", "NFLX", "AAPL"]
    assert plan.total_sell_notional == pytest.approx(7_000.0)
    assert plan.total_buy_notional == pytest.approx(10_000.0)


def test_notionals_are_never_negative() -> None:
    """Direction lives in the side, not in the notional sign."""
    targets = [_long("AAPL", 5_000.0), _short("TSLA", -7_000.0)]
    positions = [CurrentPosition("AAPL", Side.LONG, 10, 9_000.0)]
    plan = calculate_rebalance_orders(targets, positions, 0.5)

    assert plan.orders
    assert all(o.notional >= 0 for o in plan.orders)


def test_full_step_then_no_orders() -> None:
    """Once holdings match targets, a second pass emits nothing."""
    targets = [_long("AAPL", 12_000.0), _short("TSLA", -4_000.0)]
    first = calculate_rebalance_orders(targets, [], 1.0)
    assert len(first.orders) == 2

    positions = [
        CurrentPosition("AAPL", Side.LONG, 60, 12_000.0),
        CurrentPosition("TSLA", Side.SHORT, 20, 4_000.0),
    ]
    second = calculate_rebalance_orders(targets, positions, 1.0)
    assert second.orders == []


@pytest.mark.parametrize("fraction", [0.0, -0.5, 1.5])
def test_invalid_fraction_raises(fraction: float) -> None:
    """Fractions outside (0, 1] are rejected."""
    with pytest.raises(ValueError, match="rebalance_fraction"):
        calculate_rebalance_orders([], [], fraction)


def test_order_rejects_negative_notional() -> None:
    """Order construction refuses a negative notional."""
    with pytest.raises(ValueError, match="non-negative"):
        Order(symbol="AAPL", side=OrderSide.BUY, notional=-1.0, reason="bad")


def _orders() -> list[Order]:
    return [
        Order("TSLA", OrderSide.SELL, 2_000.0, "Reduce long position"),
        Order("AAPL", OrderSide.BUY, 6_000.0, "Increase long position"),
        Order("MSFT", OrderSide.BUY, 4_000.0, "Increase long position"),
    ]


def test_fit_to_buying_power_unchanged_when_sufficient() -> None:
    """Enough buying power (or none reported) leaves orders as they are."""
    assert fit_to_buying_power(_orders(), None) == _orders()
    assert fit_to_buying_power(_orders(), 10_000.0) == _orders()


def test_fit_to_buying_power_scales_buys() -> None:
    """Buys shrink proportionally; sells are untouched."""
    fitted = fit_to_buying_power(_orders(), 5_000.0)

    assert fitted[0].notional == pytest.approx(2_000.0)
    assert fitted[1].notional == pytest.approx(3_000.0)
    assert fitted[2].notional == pytest.approx(2_000.0)
    assert fitted[1].reason.endswith("(scaled to 50%)")


def test_fit_to_buying_power_drops_buys_without_funds() -> None:
    """No buying power keeps only the sells."""
    fitted = fit_to_buying_power(_orders(), 0.0)
    assert [o.symbol for o in fitted] == ["TSLA"]
