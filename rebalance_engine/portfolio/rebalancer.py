"""Rebalance order generation from target vs. current holdings."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field, replace

from rebalance_engine.models import CurrentPosition, Order, OrderSide, Side, Target

from .target_calculator import current_values_by_symbol

logger = logging.getLogger(__name__)

_FLAT_EPSILON = 1e-9


@dataclass(frozen=True)
class RebalancePlan:
    """Orders for one strategy, sells first."""

    orders: list[Order]
    total_buy_notional: float = 0.0
    total_sell_notional: float = 0.0
    symbols_to_close: list[str] = field(default_factory=list)


def _describe(
    target: Target | None,
    current_value: float,
    side: OrderSide,
    step_pct: str,
) -> str:
    held = "short" if current_value < 0 else "long"
    if target is None:
        return f"Close {held} position not in target set ({step_pct} step)"

    wanted = target.side.value
    weight_pct = f"{abs(target.target_weight) * 100:.1f}%"
    if current_value != 0 and held != wanted and target.target_value != 0:
        return f"Flip {held} to {wanted} toward {weight_pct} target ({step_pct} step)"

    growing = (side == OrderSide.BUY) == (target.side == Side.LONG)
    verb = "Increase" if growing else "Reduce"
    return f"{verb} {wanted} position toward {weight_pct} target ({step_pct} step)"


def calculate_rebalance_orders(
    targets: Sequence[Target],
    current_positions: Sequence[CurrentPosition],
    rebalance_fraction: float,
    *,
    min_order_notional: float = 1.0,
) -> RebalancePlan:
    """
    Diff targets against holdings into a partial-step order list.

    For every symbol in targets or positions,
    ``delta = (target_value - current_value) * rebalance_fraction``; a
    positive delta buys, a negative one sells ``|delta|``. Symbols without
    a target have a target value of zero. A side flip is a single order
    over the whole swing. Deltas below ``min_order_notional`` (and exact
    zeros) produce no order.

    Args:
        targets: Signed targets
        current_positions: Broker positions (current values come from here)
        rebalance_fraction: Fraction of the gap traded this run, in (0, 1]
        min_order_notional: Dust floor in USD

    Returns:
        Plan with sells ordered before buys

    Raises:
        ValueError: If rebalance_fraction is outside (0, 1]
    """
    if not 0.0 < rebalance_fraction <= 1.0:
        raise ValueError(f"rebalance_fraction must be in (0, 1], got {rebalance_fraction}")

    current = current_values_by_symbol(current_positions)
    by_symbol = {t.symbol: t for t in targets}
    symbols = list(by_symbol) + [s for s in current if s not in by_symbol]
    step_pct = f"{rebalance_fraction * 100:.0f}%"

    orders: list[Order] = []
    symbols_to_close: list[str] = []

    for symbol in symbols:
        target = by_symbol.get(symbol)
        current_value = current.get(symbol, 0.0)
        target_value = target.target_value if target else 0.0
        delta = (target_value - current_value) * rebalance_fraction

        if delta == 0 or abs(delta) < min_order_notional:
            continue

        side = OrderSide.BUY if delta > 0 else OrderSide.SELL
        is_short = current_value < 0 or (target is not None and target.side == Side.SHORT)
        if target is None:
            symbols_to_close.append(symbol)
        residual = current_value + delta

        orders.append(
            Order(
                symbol=symbol,
                side=side,
                notional=abs(delta),
                reason=_describe(target, current_value, side, step_pct),
                is_short_target=is_short,
                holds_after=abs(residual) >= max(min_order_notional, _FLAT_EPSILON),
            )
        )

    # Stable: sells keep their relative order, then buys
    orders.sort(key=lambda o: 0 if o.side == OrderSide.SELL else 1)

    return RebalancePlan(
        orders=orders,
        total_buy_notional=sum(o.notional for o in orders if o.side == OrderSide.BUY),
        total_sell_notional=sum(o.notional for o in orders if o.side == OrderSide.SELL),
        symbols_to_close=symbols_to_close,
    )


def fit_to_buying_power(orders: Sequence[Order], buying_power: float | None) -> list[Order]:
    """
    Scale buy orders down proportionally when they exceed buying power.

    Sell orders are untouched. With no buying power left, buys are dropped.

    Args:
        orders: Planned orders
        buying_power: Available buying power, or None when not reported

    Returns:
        Orders that fit, in the original order
    """
    if buying_power is None:
        return list(orders)

    total_buy = sum(o.notional for o in orders if o.side == OrderSide.BUY)
    if total_buy <= buying_power:
        return list(orders)

    if buying_power <= 0:
        logger.warning(f"No buying power available, dropping buys worth ${total_buy:,.2f}")
        return [o for o in orders if o.side == OrderSide.SELL]

    scale = buying_power / total_buy
    logger.warning(
        f"Insufficient buying power (${buying_power:,.2f} < ${total_buy:,.2f}), "
        f"scaling buys to {scale * 100:.1f}%"
    )
    return [
        replace(
            o,
            notional=o.notional * scale,
            holds_after=True,
            reason=f"{o.reason} (scaled to {scale * 100:.0f}%)",
        )
        if o.side == OrderSide.BUY
        else o
        for o in orders
    ]
