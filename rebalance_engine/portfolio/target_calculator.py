"""Target position calculation from ranked symbols."""

import logging
import math
from collections.abc import Mapping, Sequence

from rebalance_engine.config.models import StrategyConfig
from rebalance_engine.models import (
    CurrentPosition,
    InjectedTarget,
    RankedSymbol,
    Side,
    Target,
    TargetCalculation,
    TargetOrigin,
    TriggerAction,
)

logger = logging.getLogger(__name__)

# Tolerance when deciding whether the cap actually clipped a raw weight
_CAP_EPSILON = 1e-12


def current_values_by_symbol(current_positions: Sequence[CurrentPosition]) -> dict[str, float]:
    """Signed market value per symbol (negative for shorts)."""
    values: dict[str, float] = {}
    for position in current_positions:
        values[position.symbol] = values.get(position.symbol, 0.0) + position.signed_value
    return values


def calculate_target_positions(
    ranked_symbols: Sequence[RankedSymbol],
    execution_config: StrategyConfig,
    total_equity: float,
    current_positions: Sequence[CurrentPosition],
    injected_targets: Sequence[InjectedTarget] = (),
    weight_multipliers: Mapping[str, float] | None = None,
) -> TargetCalculation:
    """
    Convert ranked symbols into signed target weights and dollar values.

    Long and short sides are independent sleeves. Each side's raw weight
    per symbol is ``(1 - cash_reserve_pct) / side_count`` of equity, which
    is then clipped to ``max_weight_per_symbol``. Clipped capacity is not
    handed to other symbols, so a binding cap leaves more cash idle.
    Signal multipliers scale the clipped weight. Injected targets replace
    any ranker target for the same symbol and use their allocation as the
    weight directly.

    Args:
        ranked_symbols: Symbols with sides, after signal gating
        execution_config: Strategy configuration (reserve, cap, scheme)
        total_equity: Account equity in USD
        current_positions: Broker positions, used to fill current_value
        injected_targets: Direct-trigger targets
        weight_multipliers: Per-symbol scale factors from position modifiers

    Returns:
        Targets (longs, shorts, then injected) with the capital split

    Raises:
        ValueError: Negative or non-finite equity, or unsupported weight scheme
    """
    if not math.isfinite(total_equity) or total_equity < 0:
        raise ValueError(f"Total equity must be a non-negative number, got {total_equity}")
    if execution_config.weight_scheme != "equal":
        raise ValueError(f"Unsupported weight scheme: {execution_config.weight_scheme}")

    multipliers = weight_multipliers or {}
    reserve_pct = execution_config.cash_reserve_pct
    cap = execution_config.max_weight_per_symbol
    cash_reserve = total_equity * reserve_pct
    investable_amount = total_equity - cash_reserve
    current = current_values_by_symbol(current_positions)

    targets: dict[str, Target] = {}
    capped_symbols: list[str] = []

    for side in (Side.LONG, Side.SHORT):
        group = [r for r in ranked_symbols if r.side == side]
        if not group:
            continue

        raw_weight = (1.0 - reserve_pct) / len(group)
        clipped = raw_weight > cap + _CAP_EPSILON
        magnitude = min(raw_weight, cap)
        sign = 1.0 if side == Side.LONG else -1.0

        for ranked in group:
            weight = sign * magnitude * multipliers.get(ranked.symbol, 1.0)
            targets[ranked.symbol] = Target(
                symbol=ranked.symbol,
                side=side,
                target_weight=weight,
                target_value=weight * total_equity,
                current_value=current.get(ranked.symbol, 0.0),
                score=ranked.score,
                capped=clipped,
            )
            if clipped:
                capped_symbols.append(ranked.symbol)

    for injected in injected_targets:
        side = Side.LONG if injected.action == TriggerAction.BUY else Side.SHORT
        weight = injected.allocation_pct if side == Side.LONG else -injected.allocation_pct
        if injected.symbol in targets:
            logger.info(f"Signal {injected.source_id} overrides ranker target for {injected.symbol}")
            if injected.symbol in capped_symbols:
                capped_symbols.remove(injected.symbol)
        targets[injected.symbol] = Target(
            symbol=injected.symbol,
            side=side,
            target_weight=weight,
            target_value=weight * total_equity,
            current_value=current.get(injected.symbol, 0.0),
            origin=TargetOrigin.SIGNAL,
        )

    return TargetCalculation(
        targets=list(targets.values()),
        investable_amount=investable_amount,
        cash_reserve=cash_reserve,
        total_equity=total_equity,
        capped_symbols=capped_symbols,
    )
