"""Per-strategy rebalance pipeline.

``fetch_inputs`` performs every external call a strategy needs;
``compute_orders`` is the pure part (rank, signals, targets, orders) and
returns the same result for the same inputs.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from rebalance_engine.broker.client import BrokerClient
from rebalance_engine.config.models import RunSettings, StrategyConfig
from rebalance_engine.models import (
    Bar,
    CurrentPosition,
    Order,
    RankedSymbol,
    SignalOutcome,
    SignalReading,
    TargetCalculation,
)
from rebalance_engine.portfolio import (
    RebalancePlan,
    calculate_rebalance_orders,
    calculate_target_positions,
    fit_to_buying_power,
)
from rebalance_engine.ranking import is_crypto_symbol, rank
from rebalance_engine.signals.evaluator import apply as apply_signals
from rebalance_engine.signals.provider import SignalClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StrategyInputs:
    """Everything fetched from collaborators for one strategy."""

    equity: float
    positions: list[CurrentPosition]
    price_history: dict[str, list[Bar]]
    readings: dict[str, SignalReading | None] = field(default_factory=dict)
    buying_power: float | None = None


@dataclass(frozen=True)
class PipelineResult:
    """Intermediate and final outputs of one strategy computation."""

    ranked: list[RankedSymbol]
    signals: SignalOutcome
    targets: TargetCalculation
    plan: RebalancePlan
    orders: list[Order]
    short_n: int

    def summary(self) -> dict[str, object]:
        """Compact, JSON-friendly description for run records."""
        return {
            "allocatedEquity": round(self.targets.total_equity, 2),
            "cashReserve": round(self.targets.cash_reserve, 2),
            "longs": [r.symbol for r in self.signals.ranked_symbols if r.side.value == "long"],
            "shorts": [r.symbol for r in self.signals.ranked_symbols if r.side.value == "short"],
            "injected": [t.symbol for t in self.signals.injected_targets],
            "cappedSymbols": list(self.targets.capped_symbols),
            "skippedSignals": list(self.signals.skipped_sources),
            "symbolsToClose": list(self.plan.symbols_to_close),
        }


def fetch_inputs(
    broker: BrokerClient,
    signal_client: SignalClient | None,
    config: StrategyConfig,
    symbols: Sequence[str],
    settings: RunSettings,
    owned_symbols: set[str] | None = None,
) -> StrategyInputs:
    """
    Fetch account state, bars and signal readings for a strategy.

    A failed bar fetch drops only that symbol; a failed signal fetch
    leaves the source without a reading. Account failures propagate.

    Args:
        broker: Tenant broker client
        signal_client: Signal client (None = no readings available)
        config: Strategy snapshot
        symbols: Resolved universe
        settings: Run settings (timeframe)
        owned_symbols: When given, positions outside this set belong to
            other strategies (or to nobody) and are ignored
    """
    equity = broker.get_account_equity()
    positions = broker.get_positions()
    if owned_symbols is not None:
        positions = [p for p in positions if p.symbol in owned_symbols]

    price_history: dict[str, list[Bar]] = {}
    for symbol in symbols:
        try:
            price_history[symbol] = broker.get_bars(
                symbol, settings.bar_timeframe, config.lookback_days
            )
        except Exception as e:
            logger.warning(f"⚠️ Bars unavailable for {symbol}, skipping: {e}")

    readings: dict[str, SignalReading | None] = {}
    for source_id in config.signal_source_ids:
        if signal_client is None:
            readings[source_id] = None
            continue
        try:
            readings[source_id] = signal_client.get_latest_reading(source_id)
        except Exception as e:
            logger.warning(f"⚠️ Signal {source_id} unavailable: {e}")
            readings[source_id] = None

    return StrategyInputs(
        equity=equity,
        positions=positions,
        price_history=price_history,
        readings=readings,
        buying_power=broker.get_buying_power(),
    )


def compute_orders(
    config: StrategyConfig,
    symbols: Sequence[str],
    inputs: StrategyInputs,
    settings: RunSettings,
    *,
    now: datetime | None = None,
) -> PipelineResult:
    """
    Rank, apply signals, size targets and diff into orders.

    Targets are sized against the strategy's share of account equity
    (``allocation_pct``), so strategies of one tenant do not compete for
    the same dollars.

    Args:
        config: Strategy snapshot
        symbols: Resolved universe
        inputs: Fetched collaborator data
        settings: Run settings (dust floor, bar floor, signal max age)
        now: Reference time for signal staleness

    Returns:
        Pipeline outputs, orders last
    """
    short_n = config.short_n
    if short_n > 0 and any(is_crypto_symbol(s) for s in symbols):
        logger.warning(f"Strategy {config.id}: crypto cannot be shorted, ignoring short_n={short_n}")
        short_n = 0

    ranked = rank(
        symbols,
        inputs.price_history,
        config.lookback_days,
        config.ranking_metric,
        config.long_n,
        short_n,
        min_bars=settings.min_bars,
        rsi_period=config.rsi_period,
        ma_period=config.ma_period,
    )

    max_age = (
        timedelta(minutes=settings.signal_max_age_minutes)
        if settings.signal_max_age_minutes is not None
        else None
    )
    signals = apply_signals(
        ranked,
        config.signal_conditions,
        inputs.readings,
        now=now,
        max_age=max_age,
    )

    allocated_equity = inputs.equity * config.allocation_pct / 100.0
    targets = calculate_target_positions(
        signals.ranked_symbols,
        config,
        allocated_equity,
        inputs.positions,
        injected_targets=signals.injected_targets,
        weight_multipliers=signals.weight_multipliers,
    )

    plan = calculate_rebalance_orders(
        targets.targets,
        inputs.positions,
        config.rebalance_fraction,
        min_order_notional=settings.min_order_notional,
    )

    buying_power = inputs.buying_power if settings.respect_buying_power else None
    orders = fit_to_buying_power(plan.orders, buying_power)

    return PipelineResult(
        ranked=ranked,
        signals=signals,
        targets=targets,
        plan=plan,
        orders=orders,
        short_n=short_n,
    )
