"""Applies external signal readings to a ranked symbol set."""

import logging
from collections.abc import Mapping, Sequence
from datetime import datetime, timedelta, timezone
from typing import TypeVar

from rebalance_engine.config.models import (
    ConditionalGateCondition,
    DirectTriggerCondition,
    PositionModifierCondition,
    SignalCondition,
    SignalRule,
)
from rebalance_engine.models import (
    InjectedTarget,
    RankedSymbol,
    SignalOutcome,
    SignalReading,
    TriggerAction,
)

logger = logging.getLogger(__name__)

RuleT = TypeVar("RuleT", bound=SignalRule)


def first_matching_rule(rules: Sequence[RuleT], value: float) -> RuleT | None:
    """Rules are checked in order; the first whose comparison holds decides."""
    for rule in rules:
        if rule.comparison.evaluate(value):
            return rule
    return None


def _as_utc(moment: datetime) -> datetime:
    return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)


def _unusable_reason(
    reading: SignalReading | None,
    now: datetime,
    max_age: timedelta | None,
) -> str:
    if reading is None:
        return "no reading"
    if max_age is not None and now - _as_utc(reading.fetched_at) > max_age:
        return f"reading from {reading.fetched_at.isoformat()} is stale"
    return ""


def apply(
    ranked_symbols: Sequence[RankedSymbol],
    signal_conditions: Sequence[SignalCondition],
    latest_readings: Mapping[str, SignalReading | None],
    *,
    now: datetime | None = None,
    max_age: timedelta | None = None,
) -> SignalOutcome:
    """
    Apply signal conditions to ranked symbols.

    - position_modifier: the matching rule's scale_factor is recorded as a
      weight multiplier for the scoped symbols (multiplied across
      conditions) and applied by the target calculator.
    - conditional_gate: a matching rule with ``allow=False`` removes the
      scoped symbols from the ranked set.
    - direct_trigger: a matching rule injects a target that bypasses the
      ranker. A later trigger for the same symbol replaces an earlier one.

    A condition whose source has no reading, or only a reading older than
    ``max_age``, is skipped and its source listed in ``skipped_sources``.

    Args:
        ranked_symbols: Ranker output
        signal_conditions: Strategy conditions in declaration order
        latest_readings: Latest reading per source id (None = unavailable)
        now: Reference time for staleness (default: now, UTC)
        max_age: Maximum reading age (None = no limit)

    Returns:
        Adjusted ranked set, multipliers, injected targets and skipped sources
    """
    now = _as_utc(now or datetime.now(timezone.utc))
    remaining = list(ranked_symbols)
    multipliers: dict[str, float] = {}
    injected: dict[str, InjectedTarget] = {}
    skipped: list[str] = []

    for condition in signal_conditions:
        reading = latest_readings.get(condition.source_id)
        reason = _unusable_reason(reading, now, max_age)
        if reading is None or reason:
            logger.info(f"Skipping {condition.action} on {condition.source_id}: {reason}")
            if condition.source_id not in skipped:
                skipped.append(condition.source_id)
            continue

        scope = set(condition.symbols) if condition.symbols is not None else None
        in_scope = [r.symbol for r in remaining if scope is None or r.symbol in scope]
        label = f"{condition.source_id}={reading.value:g}"

        if isinstance(condition, PositionModifierCondition):
            modifier = first_matching_rule(condition.rules, reading.value)
            if modifier is not None:
                for symbol in in_scope:
                    multipliers[symbol] = multipliers.get(symbol, 1.0) * modifier.scale_factor
                logger.info(
                    f"{label} matched '{modifier.when}': "
                    f"scale {len(in_scope)} symbols by {modifier.scale_factor}"
                )
        elif isinstance(condition, ConditionalGateCondition):
            gate = first_matching_rule(condition.rules, reading.value)
            if gate is not None and not gate.allow:
                blocked = set(in_scope)
                remaining = [r for r in remaining if r.symbol not in blocked]
                logger.info(f"{label} matched '{gate.when}': gated out {sorted(blocked)}")
        elif isinstance(condition, DirectTriggerCondition):
            trigger = first_matching_rule(condition.rules, reading.value)
            if trigger is not None:
                injected[trigger.symbol] = InjectedTarget(
                    symbol=trigger.symbol,
                    action=TriggerAction(trigger.action),
                    allocation_pct=trigger.allocation_pct,
                    source_id=condition.source_id,
                )
                logger.info(
                    f"{label} matched '{trigger.when}': "
                    f"inject {trigger.action} {trigger.symbol}"
                )
        else:
            raise TypeError(f"Unsupported signal condition: {type(condition).__name__}")

    kept = {r.symbol for r in remaining}
    return SignalOutcome(
        ranked_symbols=remaining,
        weight_multipliers={s: m for s, m in multipliers.items() if s in kept},
        injected_targets=list(injected.values()),
        skipped_sources=skipped,
    )
