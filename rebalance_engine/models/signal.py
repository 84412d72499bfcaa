"""Signal reading and signal outcome models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from .ranking import RankedSymbol


class TriggerAction(str, Enum):
    """Direction of a direct-trigger target."""

    BUY = "buy"
    SELL = "sell"


@dataclass(frozen=True)
class SignalReading:
    """Latest value observed for an external signal source."""

    source_id: str
    value: float
    fetched_at: datetime


@dataclass(frozen=True)
class InjectedTarget:
    """Target produced by a direct trigger, bypassing the ranker."""

    symbol: str
    action: TriggerAction
    allocation_pct: float  # fraction of total equity, 0 < x <= 1
    source_id: str = ""

    def __post_init__(self) -> None:
        if not 0.0 < self.allocation_pct <= 1.0:
            raise ValueError("allocation_pct must be in (0, 1]")


@dataclass(frozen=True)
class SignalOutcome:
    """Result of applying signal conditions to a ranked set."""

    ranked_symbols: list[RankedSymbol]
    weight_multipliers: dict[str, float] = field(default_factory=dict)
    injected_targets: list[InjectedTarget] = field(default_factory=list)
    skipped_sources: list[str] = field(default_factory=list)
