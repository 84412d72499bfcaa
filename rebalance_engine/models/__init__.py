"""Data models for positions, rankings, targets, orders and run reports."""

from .bar import Bar
from .order import Order, OrderResult, OrderSide, OrderStatus
from .position import CurrentPosition, Side
from .ranking import RankedSymbol
from .signal import InjectedTarget, SignalOutcome, SignalReading, TriggerAction
from .target import Target, TargetCalculation, TargetOrigin

__all__ = [
    "Bar",
    "CurrentPosition",
    "InjectedTarget",
    "Order",
    "OrderResult",
    "OrderSide",
    "OrderStatus",
    "RankedSymbol",
    "Side",
    "SignalOutcome",
    "SignalReading",
    "Target",
    "TargetCalculation",
    "TargetOrigin",
    "TriggerAction",
]
