"""Ranking output model."""

from dataclasses import dataclass, field

from .position import Side


@dataclass(frozen=True)
class RankedSymbol:
    """Symbol selected by the ranker.

    The side comes from rank position alone; the score keeps its raw sign.
    """

    symbol: str
    score: float
    side: Side
    metrics: dict[str, float] = field(default_factory=dict)
