"""Cross-sectional ranker assigning long and short sides by rank position."""

import logging
import math
from collections.abc import Mapping, Sequence

from rebalance_engine.config.models import RankingMetric
from rebalance_engine.errors import DataInsufficiencyError
from rebalance_engine.models import Bar, RankedSymbol, Side

from .metrics import calculate_rsi, ema_slope, sma_slope, window_return

logger = logging.getLogger(__name__)


def score_closes(
    closes: list[float],
    metric: RankingMetric,
    *,
    rsi_period: int = 14,
    ma_period: int = 10,
) -> float:
    """Score one symbol's window of closes with the configured metric."""
    if metric == "return":
        return window_return(closes)
    if metric == "sma_slope":
        return sma_slope(closes, ma_period)
    if metric == "ema_slope":
        return ema_slope(closes, ma_period)
    if metric == "rsi":
        return calculate_rsi(closes, rsi_period)
    raise ValueError(f"Unknown ranking metric: {metric}")


def trailing_window(
    symbol: str, bars: Sequence[Bar], lookback_days: int, required: int
) -> list[Bar]:
    """
    Last ``lookback_days`` bars of a symbol.

    Raises:
        DataInsufficiencyError: Fewer than ``required`` bars in the window
    """
    window = list(bars)[-lookback_days:]
    if len(window) < required:
        raise DataInsufficiencyError(symbol, len(window), required)
    return window


def rank(
    symbols: Sequence[str],
    price_history: Mapping[str, Sequence[Bar]],
    lookback_days: int,
    metric: RankingMetric,
    long_n: int,
    short_n: int,
    *,
    min_bars: int = 5,
    rsi_period: int = 14,
    ma_period: int = 10,
) -> list[RankedSymbol]:
    """
    Score symbols over their trailing window and pick long/short sides.

    Symbols with fewer than ``min_bars`` bars in the window (or an
    unusable score) are skipped, not reported as errors. Scores are sorted
    descending with ties broken by symbol. The top ``long_n`` go long and
    the bottom ``short_n`` of the rest go short; when there are too few
    scorable symbols, fewer positions are returned.

    Args:
        symbols: Candidate universe
        price_history: Bars per symbol, oldest first
        lookback_days: Trailing bars used for scoring
        metric: Scoring metric
        long_n: Number of long positions
        short_n: Number of short positions
        min_bars: Data-sufficiency floor (capped at ``lookback_days``)
        rsi_period: Period for the ``rsi`` metric
        ma_period: Moving-average period for slope metrics

    Returns:
        Long picks (best first) followed by short picks (worst first)
    """
    required = min(min_bars, lookback_days)
    scored: list[tuple[str, float, dict[str, float]]] = []

    for symbol in dict.fromkeys(symbols):
        try:
            window = trailing_window(symbol, price_history.get(symbol, ()), lookback_days, required)
        except DataInsufficiencyError as e:
            logger.info(f"Skipping {e}")
            continue

        closes = [bar.close for bar in window]
        score = score_closes(closes, metric, rsi_period=rsi_period, ma_period=ma_period)
        if not math.isfinite(score):
            logger.info(f"Skipping {symbol}: {metric} score is not finite")
            continue

        scored.append(
            (
                symbol,
                score,
                {metric: score, "bars": float(len(window)), "last_close": closes[-1]},
            )
        )

    scored.sort(key=lambda item: (-item[1], item[0]))

    longs = scored[:long_n] if long_n > 0 else []
    remainder = scored[len(longs):]
    shorts = list(reversed(remainder[-short_n:])) if short_n > 0 else []

    ranked = [
        RankedSymbol(symbol=s, score=score, side=Side.LONG, metrics=m) for s, score, m in longs
    ]
    ranked.extend(
        RankedSymbol(symbol=s, score=score, side=Side.SHORT, metrics=m) for s, score, m in shorts
    )

    logger.debug(
        f"Ranked {len(scored)}/{len(symbols)} symbols by {metric}: "
        f"{len(longs)} long, {len(shorts)} short"
    )
    return ranked
