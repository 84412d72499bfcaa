"""Scoring metrics computed over a window of closing prices."""

import math


def window_return(closes: list[float]) -> float:
    """Simple return from the first to the last close of the window."""
    if len(closes) < 2 or closes[0] <= 0:
        return math.nan
    return closes[-1] / closes[0] - 1.0


def calculate_sma(values: list[float], period: int) -> list[float]:
    """
    Simple moving average over full windows only.

    Returns len(values) - period + 1 averages; empty when there are fewer
    values than the period.
    """
    if period <= 0 or len(values) < period:
        return []

    window_sum = sum(values[:period])
    averages = [window_sum / period]
    for i in range(period, len(values)):
        window_sum += values[i] - values[i - period]
        averages.append(window_sum / period)
    return averages


def calculate_ema(values: list[float], period: int) -> list[float]:
    """
    Exponential moving average seeded with the first value.

    Every output point is valid, so the series is as long as the input.
    """
    if not values:
        return []

    multiplier = 2.0 / (period + 1)
    ema_values = [values[0]]
    for value in values[1:]:
        ema_values.append((value - ema_values[-1]) * multiplier + ema_values[-1])
    return ema_values


def normalized_slope(values: list[float]) -> float:
    """
    Least-squares slope per step divided by the mean of the series.

    A value of 0.01 means the series rises about 1% of its level per bar.
    """
    n = len(values)
    if n < 2:
        return 0.0

    mean_x = (n - 1) / 2.0
    mean_y = sum(values) / n
    if mean_y == 0:
        return math.nan

    numerator = 0.0
    denominator = 0.0
    for i, y in enumerate(values):
        dx = i - mean_x
        numerator += dx * (y - mean_y)
        denominator += dx * dx
    return (numerator / denominator) / mean_y


def sma_slope(closes: list[float], period: int) -> float:
    """Normalized slope of the SMA. The period shrinks to fit short windows."""
    effective = max(1, min(period, len(closes) - 1))
    return normalized_slope(calculate_sma(closes, effective))


def ema_slope(closes: list[float], period: int) -> float:
    """Normalized slope of the EMA across the window."""
    return normalized_slope(calculate_ema(closes, period))


def calculate_rsi(closes: list[float], period: int = 14) -> float:
    """
    Wilder RSI at the last close of the window.

    Returns the neutral 50.0 when there are fewer than period + 1 closes.
    """
    if len(closes) < period + 1:
        return 50.0

    gains: list[float] = []
    losses: list[float] = []
    for i in range(1, len(closes)):
        change = closes[i] - closes[i - 1]
        gains.append(max(change, 0.0))
        losses.append(max(-change, 0.0))

    # First average is a plain mean of `period` changes
    avg_gain = sum(gains[:period]) / period
    avg_loss = sum(losses[:period]) / period

    for i in range(period, len(gains)):
        avg_gain = (avg_gain * (period - 1) + gains[i]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i]) / period

    if avg_loss == 0:
        return 100.0 if avg_gain > 0 else 50.0
    rs = avg_gain / avg_loss
    return 100.0 - (100.0 / (1.0 + rs))
