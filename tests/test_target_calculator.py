"""Tests for target position calculation."""

import math
from typing import Any

import pytest

from rebalance_engine.config.models import StrategyConfig
from rebalance_engine.models import (
    CurrentPosition,
    InjectedTarget,
    RankedSymbol,
    Side,
    TargetOrigin,
    TriggerAction,
)
from rebalance_engine.portfolio import calculate_target_positions


def _config(**overrides: Any) -> StrategyConfig:
    data: dict[str, Any] = {
        "id": "s-1",
        "tenant_id": "t-1",
        "long_n": 3,
        "short_n": 2,
        "max_weight_per_symbol": 0.3,
        "cash_reserve_pct": 0.1,
        "universe": {"type": "custom", "custom_symbols": ["AAPL"]},
    }
    data.update(overrides)
    return StrategyConfig(**data)


def _ranked(longs: list[str], shorts: tuple[str, ...] | list[str] = ()) -> list[RankedSymbol]:
    ranked = [RankedSymbol(s, 1.0 - i * 0.1, Side.LONG) for i, s in enumerate(longs)]
    ranked += [RankedSymbol(s, -1.0 + i * 0.1, Side.SHORT) for i, s in enumerate(shorts)]
    return ranked


def test_equal_weight_with_cap() -> None:
    """Three longs and two shorts at a 30% cap each get $30,000 magnitude."""
    ranked = _ranked(["AAPL", "MSFT", "GOOGL"], ["TSLA", "GME"])
    result = calculate_target_positions(ranked, _config(), 100_000.0, [])

    values = {t.symbol: t.target_value for t in result.targets}
    for symbol in ("AAPL", "MSFT", "GOOGL"):
        assert values[symbol] == pytest.approx(30_000.0)
    for symbol in ("TSLA", "GME"):
        assert values[symbol] == pytest.approx(-30_000.0)

    assert result.cash_reserve == pytest.approx(10_000.0)
    assert result.investable_amount == pytest.approx(90_000.0)
    assert result.gross_weight(Side.LONG) == pytest.approx(0.9)
    assert result.gross_weight(Side.SHORT) == pytest.approx(0.6)


def test_capped_symbols_only_where_cap_binds() -> None:
    """Longs exactly at the cap are not flagged; clipped shorts are."""
    ranked = _ranked(["AAPL", "MSFT", "GOOGL"], ["TSLA", "GME"])
    result = calculate_target_positions(ranked, _config(), 100_000.0, [])

    assert sorted(result.capped_symbols) == ["GME", "TSLA"]
    capped = {t.symbol: t.capped for t in result.targets}
    assert capped["AAPL"] is False
    assert capped["TSLA"] is True


def test_weights_never_exceed_cap_or_investable_share() -> None:
    """Per-symbol magnitude and per-side sum stay within their limits."""
    config = _config(long_n=4, short_n=0, max_weight_per_symbol=0.2, cash_reserve_pct=0.25)
    ranked = _ranked(["A", "B", "C", "D"])
    result = calculate_target_positions(ranked, config, 50_000.0, [])

    for target in result.targets:
        assert abs(target.target_weight) <= 0.2 + 1e-9
    assert result.gross_weight(Side.LONG) <= 0.75 + 1e-9


def test_signs_follow_side() -> None:
    """Long targets are non-negative and short targets non-positive."""
    ranked = _ranked(["AAPL"], ["TSLA"])
    result = calculate_target_positions(ranked, _config(), 10_000.0, [])

    for target in result.targets:
        if target.side == Side.LONG:
            assert target.target_weight >= 0 and target.target_value >= 0
        else:
            assert target.target_weight <= 0 and target.target_value <= 0


def test_current_value_comes_from_positions() -> None:
    """Current value is signed from broker positions; missing symbols are zero."""
    positions = [
        CurrentPosition("AAPL", Side.LONG, 10, 2_000.0),
        CurrentPosition("TSLA", Side.SHORT, 5, 1_500.0),
    ]
    ranked = _ranked(["AAPL", "MSFT"], ["TSLA"])
    result = calculate_target_positions(ranked, _config(), 100_000.0, positions)

    current = {t.symbol: t.current_value for t in result.targets}
    assert current == {"AAPL": 2_000.0, "MSFT": 0.0, "TSLA": -1_500.0}


def test_weight_multipliers_scale_targets() -> None:
    """Modifier scale factors multiply the capped weight."""
    ranked = _ranked(["AAPL", "MSFT", "GOOGL"])
    result = calculate_target_positions(
        ranked, _config(short_n=0), 100_000.0, [], weight_multipliers={"AAPL": 0.5}
    )

    values = {t.symbol: t.target_value for t in result.targets}
    assert values["AAPL"] == pytest.approx(15_000.0)
    assert values["MSFT"] == pytest.approx(30_000.0)


def test_injected_target_overrides_ranker() -> None:
    """Direct-trigger targets replace ranked ones and use their allocation directly."""
    ranked = _ranked(["AAPL"], ["TSLA"])
    injected = [
        InjectedTarget("TSLA", TriggerAction.BUY, 0.5, source_id="fear_greed"),
        InjectedTarget("BTC/USD", TriggerAction.SELL, 0.2, source_id="fear_greed"),
    ]
    result = calculate_target_positions(ranked, _config(), 100_000.0, [], injected)

    by_symbol = {t.symbol: t for t in result.targets}
    assert by_symbol["TSLA"].side == Side.LONG
    assert by_symbol["TSLA"].target_value == pytest.approx(50_000.0)
    assert by_symbol["TSLA"].origin == TargetOrigin.SIGNAL
    assert by_symbol["BTC/USD"].target_value == pytest.approx(-20_000.0)
    assert "TSLA" not in result.capped_symbols
    assert len(result.targets) == 3


def test_zero_equity_gives_zero_targets() -> None:
    """Zero equity yields zero-valued targets."""
    result = calculate_target_positions(_ranked(["AAPL"]), _config(), 0.0, [])
    assert result.targets[0].target_value == 0.0


@pytest.mark.parametrize("equity", [-1.0, math.nan, math.inf])
def test_invalid_equity_raises(equity: float) -> None:
    """Negative or non-finite equity is rejected."""
    with pytest.raises(ValueError, match="Total equity"):
        calculate_target_positions(_ranked(["AAPL"]), _config(), equity, [])


def test_empty_ranking_gives_no_targets() -> None:
    """Nothing ranked means nothing targeted."""
    result = calculate_target_positions([], _config(), 100_000.0, [])
    assert result.targets == []
    assert result.capped_symbols == []
