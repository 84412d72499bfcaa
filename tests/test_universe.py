"""Tests for universe resolution."""

import pytest

from rebalance_engine.config.models import UniverseConfig
from rebalance_engine.errors import ConfigInvalidError
from rebalance_engine.ranking import PREDEFINED_UNIVERSES, is_crypto_symbol, resolve_universe


def test_predefined_universe() -> None:
    """Predefined lists resolve case-insensitively."""
    symbols = resolve_universe(UniverseConfig(type="predefined", predefined_list="MAG7"))
    assert symbols == PREDEFINED_UNIVERSES["mag7"]
    assert len(resolve_universe(UniverseConfig(predefined_list="dow30"))) == 30


def test_predefined_universe_returns_copy() -> None:
    """Callers cannot mutate the static membership."""
    symbols = resolve_universe(UniverseConfig(predefined_list="mag7"))
    symbols.append("XXX")
    assert "XXX" not in PREDEFINED_UNIVERSES["mag7"]


def test_unknown_predefined_universe_raises() -> None:
    """An unknown list name is a config error."""
    with pytest.raises(ConfigInvalidError, match="Unknown predefined universe"):
        resolve_universe(UniverseConfig(predefined_list="ftse100"))


def test_custom_universe_normalized() -> None:
    """Custom symbols are upper-cased and de-duplicated in order."""
    universe = UniverseConfig(type="custom", custom_symbols=["aapl", " MSFT", "AAPL", "btc/usd"])
    assert resolve_universe(universe) == ["AAPL", "MSFT", "BTC/USD"]


def test_synthetic_universe_uses_components() -> None:
    """Synthetic universes take the components the caller looked up."""
    universe = UniverseConfig(type="synthetic", synthetic_index="idx-1")
    assert resolve_universe(universe, ["nvda", "amd"]) == ["NVDA", "AMD"]


def test_synthetic_universe_without_components_raises() -> None:
    """An empty synthetic index is a config error."""
    universe = UniverseConfig(type="synthetic", synthetic_index="idx-1")
    with pytest.raises(ConfigInvalidError, match="no components"):
        resolve_universe(universe, [])


def test_universe_requires_matching_source() -> None:
    """Each universe type needs its own field."""
    with pytest.raises(ValueError, match="custom universe requires"):
        UniverseConfig(type="custom")
    with pytest.raises(ValueError, match="synthetic universe requires"):
        UniverseConfig(type="synthetic")


def test_is_crypto_symbol() -> None:
    """Crypto pairs contain a slash."""
    assert is_crypto_symbol("BTC/USD")
    assert not is_crypto_symbol("AAPL")
    assert all(is_crypto_symbol(s) for s in PREDEFINED_UNIVERSES["crypto_top10"])
