"""Strategy universe resolution."""

from collections.abc import Iterable

from rebalance_engine.config.models import UniverseConfig
from rebalance_engine.errors import ConfigInvalidError

# Static index membership. Crypto pairs use the broker's BASE/QUOTE form.
PREDEFINED_UNIVERSES: dict[str, list[str]] = {
    "mag7": ["AAPL", "MSFT", "GOOGL", "AMZN", "NVDA", "META", "TSLA"],
    "dow30": [
        "AAPL", "AMGN", "AXP", "BA", "CAT", "CRM", "CSCO", "CVX", "DIS", "DOW",
        "GS", "HD", "HON", "IBM", "INTC", "JNJ", "JPM", "KO", "MCD", "MMM",
        "MRK", "MSFT", "NKE", "PG", "TRV", "UNH", "V", "VZ", "WBA", "WMT",
    ],
    "sp500_top10": [
        "AAPL", "MSFT", "GOOGL", "AMZN", "NVDA", "META", "TSLA", "BRK.B", "UNH", "JNJ",
    ],
    "sp500_top50": [
        "AAPL", "MSFT", "GOOGL", "AMZN", "NVDA", "META", "TSLA", "BRK.B", "UNH", "JNJ",
        "V", "XOM", "JPM", "WMT", "PG", "MA", "HD", "CVX", "MRK", "ABBV",
        "LLY", "PEP", "KO", "COST", "AVGO", "TMO", "MCD", "CSCO", "ACN", "ABT",
        "DHR", "CRM", "ADBE", "CMCSA", "NKE", "PFE", "NFLX", "TXN", "AMD", "NEE",
        "INTC", "PM", "RTX", "HON", "AMGN", "QCOM", "T", "UPS", "MS", "ORCL",
    ],
    "nasdaq100_top10": [
        "AAPL", "MSFT", "GOOGL", "AMZN", "NVDA", "META", "TSLA", "AVGO", "COST", "ADBE",
    ],
    "nasdaq100_top50": [
        "AAPL", "MSFT", "GOOGL", "AMZN", "NVDA", "META", "TSLA", "AVGO", "COST", "ADBE",
        "CSCO", "NFLX", "AMD", "INTC", "QCOM", "TXN", "INTU", "CMCSA", "AMGN", "HON",
        "AMAT", "SBUX", "BKNG", "ISRG", "GILD", "MDLZ", "ADI", "VRTX", "LRCX", "REGN",
        "PYPL", "PANW", "SNPS", "KLAC", "CDNS", "ASML", "ADP", "MELI", "MNST", "CSX",
        "MAR", "ORLY", "NXPI", "FTNT", "PCAR", "MRNA", "AEP", "CTAS", "MCHP", "KDP",
    ],
    "russell2000_top50": [
        "SMCI", "CELH", "COOP", "EXAS", "PCVX", "HALO", "AXON", "LNTH", "PI", "RCM",
        "KTOS", "ENVX", "GSHD", "SFM", "AEHR", "CPRX", "UFPI", "CVLT", "APLS", "SPSC",
        "CRVL", "OLO", "FORM", "TMDX", "KRYS", "PRCT", "AGIO", "BRBR", "VCEL", "SAIA",
        "BCPC", "XPEL", "FROG", "IOVA", "ANF", "BOOT", "VCYT", "RXRX", "ESTE", "RELY",
        "SPWR", "MGY", "MNDY", "WFRD", "PRGS", "NEOG", "ROIC", "VERX", "AUR", "CRGY",
    ],
    "crypto_top10": [
        "BTC/USD", "ETH/USD", "SOL/USD", "XRP/USD", "DOGE/USD",
        "ADA/USD", "AVAX/USD", "DOT/USD", "MATIC/USD", "LINK/USD",
    ],
}


def is_crypto_symbol(symbol: str) -> bool:
    """Crypto pairs are quoted as BASE/QUOTE."""
    return "/" in symbol


def _normalize(symbols: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    ordered: list[str] = []
    for raw in symbols:
        symbol = raw.strip().upper()
        if symbol and symbol not in seen:
            seen.add(symbol)
            ordered.append(symbol)
    return ordered


def resolve_universe(
    universe: UniverseConfig,
    synthetic_components: Iterable[str] | None = None,
) -> list[str]:
    """
    Turn a universe descriptor into an ordered, de-duplicated symbol list.

    Args:
        universe: Strategy universe descriptor
        synthetic_components: Component symbols of the synthetic index, when
            the universe is synthetic (looked up by the caller)

    Returns:
        Upper-cased symbols in declaration order

    Raises:
        ConfigInvalidError: Unknown predefined list or empty synthetic index
    """
    if universe.type == "predefined":
        key = (universe.predefined_list or "").strip().lower()
        if key not in PREDEFINED_UNIVERSES:
            raise ConfigInvalidError(f"Unknown predefined universe: {universe.predefined_list}")
        return list(PREDEFINED_UNIVERSES[key])

    if universe.type == "custom":
        return _normalize(universe.custom_symbols)

    symbols = _normalize(synthetic_components or [])
    if not symbols:
        raise ConfigInvalidError(
            f"Synthetic index {universe.synthetic_index} has no components"
        )
    return symbols
