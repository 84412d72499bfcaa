"""Symbol ranking and universe resolution."""

from .ranker import rank, score_closes
from .universe import PREDEFINED_UNIVERSES, is_crypto_symbol, resolve_universe

__all__ = ["PREDEFINED_UNIVERSES", "is_crypto_symbol", "rank", "resolve_universe", "score_closes"]
