"""Exception taxonomy for the rebalancing engine.

Errors are contained at the smallest enclosing scope:
symbol < signal condition < strategy < tenant < run.
"""


class EngineError(Exception):
    """Base class for all engine errors."""


class DataInsufficiencyError(EngineError):
    """Too few price bars to score a symbol."""

    def __init__(self, symbol: str, available: int, required: int):
        super().__init__(f"{symbol}: {available} bars available, {required} required")
        self.symbol = symbol
        self.available = available
        self.required = required


class SignalUnavailableError(EngineError):
    """A signal source has no usable reading (fetch failure or stale data)."""

    def __init__(self, source_id: str, reason: str):
        super().__init__(f"Signal {source_id} unavailable: {reason}")
        self.source_id = source_id
        self.reason = reason


class ConfigInvalidError(EngineError):
    """A strategy configuration is malformed."""


class CredentialError(EngineError):
    """Tenant credentials are missing or cannot be decrypted."""


class OrderSubmissionError(EngineError):
    """The broker rejected or failed to accept an order."""

    def __init__(self, symbol: str, message: str):
        super().__init__(f"{symbol}: {message}")
        self.symbol = symbol


class RunTimeoutError(EngineError):
    """The run's wall-clock budget is exhausted."""
