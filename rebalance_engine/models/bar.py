"""Price bar model."""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class Bar:
    """OHLCV bar as returned by the broker."""

    timestamp: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0

    def __post_init__(self) -> None:
        """Validate bar data integrity."""
        if self.high < max(self.open, self.close, self.low):
            raise ValueError("High must be >= open, close, and low")
        if self.low > min(self.open, self.close, self.high):
            raise ValueError("Low must be <= open, close, and high")
        if self.volume < 0:
            raise ValueError("Volume must be non-negative")

    @classmethod
    def flat(cls, timestamp: datetime, close: float, volume: float = 0.0) -> "Bar":
        """Bar where open, high, low and close are all the same price."""
        return cls(
            timestamp=timestamp,
            open=close,
            high=close,
            low=close,
            close=close,
            volume=volume,
        )
