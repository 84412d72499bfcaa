"""Stub signal client for testing with controllable readings."""

from datetime import datetime, timezone

from rebalance_engine.models.signal import SignalReading

from .provider import SignalClient


class StubSignalClient(SignalClient):
    """Stub client returning pre-set readings."""

    def __init__(self, readings: dict[str, float] | None = None) -> None:
        self._readings: dict[str, SignalReading] = {}
        self.requested: list[str] = []
        for source_id, value in (readings or {}).items():
            self.set_reading(source_id, value)

    def set_reading(
        self,
        source_id: str,
        value: float,
        fetched_at: datetime | None = None,
    ) -> None:
        """
        Set the reading returned for a source.

        Args:
            source_id: Signal source identifier
            value: Reading value
            fetched_at: Observation time (default: now, UTC)
        """
        self._readings[source_id] = SignalReading(
            source_id=source_id,
            value=value,
            fetched_at=fetched_at or datetime.now(timezone.utc),
        )

    def clear_reading(self, source_id: str) -> None:
        """Make a source unavailable."""
        self._readings.pop(source_id, None)

    def get_latest_reading(self, source_id: str) -> SignalReading | None:
        self.requested.append(source_id)
        return self._readings.get(source_id)
