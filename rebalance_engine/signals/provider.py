"""Abstract signal client interface."""

from abc import ABC, abstractmethod

from rebalance_engine.models.signal import SignalReading


class SignalClient(ABC):
    """Abstract interface for external indicator feeds."""

    @abstractmethod
    def get_latest_reading(self, source_id: str) -> SignalReading | None:
        """
        Return the most recent reading for a signal source.

        Args:
            source_id: Configured signal source identifier

        Returns:
            Latest reading, or None when the source has nothing usable
        """
        ...
