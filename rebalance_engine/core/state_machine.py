"""Per-strategy run state machine with validated transitions."""

from collections.abc import Callable
from enum import Enum


class StrategyRunState(str, Enum):
    """Lifecycle of one (tenant, strategy) invocation within a run."""

    PENDING = "PENDING"  # Queued, nothing fetched yet
    FETCHING = "FETCHING"  # Pulling positions, bars and signal readings
    COMPUTING = "COMPUTING"  # Ranking, targets and rebalance orders
    SUBMITTING = "SUBMITTING"  # Live orders being handed to the broker
    SKIPPED_DRY_RUN = "SKIPPED_DRY_RUN"  # Orders computed, submission skipped
    RECORDED = "RECORDED"  # Result stored, terminal
    FAILED = "FAILED"  # Aborted, terminal


# Valid state transitions
VALID_TRANSITIONS: dict[StrategyRunState, list[StrategyRunState]] = {
    StrategyRunState.PENDING: [StrategyRunState.FETCHING, StrategyRunState.FAILED],
    StrategyRunState.FETCHING: [StrategyRunState.COMPUTING, StrategyRunState.FAILED],
    StrategyRunState.COMPUTING: [
        StrategyRunState.SUBMITTING,
        StrategyRunState.SKIPPED_DRY_RUN,
        StrategyRunState.FAILED,
    ],
    StrategyRunState.SUBMITTING: [StrategyRunState.RECORDED, StrategyRunState.FAILED],
    StrategyRunState.SKIPPED_DRY_RUN: [StrategyRunState.RECORDED, StrategyRunState.FAILED],
    StrategyRunState.RECORDED: [],
    StrategyRunState.FAILED: [],
}

TERMINAL_STATES = frozenset({StrategyRunState.RECORDED, StrategyRunState.FAILED})


class StrategyStateMachine:
    """Tracks one strategy invocation and rejects out-of-order transitions."""

    def __init__(
        self,
        strategy_id: str,
        initial_state: StrategyRunState = StrategyRunState.PENDING,
        on_transition: Callable[[StrategyRunState, StrategyRunState], None] | None = None,
    ):
        """
        Initialize state machine.

        Args:
            strategy_id: Strategy being run
            initial_state: Starting state (default: PENDING)
            on_transition: Called with (old, new) after every accepted transition
        """
        self.strategy_id = strategy_id
        self._current_state = initial_state
        self._history: list[StrategyRunState] = [initial_state]
        self._on_transition = on_transition

    @property
    def current_state(self) -> StrategyRunState:
        """Get current state."""
        return self._current_state

    @property
    def history(self) -> list[StrategyRunState]:
        """States visited so far, oldest first."""
        return list(self._history)

    @property
    def is_terminal(self) -> bool:
        return self._current_state in TERMINAL_STATES

    def transition_to(self, new_state: StrategyRunState) -> None:
        """
        Transition to a new state with validation.

        Args:
            new_state: Target state

        Raises:
            ValueError: If transition is invalid
        """
        if new_state not in VALID_TRANSITIONS[self._current_state]:
            raise ValueError(
                f"Invalid transition from {self._current_state} to {new_state} "
                f"for strategy {self.strategy_id}"
            )

        previous = self._current_state
        self._current_state = new_state
        self._history.append(new_state)
        if self._on_transition:
            self._on_transition(previous, new_state)

    def can_transition_to(self, new_state: StrategyRunState) -> bool:
        """Check if transition is valid without executing it."""
        return new_state in VALID_TRANSITIONS[self._current_state]

    def fail(self) -> None:
        """Move to FAILED from any non-terminal state."""
        if not self.is_terminal:
            self.transition_to(StrategyRunState.FAILED)
