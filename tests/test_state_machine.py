"""Tests for the per-strategy run state machine."""

import pytest

from rebalance_engine.core import StrategyRunState, StrategyStateMachine


def test_initial_state_is_pending() -> None:
    """Test state machine starts in PENDING."""
    sm = StrategyStateMachine("s-1")
    assert sm.current_state == StrategyRunState.PENDING
    assert sm.history == [StrategyRunState.PENDING]
    assert sm.is_terminal is False


def test_live_path() -> None:
    """Test the live path through submission to RECORDED."""
    sm = StrategyStateMachine("s-1")
    for state in (
        StrategyRunState.FETCHING,
        StrategyRunState.COMPUTING,
        StrategyRunState.SUBMITTING,
        StrategyRunState.RECORDED,
    ):
        sm.transition_to(state)

    assert sm.current_state == StrategyRunState.RECORDED
    assert sm.is_terminal is True
    assert len(sm.history) == 5


def test_dry_run_path() -> None:
    """Test the dry-run path skips submission."""
    sm = StrategyStateMachine("s-1")
    sm.transition_to(StrategyRunState.FETCHING)
    sm.transition_to(StrategyRunState.COMPUTING)
    sm.transition_to(StrategyRunState.SKIPPED_DRY_RUN)
    sm.transition_to(StrategyRunState.RECORDED)
    assert StrategyRunState.SUBMITTING not in sm.history


def test_invalid_transition_raises() -> None:
    """Test skipping a stage is rejected."""
    sm = StrategyStateMachine("s-1")
    with pytest.raises(ValueError, match="Invalid transition"):
        sm.transition_to(StrategyRunState.SUBMITTING)
    assert sm.current_state == StrategyRunState.PENDING


def test_dry_run_cannot_submit() -> None:
    """Test SKIPPED_DRY_RUN never leads to SUBMITTING."""
    sm = StrategyStateMachine("s-1", StrategyRunState.SKIPPED_DRY_RUN)
    assert sm.can_transition_to(StrategyRunState.SUBMITTING) is False
    assert sm.can_transition_to(StrategyRunState.RECORDED) is True


def test_terminal_states_have_no_exits() -> None:
    """Test RECORDED and FAILED are terminal."""
    for terminal in (StrategyRunState.RECORDED, StrategyRunState.FAILED):
        sm = StrategyStateMachine("s-1", terminal)
        for state in StrategyRunState:
            assert sm.can_transition_to(state) is False


def test_fail_from_any_active_state() -> None:
    """Test fail() works mid-run and is a no-op once terminal."""
    sm = StrategyStateMachine("s-1")
    sm.transition_to(StrategyRunState.FETCHING)
    sm.fail()
    assert sm.current_state == StrategyRunState.FAILED

    sm.fail()
    assert sm.history.count(StrategyRunState.FAILED) == 1


def test_history_is_a_copy() -> None:
    """Test callers cannot rewrite the history."""
    sm = StrategyStateMachine("s-1")
    sm.history.append(StrategyRunState.FAILED)
    assert sm.history == [StrategyRunState.PENDING]


def test_transition_callback_sees_each_step() -> None:
    """The callback receives (old, new) for accepted transitions only."""
    seen: list[tuple[StrategyRunState, StrategyRunState]] = []
    sm = StrategyStateMachine("s-1", on_transition=lambda old, new: seen.append((old, new)))

    sm.transition_to(StrategyRunState.FETCHING)
    with pytest.raises(ValueError):
        sm.transition_to(StrategyRunState.RECORDED)
    sm.fail()

    assert seen == [
        (StrategyRunState.PENDING, StrategyRunState.FETCHING),
        (StrategyRunState.FETCHING, StrategyRunState.FAILED),
    ]
