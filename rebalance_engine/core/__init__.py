"""Core orchestration: run state machine, reentrancy guard, pipeline and orchestrator."""

from .state_machine import (
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    StrategyRunState,
    StrategyStateMachine,
)

__all__ = ["TERMINAL_STATES", "VALID_TRANSITIONS", "StrategyRunState", "StrategyStateMachine"]
