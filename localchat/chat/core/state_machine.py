from enum import Enum
from typing import Dict, Set

from localchat.exceptions import StateTransitionError


class GenerationState(str, Enum):
    BUILDING = "building"
    AWAITING_RESPONSE = "awaiting_response"
    STREAMING = "streaming"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


TERMINAL_STATES = frozenset(
    {GenerationState.COMPLETED, GenerationState.CANCELLED, GenerationState.FAILED}
)


class StateMachine:
    """
    Enforces valid state transitions for one generation session.
    Prevents invalid jumps (e.g., BUILDING -> STREAMING without a response)
    and any move out of a terminal state.
    """

    def __init__(self):
        self._current_state = GenerationState.BUILDING

        # Define allowed transitions
        self._transitions: Dict[GenerationState, Set[GenerationState]] = {
            GenerationState.BUILDING: {
                GenerationState.AWAITING_RESPONSE,
                GenerationState.CANCELLED,
                GenerationState.FAILED,
            },
            GenerationState.AWAITING_RESPONSE: {
                GenerationState.STREAMING,
                GenerationState.CANCELLED,
                GenerationState.FAILED,
            },
            GenerationState.STREAMING: {
                GenerationState.COMPLETED,
                GenerationState.CANCELLED,
                GenerationState.FAILED,
            },
            GenerationState.COMPLETED: set(),
            GenerationState.CANCELLED: set(),
            GenerationState.FAILED: set(),
        }

    @property
    def current(self) -> GenerationState:
        return self._current_state

    @property
    def is_terminal(self) -> bool:
        return self._current_state in TERMINAL_STATES

    def transition_to(self, new_state: GenerationState) -> None:
        """
        Attempts to transition to a new state.
        Raises StateTransitionError if the transition is illegal.
        """
        if new_state not in self._transitions[self._current_state]:
            raise StateTransitionError(
                f"Invalid State Transition: {self._current_state.value} -> {new_state.value}",
                current_state=self._current_state,
                requested_state=new_state,
            )
        self._current_state = new_state
