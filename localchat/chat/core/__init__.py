from .cancellation import CancellationChannel, CancellationToken
from .session import EventSink, GenerationSession, validate_request
from .state_machine import GenerationState, StateMachine

__all__ = [
    "CancellationChannel",
    "CancellationToken",
    "EventSink",
    "GenerationSession",
    "GenerationState",
    "StateMachine",
    "validate_request",
]
