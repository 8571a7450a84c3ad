from .events import EventTypes, GENERATION_EVENT_TYPES
from .bus import EventBus
from .objects import (
    Cancelled,
    Complete,
    ContextUpdate,
    Delta,
    Error,
    GenerationEvent,
)

__all__ = [
    "EventTypes",
    "GENERATION_EVENT_TYPES",
    "EventBus",
    "GenerationEvent",
    "Delta",
    "ContextUpdate",
    "Complete",
    "Cancelled",
    "Error",
]
