from enum import Enum


class EventTypes(str, Enum):
    """
    Canonical event names carried by the bus.
    Using an Enum prevents typo bugs (e.g., 'delta' vs 'generation_delta').
    """

    # 1. System Events
    INFO = "info"
    WARNING = "warning"

    # 2. Generation Events (Downstream, addressed by instance id)
    GENERATION_DELTA = "generation_delta"
    CONTEXT_UPDATE = "context_update"
    GENERATION_COMPLETE = "generation_complete"
    GENERATION_CANCELLED = "generation_cancelled"
    GENERATION_ERROR = "generation_error"

    # 3. Chat Store Events
    CHAT_CREATED = "chat_created"
    CHAT_DELETED = "chat_deleted"
    MESSAGE_PIN_TOGGLED = "message_pin_toggled"


GENERATION_EVENT_TYPES = (
    EventTypes.GENERATION_DELTA,
    EventTypes.CONTEXT_UPDATE,
    EventTypes.GENERATION_COMPLETE,
    EventTypes.GENERATION_CANCELLED,
    EventTypes.GENERATION_ERROR,
)
