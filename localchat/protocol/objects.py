"""
Generation event payloads.

A session emits any number of Delta / ContextUpdate events followed by
exactly one terminal event: Complete, Cancelled or Error.
"""

from dataclasses import dataclass, field
from typing import ClassVar, List, Optional

from localchat.chat.structs import ContextStats
from .events import EventTypes


@dataclass
class GenerationEvent:
    """Base payload. Every event is addressed to one instance."""

    instance_id: str

    event_type: ClassVar[EventTypes]
    terminal: ClassVar[bool] = False


@dataclass
class Delta(GenerationEvent):
    """Payload for GENERATION_DELTA."""

    text: str = ""

    event_type: ClassVar[EventTypes] = EventTypes.GENERATION_DELTA


@dataclass
class ContextUpdate(GenerationEvent):
    """Payload for CONTEXT_UPDATE."""

    stats: Optional[ContextStats] = None

    event_type: ClassVar[EventTypes] = EventTypes.CONTEXT_UPDATE


@dataclass
class Complete(GenerationEvent):
    """
    Payload for GENERATION_COMPLETE.

    `persisted` is True only when the reply was written to the chat store.
    With a `chat_id` set, False means the write failed after the reply
    itself finished.
    """

    final_text: str = ""
    follow_ups: List[str] = field(default_factory=list)
    chat_id: Optional[str] = None
    persisted: bool = False

    event_type: ClassVar[EventTypes] = EventTypes.GENERATION_COMPLETE
    terminal: ClassVar[bool] = True


@dataclass
class Cancelled(GenerationEvent):
    """Payload for GENERATION_CANCELLED."""

    event_type: ClassVar[EventTypes] = EventTypes.GENERATION_CANCELLED
    terminal: ClassVar[bool] = True


@dataclass
class Error(GenerationEvent):
    """Payload for GENERATION_ERROR."""

    message: str = ""
    user_hint: Optional[str] = None

    event_type: ClassVar[EventTypes] = EventTypes.GENERATION_ERROR
    terminal: ClassVar[bool] = True
