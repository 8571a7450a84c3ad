import dataclasses
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Tuple

from localchat.chat.core.cancellation import CancellationChannel
from localchat.chat.core.session import EventSink
from localchat.exceptions import SessionBusyError
from localchat.protocol.bus import EventBus
from localchat.protocol.events import GENERATION_EVENT_TYPES
from localchat.protocol.objects import GenerationEvent

InstanceHandler = Callable[[GenerationEvent], Awaitable[None]]


class SessionRegistry:
    """
    Routes generation events by instance id.

    Responsibility:
    1. Hand each session a sink that publishes only under its own id.
    2. Deliver to each subscriber only the events of the instance it named.
    3. Own one cancellation channel per running instance.
    4. Refuse a second generation for an instance that is still running.

    Holds no conversation state.
    """

    def __init__(self, bus: EventBus):
        self._bus = bus
        self._channels: Dict[str, CancellationChannel] = {}
        self._active: Set[str] = set()
        self._routes: Dict[Tuple[str, Any], InstanceHandler] = {}
        self._logger = logging.getLogger("SessionRegistry")

    # --- Outbound addressing ---

    def sink(self, instance_id: str) -> EventSink:
        """Publisher bound to one instance."""

        async def emit(event: GenerationEvent) -> None:
            if event.instance_id != instance_id:
                self._logger.warning(
                    "Re-addressing %s from %s to %s",
                    event.event_type.value,
                    event.instance_id,
                    instance_id,
                )
                event = dataclasses.replace(event, instance_id=instance_id)
            await self._bus.emit(event.event_type, event)

        return emit

    async def subscribe(self, instance_id: str, handler: InstanceHandler) -> None:
        """Deliver every generation event addressed to `instance_id`, and nothing else."""
        key = (instance_id, handler)
        if key in self._routes:
            return

        async def routed(event: Any) -> None:
            if getattr(event, "instance_id", None) == instance_id:
                await handler(event)

        self._routes[key] = routed
        for event_type in GENERATION_EVENT_TYPES:
            await self._bus.subscribe(event_type, routed)

    async def unsubscribe(self, instance_id: str, handler: InstanceHandler) -> None:
        routed = self._routes.pop((instance_id, handler), None)
        if routed is None:
            return
        for event_type in GENERATION_EVENT_TYPES:
            await self._bus.unsubscribe(event_type, routed)

    # --- Cancellation scopes ---

    def channel(self, instance_id: str) -> CancellationChannel:
        """The instance's channel, created on first use."""
        if instance_id not in self._channels:
            self._channels[instance_id] = CancellationChannel(name=instance_id)
        return self._channels[instance_id]

    def find_channel(self, instance_id: str) -> Optional[CancellationChannel]:
        """Lookup without creating; None when the instance has nothing running."""
        return self._channels.get(instance_id)

    # --- Active sessions ---

    def begin(self, instance_id: str) -> None:
        if instance_id in self._active:
            raise SessionBusyError(
                f"Instance '{instance_id}' already has a generation in progress",
                instance_id=instance_id,
            )
        self._active.add(instance_id)

    def end(self, instance_id: str) -> None:
        """Mark the instance idle and drop its channel; the next begin gets a fresh one."""
        self._active.discard(instance_id)
        self._channels.pop(instance_id, None)

    def is_active(self, instance_id: str) -> bool:
        return instance_id in self._active

    @property
    def active_instances(self) -> List[str]:
        return sorted(self._active)
