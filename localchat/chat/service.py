import asyncio
import logging
from typing import List, Optional, Set

from localchat.chat.context import ContextWindow
from localchat.chat.core.cancellation import CancellationChannel, CancellationToken
from localchat.chat.core.session import (
    GenerationSession,
    effective_system_prompt,
    validate_request,
)
from localchat.chat.registry import SessionRegistry
from localchat.chat.structs import (
    Chat,
    ContextStats,
    Message,
    StartGenerationRequest,
)
from localchat.config.profiles import ModelProfiles
from localchat.config.settings import Settings
from localchat.protocol.bus import EventBus
from localchat.protocol.events import EventTypes
from localchat.protocol.objects import GenerationEvent
from localchat.providers.base import BaseProvider
from localchat.storage.base import ChatStore


class ChatService:
    """
    The inbound control surface.

    Responsibility:
    1. Start generations (awaited or as tasks), one session per request.
    2. Cancel generations, per instance or in the shared scope.
    3. Pass chat CRUD through to the store and announce changes on the bus.
    4. Answer context usage queries without contacting the model server.
    """

    def __init__(
        self,
        bus: EventBus,
        provider: BaseProvider,
        store: ChatStore,
        settings: Settings,
        profiles: Optional[ModelProfiles] = None,
        registry: Optional[SessionRegistry] = None,
    ):
        self._bus = bus
        self._provider = provider
        self._store = store
        self._settings = settings
        self._profiles = profiles or settings.load_profiles()
        self._registry = registry or SessionRegistry(bus)
        self._logger = logging.getLogger("ChatService")

        # Cancel with no instance id targets whichever session started last.
        self._shared = CancellationChannel(name="shared")
        self._tasks: Set[asyncio.Task] = set()

    @property
    def registry(self) -> SessionRegistry:
        return self._registry

    @property
    def profiles(self) -> ModelProfiles:
        return self._profiles

    # --- Generation ---

    async def start_generation(self, request: StartGenerationRequest) -> GenerationEvent:
        """
        Run one chat turn to completion and return its terminal event.

        Raises:
            RequestValidationError: The request is malformed.
            SessionBusyError: The instance already has a generation running.
        """
        session, token = self._prepare(request)
        return await self._drive(session, token)

    def spawn_generation(self, request: StartGenerationRequest) -> "asyncio.Task[GenerationEvent]":
        """
        Same as start_generation, but runs as a task so several instances
        can stream at once. Validation errors are raised here, not in the task.
        """
        session, token = self._prepare(request)
        task = asyncio.create_task(
            self._drive(session, token), name=f"generation-{request.instance_id}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        # A task cancelled before its first step never reaches _drive's finally.
        task.add_done_callback(
            lambda _: self._release(request.instance_id, token)
        )
        return task

    def cancel_generation(self, instance_id: Optional[str] = None) -> bool:
        """
        Signal cancellation. Returns True if a running session was signalled.
        """
        if instance_id is None:
            return self._shared.cancel()
        channel = self._registry.find_channel(instance_id)
        return channel is not None and channel.cancel()

    def _prepare(self, request: StartGenerationRequest):
        validate_request(request)
        self._registry.begin(request.instance_id)

        token = self._registry.channel(request.instance_id).subscribe()
        self._shared.arm(token)

        session = GenerationSession(
            request=request,
            provider=self._provider,
            profiles=self._profiles,
            token=token,
            emit=self._registry.sink(request.instance_id),
            settings=self._settings,
            store=self._store,
            bus=self._bus,
        )
        return session, token

    async def _drive(
        self, session: GenerationSession, token: CancellationToken
    ) -> GenerationEvent:
        instance_id = session.instance_id
        try:
            await self._bus.emit(
                EventTypes.INFO,
                {
                    "message": f"Generation started (model={session.request.model})",
                    "instance_id": instance_id,
                },
            )
            event = await session.run()
            await self._bus.emit(
                EventTypes.INFO,
                {
                    "message": f"Generation ended: {event.event_type.value}",
                    "instance_id": instance_id,
                },
            )
            return event
        finally:
            self._release(instance_id, token)

    def _release(self, instance_id: str, token: CancellationToken) -> None:
        self._shared.release(token)
        # Idempotent: only the call that disarms this token ends the instance.
        channel = self._registry.find_channel(instance_id)
        if channel is not None and channel.release(token):
            self._registry.end(instance_id)

    # --- Chat CRUD ---

    async def create_chat(self, title: str, model: Optional[str] = None) -> Chat:
        chat = await self._store.create_chat(title, model or self._settings.default_model)
        await self._bus.emit(EventTypes.CHAT_CREATED, chat)
        return chat

    async def list_chats(self) -> List[Chat]:
        return await self._store.list_chats()

    async def get_chat(self, chat_id: str) -> Optional[Chat]:
        return await self._store.get_chat(chat_id)

    async def delete_chat(self, chat_id: str) -> None:
        await self._store.delete_chat(chat_id)
        await self._bus.emit(EventTypes.CHAT_DELETED, {"chat_id": chat_id})

    async def get_chat_messages(self, chat_id: str) -> List[Message]:
        return await self._store.list_messages(chat_id)

    async def save_message(
        self,
        chat_id: str,
        role: str,
        content: str,
        pinned: bool = False,
        tag: Optional[str] = None,
    ) -> Message:
        return await self._store.append_message(chat_id, role, content, pinned, tag)

    async def toggle_message_pin(self, message_id: str) -> bool:
        pinned = await self._store.toggle_pin(message_id)
        await self._bus.emit(
            EventTypes.MESSAGE_PIN_TOGGLED,
            {"message_id": message_id, "pinned": pinned},
        )
        return pinned

    # --- Context ---

    async def get_context_stats(
        self, chat_id: str, model: str, system_prompt: Optional[str] = None
    ) -> ContextStats:
        """Usage the next request in this chat would start from."""
        history = await self._store.list_messages(chat_id)
        profile = self._profiles.get(model)
        window = ContextWindow.from_history(
            profile.context_window_size,
            history,
            system_prompt=effective_system_prompt(system_prompt, self._settings),
        )
        return window.stats()

    # --- Lifecycle ---

    async def close(self) -> None:
        """Cancel running generations and release the provider and store."""
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        await self._provider.close()
        await self._store.close()
        self._logger.info("Chat service closed.")
