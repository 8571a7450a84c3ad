#!/usr/bin/env python3
"""
Generation Session
==================

One request/response exchange with the model server.

    BUILDING -> AWAITING_RESPONSE -> STREAMING -> COMPLETED | CANCELLED | FAILED

The session task is the only writer of its context window and response
buffer, and the only emitter of its events, so the event order is the
order of the awaits below:

    ContextUpdate, Delta*, ContextUpdate, Complete
    ... or any prefix of that, closed by Cancelled or Error.

Exactly one terminal event is emitted per run.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional

from localchat.chat.context import ContextWindow
from localchat.chat.core.cancellation import CancellationToken
from localchat.chat.core.enrichment import generate_follow_ups
from localchat.chat.core.state_machine import GenerationState, StateMachine
from localchat.chat.structs import Message, Role, StartGenerationRequest
from localchat.config.profiles import ModelProfile, ModelProfiles
from localchat.config.settings import Settings
from localchat.config.system_prompts import resolve_system_prompt
from localchat.exceptions import (
    LocalChatError,
    ModelError,
    PersistenceError,
    RequestValidationError,
    SuggestionError,
)
from localchat.protocol.bus import EventBus
from localchat.protocol.events import EventTypes
from localchat.protocol.objects import (
    Cancelled,
    Complete,
    ContextUpdate,
    Delta,
    Error,
    GenerationEvent,
)
from localchat.providers.base import BaseProvider, ByteStream
from localchat.providers.decoder import FrameDecoder
from localchat.storage.base import ChatStore

logger = logging.getLogger("GenerationSession")

EventSink = Callable[[GenerationEvent], Awaitable[None]]


def validate_request(request: StartGenerationRequest) -> None:
    """Reject requests the session could not act on."""
    if not request.instance_id:
        raise RequestValidationError(
            "instance_id is required", field_name="instance_id"
        )
    if not request.model:
        raise RequestValidationError("model is required", field_name="model")
    if not request.messages:
        raise RequestValidationError(
            "messages must contain at least the new turn", field_name="messages"
        )
    for message in request.messages:
        if message.role not in {r.value for r in Role}:
            raise RequestValidationError(
                f"Unknown message role: {message.role}", field_name="messages"
            )


def effective_system_prompt(requested: Optional[str], settings: Settings) -> Optional[str]:
    """A per-request prompt (preset id or literal text) overrides the configured one."""
    if requested:
        return resolve_system_prompt(requested)
    return settings.system_prompt


class GenerationSession:
    """
    Drives one chat turn and reports it through `emit`.

    The store is optional; without a store or without a chat id nothing is
    written and history comes from the request itself.
    """

    def __init__(
        self,
        request: StartGenerationRequest,
        provider: BaseProvider,
        profiles: ModelProfiles,
        token: CancellationToken,
        emit: EventSink,
        settings: Settings,
        store: Optional[ChatStore] = None,
        bus: Optional[EventBus] = None,
    ):
        self.request = request
        self._provider = provider
        self._profiles = profiles
        self._token = token
        self._emit = emit
        self._settings = settings
        self._store = store
        self._bus = bus

        self._state = StateMachine()
        self._profile: ModelProfile = profiles.get(request.model)
        self._chunks: List[str] = []
        self._terminal: Optional[GenerationEvent] = None

    @property
    def state(self) -> GenerationState:
        return self._state.current

    @property
    def instance_id(self) -> str:
        return self.request.instance_id

    @property
    def _persists(self) -> bool:
        return self._store is not None and bool(self.request.chat_id)

    async def run(self) -> GenerationEvent:
        """Run to a terminal state and return the terminal event."""
        try:
            return await self._run()
        except asyncio.CancelledError:
            # The owning task was cancelled outright (e.g. shutdown).
            if self._terminal is None:
                self._state.transition_to(GenerationState.CANCELLED)
                await self._finish(Cancelled(instance_id=self.instance_id))
            raise
        except Exception as e:
            if self._terminal is not None:
                raise
            logger.error(f"Unexpected error in generation session: {e}", exc_info=True)
            return await self._fail(
                LocalChatError(f"Unexpected error: {e}", original_error=e)
            )

    async def _run(self) -> GenerationEvent:
        # 1. BUILDING
        try:
            window = await self._build_window()
        except LocalChatError as e:
            return await self._fail(e)

        await self._emit(ContextUpdate(instance_id=self.instance_id, stats=window.stats()))

        newest = self.request.messages[-1]
        if self._persists and newest.role == Role.USER.value:
            # Write-before-send: the question survives a failed request.
            try:
                await self._store.append_message(
                    self.request.chat_id,
                    newest.role,
                    newest.content,
                    pinned=newest.pinned,
                    tag=newest.tag,
                )
            except PersistenceError as e:
                return await self._fail(e)

        # 2. AWAITING_RESPONSE
        self._state.transition_to(GenerationState.AWAITING_RESPONSE)
        payload = self._build_payload(window)

        try:
            async with self._provider.open_chat_stream(payload) as stream:
                # 3. STREAMING
                self._state.transition_to(GenerationState.STREAMING)
                finished = await self._consume(stream)
        except ModelError as e:
            return await self._fail(e)

        if not finished:
            self._state.transition_to(GenerationState.CANCELLED)
            logger.info("Generation cancelled for instance %s", self.instance_id)
            return await self._finish(Cancelled(instance_id=self.instance_id))

        # 4. COMPLETED
        return await self._complete(window, "".join(self._chunks))

    # --- Building ---

    async def _build_window(self) -> ContextWindow:
        if self._persists:
            history = await self._store.list_messages(self.request.chat_id)
        else:
            history = self.request.messages[:-1]

        window = ContextWindow.from_history(
            self._profile.context_window_size,
            [*history, self.request.messages[-1]],
            system_prompt=effective_system_prompt(
                self.request.system_prompt, self._settings
            ),
        )

        logger.debug(
            "Window built for %s: %d messages, %d/%d tokens",
            self.instance_id,
            len(window),
            window.total_tokens,
            window.budget,
        )
        return window

    def _build_payload(self, window: ContextWindow) -> dict:
        return {
            "model": self.request.model,
            "messages": window.to_payload(),
            "stream": True,
            "options": self.request.params.to_options(
                num_ctx=self._profile.context_window_size,
                default_max_tokens=self._profile.max_output_tokens,
            ),
        }

    # --- Streaming ---

    async def _consume(self, stream: ByteStream) -> bool:
        """
        Read until a terminal frame or end of body.

        Returns True when the reply finished and False when cancelled.
        Raises ModelError on transport failure or a server error frame.
        """
        decoder = FrameDecoder()
        cancel_wait = asyncio.ensure_future(self._token.wait())
        read: Optional[asyncio.Future] = None
        try:
            while True:
                read = asyncio.ensure_future(stream.read_chunk())
                done, _ = await asyncio.wait(
                    {read, cancel_wait}, return_when=asyncio.FIRST_COMPLETED
                )

                # Cancel wins a tie with a chunk that arrived at the same time.
                if cancel_wait in done or self._token.cancelled:
                    await self._abandon(read)
                    await stream.close()
                    return False

                chunk = read.result()
                if not chunk:
                    for frame in decoder.flush():
                        if await self._handle_frame(frame):
                            return True
                    logger.info(
                        "Stream for %s closed without a done frame", self.instance_id
                    )
                    return True

                for frame in decoder.feed(chunk):
                    if await self._handle_frame(frame):
                        return True
        finally:
            cancel_wait.cancel()
            if read is not None and not read.done():
                read.cancel()

    async def _handle_frame(self, frame: dict) -> bool:
        """Emit the frame's delta. Returns True for the terminal frame."""
        if "error" in frame:
            raise ModelError(
                f"Model server error: {frame['error']}",
                user_hint="The model server aborted the reply.",
                details={"frame": frame},
            )

        message = frame.get("message")
        content = message.get("content") if isinstance(message, dict) else None
        if isinstance(content, str) and content:
            self._chunks.append(content)
            await self._emit(Delta(instance_id=self.instance_id, text=content))

        return bool(frame.get("done"))

    @staticmethod
    async def _abandon(task: asyncio.Future) -> None:
        task.cancel()
        await asyncio.wait({task})
        if not task.cancelled():
            # Mark a late failure as retrieved; the reply is being dropped anyway.
            task.exception()

    # --- Terminal paths ---

    async def _complete(self, window: ContextWindow, final_text: str) -> GenerationEvent:
        assistant = Message(role=Role.ASSISTANT.value, content=final_text)
        persisted = False

        if self._persists:
            try:
                assistant = await self._store.append_message(
                    self.request.chat_id, Role.ASSISTANT.value, final_text
                )
                persisted = True
            except PersistenceError as e:
                # The reply is already on screen; report, don't retract.
                logger.error(f"Failed to save assistant reply: {e.message}")
                await self._warn("Assistant reply was not saved", e)

        stats = window.add(assistant)
        await self._emit(ContextUpdate(instance_id=self.instance_id, stats=stats))

        follow_ups: List[str] = []
        if self._settings.follow_up_suggestions:
            follow_ups = await generate_follow_ups(
                self._provider,
                self.request.model,
                question=self.request.messages[-1].content,
                answer=final_text,
                count=self._settings.follow_up_count,
                on_error=self._on_suggestion_error,
            )

        self._state.transition_to(GenerationState.COMPLETED)
        return await self._finish(
            Complete(
                instance_id=self.instance_id,
                final_text=final_text,
                follow_ups=follow_ups,
                chat_id=self.request.chat_id,
                persisted=persisted,
            )
        )

    async def _fail(self, error: LocalChatError) -> GenerationEvent:
        logger.error(f"Generation failed for {self.instance_id}: {error.message}")
        self._state.transition_to(GenerationState.FAILED)
        return await self._finish(
            Error(
                instance_id=self.instance_id,
                message=error.message,
                user_hint=error.user_hint,
            )
        )

    async def _finish(self, event: GenerationEvent) -> GenerationEvent:
        self._terminal = event
        await self._emit(event)
        return event

    # --- Side observations ---

    async def _on_suggestion_error(self, error: SuggestionError) -> None:
        await self._warn("Follow-up suggestions unavailable", error)

    async def _warn(self, message: str, error: LocalChatError) -> None:
        if self._bus is None:
            return
        await self._bus.emit(
            EventTypes.WARNING,
            {
                "message": message,
                "details": error.message,
                "instance_id": self.instance_id,
            },
        )
