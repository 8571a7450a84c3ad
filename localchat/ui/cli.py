"""CLI implementation using prompt_toolkit for localchat."""
import asyncio
import logging
import uuid
from typing import Any, List, Optional

from prompt_toolkit import PromptSession
from prompt_toolkit.patch_stdout import patch_stdout

from localchat.chat.service import ChatService
from localchat.chat.structs import Chat, Message, Role, StartGenerationRequest
from localchat.config.settings import Settings
from localchat.config.system_prompts import PREDEFINED_PROMPTS
from localchat.exceptions import LocalChatError
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

logger = logging.getLogger("PromptToolkitCLI")

HELP_TEXT = """Commands:
  /new [title]        start a new chat
  /chats              list chats
  /open <n|id>        switch to a chat
  /delete <n|id>      delete a chat
  /history            show the current chat
  /pin <n>            pin or unpin message n of /history
  /stats              context usage of the current chat
  /model <name>       switch model
  /system <id|text>   set the system prompt (/system off to clear)
  /cancel             stop the reply being generated (or press Ctrl-C)
  quit                exit"""


class PromptToolkitCLI:
    """
    CLI implementation using prompt_toolkit.

    Features:
    - Single-line input, replies streamed above the prompt
    - Chat history browsing, pinning and context stats
    - /cancel or Ctrl-C stops the reply in flight
    """

    def __init__(self, service: ChatService, bus: EventBus, settings: Settings):
        self._service = service
        self._bus = bus
        self._settings = settings
        self._running = False
        self._instance_id = f"cli-{uuid.uuid4().hex[:8]}"
        self._model = settings.default_model
        self._system_prompt: Optional[str] = settings.system_prompt_id
        self._chat: Optional[Chat] = None
        self._chats: List[Chat] = []
        self._history: List[Message] = []
        self._generation: Optional[asyncio.Task] = None
        self._verbose_ui = settings.log_level == "DEBUG"

        # Create prompt session with default bindings for reliable editing behavior.
        self._session = PromptSession(multiline=False)

    async def start(self) -> None:
        """Subscribe to this instance's generation events and system events."""
        await self._service.registry.subscribe(self._instance_id, self._handle_generation)

        await self._bus.subscribe(EventTypes.WARNING, self._handle_warning)
        await self._bus.subscribe(EventTypes.INFO, self._handle_info)

        logger.info("PromptToolkitCLI started and listening")

    async def run(self) -> None:
        """Main REPL loop."""
        self._running = True

        print("\n" + "=" * 60)
        print(f"localchat  (model: {self._model})")
        print("Type /help for commands, 'quit' to stop")
        print("=" * 60 + "\n")

        while self._running:
            try:
                # Ensure background prints don't corrupt the current input buffer.
                with patch_stdout():
                    user_text = await self._session.prompt_async(self._get_prompt())
            except KeyboardInterrupt:
                if self._is_generating():
                    self._cancel()
                    continue
                print("\nGoodbye!")
                break
            except EOFError:
                print("\nGoodbye!")
                break

            text = user_text.strip()
            if not text:
                continue
            if text.lower() in ("quit", "exit", "q"):
                print("Goodbye!")
                break

            try:
                if text.startswith("/"):
                    await self._handle_command(text)
                elif self._is_generating():
                    print("[busy] A reply is still streaming. /cancel to stop it.")
                else:
                    await self._send(text)
            except LocalChatError as e:
                print(f"[ERROR] {e.message}\n  {e.user_hint}")

        await self.stop()

    async def stop(self) -> None:
        """Stop the CLI."""
        self._running = False
        if self._is_generating():
            self._cancel()
            await asyncio.gather(self._generation, return_exceptions=True)
        await self._service.registry.unsubscribe(self._instance_id, self._handle_generation)
        logger.info("PromptToolkitCLI stopped")

    def _get_prompt(self) -> str:
        """Get the current prompt with state symbol."""
        state = "streaming" if self._is_generating() else "idle"
        title = self._chat.title[:20] if self._chat else "new chat"
        return f"({state} | {title}) > "

    def _is_generating(self) -> bool:
        return self._generation is not None and not self._generation.done()

    def _cancel(self) -> None:
        if self._service.cancel_generation(self._instance_id):
            print("\n[cancelling]")

    # --- Sending ---

    async def _send(self, text: str) -> None:
        if self._chat is None:
            self._chat = await self._service.create_chat(text[:40], self._model)

        request = StartGenerationRequest(
            model=self._model,
            messages=[Message(role=Role.USER.value, content=text)],
            instance_id=self._instance_id,
            chat_id=self._chat.id,
            system_prompt=self._system_prompt,
        )
        self._generation = self._service.spawn_generation(request)

    # --- Commands ---

    async def _handle_command(self, text: str) -> None:
        command, _, arg = text.partition(" ")
        command = command.lower()
        arg = arg.strip()

        if command == "/help":
            print(HELP_TEXT)
        elif command == "/cancel":
            if not self._service.cancel_generation(self._instance_id):
                print("Nothing to cancel.")
        elif command == "/new":
            self._chat = await self._service.create_chat(arg or "New chat", self._model)
            self._history = []
            print(f"Started chat '{self._chat.title}'")
        elif command == "/chats":
            await self._list_chats()
        elif command == "/open":
            chat = self._resolve_chat(arg)
            if chat is not None:
                self._chat = chat
                self._model = chat.model
                print(f"Opened '{chat.title}' (model: {chat.model})")
                await self._show_history()
        elif command == "/delete":
            chat = self._resolve_chat(arg)
            if chat is not None:
                await self._service.delete_chat(chat.id)
                if self._chat and self._chat.id == chat.id:
                    self._chat = None
                print(f"Deleted '{chat.title}'")
        elif command == "/history":
            await self._show_history()
        elif command == "/pin":
            await self._toggle_pin(arg)
        elif command == "/stats":
            await self._show_stats()
        elif command == "/model":
            if arg:
                self._model = arg
            print(f"Model: {self._model}")
        elif command == "/system":
            self._set_system_prompt(arg)
        else:
            print(f"Unknown command: {command}. Try /help")

    async def _list_chats(self) -> None:
        self._chats = await self._service.list_chats()
        if not self._chats:
            print("No chats yet.")
            return
        for index, chat in enumerate(self._chats, start=1):
            marker = "*" if self._chat and chat.id == self._chat.id else " "
            print(f"{marker}{index:>3}. {chat.title}  [{chat.model}]  {chat.updated_at[:19]}")

    def _resolve_chat(self, arg: str) -> Optional[Chat]:
        if not arg:
            print("Usage: /open <n|id>")
            return None
        if arg.isdigit() and 0 < int(arg) <= len(self._chats):
            return self._chats[int(arg) - 1]
        for chat in self._chats:
            if chat.id == arg or chat.id.startswith(arg):
                return chat
        print(f"No such chat: {arg} (run /chats first)")
        return None

    async def _show_history(self) -> None:
        if self._chat is None:
            print("No chat open.")
            return
        self._history = await self._service.get_chat_messages(self._chat.id)
        for index, message in enumerate(self._history, start=1):
            pin = "📌" if message.pinned else "  "
            preview = message.content.replace("\n", " ")
            if len(preview) > 100:
                preview = preview[:100] + "..."
            print(f"{pin}{index:>3}. {message.role}: {preview}")

    async def _toggle_pin(self, arg: str) -> None:
        if not arg.isdigit() or not 0 < int(arg) <= len(self._history):
            print("Usage: /pin <n> (numbers from /history)")
            return
        message = self._history[int(arg) - 1]
        message.pinned = await self._service.toggle_message_pin(message.id)
        print(f"Message {arg} {'pinned' if message.pinned else 'unpinned'}")

    async def _show_stats(self) -> None:
        if self._chat is None:
            print("No chat open.")
            return
        stats = await self._service.get_context_stats(
            self._chat.id, self._model, self._system_prompt
        )
        print(self._format_stats(stats))

    def _set_system_prompt(self, arg: str) -> None:
        if not arg:
            print("Presets: " + ", ".join(PREDEFINED_PROMPTS))
            print(f"Current: {self._system_prompt or '(none)'}")
            return
        self._system_prompt = None if arg.lower() == "off" else arg
        print(f"System prompt: {self._system_prompt or '(none)'}")

    @staticmethod
    def _format_stats(stats: Any) -> str:
        return (
            f"[context] {stats.total_tokens}/{stats.budget} tokens "
            f"({stats.percentage:.1f}%), {stats.message_count} messages, "
            f"{stats.pruned_count} pruned"
        )

    # Event Handlers

    async def _handle_generation(self, event: GenerationEvent) -> None:
        """Render this instance's generation events."""
        if isinstance(event, Delta):
            print(event.text, end="", flush=True)
        elif isinstance(event, ContextUpdate):
            if self._verbose_ui and event.stats is not None:
                print(self._format_stats(event.stats))
        elif isinstance(event, Complete):
            print("\n")
            if not event.persisted:
                print("[WARNING] This reply was not saved.")
            for index, suggestion in enumerate(event.follow_ups, start=1):
                print(f"  💭 {index}. {suggestion}")
        elif isinstance(event, Cancelled):
            print("\n[cancelled]\n")
        elif isinstance(event, Error):
            print(f"\n[ERROR] {event.message}")
            if event.user_hint:
                print(f"  {event.user_hint}")

    async def _handle_warning(self, data: dict) -> None:
        """Handle WARNING events."""
        if data.get("instance_id") not in (None, self._instance_id):
            return
        message = data.get("message", str(data))
        print(f"[WARNING] {message}")

    async def _handle_info(self, data: dict) -> None:
        """Handle INFO events."""
        if not self._verbose_ui or data.get("instance_id") not in (None, self._instance_id):
            return
        message = data.get("message", str(data))
        print(f"[INFO] {message}")
