import logging
import sys
from typing import Any, Dict, List

from localchat.config.settings import Settings
from localchat.protocol.bus import EventBus
from localchat.protocol.events import EventTypes

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(settings: Settings) -> None:
    """
    Configure the root logger from settings.

    Logs go to stderr, and also to `log_file` when one is set. Calling this
    twice replaces the handlers instead of stacking them.
    """
    root = logging.getLogger()
    root.setLevel(settings.log_level)
    for handler in list(root.handlers):
        root.removeHandler(handler)

    formatter = logging.Formatter(LOG_FORMAT)

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    root.addHandler(console)

    if settings.log_file is not None:
        settings.log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(str(settings.log_file), encoding="utf-8")
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    # aiohttp is chatty at DEBUG
    logging.getLogger("aiohttp").setLevel(max(root.level, logging.INFO))


class EventLogger:
    """
    Bus observer that writes a readable trail of what happened.

    - Aggregates stream deltas per instance so a reply is one log line.
    - Concurrent instances never mix their buffers.
    """

    def __init__(self, bus: EventBus):
        self._bus = bus
        self._buffers: Dict[str, List[str]] = {}  # The "Stream Aggregator" buffers
        self._logger = logging.getLogger("LocalChat")

    async def start(self):
        """Subscribe to the bus."""
        # Operational Events
        await self._bus.subscribe(EventTypes.INFO, self._log_info)
        await self._bus.subscribe(EventTypes.WARNING, self._log_warning)

        # The "Stream Aggregator" Pattern
        await self._bus.subscribe(EventTypes.GENERATION_DELTA, self._handle_delta)
        await self._bus.subscribe(
            EventTypes.GENERATION_COMPLETE, self._handle_complete
        )
        await self._bus.subscribe(
            EventTypes.GENERATION_CANCELLED, self._handle_cancelled
        )
        await self._bus.subscribe(EventTypes.GENERATION_ERROR, self._handle_failed)

        # Context Visibility
        await self._bus.subscribe(EventTypes.CONTEXT_UPDATE, self._log_context)

        # Store changes
        await self._bus.subscribe(EventTypes.CHAT_CREATED, self._log_chat_created)
        await self._bus.subscribe(EventTypes.CHAT_DELETED, self._log_chat_deleted)
        await self._bus.subscribe(EventTypes.MESSAGE_PIN_TOGGLED, self._log_pin)

    # --- Handlers ---

    async def _log_info(self, data: Dict[str, Any]):
        msg = data.get("message", str(data))
        self._logger.info(f"ℹ️  {msg}")

    async def _log_warning(self, data: Dict[str, Any]):
        msg = data.get("message", str(data))
        details = data.get("details")
        if details:
            msg = f"{msg}: {details}"
        self._logger.warning(f"⚠️  {msg}")

    async def _log_context(self, data: Any):
        stats = data.stats
        if stats is None:
            return
        self._logger.debug(
            f"🧠 CONTEXT [{data.instance_id}]: {stats.total_tokens}/{stats.budget} tokens, "
            f"{stats.message_count} messages, {stats.pruned_count} pruned"
        )

    async def _log_chat_created(self, data: Any):
        self._logger.info(f"💬 CHAT CREATED: {data.title} ({data.id})")

    async def _log_chat_deleted(self, data: Dict[str, Any]):
        self._logger.info(f"🗑️  CHAT DELETED: {data.get('chat_id')}")

    async def _log_pin(self, data: Dict[str, Any]):
        state = "pinned" if data.get("pinned") else "unpinned"
        self._logger.info(f"📌 MESSAGE {state}: {data.get('message_id')}")

    # --- The Aggregator Logic ---

    async def _handle_delta(self, data: Any):
        """Silent buffer. Doesn't print."""
        if data.text:
            self._buffers.setdefault(data.instance_id, []).append(data.text)

    async def _handle_complete(self, data: Any):
        """Flushes the instance's buffer to the log."""
        full_text = "".join(self._buffers.pop(data.instance_id, [])) or data.final_text
        self._logger.info(f"🤖 MODEL [{data.instance_id}]: {full_text}")
        if data.follow_ups:
            self._logger.debug(f"💡 FOLLOW-UPS [{data.instance_id}]: {data.follow_ups}")

    async def _handle_cancelled(self, data: Any):
        partial = "".join(self._buffers.pop(data.instance_id, []))
        self._logger.info(
            f"⏹️  CANCELLED [{data.instance_id}] after {len(partial)} chars"
        )

    async def _handle_failed(self, data: Any):
        self._buffers.pop(data.instance_id, None)
        self._logger.error(f"🚨 GENERATION FAILED [{data.instance_id}]: {data.message}")
