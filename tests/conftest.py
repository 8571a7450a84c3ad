"""Shared fakes for the chat engine tests."""

import asyncio
import json
from contextlib import asynccontextmanager
from typing import Dict, List, Optional

import pytest

from localchat.chat.structs import Chat, Message
from localchat.config.settings import Settings
from localchat.exceptions import PersistenceError
from localchat.providers.base import BaseProvider, ByteStream
from localchat.storage.base import ChatStore


def ndjson_frame(content: str = "", done: bool = False, **extra) -> bytes:
    frame = {"message": {"role": "assistant", "content": content}, "done": done}
    frame.update(extra)
    return (json.dumps(frame, ensure_ascii=False) + "\n").encode("utf-8")


class FakeStream(ByteStream):
    """Replays scripted chunks. Exceptions in the script are raised on read."""

    def __init__(self, chunks, hang: bool = False):
        self._chunks = list(chunks)
        self._hang = hang
        self.closed = False

    async def read_chunk(self) -> bytes:
        if self._chunks:
            item = self._chunks.pop(0)
            if isinstance(item, Exception):
                raise item
            return item
        if self._hang:
            # Like a server that stops sending but keeps the connection open.
            await asyncio.Event().wait()
        return b""

    async def close(self) -> None:
        self.closed = True


class FakeProvider(BaseProvider):
    def __init__(
        self,
        chunks=(),
        hang: bool = False,
        connect_error: Optional[Exception] = None,
        suggestions: str = "",
        suggestion_error: Optional[Exception] = None,
    ):
        self.chunks = list(chunks)
        self.hang = hang
        self.connect_error = connect_error
        self.suggestions = suggestions
        self.suggestion_error = suggestion_error
        self.payloads: List[dict] = []
        self.prompts: List[str] = []
        self.streams: List[FakeStream] = []
        self.closed = False

    @asynccontextmanager
    async def open_chat_stream(self, payload):
        self.payloads.append(payload)
        if self.connect_error is not None:
            raise self.connect_error
        stream = FakeStream(self.chunks, hang=self.hang)
        self.streams.append(stream)
        yield stream

    async def generate(self, model: str, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.suggestion_error is not None:
            raise self.suggestion_error
        return self.suggestions

    async def validate_connection(self) -> bool:
        return True

    async def close(self) -> None:
        self.closed = True


class MemoryChatStore(ChatStore):
    """In-memory ChatStore. `fail_roles` makes append_message fail for those roles."""

    def __init__(self, fail_roles=()):
        self.fail_roles = set(fail_roles)
        self.chats: Dict[str, Chat] = {}
        self.messages: List[Message] = []
        self._next = 0

    def _id(self) -> str:
        self._next += 1
        return f"id-{self._next}"

    async def create_chat(self, title: str, model: str) -> Chat:
        stamp = f"2024-01-01T00:00:{self._next:02d}"
        chat = Chat(id=self._id(), title=title, model=model, created_at=stamp, updated_at=stamp)
        self.chats[chat.id] = chat
        return chat

    async def get_chat(self, chat_id: str) -> Optional[Chat]:
        return self.chats.get(chat_id)

    async def list_chats(self) -> List[Chat]:
        return sorted(self.chats.values(), key=lambda c: c.updated_at, reverse=True)

    async def delete_chat(self, chat_id: str) -> None:
        self.chats.pop(chat_id, None)
        self.messages = [m for m in self.messages if m.chat_id != chat_id]

    async def append_message(self, chat_id, role, content, pinned=False, tag=None) -> Message:
        if role in self.fail_roles:
            raise PersistenceError(f"disk full while saving {role}", operation="append")
        message = Message(
            role=role, content=content, pinned=pinned, tag=tag, id=self._id(), chat_id=chat_id
        )
        self.messages.append(message)
        return message

    async def list_messages(self, chat_id: str) -> List[Message]:
        return [m for m in self.messages if m.chat_id == chat_id]

    async def toggle_pin(self, message_id: str) -> bool:
        for message in self.messages:
            if message.id == message_id:
                message.pinned = not message.pinned
                return message.pinned
        raise PersistenceError(f"Message not found: {message_id}")


class EventRecorder:
    """Async sink that keeps every event it receives."""

    def __init__(self):
        self.events = []

    async def __call__(self, event) -> None:
        self.events.append(event)

    @property
    def types(self):
        return [type(e).__name__ for e in self.events]


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        database_path=tmp_path / "chats.db",
        follow_up_suggestions=False,
        system_prompt_id=None,
    )


@pytest.fixture
def frame():
    return ndjson_frame


@pytest.fixture
def make_provider():
    return FakeProvider


@pytest.fixture
def memory_store():
    return MemoryChatStore()


@pytest.fixture
def recorder():
    return EventRecorder()


@pytest.fixture
def make_store():
    return MemoryChatStore
