#!/usr/bin/env python3
"""
SQLite Chat Store
=================

sqlite persistence for chats and messages.

Lock discipline: one asyncio.Lock serializes every statement, and it is
held only for the duration of that statement. The blocking sqlite call runs
in a worker thread so the event loop keeps streaming other chats meanwhile.
"""

import asyncio
import logging
import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Union

from localchat.chat.structs import Chat, Message, Role
from localchat.exceptions import PersistenceError, wrap_exception
from localchat.storage.base import ChatStore

logger = logging.getLogger("SqliteChatStore")

_persistence_errors = wrap_exception(
    PersistenceError,
    user_hint="Saving or loading chat history failed.",
    catch=(sqlite3.Error,),
)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS chats (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    model TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS messages (
    id TEXT PRIMARY KEY,
    chat_id TEXT NOT NULL,
    role TEXT NOT NULL,
    content TEXT NOT NULL,
    pinned INTEGER NOT NULL DEFAULT 0,
    tag TEXT,
    created_at TEXT NOT NULL,
    FOREIGN KEY (chat_id) REFERENCES chats (id) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_messages_chat ON messages (chat_id, created_at);
"""


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class SqliteChatStore(ChatStore):
    """sqlite-backed ChatStore. Call open() before use."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = asyncio.Lock()

    async def open(self) -> "SqliteChatStore":
        async with self._lock:
            await asyncio.to_thread(self._open_sync)
        logger.info("Chat store ready at %s", self.path)
        return self

    async def close(self) -> None:
        async with self._lock:
            if self._conn is not None:
                await asyncio.to_thread(self._conn.close)
                self._conn = None

    # --- Chats ---

    async def create_chat(self, title: str, model: str) -> Chat:
        async with self._lock:
            return await asyncio.to_thread(self._create_chat_sync, title, model)

    async def get_chat(self, chat_id: str) -> Optional[Chat]:
        async with self._lock:
            return await asyncio.to_thread(self._get_chat_sync, chat_id)

    async def list_chats(self) -> List[Chat]:
        async with self._lock:
            return await asyncio.to_thread(self._list_chats_sync)

    async def delete_chat(self, chat_id: str) -> None:
        async with self._lock:
            await asyncio.to_thread(self._delete_chat_sync, chat_id)

    # --- Messages ---

    async def append_message(
        self,
        chat_id: str,
        role: str,
        content: str,
        pinned: bool = False,
        tag: Optional[str] = None,
    ) -> Message:
        async with self._lock:
            return await asyncio.to_thread(
                self._append_message_sync, chat_id, role, content, pinned, tag
            )

    async def list_messages(self, chat_id: str) -> List[Message]:
        async with self._lock:
            return await asyncio.to_thread(self._list_messages_sync, chat_id)

    async def toggle_pin(self, message_id: str) -> bool:
        async with self._lock:
            return await asyncio.to_thread(self._toggle_pin_sync, message_id)

    # --- Blocking implementations (run in a worker thread, under the lock) ---

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise PersistenceError(
                "Chat store is not open", operation="connect"
            )
        return self._conn

    @_persistence_errors
    def _open_sync(self) -> None:
        if self._conn is not None:
            return
        if str(self.path) != ":memory:":
            self.path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self.path), check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        conn.executescript(_SCHEMA)
        self._migrate(conn)
        conn.commit()
        self._conn = conn

    @staticmethod
    def _migrate(conn: sqlite3.Connection) -> None:
        """Databases from before pinning existed lack the pinned/tag columns."""
        columns = {row["name"] for row in conn.execute("PRAGMA table_info(messages)")}
        if "pinned" not in columns:
            conn.execute("ALTER TABLE messages ADD COLUMN pinned INTEGER NOT NULL DEFAULT 0")
        if "tag" not in columns:
            conn.execute("ALTER TABLE messages ADD COLUMN tag TEXT")

    @_persistence_errors
    def _create_chat_sync(self, title: str, model: str) -> Chat:
        now = utc_now_iso()
        chat = Chat(
            id=str(uuid.uuid4()),
            title=title,
            model=model,
            created_at=now,
            updated_at=now,
        )
        with self.conn:
            self.conn.execute(
                "INSERT INTO chats (id, title, model, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (chat.id, chat.title, chat.model, chat.created_at, chat.updated_at),
            )
        return chat

    @_persistence_errors
    def _get_chat_sync(self, chat_id: str) -> Optional[Chat]:
        row = self.conn.execute(
            "SELECT id, title, model, created_at, updated_at FROM chats WHERE id = ?",
            (chat_id,),
        ).fetchone()
        return Chat(**dict(row)) if row else None

    @_persistence_errors
    def _list_chats_sync(self) -> List[Chat]:
        rows = self.conn.execute(
            "SELECT id, title, model, created_at, updated_at FROM chats "
            "ORDER BY updated_at DESC"
        ).fetchall()
        return [Chat(**dict(row)) for row in rows]

    @_persistence_errors
    def _delete_chat_sync(self, chat_id: str) -> None:
        with self.conn:
            self.conn.execute("DELETE FROM messages WHERE chat_id = ?", (chat_id,))
            self.conn.execute("DELETE FROM chats WHERE id = ?", (chat_id,))

    @_persistence_errors
    def _append_message_sync(
        self,
        chat_id: str,
        role: str,
        content: str,
        pinned: bool,
        tag: Optional[str],
    ) -> Message:
        if role not in {r.value for r in Role}:
            raise PersistenceError(f"Invalid message role: {role}", operation="append")

        message = Message(
            id=str(uuid.uuid4()),
            chat_id=chat_id,
            role=role,
            content=content,
            pinned=bool(pinned),
            tag=tag,
            created_at=utc_now_iso(),
        )
        with self.conn:
            self.conn.execute(
                "INSERT INTO messages (id, chat_id, role, content, pinned, tag, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    message.id,
                    message.chat_id,
                    message.role,
                    message.content,
                    int(message.pinned),
                    message.tag,
                    message.created_at,
                ),
            )
            # Keep the chat list sorted by activity
            self.conn.execute(
                "UPDATE chats SET updated_at = ? WHERE id = ?",
                (message.created_at, chat_id),
            )
        return message

    @_persistence_errors
    def _list_messages_sync(self, chat_id: str) -> List[Message]:
        rows = self.conn.execute(
            "SELECT id, chat_id, role, content, pinned, tag, created_at "
            "FROM messages WHERE chat_id = ? ORDER BY created_at ASC, rowid ASC",
            (chat_id,),
        ).fetchall()
        return [
            Message(
                id=row["id"],
                chat_id=row["chat_id"],
                role=row["role"],
                content=row["content"],
                pinned=bool(row["pinned"]),
                tag=row["tag"],
                created_at=row["created_at"],
            )
            for row in rows
        ]

    @_persistence_errors
    def _toggle_pin_sync(self, message_id: str) -> bool:
        with self.conn:
            cursor = self.conn.execute(
                "UPDATE messages SET pinned = 1 - pinned WHERE id = ?", (message_id,)
            )
            if cursor.rowcount == 0:
                raise PersistenceError(
                    f"Message not found: {message_id}", operation="toggle_pin"
                )
            row = self.conn.execute(
                "SELECT pinned FROM messages WHERE id = ?", (message_id,)
            ).fetchone()
        return bool(row["pinned"])
