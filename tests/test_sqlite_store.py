"""Tests for the sqlite chat store."""

import asyncio
import sqlite3

import pytest

from localchat.exceptions import PersistenceError
from localchat.storage.sqlite import SqliteChatStore


class TestSqliteChatStore:
    @pytest.fixture
    def db_path(self, tmp_path):
        return tmp_path / "nested" / "chats.db"

    @pytest.mark.asyncio
    async def test_creates_parent_directory_and_schema(self, db_path):
        store = await SqliteChatStore(db_path).open()
        try:
            assert db_path.exists()
            assert await store.list_chats() == []
        finally:
            await store.close()

    @pytest.mark.asyncio
    async def test_messages_round_trip_in_insertion_order(self, db_path):
        store = await SqliteChatStore(db_path).open()
        try:
            chat = await store.create_chat("Trip", "llama3")
            await store.append_message(chat.id, "system", "be nice", pinned=True)
            await store.append_message(chat.id, "user", "first", tag="question")
            await store.append_message(chat.id, "assistant", "second")

            messages = await store.list_messages(chat.id)

            assert [(m.role, m.content, m.pinned, m.tag) for m in messages] == [
                ("system", "be nice", True, None),
                ("user", "first", False, "question"),
                ("assistant", "second", False, None),
            ]
            assert all(m.chat_id == chat.id and m.id and m.created_at for m in messages)
        finally:
            await store.close()

    @pytest.mark.asyncio
    async def test_chats_listed_most_recently_updated_first(self, db_path):
        store = await SqliteChatStore(db_path).open()
        try:
            older = await store.create_chat("older", "llama3")
            newer = await store.create_chat("newer", "llama3")
            assert [c.id for c in await store.list_chats()] == [newer.id, older.id]

            await store.append_message(older.id, "user", "bump")
            assert [c.id for c in await store.list_chats()] == [older.id, newer.id]
        finally:
            await store.close()

    @pytest.mark.asyncio
    async def test_toggle_pin_returns_new_state(self, db_path):
        store = await SqliteChatStore(db_path).open()
        try:
            chat = await store.create_chat("Pins", "llama3")
            message = await store.append_message(chat.id, "user", "keep me")

            assert await store.toggle_pin(message.id) is True
            assert (await store.list_messages(chat.id))[0].pinned is True
            assert await store.toggle_pin(message.id) is False
        finally:
            await store.close()

    @pytest.mark.asyncio
    async def test_toggle_pin_unknown_message_raises(self, db_path):
        store = await SqliteChatStore(db_path).open()
        try:
            with pytest.raises(PersistenceError):
                await store.toggle_pin("missing")
        finally:
            await store.close()

    @pytest.mark.asyncio
    async def test_delete_chat_removes_its_messages(self, db_path):
        store = await SqliteChatStore(db_path).open()
        try:
            keep = await store.create_chat("keep", "llama3")
            drop = await store.create_chat("drop", "llama3")
            await store.append_message(keep.id, "user", "stay")
            await store.append_message(drop.id, "user", "go")

            await store.delete_chat(drop.id)

            assert await store.get_chat(drop.id) is None
            assert await store.list_messages(drop.id) == []
            assert [m.content for m in await store.list_messages(keep.id)] == ["stay"]
        finally:
            await store.close()

    @pytest.mark.asyncio
    async def test_append_to_unknown_chat_is_a_persistence_error(self, db_path):
        store = await SqliteChatStore(db_path).open()
        try:
            with pytest.raises(PersistenceError) as exc_info:
                await store.append_message("no-such-chat", "user", "orphan")
            assert isinstance(exc_info.value.original_error, sqlite3.IntegrityError)
        finally:
            await store.close()

    @pytest.mark.asyncio
    async def test_invalid_role_is_rejected(self, db_path):
        store = await SqliteChatStore(db_path).open()
        try:
            chat = await store.create_chat("Roles", "llama3")
            with pytest.raises(PersistenceError):
                await store.append_message(chat.id, "tool", "nope")
        finally:
            await store.close()

    @pytest.mark.asyncio
    async def test_use_before_open_raises(self, db_path):
        with pytest.raises(PersistenceError):
            await SqliteChatStore(db_path).list_chats()

    @pytest.mark.asyncio
    async def test_concurrent_appends_are_serialized(self, db_path):
        store = await SqliteChatStore(db_path).open()
        try:
            chat = await store.create_chat("Busy", "llama3")
            await asyncio.gather(
                *(store.append_message(chat.id, "user", f"m{i}") for i in range(20))
            )
            assert len(await store.list_messages(chat.id)) == 20
        finally:
            await store.close()

    @pytest.mark.asyncio
    async def test_migrates_database_without_pin_columns(self, db_path):
        db_path.parent.mkdir(parents=True)
        conn = sqlite3.connect(str(db_path))
        conn.executescript(
            """
            CREATE TABLE chats (id TEXT PRIMARY KEY, title TEXT NOT NULL, model TEXT NOT NULL,
                                created_at TEXT NOT NULL, updated_at TEXT NOT NULL);
            CREATE TABLE messages (id TEXT PRIMARY KEY, chat_id TEXT NOT NULL, role TEXT NOT NULL,
                                   content TEXT NOT NULL, created_at TEXT NOT NULL);
            INSERT INTO chats VALUES ('c1', 'old', 'llama2', '2024-01-01', '2024-01-01');
            INSERT INTO messages VALUES ('m1', 'c1', 'user', 'legacy', '2024-01-01');
            """
        )
        conn.commit()
        conn.close()

        store = await SqliteChatStore(db_path).open()
        try:
            [message] = await store.list_messages("c1")
            assert message.content == "legacy"
            assert message.pinned is False
            assert message.tag is None
        finally:
            await store.close()
