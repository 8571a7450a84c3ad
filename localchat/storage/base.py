from abc import ABC, abstractmethod
from typing import List, Optional

from localchat.chat.structs import Chat, Message


class ChatStore(ABC):
    """
    Persistence contract for chats and messages.

    Every operation is atomic and fallible: implementations raise
    PersistenceError and never leave a half-written row behind.
    """

    @abstractmethod
    async def create_chat(self, title: str, model: str) -> Chat:
        pass

    @abstractmethod
    async def get_chat(self, chat_id: str) -> Optional[Chat]:
        pass

    @abstractmethod
    async def list_chats(self) -> List[Chat]:
        """Most recently updated first."""
        pass

    @abstractmethod
    async def delete_chat(self, chat_id: str) -> None:
        pass

    @abstractmethod
    async def append_message(
        self,
        chat_id: str,
        role: str,
        content: str,
        pinned: bool = False,
        tag: Optional[str] = None,
    ) -> Message:
        pass

    @abstractmethod
    async def list_messages(self, chat_id: str) -> List[Message]:
        """Oldest first."""
        pass

    @abstractmethod
    async def toggle_pin(self, message_id: str) -> bool:
        """Flip the pinned flag. Returns the new state."""
        pass

    async def close(self) -> None:
        return None
