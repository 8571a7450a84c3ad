from .base import ChatStore
from .sqlite import SqliteChatStore

__all__ = ["ChatStore", "SqliteChatStore"]
