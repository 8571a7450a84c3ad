#!/usr/bin/env python3
"""
Persistence Exception Definitions for localchat
"""

from .base import LocalChatError


class PersistenceError(LocalChatError):
    """
    Raised when a chat store operation fails.

    Used when:
    - The database file cannot be opened.
    - A read or write statement fails.
    - A referenced chat or message does not exist.
    """

    def __init__(self, message, operation=None, original_error=None, user_hint=None):
        super().__init__(
            message,
            original_error=original_error,
            user_hint=user_hint or "Saving or loading chat history failed.",
        )
        self.operation = operation
