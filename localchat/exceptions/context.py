#!/usr/bin/env python3
"""
Context Exception Definitions for localchat

All context-related exceptions inherit from LocalChatError.
"""

from typing import Any

from .base import LocalChatError


class ContextError(LocalChatError):
    """Base exception for context management errors."""

    pass


class ContextValidationError(ContextError):
    """Raised when context validation fails."""

    def __init__(
        self, message: str, validation_type: str = None, invalid_value: Any = None
    ):
        super().__init__(message)
        self.validation_type = validation_type
        self.invalid_value = invalid_value
