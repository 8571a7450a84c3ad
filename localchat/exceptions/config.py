#!/usr/bin/env python3
"""
Configuration Exception Definitions for localchat
"""

from .base import LocalChatError


class ConfigError(LocalChatError):
    """Raised when settings are missing or invalid."""

    def __init__(self, message, field_name=None, invalid_value=None):
        super().__init__(message, user_hint="Check your .env file and environment.")
        self.field_name = field_name
        self.invalid_value = invalid_value


class ModelProfileError(ConfigError):
    """Raised when a model profile override file cannot be loaded."""

    def __init__(self, message, config_file=None, original_error=None):
        super().__init__(message)
        self.config_file = config_file
        self.original_error = original_error
