#!/usr/bin/env python3
"""
localchat Exceptions Package

Unified exception hierarchy for the chat engine.
"""

# Base exceptions
from .base import LocalChatError, wrap_exception

# Model server exceptions
from .model import (
    FrameDecodeError,
    ModelConnectionError,
    ModelError,
    SuggestionError,
)

# Context exceptions
from .context import ContextError, ContextValidationError

# Persistence exceptions
from .persistence import PersistenceError

# Config exceptions
from .config import ConfigError, ModelProfileError

# Session exceptions
from .session import (
    RequestValidationError,
    SessionBusyError,
    SessionError,
    StateTransitionError,
)


__all__ = [
    # Base
    "LocalChatError",
    "wrap_exception",
    # Model
    "ModelError",
    "ModelConnectionError",
    "FrameDecodeError",
    "SuggestionError",
    # Context
    "ContextError",
    "ContextValidationError",
    # Persistence
    "PersistenceError",
    # Config
    "ConfigError",
    "ModelProfileError",
    # Session
    "SessionError",
    "RequestValidationError",
    "StateTransitionError",
    "SessionBusyError",
]
