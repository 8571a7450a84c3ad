#!/usr/bin/env python3
"""
Model Server Exception Definitions for localchat

Everything that can go wrong between us and the model server.
"""

from typing import Optional

from .base import LocalChatError


class ModelError(LocalChatError):
    """Base exception for model-server related errors."""

    pass


class ModelConnectionError(ModelError):
    """
    Raised when the model server cannot be reached, rejects the request,
    or the response stream breaks while being read.

    Fatal to the generation session that raised it.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        original_error: Optional[Exception] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message, original_error=original_error, details=details)
        self.status_code = status_code
        self.user_hint = (
            "Could not talk to the model server. "
            "Check that Ollama is running and the model is pulled."
        )


class FrameDecodeError(ModelError):
    """Raised when a streamed frame is malformed. Never fatal: the frame is skipped."""

    def __init__(self, message: str, raw_frame: Optional[bytes] = None):
        super().__init__(message)
        self.raw_frame = raw_frame
        self.user_hint = "The model server sent a frame that could not be decoded."


class SuggestionError(ModelError):
    """Raised when follow-up suggestion generation fails."""

    pass
