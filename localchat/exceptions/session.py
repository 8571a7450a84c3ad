#!/usr/bin/env python3
"""
Session Exception Definitions for localchat

Errors raised by the generation engine itself rather than its collaborators.
"""

from .base import LocalChatError


class SessionError(LocalChatError):
    """Base exception for generation session errors."""

    pass


class RequestValidationError(SessionError):
    """Raised when an inbound start-generation request is malformed."""

    def __init__(self, message, field_name=None):
        super().__init__(message, user_hint="The generation request was invalid.")
        self.field_name = field_name


class StateTransitionError(SessionError):
    """Raised when a session attempts an illegal state transition."""

    def __init__(self, message, current_state=None, requested_state=None):
        super().__init__(message)
        self.current_state = current_state
        self.requested_state = requested_state


class SessionBusyError(SessionError):
    """Raised when an instance already has a generation in flight."""

    def __init__(self, message, instance_id=None):
        super().__init__(
            message, user_hint="Wait for the current reply or cancel it first."
        )
        self.instance_id = instance_id
