"""
Cooperative cancellation.

A CancellationChannel is one cancellation scope. Starting a generation arms
the channel with a fresh CancellationToken; the session owns that token and
checks it at its suspension points. Arming replaces the previous token, so a
stale session can never observe a signal meant for its successor, and a new
session never observes a signal sent before it started.
"""

import asyncio
import logging
from typing import Optional

logger = logging.getLogger("Cancellation")


class CancellationToken:
    """Receiver bound to exactly one generation request."""

    def __init__(self):
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> bool:
        """Signal once. Returns False if already signalled."""
        if self._event.is_set():
            return False
        self._event.set()
        return True

    async def wait(self) -> None:
        await self._event.wait()


class CancellationChannel:
    """
    Single-slot broadcast point.

    Only one generation is active per channel. Sessions that must be
    cancellable independently each get their own channel.
    """

    def __init__(self, name: str = "shared"):
        self.name = name
        self._token: Optional[CancellationToken] = None

    def subscribe(self) -> CancellationToken:
        """Rearm with a fresh token that only sees future cancel() calls."""
        token = CancellationToken()
        self.arm(token)
        return token

    def arm(self, token: CancellationToken) -> None:
        """Bind an existing token to this scope, replacing the previous one."""
        self._token = token

    def release(self, token: CancellationToken) -> bool:
        """Disarm, but only if `token` is still the armed one."""
        if self._token is token:
            self._token = None
            return True
        return False

    def cancel(self) -> bool:
        """
        Signal the armed token.

        Returns True if a listening session was signalled; False when nothing
        is armed or the signal was already delivered.
        """
        if self._token is None:
            logger.debug("Cancel on '%s' ignored: no active generation", self.name)
            return False
        delivered = self._token.cancel()
        if delivered:
            logger.info("Cancellation delivered on '%s'", self.name)
        return delivered
