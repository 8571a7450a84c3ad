#!/usr/bin/env python3
"""
Context Window
==============
Holds one request's conversation under a token budget.

A window is built per generation request, seeded from stored history and
thrown away when the request ends. Nothing in here is shared between
sessions, so there is no locking.
"""

import logging
from typing import Dict, Iterable, List, Optional

from localchat.chat.structs import ContextStats, Message
from localchat.exceptions import ContextValidationError

from . import logic

logger = logging.getLogger("ContextWindow")


class ContextWindow:
    """
    Ordered conversation plus a running token estimate.

    Invariants after every mutation:
    - total_tokens == sum of estimates of the messages held.
    - total_tokens <= budget, or every message but the last is pinned.
    """

    def __init__(self, budget: int):
        if budget <= 0:
            raise ContextValidationError(
                f"Invalid budget value: {budget}. Must be positive.",
                validation_type="budget",
                invalid_value=budget,
            )
        self.budget = budget
        self.total_tokens = 0
        self.pruned_count = 0
        self._messages: List[Message] = []
        self._costs: List[int] = []

    @classmethod
    def from_history(
        cls,
        budget: int,
        history: Iterable[Message],
        system_prompt: Optional[str] = None,
    ) -> "ContextWindow":
        """
        Seed a window: pinned system prompt first, then history oldest-first.
        Pruning runs as each message goes in, exactly as for live appends.
        """
        window = cls(budget)
        if system_prompt:
            window.add(Message(role="system", content=system_prompt, pinned=True))
        for message in history:
            window.add(message)
        return window

    def add(self, message: Message) -> ContextStats:
        """
        Appends a message, then prunes until the budget holds or nothing
        evictable is left.
        """
        cost = logic.message_tokens(message)
        self._messages.append(message)
        self._costs.append(cost)
        self.total_tokens += cost

        while self.total_tokens > self.budget and len(self._messages) > 1:
            index = logic.find_prune_candidate(self._messages)
            if index is None:
                logger.debug(
                    "Over budget (%d/%d) but only pinned messages remain",
                    self.total_tokens,
                    self.budget,
                )
                break
            self._evict(index)

        return self.stats()

    def _evict(self, index: int) -> None:
        removed = self._messages.pop(index)
        cost = self._costs.pop(index)
        self.total_tokens -= cost
        self.pruned_count += 1
        logger.debug(
            "Pruned %s message at %d (%d tokens). Total: %d",
            removed.role,
            index,
            cost,
            self.total_tokens,
        )

    def stats(self) -> ContextStats:
        return ContextStats(
            total_tokens=self.total_tokens,
            budget=self.budget,
            message_count=len(self._messages),
            percentage=logic.usage_percentage(self.total_tokens, self.budget),
            pruned_count=self.pruned_count,
        )

    def get_messages(self) -> List[Message]:
        """Returns a copy of the held messages in insertion order."""
        return list(self._messages)

    def to_payload(self) -> List[Dict[str, str]]:
        return [m.to_payload() for m in self._messages]

    @property
    def last(self) -> Optional[Message]:
        return self._messages[-1] if self._messages else None

    def __len__(self) -> int:
        return len(self._messages)
