"""
Follow-up suggestions: a non-critical enrichment step.

Runs after a reply has completed. Whatever goes wrong here, the caller gets
a list (possibly empty) and the reply itself stands. Failures are handed to
`on_error` so they can be observed without touching the session's outcome.
"""

import logging
import re
from typing import Awaitable, Callable, List, Optional

from localchat.exceptions import LocalChatError, SuggestionError
from localchat.providers.base import BaseProvider

logger = logging.getLogger("FollowUpSuggestions")

ErrorObserver = Callable[[SuggestionError], Awaitable[None]]

# Answers are clipped so the suggestion prompt stays small.
MAX_ANSWER_CHARS = 2000

_LIST_MARKER = re.compile(r"^\s*(?:[-*•]|\d+[.)]|Q\d*[:.)])\s*", re.IGNORECASE)


def build_follow_up_prompt(question: str, answer: str, count: int) -> str:
    answer = answer[:MAX_ANSWER_CHARS]
    return (
        f"Based on the conversation below, suggest {count} short follow-up "
        "questions the user might ask next.\n"
        "Reply with one question per line and nothing else.\n\n"
        f"User: {question}\n\n"
        f"Assistant: {answer}\n"
    )


def parse_follow_ups(text: str, count: int) -> List[str]:
    """
    Pull up to `count` questions out of a free-form reply.
    Strips list markers and quotes; drops blank lines and duplicates.
    """
    suggestions: List[str] = []
    for line in (text or "").splitlines():
        line = _LIST_MARKER.sub("", line).strip().strip('"').strip()
        if not line or line in suggestions:
            continue
        suggestions.append(line)
        if len(suggestions) >= count:
            break
    return suggestions


async def generate_follow_ups(
    provider: BaseProvider,
    model: str,
    question: str,
    answer: str,
    count: int,
    on_error: Optional[ErrorObserver] = None,
) -> List[str]:
    """
    Ask the model for follow-up questions.

    Never raises for provider or parsing failures; returns [] instead.
    """
    if count <= 0 or not answer.strip():
        return []

    try:
        response = await provider.generate(
            model, build_follow_up_prompt(question, answer, count)
        )
        return parse_follow_ups(response, count)
    except (LocalChatError, ValueError, TypeError) as e:
        error = SuggestionError(
            f"Follow-up suggestion generation failed: {e}",
            original_error=e,
            user_hint="Follow-up suggestions are unavailable for this reply.",
        )
        logger.warning(error.message)
        if on_error is not None:
            try:
                await on_error(error)
            except Exception as observer_error:
                logger.error(f"Suggestion error observer failed: {observer_error}")
        return []
