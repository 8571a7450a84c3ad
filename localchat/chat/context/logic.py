from typing import List, Optional

from localchat.chat.structs import Message

# Flat per-message overhead (role marker, separators) folded into every estimate.
TOKEN_OVERHEAD = 4


def estimate_tokens(text: str) -> int:
    """
    Pure function to estimate token count.

    Weighs punctuation and whitespace more heavily than plain letters, so
    code and markup cost more than prose of the same length. This is a
    deterministic proxy, not a tokenizer.
    """
    text = text or ""
    whitespace = sum(1 for ch in text if ch.isspace())
    non_alnum = sum(1 for ch in text if not ch.isalnum())
    return (len(text) + whitespace + 2 * non_alnum + TOKEN_OVERHEAD) // 4


def message_tokens(message: Message) -> int:
    return estimate_tokens(message.content)


def find_prune_candidate(messages: List[Message]) -> Optional[int]:
    """
    Index of the next message to evict, or None.

    Strategy:
    1. The final slot (the message just added) is never a candidate.
    2. Scan backward from the second-to-last message.
    3. The first unpinned message found is evicted.
    """
    for index in range(len(messages) - 2, -1, -1):
        if not messages[index].pinned:
            return index
    return None


def usage_percentage(total_tokens: int, budget: int) -> float:
    if budget <= 0:
        return 0.0
    return total_tokens / budget * 100
