from .window import ContextWindow
from .logic import estimate_tokens, find_prune_candidate
from localchat.chat.structs import Message, ContextStats

__all__ = [
    "ContextWindow",
    "estimate_tokens",
    "find_prune_candidate",
    "Message",
    "ContextStats",
]
