from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class Role(str, Enum):
    """Conversation roles understood by the model server."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


# --- 1. Conversation ---


@dataclass
class Message:
    """
    Atomic conversation unit.

    `id` stays None until the chat store has persisted the message.
    """

    role: str
    content: str
    pinned: bool = False
    tag: Optional[str] = None
    id: Optional[str] = None
    chat_id: Optional[str] = None
    created_at: Optional[str] = None

    def to_payload(self) -> Dict[str, str]:
        """Wire form for the model server. Internal fields are stripped."""
        return {"role": self.role, "content": self.content}


@dataclass
class Chat:
    """A persisted conversation."""

    id: str
    title: str
    model: str
    created_at: str
    updated_at: str


# --- 2. Context & Generation ---


@dataclass
class ContextStats:
    """Snapshot of a context window's budget usage."""

    total_tokens: int
    budget: int
    message_count: int
    percentage: float
    pruned_count: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class GenerationParams:
    """Sampling parameters forwarded to the model server."""

    temperature: float = 0.7
    top_p: float = 0.9
    top_k: int = 40
    repeat_penalty: float = 1.1
    max_tokens: Optional[int] = None

    def to_options(self, num_ctx: int, default_max_tokens: int) -> Dict[str, Any]:
        """Map onto Ollama's `options` object."""
        return {
            "temperature": self.temperature,
            "top_p": self.top_p,
            "top_k": self.top_k,
            "repeat_penalty": self.repeat_penalty,
            "num_predict": self.max_tokens or default_max_tokens,
            "num_ctx": num_ctx,
        }


@dataclass
class StartGenerationRequest:
    """
    Inbound control payload: start one chat turn.

    The last entry of `messages` is the new turn; earlier entries are the
    history used when no `chat_id` is given.
    """

    model: str
    messages: List[Message]
    instance_id: str
    params: GenerationParams = field(default_factory=GenerationParams)
    chat_id: Optional[str] = None
    system_prompt: Optional[str] = None
