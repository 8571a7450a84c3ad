from .structs import (
    Chat,
    ContextStats,
    GenerationParams,
    Message,
    Role,
    StartGenerationRequest,
)

__all__ = [
    "Chat",
    "ContextStats",
    "GenerationParams",
    "Message",
    "Role",
    "StartGenerationRequest",
]
